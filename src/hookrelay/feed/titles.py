"""Feed 标题生成"""

from typing import Any

from ..config import TITLE_MAX_LEN
from .types import FeedKind


def truncate(text: str, max_len: int = TITLE_MAX_LEN) -> str:
    """截断到 max_len（含省略号）"""
    return text if len(text) <= max_len else text[: max_len - 1] + "…"


def _permission_decision_title(data: dict[str, Any]) -> str:
    match data.get("decision_type"):
        case "allow":
            return "✓ Allowed"
        case "deny":
            return truncate(f"✗ Denied: {data.get('message', 'Denied')}")
        case _:
            return f"⏳ No opinion: {data.get('reason') or 'timeout'}"


def _stop_decision_title(data: dict[str, Any]) -> str:
    match data.get("decision_type"):
        case "block":
            return truncate(f"⛔ Blocked: {data.get('reason')}")
        case "allow":
            return "✓ Stop allowed"
        case _:
            return "⏳ Stop: no opinion"


def generate_title(kind: FeedKind, data: dict[str, Any]) -> str:
    """按 kind 生成简短标题

    Args:
        kind: 事件类型
        data: 事件数据

    Returns:
        不超过 TITLE_MAX_LEN 的标题
    """
    match kind:
        case FeedKind.SESSION_START:
            return f"Session started ({data.get('source')})"
        case FeedKind.SESSION_END:
            return f"Session ended ({data.get('reason')})"
        case FeedKind.RUN_START:
            preview = data.get("trigger", {}).get("prompt_preview")
            return truncate(f"Run: {preview}") if preview else "Run started"
        case FeedKind.RUN_END:
            return f"Run {data.get('status')}"
        case FeedKind.USER_PROMPT:
            return truncate(data.get("prompt", ""))
        case FeedKind.TOOL_PRE:
            return truncate(f"● {data.get('tool_name')}")
        case FeedKind.TOOL_POST:
            return truncate(f"⎿ {data.get('tool_name')} result")
        case FeedKind.TOOL_FAILURE:
            return truncate(f"✗ {data.get('tool_name')} failed: {data.get('error')}")
        case FeedKind.PERMISSION_REQUEST:
            return truncate(f"⚠ Permission: {data.get('tool_name')}")
        case FeedKind.PERMISSION_DECISION:
            return _permission_decision_title(data)
        case FeedKind.STOP_REQUEST:
            return "⛔ Stop requested"
        case FeedKind.STOP_DECISION:
            return _stop_decision_title(data)
        case FeedKind.SUBAGENT_START:
            return truncate(f"⚡ Subagent: {data.get('agent_type')}")
        case FeedKind.SUBAGENT_STOP:
            return truncate(f"⏹ Subagent done: {data.get('agent_type')}")
        case FeedKind.NOTIFICATION:
            return truncate(data.get("message", ""))
        case FeedKind.COMPACT_PRE:
            return f"Compacting context ({data.get('trigger')})"
        case FeedKind.SETUP:
            return f"Setup ({data.get('trigger')})"
        case FeedKind.AGENT_MESSAGE:
            return "💬 Subagent response" if data.get("scope") == "subagent" else "💬 Agent response"
        case FeedKind.UNKNOWN_HOOK:
            return truncate(f"? {data.get('hook_event_name')}")
    return "Unknown event"
