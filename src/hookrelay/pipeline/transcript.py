"""Transcript 解析 - 会话 / subagent 结束后的摘要

transcript 是 JSONL 文件，每行一条记录：
- type=assistant: message.content 为字符串或内容块列表（text / tool_use / ...）
- type=user: 用户消息

解析失败不抛异常，而是在摘要中携带 error 标记。
"""

import json
from dataclasses import asdict, dataclass
from pathlib import Path
from typing import Any

from ..telemetry import get_logger

logger = get_logger(__name__)

ERROR_NO_PATH = "No transcript path provided"
ERROR_NOT_AVAILABLE = "Transcript not available"
ERROR_NO_MESSAGES = "No messages in session"


@dataclass(frozen=True)
class TranscriptSummary:
    """transcript 摘要"""

    last_assistant_text: str | None = None
    last_assistant_timestamp: str | None = None
    message_count: int = 0
    tool_call_count: int = 0
    error: str | None = None

    @classmethod
    def failed(cls, error: str) -> "TranscriptSummary":
        return cls(error=error)

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


def extract_text(content: str | list[Any]) -> str:
    """提取内容中的文本块"""
    if isinstance(content, str):
        return content
    return "\n".join(
        item.get("text", "")
        for item in content
        if isinstance(item, dict) and item.get("type") == "text"
    )


def count_tool_calls(content: str | list[Any]) -> int:
    """统计 tool_use 块数量"""
    if isinstance(content, str):
        return 0
    return sum(1 for item in content if isinstance(item, dict) and item.get("type") == "tool_use")


def parse_transcript_lines(lines: list[str]) -> TranscriptSummary:
    """解析 transcript 行（跳过损坏行）"""
    lines = [line for line in lines if line.strip()]
    if not lines:
        return TranscriptSummary.failed(ERROR_NO_MESSAGES)

    last_text: str | None = None
    last_ts: str | None = None
    message_count = 0
    tool_call_count = 0

    for line in lines:
        try:
            entry = json.loads(line)
        except json.JSONDecodeError:
            continue
        if not isinstance(entry, dict):
            continue

        entry_type = entry.get("type")
        if entry_type == "assistant":
            message = entry.get("message")
            content = message.get("content") if isinstance(message, dict) else None
            if not content:
                continue
            message_count += 1
            text = extract_text(content)
            if text:
                last_text = text
                if entry.get("timestamp"):
                    last_ts = str(entry["timestamp"])
            tool_call_count += count_tool_calls(content)
        elif entry_type == "user":
            message_count += 1

    return TranscriptSummary(
        last_assistant_text=last_text,
        last_assistant_timestamp=last_ts,
        message_count=message_count,
        tool_call_count=tool_call_count,
    )


def parse_transcript_file(path: str | Path | None) -> TranscriptSummary:
    """读取并解析 transcript 文件（阻塞 I/O，调用方负责放到线程中）

    Args:
        path: transcript 路径

    Returns:
        TranscriptSummary，失败时 error 字段非空
    """
    if not path:
        return TranscriptSummary.failed(ERROR_NO_PATH)

    try:
        text = Path(path).read_text(encoding="utf-8")
    except FileNotFoundError:
        logger.debug(f"[Transcript] Not found: {path}")
        return TranscriptSummary.failed(ERROR_NOT_AVAILABLE)
    except (OSError, UnicodeDecodeError) as e:
        logger.warning(f"[Transcript] Read failed: {path}: {e}")
        return TranscriptSummary.failed(f"Could not parse transcript: {e}")

    return parse_transcript_lines(text.splitlines())
