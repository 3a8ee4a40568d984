"""RuntimeEvent - 经过校验的内部事件格式

层级职责：
- InteractionHints: 每种 hook 的交互属性（是否等待决策、是否可阻断、超时）
- RuntimeContext: host 上下文（cwd / transcript / permission_mode）
- RuntimeEvent: envelope 校验后的统一事件，Pipeline 与 Feed Mapper 都只消费它

交互属性表：
| Hook                         | expects_decision | can_block | timeout            |
|------------------------------|------------------|-----------|--------------------|
| PreToolUse, PermissionRequest| True             | True      | PERMISSION_TIMEOUT |
| Stop                         | True             | True      | DEFAULT_TIMEOUT    |
| SubagentStop, UserPromptSubmit| False           | True      | AUTO_PASSTHROUGH   |
| 其他（含未知 hook）          | False            | False     | AUTO_PASSTHROUGH   |
"""

import json
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any

from ..config import (
    AUTO_PASSTHROUGH_SECONDS,
    DEFAULT_TIMEOUT_SECONDS,
    LOG_MAX_INPUT_LEN,
    PERMISSION_TIMEOUT_SECONDS,
)
from ..core.ids import short_id
from .envelope import HookEventEnvelope
from .events import HookPayload, parse_hook_payload


@dataclass(frozen=True)
class InteractionHints:
    """hook 交互属性"""

    expects_decision: bool
    can_block: bool
    default_timeout: float  # 秒


PERMISSION_HINTS = InteractionHints(
    expects_decision=True, can_block=True, default_timeout=PERMISSION_TIMEOUT_SECONDS
)
STOP_HINTS = InteractionHints(
    expects_decision=True, can_block=True, default_timeout=DEFAULT_TIMEOUT_SECONDS
)
BLOCKABLE_HINTS = InteractionHints(
    expects_decision=False, can_block=True, default_timeout=AUTO_PASSTHROUGH_SECONDS
)
INFO_HINTS = InteractionHints(
    expects_decision=False, can_block=False, default_timeout=AUTO_PASSTHROUGH_SECONDS
)

INTERACTION_HINTS: dict[str, InteractionHints] = {
    "PermissionRequest": PERMISSION_HINTS,
    "PreToolUse": PERMISSION_HINTS,
    "Stop": STOP_HINTS,
    "SubagentStop": BLOCKABLE_HINTS,
    "UserPromptSubmit": BLOCKABLE_HINTS,
}


def get_interaction_hints(hook_event_name: str) -> InteractionHints:
    """查询 hook 的交互属性（未知 hook 视为纯通知）"""
    return INTERACTION_HINTS.get(hook_event_name, INFO_HINTS)


@dataclass(frozen=True)
class RuntimeContext:
    """host 上下文信息"""

    cwd: str | None = None
    transcript_path: str | None = None
    permission_mode: str | None = None


@dataclass(frozen=True)
class RuntimeEvent:
    """Runtime 事件 - 统一事件格式

    Attributes:
        id: 请求标识（即 envelope.request_id，用于回复与决策关联）
        timestamp: 事件时间（epoch ms）
        hook_name: hook 名
        session_id: host 会话标识
        payload: 类型化 payload
        raw: 原始 payload 字典
        tool_name / tool_use_id / agent_id / agent_type: 从 payload 派生
        context: host 上下文
        hints: 交互属性
    """

    id: str
    timestamp: int
    hook_name: str
    session_id: str
    payload: HookPayload
    raw: dict[str, Any] = field(default_factory=dict)
    tool_name: str | None = None
    tool_use_id: str | None = None
    agent_id: str | None = None
    agent_type: str | None = None
    context: RuntimeContext = field(default_factory=RuntimeContext)
    hints: InteractionHints = INFO_HINTS

    @classmethod
    def from_envelope(cls, envelope: HookEventEnvelope) -> "RuntimeEvent":
        """从已校验的 envelope 构造事件"""
        raw = envelope.payload
        payload = parse_hook_payload(envelope.hook_event_name, raw)
        tool_name = getattr(payload, "tool_name", None) or None
        return cls(
            id=envelope.request_id,
            timestamp=envelope.ts,
            hook_name=envelope.hook_event_name,
            session_id=envelope.session_id,
            payload=payload,
            raw=raw,
            tool_name=tool_name,
            tool_use_id=getattr(payload, "tool_use_id", None),
            agent_id=getattr(payload, "agent_id", None),
            agent_type=getattr(payload, "agent_type", None),
            context=RuntimeContext(
                cwd=payload.cwd,
                transcript_path=payload.transcript_path,
                permission_mode=payload.permission_mode,
            ),
            hints=get_interaction_hints(envelope.hook_event_name),
        )

    @property
    def tool_input(self) -> dict[str, Any]:
        """工具输入（非工具 hook 返回空字典）"""
        return getattr(self.payload, "tool_input", None) or {}

    def format_log(self) -> str:
        """格式化为日志字符串"""
        ts = datetime.fromtimestamp(self.timestamp / 1000).strftime("%H:%M:%S.%f")[:-3]
        tool = f" {self.tool_name}" if self.tool_name else ""
        line = f"[RuntimeEvent] {ts} | {short_id(self.id):8} | {self.hook_name}{tool}"
        if self.tool_input:
            text = json.dumps(self.tool_input, ensure_ascii=False, default=str)
            if len(text) > LOG_MAX_INPUT_LEN:
                text = text[:LOG_MAX_INPUT_LEN] + "..."
            line += f" | {text}"
        return line
