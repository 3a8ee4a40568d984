"""Hook payload 类型 - 按 hook_event_name 区分的封闭 sum type

每个已知 hook 名对应一个 pydantic 模型；未知 hook 名统一落到
UnknownHookPayload，保证新版本 host 发来的 hook 不会被拒绝。

所有模型保留未知字段（extra="allow"），字段缺失时使用宽松默认值。
"""

from typing import Annotated, Any, Literal, Union

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter, ValidationError, field_validator

from ..telemetry import get_logger

logger = get_logger(__name__)

KNOWN_HOOKS = (
    "SessionStart",
    "UserPromptSubmit",
    "PreToolUse",
    "PermissionRequest",
    "PostToolUse",
    "PostToolUseFailure",
    "SubagentStart",
    "SubagentStop",
    "Stop",
    "PreCompact",
    "SessionEnd",
    "Notification",
    "Setup",
)


class _HookPayloadBase(BaseModel):
    """所有 hook 共有字段"""

    model_config = ConfigDict(extra="allow", frozen=True)

    session_id: str | None = None
    transcript_path: str | None = None
    cwd: str | None = None
    permission_mode: str | None = None

    @field_validator("session_id", "transcript_path", "cwd", "permission_mode", mode="before")
    @classmethod
    def _drop_non_str(cls, value: Any) -> Any:
        # 共有字段类型不对时当作缺失，UnknownHookPayload 兜底因此不会失败
        return value if isinstance(value, str) else None


class _ToolPayloadBase(_HookPayloadBase):
    """工具类 hook 共有字段

    agent_id / agent_type 存在时表示由 subagent 发起。
    """

    tool_name: str = ""
    tool_input: dict[str, Any] = Field(default_factory=dict)
    tool_use_id: str | None = None
    agent_id: str | None = None
    agent_type: str | None = None

    @field_validator("tool_input", mode="before")
    @classmethod
    def _coerce_tool_input(cls, value: Any) -> Any:
        return value if isinstance(value, dict) else {}


# === 会话 ===


class SessionStartPayload(_HookPayloadBase):
    hook_event_name: Literal["SessionStart"] = "SessionStart"
    source: str = "startup"  # startup | resume | clear | compact
    model: str | None = None
    agent_type: str | None = None


class SessionEndPayload(_HookPayloadBase):
    hook_event_name: Literal["SessionEnd"] = "SessionEnd"
    reason: str = "unknown"


class UserPromptSubmitPayload(_HookPayloadBase):
    hook_event_name: Literal["UserPromptSubmit"] = "UserPromptSubmit"
    prompt: str = ""


# === 工具 ===


class PreToolUsePayload(_ToolPayloadBase):
    hook_event_name: Literal["PreToolUse"] = "PreToolUse"


class PostToolUsePayload(_ToolPayloadBase):
    hook_event_name: Literal["PostToolUse"] = "PostToolUse"
    tool_response: Any = None


class PostToolUseFailurePayload(_ToolPayloadBase):
    hook_event_name: Literal["PostToolUseFailure"] = "PostToolUseFailure"
    error: str = "Unknown error"
    is_interrupt: bool | None = None


class PermissionRequestPayload(_ToolPayloadBase):
    hook_event_name: Literal["PermissionRequest"] = "PermissionRequest"
    permission_suggestions: list[dict[str, Any]] | None = None


# === 停止 / subagent ===


class StopPayload(_HookPayloadBase):
    hook_event_name: Literal["Stop"] = "Stop"
    stop_hook_active: bool = False
    last_assistant_message: str | None = None
    agent_id: str | None = None
    agent_type: str | None = None


class SubagentStartPayload(_HookPayloadBase):
    hook_event_name: Literal["SubagentStart"] = "SubagentStart"
    agent_id: str | None = None
    agent_type: str | None = None


class SubagentStopPayload(_HookPayloadBase):
    hook_event_name: Literal["SubagentStop"] = "SubagentStop"
    agent_id: str | None = None
    agent_type: str | None = None
    stop_hook_active: bool = False
    agent_transcript_path: str | None = None
    last_assistant_message: str | None = None


# === 其他 ===


class NotificationPayload(_HookPayloadBase):
    hook_event_name: Literal["Notification"] = "Notification"
    message: str = ""
    title: str | None = None
    notification_type: str | None = None


class PreCompactPayload(_HookPayloadBase):
    hook_event_name: Literal["PreCompact"] = "PreCompact"
    trigger: str = "auto"  # manual | auto
    custom_instructions: str | None = None


class SetupPayload(_HookPayloadBase):
    hook_event_name: Literal["Setup"] = "Setup"
    trigger: str = "init"  # init | maintenance


class UnknownHookPayload(_HookPayloadBase):
    """未识别的 hook（向前兼容）"""

    hook_event_name: str


KnownHookPayload = Annotated[
    Union[
        SessionStartPayload,
        SessionEndPayload,
        UserPromptSubmitPayload,
        PreToolUsePayload,
        PostToolUsePayload,
        PostToolUseFailurePayload,
        PermissionRequestPayload,
        StopPayload,
        SubagentStartPayload,
        SubagentStopPayload,
        NotificationPayload,
        PreCompactPayload,
        SetupPayload,
    ],
    Field(discriminator="hook_event_name"),
]

HookPayload = Union[
    SessionStartPayload,
    SessionEndPayload,
    UserPromptSubmitPayload,
    PreToolUsePayload,
    PostToolUsePayload,
    PostToolUseFailurePayload,
    PermissionRequestPayload,
    StopPayload,
    SubagentStartPayload,
    SubagentStopPayload,
    NotificationPayload,
    PreCompactPayload,
    SetupPayload,
    UnknownHookPayload,
]

_known_adapter: TypeAdapter[KnownHookPayload] = TypeAdapter(KnownHookPayload)


def parse_hook_payload(hook_event_name: str, payload: dict[str, Any]) -> HookPayload:
    """把 host 的 stdin 文档解析为类型化 payload

    envelope 上的 hook_event_name 优先于 payload 内的同名字段。
    已知 hook 的字段类型不合法时降级为 UnknownHookPayload（不抛异常）。

    Args:
        hook_event_name: envelope 上的 hook 名
        payload: 原始 payload

    Returns:
        对应的 payload 模型
    """
    data = {**payload, "hook_event_name": hook_event_name}
    if hook_event_name in KNOWN_HOOKS:
        try:
            return _known_adapter.validate_python(data)
        except ValidationError as e:
            logger.warning(
                f"[Events] Malformed {hook_event_name} payload, treating as unknown: "
                f"{e.error_count()} error(s)"
            )
    return UnknownHookPayload.model_validate(data)
