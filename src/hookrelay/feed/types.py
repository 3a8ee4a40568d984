"""Feed 类型定义

FeedEvent 是 feed 中唯一的记录格式：
- 不可变（frozen dataclass），enrichment 通过 dataclasses.replace 产生新副本
- event_id = <run_id>:E<seq>，seq 在 run 内从 1 开始严格 +1
- data 的结构由 kind 决定（见下方 TypedDict）
"""

from dataclasses import asdict, dataclass, field
from enum import Enum
from typing import Any, NotRequired, TypedDict


class FeedKind(str, Enum):
    """Feed 事件类型"""

    SESSION_START = "session.start"
    SESSION_END = "session.end"
    RUN_START = "run.start"
    RUN_END = "run.end"
    USER_PROMPT = "user.prompt"
    TOOL_PRE = "tool.pre"
    TOOL_POST = "tool.post"
    TOOL_FAILURE = "tool.failure"
    PERMISSION_REQUEST = "permission.request"
    PERMISSION_DECISION = "permission.decision"
    STOP_REQUEST = "stop.request"
    STOP_DECISION = "stop.decision"
    SUBAGENT_START = "subagent.start"
    SUBAGENT_STOP = "subagent.stop"
    NOTIFICATION = "notification"
    COMPACT_PRE = "compact.pre"
    SETUP = "setup"
    AGENT_MESSAGE = "agent.message"
    UNKNOWN_HOOK = "unknown.hook"

    @property
    def is_decision_capable(self) -> bool:
        """该类事件之后是否可能收到决策"""
        return self in (FeedKind.TOOL_PRE, FeedKind.PERMISSION_REQUEST, FeedKind.STOP_REQUEST)


class FeedLevel(str, Enum):
    """Feed 事件级别"""

    DEBUG = "debug"
    INFO = "info"
    WARN = "warn"
    ERROR = "error"


@dataclass(frozen=True)
class FeedCause:
    """事件因果信息"""

    hook_request_id: str | None = None
    tool_use_id: str | None = None
    parent_event_id: str | None = None
    transcript_path: str | None = None


@dataclass(frozen=True)
class FeedEvent:
    """Feed 事件

    Attributes:
        event_id: <run_id>:E<seq>
        seq: run 内序号（从 1 开始）
        ts: 时间（epoch ms）
        session_id: 会话标识
        run_id: 所属 run
        kind: 事件类型
        level: 事件级别
        actor_id: 发起者
        cause: 因果信息
        title: 简短标题
        data: kind 相关数据
        raw: 原始 hook payload（决策事件为 None）
    """

    event_id: str
    seq: int
    ts: int
    session_id: str
    run_id: str
    kind: FeedKind
    level: FeedLevel
    actor_id: str
    cause: FeedCause = field(default_factory=FeedCause)
    title: str = ""
    data: dict[str, Any] = field(default_factory=dict)
    raw: dict[str, Any] | None = None

    def to_dict(self) -> dict[str, Any]:
        """转换为 JSON 友好的字典"""
        result = asdict(self)
        result["kind"] = self.kind.value
        result["level"] = self.level.value
        result["cause"] = {k: v for k, v in result["cause"].items() if v is not None}
        return result


# =============================================================================
# kind 相关数据结构
# =============================================================================


class RunTrigger(TypedDict):
    type: str  # user_prompt_submit | resume | other
    prompt_preview: NotRequired[str | None]
    request_id: NotRequired[str | None]


class RunCounters(TypedDict):
    tool_uses: int
    tool_failures: int
    permission_requests: int
    blocks: int


class RunEndData(TypedDict):
    status: str
    counters: RunCounters


class ToolPreData(TypedDict):
    tool_name: str
    tool_input: dict[str, Any]
    tool_use_id: str | None


class ToolPostData(ToolPreData):
    tool_response: Any


class ToolFailureData(ToolPreData):
    error: str
    is_interrupt: bool | None


class PermissionDecisionData(TypedDict):
    decision_type: str  # allow | deny | no_opinion
    reason: NotRequired[str | None]
    message: NotRequired[str]


class StopDecisionData(TypedDict):
    decision_type: str  # allow | block | no_opinion
    reason: NotRequired[str | None]


class AgentMessageData(TypedDict):
    message: str
    source: str
    scope: str  # root | subagent


class TranscriptSummaryData(TypedDict):
    last_assistant_text: str | None
    last_assistant_timestamp: str | None
    message_count: int
    tool_call_count: int
    error: str | None
