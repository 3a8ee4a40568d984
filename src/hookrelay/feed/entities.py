"""Feed 实体 - Session / Run / Actor

Run 状态流转：
| 当前    | 触发                         | 下一状态   |
|---------|------------------------------|------------|
| NoRun   | 工具类事件（隐式）           | running    |
| NoRun   | UserPromptSubmit / resume    | running    |
| running | 下一个显式触发 / SessionEnd  | completed  |
"""

from dataclasses import dataclass, field
from enum import Enum

from ..core.ids import ROOT_ACTOR_ID, SYSTEM_ACTOR_ID, USER_ACTOR_ID, subagent_actor_id
from .types import RunCounters, RunTrigger


@dataclass
class Session:
    """host 会话"""

    session_id: str
    started_at: int
    source: str = "startup"
    ended_at: int | None = None
    model: str | None = None
    agent_type: str | None = None


class RunStatus(str, Enum):
    RUNNING = "running"
    COMPLETED = "completed"
    FAILED = "failed"
    ABORTED = "aborted"


@dataclass
class RunActors:
    root_agent_id: str = ROOT_ACTOR_ID
    subagent_ids: list[str] = field(default_factory=list)


@dataclass
class Run:
    """一次端到端的 agent 工作单元"""

    run_id: str
    session_id: str
    started_at: int
    trigger: RunTrigger
    status: RunStatus = RunStatus.RUNNING
    ended_at: int | None = None
    actors: RunActors = field(default_factory=RunActors)
    counters: RunCounters = field(
        default_factory=lambda: RunCounters(
            tool_uses=0, tool_failures=0, permission_requests=0, blocks=0
        )
    )

    @property
    def is_open(self) -> bool:
        return self.status == RunStatus.RUNNING


class ActorKind(str, Enum):
    USER = "user"
    ROOT = "root"
    SUBAGENT = "subagent"
    SYSTEM = "system"


@dataclass(frozen=True)
class Actor:
    actor_id: str
    kind: ActorKind
    display_name: str
    agent_type: str | None = None
    parent_actor_id: str | None = None


class ActorRegistry:
    """Actor 注册表（仅用于显示查询）

    同一 actor_id 只登记一次，重复登记返回已有条目。
    """

    def __init__(self):
        self._actors: dict[str, Actor] = {}
        self.register(Actor(USER_ACTOR_ID, ActorKind.USER, "You"))
        self.register(Actor(ROOT_ACTOR_ID, ActorKind.ROOT, "Agent"))
        self.register(Actor(SYSTEM_ACTOR_ID, ActorKind.SYSTEM, "System"))

    def register(self, actor: Actor) -> Actor:
        return self._actors.setdefault(actor.actor_id, actor)

    def ensure_subagent(self, agent_id: str, agent_type: str | None = None) -> Actor:
        """登记 subagent（首次出现时）"""
        return self.register(
            Actor(
                actor_id=subagent_actor_id(agent_id),
                kind=ActorKind.SUBAGENT,
                display_name=agent_type or agent_id,
                agent_type=agent_type,
                parent_actor_id=ROOT_ACTOR_ID,
            )
        )

    def get(self, actor_id: str) -> Actor | None:
        return self._actors.get(actor_id)

    def all(self) -> list[Actor]:
        return list(self._actors.values())

    def __len__(self) -> int:
        return len(self._actors)

    def __contains__(self, actor_id: str) -> bool:
        return actor_id in self._actors
