"""Feed 系统 - 生成可回放的事件流

模块结构：
- types: FeedEvent, FeedKind, FeedLevel, FeedCause
- entities: Session, Run, Actor, ActorRegistry
- correlation: ToolUseIndex, DecisionCorrelator
- titles: generate_title
- mapper: FeedMapper
"""

from .correlation import DecisionCorrelator, ToolUseIndex
from .entities import Actor, ActorKind, ActorRegistry, Run, RunStatus, Session
from .mapper import FeedMapper
from .titles import generate_title
from .types import FeedCause, FeedEvent, FeedKind, FeedLevel

__all__ = [
    "FeedEvent",
    "FeedKind",
    "FeedLevel",
    "FeedCause",
    "Session",
    "Run",
    "RunStatus",
    "Actor",
    "ActorKind",
    "ActorRegistry",
    "ToolUseIndex",
    "DecisionCorrelator",
    "generate_title",
    "FeedMapper",
]
