"""RequestQueue - 等待人工决策的请求队列

两个队列：
- permission: 需要用户授权的工具请求
- question: AskUserQuestion 问题

特性：
- 只保存轻量快照（QueueItem），不保存完整 envelope
- 最大容量 256，溢出时丢弃最旧请求
- 高水位 75% 打印日志
- 支持按 request_id 出队与批量移除
"""

from collections import OrderedDict
from dataclasses import dataclass
from enum import Enum
from typing import Any

from ..config import METRICS_ENABLED, QUEUE_HIGH_WATERMARK, QUEUE_MAX_SIZE
from ..core.ids import short_id
from ..hooks.runtime import RuntimeEvent
from ..telemetry import get_logger, metrics

logger = get_logger(__name__)


class QueueKind(str, Enum):
    PERMISSION = "permission"
    QUESTION = "question"


@dataclass(frozen=True)
class QueueItem:
    """队列项快照"""

    request_id: str
    ts: int
    tool_name: str
    tool_input: dict[str, Any]
    tool_use_id: str | None = None
    suggestions: list[dict[str, Any]] | None = None

    @classmethod
    def from_event(cls, event: RuntimeEvent) -> "QueueItem":
        return cls(
            request_id=event.id,
            ts=event.timestamp,
            tool_name=event.tool_name or "",
            tool_input=dict(event.tool_input),
            tool_use_id=event.tool_use_id,
            suggestions=getattr(event.payload, "permission_suggestions", None),
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "request_id": self.request_id,
            "ts": self.ts,
            "tool_name": self.tool_name,
            "tool_input": self.tool_input,
            "tool_use_id": self.tool_use_id,
            "suggestions": self.suggestions,
        }


class RequestQueue:
    """按到达顺序排列的请求队列

    Attributes:
        kind: 队列类型
    """

    def __init__(
        self,
        kind: QueueKind,
        max_size: int = QUEUE_MAX_SIZE,
        high_watermark: float = QUEUE_HIGH_WATERMARK,
    ):
        self.kind = kind
        self._max_size = max_size
        self._high_watermark = high_watermark
        self._items: OrderedDict[str, QueueItem] = OrderedDict()

    def enqueue(self, item: QueueItem) -> QueueItem | None:
        """入队

        如果队列满，丢弃最旧的请求。

        Args:
            item: 队列项

        Returns:
            被丢弃的旧请求（没有丢弃时返回 None）
        """
        dropped: QueueItem | None = None
        if item.request_id not in self._items and len(self._items) >= self._max_size:
            _, dropped = self._items.popitem(last=False)
            logger.warning(
                f"[Queue:{self.kind.value}] Dropped oldest request {short_id(dropped.request_id)} (queue full)"
            )
            if METRICS_ENABLED:
                metrics.inc("queue.dropped", {"queue": self.kind.value})

        self._items[item.request_id] = item
        self._update_depth()

        depth = len(self._items)
        if depth >= self._max_size * self._high_watermark:
            logger.debug(
                f"[Queue:{self.kind.value}] High watermark: {depth}/{self._max_size} "
                f"({depth / self._max_size * 100:.0f}%)"
            )
        return dropped

    def dequeue(self, request_id: str) -> QueueItem | None:
        """按 request_id 出队

        Returns:
            被移除的项，不存在时返回 None
        """
        item = self._items.pop(request_id, None)
        if item is not None:
            self._update_depth()
        return item

    def remove_all(self, request_ids: "list[str] | set[str] | tuple[str, ...]") -> int:
        """批量移除

        Returns:
            实际移除的数量
        """
        removed = 0
        for request_id in request_ids:
            if self._items.pop(request_id, None) is not None:
                removed += 1
        if removed:
            self._update_depth()
        return removed

    def peek(self) -> QueueItem | None:
        """查看队首（不移除）"""
        return next(iter(self._items.values()), None)

    def view(self) -> dict[str, Any]:
        """队首 + 数量（下游 API 使用）"""
        head = self.peek()
        return {"head": head.to_dict() if head else None, "count": len(self._items)}

    def clear(self) -> int:
        count = len(self._items)
        self._items.clear()
        self._update_depth()
        return count

    def _update_depth(self) -> None:
        if METRICS_ENABLED:
            metrics.gauge("queue.depth", len(self._items), {"queue": self.kind.value})

    # === 状态 ===

    def __len__(self) -> int:
        return len(self._items)

    def __bool__(self) -> bool:
        return len(self._items) > 0

    def __contains__(self, request_id: str) -> bool:
        return request_id in self._items

    @property
    def is_empty(self) -> bool:
        return len(self._items) == 0

    @property
    def depth(self) -> int:
        return len(self._items)

    def items(self) -> list[QueueItem]:
        return list(self._items.values())
