"""关联索引

- ToolUseIndex: tool_use_id → tool.pre 事件 id（run 级，run 重新打开时清空）
- DecisionCorrelator: request_id → (feed 事件 id, kind)，决策到达时取出
"""

from dataclasses import dataclass

from .types import FeedKind


class ToolUseIndex:
    """tool_use_id → 未完成的 tool.pre 事件 id

    每个 tool_use_id 同时最多一条记录；post / failure 事件消费该记录。
    """

    def __init__(self):
        self._index: dict[str, str] = {}

    def record(self, tool_use_id: str, event_id: str) -> None:
        self._index[tool_use_id] = event_id

    def resolve(self, tool_use_id: str | None) -> str | None:
        """取出并删除记录"""
        if not tool_use_id:
            return None
        return self._index.pop(tool_use_id, None)

    def clear(self) -> None:
        self._index.clear()

    def __len__(self) -> int:
        return len(self._index)


@dataclass(frozen=True)
class CorrelationEntry:
    event_id: str
    kind: FeedKind


class DecisionCorrelator:
    """request_id → 请求决策的 feed 事件

    只记录可能收到决策的事件类型；每个 request_id 只能被关联一次。
    """

    def __init__(self):
        self._entries: dict[str, CorrelationEntry] = {}

    def record(self, request_id: str, event_id: str, kind: FeedKind) -> bool:
        """登记事件

        Returns:
            是否登记（非决策类事件返回 False）
        """
        if not kind.is_decision_capable:
            return False
        self._entries[request_id] = CorrelationEntry(event_id, kind)
        return True

    def resolve(self, request_id: str) -> CorrelationEntry | None:
        """取出关联（未知 request_id 返回 None）"""
        return self._entries.pop(request_id, None)

    def peek(self, request_id: str) -> CorrelationEntry | None:
        return self._entries.get(request_id)

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, request_id: str) -> bool:
        return request_id in self._entries
