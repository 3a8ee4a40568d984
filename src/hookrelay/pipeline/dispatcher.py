"""HookPipeline - 单写者的分发与策略管道

职责：
- 按 DISPATCH_CHAIN 选择 handler 并执行其副作用
- 维护 feed（有序、只追加；enrichment 以替换方式修补）
- 维护 Permission / Question 队列
- 把决策交给传输层回复，并生成决策类 feed 事件
- 会话簿记：记录 active session，会话结束时触发 transcript 解析

所有状态修改都在同一把 asyncio.Lock 内完成，多个连接并发 dispatch 时
被串行化为一个决策流。

生命周期：
    dispatch(event)          → 等待中（awaiting）
    respond(id, decision)    → 已回复；之后的决策一律忽略
    abandon(ids)             → 客户端已断开，从队列中移除
"""

import asyncio
from dataclasses import replace
from typing import Any, Protocol

from ..config import METRICS_ENABLED, QUEUE_MAX_SIZE
from ..core.ids import short_id
from ..feed.entities import Actor, Run, Session
from ..feed.mapper import FeedMapper
from ..feed.types import FeedEvent, FeedKind
from ..hooks.decisions import DecisionSource, RuntimeDecision, map_decision_to_result
from ..hooks.envelope import HookResultPayload
from ..hooks.runtime import RuntimeEvent
from ..policy.rules import RuleBook
from ..telemetry import format_request_log, get_logger, metrics
from .enrichment import TranscriptEnricher
from .handlers import DISPATCH_CHAIN, DispatchHandler, HandlerContext, HandlerResult, select_handler
from .queues import QueueItem, QueueKind, RequestQueue
from .transcript import ERROR_NO_PATH, TranscriptSummary

logger = get_logger(__name__)


class ResultTransport(Protocol):
    """回复通道（HookReceiver 实现）"""

    def send_result(self, request_id: str, payload: HookResultPayload) -> bool:
        """写回复；请求已不在等待中时返回 False"""
        ...


class HookPipeline:
    """Hook 分发管道

    每个进程构造一次；测试中可以构造多个互不干扰的实例。
    """

    def __init__(
        self,
        rules: RuleBook | None = None,
        enricher: TranscriptEnricher | None = None,
        chain: tuple[DispatchHandler, ...] = DISPATCH_CHAIN,
        queue_max_size: int = QUEUE_MAX_SIZE,
    ):
        self.rules = rules if rules is not None else RuleBook()
        self._enricher = enricher
        self._chain = chain
        self._lock = asyncio.Lock()
        self._transport: ResultTransport | None = None
        self._mapper = FeedMapper()
        self._feed: list[FeedEvent] = []
        self._feed_index: dict[str, int] = {}  # event_id → feed 下标
        self._awaiting: set[str] = set()
        self.queues: dict[QueueKind, RequestQueue] = {
            kind: RequestQueue(kind, max_size=queue_max_size) for kind in QueueKind
        }
        self.active_session_id: str | None = None

        if enricher is not None:
            enricher.set_callback(self.apply_enrichment)

    def attach_transport(self, transport: ResultTransport) -> None:
        """设置回复通道"""
        self._transport = transport

    # === 分发 ===

    async def dispatch(self, event: RuntimeEvent) -> HandlerResult:
        """分发一个事件

        Args:
            event: 已校验的事件

        Returns:
            生效 handler 的结果
        """
        async with self._lock:
            ctx = HandlerContext(event=event, rules=self.rules.snapshot())
            handler = select_handler(ctx, self._chain)
            result = handler.handle(ctx)

            logger.debug(f"{event.format_log()} -> {result.handler}")
            if METRICS_ENABLED:
                metrics.inc("pipeline.dispatch_total", {"handler": result.handler})

            self._awaiting.add(event.id)

            surfaced: list[FeedEvent] = []
            if result.surface:
                surfaced = self._mapper.map_event(event)
                for fe in surfaced:
                    self._append(fe)

            if result.enqueue is not None:
                dropped = self.queues[result.enqueue].enqueue(QueueItem.from_event(event))
                if dropped is not None:
                    # 被挤出队列的请求已无法被人工回复，立即放行
                    self._respond_locked(dropped.request_id, RuntimeDecision.passthrough(DecisionSource.TIMEOUT))
                logger.info(
                    format_request_log(
                        "Pipeline", short_id(event.id), f"Queued {event.tool_name} for {result.enqueue.value}"
                    )
                )

            if result.enrich_path:
                target = self._find(surfaced, FeedKind.SUBAGENT_STOP)
                if target is not None and self._enricher is not None:
                    self._enricher.submit(target.event_id, result.enrich_path)

            if result.decision is not None:
                self._respond_locked(event.id, result.decision, record=result.record_decision)

            self._session_bookkeeping(event, surfaced)
            return result

    def _session_bookkeeping(self, event: RuntimeEvent, surfaced: list[FeedEvent]) -> None:
        """会话簿记（不论哪个 handler 生效都执行）"""
        if event.hook_name == "SessionStart":
            self.active_session_id = event.session_id
            logger.info(f"[Pipeline] Session started: {short_id(event.session_id)}")
        elif event.hook_name == "SessionEnd":
            target = self._find(surfaced, FeedKind.SESSION_END)
            if target is None:
                return
            path = event.context.transcript_path
            if not path:
                self._patch_locked(target.event_id, TranscriptSummary.failed(ERROR_NO_PATH))
            elif self._enricher is not None:
                self._enricher.submit(target.event_id, path)

    # === 决策 ===

    async def respond(self, request_id: str, decision: RuntimeDecision) -> bool:
        """对等待中的请求给出决策

        Args:
            request_id: 请求标识
            decision: 决策

        Returns:
            是否被接受；请求未知或已被回复（例如已超时）时返回 False
        """
        async with self._lock:
            return self._respond_locked(request_id, decision)

    def _respond_locked(self, request_id: str, decision: RuntimeDecision, record: bool = True) -> bool:
        if request_id not in self._awaiting:
            logger.debug(f"[Pipeline] Ignored decision for {short_id(request_id)} (not awaiting)")
            if METRICS_ENABLED:
                metrics.inc("pipeline.late_decisions")
            return False

        self._awaiting.discard(request_id)
        for queue in self.queues.values():
            queue.dequeue(request_id)

        if self._transport is not None:
            if not self._transport.send_result(request_id, map_decision_to_result(decision)):
                self._mapper.forget_request(request_id)
                return False

        if decision.source != DecisionSource.TIMEOUT:
            logger.info(
                format_request_log(
                    "Pipeline", short_id(request_id), f"Decision {decision.type.value} ({decision.source.value})"
                )
            )

        if record:
            fe = self._mapper.map_decision(request_id, decision)
            if fe is not None:
                self._append(fe)
        else:
            self._mapper.forget_request(request_id)
        return True

    async def abandon(self, request_ids: "list[str] | set[str]") -> int:
        """放弃请求（客户端已断开）

        Returns:
            从队列中移除的数量
        """
        async with self._lock:
            ids = set(request_ids) & self._awaiting
            self._awaiting -= ids
            removed = sum(queue.remove_all(ids) for queue in self.queues.values())
            for request_id in ids:
                self._mapper.forget_request(request_id)
            if ids:
                logger.debug(f"[Pipeline] Abandoned {len(ids)} request(s), {removed} dequeued")
            return removed

    def is_awaiting(self, request_id: str) -> bool:
        return request_id in self._awaiting

    # === Enrichment ===

    async def apply_enrichment(self, event_id: str, summary: TranscriptSummary) -> bool:
        """把 transcript 摘要补到已发出的 feed 事件上

        Returns:
            是否修补成功（事件已不在 feed 中时返回 False）
        """
        async with self._lock:
            return self._patch_locked(event_id, summary)

    def _patch_locked(self, event_id: str, summary: TranscriptSummary) -> bool:
        index = self._feed_index.get(event_id)
        if index is None:
            logger.debug(f"[Pipeline] Enrichment target gone: {event_id}")
            return False
        event = self._feed[index]
        self._feed[index] = replace(event, data={**event.data, "transcript_summary": summary.to_dict()})
        return True

    # === 查询 ===

    @property
    def feed(self) -> list[FeedEvent]:
        """feed 快照（按发出顺序）"""
        return list(self._feed)

    def get_feed_event(self, event_id: str) -> FeedEvent | None:
        index = self._feed_index.get(event_id)
        return self._feed[index] if index is not None else None

    def queue_view(self, kind: QueueKind) -> dict[str, Any]:
        """队首 + 数量"""
        return self.queues[kind].view()

    @property
    def session(self) -> Session | None:
        return self._mapper.session

    @property
    def current_run(self) -> Run | None:
        return self._mapper.current_run

    @property
    def actors(self) -> list[Actor]:
        return self._mapper.get_actors()

    def _append(self, event: FeedEvent) -> None:
        self._feed_index[event.event_id] = len(self._feed)
        self._feed.append(event)

    @staticmethod
    def _find(events: list[FeedEvent], kind: FeedKind) -> FeedEvent | None:
        return next((fe for fe in events if fe.kind == kind), None)
