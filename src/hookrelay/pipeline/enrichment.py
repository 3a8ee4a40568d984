"""TranscriptEnricher - transcript 异步解析 worker

dispatch 只负责提交任务；worker 在线程中解析文件，
再通过回调把结果交回 HookPipeline（由它在锁内修改 feed）。
结果到达时对应 feed 事件可能已不存在，回调需自行忽略。
"""

import asyncio
from collections.abc import Awaitable, Callable
from dataclasses import dataclass

from ..telemetry import get_logger, metrics
from ..config import METRICS_ENABLED
from .transcript import TranscriptSummary, parse_transcript_file

logger = get_logger(__name__)

# 结果回调类型: (feed_event_id, summary) -> None
EnrichmentCallback = Callable[[str, TranscriptSummary], Awaitable[None]]


@dataclass(frozen=True)
class EnrichmentJob:
    event_id: str  # 需要补充摘要的 feed 事件
    transcript_path: str


class TranscriptEnricher:
    """transcript 解析 worker（单任务串行消费队列）"""

    def __init__(self, parser: Callable[[str], TranscriptSummary] = parse_transcript_file):
        self._parser = parser
        self._queue: asyncio.Queue[EnrichmentJob] = asyncio.Queue()
        self._callback: EnrichmentCallback | None = None
        self._worker: asyncio.Task | None = None

    def set_callback(self, callback: EnrichmentCallback) -> None:
        """设置结果回调"""
        self._callback = callback

    def submit(self, event_id: str, transcript_path: str) -> None:
        """提交任务（不阻塞）"""
        self._queue.put_nowait(EnrichmentJob(event_id, transcript_path))
        self._ensure_worker()

    async def join(self) -> None:
        """等待所有已提交任务完成（用于测试与关闭）"""
        await self._queue.join()

    async def stop(self) -> None:
        """停止 worker"""
        if self._worker and not self._worker.done():
            self._worker.cancel()
            try:
                await self._worker
            except asyncio.CancelledError:
                pass
        self._worker = None

    @property
    def pending(self) -> int:
        return self._queue.qsize()

    def _ensure_worker(self) -> None:
        if self._worker is None or self._worker.done():
            self._worker = asyncio.create_task(self._run())

    async def _run(self) -> None:
        while True:
            job = await self._queue.get()
            try:
                summary = await asyncio.to_thread(self._parser, job.transcript_path)
                if self._callback:
                    await self._callback(job.event_id, summary)
            except Exception as e:
                logger.error(f"[Enricher] Job for {job.event_id} failed: {e}")
                if METRICS_ENABLED:
                    metrics.inc("enrichment.errors")
            finally:
                self._queue.task_done()
