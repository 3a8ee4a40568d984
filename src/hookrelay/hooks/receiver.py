"""Unix socket Hook 接收器 - bridge server 端

每个连接：读取一行 envelope → 校验 → 交给 HookPipeline → 写回一行回复。

- 非法 envelope / 重复 request_id：直接关闭连接，不回复
- 每个请求按 InteractionHints 启动超时任务，超时后以 passthrough 回复
- 客户端先断开：请求被放弃，并从 Permission / Question 队列中移除
- 回复只写一次；之后到达的决策由 send_result 返回 False
"""

import asyncio
import contextlib
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import TYPE_CHECKING

from ..config import MAX_ENVELOPE_BYTES, METRICS_ENABLED, SOCKET_MODE
from ..core.ids import short_id
from ..telemetry import get_logger, metrics
from .decisions import DecisionSource, RuntimeDecision
from .envelope import (
    EnvelopeError,
    HookResultEnvelope,
    HookResultPayload,
    deserialize_event,
    passthrough_result,
    serialize_result,
)
from .runtime import RuntimeEvent

if TYPE_CHECKING:
    from ..pipeline.dispatcher import HookPipeline

logger = get_logger(__name__)


@dataclass
class PendingRequest:
    """等待回复的请求"""

    request_id: str
    hook_name: str
    writer: asyncio.StreamWriter
    done: asyncio.Event = field(default_factory=asyncio.Event)
    timer: asyncio.Task | None = None


class HookReceiver:
    """Unix socket Hook 接收器

    实现 ResultTransport，供 HookPipeline 回复请求。
    """

    def __init__(
        self,
        pipeline: "HookPipeline",
        socket_path: str | Path,
        max_envelope_bytes: int = MAX_ENVELOPE_BYTES,
    ):
        self.pipeline = pipeline
        self.socket_path = Path(socket_path)
        self._max_envelope_bytes = max_envelope_bytes
        self._server: asyncio.AbstractServer | None = None
        self._pending: dict[str, PendingRequest] = {}
        pipeline.attach_transport(self)

    # === 生命周期 ===

    async def start(self) -> None:
        """开始监听（清理残留 socket，权限 0600）"""
        self.socket_path.parent.mkdir(parents=True, exist_ok=True)
        if self.socket_path.exists() or self.socket_path.is_symlink():
            logger.info(f"[Receiver] Removing stale socket: {self.socket_path}")
            self.socket_path.unlink()

        self._server = await asyncio.start_unix_server(
            self._handle_connection,
            path=str(self.socket_path),
            limit=self._max_envelope_bytes + 1,
        )
        os.chmod(self.socket_path, SOCKET_MODE)
        logger.info(f"[Receiver] Listening on {self.socket_path}")

    async def stop(self) -> None:
        """停止监听；所有等待中的请求以 passthrough 回复"""
        for request_id in list(self._pending):
            self.send_result(request_id, passthrough_result())

        if self._server is not None:
            self._server.close()
            await self._server.wait_closed()
            self._server = None

        with contextlib.suppress(FileNotFoundError):
            self.socket_path.unlink()
        logger.info("[Receiver] Stopped")

    @property
    def is_running(self) -> bool:
        return self._server is not None

    @property
    def pending_count(self) -> int:
        return len(self._pending)

    def is_pending(self, request_id: str) -> bool:
        return request_id in self._pending

    # === 回复 ===

    def send_result(self, request_id: str, payload: HookResultPayload) -> bool:
        """写回复（每个请求只写一次）

        Args:
            request_id: 请求标识
            payload: 回复内容

        Returns:
            是否写出；请求已回复 / 超时 / 断开时返回 False
        """
        pending = self._pending.pop(request_id, None)
        if pending is None:
            if METRICS_ENABLED:
                metrics.inc("receiver.late_decisions")
            return False

        self._update_pending_gauge()
        if pending.timer is not None and pending.timer is not asyncio.current_task():
            pending.timer.cancel()

        try:
            if pending.writer.is_closing():
                return False
            envelope = HookResultEnvelope(request_id=request_id, payload=payload)
            pending.writer.write(serialize_result(envelope))
            logger.debug(f"[Receiver:{short_id(request_id)}] Replied {payload.action}")
            return True
        finally:
            pending.done.set()

    # === 连接处理 ===

    async def _handle_connection(
        self, reader: asyncio.StreamReader, writer: asyncio.StreamWriter
    ) -> None:
        try:
            event = await self._read_event(reader)
            if event is None:
                return

            pending = PendingRequest(event.id, event.hook_name, writer)
            self._pending[event.id] = pending
            self._update_pending_gauge()
            pending.timer = asyncio.create_task(
                self._timeout_after(event.id, event.hints.default_timeout)
            )
            if METRICS_ENABLED:
                metrics.inc("receiver.requests_total", {"hook": event.hook_name})

            try:
                await self.pipeline.dispatch(event)
            except Exception as e:
                # 超时任务仍会回复
                logger.error(f"[Receiver:{short_id(event.id)}] Dispatch failed: {e}")
                if METRICS_ENABLED:
                    metrics.inc("receiver.dispatch_errors")

            await self._wait_reply_or_disconnect(pending, reader)
            if pending.done.is_set():
                with contextlib.suppress(ConnectionError):
                    await writer.drain()
        finally:
            writer.close()
            with contextlib.suppress(ConnectionError):
                await writer.wait_closed()

    async def _read_event(self, reader: asyncio.StreamReader) -> RuntimeEvent | None:
        """读取并校验一行 envelope，失败返回 None"""
        try:
            line = await reader.readline()
        except (ValueError, asyncio.LimitOverrunError):
            self._reject("oversized", "Envelope exceeds size limit")
            return None
        except ConnectionError:
            return None

        if not line.strip():
            return None

        try:
            envelope = deserialize_event(line)
        except EnvelopeError as e:
            self._reject("invalid", str(e).splitlines()[0])
            return None

        if envelope.request_id in self._pending:
            self._reject("duplicate", f"Duplicate request id {short_id(envelope.request_id)}")
            return None

        return RuntimeEvent.from_envelope(envelope)

    async def _wait_reply_or_disconnect(
        self, pending: PendingRequest, reader: asyncio.StreamReader
    ) -> None:
        """等待回复写出，或客户端断开（此时放弃请求）"""
        reply = asyncio.create_task(pending.done.wait())
        disconnect = asyncio.create_task(self._wait_eof(reader))
        try:
            await asyncio.wait({reply, disconnect}, return_when=asyncio.FIRST_COMPLETED)
        finally:
            for task in (reply, disconnect):
                task.cancel()

        if pending.done.is_set():
            return

        # 客户端断开：请求不再需要回复
        self._pending.pop(pending.request_id, None)
        self._update_pending_gauge()
        if pending.timer is not None:
            pending.timer.cancel()
        pending.done.set()
        logger.debug(f"[Receiver:{short_id(pending.request_id)}] Client disconnected before reply")
        if METRICS_ENABLED:
            metrics.inc("receiver.abandoned")
        await self.pipeline.abandon([pending.request_id])

    @staticmethod
    async def _wait_eof(reader: asyncio.StreamReader) -> None:
        try:
            while await reader.read(4096):
                pass
        except ConnectionError:
            pass

    async def _timeout_after(self, request_id: str, seconds: float) -> None:
        """超时后以 passthrough 回复"""
        await asyncio.sleep(seconds)
        pending = self._pending.get(request_id)
        if pending is None:
            return

        if METRICS_ENABLED:
            metrics.inc("receiver.timeouts", {"hook": pending.hook_name})
        logger.debug(f"[Receiver:{short_id(request_id)}] Timed out after {seconds}s, passthrough")

        accepted = await self.pipeline.respond(
            request_id, RuntimeDecision.passthrough(DecisionSource.TIMEOUT)
        )
        if not accepted and request_id in self._pending:
            # pipeline 不认识该请求（例如 dispatch 失败），直接放行
            self.send_result(request_id, passthrough_result())

    def _reject(self, reason: str, detail: str) -> None:
        logger.warning(f"[Receiver] Rejected envelope ({reason}): {detail}")
        if METRICS_ENABLED:
            metrics.inc("receiver.rejected", {"reason": reason})

    def _update_pending_gauge(self) -> None:
        if METRICS_ENABLED:
            metrics.gauge("receiver.pending", len(self._pending))
