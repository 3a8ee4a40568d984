"""Pytest 配置"""

import itertools
import shutil
import tempfile
from pathlib import Path

import pytest

from hookrelay.config import PROTOCOL_VERSION
from hookrelay.hooks.envelope import HookEventEnvelope, HookResultPayload
from hookrelay.hooks.runtime import RuntimeEvent
from hookrelay.telemetry import metrics

_counter = itertools.count(1)


@pytest.fixture
def anyio_backend():
    """指定 anyio 只使用 asyncio backend"""
    return "asyncio"


@pytest.fixture(autouse=True)
def reset_metrics():
    """每次测试前重置指标"""
    metrics.reset()
    yield
    metrics.reset()


@pytest.fixture
def socket_dir():
    """短路径临时目录（unix socket 路径长度有限制）"""
    path = Path(tempfile.mkdtemp(prefix="hr", dir="/tmp"))
    yield path
    shutil.rmtree(path, ignore_errors=True)


class FakeTransport:
    """记录回复的 ResultTransport"""

    def __init__(self, accept: bool = True):
        self.accept = accept
        self.sent: dict[str, HookResultPayload] = {}

    def send_result(self, request_id: str, payload: HookResultPayload) -> bool:
        if not self.accept:
            return False
        self.sent[request_id] = payload
        return True


@pytest.fixture
def transport():
    return FakeTransport()


def make_envelope(
    hook_name: str,
    request_id: str | None = None,
    session_id: str = "sess-1",
    ts: int | None = None,
    **payload,
) -> HookEventEnvelope:
    """构造测试用 envelope（payload 字段通过关键字参数传入）"""
    n = next(_counter)
    return HookEventEnvelope(
        v=PROTOCOL_VERSION,
        request_id=request_id or f"1700000000000-req{n:04d}",
        ts=ts if ts is not None else 1_700_000_000_000 + n,
        session_id=session_id,
        hook_event_name=hook_name,
        payload={"session_id": session_id, "hook_event_name": hook_name, **payload},
    )


def make_event(hook_name: str, request_id: str | None = None, session_id: str = "sess-1", **payload) -> RuntimeEvent:
    """构造测试用 RuntimeEvent"""
    return RuntimeEvent.from_envelope(make_envelope(hook_name, request_id, session_id, **payload))
