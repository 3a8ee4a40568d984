"""Hook forwarder - bridge client 端

由 host 为每个 hook 调用一次：

    stdin(JSON) → envelope → unix socket → 一行回复 → exit code / stdout / stderr

任何失败（socket 不存在、拒绝连接、超时、回复损坏、内部异常）都降级为
passthrough：exit 0，无输出。host 绝不能因为 UI 缓慢或缺席而被阻塞。

退出码：
| action              | exit | 输出                |
|---------------------|------|---------------------|
| passthrough         | 0    | 无                  |
| json_output         | 0    | stdout: JSON        |
| block_with_stderr   | 2    | stderr: 文本        |
"""

import asyncio
import json
import os
import sys
from collections.abc import Mapping
from dataclasses import dataclass
from pathlib import Path
from typing import Any

from pydantic import ValidationError

from ..config import (
    DECISION_GRACE_SECONDS,
    DEFAULT_BLOCK_MESSAGE,
    EXIT_BLOCK,
    EXIT_OK,
    FORWARDER_TIMEOUT_SECONDS,
    INSTANCE_ID_ENV,
    PROJECT_DIR_ENV,
    PROTOCOL_VERSION,
)
from ..core.ids import generate_request_id, now_ms, socket_path
from ..telemetry import get_logger
from .envelope import (
    EnvelopeError,
    HookEventEnvelope,
    HookResultEnvelope,
    deserialize_result,
    serialize_event,
)
from .runtime import get_interaction_hints

logger = get_logger(__name__)


@dataclass(frozen=True)
class ForwarderOutcome:
    """forwarder 的最终输出"""

    exit_code: int = EXIT_OK
    stdout: str = ""
    stderr: str = ""


PASSTHROUGH = ForwarderOutcome()


def build_envelope(payload: dict[str, Any]) -> HookEventEnvelope | None:
    """把 host 的 stdin 文档包装为 envelope

    Returns:
        envelope；缺少 hook 名时返回 None
    """
    hook_name = payload.get("hook_event_name")
    if not isinstance(hook_name, str) or not hook_name:
        return None
    session_id = payload.get("session_id")
    ts = now_ms()
    try:
        return HookEventEnvelope(
            v=PROTOCOL_VERSION,
            request_id=generate_request_id(ts),
            ts=ts,
            session_id=session_id if isinstance(session_id, str) else "unknown",
            hook_event_name=hook_name,
            payload=payload,
        )
    except ValidationError:
        logger.debug(f"[Forwarder] Unusable hook name {hook_name!r}, passthrough")
        return None


def reply_timeout(hook_event_name: str) -> float:
    """等待回复的上限（秒）

    需要决策的 hook 等待 server 端超时再加宽限，其余使用短超时。
    """
    hints = get_interaction_hints(hook_event_name)
    if hints.expects_decision:
        return hints.default_timeout + DECISION_GRACE_SECONDS
    return FORWARDER_TIMEOUT_SECONDS


def resolve_socket_path(payload: dict[str, Any], env: Mapping[str, str]) -> Path:
    """socket 路径：payload.cwd → $CLAUDE_PROJECT_DIR → 进程 cwd"""
    cwd = payload.get("cwd")
    if isinstance(cwd, str) and cwd:
        project_dir = Path(cwd)
    elif env.get(PROJECT_DIR_ENV):
        project_dir = Path(env[PROJECT_DIR_ENV])
    else:
        project_dir = Path.cwd()
    return socket_path(project_dir, env.get(INSTANCE_ID_ENV, ""))


async def send_envelope(
    path: str | Path, envelope: HookEventEnvelope, timeout: float
) -> HookResultEnvelope | None:
    """发送 envelope 并等待一行回复

    Returns:
        回复；任何失败返回 None
    """
    writer: asyncio.StreamWriter | None = None
    try:
        async with asyncio.timeout(timeout):
            reader, writer = await asyncio.open_unix_connection(str(path))
            writer.write(serialize_event(envelope))
            await writer.drain()
            line = await reader.readline()
        if not line:
            logger.debug("[Forwarder] Connection closed without reply")
            return None
        reply = deserialize_result(line)
        if reply.request_id != envelope.request_id:
            logger.debug("[Forwarder] Reply for a different request, ignoring")
            return None
        return reply
    except TimeoutError:
        logger.debug(f"[Forwarder] No reply within {timeout}s")
    except (OSError, ValueError, EnvelopeError) as e:
        logger.debug(f"[Forwarder] Transport failure: {e}")
    finally:
        if writer is not None:
            writer.close()
    return None


def outcome_from_reply(reply: HookResultEnvelope | None) -> ForwarderOutcome:
    """回复 → 退出码与输出"""
    if reply is None:
        return PASSTHROUGH
    payload = reply.payload
    if payload.action == "block_with_stderr":
        return ForwarderOutcome(exit_code=EXIT_BLOCK, stderr=payload.stderr or DEFAULT_BLOCK_MESSAGE)
    if payload.action == "json_output":
        return ForwarderOutcome(stdout=json.dumps(payload.stdout_json or {}))
    return PASSTHROUGH


async def run_forwarder(
    stdin_text: str,
    env: Mapping[str, str] | None = None,
    path: str | Path | None = None,
    timeout: float | None = None,
) -> ForwarderOutcome:
    """执行一次转发

    Args:
        stdin_text: host 写入 stdin 的完整文档
        env: 环境变量（默认 os.environ）
        path: socket 路径（默认按项目目录推导）
        timeout: 等待回复上限（默认按 hook 类型）

    Returns:
        ForwarderOutcome
    """
    if env is None:
        env = os.environ

    if not stdin_text.strip():
        return PASSTHROUGH
    try:
        payload = json.loads(stdin_text)
    except json.JSONDecodeError:
        logger.debug("[Forwarder] stdin is not JSON, passthrough")
        return PASSTHROUGH
    if not isinstance(payload, dict):
        return PASSTHROUGH

    envelope = build_envelope(payload)
    if envelope is None:
        return PASSTHROUGH

    if path is None:
        path = resolve_socket_path(payload, env)
    if timeout is None:
        timeout = reply_timeout(envelope.hook_event_name)

    reply = await send_envelope(path, envelope, timeout)
    return outcome_from_reply(reply)


def main() -> None:
    """console script 入口（hookrelay-forward）"""
    try:
        stdin_text = sys.stdin.read()
        outcome = asyncio.run(run_forwarder(stdin_text))
    except Exception as e:
        logger.debug(f"[Forwarder] Internal failure, passthrough: {e}")
        outcome = PASSTHROUGH

    if outcome.stdout:
        sys.stdout.write(outcome.stdout)
        sys.stdout.flush()
    if outcome.stderr:
        sys.stderr.write(outcome.stderr)
        sys.stderr.flush()
    sys.exit(outcome.exit_code)


if __name__ == "__main__":
    main()
