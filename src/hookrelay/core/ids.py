"""Identifier and path utilities

Every id in the pipeline is a plain string with a fixed shape so that feed
consumers can sort, group and correlate without extra lookups:

- request id:  <epoch_ms>-<7 base36 chars>   (one per hook invocation)
- run id:      <session_id>:R<n>             (n monotonic per mapper)
- event id:    <run_id>:E<seq>               (seq reset per run)
- actor id:    user | agent:root | system | subagent:<agent_id>
"""

import os
import secrets
import string
import time
from pathlib import Path

from ..config import INSTANCE_ID_ENV, PROJECT_DIR_ENV, SOCKET_DIR, SOCKET_NAME

_BASE36 = string.digits + string.ascii_lowercase

USER_ACTOR_ID = "user"
ROOT_ACTOR_ID = "agent:root"
SYSTEM_ACTOR_ID = "system"


def now_ms() -> int:
    """Current wall-clock time in epoch milliseconds."""
    return int(time.time() * 1000)


def generate_request_id(ts: int | None = None) -> str:
    """Create a fresh hook request id.

    Args:
        ts: Timestamp in epoch ms (defaults to now)

    Returns:
        Id like "1718000000000-k3j9x0a"
    """
    if ts is None:
        ts = now_ms()
    suffix = "".join(secrets.choice(_BASE36) for _ in range(7))
    return f"{ts}-{suffix}"


def make_run_id(session_id: str, run_number: int) -> str:
    """Create a run id scoped to a session."""
    return f"{session_id}:R{run_number}"


def make_event_id(run_id: str, seq: int) -> str:
    """Create a feed event id scoped to a run."""
    return f"{run_id}:E{seq}"


def subagent_actor_id(agent_id: str) -> str:
    """Actor id for a subagent spawned by the root agent."""
    return f"subagent:{agent_id}"


def short_id(request_id: str, length: int = 8) -> str:
    """Get a short display version of an id for logging.

    Request ids start with a millisecond timestamp whose leading digits are
    shared by every request, so the random suffix is kept instead.

    Args:
        request_id: The id to shorten
        length: Maximum length (default 8)

    Returns:
        Shortened id for display in logs
    """
    pure_id = request_id.rsplit("-", 1)[-1] if "-" in request_id else request_id
    return pure_id[:length]


def resolve_project_dir(cwd: str | None = None) -> Path:
    """Resolve the project directory the socket lives under.

    Order: explicit cwd (from the hook payload), $CLAUDE_PROJECT_DIR, then
    the process working directory.
    """
    if cwd:
        return Path(cwd)
    env_dir = os.environ.get(PROJECT_DIR_ENV)
    if env_dir:
        return Path(env_dir)
    return Path.cwd()


def socket_path(project_dir: str | Path, instance_id: str | None = None) -> Path:
    """Derive the bridge socket path for a project.

    Args:
        project_dir: Project root directory
        instance_id: Optional instance discriminator; falls back to
            $HOOKRELAY_INSTANCE_ID

    Returns:
        <project_dir>/.claude/run/hookrelay[-<instance>].sock
    """
    if instance_id is None:
        instance_id = os.environ.get(INSTANCE_ID_ENV) or None
    name = f"{SOCKET_NAME}-{instance_id}.sock" if instance_id else f"{SOCKET_NAME}.sock"
    return Path(project_dir) / SOCKET_DIR / name
