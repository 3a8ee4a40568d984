"""Wire protocol models for the hook bridge.

One request envelope per connection, one reply envelope back; both are
newline-delimited JSON over a Unix domain socket.

Request:  {v, kind:"hook_event", request_id, ts, session_id, hook_event_name, payload}
Reply:    {v, kind:"hook_result", request_id, ts, payload:{action, stderr?, stdout_json?}}
"""

from typing import Any, Literal

from pydantic import BaseModel, Field, ValidationError

from ..config import PROTOCOL_VERSION
from ..core.ids import now_ms


class EnvelopeError(ValueError):
    """Raised when bytes on the wire are not a valid envelope."""


class HookEventEnvelope(BaseModel):
    """Inbound hook event, sent by the forwarder.

    Attributes:
        v: Protocol version (required, no default).
        kind: Always "hook_event".
        request_id: Correlation id, unique per hook invocation.
        ts: Creation time in epoch ms.
        session_id: Host session id ("unknown" when the host sent none).
        hook_event_name: Host hook name, e.g. "PreToolUse".
        payload: The host's stdin document, unchanged.
    """

    v: int
    kind: Literal["hook_event"] = "hook_event"
    request_id: str = Field(min_length=1)
    ts: int
    session_id: str
    hook_event_name: str = Field(pattern=r"^[A-Za-z][A-Za-z0-9_:]*$")
    payload: dict[str, Any]


class HookResultPayload(BaseModel):
    """What the forwarder should do with the host."""

    action: Literal["passthrough", "block_with_stderr", "json_output"]
    stderr: str | None = None
    stdout_json: dict[str, Any] | None = None


class HookResultEnvelope(BaseModel):
    """Outbound reply, exactly one per request envelope."""

    v: int = PROTOCOL_VERSION
    kind: Literal["hook_result"] = "hook_result"
    request_id: str
    ts: int = Field(default_factory=now_ms)
    payload: HookResultPayload


# ---------------------------------------------------------------------------
# Result payload builders
# ---------------------------------------------------------------------------


def passthrough_result() -> HookResultPayload:
    return HookResultPayload(action="passthrough")


def block_result(message: str) -> HookResultPayload:
    return HookResultPayload(action="block_with_stderr", stderr=message)


def json_result(data: dict[str, Any]) -> HookResultPayload:
    return HookResultPayload(action="json_output", stdout_json=data)


# ---------------------------------------------------------------------------
# Serialization helpers (newline-delimited JSON)
# ---------------------------------------------------------------------------


def serialize_event(envelope: HookEventEnvelope) -> bytes:
    """Serialize a request as newline-terminated JSON bytes."""
    return (envelope.model_dump_json() + "\n").encode("utf-8")


def serialize_result(envelope: HookResultEnvelope) -> bytes:
    """Serialize a reply as newline-terminated JSON bytes."""
    return (envelope.model_dump_json(exclude_none=True) + "\n").encode("utf-8")


def deserialize_event(data: bytes | str) -> HookEventEnvelope:
    """Parse a request envelope from raw bytes.

    Raises:
        EnvelopeError: If *data* is not valid JSON or fails validation.
    """
    try:
        return HookEventEnvelope.model_validate_json(data.strip())
    except (ValidationError, ValueError) as exc:
        raise EnvelopeError(f"invalid hook_event envelope: {exc}") from exc


def deserialize_result(data: bytes | str) -> HookResultEnvelope:
    """Parse a reply envelope from raw bytes.

    Raises:
        EnvelopeError: If *data* is not valid JSON or fails validation.
    """
    try:
        return HookResultEnvelope.model_validate_json(data.strip())
    except (ValidationError, ValueError) as exc:
        raise EnvelopeError(f"invalid hook_result envelope: {exc}") from exc
