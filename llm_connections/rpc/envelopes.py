"""Wire envelope formats for procedure calls and their response decoding.

Backends in the wild accept one of three request shapes for the same
procedure call:

* ``DIRECT`` (A): ``{"json": {"input": payload}}`` posted to the procedure route.
* ``BATCH`` (B): a one-element array carrying an id, the method kind and
  ``params.input``, posted to the procedure route with ``?batch=1``.
* ``LEGACY`` (C): ``{"json": {"method": ..., "params": {"path": ..., "input": ...}}}``
  posted to the procedure route.

Decoding is total: it never raises and always yields a ``DecodedOutcome``.
Interpreting the HTTP status is left to the invoker.
"""

from __future__ import annotations

import json
import re
from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable

QUERY_PROCEDURE_RE = re.compile(r"(?:^|\.)(all|get|getAll|list)$")

SUCCESS_PATHS: tuple[tuple[str, ...], ...] = (
    ("result", "data", "json"),
    ("result", "data"),
    ("json",),
)
ERROR_PATHS: tuple[tuple[str, ...], ...] = (
    ("error", "json", "message"),
    ("error", "message"),
    ("message",),
)

_MISSING = object()


class EnvelopeFormat(str, Enum):
    DIRECT = "A"
    BATCH = "B"
    LEGACY = "C"


@dataclass(frozen=True)
class EncodedRequest:
    envelope: EnvelopeFormat
    path: str
    params: dict[str, str] | None
    body: Any


@dataclass(frozen=True)
class DecodedOutcome:
    ok: bool
    value: Any = None
    message: str = ""
    structured: bool = False


def procedure_method(procedure: str) -> str:
    """Return ``"query"`` for read procedures and ``"mutation"`` for the rest."""

    return "query" if QUERY_PROCEDURE_RE.search(procedure.strip()) else "mutation"


def _encode_direct(procedure: str, payload: Any, method: str) -> tuple[dict[str, str] | None, Any]:
    return None, {"json": {"input": payload}}


def _encode_batch(procedure: str, payload: Any, method: str) -> tuple[dict[str, str] | None, Any]:
    return {"batch": "1"}, [{"id": 1, "json": {"method": method, "params": {"input": payload}}}]


def _encode_legacy(procedure: str, payload: Any, method: str) -> tuple[dict[str, str] | None, Any]:
    return None, {"json": {"method": method, "params": {"path": procedure, "input": payload}}}


_ENCODERS: dict[EnvelopeFormat, Callable[[str, Any, str], tuple[dict[str, str] | None, Any]]] = {
    EnvelopeFormat.DIRECT: _encode_direct,
    EnvelopeFormat.BATCH: _encode_batch,
    EnvelopeFormat.LEGACY: _encode_legacy,
}


def encode_request(
    envelope: EnvelopeFormat,
    procedure: str,
    payload: Any,
    method: str | None = None,
    rpc_path: str = "/rpc",
) -> EncodedRequest:
    resolved_method = method or procedure_method(procedure)
    params, body = _ENCODERS[envelope](procedure, payload, resolved_method)
    return EncodedRequest(
        envelope=envelope,
        path=f"{rpc_path.rstrip('/')}/{procedure}",
        params=params,
        body=body,
    )


def decode_response(envelope: EnvelopeFormat, text: str) -> DecodedOutcome:
    raw = text or ""
    if not raw.strip():
        return DecodedOutcome(ok=False, message="empty response")
    try:
        parsed = json.loads(raw)
    except (ValueError, RecursionError):
        return DecodedOutcome(ok=False, message=raw)

    if envelope is EnvelopeFormat.BATCH and isinstance(parsed, list):
        # One element per batched call; only one call is ever sent.
        if not parsed:
            return DecodedOutcome(ok=False, message=raw)
        parsed = parsed[0]

    if not isinstance(parsed, dict):
        return DecodedOutcome(ok=False, message=raw)

    for path in SUCCESS_PATHS:
        value = _dig(parsed, path)
        if value is not _MISSING:
            return DecodedOutcome(ok=True, value=value)

    for path in ERROR_PATHS:
        message = _dig(parsed, path)
        if isinstance(message, str) and message.strip():
            return DecodedOutcome(ok=False, message=message, structured=True)

    return DecodedOutcome(ok=False, message=raw)


def _dig(payload: Any, path: tuple[str, ...]) -> Any:
    current = payload
    for key in path:
        if not isinstance(current, dict) or key not in current:
            return _MISSING
        current = current[key]
    return current
