"""Error taxonomy shared by the transport, invoker, and connection client."""

from __future__ import annotations

from dataclasses import asdict, dataclass
from typing import Any


class ConnectionClientError(RuntimeError):
    """Base class for every error raised by this package."""

    kind = "client"

    def as_dict(self) -> dict[str, Any]:
        return {"error": str(self), "kind": self.kind}


class ConfigurationError(ConnectionClientError, ValueError):
    """Required input missing; raised before any network call."""

    kind = "configuration"

    def __init__(self, message: str, *, field: str) -> None:
        super().__init__(message)
        self.field = field

    def as_dict(self) -> dict[str, Any]:
        return {"error": str(self), "kind": self.kind, "field": self.field}


class TransportError(ConnectionClientError):
    """No response was obtained (timeout or connectivity)."""

    kind = "transport"

    def __init__(self, message: str, *, url: str) -> None:
        super().__init__(message)
        self.url = url


class ProtocolError(ConnectionClientError):
    """A response was obtained but decoded as an application failure."""

    kind = "protocol"

    def __init__(self, message: str, *, status: int | None, procedure: str) -> None:
        super().__init__(message)
        self.status = status
        self.procedure = procedure

    def as_dict(self) -> dict[str, Any]:
        return {
            "error": str(self),
            "kind": self.kind,
            "status": self.status,
            "procedure": self.procedure,
        }


@dataclass(frozen=True)
class AttemptRecord:
    """Outcome of one envelope format attempt that did not succeed."""

    envelope: str
    status: int | None
    message: str
    error_kind: str
    structured: bool = False


class ExhaustionError(ProtocolError):
    """Every envelope format was tried and none produced a success."""

    kind = "exhausted"

    def __init__(
        self,
        *,
        procedure: str,
        status: int | None,
        detail: str,
        attempts: list[AttemptRecord],
    ) -> None:
        status_text = status if status is not None else "no response"
        super().__init__(
            f"RPC {procedure} failed: HTTP {status_text}\n{detail}",
            status=status,
            procedure=procedure,
        )
        self.detail = detail
        self.attempts = attempts

    def as_dict(self) -> dict[str, Any]:
        payload = super().as_dict()
        payload["detail"] = self.detail
        payload["attempts"] = [asdict(attempt) for attempt in self.attempts]
        return payload


class UpsertCompoundError(ConnectionClientError):
    """Both the create and the fallback update of an upsert failed."""

    kind = "upsert"

    def __init__(self, create_error: Exception, update_error: Exception) -> None:
        super().__init__(
            "connection upsert failed:\n"
            f"Create: {create_error}\n"
            f"Update: {update_error}"
        )
        self.create_error = create_error
        self.update_error = update_error

    def as_dict(self) -> dict[str, Any]:
        return {
            "error": str(self),
            "kind": self.kind,
            "create": str(self.create_error),
            "update": str(self.update_error),
        }
