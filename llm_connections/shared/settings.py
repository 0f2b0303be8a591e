"""Shared runtime settings for the connection client."""

from __future__ import annotations

import os
from dataclasses import dataclass

DEFAULT_BASE_URL = "http://localhost:3000"
DEFAULT_RPC_PATH = "/rpc"
DEFAULT_TIMEOUT_S = 30.0

_TRUTHY = {"1", "true", "yes", "on"}


@dataclass(frozen=True)
class ClientSettings:
    """Backend location, deadline, and project scoping policy."""

    base_url: str
    rpc_path: str
    timeout_s: float
    default_project_id: str | None
    allow_default_project: bool
    log_level: str

    @classmethod
    def from_env(cls, env: dict[str, str] | None = None) -> "ClientSettings":
        source = os.environ if env is None else env
        base_url = (source.get("LLM_CONNECTIONS_BASE_URL") or DEFAULT_BASE_URL).strip()
        rpc_path = (source.get("LLM_CONNECTIONS_RPC_PATH") or DEFAULT_RPC_PATH).strip()
        default_project_id = (source.get("LLM_CONNECTIONS_DEFAULT_PROJECT_ID") or "").strip()
        allow_default_project = (
            (source.get("LLM_CONNECTIONS_ALLOW_DEFAULT_PROJECT") or "").strip().lower() in _TRUTHY
        )
        log_level = (source.get("LLM_CONNECTIONS_LOG_LEVEL") or "WARNING").strip().upper()
        return cls(
            base_url=base_url.rstrip("/"),
            rpc_path="/" + rpc_path.strip("/") if rpc_path.strip("/") else "",
            timeout_s=_parse_timeout(source.get("LLM_CONNECTIONS_TIMEOUT_S")),
            default_project_id=default_project_id or None,
            allow_default_project=allow_default_project,
            log_level=log_level or "WARNING",
        )

    def fallback_project_id(self) -> str | None:
        """Project id used when a caller passes none; only when explicitly enabled."""

        if not self.allow_default_project:
            return None
        return self.default_project_id


def _parse_timeout(value: str | None) -> float:
    if not value:
        return DEFAULT_TIMEOUT_S
    try:
        parsed = float(value)
    except ValueError:
        return DEFAULT_TIMEOUT_S
    return parsed if parsed > 0 else DEFAULT_TIMEOUT_S


def get_client_settings(env: dict[str, str] | None = None) -> ClientSettings:
    """Build client settings from environment variables."""

    return ClientSettings.from_env(env)
