"""Credential loading for RPC requests with safe, redacted display."""

from __future__ import annotations

import os
from dataclasses import dataclass
from typing import Any

SECRET_FIELDS = {"secretKey", "apiKey", "api_key", "authorization", "cookie"}
# every value under these keys is treated as a secret
HEADER_FIELDS = {"extraHeaders", "extra_headers"}


@dataclass(frozen=True)
class RpcAuth:
    bearer_token: str | None
    session_cookie: str | None

    def headers(self) -> dict[str, str]:
        headers: dict[str, str] = {}
        if self.bearer_token:
            headers["Authorization"] = f"Bearer {self.bearer_token}"
        if self.session_cookie:
            headers["Cookie"] = self.session_cookie
        return headers

    def redacted(self) -> dict[str, str]:
        return {
            "bearer_token": redact_secret(self.bearer_token),
            "session_cookie": redact_secret(self.session_cookie),
        }


def load_rpc_auth_from_env(env: dict[str, str] | None = None) -> RpcAuth:
    env_map = os.environ if env is None else env
    return RpcAuth(
        bearer_token=_clean(env_map.get("LLM_CONNECTIONS_TOKEN")),
        session_cookie=_clean(env_map.get("LLM_CONNECTIONS_SESSION_COOKIE")),
    )


def redact_secret(value: str | None) -> str:
    if value is None:
        return "unset"
    if len(value) <= 8:
        return "***"
    return f"{value[:4]}...{value[-4:]}"


def redact_mapping(values: Any) -> Any:
    """Copy of a JSON-like value with secret-bearing keys masked, for logging."""

    if isinstance(values, dict):
        masked: dict[str, Any] = {}
        for key, value in values.items():
            if key in HEADER_FIELDS and isinstance(value, dict):
                masked[key] = {
                    name: redact_secret(str(item)) if item is not None else None
                    for name, item in value.items()
                }
            elif str(key).lower() in {field.lower() for field in SECRET_FIELDS}:
                masked[key] = redact_secret(str(value)) if value is not None else None
            else:
                masked[key] = redact_mapping(value)
        return masked
    if isinstance(values, list):
        return [redact_mapping(item) for item in values]
    return values


def _clean(token: str | None) -> str | None:
    if token is None:
        return None
    value = token.strip()
    return value or None
