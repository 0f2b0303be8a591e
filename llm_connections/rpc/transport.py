"""Single-request HTTP transport returning raw status and text."""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from typing import Any

import requests

from llm_connections.rpc.auth import RpcAuth
from llm_connections.rpc.errors import TransportError
from llm_connections.shared.settings import DEFAULT_TIMEOUT_S

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class RawResponse:
    status: int
    text: str
    headers: dict[str, str] = field(default_factory=dict)

    @property
    def ok(self) -> bool:
        return 200 <= self.status < 300


class HttpTransport:
    def __init__(
        self,
        base_url: str,
        auth: RpcAuth | None = None,
        session: requests.Session | None = None,
        timeout_s: float = DEFAULT_TIMEOUT_S,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self.auth = auth or RpcAuth(bearer_token=None, session_cookie=None)
        self.session = session or requests.Session()
        self.timeout_s = timeout_s

    async def send(
        self,
        method: str,
        path: str,
        headers: dict[str, str] | None = None,
        json: Any = None,
        data: str | bytes | None = None,
        params: dict[str, str] | None = None,
        timeout_s: float | None = None,
    ) -> RawResponse:
        """Issue one request; non-2xx responses are returned, not raised.

        Only a missing response (timeout, refused connection, DNS failure)
        raises ``TransportError``. Cancelling the awaiting task propagates
        ``asyncio.CancelledError`` to the caller.
        """
        url = f"{self.base_url}{path}"
        merged_headers = {**self.auth.headers(), **(headers or {})}
        request_kwargs: dict[str, Any] = {
            "method": method,
            "url": url,
            "headers": merged_headers,
            "params": params,
            "timeout": timeout_s if timeout_s is not None else self.timeout_s,
        }
        if json is not None:
            request_kwargs["json"] = json
        elif data is not None:
            request_kwargs["data"] = data

        try:
            response = await asyncio.to_thread(self.session.request, **request_kwargs)
        except requests.RequestException as exc:
            logger.debug("%s %s -> no response (%s)", method, path, exc)
            raise TransportError(f"{method} {url} failed: {exc}", url=url) from exc

        logger.debug("%s %s -> %s", method, path, response.status_code)
        return RawResponse(
            status=int(response.status_code),
            text=response.text or "",
            headers=dict(response.headers or {}),
        )
