"""Read-only lookup of a connection's masked secret, bypassing negotiation."""

from __future__ import annotations

import json
import logging
from typing import Any

from llm_connections.rpc.errors import ConfigurationError, ProtocolError
from llm_connections.rpc.invoker import project_headers
from llm_connections.rpc.transport import HttpTransport
from llm_connections.shared.settings import DEFAULT_RPC_PATH

logger = logging.getLogger(__name__)

LIST_PROCEDURE = "llmApiKey.all"
MASKED_FIELDS = ("displaySecretKey", "maskedKey", "obfuscatedKey", "secretKeyMasked", "secretKey")
MATCH_FIELDS = ("provider", "name", "id")


async def fetch_masked_key(
    transport: HttpTransport,
    *,
    project_id: str,
    provider: str,
    rpc_path: str = DEFAULT_RPC_PATH,
    procedure: str = LIST_PROCEDURE,
) -> str | None:
    """Return the masked secret of the connection matching ``provider``.

    The match is case-insensitive against ``provider``, ``name`` or ``id``.
    ``None`` means no connection matched or it carries no masked field.
    """
    pid = (project_id or "").strip()
    if not pid:
        raise ConfigurationError("projectId is required", field="projectId")
    wanted = _norm(provider)
    if not wanted:
        raise ConfigurationError("provider is required", field="provider")

    response = await transport.send(
        "GET",
        f"{rpc_path.rstrip('/')}/{procedure}",
        headers={"accept": "application/json", **project_headers(pid)},
        params={"input": json.dumps({"json": {"projectId": pid}}, separators=(",", ":"))},
    )
    if not response.ok:
        raise ProtocolError(
            f"RPC {procedure} failed: HTTP {response.status}\n{response.text}",
            status=response.status,
            procedure=procedure,
        )
    try:
        parsed = json.loads(response.text)
    except (ValueError, RecursionError) as exc:
        raise ProtocolError(
            f"RPC {procedure} returned a non-JSON body",
            status=response.status,
            procedure=procedure,
        ) from exc

    items = _items(parsed)
    for item in items:
        if not isinstance(item, dict):
            continue
        if wanted in {_norm(item.get(field)) for field in MATCH_FIELDS}:
            return _first_masked(item)
    logger.debug("no connection matched %r among %d item(s)", provider, len(items))
    return None


def _items(parsed: Any) -> list[Any]:
    try:
        items = parsed["result"]["data"]["json"]["data"]
    except (KeyError, TypeError):
        return []
    return items if isinstance(items, list) else []


def _first_masked(item: dict[str, Any]) -> str | None:
    for field in MASKED_FIELDS:
        value = item.get(field)
        if value is not None:
            return str(value)
    return None


def _norm(value: Any) -> str:
    return str(value if value is not None else "").strip().lower()
