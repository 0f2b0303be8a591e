"""Caller input normalization: historical field names collapse to canonical keys."""

from __future__ import annotations

import logging
from collections.abc import Mapping
from typing import Any

from llm_connections.connections.contracts import DEFAULT_ADAPTER, KNOWN_ADAPTERS, ConnectionInput
from llm_connections.rpc.errors import ConfigurationError

logger = logging.getLogger(__name__)

# canonical key -> accepted aliases, first present alias wins
FIELD_ALIASES: dict[str, tuple[str, ...]] = {
    "name": ("name", "provider"),
    "adapter": ("adapter",),
    "apiKey": ("apiKey", "secretKey", "api_key"),
    "baseUrl": ("baseUrl", "baseURL", "base_url"),
    "enableDefaultModels": (
        "enableDefaultModels",
        "useDefaultModels",
        "withDefaultModels",
        "enable_default_models",
    ),
    "extraHeaders": ("extraHeaders", "extra_headers"),
    "customModels": ("customModels", "models", "custom_models"),
}

_TRUTHY = {"1", "true", "yes", "on"}


def resolve_aliases(raw: Mapping[str, Any]) -> dict[str, Any]:
    """Map a loosely shaped record onto canonical keys; ``None`` counts as absent."""

    resolved: dict[str, Any] = {}
    for canonical, aliases in FIELD_ALIASES.items():
        for alias in aliases:
            value = raw.get(alias)
            if value is not None:
                resolved[canonical] = value
                break
    return resolved


def normalize_extra_headers(value: Any) -> dict[str, str]:
    """Accept ``[{key, value}]``, ``[(key, value)]`` or a mapping; return a mapping.

    Keys and values are trimmed, empty keys are dropped, and a later
    duplicate key replaces an earlier one.
    """
    if value is None:
        return {}
    if isinstance(value, Mapping):
        pairs = list(value.items())
    elif isinstance(value, (list, tuple)):
        pairs = []
        for item in value:
            if isinstance(item, Mapping):
                pairs.append((item.get("key"), item.get("value")))
            elif isinstance(item, (list, tuple)) and len(item) == 2:
                pairs.append((item[0], item[1]))
            else:
                raise ConfigurationError(
                    f"unsupported extraHeaders entry: {item!r}", field="extraHeaders"
                )
    else:
        raise ConfigurationError(
            f"extraHeaders must be a mapping or a sequence, got {type(value).__name__}",
            field="extraHeaders",
        )

    headers: dict[str, str] = {}
    for key, header_value in pairs:
        clean_key = _clean_text(key)
        if not clean_key:
            continue
        headers[clean_key] = _clean_text(header_value)
    return headers


def normalize_custom_models(value: Any) -> list[str]:
    if value is None:
        return []
    if isinstance(value, str):
        items = [value]
    elif isinstance(value, (list, tuple)):
        items = list(value)
    else:
        raise ConfigurationError(
            f"customModels must be a string or a sequence, got {type(value).__name__}",
            field="customModels",
        )
    return [model for model in (_clean_text(item) for item in items) if model]


def normalize_connection_input(raw: Mapping[str, Any] | ConnectionInput | None) -> ConnectionInput:
    if isinstance(raw, ConnectionInput):
        # snake_case field names are accepted aliases
        raw = raw.model_dump()
    fields = resolve_aliases(raw or {})

    adapter = _clean_text(fields.get("adapter")) or DEFAULT_ADAPTER
    if adapter not in KNOWN_ADAPTERS:
        logger.warning("unknown adapter %r forwarded unchanged", adapter)

    return ConnectionInput(
        name=_clean_text(fields.get("name")),
        adapter=adapter,
        api_key=_clean_text(fields.get("apiKey")),
        base_url=_clean_text(fields.get("baseUrl")) or None,
        enable_default_models=_parse_flag(fields.get("enableDefaultModels")),
        extra_headers=normalize_extra_headers(fields.get("extraHeaders")),
        custom_models=normalize_custom_models(fields.get("customModels")),
    )


def _clean_text(value: Any) -> str:
    if value is None:
        return ""
    return str(value).strip()


def _parse_flag(value: Any) -> bool | None:
    if value is None:
        return None
    if isinstance(value, str):
        return value.strip().lower() in _TRUTHY
    return bool(value)
