"""llm-connections CLI."""

from __future__ import annotations

import asyncio
import json
import logging
from dataclasses import replace
from typing import Any, Coroutine, List, Optional

import typer

from llm_connections.connections.client import ConnectionClient, build_client
from llm_connections.connections.masked_key import fetch_masked_key
from llm_connections.rpc.auth import load_rpc_auth_from_env
from llm_connections.rpc.errors import ConfigurationError, ConnectionClientError
from llm_connections.rpc.inmemory_backend import InMemoryRpcBackend
from llm_connections.rpc.transport import HttpTransport
from llm_connections.shared.settings import ClientSettings, get_client_settings

app = typer.Typer(add_completion=False, help="llm-connections: manage LLM provider connections")

PROJECT_OPTION = typer.Option("", "--project-id", help="Project scope for the call.")
BACKEND_OPTION = typer.Option("", "--backend-url", help="Overrides LLM_CONNECTIONS_BASE_URL.")
IN_MEMORY_OPTION = typer.Option(False, "--in-memory", help="Use the offline in-memory backend.")
HEADER_OPTION = typer.Option(None, "--header", help="KEY=VALUE, repeatable.")
MODEL_OPTION = typer.Option(None, "--model", help="Custom model name, repeatable.")


def _parse_headers(values: list[str]) -> dict[str, str]:
    headers: dict[str, str] = {}
    for value in values:
        if "=" not in value:
            raise typer.BadParameter(f"Expected KEY=VALUE for --header, got: {value}")
        key, _, header_value = value.partition("=")
        headers[key] = header_value
    return headers


def _settings(backend_url: str) -> ClientSettings:
    settings = get_client_settings()
    if backend_url:
        settings = replace(settings, base_url=backend_url.rstrip("/"))
    logging.basicConfig(level=settings.log_level)
    return settings


def _client(backend_url: str, in_memory: bool) -> ConnectionClient:
    settings = _settings(backend_url)
    session = InMemoryRpcBackend() if in_memory else None
    return build_client(settings, auth=load_rpc_auth_from_env(), session=session)


def _run(coro: Coroutine[Any, Any, Any]) -> None:
    try:
        result = asyncio.run(coro)
    except ConfigurationError as exc:
        typer.echo(json.dumps(exc.as_dict(), indent=2), err=True)
        raise typer.Exit(code=2) from exc
    except ConnectionClientError as exc:
        typer.echo(json.dumps(exc.as_dict(), indent=2), err=True)
        raise typer.Exit(code=1) from exc
    typer.echo(json.dumps(result, indent=2))


def _connection_input(
    name: str,
    adapter: str,
    api_key: str,
    base_url: str,
    default_models: bool | None,
    header: list[str] | None,
    model: list[str] | None,
) -> dict[str, Any]:
    return {
        "name": name,
        "adapter": adapter or None,
        "apiKey": api_key,
        "baseUrl": base_url or None,
        "enableDefaultModels": default_models,
        "extraHeaders": _parse_headers(header or []),
        "customModels": model or [],
    }


@app.command("list")
def list_connections(
    project_id: str = PROJECT_OPTION,
    backend_url: str = BACKEND_OPTION,
    in_memory: bool = IN_MEMORY_OPTION,
) -> None:
    """List connections of a project."""
    client = _client(backend_url, in_memory)
    _run(client.list(project_id=project_id))


@app.command()
def create(
    name: str = typer.Option(..., "--name"),
    api_key: str = typer.Option("", "--api-key", envvar="LLM_CONNECTIONS_API_KEY"),
    adapter: str = typer.Option("openai", "--adapter"),
    base_url: str = typer.Option("", "--base-url"),
    default_models: bool = typer.Option(True, "--default-models/--no-default-models"),
    header: Optional[List[str]] = HEADER_OPTION,
    model: Optional[List[str]] = MODEL_OPTION,
    upsert: bool = typer.Option(False, "--upsert", help="Fall back to update if create fails."),
    project_id: str = PROJECT_OPTION,
    backend_url: str = BACKEND_OPTION,
    in_memory: bool = IN_MEMORY_OPTION,
) -> None:
    """Create a connection (or upsert with --upsert)."""
    client = _client(backend_url, in_memory)
    connection = _connection_input(name, adapter, api_key, base_url, default_models, header, model)
    if upsert:
        _run(client.upsert(connection, project_id=project_id))
    else:
        _run(client.create(connection, project_id=project_id))


@app.command()
def update(
    connection_id: str,
    name: str = typer.Option(..., "--name"),
    api_key: str = typer.Option("", "--api-key", envvar="LLM_CONNECTIONS_API_KEY"),
    adapter: str = typer.Option("", "--adapter"),
    base_url: str = typer.Option("", "--base-url"),
    default_models: Optional[bool] = typer.Option(None, "--default-models/--no-default-models"),
    header: Optional[List[str]] = HEADER_OPTION,
    model: Optional[List[str]] = MODEL_OPTION,
    project_id: str = PROJECT_OPTION,
    backend_url: str = BACKEND_OPTION,
    in_memory: bool = IN_MEMORY_OPTION,
) -> None:
    """Update a connection; an empty --api-key keeps the stored secret."""
    client = _client(backend_url, in_memory)
    connection = _connection_input(name, adapter, api_key, base_url, default_models, header, model)
    _run(client.update(connection_id, connection, project_id=project_id))


@app.command()
def delete(
    connection_id: str,
    project_id: str = PROJECT_OPTION,
    backend_url: str = BACKEND_OPTION,
    in_memory: bool = IN_MEMORY_OPTION,
) -> None:
    """Delete a connection by id."""
    client = _client(backend_url, in_memory)
    _run(client.delete(connection_id, project_id=project_id))


@app.command("test")
def test_connection(
    name: str = typer.Option(..., "--name"),
    api_key: str = typer.Option("", "--api-key", envvar="LLM_CONNECTIONS_API_KEY"),
    adapter: str = typer.Option("openai", "--adapter"),
    base_url: str = typer.Option("", "--base-url"),
    project_id: str = PROJECT_OPTION,
    backend_url: str = BACKEND_OPTION,
    in_memory: bool = IN_MEMORY_OPTION,
) -> None:
    """Ask the backend to verify a connection's credentials."""
    client = _client(backend_url, in_memory)
    connection = _connection_input(name, adapter, api_key, base_url, None, [], [])
    _run(client.test(connection, project_id=project_id))


@app.command("masked-key")
def masked_key(
    provider: str = typer.Option(..., "--provider"),
    project_id: str = PROJECT_OPTION,
    backend_url: str = BACKEND_OPTION,
    in_memory: bool = IN_MEMORY_OPTION,
) -> None:
    """Print the masked secret stored for a provider."""
    settings = _settings(backend_url)
    transport = HttpTransport(
        base_url=settings.base_url,
        auth=load_rpc_auth_from_env(),
        session=InMemoryRpcBackend() if in_memory else None,
        timeout_s=settings.timeout_s,
    )
    _run(
        fetch_masked_key(
            transport,
            project_id=project_id or (settings.fallback_project_id() or ""),
            provider=provider,
            rpc_path=settings.rpc_path,
        )
    )


if __name__ == "__main__":
    app()
