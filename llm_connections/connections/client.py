"""Connection resource client: create/update/upsert/list/delete/test."""

from __future__ import annotations

import logging
from collections.abc import Mapping
from dataclasses import dataclass
from typing import Any

import requests

from llm_connections.connections.contracts import ConnectionInput, ConnectionPayload
from llm_connections.connections.normalize import normalize_connection_input
from llm_connections.rpc.auth import RpcAuth, load_rpc_auth_from_env, redact_mapping
from llm_connections.rpc.errors import (
    ConfigurationError,
    ConnectionClientError,
    UpsertCompoundError,
)
from llm_connections.rpc.invoker import ProcedureInvoker
from llm_connections.rpc.transport import HttpTransport
from llm_connections.shared.settings import ClientSettings

logger = logging.getLogger(__name__)

ConnectionLike = Mapping[str, Any] | ConnectionInput


@dataclass(frozen=True)
class ConnectionProcedures:
    create: str = "llmApiKey.create"
    update: str = "llmApiKey.update"
    list: str = "llmApiKey.all"
    delete: str = "llmApiKey.delete"
    test: str = "llmApiKey.test"


class ConnectionClient:
    """Public surface for connection records.

    Every operation needs a project id. It is taken from the call, or from
    ``default_project_id`` when the client was explicitly built with one;
    nothing is read from ambient state.
    """

    def __init__(
        self,
        invoker: ProcedureInvoker,
        procedures: ConnectionProcedures | None = None,
        default_project_id: str | None = None,
    ) -> None:
        self.invoker = invoker
        self.procedures = procedures or ConnectionProcedures()
        self.default_project_id = (default_project_id or "").strip() or None

    async def create(self, connection: ConnectionLike, *, project_id: str | None = None) -> Any:
        pid = self._require_project(project_id)
        normalized = normalize_connection_input(connection)
        _require_name(normalized)
        if not normalized.api_key:
            raise ConfigurationError("apiKey (secretKey) is required to create", field="apiKey")

        payload = _full_payload(pid, normalized)
        result = await self._call(self.procedures.create, payload, pid)
        return _or_ack(result, "created")

    async def update(
        self,
        connection_id: str,
        connection: ConnectionLike,
        *,
        project_id: str | None = None,
    ) -> Any:
        pid = self._require_project(project_id)
        identifier = _require_id(connection_id)
        normalized = normalize_connection_input(connection)
        _require_name(normalized)

        payload = ConnectionPayload(
            project_id=pid,
            id=identifier,
            provider=normalized.name,
            adapter=normalized.adapter,
            secret_key=normalized.api_key or None,
            base_url=normalized.base_url,
            with_default_models=normalized.enable_default_models,
            custom_models=normalized.custom_models or None,
            extra_headers=normalized.extra_headers or None,
        )
        result = await self._call(self.procedures.update, payload, pid)
        return _or_ack(result, "updated")

    async def upsert(self, connection: ConnectionLike, *, project_id: str | None = None) -> Any:
        pid = self._require_project(project_id)
        normalized = normalize_connection_input(connection)
        try:
            return await self.create(normalized, project_id=pid)
        except ConnectionClientError as create_error:
            logger.info("create failed, retrying as update: %s", create_error)
            name = normalized.name
            try:
                return await self.update(name, normalized, project_id=pid)
            except ConnectionClientError as update_error:
                logger.error("create and update both failed for connection %r", name)
                raise UpsertCompoundError(create_error, update_error) from update_error

    async def list(self, *, project_id: str | None = None) -> list[Any]:
        pid = self._require_project(project_id)
        result = await self._call(self.procedures.list, ConnectionPayload(project_id=pid), pid)
        return _as_items(result)

    async def delete(self, connection_id: str, *, project_id: str | None = None) -> Any:
        pid = self._require_project(project_id)
        identifier = _require_id(connection_id)
        payload = ConnectionPayload(project_id=pid, id=identifier)
        result = await self._call(self.procedures.delete, payload, pid)
        return _or_ack(result, "deleted")

    async def test(self, connection: ConnectionLike, *, project_id: str | None = None) -> Any:
        pid = self._require_project(project_id)
        normalized = normalize_connection_input(connection)
        _require_name(normalized)
        return await self._call(self.procedures.test, _full_payload(pid, normalized), pid)

    async def _call(self, procedure: str, payload: ConnectionPayload, project_id: str) -> Any:
        wire = payload.to_wire()
        logger.debug("%s request payload: %s", procedure, redact_mapping(wire))
        result = await self.invoker.invoke(procedure, wire, project_id=project_id)
        logger.debug("%s succeeded", procedure)
        return result

    def _require_project(self, project_id: str | None) -> str:
        pid = (project_id or "").strip() or self.default_project_id
        if not pid:
            raise ConfigurationError("projectId is required", field="projectId")
        return pid


def _require_name(normalized: ConnectionInput) -> None:
    if not normalized.name:
        raise ConfigurationError("connection name (provider) is required", field="name")


def _require_id(connection_id: str | None) -> str:
    identifier = str(connection_id or "").strip()
    if not identifier:
        raise ConfigurationError("connection id is required", field="id")
    return identifier


def _full_payload(project_id: str, normalized: ConnectionInput) -> ConnectionPayload:
    return ConnectionPayload(
        project_id=project_id,
        provider=normalized.name,
        adapter=normalized.adapter,
        secret_key=normalized.api_key or None,
        base_url=normalized.base_url,
        with_default_models=(
            True if normalized.enable_default_models is None else normalized.enable_default_models
        ),
        custom_models=list(normalized.custom_models),
        extra_headers=dict(normalized.extra_headers),
    )


def _or_ack(result: Any, action: str) -> Any:
    if result is None:
        return {"ok": True, "action": action}
    return result


def _as_items(result: Any) -> list[Any]:
    if result is None:
        return []
    if isinstance(result, dict) and isinstance(result.get("data"), list):
        return list(result["data"])
    if isinstance(result, list):
        return result
    return [result]


def build_client(
    settings: ClientSettings,
    auth: RpcAuth | None = None,
    session: requests.Session | None = None,
) -> ConnectionClient:
    transport = HttpTransport(
        base_url=settings.base_url,
        auth=auth,
        session=session,
        timeout_s=settings.timeout_s,
    )
    invoker = ProcedureInvoker(transport, rpc_path=settings.rpc_path)
    return ConnectionClient(invoker, default_project_id=settings.fallback_project_id())


def build_client_from_env(
    env: dict[str, str] | None = None,
    session: requests.Session | None = None,
) -> ConnectionClient:
    settings = ClientSettings.from_env(env)
    return build_client(settings, auth=load_rpc_auth_from_env(env), session=session)
