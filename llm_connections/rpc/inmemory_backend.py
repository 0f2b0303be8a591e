"""In-memory RPC backend for deterministic tests and offline CLI use.

The backend is a drop-in for ``requests.Session``: it answers ``request``
calls by parsing whichever envelope format the request uses and storing
connection records in memory. It can be pinned to a subset of envelope
formats to emulate older or differently configured deployments.
"""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from typing import Any
from urllib.parse import parse_qsl, urlparse

from llm_connections.rpc.envelopes import EnvelopeFormat

UPDATABLE_FIELDS = (
    "adapter",
    "baseURL",
    "withDefaultModels",
    "customModels",
    "extraHeaders",
    "secretKey",
)


@dataclass
class InMemoryResponse:
    status_code: int
    text: str
    headers: dict[str, str] = field(default_factory=lambda: {"content-type": "application/json"})


class _RpcFailure(Exception):
    def __init__(self, status: int, code: str, message: str) -> None:
        super().__init__(message)
        self.status = status
        self.code = code
        self.message = message


class InMemoryRpcBackend:
    def __init__(self, accepted_formats: set[EnvelopeFormat] | None = None) -> None:
        self.accepted_formats = (
            set(EnvelopeFormat) if accepted_formats is None else set(accepted_formats)
        )
        self.calls: list[dict[str, Any]] = []
        self.connections: dict[tuple[str, str], dict[str, Any]] = {}
        self._next_id = 1

    def request(
        self,
        method: str,
        url: str,
        headers: dict[str, str] | None = None,
        json: Any = None,
        data: Any = None,
        params: dict[str, str] | None = None,
        timeout: float | None = None,
    ) -> InMemoryResponse:
        parsed_url = urlparse(url)
        query = dict(parse_qsl(parsed_url.query))
        query.update(params or {})
        procedure = parsed_url.path.rstrip("/").rsplit("/", 1)[-1]
        body = json if json is not None else _loads(data)

        envelope, rpc_input = _unwrap(method.upper(), body, query)
        self.calls.append(
            {
                "method": method.upper(),
                "url": url,
                "procedure": procedure,
                "envelope": envelope.value if envelope else None,
                "headers": dict(headers or {}),
            }
        )
        batched = envelope is EnvelopeFormat.BATCH

        if method.upper() == "POST" and (envelope is None or envelope not in self.accepted_formats):
            message = f'Invalid request envelope for "{procedure}"'
            return _reply_error(400, "BAD_REQUEST", message, batched)
        if not isinstance(rpc_input, dict):
            return _reply_error(400, "BAD_REQUEST", "input must be an object", batched)

        lowered = {key.lower(): value for key, value in (headers or {}).items()}
        project_id = str(rpc_input.get("projectId") or lowered.get("x-project-id") or "").strip()
        if not project_id:
            return _reply_error(400, "BAD_REQUEST", "projectId is required", batched)

        handler = {
            "create": self._create,
            "update": self._update,
            "all": self._all,
            "delete": self._delete,
            "test": self._test,
        }.get(procedure.rsplit(".", 1)[-1])
        if handler is None:
            message = f'No procedure found on path "{procedure}"'
            return _reply_error(404, "NOT_FOUND", message, batched)

        try:
            result = handler(project_id, rpc_input)
        except _RpcFailure as failure:
            return _reply_error(failure.status, failure.code, failure.message, batched)
        return _reply_ok(result, batched)

    def _create(self, project_id: str, rpc_input: dict[str, Any]) -> dict[str, Any]:
        provider = str(rpc_input.get("provider") or "").strip()
        secret = str(rpc_input.get("secretKey") or "")
        if not provider or not secret:
            raise _RpcFailure(400, "BAD_REQUEST", "provider and secretKey are required")
        if (project_id, provider) in self.connections:
            raise _RpcFailure(409, "CONFLICT", f"Connection for provider {provider} already exists")

        record = {
            "id": f"conn_{self._next_id}",
            "projectId": project_id,
            "provider": provider,
            "adapter": rpc_input.get("adapter") or "openai",
            "baseURL": rpc_input.get("baseURL"),
            "withDefaultModels": bool(rpc_input.get("withDefaultModels", True)),
            "customModels": list(rpc_input.get("customModels") or []),
            "extraHeaders": dict(rpc_input.get("extraHeaders") or {}),
            "secretKey": secret,
        }
        self._next_id += 1
        self.connections[(project_id, provider)] = record
        return _public_view(record)

    def _update(self, project_id: str, rpc_input: dict[str, Any]) -> dict[str, Any]:
        key = self._find(project_id, str(rpc_input.get("id") or ""))
        record = self.connections[key]
        for name in UPDATABLE_FIELDS:
            if name in rpc_input:
                record[name] = rpc_input[name]
        provider = str(rpc_input.get("provider") or "").strip()
        if provider and provider != record["provider"]:
            del self.connections[key]
            record["provider"] = provider
            self.connections[(project_id, provider)] = record
        return _public_view(record)

    def _all(self, project_id: str, rpc_input: dict[str, Any]) -> dict[str, Any]:
        rows = [
            _public_view(record)
            for (record_project, _), record in self.connections.items()
            if record_project == project_id
        ]
        return {"data": rows, "totalCount": len(rows)}

    def _delete(self, project_id: str, rpc_input: dict[str, Any]) -> None:
        key = self._find(project_id, str(rpc_input.get("id") or ""))
        del self.connections[key]
        return None

    def _test(self, project_id: str, rpc_input: dict[str, Any]) -> dict[str, Any]:
        if not str(rpc_input.get("secretKey") or ""):
            return {"success": False, "error": "secretKey is required to test a connection"}
        return {"success": True}

    def _find(self, project_id: str, identifier: str) -> tuple[str, str]:
        for key, record in self.connections.items():
            if key[0] == project_id and identifier in {record["id"], record["provider"]}:
                return key
        raise _RpcFailure(404, "NOT_FOUND", f"Connection {identifier} not found")


def _unwrap(
    method: str, body: Any, query: dict[str, str]
) -> tuple[EnvelopeFormat | None, Any]:
    if method == "GET":
        try:
            wrapped = json.loads(query.get("input", "{}"))
        except ValueError:
            return None, None
        return None, wrapped.get("json", wrapped) if isinstance(wrapped, dict) else None

    if isinstance(body, list):
        if query.get("batch") != "1" or not body or not isinstance(body[0], dict):
            return None, None
        params = (body[0].get("json") or {}).get("params") or {}
        return EnvelopeFormat.BATCH, params.get("input")

    if not isinstance(body, dict) or not isinstance(body.get("json"), dict):
        return None, None
    inner = body["json"]
    params = inner.get("params")
    if isinstance(params, dict) and "path" in params:
        return EnvelopeFormat.LEGACY, params.get("input")
    if "input" in inner:
        return EnvelopeFormat.DIRECT, inner["input"]
    return None, None


def _public_view(record: dict[str, Any]) -> dict[str, Any]:
    view = {key: value for key, value in record.items() if key != "secretKey"}
    view["displaySecretKey"] = "..." + str(record["secretKey"])[-4:]
    return view


def _reply_ok(value: Any, batched: bool) -> InMemoryResponse:
    envelope: Any = {"result": {"data": {"json": value}}}
    return InMemoryResponse(200, json.dumps([envelope] if batched else envelope))


def _reply_error(status: int, code: str, message: str, batched: bool) -> InMemoryResponse:
    error = {"message": message, "code": code, "data": {"httpStatus": status}}
    envelope: Any = {"error": {"json": error}}
    return InMemoryResponse(status, json.dumps([envelope] if batched else envelope))


def _loads(data: Any) -> Any:
    if data is None:
        return None
    try:
        return json.loads(data)
    except ValueError:
        return None
