from __future__ import annotations

import asyncio
import json
from dataclasses import dataclass, field
from typing import Any

import pytest

from llm_connections.connections.client import ConnectionClient, build_client_from_env
from llm_connections.connections.contracts import ConnectionInput
from llm_connections.rpc.envelopes import EnvelopeFormat
from llm_connections.rpc.errors import ConfigurationError, ExhaustionError, UpsertCompoundError
from llm_connections.rpc.inmemory_backend import InMemoryRpcBackend
from llm_connections.rpc.invoker import ProcedureInvoker
from llm_connections.rpc.transport import HttpTransport


@dataclass
class FakeResponse:
    status_code: int
    payload: Any
    headers: dict[str, str] = field(default_factory=dict)

    @property
    def text(self) -> str:
        return json.dumps(self.payload)


class FakeSession:
    def __init__(self, responses: list[FakeResponse]) -> None:
        self.responses = responses
        self.calls: list[dict[str, Any]] = []

    def request(self, **kwargs: Any) -> FakeResponse:
        self.calls.append(kwargs)
        if not self.responses:
            raise RuntimeError("No fake response left")
        return self.responses.pop(0)


def _client(session: Any, default_project_id: str | None = None) -> ConnectionClient:
    invoker = ProcedureInvoker(HttpTransport("http://backend.test", session=session))
    return ConnectionClient(invoker, default_project_id=default_project_id)


def _ok(value: Any) -> FakeResponse:
    return FakeResponse(200, {"result": {"data": {"json": value}}})


OPENAI_MAIN = {"name": "openai-main", "adapter": "openai", "apiKey": "sk-test"}


def test_create_against_batch_only_backend_resolves_on_second_attempt() -> None:
    backend = InMemoryRpcBackend(accepted_formats={EnvelopeFormat.BATCH})
    result = asyncio.run(_client(backend).create(OPENAI_MAIN, project_id="proj_123"))

    assert result["provider"] == "openai-main"
    assert result["projectId"] == "proj_123"
    assert result["displaySecretKey"] == "...test"
    assert [call["envelope"] for call in backend.calls] == ["A", "B"]


def test_create_builds_resource_payload_from_aliases() -> None:
    session = FakeSession([_ok({"id": "c1"})])
    asyncio.run(
        _client(session).create(
            {
                "provider": " openai-main ",
                "secretKey": "sk-test",
                "baseURL": "https://api.openai.com/v1",
                "useDefaultModels": False,
                "extraHeaders": {" X-Org ": " acme ", "": "dropped"},
                "models": [" gpt-4o ", "", None, "o3"],
            },
            project_id="proj_123",
        )
    )

    payload = session.calls[0]["json"]["json"]["input"]
    assert payload == {
        "projectId": "proj_123",
        "provider": "openai-main",
        "adapter": "openai",
        "secretKey": "sk-test",
        "baseURL": "https://api.openai.com/v1",
        "withDefaultModels": False,
        "customModels": ["gpt-4o", "o3"],
        "extraHeaders": {"X-Org": "acme"},
    }


def test_create_with_empty_api_key_fails_before_any_network_call() -> None:
    session = FakeSession([])
    with pytest.raises(ConfigurationError) as exc_info:
        asyncio.run(
            _client(session).create({"name": "openai-main", "apiKey": "  "}, project_id="p")
        )
    assert exc_info.value.field == "apiKey"
    assert session.calls == []


@pytest.mark.parametrize("project_id", ["", "   ", None])
def test_every_operation_requires_project_id(project_id: str | None) -> None:
    client = _client(FakeSession([]))
    calls = [
        client.create(OPENAI_MAIN, project_id=project_id),
        client.update("c1", OPENAI_MAIN, project_id=project_id),
        client.upsert(OPENAI_MAIN, project_id=project_id),
        client.list(project_id=project_id),
        client.delete("c1", project_id=project_id),
        client.test(OPENAI_MAIN, project_id=project_id),
    ]
    for call in calls:
        with pytest.raises(ConfigurationError) as exc_info:
            asyncio.run(call)
        assert exc_info.value.field == "projectId"


def test_explicit_default_project_is_used_only_when_configured() -> None:
    session = FakeSession([_ok({"data": []})])
    assert asyncio.run(_client(session, default_project_id="proj_env").list()) == []
    assert session.calls[0]["headers"]["x-project-id"] == "proj_env"


def test_env_default_project_is_ignored_unless_enabled() -> None:
    env = {"LLM_CONNECTIONS_DEFAULT_PROJECT_ID": "proj_env"}
    assert build_client_from_env(env=env).default_project_id is None

    enabled = dict(env, LLM_CONNECTIONS_ALLOW_DEFAULT_PROJECT="true")
    assert build_client_from_env(env=enabled).default_project_id == "proj_env"


def test_update_and_delete_require_identifier_and_name() -> None:
    session = FakeSession([])
    client = _client(session)
    with pytest.raises(ConfigurationError) as missing_id:
        asyncio.run(client.update(" ", OPENAI_MAIN, project_id="p"))
    with pytest.raises(ConfigurationError) as missing_name:
        asyncio.run(client.update("c1", {"apiKey": "sk"}, project_id="p"))
    with pytest.raises(ConfigurationError) as delete_id:
        asyncio.run(client.delete("", project_id="p"))

    assert (missing_id.value.field, missing_name.value.field, delete_id.value.field) == (
        "id",
        "name",
        "id",
    )
    assert session.calls == []


def test_update_without_api_key_leaves_secret_and_unset_fields_off_the_wire() -> None:
    session = FakeSession([_ok(None)])
    result = asyncio.run(
        _client(session).update("c1", {"name": "openai-main"}, project_id="p")
    )

    assert result == {"ok": True, "action": "updated"}
    assert session.calls[0]["json"]["json"]["input"] == {
        "projectId": "p",
        "id": "c1",
        "provider": "openai-main",
        "adapter": "openai",
    }


def test_list_unwraps_nested_data_in_order() -> None:
    rows = [{"id": "c2"}, {"id": "c1"}, {"id": "c3"}]
    session = FakeSession([FakeResponse(200, {"result": {"data": {"json": {"data": rows}}}})])
    assert asyncio.run(_client(session).list(project_id="p")) == rows
    assert session.calls[0]["json"] == {"json": {"input": {"projectId": "p"}}}


@pytest.mark.parametrize(
    ("value", "expected"),
    [
        ([{"id": "c1"}], [{"id": "c1"}]),
        ({"id": "c1"}, [{"id": "c1"}]),
        ({"data": [], "totalCount": 0}, []),
        (None, []),
    ],
)
def test_list_normalizes_success_shapes(value: Any, expected: list[Any]) -> None:
    assert asyncio.run(_client(FakeSession([_ok(value)])).list(project_id="p")) == expected


def test_list_never_masks_decode_failures() -> None:
    session = FakeSession([FakeResponse(500, {"unexpected": True}) for _ in range(3)])
    with pytest.raises(ExhaustionError):
        asyncio.run(_client(session).list(project_id="p"))


def test_delete_acknowledges_empty_success() -> None:
    backend = InMemoryRpcBackend()
    client = _client(backend)
    created = asyncio.run(client.create(OPENAI_MAIN, project_id="p"))

    assert asyncio.run(client.delete(created["id"], project_id="p")) == {
        "ok": True,
        "action": "deleted",
    }
    assert backend.connections == {}


def test_test_operation_forwards_credentials_without_requiring_api_key() -> None:
    backend = InMemoryRpcBackend()
    client = _client(backend)

    assert asyncio.run(client.test(OPENAI_MAIN, project_id="p")) == {"success": True}
    missing = asyncio.run(client.test({"name": "openai-main"}, project_id="p"))
    assert missing["success"] is False


def test_upsert_twice_matches_create_then_update() -> None:
    upserted = InMemoryRpcBackend()
    client = _client(upserted)
    asyncio.run(client.upsert(OPENAI_MAIN, project_id="p"))
    second = asyncio.run(client.upsert(OPENAI_MAIN, project_id="p"))

    reference = InMemoryRpcBackend()
    reference_client = _client(reference)
    asyncio.run(reference_client.create(OPENAI_MAIN, project_id="p"))
    asyncio.run(reference_client.update("openai-main", OPENAI_MAIN, project_id="p"))

    assert second["provider"] == "openai-main"
    assert upserted.connections == reference.connections
    assert len(upserted.connections) == 1


def test_upsert_without_api_key_falls_back_to_update() -> None:
    backend = InMemoryRpcBackend()
    client = _client(backend)
    asyncio.run(client.create(OPENAI_MAIN, project_id="p"))

    result = asyncio.run(
        client.upsert({"name": "openai-main", "customModels": ["gpt-4o"]}, project_id="p")
    )
    assert result["customModels"] == ["gpt-4o"]
    assert backend.connections[("p", "openai-main")]["secretKey"] == "sk-test"


def test_upsert_reports_both_failures() -> None:
    session = FakeSession(
        [FakeResponse(409, {"error": {"json": {"message": "already exists"}}})] * 3
        + [FakeResponse(404, {"error": {"json": {"message": "not found"}}})] * 3
    )
    with pytest.raises(UpsertCompoundError) as exc_info:
        asyncio.run(_client(session).upsert(OPENAI_MAIN, project_id="p"))

    message = str(exc_info.value)
    assert "Create: RPC llmApiKey.create failed: HTTP 409\nalready exists" in message
    assert "Update: RPC llmApiKey.update failed: HTTP 404\nnot found" in message
    assert isinstance(exc_info.value.create_error, ExhaustionError)
    assert len(session.calls) == 6


def test_create_cleans_canonical_input_before_sending() -> None:
    backend = InMemoryRpcBackend()
    connection = ConnectionInput(
        name=" openai-main ",
        api_key="sk-test",
        extra_headers={" X ": " y ", "": "z"},
        custom_models=[" m ", ""],
    )
    asyncio.run(_client(backend).create(connection, project_id="p"))

    stored = backend.connections[("p", "openai-main")]
    assert stored["extraHeaders"] == {"X": "y"}
    assert stored["customModels"] == ["m"]


def test_create_rejects_blank_canonical_name_without_network() -> None:
    session = FakeSession([])
    connection = ConnectionInput(name="  ", api_key="k", extra_headers={" X ": " y "})
    with pytest.raises(ConfigurationError) as exc_info:
        asyncio.run(_client(session).create(connection, project_id="p"))
    assert exc_info.value.field == "name"
    assert session.calls == []


def test_upsert_rejects_non_sequence_custom_models_without_network() -> None:
    session = FakeSession([])
    with pytest.raises(ConfigurationError) as exc_info:
        asyncio.run(
            _client(session).upsert(
                {"name": "x", "apiKey": "k", "customModels": 5}, project_id="p"
            )
        )
    assert exc_info.value.field == "customModels"
    assert session.calls == []
