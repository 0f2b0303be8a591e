from __future__ import annotations

import json

import pytest
from typer.testing import CliRunner

from llm_connections.cli import app

runner = CliRunner()


@pytest.fixture(autouse=True)
def _isolated_env(monkeypatch: pytest.MonkeyPatch) -> None:
    for name in (
        "LLM_CONNECTIONS_DEFAULT_PROJECT_ID",
        "LLM_CONNECTIONS_ALLOW_DEFAULT_PROJECT",
        "LLM_CONNECTIONS_TOKEN",
        "LLM_CONNECTIONS_SESSION_COOKIE",
        "LLM_CONNECTIONS_API_KEY",
    ):
        monkeypatch.delenv(name, raising=False)


def test_cli_create_in_memory_prints_created_record() -> None:
    result = runner.invoke(
        app,
        [
            "create",
            "--name",
            "openai-main",
            "--api-key",
            "sk-test",
            "--header",
            "X-Org=acme",
            "--model",
            "gpt-4o",
            "--project-id",
            "proj_123",
            "--in-memory",
        ],
    )
    assert result.exit_code == 0, result.output
    record = json.loads(result.stdout)
    assert record["provider"] == "openai-main"
    assert record["extraHeaders"] == {"X-Org": "acme"}
    assert record["customModels"] == ["gpt-4o"]


def test_cli_list_in_memory_starts_empty() -> None:
    result = runner.invoke(app, ["list", "--project-id", "proj_123", "--in-memory"])
    assert result.exit_code == 0, result.output
    assert json.loads(result.stdout) == []


def test_cli_missing_project_id_exits_with_configuration_code() -> None:
    result = runner.invoke(app, ["list", "--in-memory"])
    assert result.exit_code == 2


def test_cli_default_project_requires_opt_in(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("LLM_CONNECTIONS_DEFAULT_PROJECT_ID", "proj_env")
    assert runner.invoke(app, ["list", "--in-memory"]).exit_code == 2

    monkeypatch.setenv("LLM_CONNECTIONS_ALLOW_DEFAULT_PROJECT", "1")
    assert runner.invoke(app, ["list", "--in-memory"]).exit_code == 0


def test_cli_delete_unknown_connection_exits_with_failure() -> None:
    result = runner.invoke(app, ["delete", "conn_404", "--project-id", "p", "--in-memory"])
    assert result.exit_code == 1


def test_cli_rejects_malformed_header() -> None:
    result = runner.invoke(
        app,
        ["create", "--name", "x", "--api-key", "k", "--header", "no-equals", "--project-id", "p"],
    )
    assert result.exit_code != 0


def test_cli_masked_key_in_memory_prints_null() -> None:
    result = runner.invoke(
        app, ["masked-key", "--provider", "openai", "--project-id", "p", "--in-memory"]
    )
    assert result.exit_code == 0, result.output
    assert json.loads(result.stdout) is None
