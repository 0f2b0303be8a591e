from __future__ import annotations

import ast
from pathlib import Path


def _imported_modules(path: Path) -> list[str]:
    tree = ast.parse(path.read_text(encoding="utf-8"), filename=str(path))
    names: list[str] = []
    for node in ast.walk(tree):
        if isinstance(node, ast.Import):
            names.extend(alias.name for alias in node.names)
        elif isinstance(node, ast.ImportFrom):
            names.append(node.module or "")
    return names


def test_rpc_layer_does_not_import_connection_resource_or_cli() -> None:
    forbidden = ("llm_connections.connections", "llm_connections.cli", "typer")
    for path in Path("llm_connections/rpc").rglob("*.py"):
        for name in _imported_modules(path):
            assert not name.startswith(forbidden), f"{path} imports forbidden module: {name}"


def test_only_the_cli_imports_typer() -> None:
    for path in Path("llm_connections").rglob("*.py"):
        if path.name == "cli.py":
            continue
        for name in _imported_modules(path):
            assert not name.startswith("typer"), f"{path} imports typer: {name}"
