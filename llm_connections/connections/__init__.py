"""Connection resource client and its input contracts."""

from llm_connections.connections.client import (
    ConnectionClient,
    ConnectionProcedures,
    build_client,
    build_client_from_env,
)
from llm_connections.connections.contracts import ConnectionInput, ConnectionPayload
from llm_connections.connections.masked_key import fetch_masked_key
from llm_connections.connections.normalize import normalize_connection_input

__all__ = [
    "ConnectionClient",
    "ConnectionInput",
    "ConnectionPayload",
    "ConnectionProcedures",
    "build_client",
    "build_client_from_env",
    "fetch_masked_key",
    "normalize_connection_input",
]
