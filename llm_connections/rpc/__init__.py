"""Envelope negotiation layer: transport, codec, and procedure invoker."""

from llm_connections.rpc.envelopes import EnvelopeFormat, decode_response, encode_request
from llm_connections.rpc.errors import (
    AttemptRecord,
    ConfigurationError,
    ConnectionClientError,
    ExhaustionError,
    ProtocolError,
    TransportError,
    UpsertCompoundError,
)
from llm_connections.rpc.invoker import NEGOTIATION_ORDER, ProcedureInvoker
from llm_connections.rpc.transport import HttpTransport, RawResponse

__all__ = [
    "AttemptRecord",
    "ConfigurationError",
    "ConnectionClientError",
    "EnvelopeFormat",
    "ExhaustionError",
    "HttpTransport",
    "NEGOTIATION_ORDER",
    "ProcedureInvoker",
    "ProtocolError",
    "RawResponse",
    "TransportError",
    "UpsertCompoundError",
    "decode_response",
    "encode_request",
]
