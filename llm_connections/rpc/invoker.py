"""Procedure invoker negotiating the envelope format with the backend."""

from __future__ import annotations

import logging
from typing import Any

from llm_connections.rpc.auth import redact_mapping
from llm_connections.rpc.envelopes import (
    EnvelopeFormat,
    decode_response,
    encode_request,
    procedure_method,
)
from llm_connections.rpc.errors import (
    AttemptRecord,
    ConfigurationError,
    ExhaustionError,
    TransportError,
)
from llm_connections.rpc.transport import HttpTransport
from llm_connections.shared.settings import DEFAULT_RPC_PATH

logger = logging.getLogger(__name__)

NEGOTIATION_ORDER: tuple[EnvelopeFormat, ...] = (
    EnvelopeFormat.DIRECT,
    EnvelopeFormat.BATCH,
    EnvelopeFormat.LEGACY,
)


def project_headers(project_id: str) -> dict[str, str]:
    return {"x-project": project_id, "x-project-id": project_id}


class ProcedureInvoker:
    """Calls a procedure once per envelope format until one succeeds.

    Attempts run strictly in ``NEGOTIATION_ORDER`` and each format is tried
    at most once. A transport failure or an application error on one
    attempt is recorded and the next format is tried; only when every
    format has failed is an ``ExhaustionError`` raised.
    """

    def __init__(
        self,
        transport: HttpTransport,
        rpc_path: str = DEFAULT_RPC_PATH,
        order: tuple[EnvelopeFormat, ...] = NEGOTIATION_ORDER,
    ) -> None:
        if not order:
            raise ValueError("negotiation order must name at least one envelope format")
        self.transport = transport
        self.rpc_path = rpc_path
        self.order = order

    async def invoke(
        self,
        procedure: str,
        payload: dict[str, Any],
        *,
        project_id: str,
        timeout_s: float | None = None,
    ) -> Any:
        if not project_id:
            raise ConfigurationError("projectId is required", field="projectId")

        method = procedure_method(procedure)
        headers = {
            "accept": "application/json",
            "content-type": "application/json",
            **project_headers(project_id),
        }
        attempts: list[AttemptRecord] = []
        last_status: int | None = None

        logger.debug("invoke %s (%s) payload=%s", procedure, method, redact_mapping(payload))
        for envelope in self.order:
            request = encode_request(
                envelope, procedure, payload, method=method, rpc_path=self.rpc_path
            )
            try:
                response = await self.transport.send(
                    "POST",
                    request.path,
                    headers=headers,
                    json=request.body,
                    params=request.params,
                    timeout_s=timeout_s,
                )
            except TransportError as exc:
                logger.debug("%s envelope %s: transport failure", procedure, envelope.value)
                attempts.append(
                    AttemptRecord(
                        envelope=envelope.value,
                        status=None,
                        message=str(exc),
                        error_kind="transport",
                    )
                )
                continue

            last_status = response.status
            outcome = decode_response(envelope, response.text)
            if outcome.ok and response.ok:
                if attempts:
                    logger.info(
                        "%s succeeded with envelope %s after %d failed attempt(s)",
                        procedure,
                        envelope.value,
                        len(attempts),
                    )
                return outcome.value

            message = outcome.message
            if outcome.ok:
                message = f"unexpected HTTP {response.status} with a success body"
            logger.debug(
                "%s envelope %s: HTTP %s %s", procedure, envelope.value, response.status, message
            )
            attempts.append(
                AttemptRecord(
                    envelope=envelope.value,
                    status=response.status,
                    message=message,
                    error_kind="protocol",
                    structured=outcome.structured,
                )
            )

        error = ExhaustionError(
            procedure=procedure,
            status=last_status,
            detail=_best_message(attempts),
            attempts=attempts,
        )
        logger.warning("%s", error)
        raise error


def _best_message(attempts: list[AttemptRecord]) -> str:
    """Latest structured message, else the latest message of any kind."""

    for attempt in reversed(attempts):
        if attempt.structured:
            return attempt.message
    return attempts[-1].message if attempts else "no envelope format attempted"
