"""API key introspection (``whoami`` command)."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Final

import httpx

from gatedoctor.application.inputs import client_scope, resolve_inputs
from gatedoctor.application.reporting import CommandFailure, ReportError
from gatedoctor.config.settings import DoctorSettings
from gatedoctor.domain.exit_codes import UPSTREAM_ERROR, ExitCode
from gatedoctor.domain.whoami import WhoamiData, parse_whoami_data, parse_whoami_error
from gatedoctor.infrastructure.errors import ErrorCode
from gatedoctor.infrastructure.logging import BoundLogger, get_logger, log_event
from gatedoctor.integrations.http import ProbeOutcome, TransportErrorKind, probe

WHOAMI_PATH: Final = "/api/v1/whoami"

MSG_NOT_IMPLEMENTED: Final = "whoami endpoint not implemented on the backend"
MSG_INVALID_RESPONSE: Final = "invalid whoami response"


@dataclass(frozen=True)
class WhoamiReport:
    base_url: str
    warnings: tuple[str, ...]
    exit_code: ExitCode
    data: WhoamiData | None = None
    correlation_id: str | None = None
    failure: CommandFailure | None = None
    request_id: str | None = None
    timestamp: str | None = None

    @property
    def ok(self) -> bool:
        return self.exit_code is ExitCode.OK

    def to_payload(self) -> dict[str, Any]:
        if self.failure is not None:
            payload: dict[str, Any] = {
                "ok": False,
                "baseUrl": self.base_url,
                "error": self.failure.error.to_payload(),
            }
            if self.request_id:
                payload["requestId"] = self.request_id
            if self.timestamp:
                payload["timestamp"] = self.timestamp
            return payload

        payload = {"ok": True, "baseUrl": self.base_url, "warnings": list(self.warnings)}
        if self.data is not None:
            payload.update(self.data.to_payload())
        return payload


def _classify(outcome: ProbeOutcome) -> tuple[CommandFailure | None, dict[str, Any]]:
    """Return the failure (if any) and extra report fields for the outcome."""

    if not outcome.succeeded:
        error = outcome.transport_error
        message = error.describe() if error else "request failed"
        exit_code = (
            UPSTREAM_ERROR
            if outcome.error_kind is TransportErrorKind.INVALID_JSON
            else ExitCode.BASE_URL_UNREACHABLE
        )
        failure = CommandFailure(
            ReportError(ErrorCode.WHOAMI_UNREACHABLE, message),
            exit_code,
            f"whoami request failed: {message}",
        )
        return failure, {}

    status = outcome.http_status
    if status == 404:
        failure = CommandFailure(
            ReportError(ErrorCode.NOT_IMPLEMENTED, MSG_NOT_IMPLEMENTED),
            UPSTREAM_ERROR,
            "whoami endpoint is not implemented on this backend.\n"
            f"Expected: GET {WHOAMI_PATH}",
        )
        return failure, {}

    if status != 200:
        api_error = parse_whoami_error(outcome.body)
        extra = {
            "request_id": (api_error.request_id if api_error else None) or outcome.correlation_id,
            "timestamp": api_error.timestamp if api_error else None,
        }
        if status == 401:
            message = api_error.message if api_error else "Unauthorized"
            failure = CommandFailure(
                ReportError(ErrorCode.AUTH_ERROR, message),
                ExitCode.AUTH_ERROR,
                f"{message}. Check your API key.",
            )
        else:
            message = api_error.message if api_error else f"unexpected status {status}"
            failure = CommandFailure(
                ReportError(ErrorCode.WHOAMI_ERROR, message),
                UPSTREAM_ERROR,
                f"whoami failed: {message}",
            )
        return failure, extra

    data = parse_whoami_data(outcome.body)
    if data is None:
        failure = CommandFailure(
            ReportError(ErrorCode.WHOAMI_ERROR, MSG_INVALID_RESPONSE),
            UPSTREAM_ERROR,
            "Invalid whoami response.",
        )
        return failure, {}
    return None, {"data": data}


async def run_whoami(
    settings: DoctorSettings,
    *,
    client: httpx.AsyncClient | None = None,
    logger: BoundLogger | None = None,
) -> WhoamiReport:
    inputs = resolve_inputs(settings, require_api_key=True)
    log = logger or get_logger("gatedoctor.whoami")

    async with client_scope(client) as http:
        outcome = await probe(
            http,
            inputs.base.at_origin(WHOAMI_PATH),
            headers=inputs.auth_headers(),
            timeout_ms=inputs.timeout_ms,
            logger=log,
        )

    failure, extra = _classify(outcome)
    if failure is not None:
        log_event(log, "whoami.failed", code=failure.error.code.value, status=outcome.http_status)
    return WhoamiReport(
        base_url=inputs.base_url,
        warnings=inputs.warnings,
        exit_code=failure.exit_code if failure else ExitCode.OK,
        correlation_id=outcome.correlation_id,
        failure=failure,
        **extra,
    )


__all__ = ["WHOAMI_PATH", "WhoamiReport", "run_whoami"]
