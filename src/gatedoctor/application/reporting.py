"""Payload pieces shared by every command report."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any

from gatedoctor.domain.exit_codes import ExitCode
from gatedoctor.infrastructure.errors import ErrorCode, InputValidationError


@dataclass(frozen=True)
class ReportError:
    code: ErrorCode
    message: str

    def to_payload(self) -> dict[str, str]:
        return {"code": self.code.value, "message": self.message}


@dataclass(frozen=True)
class CommandFailure:
    """A command that could not produce its normal output."""

    error: ReportError
    exit_code: ExitCode
    human_message: str


def input_error_payload(exc: InputValidationError, **extra: Any) -> dict[str, Any]:
    """JSON body for a command rejected before any request was made.

    ``baseUrl`` is only present when the base URL itself was valid.
    """

    payload: dict[str, Any] = {"ok": False}
    if exc.base_url is not None:
        payload["baseUrl"] = exc.base_url
    payload["warnings"] = list(exc.warnings)
    payload.update(extra)
    payload["error"] = ReportError(exc.error_code, exc.message).to_payload()
    return payload


__all__ = ["CommandFailure", "ReportError", "input_error_payload"]
