"""Exit code resolution.

The priority order is fixed: an unreachable gateway always wins over an
authentication problem, which wins over a missing model, which wins over a
pricing problem. Operators fix connectivity first.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import IntEnum

from gatedoctor.infrastructure.errors import ErrorCode


class ExitCode(IntEnum):
    OK = 0
    INVALID_INPUT = 2
    BASE_URL_UNREACHABLE = 10
    AUTH_ERROR = 11
    MODEL_NOT_FOUND = 12
    PRICING_ERROR = 13


# commands without a pricing concern reuse 13 for any other upstream failure
UPSTREAM_ERROR = ExitCode.PRICING_ERROR


@dataclass(frozen=True)
class ExitSignal:
    invalid_args: bool = False
    base_url_unreachable: bool = False
    auth_error: bool = False
    model_not_found: bool = False
    pricing_error: bool = False


def resolve_exit_code(signal: ExitSignal) -> ExitCode:
    if signal.invalid_args:
        return ExitCode.INVALID_INPUT
    if signal.base_url_unreachable:
        return ExitCode.BASE_URL_UNREACHABLE
    if signal.auth_error:
        return ExitCode.AUTH_ERROR
    if signal.model_not_found:
        return ExitCode.MODEL_NOT_FOUND
    if signal.pricing_error:
        return ExitCode.PRICING_ERROR
    return ExitCode.OK


_ERROR_CODES = {
    ExitCode.BASE_URL_UNREACHABLE: ErrorCode.BASE_URL_UNREACHABLE,
    ExitCode.AUTH_ERROR: ErrorCode.AUTH_ERROR,
    ExitCode.MODEL_NOT_FOUND: ErrorCode.MODEL_NOT_FOUND,
    ExitCode.PRICING_ERROR: ErrorCode.PRICING_ERROR,
}


def error_code_for(exit_code: ExitCode) -> ErrorCode:
    return _ERROR_CODES.get(exit_code, ErrorCode.UNKNOWN)


__all__ = [
    "UPSTREAM_ERROR",
    "ExitCode",
    "ExitSignal",
    "error_code_for",
    "resolve_exit_code",
]
