"""Error taxonomy shared by the domain, application and CLI layers."""

from __future__ import annotations

from enum import Enum
from typing import Optional, Tuple


class ErrorCode(str, Enum):
    """Stable identifiers surfaced as ``error.code`` in JSON reports."""

    INVALID_BASE_URL = "INVALID_BASE_URL"
    MISSING_MODEL = "MISSING_MODEL"
    INVALID_TIMEOUT = "INVALID_TIMEOUT"
    MISSING_API_KEY = "MISSING_API_KEY"
    BASE_URL_UNREACHABLE = "BASE_URL_UNREACHABLE"
    AUTH_ERROR = "AUTH_ERROR"
    MODEL_NOT_FOUND = "MODEL_NOT_FOUND"
    PRICING_ERROR = "PRICING_ERROR"
    MODELS_UNREACHABLE = "MODELS_UNREACHABLE"
    MODELS_ERROR = "MODELS_ERROR"
    PRICING_UNREACHABLE = "PRICING_UNREACHABLE"
    WHOAMI_UNREACHABLE = "WHOAMI_UNREACHABLE"
    WHOAMI_ERROR = "WHOAMI_ERROR"
    NOT_IMPLEMENTED = "NOT_IMPLEMENTED"
    UNKNOWN = "UNKNOWN"


class GatewayDoctorError(Exception):
    """Base class for errors raised by gatedoctor itself."""

    code: str = "error"

    def __init__(self, message: str, *, code: Optional[str] = None) -> None:
        super().__init__(message)
        self.message = message
        if code is not None:
            self.code = code


class InputValidationError(GatewayDoctorError):
    """Invalid user input. Always fatal, always raised before any request."""

    error_code: ErrorCode = ErrorCode.UNKNOWN
    human_message: str = ""
    # filled in once the base URL has been normalized
    base_url: Optional[str] = None
    warnings: Tuple[str, ...] = ()

    @property
    def user_message(self) -> str:
        return self.human_message or self.message


class InvalidBaseUrlError(InputValidationError):
    code = "invalid_url"
    error_code = ErrorCode.INVALID_BASE_URL

    def __init__(self, message: str, *, suggested_base_url: Optional[str] = None) -> None:
        super().__init__(message)
        self.suggested_base_url = suggested_base_url

    @property
    def user_message(self) -> str:
        return f"Invalid base URL: {self.message}"


class MissingModelError(InputValidationError):
    code = "missing_model"
    error_code = ErrorCode.MISSING_MODEL
    human_message = "Model is required. Provide --model <id> or set GATEDOCTOR_MODEL."


class InvalidTimeoutError(InputValidationError):
    code = "invalid_timeout"
    error_code = ErrorCode.INVALID_TIMEOUT
    human_message = "Invalid --timeout: must be a positive number of milliseconds."


class MissingApiKeyError(InputValidationError):
    code = "missing_api_key"
    error_code = ErrorCode.MISSING_API_KEY
    human_message = "API key is required. Set GATEDOCTOR_API_KEY or pass --api-key."


class ShapeError(GatewayDoctorError):
    """A response body did not match any shape the gateway is known to use."""


class ModelsListInvalidError(ShapeError):
    code = "models_list_invalid"


class PricingPayloadInvalidError(ShapeError):
    code = "pricing_payload_invalid"


class PricingNotFoundError(ShapeError):
    code = "pricing_not_found"

    def __init__(self, model_id: str) -> None:
        super().__init__(f"no pricing found for model {model_id}")
        self.model_id = model_id


__all__ = [
    "ErrorCode",
    "GatewayDoctorError",
    "InputValidationError",
    "InvalidBaseUrlError",
    "InvalidTimeoutError",
    "MissingApiKeyError",
    "MissingModelError",
    "ModelsListInvalidError",
    "PricingNotFoundError",
    "PricingPayloadInvalidError",
    "ShapeError",
]
