"""Account introspection payloads returned by ``GET /api/v1/whoami``."""

from __future__ import annotations

from collections.abc import Mapping
from typing import Annotated, Any, Literal, Optional

from pydantic import AfterValidator, BaseModel, ConfigDict, Field, ValidationError, field_validator


def _reject_blank(value: str) -> str:
    if not value.strip():
        raise ValueError("must not be blank")
    return value


NonBlankStr = Annotated[str, AfterValidator(_reject_blank)]


class _Payload(BaseModel):
    model_config = ConfigDict(frozen=True, populate_by_name=True, extra="ignore")


class WhoamiUser(_Payload):
    email_masked: NonBlankStr = Field(alias="emailMasked")
    email_verified: bool = Field(alias="emailVerified", strict=True)


class WhoamiApiKey(_Payload):
    name: Optional[str] = None
    masked_key: NonBlankStr = Field(alias="maskedKey")
    status: Literal["active", "disabled", "expired"]
    expires_at: Optional[str] = Field(alias="expiresAt")
    last_used: Optional[str] = Field(alias="lastUsed")

    @field_validator("name", mode="before")
    @classmethod
    def _blank_name_is_unnamed(cls, value: Any) -> Any:
        if isinstance(value, str) and value.strip():
            return value
        return None


class WhoamiBalance(_Payload):
    usd: NonBlankStr
    status: Literal["active", "low", "suspended"]


class WhoamiData(_Payload):
    user: WhoamiUser
    api_key: WhoamiApiKey = Field(alias="apiKey")
    balance: WhoamiBalance

    def to_payload(self) -> dict[str, Any]:
        return self.model_dump(by_alias=True)


class WhoamiErrorBody(_Payload):
    message: str
    status_code: float = Field(alias="statusCode")
    request_id: Optional[str] = Field(default=None, alias="requestId")
    timestamp: Optional[str] = None


def _optional_str(value: Any) -> Optional[str]:
    if isinstance(value, str) and value.strip():
        return value
    return None


def parse_whoami_data(body: Any) -> Optional[WhoamiData]:
    """Return the account data of a ``{"success": true, "data": ...}`` body.

    ``None`` means the body is malformed; a string ``emailVerified`` or an
    unknown key status does not validate.
    """

    if not isinstance(body, Mapping) or body.get("success") is not True:
        return None
    data = body.get("data")
    if not isinstance(data, Mapping):
        return None
    try:
        return WhoamiData.model_validate(data)
    except ValidationError:
        return None


def parse_whoami_error(body: Any) -> Optional[WhoamiErrorBody]:
    if not isinstance(body, Mapping) or body.get("success") is not False:
        return None
    err = body.get("error")
    if not isinstance(err, Mapping):
        return None

    message = _optional_str(err.get("message"))
    status_code = err.get("statusCode")
    if message is None:
        return None
    if isinstance(status_code, bool) or not isinstance(status_code, (int, float)):
        return None
    if status_code != status_code or status_code in (float("inf"), float("-inf")):
        return None

    return WhoamiErrorBody(
        message=message,
        status_code=status_code,
        request_id=_optional_str(err.get("requestId")),
        timestamp=_optional_str(err.get("timestamp")),
    )


__all__ = [
    "WhoamiApiKey",
    "WhoamiBalance",
    "WhoamiData",
    "WhoamiErrorBody",
    "WhoamiUser",
    "parse_whoami_data",
    "parse_whoami_error",
]
