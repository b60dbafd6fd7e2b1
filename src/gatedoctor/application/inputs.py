"""Validation of resolved settings before any request is made."""

from __future__ import annotations

from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from dataclasses import dataclass
from typing import Optional

import httpx

from gatedoctor.config.settings import DoctorSettings
from gatedoctor.domain.urls import NormalizedBaseUrl, normalize_base_url
from gatedoctor.infrastructure.errors import (
    InputValidationError,
    MissingApiKeyError,
    MissingModelError,
)
from gatedoctor.integrations.http import auth_headers, create_client, validate_timeout_ms

MSG_MISSING_MODEL = "model is required; set --model or GATEDOCTOR_MODEL"
MSG_MISSING_API_KEY = "API key is required; set GATEDOCTOR_API_KEY or pass --api-key"


@dataclass(frozen=True)
class ResolvedInputs:
    base: NormalizedBaseUrl
    timeout_ms: float
    model: Optional[str]
    api_key: Optional[str]
    default_usage_fee_rate: float
    warnings: tuple[str, ...] = ()

    @property
    def base_url(self) -> str:
        return self.base.api_base

    @property
    def has_api_key(self) -> bool:
        return bool(self.api_key)

    def auth_headers(self) -> dict[str, str]:
        return auth_headers(self.api_key)


def resolve_inputs(
    settings: DoctorSettings,
    *,
    require_model: bool = False,
    require_api_key: bool = False,
) -> ResolvedInputs:
    """Validate in a fixed order: base URL, model, timeout, API key.

    The first problem raises an :class:`InputValidationError`; errors raised
    after the base URL was normalized carry ``base_url`` and ``warnings``.
    """

    base = normalize_base_url(settings.base_url)
    warnings = base.warnings + tuple(settings.warnings)
    model = (settings.model or "").strip() or None
    api_key = (settings.api_key or "").strip() or None

    try:
        if require_model and model is None:
            raise MissingModelError(MSG_MISSING_MODEL)
        timeout_ms = validate_timeout_ms(settings.timeout_ms)
        if require_api_key and api_key is None:
            raise MissingApiKeyError(MSG_MISSING_API_KEY)
    except InputValidationError as exc:
        exc.base_url = base.api_base
        exc.warnings = warnings
        raise

    return ResolvedInputs(
        base=base,
        timeout_ms=timeout_ms,
        model=model,
        api_key=api_key,
        default_usage_fee_rate=settings.default_usage_fee_rate,
        warnings=warnings,
    )


@asynccontextmanager
async def client_scope(client: Optional[httpx.AsyncClient]) -> AsyncIterator[httpx.AsyncClient]:
    """Yield ``client`` untouched, or a fresh client that is closed on exit."""

    if client is not None:
        yield client
        return
    async with create_client() as owned:
        yield owned


__all__ = [
    "MSG_MISSING_API_KEY",
    "MSG_MISSING_MODEL",
    "ResolvedInputs",
    "client_scope",
    "resolve_inputs",
]
