"""Model catalog and pricing lookups (``models`` and ``pricing`` commands)."""

from __future__ import annotations

import asyncio
from dataclasses import dataclass
from typing import Any, Final

import httpx

from gatedoctor.application.diagnostics import MODELS_PATH, PUBLIC_PRICING_PATH
from gatedoctor.application.inputs import client_scope, resolve_inputs
from gatedoctor.application.reporting import CommandFailure, ReportError
from gatedoctor.config.settings import DoctorSettings
from gatedoctor.domain.exit_codes import ExitCode
from gatedoctor.domain.models_list import ModelInfo, parse_model_infos
from gatedoctor.domain.pricing import (
    EstimatedCost,
    PricingIndex,
    parse_pricing_for_model,
    parse_pricing_index,
)
from gatedoctor.infrastructure.errors import (
    ErrorCode,
    PricingNotFoundError,
    ShapeError,
)
from gatedoctor.infrastructure.logging import BoundLogger, get_logger, log_event
from gatedoctor.integrations.http import ProbeOutcome, probe

MSG_UNAUTHORIZED: Final = "unauthorized (check API key)"
MSG_FORBIDDEN: Final = "forbidden (account may be suspended)"


def _transport_message(outcome: ProbeOutcome) -> str:
    error = outcome.transport_error
    return error.describe() if error else "request failed"


@dataclass(frozen=True)
class CatalogEntry:
    info: ModelInfo
    pricing: EstimatedCost | None = None

    def to_payload(self) -> dict[str, Any]:
        payload = self.info.model_dump(by_alias=True, exclude_none=True)
        payload["pricing"] = self.pricing.to_payload() if self.pricing else None
        return payload


@dataclass(frozen=True)
class ModelsReport:
    base_url: str
    warnings: tuple[str, ...]
    exit_code: ExitCode
    entries: tuple[CatalogEntry, ...] = ()
    pricing_index: PricingIndex | None = None
    pricing_problem: str | None = None
    error: ReportError | None = None
    failure: CommandFailure | None = None

    @property
    def ok(self) -> bool:
        return self.exit_code is ExitCode.OK

    @property
    def missing_pricing(self) -> list[str]:
        return [entry.info.id for entry in self.entries if entry.pricing is None]

    def to_payload(self) -> dict[str, Any]:
        if self.failure is not None:
            return {
                "ok": False,
                "baseUrl": self.base_url,
                "error": self.failure.error.to_payload(),
            }
        payload: dict[str, Any] = {
            "ok": self.ok,
            "baseUrl": self.base_url,
            "warnings": list(self.warnings),
        }
        if self.pricing_index is not None and self.pricing_index.updated_at:
            payload["pricingUpdatedAt"] = self.pricing_index.updated_at
        payload["models"] = [entry.to_payload() for entry in self.entries]
        if self.error is not None:
            payload["error"] = self.error.to_payload()
        return payload


def _models_failure(outcome: ProbeOutcome) -> CommandFailure | None:
    if not outcome.succeeded:
        message = _transport_message(outcome)
        return CommandFailure(
            ReportError(ErrorCode.MODELS_UNREACHABLE, message),
            ExitCode.BASE_URL_UNREACHABLE,
            f"Models request failed: {message}",
        )
    status = outcome.http_status
    if status == 401:
        return CommandFailure(
            ReportError(ErrorCode.AUTH_ERROR, MSG_UNAUTHORIZED),
            ExitCode.AUTH_ERROR,
            "Unauthorized. Check your API key.",
        )
    if status == 403:
        return CommandFailure(
            ReportError(ErrorCode.AUTH_ERROR, MSG_FORBIDDEN),
            ExitCode.AUTH_ERROR,
            "Forbidden. Account may be suspended.",
        )
    if status != 200:
        return CommandFailure(
            ReportError(ErrorCode.MODELS_ERROR, f"unexpected status {status}"),
            ExitCode.BASE_URL_UNREACHABLE,
            f"Models endpoint returned unexpected status {status}",
        )
    return None


def _load_pricing_index(
    outcome: ProbeOutcome,
    default_usage_fee_rate: float,
) -> tuple[PricingIndex | None, str | None, str | None]:
    """Return ``(index, json message, human line)``; messages only on failure."""

    if not outcome.succeeded:
        message = _transport_message(outcome)
        return None, f"pricing request failed: {message}", f"unreachable: {message}"
    if outcome.http_status != 200:
        status = outcome.http_status
        return (
            None,
            f"pricing returned unexpected status {status}",
            f"unexpected status: {status}",
        )
    try:
        index = parse_pricing_index(outcome.body, default_usage_fee_rate)
    except ShapeError as exc:
        return None, exc.message, f"invalid response: {exc.message}"
    return index, None, None


async def run_models(
    settings: DoctorSettings,
    *,
    client: httpx.AsyncClient | None = None,
    logger: BoundLogger | None = None,
) -> ModelsReport:
    """List the gateway's models joined with their published pricing."""

    inputs = resolve_inputs(settings, require_api_key=True)
    log = logger or get_logger("gatedoctor.models")

    async with client_scope(client) as http:
        models_res, pricing_res = await asyncio.gather(
            probe(
                http,
                inputs.base.join(MODELS_PATH),
                headers=inputs.auth_headers(),
                timeout_ms=inputs.timeout_ms,
                logger=log,
            ),
            probe(
                http,
                inputs.base.at_origin(PUBLIC_PRICING_PATH),
                timeout_ms=inputs.timeout_ms,
                logger=log,
            ),
        )

    failure = _models_failure(models_res)
    if failure is None:
        try:
            infos = parse_model_infos(models_res.body)
        except ShapeError as exc:
            failure = CommandFailure(
                ReportError(ErrorCode.MODELS_ERROR, exc.message),
                ExitCode.BASE_URL_UNREACHABLE,
                exc.message,
            )
    if failure is not None:
        log_event(log, "models.failed", code=failure.error.code.value)
        return ModelsReport(
            base_url=inputs.base_url,
            warnings=inputs.warnings,
            exit_code=failure.exit_code,
            failure=failure,
        )

    index, pricing_message, pricing_problem = _load_pricing_index(
        pricing_res, inputs.default_usage_fee_rate
    )
    entries = tuple(
        CatalogEntry(info=info, pricing=index.get(info.id) if index else None)
        for info in infos
    )
    missing = [entry.info.id for entry in entries if entry.pricing is None]
    if index is not None and missing:
        pricing_message = f"pricing missing for {len(missing)} model(s)"
        pricing_problem = f"missing entries: {len(missing)} model(s)"

    ok = index is not None and not missing
    log_event(log, "models.listed", count=len(entries), missing_pricing=len(missing))
    return ModelsReport(
        base_url=inputs.base_url,
        warnings=inputs.warnings,
        exit_code=ExitCode.OK if ok else ExitCode.PRICING_ERROR,
        entries=entries,
        pricing_index=index,
        pricing_problem=None if ok else pricing_problem,
        error=None if ok else ReportError(ErrorCode.PRICING_ERROR, pricing_message or ""),
    )


@dataclass(frozen=True)
class PricingReport:
    base_url: str
    warnings: tuple[str, ...]
    model: str
    exit_code: ExitCode
    estimated: EstimatedCost | None = None
    failure: CommandFailure | None = None

    @property
    def ok(self) -> bool:
        return self.exit_code is ExitCode.OK

    def to_payload(self) -> dict[str, Any]:
        if self.failure is not None:
            return {
                "ok": False,
                "baseUrl": self.base_url,
                "error": self.failure.error.to_payload(),
            }
        return {
            "ok": True,
            "baseUrl": self.base_url,
            "model": self.model,
            "pricing": self.estimated.to_payload() if self.estimated else None,
            "warnings": list(self.warnings),
        }


def _pricing_failure(
    outcome: ProbeOutcome,
    model: str,
    default_rate: float,
) -> tuple[CommandFailure | None, EstimatedCost | None]:
    if not outcome.succeeded:
        message = _transport_message(outcome)
        return CommandFailure(
            ReportError(ErrorCode.PRICING_UNREACHABLE, message),
            ExitCode.PRICING_ERROR,
            f"Pricing request failed: {message}",
        ), None
    if outcome.http_status != 200:
        status = outcome.http_status
        return CommandFailure(
            ReportError(ErrorCode.PRICING_ERROR, f"unexpected status {status}"),
            ExitCode.PRICING_ERROR,
            f"Pricing endpoint returned unexpected status {status}",
        ), None
    try:
        estimated = parse_pricing_for_model(outcome.body, model, default_rate)
    except PricingNotFoundError as exc:
        return CommandFailure(
            ReportError(ErrorCode.MODEL_NOT_FOUND, exc.message),
            ExitCode.MODEL_NOT_FOUND,
            exc.message,
        ), None
    except ShapeError as exc:
        return CommandFailure(
            ReportError(ErrorCode.PRICING_ERROR, exc.message),
            ExitCode.PRICING_ERROR,
            exc.message,
        ), None
    return None, estimated


async def run_pricing(
    settings: DoctorSettings,
    *,
    client: httpx.AsyncClient | None = None,
    logger: BoundLogger | None = None,
) -> PricingReport:
    """Look up the published per-1M-token price of one model."""

    inputs = resolve_inputs(settings, require_model=True)
    model = inputs.model or ""
    log = logger or get_logger("gatedoctor.pricing")

    async with client_scope(client) as http:
        outcome = await probe(
            http,
            inputs.base.at_origin(PUBLIC_PRICING_PATH),
            timeout_ms=inputs.timeout_ms,
            logger=log,
        )

    failure, estimated = _pricing_failure(outcome, model, inputs.default_usage_fee_rate)
    return PricingReport(
        base_url=inputs.base_url,
        warnings=inputs.warnings,
        model=model,
        exit_code=failure.exit_code if failure else ExitCode.OK,
        estimated=estimated,
        failure=failure,
    )


__all__ = [
    "CatalogEntry",
    "ModelsReport",
    "PricingReport",
    "run_models",
    "run_pricing",
]
