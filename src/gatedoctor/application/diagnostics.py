"""Gateway diagnostics.

``run_doctor`` fires four probes concurrently (liveness, model catalog, chat
route, pricing), classifies each outcome into a :class:`DiagnosticCheck`,
derives the ``modelExists`` check from the catalog, and reduces the finished
checks to an :class:`ExitSignal`. Classification and aggregation are pure
functions so they can be exercised without any HTTP mocking.
"""

from __future__ import annotations

import asyncio
from collections.abc import Iterable, Mapping
from dataclasses import asdict, dataclass
from enum import Enum
from typing import Any, Final

import httpx
from pydantic import BaseModel, ConfigDict, Field

from gatedoctor.application.inputs import ResolvedInputs, client_scope, resolve_inputs
from gatedoctor.application.reporting import ReportError
from gatedoctor.config.settings import DoctorSettings
from gatedoctor.domain.exit_codes import ExitCode, ExitSignal, error_code_for, resolve_exit_code
from gatedoctor.domain.models_list import parse_model_catalog
from gatedoctor.domain.openai_error import (
    format_openai_error,
    is_insufficient_quota,
    is_invalid_model,
    parse_openai_error,
)
from gatedoctor.domain.pricing import EstimatedCost, parse_pricing_for_model
from gatedoctor.domain.suggest import suggest_models
from gatedoctor.infrastructure.errors import ShapeError
from gatedoctor.infrastructure.logging import (
    BoundLogger,
    get_logger,
    log_check_event,
    log_event,
)
from gatedoctor.integrations.http import ProbeOutcome, TransportErrorKind, probe

HEALTH_PATH: Final = "/health"
MODELS_PATH: Final = "/models"
CHAT_COMPLETIONS_PATH: Final = "/chat/completions"
PUBLIC_PRICING_PATH: Final = "/api/v1/public/pricing"
AUTH_PRICING_PATH: Final = "/api/v1/pricing"

REACHABILITY_BODY: Final = "{}"
SMOKE_PROMPT: Final = "ping"

HINT_REQUEST_FAILED: Final = "request failed"
HINT_HEALTH_NOT_IMPLEMENTED: Final = "not implemented (404)"
HINT_UNAUTHORIZED: Final = "unauthorized (check API key)"
HINT_FORBIDDEN: Final = "forbidden (account may be suspended)"
HINT_MODELS_NOT_FOUND: Final = "not found (baseUrl likely incorrect; must end with /v1)"
HINT_ROUTE_MISSING: Final = "not found (route missing)"
HINT_SMOKE_OK: Final = "smoke ok (max_tokens=1)"
HINT_QUOTA_GENERIC: Final = "insufficient balance (insufficient_quota)"
HINT_SMOKE_BAD_REQUEST: Final = "bad request (unexpected for smoke)"
HINT_MODELS_UNAVAILABLE: Final = "skipped (models list unavailable)"
HINT_MODEL_NOT_FOUND: Final = "model not found"
HINT_PRICING_NOT_FOUND: Final = "not found"

MSG_DOCTOR_FAILED: Final = "doctor checks failed"


class CheckName(str, Enum):
    CONNECTIVITY = "connectivity"
    MODELS_LIST = "modelsList"
    CHAT_ROUTE = "chatRoute"
    MODEL_EXISTS = "modelExists"
    PRICING = "pricing"


class Verdict(str, Enum):
    OK = "ok"
    FAILED = "failed"
    SKIPPED = "skipped"


class Finding(str, Enum):
    """Why a check ended the way it did; feeds signal aggregation only."""

    TRANSPORT = "transport"
    NOT_FOUND = "not_found"
    SERVER_ERROR = "server_error"
    INVALID_PAYLOAD = "invalid_payload"
    UNAUTHORIZED = "unauthorized"
    FORBIDDEN = "forbidden"
    INVALID_MODEL = "invalid_model"
    INSUFFICIENT_QUOTA = "insufficient_quota"
    BAD_REQUEST = "bad_request"
    UNEXPECTED_STATUS = "unexpected_status"
    MODEL_MISSING = "model_missing"


AUTH_FINDINGS: Final = frozenset({Finding.UNAUTHORIZED, Finding.FORBIDDEN})
UNREACHABLE_CATALOG_FINDINGS: Final = frozenset(
    {
        Finding.TRANSPORT,
        Finding.NOT_FOUND,
        Finding.SERVER_ERROR,
        Finding.INVALID_PAYLOAD,
        Finding.UNEXPECTED_STATUS,
    }
)
CHAT_FAILURES_NOT_UNREACHABLE: Final = AUTH_FINDINGS | {Finding.INVALID_MODEL}


class DiagnosticCheck(BaseModel):
    """One named check. Built once from its probe outcome, never mutated."""

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    name: CheckName
    verdict: Verdict
    http_status: int | None = Field(default=None, alias="httpStatus")
    elapsed_ms: int | None = Field(default=None, alias="elapsedMs")
    correlation_id: str | None = Field(default=None, alias="correlationId")
    hint: str | None = None
    model: str | None = None
    suggestions: tuple[str, ...] | None = None

    finding: Finding | None = Field(default=None, exclude=True)
    transport_error_kind: TransportErrorKind | None = Field(default=None, exclude=True)

    @property
    def ok(self) -> bool:
        return self.verdict is not Verdict.FAILED

    @property
    def failed(self) -> bool:
        return self.verdict is Verdict.FAILED

    @property
    def skipped(self) -> bool:
        return self.verdict is Verdict.SKIPPED

    def to_payload(self) -> dict[str, Any]:
        payload: dict[str, Any] = {
            "name": self.name.value,
            "verdict": self.verdict.value,
            "ok": self.ok,
        }
        if self.skipped:
            payload["skipped"] = True
        payload.update(
            self.model_dump(
                by_alias=True,
                exclude_none=True,
                exclude={"name", "verdict"},
                mode="json",
            )
        )
        return payload


def _probe_fields(outcome: ProbeOutcome) -> dict[str, Any]:
    return {
        "http_status": outcome.http_status,
        "elapsed_ms": outcome.elapsed_ms,
        "correlation_id": outcome.correlation_id,
    }


def _transport_failure(name: CheckName, outcome: ProbeOutcome) -> DiagnosticCheck:
    error = outcome.transport_error
    return DiagnosticCheck(
        name=name,
        verdict=Verdict.FAILED,
        hint=error.describe() if error else HINT_REQUEST_FAILED,
        finding=Finding.TRANSPORT,
        transport_error_kind=outcome.error_kind,
        **_probe_fields(outcome),
    )


def classify_connectivity(outcome: ProbeOutcome) -> DiagnosticCheck:
    if not outcome.succeeded:
        return _transport_failure(CheckName.CONNECTIVITY, outcome)

    status = outcome.http_status
    fields = _probe_fields(outcome)
    if status == 404:
        return DiagnosticCheck(
            name=CheckName.CONNECTIVITY,
            verdict=Verdict.SKIPPED,
            hint=HINT_HEALTH_NOT_IMPLEMENTED,
            finding=Finding.NOT_FOUND,
            **fields,
        )
    if status in (200, 204):
        return DiagnosticCheck(name=CheckName.CONNECTIVITY, verdict=Verdict.OK, **fields)
    return DiagnosticCheck(
        name=CheckName.CONNECTIVITY,
        verdict=Verdict.FAILED,
        hint=f"unexpected status {status}",
        finding=Finding.UNEXPECTED_STATUS,
        **fields,
    )


def classify_models_list(outcome: ProbeOutcome) -> tuple[DiagnosticCheck, list[str] | None]:
    """Classify the catalog probe; the catalog is returned only on success."""

    if not outcome.succeeded:
        return _transport_failure(CheckName.MODELS_LIST, outcome), None

    status = outcome.http_status
    fields = _probe_fields(outcome)
    if status == 200:
        try:
            catalog = parse_model_catalog(outcome.body)
        except ShapeError as exc:
            check = DiagnosticCheck(
                name=CheckName.MODELS_LIST,
                verdict=Verdict.FAILED,
                hint=exc.message,
                finding=Finding.INVALID_PAYLOAD,
                **fields,
            )
            return check, None
        return DiagnosticCheck(name=CheckName.MODELS_LIST, verdict=Verdict.OK, **fields), catalog

    if status == 401:
        hint, finding = HINT_UNAUTHORIZED, Finding.UNAUTHORIZED
    elif status == 403:
        hint, finding = HINT_FORBIDDEN, Finding.FORBIDDEN
    elif status == 404:
        hint, finding = HINT_MODELS_NOT_FOUND, Finding.NOT_FOUND
    else:
        hint, finding = f"unexpected status {status}", Finding.UNEXPECTED_STATUS
    check = DiagnosticCheck(
        name=CheckName.MODELS_LIST,
        verdict=Verdict.FAILED,
        hint=hint,
        finding=finding,
        **fields,
    )
    return check, None


def _quota_hint(body: Any) -> str:
    err = parse_openai_error(body)
    balance = err.metadata.get("balance_usd") if err and err.metadata else None
    if isinstance(balance, str):
        return f"insufficient balance (balance_usd={balance})"
    return HINT_QUOTA_GENERIC


def _classify_smoke(outcome: ProbeOutcome, fields: Mapping[str, Any]) -> DiagnosticCheck:
    status = outcome.http_status
    body = outcome.body

    if status == 200:
        return DiagnosticCheck(
            name=CheckName.CHAT_ROUTE, verdict=Verdict.OK, hint=HINT_SMOKE_OK, **fields
        )
    if is_insufficient_quota(status, body):
        return DiagnosticCheck(
            name=CheckName.CHAT_ROUTE,
            verdict=Verdict.SKIPPED,
            hint=_quota_hint(body),
            finding=Finding.INSUFFICIENT_QUOTA,
            **fields,
        )

    described = format_openai_error(parse_openai_error(body))
    if status == 401:
        hint, finding = HINT_UNAUTHORIZED, Finding.UNAUTHORIZED
    elif status == 403:
        hint = f"forbidden - {described}" if described else HINT_FORBIDDEN
        finding = Finding.FORBIDDEN
    elif status == 400:
        hint = described or HINT_SMOKE_BAD_REQUEST
        finding = Finding.INVALID_MODEL if is_invalid_model(status, body) else Finding.BAD_REQUEST
    else:
        hint = (
            f"unexpected status {status} - {described}" if described else f"unexpected status {status}"
        )
        finding = Finding.UNEXPECTED_STATUS
    return DiagnosticCheck(
        name=CheckName.CHAT_ROUTE,
        verdict=Verdict.FAILED,
        hint=hint,
        finding=finding,
        **fields,
    )


def classify_chat_route(outcome: ProbeOutcome, *, smoke: bool = False) -> DiagnosticCheck:
    """Classify the chat-completions probe.

    Reachability mode only asks whether the route is wired up, so 401/403
    count as ok (while still recording the auth finding). Smoke mode sent a
    real completion and treats the same statuses as failures.
    """

    if not outcome.succeeded:
        return _transport_failure(CheckName.CHAT_ROUTE, outcome)

    status = outcome.http_status
    fields = _probe_fields(outcome)
    if status == 404:
        return DiagnosticCheck(
            name=CheckName.CHAT_ROUTE,
            verdict=Verdict.FAILED,
            hint=HINT_ROUTE_MISSING,
            finding=Finding.NOT_FOUND,
            **fields,
        )
    if status is not None and status >= 500:
        return DiagnosticCheck(
            name=CheckName.CHAT_ROUTE,
            verdict=Verdict.FAILED,
            hint=f"server error ({status})",
            finding=Finding.SERVER_ERROR,
            **fields,
        )
    if smoke:
        return _classify_smoke(outcome, fields)

    if status == 401:
        return DiagnosticCheck(
            name=CheckName.CHAT_ROUTE,
            verdict=Verdict.OK,
            hint=HINT_UNAUTHORIZED,
            finding=Finding.UNAUTHORIZED,
            **fields,
        )
    if status == 403:
        return DiagnosticCheck(
            name=CheckName.CHAT_ROUTE,
            verdict=Verdict.OK,
            hint=HINT_FORBIDDEN,
            finding=Finding.FORBIDDEN,
            **fields,
        )
    return DiagnosticCheck(name=CheckName.CHAT_ROUTE, verdict=Verdict.OK, **fields)


def derive_model_exists(model: str, catalog: list[str] | None) -> DiagnosticCheck:
    if catalog is None:
        return DiagnosticCheck(
            name=CheckName.MODEL_EXISTS,
            verdict=Verdict.SKIPPED,
            hint=HINT_MODELS_UNAVAILABLE,
            model=model,
        )
    if model in catalog:
        return DiagnosticCheck(name=CheckName.MODEL_EXISTS, verdict=Verdict.OK, model=model)
    return DiagnosticCheck(
        name=CheckName.MODEL_EXISTS,
        verdict=Verdict.FAILED,
        hint=HINT_MODEL_NOT_FOUND,
        model=model,
        suggestions=tuple(suggest_models(model, catalog)),
        finding=Finding.MODEL_MISSING,
    )


def classify_pricing(
    outcome: ProbeOutcome,
    model: str,
    default_usage_fee_rate: float,
) -> tuple[DiagnosticCheck, EstimatedCost | None]:
    if not outcome.succeeded:
        return _transport_failure(CheckName.PRICING, outcome), None

    status = outcome.http_status
    fields = _probe_fields(outcome)
    if status == 200:
        try:
            estimated = parse_pricing_for_model(outcome.body, model, default_usage_fee_rate)
        except ShapeError as exc:
            check = DiagnosticCheck(
                name=CheckName.PRICING,
                verdict=Verdict.FAILED,
                hint=exc.message,
                finding=Finding.INVALID_PAYLOAD,
                **fields,
            )
            return check, None
        return DiagnosticCheck(name=CheckName.PRICING, verdict=Verdict.OK, **fields), estimated

    if status == 401:
        hint, finding = HINT_UNAUTHORIZED, Finding.UNAUTHORIZED
    elif status == 404:
        hint, finding = HINT_PRICING_NOT_FOUND, Finding.NOT_FOUND
    else:
        hint, finding = f"unexpected status {status}", Finding.UNEXPECTED_STATUS
    check = DiagnosticCheck(
        name=CheckName.PRICING,
        verdict=Verdict.FAILED,
        hint=hint,
        finding=finding,
        **fields,
    )
    return check, None


def aggregate_signals(checks: Iterable[DiagnosticCheck]) -> ExitSignal:
    """Reduce finished checks to the flags that pick the exit code."""

    by_name = {check.name: check for check in checks}
    models = by_name.get(CheckName.MODELS_LIST)
    chat = by_name.get(CheckName.CHAT_ROUTE)
    exists = by_name.get(CheckName.MODEL_EXISTS)
    pricing = by_name.get(CheckName.PRICING)

    catalog_broken = bool(
        models and models.failed and models.finding in UNREACHABLE_CATALOG_FINDINGS
    )
    route_broken = bool(
        chat and chat.failed and chat.finding not in CHAT_FAILURES_NOT_UNREACHABLE
    )
    # reachability-mode 401/403 leave the chat check ok but still count here
    auth_error = any(
        check is not None and check.finding in AUTH_FINDINGS
        for check in (models, chat, pricing)
    )
    model_not_found = bool(exists and exists.failed) or bool(
        chat and chat.finding is Finding.INVALID_MODEL
    )
    pricing_error = bool(
        pricing and pricing.failed and pricing.finding is not Finding.UNAUTHORIZED
    )

    return ExitSignal(
        base_url_unreachable=catalog_broken or route_broken,
        auth_error=auth_error,
        model_not_found=model_not_found,
        pricing_error=pricing_error,
    )


def build_next_hints(
    inputs: ResolvedInputs,
    checks: Iterable[DiagnosticCheck],
    signal: ExitSignal,
    *,
    smoke: bool,
) -> list[str]:
    by_name = {check.name: check for check in checks}
    models = by_name.get(CheckName.MODELS_LIST)
    chat = by_name.get(CheckName.CHAT_ROUTE)

    hints = [f'Use base_url="{inputs.base_url}"']
    if signal.auth_error:
        smoke_denied = bool(
            smoke
            and chat is not None
            and chat.finding is Finding.FORBIDDEN
            and models is not None
            and models.http_status == 200
            and models.transport_error_kind is None
        )
        if not inputs.has_api_key:
            hints.append("Set GATEDOCTOR_API_KEY or pass --api-key")
        elif smoke_denied:
            hints.append(
                "Chat completions was denied (403 permission_denied). "
                "Try another model or retry later."
            )
        else:
            hints.append("Check API key and account permissions")

    if smoke and chat is not None and chat.failed and chat.finding not in AUTH_FINDINGS:
        if chat.transport_error_kind is TransportErrorKind.TIMEOUT:
            hints.append("Smoke request timed out. Try --timeout 30000 (or higher) or retry later.")
        elif chat.transport_error_kind is TransportErrorKind.NETWORK:
            hints.append("Smoke request failed due to a network error. Retry later.")
        else:
            hints.append("Smoke request failed. Try another model or retry later.")

    if signal.model_not_found:
        hints.append(
            "Pick a valid model id (see suggestions above or run doctor with a known model)"
        )
    return hints


@dataclass(frozen=True)
class DoctorReport:
    base_url: str
    warnings: tuple[str, ...]
    checks: tuple[DiagnosticCheck, ...]
    signal: ExitSignal
    exit_code: ExitCode
    estimated_cost: EstimatedCost | None = None
    next_hints: tuple[str, ...] = ()
    smoke: bool = False

    @property
    def ok(self) -> bool:
        return self.exit_code is ExitCode.OK

    @property
    def error(self) -> ReportError | None:
        if self.ok:
            return None
        return ReportError(error_code_for(self.exit_code), MSG_DOCTOR_FAILED)

    def check(self, name: CheckName) -> DiagnosticCheck | None:
        for candidate in self.checks:
            if candidate.name is name:
                return candidate
        return None

    def to_payload(self) -> dict[str, Any]:
        payload: dict[str, Any] = {
            "ok": self.ok,
            "baseUrl": self.base_url,
            "warnings": list(self.warnings),
            "checks": [check.to_payload() for check in self.checks],
        }
        if self.estimated_cost is not None:
            payload["estimatedCostPer1M"] = self.estimated_cost.to_payload()
        error = self.error
        if error is not None:
            payload["error"] = error.to_payload()
        return payload


def _smoke_body(model: str) -> dict[str, Any]:
    return {
        "model": model,
        "messages": [{"role": "user", "content": SMOKE_PROMPT}],
        "max_tokens": 1,
    }


async def _probe_pricing(
    client: httpx.AsyncClient,
    inputs: ResolvedInputs,
    logger: BoundLogger,
) -> ProbeOutcome:
    public = await probe(
        client,
        inputs.base.at_origin(PUBLIC_PRICING_PATH),
        timeout_ms=inputs.timeout_ms,
        logger=logger,
    )
    if public.succeeded and public.http_status == 200:
        return public
    return await probe(
        client,
        inputs.base.at_origin(AUTH_PRICING_PATH),
        headers=inputs.auth_headers(),
        timeout_ms=inputs.timeout_ms,
        logger=logger,
    )


async def _probe_chat_route(
    client: httpx.AsyncClient,
    inputs: ResolvedInputs,
    model: str,
    *,
    smoke: bool,
    logger: BoundLogger,
) -> ProbeOutcome:
    headers = {"content-type": "application/json", **inputs.auth_headers()}
    url = inputs.base.join(CHAT_COMPLETIONS_PATH)
    if smoke:
        return await probe(
            client,
            url,
            method="POST",
            headers=headers,
            json_body=_smoke_body(model),
            timeout_ms=inputs.timeout_ms,
            logger=logger,
        )
    return await probe(
        client,
        url,
        method="POST",
        headers=headers,
        content=REACHABILITY_BODY,
        timeout_ms=inputs.timeout_ms,
        decode_json=False,
        logger=logger,
    )


async def run_doctor(
    settings: DoctorSettings,
    *,
    smoke: bool = False,
    client: httpx.AsyncClient | None = None,
    logger: BoundLogger | None = None,
) -> DoctorReport:
    """Diagnose the configured gateway.

    Input problems raise :class:`InputValidationError` before any request;
    everything after that is reported through the returned checks.
    """

    inputs = resolve_inputs(settings, require_model=True)
    model = inputs.model or ""
    log = logger or get_logger("gatedoctor.doctor")

    async with client_scope(client) as http:
        health_res, models_res, chat_res, pricing_res = await asyncio.gather(
            probe(
                http,
                inputs.base.at_origin(HEALTH_PATH),
                timeout_ms=inputs.timeout_ms,
                decode_json=False,
                logger=log,
            ),
            probe(
                http,
                inputs.base.join(MODELS_PATH),
                headers=inputs.auth_headers(),
                timeout_ms=inputs.timeout_ms,
                logger=log,
            ),
            _probe_chat_route(http, inputs, model, smoke=smoke, logger=log),
            _probe_pricing(http, inputs, log),
        )

    models_check, catalog = classify_models_list(models_res)
    pricing_check, estimated = classify_pricing(
        pricing_res, model, inputs.default_usage_fee_rate
    )
    checks = (
        classify_connectivity(health_res),
        models_check,
        classify_chat_route(chat_res, smoke=smoke),
        derive_model_exists(model, catalog),
        pricing_check,
    )
    for check in checks:
        log_check_event(
            log,
            "check.classified",
            check=check.name.value,
            verdict=check.verdict.value,
            status=check.http_status,
            finding=check.finding.value if check.finding else None,
        )

    signal = aggregate_signals(checks)
    exit_code = resolve_exit_code(signal)
    log_event(log, "doctor.signals", exit_code=int(exit_code), smoke=smoke, **asdict(signal))

    return DoctorReport(
        base_url=inputs.base_url,
        warnings=inputs.warnings,
        checks=checks,
        signal=signal,
        exit_code=exit_code,
        estimated_cost=estimated,
        next_hints=tuple(build_next_hints(inputs, checks, signal, smoke=smoke)),
        smoke=smoke,
    )


__all__ = [
    "AUTH_FINDINGS",
    "CheckName",
    "DiagnosticCheck",
    "DoctorReport",
    "Finding",
    "Verdict",
    "aggregate_signals",
    "build_next_hints",
    "classify_chat_route",
    "classify_connectivity",
    "classify_models_list",
    "classify_pricing",
    "derive_model_exists",
    "run_doctor",
]
