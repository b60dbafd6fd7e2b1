from __future__ import annotations

from typing import Any

import pytest

from gatedoctor.application.diagnostics import (
    CheckName,
    DiagnosticCheck,
    Finding,
    Verdict,
    aggregate_signals,
    classify_chat_route,
    classify_connectivity,
    classify_models_list,
    classify_pricing,
    derive_model_exists,
)
from gatedoctor.domain.exit_codes import ExitSignal
from gatedoctor.integrations.http import ProbeOutcome, TransportError, TransportErrorKind


def _ok(status: int, body: Any = None, correlation_id: str | None = None) -> ProbeOutcome:
    return ProbeOutcome(
        url="https://gw.test",
        elapsed_ms=5,
        http_status=status,
        body=body,
        correlation_id=correlation_id,
    )


def _failed(kind: TransportErrorKind = TransportErrorKind.NETWORK) -> ProbeOutcome:
    return ProbeOutcome(
        url="https://gw.test",
        elapsed_ms=5,
        transport_error=TransportError(kind, "boom"),
    )


def _check(name: CheckName, verdict: Verdict, finding: Finding | None = None) -> DiagnosticCheck:
    return DiagnosticCheck(name=name, verdict=verdict, finding=finding)


# connectivity ------------------------------------------------------------------


@pytest.mark.parametrize(
    ("status", "verdict"),
    [(200, Verdict.OK), (204, Verdict.OK), (404, Verdict.SKIPPED), (503, Verdict.FAILED)],
)
def test_connectivity_statuses(status: int, verdict: Verdict) -> None:
    assert classify_connectivity(_ok(status)).verdict is verdict


def test_connectivity_transport_failure_has_hint() -> None:
    check = classify_connectivity(_failed(TransportErrorKind.TIMEOUT))

    assert check.failed
    assert check.hint == "timeout: boom"
    assert check.transport_error_kind is TransportErrorKind.TIMEOUT


# models list -------------------------------------------------------------------


def test_models_list_success_returns_catalog() -> None:
    check, catalog = classify_models_list(_ok(200, {"data": [{"id": "m1"}]}, "req-1"))

    assert check.verdict is Verdict.OK
    assert check.correlation_id == "req-1"
    assert catalog == ["m1"]


def test_models_list_missing_data_names_the_field() -> None:
    check, catalog = classify_models_list(_ok(200, {"object": "list"}))

    assert check.failed
    assert "data[]" in check.hint
    assert check.finding is Finding.INVALID_PAYLOAD
    assert catalog is None


@pytest.mark.parametrize(
    ("status", "finding"),
    [
        (401, Finding.UNAUTHORIZED),
        (403, Finding.FORBIDDEN),
        (404, Finding.NOT_FOUND),
        (500, Finding.UNEXPECTED_STATUS),
    ],
)
def test_models_list_failures(status: int, finding: Finding) -> None:
    check, catalog = classify_models_list(_ok(status))

    assert check.failed
    assert check.finding is finding
    assert catalog is None


# chat route --------------------------------------------------------------------


@pytest.mark.parametrize(
    ("status", "verdict", "finding"),
    [
        (400, Verdict.OK, None),
        (401, Verdict.OK, Finding.UNAUTHORIZED),
        (403, Verdict.OK, Finding.FORBIDDEN),
        (404, Verdict.FAILED, Finding.NOT_FOUND),
        (502, Verdict.FAILED, Finding.SERVER_ERROR),
    ],
)
def test_reachability_mode(status: int, verdict: Verdict, finding: Finding | None) -> None:
    check = classify_chat_route(_ok(status), smoke=False)

    assert check.verdict is verdict
    assert check.finding is finding


def test_smoke_success() -> None:
    check = classify_chat_route(_ok(200, {"choices": []}), smoke=True)

    assert check.verdict is Verdict.OK
    assert check.hint == "smoke ok (max_tokens=1)"


def test_smoke_insufficient_quota_is_skipped_with_balance() -> None:
    body = {"error": {"type": "insufficient_quota", "metadata": {"balance_usd": "0.00"}}}

    check = classify_chat_route(_ok(429, body), smoke=True)

    assert check.verdict is Verdict.SKIPPED
    assert check.ok
    assert check.hint == "insufficient balance (balance_usd=0.00)"


def test_smoke_auth_statuses_fail() -> None:
    unauthorized = classify_chat_route(_ok(401), smoke=True)
    forbidden = classify_chat_route(
        _ok(403, {"error": {"code": "permission_denied", "message": "nope"}}), smoke=True
    )

    assert unauthorized.failed and unauthorized.finding is Finding.UNAUTHORIZED
    assert forbidden.failed and forbidden.finding is Finding.FORBIDDEN
    assert forbidden.hint == "forbidden - permission_denied: nope"


def test_smoke_invalid_model_and_bad_request() -> None:
    invalid = classify_chat_route(
        _ok(400, {"error": {"code": "invalid_model", "message": "unknown model"}}), smoke=True
    )
    bad = classify_chat_route(_ok(400), smoke=True)

    assert invalid.finding is Finding.INVALID_MODEL
    assert invalid.hint == "invalid_model: unknown model"
    assert bad.finding is Finding.BAD_REQUEST
    assert bad.hint == "bad request (unexpected for smoke)"


def test_smoke_other_status_fails() -> None:
    check = classify_chat_route(_ok(418), smoke=True)

    assert check.failed
    assert check.finding is Finding.UNEXPECTED_STATUS
    assert check.hint == "unexpected status 418"


# model exists & pricing --------------------------------------------------------


def test_model_exists_without_catalog_is_skipped() -> None:
    check = derive_model_exists("m1", None)

    assert check.verdict is Verdict.SKIPPED
    assert check.model == "m1"


def test_model_missing_from_catalog_carries_suggestions() -> None:
    check = derive_model_exists("llama-3.1-70b", ["llama-3.1-70b-instruct", "gpt-4o-mini"])

    assert check.failed
    assert check.suggestions == ("llama-3.1-70b-instruct",)
    assert derive_model_exists("gpt-4o-mini", ["gpt-4o-mini"]).verdict is Verdict.OK


def test_pricing_success_estimates_cost() -> None:
    body = {"data": [{"model": "m1", "networkUsdPer1M": 1}]}

    check, estimated = classify_pricing(_ok(200, body), "m1", 0.1)

    assert check.verdict is Verdict.OK
    assert estimated is not None
    assert estimated.total == pytest.approx(1.1)


@pytest.mark.parametrize(
    ("outcome", "finding"),
    [
        (_ok(200, {"data": [{"model": "other", "network": 1}]}), Finding.INVALID_PAYLOAD),
        (_ok(401), Finding.UNAUTHORIZED),
        (_ok(404), Finding.NOT_FOUND),
        (_ok(500), Finding.UNEXPECTED_STATUS),
        (_failed(), Finding.TRANSPORT),
    ],
)
def test_pricing_failures(outcome: ProbeOutcome, finding: Finding) -> None:
    check, estimated = classify_pricing(outcome, "m1", 0.1)

    assert check.failed
    assert check.finding is finding
    assert estimated is None


# aggregation -------------------------------------------------------------------


def test_all_ok_checks_produce_no_signal() -> None:
    checks = [
        _check(CheckName.CONNECTIVITY, Verdict.OK),
        _check(CheckName.MODELS_LIST, Verdict.OK),
        _check(CheckName.CHAT_ROUTE, Verdict.OK),
        _check(CheckName.MODEL_EXISTS, Verdict.OK),
        _check(CheckName.PRICING, Verdict.OK),
    ]

    assert aggregate_signals(checks) == ExitSignal()


def test_connectivity_failure_alone_is_not_fatal() -> None:
    checks = [_check(CheckName.CONNECTIVITY, Verdict.FAILED, Finding.TRANSPORT)]

    assert aggregate_signals(checks) == ExitSignal()


@pytest.mark.parametrize(
    "finding",
    [Finding.TRANSPORT, Finding.NOT_FOUND, Finding.INVALID_PAYLOAD, Finding.UNEXPECTED_STATUS],
)
def test_broken_catalog_means_unreachable(finding: Finding) -> None:
    signal = aggregate_signals([_check(CheckName.MODELS_LIST, Verdict.FAILED, finding)])

    assert signal.base_url_unreachable
    assert not signal.auth_error


def test_catalog_auth_failure_is_auth_not_unreachable() -> None:
    signal = aggregate_signals([_check(CheckName.MODELS_LIST, Verdict.FAILED, Finding.FORBIDDEN)])

    assert signal == ExitSignal(auth_error=True)


def test_reachability_auth_finding_counts_even_when_ok() -> None:
    signal = aggregate_signals([_check(CheckName.CHAT_ROUTE, Verdict.OK, Finding.UNAUTHORIZED)])

    assert signal == ExitSignal(auth_error=True)


@pytest.mark.parametrize(
    ("finding", "unreachable"),
    [
        (Finding.SERVER_ERROR, True),
        (Finding.BAD_REQUEST, True),
        (Finding.TRANSPORT, True),
        (Finding.UNAUTHORIZED, False),
        (Finding.INVALID_MODEL, False),
    ],
)
def test_chat_failures(finding: Finding, unreachable: bool) -> None:
    signal = aggregate_signals([_check(CheckName.CHAT_ROUTE, Verdict.FAILED, finding)])

    assert signal.base_url_unreachable is unreachable


def test_quota_skip_contributes_nothing() -> None:
    checks = [_check(CheckName.CHAT_ROUTE, Verdict.SKIPPED, Finding.INSUFFICIENT_QUOTA)]

    assert aggregate_signals(checks) == ExitSignal()


def test_invalid_model_overrides_catalog() -> None:
    checks = [
        _check(CheckName.MODELS_LIST, Verdict.OK),
        _check(CheckName.CHAT_ROUTE, Verdict.FAILED, Finding.INVALID_MODEL),
        _check(CheckName.MODEL_EXISTS, Verdict.OK),
    ]

    assert aggregate_signals(checks) == ExitSignal(model_not_found=True)


def test_pricing_auth_is_not_a_pricing_error() -> None:
    unauthorized = aggregate_signals([_check(CheckName.PRICING, Verdict.FAILED, Finding.UNAUTHORIZED)])
    missing = aggregate_signals([_check(CheckName.PRICING, Verdict.FAILED, Finding.INVALID_PAYLOAD)])

    assert unauthorized == ExitSignal(auth_error=True)
    assert missing == ExitSignal(pricing_error=True)


def test_check_payload_uses_camel_case_and_hides_internal_fields() -> None:
    check = DiagnosticCheck(
        name=CheckName.CONNECTIVITY,
        verdict=Verdict.SKIPPED,
        http_status=404,
        elapsed_ms=3,
        hint="not implemented (404)",
        finding=Finding.NOT_FOUND,
    )

    assert check.to_payload() == {
        "name": "connectivity",
        "verdict": "skipped",
        "ok": True,
        "skipped": True,
        "httpStatus": 404,
        "elapsedMs": 3,
        "hint": "not implemented (404)",
    }
