from __future__ import annotations

import time

import pytest
from fake_gateway import MODELS_BODY, PRICING_BODY, FakeGateway, delayed, reply

from gatedoctor.application.diagnostics import CheckName, Verdict, run_doctor
from gatedoctor.domain.exit_codes import ExitCode
from gatedoctor.integrations.http import TransportErrorKind

SLOW = 0.4


def _slow_gateway(seconds: float) -> FakeGateway:
    gateway = FakeGateway()
    gateway.route("/health", delayed(seconds, reply(200)))
    gateway.route("/v1/models", delayed(seconds, reply(200, MODELS_BODY)))
    gateway.route("/v1/chat/completions", delayed(seconds, reply(400)))
    gateway.route("/api/v1/public/pricing", delayed(seconds, reply(200, PRICING_BODY)))
    return gateway


@pytest.mark.asyncio
async def test_checks_run_concurrently(make_settings) -> None:
    gateway = _slow_gateway(SLOW)

    started = time.perf_counter()
    async with gateway.client() as client:
        report = await run_doctor(make_settings(), client=client)
    elapsed = time.perf_counter() - started

    assert report.exit_code is ExitCode.OK
    # four sequential checks would need at least 4 * SLOW
    assert elapsed < 1.0


@pytest.mark.asyncio
async def test_pricing_fallback_waits_for_public_endpoint(make_settings) -> None:
    gateway = _slow_gateway(SLOW)
    gateway.route("/api/v1/public/pricing", delayed(SLOW, reply(404)))
    gateway.route(
        "/api/v1/pricing",
        delayed(SLOW, reply(200, {"data": [{"model": "m1", "networkUsdPer1M": 1.0}]})),
    )

    started = time.perf_counter()
    async with gateway.client() as client:
        report = await run_doctor(make_settings(), client=client)
    elapsed = time.perf_counter() - started

    assert report.exit_code is ExitCode.OK
    public_start = gateway.started_at["/api/v1/public/pricing"][0]
    auth_start = gateway.started_at["/api/v1/pricing"][0]
    assert auth_start - public_start >= SLOW * 0.9
    # the two pricing requests share one slot alongside the other checks
    assert elapsed < 3 * SLOW


@pytest.mark.asyncio
async def test_one_hanging_check_times_out_alone(make_settings) -> None:
    gateway = _slow_gateway(0.0)
    gateway.route("/v1/chat/completions", delayed(5.0, reply(400)))

    started = time.perf_counter()
    async with gateway.client() as client:
        report = await run_doctor(make_settings(timeout_ms=300), client=client)
    elapsed = time.perf_counter() - started

    chat = report.check(CheckName.CHAT_ROUTE)
    assert chat is not None
    assert chat.failed
    assert chat.transport_error_kind is TransportErrorKind.TIMEOUT
    assert chat.hint is not None and chat.hint.startswith("timeout:")
    for name in (CheckName.CONNECTIVITY, CheckName.MODELS_LIST, CheckName.MODEL_EXISTS, CheckName.PRICING):
        check = report.check(name)
        assert check is not None
        assert check.verdict is Verdict.OK
    assert report.exit_code is ExitCode.BASE_URL_UNREACHABLE
    assert elapsed < 2.0
