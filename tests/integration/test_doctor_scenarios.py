from __future__ import annotations

import httpx
import pytest
from fake_gateway import FakeGateway, reply

from gatedoctor.application.diagnostics import CheckName, Verdict, run_doctor
from gatedoctor.domain.exit_codes import ExitCode
from gatedoctor.infrastructure.errors import MissingModelError


async def _doctor(gateway: FakeGateway, settings, *, smoke: bool = False):
    async with gateway.client() as client:
        return await run_doctor(settings, smoke=smoke, client=client)


@pytest.mark.asyncio
async def test_healthy_gateway_passes_every_check(gateway: FakeGateway, make_settings) -> None:
    report = await _doctor(gateway, make_settings())

    assert report.exit_code is ExitCode.OK
    assert [check.name for check in report.checks] == [
        CheckName.CONNECTIVITY,
        CheckName.MODELS_LIST,
        CheckName.CHAT_ROUTE,
        CheckName.MODEL_EXISTS,
        CheckName.PRICING,
    ]
    assert all(check.verdict is Verdict.OK for check in report.checks)
    assert report.estimated_cost is not None
    assert report.estimated_cost.total == pytest.approx(1.1)
    assert report.estimated_cost.updated_at == "2025-01-01T00:00:00Z"

    payload = report.to_payload()
    assert payload["ok"] is True
    assert "error" not in payload
    assert payload["estimatedCostPer1M"]["totalUsdPer1M"] == pytest.approx(1.1)

    assert "/api/v1/pricing" not in gateway.paths()
    assert gateway.last("/v1/models").headers["authorization"] == "Bearer sk-test-1234567890"
    assert gateway.last("/v1/chat/completions").content == b"{}"


@pytest.mark.asyncio
async def test_missing_health_route_is_skipped_not_failed(
    gateway: FakeGateway, make_settings
) -> None:
    gateway.route("/health", reply(404))

    report = await _doctor(gateway, make_settings())

    connectivity = report.check(CheckName.CONNECTIVITY)
    assert connectivity is not None
    assert connectivity.verdict is Verdict.SKIPPED
    assert connectivity.hint == "not implemented (404)"
    assert report.exit_code is ExitCode.OK


@pytest.mark.asyncio
async def test_chat_server_error_marks_gateway_unreachable(
    gateway: FakeGateway, make_settings
) -> None:
    gateway.route("/v1/chat/completions", reply(500))

    report = await _doctor(gateway, make_settings())

    chat = report.check(CheckName.CHAT_ROUTE)
    assert chat is not None
    assert chat.failed
    assert chat.hint == "server error (500)"
    assert report.exit_code is ExitCode.BASE_URL_UNREACHABLE
    assert report.to_payload()["error"] == {
        "code": "BASE_URL_UNREACHABLE",
        "message": "doctor checks failed",
    }


@pytest.mark.asyncio
async def test_smoke_sends_one_token_completion(gateway: FakeGateway, make_settings) -> None:
    gateway.route("/v1/chat/completions", reply(200, {"choices": []}))

    report = await _doctor(gateway, make_settings(), smoke=True)

    body = gateway.json_body("/v1/chat/completions")
    assert body["model"] == "m1"
    assert body["max_tokens"] == 1
    chat = report.check(CheckName.CHAT_ROUTE)
    assert chat is not None
    assert chat.hint == "smoke ok (max_tokens=1)"
    assert report.exit_code is ExitCode.OK


@pytest.mark.asyncio
async def test_smoke_quota_exhaustion_is_skipped(gateway: FakeGateway, make_settings) -> None:
    gateway.route(
        "/v1/chat/completions",
        reply(
            429,
            {
                "error": {
                    "message": "balance too low",
                    "type": "insufficient_quota",
                    "metadata": {"balance_usd": "0.00"},
                }
            },
        ),
    )

    report = await _doctor(gateway, make_settings(), smoke=True)

    chat = report.check(CheckName.CHAT_ROUTE)
    assert chat is not None
    assert chat.verdict is Verdict.SKIPPED
    assert chat.hint == "insufficient balance (balance_usd=0.00)"
    assert report.exit_code is ExitCode.OK


@pytest.mark.asyncio
async def test_smoke_invalid_model_exits_model_not_found(
    gateway: FakeGateway, make_settings
) -> None:
    gateway.route(
        "/v1/chat/completions",
        reply(
            400,
            {
                "error": {
                    "message": "model m1 is not served",
                    "type": "invalid_request_error",
                    "code": "invalid_model",
                }
            },
        ),
    )

    report = await _doctor(gateway, make_settings(), smoke=True)

    chat = report.check(CheckName.CHAT_ROUTE)
    assert chat is not None
    assert chat.failed
    assert chat.hint == "invalid_request_error/invalid_model: model m1 is not served"
    assert report.signal.model_not_found
    assert not report.signal.base_url_unreachable
    assert report.exit_code is ExitCode.MODEL_NOT_FOUND


@pytest.mark.asyncio
async def test_unknown_model_gets_suggestions(gateway: FakeGateway, make_settings) -> None:
    report = await _doctor(gateway, make_settings(model="gpt-4"))

    exists = report.check(CheckName.MODEL_EXISTS)
    assert exists is not None
    assert exists.failed
    assert exists.suggestions is not None
    assert "gpt-4o" in exists.suggestions
    # pricing has no entry either, but the missing model outranks it
    assert report.signal.pricing_error
    assert report.exit_code is ExitCode.MODEL_NOT_FOUND
    assert any("Pick a valid model id" in hint for hint in report.next_hints)


@pytest.mark.asyncio
async def test_models_body_without_data_is_unreachable(
    gateway: FakeGateway, make_settings
) -> None:
    gateway.route("/v1/models", reply(200, {"object": "list"}))

    report = await _doctor(gateway, make_settings())

    models = report.check(CheckName.MODELS_LIST)
    exists = report.check(CheckName.MODEL_EXISTS)
    assert models is not None and models.failed
    assert models.hint == "models response missing data[]"
    assert exists is not None and exists.verdict is Verdict.SKIPPED
    assert report.exit_code is ExitCode.BASE_URL_UNREACHABLE


@pytest.mark.asyncio
async def test_pricing_falls_back_to_authenticated_endpoint(
    gateway: FakeGateway, make_settings
) -> None:
    gateway.route("/api/v1/public/pricing", reply(404, {"error": "not found"}))
    gateway.route(
        "/api/v1/pricing",
        reply(200, {"data": [{"model": "m1", "networkUsdPer1M": 3.0}]}),
    )

    report = await _doctor(gateway, make_settings())

    assert report.exit_code is ExitCode.OK
    assert report.estimated_cost is not None
    assert report.estimated_cost.network == pytest.approx(3.0)
    assert report.estimated_cost.total == pytest.approx(3.3)
    assert gateway.last("/api/v1/pricing").headers["authorization"] == "Bearer sk-test-1234567890"


@pytest.mark.asyncio
async def test_missing_api_key_reports_auth_error(gateway: FakeGateway, make_settings) -> None:
    def models(request: httpx.Request) -> httpx.Response:
        if "authorization" not in request.headers:
            return httpx.Response(401, json={"error": {"message": "missing key"}})
        return httpx.Response(200, json={"data": [{"id": "m1"}]})

    gateway.route("/v1/models", models)
    gateway.route("/v1/chat/completions", reply(401))

    report = await _doctor(gateway, make_settings(api_key=None))

    chat = report.check(CheckName.CHAT_ROUTE)
    assert chat is not None
    assert chat.ok
    assert chat.hint == "unauthorized (check API key)"
    assert report.exit_code is ExitCode.AUTH_ERROR
    assert "Set GATEDOCTOR_API_KEY or pass --api-key" in report.next_hints


@pytest.mark.asyncio
async def test_connection_refused_everywhere(make_settings) -> None:
    def refuse(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("connection refused", request=request)

    gateway = FakeGateway()
    gateway.route("/health", refuse)
    gateway.route("/v1/models", refuse)
    gateway.route("/v1/chat/completions", refuse)
    gateway.route("/api/v1/public/pricing", refuse)
    gateway.route("/api/v1/pricing", refuse)

    report = await _doctor(gateway, make_settings())

    assert report.exit_code is ExitCode.BASE_URL_UNREACHABLE
    connectivity = report.check(CheckName.CONNECTIVITY)
    assert connectivity is not None
    assert connectivity.failed
    assert connectivity.hint is not None and "connection refused" in connectivity.hint


@pytest.mark.asyncio
async def test_missing_model_fails_before_any_request(
    gateway: FakeGateway, make_settings
) -> None:
    with pytest.raises(MissingModelError) as excinfo:
        await _doctor(gateway, make_settings(model=None))

    assert excinfo.value.base_url == "https://gw.test/v1"
    assert gateway.requests == []


@pytest.mark.asyncio
async def test_list_shaped_pricing_with_default_rate(make_settings) -> None:
    gateway = FakeGateway()
    gateway.route("/v1/models", reply(200, {"data": [{"id": "m1"}]}))
    gateway.route("/v1/chat/completions", reply(400))
    gateway.route(
        "/api/v1/public/pricing",
        reply(200, {"data": [{"model": "m1", "networkUsdPer1M": 1}]}),
    )

    report = await _doctor(gateway, make_settings())

    assert report.ok
    assert report.to_payload()["estimatedCostPer1M"]["totalUsdPer1M"] == pytest.approx(1.1)
