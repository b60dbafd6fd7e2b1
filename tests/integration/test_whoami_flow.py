from __future__ import annotations

import httpx
import pytest
from fake_gateway import FakeGateway, reply

from gatedoctor.application.account import WHOAMI_PATH, run_whoami
from gatedoctor.domain.exit_codes import ExitCode

ACCOUNT = {
    "success": True,
    "data": {
        "user": {"emailMasked": "d***@example.com", "emailVerified": False},
        "apiKey": {
            "name": "",
            "maskedKey": "sk-...7890",
            "status": "active",
            "expiresAt": None,
            "lastUsed": None,
        },
        "balance": {"usd": "3.10", "status": "active"},
    },
}


async def _whoami(gateway: FakeGateway, settings):
    async with gateway.client() as client:
        return await run_whoami(settings, client=client)


@pytest.mark.asyncio
async def test_whoami_reports_account(make_settings) -> None:
    gateway = FakeGateway()
    gateway.route(WHOAMI_PATH, reply(200, ACCOUNT, headers={"x-request-id": "req-42"}))

    report = await _whoami(gateway, make_settings())

    assert report.exit_code is ExitCode.OK
    assert report.correlation_id == "req-42"
    assert report.data is not None
    assert report.data.api_key.name is None
    payload = report.to_payload()
    assert payload["ok"] is True
    assert payload["balance"] == {"usd": "3.10", "status": "active"}
    assert gateway.last(WHOAMI_PATH).headers["authorization"] == "Bearer sk-test-1234567890"


@pytest.mark.asyncio
async def test_whoami_unauthorized_keeps_request_id(make_settings) -> None:
    gateway = FakeGateway()
    gateway.route(
        WHOAMI_PATH,
        reply(
            401,
            {
                "success": False,
                "error": {
                    "message": "Invalid API key",
                    "statusCode": 401,
                    "requestId": "req-1",
                    "timestamp": "2025-01-01T00:00:00Z",
                },
            },
        ),
    )

    report = await _whoami(gateway, make_settings())

    assert report.exit_code is ExitCode.AUTH_ERROR
    assert report.to_payload() == {
        "ok": False,
        "baseUrl": "https://gw.test/v1",
        "error": {"code": "AUTH_ERROR", "message": "Invalid API key"},
        "requestId": "req-1",
        "timestamp": "2025-01-01T00:00:00Z",
    }


@pytest.mark.asyncio
async def test_whoami_not_implemented(make_settings) -> None:
    report = await _whoami(FakeGateway(), make_settings())

    assert report.exit_code is ExitCode.PRICING_ERROR
    assert report.failure is not None
    assert report.failure.error.code.value == "NOT_IMPLEMENTED"
    assert "Expected: GET /api/v1/whoami" in report.failure.human_message


@pytest.mark.asyncio
async def test_whoami_malformed_account(make_settings) -> None:
    gateway = FakeGateway()
    gateway.route(WHOAMI_PATH, reply(200, {"success": True, "data": {"user": {}}}))

    report = await _whoami(gateway, make_settings())

    assert report.exit_code is ExitCode.PRICING_ERROR
    assert report.to_payload()["error"]["message"] == "invalid whoami response"


@pytest.mark.asyncio
async def test_whoami_non_json_body(make_settings) -> None:
    gateway = FakeGateway()
    gateway.route(WHOAMI_PATH, lambda request: httpx.Response(200, text="<html>"))

    report = await _whoami(gateway, make_settings())

    assert report.exit_code is ExitCode.PRICING_ERROR
    assert report.to_payload()["error"]["code"] == "WHOAMI_UNREACHABLE"


@pytest.mark.asyncio
async def test_whoami_network_failure(make_settings) -> None:
    def refuse(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("connection refused", request=request)

    gateway = FakeGateway()
    gateway.route(WHOAMI_PATH, refuse)

    report = await _whoami(gateway, make_settings())

    assert report.exit_code is ExitCode.BASE_URL_UNREACHABLE
