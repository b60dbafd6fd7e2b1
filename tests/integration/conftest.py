from __future__ import annotations

import pytest
from fake_gateway import MODELS_BODY, PRICING_BODY, FakeGateway, reply


@pytest.fixture
def gateway() -> FakeGateway:
    fake = FakeGateway()
    fake.route("/health", reply(200))
    fake.route("/v1/models", reply(200, MODELS_BODY))
    fake.route("/v1/chat/completions", reply(400, {"error": {"message": "bad request"}}))
    fake.route("/api/v1/public/pricing", reply(200, PRICING_BODY))
    return fake
