"""Pytest configuration and fixtures."""

from __future__ import annotations

import json
import time
from typing import Any
from unittest.mock import AsyncMock

import pytest
from fakeredis import FakeServer
from fakeredis.aioredis import FakeRedis

from cip_shopee.utils.config import RateLimitSettings, Settings, WebhookSettings
from cip_shopee.webhooks.models import WebhookEnvelope
from cip_shopee.webhooks.signature import compute_signature


PARTNER_KEY = "4a4d474641714b566471634a566e4668434159716a6261526b634a69536e4661"
WEBHOOK_URL = "http://testserver/api/webhook/shopee/webhook"
SHOP_ID = 404065079


def _encode_body(payload: dict[str, Any]) -> bytes:
    """Serialize a payload the way Shopee sends it."""
    return json.dumps(payload, separators=(",", ":")).encode("utf-8")


def _make_envelope(
    payload: dict[str, Any] | bytes,
    secret: str = PARTNER_KEY,
    url: str = WEBHOOK_URL,
    signature: str | None = None,
) -> WebhookEnvelope:
    """Build a correctly signed envelope unless a signature is given."""
    body = payload if isinstance(payload, bytes) else _encode_body(payload)
    if signature is None:
        signature = compute_signature(secret, url, body)
    headers = {"Authorization": signature} if signature else {}
    return WebhookEnvelope.create(raw_body=body, headers=headers, url=url)


@pytest.fixture
def now() -> int:
    return int(time.time())


@pytest.fixture
def ping_push(now: int) -> dict[str, Any]:
    """Connectivity test push (code 0)."""
    return {"code": 0, "timestamp": now}


@pytest.fixture
def shop_authorization_push(now: int) -> dict[str, Any]:
    """Shop authorization push (code 1), as sent for shop 404065079."""
    return {
        "code": 1,
        "data": {
            "authorize_type": "shop authorization by user",
            "extra": "shop id 404065079 (BR) has been authorized successfully",
            "shop_id": SHOP_ID,
            "success": 1,
        },
        "timestamp": now,
    }


@pytest.fixture
def order_update_push(now: int) -> dict[str, Any]:
    """Order status push (code 4)."""
    return {
        "code": 4,
        "shop_id": SHOP_ID,
        "data": {
            "ordersn": "2501234567890",
            "status": "READY_TO_SHIP",
            "update_time": now,
            "shop_id": SHOP_ID,
        },
        "timestamp": now,
    }


@pytest.fixture
async def redis_client() -> FakeRedis:
    """Create a fakeredis instance with its own server for each test."""
    client = FakeRedis(server=FakeServer(), decode_responses=True)
    yield client
    await client.aclose()


@pytest.fixture
def authorization_store() -> AsyncMock:
    store = AsyncMock()
    store.record_shop_authorization = AsyncMock(return_value=None)
    store.revoke_shop_authorization = AsyncMock(return_value=None)
    return store


@pytest.fixture
def order_sync() -> AsyncMock:
    sync = AsyncMock()
    sync.apply_order_update = AsyncMock(return_value=None)
    return sync


@pytest.fixture
def settings() -> Settings:
    """Settings for tests, independent of any .env file."""
    return Settings(
        _env_file=None,  # type: ignore[call-arg]
        env="test",
        webhook=WebhookSettings(
            _env_file=None,  # type: ignore[call-arg]
            partner_key=PARTNER_KEY,
        ),
        rate_limit=RateLimitSettings(
            _env_file=None,  # type: ignore[call-arg]
            enabled=True,
            webhook_window_ms=1000,
            webhook_max=10,
        ),
    )


@pytest.fixture
def partner_key() -> str:
    return PARTNER_KEY


@pytest.fixture
def webhook_url() -> str:
    return WEBHOOK_URL


@pytest.fixture
def encode_body():
    """Serializer for push bodies."""
    return _encode_body


@pytest.fixture
def make_envelope():
    """Factory for signed webhook envelopes."""
    return _make_envelope
