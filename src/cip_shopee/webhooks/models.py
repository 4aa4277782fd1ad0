"""Data model for the webhook ingestion pipeline."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from types import MappingProxyType
from typing import TYPE_CHECKING, Any

from cip_shopee.exceptions import InvalidPayloadError
from cip_shopee.utils.constants import NO_SHOP_KEY


if TYPE_CHECKING:
    import asyncio
    from collections.abc import Mapping


def _epoch_seconds(value: Any) -> int:
    """Coerce a push timestamp (int, float or numeric string) to whole seconds."""
    if isinstance(value, bool) or not isinstance(value, (int, float, str)):
        raise InvalidPayloadError("Webhook 'timestamp' must be epoch seconds")
    try:
        if isinstance(value, str):
            value = float(value.strip())
        return int(value)
    except (ValueError, OverflowError) as e:
        raise InvalidPayloadError("Webhook 'timestamp' must be epoch seconds") from e


class DeliveryStatus(str, Enum):
    """Synchronous phase of a delivery."""

    ACCEPTED = "accepted"
    DUPLICATE = "duplicate"


class OutcomeStatus(str, Enum):
    """Asynchronous phase of a delivery."""

    PROCESSED = "processed"
    FAILED = "failed"


@dataclass(frozen=True)
class WebhookEnvelope:
    """Inbound webhook request exactly as received.

    Header names are lower-cased and the mapping is read-only.
    """

    raw_body: bytes
    headers: Mapping[str, str]
    url: str
    received_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    @classmethod
    def create(
        cls,
        raw_body: bytes,
        headers: Mapping[str, str],
        url: str,
        received_at: datetime | None = None,
    ) -> WebhookEnvelope:
        """Build an envelope, normalizing header names."""
        normalized = MappingProxyType({k.lower(): v for k, v in headers.items()})
        if received_at is None:
            return cls(raw_body=raw_body, headers=normalized, url=url)
        return cls(
            raw_body=raw_body, headers=normalized, url=url, received_at=received_at
        )

    def header(self, name: str) -> str | None:
        """Case-insensitive header lookup."""
        return self.headers.get(name.lower())


@dataclass(frozen=True)
class ParsedEvent:
    """A webhook payload that passed signature validation."""

    code: int
    shop_id: str
    data: dict[str, Any] = field(default_factory=dict)
    timestamp: int | None = None
    msg_id: str | None = None

    @classmethod
    def from_payload(cls, payload: Any) -> ParsedEvent:
        """
        Build an event from a decoded JSON body.

        The shop id comes from the top-level ``shop_id`` or, failing that,
        from ``data.shop_id``. Events with neither share the NO_SHOP_KEY.

        Raises:
            InvalidPayloadError: If the body is not an object or has no int code
        """
        if not isinstance(payload, dict):
            raise InvalidPayloadError("Webhook body must be a JSON object")

        code = payload.get("code")
        if isinstance(code, bool) or not isinstance(code, int):
            raise InvalidPayloadError("Webhook body has no integer 'code'")

        data = payload.get("data") or {}
        if not isinstance(data, dict):
            raise InvalidPayloadError("Webhook 'data' must be a JSON object")

        shop_id = payload.get("shop_id")
        if shop_id is None:
            shop_id = data.get("shop_id")

        timestamp = payload.get("timestamp")
        if timestamp is not None:
            timestamp = _epoch_seconds(timestamp)
        msg_id = payload.get("msg_id")

        return cls(
            code=code,
            shop_id=str(shop_id) if shop_id is not None else NO_SHOP_KEY,
            data=data,
            timestamp=timestamp,
            msg_id=str(msg_id) if msg_id else None,
        )


@dataclass(frozen=True)
class DispatchResult:
    """What the dispatcher did with an event."""

    code: int
    action: str
    handled: bool = True


@dataclass
class ProcessingOutcome:
    """Final, asynchronous result of processing one event."""

    status: OutcomeStatus
    code: int
    shop_id: str
    action: str | None = None
    error: str | None = None
    duration_ms: float = 0.0

    @property
    def succeeded(self) -> bool:
        return self.status == OutcomeStatus.PROCESSED

    def to_dict(self) -> dict[str, Any]:
        """Convert outcome to dictionary for logs and API responses."""
        return {
            "status": self.status.value,
            "code": self.code,
            "shop_id": self.shop_id,
            "action": self.action,
            "error": self.error,
            "duration_ms": round(self.duration_ms, 2),
        }


@dataclass
class DeliveryReceipt:
    """
    Two-phase result of submitting a webhook.

    ``status`` is decided synchronously (accepted or duplicate). ``outcome``
    resolves later to a ProcessingOutcome; it is None for duplicates, which
    are never reprocessed.
    """

    status: DeliveryStatus
    event: ParsedEvent
    outcome: asyncio.Future[ProcessingOutcome] | None = None

    @property
    def accepted(self) -> bool:
        return self.status == DeliveryStatus.ACCEPTED
