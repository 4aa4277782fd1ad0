"""Shopee push signature verification.

Shopee signs each push with HMAC-SHA256 (hex) over the base string
``{url}|{body}``, where ``url`` is the callback URL without query string
or port and ``body`` is the raw request body. The signature arrives in
the ``Authorization`` header.
"""

from __future__ import annotations

import hashlib
import hmac
import json
import re
import time
from typing import TYPE_CHECKING
from urllib.parse import urlsplit

from cip_shopee.exceptions import (
    InvalidPayloadError,
    InvalidSignatureError,
    MissingCredentialsError,
    StaleRequestError,
)
from cip_shopee.utils.constants import (
    DEFAULT_TIMESTAMP_TOLERANCE_SECONDS,
    SIGNATURE_HEADER,
    SIGNATURE_SEPARATOR,
)
from cip_shopee.utils.logging import get_logger, redact
from cip_shopee.webhooks.models import ParsedEvent


if TYPE_CHECKING:
    from collections.abc import Callable

    from cip_shopee.webhooks.models import WebhookEnvelope

logger = get_logger(__name__)

_PORT_RE = re.compile(r":\d+$")


def clean_url(url: str) -> str:
    """
    Strip query string, fragment and port from a URL.

    Works on absolute URLs and on bare paths:
        https://example.com:8443/hook?a=1 -> https://example.com/hook
        /api/webhook/shopee/webhook?x=1   -> /api/webhook/shopee/webhook
    """
    parts = urlsplit(url)
    netloc = _PORT_RE.sub("", parts.netloc)
    if parts.scheme and netloc:
        return f"{parts.scheme}://{netloc}{parts.path}"
    return parts.path


def build_base_string(url: str, body: bytes) -> bytes:
    """Build the canonical byte string the signature covers."""
    return clean_url(url).encode("utf-8") + SIGNATURE_SEPARATOR.encode() + body


def compute_signature(secret: str, url: str, body: bytes) -> str:
    """Compute the hex HMAC-SHA256 signature for a push."""
    return hmac.new(
        secret.encode("utf-8"),
        build_base_string(url, body),
        hashlib.sha256,
    ).hexdigest()


class SignatureValidator:
    """
    Validates inbound webhook envelopes.

    Pure check with no side effects besides redacted logging. A validator
    without a secret fails closed: every envelope raises
    MissingCredentialsError.
    """

    def __init__(
        self,
        secret: str,
        tolerance_seconds: int = DEFAULT_TIMESTAMP_TOLERANCE_SECONDS,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self._secret = secret
        self.tolerance_seconds = tolerance_seconds
        self._clock = clock

    def verify_signature(self, envelope: WebhookEnvelope) -> None:
        """
        Check the Authorization header against the expected signature.

        Raises:
            MissingCredentialsError: Header absent or no secret configured
            InvalidSignatureError: Signature mismatch
        """
        received = (envelope.header(SIGNATURE_HEADER) or "").strip()
        path = clean_url(envelope.url)

        if not self._secret:
            logger.error("Webhook partner key is not configured", path=path)
            raise MissingCredentialsError("Webhook secret is not configured")

        if not received:
            logger.warning(
                "Webhook without signature",
                path=path,
                body_length=len(envelope.raw_body),
            )
            raise MissingCredentialsError("Missing Authorization header")

        expected = compute_signature(self._secret, envelope.url, envelope.raw_body)

        # compare_digest tolerates unequal lengths and returns False
        if not hmac.compare_digest(
            expected.encode("ascii"), received.encode("utf-8")
        ):
            logger.warning(
                "Webhook signature mismatch",
                path=path,
                body_length=len(envelope.raw_body),
                received_prefix=redact(received),
            )
            raise InvalidSignatureError("Invalid signature")

    def check_timestamp(self, timestamp: int | None) -> None:
        """
        Reject timestamps further than the tolerance from server time.

        Payloads without a timestamp pass.

        Raises:
            StaleRequestError: Timestamp outside tolerance window
        """
        if timestamp is None:
            return

        skew = self._clock() - timestamp
        if abs(skew) > self.tolerance_seconds:
            logger.warning(
                "Stale webhook rejected",
                timestamp=timestamp,
                skew_seconds=round(skew),
                tolerance_seconds=self.tolerance_seconds,
            )
            raise StaleRequestError(timestamp, skew)

    def validate(self, envelope: WebhookEnvelope) -> ParsedEvent:
        """
        Verify an envelope and parse it into an event.

        Signature is checked before the body is decoded, so no ParsedEvent
        ever exists for an unauthenticated request.

        Raises:
            MissingCredentialsError, InvalidSignatureError: Authentication failed
            InvalidPayloadError: Body is not a valid event object
            StaleRequestError: Timestamp outside tolerance window
        """
        self.verify_signature(envelope)

        try:
            payload = json.loads(envelope.raw_body)
        except (UnicodeDecodeError, json.JSONDecodeError) as e:
            raise InvalidPayloadError(f"Webhook body is not valid JSON: {e}") from e

        event = ParsedEvent.from_payload(payload)
        self.check_timestamp(event.timestamp)
        return event
