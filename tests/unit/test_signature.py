"""Unit tests for webhook signature validation."""

from __future__ import annotations

import hashlib
import hmac

import pytest

from cip_shopee.exceptions import (
    InvalidPayloadError,
    InvalidSignatureError,
    MissingCredentialsError,
    StaleRequestError,
)
from cip_shopee.webhooks.signature import (
    SignatureValidator,
    build_base_string,
    clean_url,
    compute_signature,
)


SECRET = "partner-secret"

FIXTURES = [
    ("https://cip.example.com/api/webhook/shopee/webhook", b'{"code":0,"timestamp":1700000000}'),
    ("https://cip.example.com/api/webhook/shopee/webhook", b'{"code":1,"data":{"shop_id":1,"success":1}}'),
    ("/api/webhook/shopee/webhook", b'{"code":4,"data":{"ordersn":"A1"}}'),
    ("https://other.example.com/hook", b"{}"),
]


class TestCleanUrl:
    """Tests for URL canonicalization."""

    def test_strips_query_string(self) -> None:
        assert clean_url("https://a.com/hook?x=1&y=2") == "https://a.com/hook"

    def test_strips_port(self) -> None:
        assert clean_url("https://a.com:8443/hook") == "https://a.com/hook"

    def test_strips_port_and_query(self) -> None:
        assert clean_url("http://localhost:3000/api/hook?debug=1") == "http://localhost/api/hook"

    def test_bare_path(self) -> None:
        assert clean_url("/api/webhook/shopee/webhook?x=1") == "/api/webhook/shopee/webhook"

    def test_keeps_path_digits(self) -> None:
        assert clean_url("https://a.com/v2:1/hook") == "https://a.com/v2:1/hook"


class TestComputeSignature:
    """Tests for HMAC-SHA256 signature computation."""

    @pytest.mark.parametrize(("url", "body"), FIXTURES)
    def test_matches_reference_hmac(self, url: str, body: bytes) -> None:
        base = clean_url(url).encode() + b"|" + body
        expected = hmac.new(SECRET.encode(), base, hashlib.sha256).hexdigest()

        assert compute_signature(SECRET, url, body) == expected
        assert len(expected) == 64

    def test_base_string_format(self) -> None:
        base = build_base_string("https://a.com:80/hook?q=1", b'{"code":0}')
        assert base == b'https://a.com/hook|{"code":0}'

    def test_fixture_signatures_are_distinct(self) -> None:
        signatures = {compute_signature(SECRET, url, body) for url, body in FIXTURES}
        assert len(signatures) == len(FIXTURES)

    def test_flipping_any_body_byte_changes_signature(self) -> None:
        url, body = FIXTURES[1]
        original = compute_signature(SECRET, url, body)

        for i in range(len(body)):
            mutated = bytearray(body)
            mutated[i] ^= 0x01
            assert compute_signature(SECRET, url, bytes(mutated)) != original

    def test_flipping_any_path_char_changes_signature(self) -> None:
        url, body = FIXTURES[0]
        original = compute_signature(SECRET, url, body)
        path_start = url.index("/api")

        for i in range(path_start, len(url)):
            mutated = url[:i] + chr(ord(url[i]) ^ 0x01) + url[i + 1 :]
            assert compute_signature(SECRET, mutated, body) != original

    def test_secret_matters(self) -> None:
        url, body = FIXTURES[0]
        assert compute_signature("a", url, body) != compute_signature("b", url, body)


class TestSignatureValidator:
    """Tests for SignatureValidator."""

    def test_valid_envelope(self, make_envelope, partner_key, ping_push) -> None:
        validator = SignatureValidator(secret=partner_key)
        event = validator.validate(make_envelope(ping_push))

        assert event.code == 0
        assert event.timestamp == ping_push["timestamp"]

    def test_header_is_case_insensitive(self, make_envelope, partner_key, ping_push, webhook_url) -> None:
        envelope = make_envelope(ping_push)
        signature = envelope.header("Authorization")
        envelope = envelope.create(
            raw_body=envelope.raw_body,
            headers={"authorization": signature},
            url=webhook_url,
        )

        SignatureValidator(secret=partner_key).verify_signature(envelope)

    def test_missing_header(self, make_envelope, partner_key, ping_push) -> None:
        validator = SignatureValidator(secret=partner_key)
        with pytest.raises(MissingCredentialsError):
            validator.validate(make_envelope(ping_push, signature=""))

    def test_missing_secret_fails_closed(self, make_envelope, ping_push) -> None:
        validator = SignatureValidator(secret="")
        with pytest.raises(MissingCredentialsError):
            validator.validate(make_envelope(ping_push, secret="anything"))

    def test_wrong_signature(self, make_envelope, partner_key, ping_push) -> None:
        validator = SignatureValidator(secret=partner_key)
        with pytest.raises(InvalidSignatureError):
            validator.validate(make_envelope(ping_push, secret="wrong-key"))

    @pytest.mark.parametrize("signature", ["abc", "0" * 63, "0" * 65, "é" * 64])
    def test_mismatched_length_is_invalid_not_error(
        self, make_envelope, partner_key, ping_push, signature: str
    ) -> None:
        validator = SignatureValidator(secret=partner_key)
        with pytest.raises(InvalidSignatureError):
            validator.validate(make_envelope(ping_push, signature=signature))

    def test_signature_bound_to_url(self, make_envelope, partner_key, ping_push) -> None:
        validator = SignatureValidator(secret=partner_key)
        envelope = make_envelope(ping_push, url="http://testserver/other/path")
        tampered = envelope.create(
            raw_body=envelope.raw_body,
            headers=dict(envelope.headers),
            url="http://testserver/api/webhook/shopee/webhook",
        )
        with pytest.raises(InvalidSignatureError):
            validator.validate(tampered)

    def test_query_and_port_ignored(self, make_envelope, partner_key, ping_push) -> None:
        validator = SignatureValidator(secret=partner_key)
        envelope = make_envelope(ping_push, url="http://testserver/api/webhook/shopee/webhook")
        moved = envelope.create(
            raw_body=envelope.raw_body,
            headers=dict(envelope.headers),
            url="http://testserver:8080/api/webhook/shopee/webhook?retry=1",
        )
        validator.validate(moved)

    def test_invalid_json_after_valid_signature(self, make_envelope, partner_key) -> None:
        validator = SignatureValidator(secret=partner_key)
        with pytest.raises(InvalidPayloadError):
            validator.validate(make_envelope(b"{not json"))

    def test_signature_checked_before_parsing(self, make_envelope, partner_key) -> None:
        validator = SignatureValidator(secret=partner_key)
        with pytest.raises(InvalidSignatureError):
            validator.validate(make_envelope(b"{not json", secret="wrong"))


class TestTimestampTolerance:
    """Tests for the replay window check."""

    NOW = 1_700_000_000

    def _validator(self, partner_key: str) -> SignatureValidator:
        return SignatureValidator(
            secret=partner_key, tolerance_seconds=900, clock=lambda: self.NOW
        )

    def test_rejects_older_than_tolerance(self, make_envelope, partner_key) -> None:
        with pytest.raises(StaleRequestError) as exc_info:
            self._validator(partner_key).validate(
                make_envelope({"code": 0, "timestamp": self.NOW - 901})
            )
        assert exc_info.value.timestamp == self.NOW - 901

    def test_accepts_within_tolerance(self, make_envelope, partner_key) -> None:
        event = self._validator(partner_key).validate(
            make_envelope({"code": 0, "timestamp": self.NOW - 899})
        )
        assert event.timestamp == self.NOW - 899

    def test_accepts_exact_boundary(self, partner_key) -> None:
        self._validator(partner_key).check_timestamp(self.NOW - 900)

    def test_rejects_far_future(self, partner_key) -> None:
        with pytest.raises(StaleRequestError):
            self._validator(partner_key).check_timestamp(self.NOW + 901)

    def test_missing_timestamp_passes(self, make_envelope, partner_key) -> None:
        event = self._validator(partner_key).validate(make_envelope({"code": 0}))
        assert event.timestamp is None

    def test_rejects_stale_float_timestamp(self, make_envelope, partner_key) -> None:
        with pytest.raises(StaleRequestError):
            self._validator(partner_key).validate(
                make_envelope({"code": 0, "timestamp": self.NOW - 3600.0})
            )

    def test_rejects_stale_string_timestamp(self, make_envelope, partner_key) -> None:
        with pytest.raises(StaleRequestError):
            self._validator(partner_key).validate(
                make_envelope({"code": 0, "timestamp": str(self.NOW - 3600)})
            )

    def test_non_numeric_timestamp_is_invalid(self, make_envelope, partner_key) -> None:
        with pytest.raises(InvalidPayloadError):
            self._validator(partner_key).validate(
                make_envelope({"code": 0, "timestamp": "soon"})
            )
