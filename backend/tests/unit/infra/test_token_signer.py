"""Unit tests for PyJWTTokenSigner."""

from datetime import UTC, datetime, timedelta

import jwt
import pytest

from authcore.infra.jwt.pyjwt_token_signer import PyJWTTokenSigner
from authcore.services._shared.ports import FrozenClock, InvalidToken, TokenKind
from authcore.services.sessions.dto import AuthSettings

ACCESS_SECRET = "unit-access-secret-0123456789abcdef"
REFRESH_SECRET = "unit-refresh-secret-0123456789abcdef"


@pytest.fixture()
def clock():
    return FrozenClock(datetime(2026, 3, 1, 9, 30, tzinfo=UTC))


@pytest.fixture()
def auth_settings():
    return AuthSettings(
        access_token_secret=ACCESS_SECRET,
        refresh_token_secret=REFRESH_SECRET,
        access_token_ttl=timedelta(minutes=15),
        refresh_token_ttl=timedelta(days=7),
    )


@pytest.fixture()
def signer(auth_settings, clock):
    return PyJWTTokenSigner(auth_settings, clock)


class TestIssue:
    def test_access_token_carries_claims(self, signer, clock):
        issued = signer.issue(TokenKind.ACCESS, {"sub": "7", "email": "a@b.io", "username": "ab"})
        claims = signer.verify(TokenKind.ACCESS, issued.token)

        assert claims["sub"] == "7"
        assert claims["email"] == "a@b.io"
        assert claims["username"] == "ab"
        assert claims["type"] == "access"
        assert claims["jti"] == issued.jti
        assert claims["iat"] == int(clock.now().timestamp())
        assert issued.expires_at == clock.now() + timedelta(minutes=15)

    def test_refresh_token_uses_refresh_lifetime(self, signer, clock):
        issued = signer.issue(TokenKind.REFRESH, {"sub": "7"})
        assert issued.expires_at == clock.now() + timedelta(days=7)

    def test_every_token_gets_a_fresh_jti(self, signer):
        first = signer.issue(TokenKind.REFRESH, {"sub": "1"})
        second = signer.issue(TokenKind.REFRESH, {"sub": "1"})
        assert first.jti != second.jti
        assert first.token != second.token

    def test_subject_is_required(self, signer):
        with pytest.raises(ValueError):
            signer.issue(TokenKind.ACCESS, {"email": "a@b.io"})

    @pytest.mark.parametrize("claim", ["type", "exp", "iat", "jti", "iss"])
    def test_reserved_claims_cannot_be_supplied(self, signer, claim):
        with pytest.raises(ValueError):
            signer.issue(TokenKind.ACCESS, {"sub": "1", claim: "x"})

    def test_tokens_are_signed_with_their_own_secret(self, signer):
        access = signer.issue(TokenKind.ACCESS, {"sub": "1"})
        decoded = jwt.decode(access.token, ACCESS_SECRET, algorithms=["HS256"], options={"verify_exp": False})
        assert decoded["sub"] == "1"
        with pytest.raises(jwt.InvalidSignatureError):
            jwt.decode(access.token, REFRESH_SECRET, algorithms=["HS256"])


class TestVerify:
    def test_valid_until_just_before_expiry(self, signer, clock):
        issued = signer.issue(TokenKind.ACCESS, {"sub": "1"})
        clock.advance(timedelta(minutes=15) - timedelta(seconds=1))
        assert signer.verify(TokenKind.ACCESS, issued.token)["sub"] == "1"

    def test_invalid_at_and_after_expiry(self, signer, clock):
        issued = signer.issue(TokenKind.ACCESS, {"sub": "1"})
        clock.advance(timedelta(minutes=15))
        with pytest.raises(InvalidToken):
            signer.verify(TokenKind.ACCESS, issued.token)
        clock.advance(timedelta(seconds=1))
        with pytest.raises(InvalidToken):
            signer.verify(TokenKind.ACCESS, issued.token)

    def test_sub_second_issue_time_keeps_full_lifetime(self, auth_settings):
        clock = FrozenClock(datetime(2026, 3, 1, 9, 30, 0, 600000, tzinfo=UTC))
        signer = PyJWTTokenSigner(auth_settings, clock)
        issued_at = clock.now()

        issued = signer.issue(TokenKind.ACCESS, {"sub": "1"})
        lifetime = timedelta(minutes=15)
        assert issued_at + lifetime <= issued.expires_at < issued_at + lifetime + timedelta(seconds=1)

        clock.advance(lifetime - timedelta(milliseconds=100))
        assert signer.verify(TokenKind.ACCESS, issued.token)["sub"] == "1"

        clock.advance(timedelta(seconds=1))
        with pytest.raises(InvalidToken):
            signer.verify(TokenKind.ACCESS, issued.token)

    def test_kinds_do_not_cross_verify(self, signer):
        access = signer.issue(TokenKind.ACCESS, {"sub": "1"})
        refresh = signer.issue(TokenKind.REFRESH, {"sub": "1"})
        with pytest.raises(InvalidToken):
            signer.verify(TokenKind.REFRESH, access.token)
        with pytest.raises(InvalidToken):
            signer.verify(TokenKind.ACCESS, refresh.token)

    def test_wrong_type_claim_with_right_secret_is_rejected(self, signer, clock):
        now = int(clock.now().timestamp())
        forged = jwt.encode(
            {"sub": "1", "type": "refresh", "iat": now, "exp": now + 60, "jti": "x"},
            ACCESS_SECRET,
            algorithm="HS256",
        )
        with pytest.raises(InvalidToken):
            signer.verify(TokenKind.ACCESS, forged)

    def test_tampered_payload_is_rejected(self, signer):
        token = signer.issue(TokenKind.ACCESS, {"sub": "1"}).token
        header, payload, signature = token.split(".")
        flipped = payload[:-2] + ("A" if payload[-2] != "A" else "B") + payload[-1]
        with pytest.raises(InvalidToken):
            signer.verify(TokenKind.ACCESS, ".".join([header, flipped, signature]))

    def test_missing_required_claim_is_rejected(self, signer, clock):
        now = int(clock.now().timestamp())
        no_jti = jwt.encode(
            {"sub": "1", "type": "access", "iat": now, "exp": now + 60},
            ACCESS_SECRET,
            algorithm="HS256",
        )
        with pytest.raises(InvalidToken):
            signer.verify(TokenKind.ACCESS, no_jti)

    @pytest.mark.parametrize("garbage", ["", "abc", "a.b.c", None])
    def test_garbage_is_rejected(self, signer, garbage):
        with pytest.raises(InvalidToken):
            signer.verify(TokenKind.ACCESS, garbage)

    def test_issuer_is_enforced_when_configured(self, auth_settings, clock):
        from dataclasses import replace

        with_iss = PyJWTTokenSigner(replace(auth_settings, jwt_issuer="authcore"), clock)
        without_iss = PyJWTTokenSigner(auth_settings, clock)

        token = with_iss.issue(TokenKind.ACCESS, {"sub": "1"}).token
        assert with_iss.verify(TokenKind.ACCESS, token)["iss"] == "authcore"

        bare = without_iss.issue(TokenKind.ACCESS, {"sub": "1"}).token
        with pytest.raises(InvalidToken):
            with_iss.verify(TokenKind.ACCESS, bare)
