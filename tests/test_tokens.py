from __future__ import annotations

import time

import jwt
import pytest

from subtracker_auth.domain.errors import SigningKeyMissing, TokenExpired, TokenInvalid
from subtracker_auth.security.tokens import TokenIssuer


class FakeClock:
    def __init__(self, now: float) -> None:
        self.now = now

    def __call__(self) -> float:
        return self.now


@pytest.fixture()
def clock() -> FakeClock:
    return FakeClock(1_700_000_000.0)


@pytest.fixture()
def issuer(clock) -> TokenIssuer:
    return TokenIssuer(secret="test-secret", issuer="subtracker.test", ttl_seconds=3600, clock=clock)


def test_issue_embeds_subject_and_expiry(issuer, clock):
    token, expires_in = issuer.issue("account-1")
    assert expires_in == 3600

    claims = jwt.decode(token, options={"verify_signature": False})
    assert claims["sub"] == "account-1"
    assert claims["iss"] == "subtracker.test"
    assert claims["iat"] == int(clock.now)
    assert claims["exp"] == int(clock.now) + 3600


def test_verify_returns_subject_before_expiry(issuer, clock):
    token, _ = issuer.issue("account-1", lifetime=60)
    clock.now += 59
    assert issuer.verify(token) == "account-1"


def test_verify_fails_at_expiry_boundary(issuer, clock):
    token, _ = issuer.issue("account-1", lifetime=60)
    clock.now += 60
    with pytest.raises(TokenExpired):
        issuer.verify(token)


def test_verify_rejects_foreign_signature(issuer, clock):
    other = TokenIssuer(secret="other-secret", issuer="subtracker.test", ttl_seconds=3600, clock=clock)
    token, _ = other.issue("account-1")
    with pytest.raises(TokenInvalid):
        issuer.verify(token)


def test_verify_rejects_other_issuer(issuer, clock):
    other = TokenIssuer(secret="test-secret", issuer="someone.else", ttl_seconds=3600, clock=clock)
    token, _ = other.issue("account-1")
    with pytest.raises(TokenInvalid):
        issuer.verify(token)


@pytest.mark.parametrize("token", ["", "not-a-jwt", "a.b.c"])
def test_verify_rejects_malformed_tokens(issuer, token):
    with pytest.raises(TokenInvalid):
        issuer.verify(token)


def test_verify_rejects_token_without_subject(issuer, clock):
    token = jwt.encode(
        {"iss": "subtracker.test", "iat": int(clock.now), "exp": int(clock.now) + 60},
        "test-secret",
        algorithm="HS256",
    )
    with pytest.raises(TokenInvalid):
        issuer.verify(token)


def test_issue_requires_signing_secret():
    issuer = TokenIssuer(secret="", issuer="subtracker.test", ttl_seconds=3600)
    with pytest.raises(SigningKeyMissing):
        issuer.issue("account-1")


def test_default_clock_round_trip():
    issuer = TokenIssuer(secret="test-secret", issuer="subtracker.test", ttl_seconds=3600)
    token, _ = issuer.issue("account-2")
    assert issuer.verify(token) == "account-2"

    expired_issuer = TokenIssuer(
        secret="test-secret",
        issuer="subtracker.test",
        ttl_seconds=10,
        clock=lambda: time.time() - 20,
    )
    stale, _ = expired_issuer.issue("account-2")
    with pytest.raises(TokenExpired):
        issuer.verify(stale)
