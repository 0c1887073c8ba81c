"""Utilities for issuing and validating application JWTs."""

from __future__ import annotations

import time
from typing import Any, Callable

import jwt

from ..domain.errors import SigningKeyMissing, TokenExpired, TokenInvalid

_ALGORITHM = "HS256"


class TokenIssuer:
    """Mints and verifies stateless HS256 bearer tokens bound to an account id."""

    def __init__(
        self,
        *,
        secret: str,
        issuer: str,
        ttl_seconds: int,
        clock: Callable[[], float] = time.time,
    ) -> None:
        """Capture the signing configuration established at process start.

        Parameters
        ----------
        secret:
            HMAC signing secret. An empty value is accepted here and surfaces
            as :class:`SigningKeyMissing` on the first :meth:`issue` call.
        issuer:
            Value of the ``iss`` claim written and required on verification.
        ttl_seconds:
            Default token lifetime used when :meth:`issue` gets no lifetime.
        clock:
            Source of the current UNIX time; injectable for tests.
        """
        self._secret = secret
        self._issuer = issuer
        self._ttl_seconds = ttl_seconds
        self._clock = clock

    @property
    def default_lifetime(self) -> int:
        return self._ttl_seconds

    def issue(self, account_id: str, lifetime: int | None = None) -> tuple[str, int]:
        """Create a signed JWT representing an authenticated account.

        Returns
        -------
        tuple[str, int]
            The encoded JWT and its lifetime in seconds.

        Raises
        ------
        SigningKeyMissing
            When no signing secret is configured.
        """
        if not self._secret:
            raise SigningKeyMissing()
        expires_in = self._ttl_seconds if lifetime is None else lifetime
        now = int(self._clock())
        payload: dict[str, Any] = {
            "iss": self._issuer,
            "sub": account_id,
            "iat": now,
            "exp": now + expires_in,
        }
        return jwt.encode(payload, self._secret, algorithm=_ALGORITHM), expires_in

    def verify(self, token: str) -> str:
        """Verify a token's signature and expiry and return its subject.

        Raises
        ------
        TokenExpired
            When the current time has reached the ``exp`` claim.
        TokenInvalid
            When the signature, issuer or structure does not check out.
        SigningKeyMissing
            When no signing secret is configured.
        """
        if not self._secret:
            raise SigningKeyMissing()
        try:
            # expiry is checked below against the injected clock
            claims = jwt.decode(
                token,
                self._secret,
                algorithms=[_ALGORITHM],
                issuer=self._issuer,
                options={
                    "require": ["sub", "iat", "exp"],
                    "verify_exp": False,
                    "verify_iat": False,
                },
            )
        except jwt.PyJWTError as exc:
            raise TokenInvalid() from exc

        expires_at = claims["exp"]
        subject = claims["sub"]
        if not isinstance(expires_at, (int, float)) or not isinstance(subject, str) or not subject:
            raise TokenInvalid()
        if self._clock() >= expires_at:
            raise TokenExpired()
        return subject
