"""Utilities for issuing and validating application JWTs."""

from __future__ import annotations

import hashlib
import secrets
import time
from typing import Any

import jwt

from ..config import Settings
from ..domain.account import Account
from ..domain.errors import InvalidTokenError

ACCESS_TOKEN_TYPE = "access"
REFRESH_TOKEN_TYPE = "refresh"


class JwtTokenIssuer:
    """HS256 token issuer binding tokens to an account's identification and role."""

    algorithm = "HS256"

    def __init__(
        self,
        *,
        secret: str,
        issuer: str,
        access_ttl_seconds: int,
        refresh_ttl_seconds: int,
    ) -> None:
        self._secret = secret
        self._issuer = issuer
        self.access_ttl_seconds = access_ttl_seconds
        self.refresh_ttl_seconds = refresh_ttl_seconds

    @classmethod
    def from_settings(cls, settings: Settings) -> "JwtTokenIssuer":
        return cls(
            secret=settings.jwt_secret,
            issuer=settings.jwt_issuer,
            access_ttl_seconds=settings.access_ttl_seconds,
            refresh_ttl_seconds=settings.refresh_ttl_seconds,
        )

    def generate_access_token(self, account: Account) -> str:
        """Create a short-lived signed JWT for API calls made by ``account``."""
        return self._encode(account, ACCESS_TOKEN_TYPE, self.access_ttl_seconds)

    def generate_refresh_token(self, account: Account) -> str:
        """Create a long-lived signed JWT exchangeable for new access tokens.

        Every call yields a distinct token, even within the same second, because
        the ``jti`` claim is random.
        """
        return self._encode(account, REFRESH_TOKEN_TYPE, self.refresh_ttl_seconds)

    def validate_token(self, token: str) -> bool:
        """Return ``True`` when the signature, issuer and expiry of ``token`` check out."""
        try:
            self._decode(token)
        except jwt.PyJWTError:
            return False
        return True

    def decode_token(self, token: str) -> dict[str, Any]:
        """Decode and verify a JWT returning its payload.

        Parameters
        ----------
        token:
            Encoded JWT issued by this service.

        Returns
        -------
        dict[str, Any]
            The decoded payload if signature, issuer and expiry checks succeed.

        Raises
        ------
        InvalidTokenError
            When the token is malformed, expired, or signed by another issuer.
        """
        try:
            return self._decode(token)
        except jwt.PyJWTError as exc:
            raise InvalidTokenError() from exc

    def _encode(self, account: Account, token_type: str, ttl_seconds: int) -> str:
        now = int(time.time())
        payload: dict[str, Any] = {
            "iss": self._issuer,
            "sub": account.identification,
            "uid": account.account_id,
            "role": account.role.value,
            "type": token_type,
            "jti": secrets.token_hex(16),
            "iat": now,
            "exp": now + ttl_seconds,
        }
        return jwt.encode(payload, self._secret, algorithm=self.algorithm)

    def _decode(self, token: str) -> dict[str, Any]:
        return jwt.decode(
            token,
            self._secret,
            algorithms=[self.algorithm],
            issuer=self._issuer,
            options={"require": ["exp", "iat", "sub", "uid", "role", "type"]},
        )


def hash_refresh_token(token: str) -> str:
    """Return the SHA-256 hex digest stored in place of a raw refresh token."""
    return hashlib.sha256(token.encode("utf-8")).hexdigest()
