"""
HMAC bearer tokens for the Builder API.

Why: The Builder has a handful of editors and one SPA; a signed, self-contained
token avoids a session store while keeping verification a pure function that
can be unit tested without the web adapter.

Format:
    base64url-no-padding of `userId:username:role:expiresAtEpoch:signature`
    where `signature` is base64url-no-padding HMAC-SHA256 over everything before
    it. A legacy 4-part payload without `userId` is still accepted.

Security:
    Signatures are compared in constant time. Expired, malformed or tampered
    tokens verify to `None`; the caller decides on 401.
"""
from __future__ import annotations

import base64
from dataclasses import dataclass
import hashlib
import hmac
import time
from typing import Callable

TOKEN_VALIDITY_SECONDS = 24 * 3600


def _b64(data: bytes) -> str:
    return base64.urlsafe_b64encode(data).decode("ascii").rstrip("=")


def _b64decode(value: str) -> bytes:
    padded = value + "=" * (-len(value) % 4)
    return base64.urlsafe_b64decode(padded.encode("ascii"))


@dataclass(frozen=True)
class TokenClaims:
    user_id: int | None
    username: str
    role: str
    expires_at: int


class TokenService:
    def __init__(
        self,
        secret: str,
        *,
        validity_seconds: int = TOKEN_VALIDITY_SECONDS,
        clock: Callable[[], float] = time.time,
    ) -> None:
        if not secret:
            raise ValueError("token secret must not be empty")
        self._secret = secret.encode("utf-8")
        self._validity = validity_seconds
        self._clock = clock

    def _sign(self, payload: str) -> str:
        return _b64(hmac.new(self._secret, payload.encode("utf-8"), hashlib.sha256).digest())

    def _encode(self, payload: str) -> str:
        return _b64(f"{payload}:{self._sign(payload)}".encode("utf-8"))

    def _expiry(self) -> int:
        return int(self._clock()) + self._validity

    def generate(self, user_id: int, username: str, role: str) -> str:
        return self._encode(f"{user_id}:{username}:{role}:{self._expiry()}")

    def generate_legacy(self, username: str, role: str) -> str:
        """Token without user id, issued for the env-configured login."""
        return self._encode(f"{username}:{role}:{self._expiry()}")

    def verify(self, token: str | None) -> TokenClaims | None:
        if not token or not token.strip():
            return None
        try:
            parts = _b64decode(token.strip()).decode("utf-8").split(":")
        except (ValueError, UnicodeDecodeError):
            return None
        if len(parts) not in (4, 5):
            return None

        payload = ":".join(parts[:-1])
        if not hmac.compare_digest(parts[-1], self._sign(payload)):
            return None
        try:
            expires_at = int(parts[-2])
            user_id = int(parts[0]) if len(parts) == 5 else None
        except ValueError:
            return None
        if int(self._clock()) > expires_at:
            return None

        if len(parts) == 5:
            return TokenClaims(user_id=user_id, username=parts[1], role=parts[2], expires_at=expires_at)
        return TokenClaims(user_id=None, username=parts[0], role=parts[1], expires_at=expires_at)


__all__ = ["TokenService", "TokenClaims", "TOKEN_VALIDITY_SECONDS"]
