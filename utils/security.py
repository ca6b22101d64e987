"""
security helpers:
- Argon2 password hashing via argon2-cffi
- JWT creation/verification via PyJWT (TokenCodec)
- JTI generation so every issued token is distinct
"""
from __future__ import annotations

import uuid
from datetime import datetime, timedelta, timezone
from typing import Any, Callable, Dict, Mapping

import jwt
from argon2 import PasswordHasher

from models.base_model import utcnow
from services.errors import (
    ExpiredTokenError,
    InvalidTokenError,
    MissingTokenError,
    SigningError,
)

ACCESS = "access"
REFRESH = "refresh"
ACTION = "action"
TOKEN_KINDS = (ACCESS, REFRESH, ACTION)

ph = PasswordHasher()


def generate_jti() -> str:
    """Generate a unique JTI (JWT ID).
    """
    return str(uuid.uuid4())


def _epoch(moment: datetime) -> int:
    if moment.tzinfo is None:
        moment = moment.replace(tzinfo=timezone.utc)
    return int(moment.timestamp())


class TokenCodec:
    """
    Signs and verifies the three token classes (access, refresh, action).

    Each kind has its own secret and lifetime. The `type` claim is checked
    on verify, so an action token signed with the access secret is never
    accepted as an access token.
    """

    def __init__(
        self,
        secrets: Mapping[str, str | None],
        lifetimes: Mapping[str, timedelta],
        algorithm: str = "HS256",
        issuer: str = "accounting-api",
        clock: Callable[[], datetime] = utcnow,
    ):
        self._secrets = dict(secrets)
        self._lifetimes = dict(lifetimes)
        self.algorithm = algorithm
        self.issuer = issuer
        self._clock = clock

    @classmethod
    def from_config(cls, config: Mapping[str, Any], clock: Callable[[], datetime] = utcnow) -> "TokenCodec":
        access_secret = config.get("ACCESS_TOKEN_SECRET")
        return cls(
            secrets={
                ACCESS: access_secret,
                REFRESH: config.get("REFRESH_TOKEN_SECRET"),
                ACTION: config.get("ACTION_TOKEN_SECRET") or access_secret,
            },
            lifetimes={
                ACCESS: config["ACCESS_TOKEN_EXPIRES"],
                REFRESH: config["REFRESH_TOKEN_EXPIRES"],
                ACTION: config["ACTION_TOKEN_EXPIRES"],
            },
            algorithm=config.get("JWT_ALGORITHM", "HS256"),
            issuer=config.get("JWT_ISSUER", "accounting-api"),
            clock=clock,
        )

    def ensure_configured(self) -> None:
        """Raise SigningError unless every token kind has a secret."""
        missing = [kind for kind in TOKEN_KINDS if not self._secrets.get(kind)]
        if missing:
            raise SigningError(f"Missing token secret(s): {', '.join(missing)}")

    def _secret(self, kind: str) -> str:
        if kind not in TOKEN_KINDS:
            raise ValueError(f"Unknown token kind: {kind}")
        secret = self._secrets.get(kind)
        if not secret:
            raise SigningError(f"No secret configured for {kind} tokens")
        return secret

    def expires_in(self, kind: str) -> timedelta:
        return self._lifetimes[kind]

    def sign(self, kind: str, claims: Mapping[str, Any]) -> str:
        secret = self._secret(kind)
        now = self._clock()
        payload = dict(claims)
        payload.update(
            {
                "iss": self.issuer,
                "iat": _epoch(now),
                "exp": _epoch(now + self._lifetimes[kind]),
                "type": kind,
                "jti": generate_jti(),
            }
        )
        return jwt.encode(payload, secret, algorithm=self.algorithm)

    def verify(self, kind: str, token: str | None, purpose: str | None = None) -> Dict[str, Any]:
        """
        Decode and validate a token of the given kind.
        Raises ExpiredTokenError past expiry and InvalidTokenError on a bad
        signature, malformed payload, wrong type or wrong purpose.

        exp/iat are checked against the codec's clock, not wall-clock time.
        """
        if not token:
            raise MissingTokenError()
        secret = self._secret(kind)
        try:
            decoded = jwt.decode(
                token,
                secret,
                algorithms=[self.algorithm],
                issuer=self.issuer,
                options={"verify_exp": False, "verify_iat": False, "require": ["exp", "iat", "type"]},
            )
        except jwt.InvalidTokenError as exc:
            raise InvalidTokenError(f"Invalid token: {exc}")

        exp, iat = decoded["exp"], decoded["iat"]
        if not isinstance(exp, (int, float)) or not isinstance(iat, (int, float)):
            raise InvalidTokenError("Invalid token: exp and iat must be numeric")
        now = _epoch(self._clock())
        if now >= exp:
            raise ExpiredTokenError()
        if iat > now:
            raise InvalidTokenError("Invalid token: issued in the future")

        if decoded.get("type") != kind:
            raise InvalidTokenError("Wrong token type")
        if purpose is not None and decoded.get("purpose") != purpose:
            raise InvalidTokenError("Wrong token purpose")
        if not decoded.get("email"):
            raise InvalidTokenError("Token has no subject")
        return decoded
