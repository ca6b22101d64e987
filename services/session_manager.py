"""
Session manager: login, refresh-token rotation, logout.

Access tokens live 15 minutes and are never stored. Refresh tokens are
stored one row per token; every successful refresh revokes the presented
row and stores a new one in the same commit, so a refresh token can be
redeemed at most once.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Callable

from models.base_model import utcnow
from models.credential_store import CredentialStore
from models.user import User
from services.errors import (
    ExpiredTokenError,
    InvalidCredentialsError,
    InvalidTokenError,
    MissingTokenError,
    UnverifiedAccountError,
    UserNotFoundError,
)
from utils.security import ACCESS, REFRESH, TokenCodec

logger = logging.getLogger(__name__)


@dataclass
class LoginResult:
    access_token: str
    refresh_token: str
    user: User


@dataclass
class RefreshResult:
    access_token: str
    refresh_token: str


def _claims(user: User) -> dict:
    return {"userId": user.id, "email": user.email}


class SessionManager:
    def __init__(self, store: CredentialStore, codec: TokenCodec, clock: Callable[[], datetime] = utcnow):
        self.store = store
        self.codec = codec
        self.clock = clock

    def _issue_refresh(self, user: User) -> tuple[str, datetime]:
        token = self.codec.sign(REFRESH, _claims(user))
        return token, self.clock() + self.codec.expires_in(REFRESH)

    def login(self, email: str, password: str) -> LoginResult:
        user = self.store.find_user_by_email(email)
        if user is None:
            raise InvalidCredentialsError()
        if not user.is_verified:
            raise UnverifiedAccountError()
        if not self.store.verify_password(user, password):
            logger.info("Rejected login for user %s: bad password", user.id)
            raise InvalidCredentialsError()

        access_token = self.codec.sign(ACCESS, _claims(user))
        refresh_token, expires_at = self._issue_refresh(user)
        self.store.create_refresh_token(refresh_token, user.id, expires_at)
        logger.info("User %s logged in", user.id)
        return LoginResult(access_token=access_token, refresh_token=refresh_token, user=user)

    def refresh(self, presented: str | None) -> RefreshResult:
        """
        Exchange a refresh token for a new access token and a new refresh
        token. The presented token is revoked whether the call succeeds or
        fails on expiry.
        """
        if not presented:
            raise MissingTokenError("Refresh token is required")

        row = self.store.find_active_refresh_token(presented)
        if row is None:
            logger.warning("Refresh rejected: unknown or revoked token")
            raise InvalidTokenError("Invalid or revoked refresh token")

        if row.is_expired(self.clock()):
            self.store.revoke_refresh_token(presented)
            logger.info("Refresh token of user %s expired; revoked", row.user_id)
            raise ExpiredTokenError("Refresh token expired")

        claims = self.codec.verify(REFRESH, row.token)

        user = self.store.find_user_by_id(claims.get("userId"))
        if user is None:
            raise UserNotFoundError()

        new_refresh, expires_at = self._issue_refresh(user)
        rotated = self.store.rotate_refresh_token(presented, new_refresh, user.id, expires_at)
        if rotated is None:
            # lost the race against a concurrent redemption of the same token
            logger.warning("Refresh token of user %s was already redeemed", user.id)
            raise InvalidTokenError("Invalid or revoked refresh token")

        access_token = self.codec.sign(ACCESS, _claims(user))
        logger.info("Rotated refresh token for user %s", user.id)
        return RefreshResult(access_token=access_token, refresh_token=new_refresh)

    def logout(self, presented: str | None) -> bool:
        """Revoke the presented refresh token; unknown tokens are ignored."""
        if not presented:
            return False
        revoked = self.store.revoke_refresh_token(presented)
        if revoked:
            logger.info("Refresh token revoked on logout")
        return revoked

    def authenticate(self, access_token: str | None) -> User:
        """Resolve the user behind a bearer access token."""
        claims = self.codec.verify(ACCESS, access_token)
        user = self.store.find_user_by_id(claims.get("userId"))
        if user is None:
            raise UserNotFoundError()
        return user
