"""
Account lifecycle: signup, email verification, forgot/reset password.

A user row holds one pending action token (verification_token) tagged
with its purpose. Signup and resend fill it with a verify_email token,
forgot-password with a reset_password token; a successful verification or
reset clears it. Only the token currently stored is accepted, so a token
superseded by a later one is rejected.
"""
from __future__ import annotations

import logging
from urllib.parse import urlencode

from models.credential_store import CredentialStore
from models.schemas.common import normalize_email
from models.user import RESET_PASSWORD, VERIFY_EMAIL, User
from services.errors import (
    AlreadyVerifiedError,
    InvalidTokenError,
    NotificationError,
    UserNotFoundError,
)
from services.notifier import (
    Notifier,
    password_changed_email,
    password_reset_email,
    verification_email,
)
from utils.security import ACTION, TokenCodec

logger = logging.getLogger(__name__)

VERIFY_PATH = "/verify-email"
RESET_PATH = "/reset-password"


class AccountManager:
    def __init__(self, store: CredentialStore, codec: TokenCodec, notifier: Notifier, frontend_url: str):
        self.store = store
        self.codec = codec
        self.notifier = notifier
        self.frontend_url = frontend_url.rstrip("/")

    def _link(self, path: str, token: str) -> str:
        return f"{self.frontend_url}{path}?{urlencode({'token': token})}"

    def _action_token(self, email: str, purpose: str, user_id: str | None = None) -> str:
        claims = {"email": email, "purpose": purpose}
        if user_id:
            claims["userId"] = user_id
        return self.codec.sign(ACTION, claims)

    def _send_verification(self, user: User, token: str) -> None:
        subject, body = verification_email(user.name, self._link(VERIFY_PATH, token))
        try:
            self.notifier.send(user.email, subject, body)
        except NotificationError:
            logger.error("Verification email to user %s failed", user.id)
            raise
        except Exception as exc:
            logger.error("Verification email to user %s failed: %s", user.id, exc)
            raise NotificationError() from exc

    def _reissue_verification(self, user: User) -> User:
        token = self._action_token(user.email, VERIFY_EMAIL, user.id)
        user = self.store.update_user(
            user.id, {"verification_token": token, "verification_purpose": VERIFY_EMAIL}
        )
        self._send_verification(user, token)
        logger.info("Reissued verification token for user %s", user.id)
        return user

    def signup(self, email: str, password: str, name: str, surname: str, personal_id_code: str) -> User:
        """
        Register a new unverified user and email a verification link.
        An existing unverified user gets a fresh link instead of a second row.
        """
        existing = self.store.find_user_by_email(email)
        if existing is not None:
            if existing.is_verified:
                raise AlreadyVerifiedError("Email is already registered and verified")
            return self._reissue_verification(existing)

        # the token carries only the email; the id does not exist yet
        token = self._action_token(normalize_email(email), VERIFY_EMAIL)
        user = self.store.create_user(
            {
                "email": email,
                "password": password,
                "name": name,
                "surname": surname,
                "personal_id_code": personal_id_code,
                "is_verified": False,
                "verification_token": token,
                "verification_purpose": VERIFY_EMAIL,
            }
        )
        self._send_verification(user, token)
        logger.info("Signed up user %s", user.id)
        return user

    def resend_verification(self, email: str) -> User:
        user = self.store.find_user_by_email(email)
        if user is None:
            raise UserNotFoundError()
        if user.is_verified:
            raise AlreadyVerifiedError()
        return self._reissue_verification(user)

    def verify_email(self, token: str | None) -> User:
        claims = self.codec.verify(ACTION, token, purpose=VERIFY_EMAIL)
        user = self.store.find_user_by_email(claims["email"])
        if user is None:
            raise InvalidTokenError("Invalid verification token")
        if user.is_verified:
            raise AlreadyVerifiedError()
        if user.verification_token != token or user.verification_purpose != VERIFY_EMAIL:
            raise InvalidTokenError("Verification token is no longer valid")

        user = self.store.update_user(
            user.id, {"is_verified": True, "verification_token": None, "verification_purpose": None}
        )
        logger.info("User %s verified their email", user.id)
        return user

    def forgot_password(self, email: str) -> None:
        """Issue a reset link if the account exists; callers always answer the same way."""
        user = self.store.find_user_by_email(email)
        if user is None:
            logger.info("Password reset requested for unknown email")
            return

        token = self._action_token(user.email, RESET_PASSWORD, user.id)
        user = self.store.update_user(
            user.id, {"verification_token": token, "verification_purpose": RESET_PASSWORD}
        )
        subject, body = password_reset_email(user.name, self._link(RESET_PATH, token))
        try:
            self.notifier.send(user.email, subject, body)
        except Exception as exc:
            logger.warning("Password reset email to user %s failed: %s", user.id, exc)
        else:
            logger.info("Password reset link issued for user %s", user.id)

    def reset_password(self, token: str | None, new_password: str) -> User:
        claims = self.codec.verify(ACTION, token, purpose=RESET_PASSWORD)
        user = self.store.find_user_by_email(claims["email"])
        if (
            user is None
            or user.verification_token != token
            or user.verification_purpose != RESET_PASSWORD
        ):
            raise InvalidTokenError("Invalid or superseded reset token")

        user = self.store.update_user(
            user.id,
            {"password": new_password, "verification_token": None, "verification_purpose": None},
        )
        logger.info("User %s reset their password", user.id)

        subject, body = password_changed_email(user.name)
        try:
            self.notifier.send(user.email, subject, body)
        except Exception as exc:
            logger.warning("Password change confirmation to user %s failed: %s", user.id, exc)
        return user
