"""
Credential store: users and refresh tokens behind repository-style calls.

Password hashing is an explicit step (hash_password) run by create_user and
update_user whenever a password is supplied. Refresh-token revocation is a
conditional UPDATE so a token can be redeemed at most once even when two
requests race for it.
"""
from __future__ import annotations

import logging
from datetime import datetime
from typing import Any, Mapping

from argon2.exceptions import InvalidHashError, VerificationError
from marshmallow import ValidationError
from sqlalchemy.exc import IntegrityError

from models.refresh_token import RefreshToken
from models.schemas.common import normalize_email
from models.schemas.user import UserRecordSchema
from models.user import User
from services.errors import DuplicateEmailError, DuplicatePersonalIdError, UserNotFoundError
from utils import security

logger = logging.getLogger(__name__)

UPDATABLE_USER_FIELDS = (
    "name",
    "surname",
    "email",
    "password",
    "is_verified",
    "verification_token",
    "verification_purpose",
)

user_record_schema = UserRecordSchema()


class CredentialStore:
    def __init__(self, storage, hasher=None):
        self.storage = storage
        self.hasher = hasher or security.ph

    @property
    def session(self):
        return self.storage.get_session()

    # users

    def find_user_by_email(self, email: str | None) -> User | None:
        if not email:
            return None
        return self.session.query(User).filter(User.email == normalize_email(email)).first()

    def find_user_by_id(self, user_id: str | None) -> User | None:
        if not user_id:
            return None
        return self.storage.get(User, str(user_id))

    def hash_password(self, user: User, password: str) -> None:
        user.password_hash = self.hasher.hash(password)

    def verify_password(self, user: User, password: str) -> bool:
        if not user.password_hash or password is None:
            return False
        try:
            return self.hasher.verify(user.password_hash, password)
        except (VerificationError, InvalidHashError):
            return False

    def create_user(self, fields: Mapping[str, Any]) -> User:
        """
        Validate and insert a user row; returns the persisted user.
        Extra keys (is_verified, verification_token, verification_purpose)
        are copied as-is.
        """
        record = {k: fields.get(k) for k in ("name", "surname", "personal_id_code", "email", "password")}
        record = {k: v for k, v in record.items() if v is not None}
        errors = user_record_schema.validate(record)
        if errors:
            raise ValidationError(errors)
        email = normalize_email(record["email"])

        if self.find_user_by_email(email):
            raise DuplicateEmailError()
        if self.session.query(User).filter(User.personal_id_code == record["personal_id_code"]).first():
            raise DuplicatePersonalIdError()

        user = User(
            name=record["name"].strip(),
            surname=record["surname"].strip(),
            personal_id_code=record["personal_id_code"],
            email=email,
            is_verified=bool(fields.get("is_verified", False)),
        )
        user.set_action_token(fields.get("verification_token"), fields.get("verification_purpose"))
        self.hash_password(user, record["password"])
        self.storage.new(user)
        try:
            self.storage.save()
        except IntegrityError as err:
            duplicate = self._duplicate_error(err)
            if duplicate is None:
                raise
            raise duplicate from err
        logger.info("Created user %s", user.id)
        return user

    def update_user(self, user_id: str, fields: Mapping[str, Any]) -> User:
        user = self.find_user_by_id(user_id)
        if user is None:
            raise UserNotFoundError()

        unknown = set(fields) - set(UPDATABLE_USER_FIELDS)
        if unknown:
            raise ValueError(f"Cannot update field(s): {', '.join(sorted(unknown))}")

        partial = {k: fields[k] for k in ("name", "surname", "email", "password") if k in fields}
        errors = user_record_schema.validate(partial, partial=True)
        if errors:
            raise ValidationError(errors)

        for key, value in fields.items():
            if key == "password":
                self.hash_password(user, value)
            elif key == "email":
                user.email = normalize_email(value)
            else:
                setattr(user, key, value)
        self.storage.new(user)
        try:
            self.storage.save()
        except IntegrityError as err:
            duplicate = self._duplicate_error(err)
            if duplicate is None:
                raise
            raise duplicate from err
        return user

    @staticmethod
    def _duplicate_error(err: IntegrityError) -> Exception | None:
        message = str(getattr(err, "orig", err)).lower()
        if "personal_id_code" in message:
            return DuplicatePersonalIdError()
        if "email" in message:
            return DuplicateEmailError()
        return None

    # refresh tokens

    def create_refresh_token(self, token: str, user_id: str, expires_at: datetime) -> RefreshToken:
        row = RefreshToken(token=token, user_id=str(user_id), expires_at=expires_at, is_revoked=False)
        self.storage.new(row)
        self.storage.save()
        return row

    def find_active_refresh_token(self, token: str | None) -> RefreshToken | None:
        if not token:
            return None
        return (
            self.session.query(RefreshToken)
            .filter(RefreshToken.token == token, RefreshToken.is_revoked.is_(False))
            .first()
        )

    def _revoke_if_active(self, token: str) -> bool:
        matched = (
            self.session.query(RefreshToken)
            .filter(RefreshToken.token == token, RefreshToken.is_revoked.is_(False))
            .update({RefreshToken.is_revoked: True}, synchronize_session="fetch")
        )
        return matched == 1

    def revoke_refresh_token(self, token: str) -> bool:
        """Revoke `token` if still active; True only for the call that flipped it."""
        try:
            revoked = self._revoke_if_active(token)
            self.storage.save()
        except Exception:
            self.storage.rollback()
            raise
        return revoked

    def rotate_refresh_token(
        self, old_token: str, new_token: str, user_id: str, expires_at: datetime
    ) -> RefreshToken | None:
        """
        Revoke `old_token` and store `new_token` in one commit.
        Returns None, persisting nothing, when `old_token` was already revoked.
        """
        try:
            if not self._revoke_if_active(old_token):
                self.storage.rollback()
                return None
            row = RefreshToken(token=new_token, user_id=str(user_id), expires_at=expires_at, is_revoked=False)
            self.storage.new(row)
            self.storage.save()
        except Exception:
            self.storage.rollback()
            raise
        return row
