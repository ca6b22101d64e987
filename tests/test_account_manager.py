from urllib.parse import parse_qs, urlparse
import re

import pytest
from marshmallow import ValidationError

from models import storage
from models.user import RESET_PASSWORD, VERIFY_EMAIL, User
from services.errors import (
    AlreadyVerifiedError,
    ExpiredTokenError,
    InvalidCredentialsError,
    InvalidTokenError,
    NotificationError,
    UserNotFoundError,
)
from tests.conftest import STRONG_PASSWORD
from utils.security import ACTION

SIGNUP = {
    "email": "a@b.com",
    "password": STRONG_PASSWORD,
    "name": "Mari",
    "surname": "Tamm",
    "personal_id_code": "49001010001",
}


def link_token(message):
    href = re.search(r'href="([^"]+)"', message["html"]).group(1)
    return parse_qs(urlparse(href.replace("&amp;", "&")).query)["token"][0]


def test_signup_creates_single_unverified_user(accounts, codec, notifier):
    user = accounts.signup(**SIGNUP)

    assert storage.count(User) == 1
    assert user.is_verified is False
    assert user.verification_purpose == VERIFY_EMAIL
    claims = codec.verify(ACTION, user.verification_token, purpose=VERIFY_EMAIL)
    assert claims["email"] == "a@b.com"

    message = notifier.last_to("a@b.com")
    assert message["subject"] == "Verify your email"
    assert link_token(message) == user.verification_token
    assert "http://frontend.test/verify-email?token=" in message["html"]


def test_resignup_of_unverified_email_reissues_token(accounts, notifier):
    first = accounts.signup(**SIGNUP)
    first_token = first.verification_token

    again = accounts.signup(**{**SIGNUP, "name": "Other", "personal_id_code": "49001010002"})
    assert storage.count(User) == 1
    assert again.id == first.id
    assert again.name == "Mari"
    assert again.verification_token != first_token
    assert len(notifier.sent) == 2


def test_signup_of_verified_email_fails(accounts, make_user):
    make_user(email="a@b.com", verified=True)
    with pytest.raises(AlreadyVerifiedError):
        accounts.signup(**SIGNUP)


def test_signup_validation_lists_each_rule(accounts, notifier):
    with pytest.raises(ValidationError) as exc:
        accounts.signup(**{**SIGNUP, "password": "alllowercase", "personal_id_code": "12"})
    assert len(exc.value.messages["password"]) == 3
    assert "personal_id_code" in exc.value.messages
    assert storage.count(User) == 0
    assert notifier.sent == []


def test_signup_fails_when_verification_email_cannot_be_sent(accounts, notifier):
    notifier.fail = True
    with pytest.raises(NotificationError):
        accounts.signup(**SIGNUP)


def test_verify_email_succeeds_once(accounts, sessions):
    user = accounts.signup(**SIGNUP)
    token = user.verification_token

    verified = accounts.verify_email(token)
    assert verified.is_verified is True
    assert verified.verification_token is None
    assert verified.verification_purpose is None

    with pytest.raises(AlreadyVerifiedError):
        accounts.verify_email(token)
    assert sessions.login("a@b.com", STRONG_PASSWORD).access_token


def test_verify_email_rejects_superseded_token(accounts):
    old = accounts.signup(**SIGNUP).verification_token
    accounts.resend_verification("a@b.com")
    with pytest.raises(InvalidTokenError):
        accounts.verify_email(old)


def test_verify_email_for_unknown_user(accounts, codec):
    token = codec.sign(ACTION, {"email": "ghost@b.com", "purpose": VERIFY_EMAIL})
    with pytest.raises(InvalidTokenError):
        accounts.verify_email(token)


def test_verify_email_expired_token(accounts, clock):
    user = accounts.signup(**SIGNUP)
    clock.advance(hours=1, seconds=1)
    with pytest.raises(ExpiredTokenError):
        accounts.verify_email(user.verification_token)


def test_reset_token_cannot_verify_email(accounts, make_user):
    make_user(email="a@b.com", verified=False)
    accounts.forgot_password("a@b.com")
    user = accounts.store.find_user_by_email("a@b.com")
    with pytest.raises(InvalidTokenError):
        accounts.verify_email(user.verification_token)


def test_resend_verification(accounts, make_user):
    make_user(email="done@b.com", verified=True)
    with pytest.raises(UserNotFoundError):
        accounts.resend_verification("ghost@b.com")
    with pytest.raises(AlreadyVerifiedError):
        accounts.resend_verification("done@b.com")


def test_forgot_password_unknown_email_is_silent(accounts, notifier):
    assert accounts.forgot_password("ghost@b.com") is None
    assert notifier.sent == []


def test_forgot_password_survives_mail_failure(accounts, make_user, notifier):
    user = make_user(email="a@b.com")
    notifier.fail = True
    accounts.forgot_password("a@b.com")
    assert user.verification_purpose == RESET_PASSWORD
    assert user.verification_token


def test_reset_password_flow(accounts, sessions, make_user, notifier):
    make_user(email="a@b.com")
    accounts.forgot_password("a@b.com")
    token = link_token(notifier.last_to("a@b.com"))

    user = accounts.reset_password(token, "Brand!New9")
    assert user.verification_token is None
    assert notifier.sent[-1]["subject"] == "Your password was changed"

    assert sessions.login("a@b.com", "Brand!New9").access_token
    with pytest.raises(InvalidCredentialsError):
        sessions.login("a@b.com", STRONG_PASSWORD)
    # single use
    with pytest.raises(InvalidTokenError):
        accounts.reset_password(token, "Another!New9")


def test_reset_password_rejects_superseded_token(accounts, make_user, notifier):
    make_user(email="a@b.com")
    accounts.forgot_password("a@b.com")
    first = link_token(notifier.last_to("a@b.com"))
    accounts.forgot_password("a@b.com")
    with pytest.raises(InvalidTokenError):
        accounts.reset_password(first, "Brand!New9")


def test_reset_password_for_unknown_email(accounts, codec):
    token = codec.sign(ACTION, {"email": "ghost@b.com", "purpose": RESET_PASSWORD})
    with pytest.raises(InvalidTokenError):
        accounts.reset_password(token, "Brand!New9")


def test_reset_password_enforces_policy(accounts, make_user, notifier):
    user = make_user(email="a@b.com")
    accounts.forgot_password("a@b.com")
    token = link_token(notifier.last_to("a@b.com"))
    with pytest.raises(ValidationError):
        accounts.reset_password(token, "weak")
    # the link is still usable after a rejected password
    assert user.verification_token == token


def test_reset_password_survives_confirmation_failure(accounts, sessions, make_user, notifier):
    make_user(email="a@b.com")
    accounts.forgot_password("a@b.com")
    token = link_token(notifier.last_to("a@b.com"))
    notifier.fail = True
    accounts.reset_password(token, "Brand!New9")
    assert sessions.login("a@b.com", "Brand!New9").access_token
