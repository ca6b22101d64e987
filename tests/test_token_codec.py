from datetime import timedelta

import jwt
import pytest

from services.errors import ExpiredTokenError, InvalidTokenError, MissingTokenError, SigningError
from utils.security import ACCESS, ACTION, REFRESH, TokenCodec

CLAIMS = {"userId": "u-1", "email": "a@b.com"}


def test_access_token_carries_claims_and_type(codec):
    token = codec.sign(ACCESS, CLAIMS)
    decoded = codec.verify(ACCESS, token)
    assert decoded["userId"] == "u-1"
    assert decoded["email"] == "a@b.com"
    assert decoded["type"] == "access"
    assert decoded["exp"] - decoded["iat"] == 15 * 60


def test_lifetimes_per_kind(codec):
    assert codec.expires_in(ACCESS) == timedelta(minutes=15)
    assert codec.expires_in(REFRESH) == timedelta(days=7)
    assert codec.expires_in(ACTION) == timedelta(hours=1)
    refresh = codec.verify(REFRESH, codec.sign(REFRESH, CLAIMS))
    assert refresh["exp"] - refresh["iat"] == 7 * 24 * 3600


def test_tokens_signed_with_same_claims_are_distinct(codec):
    assert codec.sign(REFRESH, CLAIMS) != codec.sign(REFRESH, CLAIMS)


def test_refresh_token_is_not_an_access_token(codec):
    token = codec.sign(REFRESH, CLAIMS)
    with pytest.raises(InvalidTokenError):
        codec.verify(ACCESS, token)


def test_action_token_shares_secret_but_not_type_with_access(codec):
    token = codec.sign(ACTION, {"email": "a@b.com", "purpose": "verify_email"})
    with pytest.raises(InvalidTokenError):
        codec.verify(ACCESS, token)
    assert codec.verify(ACTION, token, purpose="verify_email")["email"] == "a@b.com"


def test_action_token_purpose_is_checked(codec):
    token = codec.sign(ACTION, {"email": "a@b.com", "purpose": "reset_password"})
    with pytest.raises(InvalidTokenError):
        codec.verify(ACTION, token, purpose="verify_email")


def test_expired_token(codec, clock):
    token = codec.sign(ACTION, {"email": "a@b.com", "purpose": "verify_email"})
    clock.advance(hours=1, seconds=1)
    with pytest.raises(ExpiredTokenError):
        codec.verify(ACTION, token)


def test_access_token_expires_on_the_codec_clock(codec, clock):
    token = codec.sign(ACCESS, CLAIMS)
    clock.advance(minutes=14)
    assert codec.verify(ACCESS, token)["userId"] == "u-1"
    clock.advance(minutes=2)
    with pytest.raises(ExpiredTokenError):
        codec.verify(ACCESS, token)


def test_token_signed_while_clock_is_ahead_of_wall_time(codec, clock):
    clock.advance(hours=2)
    token = codec.sign(ACCESS, CLAIMS)
    assert codec.verify(ACCESS, token)["email"] == "a@b.com"


def test_token_issued_after_the_clock_is_rejected(codec, clock):
    clock.advance(hours=2)
    token = codec.sign(ACCESS, CLAIMS)
    clock.advance(hours=-2)
    with pytest.raises(InvalidTokenError):
        codec.verify(ACCESS, token)


def test_tampered_and_garbage_tokens(codec):
    token = codec.sign(ACCESS, CLAIMS)
    forged = jwt.encode({"userId": "u-2", "email": "x@y.z", "type": "access", "iat": 1, "exp": 9999999999},
                        "wrong-secret", algorithm="HS256")
    with pytest.raises(InvalidTokenError):
        codec.verify(ACCESS, forged)
    with pytest.raises(InvalidTokenError):
        codec.verify(ACCESS, "not-a-jwt")
    with pytest.raises(InvalidTokenError):
        codec.verify(ACCESS, token[:-4] + "abcd")


def test_missing_token(codec):
    with pytest.raises(MissingTokenError):
        codec.verify(REFRESH, None)
    with pytest.raises(MissingTokenError):
        codec.verify(REFRESH, "")


def test_missing_secret_fails_signing_and_startup():
    codec = TokenCodec(
        secrets={ACCESS: "a", REFRESH: None, ACTION: "a"},
        lifetimes={ACCESS: timedelta(minutes=15), REFRESH: timedelta(days=7), ACTION: timedelta(hours=1)},
    )
    assert codec.sign(ACCESS, CLAIMS)
    with pytest.raises(SigningError):
        codec.sign(REFRESH, CLAIMS)
    with pytest.raises(SigningError):
        codec.ensure_configured()


def test_action_secret_defaults_to_access_secret():
    config = {
        "ACCESS_TOKEN_SECRET": "general",
        "REFRESH_TOKEN_SECRET": "refresh",
        "ACTION_TOKEN_SECRET": None,
        "ACCESS_TOKEN_EXPIRES": timedelta(minutes=15),
        "REFRESH_TOKEN_EXPIRES": timedelta(days=7),
        "ACTION_TOKEN_EXPIRES": timedelta(hours=1),
    }
    codec = TokenCodec.from_config(config)
    codec.ensure_configured()
    token = codec.sign(ACTION, {"email": "a@b.com"})
    assert jwt.decode(token, "general", algorithms=["HS256"], issuer="accounting-api")["type"] == "action"
