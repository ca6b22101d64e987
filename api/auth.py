"""
Authentication blueprint:
- POST /auth/signup
- GET  /auth/verify-email?token=...
- POST /auth/resend-verification
- POST /auth/login
- POST /auth/refresh
- POST /auth/logout
- POST /auth/forgot-password
- POST /auth/reset-password

The access token travels in the JSON body (`accessToken`); the refresh
token only ever travels in an HttpOnly, Secure, SameSite=Strict cookie.
"""
from __future__ import annotations

from flask import Blueprint, request, jsonify, current_app

from models.schemas.user import (
    EmailSchema,
    ResetPasswordSchema,
    SignupSchema,
    UserLoginSchema,
    UserOutSchema,
)

bp = Blueprint("auth", __name__)

signup_schema = SignupSchema()
login_schema = UserLoginSchema()
email_schema = EmailSchema()
reset_schema = ResetPasswordSchema()
user_out_schema = UserOutSchema()

FORGOT_PASSWORD_MESSAGE = "If an account exists for this email, a password reset link has been sent."


def _sessions():
    return current_app.extensions["session_manager"]


def _accounts():
    return current_app.extensions["account_manager"]


def _set_refresh_cookie(response, token: str):
    response.set_cookie(
        current_app.config["REFRESH_COOKIE_NAME"],
        token,
        max_age=int(current_app.config["REFRESH_TOKEN_EXPIRES"].total_seconds()),
        path="/",
        secure=True,
        httponly=True,
        samesite="Strict",
    )
    return response


def _clear_refresh_cookie(response):
    response.delete_cookie(
        current_app.config["REFRESH_COOKIE_NAME"],
        path="/",
        secure=True,
        httponly=True,
        samesite="Strict",
    )
    return response


def _refresh_cookie() -> str | None:
    return request.cookies.get(current_app.config["REFRESH_COOKIE_NAME"])


@bp.post("/signup")
def signup():
    """
    Register a new user and email a verification link.
    Signing up again with an unverified email resends the link.
    ---
    tags:
      - Auth
    consumes:
      - application/json
    parameters:
      - in: body
        name: body
        schema:
          type: object
          required: [email, password, name, surname, personalIdCode]
          properties:
            email: { type: string }
            password: { type: string }
            name: { type: string }
            surname: { type: string }
            personalIdCode: { type: string, example: "38001010000" }
    responses:
      201:
        description: Created, verification email sent
      409:
        description: Email already verified / duplicate personal id code
      422:
        description: Validation error
    """
    payload = request.get_json(silent=True) or {}
    data = signup_schema.load(payload)
    user = _accounts().signup(
        email=data["email"],
        password=data["password"],
        name=data["name"],
        surname=data["surname"],
        personal_id_code=data["personal_id_code"],
    )
    return jsonify(
        {
            "message": "Verification email sent. Please check your inbox.",
            "data": user_out_schema.dump(user),
        }
    ), 201


@bp.get("/verify-email")
def verify_email():
    """
    Verify an email address with the token from the verification link.
    ---
    tags:
      - Auth
    parameters:
      - in: query
        name: token
        type: string
        required: true
    responses:
      200:
        description: Email verified
      401:
        description: Invalid or expired token
      409:
        description: Already verified
    """
    user = _accounts().verify_email(request.args.get("token"))
    return jsonify(
        {
            "message": "Email verified successfully. You can now log in.",
            "data": user_out_schema.dump(user),
        }
    ), 200


@bp.post("/resend-verification")
def resend_verification():
    """
    Send a fresh verification link to an unverified account.
    ---
    tags:
      - Auth
    consumes:
      - application/json
    parameters:
      - in: body
        name: body
        schema:
          type: object
          properties:
            email: { type: string }
    responses:
      200:
        description: Verification email sent
      404:
        description: No such user
      409:
        description: Already verified
    """
    data = email_schema.load(request.get_json(silent=True) or {})
    _accounts().resend_verification(data["email"])
    return jsonify({"message": "Verification email sent. Please check your inbox."}), 200


@bp.post("/login")
def login():
    """
    Login: returns the access token; the refresh token is set as a cookie
    ---
    tags:
      - Auth
    consumes:
      - application/json
    parameters:
      -  in: body
         name: body
         schema:
           type: object
           properties:
             email: { type: string }
             password: { type: string }
    responses:
      200:
        description: OK (accessToken in body, refreshToken cookie)
      401:
        description: Invalid credentials
      403:
        description: Email not verified
    """
    data = login_schema.load(request.get_json(silent=True) or {})
    result = _sessions().login(data["email"], data["password"])
    response = jsonify(
        {
            "accessToken": result.access_token,
            "tokenType": "bearer",
            "expiresIn": int(current_app.config["ACCESS_TOKEN_EXPIRES"].total_seconds()),
            "user": user_out_schema.dump(result.user),
        }
    )
    return _set_refresh_cookie(response, result.refresh_token), 200


@bp.post("/refresh")
def refresh():
    """
    Exchange the refresh token cookie for a new access token (rotation).
    ---
    tags:
      - Auth
    responses:
      200:
        description: OK (new accessToken in body, new refreshToken cookie)
      401:
        description: Missing, invalid, revoked or expired refresh token
    """
    result = _sessions().refresh(_refresh_cookie())
    response = jsonify(
        {
            "accessToken": result.access_token,
            "tokenType": "bearer",
            "expiresIn": int(current_app.config["ACCESS_TOKEN_EXPIRES"].total_seconds()),
        }
    )
    return _set_refresh_cookie(response, result.refresh_token), 200


@bp.post("/logout")
def logout():
    """
    Logout: revokes the refresh token cookie and clears it
    ---
    tags:
      - Auth
    responses:
      204:
        description: ""
    """
    _sessions().logout(_refresh_cookie())
    return _clear_refresh_cookie(current_app.make_response(("", 204)))


@bp.post("/forgot-password")
def forgot_password():
    """
    Request a password reset link. The answer is the same whether or not
    the email is registered.
    ---
    tags:
      - Auth
    consumes:
      - application/json
    parameters:
      - in: body
        name: body
        schema:
          type: object
          properties:
            email: { type: string }
    responses:
      200:
        description: Generic acknowledgement
    """
    data = email_schema.load(request.get_json(silent=True) or {})
    _accounts().forgot_password(data["email"])
    return jsonify({"message": FORGOT_PASSWORD_MESSAGE}), 200


@bp.post("/reset-password")
def reset_password():
    """
    Set a new password using the token from the reset link.
    ---
    tags:
      - Auth
    consumes:
      - application/json
    parameters:
      - in: body
        name: body
        schema:
          type: object
          properties:
            token: { type: string }
            newPassword: { type: string }
    responses:
      200:
        description: Password updated
      401:
        description: Invalid, superseded or expired token
      422:
        description: Password does not meet the policy
    """
    data = reset_schema.load(request.get_json(silent=True) or {})
    _accounts().reset_password(data["token"], data["new_password"])
    return jsonify({"message": "Password has been reset successfully."}), 200
