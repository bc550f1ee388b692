"""
Authentication blueprint:
- POST /auth/register
- POST /auth/login
- POST /auth/refresh
- POST /auth/logout
- POST /auth/change-password

Tokens are JWTs signed with HS256: a short-lived access token and a long-lived
refresh token. Only sha256 of the refresh token id is stored, on the user row, so a
user has at most one live refresh token. Refresh rotates it with a compare-and-swap.
Both tokens are returned in the body and as httpOnly cookies.
"""
from __future__ import annotations

from flask import Blueprint, request, jsonify, g, abort, current_app

from api import get_session_manager, request_deadline
from models.schemas.user import (
    UserCreateSchema,
    UserOutSchema,
    UserLoginSchema,
    PasswordChangeSchema,
)
from services.session_manager import TokenPair
from utils.decorators import jwt_required

bp = Blueprint("auth", __name__)

user_create_schema = UserCreateSchema()
user_out_schema = UserOutSchema()
user_login_schema = UserLoginSchema()
password_change_schema = PasswordChangeSchema()


def _cookie_options() -> dict:
    return {
        "httponly": True,
        "secure": current_app.config.get("COOKIE_SECURE", False),
        "samesite": current_app.config.get("COOKIE_SAMESITE", "Lax"),
    }


def _token_body(pair: TokenPair) -> dict:
    return {
        "access_token": pair.access_token,
        "refresh_token": pair.refresh_token,
        "token_type": "bearer",
        "expires_in": pair.access_expires_in,
    }


def _set_token_cookies(response, pair: TokenPair):
    opts = _cookie_options()
    response.set_cookie(
        current_app.config["ACCESS_COOKIE_NAME"], pair.access_token, max_age=pair.access_expires_in, **opts
    )
    response.set_cookie(
        current_app.config["REFRESH_COOKIE_NAME"], pair.refresh_token, max_age=pair.refresh_expires_in, **opts
    )
    return response


def _incoming_refresh_token() -> str | None:
    """Cookie takes precedence over the body field."""
    token = request.cookies.get(current_app.config["REFRESH_COOKIE_NAME"])
    if token:
        return token
    payload = request.get_json(silent=True) or {}
    return payload.get("refreshToken") or payload.get("refresh_token")


@bp.post("/register")
def register():
    """
    register a new user.
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
            username: { type: string }
            email: { type: string }
            fullname: { type: string }
            password: { type: string }
    responses:
      201:
        description: Created
      409:
        description: Username or email already registered
      422:
        description: Validation error
    """
    payload = request.get_json(silent=True) or {}
    data = user_create_schema.load(payload)

    user = get_session_manager().register(
        data["username"],
        data["email"],
        data["fullname"].strip(),
        data["password"],
        deadline=request_deadline(),
    )
    return jsonify(
        {
            "data": user_out_schema.dump(user)
        }
    ), 201


@bp.post("/login")
def login():
    """
    Login: return access_token and refresh_token
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
             username: { type: string }
             password: { type: string }
    responses:
      200:
        description: OK (returns tokens, also set as httpOnly cookies)
      401:
        description: Invalid password
      404:
        description: User not found
    """
    payload = request.get_json(silent=True) or {}
    data = user_login_schema.load(payload)
    identifier = data.get("identifier") or data.get("email") or data.get("username")

    user, pair = get_session_manager().login(identifier, data["password"], deadline=request_deadline())

    body = _token_body(pair)
    body["user"] = user_out_schema.dump(user)
    return _set_token_cookies(jsonify(body), pair), 200


@bp.post("/refresh")
def refresh():
    """
    Use refresh token to obtain new access and refresh tokens (rotation)
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
             refreshToken: { type: string }
    responses:
      200:
        description: OK (new token pair)
      401:
        description: Expired, malformed or already rotated refresh token
    """
    token = _incoming_refresh_token()
    if not token:
        abort(401, description="Refresh token is required")

    pair = get_session_manager().refresh(token, deadline=request_deadline())
    return _set_token_cookies(jsonify(_token_body(pair)), pair), 200


@bp.post("/logout")
@jwt_required()
def logout():
    """
    logout: clears the stored refresh session and the token cookies
    ---
    tags:
      - Auth
    security:
      - Bearer: []
    responses:
      200:
        description: Logged out (repeating the call is harmless)
      401:
        description: Unauthorized
    """
    get_session_manager().logout(g.current_user_id, deadline=g.deadline)

    response = jsonify({})
    opts = _cookie_options()
    response.delete_cookie(current_app.config["ACCESS_COOKIE_NAME"], **opts)
    response.delete_cookie(current_app.config["REFRESH_COOKIE_NAME"], **opts)
    return response, 200


@bp.post("/change-password")
@jwt_required()
def change_password():
    """
    change the current user's password
    ---
    tags:
      - Auth
    security:
      - Bearer: []
    consumes:
      - application/json
    parameters:
      -  in: body
         name: body
         schema:
           type: object
           properties:
             old_password: { type: string }
             new_password: { type: string }
    responses:
      200:
        description: Password changed
      401:
        description: Invalid old password
    """
    payload = request.get_json(silent=True) or {}
    data = password_change_schema.load(payload)

    get_session_manager().change_password(
        g.current_user_id, data["old_password"], data["new_password"], deadline=g.deadline
    )
    return jsonify({"message": "Password changed successfully"}), 200
