"""
routes/auth.py — Authentication route handlers.

Layer rules:
  - Parse request body
  - Validate with the appropriate schema (raises ValidationError on bad input)
  - Call exactly ONE service method
  - Commit the DB session
  - Return the response envelope: {"data": {...}}

No business logic here. No DB queries.
AppError propagates to the global error handler in app/__init__.py — routes
never catch it.

Endpoints (url_prefix=/auth):
  POST   /auth/register        → 201
  POST   /auth/login           → 200
  POST   /auth/refresh         → 200
  POST   /auth/logout          → 200
  POST   /auth/request-reset   → 200
  POST   /auth/reset-password  → 200
  GET    /auth/profile         → 200 (bearer access token)
"""

from __future__ import annotations

from flask import Blueprint, current_app, g, jsonify, request

from hrdesk.app.extensions import db, hashing_pool
from hrdesk.app.middleware.auth_middleware import require_auth
from hrdesk.app.schemas.auth_schema import (
    LoginSchema,
    RefreshTokenSchema,
    RegisterSchema,
    RequestResetSchema,
    ResetPasswordSchema,
)
from hrdesk.app.services.auth_service import AuthService, DeviceMetadata
from hrdesk.app.services.passwords import PasswordHasher
from hrdesk.app.services.token_service import TokenService
from hrdesk.app.stores.credential_store import CredentialStore
from hrdesk.app.stores.session_store import SessionStore

auth_bp = Blueprint("auth", __name__)


def _auth_service() -> AuthService:
    """Builds the service around this request's session and the app config."""
    config = current_app.config
    return AuthService(
        credentials=CredentialStore(db.session),
        sessions=SessionStore(db.session),
        tokens=TokenService.from_config(config),
        hasher=PasswordHasher(rounds=config["BCRYPT_LOG_ROUNDS"], pool=hashing_pool),
        reset_ttl=config["PASSWORD_RESET_EXPIRES"],
    )


def _device_metadata() -> DeviceMetadata:
    # remote_addr honours ProxyFix when TRUSTED_PROXY_COUNT is configured.
    return DeviceMetadata(
        user_agent=request.headers.get("User-Agent") or None,
        origin=request.remote_addr or None,
    )


@auth_bp.route("/register", methods=["POST"])
def register():
    """POST /auth/register — Create an account for an existing employee."""
    data = RegisterSchema().load(request.get_json(force=True, silent=True) or {})
    external_id = _auth_service().register(
        email=data["email"],
        password=data["password"],
        role=data["role"],
    )
    db.session.commit()
    return jsonify({"data": {"externalId": external_id}}), 201


@auth_bp.route("/login", methods=["POST"])
def login():
    """POST /auth/login — Authenticate; return a token pair for this device."""
    data = LoginSchema().load(request.get_json(force=True, silent=True) or {})
    pair = _auth_service().login(
        email=data["email"],
        password=data["password"],
        device=_device_metadata(),
    )
    db.session.commit()
    return jsonify({"data": pair.to_dict()}), 200


@auth_bp.route("/refresh", methods=["POST"])
def refresh():
    """POST /auth/refresh — Rotate a refresh token into a new pair."""
    data = RefreshTokenSchema().load(request.get_json(force=True, silent=True) or {})
    pair = _auth_service().refresh(data["refresh_token"])
    db.session.commit()
    return jsonify({"data": pair.to_dict()}), 200


@auth_bp.route("/logout", methods=["POST"])
def logout():
    """POST /auth/logout — Revoke the session for this device only."""
    data = RefreshTokenSchema().load(request.get_json(force=True, silent=True) or {})
    _auth_service().logout(data["refresh_token"])
    db.session.commit()
    return jsonify({"data": {"message": "Logged out from this device successfully."}}), 200


@auth_bp.route("/request-reset", methods=["POST"])
def request_reset():
    """
    POST /auth/request-reset — Issue a 15-minute password reset token.

    The token is echoed only when RESET_TOKEN_IN_RESPONSE is set (trusted
    internal deployments). Otherwise it must reach the user out-of-band.
    """
    data = RequestResetSchema().load(request.get_json(force=True, silent=True) or {})
    token = _auth_service().request_reset(data["email"])
    db.session.commit()

    body = {"message": "Reset token generated."}
    if current_app.config.get("RESET_TOKEN_IN_RESPONSE"):
        body["token"] = token
    return jsonify({"data": body}), 200


@auth_bp.route("/reset-password", methods=["POST"])
def reset_password():
    """POST /auth/reset-password — Redeem a reset token and set a new password."""
    data = ResetPasswordSchema().load(request.get_json(force=True, silent=True) or {})
    _auth_service().reset_password(
        token=data["token"],
        new_password=data["new_password"],
    )
    db.session.commit()
    return jsonify({"data": {"message": "Password reset successful."}}), 200


@auth_bp.route("/profile", methods=["GET"])
@require_auth
def profile():
    """GET /auth/profile — Return the caller's identity claims. (Auth required.)"""
    return jsonify({
        "data": {
            "message": "Protected route",
            "user": AuthService.get_profile(g.current_user),
        }
    }), 200
