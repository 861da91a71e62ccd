from flask import Blueprint, jsonify, request
from flask_login import current_user, login_required, login_user, logout_user

from app.extensions import limiter
from app.services import AuthService

api_auth_bp = Blueprint("api_auth", __name__)


def _user_payload(user):
    return {
        "id": user.id,
        "email": user.email,
        "role": user.role,
        "full_name": user.full_name,
        "company_id": user.company_id,
    }


@api_auth_bp.post("/register")
def api_register():
    payload = request.get_json(silent=True) or {}
    user = AuthService.register_user(
        full_name=payload.get("full_name", ""),
        email=payload.get("email", ""),
        password=payload.get("password", ""),
        role=payload.get("role", ""),
        phone=payload.get("phone", ""),
    )
    login_user(user)
    return jsonify(_user_payload(user)), 201


@api_auth_bp.post("/login")
@limiter.limit("20 per minute")
def api_login():
    payload = request.get_json(silent=True) or {}
    user = AuthService.authenticate_user(payload.get("email", ""), payload.get("password", ""))
    login_user(user)
    return jsonify(_user_payload(user))


@api_auth_bp.get("/me")
@login_required
def api_me():
    return jsonify(_user_payload(current_user))


@api_auth_bp.post("/logout")
@login_required
def api_logout():
    logout_user()
    return jsonify({"ok": True})
