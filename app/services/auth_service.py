import re

from flask import current_app
from sqlalchemy.exc import IntegrityError

from app.errors import AppError
from app.extensions import bcrypt, db
from app.models import User
from app.models.base import utcnow


class AuthService:
    SELF_SERVICE_ROLES = {"manager", "owner"}

    @staticmethod
    def _normalize_phone(phone):
        digits = "".join(ch for ch in (phone or "") if ch.isdigit())
        if not re.fullmatch(r"\d{10,15}", digits):
            raise AppError("Phone number must contain 10 to 15 digits.", 400)
        return digits

    @staticmethod
    def register_user(full_name, email, password, role, phone):
        """Self-service signup. Accounts start without a company; admins attach them later."""
        if role not in AuthService.SELF_SERVICE_ROLES:
            raise AppError("Invalid role.", 400)

        normalized_email = (email or "").strip().lower()
        normalized_phone = AuthService._normalize_phone(phone)
        if not full_name or not normalized_email or not password:
            raise AppError("Name, email, phone, and password are required.", 400)

        existing = User.query.filter_by(email=normalized_email).first()
        if existing:
            raise AppError("Email already registered.", 409)

        user = User(
            full_name=full_name.strip(),
            email=normalized_email,
            phone=normalized_phone,
            role=role,
            password_hash=bcrypt.generate_password_hash(password).decode("utf-8"),
        )
        try:
            db.session.add(user)
            db.session.commit()
        except IntegrityError as exc:
            db.session.rollback()
            message = str(getattr(exc, "orig", exc)).lower()
            if "users.email" in message:
                raise AppError("Email already registered.", 409) from exc
            raise AppError("Could not create account due to invalid data.", 400) from exc
        return user

    @staticmethod
    def authenticate_user(email, password):
        normalized_email = (email or "").strip().lower()
        user = User.query.filter_by(email=normalized_email).first()
        try:
            is_valid = user is not None and bcrypt.check_password_hash(user.password_hash, password or "")
        except ValueError:
            is_valid = False

        if not is_valid:
            current_app.logger.warning("Failed login for %s", normalized_email)
            raise AppError("Invalid credentials.", 401)
        if not user.is_active_user:
            raise AppError("User account is inactive.", 403)
        user.last_login = utcnow()
        db.session.commit()
        return user
