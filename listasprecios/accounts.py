from __future__ import annotations

import logging
import secrets
from decimal import Decimal, InvalidOperation
from typing import Any

from sqlalchemy.orm import Session
from werkzeug.security import generate_password_hash

from listasprecios.errors import ConflictError, NotFoundError
from listasprecios.models import User
from listasprecios.pricing import dec
from listasprecios.repos import UserRepo

logger = logging.getLogger(__name__)

MIN_PASSWORD_LEN = 6
_PASSWORD_CHARS = "ABCDEFGHJKLMNPQRSTUVWXYZabcdefghijkmnpqrstuvwxyz23456789!@#$%"


def clamp_pct(value: Any) -> Decimal:
    try:
        d = dec(value)
    except (InvalidOperation, TypeError, ValueError):
        return Decimal("0")
    if not d.is_finite():
        return Decimal("0")
    return max(Decimal("0"), min(Decimal("100"), d))


def random_password(length: int = 10) -> str:
    return "".join(secrets.choice(_PASSWORD_CHARS) for _ in range(length))


def user_to_dict(u: User) -> dict:
    return {
        "id": u.id,
        "email": u.email,
        "role": u.role,
        "descuentoPct": float(u.discount_pct or 0),
        "isActive": bool(u.is_active),
        "createdAt": u.created_at.isoformat() if u.created_at else None,
    }


class UserService:
    def __init__(self, session: Session):
        self.session = session
        self.users = UserRepo(session)

    def list_users(self) -> list[dict]:
        return [user_to_dict(u) for u in self.users.list()]

    def caller_discount(self, user_id: Any) -> Decimal:
        """Discount for the caller; unknown or inactive callers get none."""
        try:
            uid = int(user_id)
        except (TypeError, ValueError):
            return Decimal("0")
        user = self.users.get(uid)
        if user is None or not user.is_active:
            return Decimal("0")
        return clamp_pct(user.discount_pct)

    def create_user(self, data: dict[str, Any]) -> dict:
        email = data["email"]
        if self.users.get_by_email(email) is not None:
            raise ConflictError("Email ya en uso", code="EMAIL_ALREADY_EXISTS")

        password = data.get("password")
        temporary = None
        if not isinstance(password, str) or len(password) < MIN_PASSWORD_LEN:
            temporary = random_password()
            password = temporary

        user = self.users.add(
            User(
                email=email,
                password_hash=generate_password_hash(password),
                role="admin" if data.get("role") == "admin" else "user",
                discount_pct=clamp_pct(data.get("discount_pct", 0)),
                is_active=bool(data.get("is_active", True)),
            )
        )
        logger.info("user %s created (role=%s)", user.email, user.role)
        return {"user": user_to_dict(user), "temporaryPassword": temporary}

    def update_user(self, user_id: int, changes: dict[str, Any]) -> dict:
        user = self.users.get(user_id)
        if user is None:
            raise NotFoundError("Usuario no encontrado")

        email = changes.get("email")
        if email is not None and email != user.email:
            other = self.users.get_by_email(email)
            if other is not None and other.id != user.id:
                raise ConflictError("Email ya en uso", code="EMAIL_ALREADY_EXISTS")
            user.email = email
        if changes.get("role") is not None:
            user.role = changes["role"]
        if changes.get("discount_pct") is not None:
            user.discount_pct = clamp_pct(changes["discount_pct"])
        if changes.get("is_active") is not None:
            user.is_active = bool(changes["is_active"])
        self.session.flush()
        return user_to_dict(user)

    def reset_password(self, user_id: int, new_password: str | None = None) -> dict:
        user = self.users.get(user_id)
        if user is None:
            raise NotFoundError("Usuario no encontrado")

        explicit = isinstance(new_password, str) and len(new_password) >= MIN_PASSWORD_LEN
        plain = new_password if explicit else random_password()
        user.password_hash = generate_password_hash(plain)
        self.session.flush()
        logger.info("password reset for user %s", user.email)
        return {
            "ok": True,
            "message": "Contraseña actualizada" if explicit else "Contraseña temporal generada",
            "temporaryPassword": None if explicit else plain,
        }

    def ensure_admin(self, email: str, password: str) -> bool:
        """Create the bootstrap admin if missing; True when it was created."""
        email = (email or "").strip().lower()
        if self.users.get_by_email(email) is not None:
            logger.info("admin already present: %s", email)
            return False
        self.users.add(
            User(
                email=email,
                password_hash=generate_password_hash(password),
                role="admin",
                discount_pct=Decimal("0"),
                is_active=True,
            )
        )
        logger.info("admin created: %s", email)
        return True
