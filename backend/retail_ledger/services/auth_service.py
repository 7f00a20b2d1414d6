# Overview: Service-layer operations for auth; password hashing and bearer tokens.

"""
Authentication Service

Users register with name/email/password and log in with email/password.
Login returns a signed JWT; every protected route verifies it through
@require_auth before the ledger core is reached.

SECURITY NOTES:
- Passwords hashed with bcrypt (cost factor 12)
- Minimum 8 characters required
- Tokens are HS256 JWTs carrying sub (user id), email, iat and exp
- A token for a deactivated or deleted user is rejected even if unexpired
"""

from __future__ import annotations

from datetime import timedelta, timezone

import bcrypt
import jwt
from flask import current_app
from sqlalchemy import or_

from ..extensions import db
from ..models import User
from ..formatting import utcnow
from ..validation import ConflictError
from .listing import paginate


class PasswordValidationError(Exception):
    """Raised when password doesn't meet strength requirements."""
    pass


class AuthenticationError(Exception):
    """Raised for bad credentials or unusable tokens."""
    pass


def validate_password_strength(password: str) -> None:
    if not isinstance(password, str) or len(password) < 8:
        raise PasswordValidationError("Password must be at least 8 characters long")


def hash_password(password: str) -> str:
    """
    Hash password using bcrypt with cost factor 12.

    Password is validated for strength before hashing.
    """
    validate_password_strength(password)
    salt = bcrypt.gensalt(rounds=12)
    hashed = bcrypt.hashpw(password.encode('utf-8'), salt)
    return hashed.decode('utf-8')  # Store as string in database


def verify_password(password: str, password_hash: str) -> bool:
    try:
        return bcrypt.checkpw(password.encode('utf-8'), password_hash.encode('utf-8'))
    except ValueError:
        # Malformed stored hash
        return False


def register_user(*, name: str, email: str, password: str, role: str = "staff") -> User:
    email = email.strip().lower()
    if db.session.query(User).filter_by(email=email).first() is not None:
        raise ConflictError("Email already registered")

    user = User(
        name=name.strip(),
        email=email,
        password_hash=hash_password(password),
        role=role,
        is_active=True,
    )
    db.session.add(user)
    db.session.commit()
    return user


def authenticate(email: str, password: str) -> User:
    user = db.session.query(User).filter_by(email=(email or "").strip().lower()).first()
    if user is None or not verify_password(password or "", user.password_hash):
        raise AuthenticationError("Invalid credentials")
    if not user.is_active:
        raise AuthenticationError("Account is deactivated")
    return user


def issue_token(user: User) -> tuple[str, int]:
    """Returns (token, expires_in_seconds)."""
    config = current_app.config
    lifetime = timedelta(minutes=config["JWT_EXPIRES_MINUTES"])
    now = utcnow().replace(tzinfo=timezone.utc)
    payload = {
        "sub": str(user.id),
        "email": user.email,
        "iat": now,
        "exp": now + lifetime,
    }
    token = jwt.encode(payload, config["JWT_SECRET"], algorithm=config["JWT_ALGORITHM"])
    return token, int(lifetime.total_seconds())


def user_from_token(token: str) -> User:
    config = current_app.config
    try:
        payload = jwt.decode(
            token,
            config["JWT_SECRET"],
            algorithms=[config["JWT_ALGORITHM"]],
            options={"require": ["sub", "exp"]},
        )
    except jwt.ExpiredSignatureError as exc:
        raise AuthenticationError("Token expired") from exc
    except jwt.PyJWTError as exc:
        raise AuthenticationError("Invalid token") from exc

    try:
        user_id = int(payload["sub"])
    except (TypeError, ValueError) as exc:
        raise AuthenticationError("Invalid token subject") from exc

    user = db.session.get(User, user_id)
    if user is None or not user.is_active:
        raise AuthenticationError("User no longer active")
    return user


def list_users(
    *,
    search: str | None = None,
    role: str | None = None,
    page: int | None = None,
    per_page: int | None = None,
    sort: str | None = None,
    sort_field: str | None = None,
) -> dict:
    """
    Page through users, newest first unless a sort is given.

    search matches a substring of name or email (case-insensitive).
    """
    query = db.session.query(User)
    if search:
        pattern = f"%{search.strip()}%"
        query = query.filter(or_(User.name.ilike(pattern), User.email.ilike(pattern)))
    if role:
        query = query.filter(User.role == role)
    return paginate(
        query,
        User,
        page=page,
        per_page=per_page,
        sort=sort or "desc",
        sort_field=sort_field,
    )
