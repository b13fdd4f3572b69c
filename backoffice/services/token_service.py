# Overview: API token issue and lookup for staff users.

"""
API Token Service

WHY: Every write is attributed to a staff user. Users hold one long-lived
bearer token; the plaintext is shown once at creation and only its SHA-256
hash is stored.
"""

import hashlib
import secrets

from ..extensions import db
from ..errors import ValidationError
from ..models import User

ROLE_ADMIN = "admin"
ROLE_MANAGER = "manager"
ROLE_WAITRESS = "waitress"

VALID_ROLES = [ROLE_ADMIN, ROLE_MANAGER, ROLE_WAITRESS]


def generate_token() -> str:
    """64-character hex string (32 bytes of entropy); never stored."""
    return secrets.token_hex(32)


def hash_token(token: str) -> str:
    """
    Hash token for database storage using SHA-256.

    WHY SHA-256 not bcrypt: Tokens are already high-entropy (unlike passwords).
    """
    return hashlib.sha256(token.encode("utf-8")).hexdigest()


def user_for_token(token: str) -> User | None:
    """Active user owning the token, or None."""
    if not token:
        return None
    return (
        db.session.query(User)
        .filter_by(api_token_hash=hash_token(token), is_active=True)
        .first()
    )


def create_user(*, name: str, email: str, role: str = ROLE_WAITRESS) -> tuple[User, str]:
    """
    Create a user and issue its API token.

    Returns (user, plaintext_token).
    """
    if role not in VALID_ROLES:
        raise ValidationError(f"Invalid role: {role}. Must be one of {VALID_ROLES}", details={"field": "role"})
    if not name or not email:
        raise ValidationError("name and email are required")

    token = generate_token()
    user = User(name=name.strip(), email=email.strip().lower(), role=role, api_token_hash=hash_token(token))
    db.session.add(user)
    db.session.commit()
    return user, token


def rotate_token(user: User) -> str:
    """Replace the user's token; the old one stops working immediately."""
    token = generate_token()
    user.api_token_hash = hash_token(token)
    db.session.commit()
    return token
