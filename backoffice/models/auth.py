from __future__ import annotations

from ..extensions import db
from backoffice.time_utils import to_utc_z

class User(db.Model):
    """
    Staff accounts used for attribution.

    WHY: Every order, payment and inventory movement records the acting user.
    API access uses a bearer token; only its SHA-256 hash is stored.
    """
    __tablename__ = "users"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(100), nullable=False)
    email = db.Column(db.String(100), nullable=False, unique=True)

    # admin, manager, waitress
    role = db.Column(db.String(16), nullable=False, default="waitress")

    is_active = db.Column(db.Boolean, nullable=False, default=True)

    api_token_hash = db.Column(db.String(64), nullable=True, unique=True, index=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    def __repr__(self) -> str:
        return f"<User id={self.id} email={self.email!r} role={self.role}>"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "email": self.email,
            "role": self.role,
            "is_active": self.is_active,
            "created_at": to_utc_z(self.created_at),
        }
