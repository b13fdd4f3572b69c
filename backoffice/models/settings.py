from __future__ import annotations

from ..extensions import db
from backoffice.time_utils import to_utc_z

class Settings(db.Model):
    """
    Business settings (singleton row).

    The order services only read tax_rate_bps (1% = 100 bps); which
    operations apply it is decided by the ORDER_TAX_MODE config value.
    """
    __tablename__ = "settings"

    id = db.Column(db.Integer, primary_key=True)
    business_name = db.Column(db.String(100), nullable=False)
    tax_rate_bps = db.Column(db.Integer, nullable=False, default=0)
    currency = db.Column(db.String(3), nullable=False, default="USD")

    updated_at = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        server_default=db.func.now(),
        onupdate=db.func.now(),
    )

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "business_name": self.business_name,
            "tax_rate_bps": self.tax_rate_bps,
            "currency": self.currency,
            "updated_at": to_utc_z(self.updated_at),
        }
