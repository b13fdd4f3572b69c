from __future__ import annotations

from ..extensions import db
from backoffice.time_utils import to_utc_z

class Product(db.Model):
    """
    Product master data.

    STOCK: `stock` is a mutable counter, but it is written ONLY by
    stock_service.adjust_stock, which appends the matching
    InventoryTransaction in the same DB transaction. The inventory log is
    the audit trail; SUM(quantity) over it always equals `stock`.

    Authoritative price storage in cents (frontend may only format for display).
    """
    __tablename__ = "products"
    __table_args__ = (
        db.CheckConstraint("stock >= 0", name="ck_products_stock_non_negative"),
        db.CheckConstraint("price_cents > 0", name="ck_products_price_positive"),
        db.Index("ix_products_active_name", "is_active", "name"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)

    name = db.Column(db.String(100), nullable=False)
    description = db.Column(db.Text, nullable=True)
    sku = db.Column(db.String(50), nullable=True, unique=True)

    price_cents = db.Column(db.Integer, nullable=False)

    stock = db.Column(db.Integer, nullable=False, default=0)
    low_stock_alert = db.Column(db.Integer, nullable=True)

    is_active = db.Column(db.Boolean, nullable=False, default=True)

    # Variant labels (e.g. ["S", "M", "L"]); only meaningful when has_variants
    has_variants = db.Column(db.Boolean, nullable=False, default=False)
    variants = db.Column(db.JSON, nullable=True)

    version_id = db.Column(db.Integer, nullable=False, default=1)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        server_default=db.func.now(),
        onupdate=db.func.now(),
    )

    __mapper_args__ = {"version_id_col": version_id}

    @property
    def is_low_stock(self) -> bool:
        return self.low_stock_alert is not None and self.stock <= self.low_stock_alert

    def __repr__(self) -> str:
        return f"<Product id={self.id} name={self.name!r} stock={self.stock}>"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "description": self.description,
            "sku": self.sku,
            "price_cents": self.price_cents,
            "stock": self.stock,
            "low_stock_alert": self.low_stock_alert,
            "is_low_stock": self.is_low_stock,
            "is_active": self.is_active,
            "has_variants": self.has_variants,
            "variants": self.variants or [],
            "version_id": self.version_id,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }
