from __future__ import annotations

from ..extensions import db
from backoffice.time_utils import to_utc_z

class InventoryTransaction(db.Model):
    """
    Append-only log of every stock change.

    Rows are never updated or deleted. quantity is the signed delta that was
    applied to Product.stock in the same DB transaction.

    TYPES:
    - initial: opening stock when a product is created
    - sale: order line consumed stock (negative)
    - return: cancelled order gave stock back (positive)
    - adjustment: manual correction (either sign)
    """
    __tablename__ = "inventory_transactions"
    __table_args__ = (
        db.Index("ix_inventory_tx_product_created", "product_id", "created_at"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)

    product_id = db.Column(
        db.Integer, db.ForeignKey("products.id", ondelete="CASCADE"), nullable=False, index=True
    )

    quantity = db.Column(db.Integer, nullable=False)
    type = db.Column(db.String(20), nullable=False, index=True)

    # Human-readable source, e.g. "order:42"
    reference = db.Column(db.String(100), nullable=True)
    notes = db.Column(db.Text, nullable=True)

    # Order whose item quantity change this row accounts for (sale/return only)
    order_id = db.Column(
        db.Integer, db.ForeignKey("orders.id", ondelete="SET NULL"), nullable=True, index=True
    )

    user_id = db.Column(db.Integer, db.ForeignKey("users.id", ondelete="SET NULL"), nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    product = db.relationship("Product", backref=db.backref("inventory_transactions", lazy="dynamic"))

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "product_id": self.product_id,
            "quantity": self.quantity,
            "type": self.type,
            "reference": self.reference,
            "notes": self.notes,
            "order_id": self.order_id,
            "user_id": self.user_id,
            "created_at": to_utc_z(self.created_at),
        }
