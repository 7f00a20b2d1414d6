from __future__ import annotations

from ..extensions import db
from ..formatting import to_utc_z

MOVEMENT_TYPES = ("in", "out")


class StockTransaction(db.Model):
    """
    Append-only stock movement.

    qty is always positive; direction comes from type. Rows are never updated
    or deleted; a wrong movement is corrected by appending the opposite one.
    Insertion order (id) is the order the balance is folded in.
    """
    __tablename__ = "stock_transactions"
    __table_args__ = (
        db.CheckConstraint("qty > 0", name="ck_stock_transactions_qty_positive"),
        db.CheckConstraint("type IN ('in', 'out')", name="ck_stock_transactions_type"),
        db.Index("ix_stock_tx_variant_id", "product_variant_id", "id"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    product_variant_id = db.Column(db.Integer, db.ForeignKey("product_variants.id"), nullable=False)
    user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=True, index=True)

    qty = db.Column(db.Integer, nullable=False)
    type = db.Column(db.String(8), nullable=False, index=True)
    note = db.Column(db.String(255), nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    variant = db.relationship("ProductVariant", backref=db.backref("stock_transactions", lazy=True))
    user = db.relationship("User")

    def __repr__(self) -> str:
        return f"<StockTransaction id={self.id} variant={self.product_variant_id} {self.type} {self.qty}>"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "product_variant_id": self.product_variant_id,
            "user_id": self.user_id,
            "qty": self.qty,
            "type": self.type,
            "note": self.note,
            "created_at": to_utc_z(self.created_at),
        }
