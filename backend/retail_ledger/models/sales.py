from __future__ import annotations

from ..extensions import db
from ..formatting import to_utc_z, money_str

SALE_STATUSES = ("pending", "completed", "cancelled")
TERMINAL_SALE_STATUSES = ("completed", "cancelled")


class Sale(db.Model):
    """
    Sale header.

    total_price is a denormalized cache of SUM(qty * price_each) over the
    sale's records. It is written only by the sales ledger service, in the same
    DB transaction that replaces the records.
    """
    __tablename__ = "sales"
    __table_args__ = (
        db.CheckConstraint(
            "status IN ('pending', 'completed', 'cancelled')",
            name="ck_sales_status",
        ),
        db.Index("ix_sales_user_status_created", "user_id", "status", "created_at"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False, index=True)

    status = db.Column(db.String(16), nullable=False, default="pending", index=True)
    total_price = db.Column(db.Numeric(10, 2, asdecimal=True), nullable=False, default=0)

    version_id = db.Column(db.Integer, nullable=False, default=1)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        server_default=db.func.now(),
        onupdate=db.func.now(),
    )

    user = db.relationship("User", backref=db.backref("sales", lazy=True))
    __mapper_args__ = {"version_id_col": version_id}

    def __repr__(self) -> str:
        return f"<Sale id={self.id} status={self.status!r} total={self.total_price}>"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "user_id": self.user_id,
            "status": self.status,
            "total_price": money_str(self.total_price),
            "version_id": self.version_id,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }


class SalesRecord(db.Model):
    """Line-item on a sale. price_each is the variant price captured at sale time."""
    __tablename__ = "sales_records"
    __table_args__ = (
        db.CheckConstraint("qty > 0", name="ck_sales_records_qty_positive"),
        db.CheckConstraint("price_each >= 0", name="ck_sales_records_price_nonneg"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    sales_id = db.Column(db.Integer, db.ForeignKey("sales.id"), nullable=False, index=True)
    product_variant_id = db.Column(db.Integer, db.ForeignKey("product_variants.id"), nullable=False, index=True)

    qty = db.Column(db.Integer, nullable=False)
    price_each = db.Column(db.Numeric(10, 2, asdecimal=True), nullable=False)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    sale = db.relationship("Sale", backref=db.backref("records", lazy=True, order_by="SalesRecord.id"))
    variant = db.relationship("ProductVariant", backref=db.backref("sales_records", lazy=True))

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "sales_id": self.sales_id,
            "product_variant_id": self.product_variant_id,
            "name": self.variant.product.name if self.variant is not None else None,
            "qty": self.qty,
            "price_each": money_str(self.price_each),
            "created_at": to_utc_z(self.created_at),
        }
