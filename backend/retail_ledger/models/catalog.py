from __future__ import annotations

from ..extensions import db
from ..formatting import to_utc_z, money_str


class Product(db.Model):
    """
    Product master data.

    A product is the sellable concept ("Oxford Shirt"); the things that carry a
    price and a stock level are its variants.
    """
    __tablename__ = "products"
    __table_args__ = (
        db.Index("ix_products_category_name", "category", "name"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(255), nullable=False)
    description = db.Column(db.Text, nullable=True)
    category = db.Column(db.String(64), nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        server_default=db.func.now(),
        onupdate=db.func.now(),
    )

    def __repr__(self) -> str:
        return f"<Product id={self.id} name={self.name!r}>"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "description": self.description,
            "category": self.category,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }


class ProductVariant(db.Model):
    """
    One purchasable configuration (color/size) of a product.

    STOCK DESIGN DECISION:
    The stock_transactions ledger is the source of truth for on-hand quantity.
    `stock` is a denormalized cache of SUM(in) - SUM(out), written only by the
    stock ledger service in the same DB transaction as the movement it reflects.
    Never assign it from request payloads.

    version_id gives optimistic locking: two concurrent movements against the
    same variant cannot both commit a cache update computed from the same
    starting balance.
    """
    __tablename__ = "product_variants"
    __table_args__ = (
        db.CheckConstraint("price >= 0", name="ck_product_variants_price_nonneg"),
        db.CheckConstraint("stock >= 0", name="ck_product_variants_stock_nonneg"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    product_id = db.Column(db.Integer, db.ForeignKey("products.id"), nullable=False, index=True)

    color = db.Column(db.String(64), nullable=True)
    size = db.Column(db.String(32), nullable=True)
    price = db.Column(db.Numeric(10, 2, asdecimal=True), nullable=False, default=0)

    # Cache only; see class docstring.
    stock = db.Column(db.Integer, nullable=False, default=0)

    version_id = db.Column(db.Integer, nullable=False, default=1)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        server_default=db.func.now(),
        onupdate=db.func.now(),
    )

    product = db.relationship("Product", backref=db.backref("variants", lazy=True, order_by="ProductVariant.id"))
    __mapper_args__ = {"version_id_col": version_id}

    def __repr__(self) -> str:
        return f"<ProductVariant id={self.id} product_id={self.product_id} color={self.color!r} size={self.size!r}>"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "product_id": self.product_id,
            "name": self.product.name if self.product is not None else None,
            "color": self.color,
            "size": self.size,
            "price": money_str(self.price),
            "stock": self.stock,
            "version_id": self.version_id,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }
