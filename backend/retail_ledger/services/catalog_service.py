# backend/retail_ledger/services/catalog_service.py
"""
Catalog Store: products and their variants.

Leaf of the ledger core. Stock is not a catalog attribute that callers can
write; a variant created with opening stock gets an 'in' movement through the
stock ledger's append path, inside the same transaction as the variant row.
"""
from __future__ import annotations

from ..errors import InvalidQuantity, NotFound
from ..models import Product, ProductVariant
from ..validation import ConflictError, ValidationError, MAX_PRICE
from .aggregation import to_money
from .concurrency import lock_for_update, run_with_retry
from .listing import paginate
from .stock_service import append_movement, coerce_qty

PRODUCT_MUTABLE_FIELDS = {"name", "description", "category"}
VARIANT_MUTABLE_FIELDS = {"color", "size", "price"}


def _clean_price(value):
    price = to_money(value)
    if price < 0:
        raise InvalidQuantity("price must be >= 0", details={"price": str(price)})
    if price > MAX_PRICE:
        raise InvalidQuantity(f"price cannot exceed {MAX_PRICE}", details={"price": str(price)})
    return price


def apply_product_patch(p: Product, patch: dict) -> None:
    for k, v in patch.items():
        if k not in PRODUCT_MUTABLE_FIELDS:
            continue
        setattr(p, k, v)


def apply_variant_patch(v: ProductVariant, patch: dict) -> None:
    if "stock" in patch:
        raise ValidationError("stock is derived from stock transactions and cannot be set")
    for k, value in patch.items():
        if k not in VARIANT_MUTABLE_FIELDS:
            continue
        if k == "price":
            value = _clean_price(value)
        setattr(v, k, value)


class CatalogStore:
    def __init__(self, session, *, retry_attempts: int = 3):
        self.session = session
        self.retry_attempts = retry_attempts

    # -- products -----------------------------------------------------------

    def create_product(self, attrs: dict) -> Product:
        name = attrs.get("name")
        if isinstance(name, str):
            name = name.strip()
        if not name:
            raise ValidationError("name is required")

        def _op():
            product = Product(name=name)
            apply_product_patch(product, {k: v for k, v in attrs.items() if k != "name"})
            self.session.add(product)
            self.session.commit()
            return product

        return run_with_retry(self.session, _op, attempts=self.retry_attempts)

    def get_product(self, product_id: int) -> Product:
        product = self.session.get(Product, product_id)
        if product is None:
            raise NotFound("product not found", details={"product_id": product_id})
        return product

    def list_products(
        self,
        *,
        category: str | None = None,
        page: int | None = None,
        per_page: int | None = None,
        sort: str | None = None,
        sort_field: str | None = None,
    ) -> dict:
        query = self.session.query(Product)
        if category:
            query = query.filter(Product.category == category)
        return paginate(query, Product, page=page, per_page=per_page, sort=sort, sort_field=sort_field)

    def update_product(self, product_id: int, attrs: dict) -> Product:
        if "name" in attrs:
            name = attrs["name"]
            if isinstance(name, str):
                name = name.strip()
            if not name:
                raise ValidationError("name cannot be blank")
            attrs = {**attrs, "name": name}

        def _op():
            product = self.get_product(product_id)
            apply_product_patch(product, attrs)
            self.session.commit()
            return product

        return run_with_retry(self.session, _op, attempts=self.retry_attempts)

    def delete_product(self, product_id: int) -> None:
        """Products with variants are kept; their variants carry ledger history."""
        def _op():
            product = self.get_product(product_id)
            has_variants = (
                self.session.query(ProductVariant.id).filter_by(product_id=product.id).first() is not None
            )
            if has_variants:
                raise ConflictError("product has variants and cannot be deleted")
            self.session.delete(product)
            self.session.commit()

        run_with_retry(self.session, _op, attempts=self.retry_attempts)

    # -- variants -----------------------------------------------------------

    def create_variant(
        self,
        product_id: int,
        attrs: dict,
        *,
        initial_stock: int = 0,
        user_id: int | None = None,
    ) -> ProductVariant:
        """
        Create a variant under an existing product.

        initial_stock > 0 is booked as an opening 'in' movement so the cache
        and the ledger agree from the first row.
        """
        if initial_stock not in (0, None):
            initial_stock = coerce_qty(initial_stock)
        price = _clean_price(attrs.get("price", 0))

        def _op():
            product = self.get_product(product_id)
            variant = ProductVariant(product_id=product.id, price=price, stock=0)
            apply_variant_patch(variant, {k: v for k, v in attrs.items() if k != "price"})
            self.session.add(variant)
            self.session.flush()

            if initial_stock:
                append_movement(
                    self.session,
                    variant,
                    initial_stock,
                    "in",
                    balance_before=0,
                    user_id=user_id,
                    note="Opening stock",
                )

            self.session.commit()
            return variant

        return run_with_retry(self.session, _op, attempts=self.retry_attempts)

    def get_variant(self, variant_id: int, *, lock: bool = False) -> ProductVariant:
        query = self.session.query(ProductVariant).filter_by(id=variant_id)
        if lock:
            query = lock_for_update(query)
        variant = query.first()
        if variant is None:
            raise NotFound("product variant not found", details={"product_variant_id": variant_id})
        return variant

    def list_variants_by_product(self, product_id: int) -> list[ProductVariant]:
        product = self.get_product(product_id)
        return (
            self.session.query(ProductVariant)
            .filter_by(product_id=product.id)
            .order_by(ProductVariant.id.asc())
            .all()
        )

    def list_variants(
        self,
        *,
        product_id: int | None = None,
        page: int | None = None,
        per_page: int | None = None,
        sort: str | None = None,
        sort_field: str | None = None,
    ) -> dict:
        query = self.session.query(ProductVariant)
        if product_id is not None:
            query = query.filter(ProductVariant.product_id == product_id)
        return paginate(query, ProductVariant, page=page, per_page=per_page, sort=sort, sort_field=sort_field)

    def update_variant(self, variant_id: int, attrs: dict) -> ProductVariant:
        """Edit color/size/price. Existing sales records keep their snapshot price."""
        def _op():
            variant = self.get_variant(variant_id, lock=True)
            apply_variant_patch(variant, attrs)
            self.session.commit()
            return variant

        return run_with_retry(self.session, _op, attempts=self.retry_attempts)
