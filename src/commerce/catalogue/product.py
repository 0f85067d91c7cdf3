"""Product aggregate with variant-level stock.

A product either tracks stock directly in ``stock`` or, once it has variants,
keeps stock exclusively on its (color, size) variants. ``stock_total`` is the
eagerly maintained sum and is never the source of truth for a product with
variants.
"""

from datetime import UTC, datetime

from protean import atomic_change, invariant
from protean.exceptions import ValidationError
from protean.fields import Boolean, DateTime, HasMany, Identifier, Integer, String

from commerce.domain import commerce


@commerce.entity(part_of="Product")
class ProductVariant:
    """A (color, size) stock-keeping unit beneath a product."""

    color_code = String(required=True, max_length=20)
    color_name = String(max_length=50)
    size = String(required=True, max_length=20)
    sku = String(max_length=50)
    stock = Integer(default=0, min_value=0)

    def matches(self, color_code: str | None, size: str | None) -> bool:
        return (self.color_code or "").lower() == (color_code or "").lower() and str(self.size) == str(size)


@commerce.aggregate
class Product:
    name = String(required=True, max_length=255)
    price = Integer(required=True, min_value=0)
    category_id = Identifier()
    stock = Integer(default=0, min_value=0)
    stock_total = Integer(default=0, min_value=0)
    on_clearance = Boolean(default=False)
    clearance_percent = Integer(min_value=0, max_value=100)
    promotion_id = Identifier()
    active = Boolean(default=True)
    variants = HasMany(ProductVariant)
    updated_at = DateTime(default=lambda: datetime.now(UTC))

    @invariant.post
    def stock_total_matches_variants(self):
        if self.variants:
            expected = sum(v.stock or 0 for v in self.variants)
            if self.stock_total != expected:
                raise ValidationError(
                    {"stock_total": [f"Stock total {self.stock_total} does not match variant stock {expected}"]}
                )
        elif self.stock_total != self.stock:
            raise ValidationError({"stock_total": ["Stock total must equal stock for products without variants"]})

    @classmethod
    def create(cls, name, price, stock=0, category_id=None, variants=None, **extra):
        variants = variants or []
        if variants:
            stock = sum(v.get("stock", 0) for v in variants)
        product = cls(
            name=name,
            price=price,
            category_id=category_id,
            stock=stock,
            stock_total=stock,
            variants=[ProductVariant(**v) for v in variants],
            **extra,
        )
        return product

    @property
    def has_variants(self) -> bool:
        return bool(self.variants)

    def find_variant(self, color_code: str | None = None, size: str | None = None, variant_id: str | None = None):
        for variant in self.variants:
            if variant_id and str(variant.id) == str(variant_id):
                return variant
            if color_code and variant.matches(color_code, size):
                return variant
        return None

    def sync_stock_from_variants(self) -> None:
        """Recompute product totals from the variants."""
        if not self.variants:
            return
        total = sum(v.stock or 0 for v in self.variants)
        self.stock = total
        self.stock_total = total
        self.updated_at = datetime.now(UTC)

    def adjust_variant_stock(self, variant: ProductVariant, delta: int) -> int:
        """Move a variant's stock by ``delta`` (clamped at zero) and resync totals."""
        with atomic_change(self):
            variant.stock = max(0, (variant.stock or 0) + delta)
            self.sync_stock_from_variants()
        return variant.stock

    def adjust_stock(self, delta: int) -> int:
        """Move flat stock by ``delta`` (clamped at zero)."""
        with atomic_change(self):
            self.stock = max(0, (self.stock or 0) + delta)
            self.stock_total = self.stock
            self.updated_at = datetime.now(UTC)
        return self.stock
