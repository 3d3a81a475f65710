"""Product aggregate with its ProductVariant entity.

``stock`` on the product (or on a variant, when the product is sold in
variants) is the single source of truth for availability. It is only ever
changed through the inventory ledger, which pairs every change with an
InventoryLog row in the same Unit of Work.
"""

from datetime import UTC, datetime

from protean.exceptions import ObjectNotFoundError, ValidationError
from protean.fields import DateTime, Float, HasMany, Integer, String

from storefront.domain import storefront


@storefront.entity(part_of="Product")
class ProductVariant:
    name = String(required=True, max_length=100)
    sku = String(max_length=50)
    price = Float(min_value=0.0)  # None falls back to the product price
    stock = Integer(default=0, min_value=0)


@storefront.aggregate
class Product:
    name = String(required=True, max_length=255)
    slug = String(required=True, max_length=255, unique=True)
    price = Float(required=True, min_value=0.0)
    discount_percent = Float(default=0.0, min_value=0.0, max_value=100.0)
    stock = Integer(default=0, min_value=0)
    variants = HasMany(ProductVariant)
    created_at = DateTime()
    updated_at = DateTime()

    @classmethod
    def create(cls, name: str, slug: str, price: float, stock: int = 0, discount_percent: float = 0.0):
        now = datetime.now(UTC)
        return cls(
            name=name,
            slug=slug,
            price=round(price, 2),
            stock=stock,
            discount_percent=discount_percent or 0.0,
            created_at=now,
            updated_at=now,
        )

    def add_variant(self, name: str, stock: int = 0, price: float | None = None, sku: str | None = None):
        if any(v.name == name for v in self.variants or []):
            raise ValidationError({"variants": [f"Variant '{name}' already exists on {self.name}"]})

        variant = ProductVariant(
            name=name,
            sku=sku,
            price=round(price, 2) if price is not None else None,
            stock=stock,
        )
        self.add_variants(variant)
        self.updated_at = datetime.now(UTC)
        return variant

    def variant(self, variant_id: str) -> ProductVariant:
        variant = next((v for v in self.variants or [] if str(v.id) == str(variant_id)), None)
        if variant is None:
            raise ObjectNotFoundError(f"Variant {variant_id} not found on product {self.name}")
        return variant

    def available_stock(self, variant_id: str | None = None) -> int:
        if variant_id:
            return self.variant(variant_id).stock or 0
        return self.stock or 0

    def base_price(self, variant_id: str | None = None) -> float:
        """Variant price when the variant defines one, otherwise the product price."""
        if variant_id:
            variant = self.variant(variant_id)
            if variant.price is not None:
                return variant.price
        return self.price

    def discount_per_unit(self, variant_id: str | None = None) -> float:
        return self.base_price(variant_id) * (self.discount_percent or 0.0) / 100

    def set_stock(self, new_stock: int, variant_id: str | None = None) -> int:
        """Overwrite the stock counter and return the previous value.

        Only the inventory ledger should call this.
        """
        if new_stock < 0:
            raise ValidationError({"stock": ["Stock cannot be negative"]})

        holder = self.variant(variant_id) if variant_id else self
        previous = holder.stock or 0
        holder.stock = new_stock
        self.updated_at = datetime.now(UTC)
        return previous
