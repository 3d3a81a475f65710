"""Pricing engine — turns requested lines and an optional coupon into order totals.

Per line the product discount percent is taken off the base price (variant
price if set, else product price). The coupon, when given, applies once to
the subtotal after product discounts. The resulting quote always satisfies::

    total_price == subtotal - discount_amount
    discount_amount == product_discount + coupon_discount

Pricing only reads. Stock decrements and coupon redemption happen in the
order placement handler, in the same Unit of Work.
"""

from dataclasses import dataclass
from datetime import UTC, datetime

from protean.exceptions import ValidationError
from protean.utils.globals import current_domain

from storefront.coupon.coupon import Coupon
from storefront.errors import CouponInvalid, InsufficientStock
from storefront.inventory.ledger import StockLedger


@dataclass(frozen=True)
class LineRequest:
    product_id: str
    quantity: int
    variant_id: str | None = None

    @classmethod
    def from_dict(cls, data: dict) -> "LineRequest":
        quantity = data.get("quantity")
        if not isinstance(quantity, int) or isinstance(quantity, bool) or quantity < 1:
            raise ValidationError({"items": ["Each item needs a whole quantity of at least 1"]})
        if not data.get("product_id"):
            raise ValidationError({"items": ["Each item needs a product_id"]})
        return cls(
            product_id=str(data["product_id"]),
            quantity=quantity,
            variant_id=str(data["variant_id"]) if data.get("variant_id") else None,
        )


@dataclass(frozen=True)
class PricedLine:
    product_id: str
    variant_id: str | None
    product_name: str
    product_slug: str
    variant_name: str | None
    quantity: int
    base_price: float
    discount_per_unit: float

    @property
    def unit_price(self) -> float:
        return round(self.base_price - self.discount_per_unit, 2)


@dataclass(frozen=True)
class Quote:
    lines: tuple[PricedLine, ...]
    subtotal: float
    product_discount: float
    coupon_discount: float = 0.0
    coupon: Coupon | None = None

    @property
    def discounted_subtotal(self) -> float:
        return round(self.subtotal - self.product_discount, 2)

    @property
    def discount_amount(self) -> float:
        return round(self.product_discount + self.coupon_discount, 2)

    @property
    def total_price(self) -> float:
        return round(self.subtotal - self.discount_amount, 2)


def price_lines(ledger: StockLedger, requests: list[LineRequest]) -> list[PricedLine]:
    priced = []
    for request in requests:
        product = ledger.product(request.product_id)
        variant = product.variant(request.variant_id) if request.variant_id else None

        if request.quantity > product.available_stock(request.variant_id):
            raise InsufficientStock(f"Insufficient stock for product: {product.name}")

        priced.append(
            PricedLine(
                product_id=str(product.id),
                variant_id=request.variant_id,
                product_name=product.name,
                product_slug=product.slug,
                variant_name=variant.name if variant else None,
                quantity=request.quantity,
                base_price=product.base_price(request.variant_id),
                discount_per_unit=product.discount_per_unit(request.variant_id),
            )
        )
    return priced


def quote_order(
    ledger: StockLedger,
    requests: list[LineRequest],
    coupon_code: str | None = None,
    now: datetime | None = None,
) -> Quote:
    """Price ``requests`` and apply ``coupon_code``.

    Raises InsufficientStock for a line above available stock, and the coupon
    errors when the coupon is unknown, not live, used up, or the discounted
    subtotal is below its minimum.
    """
    if not requests:
        raise ValidationError({"items": ["An order needs at least one item"]})

    lines = price_lines(ledger, requests)
    subtotal = round(sum(line.base_price * line.quantity for line in lines), 2)
    product_discount = round(sum(line.discount_per_unit * line.quantity for line in lines), 2)
    quote = Quote(lines=tuple(lines), subtotal=subtotal, product_discount=product_discount)

    if not coupon_code:
        return quote

    coupon = current_domain.repository_for(Coupon).find_by_code(coupon_code)
    if coupon is None:
        raise CouponInvalid("Invalid or expired coupon code")
    coupon.assert_applicable(quote.discounted_subtotal, now or datetime.now(UTC))

    return Quote(
        lines=quote.lines,
        subtotal=subtotal,
        product_discount=product_discount,
        coupon_discount=coupon.discount_for(quote.discounted_subtotal),
        coupon=coupon,
    )
