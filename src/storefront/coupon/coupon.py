"""Coupon aggregate — a named discount rule with usage and validity limits.

``used_count`` only ever grows: it is incremented once per order that
redeems the coupon and is not given back when that order is cancelled.
"""

from datetime import UTC, datetime
from enum import Enum

from protean.exceptions import ValidationError
from protean.fields import Boolean, DateTime, Float, Integer, String

from storefront.domain import storefront
from storefront.errors import CouponInvalid, CouponLimitReached, CouponMinimumNotMet


class DiscountType(Enum):
    PERCENTAGE = "Percentage"
    FIXED = "Fixed"


def _aware(moment: datetime | None) -> datetime | None:
    if moment is not None and moment.tzinfo is None:
        return moment.replace(tzinfo=UTC)
    return moment


@storefront.aggregate
class Coupon:
    code = String(required=True, max_length=50, unique=True)
    description = String(max_length=500)
    discount_type = String(required=True, choices=DiscountType)
    discount_value = Float(required=True, min_value=0.0)
    min_order_amount = Float(min_value=0.0)
    max_uses = Integer(min_value=1)
    used_count = Integer(default=0)
    valid_from = DateTime(required=True)
    valid_until = DateTime()
    is_active = Boolean(default=True)
    created_at = DateTime()

    @classmethod
    def create(
        cls,
        code: str,
        discount_type: str,
        discount_value: float,
        valid_from: datetime | None = None,
        valid_until: datetime | None = None,
        min_order_amount: float | None = None,
        max_uses: int | None = None,
        description: str | None = None,
    ):
        if discount_value <= 0:
            raise ValidationError({"discount_value": ["Discount value must be greater than zero"]})
        if discount_type == DiscountType.PERCENTAGE.value and discount_value > 100:
            raise ValidationError({"discount_value": ["Percentage discount cannot exceed 100"]})

        now = datetime.now(UTC)
        valid_from = _aware(valid_from) or now
        valid_until = _aware(valid_until)
        if valid_until is not None and valid_until < valid_from:
            raise ValidationError({"valid_until": ["Coupon cannot expire before it becomes valid"]})

        return cls(
            code=code.strip().upper(),
            description=description,
            discount_type=discount_type,
            discount_value=discount_value,
            min_order_amount=min_order_amount,
            max_uses=max_uses,
            valid_from=valid_from,
            valid_until=valid_until,
            created_at=now,
        )

    def is_live(self, now: datetime) -> bool:
        if not self.is_active:
            return False
        if _aware(self.valid_from) > now:
            return False
        return self.valid_until is None or _aware(self.valid_until) >= now

    def assert_applicable(self, order_amount: float, now: datetime | None = None) -> None:
        """Raise the reason this coupon cannot be applied to ``order_amount``."""
        now = now or datetime.now(UTC)
        if not self.is_live(now):
            raise CouponInvalid("Invalid or expired coupon code")
        if self.max_uses is not None and (self.used_count or 0) >= self.max_uses:
            raise CouponLimitReached("Coupon usage limit reached")
        if self.min_order_amount is not None and round(order_amount, 2) < self.min_order_amount:
            raise CouponMinimumNotMet(f"Minimum order amount of ${self.min_order_amount:.2f} required for this coupon")

    def discount_for(self, order_amount: float) -> float:
        """Discount this coupon grants on ``order_amount``, never more than the amount itself."""
        if self.discount_type == DiscountType.PERCENTAGE.value:
            discount = order_amount * self.discount_value / 100
        else:
            discount = self.discount_value
        return round(min(discount, order_amount), 2)

    def redeem(self) -> None:
        self.used_count = (self.used_count or 0) + 1

    def set_active(self, active: bool) -> None:
        """Switch the coupon on or off; an inactive coupon is rejected as invalid."""
        self.is_active = active


@storefront.repository(part_of=Coupon)
class CouponRepository:
    def find_by_code(self, code: str) -> Coupon | None:
        return self._dao.query.filter(code=code.strip().upper()).all().first
