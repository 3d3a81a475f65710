"""Coupon creation, activation and read-only eligibility checks."""

import structlog
from protean import handle
from protean.exceptions import ValidationError
from protean.fields import Boolean, DateTime, Float, Identifier, Integer, String
from protean.utils.globals import current_domain

from storefront.coupon.coupon import Coupon
from storefront.domain import storefront
from storefront.errors import CouponInvalid

logger = structlog.get_logger(__name__)


@storefront.command(part_of="Coupon")
class CreateCoupon:
    code = String(required=True, max_length=50)
    discount_type = String(required=True, max_length=20)
    discount_value = Float(required=True)
    description = String(max_length=500)
    min_order_amount = Float()
    max_uses = Integer()
    valid_from = DateTime()
    valid_until = DateTime()


@storefront.command(part_of="Coupon")
class ToggleCouponStatus:
    coupon_id = Identifier(required=True)
    is_active = Boolean(required=True)


@storefront.command_handler(part_of=Coupon)
class CouponManagementHandler:
    @handle(CreateCoupon)
    def create_coupon(self, command):
        repo = current_domain.repository_for(Coupon)
        if repo.find_by_code(command.code) is not None:
            raise ValidationError({"code": [f"Coupon code '{command.code.upper()}' already exists"]})

        coupon = Coupon.create(
            code=command.code,
            discount_type=command.discount_type,
            discount_value=command.discount_value,
            description=command.description,
            min_order_amount=command.min_order_amount,
            max_uses=command.max_uses,
            valid_from=command.valid_from,
            valid_until=command.valid_until,
        )
        repo.add(coupon)
        return str(coupon.id)

    @handle(ToggleCouponStatus)
    def toggle_status(self, command):
        repo = current_domain.repository_for(Coupon)
        coupon = repo.get(command.coupon_id)
        coupon.set_active(command.is_active)
        repo.add(coupon)

        logger.info("coupon.status_changed", coupon_id=str(coupon.id), code=coupon.code, is_active=coupon.is_active)
        return coupon.is_active


def check_coupon(code: str, order_amount: float) -> dict:
    """Report the discount a coupon would grant, without redeeming it."""
    coupon = current_domain.repository_for(Coupon).find_by_code(code)
    if coupon is None:
        raise CouponInvalid("Invalid or expired coupon code")

    coupon.assert_applicable(order_amount)
    discount = coupon.discount_for(order_amount)
    return {
        "coupon_id": str(coupon.id),
        "code": coupon.code,
        "discount_type": coupon.discount_type,
        "discount_value": coupon.discount_value,
        "discount_amount": discount,
        "final_amount": round(order_amount - discount, 2),
    }
