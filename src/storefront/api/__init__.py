"""Storefront HTTP API package."""

from storefront.api.errors import register_storefront_exception_handlers
from storefront.api.routes import (
    coupon_router,
    order_router,
    payment_router,
    product_router,
    return_router,
    shipping_router,
)

routers = [product_router, coupon_router, order_router, payment_router, shipping_router, return_router]

__all__ = [
    "coupon_router",
    "order_router",
    "payment_router",
    "product_router",
    "register_storefront_exception_handlers",
    "return_router",
    "routers",
    "shipping_router",
]
