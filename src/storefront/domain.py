"""Storefront domain — orders, payments and inventory in one consistency boundary.

A single domain lets one Unit of Work span Order, Payment, Product, Coupon,
Invoice, ReturnRequest and the inventory log, so each business operation
commits or aborts as a whole.
"""

from protean.domain import Domain

from storefront.utils.logging import configure_logging, get_logger

configure_logging()

logger = get_logger(__name__)

storefront = Domain(name="storefront")
