"""Shared BDD fixtures and step definitions for storefront scenarios."""

import pytest
from protean import current_domain
from pytest_bdd import given, parsers, then
from storefront.order.order import Order
from storefront.product.product import Product


@pytest.fixture()
def shop():
    """Ids created by the scenario, keyed by what the steps call them."""
    return {"products": {}, "order_id": None, "payment_id": None, "return_id": None}


@pytest.fixture()
def error():
    """Container for captured business errors."""
    return {"exc": None}


# ---------------------------------------------------------------------------
# Given steps
# ---------------------------------------------------------------------------
@given(parsers.cfparse('a product "{name}" priced {price:f} with {stock:d} in stock'))
def product_in_stock(shop, make_product, name, price, stock):
    shop["products"][name] = make_product(name=name, price=price, stock=stock)


@given(parsers.cfparse('the customer has ordered {quantity:d} "{name}"'))
def customer_has_ordered(shop, place_order, quantity, name):
    shop["order_id"] = place_order([(shop["products"][name], quantity)])


@given("the order has been paid by card")
def order_paid_by_card(shop, pay_order):
    shop["payment_id"], _ = pay_order(shop["order_id"])


# ---------------------------------------------------------------------------
# Then steps
# ---------------------------------------------------------------------------
@then(parsers.cfparse('the order is "{status}"'))
def order_status_is(shop, status):
    assert current_domain.repository_for(Order).get(shop["order_id"]).status == status


@then(parsers.cfparse('"{name}" has {stock:d} in stock'))
def product_stock_is(shop, name, stock):
    assert current_domain.repository_for(Product).get(shop["products"][name]).stock == stock
