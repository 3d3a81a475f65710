"""Fixtures for HTTP-level tests: the routers mounted on a bare FastAPI app."""

import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient
from protean.integrations.fastapi import register_exception_handlers


@pytest.fixture()
def client():
    from storefront.api import register_storefront_exception_handlers, routers

    app = FastAPI()
    for router in routers:
        app.include_router(router)
    register_exception_handlers(app)
    register_storefront_exception_handlers(app)
    return TestClient(app)


@pytest.fixture()
def api_product(client):
    """Create a product over HTTP and return its id."""
    counter = {"n": 0}

    def _create(price=25.0, stock=10, name="Desk Lamp", discount_percent=0.0):
        counter["n"] += 1
        response = client.post(
            "/products",
            json={
                "name": name,
                "slug": f"{name.lower().replace(' ', '-')}-{counter['n']}",
                "price": price,
                "stock": stock,
                "discount_percent": discount_percent,
            },
        )
        assert response.status_code == 201
        return response.json()["product_id"]

    return _create


@pytest.fixture()
def api_order(client):
    """Place an order over HTTP and return the response body."""

    def _place(lines, user_id="user-001", coupon_code=None):
        response = client.post(
            "/orders",
            json={
                "user_id": user_id,
                "items": [{"product_id": product_id, "quantity": quantity} for product_id, quantity in lines],
                "customer_name": "Grace Hopper",
                "customer_email": "grace@example.com",
                "shipping_address": "1 Navy Way, Arlington, VA, 22201, US",
                "coupon_code": coupon_code,
            },
        )
        assert response.status_code == 201, response.text
        return response.json()

    return _place
