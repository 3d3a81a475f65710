import json
import os
from pathlib import Path

import pytest
from protean.integrations.pytest import DomainFixture


def pytest_addoption(parser):
    parser.addoption(
        "--env",
        action="store",
        default="test",
        help="Config environment to run tests on",
    )


def pytest_sessionstart(session):
    """Select the config overlay before the domain is imported."""
    os.environ["PROTEAN_ENV"] = session.config.option.env


def pytest_collection_modifyitems(config, items):
    """Automatically mark tests based on their directory location."""
    for item in items:
        test_path = Path(item.fspath)

        if "/domain/" in str(test_path):
            item.add_marker(pytest.mark.domain)
        elif "/application/" in str(test_path):
            item.add_marker(pytest.mark.application)
        elif "/bdd/" in str(test_path):
            item.add_marker(pytest.mark.bdd)
        elif "/integration/" in str(test_path):
            item.add_marker(pytest.mark.integration)
            # Integration tests are often slower
            if not any(m.name == "fast" for m in item.iter_markers()):
                item.add_marker(pytest.mark.slow)


@pytest.fixture(scope="session", autouse=True)
def storefront_bed():
    """Domain test bed with its tables created for the whole session."""
    from storefront.domain import storefront
    from storefront.utils.db import drop_db, setup_db

    bed = DomainFixture(storefront)
    bed.setup()
    with bed.domain_context():
        setup_db(storefront)

    yield bed

    # The bed resets every provider on teardown, so tables must outlive it
    bed.teardown()
    with storefront.domain_context():
        drop_db(storefront)


@pytest.fixture(autouse=True)
def _ctx(storefront_bed):
    with storefront_bed.domain_context():
        yield


@pytest.fixture(autouse=True)
def run_around_tests():
    """Fixture to automatically cleanup infrastructure after every test"""
    yield

    from protean import current_domain
    from storefront.config import reset_settings
    from storefront.gateway import reset_gateways

    # Clear all databases
    for _, provider in current_domain.providers.items():
        provider._data_reset()

    # Drain event stores
    current_domain.event_store.store._data_reset()

    reset_gateways()
    reset_settings()


# ---------------------------------------------------------------------------
# Factories shared by the test suites
# ---------------------------------------------------------------------------
@pytest.fixture()
def make_product():
    """Create a product through the command path and return its id."""
    from protean import current_domain
    from storefront.product.management import CreateProduct

    counter = {"n": 0}

    def _make(name="Widget", price=10.0, stock=10, discount_percent=0.0, slug=None):
        counter["n"] += 1
        return current_domain.process(
            CreateProduct(
                name=name,
                slug=slug or f"{name.lower().replace(' ', '-')}-{counter['n']}",
                price=price,
                stock=stock,
                discount_percent=discount_percent,
            ),
            asynchronous=False,
        )

    return _make


@pytest.fixture()
def make_coupon():
    from protean import current_domain
    from storefront.coupon.management import CreateCoupon

    def _make(code="SAVE10", discount_type="Percentage", discount_value=10.0, **kwargs):
        return current_domain.process(
            CreateCoupon(code=code, discount_type=discount_type, discount_value=discount_value, **kwargs),
            asynchronous=False,
        )

    return _make


@pytest.fixture()
def place_order():
    """Place an order for ``[(product_id, quantity), ...]`` or a list of item dicts."""
    from protean import current_domain
    from storefront.order.placement import PlaceOrder

    def _place(lines, user_id="user-001", coupon_code=None, **kwargs):
        items = [
            line if isinstance(line, dict) else {"product_id": line[0], "quantity": line[1]}
            for line in lines
        ]
        return current_domain.process(
            PlaceOrder(
                user_id=user_id,
                items=json.dumps(items),
                coupon_code=coupon_code,
                customer_name=kwargs.pop("customer_name", "Ada Lovelace"),
                customer_email=kwargs.pop("customer_email", "ada@example.com"),
                shipping_address=kwargs.pop("shipping_address", "12 Analytical St, London, LDN, E1 6AN, GB"),
                **kwargs,
            ),
            asynchronous=False,
        )

    return _place


@pytest.fixture()
def card_gateway():
    """A FakeGateway registered for card payments."""
    from storefront.gateway import register_gateway
    from storefront.gateway.fake_adapter import FakeGateway

    gateway = FakeGateway("Card")
    register_gateway("Card", gateway)
    return gateway


@pytest.fixture()
def pay_order(card_gateway):
    """Initiate a card payment and deliver a matching 'completed' notification.

    Returns ``(payment_id, outcome)``.
    """
    from protean import current_domain
    from storefront.gateway.port import GatewayNotification, NotificationKind
    from storefront.payment.initiation import InitiatePayment
    from storefront.payment.reconciliation import ReconcilePayment

    def _pay(order_id):
        started = current_domain.process(InitiatePayment(order_id=order_id, method="Card"), asynchronous=False)
        notification = GatewayNotification(
            kind=NotificationKind.COMPLETED,
            event_type="checkout.session.completed",
            session_id=started["session_id"],
            transaction_id=f"pi_{started['payment_id']}",
        )
        outcome = current_domain.process(
            ReconcilePayment.from_notification(notification, method="Card"),
            asynchronous=False,
        )
        return started["payment_id"], outcome

    return _pay


@pytest.fixture()
def deliver_order(pay_order):
    """Pay, ship and deliver an order. Returns the payment id."""
    from datetime import UTC, datetime

    from protean import current_domain
    from storefront.shipping.dispatch import AddShipping, UpdateShipping

    def _deliver(order_id, tracking_number="TRK-0001"):
        payment_id, _ = pay_order(order_id)
        current_domain.process(
            AddShipping(order_id=order_id, carrier="DHL", tracking_number=tracking_number, estimated_days=3),
            asynchronous=False,
        )
        current_domain.process(
            UpdateShipping(order_id=order_id, delivered_at=datetime.now(UTC)),
            asynchronous=False,
        )
        return payment_id

    return _deliver
