"""BDD tests for the order lifecycle."""

from datetime import UTC, datetime

from protean import current_domain
from pytest_bdd import given, parsers, scenarios, then, when
from storefront.coupon.coupon import Coupon
from storefront.errors import StorefrontError
from storefront.gateway.port import GatewayNotification, NotificationKind
from storefront.invoice.invoice import Invoice
from storefront.order.cancellation import CancelOrder
from storefront.order.order import Order
from storefront.payment.payment import Payment
from storefront.payment.reconciliation import ReconcilePayment
from storefront.payment.refund import RefundPayment
from storefront.shipping.dispatch import AddShipping, UpdateShipping

scenarios("features/order_lifecycle.feature")


@given(parsers.cfparse('a coupon "{code}" worth {percent:d} percent'))
def percentage_coupon(make_coupon, code, percent):
    make_coupon(code=code, discount_type="Percentage", discount_value=float(percent))


@when(parsers.cfparse('the customer orders {quantity:d} "{name}"'))
def customer_orders(shop, place_order, quantity, name):
    shop["order_id"] = place_order([(shop["products"][name], quantity)])


@when(parsers.cfparse('the customer applies coupon "{code}" to an order of {quantity:d} "{name}"'))
def customer_orders_with_coupon(shop, place_order, quantity, name, code):
    shop["order_id"] = place_order([(shop["products"][name], quantity)], coupon_code=code)


@when(parsers.cfparse('the customer tries to order {quantity:d} "{name}"'))
def customer_tries_to_order(shop, place_order, error, quantity, name):
    try:
        place_order([(shop["products"][name], quantity)])
    except StorefrontError as exc:
        error["exc"] = exc


@when("the customer cancels the order")
def customer_cancels(shop):
    current_domain.process(CancelOrder(order_id=shop["order_id"], user_id="user-001"), asynchronous=False)


@when("the customer tries to cancel the order")
def customer_tries_to_cancel(shop, error):
    try:
        customer_cancels(shop)
    except StorefrontError as exc:
        error["exc"] = exc


@when(parsers.cfparse('the order is shipped with "{carrier}" tracking "{tracking_number}"'))
def order_shipped(shop, carrier, tracking_number):
    current_domain.process(
        AddShipping(order_id=shop["order_id"], carrier=carrier, tracking_number=tracking_number),
        asynchronous=False,
    )


@when("the carrier confirms delivery")
def delivery_confirmed(shop):
    current_domain.process(
        UpdateShipping(order_id=shop["order_id"], delivered_at=datetime.now(UTC)),
        asynchronous=False,
    )


@when("the card gateway reports the same payment again", target_fixture="outcome")
def duplicate_notification(shop):
    payment = current_domain.repository_for(Payment).get(shop["payment_id"])
    notification = GatewayNotification(
        kind=NotificationKind.COMPLETED,
        event_type="checkout.session.completed",
        transaction_id=payment.transaction_id,
        amount=payment.amount,
    )
    return current_domain.process(ReconcilePayment.from_notification(notification, method="Card"), asynchronous=False)


@when(parsers.cfparse('an admin refunds {amount:f} with reason "{reason}"'))
def admin_refunds(shop, amount, reason):
    current_domain.process(
        RefundPayment(payment_id=shop["payment_id"], amount=amount, reason=reason, acting_user_id="admin-1"),
        asynchronous=False,
    )


@then(parsers.cfparse("the order total is {total:f}"))
def order_total_is(shop, total):
    assert current_domain.repository_for(Order).get(shop["order_id"]).total_price == total


@then(parsers.cfparse('the order is refused with "{message}"'))
def order_refused(error, message):
    assert error["exc"] is not None
    assert error["exc"].message == message


@then(parsers.cfparse('the cancellation is refused with "{message}"'))
def cancellation_refused(error, message):
    assert error["exc"] is not None
    assert error["exc"].message == message


@then(parsers.cfparse('the order history reads "{statuses}"'))
def order_history(shop, statuses):
    order = current_domain.repository_for(Order).get(shop["order_id"])
    assert [entry.status for entry in order.tracking_history()] == statuses.split(", ")


@then(parsers.cfparse('the notification outcome is "{expected}"'))
def notification_outcome(outcome, expected):
    assert outcome == expected


@then(parsers.cfparse("the order has {count:d} invoice"))
def invoice_count(shop, count):
    assert len(current_domain.repository_for(Invoice).for_order(shop["order_id"])) == count


@then(parsers.cfparse('coupon "{code}" has been used {count:d} time'))
def coupon_used(code, count):
    assert current_domain.repository_for(Coupon).find_by_code(code).used_count == count
