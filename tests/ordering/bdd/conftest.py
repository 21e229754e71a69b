"""Shared BDD fixtures and step definitions for checkout and orders."""

from datetime import UTC, datetime, timedelta

import pytest
from ordering.cart.cart import ShoppingCart
from ordering.cart.items import AddToCart
from ordering.cart.management import GetOrCreateCart
from ordering.checkout.orchestrator import CheckoutOrchestrator
from ordering.errors import InvalidStateTransition
from ordering.order.automation import ProcessAutomaticStatusUpdates
from ordering.order.cancellation import CancelOrder
from ordering.order.confirmation import ConfirmOrder
from ordering.order.fulfillment import DeliverOrder, ShipOrder
from ordering.order.order import Order
from ordering.order.payment import ProcessPaymentCallback
from protean import current_domain
from protean.exceptions import ValidationError
from pytest_bdd import given, parsers, then, when

ADDRESS = {"street": "1 Main St", "city": "Springfield", "postal_code": "62704", "country": "US"}


@pytest.fixture()
def story():
    """Mutable scenario state shared between steps."""
    return {"carts": {}, "order_id": None, "error": None}


def _process(command):
    return current_domain.process(command, asynchronous=False)


def _checkout(story, buyer, owner):
    cart_id = story["carts"].get(owner) or _process(GetOrCreateCart(user_id=owner))
    try:
        story["order_id"] = CheckoutOrchestrator().create_order_from_cart(
            user_id=buyer,
            cart_id=cart_id,
            shipping_address=ADDRESS,
        )
    except ValidationError as exc:
        story["error"] = exc


def _order(story):
    return current_domain.repository_for(Order).get(story["order_id"])


# ---------------------------------------------------------------------------
# Given steps
# ---------------------------------------------------------------------------
@given(parsers.cfparse('the item "{item_id}" costs {price:f} with {stock:d} in stock'))
def _(inventory, item_id, price, stock):
    inventory.add_item(item_id, f"Item {item_id}", price, stock=stock)


@given(parsers.cfparse('the item "{item_id}" has sold out'))
def _(inventory, item_id):
    inventory.set_stock(item_id, 0)


@given(parsers.cfparse('buyer "{user_id}" has {quantity:d} of "{item_id}" in the cart'))
def _(story, user_id, quantity, item_id):
    story["carts"][user_id] = _process(AddToCart(user_id=user_id, item_id=item_id, quantity=quantity))


@given(parsers.cfparse('buyer "{user_id}" has checked out'))
def _(story, user_id):
    _checkout(story, user_id, user_id)
    assert story["order_id"] is not None


# ---------------------------------------------------------------------------
# When steps
# ---------------------------------------------------------------------------
@when(parsers.cfparse('buyer "{user_id}" checks out'))
def _(story, user_id):
    _checkout(story, user_id, user_id)


@when(parsers.cfparse('buyer "{buyer}" checks out the cart of "{owner}"'))
def _(story, buyer, owner):
    _checkout(story, buyer, owner)


@when("the order is confirmed")
def _(story):
    _process(ConfirmOrder(order_id=story["order_id"]))


@when(parsers.cfparse('the order is shipped with tracking number "{tracking_number}"'))
def _(story, tracking_number):
    _process(ShipOrder(order_id=story["order_id"], tracking_number=tracking_number))


@when("the order is delivered")
def _(story):
    _process(DeliverOrder(order_id=story["order_id"]))


@when(parsers.cfparse('buyer "{user_id}" cancels the order'))
def _(story, user_id):
    try:
        _process(CancelOrder(order_id=story["order_id"], requested_by=user_id))
    except InvalidStateTransition as exc:
        story["error"] = exc


@when(parsers.cfparse("the auto-cancel job runs {hours:d} hours later"))
def _(hours):
    _process(ProcessAutomaticStatusUpdates(as_of=datetime.now(UTC) + timedelta(hours=hours)))


@when(parsers.cfparse('the payment gateway reports "{status}"'))
def _(story, status):
    _process(ProcessPaymentCallback(order_id=story["order_id"], status=status))


# ---------------------------------------------------------------------------
# Then steps
# ---------------------------------------------------------------------------
@then(parsers.cfparse('the order is "{status}"'))
def _(story, status):
    assert story["error"] is None
    assert _order(story).status == status


@then(parsers.cfparse("the order total is {amount:f}"))
def _(story, amount):
    assert _order(story).final_amount == pytest.approx(amount)


@then(parsers.cfparse('"{item_id}" has {stock:d} in stock'))
def _(inventory, item_id, stock):
    assert inventory.stock_of(item_id) == stock


@then(parsers.cfparse('the cart is "{status}"'))
def _(story, status):
    cart_id = next(iter(story["carts"].values()))
    assert current_domain.repository_for(ShoppingCart).get(cart_id).status == status


@then("checkout is rejected")
def _(story):
    assert story["error"] is not None
    assert story["order_id"] is None
    assert current_domain.repository_for(Order)._dao.query.all().items == []


@then(parsers.cfparse('the action is rejected while the order is "{status}"'))
def _(story, status):
    assert isinstance(story["error"], InvalidStateTransition)
    assert story["error"].current_status == status
    assert _order(story).status == status


@then(parsers.cfparse('the status history reads "{statuses}"'))
def _(story, statuses):
    expected = [s.strip() for s in statuses.split(",")]
    assert [entry.status for entry in _order(story).ordered_history()] == expected


@then(parsers.cfparse('the latest history reason is "{reason}"'))
def _(story, reason):
    assert _order(story).latest_history_entry.reason == reason
