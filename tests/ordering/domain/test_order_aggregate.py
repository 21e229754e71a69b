"""Tests for Order creation, snapshots and charge arithmetic."""

from datetime import UTC, datetime, timedelta

import pytest
from ordering.errors import InvalidStateTransition
from ordering.order.events import OrderChargesUpdated, OrderCreated
from ordering.order.order import Order, OrderStatus, PaymentMethod, PaymentStatus
from protean.exceptions import ValidationError

ADDRESS = {"street": "1 Main St", "city": "Springfield", "state": "IL", "postal_code": "62704", "country": "US"}

ITEMS = [
    {
        "item_id": "item-1",
        "item_name": "Mechanical Keyboard",
        "price": 50.0,
        "quantity": 2,
        "seller_id": "seller-1",
        "seller_name": "KeyCo",
    },
    {"item_id": "item-2", "item_name": "USB-C Cable", "price": 10.0, "quantity": 1},
]


def _make_order(**overrides):
    kwargs = {
        "user_id": "user-1",
        "items_data": ITEMS,
        "shipping_address": ADDRESS,
    }
    kwargs.update(overrides)
    return Order.create(**kwargs)


class TestOrderCreation:
    def test_starts_pending_with_history(self):
        order = _make_order()

        assert order.status == OrderStatus.PENDING.value
        assert order.payment_status == PaymentStatus.PENDING.value
        assert len(order.status_history) == 1
        entry = order.status_history[0]
        assert entry.sequence == 1
        assert entry.status == OrderStatus.PENDING.value
        assert entry.reason == "Order created"

    def test_amounts(self):
        order = _make_order(shipping_cost=5.0, tax_amount=8.5, discount_amount=3.5)

        assert order.total_amount == 110.0
        assert order.final_amount == 120.0

    def test_line_snapshots(self):
        order = _make_order()
        keyboard = next(i for i in order.items if i.item_id == "item-1")

        assert keyboard.item_name == "Mechanical Keyboard"
        assert keyboard.price == 50.0
        assert keyboard.subtotal == 100.0
        assert keyboard.seller_name == "KeyCo"

    def test_billing_defaults_to_shipping(self):
        order = _make_order()
        assert order.billing_address.street == "1 Main St"
        assert order.billing_address.postal_code == "62704"

    def test_customer_contact_snapshot(self):
        order = _make_order(customer={"name": "Ada", "email": "ada@example.com", "phone": "555"})
        assert order.customer_name == "Ada"
        assert order.customer_email == "ada@example.com"

    def test_payment_method_accepts_name_or_value(self):
        assert _make_order(payment_method="CREDIT_CARD").payment_method == PaymentMethod.CREDIT_CARD.value
        assert _make_order(payment_method="PayPal").payment_method == PaymentMethod.PAYPAL.value

    def test_unknown_payment_method_rejected(self):
        with pytest.raises(ValidationError):
            _make_order(payment_method="BARTER")

    def test_estimated_delivery(self):
        now = datetime(2024, 5, 1, tzinfo=UTC)
        order = _make_order(now=now, estimated_delivery_days=7)
        assert order.estimated_delivery_date == now + timedelta(days=7)

    def test_cart_conversion_pending_when_created_from_cart(self):
        assert _make_order(source_cart_id="cart-1").cart_conversion_pending is True
        assert _make_order().cart_conversion_pending is False

    def test_requires_items(self):
        with pytest.raises(ValidationError):
            _make_order(items_data=[])

    def test_discount_cannot_exceed_value(self):
        with pytest.raises(ValidationError):
            _make_order(discount_amount=500.0)

    def test_discount_larger_than_charges_is_fine(self):
        order = _make_order(discount_amount=20.0)
        assert order.final_amount == 90.0

    def test_created_event(self):
        order = _make_order(source_cart_id="cart-1")
        event = order._events[-1]

        assert isinstance(event, OrderCreated)
        assert event.source_cart_id == "cart-1"
        assert event.item_count == 2
        assert event.final_amount == 110.0


class TestCharges:
    def test_update_charges_while_pending(self):
        order = _make_order()
        order.update_charges(shipping_cost=10.0, tax_amount=5.0)

        assert order.final_amount == 125.0
        assert isinstance(order._events[-1], OrderChargesUpdated)

    def test_unspecified_charges_are_kept(self):
        order = _make_order(shipping_cost=4.0)
        order.update_charges(discount_amount=4.0)

        assert order.shipping_cost == 4.0
        assert order.final_amount == 110.0

    def test_charges_locked_after_confirmation(self):
        order = _make_order()
        order.confirm()

        with pytest.raises(InvalidStateTransition) as exc:
            order.update_charges(shipping_cost=1.0)
        assert exc.value.current_status == OrderStatus.CONFIRMED.value

    def test_final_amount_must_match_charges(self):
        order = _make_order()
        with pytest.raises(ValidationError):
            order.final_amount = 1.0


class TestSnapshotImmutability:
    def test_later_status_changes_do_not_touch_lines(self):
        order = _make_order()
        before = [(i.item_id, i.price, i.quantity, i.subtotal) for i in order.items]

        order.confirm()
        order.ship(tracking_number="TRK-1")
        order.deliver()

        assert [(i.item_id, i.price, i.quantity, i.subtotal) for i in order.items] == before
        assert order.total_amount == 110.0
