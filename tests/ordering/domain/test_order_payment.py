"""Tests for the payment sub-state-machine and its coupling to order status."""

import pytest
from ordering.errors import InvalidStateTransition
from ordering.order.events import PaymentStatusUpdated
from ordering.order.order import Order, OrderStatus, PaymentStatus
from ordering.order.payment import payment_status_from_callback
from protean.exceptions import ValidationError


def _make_order():
    return Order.create(
        user_id="user-1",
        items_data=[{"item_id": "item-1", "item_name": "Widget", "price": 25.0, "quantity": 1}],
        shipping_address={"street": "1 Main St", "city": "Springfield", "postal_code": "62704", "country": "US"},
        payment_method="CREDIT_CARD",
    )


class TestPaymentTransitions:
    def test_processing_then_completed(self):
        order = _make_order()
        order.update_payment_status("PROCESSING")
        order.update_payment_status("COMPLETED", transaction_id="txn-1")

        assert order.payment_status == PaymentStatus.COMPLETED.value
        assert order.payment_transaction_id == "txn-1"

    def test_completed_can_be_refunded(self):
        order = _make_order()
        order.update_payment_status("COMPLETED")
        order.update_payment_status("REFUNDED")
        assert order.payment_status == PaymentStatus.REFUNDED.value

    @pytest.mark.parametrize(
        "start, target",
        [
            ("COMPLETED", "PENDING"),
            ("COMPLETED", "FAILED"),
            ("FAILED", "COMPLETED"),
            ("PENDING", "REFUNDED"),
        ],
    )
    def test_illegal_payment_transitions(self, start, target):
        order = _make_order()
        order.update_payment_status(start)

        with pytest.raises(InvalidStateTransition):
            order.update_payment_status(target)

    def test_repeated_status_is_noop(self):
        order = _make_order()
        order.update_payment_status("COMPLETED", transaction_id="txn-1")
        order._events.clear()

        assert order.update_payment_status("COMPLETED", transaction_id="txn-2") is False
        assert order._events == []
        assert order.payment_transaction_id == "txn-1"
        assert len(order.status_history) == 2

    def test_unknown_payment_status_rejected(self):
        order = _make_order()
        with pytest.raises(ValidationError):
            order.update_payment_status("MAYBE")

    def test_event_raised(self):
        order = _make_order()
        order.update_payment_status("PROCESSING", transaction_id="txn-1")

        event = order._events[-1]
        assert isinstance(event, PaymentStatusUpdated)
        assert event.previous_status == "Pending"
        assert event.new_status == "Processing"


class TestOrderCoupling:
    def test_completed_payment_confirms_pending_order(self):
        order = _make_order()
        order.update_payment_status("COMPLETED")

        assert order.status == OrderStatus.CONFIRMED.value
        assert order.latest_history_entry.reason == "Payment completed"

    def test_completed_payment_leaves_confirmed_order(self):
        order = _make_order()
        order.confirm()
        order.update_payment_status("COMPLETED")

        assert order.status == OrderStatus.CONFIRMED.value
        assert len(order.status_history) == 2

    def test_failed_payment_cancels_order(self):
        order = _make_order()
        order.update_payment_status("FAILED")

        assert order.status == OrderStatus.CANCELLED.value
        assert order.latest_history_entry.reason == "Payment failed"

    def test_failed_payment_cancels_even_after_shipping(self):
        order = _make_order()
        order.confirm()
        order.ship()
        order.update_payment_status("PROCESSING")
        order.update_payment_status("FAILED")

        assert order.status == OrderStatus.CANCELLED.value


@pytest.mark.parametrize(
    "raw, expected",
    [
        ("success", PaymentStatus.COMPLETED),
        ("SUCCEEDED", PaymentStatus.COMPLETED),
        ("paid", PaymentStatus.COMPLETED),
        ("failed", PaymentStatus.FAILED),
        ("Declined", PaymentStatus.FAILED),
        ("refunded", PaymentStatus.REFUNDED),
        ("canceled", PaymentStatus.CANCELLED),
        ("pending", PaymentStatus.PENDING),
        ("authorised", PaymentStatus.PROCESSING),
        ("", PaymentStatus.PROCESSING),
    ],
)
def test_callback_status_mapping(raw, expected):
    assert payment_status_from_callback(raw) == expected
