"""Application tests for the scheduled order jobs: auto-cancel and reconciliation."""

import json
from datetime import UTC, datetime, timedelta

from ordering.inventory.port import StockLine
from ordering.inventory.reservation import reserve_items
from ordering.order.automation import AUTO_CANCEL_REASON, ProcessAutomaticStatusUpdates
from ordering.order.cancellation import CancelOrder
from ordering.order.confirmation import ConfirmOrder
from ordering.order.creation import CreateOrder
from ordering.order.order import Order, OrderStatus
from ordering.order.reconciliation import ReconcileOrders
from protean import current_domain


def _create_order(quantity=1):
    reserve_items([StockLine("item-1", quantity)])
    return current_domain.process(
        CreateOrder(
            user_id="user-1",
            items=json.dumps([{"item_id": "item-1", "item_name": "Keyboard", "price": 50.0, "quantity": quantity}]),
            shipping_address=json.dumps({"street": "1 Main", "city": "Town", "postal_code": "1", "country": "US"}),
            stock_reserved=True,
        ),
        asynchronous=False,
    )


def _order(order_id):
    return current_domain.repository_for(Order).get(order_id)


def _auto_cancel(as_of, timeout_hours=24):
    return current_domain.process(
        ProcessAutomaticStatusUpdates(timeout_hours=timeout_hours, as_of=as_of),
        asynchronous=False,
    )


class TestAutoCancel:
    def test_cancels_stale_pending_orders(self, inventory):
        order_id = _create_order(quantity=2)
        assert inventory.stock_of("item-1") == 8

        count = _auto_cancel(datetime.now(UTC) + timedelta(hours=25))

        order = _order(order_id)
        assert count == 1
        assert order.status == OrderStatus.CANCELLED.value
        assert order.latest_history_entry.reason == AUTO_CANCEL_REASON
        assert inventory.stock_of("item-1") == 10

    def test_leaves_recent_orders(self):
        order_id = _create_order()

        assert _auto_cancel(datetime.now(UTC) + timedelta(hours=23)) == 0
        assert _order(order_id).status == OrderStatus.PENDING.value

    def test_leaves_confirmed_orders(self):
        order_id = _create_order()
        current_domain.process(ConfirmOrder(order_id=order_id), asynchronous=False)

        assert _auto_cancel(datetime.now(UTC) + timedelta(days=3)) == 0
        assert _order(order_id).status == OrderStatus.CONFIRMED.value

    def test_second_run_finds_nothing(self):
        _create_order()
        as_of = datetime.now(UTC) + timedelta(hours=25)

        assert _auto_cancel(as_of) == 1
        assert _auto_cancel(as_of) == 0

    def test_configured_timeout(self, override_setting):
        override_setting(order_pending_timeout_hours=48)
        _create_order()

        result = current_domain.process(
            ProcessAutomaticStatusUpdates(as_of=datetime.now(UTC) + timedelta(hours=25)),
            asynchronous=False,
        )
        assert result == 0


class TestStockReconciliation:
    def test_retries_failed_releases(self, inventory):
        order_id = _create_order(quantity=3)
        inventory.fail_for("item-1", releases_only=True)
        current_domain.process(CancelOrder(order_id=order_id, requested_by="user-1"), asynchronous=False)
        assert inventory.stock_of("item-1") == 7

        still_down = current_domain.process(ReconcileOrders(), asynchronous=False)
        assert still_down["stock_releases"] == 0
        assert _order(order_id).owes_stock_release is True

        inventory.recover()
        result = current_domain.process(ReconcileOrders(), asynchronous=False)

        assert result["stock_releases"] == 1
        assert inventory.stock_of("item-1") == 10
        assert _order(order_id).owes_stock_release is False

    def test_nothing_released_twice(self, inventory):
        order_id = _create_order(quantity=3)
        current_domain.process(CancelOrder(order_id=order_id, requested_by="user-1"), asynchronous=False)

        result = current_domain.process(ReconcileOrders(), asynchronous=False)

        assert result == {"cart_conversions": 0, "stock_releases": 0}
        assert inventory.stock_of("item-1") == 10
