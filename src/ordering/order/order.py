"""Order aggregate (CQRS) - the purchase created from a cart at checkout.

Line items are price and display snapshots taken at checkout; nothing on
the aggregate changes them afterwards. The order's status is written in
exactly one place, ``_update_status``, which appends a history entry before
setting the field, so the status always equals the latest history entry.

State Machine:
    PENDING → CONFIRMED → PROCESSING → SHIPPED → OUT_FOR_DELIVERY → DELIVERED
    CONFIRMED → SHIPPED, SHIPPED → DELIVERED
    DELIVERED → RETURNED → REFUNDED
    CANCELLED (from PENDING, CONFIRMED) → REFUNDED

Payment sub-machine:
    PENDING → PROCESSING → COMPLETED | FAILED
    PENDING → COMPLETED | FAILED | CANCELLED, PROCESSING → CANCELLED
    COMPLETED → REFUNDED
"""

import json
from datetime import timedelta
from enum import Enum

from protean import atomic_change, invariant
from protean.exceptions import ValidationError
from protean.fields import (
    Boolean,
    DateTime,
    Float,
    HasMany,
    Identifier,
    Integer,
    String,
    Text,
    ValueObject,
)

from ordering.domain import ordering
from ordering.errors import InvalidStateTransition
from ordering.inventory.port import StockLine
from ordering.order.events import (
    CartConversionRecorded,
    OrderCancelled,
    OrderChargesUpdated,
    OrderCreated,
    OrderDelivered,
    OrderShipped,
    OrderStatusChanged,
    OrderStockReleased,
    PaymentStatusUpdated,
    ReturnRequested,
)
from ordering.utils.time import as_utc, utcnow


# ---------------------------------------------------------------------------
# Enums
# ---------------------------------------------------------------------------
class _LabelledEnum(Enum):
    @classmethod
    def parse(cls, value, field="status"):
        """Accept either the stored value ("Out_For_Delivery") or the name ("OUT_FOR_DELIVERY")."""
        if isinstance(value, cls):
            return value
        text = str(value or "").strip()
        for member in cls:
            if text == member.value or text.upper() == member.name:
                return member
        raise ValidationError({field: [f"Unknown {cls.__name__} '{value}'"]})


class OrderStatus(_LabelledEnum):
    PENDING = "Pending"
    CONFIRMED = "Confirmed"
    PROCESSING = "Processing"
    SHIPPED = "Shipped"
    OUT_FOR_DELIVERY = "Out_For_Delivery"
    DELIVERED = "Delivered"
    CANCELLED = "Cancelled"
    RETURNED = "Returned"
    REFUNDED = "Refunded"


class PaymentStatus(_LabelledEnum):
    PENDING = "Pending"
    PROCESSING = "Processing"
    COMPLETED = "Completed"
    FAILED = "Failed"
    REFUNDED = "Refunded"
    CANCELLED = "Cancelled"


class PaymentMethod(_LabelledEnum):
    CREDIT_CARD = "Credit_Card"
    DEBIT_CARD = "Debit_Card"
    PAYPAL = "PayPal"
    STRIPE = "Stripe"
    CASH_ON_DELIVERY = "Cash_On_Delivery"
    BANK_TRANSFER = "Bank_Transfer"


# State machine transition map
_VALID_TRANSITIONS = {
    OrderStatus.PENDING: {OrderStatus.CONFIRMED, OrderStatus.CANCELLED},
    OrderStatus.CONFIRMED: {OrderStatus.PROCESSING, OrderStatus.SHIPPED, OrderStatus.CANCELLED},
    OrderStatus.PROCESSING: {OrderStatus.SHIPPED},
    OrderStatus.SHIPPED: {OrderStatus.OUT_FOR_DELIVERY, OrderStatus.DELIVERED},
    OrderStatus.OUT_FOR_DELIVERY: {OrderStatus.DELIVERED},
    OrderStatus.DELIVERED: {OrderStatus.RETURNED},
    OrderStatus.RETURNED: {OrderStatus.REFUNDED},
    OrderStatus.CANCELLED: {OrderStatus.REFUNDED},
    OrderStatus.REFUNDED: set(),  # Terminal
}

_CANCELLABLE_STATES = {OrderStatus.PENDING, OrderStatus.CONFIRMED}

_PAYMENT_TRANSITIONS = {
    PaymentStatus.PENDING: {
        PaymentStatus.PROCESSING,
        PaymentStatus.COMPLETED,
        PaymentStatus.FAILED,
        PaymentStatus.CANCELLED,
    },
    PaymentStatus.PROCESSING: {PaymentStatus.COMPLETED, PaymentStatus.FAILED, PaymentStatus.CANCELLED},
    PaymentStatus.COMPLETED: {PaymentStatus.REFUNDED},
    PaymentStatus.FAILED: set(),
    PaymentStatus.REFUNDED: set(),
    PaymentStatus.CANCELLED: set(),
}


def _money(value) -> float:
    return round(float(value or 0.0), 2)


# ---------------------------------------------------------------------------
# Value Objects
# ---------------------------------------------------------------------------
@ordering.value_object(part_of="Order")
class ShippingAddress:
    """A delivery or billing address captured at checkout time."""

    street = String(required=True, max_length=255)
    street_line2 = String(max_length=255)
    city = String(required=True, max_length=100)
    state = String(max_length=100)
    postal_code = String(required=True, max_length=20)
    country = String(required=True, max_length=100)


# ---------------------------------------------------------------------------
# Entities
# ---------------------------------------------------------------------------
@ordering.entity(part_of="Order")
class OrderItem:
    """A purchased line, frozen at checkout.

    Name, price and seller are copied from the cart line; later catalogue
    changes never reach an existing order.
    """

    item_id = Identifier(required=True)
    item_name = String(required=True, max_length=255)
    item_description = Text()
    price = Float(required=True, min_value=0.0)
    quantity = Integer(required=True, min_value=1)
    subtotal = Float(required=True, min_value=0.0)
    seller_id = Identifier()
    seller_name = String(max_length=255)
    image_url = String(max_length=500)
    category = String(max_length=100)
    variant_attributes = String(max_length=1000)


@ordering.entity(part_of="Order")
class StatusHistoryEntry:
    sequence = Integer(required=True, min_value=1)
    status = String(required=True, choices=OrderStatus)
    reason = Text()
    recorded_at = DateTime(required=True)


# ---------------------------------------------------------------------------
# Aggregate Root
# ---------------------------------------------------------------------------
@ordering.aggregate
class Order:
    user_id = Identifier(required=True)
    customer_name = String(max_length=255)
    customer_email = String(max_length=255)
    customer_phone = String(max_length=50)
    status = String(choices=OrderStatus, default=OrderStatus.PENDING.value)
    payment_status = String(choices=PaymentStatus, default=PaymentStatus.PENDING.value)
    payment_method = String(choices=PaymentMethod)
    payment_transaction_id = String(max_length=255)
    items = HasMany(OrderItem)
    status_history = HasMany(StatusHistoryEntry)
    total_amount = Float(default=0.0)
    shipping_cost = Float(default=0.0, min_value=0.0)
    tax_amount = Float(default=0.0, min_value=0.0)
    discount_amount = Float(default=0.0, min_value=0.0)
    final_amount = Float(default=0.0)
    shipping_address = ValueObject(ShippingAddress)
    billing_address = ValueObject(ShippingAddress)
    tracking_number = String(max_length=255)
    estimated_delivery_date = DateTime()
    actual_delivery_date = DateTime()
    notes = Text()
    source_cart_id = Identifier()
    stock_reserved = Boolean(default=False)
    unreleased_stock = Text()  # JSON: lines still owed back after a partial release
    cart_conversion_pending = Boolean(default=False)
    created_at = DateTime()
    updated_at = DateTime()

    @invariant.post
    def status_must_match_latest_history_entry(self):
        if not self.status_history:
            return
        if self.status != self.latest_history_entry.status:
            raise ValidationError({"status": ["Order status must equal the latest status history entry"]})

    @invariant.post
    def final_amount_must_match_charges(self):
        expected = _money(
            (self.total_amount or 0.0)
            + (self.shipping_cost or 0.0)
            + (self.tax_amount or 0.0)
            - (self.discount_amount or 0.0)
        )
        if abs((self.final_amount or 0.0) - expected) > 0.005:
            raise ValidationError({"final_amount": ["Final amount must equal total + shipping + tax - discount"]})

    @invariant.post
    def final_amount_cannot_be_negative(self):
        if (self.final_amount or 0.0) < 0:
            raise ValidationError({"discount_amount": ["Discount cannot exceed the order value"]})

    # -------------------------------------------------------------------
    # Factory method
    # -------------------------------------------------------------------
    @classmethod
    def create(
        cls,
        user_id,
        items_data,
        shipping_address,
        billing_address=None,
        payment_method=None,
        shipping_cost=0.0,
        tax_amount=0.0,
        discount_amount=0.0,
        notes=None,
        customer=None,
        source_cart_id=None,
        stock_reserved=False,
        estimated_delivery_days=7,
        now=None,
    ):
        """Create a pending order from checkout data.

        Args:
            user_id: The buyer.
            items_data: List of dicts with item_id, item_name, price, quantity
                and optional item_description, seller_id, seller_name,
                image_url, category, variant_attributes.
            shipping_address: Dict with street, city, state, postal_code, country.
            billing_address: Same shape; defaults to the shipping address.
            customer: Optional dict with name, email, phone.
        """
        if not items_data:
            raise ValidationError({"items": ["An order needs at least one item"]})

        now = now or utcnow()
        customer = customer or {}
        shipping_cost = _money(shipping_cost)
        tax_amount = _money(tax_amount)
        discount_amount = _money(discount_amount)
        items_total = _money(sum(_money(_money(data["price"]) * data["quantity"]) for data in items_data))

        order = cls(
            user_id=user_id,
            customer_name=customer.get("name"),
            customer_email=customer.get("email"),
            customer_phone=customer.get("phone"),
            status=OrderStatus.PENDING.value,
            payment_status=PaymentStatus.PENDING.value,
            payment_method=PaymentMethod.parse(payment_method, field="payment_method").value if payment_method else None,
            shipping_address=ShippingAddress(**shipping_address),
            billing_address=ShippingAddress(**(billing_address or shipping_address)),
            total_amount=items_total,
            shipping_cost=shipping_cost,
            tax_amount=tax_amount,
            discount_amount=discount_amount,
            final_amount=_money(items_total + shipping_cost + tax_amount - discount_amount),
            notes=notes,
            source_cart_id=source_cart_id,
            stock_reserved=stock_reserved,
            cart_conversion_pending=bool(source_cart_id),
            estimated_delivery_date=now + timedelta(days=estimated_delivery_days),
            created_at=now,
            updated_at=now,
        )

        with atomic_change(order):
            for data in items_data:
                price = _money(data["price"])
                order.add_items(
                    OrderItem(
                        item_id=data["item_id"],
                        item_name=data["item_name"],
                        item_description=data.get("item_description"),
                        price=price,
                        quantity=data["quantity"],
                        subtotal=_money(price * data["quantity"]),
                        seller_id=data.get("seller_id"),
                        seller_name=data.get("seller_name"),
                        image_url=data.get("image_url"),
                        category=data.get("category"),
                        variant_attributes=data.get("variant_attributes") or "",
                    )
                )
            order._recalculate_amounts()
            order.add_status_history(
                StatusHistoryEntry(
                    sequence=1,
                    status=OrderStatus.PENDING.value,
                    reason="Order created",
                    recorded_at=now,
                )
            )

        order.raise_(
            OrderCreated(
                order_id=str(order.id),
                user_id=str(user_id),
                source_cart_id=str(source_cart_id) if source_cart_id else None,
                item_count=len(order.items),
                final_amount=order.final_amount,
                payment_method=order.payment_method,
                created_at=now,
            )
        )
        return order

    # -------------------------------------------------------------------
    # Queries
    # -------------------------------------------------------------------
    @property
    def latest_history_entry(self):
        if not self.status_history:
            return None
        return max(self.status_history, key=lambda entry: entry.sequence)

    @property
    def current_status(self) -> OrderStatus:
        """Status derived from the history; equal to ``status`` by invariant."""
        latest = self.latest_history_entry
        return OrderStatus(latest.status if latest else self.status)

    def ordered_history(self):
        return sorted(self.status_history, key=lambda entry: entry.sequence)

    def is_owned_by(self, user_id) -> bool:
        return user_id is not None and str(self.user_id) == str(user_id)

    def can_cancel(self, user_id=None, is_admin=False) -> bool:
        return (is_admin or self.is_owned_by(user_id)) and OrderStatus(self.status) in _CANCELLABLE_STATES

    def can_return(self, user_id=None, window_days=30, now=None) -> bool:
        if not self.is_owned_by(user_id):
            return False
        return self._within_return_window(window_days, now or utcnow())

    def _within_return_window(self, window_days, now) -> bool:
        if OrderStatus(self.status) != OrderStatus.DELIVERED or self.actual_delivery_date is None:
            return False
        return now - as_utc(self.actual_delivery_date) <= timedelta(days=window_days)

    # -------------------------------------------------------------------
    # State transition helpers
    # -------------------------------------------------------------------
    def _assert_can_transition(self, target_status):
        """Validate that the current state allows transition to target."""
        current = OrderStatus(self.status)
        if target_status not in _VALID_TRANSITIONS.get(current, set()):
            raise InvalidStateTransition(current.value, target_status.value)

    def _update_status(self, new_status, reason=None, now=None) -> bool:
        """Append a history entry and move to ``new_status``. No-op when unchanged."""
        previous = OrderStatus(self.status)
        if previous == new_status:
            return False

        now = now or utcnow()
        latest = self.latest_history_entry
        sequence = (latest.sequence if latest else 0) + 1

        with atomic_change(self):
            self.add_status_history(
                StatusHistoryEntry(
                    sequence=sequence,
                    status=new_status.value,
                    reason=reason,
                    recorded_at=now,
                )
            )
            self.status = new_status.value
            self.updated_at = now

        self.raise_(
            OrderStatusChanged(
                order_id=str(self.id),
                previous_status=previous.value,
                new_status=new_status.value,
                reason=reason,
                sequence=sequence,
                changed_at=now,
            )
        )
        return True

    def _transition(self, target_status, reason, now=None):
        self._assert_can_transition(target_status)
        self._update_status(target_status, reason, now)

    def _recalculate_amounts(self):
        self.total_amount = _money(sum(item.subtotal for item in self.items))
        self.final_amount = _money(self.total_amount + self.shipping_cost + self.tax_amount - self.discount_amount)

    # -------------------------------------------------------------------
    # Order lifecycle transitions
    # -------------------------------------------------------------------
    def confirm(self, reason="Order confirmed", now=None):
        self._transition(OrderStatus.CONFIRMED, reason, now)

    def mark_processing(self, reason="Order processing", now=None):
        self._transition(OrderStatus.PROCESSING, reason, now)

    def ship(self, tracking_number=None, estimated_delivery_date=None, reason="Order shipped", now=None):
        """Ship a confirmed or processing order."""
        self._assert_can_transition(OrderStatus.SHIPPED)
        now = now or utcnow()

        if tracking_number:
            self.tracking_number = tracking_number
        if estimated_delivery_date:
            self.estimated_delivery_date = estimated_delivery_date
        self._update_status(OrderStatus.SHIPPED, reason, now)

        self.raise_(
            OrderShipped(
                order_id=str(self.id),
                tracking_number=self.tracking_number,
                estimated_delivery_date=self.estimated_delivery_date,
                shipped_at=now,
            )
        )

    def mark_out_for_delivery(self, reason="Out for delivery", now=None):
        self._transition(OrderStatus.OUT_FOR_DELIVERY, reason, now)

    def deliver(self, actual_delivery_date=None, reason="Order delivered", now=None):
        """Record delivery of a shipped order. The delivery date defaults to now."""
        self._assert_can_transition(OrderStatus.DELIVERED)
        now = now or utcnow()

        self.actual_delivery_date = actual_delivery_date or now
        self._update_status(OrderStatus.DELIVERED, reason, now)

        self.raise_(OrderDelivered(order_id=str(self.id), delivered_at=self.actual_delivery_date))

    def cancel(self, reason=None, cancelled_by=None, now=None):
        """Cancel a pending or confirmed order."""
        current = OrderStatus(self.status)
        if current not in _CANCELLABLE_STATES:
            raise InvalidStateTransition(
                current.value,
                OrderStatus.CANCELLED.value,
                message=f"Order cannot be cancelled in {current.value} state",
            )
        self._cancel(reason or "Cancelled by user", cancelled_by, now)

    def force_cancel(self, reason, cancelled_by="system", now=None):
        """Cancel regardless of the status graph (payment failure)."""
        if OrderStatus(self.status) == OrderStatus.CANCELLED:
            return
        self._cancel(reason, cancelled_by, now)

    def _cancel(self, reason, cancelled_by, now):
        now = now or utcnow()
        self._update_status(OrderStatus.CANCELLED, reason, now)
        self.raise_(
            OrderCancelled(
                order_id=str(self.id),
                reason=reason,
                cancelled_by=cancelled_by,
                cancelled_at=now,
            )
        )

    def request_return(self, reason=None, window_days=30, now=None):
        """Return a delivered order within ``window_days`` of delivery."""
        now = now or utcnow()
        current = OrderStatus(self.status)
        if current != OrderStatus.DELIVERED:
            raise InvalidStateTransition(
                current.value,
                OrderStatus.RETURNED.value,
                message=f"Only delivered orders can be returned, order is {current.value}",
            )
        if not self._within_return_window(window_days, now):
            raise InvalidStateTransition(
                current.value,
                OrderStatus.RETURNED.value,
                message=f"Return window of {window_days} days has expired",
            )

        reason = reason or "Return requested by user"
        self._update_status(OrderStatus.RETURNED, reason, now)
        self.raise_(ReturnRequested(order_id=str(self.id), reason=reason, requested_at=now))

    def refund(self, reason="Order refunded", now=None):
        self._transition(OrderStatus.REFUNDED, reason, now)

    def update_status(self, new_status, reason=None, tracking_number=None, return_window_days=30, now=None):
        """Administrative transition along any edge of the status graph.

        Moving to Returned is bound by the same delivery window as a buyer
        return request.

        Returns False when the order already has ``new_status``.
        """
        new_status = OrderStatus.parse(new_status)
        if OrderStatus(self.status) == new_status:
            if tracking_number:
                self.tracking_number = tracking_number
            return False

        if new_status == OrderStatus.SHIPPED:
            self.ship(tracking_number=tracking_number, reason=reason or "Order shipped", now=now)
        elif new_status == OrderStatus.DELIVERED:
            self.deliver(reason=reason or "Order delivered", now=now)
        elif new_status == OrderStatus.CANCELLED:
            self._assert_can_transition(OrderStatus.CANCELLED)
            self._cancel(reason or "Cancelled by admin", "admin", now)
        elif new_status == OrderStatus.RETURNED:
            self.request_return(reason=reason or "Returned by admin", window_days=return_window_days, now=now)
        else:
            self._transition(new_status, reason or f"Status updated to {new_status.value}", now)
            if tracking_number:
                self.tracking_number = tracking_number
        return True

    # -------------------------------------------------------------------
    # Charges
    # -------------------------------------------------------------------
    def update_charges(self, shipping_cost=None, tax_amount=None, discount_amount=None, now=None):
        """Adjust shipping, tax or discount while the order is still pending."""
        current = OrderStatus(self.status)
        if current != OrderStatus.PENDING:
            raise InvalidStateTransition(
                current.value,
                message=f"Charges can only change while the order is Pending, order is {current.value}",
            )

        with atomic_change(self):
            if shipping_cost is not None:
                self.shipping_cost = _money(shipping_cost)
            if tax_amount is not None:
                self.tax_amount = _money(tax_amount)
            if discount_amount is not None:
                self.discount_amount = _money(discount_amount)
            self._recalculate_amounts()
            self.updated_at = now or utcnow()

        self.raise_(
            OrderChargesUpdated(
                order_id=str(self.id),
                shipping_cost=self.shipping_cost,
                tax_amount=self.tax_amount,
                discount_amount=self.discount_amount,
                final_amount=self.final_amount,
            )
        )

    # -------------------------------------------------------------------
    # Payment
    # -------------------------------------------------------------------
    def update_payment_status(self, payment_status, transaction_id=None, now=None) -> bool:
        """Apply a payment state reported by the payment collaborator.

        Repeating the current payment state is a no-op so webhook retries are
        harmless. A completed payment confirms a pending order; a failed
        payment cancels the order whatever its status.
        """
        new_status = PaymentStatus.parse(payment_status, field="payment_status")
        previous = PaymentStatus(self.payment_status)
        now = now or utcnow()

        if new_status == previous:
            if transaction_id and not self.payment_transaction_id:
                self.payment_transaction_id = transaction_id
            return False

        if new_status not in _PAYMENT_TRANSITIONS[previous]:
            raise InvalidStateTransition(
                previous.value,
                new_status.value,
                message=f"Cannot change payment status from {previous.value} to {new_status.value}",
            )

        self.payment_status = new_status.value
        if transaction_id:
            self.payment_transaction_id = transaction_id
        self.updated_at = now

        self.raise_(
            PaymentStatusUpdated(
                order_id=str(self.id),
                previous_status=previous.value,
                new_status=new_status.value,
                transaction_id=transaction_id,
                updated_at=now,
            )
        )

        if new_status == PaymentStatus.COMPLETED and OrderStatus(self.status) == OrderStatus.PENDING:
            self._update_status(OrderStatus.CONFIRMED, "Payment completed", now)
        elif new_status == PaymentStatus.FAILED:
            self.force_cancel("Payment failed", cancelled_by="payment", now=now)
        return True

    # -------------------------------------------------------------------
    # Collaborator bookkeeping
    # -------------------------------------------------------------------
    @property
    def owes_stock_release(self) -> bool:
        """Cancelled orders that still hold a reservation owe a release."""
        return bool(self.stock_reserved) and OrderStatus(self.status) in (
            OrderStatus.CANCELLED,
            OrderStatus.REFUNDED,
        )

    def record_stock_release(self, unreleased_lines=(), now=None):
        """Record the outcome of a release attempt; unreleased lines stay owed."""
        now = now or utcnow()
        self.updated_at = now
        if unreleased_lines:
            self.unreleased_stock = json.dumps([{"item_id": line.item_id, "quantity": line.quantity} for line in unreleased_lines])
            return

        self.stock_reserved = False
        self.unreleased_stock = None
        self.raise_(OrderStockReleased(order_id=str(self.id), released_at=now))

    def mark_cart_conversion_recorded(self, now=None):
        if not self.cart_conversion_pending:
            return
        now = now or utcnow()
        self.cart_conversion_pending = False
        self.updated_at = now
        self.raise_(
            CartConversionRecorded(
                order_id=str(self.id),
                cart_id=str(self.source_cart_id),
                recorded_at=now,
            )
        )

    def stock_lines(self):
        """Lines the reservation still holds: all items, or what a partial release left over."""
        if self.unreleased_stock:
            return [StockLine(item_id=d["item_id"], quantity=d["quantity"]) for d in json.loads(self.unreleased_stock)]
        return [StockLine(item_id=str(item.item_id), quantity=item.quantity) for item in self.items]
