"""Payment status updates - commands and handler.

The payment collaborator is opaque: it only reports outcomes, either as a
payment status or as a raw callback status string.
"""

import structlog
from protean import handle
from protean.fields import Identifier, String
from protean.utils.globals import current_domain

from ordering.domain import ordering
from ordering.order.access import load_order
from ordering.order.order import Order, PaymentStatus
from ordering.order.stock import release_order_stock

logger = structlog.get_logger(__name__)

_CALLBACK_STATUSES = {
    "success": PaymentStatus.COMPLETED,
    "succeeded": PaymentStatus.COMPLETED,
    "completed": PaymentStatus.COMPLETED,
    "paid": PaymentStatus.COMPLETED,
    "failed": PaymentStatus.FAILED,
    "failure": PaymentStatus.FAILED,
    "error": PaymentStatus.FAILED,
    "declined": PaymentStatus.FAILED,
    "refunded": PaymentStatus.REFUNDED,
    "cancelled": PaymentStatus.CANCELLED,
    "canceled": PaymentStatus.CANCELLED,
    "pending": PaymentStatus.PENDING,
}


def payment_status_from_callback(raw_status) -> PaymentStatus:
    """Map a gateway's callback status onto a payment status; unknown values mean processing."""
    return _CALLBACK_STATUSES.get(str(raw_status or "").strip().lower(), PaymentStatus.PROCESSING)


@ordering.command(part_of="Order")
class UpdatePaymentStatus:
    order_id = Identifier(required=True)
    payment_status = String(required=True, max_length=50)
    transaction_id = String(max_length=255)


@ordering.command(part_of="Order")
class ProcessPaymentCallback:
    order_id = Identifier(required=True)
    status = String(required=True, max_length=50)
    transaction_id = String(max_length=255)


@ordering.command_handler(part_of=Order)
class PaymentHandler:
    def _apply(self, order_id, payment_status, transaction_id):
        order = load_order(order_id)
        previous_order_status = order.status
        changed = order.update_payment_status(payment_status, transaction_id=transaction_id)
        release_order_stock(order)
        current_domain.repository_for(Order).add(order)

        logger.info(
            "Payment status applied",
            order_id=str(order.id),
            payment_status=order.payment_status,
            changed=changed,
            previous_order_status=previous_order_status,
            order_status=order.status,
        )
        return order.status

    @handle(UpdatePaymentStatus)
    def update_payment_status(self, command):
        return self._apply(command.order_id, command.payment_status, command.transaction_id)

    @handle(ProcessPaymentCallback)
    def process_payment_callback(self, command):
        payment_status = payment_status_from_callback(command.status)
        return self._apply(command.order_id, payment_status, command.transaction_id)
