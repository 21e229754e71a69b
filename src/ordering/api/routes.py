"""FastAPI routes for the checkout service - carts, orders and maintenance."""

from fastapi import APIRouter, Depends, Query
from protean.utils.globals import current_domain

from ordering.api.owner import Caller, require_admin, require_order_manager, require_user, resolve_caller
from ordering.api.schemas import (
    AddToCartRequest,
    AddressSchema,
    AutoCancelResponse,
    CartCleanupResponse,
    CartItemResponse,
    CartResponse,
    CartSummaryResponse,
    CartValidationResponse,
    CreateOrderRequest,
    DeliverOrderRequest,
    OrderItemResponse,
    OrderResponse,
    PaymentCallbackRequest,
    ReasonRequest,
    ReconcileResponse,
    ShipOrderRequest,
    StatusHistoryResponse,
    UpdateCartItemRequest,
    UpdateOrderStatusRequest,
)
from ordering.cart.cart import ShoppingCart
from ordering.cart.cleanup import CleanupExpiredCarts
from ordering.cart.items import AddToCart, RemoveFromCart, UpdateCartItem
from ordering.cart.management import ClearCart, ExtendCartExpiration, GetOrCreateCart
from ordering.cart.transfer import TransferGuestCart
from ordering.cart.validation import ValidateCart
from ordering.checkout.orchestrator import CheckoutOrchestrator
from ordering.config import setting
from ordering.errors import NotOwned, OrderNotFound
from ordering.order.access import load_owned_order
from ordering.order.automation import ProcessAutomaticStatusUpdates
from ordering.order.cancellation import CancelOrder
from ordering.order.confirmation import ConfirmOrder
from ordering.order.fulfillment import DeliverOrder, ShipOrder
from ordering.order.order import Order
from ordering.order.payment import ProcessPaymentCallback
from ordering.order.reconciliation import ReconcileOrders
from ordering.order.returns import RequestReturn
from ordering.order.status import UpdateOrderStatus


# ---------------------------------------------------------------------------
# Response builders
# ---------------------------------------------------------------------------
def _cart_response(cart: ShoppingCart) -> CartResponse:
    return CartResponse(
        id=str(cart.id),
        user_id=str(cart.user_id) if cart.user_id else None,
        session_id=cart.session_id,
        status=cart.status,
        items=[
            CartItemResponse(
                id=str(item.id),
                item_id=str(item.item_id),
                item_name=item.item_name,
                item_description=item.item_description,
                item_image_url=item.item_image_url,
                category=item.category,
                seller_id=str(item.seller_id) if item.seller_id else None,
                seller_name=item.seller_name,
                price=item.price,
                quantity=item.quantity,
                subtotal=item.subtotal,
                product_attributes=item.variant_attributes or None,
                added_at=item.added_at,
            )
            for item in sorted(cart.items, key=lambda i: i.added_at or cart.created_at)
        ],
        total_amount=cart.total_amount or 0.0,
        total_items=cart.total_items or 0,
        expires_at=cart.expires_at,
        created_at=cart.created_at,
        updated_at=cart.updated_at,
    )


def _address(value) -> AddressSchema | None:
    if value is None:
        return None
    return AddressSchema(
        street=value.street,
        street_line2=value.street_line2,
        city=value.city,
        state=value.state,
        postal_code=value.postal_code,
        country=value.country,
    )


def _order_response(order: Order, caller: Caller | None = None) -> OrderResponse:
    user_id = caller.user_id if caller else None
    return OrderResponse(
        id=str(order.id),
        user_id=str(order.user_id),
        customer_name=order.customer_name,
        customer_email=order.customer_email,
        customer_phone=order.customer_phone,
        status=order.status,
        payment_status=order.payment_status,
        payment_method=order.payment_method,
        payment_transaction_id=order.payment_transaction_id,
        items=[
            OrderItemResponse(
                id=str(item.id),
                item_id=str(item.item_id),
                item_name=item.item_name,
                item_description=item.item_description,
                price=item.price,
                quantity=item.quantity,
                subtotal=item.subtotal,
                seller_id=str(item.seller_id) if item.seller_id else None,
                seller_name=item.seller_name,
                image_url=item.image_url,
                category=item.category,
                product_attributes=item.variant_attributes or None,
            )
            for item in order.items
        ],
        status_history=[
            StatusHistoryResponse(
                sequence=entry.sequence,
                status=entry.status,
                reason=entry.reason,
                recorded_at=entry.recorded_at,
            )
            for entry in order.ordered_history()
        ],
        total_amount=order.total_amount,
        shipping_cost=order.shipping_cost,
        tax_amount=order.tax_amount,
        discount_amount=order.discount_amount,
        final_amount=order.final_amount,
        shipping_address=_address(order.shipping_address),
        billing_address=_address(order.billing_address),
        tracking_number=order.tracking_number,
        estimated_delivery_date=order.estimated_delivery_date,
        actual_delivery_date=order.actual_delivery_date,
        notes=order.notes,
        can_cancel=order.can_cancel(user_id, is_admin=bool(caller and caller.is_admin)),
        can_return=order.can_return(user_id, window_days=setting("order_return_window_days")),
        created_at=order.created_at,
        updated_at=order.updated_at,
    )


def _load_cart(cart_id) -> ShoppingCart:
    return current_domain.repository_for(ShoppingCart).get(cart_id)


def _load_order(order_id) -> Order:
    return current_domain.repository_for(Order).get(order_id)


# ---------------------------------------------------------------------------
# Cart Router
# ---------------------------------------------------------------------------
cart_router = APIRouter(prefix="/cart", tags=["cart"])


@cart_router.get("", response_model=CartResponse)
async def get_cart(caller: Caller = Depends(resolve_caller)) -> CartResponse:
    cart_id = current_domain.process(GetOrCreateCart(**caller.owner()), asynchronous=False)
    return _cart_response(_load_cart(cart_id))


@cart_router.get("/summary", response_model=CartSummaryResponse)
async def get_cart_summary(caller: Caller = Depends(resolve_caller)) -> CartSummaryResponse:
    cart_id = current_domain.process(GetOrCreateCart(**caller.owner()), asynchronous=False)
    return CartSummaryResponse(**_load_cart(cart_id).summary())


@cart_router.post("/items", response_model=CartResponse)
async def add_cart_item(body: AddToCartRequest, caller: Caller = Depends(resolve_caller)) -> CartResponse:
    command = AddToCart(
        **caller.owner(),
        item_id=body.item_id,
        quantity=body.quantity,
        variant_attributes=body.product_attributes,
    )
    cart_id = current_domain.process(command, asynchronous=False)
    return _cart_response(_load_cart(cart_id))


@cart_router.put("/items/{cart_item_id}", response_model=CartResponse)
async def update_cart_item(
    cart_item_id: str,
    body: UpdateCartItemRequest,
    caller: Caller = Depends(resolve_caller),
) -> CartResponse:
    command = UpdateCartItem(**caller.owner(), cart_item_id=cart_item_id, quantity=body.quantity)
    cart_id = current_domain.process(command, asynchronous=False)
    return _cart_response(_load_cart(cart_id))


@cart_router.delete("/items/{cart_item_id}", response_model=CartResponse)
async def remove_cart_item(cart_item_id: str, caller: Caller = Depends(resolve_caller)) -> CartResponse:
    command = RemoveFromCart(**caller.owner(), cart_item_id=cart_item_id)
    cart_id = current_domain.process(command, asynchronous=False)
    return _cart_response(_load_cart(cart_id))


@cart_router.delete("", response_model=CartResponse)
async def clear_cart(caller: Caller = Depends(resolve_caller)) -> CartResponse:
    cart_id = current_domain.process(ClearCart(**caller.owner()), asynchronous=False)
    return _cart_response(_load_cart(cart_id))


@cart_router.post("/transfer", response_model=CartResponse)
async def transfer_guest_cart(
    guest_session_id: str = Query(alias="guestSessionId"),
    caller: Caller = Depends(require_user),
) -> CartResponse:
    command = TransferGuestCart(session_id=guest_session_id, user_id=caller.user_id)
    cart_id = current_domain.process(command, asynchronous=False)
    return _cart_response(_load_cart(cart_id))


@cart_router.post("/validate", response_model=CartValidationResponse)
async def validate_cart(caller: Caller = Depends(resolve_caller)) -> CartValidationResponse:
    changes = current_domain.process(ValidateCart(**caller.owner()), asynchronous=False)
    cart_id = current_domain.process(GetOrCreateCart(**caller.owner()), asynchronous=False)
    return CartValidationResponse(changes=changes, cart=_cart_response(_load_cart(cart_id)))


@cart_router.post("/extend", response_model=CartResponse)
async def extend_cart(
    days: int = Query(default=7, ge=1),
    caller: Caller = Depends(resolve_caller),
) -> CartResponse:
    cart_id = current_domain.process(ExtendCartExpiration(**caller.owner(), days=days), asynchronous=False)
    return _cart_response(_load_cart(cart_id))


# ---------------------------------------------------------------------------
# Order Router
# ---------------------------------------------------------------------------
order_router = APIRouter(prefix="/orders", tags=["orders"])


@order_router.post("", status_code=201, response_model=OrderResponse)
async def create_order(body: CreateOrderRequest, caller: Caller = Depends(require_user)) -> OrderResponse:
    customer = {
        "name": body.customer_name,
        "email": body.customer_email,
        "phone": body.customer_phone,
    }
    order_id = CheckoutOrchestrator().create_order_from_cart(
        user_id=caller.user_id,
        cart_id=body.cart_id,
        shipping_address=body.shipping_address.model_dump(),
        billing_address=body.billing_address.model_dump() if body.billing_address else None,
        payment_method=body.payment_method,
        shipping_cost=body.shipping_cost,
        tax_amount=body.tax_amount,
        discount_amount=body.discount_amount,
        notes=body.notes,
        customer=customer if any(customer.values()) else None,
    )
    return _order_response(_load_order(order_id), caller)


@order_router.get("", response_model=list[OrderResponse])
async def list_my_orders(caller: Caller = Depends(require_user)) -> list[OrderResponse]:
    orders = current_domain.repository_for(Order).find_for_user(caller.user_id)
    return [_order_response(order, caller) for order in orders]


@order_router.get("/track/{tracking_number}", response_model=OrderResponse)
async def track_order(tracking_number: str, caller: Caller = Depends(resolve_caller)) -> OrderResponse:
    order = current_domain.repository_for(Order).find_by_tracking_number(tracking_number)
    if order is None:
        raise OrderNotFound({"tracking_number": [f"No order with tracking number {tracking_number}"]})
    if not caller.manages_orders and not order.is_owned_by(caller.user_id):
        raise NotOwned({"order_id": ["Order does not belong to the current user"]})
    return _order_response(order, caller)


@order_router.get("/{order_id}", response_model=OrderResponse)
async def get_order(order_id: str, caller: Caller = Depends(resolve_caller)) -> OrderResponse:
    order = load_owned_order(order_id, caller.user_id, is_admin=caller.manages_orders)
    return _order_response(order, caller)


@order_router.put("/{order_id}/status", response_model=OrderResponse)
async def update_order_status(
    order_id: str,
    body: UpdateOrderStatusRequest,
    caller: Caller = Depends(require_order_manager),
) -> OrderResponse:
    command = UpdateOrderStatus(
        order_id=order_id,
        status=body.status,
        reason=body.reason,
        tracking_number=body.tracking_number,
    )
    current_domain.process(command, asynchronous=False)
    return _order_response(_load_order(order_id), caller)


@order_router.post("/{order_id}/cancel", response_model=OrderResponse)
async def cancel_order(
    order_id: str,
    body: ReasonRequest | None = None,
    caller: Caller = Depends(resolve_caller),
) -> OrderResponse:
    command = CancelOrder(
        order_id=order_id,
        requested_by=caller.user_id,
        is_admin=caller.is_admin,
        reason=body.reason if body else None,
    )
    current_domain.process(command, asynchronous=False)
    return _order_response(_load_order(order_id), caller)


@order_router.post("/{order_id}/return", response_model=OrderResponse)
async def request_return(
    order_id: str,
    body: ReasonRequest | None = None,
    caller: Caller = Depends(require_user),
) -> OrderResponse:
    command = RequestReturn(
        order_id=order_id,
        requested_by=caller.user_id,
        reason=body.reason if body else None,
    )
    current_domain.process(command, asynchronous=False)
    return _order_response(_load_order(order_id), caller)


@order_router.post("/{order_id}/confirm", response_model=OrderResponse)
async def confirm_order(order_id: str, caller: Caller = Depends(require_order_manager)) -> OrderResponse:
    current_domain.process(ConfirmOrder(order_id=order_id), asynchronous=False)
    return _order_response(_load_order(order_id), caller)


@order_router.post("/{order_id}/ship", response_model=OrderResponse)
async def ship_order(
    order_id: str,
    body: ShipOrderRequest | None = None,
    caller: Caller = Depends(require_order_manager),
) -> OrderResponse:
    command = ShipOrder(
        order_id=order_id,
        tracking_number=body.tracking_number if body else None,
        estimated_delivery_date=body.estimated_delivery_date if body else None,
    )
    current_domain.process(command, asynchronous=False)
    return _order_response(_load_order(order_id), caller)


@order_router.post("/{order_id}/deliver", response_model=OrderResponse)
async def deliver_order(
    order_id: str,
    body: DeliverOrderRequest | None = None,
    caller: Caller = Depends(require_order_manager),
) -> OrderResponse:
    command = DeliverOrder(
        order_id=order_id,
        actual_delivery_date=body.actual_delivery_date if body else None,
    )
    current_domain.process(command, asynchronous=False)
    return _order_response(_load_order(order_id), caller)


@order_router.post("/{order_id}/payment-callback", response_model=OrderResponse)
async def payment_callback(order_id: str, body: PaymentCallbackRequest) -> OrderResponse:
    command = ProcessPaymentCallback(
        order_id=order_id,
        status=body.status,
        transaction_id=body.transaction_id,
    )
    current_domain.process(command, asynchronous=False)
    return _order_response(_load_order(order_id))


# ---------------------------------------------------------------------------
# Maintenance Router (scheduler triggers)
# ---------------------------------------------------------------------------
maintenance_router = APIRouter(prefix="/maintenance", tags=["maintenance"])


@maintenance_router.post("/carts/cleanup", response_model=CartCleanupResponse)
async def cleanup_carts(
    retention_days: int | None = Query(default=None, alias="retentionDays", ge=0),
    _: Caller = Depends(require_admin),
) -> CartCleanupResponse:
    result = current_domain.process(CleanupExpiredCarts(retention_days=retention_days), asynchronous=False)
    return CartCleanupResponse(**result)


@maintenance_router.post("/orders/auto-cancel", response_model=AutoCancelResponse)
async def auto_cancel_orders(
    timeout_hours: int | None = Query(default=None, alias="timeoutHours", ge=1),
    _: Caller = Depends(require_admin),
) -> AutoCancelResponse:
    count = current_domain.process(ProcessAutomaticStatusUpdates(timeout_hours=timeout_hours), asynchronous=False)
    return AutoCancelResponse(cancelled_count=count)


@maintenance_router.post("/orders/reconcile", response_model=ReconcileResponse)
async def reconcile_orders(_: Caller = Depends(require_admin)) -> ReconcileResponse:
    result = current_domain.process(ReconcileOrders(), asynchronous=False)
    return ReconcileResponse(**result)
