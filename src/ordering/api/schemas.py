"""Pydantic request/response schemas for the checkout API.

These are external contracts (anti-corruption layer), separate from the
internal Protean commands. Field names are camelCase on the wire.
"""

from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class ApiModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


# ---------------------------------------------------------------------------
# Shared sub-models
# ---------------------------------------------------------------------------
class AddressSchema(ApiModel):
    street: str
    street_line2: str | None = None
    city: str
    state: str | None = None
    postal_code: str
    country: str


# ---------------------------------------------------------------------------
# Cart Request Schemas
# ---------------------------------------------------------------------------
class AddToCartRequest(ApiModel):
    item_id: str
    quantity: int = Field(ge=1, default=1)
    product_attributes: str | None = None

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        json_schema_extra={
            "examples": [
                {
                    "itemId": "item-001",
                    "quantity": 2,
                    "productAttributes": "size=M;color=blue",
                }
            ]
        },
    )


class UpdateCartItemRequest(ApiModel):
    quantity: int = Field(ge=1)


# ---------------------------------------------------------------------------
# Cart Response Schemas
# ---------------------------------------------------------------------------
class CartItemResponse(ApiModel):
    id: str
    item_id: str
    item_name: str | None = None
    item_description: str | None = None
    item_image_url: str | None = None
    category: str | None = None
    seller_id: str | None = None
    seller_name: str | None = None
    price: float
    quantity: int
    subtotal: float
    product_attributes: str | None = None
    added_at: datetime | None = None


class CartResponse(ApiModel):
    id: str
    user_id: str | None = None
    session_id: str | None = None
    status: str
    items: list[CartItemResponse]
    total_amount: float
    total_items: int
    expires_at: datetime | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None


class CartSummaryResponse(ApiModel):
    total_items: int
    total_amount: float
    item_count: int
    is_empty: bool


class CartValidationResponse(ApiModel):
    changes: int
    cart: CartResponse


# ---------------------------------------------------------------------------
# Order Request Schemas
# ---------------------------------------------------------------------------
class CreateOrderRequest(ApiModel):
    cart_id: str
    shipping_address: AddressSchema
    billing_address: AddressSchema | None = None
    payment_method: str | None = None
    shipping_cost: float = Field(ge=0, default=0.0)
    tax_amount: float = Field(ge=0, default=0.0)
    discount_amount: float = Field(ge=0, default=0.0)
    notes: str | None = None
    customer_name: str | None = None
    customer_email: str | None = None
    customer_phone: str | None = None

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        json_schema_extra={
            "examples": [
                {
                    "cartId": "cart-001",
                    "shippingAddress": {
                        "street": "123 Main St",
                        "city": "Springfield",
                        "state": "IL",
                        "postalCode": "62704",
                        "country": "US",
                    },
                    "paymentMethod": "CREDIT_CARD",
                    "shippingCost": 5.0,
                }
            ]
        },
    )


class UpdateOrderStatusRequest(ApiModel):
    status: str
    reason: str | None = None
    tracking_number: str | None = None


class ReasonRequest(ApiModel):
    reason: str | None = None


class ShipOrderRequest(ApiModel):
    tracking_number: str | None = None
    estimated_delivery_date: datetime | None = None


class DeliverOrderRequest(ApiModel):
    actual_delivery_date: datetime | None = None


class PaymentCallbackRequest(ApiModel):
    status: str
    transaction_id: str | None = None


# ---------------------------------------------------------------------------
# Order Response Schemas
# ---------------------------------------------------------------------------
class OrderItemResponse(ApiModel):
    id: str
    item_id: str
    item_name: str
    item_description: str | None = None
    price: float
    quantity: int
    subtotal: float
    seller_id: str | None = None
    seller_name: str | None = None
    image_url: str | None = None
    category: str | None = None
    product_attributes: str | None = None


class StatusHistoryResponse(ApiModel):
    sequence: int
    status: str
    reason: str | None = None
    recorded_at: datetime


class OrderResponse(ApiModel):
    id: str
    user_id: str
    customer_name: str | None = None
    customer_email: str | None = None
    customer_phone: str | None = None
    status: str
    payment_status: str
    payment_method: str | None = None
    payment_transaction_id: str | None = None
    items: list[OrderItemResponse]
    status_history: list[StatusHistoryResponse]
    total_amount: float
    shipping_cost: float
    tax_amount: float
    discount_amount: float
    final_amount: float
    shipping_address: AddressSchema | None = None
    billing_address: AddressSchema | None = None
    tracking_number: str | None = None
    estimated_delivery_date: datetime | None = None
    actual_delivery_date: datetime | None = None
    notes: str | None = None
    can_cancel: bool = False
    can_return: bool = False
    created_at: datetime | None = None
    updated_at: datetime | None = None


# ---------------------------------------------------------------------------
# Maintenance Schemas
# ---------------------------------------------------------------------------
class CartCleanupResponse(ApiModel):
    expired: int
    deleted: int


class AutoCancelResponse(ApiModel):
    cancelled_count: int


class ReconcileResponse(ApiModel):
    cart_conversions: int
    stock_releases: int
