"""Business settings for carts and orders.

Values are read from the ``[custom]`` table of ``domain.toml`` and fall back
to the defaults below when a key is absent.
"""

from ordering.domain import ordering

DEFAULTS = {
    "cart_expiration_days": 7,
    "cart_max_items": 50,
    "cart_retention_days": 30,
    "cart_validation_on_error": "keep",
    "order_pending_timeout_hours": 24,
    "order_return_window_days": 30,
    "order_estimated_delivery_days": 7,
    "inventory_service_url": "",
    "inventory_timeout_seconds": 5.0,
}


def setting(name: str):
    """Return the configured value for ``name``."""
    custom = ordering.config.get("custom") or {}
    return custom.get(name, DEFAULTS[name])
