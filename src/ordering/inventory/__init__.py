"""Inventory gateway factory.

Provides get_gateway() / set_gateway() to swap implementations:
- FakeInventoryGateway for development and testing
- HttpInventoryGateway when ``inventory_service_url`` is configured
"""

from ordering.config import setting
from ordering.inventory.fake_adapter import FakeInventoryGateway
from ordering.inventory.http_adapter import HttpInventoryGateway
from ordering.inventory.port import InventoryGateway

_current_gateway: InventoryGateway | None = None


def get_gateway() -> InventoryGateway:
    """Return the active inventory gateway, building the default on first use."""
    global _current_gateway
    if _current_gateway is None:
        base_url = setting("inventory_service_url")
        if base_url:
            _current_gateway = HttpInventoryGateway(base_url, timeout=float(setting("inventory_timeout_seconds")))
        else:
            _current_gateway = FakeInventoryGateway()
    return _current_gateway


def set_gateway(gateway: InventoryGateway) -> None:
    """Override the active inventory gateway (useful for tests)."""
    global _current_gateway
    _current_gateway = gateway


def reset_gateway() -> None:
    global _current_gateway
    _current_gateway = None
