"""Error types raised by the ordering context.

Business rule violations extend Protean's ``ValidationError`` and lookups
that find nothing extend ``ObjectNotFoundError``, so the framework's FastAPI
handlers already map them to 400 and 404. ``NotOwned`` and
``DependencyUnavailable`` get dedicated handlers in ``ordering.api.errors``.
"""

from protean.exceptions import ObjectNotFoundError, ValidationError


# ---------------------------------------------------------------------------
# Not found
# ---------------------------------------------------------------------------
class CartNotFound(ObjectNotFoundError):
    pass


class CartItemNotFound(ObjectNotFoundError):
    pass


class ItemNotFound(ObjectNotFoundError):
    """The inventory service does not know the requested item."""


class OrderNotFound(ObjectNotFoundError):
    pass


# ---------------------------------------------------------------------------
# Business rule violations
# ---------------------------------------------------------------------------
class NotOwned(ValidationError):
    """The caller is neither the owner of the resource nor an admin."""


class CartFull(ValidationError):
    pass


class CartEmpty(ValidationError):
    pass


class StockUnavailable(ValidationError):
    """Requested quantity exceeds what the inventory service can supply."""

    def __init__(self, item_id, requested, available=None):
        self.item_id = item_id
        self.requested = requested
        self.available = available
        if available is None:
            message = f"Insufficient stock for item {item_id}"
        else:
            message = f"Insufficient stock for item {item_id}: requested {requested}, available {available}"
        super().__init__({"quantity": [message]})


class InvalidStateTransition(ValidationError):
    """An order operation was attempted from a status that does not allow it."""

    def __init__(self, current_status, target_status=None, message=None):
        self.current_status = current_status
        self.target_status = target_status
        if message is None:
            message = f"Cannot transition from {current_status} to {target_status}"
        super().__init__({"status": [message]})


# ---------------------------------------------------------------------------
# Collaborator failures
# ---------------------------------------------------------------------------
class DependencyUnavailable(Exception):
    """A collaborating service could not be reached or answered with an error."""

    def __init__(self, service, detail=""):
        self.service = service
        self.detail = detail
        super().__init__(f"{service} unavailable: {detail}" if detail else f"{service} unavailable")


class InventoryUnavailable(DependencyUnavailable):
    def __init__(self, detail=""):
        super().__init__("inventory", detail)


class CartServiceUnavailable(DependencyUnavailable):
    def __init__(self, detail=""):
        super().__init__("cart", detail)
