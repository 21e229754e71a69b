"""Ordering bounded context: shopping carts, stock reservation and orders.

Carts are mutable CQRS aggregates owned by a user or a guest session. Orders
are created from carts at checkout and move through a guarded status
machine with an append-only history.
"""

import structlog
from protean.domain import Domain

ordering = Domain(name="ordering")

logger = structlog.get_logger(__name__)
