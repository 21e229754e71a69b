import pytest
from protean.integrations.pytest import DomainFixture

from ordering.checkout.cart_client import reset_cart_client
from ordering.inventory import reset_gateway, set_gateway
from ordering.inventory.fake_adapter import FakeInventoryGateway


@pytest.fixture(scope="session")
def ordering_bed():
    from ordering.domain import ordering

    bed = DomainFixture(ordering)
    bed.setup()
    yield bed
    bed.teardown()


@pytest.fixture(autouse=True)
def _ctx(ordering_bed):
    with ordering_bed.domain_context():
        yield

        from protean import current_domain

        for _, provider in current_domain.providers.items():
            provider._data_reset()
        current_domain.event_store.store._data_reset()


@pytest.fixture(autouse=True)
def inventory():
    """In-process item service with a small catalogue, installed as the active gateway."""
    gateway = FakeInventoryGateway()
    gateway.add_item(
        "item-1",
        "Mechanical Keyboard",
        50.0,
        stock=10,
        seller_id="seller-1",
        seller_name="KeyCo",
        category="Electronics",
    )
    gateway.add_item("item-2", "USB-C Cable", 10.0, stock=5, seller_id="seller-2", seller_name="CableHub")
    gateway.add_item("item-3", "Desk Lamp", 25.5, stock=3, seller_id="seller-1", seller_name="KeyCo")
    set_gateway(gateway)
    yield gateway
    reset_gateway()
    reset_cart_client()


@pytest.fixture()
def override_setting(monkeypatch):
    """Override values of the ``[custom]`` settings table for one test."""
    from ordering.domain import ordering

    custom = dict(ordering.config.get("custom") or {})

    def _override(**values):
        custom.update(values)
        monkeypatch.setitem(ordering.config, "custom", custom)

    return _override
