"""HTTP adapter for the item service.

Talks to the item service's REST API with a synchronous httpx client and an
explicit timeout. Calls are never retried here; a transport error, a timeout
or any error status a call does not expect becomes ``InventoryUnavailable``.

    GET  /api/items/{id}               -> item JSON, 404 when unknown
    GET  /api/items/{id}/availability  -> {"available": bool, "availableQuantity": int}
    POST /api/items/reserve            -> 200 reserved, 409 insufficient stock
    POST /api/items/release            -> 200
"""

import httpx
import structlog

from ordering.errors import InventoryUnavailable
from ordering.inventory.port import CatalogueItem, InventoryGateway

logger = structlog.get_logger(__name__)


class HttpInventoryGateway(InventoryGateway):
    def __init__(
        self,
        base_url: str,
        timeout: float = 5.0,
        transport: httpx.BaseTransport | None = None,
    ) -> None:
        self._client = httpx.Client(base_url=base_url.rstrip("/"), timeout=timeout, transport=transport)

    def close(self) -> None:
        self._client.close()

    def _send(self, method: str, path: str, expected: tuple[int, ...] = (), **kwargs) -> httpx.Response:
        try:
            response = self._client.request(method, path, **kwargs)
        except httpx.HTTPError as exc:
            logger.warning("Item service request failed", method=method, path=path, error=str(exc))
            raise InventoryUnavailable(str(exc)) from exc

        if response.is_error and response.status_code not in expected:
            logger.warning(
                "Item service returned an error",
                method=method,
                path=path,
                status_code=response.status_code,
            )
            raise InventoryUnavailable(f"{method} {path} returned {response.status_code}")
        return response

    def get_item(self, item_id: str) -> CatalogueItem | None:
        response = self._send("GET", f"/api/items/{item_id}", expected=(404,))
        if response.status_code == 404:
            return None
        data = response.json()
        return CatalogueItem(
            item_id=str(data["id"]),
            name=data["name"],
            price=float(data["price"]),
            seller_id=data.get("sellerId"),
            seller_name=data.get("sellerName"),
            description=data.get("description"),
            image_url=data.get("imageUrl"),
            category=data.get("category"),
            status=data.get("status") or "ACTIVE",
        )

    def check_availability(self, item_id: str) -> int:
        response = self._send("GET", f"/api/items/{item_id}/availability", expected=(404,))
        if response.status_code == 404:
            return 0
        data = response.json()
        if not data.get("available", False):
            return 0
        return int(data.get("availableQuantity") or 0)

    def reserve(self, item_id: str, quantity: int) -> bool:
        response = self._send(
            "POST",
            "/api/items/reserve",
            expected=(404, 409),
            json={"itemId": item_id, "quantity": quantity},
        )
        if response.status_code in (404, 409):
            return False
        return True

    def release(self, item_id: str, quantity: int) -> None:
        self._send("POST", "/api/items/release", json={"itemId": item_id, "quantity": quantity})
