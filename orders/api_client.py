"""
HTTP client for the remote order REST API.

Remote implementation of the order persistence contract. The server is the
single source of truth for ids and timestamps and re-checks every rule;
this client only moves JSON.

Responses use the envelope {"success": bool, "data": {...}, "message": str}.
"""
import json
import logging
import urllib.error
import urllib.parse
import urllib.request
from decimal import Decimal
from typing import Any, Dict, Optional

from models.catalog import QuickProduct
from models.order import Order
from .errors import ApiError, OrderNotFound
from .status_machine import get_transition

logger = logging.getLogger(__name__)

ORDERS_PATH         = "/api/orders"
QUICK_PRODUCTS_PATH = "/api/orders/quick/products"
ORDER_STATS_PATH    = "/api/orders/stats/summary"


def _order_path(order_id: str) -> str:
    return f"{ORDERS_PATH}/{urllib.parse.quote(order_id, safe='')}"


def _json_default(value: Any) -> Any:
    # The API speaks plain JSON numbers for money
    if isinstance(value, Decimal):
        return float(value)
    raise TypeError(f"Object of type {type(value).__name__} is not JSON serializable")


def _to_wire_patch(patch: Dict[str, Any]) -> Dict[str, Any]:
    """snake_case Order fields → camelCase keys, via the model's aliases."""
    wire: Dict[str, Any] = {}
    for name, value in patch.items():
        field = Order.model_fields.get(name)
        key = field.alias if field and field.alias else name
        if isinstance(value, list):
            value = [v.model_dump(by_alias=True, exclude_none=True) if hasattr(v, "model_dump") else v
                     for v in value]
        elif hasattr(value, "model_dump"):
            value = value.model_dump(by_alias=True, exclude_none=True)
        wire[key] = value
    return wire


class OrderApiClient:
    """
    Talks to the order service over HTTP.

    Usage:
        client = OrderApiClient("https://api.example.com", token="...")
        order = client.get_order("66f0c0...")
    """

    def __init__(self, base_url: str, token: Optional[str] = None, timeout: float = 30) -> None:
        self.base_url = base_url.rstrip("/")
        self.token = token
        self.timeout = timeout

    # ------------------------------------------------------------------
    # Transport
    # ------------------------------------------------------------------

    def _request(self, method: str, path: str, payload: Optional[dict] = None,
                 params: Optional[dict] = None) -> Any:
        url = self.base_url + path
        if params:
            query = {k: v for k, v in params.items() if v not in (None, "")}
            if query:
                url += "?" + urllib.parse.urlencode(query)

        data = json.dumps(payload, default=_json_default).encode("utf-8") if payload is not None else None
        req = urllib.request.Request(url, data=data, method=method)
        req.add_header("Content-Type", "application/json; charset=utf-8")
        req.add_header("Accept", "application/json")
        if self.token:
            req.add_header("Authorization", f"Bearer {self.token}")

        try:
            with urllib.request.urlopen(req, timeout=self.timeout) as response:
                body = response.read().decode("utf-8", errors="replace")
                status_code = response.getcode()
        except urllib.error.HTTPError as e:
            body = e.read().decode("utf-8", errors="replace") if e.fp else ""
            message = _envelope_message(body) or f"HTTP {e.code}"
            logger.error("%s %s failed: HTTP %d - %s", method, path, e.code, message)
            raise ApiError(message, status_code=e.code) from e
        except urllib.error.URLError as e:
            logger.error("%s %s unreachable: %s", method, path, e.reason)
            raise ApiError(f"Order API unreachable: {e.reason}") from e

        logger.debug("%s %s → HTTP %d", method, path, status_code)
        try:
            envelope = json.loads(body) if body else {}
        except json.JSONDecodeError as e:
            raise ApiError(f"Invalid JSON from order API: {body[:200]}", status_code) from e

        if not envelope.get("success", False):
            raise ApiError(envelope.get("message") or "Order API request failed", status_code)
        return envelope.get("data")

    def _order_request(self, method: str, path: str, payload: Optional[dict], order_id: str = "") -> Order:
        try:
            data = self._request(method, path, payload)
        except ApiError as e:
            if e.status_code == 404 and order_id:
                raise OrderNotFound(order_id) from e
            raise
        order = (data or {}).get("order")
        if order is None:
            raise ApiError("Order API response did not include an order")
        return Order.model_validate(order)

    # ------------------------------------------------------------------
    # Persistence contract
    # ------------------------------------------------------------------

    def get_order(self, order_id: str) -> Order:
        return self._order_request("GET", _order_path(order_id), None, order_id)

    def create_order(self, order: Order) -> Order:
        payload = order.model_dump(by_alias=True, exclude_none=True)
        for owned in ("_id", "orderNumber", "createdAt", "updatedAt"):
            payload.pop(owned, None)
        return self._order_request("POST", ORDERS_PATH, payload)

    def update_order(self, order_id: str, patch: Dict[str, Any]) -> Order:
        return self._order_request("PUT", _order_path(order_id), _to_wire_patch(patch), order_id)

    def transition_order(self, order_id: str, action: str, notes: Optional[str] = None) -> Order:
        target = get_transition(action).target
        payload = {"status": target}
        if notes and notes.strip():
            payload["notes"] = notes.strip()
        return self._order_request("PATCH", f"{_order_path(order_id)}/status", payload, order_id)

    # ------------------------------------------------------------------
    # Listing / catalog
    # ------------------------------------------------------------------

    def list_orders(
        self,
        status: Optional[str] = None,
        payment_status: Optional[str] = None,
        search: Optional[str] = None,
        limit: int = 10,
        page: int = 1,
    ) -> list[Order]:
        data = self._request("GET", ORDERS_PATH, params={
            "status": status,
            "paymentStatus": payment_status,
            "search": search,
            "limit": limit,
            "page": page,
        })
        return [Order.model_validate(o) for o in (data or {}).get("orders", [])]

    def get_quick_products(self) -> list[QuickProduct]:
        data = self._request("GET", QUICK_PRODUCTS_PATH)
        return [QuickProduct.model_validate(p) for p in (data or {}).get("products", [])]

    def get_stats(self) -> dict:
        return self._request("GET", ORDER_STATS_PATH) or {}


def _envelope_message(body: str) -> Optional[str]:
    try:
        return json.loads(body).get("message")
    except (json.JSONDecodeError, AttributeError):
        return None
