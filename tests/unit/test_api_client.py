"""
Unit tests for the REST API client (HTTP layer mocked).
"""
import io
import json
import urllib.error
import urllib.request
from decimal import Decimal

import pytest

from orders.api_client import OrderApiClient
from orders.errors import ApiError, OrderNotFound


class _FakeResponse:
    def __init__(self, payload: dict, status: int = 200):
        self._body = json.dumps(payload).encode("utf-8")
        self._status = status

    def read(self):
        return self._body

    def getcode(self):
        return self._status

    def __enter__(self):
        return self

    def __exit__(self, *exc):
        return False


API_ORDER = {
    "_id": "66f0c0ffee",
    "orderNumber": "ORD-20260301-0001",
    "customer": {"_id": "cust-001", "businessName": "Shree Traders"},
    "items": [{"productName": "Chakki Atta", "quantity": 10, "unit": "KG",
               "ratePerUnit": 25, "totalAmount": 250, "packaging": "Loose"}],
    "subtotal": 250, "totalAmount": 250, "paidAmount": 0,
    "paymentStatus": "pending", "paymentTerms": "Cash", "status": "pending",
}


@pytest.fixture
def http(monkeypatch):
    """Record outgoing requests and answer with queued responses."""
    calls = []
    responses = []

    def fake_urlopen(req, timeout=None):
        body = json.loads(req.data.decode("utf-8")) if req.data else None
        calls.append({"method": req.get_method(), "url": req.full_url, "body": body,
                      "headers": dict(req.header_items()), "timeout": timeout})
        reply = responses.pop(0)
        if isinstance(reply, Exception):
            raise reply
        return reply

    monkeypatch.setattr(urllib.request, "urlopen", fake_urlopen)
    return calls, responses


def _http_error(code: int, message: str) -> urllib.error.HTTPError:
    body = io.BytesIO(json.dumps({"success": False, "message": message}).encode())
    return urllib.error.HTTPError("http://api.test", code, message, {}, body)


@pytest.mark.unit
class TestOrderApiClient:

    @pytest.fixture
    def client(self):
        return OrderApiClient("http://api.test/", token="secret", timeout=5)

    def test_get_order(self, client, http):
        calls, responses = http
        responses.append(_FakeResponse({"success": True, "data": {"order": API_ORDER}}))
        order = client.get_order("66f0c0ffee")
        assert order.id == "66f0c0ffee"
        assert order.customer == "cust-001"
        assert order.items[0].rate_per_unit == Decimal("25")
        assert calls[0]["method"] == "GET"
        assert calls[0]["url"] == "http://api.test/api/orders/66f0c0ffee"
        assert calls[0]["headers"]["Authorization"] == "Bearer secret"
        assert calls[0]["timeout"] == 5

    def test_create_strips_server_owned_fields(self, client, http, sample_order):
        calls, responses = http
        responses.append(_FakeResponse({"success": True, "data": {"order": API_ORDER}}))
        draft = sample_order.model_copy(update={"id": "local", "order_number": "X", "created_at": "now"})
        client.create_order(draft)
        body = calls[0]["body"]
        assert calls[0]["method"] == "POST"
        assert "_id" not in body and "orderNumber" not in body and "createdAt" not in body
        assert body["paymentTerms"] == "Cash"
        assert body["items"][0]["ratePerUnit"] == 25.0
        assert body["discountPercentage"] == 10.0

    def test_update_sends_camel_case_patch(self, client, http, sample_items):
        calls, responses = http
        responses.append(_FakeResponse({"success": True, "data": {"order": API_ORDER}}))
        client.update_order("66f0c0ffee", {"paid_amount": Decimal("100.50"), "items": sample_items[:1]})
        assert calls[0]["method"] == "PUT"
        assert calls[0]["body"]["paidAmount"] == 100.5
        assert calls[0]["body"]["items"][0]["productName"] == "Chakki Atta"

    def test_transition_patches_status(self, client, http):
        calls, responses = http
        responses.append(_FakeResponse({"success": True, "data": {"order": {**API_ORDER, "status": "rejected"}}}))
        order = client.transition_order("66f0c0ffee", "reject", "  Out of stock ")
        assert order.status == "rejected"
        assert calls[0]["method"] == "PATCH"
        assert calls[0]["url"].endswith("/api/orders/66f0c0ffee/status")
        assert calls[0]["body"] == {"status": "rejected", "notes": "Out of stock"}

    def test_list_orders_passes_filters(self, client, http):
        calls, responses = http
        responses.append(_FakeResponse({"success": True, "data": {"orders": [API_ORDER]}}))
        orders = client.list_orders(status="pending", search="Shree")
        assert len(orders) == 1
        assert "status=pending" in calls[0]["url"]
        assert "search=Shree" in calls[0]["url"]
        assert "paymentStatus" not in calls[0]["url"]

    def test_quick_products(self, client, http):
        _, responses = http
        responses.append(_FakeResponse({"success": True, "data": {"products": [
            {"key": "atta-50", "name": "Chakki Atta", "pricePerKg": 32, "bagSizeKg": 50},
        ]}}))
        products = client.get_quick_products()
        assert products[0].bag_size_kg == Decimal("50")

    def test_404_is_order_not_found(self, client, http):
        _, responses = http
        responses.append(_http_error(404, "Order not found"))
        with pytest.raises(OrderNotFound):
            client.get_order("missing")

    def test_server_error_message_surfaces(self, client, http):
        _, responses = http
        responses.append(_http_error(400, "Invalid status transition"))
        with pytest.raises(ApiError, match="Invalid status transition") as exc:
            client.transition_order("66f0c0ffee", "approve")
        assert exc.value.status_code == 400

    def test_unsuccessful_envelope(self, client, http):
        _, responses = http
        responses.append(_FakeResponse({"success": False, "message": "Nope"}))
        with pytest.raises(ApiError, match="Nope"):
            client.get_stats()

    def test_unreachable(self, client, http):
        _, responses = http
        responses.append(urllib.error.URLError("connection refused"))
        with pytest.raises(ApiError, match="unreachable"):
            client.get_stats()
