"""
Integration tests for database operations.
"""
import json
import re
from concurrent.futures import ThreadPoolExecutor
from decimal import Decimal

import pytest

from orders.errors import InvalidTransition, OrderNotFound
from orders.pricing import apply_pricing


@pytest.mark.integration
class TestOrderDatabase:
    """Integration tests for OrderDatabase class."""

    def test_create_assigns_identity(self, test_db, sample_order):
        created = test_db.create_order(apply_pricing(sample_order))
        assert len(created.id) == 32
        assert re.fullmatch(r"ORD-\d{8}-0001", created.order_number)
        assert created.created_at == created.updated_at

        fetched = test_db.get_order(created.id)
        assert fetched.model_dump() == created.model_dump()
        assert fetched.total_amount == Decimal("427.50")

    def test_order_numbers_increase(self, test_db, sample_order):
        first = test_db.create_order(sample_order)
        second = test_db.create_order(sample_order)
        assert first.order_number.endswith("-0001")
        assert second.order_number.endswith("-0002")
        assert first.id != second.id

    def test_concurrent_creates_get_distinct_numbers(self, test_db, sample_order):
        with ThreadPoolExecutor(max_workers=8) as pool:
            created = list(pool.map(lambda _: test_db.create_order(sample_order), range(8)))
        suffixes = sorted(o.order_number[-4:] for o in created)
        assert suffixes == [f"{n:04d}" for n in range(1, 9)]
        assert len(test_db.list_orders()) == 8

    def test_get_by_order_number(self, test_db, sample_order):
        created = test_db.create_order(sample_order)
        assert test_db.get_order(created.order_number).id == created.id

    def test_missing_order(self, test_db):
        with pytest.raises(OrderNotFound):
            test_db.get_order("does-not-exist")

    def test_update_merges_patch(self, test_db, sample_order):
        created = test_db.create_order(apply_pricing(sample_order))
        updated = test_db.update_order(created.id, {
            "paid_amount": Decimal("100"),
            "payment_status": "partial",
            "order_number": "HACKED",
        })
        assert updated.paid_amount == Decimal("100")
        assert updated.payment_status == "partial"
        assert updated.order_number == created.order_number
        assert test_db.get_order(created.id).paid_amount == Decimal("100")

    def test_transition_commits_target_status(self, test_db, sample_order):
        created = test_db.create_order(sample_order)
        rejected = test_db.transition_order(created.id, "reject", "  No stock ")
        assert rejected.status == "rejected"
        assert rejected.status_notes == "No stock"
        assert test_db.get_order(created.id).status == "rejected"

    def test_transition_unknown_action(self, test_db, sample_order):
        created = test_db.create_order(sample_order)
        with pytest.raises(InvalidTransition):
            test_db.transition_order(created.id, "fly")

    def test_audit_log_records_every_write(self, test_db, sample_order):
        created = test_db.create_order(sample_order, actor="sales")
        test_db.update_order(created.id, {"notes": "Call before delivery"})
        test_db.transition_order(created.id, "approve", actor="manager")

        entries = test_db.get_audit_log(created.id)
        assert [e["action"] for e in entries] == ["created", "updated", "status_changed"]
        assert [e["actor"] for e in entries] == ["sales", "system", "manager"]
        detail = json.loads(entries[2]["detail"])
        assert detail == {"action": "approve", "from": "pending", "to": "approved", "notes": None}

    def test_list_orders_filters(self, test_db, sample_order):
        a = test_db.create_order(sample_order.model_copy(update={"customer": "shree-traders"}))
        test_db.create_order(sample_order.model_copy(update={"customer": "gupta-stores"}))
        test_db.transition_order(a.id, "approve")

        assert len(test_db.list_orders()) == 2
        approved = test_db.list_orders(status="approved")
        assert [r["id"] for r in approved] == [a.id]
        assert [r["customer"] for r in test_db.list_orders(search="gupta")] == ["gupta-stores"]
        assert test_db.list_orders(payment_status="paid") == []
        assert "data" not in approved[0]

    def test_list_orders_rejects_unknown_status(self, test_db):
        with pytest.raises(ValueError):
            test_db.list_orders(status="lost")

    def test_stats(self, test_db, sample_order):
        priced = apply_pricing(sample_order)
        keep = test_db.create_order(priced)
        drop = test_db.create_order(priced)
        test_db.update_order(keep.id, {"paid_amount": Decimal("27.50")})
        test_db.transition_order(drop.id, "cancel")

        stats = test_db.get_stats()
        assert stats["total_orders"] == 2
        assert stats["pending"] == 1
        assert stats["cancelled"] == 1
        assert stats["completed"] == 0
        assert stats["order_value"] == pytest.approx(427.50)
        assert stats["collected"] == pytest.approx(27.50)
