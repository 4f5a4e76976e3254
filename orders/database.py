"""
SQLite persistence for orders (output/orders.db).

Local implementation of the order persistence contract used by
OrderService and the CLI:

  get_order(id)                        -> Order
  create_order(order)                  -> Order   (assigns id, number, timestamps)
  update_order(id, patch)              -> Order
  transition_order(id, action, notes)  -> Order

The full order is stored as JSON; status, payment status and amounts are
denormalised into columns for filtering and stats. Every write appends an
audit_log row. This layer commits what it is given: permission, transition
and pricing rules are applied by the caller before it gets here.
"""
import json
import logging
import sqlite3
import uuid
from contextlib import contextmanager
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Optional

from models.order import Order
from .errors import OrderNotFound
from .status_machine import ALL_STATUSES, get_transition

logger = logging.getLogger(__name__)

_SCHEMA = """
CREATE TABLE IF NOT EXISTS orders (
    id                TEXT PRIMARY KEY,
    order_number      TEXT NOT NULL UNIQUE,
    customer          TEXT,
    status            TEXT NOT NULL DEFAULT 'pending',
    payment_status    TEXT NOT NULL DEFAULT 'pending',
    priority          TEXT,
    godown            TEXT,

    -- Amounts (denormalised for fast filtering / stats)
    total_amount      REAL NOT NULL DEFAULT 0,
    paid_amount       REAL NOT NULL DEFAULT 0,
    item_count        INTEGER NOT NULL DEFAULT 0,

    -- Full order payload (Order serialised as JSON)
    data              TEXT NOT NULL,

    -- Timestamps (ISO-8601 UTC strings)
    created_at        TEXT NOT NULL,
    updated_at        TEXT NOT NULL
);

CREATE INDEX IF NOT EXISTS idx_orders_status     ON orders (status);
CREATE INDEX IF NOT EXISTS idx_orders_created_at ON orders (created_at DESC);
CREATE INDEX IF NOT EXISTS idx_orders_customer   ON orders (customer);

CREATE TABLE IF NOT EXISTS audit_log (
    id          INTEGER PRIMARY KEY AUTOINCREMENT,
    order_id    TEXT    NOT NULL,
    timestamp   TEXT    NOT NULL,   -- ISO-8601 UTC
    action      TEXT    NOT NULL,   -- created | updated | status_changed
    actor       TEXT    NOT NULL DEFAULT 'system',
    detail      TEXT                -- optional JSON blob with action-specific context
);

CREATE INDEX IF NOT EXISTS idx_audit_order     ON audit_log (order_id);
CREATE INDEX IF NOT EXISTS idx_audit_timestamp ON audit_log (timestamp DESC);
"""

# Fields the store owns; a patch can never overwrite them.
_PROTECTED_FIELDS = {"id", "order_number", "created_at", "updated_at"}


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


class OrderDatabase:
    """Thin wrapper around an SQLite database file holding orders."""

    def __init__(self, db_path: Path, actor: str = "system") -> None:
        self.db_path = db_path
        self.actor = actor          # Default audit actor for writes
        db_path.parent.mkdir(parents=True, exist_ok=True)
        self._init_schema()

    # ------------------------------------------------------------------
    # Connection management
    # ------------------------------------------------------------------

    @contextmanager
    def _conn(self):
        conn = sqlite3.connect(str(self.db_path), timeout=30)
        conn.row_factory = sqlite3.Row
        conn.execute("PRAGMA journal_mode=WAL")
        conn.execute("PRAGMA synchronous=NORMAL")
        try:
            yield conn
            conn.commit()
        except Exception:
            conn.rollback()
            raise
        finally:
            conn.close()

    def _init_schema(self) -> None:
        with self._conn() as conn:
            conn.executescript(_SCHEMA)
        logger.debug("Database schema ready: %s", self.db_path)

    # ------------------------------------------------------------------
    # Write operations
    # ------------------------------------------------------------------

    def _next_order_number(self, conn: sqlite3.Connection, day: str) -> str:
        prefix = f"ORD-{day}-"
        row = conn.execute(
            "SELECT COUNT(*) FROM orders WHERE order_number LIKE ?", (prefix + "%",)
        ).fetchone()
        return f"{prefix}{row[0] + 1:04d}"

    @staticmethod
    def _columns(order: Order) -> dict[str, Any]:
        return {
            "id":             order.id,
            "order_number":   order.order_number,
            "customer":       order.customer,
            "status":         order.status,
            "payment_status": order.payment_status,
            "priority":       order.priority,
            "godown":         order.godown,
            "total_amount":   float(order.total_amount),
            "paid_amount":    float(order.paid_amount),
            "item_count":     len(order.items),
            "data":           order.model_dump_json(),
            "created_at":     order.created_at,
            "updated_at":     order.updated_at,
        }

    def create_order(self, order: Order, actor: Optional[str] = None) -> Order:
        """
        Insert a new order. The store assigns id, order_number and both
        timestamps; any values already on *order* for those are replaced.
        """
        now = _now()
        with self._conn() as conn:
            # Hold the write lock from numbering through the insert.
            conn.execute("BEGIN IMMEDIATE")
            stored = order.model_copy(update={
                "id": uuid.uuid4().hex,
                "order_number": self._next_order_number(conn, now[:10].replace("-", "")),
                "created_at": now,
                "updated_at": now,
            })
            conn.execute(
                """
                INSERT INTO orders (
                    id, order_number, customer, status, payment_status,
                    priority, godown, total_amount, paid_amount, item_count,
                    data, created_at, updated_at
                ) VALUES (
                    :id, :order_number, :customer, :status, :payment_status,
                    :priority, :godown, :total_amount, :paid_amount, :item_count,
                    :data, :created_at, :updated_at
                )
                """,
                self._columns(stored),
            )

        logger.info("DB created order %s (%s)  total=%s", stored.order_number, stored.id, stored.total_amount)
        self.log_audit(stored.id, "created", actor=actor or self.actor, detail={
            "order_number": stored.order_number,
            "total_amount": str(stored.total_amount),
        })
        return stored

    def _save(self, order: Order) -> None:
        with self._conn() as conn:
            conn.execute(
                """
                UPDATE orders SET
                    customer       = :customer,
                    status         = :status,
                    payment_status = :payment_status,
                    priority       = :priority,
                    godown         = :godown,
                    total_amount   = :total_amount,
                    paid_amount    = :paid_amount,
                    item_count     = :item_count,
                    data           = :data,
                    updated_at     = :updated_at
                WHERE id = :id
                """,
                self._columns(order),
            )

    def update_order(self, order_id: str, patch: dict, actor: Optional[str] = None) -> Order:
        """
        Merge *patch* (snake_case Order fields) into the stored order and
        save it. The merged order is re-validated by the model.
        """
        current = self.get_order(order_id)
        clean = {k: v for k, v in patch.items() if k not in _PROTECTED_FIELDS}
        merged = Order.model_validate({**current.model_dump(), **clean, "updated_at": _now()})
        self._save(merged)
        logger.info("DB updated order %s  fields=%s", order_id, sorted(clean))
        self.log_audit(merged.id, "updated", actor=actor or self.actor, detail={"fields": sorted(clean)})
        return merged

    def transition_order(
        self,
        order_id: str,
        action: str,
        notes: Optional[str] = None,
        actor: Optional[str] = None,
    ) -> Order:
        """Commit the result status of *action* for the order."""
        current = self.get_order(order_id)
        target = get_transition(action, current.status).target
        updated = current.model_copy(update={
            "status": target,
            "status_notes": notes.strip() if notes and notes.strip() else None,
            "updated_at": _now(),
        })
        self._save(updated)
        logger.info("DB order %s status %s → %s", order_id, current.status, target)
        self.log_audit(updated.id, "status_changed", actor=actor or self.actor, detail={
            "action": action,
            "from": current.status,
            "to": target,
            "notes": updated.status_notes,
        })
        return updated

    def log_audit(
        self,
        order_id: str,
        action: str,
        actor: str = "system",
        detail: Optional[dict] = None,
    ) -> None:
        """Append one entry to the audit log."""
        with self._conn() as conn:
            conn.execute(
                """INSERT INTO audit_log (order_id, timestamp, action, actor, detail)
                   VALUES (?, ?, ?, ?, ?)""",
                (
                    order_id,
                    _now(),
                    action,
                    actor,
                    json.dumps(detail) if detail is not None else None,
                ),
            )

    # ------------------------------------------------------------------
    # Read operations
    # ------------------------------------------------------------------

    def get_order(self, order_id: str) -> Order:
        with self._conn() as conn:
            row = conn.execute(
                "SELECT data FROM orders WHERE id = ? OR order_number = ?",
                (order_id, order_id),
            ).fetchone()
        if row is None:
            raise OrderNotFound(order_id)
        return Order.model_validate_json(row["data"])

    def list_orders(
        self,
        status: Optional[str] = None,
        payment_status: Optional[str] = None,
        search: Optional[str] = None,
        limit: int = 500,
        offset: int = 0,
    ) -> list[dict]:
        """
        Return order summaries (no JSON payload) ordered newest-first.

        Args:
            status:          Filter by lifecycle status, or None for all.
            payment_status:  Filter by payment status, or None for all.
            search:          Case-insensitive substring match on order number
                             or customer.
            limit:           Max rows to return.
            offset:          Pagination offset.
        """
        if status and status not in ALL_STATUSES:
            raise ValueError(f"Invalid status {status!r}. Must be one of {ALL_STATUSES}")

        clauses: list[str] = []
        params: list = []

        if status:
            clauses.append("status = ?")
            params.append(status)
        if payment_status:
            clauses.append("payment_status = ?")
            params.append(payment_status)
        if search:
            clauses.append("(order_number LIKE ? OR customer LIKE ?)")
            like = f"%{search}%"
            params.extend([like, like])

        where = f"WHERE {' AND '.join(clauses)}" if clauses else ""
        params.extend([limit, offset])

        with self._conn() as conn:
            rows = conn.execute(
                f"""
                SELECT
                    id, order_number, customer, status, payment_status,
                    priority, godown, total_amount, paid_amount, item_count,
                    created_at, updated_at
                FROM orders
                {where}
                ORDER BY created_at DESC, order_number DESC
                LIMIT ? OFFSET ?
                """,
                params,
            ).fetchall()

        return [dict(r) for r in rows]

    def get_stats(self) -> dict:
        """Return counts per status plus revenue figures."""
        with self._conn() as conn:
            rows = conn.execute(
                "SELECT status, COUNT(*) AS n FROM orders GROUP BY status"
            ).fetchall()
            totals = conn.execute(
                """
                SELECT
                    COUNT(*)                         AS total_orders,
                    COALESCE(SUM(CASE WHEN status NOT IN ('cancelled', 'rejected')
                                      THEN total_amount ELSE 0 END), 0) AS order_value,
                    COALESCE(SUM(paid_amount), 0)    AS collected,
                    MAX(created_at)                  AS last_created
                FROM orders
                """
            ).fetchone()

        stats = {s: 0 for s in ALL_STATUSES}
        stats.update({r["status"]: r["n"] for r in rows})
        stats.update(dict(totals))
        return stats

    def get_audit_log(self, order_id: str) -> list[dict]:
        """Return all audit entries for one order, oldest first."""
        with self._conn() as conn:
            rows = conn.execute(
                """SELECT id, timestamp, action, actor, detail
                   FROM audit_log WHERE order_id = ?
                   ORDER BY timestamp ASC, id ASC""",
                (order_id,),
            ).fetchall()
        return [dict(r) for r in rows]
