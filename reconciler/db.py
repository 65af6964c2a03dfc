"""
Async Postgres: orders (aggregate document + current derived states) and order_state_changes (audit log).
An update cycle runs in a single transaction: lock the order row, run the updater in memory,
write the order back, then append the state changes produced by this cycle.
"""
import logging

import asyncpg

from reconciler.config import settings
from reconciler.metrics import observe_reconcile
from reconciler.models import Order
from reconciler.updater import OrderUpdater

logger = logging.getLogger(__name__)

_pool: asyncpg.Pool | None = None


class OrderNotFoundError(Exception):
    """Raised when no order row matches. Transaction will roll back."""
    def __init__(self, order_number: str):
        self.order_number = order_number
        super().__init__(order_number)


async def get_pool() -> asyncpg.Pool:
    global _pool
    if _pool is None:
        _pool = await asyncpg.create_pool(
            settings.database_url,
            min_size=settings.db_pool_min_size,
            max_size=settings.db_pool_max_size,
            command_timeout=settings.db_command_timeout,
        )
    return _pool


async def close_pool() -> None:
    global _pool
    if _pool is not None:
        await _pool.close()
        _pool = None


async def init_schema(pool: asyncpg.Pool) -> None:
    async with pool.acquire() as conn:
        await conn.execute("""
            CREATE TABLE IF NOT EXISTS orders (
                number VARCHAR(255) PRIMARY KEY,
                lifecycle_state TEXT NOT NULL,
                payment_state TEXT,
                shipment_state TEXT,
                total NUMERIC(12, 2) NOT NULL DEFAULT 0,
                payment_total NUMERIC(12, 2) NOT NULL DEFAULT 0,
                document JSONB NOT NULL,
                created_at TIMESTAMP DEFAULT NOW(),
                updated_at TIMESTAMP DEFAULT NOW()
            );
        """)
        await conn.execute("""
            CREATE INDEX IF NOT EXISTS idx_orders_payment_state
            ON orders(payment_state);
        """)
        await conn.execute("""
            CREATE TABLE IF NOT EXISTS order_state_changes (
                id BIGSERIAL PRIMARY KEY,
                order_number VARCHAR(255) NOT NULL REFERENCES orders(number),
                name TEXT NOT NULL,
                previous_value TEXT,
                next_value TEXT,
                created_at TIMESTAMPTZ NOT NULL DEFAULT NOW()
            );
        """)
        await conn.execute("""
            CREATE INDEX IF NOT EXISTS idx_order_state_changes_order_number
            ON order_state_changes(order_number);
        """)


def _document(order: Order) -> str:
    # state_changes live in their own table; the document only carries the aggregate
    return order.model_dump_json(exclude={"state_changes", "persisted"})


async def insert_order(pool: asyncpg.Pool, order: Order) -> Order:
    """Store a new order. Marks it persisted, so later transitions are audited."""
    async with pool.acquire() as conn:
        await conn.execute(
            """
            INSERT INTO orders (number, lifecycle_state, payment_state, shipment_state, total, payment_total, document, updated_at)
            VALUES ($1, $2, $3, $4, $5, $6, $7::jsonb, NOW());
            """,
            order.number,
            order.lifecycle_state,
            order.payment_state,
            order.shipment_state,
            order.total,
            order.payment_total,
            _document(order),
        )
    order.persisted = True
    return order


async def fetch_state_changes(pool: asyncpg.Pool, order_number: str) -> list[dict]:
    """Audit entries for one order, oldest first."""
    async with pool.acquire() as conn:
        rows = await conn.fetch(
            """
            SELECT name, previous_value, next_value, created_at FROM order_state_changes
            WHERE order_number = $1
            ORDER BY id ASC;
            """,
            order_number,
        )
    return [dict(r) for r in rows]


async def reconcile_order(pool: asyncpg.Pool, order_number: str) -> Order:
    """
    Run one update cycle for a stored order in a single transaction.
    - SELECT ... FOR UPDATE so concurrent cycles for the same order serialize.
    - OrderUpdater.update(): address repair, totals, shipment state, payment state.
    - UPDATE orders, INSERT only the state changes appended by this cycle.
    Raises OrderNotFoundError (rolled back) when the order does not exist.
    """
    async with pool.acquire() as conn:
        async with conn.transaction():
            row = await conn.fetchrow(
                "SELECT document FROM orders WHERE number = $1 FOR UPDATE;",
                order_number,
            )
            if row is None:
                raise OrderNotFoundError(order_number)

            order = Order.model_validate_json(row["document"])
            order.persisted = True
            updater = OrderUpdater(order)
            updater.update()
            new_changes = order.state_changes

            await conn.execute(
                """
                UPDATE orders
                SET lifecycle_state = $1, payment_state = $2, shipment_state = $3,
                    total = $4, payment_total = $5, document = $6::jsonb, updated_at = NOW()
                WHERE number = $7;
                """,
                order.lifecycle_state,
                order.payment_state,
                order.shipment_state,
                order.total,
                order.payment_total,
                _document(order),
                order_number,
            )
            if new_changes:
                await conn.executemany(
                    """
                    INSERT INTO order_state_changes (order_number, name, previous_value, next_value, created_at)
                    VALUES ($1, $2, $3, $4, $5);
                    """,
                    [
                        (order_number, c.name, c.previous_value, c.next_value, c.created_at)
                        for c in new_changes
                    ],
                )
    observe_reconcile(new_changes, updater.address_repaired)
    logger.info("Reconciled order %s (%d state change(s) recorded)", order_number, len(new_changes))
    return order
