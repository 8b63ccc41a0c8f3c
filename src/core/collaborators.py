"""
Collaborator interfaces the session talks to, and the in-process stand-ins
used by the demo app and the tests.
"""

import asyncio
import logging
import re
from typing import Optional, Protocol, Sequence

from core.errors import ExecutionError, FeedbackError, GenerationError
from models import DatabaseType, Draft, ExecutionResult, Preview, Role, TableData, Turn

logger = logging.getLogger(__name__)


class Generator(Protocol):
    async def generate(self, request_text: str, transcript: Sequence[Turn], *,
                       database: DatabaseType = DatabaseType.SQL, regenerating: bool = False) -> Draft:
        ...


class Executor(Protocol):
    async def execute(self, query_text: str) -> ExecutionResult:
        ...


class FeedbackSink(Protocol):
    async def report(self, query_text: str) -> None:
        ...


PRODUCT_COLUMNS = ["product_id", "product_name", "price", "stock", "updated_at"]

DEMO_TRANSCRIPT: list[tuple[Role, Draft]] = [
    (Role.REQUEST, Draft("Show me all customers who made purchases over $1000 in the last 30 days")),
    (Role.RESPONSE, Draft(
        content="""SELECT
  c.customer_id,
  c.first_name,
  c.last_name,
  c.email,
  SUM(o.total_amount) as total_spent,
  COUNT(o.order_id) as order_count
FROM customers c
INNER JOIN orders o ON c.customer_id = o.customer_id
WHERE o.order_date >= DATE_SUB(CURDATE(), INTERVAL 30 DAY)
  AND o.total_amount > 1000
GROUP BY c.customer_id, c.first_name, c.last_name, c.email
ORDER BY total_spent DESC;""",
        explanation=(
            "This query retrieves high-value customers from the last month. It joins the "
            "customers and orders tables, filters for orders over $1000 made in the past 30 "
            "days, then groups by customer to calculate their total spending and order count. "
            "Results are sorted by total spending in descending order to show the biggest "
            "spenders first."
        ),
    )),
    (Role.REQUEST, Draft("Update the price of product 'Wireless Mouse' to $29.99")),
    (Role.RESPONSE, Draft(
        content="""UPDATE products
SET price = 29.99,
    updated_at = NOW()
WHERE product_name = 'Wireless Mouse';""",
        explanation=(
            "This query updates the price of the 'Wireless Mouse' product to $29.99. It also "
            "sets the updated_at timestamp to the current time to track when the change was "
            "made. The WHERE clause ensures only the specific product is modified."
        ),
        preview=Preview(
            before=TableData.of(PRODUCT_COLUMNS, [[205, "Wireless Mouse", 24.99, 150, "2025-01-05 10:30:00"]]),
            after=TableData.of(PRODUCT_COLUMNS, [[205, "Wireless Mouse", 29.99, 150, "2025-01-07 14:22:15"]]),
            title="Table Change Preview (1 row affected)",
        ),
    )),
]


_TOP_ORDERS_SQL = """SELECT users.name, orders.total, orders.created_at
FROM users
INNER JOIN orders ON users.id = orders.user_id
WHERE orders.created_at >= DATE_SUB(NOW(), INTERVAL 30 DAY)
ORDER BY orders.total DESC
LIMIT 10;"""

_TOP_ORDERS_MONGO = """db.orders.aggregate([
  { $match: { created_at: { $gte: new Date(Date.now() - 30*24*3600*1000) } } },
  { $sort: { total: -1 } },
  { $limit: 10 }
])"""

_REGENERATED_SQL = """-- Regenerated query
SELECT c.customer_id, c.email, SUM(o.total_amount) as total
FROM customers c
JOIN orders o ON c.customer_id = o.customer_id
WHERE o.order_date >= DATE_SUB(NOW(), INTERVAL 30 DAY)
  AND o.total_amount > 1000
GROUP BY c.customer_id, c.email;"""

_TOP_ORDERS_EXPLANATION = (
    "This query retrieves the top 10 customers by order value from the last 30 days. "
    "It joins the users and orders tables, filters for recent orders, and sorts by total "
    "amount in descending order."
)


class MockGenerator:
    """
    Canned drafts with a simulated latency.

    A fresh request gets the standard draft; a regeneration gets the
    alternate one.
    """

    def __init__(self, delay: float = 1.5, fail_with: Optional[str] = None):
        self.delay = delay
        self.fail_with = fail_with
        self.calls: list[tuple[str, DatabaseType]] = []

    async def generate(self, request_text: str, transcript: Sequence[Turn], *,
                       database: DatabaseType = DatabaseType.SQL, regenerating: bool = False) -> Draft:
        self.calls.append((request_text, database))
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.fail_with:
            raise GenerationError(self.fail_with)

        if database is DatabaseType.MONGODB:
            return Draft(_TOP_ORDERS_MONGO, _TOP_ORDERS_EXPLANATION)
        if regenerating:
            return Draft(_REGENERATED_SQL, _TOP_ORDERS_EXPLANATION)
        return Draft(_TOP_ORDERS_SQL, _TOP_ORDERS_EXPLANATION)


_VERB = re.compile(r"^\s*(?:--[^\n]*\n\s*)*(\w+)")


def leading_verb(query_text: str) -> str:
    """First keyword of a query, skipping leading `--` comment lines."""
    m = _VERB.match(query_text)
    return m.group(1).upper() if m else ""


class MockExecutor:
    """Fake data store: the shape of the result depends on the query verb."""

    def __init__(self, delay: float = 0.8, fail_with: Optional[str] = None):
        self.delay = delay
        self.fail_with = fail_with
        self.executed: list[str] = []

    async def execute(self, query_text: str) -> ExecutionResult:
        self.executed.append(query_text)
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.fail_with:
            raise ExecutionError(self.fail_with)

        verb = leading_verb(query_text)
        if verb == "SELECT":
            return ExecutionResult(
                columns=("customer_id", "first_name", "last_name", "email", "total_spent", "order_count"),
                rows=(
                    (1001, "Sarah", "Johnson", "sarah.j@email.com", 3450.0, 3),
                    (1045, "Michael", "Chen", "m.chen@email.com", 2890.5, 2),
                    (1023, "Emma", "Williams", "emma.w@email.com", 2150.0, 2),
                    (1067, "James", "Brown", "j.brown@email.com", 1875.25, 1),
                ),
                row_count=4,
            )
        if verb == "UPDATE":
            return ExecutionResult(columns=("Status",), rows=(("1 row(s) affected",),), row_count=1)
        return ExecutionResult(columns=("Result",), rows=(("Query executed successfully",),), row_count=1)


class LoggingFeedbackSink:
    """Writes defect reports to the log and keeps them for inspection."""

    def __init__(self, fail_with: Optional[str] = None):
        self.fail_with = fail_with
        self.reports: list[str] = []

    async def report(self, query_text: str) -> None:
        if self.fail_with:
            raise FeedbackError(self.fail_with)
        self.reports.append(query_text)
        logger.info("Error reported for query: %s", query_text)
