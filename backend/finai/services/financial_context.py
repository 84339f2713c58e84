"""Financial context aggregation for the chat assistant.

The loaders below read accounts, the budget and this month's transactions for
one user; `build_financial_context` turns those rows into the derived summary
(balances, monthly income/expenses, per-category totals, recent activity) that
the prompt is rendered from.
"""

from __future__ import annotations

import logging
from datetime import date, datetime
from decimal import Decimal, ROUND_HALF_UP
from typing import TYPE_CHECKING, Any
from uuid import UUID

from psycopg import Error as DatabaseError

from finai.config import settings

from .month_window import current_month_window

if TYPE_CHECKING:
    from psycopg import AsyncConnection
else:
    AsyncConnection = Any

logger = logging.getLogger(__name__)

MONEY_QUANT = Decimal("0.01")
RECENT_PER_ACCOUNT = 10
RECENT_TRANSACTIONS_LIMIT = 15

INCOME = "INCOME"
EXPENSE = "EXPENSE"
UNCATEGORIZED = "uncategorized"

FinancialContext = dict[str, Any]


def quantize_amount(value: Decimal | int | float | str | None) -> Decimal:
    """Normalize money values to cents, rounding half up."""
    if value is None:
        return Decimal("0.00")
    if not isinstance(value, Decimal):
        value = Decimal(str(value))
    return value.quantize(MONEY_QUANT, rounding=ROUND_HALF_UP)


def _sum_amounts(rows: list[dict[str, Any]], kind: str) -> Decimal:
    total = sum(
        (quantize_amount(row["amount"]) for row in rows if row["type"] == kind),
        Decimal("0.00"),
    )
    return quantize_amount(total)


def _iso_day(value: date | datetime | str) -> str:
    if isinstance(value, datetime):
        return value.date().isoformat()
    if isinstance(value, date):
        return value.isoformat()
    return str(value).split("T")[0]


def group_expenses_by_category(rows: list[dict[str, Any]]) -> dict[str, Decimal]:
    """Sum expense amounts per category, largest first then by name."""
    totals: dict[str, Decimal] = {}
    for row in rows:
        if row["type"] != EXPENSE:
            continue
        category = str(row.get("category") or UNCATEGORIZED)
        totals[category] = totals.get(category, Decimal("0.00")) + quantize_amount(row["amount"])

    ordered = sorted(totals.items(), key=lambda item: (-item[1], item[0]))
    return {category: quantize_amount(total) for category, total in ordered}


def merge_recent_transactions(
    accounts: list[dict[str, Any]],
    limit: int = RECENT_TRANSACTIONS_LIMIT,
) -> list[dict[str, Any]]:
    """Flatten per-account recent transactions into one newest-first list."""
    merged = [
        row
        for account in accounts
        for row in (account.get("transactions") or [])
    ]

    # Stable sort: same-day rows keep account order, then per-account order.
    merged.sort(key=lambda row: _iso_day(row["date"]), reverse=True)

    return [
        {
            "amount": quantize_amount(row["amount"]),
            "description": row.get("description"),
            "category": row.get("category") or UNCATEGORIZED,
            "type": row["type"],
            "date": _iso_day(row["date"]),
        }
        for row in merged[:limit]
    ]


def build_financial_context(
    *,
    accounts: list[dict[str, Any]],
    budget_amount: Decimal | None,
    monthly_transactions: list[dict[str, Any]],
) -> FinancialContext:
    """
    Derive the assistant's view of the user's finances.

    `accounts` rows carry `name`, `type`, `balance`, `is_default` and a
    `transactions` list (newest first). `monthly_transactions` holds this
    month's rows with `type` and `amount`.
    """
    total_balance = quantize_amount(
        sum((quantize_amount(account["balance"]) for account in accounts), Decimal("0.00"))
    )

    monthly_income = _sum_amounts(monthly_transactions, INCOME)
    monthly_expenses = _sum_amounts(monthly_transactions, EXPENSE)

    return {
        "total_balance": total_balance,
        "accounts": [
            {
                "name": account["name"],
                "type": account["type"],
                "balance": quantize_amount(account["balance"]),
                "is_default": bool(account.get("is_default")),
            }
            for account in accounts
        ],
        "budget": quantize_amount(budget_amount) if budget_amount is not None else None,
        "monthly_income": monthly_income,
        "monthly_expenses": monthly_expenses,
        "net_income": quantize_amount(monthly_income - monthly_expenses),
        "expenses_by_category": group_expenses_by_category(monthly_transactions),
        "recent_transactions": merge_recent_transactions(accounts),
    }


async def _load_accounts(connection: AsyncConnection, user_id: UUID) -> list[dict[str, Any]]:
    async with connection.cursor() as cursor:
        await cursor.execute(
            """
            SELECT id, name, type, balance, is_default
            FROM accounts
            WHERE user_id = %s
            ORDER BY created_at ASC, name ASC
            """,
            (user_id,),
        )
        account_rows = await cursor.fetchall()

    accounts: list[dict[str, Any]] = []
    for row in account_rows:
        async with connection.cursor() as cursor:
            await cursor.execute(
                """
                SELECT amount, description, category, type, date
                FROM transactions
                WHERE account_id = %s
                  AND user_id = %s
                ORDER BY date DESC
                LIMIT %s
                """,
                (row["id"], user_id, RECENT_PER_ACCOUNT),
            )
            transactions = await cursor.fetchall()

        accounts.append({**row, "transactions": list(transactions)})

    return accounts


async def _load_budget_amount(connection: AsyncConnection, user_id: UUID) -> Decimal | None:
    async with connection.cursor() as cursor:
        await cursor.execute(
            """
            SELECT amount
            FROM budgets
            WHERE user_id = %s
            LIMIT 1
            """,
            (user_id,),
        )
        row = await cursor.fetchone()

    if row is None:
        return None
    return row["amount"]


async def _load_monthly_transactions(
    connection: AsyncConnection,
    user_id: UUID,
    month_start: date,
    month_end_exclusive: date,
) -> list[dict[str, Any]]:
    async with connection.cursor() as cursor:
        await cursor.execute(
            """
            SELECT type, amount, category
            FROM transactions
            WHERE user_id = %s
              AND date >= %s
              AND date < %s
            """,
            (user_id, month_start, month_end_exclusive),
        )
        rows = await cursor.fetchall()

    return list(rows)


async def get_user_financial_context(
    connection: AsyncConnection,
    user_id: UUID,
    *,
    today: date | None = None,
) -> FinancialContext | None:
    """Load and aggregate the user's finances; `None` when the data is unavailable."""
    month_start, month_end_exclusive = current_month_window(today, tz_name=settings.timezone)

    try:
        accounts = await _load_accounts(connection, user_id)
        budget_amount = await _load_budget_amount(connection, user_id)
        monthly_transactions = await _load_monthly_transactions(
            connection,
            user_id,
            month_start,
            month_end_exclusive,
        )
    except DatabaseError:
        logger.exception("Error getting financial context for user %s", user_id)
        return None

    return build_financial_context(
        accounts=accounts,
        budget_amount=budget_amount,
        monthly_transactions=monthly_transactions,
    )
