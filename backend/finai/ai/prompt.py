"""Prompt constants and helpers for the AI financial advisor."""

from __future__ import annotations

from decimal import Decimal
from typing import Any

from finai.services.financial_context import EXPENSE, UNCATEGORIZED, FinancialContext, quantize_amount

PROMPT_RECENT_TRANSACTIONS = 5

ADVISOR_INTRO = (
    "You are a helpful personal finance advisor AI assistant. You have access to the "
    "user's financial data and should provide personalized advice based on their situation."
)

ADVISOR_RULES = """
Provide helpful, actionable financial advice. Be encouraging and supportive. If asked about specific transactions or account balances, refer to the data above. Keep responses concise but informative.

Format your response using markdown for better readability:
- Use **bold** for important points and action items
- Use bullet points for lists and recommendations
- Use numbered lists for step-by-step advice
- Keep paragraphs short and focused
- Use clear headings when appropriate
""".strip()


def format_money(value: Decimal | None) -> str:
    """'1234.5' -> '1234.50'; `None` -> 'N/A'."""
    if value is None:
        return "N/A"
    return f"{quantize_amount(value):.2f}"


def _summary_section(context: FinancialContext | None) -> str:
    ctx = context or {}
    budget = ctx.get("budget")
    budget_text = f"${format_money(budget)}" if budget is not None else "No budget set"

    return "\n".join(
        [
            "User's Financial Summary:",
            f"- Total Balance: ${format_money(ctx.get('total_balance'))}",
            f"- Monthly Income: ${format_money(ctx.get('monthly_income'))}",
            f"- Monthly Expenses: ${format_money(ctx.get('monthly_expenses'))}",
            f"- Net Monthly Income: ${format_money(ctx.get('net_income'))}",
            f"- Budget: {budget_text}",
        ]
    )


def _accounts_section(context: FinancialContext | None) -> str:
    accounts = (context or {}).get("accounts") or []
    if not accounts:
        return "Accounts:\nNo accounts found"

    lines = ["Accounts:"]
    for account in accounts:
        default_marker = " (Default)" if account.get("is_default") else ""
        lines.append(
            f"- {account['name']} ({account['type']}): ${format_money(account['balance'])}{default_marker}"
        )
    return "\n".join(lines)


def _categories_section(context: FinancialContext | None) -> str:
    by_category = (context or {}).get("expenses_by_category") or {}
    if not by_category:
        return "Monthly Expenses by Category:\nNo expense data available"

    lines = ["Monthly Expenses by Category:"]
    lines.extend(f"- {category}: ${format_money(amount)}" for category, amount in by_category.items())
    return "\n".join(lines)


def _transaction_line(transaction: dict[str, Any]) -> str:
    sign = "-" if transaction["type"] == EXPENSE else "+"
    description = transaction.get("description") or "No description"
    category = transaction.get("category") or UNCATEGORIZED
    return (
        f"- {transaction['date']}: {sign}${format_money(transaction['amount'])}"
        f" - {description} ({category})"
    )


def _recent_section(context: FinancialContext | None) -> str:
    recent = ((context or {}).get("recent_transactions") or [])[:PROMPT_RECENT_TRANSACTIONS]
    if not recent:
        return "Recent Transactions:\nNo recent transactions"

    return "\n".join(["Recent Transactions:", *(_transaction_line(item) for item in recent)])


def build_conversation_history(messages: list[dict[str, Any]]) -> str:
    """Render stored messages oldest first as 'ROLE: content' lines."""
    return "\n".join(f"{str(message['role']).upper()}: {message['content']}" for message in messages)


def build_chat_prompt(
    context: FinancialContext | None,
    history: list[dict[str, Any]],
    message: str,
) -> str:
    """Compose the full advisor prompt sent to the model."""
    sections = [
        ADVISOR_INTRO,
        _summary_section(context),
        _accounts_section(context),
        _categories_section(context),
        _recent_section(context),
        ADVISOR_RULES,
        f"Previous conversation:\n{build_conversation_history(history)}",
        f"Current user message: {message}",
    ]
    return "\n\n".join(sections)
