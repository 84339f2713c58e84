"""Seed a dev user with accounts, a budget and this month's transactions, then ask the advisor one question."""

import os
import sys
from datetime import date, datetime, timedelta, timezone

import httpx
import jwt
import psycopg
from psycopg.rows import dict_row

DATABASE_URL = os.environ.get("DATABASE_URL", "")
JWT_SECRET = os.environ.get("JWT_SECRET_KEY", "change-me")
JWT_ALGORITHM = os.environ.get("JWT_ALGORITHM", "HS256")
API_BASE = os.environ.get("API_BASE", "http://localhost:8000")

DEV_CLERK_ID = "user_dev_finai"
DEV_EMAIL = "dev@finai.local"

SAMPLE_ACCOUNTS = [
    {"name": "Everyday Checking", "type": "CURRENT", "balance": "2450.75", "is_default": True},
    {"name": "Rainy Day Savings", "type": "SAVINGS", "balance": "8200.00", "is_default": False},
]

# (account index, type, amount, day of month, category, description)
SAMPLE_TRANSACTIONS = [
    (0, "INCOME", "3200.00", 1, "salary", "Monthly salary"),
    (0, "EXPENSE", "1400.00", 1, "housing", "Rent"),
    (0, "EXPENSE", "82.40", 3, "groceries", "Whole Foods"),
    (0, "EXPENSE", "15.99", 4, "entertainment", "Netflix"),
    (0, "EXPENSE", "45.00", 6, "transportation", "Transit pass"),
    (0, "EXPENSE", "63.10", 9, "groceries", "Trader Joe's"),
    (0, "EXPENSE", "38.50", 11, "food", "Dinner with friends"),
    (0, "EXPENSE", "95.00", 12, "utilities", "Electric bill"),
    (1, "INCOME", "12.35", 1, "interest", "Savings interest"),
    (1, "EXPENSE", "250.00", 8, "travel", "Flight deposit"),
]


def main():
    if not DATABASE_URL:
        print("ERROR: DATABASE_URL env var is not set")
        sys.exit(1)

    today = date.today()

    print("Connecting to database...")
    with psycopg.connect(DATABASE_URL, row_factory=dict_row) as conn:
        with conn.cursor() as cur:
            cur.execute(
                """
                INSERT INTO users (clerk_user_id, email, name)
                VALUES (%s, %s, %s)
                ON CONFLICT (clerk_user_id) DO UPDATE SET name = EXCLUDED.name
                RETURNING id
                """,
                (DEV_CLERK_ID, DEV_EMAIL, "Dev User"),
            )
            user_id = cur.fetchone()["id"]
            print(f"  Dev user ID: {user_id}")

            cur.execute("DELETE FROM accounts WHERE user_id = %s", (user_id,))
            cur.execute("DELETE FROM budgets WHERE user_id = %s", (user_id,))
            cur.execute("DELETE FROM chat_messages WHERE user_id = %s", (user_id,))

            account_ids = []
            for account in SAMPLE_ACCOUNTS:
                cur.execute(
                    """
                    INSERT INTO accounts (user_id, name, type, balance, is_default)
                    VALUES (%s, %s, %s, %s, %s)
                    RETURNING id
                    """,
                    (user_id, account["name"], account["type"], account["balance"], account["is_default"]),
                )
                account_ids.append(cur.fetchone()["id"])
            print(f"  Created {len(account_ids)} accounts")

            cur.execute(
                "INSERT INTO budgets (user_id, amount) VALUES (%s, %s)",
                (user_id, "2500.00"),
            )

            for account_index, kind, amount, day, category, description in SAMPLE_TRANSACTIONS:
                occurred = datetime(today.year, today.month, min(day, today.day), 12, tzinfo=timezone.utc)
                cur.execute(
                    """
                    INSERT INTO transactions (user_id, account_id, type, amount, description, category, date)
                    VALUES (%s, %s, %s, %s, %s, %s, %s)
                    """,
                    (user_id, account_ids[account_index], kind, amount, description, category, occurred),
                )
            print(f"  Created {len(SAMPLE_TRANSACTIONS)} transactions")

    token = jwt.encode(
        {"sub": DEV_CLERK_ID, "exp": datetime.now(timezone.utc) + timedelta(hours=1)},
        JWT_SECRET,
        algorithm=JWT_ALGORITHM,
    )
    print(f"\nBearer token (1h):\n{token}\n")

    headers = {"Authorization": f"Bearer {token}"}
    try:
        resp = httpx.post(
            f"{API_BASE}/api/chat",
            json={"message": "What's my biggest expense category this month?"},
            headers=headers,
            timeout=90,
        )
    except httpx.HTTPError as exc:
        print(f"Skipping chat smoke test ({exc})")
        return

    if resp.status_code == 200:
        print(f"Advisor says:\n{resp.json()['message']}")
    else:
        print(f"Chat smoke test FAIL ({resp.status_code}): {resp.text}")


if __name__ == "__main__":
    main()
