"""Financial summary over data returned by PluggyClient.get_user_financial_data."""

from __future__ import annotations

from datetime import datetime, timedelta, timezone
from typing import Any

from zenmind.infra.time import utc_now

SUMMARY_WINDOW_DAYS = 30


def _parse_date(value: Any) -> datetime | None:
    if isinstance(value, datetime):
        parsed = value
    elif isinstance(value, str) and value:
        try:
            parsed = datetime.fromisoformat(value.replace("Z", "+00:00"))
        except ValueError:
            return None
    else:
        return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def _summarize_accounts(accounts: list[dict[str, Any]]) -> dict[str, dict[str, Any]]:
    by_type: dict[str, dict[str, Any]] = {}
    for account in accounts:
        bucket = by_type.setdefault(
            account.get("type") or "UNKNOWN",
            {"count": 0, "totalBalance": 0.0, "accounts": []},
        )
        bucket["count"] += 1
        bucket["totalBalance"] += account.get("balance") or 0
        bucket["accounts"].append({
            "name": account.get("name"),
            "balance": account.get("balance"),
            "connector": account.get("connectorName"),
        })
    return by_type


def generate_financial_summary(
    financial_data: dict[str, Any], now: datetime | None = None
) -> dict[str, Any]:
    """Per-type account balances and last-30-days cash flow.

    Positive amounts are income, everything else is an expense. Transactions
    with an unparseable date are left out of the window.
    """
    now = now or utc_now()
    since = now - timedelta(days=SUMMARY_WINDOW_DAYS)

    income_total = 0.0
    income_count = 0
    expenses_total = 0.0
    expenses_count = 0
    categories: dict[str, dict[str, Any]] = {}
    total_count = 0

    for tx in financial_data.get("transactions") or []:
        tx_date = _parse_date(tx.get("date"))
        if tx_date is None or tx_date < since:
            continue

        amount = tx.get("amount") or 0
        total_count += 1
        if amount > 0:
            income_total += amount
            income_count += 1
        else:
            expenses_total += abs(amount)
            expenses_count += 1

        category = categories.setdefault(
            tx.get("category") or "Uncategorized", {"count": 0, "amount": 0.0}
        )
        category["count"] += 1
        category["amount"] += abs(amount)

    return {
        "accounts": _summarize_accounts(financial_data.get("accounts") or []),
        "transactions": {
            "totalCount": total_count,
            "income": {"total": income_total, "count": income_count},
            "expenses": {"total": expenses_total, "count": expenses_count},
            "categories": categories,
        },
        "netFlow": income_total - expenses_total,
        "period": {
            "from": since.isoformat(),
            "to": now.isoformat(),
            "days": SUMMARY_WINDOW_DAYS,
        },
        "generatedAt": now.isoformat(),
    }
