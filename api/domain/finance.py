# SPDX-License-Identifier: Apache-2.0

"""
Community fund rules: reporting periods, withdrawal categories and balance
sufficiency.
"""

from datetime import datetime, timedelta
from dataclasses import dataclass
from typing import List, Dict, Any, Optional

from models.enums import WithdrawalCategory

PERIOD_DAYS = {
    "day": 1,
    "week": 7,
    "month": 30,
    "year": 365,
}

WITHDRAWAL_CATEGORIES = tuple(category.value for category in WithdrawalCategory)
MONEY_REQUEST_CATEGORY = "money_request"
MONEY_DONATION_CATEGORY = "money_donation"
GENERAL_CATEGORY = "general"
ANALYTICS_MONTHS = 12
TOP_DONOR_LIMIT = 10


@dataclass
class SufficiencyResult:
    sufficient: bool
    available: float
    requested: float

    @property
    def shortfall(self) -> float:
        return max(0.0, self.requested - self.available)


def period_start(period: Optional[str], now: Optional[datetime] = None) -> Optional[datetime]:
    """Start of the reporting window ending now; None means all time."""
    days = PERIOD_DAYS.get(period or "")
    if days is None:
        return None
    return (now or datetime.utcnow()) - timedelta(days=days)


def analytics_start(now: Optional[datetime] = None) -> datetime:
    return (now or datetime.utcnow()) - timedelta(days=ANALYTICS_MONTHS * 30)


def is_valid_withdrawal_category(category: Optional[str]) -> bool:
    return category in WITHDRAWAL_CATEGORIES


def check_sufficiency(balance: Optional[Dict[str, Any]], amount: float) -> SufficiencyResult:
    """Compare the fund balance singleton against a requested amount."""
    available = float((balance or {}).get("totalBalance") or 0)
    return SufficiencyResult(
        sufficient=available >= amount,
        available=available,
        requested=amount
    )


def empty_balance() -> Dict[str, float]:
    return {"totalBalance": 0, "totalDonations": 0, "totalWithdrawals": 0}


def summarize_totals(rows: List[Dict[str, Any]]) -> Dict[str, Any]:
    """
    Build the period summary from ``{_id: type, total, count}`` rows and the
    withdrawal ``byCategory`` rows.
    """
    totals = {row.get("_id") or row.get("type"): row for row in rows}

    def bucket(kind: str) -> Dict[str, float]:
        row = totals.get(kind) or {}
        return {"total": row.get("total") or 0, "count": row.get("count") or 0}

    donations = bucket("donation")
    withdrawals = bucket("withdrawal")
    return {
        "donations": donations,
        "withdrawals": withdrawals,
        "netBalance": donations["total"] - withdrawals["total"]
    }
