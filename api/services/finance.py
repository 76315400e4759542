# SPDX-License-Identifier: Apache-2.0

"""
Community fund ledger on MongoDB.

The fund balance is a single document (``_id = "main"``) changed only with
atomic ``$inc`` updates; withdrawals are guarded on ``totalBalance`` so the
fund can never go negative.
"""

import logging
from datetime import datetime
from typing import List, Dict, Optional, Any
from opentelemetry import trace

from domain.finance import (
    SufficiencyResult,
    empty_balance,
    summarize_totals,
    period_start,
    analytics_start,
    TOP_DONOR_LIMIT,
    GENERAL_CATEGORY
)
from models.entities import FinancialTransaction
from models.enums import TransactionType
from services.mongodb import MongoDBService

logger = logging.getLogger(__name__)
tracer = trace.get_tracer(__name__)

TRANSACTIONS = "financial_transactions"
BALANCE = "fund_balance"
BALANCE_ID = "main"


class InsufficientFundsError(Exception):
    """Raised when a withdrawal exceeds the fund balance."""

    def __init__(self, result: SufficiencyResult):
        super().__init__("Insufficient funds")
        self.available = result.available
        self.requested = result.requested


class FinanceService:
    """Transactions and the fund balance singleton."""

    def __init__(self, mongodb_service: MongoDBService):
        self.mongodb_service = mongodb_service

    def get_balance(self) -> Dict[str, Any]:
        balance = self.mongodb_service.find_one(BALANCE, {"_id": BALANCE_ID})
        if not balance:
            return empty_balance()
        balance.pop("id", None)
        return balance

    def ensure_balance(self) -> None:
        """Create the singleton with zero totals if it is missing."""
        self.mongodb_service.find_one_and_update(
            BALANCE,
            {"_id": BALANCE_ID},
            {"$setOnInsert": empty_balance()},
            upsert=True
        )

    def credit(self, amount: float) -> Dict[str, Any]:
        return self.mongodb_service.find_one_and_update(
            BALANCE,
            {"_id": BALANCE_ID},
            {"$inc": {"totalBalance": amount, "totalDonations": amount}},
            upsert=True
        )

    def debit(self, amount: float) -> Dict[str, Any]:
        """
        Withdraw from the fund.

        Raises:
            InsufficientFundsError: when the balance does not cover ``amount``
        """
        balance = self.mongodb_service.find_one_and_update(
            BALANCE,
            {"_id": BALANCE_ID, "totalBalance": {"$gte": amount}},
            {"$inc": {"totalBalance": -amount, "totalWithdrawals": amount}}
        )
        if balance is None:
            current = self.get_balance()
            raise InsufficientFundsError(SufficiencyResult(
                sufficient=False,
                available=float(current.get("totalBalance") or 0),
                requested=amount
            ))
        return balance

    def _record(self, transaction: FinancialTransaction) -> Dict[str, Any]:
        document = transaction.to_document()
        transaction_id = self.mongodb_service.create(TRANSACTIONS, dict(document, id=transaction.id))
        return dict(document, id=transaction_id)

    def record_donation(self, amount: float, user_id: Optional[str] = None,
                        category: str = GENERAL_CATEGORY, description: Optional[str] = None,
                        donation_id: Optional[str] = None) -> Dict[str, Any]:
        """Record money coming into the fund and raise the balance."""
        with tracer.start_as_current_span("finance.record_donation") as span:
            span.set_attribute("finance.amount", amount)
            transaction = self._record(FinancialTransaction(
                type=TransactionType.DONATION,
                amount=amount,
                user_id=user_id,
                donation_id=donation_id,
                category=category,
                description=description or "Donation received"
            ))
            self.credit(amount)
            logger.info(f"Fund donation recorded: {amount}", extra={"user_id": user_id, "category": category})
            return transaction

    def record_withdrawal(self, amount: float, category: str, user_id: Optional[str] = None,
                          description: Optional[str] = None) -> Dict[str, Any]:
        """
        Lower the balance, then record the withdrawal.

        Raises:
            InsufficientFundsError: when the balance does not cover ``amount``
        """
        with tracer.start_as_current_span("finance.record_withdrawal") as span:
            span.set_attribute("finance.amount", amount)
            self.debit(amount)
            transaction = self._record(FinancialTransaction(
                type=TransactionType.WITHDRAWAL,
                amount=amount,
                user_id=user_id,
                category=category,
                description=description or f"Withdrawal for {category}"
            ))
            logger.info(f"Fund withdrawal recorded: {amount}", extra={"user_id": user_id, "category": category})
            return transaction

    def list_transactions(self, type: Optional[str] = None, user_id: Optional[str] = None,
                          start_date: Optional[datetime] = None,
                          end_date: Optional[datetime] = None) -> List[Dict[str, Any]]:
        """Newest first, each joined with ``userName`` and ``userEmail``."""
        filters: Dict[str, Any] = {}
        if type:
            filters["type"] = type
        if user_id:
            filters["userId"] = user_id
        if start_date or end_date:
            filters["createdAt"] = {}
            if start_date:
                filters["createdAt"]["$gte"] = start_date
            if end_date:
                filters["createdAt"]["$lte"] = end_date

        transactions = self.mongodb_service.find(TRANSACTIONS, filters, sort="createdAt")
        users = self.mongodb_service.find_by_ids(
            "users", [t["userId"] for t in transactions if t.get("userId")]
        )
        for transaction in transactions:
            user = users.get(transaction.get("userId")) or {}
            transaction["userName"] = user.get("name")
            transaction["userEmail"] = user.get("email")
        return transactions

    def summary(self, period: Optional[str] = None, now: Optional[datetime] = None) -> Dict[str, Any]:
        match: Dict[str, Any] = {}
        start = period_start(period, now)
        if start is not None:
            match["createdAt"] = {"$gte": start}

        totals = self.mongodb_service.aggregate(TRANSACTIONS, [
            {"$match": match},
            {"$group": {"_id": "$type", "total": {"$sum": "$amount"}, "count": {"$sum": 1}}}
        ])
        by_category = self.mongodb_service.aggregate(TRANSACTIONS, [
            {"$match": dict(match, type=TransactionType.WITHDRAWAL.value)},
            {"$group": {"_id": "$category", "total": {"$sum": "$amount"}, "count": {"$sum": 1}}},
            {"$project": {"_id": 0, "category": "$_id", "total": 1, "count": 1}}
        ])

        result = summarize_totals(totals)
        result["byCategory"] = by_category
        return result

    def analytics(self, now: Optional[datetime] = None) -> Dict[str, Any]:
        """Monthly trend over the last year, withdrawal categories and top donors."""
        monthly_trend = self.mongodb_service.aggregate(TRANSACTIONS, [
            {"$match": {"createdAt": {"$gte": analytics_start(now)}}},
            {"$group": {
                "_id": {
                    "month": {"$dateToString": {"format": "%Y-%m", "date": "$createdAt"}},
                    "type": "$type"
                },
                "total": {"$sum": "$amount"}
            }},
            {"$project": {"_id": 0, "month": "$_id.month", "type": "$_id.type", "total": 1}},
            {"$sort": {"month": -1}}
        ])
        category_breakdown = self.mongodb_service.aggregate(TRANSACTIONS, [
            {"$match": {"type": TransactionType.WITHDRAWAL.value}},
            {"$group": {"_id": "$category", "total": {"$sum": "$amount"}, "count": {"$sum": 1}}},
            {"$project": {"_id": 0, "category": "$_id", "total": 1, "count": 1}}
        ])
        donors = self.mongodb_service.aggregate(TRANSACTIONS, [
            {"$match": {"type": TransactionType.DONATION.value, "userId": {"$ne": None}}},
            {"$group": {"_id": "$userId", "totalDonated": {"$sum": "$amount"}, "donationCount": {"$sum": 1}}},
            {"$sort": {"totalDonated": -1}},
            {"$limit": TOP_DONOR_LIMIT}
        ])

        users = self.mongodb_service.find_by_ids("users", [d["_id"] for d in donors])
        top_donors = []
        for donor in donors:
            user = users.get(donor["_id"])
            if not user:
                continue
            top_donors.append({
                "name": user.get("name"),
                "email": user.get("email"),
                "totalDonated": donor["totalDonated"],
                "donationCount": donor["donationCount"]
            })

        return {
            "monthlyTrend": monthly_trend,
            "categoryBreakdown": category_breakdown,
            "topDonors": top_donors
        }
