# SPDX-License-Identifier: Apache-2.0

"""
Tests for voucher redemption, community fund and distance rules.
"""

import pytest
from datetime import datetime, timedelta

from domain.vouchers import check_redemption, redemption_rate, is_expired
from domain.finance import (
    check_sufficiency,
    is_valid_withdrawal_category,
    period_start,
    summarize_totals,
    MONEY_REQUEST_CATEGORY
)
from domain.geo import haversine_km, nearest_recipients

NOW = datetime(2025, 6, 1, 12, 0)


def _voucher(**overrides):
    voucher = {
        "id": "v1",
        "status": "active",
        "expiryDate": NOW + timedelta(days=10),
        "currentRedemptions": 2,
        "maxRedemptions": 10,
        "minEcoPoints": 100
    }
    voucher.update(overrides)
    return voucher


class TestVoucherRedemption:

    def test_eligible(self):
        assert check_redemption(_voucher(), {"ecoPoints": 150}, False, NOW) is None

    def test_missing_voucher(self):
        failure = check_redemption(None, {"ecoPoints": 150}, False, NOW)
        assert (failure.message, failure.status_code) == ("Voucher not found", 404)

    @pytest.mark.parametrize("voucher,user,redeemed,message", [
        (_voucher(status="inactive"), {"ecoPoints": 150}, False, "Voucher is not active"),
        (_voucher(expiryDate=NOW - timedelta(days=1)), {"ecoPoints": 150}, False, "Voucher has expired"),
        (_voucher(currentRedemptions=10), {"ecoPoints": 150}, False, "Voucher redemption limit reached"),
        (_voucher(), {"ecoPoints": 50}, False, "Insufficient EcoPoints"),
        (_voucher(), {"ecoPoints": 150}, True, "Voucher already redeemed"),
    ])
    def test_refusals(self, voucher, user, redeemed, message):
        failure = check_redemption(voucher, user, redeemed, NOW)
        assert failure.message == message
        assert failure.status_code == 400

    def test_unknown_user(self):
        assert check_redemption(_voucher(), None, False, NOW).status_code == 404

    def test_checks_run_in_order(self):
        failure = check_redemption(_voucher(status="expired", currentRedemptions=10), {"ecoPoints": 0}, True, NOW)
        assert failure.message == "Voucher is not active"

    def test_redemption_rate(self):
        assert redemption_rate(_voucher(currentRedemptions=5, maxRedemptions=20)) == 25.0
        assert redemption_rate(_voucher(maxRedemptions=0)) == 0.0

    def test_no_expiry_never_expires(self):
        assert not is_expired(_voucher(expiryDate=None), NOW)


class TestFund:

    def test_sufficiency(self):
        result = check_sufficiency({"totalBalance": 500}, 800)
        assert not result.sufficient
        assert result.available == 500
        assert result.requested == 800
        assert result.shortfall == 300

    def test_missing_balance_is_empty(self):
        assert not check_sufficiency(None, 1).sufficient
        assert check_sufficiency({"totalBalance": 100}, 100).sufficient

    def test_withdrawal_categories(self):
        assert is_valid_withdrawal_category("transportation")
        assert is_valid_withdrawal_category("packaging")
        assert not is_valid_withdrawal_category(MONEY_REQUEST_CATEGORY)
        assert not is_valid_withdrawal_category(None)

    def test_period_start(self):
        assert period_start("week", NOW) == NOW - timedelta(days=7)
        assert period_start(None, NOW) is None
        assert period_start("decade", NOW) is None

    def test_summarize_totals(self):
        summary = summarize_totals([
            {"_id": "donation", "total": 1500, "count": 3},
            {"_id": "withdrawal", "total": 400, "count": 1}
        ])
        assert summary["donations"] == {"total": 1500, "count": 3}
        assert summary["netBalance"] == 1100

    def test_summarize_without_withdrawals(self):
        summary = summarize_totals([{"_id": "donation", "total": 200, "count": 1}])
        assert summary["withdrawals"] == {"total": 0, "count": 0}
        assert summary["netBalance"] == 200


class TestDistances:

    def test_same_point(self):
        assert haversine_km(31.52, 74.35, 31.52, 74.35) == 0

    def test_lahore_to_karachi(self):
        distance = haversine_km(31.5204, 74.3587, 24.8607, 67.0011)
        assert 1000 < distance < 1050

    def test_nearest_recipients(self):
        candidates = [
            {"id": "far", "lat": 31.90, "lng": 74.35},
            {"id": "near", "lat": 31.53, "lng": 74.35},
            {"id": "mid", "lat": 31.60, "lng": 74.35},
            {"id": "no-coords", "lat": None, "lng": None},
            {"id": "donor", "lat": 31.52, "lng": 74.35},
        ]
        ranked = nearest_recipients(31.52, 74.35, candidates, radius_km=25, limit=3, exclude_ids=["donor"])
        assert [r.user["id"] for r in ranked] == ["near", "mid"]
        assert ranked[0].distance_km < ranked[1].distance_km

    def test_limit(self):
        candidates = [{"id": str(i), "lat": 31.52 + i * 0.01, "lng": 74.35} for i in range(1, 6)]
        assert len(nearest_recipients(31.52, 74.35, candidates, limit=3)) == 3
