# SPDX-License-Identifier: Apache-2.0

"""
Voucher redemption rules.
"""

from dataclasses import dataclass
from datetime import datetime
from typing import Dict, Any, Optional

from models.enums import VoucherStatus


@dataclass
class RedemptionCheck:
    """Why a redemption is refused; ``status_code`` is the HTTP status to answer with."""
    message: str
    status_code: int = 400


def redemption_rate(voucher: Dict[str, Any]) -> float:
    maximum = voucher.get("maxRedemptions") or 0
    if maximum <= 0:
        return 0.0
    return (voucher.get("currentRedemptions") or 0) / maximum * 100


def is_expired(voucher: Dict[str, Any], now: Optional[datetime] = None) -> bool:
    expiry = voucher.get("expiryDate")
    if not isinstance(expiry, datetime):
        return False
    return (now or datetime.utcnow()) > expiry


def check_redemption(
    voucher: Optional[Dict[str, Any]],
    user: Optional[Dict[str, Any]],
    already_redeemed: bool,
    now: Optional[datetime] = None
) -> Optional[RedemptionCheck]:
    """
    Apply the redemption checks in order and return the first failure.

    Returns:
        None when the user may redeem the voucher
    """
    if voucher is None:
        return RedemptionCheck("Voucher not found", 404)
    if voucher.get("status") != VoucherStatus.ACTIVE.value:
        return RedemptionCheck("Voucher is not active")
    if is_expired(voucher, now):
        return RedemptionCheck("Voucher has expired")
    if (voucher.get("currentRedemptions") or 0) >= (voucher.get("maxRedemptions") or 0):
        return RedemptionCheck("Voucher redemption limit reached")
    if user is None:
        return RedemptionCheck("User not found", 404)
    if (user.get("ecoPoints") or 0) < (voucher.get("minEcoPoints") or 0):
        return RedemptionCheck("Insufficient EcoPoints")
    if already_redeemed:
        return RedemptionCheck("Voucher already redeemed")
    return None
