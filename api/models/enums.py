# -*- coding: utf-8 -*-
# SPDX-License-Identifier: Apache-2.0

"""
Enumeration types for the EcoBite platform.
"""

from enum import Enum


class UserType(str, Enum):
    """Account roles."""
    INDIVIDUAL = "individual"
    RESTAURANT = "restaurant"
    NGO = "ngo"
    SHELTER = "shelter"
    FERTILIZER = "fertilizer"
    ADMIN = "admin"


# Roles that receive food and funding
BENEFICIARY_TYPES = (UserType.NGO.value, UserType.SHELTER.value, UserType.FERTILIZER.value)

# Roles that are alerted about new and expiring donations
FOOD_RECIPIENT_TYPES = (UserType.NGO.value, UserType.SHELTER.value)


class DonationStatus(str, Enum):
    """Donation lifecycle status."""
    AVAILABLE = "available"
    PENDING_PICKUP = "Pending Pickup"
    COMPLETED = "Completed"
    EXPIRED = "Expired"


class VoucherStatus(str, Enum):
    ACTIVE = "active"
    INACTIVE = "inactive"
    EXPIRED = "expired"


class DiscountType(str, Enum):
    PERCENTAGE = "percentage"
    FIXED = "fixed"


class TransactionType(str, Enum):
    """Financial transaction direction."""
    DONATION = "donation"
    WITHDRAWAL = "withdrawal"


class WithdrawalCategory(str, Enum):
    """Categories accepted for manual fund withdrawals."""
    TRANSPORTATION = "transportation"
    PACKAGING = "packaging"
    OTHER = "other"


class ReviewStatus(str, Enum):
    """Moderation status shared by money requests and ad redemptions."""
    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"


class PaymentStatus(str, Enum):
    PENDING = "pending"
    COMPLETED = "completed"
    FAILED = "failed"


class NotificationType(str, Enum):
    """Notification templates known to the dispatcher."""
    WELCOME = "welcome"
    PAYMENT_VERIFIED = "payment_verified"
    PAYMENT_REJECTED = "payment_rejected"
    MONEY_REQUEST_APPROVED = "money_request_approved"
    MONEY_REQUEST_REJECTED = "money_request_rejected"
    MONEY_REQUEST_CREATED = "money_request_created"
    DONATION_CLAIMED = "donation_claimed"
    DONATION_AVAILABLE = "donation_available"
    ECOPOINTS_EARNED = "ecopoints_earned"
    VOUCHER_REDEEMED = "voucher_redeemed"
    EXPIRY_ALERT = "expiry_alert"
    AD_REDEMPTION_REQUESTED = "ad_redemption_requested"
    AD_REDEMPTION_UPDATE = "ad_redemption_update"
    PAYMENT_SUBMITTED = "payment_submitted"
    BANNER_PUBLISHED = "banner_published"
