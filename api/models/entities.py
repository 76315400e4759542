# -*- coding: utf-8 -*-
# SPDX-License-Identifier: Apache-2.0

"""
Core entity models for the EcoBite platform.
"""

import re
from datetime import datetime, timedelta
from typing import List, Optional, Dict, Any
from pydantic import BaseModel, Field, field_validator, model_validator, ConfigDict
from .base import BaseEntity
from .enums import (
    UserType,
    DonationStatus,
    VoucherStatus,
    DiscountType,
    TransactionType,
    ReviewStatus,
    PaymentStatus,
    BENEFICIARY_TYPES
)

EMAIL_PATTERN = r'^[a-zA-Z0-9._%+-]+@[a-zA-Z0-9.-]+\.[a-zA-Z]{2,}$'


class User(BaseEntity):
    """Registered account (donor, beneficiary or admin)."""

    email: str = Field(..., description="User email address")
    password: Optional[str] = Field(None, description="bcrypt password hash")
    name: str = Field(..., min_length=1, max_length=200, description="Display name")
    type: UserType = Field(default=UserType.INDIVIDUAL, description="Account role")
    organization: Optional[str] = Field(None, max_length=200)
    license_id: Optional[str] = Field(None, description="Food business or NGO license")
    location: Optional[str] = Field(None, description="Free-form address")
    lat: Optional[float] = Field(None, ge=-90, le=90)
    lng: Optional[float] = Field(None, ge=-180, le=180)
    phone: Optional[str] = None
    device_token: Optional[str] = Field(None, description="Firebase registration token")
    eco_points: int = Field(default=0, ge=0, description="Gamification balance")
    email_notifications: bool = True
    sms_notifications: bool = True
    reset_token: Optional[str] = Field(None, description="sha256 of the password reset token")
    reset_token_expiry: Optional[datetime] = None

    @field_validator('email')
    @classmethod
    def validate_email(cls, v):
        """Validate email format."""
        if not re.match(EMAIL_PATTERN, v.lower()):
            raise ValueError('Invalid email format')
        return v.lower()

    @field_validator('name')
    @classmethod
    def validate_name(cls, v):
        """Validate user name."""
        if not v.strip():
            raise ValueError('User name cannot be empty')
        return v.strip()

    def to_public_dict(self) -> Dict[str, Any]:
        """Serialize the user for API responses (never includes secrets)."""
        data = self.model_dump(
            by_alias=True,
            exclude={"password", "reset_token", "reset_token_expiry"}
        )
        data["createdAt"] = self.created_at.isoformat()
        data["updatedAt"] = self.updated_at.isoformat()
        return data


USER_SECRET_FIELDS = ("password", "resetToken", "resetTokenExpiry")


def public_user_document(document: Optional[Dict[str, Any]]) -> Optional[Dict[str, Any]]:
    """Copy of a stored user document without password or reset token."""
    if document is None:
        return None
    return {key: value for key, value in document.items() if key not in USER_SECRET_FIELDS}


class Donation(BaseEntity):
    """Listed surplus-food item; lifecycle rules live in ``domain.donations``."""

    donor_id: str = Field(default="anonymous", description="Donor user ID")
    status: DonationStatus = Field(default=DonationStatus.AVAILABLE)
    expiry: Optional[datetime] = Field(None, description="Best-before time")
    claimed_by_id: Optional[str] = None
    ai_food_type: str = Field(default="Food")
    ai_quality_score: int = Field(default=85, ge=0, le=100)
    image_url: Optional[str] = None
    description: str = Field(default="Food donation", max_length=2000)
    quantity: str = Field(default="1 piece", max_length=100)
    lat: float = Field(default=31.5204, ge=-90, le=90)
    lng: float = Field(default=74.3587, ge=-180, le=180)
    sender_confirmed: bool = False
    receiver_confirmed: bool = False
    expiry_alert_sent: bool = False

    @field_validator('description', 'quantity', 'ai_food_type')
    @classmethod
    def strip_text(cls, v):
        return v.strip() if isinstance(v, str) else v

    @model_validator(mode='after')
    def validate_claim_consistency(self):
        """A donation awaiting pickup must know who claimed it."""
        if self.status == DonationStatus.PENDING_PICKUP.value and not self.claimed_by_id:
            raise ValueError('claimed_by_id is required when status is Pending Pickup')
        return self


class FoodRequest(BaseEntity):
    """Beneficiary request for a kind of food, with generated outreach drafts."""

    requester_id: str
    food_type: str = Field(..., min_length=1, max_length=100)
    quantity: str = Field(..., min_length=1, max_length=100)
    ai_drafts: List[str] = Field(default_factory=list)

    @field_validator('food_type', 'quantity')
    @classmethod
    def validate_not_blank(cls, v):
        if not v.strip():
            raise ValueError('Value cannot be empty')
        return v.strip()


class Voucher(BaseEntity):
    """Partner discount redeemable by users with enough EcoPoints."""

    code: str = Field(..., min_length=3, max_length=50)
    title: str = Field(..., min_length=1, max_length=200)
    description: Optional[str] = Field(None, max_length=1000)
    discount_type: DiscountType = DiscountType.PERCENTAGE
    discount_value: float = Field(..., gt=0)
    min_eco_points: int = Field(default=0, ge=0)
    max_redemptions: int = Field(default=100, ge=1)
    current_redemptions: int = Field(default=0, ge=0)
    status: VoucherStatus = VoucherStatus.ACTIVE
    expiry_date: Optional[datetime] = None

    @field_validator('code')
    @classmethod
    def normalize_code(cls, v):
        """Voucher codes are stored upper-case without spaces."""
        code = v.strip().upper()
        if not re.match(r'^[A-Z0-9_-]+$', code):
            raise ValueError('Voucher code must contain only letters, numbers, dashes and underscores')
        return code

    @model_validator(mode='after')
    def validate_discount(self):
        if self.discount_type == DiscountType.PERCENTAGE.value and self.discount_value > 100:
            raise ValueError('Percentage discount cannot exceed 100')
        return self


class VoucherRedemption(BaseEntity):
    voucher_id: str
    user_id: str
    redeemed_at: datetime = Field(default_factory=datetime.utcnow)


class FinancialTransaction(BaseEntity):
    """Ledger entry moving money into or out of the community fund."""

    type: TransactionType
    amount: float = Field(..., gt=0)
    user_id: Optional[str] = None
    donation_id: Optional[str] = None
    category: str = Field(default="general")
    description: Optional[str] = Field(None, max_length=500)
    status: str = Field(default="completed")


class AdminLog(BaseEntity):
    """Record of an administrative action."""

    admin_id: str
    action: str = Field(..., min_length=1, max_length=100)
    target_type: Optional[str] = None
    target_id: Optional[str] = None
    details: Optional[str] = None


class Banner(BaseEntity):
    """Sponsor banner shown on dashboards, optionally time-boxed."""

    name: str = Field(..., min_length=1, max_length=200)
    type: str = Field(default="image")
    image_url: Optional[str] = None
    logo_url: Optional[str] = None
    content: Optional[str] = None
    description: Optional[str] = None
    background_color: Optional[str] = None
    link: Optional[str] = None
    active: bool = True
    placement: str = Field(default="dashboard")
    impressions: int = 0
    clicks: int = 0
    duration_minutes: Optional[int] = Field(None, gt=0)
    started_at: Optional[datetime] = None
    expires_at: Optional[datetime] = None
    owner_id: Optional[str] = None
    display_order: int = 0
    target_dashboards: List[str] = Field(default_factory=lambda: ["all"])

    @field_validator('background_color')
    @classmethod
    def validate_color(cls, v):
        """Validate color format."""
        if v is None:
            return v
        if not re.match(r'^#[0-9A-Fa-f]{6}$', v):
            raise ValueError('Color must be a valid hex color code')
        return v

    def start_timer(self, now: Optional[datetime] = None) -> None:
        """Start the display window if the banner is timed and not started yet."""
        if not self.duration_minutes or not self.active or self.started_at:
            return
        now = now or datetime.utcnow()
        self.started_at = now
        self.expires_at = now + timedelta(minutes=self.duration_minutes)


class AdRedemption(BaseEntity):
    """EcoPoints exchanged for banner placement, pending admin review."""

    user_id: str
    package_id: str
    points_cost: int = Field(..., gt=0)
    duration_minutes: int = Field(..., gt=0)
    banner_data: Dict[str, Any] = Field(default_factory=dict)
    status: ReviewStatus = ReviewStatus.PENDING
    banner_id: Optional[str] = None
    rejection_reason: Optional[str] = None
    approved_at: Optional[datetime] = None
    rejected_at: Optional[datetime] = None

    def can_review(self) -> bool:
        return self.status == ReviewStatus.PENDING.value

    def approve(self, banner_id: Optional[str]) -> None:
        if not self.can_review():
            raise ValueError('Redemption request already processed')
        self.status = ReviewStatus.APPROVED
        self.banner_id = banner_id
        self.approved_at = datetime.utcnow()
        self.update_timestamp()

    def reject(self, reason: str) -> None:
        if not self.can_review():
            raise ValueError('Redemption request already processed')
        self.status = ReviewStatus.REJECTED
        self.rejection_reason = reason
        self.rejected_at = datetime.utcnow()
        self.update_timestamp()


class InAppNotification(BaseEntity):
    """Notification record shown in the user's inbox."""

    user_id: str
    type: str
    title: str = Field(..., min_length=1, max_length=200)
    message: str = Field(..., min_length=1, max_length=2000)
    read: bool = False


class MoneyDonation(BaseEntity):
    """Cash contribution from an individual to the community fund."""

    donor_id: str
    donor_role: str = Field(default=UserType.INDIVIDUAL.value)
    amount: float = Field(..., gt=0)
    payment_method: str = Field(default="stripe")
    transaction_id: Optional[str] = None
    status: PaymentStatus = PaymentStatus.PENDING
    proof_image: Optional[str] = None
    account_used: Optional[str] = None
    notes: Optional[str] = None
    verified_by: Optional[str] = None
    verified_at: Optional[datetime] = None
    rejection_reason: Optional[str] = None

    def can_verify(self) -> bool:
        return self.status == PaymentStatus.PENDING.value

    def verify(self, admin_id: Optional[str] = None) -> None:
        if not self.can_verify():
            raise ValueError('Payment already processed')
        self.status = PaymentStatus.COMPLETED
        self.verified_by = admin_id
        self.verified_at = datetime.utcnow()
        self.update_timestamp()

    def reject(self, admin_id: str, reason: str) -> None:
        if not self.can_verify():
            raise ValueError('Payment already processed')
        self.status = PaymentStatus.FAILED
        self.verified_by = admin_id
        self.verified_at = datetime.utcnow()
        self.rejection_reason = reason
        self.update_timestamp()


class MoneyRequest(BaseEntity):
    """Funding request from a beneficiary organization."""

    requester_id: str
    requester_role: str
    amount: float = Field(..., gt=0)
    purpose: str = Field(default="Logistics funding", max_length=500)
    distance: Optional[float] = Field(None, ge=0)
    transport_rate: Optional[float] = Field(None, ge=0)
    status: ReviewStatus = ReviewStatus.PENDING
    rejection_reason: Optional[str] = None
    reviewed_at: Optional[datetime] = None
    reviewed_by: Optional[str] = None

    @field_validator('requester_role')
    @classmethod
    def validate_role(cls, v):
        if v not in BENEFICIARY_TYPES:
            raise ValueError('Only NGOs, shelters, and fertilizer companies can request money')
        return v

    @model_validator(mode='after')
    def validate_review_fields(self):
        if self.status == ReviewStatus.REJECTED.value and not self.rejection_reason:
            raise ValueError('Rejection reason is required when status is rejected')
        return self

    def can_review(self) -> bool:
        return self.status == ReviewStatus.PENDING.value

    def approve(self, admin_id: str) -> None:
        if not self.can_review():
            raise ValueError('Request already processed')
        self.status = ReviewStatus.APPROVED
        self.reviewed_by = admin_id
        self.reviewed_at = datetime.utcnow()
        self.update_timestamp()

    def reject(self, admin_id: str, reason: str) -> None:
        if not self.can_review():
            raise ValueError('Request already processed')
        self.rejection_reason = reason
        self.status = ReviewStatus.REJECTED
        self.reviewed_by = admin_id
        self.reviewed_at = datetime.utcnow()
        self.update_timestamp()


class BankAccount(BaseEntity):
    """Payout account of a beneficiary organization."""

    user_id: str
    account_holder_name: str = Field(..., min_length=1, max_length=200)
    bank_name: str = Field(..., min_length=1, max_length=200)
    account_number: str = Field(..., min_length=4, max_length=34)
    iban: Optional[str] = Field(None, max_length=34)
    branch_code: Optional[str] = None
    account_type: str = Field(default="savings")
    is_default: bool = False
    is_verified: bool = False
    status: str = Field(default="active")

    @field_validator('account_holder_name', 'bank_name', 'account_number')
    @classmethod
    def validate_not_blank(cls, v):
        if not v.strip():
            raise ValueError('Value cannot be empty')
        return v.strip()


class UserContext(BaseModel):
    """User context for request processing with authentication and authorization data."""

    user_id: str = Field(..., description="Authenticated user ID")
    email: Optional[str] = Field(None, description="User email")
    user_type: str = Field(default=UserType.INDIVIDUAL.value, description="Account role")
    permissions: List[str] = Field(default_factory=list, description="User's effective permissions")
    token_payload: Optional[Dict[str, Any]] = Field(None, description="Original JWT payload")
    ip_address: Optional[str] = Field(None, description="Client IP address")
    user_agent: Optional[str] = Field(None, description="Client user agent")

    model_config = ConfigDict(
        use_enum_values=True
    )

    def is_admin(self) -> bool:
        return self.user_type == UserType.ADMIN.value
