# -*- coding: utf-8 -*-
# SPDX-License-Identifier: Apache-2.0

"""
Request models for API endpoints.

Payloads arrive camelCase (``claimedById``) and are exposed snake_case.
"""

import re
from datetime import datetime, timezone
from typing import List, Optional, Dict, Any, Literal
from pydantic import BaseModel, Field, ConfigDict, field_validator
from pydantic.alias_generators import to_camel
from .enums import (
    UserType, DonationStatus, DiscountType, VoucherStatus,
    TransactionType, ReviewStatus
)

EMAIL_PATTERN = r'^[a-zA-Z0-9._%+-]+@[a-zA-Z0-9.-]+\.[a-zA-Z]{2,}$'
MIN_PASSWORD_LENGTH = 6


class RequestModel(BaseModel):
    """Base for JSON request bodies."""

    model_config = ConfigDict(
        populate_by_name=True,
        use_enum_values=True,
        alias_generator=to_camel,
        str_strip_whitespace=True
    )


def _validate_email(v: str) -> str:
    if not re.match(EMAIL_PATTERN, v.lower()):
        raise ValueError('Invalid email format')
    return v.lower()


def _validate_password(v: str) -> str:
    if len(v) < MIN_PASSWORD_LENGTH:
        raise ValueError(f'Password must be at least {MIN_PASSWORD_LENGTH} characters long')
    return v


def _naive_utc(v: Optional[datetime]) -> Optional[datetime]:
    """Stored datetimes are naive UTC."""
    if v is not None and v.tzinfo is not None:
        return v.astimezone(timezone.utc).replace(tzinfo=None)
    return v


def _donation_status(v):
    if isinstance(v, str) and v.lower() == DonationStatus.AVAILABLE.value:
        return DonationStatus.AVAILABLE.value
    return v


class RegisterRequest(RequestModel):
    """Request model for account registration."""

    email: str = Field(..., description="User email address")
    password: str = Field(..., description="Plain text password")
    name: str = Field(..., min_length=1, max_length=200, description="Display name")
    type: UserType = Field(default=UserType.INDIVIDUAL, description="Account role")
    organization: Optional[str] = Field(None, max_length=200)
    license_id: Optional[str] = None
    location: Optional[str] = None
    lat: Optional[float] = Field(None, ge=-90, le=90)
    lng: Optional[float] = Field(None, ge=-180, le=180)
    phone: Optional[str] = None

    @field_validator('email')
    @classmethod
    def validate_email(cls, v):
        return _validate_email(v)

    @field_validator('password')
    @classmethod
    def validate_password(cls, v):
        return _validate_password(v)

    @field_validator('type')
    @classmethod
    def validate_type(cls, v):
        """Admins are seeded, never self-registered."""
        if v == UserType.ADMIN:
            raise ValueError('Cannot self-register as admin')
        return v


class LoginRequest(RequestModel):
    """Request model for user login."""

    email: str = Field(..., description="User email address")
    password: str = Field(..., min_length=1, description="User password")

    @field_validator('email')
    @classmethod
    def validate_email(cls, v):
        return v.lower()


class ForgotPasswordRequest(RequestModel):
    email: str

    @field_validator('email')
    @classmethod
    def validate_email(cls, v):
        return _validate_email(v)


class ResetPasswordRequest(RequestModel):
    token: str = Field(..., min_length=1)
    new_password: str

    @field_validator('new_password')
    @classmethod
    def validate_password(cls, v):
        return _validate_password(v)


class ChangePasswordRequest(RequestModel):
    """Request model for changing password."""

    current_password: str = Field(..., min_length=1, description="Current password")
    new_password: str = Field(..., description="New password")

    @field_validator('new_password')
    @classmethod
    def validate_password(cls, v):
        return _validate_password(v)


class UpdateUserRequest(RequestModel):
    """Profile changes; ``type`` and ``eco_points`` are admin-only."""

    name: Optional[str] = Field(None, min_length=1, max_length=200)
    organization: Optional[str] = Field(None, max_length=200)
    location: Optional[str] = None
    lat: Optional[float] = Field(None, ge=-90, le=90)
    lng: Optional[float] = Field(None, ge=-180, le=180)
    phone: Optional[str] = None
    device_token: Optional[str] = None
    email_notifications: Optional[bool] = None
    sms_notifications: Optional[bool] = None
    type: Optional[UserType] = None
    eco_points: Optional[int] = Field(None, ge=0)


class AddPointsRequest(RequestModel):
    points: int = Field(..., gt=0, description="EcoPoints to add")


class CreateDonationRequest(RequestModel):
    """Request model for listing a donation; every field has a default."""

    donor_id: Optional[str] = None
    status: DonationStatus = DonationStatus.AVAILABLE
    expiry: Optional[datetime] = None
    ai_food_type: str = Field(default="Food", max_length=100)
    ai_quality_score: int = Field(default=85, ge=0, le=100)
    image_url: Optional[str] = None
    description: str = Field(default="Food donation", max_length=2000)
    quantity: str = Field(default="1 piece", max_length=100)
    lat: float = Field(default=31.5204, ge=-90, le=90)
    lng: float = Field(default=74.3587, ge=-180, le=180)

    @field_validator('status', mode='before')
    @classmethod
    def normalize_status(cls, v):
        return _donation_status(v) or DonationStatus.AVAILABLE.value

    @field_validator('expiry')
    @classmethod
    def normalize_expiry(cls, v):
        return _naive_utc(v)


class UpdateDonationRequest(RequestModel):
    status: Optional[DonationStatus] = None
    claimed_by_id: Optional[str] = None

    @field_validator('status', mode='before')
    @classmethod
    def normalize_status(cls, v):
        return _donation_status(v)


class SafetyTipQuery(RequestModel):
    food_type: Optional[str] = None


class AnalyzeImageRequest(RequestModel):
    image_url: str = Field(..., min_length=1)


class ImpactStoryRequest(RequestModel):
    stats: Dict[str, Any]


class WelcomeMessageRequest(RequestModel):
    name: str = Field(..., min_length=1)
    role: str = Field(default=UserType.INDIVIDUAL.value)


class CreateFoodRequestRequest(RequestModel):
    requester_id: Optional[str] = None
    food_type: str = Field(..., min_length=1, max_length=100)
    quantity: str = Field(..., min_length=1, max_length=100)


class UpdateFoodRequestRequest(RequestModel):
    food_type: Optional[str] = Field(None, min_length=1, max_length=100)
    quantity: Optional[str] = Field(None, min_length=1, max_length=100)


class CreateVoucherRequest(RequestModel):
    code: str = Field(..., min_length=3, max_length=50)
    title: str = Field(..., min_length=1, max_length=200)
    description: Optional[str] = Field(None, max_length=1000)
    discount_type: DiscountType = DiscountType.PERCENTAGE
    discount_value: float = Field(..., gt=0)
    min_eco_points: int = Field(default=0, ge=0)
    max_redemptions: int = Field(default=100, ge=1)
    expiry_date: Optional[datetime] = None

    @field_validator('expiry_date')
    @classmethod
    def normalize_expiry(cls, v):
        return _naive_utc(v)


class UpdateVoucherRequest(RequestModel):
    title: Optional[str] = Field(None, min_length=1, max_length=200)
    description: Optional[str] = Field(None, max_length=1000)
    discount_type: Optional[DiscountType] = None
    discount_value: Optional[float] = Field(None, gt=0)
    min_eco_points: Optional[int] = Field(None, ge=0)
    max_redemptions: Optional[int] = Field(None, ge=1)
    expiry_date: Optional[datetime] = None

    @field_validator('expiry_date')
    @classmethod
    def normalize_expiry(cls, v):
        return _naive_utc(v)


class VoucherStatusRequest(RequestModel):
    status: VoucherStatus


class RedeemVoucherRequest(RequestModel):
    user_id: str = Field(..., min_length=1)


class FundDonationRequest(RequestModel):
    amount: float = Field(..., gt=0)
    user_id: Optional[str] = None
    donation_id: Optional[str] = None
    category: str = Field(default="general")
    description: Optional[str] = Field(None, max_length=500)


class WithdrawalRequest(RequestModel):
    amount: float = Field(..., gt=0)
    category: str = Field(..., min_length=1)
    description: Optional[str] = Field(None, max_length=500)
    user_id: Optional[str] = None


class CreateMoneyRequestRequest(RequestModel):
    user_id: str = Field(..., min_length=1)
    amount: float
    purpose: Optional[str] = Field(None, max_length=500)
    distance: Optional[float] = Field(None, ge=0)
    transport_rate: Optional[float] = Field(None, ge=0)


class ReviewRequest(RequestModel):
    """Approve or reject payload shared by moderation endpoints."""

    reason: Optional[str] = Field(None, max_length=500)
    banner_id: Optional[str] = None


class BankAccountRequest(RequestModel):
    user_id: str = Field(..., min_length=1)
    account_holder_name: Optional[str] = None
    bank_name: Optional[str] = None
    account_number: Optional[str] = None
    iban: Optional[str] = None
    branch_code: Optional[str] = None
    account_type: str = Field(default="savings")
    is_default: bool = False


class UpdateBankAccountRequest(RequestModel):
    account_holder_name: Optional[str] = None
    bank_name: Optional[str] = None
    account_number: Optional[str] = None
    iban: Optional[str] = None
    branch_code: Optional[str] = None
    account_type: Optional[str] = None
    is_default: Optional[bool] = None


class AdminLogRequest(RequestModel):
    admin_id: Optional[str] = None
    action: str = Field(..., min_length=1, max_length=100)
    target_type: Optional[str] = None
    target_id: Optional[str] = None
    details: Optional[str] = None


class BannerRequest(RequestModel):
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
    duration_minutes: Optional[int] = Field(None, gt=0)
    owner_id: Optional[str] = None
    display_order: int = 0
    target_dashboards: List[str] = Field(default_factory=lambda: ["all"])


class UpdateBannerRequest(RequestModel):
    name: Optional[str] = Field(None, min_length=1, max_length=200)
    image_url: Optional[str] = None
    logo_url: Optional[str] = None
    content: Optional[str] = None
    description: Optional[str] = None
    background_color: Optional[str] = None
    link: Optional[str] = None
    active: Optional[bool] = None
    placement: Optional[str] = None
    duration_minutes: Optional[int] = Field(None, gt=0)
    display_order: Optional[int] = None
    target_dashboards: Optional[List[str]] = None


class AdRedemptionRequest(RequestModel):
    user_id: str = Field(..., min_length=1)
    package_id: str = Field(..., min_length=1)
    banner_data: Dict[str, Any] = Field(default_factory=dict)


class CheckoutRequest(RequestModel):
    amount: float = Field(..., gt=0)
    user_id: str = Field(..., min_length=1)
    currency: str = Field(default="pkr", min_length=3, max_length=3)
    donation_type: str = Field(default="money_donation")
    success_url: Optional[str] = None
    cancel_url: Optional[str] = None


class VerifyPaymentRequest(RequestModel):
    """``session_id`` is a Checkout Session id or a PaymentIntent id."""

    session_id: str = Field(..., min_length=1)
    user_id: str = Field(..., min_length=1)
    amount: float = Field(..., gt=0)
    payment_method: str = Field(default="stripe")


class EmailRequest(RequestModel):
    to: str
    subject: str = Field(..., min_length=1, max_length=200)
    message: str = Field(..., min_length=1)

    @field_validator('to')
    @classmethod
    def validate_email(cls, v):
        return _validate_email(v)


class BulkEmailRequest(RequestModel):
    recipients: List[str] = Field(..., min_length=1)
    subject: str = Field(..., min_length=1, max_length=200)
    message: str = Field(..., min_length=1)


class TestEmailRequest(RequestModel):
    email: str

    @field_validator('email')
    @classmethod
    def validate_email(cls, v):
        return _validate_email(v)


class ManualPaymentRequest(RequestModel):
    """Form fields sent with a manual payment proof upload."""

    user_id: str = Field(..., min_length=1)
    amount: float
    payment_method: str = Field(default="bank_transfer")
    transaction_id: Optional[str] = None
    account_used: Optional[str] = None
    notes: Optional[str] = Field(None, max_length=1000)


class ImageUrlUploadRequest(RequestModel):
    image: str = Field(..., min_length=1, description="data:image/...;base64 payload")
    folder: Optional[str] = None


# Query string filters

class DonationFilters(RequestModel):
    status: Optional[DonationStatus] = None
    donor_id: Optional[str] = None
    claimed_by_id: Optional[str] = None


class FoodRequestFilters(RequestModel):
    requester_id: Optional[str] = None


class FinanceFilters(RequestModel):
    type: Optional[TransactionType] = None
    user_id: Optional[str] = None
    start_date: Optional[datetime] = None
    end_date: Optional[datetime] = None

    @field_validator('start_date', 'end_date')
    @classmethod
    def normalize_dates(cls, v):
        return _naive_utc(v)


class SummaryQuery(RequestModel):
    period: Literal["day", "week", "month", "year"] = "month"


class MoneyRequestFilters(RequestModel):
    status: Optional[ReviewStatus] = None
    user_id: Optional[str] = None


class AdminLogQuery(RequestModel):
    page: int = Field(default=1, ge=1)
    page_size: int = Field(default=20, ge=1, le=100)
    admin_id: Optional[str] = None
    action: Optional[str] = None


class TiersQuery(RequestModel):
    points: int = Field(default=0, ge=0)


class AzureCallbackQuery(RequestModel):
    code: Optional[str] = None
    error: Optional[str] = None
    error_description: Optional[str] = None


# URL path parameters (names match the route variables)

class IdPath(BaseModel):
    id: str = Field(..., description="Resource identifier")


class UserIdPath(BaseModel):
    user_id: str = Field(..., description="User identifier")


class PlacementPath(BaseModel):
    placement: str = Field(..., description="Banner placement")


class PublicIdPath(BaseModel):
    public_id: str = Field(..., description="Image storage public id")


class TokenPath(BaseModel):
    token: str = Field(..., description="Password reset token")
