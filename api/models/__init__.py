# -*- coding: utf-8 -*-
# SPDX-License-Identifier: Apache-2.0

"""
Models package - Pydantic schemas and data models for the EcoBite platform.
"""

# Base models
from .base import BaseEntity, generate_object_id

# Enumerations
from .enums import (
    UserType,
    DonationStatus,
    VoucherStatus,
    DiscountType,
    TransactionType,
    WithdrawalCategory,
    ReviewStatus,
    PaymentStatus,
    NotificationType,
    BENEFICIARY_TYPES,
    FOOD_RECIPIENT_TYPES
)

# Core entities
from .entities import (
    User,
    Donation,
    FoodRequest,
    Voucher,
    VoucherRedemption,
    FinancialTransaction,
    AdminLog,
    Banner,
    AdRedemption,
    InAppNotification,
    MoneyDonation,
    MoneyRequest,
    BankAccount,
    UserContext,
    public_user_document
)

# Request models
from .requests import (
    RequestModel,
    RegisterRequest,
    LoginRequest,
    ForgotPasswordRequest,
    ResetPasswordRequest,
    ChangePasswordRequest,
    UpdateUserRequest,
    AddPointsRequest,
    CreateDonationRequest,
    UpdateDonationRequest,
    SafetyTipQuery,
    AnalyzeImageRequest,
    ImpactStoryRequest,
    WelcomeMessageRequest,
    CreateFoodRequestRequest,
    UpdateFoodRequestRequest,
    CreateVoucherRequest,
    UpdateVoucherRequest,
    VoucherStatusRequest,
    RedeemVoucherRequest,
    FundDonationRequest,
    WithdrawalRequest,
    CreateMoneyRequestRequest,
    ReviewRequest,
    BankAccountRequest,
    UpdateBankAccountRequest,
    AdminLogRequest,
    BannerRequest,
    UpdateBannerRequest,
    AdRedemptionRequest,
    CheckoutRequest,
    VerifyPaymentRequest,
    EmailRequest,
    BulkEmailRequest,
    TestEmailRequest,
    ManualPaymentRequest,
    ImageUrlUploadRequest,
    DonationFilters,
    FoodRequestFilters,
    FinanceFilters,
    SummaryQuery,
    MoneyRequestFilters,
    TiersQuery,
    AdminLogQuery,
    AzureCallbackQuery,
    IdPath,
    UserIdPath,
    PlacementPath,
    PublicIdPath,
    TokenPath
)

__all__ = [
    # Base
    "BaseEntity",
    "generate_object_id",

    # Enums
    "UserType",
    "DonationStatus",
    "VoucherStatus",
    "DiscountType",
    "TransactionType",
    "WithdrawalCategory",
    "ReviewStatus",
    "PaymentStatus",
    "NotificationType",
    "BENEFICIARY_TYPES",
    "FOOD_RECIPIENT_TYPES",

    # Entities
    "User",
    "Donation",
    "FoodRequest",
    "Voucher",
    "VoucherRedemption",
    "FinancialTransaction",
    "AdminLog",
    "Banner",
    "AdRedemption",
    "InAppNotification",
    "MoneyDonation",
    "MoneyRequest",
    "BankAccount",
    "UserContext",
    "public_user_document",

    # Requests
    "RequestModel",
    "RegisterRequest",
    "LoginRequest",
    "ForgotPasswordRequest",
    "ResetPasswordRequest",
    "ChangePasswordRequest",
    "UpdateUserRequest",
    "AddPointsRequest",
    "CreateDonationRequest",
    "UpdateDonationRequest",
    "SafetyTipQuery",
    "AnalyzeImageRequest",
    "ImpactStoryRequest",
    "WelcomeMessageRequest",
    "CreateFoodRequestRequest",
    "UpdateFoodRequestRequest",
    "CreateVoucherRequest",
    "UpdateVoucherRequest",
    "VoucherStatusRequest",
    "RedeemVoucherRequest",
    "FundDonationRequest",
    "WithdrawalRequest",
    "CreateMoneyRequestRequest",
    "ReviewRequest",
    "BankAccountRequest",
    "UpdateBankAccountRequest",
    "AdminLogRequest",
    "BannerRequest",
    "UpdateBannerRequest",
    "AdRedemptionRequest",
    "CheckoutRequest",
    "VerifyPaymentRequest",
    "EmailRequest",
    "BulkEmailRequest",
    "TestEmailRequest",
    "ManualPaymentRequest",
    "ImageUrlUploadRequest",

    # Query and path parameters
    "DonationFilters",
    "FoodRequestFilters",
    "FinanceFilters",
    "SummaryQuery",
    "MoneyRequestFilters",
    "TiersQuery",
    "AdminLogQuery",
    "AzureCallbackQuery",
    "IdPath",
    "UserIdPath",
    "PlacementPath",
    "PublicIdPath",
    "TokenPath",
]
