# -*- coding: utf-8 -*-
# SPDX-License-Identifier: Apache-2.0

"""
MongoDB and Redis access plus the outbound integrations (mail, SMS, push,
Stripe, Cloudinary, vision, Azure AD).
"""

from .mongodb import MongoDBService, PaginationResult, get_mongodb_service, close_mongodb_connection
from .finance import FinanceService, InsufficientFundsError
from .notifications import NotificationService
from .image_storage import ImageStorageService, ImageStorageError
from .payments import PaymentService, PaymentError

__all__ = [
    "MongoDBService",
    "PaginationResult",
    "get_mongodb_service",
    "close_mongodb_connection",
    "FinanceService",
    "InsufficientFundsError",
    "NotificationService",
    "ImageStorageService",
    "ImageStorageError",
    "PaymentService",
    "PaymentError"
]
