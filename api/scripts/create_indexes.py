#!/usr/bin/env python3
# -*- coding: utf-8 -*-
# SPDX-License-Identifier: Apache-2.0

"""
Prepare a MongoDB database for EcoBite.

Creates the indexes, the fund balance singleton and, unless one exists,
the admin account (``ADMIN_EMAIL``/``ADMIN_PASSWORD``).
"""

import sys
import os
import logging

# Add the parent directory to the path so we can import from api
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from models.entities import User
from models.enums import UserType
from services.auth import AuthService
from services.finance import FinanceService
from services.mongodb import get_mongodb_service, close_mongodb_connection

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)

logger = logging.getLogger(__name__)

DEFAULT_ADMIN_EMAIL = "admin@ecobite.com"
DEFAULT_ADMIN_PASSWORD = "Admin@123"
ADMIN_STARTING_POINTS = 5000


def seed_admin(mongodb_service, auth_service: AuthService) -> None:
    email = os.getenv("ADMIN_EMAIL", DEFAULT_ADMIN_EMAIL).lower()
    if mongodb_service.find_one("users", {"email": email}):
        logger.info(f"Admin account already present: {email}")
        return

    password = os.getenv("ADMIN_PASSWORD")
    if not password:
        logger.warning("ADMIN_PASSWORD not set, seeding the admin with the default password")
        password = DEFAULT_ADMIN_PASSWORD

    admin = User(
        email=email,
        password=auth_service.hash_password(password),
        name="Admin User",
        type=UserType.ADMIN,
        organization="EcoBite Admin",
        eco_points=ADMIN_STARTING_POINTS
    )
    mongodb_service.create("users", dict(admin.to_document(), id=admin.id), "system")
    logger.info(f"Admin account created: {email}")


def main():
    """Create indexes and seed data."""
    try:
        logger.info("Preparing EcoBite database...")

        mongodb_service = get_mongodb_service()

        # Test connection
        health = mongodb_service.health_check()
        if health['status'] != 'healthy':
            logger.error(f"MongoDB is not healthy: {health}")
            sys.exit(1)

        logger.info(f"Connected to MongoDB {health['version']} - Database: {health['database']}")

        mongodb_service.create_indexes()
        FinanceService(mongodb_service).ensure_balance()
        seed_admin(mongodb_service, AuthService())

        logger.info("Database ready")

    except Exception as e:
        logger.error(f"Failed to prepare database: {e}")
        sys.exit(1)
    finally:
        close_mongodb_connection()


if __name__ == "__main__":
    main()
