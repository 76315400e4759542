# -*- coding: utf-8 -*-
# SPDX-License-Identifier: Apache-2.0

"""
Pytest configuration and fixtures.

Endpoint tests run against the real Flask app with every external service
replaced by a ``MagicMock``; tokens are real HS256 JWTs so the auth
middleware is exercised end to end.
"""

import os
import pytest
from datetime import datetime
from unittest.mock import patch, MagicMock
from bson import ObjectId

# Set test environment before the app is imported
os.environ['ENVIRONMENT'] = 'test'
os.environ['OTEL_ENABLED'] = 'false'
os.environ['JWT_SECRET'] = 'test-secret-key'
os.environ['CRON_SECRET'] = 'test-cron-secret'
os.environ['MONGODB_URI'] = 'mongodb://localhost:27017/ecobite_test'
os.environ.pop('REDIS_URL', None)
os.environ.pop('STRIPE_SECRET_KEY', None)
os.environ.pop('CLOUDINARY_CLOUD_NAME', None)

from app import app as flask_app  # noqa: E402
from models.entities import User  # noqa: E402

PATCHED_SERVICES = (
    "mongodb_service",
    "redis_service",
    "notification_service",
    "finance_service",
    "audit_service",
    "payment_service",
    "image_storage_service",
    "vision_service",
    "email_service",
)


@pytest.fixture
def app():
    flask_app.config['TESTING'] = True
    return flask_app


@pytest.fixture
def client(app):
    with app.test_client() as client:
        yield client


@pytest.fixture
def services(app):
    """Replace the app's external services with mocks."""
    mocks = {name: MagicMock(name=name) for name in PATCHED_SERVICES}

    mongo = mocks["mongodb_service"]
    mongo.find.return_value = []
    mongo.find_by_id.return_value = None
    mongo.find_one.return_value = None
    mongo.find_by_ids.return_value = {}
    mongo.aggregate.return_value = []
    mongo.count.return_value = 0
    mongo.update_by_id.return_value = True
    mongo.update_many.return_value = 0
    mongo.delete_by_id.return_value = True
    mongo.create.side_effect = lambda collection, document, user_id=None: document.get("id") or str(ObjectId())

    mocks["redis_service"].is_available.return_value = False
    mocks["redis_service"].get_cached_leaderboard.return_value = None
    mocks["image_storage_service"].is_configured.return_value = False
    mocks["image_storage_service"].store_or_passthrough.side_effect = lambda image_url, folder=None: image_url
    mocks["payment_service"].is_configured.return_value = False
    mocks["notification_service"].notify_admins.return_value = {"sent": 1, "failed": 0}

    patchers = [patch.object(app, name, mock) for name, mock in mocks.items()]
    for patcher in patchers:
        patcher.start()
    yield mocks
    for patcher in patchers:
        patcher.stop()


@pytest.fixture
def mongo(services):
    return services["mongodb_service"]


def make_user(user_type: str = "individual", **overrides) -> dict:
    """Stored user document as the MongoDB service returns it."""
    user_id = overrides.pop("id", str(ObjectId()))
    document = {
        "id": user_id,
        "email": f"{user_type}-{user_id[-6:]}@example.com",
        "name": f"Test {user_type.title()}",
        "type": user_type,
        "organization": None,
        "ecoPoints": 0,
        "emailNotifications": True,
        "smsNotifications": True,
        "createdAt": datetime(2025, 1, 1),
        "updatedAt": datetime(2025, 1, 1)
    }
    document.update(overrides)
    return document


def bearer(app, user: dict) -> dict:
    """Authorization header carrying a real token for ``user``."""
    token = app.auth_service.generate_token(User(
        id=user["id"], email=user["email"], name=user["name"], type=user["type"]
    ))["token"]
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
def individual():
    return make_user("individual", ecoPoints=120)


@pytest.fixture
def ngo():
    return make_user("ngo", organization="Food Bank Lahore", lat=31.52, lng=74.35)


@pytest.fixture
def admin():
    return make_user("admin", ecoPoints=5000)


@pytest.fixture
def individual_headers(app, individual):
    return bearer(app, individual)


@pytest.fixture
def ngo_headers(app, ngo):
    return bearer(app, ngo)


@pytest.fixture
def admin_headers(app, admin):
    return bearer(app, admin)


@pytest.fixture
def stored(mongo):
    """Documents served by ``find_by_id``, keyed by ``(collection, id)``."""
    documents = {}

    def find_by_id(collection, document_id):
        return documents.get((collection, document_id))

    mongo.find_by_id.side_effect = find_by_id
    return documents


@pytest.fixture
def persisted(mongo, stored):
    """Documents passed to ``create`` become readable through ``find_by_id``."""
    def create(collection, document, user_id=None):
        stored[(collection, document["id"])] = document
        return document["id"]

    mongo.create.side_effect = create
    return stored
