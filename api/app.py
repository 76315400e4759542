"""
EcoBite API - Flask Application Entry Point

Builds the OpenAPI app, wires MongoDB, Redis and the third-party
integrations onto it and registers the resource blueprints of the
food-donation marketplace. Routes reach services through ``current_app``.
"""

import os
from flask_openapi3 import OpenAPI, Info
from observability.config import setup_observability
from observability.middleware import add_observability_middleware

from middleware.cors import configure_cors
from middleware.error_handler import ErrorHandlerMiddleware, register_custom_error_handlers
from middleware.validation import validation_error_callback
from middleware.auth import AuthMiddleware
from services.hal import create_hal_formatter
from services.mongodb import MongoDBService
from services.redis import RedisService
from services.auth import AuthService
from services.azure_auth import AzureAuthService
from services.audit import AuditService
from services.email import EmailService
from services.sms import SMSService
from services.push import PushService
from services.notifications import NotificationService
from services.finance import FinanceService
from services.image_storage import ImageStorageService
from services.vision import VisionService
from services.payments import PaymentService
from services.health import HealthCheckService, SERVICE_VERSION
from utils.request import EcoBiteJSONProvider


def _flag(name: str, default: str = 'true') -> bool:
    return os.getenv(name, default).lower() == 'true'


setup_observability()

app = OpenAPI(
    __name__,
    info=Info(
        title="EcoBite API",
        version=SERVICE_VERSION,
        description="Food-donation marketplace connecting donors with NGOs, shelters and fertilizer companies"
    ),
    validation_error_status=400,
    validation_error_callback=validation_error_callback
)
app.json = EcoBiteJSONProvider(app)
add_observability_middleware(app)

app.config.update(
    ENVIRONMENT=os.getenv('ENVIRONMENT', 'development'),
    DOCS_ENABLED=_flag('DOCS_ENABLED'),
    OTEL_ENABLED=_flag('OTEL_ENABLED'),
    JWT_SECRET_KEY=os.getenv('JWT_SECRET', ''),
    CRON_SECRET=os.getenv('CRON_SECRET', 'ecobite-secret-cron-key'),
    MONGODB_URI=os.getenv('MONGODB_URI', 'mongodb://localhost:27017/ecobite_dev'),
    REDIS_URL=os.getenv('REDIS_URL', ''),
    REDIS_TOKEN=os.getenv('REDIS_TOKEN', ''),
    BASE_URL=os.getenv('BASE_URL', 'http://localhost:5000'),
    FRONTEND_URL=os.getenv('FRONTEND_URL', 'http://localhost:5173'),
    # Base64 images arrive inside JSON bodies
    MAX_CONTENT_LENGTH=int(os.getenv('MAX_CONTENT_LENGTH', str(15 * 1024 * 1024))),
)
app.config['DEBUG'] = app.config['ENVIRONMENT'] == 'development'

# Services
mongodb_service = MongoDBService(app.config['MONGODB_URI'])
redis_service = RedisService(app.config['REDIS_URL'] or None, app.config['REDIS_TOKEN'] or None)
auth_service = AuthService(app.config['JWT_SECRET_KEY'] or None)
email_service = EmailService(app)
sms_service = SMSService()
push_service = PushService()

integrations = {
    "email": email_service,
    "sms": sms_service,
    "push": push_service,
    "stripe": PaymentService(frontend_url=app.config['FRONTEND_URL']),
    "cloudinary": ImageStorageService(),
    "vision": VisionService(),
    "azure_ad": AzureAuthService(),
}

services = {
    "mongodb_service": mongodb_service,
    "redis_service": redis_service,
    "auth_service": auth_service,
    "azure_auth_service": integrations["azure_ad"],
    "audit_service": AuditService(mongodb_service),
    "email_service": email_service,
    "sms_service": sms_service,
    "push_service": push_service,
    "notification_service": NotificationService(mongodb_service, email_service, sms_service, push_service),
    "finance_service": FinanceService(mongodb_service),
    "image_storage_service": integrations["cloudinary"],
    "vision_service": integrations["vision"],
    "payment_service": integrations["stripe"],
    "health_service": HealthCheckService(mongodb_service, redis_service, integrations),
    "hal_formatter": create_hal_formatter(app.config['BASE_URL']),
    "auth_middleware": AuthMiddleware(auth_service, redis_service),
}
for name, service in services.items():
    setattr(app, name, service)

# Middleware
ErrorHandlerMiddleware(app, app.config['BASE_URL'])
register_custom_error_handlers(app, app.hal_formatter)
configure_cors(app, allow_credentials=True)

# Routes
from routes.health import health_bp  # noqa: E402
from routes.auth import auth_bp  # noqa: E402
from routes.azure_auth import azure_auth_bp  # noqa: E402
from routes.users import users_bp  # noqa: E402
from routes.donations import donations_bp  # noqa: E402
from routes.food_requests import food_requests_bp  # noqa: E402
from routes.vouchers import vouchers_bp  # noqa: E402
from routes.finance import finance_bp  # noqa: E402
from routes.admin import admin_bp  # noqa: E402
from routes.money_requests import money_requests_bp  # noqa: E402
from routes.bank_accounts import bank_accounts_bp  # noqa: E402
from routes.notifications import notifications_bp  # noqa: E402
from routes.images import images_bp  # noqa: E402
from routes.banners import banners_bp  # noqa: E402
from routes.ad_redemptions import ad_redemptions_bp  # noqa: E402
from routes.payment import payment_bp, manual_payment_bp  # noqa: E402
from routes.email import email_bp  # noqa: E402
from routes.cron import cron_bp  # noqa: E402

for blueprint in (
    health_bp,
    auth_bp,
    azure_auth_bp,
    users_bp,
    donations_bp,
    food_requests_bp,
    vouchers_bp,
    finance_bp,
    admin_bp,
    money_requests_bp,
    bank_accounts_bp,
    notifications_bp,
    images_bp,
    banners_bp,
    ad_redemptions_bp,
    payment_bp,
    manual_payment_bp,
    email_bp,
    cron_bp
):
    app.register_api(blueprint)


if __name__ == '__main__':
    app.run(host='0.0.0.0', port=int(os.getenv('PORT', 5000)), debug=app.config['DEBUG'])
