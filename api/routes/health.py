"""
Liveness and status endpoints for load balancers and operators.
"""

from datetime import datetime
from flask import jsonify, current_app
from flask_openapi3 import APIBlueprint, Tag
import logging

from services.health import SERVICE_NAME, SERVICE_VERSION

logger = logging.getLogger(__name__)

health_tag = Tag(name="Health", description="System health and status")
health_bp = APIBlueprint('health', __name__, url_prefix='/api', abp_tags=[health_tag])


@health_bp.get('/healthz')
def health_check():
    """Dependency health; 503 when MongoDB is unreachable."""
    try:
        health_data = current_app.health_service.get_comprehensive_health()
    except Exception as e:
        logger.error(f"Health check failed: {str(e)}", exc_info=True)
        health_data = {
            "status": "unhealthy",
            "service": SERVICE_NAME,
            "version": SERVICE_VERSION,
            "environment": current_app.config['ENVIRONMENT'],
            "timestamp": datetime.utcnow().isoformat() + "Z",
            "error": f"Health check service failed: {str(e)}"
        }

    return jsonify(health_data), 503 if health_data["status"] == "unhealthy" else 200


@health_bp.get('/status')
def system_status():
    health = current_app.health_service
    config = current_app.config
    return jsonify({
        "service": SERVICE_NAME,
        "version": SERVICE_VERSION,
        "environment": config['ENVIRONMENT'],
        "timestamp": datetime.utcnow().isoformat() + "Z",
        "uptime": health.get_uptime(),
        "configuration": health.get_configuration_status(),
        "integrations": health.get_integration_status(),
        "feature_flags": {
            "docs_enabled": config.get('DOCS_ENABLED', False),
            "otel_enabled": config.get('OTEL_ENABLED', True),
            "debug_mode": config.get('DEBUG', False)
        },
        "system_metrics": health.get_system_metrics()
    })
