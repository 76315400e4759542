"""
Health Check Service

Dependency and host status for ``/api/healthz`` and ``/api/status``.
MongoDB is required; Redis is optional, so a missing Redis is healthy and a
configured but failing one only degrades the service.
"""

import os
import time
import psutil
from datetime import datetime
from typing import Dict, Any, Optional, Callable
from opentelemetry import trace

from services.mongodb import MongoDBService
from services.redis import RedisService

tracer = trace.get_tracer(__name__)

SERVICE_NAME = "ecobite-api"
SERVICE_VERSION = "1.0.0"
MB = 1024 * 1024
GB = MB * 1024


def _now() -> str:
    return datetime.utcnow().isoformat() + "Z"


def _timed(probe: Callable[[], Dict[str, Any]]) -> Dict[str, Any]:
    started = time.time()
    result = dict(probe())
    result.setdefault("response_time_ms", round((time.time() - started) * 1000, 2))
    result["last_check"] = _now()
    return result


class HealthCheckService:

    def __init__(self, mongodb_service: MongoDBService, redis_service: RedisService,
                 integrations: Optional[Dict[str, Any]] = None):
        """
        Args:
            mongodb_service: Primary data store
            redis_service: Optional cache
            integrations: Name to service mapping; each exposes ``is_configured()``
        """
        self.mongodb_service = mongodb_service
        self.redis_service = redis_service
        self.integrations = integrations or {}

    def get_comprehensive_health(self) -> Dict[str, Any]:
        with tracer.start_as_current_span("health.comprehensive_check") as span:
            started = time.time()
            dependencies = {
                "mongodb": _timed(self.mongodb_service.health_check),
                "redis": self._check_redis_health(),
            }
            status = self._determine_overall_status(dependencies["mongodb"]["status"],
                                                    dependencies["redis"]["status"])
            response_time_ms = round((time.time() - started) * 1000, 2)

            span.set_attributes({
                "health.overall_status": status,
                "health.response_time_ms": response_time_ms,
                **{f"health.{name}_status": result["status"] for name, result in dependencies.items()}
            })

            return {
                "status": status,
                "service": SERVICE_NAME,
                "version": SERVICE_VERSION,
                "environment": os.getenv('ENVIRONMENT', 'development'),
                "timestamp": _now(),
                "response_time_ms": response_time_ms,
                "dependencies": dependencies,
                "integrations": self.get_integration_status(),
                "system_metrics": self.get_system_metrics()
            }

    def _check_redis_health(self) -> Dict[str, Any]:
        if not self.redis_service.is_available():
            return {"status": "not_configured", "last_check": _now()}
        return _timed(self.redis_service.health_check)

    def get_integration_status(self) -> Dict[str, bool]:
        """Whether each third-party integration has credentials."""
        return {name: bool(service.is_configured()) for name, service in self.integrations.items()}

    def get_system_metrics(self) -> Dict[str, Any]:
        try:
            memory = psutil.virtual_memory()
            disk = psutil.disk_usage('/')
            cpu_percent = psutil.cpu_percent(interval=0.1)
        except (OSError, RuntimeError) as e:
            return {"error": f"Failed to collect system metrics: {str(e)}"}

        return {
            "cpu_percent": cpu_percent,
            "memory": {
                "used_mb": round(memory.used / MB, 2),
                "total_mb": round(memory.total / MB, 2),
                "percent": memory.percent
            },
            "disk": {
                "used_gb": round(disk.used / GB, 2),
                "total_gb": round(disk.total / GB, 2),
                "percent": round(disk.used / disk.total * 100, 2)
            },
            "load_average": list(os.getloadavg()) if hasattr(os, 'getloadavg') else None
        }

    def get_uptime(self) -> Dict[str, Any]:
        try:
            started = psutil.Process(os.getpid()).create_time()
        except psutil.Error as e:
            return {"error": f"Failed to get uptime: {str(e)}"}
        return {
            "uptime_seconds": round(time.time() - started, 2),
            "started_at": datetime.utcfromtimestamp(started).isoformat() + "Z",
            "process_id": os.getpid()
        }

    def get_configuration_status(self) -> Dict[str, Any]:
        """Which settings are present, never their values."""
        return {
            "mongodb_uri_configured": bool(os.getenv('MONGODB_URI')),
            "redis_configured": bool(os.getenv('REDIS_URL')),
            "jwt_secret_configured": bool(os.getenv('JWT_SECRET') or os.getenv('JWT_PRIVATE_KEY')),
            "cron_secret_configured": bool(os.getenv('CRON_SECRET')),
            "environment": os.getenv('ENVIRONMENT', 'development')
        }

    @staticmethod
    def _determine_overall_status(mongodb_status: str, redis_status: str) -> str:
        if mongodb_status != "healthy":
            return "unhealthy"
        if redis_status in ("healthy", "not_configured"):
            return "healthy"
        return "degraded"
