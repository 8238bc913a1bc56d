# SPDX-License-Identifier: Apache-2.0

"""
Health Check Service

Reports the health of the configured storage backend, the session store and
basic process metrics.
"""

import os
import time
import psutil
from datetime import datetime, timezone
from typing import Dict, Any, Optional
from opentelemetry import trace

from services.mongodb import MongoDBService
from services.redis import RedisService

tracer = trace.get_tracer(__name__)

SERVICE_NAME = "sewa-relief-api"


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat().replace("+00:00", "Z")


class HealthCheckService:
    """Service for dependency health monitoring."""

    def __init__(
        self,
        storage_backend: str,
        mongodb_service: Optional[MongoDBService] = None,
        redis_service: Optional[RedisService] = None,
        attestation_mode: str = "mock"
    ):
        self.storage_backend = storage_backend
        self.mongodb_service = mongodb_service
        self.redis_service = redis_service
        self.attestation_mode = attestation_mode
        self.service_version = "1.0.0"

    def get_comprehensive_health(self) -> Dict[str, Any]:
        """Get health status including dependencies and metrics."""
        with tracer.start_as_current_span("health.comprehensive_check") as span:
            start_time = time.time()

            storage_health = self._check_storage_health()
            session_store_health = self._check_redis_health()

            # The session store is optional; only storage decides availability
            overall_status = storage_health["status"]
            if overall_status == "healthy" and session_store_health["status"] == "unhealthy":
                overall_status = "degraded"

            response_time_ms = round((time.time() - start_time) * 1000, 2)

            health_data = {
                "status": overall_status,
                "service": SERVICE_NAME,
                "version": self.service_version,
                "environment": os.getenv('ENVIRONMENT', 'development'),
                "timestamp": _now_iso(),
                "response_time_ms": response_time_ms,
                "dependencies": {
                    "storage": storage_health,
                    "session_store": session_store_health
                },
                "attestation_mode": self.attestation_mode,
                "system_metrics": self._get_system_metrics()
            }

            span.set_attributes({
                "health.overall_status": overall_status,
                "health.response_time_ms": response_time_ms,
                "health.storage_status": storage_health["status"]
            })

            return health_data

    def _check_storage_health(self) -> Dict[str, Any]:
        """Check the registry/ledger backend."""
        with tracer.start_as_current_span("health.storage_check") as span:
            span.set_attribute("storage.backend", self.storage_backend)

            if self.mongodb_service is None:
                return {
                    "status": "healthy",
                    "backend": self.storage_backend,
                    "last_check": _now_iso()
                }

            start_time = time.time()
            result = self.mongodb_service.health_check()
            result["backend"] = self.storage_backend
            result["response_time_ms"] = round((time.time() - start_time) * 1000, 2)
            result["last_check"] = _now_iso()

            span.set_attribute("storage.status", result["status"])
            return result

    def _check_redis_health(self) -> Dict[str, Any]:
        """Check the Redis session store, if configured."""
        with tracer.start_as_current_span("health.redis_check") as span:
            if self.redis_service is None:
                result = {"status": "unavailable", "message": "Redis not configured"}
            else:
                result = self.redis_service.health_check()

            result["last_check"] = _now_iso()
            span.set_attribute("redis.status", result["status"])
            return result

    def _get_system_metrics(self) -> Dict[str, Any]:
        """Get basic process and system metrics."""
        try:
            process = psutil.Process(os.getpid())
            memory = psutil.virtual_memory()

            return {
                "cpu_percent": psutil.cpu_percent(interval=None),
                "memory": {
                    "process_rss_mb": round(process.memory_info().rss / 1024 / 1024, 2),
                    "system_percent": memory.percent
                },
                "uptime_seconds": round(time.time() - process.create_time(), 2),
                "load_average": list(os.getloadavg()) if hasattr(os, 'getloadavg') else None
            }
        except psutil.Error as e:
            return {
                "error": f"Failed to collect system metrics: {str(e)}"
            }
