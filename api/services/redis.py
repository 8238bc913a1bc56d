# SPDX-License-Identifier: Apache-2.0

"""
Redis service for volunteer session revocation.

Revoked session ids are kept in Redis with a TTL equal to the remaining
lifetime of the session token, so the blocklist cleans itself up.
"""

import os
import time
from typing import Optional, Dict, Any
import redis
from opentelemetry import trace
import logging

tracer = trace.get_tracer(__name__)
logger = logging.getLogger(__name__)

BLOCKLIST_PREFIX = "sewa:session:revoked:"


class RedisConnectionError(Exception):
    """Raised when Redis connection fails."""
    pass


class RedisService:
    """
    Redis service with the redis-py client.

    When no URL is configured the service is disabled and every operation
    reports failure instead of raising.
    """

    def __init__(self, redis_url: Optional[str] = None, client: Optional[redis.Redis] = None):
        """
        Initialize the Redis service.

        Args:
            redis_url: Redis connection URL (redis://host:port)
            client: Pre-built client, mainly for tests
        """
        self.redis_url = redis_url or os.getenv("REDIS_URL")
        self.client = client

        if self.client is not None:
            return

        if not self.redis_url:
            logger.warning("No REDIS_URL configured, session revocation uses process memory")
            return

        try:
            self.client = redis.from_url(self.redis_url, decode_responses=True)
            self._test_connection()
            logger.info("Redis service initialized successfully")
        except (redis.RedisError, RedisConnectionError) as e:
            logger.error(f"Failed to initialize Redis service: {str(e)}")
            self.client = None

    def _test_connection(self) -> None:
        """Test Redis connection."""
        try:
            if not self.client.ping():
                raise RedisConnectionError("Redis ping failed")
        except redis.RedisError as e:
            raise RedisConnectionError(f"Redis connection failed: {str(e)}")

    def is_available(self) -> bool:
        """Check if Redis service is available."""
        return self.client is not None

    def is_token_blocked(self, token_id: str) -> bool:
        """
        Check whether a session id has been revoked.

        Args:
            token_id: Session identifier (JWT ``jti``)

        Returns:
            True if revoked, False otherwise or when Redis is unreachable
        """
        if not self.is_available():
            return False

        with tracer.start_as_current_span("redis.is_token_blocked") as span:
            span.set_attribute("redis.operation", "exists")
            try:
                blocked = bool(self.client.exists(f"{BLOCKLIST_PREFIX}{token_id}"))
                span.set_attribute("redis.result", "blocked" if blocked else "allowed")
                return blocked
            except redis.RedisError as e:
                span.set_attribute("redis.result", "error")
                logger.error(f"Redis blocklist lookup failed: {str(e)}")
                return False

    def block_token(self, token_id: str, ttl_seconds: int) -> bool:
        """
        Revoke a session id until its token would have expired anyway.

        Args:
            token_id: Session identifier (JWT ``jti``)
            ttl_seconds: Remaining token lifetime

        Returns:
            True if stored (or already expired), False otherwise
        """
        if ttl_seconds <= 0:
            return True
        if not self.is_available():
            return False

        with tracer.start_as_current_span("redis.block_token") as span:
            span.set_attributes({
                "redis.operation": "setex",
                "redis.ttl": ttl_seconds
            })
            try:
                self.client.setex(f"{BLOCKLIST_PREFIX}{token_id}", ttl_seconds, "revoked")
                span.set_attribute("redis.result", "success")
                logger.debug(f"Session revoked in Redis (TTL: {ttl_seconds}s)")
                return True
            except redis.RedisError as e:
                span.set_attribute("redis.result", "error")
                logger.error(f"Redis block_token failed: {str(e)}")
                return False

    def health_check(self) -> Dict[str, Any]:
        """
        Perform Redis health check.

        Returns:
            Health check results
        """
        if not self.is_available():
            return {
                "status": "unavailable",
                "message": "Redis client not initialized",
                "timestamp": time.time()
            }

        try:
            start_time = time.time()
            self.client.ping()
            response_time = (time.time() - start_time) * 1000
            return {
                "status": "healthy",
                "response_time_ms": round(response_time, 2),
                "timestamp": time.time()
            }
        except redis.RedisError as e:
            return {
                "status": "unhealthy",
                "message": str(e),
                "timestamp": time.time()
            }
