# SPDX-License-Identifier: Apache-2.0

"""
Volunteer session service.

A volunteer proves their identity once through the attestation collaborator
and receives a signed session token bound to their nullifier. Tokens are
HS256 JWTs carrying a ``jti`` so a session can be revoked before expiry.
"""

import hashlib
import os
import threading
import time
import uuid
import jwt
from datetime import datetime, timedelta, timezone
from typing import Optional, Dict, Any, List
from opentelemetry import trace
import logging

from models.enums import VerificationLevel, VolunteerPermission
from models.entities import VerifiedVolunteer
from .redis import RedisService

tracer = trace.get_tracer(__name__)
logger = logging.getLogger(__name__)

DEFAULT_SESSION_TTL_SECONDS = 8 * 60 * 60
TOKEN_TYPE = "volunteer_session"

BASE_PERMISSIONS = [
    VolunteerPermission.DISTRIBUTE_AID.value,
    VolunteerPermission.VERIFY_BENEFICIARIES.value,
    VolunteerPermission.VIEW_DISTRIBUTION_DATA.value,
]


class AuthenticationError(Exception):
    """Raised when a session cannot be issued."""
    pass


class TokenValidationError(Exception):
    """Raised when token validation fails."""
    pass


def permissions_for(level: VerificationLevel) -> List[str]:
    """Permissions granted to a volunteer at a given verification level."""
    permissions = list(BASE_PERMISSIONS)
    if VerificationLevel(level) == VerificationLevel.ORB:
        permissions.append(VolunteerPermission.MANAGE_FAMILIES.value)
    return permissions


def volunteer_id_for(nullifier: str) -> str:
    """Short display identifier for a volunteer, derived from the nullifier."""
    return "VOL_" + hashlib.sha256(nullifier.encode('utf-8')).hexdigest()[:12].upper()


class AuthService:
    """
    Session token issuing, validation and revocation for volunteers.
    """

    def __init__(
        self,
        secret: Optional[str] = None,
        session_ttl_seconds: int = DEFAULT_SESSION_TTL_SECONDS,
        redis_service: Optional[RedisService] = None
    ):
        """
        Initialize the authentication service.

        Args:
            secret: HS256 signing secret
            session_ttl_seconds: Session lifetime
            redis_service: Revocation store; process memory is used when it is
                missing or unavailable
        """
        self.secret = secret or self._get_secret()
        self.algorithm = "HS256"
        self.session_ttl_seconds = session_ttl_seconds
        self.redis_service = redis_service
        self._revoked: Dict[str, float] = {}
        self._lock = threading.Lock()

    def _get_secret(self) -> str:
        secret = os.getenv("JWT_SECRET")
        if secret:
            return secret

        logger.warning("No JWT_SECRET found, generating an ephemeral development secret")
        return uuid.uuid4().hex + uuid.uuid4().hex

    def issue_session(self, volunteer: VerifiedVolunteer) -> Dict[str, Any]:
        """
        Issue a session token for a verified volunteer.

        Args:
            volunteer: Volunteer returned by the attestation collaborator

        Returns:
            Dictionary with session_token, expires_at (ms), volunteer_id,
            verification_level and permissions
        """
        with tracer.start_as_current_span("auth.issue_session") as span:
            level = VerificationLevel(volunteer.verification_level)
            permissions = permissions_for(level)
            volunteer_id = volunteer_id_for(volunteer.nullifier)

            now = datetime.now(timezone.utc)
            expires = now + timedelta(seconds=self.session_ttl_seconds)

            payload = {
                "sub": volunteer.nullifier,
                "vid": volunteer_id,
                "level": level.value,
                "permissions": permissions,
                "jti": uuid.uuid4().hex,
                "iat": now,
                "exp": expires,
                "type": TOKEN_TYPE
            }

            span.set_attributes({
                "auth.operation": "issue_session",
                "volunteer.id": volunteer_id,
                "volunteer.verification_level": level.value
            })

            try:
                token = jwt.encode(payload, self.secret, algorithm=self.algorithm)
            except jwt.PyJWTError as e:
                span.set_attribute("auth.session_issued", "error")
                logger.error(f"Session token generation failed: {str(e)}")
                raise AuthenticationError(f"Failed to issue session: {str(e)}")

            span.set_attribute("auth.session_issued", "success")
            logger.info(
                "Volunteer session issued",
                extra={
                    "volunteer_id": volunteer_id,
                    "verification_level": level.value,
                    "expires_at": expires.isoformat()
                }
            )

            return {
                "session_token": token,
                "token_type": "Bearer",
                "expires_at": int(expires.timestamp() * 1000),
                "volunteer_id": volunteer_id,
                "verification_level": level.value,
                "permissions": permissions
            }

    def validate_token(self, token: str) -> Dict[str, Any]:
        """
        Validate and decode a session token.

        Raises:
            TokenValidationError: If the token is invalid, expired or revoked
        """
        with tracer.start_as_current_span("auth.validate_token") as span:
            span.set_attribute("auth.operation", "validate_token")

            try:
                payload = jwt.decode(
                    token,
                    self.secret,
                    algorithms=[self.algorithm],
                    options={"verify_exp": True, "require": ["exp", "sub", "jti"]}
                )
            except jwt.ExpiredSignatureError:
                span.set_attribute("auth.validation_result", "expired")
                logger.warning("Token validation failed: token expired")
                raise TokenValidationError("Session has expired")
            except jwt.InvalidTokenError as e:
                span.set_attribute("auth.validation_result", "invalid")
                logger.warning(f"Token validation failed: {str(e)}")
                raise TokenValidationError(f"Invalid session token: {str(e)}")

            if payload.get("type") != TOKEN_TYPE:
                span.set_attribute("auth.validation_result", "invalid")
                raise TokenValidationError("Invalid token type")

            if self.is_revoked(payload["jti"]):
                span.set_attribute("auth.validation_result", "revoked")
                logger.warning("Token validation failed: session revoked")
                raise TokenValidationError("Session has been revoked")

            span.set_attributes({
                "auth.validation_result": "success",
                "volunteer.id": payload.get("vid")
            })
            return payload

    def revoke_session(self, payload: Dict[str, Any]) -> None:
        """Revoke a validated session until its natural expiry."""
        token_id = payload["jti"]
        ttl_seconds = max(0, int(payload["exp"] - time.time()))

        if self.redis_service is not None and self.redis_service.block_token(token_id, ttl_seconds):
            logger.info("Volunteer session revoked", extra={"volunteer_id": payload.get("vid")})
            return

        with self._lock:
            self._revoked[token_id] = time.time() + ttl_seconds
        logger.info("Volunteer session revoked locally", extra={"volunteer_id": payload.get("vid")})

    def is_revoked(self, token_id: str) -> bool:
        if self.redis_service is not None and self.redis_service.is_token_blocked(token_id):
            return True

        with self._lock:
            expires = self._revoked.get(token_id)
            if expires is None:
                return False
            if expires <= time.time():
                del self._revoked[token_id]
                return False
            return True

    def extract_token_id(self, token: str) -> Optional[str]:
        """
        Extract the session id from a token without verifying it.

        Returns:
            The ``jti`` claim, or None if the token cannot be decoded
        """
        try:
            payload = jwt.decode(token, options={"verify_signature": False})
            return payload.get("jti")
        except jwt.PyJWTError as e:
            logger.error(f"Failed to extract token ID: {str(e)}")
            return None
