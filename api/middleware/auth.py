# SPDX-License-Identifier: Apache-2.0

"""
Authentication middleware for volunteer session validation.

This module provides Flask decorators that validate the session token,
build the volunteer context for request processing, and enforce session
permissions.
"""

from functools import wraps
from flask import request, g, current_app
from typing import Optional, Dict, Any, Callable
from opentelemetry import trace
import logging

from models.entities import VolunteerContext
from services.auth import AuthService, TokenValidationError
from .error_handler import AuthenticationException, AuthorizationException

tracer = trace.get_tracer(__name__)
logger = logging.getLogger(__name__)


class AuthMiddleware:
    """
    Session authentication middleware for Flask applications.

    Handles token extraction, validation and volunteer context building for
    protected endpoints.
    """

    def __init__(self, auth_service: AuthService):
        """
        Initialize the authentication middleware.

        Args:
            auth_service: Volunteer session service
        """
        self.auth_service = auth_service

    def extract_token_from_request(self) -> Optional[str]:
        """
        Extract the session token from request headers.

        Returns:
            Token string or None if not found
        """
        auth_header = request.headers.get('Authorization', '')

        if not auth_header:
            return None

        # Handle "Bearer <token>" format
        if auth_header.startswith('Bearer '):
            return auth_header[7:].strip() or None

        return auth_header

    def build_volunteer_context(self, token_payload: Dict[str, Any], request_info: Dict[str, Any]) -> VolunteerContext:
        """
        Build volunteer context from a validated token payload.

        Args:
            token_payload: Decoded JWT payload
            request_info: Request metadata (IP, user agent)

        Returns:
            VolunteerContext object for request processing
        """
        return VolunteerContext(
            nullifier=token_payload["sub"],
            volunteer_id=token_payload.get("vid", ""),
            verification_level=token_payload.get("level", "device"),
            permissions=token_payload.get("permissions", []),
            session_id=token_payload.get("jti"),
            token_payload=token_payload,
            ip_address=request_info.get("ip_address"),
            user_agent=request_info.get("user_agent")
        )

    def get_request_info(self) -> Dict[str, Any]:
        """Extract request metadata for the volunteer context."""
        return {
            "ip_address": request.remote_addr,
            "user_agent": request.headers.get('User-Agent', '')
        }

    def authenticate(self) -> VolunteerContext:
        """
        Validate the request's session and store the context on ``g``.

        Raises:
            AuthenticationException: If the token is missing, invalid or revoked
        """
        with tracer.start_as_current_span("auth.middleware.validate_request") as span:
            span.set_attribute("auth.operation", "validate_request")

            token = self.extract_token_from_request()
            if not token:
                span.set_attribute("auth.result", "missing_token")
                logger.warning("Authentication failed: missing token")
                raise AuthenticationException("Missing authorization token")

            try:
                token_payload = self.auth_service.validate_token(token)
            except TokenValidationError as e:
                span.set_attribute("auth.result", "invalid_token")
                logger.warning(f"Authentication failed: {str(e)}")
                raise AuthenticationException(str(e))

            volunteer_context = self.build_volunteer_context(token_payload, self.get_request_info())
            g.volunteer_context = volunteer_context

            span.set_attributes({
                "auth.result": "success",
                "volunteer.id": volunteer_context.volunteer_id
            })
            logger.debug(
                "Authentication successful",
                extra={
                    "volunteer_id": volunteer_context.volunteer_id,
                    "ip_address": volunteer_context.ip_address
                }
            )
            return volunteer_context


def require_auth(f: Callable) -> Callable:
    """
    Decorator to require a volunteer session for Flask routes.

    The wrapped view receives the VolunteerContext as its first argument.
    """
    @wraps(f)
    def decorated_function(*args, **kwargs):
        volunteer_context = current_app.auth_middleware.authenticate()
        return f(volunteer_context, *args, **kwargs)

    return decorated_function


def require_permission(permission: str) -> Callable:
    """
    Decorator to require a specific session permission for Flask routes.

    Args:
        permission: Required permission string

    Returns:
        Decorator function
    """
    def decorator(f: Callable) -> Callable:
        @wraps(f)
        @require_auth
        def decorated_function(volunteer_context: VolunteerContext, *args, **kwargs):
            with tracer.start_as_current_span("auth.middleware.check_permission") as span:
                span.set_attributes({
                    "auth.operation": "check_permission",
                    "auth.required_permission": permission,
                    "volunteer.id": volunteer_context.volunteer_id
                })

                if not volunteer_context.has_permission(permission):
                    span.set_attribute("auth.permission_result", "denied")
                    logger.warning(
                        f"Authorization failed: missing permission '{permission}'",
                        extra={
                            "volunteer_id": volunteer_context.volunteer_id,
                            "required_permission": permission,
                            "volunteer_permissions": volunteer_context.permissions
                        }
                    )
                    raise AuthorizationException(f"Missing required permission: {permission}")

                span.set_attribute("auth.permission_result", "granted")
                return f(volunteer_context, *args, **kwargs)

        return decorated_function
    return decorator
