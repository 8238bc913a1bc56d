# -*- coding: utf-8 -*-
# SPDX-License-Identifier: Apache-2.0

"""
Error handling middleware with structured HAL responses.
Provides centralized error handling and formatting for Flask applications.
"""

from flask import Flask, request, jsonify
from werkzeug.exceptions import HTTPException
from typing import Dict, Any, Tuple, Optional
from opentelemetry import trace
import logging
import traceback

from models.base import current_time_ms
from models.enums import ErrorKind
from domain.results import DomainError
from services.hal import HalFormatter

tracer = trace.get_tracer(__name__)
logger = logging.getLogger(__name__)


# Error kind -> (status, problem type, title)
ERROR_KIND_STATUS: Dict[ErrorKind, Tuple[int, str, str]] = {
    ErrorKind.INVALID_INPUT: (400, "invalid-input", "Invalid Input"),
    ErrorKind.INVALID_AID_TYPE: (400, "invalid-aid-type", "Invalid Aid Type"),
    ErrorKind.QUANTITY_OUT_OF_RANGE: (400, "quantity-out-of-range", "Quantity Out Of Range"),
    ErrorKind.FAMILY_NOT_FOUND: (404, "family-not-found", "Family Not Found"),
    ErrorKind.FAMILY_INACTIVE: (409, "family-inactive", "Family Inactive"),
    ErrorKind.NOT_ELIGIBLE: (409, "not-eligible", "Not Eligible"),
    ErrorKind.DUPLICATE_REGISTRATION: (409, "duplicate-registration", "Duplicate Registration"),
    ErrorKind.IDENTIFIER_EXHAUSTED: (500, "identifier-exhausted", "Identifier Exhausted"),
    ErrorKind.LEDGER_WRITE_FAILED: (503, "ledger-write-failed", "Ledger Write Failed"),
    ErrorKind.REGISTRY_UNAVAILABLE: (503, "registry-unavailable", "Registry Unavailable"),
}


# HTTP status -> (problem type, title) for errors raised by Flask or werkzeug
HTTP_PROBLEMS: Dict[int, Tuple[str, str]] = {
    400: ("bad-request", "Bad Request"),
    401: ("authentication-required", "Authentication Required"),
    403: ("insufficient-permissions", "Insufficient Permissions"),
    404: ("resource-not-found", "Resource Not Found"),
    405: ("method-not-allowed", "Method Not Allowed"),
    422: ("validation-error", "Validation Error"),
    500: ("internal-server-error", "Internal Server Error"),
    503: ("service-unavailable", "Service Unavailable"),
}


class ErrorHandlerMiddleware:
    """Centralized error handling middleware with HAL response formatting."""

    def __init__(self, app: Flask, base_url: str):
        self.app = app
        self.hal_formatter = HalFormatter(base_url)
        self.register_error_handlers()

    def register_error_handlers(self):
        """Register problem document handlers for HTTP errors and uncaught exceptions."""
        for status in HTTP_PROBLEMS:
            self.app.register_error_handler(status, self.handle_http_error)

        @self.app.errorhandler(Exception)
        def handle_generic_exception(error):
            if isinstance(error, HTTPException):
                return self.handle_http_error(error)
            return self.handle_unexpected_error(error)

    def _hide_details(self) -> bool:
        return self.app.config.get('ENVIRONMENT') == 'production'

    def handle_http_error(self, error: HTTPException) -> Tuple[Dict[str, Any], int]:
        """
        Render a werkzeug HTTP error as a problem document.

        Client errors are logged as warnings and server errors as errors; in
        production the detail of a server error is replaced.
        """
        status = error.code or 500
        error_type, title = HTTP_PROBLEMS.get(status, ("http-error", error.name))
        server_side = status >= 500

        with tracer.start_as_current_span(
            "error_handler.server_error" if server_side else "error_handler.client_error"
        ) as span:
            span.set_attributes({
                "error.type": error_type,
                "error.status": status,
                "http.method": request.method,
                "http.path": request.path
            })

            detail = str(error.description) if error.description else title
            log = logger.error if server_side else logger.warning
            log(
                f"HTTP error: {title}",
                extra={
                    "error_type": error_type,
                    "status_code": status,
                    "detail": detail,
                    "path": request.path,
                    "method": request.method,
                    "ip_address": request.remote_addr
                }
            )

            if server_side:
                if self._hide_details():
                    detail = "An internal server error occurred"
                return self.hal_formatter.format_server_error(detail, request.path, status), status

            return self.hal_formatter.format_error(error_type, title, status, detail, request.path), status

    def handle_unexpected_error(self, error: Exception) -> Tuple[Dict[str, Any], int]:
        """
        Handle exceptions not caught by a more specific handler.

        Args:
            error: Unexpected exception

        Returns:
            Tuple of (error response dict, status code)
        """
        with tracer.start_as_current_span("error_handler.unexpected_error") as span:
            span.set_attributes({
                "error.type": "unexpected-error",
                "error.class": error.__class__.__name__,
                "http.method": request.method,
                "http.path": request.path
            })
            span.record_exception(error)

            logger.error(
                f"Unexpected error: {error.__class__.__name__}",
                extra={
                    "error_class": error.__class__.__name__,
                    "path": request.path,
                    "method": request.method,
                    "traceback": traceback.format_exc()
                },
                exc_info=True
            )

            detail = "An unexpected error occurred"
            if not self._hide_details():
                detail = f"{error.__class__.__name__}: {str(error)}"

            return self.hal_formatter.format_server_error(detail, request.path), 500


class CustomException(Exception):
    """Base class for custom application exceptions."""

    def __init__(self, message: str, status_code: int = 500, error_type: str = "application-error"):
        super().__init__(message)
        self.message = message
        self.status_code = status_code
        self.error_type = error_type


class ValidationException(CustomException):
    """Exception for validation errors."""

    def __init__(self, message: str, validation_errors: list = None):
        super().__init__(message, 400, "validation-error")
        self.validation_errors = validation_errors or []


class AuthenticationException(CustomException):
    """Exception for authentication errors."""

    def __init__(self, message: str):
        super().__init__(message, 401, "authentication-required")


class AuthorizationException(CustomException):
    """Exception for authorization errors."""

    def __init__(self, message: str):
        super().__init__(message, 403, "insufficient-permissions")


class ServiceUnavailableException(CustomException):
    """Exception for service unavailable errors."""

    def __init__(self, message: str):
        super().__init__(message, 503, "service-unavailable")


class DomainException(CustomException):
    """
    Exception carrying a domain error kind.

    Raised by route handlers when a domain operation returns a failed result;
    the kind decides the status code and problem type.
    """

    def __init__(self, error: DomainError):
        status, error_type, title = ERROR_KIND_STATUS.get(
            error.kind, (500, "application-error", "Application Error")
        )
        super().__init__(error.message, status, error_type)
        self.kind = error.kind
        self.title = title
        self.time_until_eligible = error.time_until_eligible

    def problem_extras(self, now: Optional[int] = None) -> Dict[str, Any]:
        """Extra problem members for the error kind."""
        extras: Dict[str, Any] = {"errorKind": self.kind.value}
        if self.kind == ErrorKind.NOT_ELIGIBLE and self.time_until_eligible is not None:
            now = now if now is not None else current_time_ms()
            extras["timeUntilEligible"] = self.time_until_eligible
            extras["nextEligibleTime"] = now + self.time_until_eligible
        return extras


def register_custom_error_handlers(app: Flask, hal_formatter: HalFormatter):
    """
    Register handlers for custom exceptions.

    Args:
        app: Flask application
        hal_formatter: HAL formatter instance
    """

    @app.errorhandler(CustomException)
    def handle_custom_exception(error: CustomException):
        with tracer.start_as_current_span("error_handler.custom_exception") as span:
            span.set_attributes({
                "error.type": error.error_type,
                "error.status": error.status_code,
                "http.method": request.method,
                "http.path": request.path
            })

            log = logger.error if error.status_code >= 500 else logger.warning
            log(
                f"Custom exception: {error.error_type}",
                extra={
                    "error_type": error.error_type,
                    "status_code": error.status_code,
                    "error_message": error.message,
                    "path": request.path,
                    "method": request.method
                }
            )

            if isinstance(error, DomainException):
                error_response = hal_formatter.format_error(
                    error.error_type,
                    error.title,
                    error.status_code,
                    error.message,
                    request.path,
                    extra=error.problem_extras()
                )
            elif isinstance(error, ValidationException):
                error_response = hal_formatter.format_validation_error(
                    error.message,
                    request.path,
                    error.validation_errors
                )
            elif isinstance(error, AuthenticationException):
                error_response = hal_formatter.format_authentication_error(error.message, request.path)
            elif isinstance(error, AuthorizationException):
                error_response = hal_formatter.format_authorization_error(error.message, request.path)
            else:
                error_response = hal_formatter.format_server_error(
                    error.message, request.path, error.status_code
                )

            return jsonify(error_response), error.status_code
