# -*- coding: utf-8 -*-
# SPDX-License-Identifier: Apache-2.0

"""
Request utilities for extracting and validating request data.
"""

from flask import request
from typing import Dict, Any, Optional, Type, TypeVar
from pydantic import BaseModel, ValidationError
import logging

from domain.results import DomainResult
from middleware.error_handler import ValidationException, DomainException

logger = logging.getLogger(__name__)

M = TypeVar('M', bound=BaseModel)


def _validation_errors(error: ValidationError) -> list:
    return [
        {
            "field": ".".join(str(part) for part in err.get("loc", ())),
            "message": err.get("msg"),
            "type": err.get("type")
        }
        for err in error.errors(include_url=False, include_context=False, include_input=False)
    ]


class RequestParser:
    """Utility for parsing and validating request data."""

    @staticmethod
    def parse_json_body(required: bool = True) -> Optional[Dict[str, Any]]:
        """
        Parse JSON request body.

        Raises:
            ValidationException: If JSON is required but missing or invalid
        """
        data = request.get_json(silent=True)
        if data is None:
            if required:
                raise ValidationException("Request body must be a JSON object")
            return None
        if not isinstance(data, dict):
            raise ValidationException("Request body must be a JSON object")
        return data

    @staticmethod
    def parse_body(model: Type[M]) -> M:
        """Validate the JSON body against a request model."""
        data = RequestParser.parse_json_body()
        try:
            return model.model_validate(data)
        except ValidationError as e:
            logger.warning(
                "Request validation failed",
                extra={"model": model.__name__, "path": request.path}
            )
            raise ValidationException("Request validation failed", _validation_errors(e))

    @staticmethod
    def parse_query(model: Type[M]) -> M:
        """Validate query string arguments against a request model."""
        try:
            return model.model_validate(request.args.to_dict())
        except ValidationError as e:
            raise ValidationException("Invalid query parameters", _validation_errors(e))


def unwrap(result: DomainResult) -> Any:
    """Return a successful result's value or raise it as a DomainException."""
    if not result.success:
        raise DomainException(result.error)
    return result.value
