# -*- coding: utf-8 -*-
# SPDX-License-Identifier: Apache-2.0

"""
Family registration and lookup endpoints.
"""

from flask import jsonify, current_app
from flask_openapi3 import APIBlueprint, Tag
from opentelemetry import trace
from opentelemetry.trace import Status, StatusCode
import logging

from models.base import current_time_ms
from models.enums import ErrorKind, VolunteerPermission
from models.entities import VolunteerContext
from models.requests import RegisterFamilyRequest, FamilyStatusRequest, FamilyReference, FamilyPath
from domain.families import register_family, resolve_commitment, set_family_status
from domain.results import DomainResult
from services.attestation import AttestationError
from services.errors import StorageError
from middleware.auth import require_permission
from middleware.error_handler import ValidationException, ServiceUnavailableException
from utils.request import RequestParser, unwrap

# Set up logging and tracing
logger = logging.getLogger(__name__)
tracer = trace.get_tracer(__name__)

# Create API blueprint
families_tag = Tag(name="Families", description="Beneficiary family registry")
families_bp = APIBlueprint(
    'families',
    __name__,
    url_prefix='/api/families',
    abp_tags=[families_tag]
)


def _load_family(commitment: str):
    try:
        return current_app.family_registry.get(commitment)
    except StorageError as e:
        unwrap(DomainResult.fail(ErrorKind.REGISTRY_UNAVAILABLE, str(e)))


@families_bp.post('')
@require_permission(VolunteerPermission.VERIFY_BENEFICIARIES.value)
def create_family(volunteer_context: VolunteerContext):
    """
    Register a beneficiary family.

    The identity proof is verified by the attestation collaborator. The
    response carries the URID exactly once, for QR display; only its
    commitment is stored.
    """
    with tracer.start_as_current_span(
        "families.register",
        attributes={"operation": "register_family", "volunteer.id": volunteer_context.volunteer_id}
    ) as span:
        registration_request = RequestParser.parse_body(RegisterFamilyRequest)

        try:
            identity = current_app.attestation_provider.verify_identity(registration_request.identity_proof)
        except AttestationError as e:
            span.set_status(Status(StatusCode.ERROR, e.code))
            logger.warning("Identity proof rejected", extra={"code": e.code})
            if e.code == "VERIFIER_UNAVAILABLE":
                raise ServiceUnavailableException(e.message)
            raise ValidationException(e.message)

        result = register_family(
            current_app.family_registry,
            identity,
            registration_request.location,
            registration_request.family_size,
            registration_request.timestamp or current_time_ms(),
            volunteer_context.nullifier
        )
        if not result.success:
            span.set_status(Status(StatusCode.ERROR, result.error_kind.value))
        registration = unwrap(result)

        span.set_attribute("family.commitment", registration.commitment[:12])
        span.set_status(Status(StatusCode.OK))
        return jsonify(current_app.hal_formatter.format_registration(
            registration.urid,
            registration.record,
            volunteer_context.permissions
        )), 201


@families_bp.get('/validate')
@require_permission(VolunteerPermission.VERIFY_BENEFICIARIES.value)
def validate_family(volunteer_context: VolunteerContext):
    """Check whether a scanned URID or commitment belongs to a registered family."""
    with tracer.start_as_current_span("families.validate") as span:
        reference = RequestParser.parse_query(FamilyReference)
        commitment = unwrap(resolve_commitment(reference.urid, reference.commitment))

        family = _load_family(commitment)
        span.set_attribute("family.exists", family is not None)
        return jsonify(current_app.hal_formatter.format_validation(commitment, family)), 200


@families_bp.get('/<commitment>')
@require_permission(VolunteerPermission.VIEW_DISTRIBUTION_DATA.value)
def get_family(volunteer_context: VolunteerContext, path: FamilyPath):
    """Fetch a family record by commitment. No identity data is returned."""
    with tracer.start_as_current_span("families.get") as span:
        commitment = unwrap(resolve_commitment(commitment=path.commitment))

        family = _load_family(commitment)
        if family is None:
            span.set_status(Status(StatusCode.ERROR, "not_found"))
            unwrap(DomainResult.fail(ErrorKind.FAMILY_NOT_FOUND, "Family not found"))

        return jsonify(current_app.hal_formatter.format_family(family, volunteer_context.permissions)), 200


@families_bp.patch('/<commitment>/status')
@require_permission(VolunteerPermission.MANAGE_FAMILIES.value)
def update_family_status(volunteer_context: VolunteerContext, path: FamilyPath):
    """Activate or deactivate a family. Families are never deleted."""
    with tracer.start_as_current_span(
        "families.update_status",
        attributes={"operation": "set_family_status", "volunteer.id": volunteer_context.volunteer_id}
    ) as span:
        commitment = unwrap(resolve_commitment(commitment=path.commitment))
        status_request = RequestParser.parse_body(FamilyStatusRequest)

        family = unwrap(set_family_status(
            current_app.family_registry,
            commitment,
            status_request.active,
            volunteer_context.nullifier,
            current_time_ms()
        ))

        logger.info(
            "Family status updated via API",
            extra={
                "commitment": commitment[:12],
                "active": status_request.active,
                "reason": status_request.reason,
                "volunteer_id": volunteer_context.volunteer_id
            }
        )
        span.set_status(Status(StatusCode.OK))
        return jsonify(current_app.hal_formatter.format_family(family, volunteer_context.permissions)), 200
