# -*- coding: utf-8 -*-
# SPDX-License-Identifier: Apache-2.0

"""
Eligibility, distribution recording and history endpoints.
"""

from flask import jsonify, current_app
from flask_openapi3 import APIBlueprint, Tag
from opentelemetry import trace
from opentelemetry.trace import Status, StatusCode
import logging

from models.base import current_time_ms
from models.enums import ErrorKind, VolunteerPermission
from models.entities import VolunteerContext
from models.requests import (
    FamilyReference, EligibilityRequest, RecordDistributionRequest, HistoryParams
)
from domain.eligibility import check_eligibility, check_all_eligibility
from domain.distributions import record_distribution
from domain.families import resolve_commitment
from domain.results import DomainResult
from services.errors import StorageError
from middleware.auth import require_permission
from utils.request import RequestParser, unwrap

# Set up logging and tracing
logger = logging.getLogger(__name__)
tracer = trace.get_tracer(__name__)

# Create API blueprint
distributions_tag = Tag(name="Distributions", description="Aid eligibility and distribution ledger")
distributions_bp = APIBlueprint(
    'distributions',
    __name__,
    url_prefix='/api/distributions',
    abp_tags=[distributions_tag]
)


@distributions_bp.post('/eligibility')
@require_permission(VolunteerPermission.VERIFY_BENEFICIARIES.value)
def check_single_eligibility(volunteer_context: VolunteerContext):
    """Check whether a family may currently receive one aid type."""
    with tracer.start_as_current_span("distributions.check_eligibility") as span:
        eligibility_request = RequestParser.parse_body(EligibilityRequest)
        commitment = unwrap(resolve_commitment(eligibility_request.urid, eligibility_request.commitment))

        now = current_time_ms()
        result = unwrap(check_eligibility(
            current_app.family_registry,
            current_app.distribution_ledger,
            commitment,
            eligibility_request.aid_type,
            now
        ))

        span.set_attributes({
            "aid.type": result.aid_type.value,
            "eligibility.eligible": result.eligible
        })
        return jsonify(current_app.hal_formatter.format_eligibility(commitment, result, now)), 200


@distributions_bp.get('/eligibility')
@require_permission(VolunteerPermission.VERIFY_BENEFICIARIES.value)
def check_eligibility_matrix(volunteer_context: VolunteerContext):
    """Eligibility for every aid type, for the scan screen."""
    with tracer.start_as_current_span("distributions.check_all_eligibility") as span:
        reference = RequestParser.parse_query(FamilyReference)
        commitment = unwrap(resolve_commitment(reference.urid, reference.commitment))

        now = current_time_ms()
        results = unwrap(check_all_eligibility(
            current_app.family_registry,
            current_app.distribution_ledger,
            commitment,
            now
        ))

        span.set_attribute("eligibility.eligible_count", sum(1 for r in results if r.eligible))
        return jsonify(current_app.hal_formatter.format_eligibility_matrix(commitment, results, now)), 200


@distributions_bp.post('')
@require_permission(VolunteerPermission.DISTRIBUTE_AID.value)
def create_distribution(volunteer_context: VolunteerContext):
    """
    Record an aid distribution.

    Concurrent recordings for the same family and aid type are serialized by
    the ledger; the loser receives a NotEligible problem document.
    """
    with tracer.start_as_current_span(
        "distributions.record",
        attributes={"operation": "record_distribution", "volunteer.id": volunteer_context.volunteer_id}
    ) as span:
        distribution_request = RequestParser.parse_body(RecordDistributionRequest)
        commitment = unwrap(resolve_commitment(distribution_request.urid, distribution_request.commitment))

        result = record_distribution(
            current_app.family_registry,
            current_app.distribution_ledger,
            commitment,
            distribution_request.aid_type,
            distribution_request.quantity,
            distribution_request.location,
            volunteer_context.nullifier,
            current_time_ms(),
            max_quantity=current_app.config['MAX_DISTRIBUTION_QUANTITY']
        )
        if not result.success:
            span.set_status(Status(StatusCode.ERROR, result.error_kind.value))
        record = unwrap(result)

        span.set_attributes({
            "distribution.id": record.distribution_id,
            "aid.type": record.aid_type.value
        })
        span.set_status(Status(StatusCode.OK))
        return jsonify(current_app.hal_formatter.format_distribution(record)), 201


@distributions_bp.get('/history')
@require_permission(VolunteerPermission.VIEW_DISTRIBUTION_DATA.value)
def get_distribution_history(volunteer_context: VolunteerContext):
    """A family's distributions, newest first."""
    with tracer.start_as_current_span("distributions.history") as span:
        params = RequestParser.parse_query(HistoryParams)
        commitment = unwrap(resolve_commitment(params.urid, params.commitment))

        try:
            records, total = current_app.distribution_ledger.history(commitment, params.limit, params.offset)
        except StorageError as e:
            unwrap(DomainResult.fail(ErrorKind.REGISTRY_UNAVAILABLE, str(e)))

        span.set_attributes({
            "history.total": total,
            "history.returned": len(records)
        })
        return jsonify(current_app.hal_formatter.format_history(
            commitment, records, total, params.limit, params.offset
        )), 200
