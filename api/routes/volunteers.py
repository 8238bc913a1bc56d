# -*- coding: utf-8 -*-
# SPDX-License-Identifier: Apache-2.0

"""
Volunteer session endpoints.
"""

from flask import jsonify, current_app, request
from flask_openapi3 import APIBlueprint, Tag
from opentelemetry import trace
from opentelemetry.trace import Status, StatusCode
import logging

from models.entities import VolunteerContext
from models.requests import VolunteerSessionRequest
from models.responses import VolunteerSessionResponse
from services.attestation import AttestationError
from middleware.auth import require_auth
from middleware.error_handler import AuthenticationException, ServiceUnavailableException
from utils.request import RequestParser

# Set up logging and tracing
logger = logging.getLogger(__name__)
tracer = trace.get_tracer(__name__)

# Create API blueprint
volunteers_tag = Tag(name="Volunteers", description="Volunteer verification and sessions")
volunteers_bp = APIBlueprint(
    'volunteers',
    __name__,
    url_prefix='/api/volunteers',
    abp_tags=[volunteers_tag]
)


@volunteers_bp.post('/session')
def open_session():
    """
    Verify a volunteer and open a session.

    The proof is checked by the attestation collaborator; the session token
    is bound to the volunteer's nullifier.
    """
    with tracer.start_as_current_span(
        "volunteers.open_session",
        attributes={"operation": "open_session"}
    ) as span:
        session_request = RequestParser.parse_body(VolunteerSessionRequest)

        try:
            volunteer = current_app.attestation_provider.verify_volunteer(
                session_request.payload,
                session_request.action,
                session_request.signal
            )
        except AttestationError as e:
            span.set_status(Status(StatusCode.ERROR, e.code))
            logger.warning(
                "Volunteer verification failed",
                extra={"code": e.code, "ip_address": request.remote_addr}
            )
            if e.code == "VERIFIER_UNAVAILABLE":
                raise ServiceUnavailableException(e.message)
            raise AuthenticationException(e.message)

        session = current_app.auth_service.issue_session(volunteer)
        body = VolunteerSessionResponse(**session).model_dump(by_alias=True)
        body["_links"] = {
            "self": {"href": f"{current_app.config['BASE_URL']}/api/volunteers/session"},
            "families": {"href": f"{current_app.config['BASE_URL']}/api/families", "method": "POST"},
            "distributions": {"href": f"{current_app.config['BASE_URL']}/api/distributions", "method": "POST"}
        }

        span.set_attribute("volunteer.id", session["volunteer_id"])
        span.set_status(Status(StatusCode.OK))
        return jsonify(body), 201


@volunteers_bp.delete('/session')
@require_auth
def close_session(volunteer_context: VolunteerContext):
    """Revoke the current volunteer session."""
    with tracer.start_as_current_span(
        "volunteers.close_session",
        attributes={"operation": "close_session", "volunteer.id": volunteer_context.volunteer_id}
    ) as span:
        current_app.auth_service.revoke_session(volunteer_context.token_payload)

        span.set_status(Status(StatusCode.OK))
        return jsonify({
            "message": "Session closed",
            "_links": {
                "session": {"href": f"{current_app.config['BASE_URL']}/api/volunteers/session", "method": "POST"}
            }
        }), 200
