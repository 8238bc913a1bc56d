# -*- coding: utf-8 -*-
# SPDX-License-Identifier: Apache-2.0

"""
Statistics endpoints.
"""

from flask import jsonify, current_app, request
from flask_openapi3 import APIBlueprint, Tag
from opentelemetry import trace
import logging

from models.enums import VolunteerPermission
from models.entities import VolunteerContext
from models.responses import StatsResponse, VolunteerStatsResponse
from domain.stats import ledger_stats, volunteer_stats
from services.auth import volunteer_id_for
from middleware.auth import require_permission
from utils.request import unwrap

# Set up logging and tracing
logger = logging.getLogger(__name__)
tracer = trace.get_tracer(__name__)

# Create API blueprint
stats_tag = Tag(name="Statistics", description="Registry and ledger statistics")
stats_bp = APIBlueprint(
    'stats',
    __name__,
    url_prefix='/api/stats',
    abp_tags=[stats_tag]
)


@stats_bp.get('')
@require_permission(VolunteerPermission.VIEW_DISTRIBUTION_DATA.value)
def get_stats(volunteer_context: VolunteerContext):
    """
    Ledger-wide totals, or one volunteer's activity with ``?volunteer=``.

    ``volunteer=me`` selects the caller's own statistics.
    """
    base_url = current_app.config['BASE_URL']
    volunteer = request.args.get('volunteer', '').strip()

    with tracer.start_as_current_span("stats.get") as span:
        if volunteer:
            nullifier = volunteer_context.nullifier if volunteer == "me" else volunteer
            span.set_attribute("stats.scope", "volunteer")

            stats = unwrap(volunteer_stats(current_app.distribution_ledger, nullifier))
            body = VolunteerStatsResponse(
                volunteer_id=volunteer_id_for(nullifier),
                **stats
            ).model_dump(by_alias=True)
            body["_links"] = {
                "self": {"href": f"{base_url}/api/stats?volunteer={volunteer}"},
                "totals": {"href": f"{base_url}/api/stats"}
            }
            return jsonify(body), 200

        span.set_attribute("stats.scope", "ledger")
        stats = unwrap(ledger_stats(current_app.family_registry, current_app.distribution_ledger))
        body = StatsResponse(**stats).model_dump(by_alias=True)
        body["_links"] = {
            "self": {"href": f"{base_url}/api/stats"},
            "mine": {"href": f"{base_url}/api/stats?volunteer=me"}
        }
        return jsonify(body), 200
