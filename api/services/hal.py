# -*- coding: utf-8 -*-
# SPDX-License-Identifier: Apache-2.0

"""
HAL (Hypertext Application Language) response formatting utilities.
Builds HAL resource and collection bodies and RFC 7807 problem documents.
"""

from typing import Dict, List, Any, Optional
from urllib.parse import urljoin, urlencode

from models.enums import AidType, VolunteerPermission
from models.entities import FamilyRecord, DistributionRecord, EligibilityResult
from models.responses import (
    HalLink, FamilyResponse, FamilyRegistrationResponse, FamilyValidationResponse,
    DistributionResponse, EligibilityResponse
)

PROBLEM_BASE_URL = "https://api.sewa-relief.org/problems"


class HalLinkBuilder:
    """Builder for HAL links with proper URL construction."""

    def __init__(self, base_url: str):
        self.base_url = base_url.rstrip('/') + '/'

    def build_link(
        self,
        path: str,
        method: str = "GET",
        content_type: Optional[str] = None,
        title: Optional[str] = None,
        templated: bool = False
    ) -> HalLink:
        """Build a HAL link with proper URL construction."""
        href = urljoin(self.base_url, path.lstrip('/'))

        return HalLink(
            href=href,
            method=method,
            type=content_type,
            title=title,
            templated=templated or None
        )

    def build_self_link(self, resource_path: str) -> HalLink:
        """Build self link for a resource."""
        return self.build_link(resource_path, title="Self")

    def build_action_link(
        self,
        path: str,
        method: str = "POST",
        title: Optional[str] = None
    ) -> HalLink:
        """Build action link for a resource."""
        return self.build_link(
            path,
            method=method,
            content_type="application/json",
            title=title
        )


def _links(links: Dict[str, HalLink]) -> Dict[str, Any]:
    return {rel: link.model_dump(exclude_none=True) for rel, link in links.items()}


class HalResponseBuilder:
    """HAL body builder shared by the formatters."""

    def __init__(self, base_url: str):
        self.link_builder = HalLinkBuilder(base_url)

    def build_resource_response(self, data: Dict[str, Any], links: Dict[str, HalLink]) -> Dict[str, Any]:
        """Attach ``_links`` to a resource body."""
        response = dict(data)
        response['_links'] = _links(links)
        return response

    def build_collection_response(
        self,
        items: List[Dict[str, Any]],
        total: int,
        limit: int,
        offset: int,
        collection_path: str,
        query_params: Optional[Dict[str, Any]] = None
    ) -> Dict[str, Any]:
        """Build a HAL collection response with limit/offset links."""
        params = query_params or {}

        def page_link(page_offset: int, title: str) -> HalLink:
            query = urlencode({**params, 'limit': limit, 'offset': page_offset})
            return self.link_builder.build_link(f"{collection_path}?{query}", title=title)

        links = {'self': page_link(offset, "Current page")}
        if offset > 0:
            links['prev'] = page_link(max(0, offset - limit), "Previous page")
        if offset + limit < total:
            links['next'] = page_link(offset + limit, "Next page")

        return {
            'total': total,
            'limit': limit,
            'offset': offset,
            '_links': _links(links),
            '_embedded': {
                'items': items
            }
        }

    def build_error_response(
        self,
        error_type: str,
        title: str,
        status: int,
        detail: str,
        instance: str,
        validation_errors: Optional[List[Dict[str, Any]]] = None,
        extra: Optional[Dict[str, Any]] = None
    ) -> Dict[str, Any]:
        """Build RFC 7807 compliant error response with HAL links."""
        error_response = {
            'type': f"{PROBLEM_BASE_URL}/{error_type}",
            'title': title,
            'status': status,
            'detail': detail,
            'instance': instance
        }

        if validation_errors:
            error_response['errors'] = validation_errors
        if extra:
            error_response.update(extra)

        links = {
            'help': self.link_builder.build_link(
                f"/docs/errors#{error_type}",
                title="Error documentation"
            )
        }
        if error_type == "validation-error":
            links['schema'] = self.link_builder.build_link("/openapi/openapi.json", title="API schema")
        elif error_type == "authentication-required":
            links['session'] = self.link_builder.build_action_link(
                "/api/volunteers/session",
                title="Open volunteer session"
            )

        error_response['_links'] = _links(links)
        return error_response


class HalFormatter:
    """High-level HAL formatter with convenience methods."""

    def __init__(self, base_url: str):
        self.builder = HalResponseBuilder(base_url)
        self.links = self.builder.link_builder

    def _family_links(self, commitment: str, active: bool, permissions: List[str]) -> Dict[str, HalLink]:
        path = f"/api/families/{commitment}"
        links = {
            'self': self.links.build_self_link(path),
            'eligibility': self.links.build_link(
                f"/api/distributions/eligibility?commitment={commitment}",
                title="Eligibility for all aid types"
            ),
            'history': self.links.build_link(
                f"/api/distributions/history?commitment={commitment}",
                title="Distribution history"
            )
        }
        if active and VolunteerPermission.DISTRIBUTE_AID.value in permissions:
            links['distribute'] = self.links.build_action_link("/api/distributions", title="Record distribution")
        if VolunteerPermission.MANAGE_FAMILIES.value in permissions:
            links['status'] = self.links.build_action_link(
                f"{path}/status", method="PATCH",
                title="Reactivate family" if not active else "Deactivate family"
            )
        return links

    def format_family(self, family: FamilyRecord, permissions: List[str]) -> Dict[str, Any]:
        """Format a family record with HAL links."""
        body = FamilyResponse(
            commitment=family.commitment,
            family_size=family.family_size,
            registration_timestamp=family.registration_timestamp,
            active=family.active,
            registered_by=family.registered_by
        ).model_dump(by_alias=True)
        return self.builder.build_resource_response(
            body, self._family_links(family.commitment, family.active, permissions)
        )

    def format_registration(self, urid: str, family: FamilyRecord, permissions: List[str]) -> Dict[str, Any]:
        """Format a registration result; the only response that carries the URID."""
        body = FamilyRegistrationResponse(
            urid=urid,
            commitment=family.commitment,
            family=FamilyResponse(
                commitment=family.commitment,
                family_size=family.family_size,
                registration_timestamp=family.registration_timestamp,
                active=family.active,
                registered_by=family.registered_by
            )
        ).model_dump(by_alias=True)
        return self.builder.build_resource_response(
            body, self._family_links(family.commitment, family.active, permissions)
        )

    def format_validation(self, commitment: str, family: Optional[FamilyRecord]) -> Dict[str, Any]:
        """Format a family existence check."""
        body = FamilyValidationResponse(
            commitment=commitment,
            exists=family is not None,
            active=bool(family and family.active)
        ).model_dump(by_alias=True)
        links = {'self': self.links.build_self_link(f"/api/families/validate?commitment={commitment}")}
        if family is not None:
            links['family'] = self.links.build_link(f"/api/families/{commitment}", title="Family")
        return self.builder.build_resource_response(body, links)

    def format_distribution(self, record: DistributionRecord) -> Dict[str, Any]:
        """Format a recorded distribution with HAL links."""
        aid_type = AidType(record.aid_type)
        body = DistributionResponse(
            distribution_id=record.distribution_id,
            family_commitment=record.family_commitment,
            aid_type=aid_type.value,
            quantity=record.quantity,
            location=record.location,
            timestamp=record.timestamp,
            recorder=record.recorder,
            next_eligible_time=record.timestamp + aid_type.cooldown_ms
        ).model_dump(by_alias=True)
        links = {
            'family': self.links.build_link(f"/api/families/{record.family_commitment}", title="Family"),
            'history': self.links.build_link(
                f"/api/distributions/history?commitment={record.family_commitment}",
                title="Distribution history"
            )
        }
        return self.builder.build_resource_response(body, links)

    def format_eligibility_body(self, result: EligibilityResult, now: int) -> Dict[str, Any]:
        """Eligibility answer for one aid type, without links."""
        last = result.last_distribution
        return EligibilityResponse(
            aid_type=AidType(result.aid_type).value,
            eligible=result.eligible,
            time_until_eligible=result.time_until_eligible,
            next_eligible_time=result.next_eligible_time(now),
            last_distribution=last.model_dump(by_alias=True) if last else None
        ).model_dump(by_alias=True)

    def format_eligibility(self, commitment: str, result: EligibilityResult, now: int) -> Dict[str, Any]:
        """Format a single eligibility check with HAL links."""
        links = {
            'family': self.links.build_link(f"/api/families/{commitment}", title="Family"),
            'all': self.links.build_link(
                f"/api/distributions/eligibility?commitment={commitment}",
                title="Eligibility for all aid types"
            )
        }
        if result.eligible:
            links['distribute'] = self.links.build_action_link("/api/distributions", title="Record distribution")
        return self.builder.build_resource_response(self.format_eligibility_body(result, now), links)

    def format_eligibility_matrix(self, commitment: str, results: List[EligibilityResult], now: int) -> Dict[str, Any]:
        """Format the six-way eligibility matrix, in aid type order."""
        body = {
            'familyCommitment': commitment,
            'checkedAt': now,
            'eligibility': [self.format_eligibility_body(result, now) for result in results]
        }
        links = {
            'self': self.links.build_self_link(f"/api/distributions/eligibility?commitment={commitment}"),
            'family': self.links.build_link(f"/api/families/{commitment}", title="Family")
        }
        return self.builder.build_resource_response(body, links)

    def format_history(
        self,
        commitment: str,
        records: List[DistributionRecord],
        total: int,
        limit: int,
        offset: int
    ) -> Dict[str, Any]:
        """Format a family's distribution history as a HAL collection."""
        items = [self.format_distribution(record) for record in records]
        return self.builder.build_collection_response(
            items,
            total,
            limit,
            offset,
            "/api/distributions/history",
            {'commitment': commitment}
        )

    def format_error(
        self,
        error_type: str,
        title: str,
        status: int,
        detail: str,
        instance: str,
        extra: Optional[Dict[str, Any]] = None
    ) -> Dict[str, Any]:
        """Format a problem document for an arbitrary error type."""
        return self.builder.build_error_response(error_type, title, status, detail, instance, extra=extra)

    def format_validation_error(
        self,
        detail: str,
        instance: str,
        validation_errors: List[Dict[str, Any]]
    ) -> Dict[str, Any]:
        """Format a validation error response."""
        return self.builder.build_error_response(
            "validation-error",
            "Validation Error",
            400,
            detail,
            instance,
            validation_errors
        )

    def format_authentication_error(self, detail: str, instance: str) -> Dict[str, Any]:
        """Format an authentication error response."""
        return self.builder.build_error_response(
            "authentication-required",
            "Authentication Required",
            401,
            detail,
            instance
        )

    def format_authorization_error(self, detail: str, instance: str) -> Dict[str, Any]:
        """Format an authorization error response."""
        return self.builder.build_error_response(
            "insufficient-permissions",
            "Insufficient Permissions",
            403,
            detail,
            instance
        )

    def format_server_error(self, detail: str, instance: str, status: int = 500) -> Dict[str, Any]:
        """Format a server error response."""
        return self.builder.build_error_response(
            "internal-server-error" if status == 500 else "service-unavailable",
            "Internal Server Error" if status == 500 else "Service Unavailable",
            status,
            detail,
            instance
        )
