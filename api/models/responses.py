# -*- coding: utf-8 -*-
# SPDX-License-Identifier: Apache-2.0

"""
Response models for API endpoints with HAL support.

Response bodies use camelCase keys; build them by field name and dump with
``by_alias=True``.
"""

from typing import List, Optional, Dict, Any
from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class CamelModel(BaseModel):
    """Base for response bodies serialized with camelCase keys."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True
    )


class HalLink(BaseModel):
    """HAL link representation."""

    href: str = Field(..., description="Link URL")
    method: Optional[str] = Field(None, description="HTTP method")
    type: Optional[str] = Field(None, description="Content type")
    title: Optional[str] = Field(None, description="Link title")
    templated: Optional[bool] = Field(None, description="Whether URL is templated")


class FamilyResponse(CamelModel):
    """Family record response (no identity data)."""

    commitment: str = Field(..., description="URID commitment")
    family_size: int = Field(..., description="Number of family members")
    registration_timestamp: int = Field(..., description="Registration time (ms)")
    active: bool = Field(..., description="Whether the family may receive aid")
    registered_by: str = Field(..., description="Registering volunteer nullifier")


class FamilyRegistrationResponse(CamelModel):
    """Registration result; the URID is returned exactly once for display."""

    urid: str = Field(..., description="Family URID for QR display")
    commitment: str = Field(..., description="URID commitment")
    family: FamilyResponse


class FamilyValidationResponse(CamelModel):
    """Existence check for a scanned family reference."""

    commitment: str
    exists: bool
    active: bool = False


class DistributionResponse(CamelModel):
    """Recorded distribution response."""

    distribution_id: str
    family_commitment: str
    aid_type: str
    quantity: int
    location: str
    timestamp: int
    recorder: str
    next_eligible_time: Optional[int] = None


class EligibilityResponse(CamelModel):
    """Eligibility answer for one aid type."""

    aid_type: str
    eligible: bool
    time_until_eligible: int
    next_eligible_time: Optional[int] = None
    last_distribution: Optional[Dict[str, Any]] = None


class VolunteerSessionResponse(CamelModel):
    """Issued volunteer session."""

    session_token: str
    token_type: str = Field(default="Bearer")
    expires_at: int = Field(..., description="Expiry (ms since epoch)")
    volunteer_id: str
    verification_level: str
    permissions: List[str] = Field(default_factory=list)


class StatsResponse(CamelModel):
    """Ledger-wide statistics."""

    total_families: int
    active_families: int
    total_distributions: int


class VolunteerStatsResponse(CamelModel):
    """Per-volunteer statistics."""

    volunteer_id: str
    distribution_count: int
    last_distribution: Optional[int] = None

