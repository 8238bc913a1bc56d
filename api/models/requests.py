# -*- coding: utf-8 -*-
# SPDX-License-Identifier: Apache-2.0

"""
Request models for API endpoints.

Business-rule bounds (quantity, family size, aid type) are left to the domain layer so they are reported with their dedicated error kinds.
"""

from typing import Optional, Dict, Any
from pydantic import BaseModel, ConfigDict, Field, model_validator
from pydantic.alias_generators import to_camel


class RequestModel(BaseModel):
    """Base for request bodies; accepts camelCase or snake_case keys."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True
    )


class FamilyReference(RequestModel):
    """A family addressed either by raw URID or by its commitment."""

    urid: Optional[str] = Field(None, description="16 character family URID")
    commitment: Optional[str] = Field(None, description="SHA-256 commitment of the URID")

    @model_validator(mode='after')
    def require_reference(self):
        """Either URID or commitment is required."""
        if not self.urid and not self.commitment:
            raise ValueError('Either urid or commitment is required')
        return self


class VolunteerSessionRequest(RequestModel):
    """Request model for opening a volunteer session."""

    action: str = Field(default="verify-volunteer", description="Verification action name")
    payload: Dict[str, Any] = Field(..., description="Proof payload from the identity provider")
    signal: Optional[str] = Field(None, description="Optional signal bound to the proof")


class RegisterFamilyRequest(RequestModel):
    """Request model for registering a beneficiary family."""

    family_size: int = Field(..., description="Number of family members")
    location: str = Field(..., min_length=1, max_length=200, description="Registration location")
    identity_proof: Dict[str, Any] = Field(..., description="Identity proof for the attestation collaborator")
    timestamp: Optional[int] = Field(None, gt=0, description="Registration time override (ms since epoch)")


class FamilyStatusRequest(RequestModel):
    """Request model for activating or deactivating a family."""

    active: bool = Field(..., description="New active flag")
    reason: Optional[str] = Field(None, max_length=500, description="Reason for the change")


class EligibilityRequest(FamilyReference):
    """Request model for a single eligibility check."""

    aid_type: str = Field(..., description="Aid type name")


class RecordDistributionRequest(FamilyReference):
    """Request model for recording an aid distribution."""

    aid_type: str = Field(..., description="Aid type name")
    quantity: int = Field(..., description="Quantity distributed")
    location: str = Field(..., description="Distribution location")


class HistoryParams(FamilyReference):
    """Query parameters for distribution history."""

    limit: int = Field(default=50, ge=1, le=100, description="Maximum number of records")
    offset: int = Field(default=0, ge=0, description="Records to skip")


class FamilyPath(BaseModel):
    """Path parameters addressing a family by commitment."""

    commitment: str = Field(..., description="SHA-256 commitment of the URID")
