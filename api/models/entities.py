# -*- coding: utf-8 -*-
# SPDX-License-Identifier: Apache-2.0

"""
Core entity models for families, distributions and volunteers.
"""

import uuid
from typing import Optional, List, Dict, Any
from pydantic import BaseModel, Field, ConfigDict, field_validator

from .base import BaseRecord, ImmutableRecord, is_valid_commitment
from .enums import AidType, VerificationLevel, VolunteerPermission


MIN_FAMILY_SIZE = 1
MAX_FAMILY_SIZE = 50


def generate_distribution_id() -> str:
    """Generate a new distribution identifier."""
    return "DIST_" + uuid.uuid4().hex[:16].upper()


class FamilyRecord(BaseRecord):
    """Registered beneficiary family, keyed by its URID commitment."""

    commitment: str = Field(..., description="SHA-256 commitment of the family URID")
    family_size: int = Field(..., ge=MIN_FAMILY_SIZE, le=MAX_FAMILY_SIZE, description="Number of family members")
    registration_timestamp: int = Field(..., gt=0, description="Registration time (ms since epoch)")
    active: bool = Field(default=True, description="Whether the family may receive aid")
    registered_by: str = Field(..., min_length=1, description="Nullifier of the registering volunteer")
    claim_fingerprint: str = Field(..., description="SHA-256 of the hashed identity claim")
    updated_at: Optional[int] = Field(None, description="Last status change (ms since epoch)")
    updated_by: Optional[str] = Field(None, description="Operator who last changed the status")

    @field_validator('commitment', 'claim_fingerprint')
    @classmethod
    def validate_digest(cls, v):
        """Digests are stored as lowercase hex SHA-256."""
        if not is_valid_commitment(v):
            raise ValueError('Must be a 64 character lowercase hex digest')
        return v

    def is_active(self) -> bool:
        """Check if the family may currently receive aid."""
        return self.active


class DistributionRecord(ImmutableRecord):
    """A single aid distribution appended to the ledger."""

    distribution_id: str = Field(default_factory=generate_distribution_id, description="Distribution identifier")
    family_commitment: str = Field(..., description="Commitment of the receiving family")
    aid_type: AidType = Field(..., description="Type of aid distributed")
    quantity: int = Field(..., ge=1, description="Quantity distributed")
    location: str = Field(..., min_length=1, max_length=200, description="Distribution location")
    timestamp: int = Field(..., gt=0, description="Distribution time (ms since epoch)")
    recorder: str = Field(..., min_length=1, description="Nullifier of the recording volunteer")
    sequence: int = Field(default=0, ge=0, description="Ledger insertion order, assigned on append")

    @field_validator('family_commitment')
    @classmethod
    def validate_commitment(cls, v):
        if not is_valid_commitment(v):
            raise ValueError('Family commitment must be a 64 character lowercase hex digest')
        return v

    def ordering_key(self) -> tuple:
        """Timestamp first, ties broken by insertion order."""
        return (self.timestamp, self.sequence)


class LastDistribution(BaseModel):
    """Summary of the most recent distribution for an eligibility answer."""

    timestamp: int
    quantity: int
    location: str


class EligibilityResult(BaseModel):
    """Eligibility decision for one family and aid type."""

    aid_type: AidType
    eligible: bool
    time_until_eligible: int = Field(default=0, ge=0, description="Milliseconds until eligible")
    last_distribution: Optional[LastDistribution] = None

    def next_eligible_time(self, now: int) -> Optional[int]:
        """Absolute time at which the family becomes eligible, if it is not already."""
        if self.eligible:
            return None
        return now + self.time_until_eligible


class VerifiedIdentity(BaseModel):
    """Identity claim produced by the attestation collaborator."""

    hashed_claim: str = Field(..., min_length=1, description="Opaque hashed identity claim")
    nationality: Optional[str] = None
    gender: Optional[str] = None
    minimum_age: bool = False
    verified_at: Optional[int] = None


class VerifiedVolunteer(BaseModel):
    """Volunteer identity produced by the attestation collaborator."""

    nullifier: str = Field(..., min_length=1, description="Unique-per-identity volunteer nullifier")
    verification_level: VerificationLevel = VerificationLevel.DEVICE


class VolunteerContext(BaseModel):
    """Volunteer context for request processing, built from a session token."""

    nullifier: str = Field(..., description="Volunteer nullifier")
    volunteer_id: str = Field(..., description="Volunteer identifier")
    verification_level: VerificationLevel = VerificationLevel.DEVICE
    permissions: List[str] = Field(default_factory=list, description="Session permissions")
    session_id: Optional[str] = Field(None, description="Session identifier (JWT id)")
    token_payload: Optional[Dict[str, Any]] = Field(None, description="Original JWT payload")
    ip_address: Optional[str] = Field(None, description="Client IP address")
    user_agent: Optional[str] = Field(None, description="Client user agent")

    model_config = ConfigDict(
        use_enum_values=True
    )

    def has_permission(self, permission) -> bool:
        """Check if the volunteer holds a specific permission."""
        if isinstance(permission, VolunteerPermission):
            permission = permission.value
        return permission in self.permissions
