# SPDX-License-Identifier: Apache-2.0

"""
Family registration and status management.

Registration turns a verified identity claim into a URID, stores only the
URID commitment with the family's metadata, and hands the raw URID back once
so it can be shown to the beneficiary.
"""

import logging
from dataclasses import dataclass
from typing import Optional

from models.base import is_valid_commitment
from models.enums import ErrorKind
from models.entities import FamilyRecord, VerifiedIdentity
from services.errors import StorageError, DuplicateFamilyError
from services.registry import FamilyRegistry
from .identifiers import (
    generate_unique_identifier, compute_commitment, compute_claim_fingerprint,
    is_valid_identifier
)
from .results import DomainResult

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class FamilyRegistration:
    """Outcome of a successful registration."""
    urid: str
    commitment: str
    record: FamilyRecord


def resolve_commitment(urid: Optional[str] = None, commitment: Optional[str] = None) -> DomainResult:
    """
    Resolve a family reference to its commitment.

    A URID is format-checked and hashed; a commitment must already be a
    lowercase hex SHA-256 digest. The commitment wins when both are given.
    """
    if commitment:
        if not is_valid_commitment(commitment):
            return DomainResult.fail(ErrorKind.INVALID_INPUT, "Invalid URID commitment format")
        return DomainResult.ok(commitment)

    if urid:
        if not is_valid_identifier(urid):
            return DomainResult.fail(ErrorKind.INVALID_INPUT, "Invalid URID format")
        return DomainResult.ok(compute_commitment(urid))

    return DomainResult.fail(ErrorKind.INVALID_INPUT, "Either URID or URID commitment is required")


def register_family(
    registry: FamilyRegistry,
    identity: VerifiedIdentity,
    location: str,
    family_size: int,
    timestamp: int,
    registered_by: str
) -> DomainResult:
    """
    Register a family from a verified identity claim.

    Args:
        registry: Family registry collaborator
        identity: Verified identity from the attestation collaborator
        location: Registration location
        family_size: Number of family members (1-50)
        timestamp: Registration time in ms since epoch
        registered_by: Nullifier of the registering volunteer

    Returns:
        DomainResult with a FamilyRegistration value
    """
    if not identity.minimum_age:
        return DomainResult.fail(ErrorKind.INVALID_INPUT, "Family head must be 18 years or older")

    if not registered_by:
        return DomainResult.fail(ErrorKind.INVALID_INPUT, "Registering volunteer is required")

    fingerprint = compute_claim_fingerprint(identity.hashed_claim)
    try:
        existing = registry.find_by_claim_fingerprint(fingerprint)
    except StorageError as e:
        return DomainResult.fail(ErrorKind.REGISTRY_UNAVAILABLE, str(e))

    if existing is not None:
        return DomainResult.fail(
            ErrorKind.DUPLICATE_REGISTRATION,
            "This identity is already registered. Each identity can only be registered once."
        )

    derived = generate_unique_identifier(
        identity.hashed_claim,
        location,
        family_size,
        timestamp,
        exists=registry.exists
    )
    if not derived.success:
        return derived

    urid, commitment = derived.value
    record = FamilyRecord(
        commitment=commitment,
        family_size=family_size,
        registration_timestamp=timestamp,
        active=True,
        registered_by=registered_by,
        claim_fingerprint=fingerprint
    )

    try:
        registry.put(record)
    except DuplicateFamilyError as e:
        return DomainResult.fail(ErrorKind.DUPLICATE_REGISTRATION, str(e))
    except StorageError as e:
        return DomainResult.fail(ErrorKind.REGISTRY_UNAVAILABLE, str(e))

    logger.info(
        "Family registered",
        extra={"commitment": commitment[:12], "family_size": family_size}
    )
    return DomainResult.ok(FamilyRegistration(urid=urid, commitment=commitment, record=record))


def set_family_status(
    registry: FamilyRegistry,
    commitment: str,
    active: bool,
    operator: str,
    now: int
) -> DomainResult:
    """Activate or deactivate a family. Records are never deleted."""
    try:
        updated = registry.set_active(commitment, active, operator, now)
    except StorageError as e:
        return DomainResult.fail(ErrorKind.REGISTRY_UNAVAILABLE, str(e))

    if updated is None:
        return DomainResult.fail(ErrorKind.FAMILY_NOT_FOUND, "Family not found")

    logger.info(
        "Family status changed",
        extra={"commitment": commitment[:12], "active": active}
    )
    return DomainResult.ok(updated)
