# -*- coding: utf-8 -*-
# SPDX-License-Identifier: Apache-2.0

"""
Enumeration types and process-wide constants for the SEWA relief ledger.
"""

from enum import Enum


HOUR_MS = 60 * 60 * 1000
DAY_MS = 24 * HOUR_MS


class AidType(str, Enum):
    """Aid categories, in the fixed order used by the eligibility matrix."""
    FOOD = "FOOD"
    MEDICAL = "MEDICAL"
    SHELTER = "SHELTER"
    CLOTHING = "CLOTHING"
    WATER = "WATER"
    CASH = "CASH"

    @property
    def cooldown_ms(self) -> int:
        """Minimum interval between two distributions of this aid type."""
        return COOLDOWN_PERIODS_MS[self]


COOLDOWN_PERIODS_MS = {
    AidType.FOOD: 24 * HOUR_MS,
    AidType.MEDICAL: 1 * HOUR_MS,
    AidType.SHELTER: 7 * DAY_MS,
    AidType.CLOTHING: 30 * DAY_MS,
    AidType.WATER: 12 * HOUR_MS,
    AidType.CASH: 30 * DAY_MS,
}


class ErrorKind(str, Enum):
    """Error kinds returned by domain operations."""
    INVALID_INPUT = "InvalidInput"
    IDENTIFIER_EXHAUSTED = "IdentifierExhausted"
    FAMILY_NOT_FOUND = "FamilyNotFound"
    FAMILY_INACTIVE = "FamilyInactive"
    INVALID_AID_TYPE = "InvalidAidType"
    NOT_ELIGIBLE = "NotEligible"
    QUANTITY_OUT_OF_RANGE = "QuantityOutOfRange"
    DUPLICATE_REGISTRATION = "DuplicateRegistration"
    LEDGER_WRITE_FAILED = "LedgerWriteFailed"
    REGISTRY_UNAVAILABLE = "RegistryUnavailable"


class AppendStatus(str, Enum):
    """Outcome of a conditional ledger append."""
    OK = "ok"
    CONFLICT = "conflict"


class VerificationLevel(str, Enum):
    """Volunteer identity verification strength."""
    DEVICE = "device"
    ORB = "orb"


class VolunteerPermission(str, Enum):
    """Permissions carried by a volunteer session."""
    DISTRIBUTE_AID = "distribute_aid"
    VERIFY_BENEFICIARIES = "verify_beneficiaries"
    VIEW_DISTRIBUTION_DATA = "view_distribution_data"
    MANAGE_FAMILIES = "manage_families"


class AttestationMode(str, Enum):
    """Attestation collaborator variants selectable at startup."""
    MOCK = "mock"
    PROTOCOL = "protocol"


class StorageBackend(str, Enum):
    """Registry and ledger storage backends."""
    MEMORY = "memory"
    MONGODB = "mongodb"
