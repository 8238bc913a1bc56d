# -*- coding: utf-8 -*-
# SPDX-License-Identifier: Apache-2.0

"""
Models package - Pydantic schemas and data models for the SEWA relief ledger.
"""

# Base models
from .base import BaseRecord, ImmutableRecord, current_time_ms, is_valid_commitment

# Enumerations
from .enums import (
    AidType,
    COOLDOWN_PERIODS_MS,
    ErrorKind,
    AppendStatus,
    VerificationLevel,
    VolunteerPermission,
    AttestationMode,
    StorageBackend
)

# Core entities
from .entities import (
    FamilyRecord,
    DistributionRecord,
    LastDistribution,
    EligibilityResult,
    VerifiedIdentity,
    VerifiedVolunteer,
    VolunteerContext
)

# Request models
from .requests import (
    RequestModel,
    FamilyReference,
    VolunteerSessionRequest,
    RegisterFamilyRequest,
    FamilyStatusRequest,
    EligibilityRequest,
    RecordDistributionRequest,
    HistoryParams,
    FamilyPath
)

# Response models
from .responses import (
    CamelModel,
    HalLink,
    FamilyResponse,
    FamilyRegistrationResponse,
    FamilyValidationResponse,
    DistributionResponse,
    EligibilityResponse,
    VolunteerSessionResponse,
    StatsResponse,
    VolunteerStatsResponse
)

__all__ = [
    # Base models
    "BaseRecord",
    "ImmutableRecord",
    "current_time_ms",
    "is_valid_commitment",

    # Enumerations
    "AidType",
    "COOLDOWN_PERIODS_MS",
    "ErrorKind",
    "AppendStatus",
    "VerificationLevel",
    "VolunteerPermission",
    "AttestationMode",
    "StorageBackend",

    # Core entities
    "FamilyRecord",
    "DistributionRecord",
    "LastDistribution",
    "EligibilityResult",
    "VerifiedIdentity",
    "VerifiedVolunteer",
    "VolunteerContext",

    # Request models
    "RequestModel",
    "FamilyReference",
    "VolunteerSessionRequest",
    "RegisterFamilyRequest",
    "FamilyStatusRequest",
    "EligibilityRequest",
    "RecordDistributionRequest",
    "HistoryParams",
    "FamilyPath",

    # Response models
    "CamelModel",
    "HalLink",
    "FamilyResponse",
    "FamilyRegistrationResponse",
    "FamilyValidationResponse",
    "DistributionResponse",
    "EligibilityResponse",
    "VolunteerSessionResponse",
    "StatsResponse",
    "VolunteerStatsResponse"
]
