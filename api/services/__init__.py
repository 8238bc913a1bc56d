# -*- coding: utf-8 -*-
# SPDX-License-Identifier: Apache-2.0

"""
Services package - Storage collaborators, external integrations and side effects.
"""

from .errors import (
    StorageError,
    RegistryUnavailableError,
    DuplicateFamilyError,
    LedgerUnavailableError,
    LedgerWriteError
)
from .mongodb import MongoDBService
from .registry import FamilyRegistry, InMemoryFamilyRegistry, MongoFamilyRegistry
from .ledger import AppendResult, DistributionLedger, InMemoryDistributionLedger, MongoDistributionLedger
from .attestation import (
    AttestationError,
    AttestationProvider,
    MockAttestation,
    ProtocolAttestation,
    create_attestation_provider
)

__all__ = [
    "StorageError",
    "RegistryUnavailableError",
    "DuplicateFamilyError",
    "LedgerUnavailableError",
    "LedgerWriteError",
    "MongoDBService",
    "FamilyRegistry",
    "InMemoryFamilyRegistry",
    "MongoFamilyRegistry",
    "AppendResult",
    "DistributionLedger",
    "InMemoryDistributionLedger",
    "MongoDistributionLedger",
    "AttestationError",
    "AttestationProvider",
    "MockAttestation",
    "ProtocolAttestation",
    "create_attestation_provider"
]
