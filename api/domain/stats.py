# SPDX-License-Identifier: Apache-2.0

"""
Registry and ledger statistics.
"""

from typing import Dict, Any

from models.enums import ErrorKind
from services.errors import StorageError
from services.registry import FamilyRegistry
from services.ledger import DistributionLedger
from .results import DomainResult


def ledger_stats(registry: FamilyRegistry, ledger: DistributionLedger) -> DomainResult:
    """Total and active families, and total distributions."""
    try:
        family_counts = registry.stats()
        total_distributions = ledger.count()
    except StorageError as e:
        return DomainResult.fail(ErrorKind.REGISTRY_UNAVAILABLE, str(e))

    stats: Dict[str, Any] = dict(family_counts)
    stats["total_distributions"] = total_distributions
    return DomainResult.ok(stats)


def volunteer_stats(ledger: DistributionLedger, nullifier: str) -> DomainResult:
    """Distribution count and last distribution time for one volunteer."""
    if not nullifier:
        return DomainResult.fail(ErrorKind.INVALID_INPUT, "Volunteer nullifier is required")

    try:
        count = ledger.count_by_recorder(nullifier)
        last = ledger.latest_by_recorder(nullifier)
    except StorageError as e:
        return DomainResult.fail(ErrorKind.REGISTRY_UNAVAILABLE, str(e))

    return DomainResult.ok({
        "distribution_count": count,
        "last_distribution": last.timestamp if last else None
    })
