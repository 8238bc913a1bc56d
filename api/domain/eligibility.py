# SPDX-License-Identifier: Apache-2.0

"""
Eligibility engine for aid distributions.

Decides whether a family may currently receive an aid type, given the most
recent distribution of that type and the aid type's fixed cooldown. All
functions here only read from the registry and ledger.
"""

import logging
from concurrent.futures import ThreadPoolExecutor
from typing import Optional, Union, List

from models.enums import AidType, ErrorKind, COOLDOWN_PERIODS_MS
from models.entities import DistributionRecord, EligibilityResult, LastDistribution
from services.errors import StorageError
from services.registry import FamilyRegistry
from services.ledger import DistributionLedger
from .results import DomainResult

logger = logging.getLogger(__name__)


def parse_aid_type(value: Union[AidType, str, None]) -> Optional[AidType]:
    """Resolve an AidType from an enum member or a (case-insensitive) name."""
    if isinstance(value, AidType):
        return value
    if not isinstance(value, str):
        return None
    try:
        return AidType(value.strip().upper())
    except ValueError:
        return None


def evaluate_cooldown(aid_type: AidType, last_timestamp: Optional[int], now: int) -> tuple:
    """
    Pure cooldown arithmetic.

    Returns:
        ``(eligible, time_until_eligible_ms)``
    """
    if last_timestamp is None:
        return True, 0

    cooldown = COOLDOWN_PERIODS_MS[aid_type]

    # Backdated record or clock skew: re-apply the full cooldown
    if now < last_timestamp:
        return False, cooldown

    elapsed = now - last_timestamp
    if elapsed >= cooldown:
        return True, 0
    return False, cooldown - elapsed


def build_eligibility_result(
    aid_type: AidType,
    last: Optional[DistributionRecord],
    now: int
) -> EligibilityResult:
    """Build the eligibility answer from the latest record (if any)."""
    eligible, remaining = evaluate_cooldown(aid_type, last.timestamp if last else None, now)
    last_distribution = None
    if last is not None:
        last_distribution = LastDistribution(
            timestamp=last.timestamp,
            quantity=last.quantity,
            location=last.location
        )

    return EligibilityResult(
        aid_type=aid_type,
        eligible=eligible,
        time_until_eligible=remaining,
        last_distribution=last_distribution
    )


def check_family_precondition(registry: FamilyRegistry, family_commitment: str) -> Optional[DomainResult]:
    """Return a failed result unless the family exists and is active."""
    try:
        family = registry.get(family_commitment)
    except StorageError as e:
        return DomainResult.fail(ErrorKind.REGISTRY_UNAVAILABLE, str(e))

    if family is None:
        return DomainResult.fail(ErrorKind.FAMILY_NOT_FOUND, "Family not found")
    if not family.is_active():
        return DomainResult.fail(ErrorKind.FAMILY_INACTIVE, "Family is inactive")
    return None


def _check_cooldown(
    ledger: DistributionLedger,
    family_commitment: str,
    aid_type: AidType,
    now: int
) -> DomainResult:
    try:
        last = ledger.latest(family_commitment, aid_type)
    except StorageError as e:
        return DomainResult.fail(ErrorKind.REGISTRY_UNAVAILABLE, str(e))

    return DomainResult.ok(build_eligibility_result(aid_type, last, now))


def check_eligibility(
    registry: FamilyRegistry,
    ledger: DistributionLedger,
    family_commitment: str,
    aid_type: Union[AidType, str],
    now: int
) -> DomainResult:
    """
    Check whether a family may currently receive an aid type.

    Args:
        registry: Family registry collaborator
        ledger: Distribution ledger collaborator
        family_commitment: URID commitment of the family
        aid_type: AidType member or name
        now: Current time in ms since epoch

    Returns:
        DomainResult with an EligibilityResult value, or an error kind of
        InvalidAidType, FamilyNotFound, FamilyInactive or RegistryUnavailable
    """
    resolved = parse_aid_type(aid_type)
    if resolved is None:
        return DomainResult.fail(ErrorKind.INVALID_AID_TYPE, f"Invalid aid type: {aid_type}")

    failure = check_family_precondition(registry, family_commitment)
    if failure is not None:
        return failure

    return _check_cooldown(ledger, family_commitment, resolved, now)


def check_all_eligibility(
    registry: FamilyRegistry,
    ledger: DistributionLedger,
    family_commitment: str,
    now: int,
    max_workers: int = len(AidType)
) -> DomainResult:
    """
    Build the eligibility matrix for a scanned family.

    One independent check per aid type, issued concurrently. The value is a
    list of EligibilityResult in AidType declaration order.
    """
    failure = check_family_precondition(registry, family_commitment)
    if failure is not None:
        return failure

    aid_types: List[AidType] = list(AidType)
    with ThreadPoolExecutor(max_workers=max_workers) as executor:
        results = list(executor.map(
            lambda aid_type: _check_cooldown(ledger, family_commitment, aid_type, now),
            aid_types
        ))

    for result in results:
        if not result.success:
            return result

    logger.debug(
        "Eligibility matrix computed",
        extra={
            "commitment": family_commitment[:12],
            "eligible": [r.value.aid_type.value for r in results if r.value.eligible]
        }
    )
    return DomainResult.ok([result.value for result in results])
