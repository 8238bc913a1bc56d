# SPDX-License-Identifier: Apache-2.0

"""
Distribution recording.

Recording is a check-then-append: the eligibility check observes the latest
record for (family, aid type) and the append is conditioned on that record
still being the latest. A concurrent recording that slipped in between makes
the append return a conflict, reported as NotEligible.
"""

import logging
from typing import Union

from models.enums import AidType, ErrorKind, COOLDOWN_PERIODS_MS
from models.entities import DistributionRecord
from services.errors import StorageError
from services.registry import FamilyRegistry
from services.ledger import DistributionLedger
from .eligibility import parse_aid_type, check_family_precondition, build_eligibility_result
from .results import DomainResult

logger = logging.getLogger(__name__)

DEFAULT_MAX_QUANTITY = 1_000_000
MAX_LOCATION_LENGTH = 200


def validate_distribution_request(
    quantity: int,
    location: str,
    recorder: str,
    max_quantity: int
) -> DomainResult:
    """Validate distribution arguments; returns ok(None) when valid."""
    if isinstance(quantity, bool) or not isinstance(quantity, int):
        return DomainResult.fail(ErrorKind.QUANTITY_OUT_OF_RANGE, "Quantity must be an integer")
    if quantity < 1 or quantity > max_quantity:
        return DomainResult.fail(
            ErrorKind.QUANTITY_OUT_OF_RANGE,
            f"Quantity must be between 1 and {max_quantity:,}"
        )

    if not isinstance(location, str) or not location.strip():
        return DomainResult.fail(ErrorKind.INVALID_INPUT, "Location cannot be empty")
    if len(location.strip()) > MAX_LOCATION_LENGTH:
        return DomainResult.fail(
            ErrorKind.INVALID_INPUT,
            f"Location cannot exceed {MAX_LOCATION_LENGTH} characters"
        )

    if not isinstance(recorder, str) or not recorder.strip():
        return DomainResult.fail(ErrorKind.INVALID_INPUT, "Recorder identity is required")

    return DomainResult.ok()


def _not_eligible(aid_type: AidType, remaining: int) -> DomainResult:
    hours = -(-remaining // (60 * 60 * 1000))
    return DomainResult.fail(
        ErrorKind.NOT_ELIGIBLE,
        f"Family not eligible for {aid_type.value}. Please wait {hours} hours.",
        time_until_eligible=remaining
    )


def _conflict_result(
    ledger: DistributionLedger,
    family_commitment: str,
    aid_type: AidType,
    now: int
) -> DomainResult:
    """Report a lost append race as NotEligible with the current time remaining."""
    remaining = COOLDOWN_PERIODS_MS[aid_type]
    try:
        current = build_eligibility_result(aid_type, ledger.latest(family_commitment, aid_type), now)
        if not current.eligible:
            remaining = current.time_until_eligible
    except StorageError as e:
        logger.warning(f"Could not refresh eligibility after append conflict: {e}")

    return _not_eligible(aid_type, remaining)


def record_distribution(
    registry: FamilyRegistry,
    ledger: DistributionLedger,
    family_commitment: str,
    aid_type: Union[AidType, str],
    quantity: int,
    location: str,
    recorder: str,
    now: int,
    max_quantity: int = DEFAULT_MAX_QUANTITY
) -> DomainResult:
    """
    Record an aid distribution for a family.

    Args:
        registry: Family registry collaborator
        ledger: Distribution ledger collaborator
        family_commitment: URID commitment of the family
        aid_type: AidType member or name
        quantity: Units distributed (1..max_quantity)
        location: Distribution location
        recorder: Nullifier of the recording volunteer
        now: Distribution time in ms since epoch
        max_quantity: Configured quantity upper bound

    Returns:
        DomainResult with the stored DistributionRecord, or an error kind of
        InvalidAidType, QuantityOutOfRange, InvalidInput, FamilyNotFound,
        FamilyInactive, NotEligible, RegistryUnavailable or LedgerWriteFailed
    """
    resolved = parse_aid_type(aid_type)
    if resolved is None:
        return DomainResult.fail(ErrorKind.INVALID_AID_TYPE, f"Invalid aid type: {aid_type}")

    validation = validate_distribution_request(quantity, location, recorder, max_quantity)
    if not validation.success:
        return validation

    failure = check_family_precondition(registry, family_commitment)
    if failure is not None:
        return failure

    try:
        observed = ledger.latest(family_commitment, resolved)
    except StorageError as e:
        return DomainResult.fail(ErrorKind.REGISTRY_UNAVAILABLE, str(e))

    eligibility = build_eligibility_result(resolved, observed, now)
    if not eligibility.eligible:
        return _not_eligible(resolved, eligibility.time_until_eligible)

    record = DistributionRecord(
        family_commitment=family_commitment,
        aid_type=resolved,
        quantity=quantity,
        location=location.strip(),
        timestamp=now,
        recorder=recorder.strip()
    )

    try:
        outcome = ledger.append(record, expected_latest=observed)
    except StorageError as e:
        logger.error(
            "Ledger append failed",
            extra={"commitment": family_commitment[:12], "aid_type": resolved.value, "error": str(e)}
        )
        return DomainResult.fail(ErrorKind.LEDGER_WRITE_FAILED, str(e))

    if not outcome.ok:
        logger.info(
            "Concurrent distribution detected",
            extra={"commitment": family_commitment[:12], "aid_type": resolved.value}
        )
        return _conflict_result(ledger, family_commitment, resolved, now)

    logger.info(
        "Distribution recorded",
        extra={
            "distribution_id": outcome.record.distribution_id,
            "commitment": family_commitment[:12],
            "aid_type": resolved.value,
            "quantity": quantity
        }
    )
    return DomainResult.ok(outcome.record)
