# SPDX-License-Identifier: Apache-2.0

"""
Family identifier (URID) derivation and commitments.

The URID is derived from a hashed identity claim, a normalized location, the
family size and a timestamp. Only its SHA-256 commitment is ever persisted;
the raw URID is handed back once for display.
"""

import hashlib
import logging
import re
from typing import Callable, Optional

from models.enums import ErrorKind
from models.entities import MIN_FAMILY_SIZE, MAX_FAMILY_SIZE
from services.errors import RegistryUnavailableError
from .results import DomainResult, InvalidInputError

logger = logging.getLogger(__name__)

IDENTIFIER_LENGTH = 16
MAX_LOCATION_LENGTH = 20
MAX_DERIVATION_ATTEMPTS = 5
DELIMITER = "-"

_URID_PATTERN = re.compile(r'^[A-F0-9]{16}$')
_NON_ALPHANUMERIC = re.compile(r'[^a-z0-9]')


def normalize_location(location: str) -> str:
    """Lowercase, drop non-alphanumerics and truncate to 20 characters."""
    return _NON_ALPHANUMERIC.sub('', location.strip().lower())[:MAX_LOCATION_LENGTH]


def validate_derivation_inputs(
    hashed_claim: str,
    location: str,
    family_size: int,
    timestamp: int
) -> None:
    """
    Check URID derivation preconditions.

    Raises:
        InvalidInputError: when any precondition is violated
    """
    if not isinstance(hashed_claim, str) or not hashed_claim:
        raise InvalidInputError("Hashed identity claim is required")

    if not isinstance(location, str) or not location.strip():
        raise InvalidInputError("Location is required")

    if isinstance(family_size, bool) or not isinstance(family_size, int):
        raise InvalidInputError("Family size must be an integer")
    if family_size < MIN_FAMILY_SIZE or family_size > MAX_FAMILY_SIZE:
        raise InvalidInputError(
            f"Family size must be between {MIN_FAMILY_SIZE} and {MAX_FAMILY_SIZE}"
        )

    if isinstance(timestamp, bool) or not isinstance(timestamp, int) or timestamp <= 0:
        raise InvalidInputError("Timestamp must be a positive integer (ms since epoch)")


def derive_family_identifier(
    hashed_claim: str,
    location: str,
    family_size: int,
    timestamp: int
) -> str:
    """
    Derive the 16 character uppercase hex URID for a family.

    Args:
        hashed_claim: Opaque hashed identity claim from attestation
        location: Free-form registration location
        family_size: Number of family members (1-50)
        timestamp: Registration time in milliseconds since epoch

    Returns:
        URID string

    Raises:
        InvalidInputError: when preconditions are violated
    """
    validate_derivation_inputs(hashed_claim, location, family_size, timestamp)

    material = DELIMITER.join([
        hashed_claim,
        normalize_location(location),
        str(family_size),
        str(timestamp)
    ])
    digest = hashlib.sha256(material.encode('utf-8')).hexdigest()
    return digest[:IDENTIFIER_LENGTH].upper()


def compute_commitment(identifier: str) -> str:
    """SHA-256 of the URID as lowercase hex; the public reference for a family."""
    return hashlib.sha256(identifier.encode('utf-8')).hexdigest()


def compute_claim_fingerprint(hashed_claim: str) -> str:
    """SHA-256 of the hashed claim, used to detect a repeated registration."""
    return hashlib.sha256(hashed_claim.encode('utf-8')).hexdigest()


def is_valid_identifier(identifier: Optional[str]) -> bool:
    """Check URID format (16 uppercase hex characters)."""
    return isinstance(identifier, str) and bool(_URID_PATTERN.match(identifier))


def generate_unique_identifier(
    hashed_claim: str,
    location: str,
    family_size: int,
    timestamp: int,
    exists: Callable[[str], bool],
    max_attempts: int = MAX_DERIVATION_ATTEMPTS
) -> DomainResult:
    """
    Derive a URID whose commitment is not yet registered.

    Attempt ``n`` derives with ``timestamp + n``. Attempts are sequential since
    each depends on the previous existence check.

    Args:
        exists: Registry existence check, called with a commitment

    Returns:
        DomainResult whose value is a ``(urid, commitment)`` tuple
    """
    try:
        validate_derivation_inputs(hashed_claim, location, family_size, timestamp)
    except InvalidInputError as e:
        return DomainResult.fail(ErrorKind.INVALID_INPUT, str(e))

    for attempt in range(max_attempts):
        urid = derive_family_identifier(hashed_claim, location, family_size, timestamp + attempt)
        commitment = compute_commitment(urid)

        try:
            taken = exists(commitment)
        except RegistryUnavailableError as e:
            return DomainResult.fail(ErrorKind.REGISTRY_UNAVAILABLE, str(e))

        if not taken:
            if attempt > 0:
                logger.info(
                    "Identifier collision resolved",
                    extra={"attempts": attempt + 1, "commitment": commitment[:12]}
                )
            return DomainResult.ok((urid, commitment))

        logger.warning(
            "Identifier collision",
            extra={"attempt": attempt + 1, "commitment": commitment[:12]}
        )

    logger.error(
        "Identifier derivation exhausted",
        extra={"attempts": max_attempts}
    )
    return DomainResult.fail(
        ErrorKind.IDENTIFIER_EXHAUSTED,
        f"Failed to derive a unique identifier after {max_attempts} attempts"
    )
