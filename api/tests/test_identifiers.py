# SPDX-License-Identifier: Apache-2.0

"""
Tests for URID derivation and commitments.
"""

import hashlib
import pytest
from unittest.mock import Mock

from models.enums import ErrorKind
from domain.identifiers import (
    derive_family_identifier, compute_commitment, normalize_location,
    is_valid_identifier, generate_unique_identifier, MAX_DERIVATION_ATTEMPTS
)
from domain.results import InvalidInputError
from services.errors import RegistryUnavailableError


CLAIM = "0x9f8e7d6c5b4a"
TIMESTAMP = 1_700_000_000_000


class TestDeriveFamilyIdentifier:
    """Test URID derivation."""

    def test_identifier_format(self):
        urid = derive_family_identifier(CLAIM, "Ahmedabad", 4, TIMESTAMP)

        assert len(urid) == 16
        assert urid == urid.upper()
        assert is_valid_identifier(urid)

    def test_matches_documented_construction(self):
        material = f"{CLAIM}-ahmedabad-4-{TIMESTAMP}"
        expected = hashlib.sha256(material.encode('utf-8')).hexdigest()[:16].upper()

        assert derive_family_identifier(CLAIM, "Ahmedabad", 4, TIMESTAMP) == expected

    def test_deterministic(self):
        first = derive_family_identifier(CLAIM, "Ward 12", 3, TIMESTAMP)
        second = derive_family_identifier(CLAIM, "Ward 12", 3, TIMESTAMP)

        assert first == second

    @pytest.mark.parametrize("changed", [
        ("0xother", "Ward 12", 3, TIMESTAMP),
        (CLAIM, "Ward 13", 3, TIMESTAMP),
        (CLAIM, "Ward 12", 4, TIMESTAMP),
        (CLAIM, "Ward 12", 3, TIMESTAMP + 1),
    ])
    def test_sensitive_to_every_input(self, changed):
        baseline = derive_family_identifier(CLAIM, "Ward 12", 3, TIMESTAMP)

        assert derive_family_identifier(*changed) != baseline

    def test_location_normalization_collapses_formatting(self):
        a = derive_family_identifier(CLAIM, "Ward-12, Ahmedabad", 3, TIMESTAMP)
        b = derive_family_identifier(CLAIM, "  ward 12 AHMEDABAD ", 3, TIMESTAMP)

        assert a == b

    @pytest.mark.parametrize("args", [
        ("", "Ward 12", 3, TIMESTAMP),
        (CLAIM, "   ", 3, TIMESTAMP),
        (CLAIM, "Ward 12", 0, TIMESTAMP),
        (CLAIM, "Ward 12", 51, TIMESTAMP),
        (CLAIM, "Ward 12", True, TIMESTAMP),
        (CLAIM, "Ward 12", 3, 0),
        (CLAIM, "Ward 12", 3, -5),
    ])
    def test_invalid_inputs_raise(self, args):
        with pytest.raises(InvalidInputError):
            derive_family_identifier(*args)

    def test_family_size_bounds_accepted(self):
        assert is_valid_identifier(derive_family_identifier(CLAIM, "Ward 12", 1, TIMESTAMP))
        assert is_valid_identifier(derive_family_identifier(CLAIM, "Ward 12", 50, TIMESTAMP))


class TestNormalizeLocation:
    """Test location normalization."""

    def test_lowercases_and_strips_non_alphanumerics(self):
        assert normalize_location("Ward-12, Ahmedabad!") == "ward12ahmedabad"

    def test_truncates_to_twenty_characters(self):
        assert normalize_location("A" * 40) == "a" * 20


class TestCommitment:
    """Test URID commitments."""

    def test_commitment_is_sha256_of_urid(self):
        urid = "ABCDEF0123456789"
        assert compute_commitment(urid) == hashlib.sha256(urid.encode('utf-8')).hexdigest()

    def test_commitment_format(self):
        commitment = compute_commitment("ABCDEF0123456789")
        assert len(commitment) == 64
        assert commitment == commitment.lower()

    @pytest.mark.parametrize("value,expected", [
        ("ABCDEF0123456789", True),
        ("abcdef0123456789", False),
        ("ABCDEF012345678", False),
        ("ABCDEF01234567890", False),
        ("GHIJKL0123456789", False),
        (None, False),
    ])
    def test_is_valid_identifier(self, value, expected):
        assert is_valid_identifier(value) is expected


class TestGenerateUniqueIdentifier:
    """Test collision handling during derivation."""

    def test_first_attempt_when_free(self):
        exists = Mock(return_value=False)

        result = generate_unique_identifier(CLAIM, "Ward 12", 3, TIMESTAMP, exists)

        assert result.success
        urid, commitment = result.value
        assert urid == derive_family_identifier(CLAIM, "Ward 12", 3, TIMESTAMP)
        assert commitment == compute_commitment(urid)
        exists.assert_called_once_with(commitment)

    def test_retries_with_incremented_timestamp(self):
        exists = Mock(side_effect=[True, True, False])

        result = generate_unique_identifier(CLAIM, "Ward 12", 3, TIMESTAMP, exists)

        assert result.success
        urid, _ = result.value
        assert urid == derive_family_identifier(CLAIM, "Ward 12", 3, TIMESTAMP + 2)
        assert exists.call_count == 3

    def test_exhausted_after_max_attempts(self):
        exists = Mock(return_value=True)

        result = generate_unique_identifier(CLAIM, "Ward 12", 3, TIMESTAMP, exists)

        assert not result.success
        assert result.error_kind == ErrorKind.IDENTIFIER_EXHAUSTED
        assert exists.call_count == MAX_DERIVATION_ATTEMPTS

    def test_invalid_input(self):
        exists = Mock(return_value=False)

        result = generate_unique_identifier(CLAIM, "", 3, TIMESTAMP, exists)

        assert result.error_kind == ErrorKind.INVALID_INPUT
        exists.assert_not_called()

    def test_registry_unavailable(self):
        exists = Mock(side_effect=RegistryUnavailableError("timeout"))

        result = generate_unique_identifier(CLAIM, "Ward 12", 3, TIMESTAMP, exists)

        assert result.error_kind == ErrorKind.REGISTRY_UNAVAILABLE
