# SPDX-License-Identifier: Apache-2.0

"""
Tests for distribution recording.
"""

import threading
import pytest
from concurrent.futures import ThreadPoolExecutor
from unittest.mock import Mock

from models.enums import AidType, ErrorKind, COOLDOWN_PERIODS_MS, HOUR_MS
from domain.distributions import record_distribution, DEFAULT_MAX_QUANTITY
from domain.eligibility import check_eligibility
from domain.families import set_family_status
from services.errors import LedgerWriteError
from services.ledger import InMemoryDistributionLedger


T = 1_700_000_000_000
RECORDER = "0xvolunteer"


class BarrierLedger(InMemoryDistributionLedger):
    """Ledger whose first reads wait for each other, forcing interleaved recordings."""

    def __init__(self, parties: int):
        super().__init__()
        self.barrier = threading.Barrier(parties, timeout=5)
        self.parties = parties
        self._reads = 0
        self._reads_lock = threading.Lock()

    def latest(self, commitment, aid_type):
        observed = super().latest(commitment, aid_type)
        with self._reads_lock:
            self._reads += 1
            wait = self._reads <= self.parties
        if wait:
            self.barrier.wait()
        return observed


class TestRecordDistribution:
    """Test recording a distribution."""

    def test_success(self, registry, ledger, family_commitment):
        result = record_distribution(
            registry, ledger, family_commitment, AidType.FOOD, 10, " Relief Camp 3 ", RECORDER, T
        )

        assert result.success
        record = result.value
        assert record.distribution_id.startswith("DIST_")
        assert record.aid_type == AidType.FOOD
        assert record.quantity == 10
        assert record.location == "Relief Camp 3"
        assert record.timestamp == T
        assert record.recorder == RECORDER
        assert ledger.latest(family_commitment, AidType.FOOD) == record

    def test_recording_starts_cooldown(self, registry, ledger, family_commitment):
        record_distribution(registry, ledger, family_commitment, "FOOD", 1, "Camp", RECORDER, T)

        eligibility = check_eligibility(registry, ledger, family_commitment, AidType.FOOD, T + HOUR_MS)

        assert eligibility.value.eligible is False
        assert eligibility.value.time_until_eligible == COOLDOWN_PERIODS_MS[AidType.FOOD] - HOUR_MS

    def test_second_recording_within_cooldown_not_eligible(self, registry, ledger, family_commitment):
        record_distribution(registry, ledger, family_commitment, AidType.FOOD, 1, "Camp", RECORDER, T)

        result = record_distribution(
            registry, ledger, family_commitment, AidType.FOOD, 1, "Camp", RECORDER, T + HOUR_MS
        )

        assert result.error_kind == ErrorKind.NOT_ELIGIBLE
        assert result.error.time_until_eligible == 23 * HOUR_MS
        assert "23 hours" in result.error.message
        assert ledger.count() == 1

    def test_recording_after_cooldown(self, registry, ledger, family_commitment):
        record_distribution(registry, ledger, family_commitment, AidType.MEDICAL, 1, "Camp", RECORDER, T)

        result = record_distribution(
            registry, ledger, family_commitment, AidType.MEDICAL, 1, "Camp", RECORDER, T + HOUR_MS
        )

        assert result.success
        assert ledger.count() == 2

    @pytest.mark.parametrize("quantity", [0, -1, DEFAULT_MAX_QUANTITY + 1])
    def test_quantity_out_of_range(self, registry, ledger, family_commitment, quantity):
        result = record_distribution(
            registry, ledger, family_commitment, AidType.FOOD, quantity, "Camp", RECORDER, T
        )

        assert result.error_kind == ErrorKind.QUANTITY_OUT_OF_RANGE
        assert ledger.count() == 0

    def test_quantity_bounds_accepted(self, registry, ledger, family_commitment):
        low = record_distribution(registry, ledger, family_commitment, AidType.FOOD, 1, "Camp", RECORDER, T)
        high = record_distribution(
            registry, ledger, family_commitment, AidType.CASH, DEFAULT_MAX_QUANTITY, "Camp", RECORDER, T
        )

        assert low.success
        assert high.success

    def test_configured_max_quantity(self, registry, ledger, family_commitment):
        result = record_distribution(
            registry, ledger, family_commitment, AidType.FOOD, 101, "Camp", RECORDER, T, max_quantity=100
        )

        assert result.error_kind == ErrorKind.QUANTITY_OUT_OF_RANGE

    def test_invalid_aid_type(self, registry, ledger, family_commitment):
        result = record_distribution(registry, ledger, family_commitment, "FUEL", 1, "Camp", RECORDER, T)

        assert result.error_kind == ErrorKind.INVALID_AID_TYPE

    @pytest.mark.parametrize("location", ["", "   ", "x" * 201])
    def test_invalid_location(self, registry, ledger, family_commitment, location):
        result = record_distribution(registry, ledger, family_commitment, AidType.FOOD, 1, location, RECORDER, T)

        assert result.error_kind == ErrorKind.INVALID_INPUT

    def test_missing_recorder(self, registry, ledger, family_commitment):
        result = record_distribution(registry, ledger, family_commitment, AidType.FOOD, 1, "Camp", "", T)

        assert result.error_kind == ErrorKind.INVALID_INPUT

    def test_family_not_found(self, registry, ledger):
        result = record_distribution(registry, ledger, "d" * 64, AidType.FOOD, 1, "Camp", RECORDER, T)

        assert result.error_kind == ErrorKind.FAMILY_NOT_FOUND

    def test_family_inactive(self, registry, ledger, family_commitment):
        set_family_status(registry, family_commitment, False, "0xadmin", T)

        result = record_distribution(registry, ledger, family_commitment, AidType.FOOD, 1, "Camp", RECORDER, T)

        assert result.error_kind == ErrorKind.FAMILY_INACTIVE
        assert ledger.count() == 0

    def test_ledger_write_failure(self, registry, family_commitment):
        ledger = Mock()
        ledger.latest.return_value = None
        ledger.append.side_effect = LedgerWriteError("write timed out")

        result = record_distribution(registry, ledger, family_commitment, AidType.FOOD, 1, "Camp", RECORDER, T)

        assert result.error_kind == ErrorKind.LEDGER_WRITE_FAILED

    def test_append_conflict_reported_as_not_eligible(self, registry, ledger, family_commitment):
        stale = Mock(wraps=ledger)
        # First read misses the concurrent record written just below
        stale.latest.side_effect = [None, None]
        record_distribution(registry, ledger, family_commitment, AidType.FOOD, 1, "Camp", "0xother", T)

        result = record_distribution(registry, stale, family_commitment, AidType.FOOD, 1, "Camp", RECORDER, T)

        assert result.error_kind == ErrorKind.NOT_ELIGIBLE
        assert result.error.time_until_eligible == COOLDOWN_PERIODS_MS[AidType.FOOD]
        assert ledger.count() == 1


class TestConcurrentRecording:
    """Concurrent recordings for the same family and aid type."""

    def test_exactly_one_succeeds(self, registry, family_commitment):
        ledger = BarrierLedger(parties=2)

        def attempt(recorder):
            return record_distribution(
                registry, ledger, family_commitment, AidType.FOOD, 1, "Camp", recorder, T
            )

        with ThreadPoolExecutor(max_workers=2) as executor:
            results = list(executor.map(attempt, ["0xvolunteer-a", "0xvolunteer-b"]))

        successes = [r for r in results if r.success]
        failures = [r for r in results if not r.success]
        assert len(successes) == 1
        assert len(failures) == 1
        assert failures[0].error_kind == ErrorKind.NOT_ELIGIBLE
        assert ledger.count() == 1

    def test_different_aid_types_do_not_conflict(self, registry, family_commitment):
        ledger = BarrierLedger(parties=2)

        def attempt(aid_type):
            return record_distribution(
                registry, ledger, family_commitment, aid_type, 1, "Camp", RECORDER, T
            )

        with ThreadPoolExecutor(max_workers=2) as executor:
            results = list(executor.map(attempt, [AidType.FOOD, AidType.WATER]))

        assert all(r.success for r in results)
        assert ledger.count() == 2

    def test_many_concurrent_recordings(self, registry, ledger, family_commitment):
        def attempt(i):
            return record_distribution(
                registry, ledger, family_commitment, AidType.SHELTER, 1, "Camp", f"0xvolunteer-{i}", T
            )

        with ThreadPoolExecutor(max_workers=8) as executor:
            results = list(executor.map(attempt, range(16)))

        assert sum(1 for r in results if r.success) == 1
        assert all(r.error_kind == ErrorKind.NOT_ELIGIBLE for r in results if not r.success)
        assert ledger.count() == 1
