# SPDX-License-Identifier: Apache-2.0

"""
Tests for the distribution ledger collaborators.
"""

import pytest
from pymongo import DESCENDING
from pymongo.errors import DuplicateKeyError, PyMongoError

from models.enums import AidType, AppendStatus
from models.entities import DistributionRecord
from services.errors import LedgerUnavailableError, LedgerWriteError
from services.ledger import (
    InMemoryDistributionLedger, MongoDistributionLedger, ledger_key,
    DISTRIBUTIONS_COLLECTION
)


T = 1_700_000_000_000
DAY_MS = 24 * 60 * 60 * 1000
FAMILY = "a" * 64


def make_record(aid_type=AidType.FOOD, timestamp=T, recorder="0xvolunteer", family=FAMILY):
    return DistributionRecord(
        family_commitment=family,
        aid_type=aid_type,
        quantity=2,
        location="Relief Camp 3",
        timestamp=timestamp,
        recorder=recorder
    )


class TestInMemoryDistributionLedger:
    """Test the process-local ledger."""

    def test_append_to_empty_key(self):
        ledger = InMemoryDistributionLedger()

        outcome = ledger.append(make_record(), expected_latest=None)

        assert outcome.ok
        assert outcome.record.sequence == 1
        assert ledger.latest(FAMILY, AidType.FOOD) == outcome.record

    def test_append_conflict_on_stale_expectation(self):
        ledger = InMemoryDistributionLedger()
        ledger.append(make_record(), expected_latest=None)

        outcome = ledger.append(make_record(timestamp=T + 1), expected_latest=None)

        assert outcome.status == AppendStatus.CONFLICT
        assert outcome.record is None
        assert ledger.count() == 1

    def test_append_with_current_expectation(self):
        ledger = InMemoryDistributionLedger()
        first = ledger.append(make_record(), expected_latest=None).record

        second = ledger.append(make_record(timestamp=T + 1), expected_latest=first)

        assert second.ok
        assert ledger.latest(FAMILY, AidType.FOOD) == second.record

    def test_keys_are_independent(self):
        ledger = InMemoryDistributionLedger()
        ledger.append(make_record(AidType.FOOD), expected_latest=None)

        outcome = ledger.append(make_record(AidType.WATER), expected_latest=None)

        assert outcome.ok
        assert ledger.latest(FAMILY, AidType.CASH) is None

    def test_equal_timestamps_broken_by_insertion_order(self):
        ledger = InMemoryDistributionLedger()
        first = ledger.append(make_record(), expected_latest=None).record

        second = ledger.append(make_record(), expected_latest=first).record

        assert ledger.latest(FAMILY, AidType.FOOD) == second

    def test_history_newest_first_with_paging(self):
        ledger = InMemoryDistributionLedger()
        for i, aid_type in enumerate([AidType.FOOD, AidType.WATER, AidType.CASH]):
            ledger.append(make_record(aid_type, timestamp=T + i), expected_latest=None)
        ledger.append(make_record(family="b" * 64), expected_latest=None)

        records, total = ledger.history(FAMILY, limit=2, offset=0)
        rest, _ = ledger.history(FAMILY, limit=2, offset=2)

        assert total == 3
        assert [r.aid_type for r in records] == [AidType.CASH, AidType.WATER]
        assert [r.aid_type for r in rest] == [AidType.FOOD]

    def test_recorder_stats(self):
        ledger = InMemoryDistributionLedger()
        ledger.append(make_record(AidType.FOOD, timestamp=T), expected_latest=None)
        latest = ledger.append(make_record(AidType.WATER, timestamp=T + 10), expected_latest=None).record
        ledger.append(make_record(AidType.CASH, recorder="0xother"), expected_latest=None)

        assert ledger.count() == 3
        assert ledger.count_by_recorder("0xvolunteer") == 2
        assert ledger.latest_by_recorder("0xvolunteer") == latest
        assert ledger.latest_by_recorder("0xnobody") is None

    def test_record_before_latest_is_conflict(self):
        ledger = InMemoryDistributionLedger()
        first = ledger.append(make_record(), expected_latest=None).record

        outcome = ledger.append(make_record(timestamp=T - 1), expected_latest=first)

        assert outcome.status == AppendStatus.CONFLICT
        assert ledger.latest(FAMILY, AidType.FOOD) == first

    def test_ledger_key(self):
        assert ledger_key(FAMILY, AidType.SHELTER) == f"{FAMILY}:SHELTER"


class TestMongoDistributionLedger:
    """Test the MongoDB ledger against mocked collections."""

    @pytest.fixture
    def ledger(self, mock_mongo_service):
        return MongoDistributionLedger(mock_mongo_service)

    @pytest.fixture
    def records(self, mock_mongo_service):
        return mock_mongo_service.get_collection(DISTRIBUTIONS_COLLECTION)

    def test_document_round_trip(self):
        record = make_record()

        document = MongoDistributionLedger.to_document(record)

        assert document["aidType"] == "FOOD"
        assert MongoDistributionLedger.from_document(document) == record

    def test_latest(self, ledger, records):
        record = make_record()
        records.find_one.return_value = MongoDistributionLedger.to_document(record)

        assert ledger.latest(FAMILY, AidType.FOOD) == record
        args, kwargs = records.find_one.call_args
        assert args[0] == {"familyCommitment": FAMILY, "aidType": "FOOD"}
        assert kwargs["sort"] == [("timestamp", DESCENDING), ("sequence", DESCENDING)]

    def test_latest_failure(self, ledger, records):
        records.find_one.side_effect = PyMongoError("timeout")

        with pytest.raises(LedgerUnavailableError):
            ledger.latest(FAMILY, AidType.FOOD)

    def test_first_append_takes_first_position(self, ledger, records, mock_mongo_service):
        record = make_record()

        outcome = ledger.append(record, expected_latest=None)

        assert outcome.ok
        assert outcome.record.sequence == 1
        document = records.insert_one.call_args[0][0]
        assert document["distributionId"] == record.distribution_id
        assert document["sequence"] == 1
        assert set(mock_mongo_service.collections) == {DISTRIBUTIONS_COLLECTION}

    def test_append_follows_expected(self, ledger, records):
        previous = make_record().model_copy(update={"sequence": 4})

        outcome = ledger.append(make_record(timestamp=T + 1), expected_latest=previous)

        assert outcome.ok
        assert outcome.record.sequence == 5
        assert records.insert_one.call_args[0][0]["sequence"] == 5

    def test_taken_position_is_conflict(self, ledger, records):
        records.insert_one.side_effect = DuplicateKeyError("E11000 duplicate key error")

        outcome = ledger.append(make_record(), expected_latest=None)

        assert outcome.status == AppendStatus.CONFLICT
        assert outcome.record is None

    def test_record_before_latest_is_conflict(self, ledger, records):
        outcome = ledger.append(make_record(timestamp=T - 1), expected_latest=make_record())

        assert outcome.status == AppendStatus.CONFLICT
        records.insert_one.assert_not_called()

    def test_insert_failure_raises_write_error(self, ledger, records):
        records.insert_one.side_effect = PyMongoError("timeout")

        with pytest.raises(LedgerWriteError):
            ledger.append(make_record(), expected_latest=None)

    def test_write_that_landed_despite_timeout_does_not_block_key(self, ledger, records):
        landed = {}

        def insert_then_time_out(document):
            landed.update(document)
            raise PyMongoError("operation exceeded time limit")

        records.insert_one.side_effect = insert_then_time_out
        with pytest.raises(LedgerWriteError):
            ledger.append(make_record(), expected_latest=None)

        records.insert_one.side_effect = None
        records.find_one.return_value = landed
        latest = ledger.latest(FAMILY, AidType.FOOD)

        outcome = ledger.append(make_record(timestamp=T + DAY_MS), expected_latest=latest)

        assert outcome.ok
        assert outcome.record.sequence == latest.sequence + 1 == 2

    def test_latest_by_recorder_breaks_ties_by_sequence(self, ledger, records):
        record = make_record()
        records.find_one.return_value = MongoDistributionLedger.to_document(record)

        assert ledger.latest_by_recorder("0xvolunteer") == record
        args, kwargs = records.find_one.call_args
        assert args[0] == {"recorder": "0xvolunteer"}
        assert kwargs["sort"] == [("timestamp", DESCENDING), ("sequence", DESCENDING)]

    def test_history(self, ledger, records):
        record = make_record()
        records.count_documents.return_value = 1
        cursor = records.find.return_value
        cursor.sort.return_value.skip.return_value.limit.return_value = [
            MongoDistributionLedger.to_document(record)
        ]

        items, total = ledger.history(FAMILY, limit=10, offset=0)

        assert total == 1
        assert items == [record]

    def test_count_failure(self, ledger, records):
        records.count_documents.side_effect = PyMongoError("timeout")

        with pytest.raises(LedgerUnavailableError):
            ledger.count()
