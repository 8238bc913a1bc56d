# -*- coding: utf-8 -*-
# SPDX-License-Identifier: Apache-2.0

"""
Distribution ledger collaborators.

The ledger is append-only. Appends are conditional: a record for a
(family, aid type) key is written only if the latest record for that key is
still the one the caller observed, which serializes concurrent recordings.
"""

import logging
import threading
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Dict, List, Optional, Any, Tuple

from pymongo import DESCENDING
from pymongo.errors import DuplicateKeyError, PyMongoError
from opentelemetry import trace

from models.enums import AidType, AppendStatus
from models.entities import DistributionRecord
from .errors import LedgerUnavailableError, LedgerWriteError
from .mongodb import MongoDBService

logger = logging.getLogger(__name__)
tracer = trace.get_tracer(__name__)

DISTRIBUTIONS_COLLECTION = "distributions"


@dataclass(frozen=True)
class AppendResult:
    """Outcome of a conditional append."""
    status: AppendStatus
    record: Optional[DistributionRecord] = None

    @property
    def ok(self) -> bool:
        return self.status == AppendStatus.OK


def ledger_key(commitment: str, aid_type: AidType) -> str:
    """Serialization key for conditional appends."""
    return f"{commitment}:{AidType(aid_type).value}"


def precedes(record: DistributionRecord, latest: Optional[DistributionRecord]) -> bool:
    """A record timestamped before the latest one cannot follow it."""
    return latest is not None and record.timestamp < latest.timestamp


class DistributionLedger(ABC):
    """Distribution ledger contract."""

    @abstractmethod
    def latest(self, commitment: str, aid_type: AidType) -> Optional[DistributionRecord]:
        """Most recent record for a family and aid type (timestamp, then insertion order)."""

    @abstractmethod
    def append(self, record: DistributionRecord, expected_latest: Optional[DistributionRecord]) -> AppendResult:
        """
        Append a record if the latest record for its key is ``expected_latest``.

        Returns:
            AppendResult with status OK and the stored record, or CONFLICT
            (also CONFLICT for a record timestamped before ``expected_latest``)

        Raises:
            LedgerWriteError: on infrastructure failure or timeout
        """

    @abstractmethod
    def history(self, commitment: str, limit: int = 50, offset: int = 0) -> Tuple[List[DistributionRecord], int]:
        """A family's records newest first, with the total count."""

    @abstractmethod
    def count(self) -> int:
        """Total number of recorded distributions."""

    @abstractmethod
    def count_by_recorder(self, recorder: str) -> int:
        """Number of distributions recorded by a volunteer."""

    @abstractmethod
    def latest_by_recorder(self, recorder: str) -> Optional[DistributionRecord]:
        """Most recent distribution recorded by a volunteer."""


class InMemoryDistributionLedger(DistributionLedger):
    """Process-local ledger, the default for development and tests."""

    def __init__(self):
        self._records: List[DistributionRecord] = []
        self._sequence = 0
        self._lock = threading.Lock()

    @staticmethod
    def _newest(records: List[DistributionRecord]) -> Optional[DistributionRecord]:
        if not records:
            return None
        return max(records, key=lambda r: r.ordering_key())

    def _latest_unlocked(self, commitment: str, aid_type: AidType) -> Optional[DistributionRecord]:
        aid_type = AidType(aid_type)
        return self._newest([
            r for r in self._records
            if r.family_commitment == commitment and r.aid_type == aid_type
        ])

    def latest(self, commitment: str, aid_type: AidType) -> Optional[DistributionRecord]:
        with self._lock:
            return self._latest_unlocked(commitment, aid_type)

    def append(self, record: DistributionRecord, expected_latest: Optional[DistributionRecord]) -> AppendResult:
        with self._lock:
            current = self._latest_unlocked(record.family_commitment, record.aid_type)
            current_id = current.distribution_id if current else None
            expected_id = expected_latest.distribution_id if expected_latest else None

            if current_id != expected_id or precedes(record, expected_latest):
                logger.info(
                    "Conditional append conflict",
                    extra={"key": ledger_key(record.family_commitment[:12], record.aid_type)}
                )
                return AppendResult(AppendStatus.CONFLICT)

            self._sequence += 1
            stored = record.model_copy(update={"sequence": self._sequence})
            self._records.append(stored)
            return AppendResult(AppendStatus.OK, stored)

    def history(self, commitment: str, limit: int = 50, offset: int = 0) -> Tuple[List[DistributionRecord], int]:
        with self._lock:
            records = [r for r in self._records if r.family_commitment == commitment]
        records.sort(key=lambda r: r.ordering_key(), reverse=True)
        return records[offset:offset + limit], len(records)

    def count(self) -> int:
        with self._lock:
            return len(self._records)

    def count_by_recorder(self, recorder: str) -> int:
        with self._lock:
            return sum(1 for r in self._records if r.recorder == recorder)

    def latest_by_recorder(self, recorder: str) -> Optional[DistributionRecord]:
        with self._lock:
            return self._newest([r for r in self._records if r.recorder == recorder])


class MongoDistributionLedger(DistributionLedger):
    """
    MongoDB-backed ledger.

    Each record carries its position in the (family, aid type) chain as
    ``sequence``, and a unique index on ``(familyCommitment, aidType,
    sequence)`` makes the conditional append a single insert: a record
    following ``expected_latest`` takes the next position, so two appends
    observing the same latest record collide on that index.
    """

    def __init__(self, mongo_service: MongoDBService):
        self.mongo_service = mongo_service
        logger.info("MongoDB distribution ledger initialized")

    @property
    def records(self):
        return self.mongo_service.get_collection(DISTRIBUTIONS_COLLECTION)

    @staticmethod
    def to_document(record: DistributionRecord) -> Dict[str, Any]:
        """Convert a DistributionRecord to its stored document."""
        return {
            "distributionId": record.distribution_id,
            "familyCommitment": record.family_commitment,
            "aidType": record.aid_type.value,
            "quantity": record.quantity,
            "location": record.location,
            "timestamp": record.timestamp,
            "recorder": record.recorder,
            "sequence": record.sequence,
            "schemaVersion": record.schema_version
        }

    @staticmethod
    def from_document(document: Dict[str, Any]) -> DistributionRecord:
        """Convert a stored document back to a DistributionRecord."""
        return DistributionRecord(
            distribution_id=document["distributionId"],
            family_commitment=document["familyCommitment"],
            aid_type=AidType(document["aidType"]),
            quantity=document["quantity"],
            location=document["location"],
            timestamp=document["timestamp"],
            recorder=document["recorder"],
            sequence=document.get("sequence", 0),
            schema_version=document.get("schemaVersion", 1)
        )

    def latest(self, commitment: str, aid_type: AidType) -> Optional[DistributionRecord]:
        with tracer.start_as_current_span("ledger.latest") as span:
            span.set_attribute("ledger.aid_type", AidType(aid_type).value)
            try:
                with self.mongo_service.operation_timeout():
                    document = self.records.find_one(
                        {"familyCommitment": commitment, "aidType": AidType(aid_type).value},
                        sort=[("timestamp", DESCENDING), ("sequence", DESCENDING)]
                    )
            except PyMongoError as e:
                logger.error(f"Ledger lookup failed: {e}")
                raise LedgerUnavailableError(f"Ledger lookup failed: {e}")

            return self.from_document(document) if document else None

    def append(self, record: DistributionRecord, expected_latest: Optional[DistributionRecord]) -> AppendResult:
        with tracer.start_as_current_span("ledger.append") as span:
            span.set_attribute("ledger.aid_type", record.aid_type.value)

            if precedes(record, expected_latest):
                span.set_attribute("ledger.result", "conflict")
                return AppendResult(AppendStatus.CONFLICT)

            sequence = expected_latest.sequence + 1 if expected_latest else 1
            stored = record.model_copy(update={"sequence": sequence})
            try:
                with self.mongo_service.operation_timeout():
                    self.records.insert_one(self.to_document(stored))
            except DuplicateKeyError:
                logger.info(
                    "Conditional append conflict",
                    extra={"key": ledger_key(record.family_commitment[:12], record.aid_type),
                           "sequence": sequence}
                )
                span.set_attribute("ledger.result", "conflict")
                return AppendResult(AppendStatus.CONFLICT)
            except PyMongoError as e:
                logger.error(f"Ledger insert failed: {e}")
                raise LedgerWriteError(f"Ledger insert failed: {e}")

            span.set_attribute("ledger.result", "ok")
            return AppendResult(AppendStatus.OK, stored)

    def history(self, commitment: str, limit: int = 50, offset: int = 0) -> Tuple[List[DistributionRecord], int]:
        query = {"familyCommitment": commitment}
        try:
            with self.mongo_service.operation_timeout():
                total = self.records.count_documents(query)
                cursor = self.records.find(query).sort(
                    [("timestamp", DESCENDING), ("sequence", DESCENDING)]
                ).skip(offset).limit(limit)
                documents = list(cursor)
        except PyMongoError as e:
            logger.error(f"Ledger history query failed: {e}")
            raise LedgerUnavailableError(f"Ledger history query failed: {e}")

        return [self.from_document(doc) for doc in documents], total

    def count(self) -> int:
        try:
            with self.mongo_service.operation_timeout():
                return self.records.count_documents({})
        except PyMongoError as e:
            raise LedgerUnavailableError(f"Ledger count failed: {e}")

    def count_by_recorder(self, recorder: str) -> int:
        try:
            with self.mongo_service.operation_timeout():
                return self.records.count_documents({"recorder": recorder})
        except PyMongoError as e:
            raise LedgerUnavailableError(f"Ledger count failed: {e}")

    def latest_by_recorder(self, recorder: str) -> Optional[DistributionRecord]:
        try:
            with self.mongo_service.operation_timeout():
                document = self.records.find_one(
                    {"recorder": recorder},
                    sort=[("timestamp", DESCENDING), ("sequence", DESCENDING)]
                )
        except PyMongoError as e:
            raise LedgerUnavailableError(f"Ledger lookup failed: {e}")

        return self.from_document(document) if document else None
