# -*- coding: utf-8 -*-
# SPDX-License-Identifier: Apache-2.0

"""
Family registry collaborators.

The registry maps a URID commitment to its FamilyRecord. Records are never
deleted; only the active flag changes.
"""

import logging
import threading
from abc import ABC, abstractmethod
from typing import Dict, Optional, Any

from pymongo import ReturnDocument
from pymongo.errors import DuplicateKeyError, PyMongoError
from opentelemetry import trace

from models.entities import FamilyRecord
from .errors import RegistryUnavailableError, DuplicateFamilyError
from .mongodb import MongoDBService

logger = logging.getLogger(__name__)
tracer = trace.get_tracer(__name__)

FAMILIES_COLLECTION = "families"


class FamilyRegistry(ABC):
    """Registry contract. Single-key operations are atomic."""

    @abstractmethod
    def get(self, commitment: str) -> Optional[FamilyRecord]:
        """Fetch a family record by commitment."""

    @abstractmethod
    def put(self, record: FamilyRecord) -> None:
        """
        Insert a new family record.

        Raises:
            DuplicateFamilyError: if the commitment or claim fingerprint is taken
        """

    @abstractmethod
    def set_active(self, commitment: str, active: bool, updated_by: str, updated_at: int) -> Optional[FamilyRecord]:
        """Toggle the active flag; returns the updated record or None if absent."""

    @abstractmethod
    def find_by_claim_fingerprint(self, fingerprint: str) -> Optional[FamilyRecord]:
        """Find the family registered with a given identity claim."""

    @abstractmethod
    def stats(self) -> Dict[str, int]:
        """Total and active family counts."""

    def exists(self, commitment: str) -> bool:
        """Check whether a commitment is already registered."""
        return self.get(commitment) is not None


class InMemoryFamilyRegistry(FamilyRegistry):
    """Process-local registry, the default for development and tests."""

    def __init__(self):
        self._records: Dict[str, FamilyRecord] = {}
        self._fingerprints: Dict[str, str] = {}
        self._lock = threading.Lock()

    def get(self, commitment: str) -> Optional[FamilyRecord]:
        with self._lock:
            record = self._records.get(commitment)
            return record.model_copy() if record else None

    def put(self, record: FamilyRecord) -> None:
        with self._lock:
            if record.commitment in self._records:
                raise DuplicateFamilyError("Family commitment already registered")
            if record.claim_fingerprint in self._fingerprints:
                raise DuplicateFamilyError("Identity claim already registered")
            self._records[record.commitment] = record.model_copy()
            self._fingerprints[record.claim_fingerprint] = record.commitment

    def set_active(self, commitment: str, active: bool, updated_by: str, updated_at: int) -> Optional[FamilyRecord]:
        with self._lock:
            record = self._records.get(commitment)
            if record is None:
                return None
            updated = record.model_copy(update={
                "active": active,
                "updated_by": updated_by,
                "updated_at": updated_at
            })
            self._records[commitment] = updated
            return updated.model_copy()

    def find_by_claim_fingerprint(self, fingerprint: str) -> Optional[FamilyRecord]:
        with self._lock:
            commitment = self._fingerprints.get(fingerprint)
            if commitment is None:
                return None
            return self._records[commitment].model_copy()

    def stats(self) -> Dict[str, int]:
        with self._lock:
            total = len(self._records)
            active = sum(1 for record in self._records.values() if record.active)
        return {"total_families": total, "active_families": active}


class MongoFamilyRegistry(FamilyRegistry):
    """MongoDB-backed registry; the commitment is the document ``_id``."""

    def __init__(self, mongo_service: MongoDBService):
        self.mongo_service = mongo_service
        self.collection_name = FAMILIES_COLLECTION
        logger.info("MongoDB family registry initialized")

    @property
    def collection(self):
        return self.mongo_service.get_collection(self.collection_name)

    @staticmethod
    def to_document(record: FamilyRecord) -> Dict[str, Any]:
        """Convert a FamilyRecord to its stored document."""
        return {
            "_id": record.commitment,
            "familySize": record.family_size,
            "registrationTimestamp": record.registration_timestamp,
            "active": record.active,
            "registeredBy": record.registered_by,
            "claimFingerprint": record.claim_fingerprint,
            "updatedAt": record.updated_at,
            "updatedBy": record.updated_by,
            "schemaVersion": record.schema_version
        }

    @staticmethod
    def from_document(document: Dict[str, Any]) -> FamilyRecord:
        """Convert a stored document back to a FamilyRecord."""
        return FamilyRecord(
            commitment=document["_id"],
            family_size=document["familySize"],
            registration_timestamp=document["registrationTimestamp"],
            active=document.get("active", True),
            registered_by=document["registeredBy"],
            claim_fingerprint=document["claimFingerprint"],
            updated_at=document.get("updatedAt"),
            updated_by=document.get("updatedBy"),
            schema_version=document.get("schemaVersion", 1)
        )

    def get(self, commitment: str) -> Optional[FamilyRecord]:
        with tracer.start_as_current_span("registry.get") as span:
            span.set_attribute("db.collection", self.collection_name)
            try:
                with self.mongo_service.operation_timeout():
                    document = self.collection.find_one({"_id": commitment})
            except PyMongoError as e:
                logger.error(f"Registry lookup failed: {e}")
                raise RegistryUnavailableError(f"Registry lookup failed: {e}")

            span.set_attribute("registry.found", document is not None)
            return self.from_document(document) if document else None

    def put(self, record: FamilyRecord) -> None:
        with tracer.start_as_current_span("registry.put") as span:
            span.set_attribute("db.collection", self.collection_name)
            try:
                with self.mongo_service.operation_timeout():
                    self.collection.insert_one(self.to_document(record))
            except DuplicateKeyError as e:
                logger.warning(f"Duplicate family registration rejected: {e}")
                raise DuplicateFamilyError("Family already registered")
            except PyMongoError as e:
                logger.error(f"Registry insert failed: {e}")
                raise RegistryUnavailableError(f"Registry insert failed: {e}")

            logger.info(
                "Family record stored",
                extra={"commitment": record.commitment[:12]}
            )

    def set_active(self, commitment: str, active: bool, updated_by: str, updated_at: int) -> Optional[FamilyRecord]:
        try:
            with self.mongo_service.operation_timeout():
                document = self.collection.find_one_and_update(
                    {"_id": commitment},
                    {"$set": {"active": active, "updatedBy": updated_by, "updatedAt": updated_at}},
                    return_document=ReturnDocument.AFTER
                )
        except PyMongoError as e:
            logger.error(f"Registry status update failed: {e}")
            raise RegistryUnavailableError(f"Registry status update failed: {e}")

        return self.from_document(document) if document else None

    def find_by_claim_fingerprint(self, fingerprint: str) -> Optional[FamilyRecord]:
        try:
            with self.mongo_service.operation_timeout():
                document = self.collection.find_one({"claimFingerprint": fingerprint})
        except PyMongoError as e:
            logger.error(f"Registry fingerprint lookup failed: {e}")
            raise RegistryUnavailableError(f"Registry fingerprint lookup failed: {e}")

        return self.from_document(document) if document else None

    def exists(self, commitment: str) -> bool:
        try:
            with self.mongo_service.operation_timeout():
                return self.collection.count_documents({"_id": commitment}, limit=1) > 0
        except PyMongoError as e:
            logger.error(f"Registry existence check failed: {e}")
            raise RegistryUnavailableError(f"Registry existence check failed: {e}")

    def stats(self) -> Dict[str, int]:
        try:
            with self.mongo_service.operation_timeout():
                total = self.collection.count_documents({})
                active = self.collection.count_documents({"active": True})
        except PyMongoError as e:
            logger.error(f"Registry stats failed: {e}")
            raise RegistryUnavailableError(f"Registry stats failed: {e}")

        return {"total_families": total, "active_families": active}
