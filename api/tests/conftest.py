# -*- coding: utf-8 -*-
# SPDX-License-Identifier: Apache-2.0

"""
Pytest configuration and fixtures.
"""

import contextlib
import os
import pytest
from unittest.mock import MagicMock

# Set test environment
os.environ['ENVIRONMENT'] = 'test'
os.environ['STORAGE_BACKEND'] = 'memory'
os.environ['ATTESTATION_MODE'] = 'mock'
os.environ['OTEL_ENABLED'] = 'false'
os.environ['JWT_SECRET'] = 'test-secret-key-with-enough-length-for-hs256'
os.environ.pop('REDIS_URL', None)

from models.entities import FamilyRecord, VerifiedIdentity  # noqa: E402
from domain.identifiers import compute_claim_fingerprint  # noqa: E402
from domain.families import register_family  # noqa: E402
from services.registry import InMemoryFamilyRegistry  # noqa: E402
from services.ledger import InMemoryDistributionLedger  # noqa: E402


BASE_TIME = 1_700_000_000_000
VOLUNTEER_NULLIFIER = "0x" + "ab" * 32


@pytest.fixture
def now():
    """Fixed clock value (ms since epoch)."""
    return BASE_TIME


@pytest.fixture
def registry():
    """Empty in-memory family registry."""
    return InMemoryFamilyRegistry()


@pytest.fixture
def ledger():
    """Empty in-memory distribution ledger."""
    return InMemoryDistributionLedger()


@pytest.fixture
def sample_identity():
    """Verified identity as returned by mock attestation."""
    return VerifiedIdentity(
        hashed_claim="hashed-claim-0001",
        nationality="IND",
        minimum_age=True,
        verified_at=BASE_TIME
    )


@pytest.fixture
def registered_family(registry, sample_identity):
    """A family registered in the in-memory registry; returns FamilyRegistration."""
    result = register_family(
        registry,
        sample_identity,
        "Ahmedabad Ward 12",
        4,
        BASE_TIME - 1000,
        VOLUNTEER_NULLIFIER
    )
    assert result.success
    return result.value


@pytest.fixture
def family_commitment(registered_family):
    """Commitment of the registered family."""
    return registered_family.commitment


@pytest.fixture
def make_family_record():
    """Factory for FamilyRecord instances."""
    def _make(commitment: str = "a" * 64, active: bool = True, family_size: int = 4) -> FamilyRecord:
        return FamilyRecord(
            commitment=commitment,
            family_size=family_size,
            registration_timestamp=BASE_TIME,
            active=active,
            registered_by=VOLUNTEER_NULLIFIER,
            claim_fingerprint=compute_claim_fingerprint(commitment)
        )
    return _make


@pytest.fixture
def mock_mongo_service():
    """MongoDBService stand-in whose collections are MagicMocks."""
    collections = {}

    def get_collection(name):
        if name not in collections:
            collections[name] = MagicMock(name=f"collection:{name}")
        return collections[name]

    service = MagicMock()
    service.get_collection.side_effect = get_collection
    service.operation_timeout.side_effect = lambda: contextlib.nullcontext()
    service.collections = collections
    return service


@pytest.fixture
def app():
    """Flask application with in-memory storage and mock attestation."""
    from app import create_app

    application = create_app({
        'TESTING': True,
        'OTEL_ENABLED': False,
        'BASE_URL': 'http://testserver'
    })
    return application


@pytest.fixture
def client(app):
    """Flask test client."""
    return app.test_client()


@pytest.fixture
def volunteer_headers(client):
    """Authorization headers for an orb-verified volunteer session."""
    response = client.post('/api/volunteers/session', json={
        "action": "verify-volunteer",
        "payload": {"nullifier_hash": VOLUNTEER_NULLIFIER, "verification_level": "orb"}
    })
    assert response.status_code == 201
    return {"Authorization": f"Bearer {response.get_json()['sessionToken']}"}


@pytest.fixture
def device_volunteer_headers(client):
    """Authorization headers for a device-verified volunteer session."""
    response = client.post('/api/volunteers/session', json={
        "payload": {"nullifier_hash": "0x" + "cd" * 32, "verification_level": "device"}
    })
    assert response.status_code == 201
    return {"Authorization": f"Bearer {response.get_json()['sessionToken']}"}
