# SPDX-License-Identifier: Apache-2.0

"""
Attestation collaborators for beneficiary identity and volunteer verification.

The core never verifies proofs itself: it trusts the claim returned here. The
provider variant is selected once at startup from configuration.
"""

import hashlib
import logging
import time
from abc import ABC, abstractmethod
from typing import Dict, Any, Optional

import requests
from opentelemetry import trace
from pydantic import ValidationError

from models.enums import AttestationMode, VerificationLevel
from models.entities import VerifiedIdentity, VerifiedVolunteer

logger = logging.getLogger(__name__)
tracer = trace.get_tracer(__name__)

VOLUNTEER_ACTION = "verify-volunteer"


class AttestationError(Exception):
    """Raised when a proof cannot be verified."""

    def __init__(self, message: str, code: str = "INVALID_PROOF"):
        super().__init__(message)
        self.message = message
        self.code = code


class AttestationProvider(ABC):
    """Attestation collaborator contract."""

    mode: AttestationMode

    @abstractmethod
    def verify_identity(self, proof: Dict[str, Any]) -> VerifiedIdentity:
        """Verify a beneficiary identity proof and return its hashed claim."""

    @abstractmethod
    def verify_volunteer(self, payload: Dict[str, Any], action: str, signal: Optional[str] = None) -> VerifiedVolunteer:
        """Verify a volunteer proof and return its nullifier."""

    @staticmethod
    def _check_action(action: str) -> None:
        if action != VOLUNTEER_ACTION:
            raise AttestationError("Invalid action for volunteer verification", "INVALID_ACTION")


class MockAttestation(AttestationProvider):
    """
    Development attestation.

    Accepts any proof carrying an ``identifier`` (hashed here) or an already
    hashed ``hashedIdentifier``, and any volunteer payload with a
    ``nullifier_hash``.
    """

    mode = AttestationMode.MOCK

    def verify_identity(self, proof: Dict[str, Any]) -> VerifiedIdentity:
        hashed_claim = proof.get("hashedIdentifier")
        if not hashed_claim and proof.get("identifier"):
            hashed_claim = hashlib.sha256(
                f"mock-identity:{proof['identifier']}".encode('utf-8')
            ).hexdigest()

        if not hashed_claim:
            raise AttestationError("Identity proof is missing an identifier")

        subject = proof.get("credentialSubject", {})
        return VerifiedIdentity(
            hashed_claim=str(hashed_claim),
            nationality=subject.get("nationality", "IND"),
            gender=subject.get("gender"),
            minimum_age=subject.get("minimumAge", True),
            verified_at=proof.get("verificationTimestamp") or int(time.time() * 1000)
        )

    def verify_volunteer(self, payload: Dict[str, Any], action: str, signal: Optional[str] = None) -> VerifiedVolunteer:
        self._check_action(action)

        nullifier = payload.get("nullifier_hash")
        if not nullifier:
            raise AttestationError("Volunteer proof is missing a nullifier")

        return VerifiedVolunteer(
            nullifier=nullifier,
            verification_level=payload.get("verification_level", VerificationLevel.ORB.value)
        )


class ProtocolAttestation(AttestationProvider):
    """Attestation backed by a remote proof verifier service."""

    mode = AttestationMode.PROTOCOL

    def __init__(self, verifier_url: str, app_id: Optional[str] = None, timeout_seconds: float = 10.0):
        if not verifier_url:
            raise ValueError("Attestation verifier URL is required in protocol mode")
        self.verifier_url = verifier_url.rstrip('/')
        self.app_id = app_id
        self.timeout_seconds = timeout_seconds
        self.session = requests.Session()
        logger.info(f"Protocol attestation configured for {self.verifier_url}")

    def _post(self, path: str, body: Dict[str, Any]) -> Dict[str, Any]:
        url = f"{self.verifier_url}/{path}"
        with tracer.start_as_current_span("attestation.verify") as span:
            span.set_attribute("attestation.endpoint", path)
            try:
                response = self.session.post(url, json=body, timeout=self.timeout_seconds)
            except requests.RequestException as e:
                logger.error(f"Attestation verifier unreachable: {e}")
                raise AttestationError("Attestation verifier unavailable", "VERIFIER_UNAVAILABLE")

            span.set_attribute("http.status_code", response.status_code)
            if response.status_code != 200:
                logger.warning(
                    "Attestation verifier rejected proof",
                    extra={"status_code": response.status_code, "endpoint": path}
                )
                raise AttestationError("Proof verification failed")

            try:
                return response.json()
            except ValueError:
                raise AttestationError("Malformed verifier response", "VERIFIER_UNAVAILABLE")

    def verify_identity(self, proof: Dict[str, Any]) -> VerifiedIdentity:
        data = self._post("identity", {"proof": proof, "app_id": self.app_id})
        if not data.get("verified"):
            raise AttestationError("Identity proof verification failed")

        subject = data.get("credentialSubject", {})
        try:
            return VerifiedIdentity(
                hashed_claim=data.get("hashedIdentifier", ""),
                nationality=subject.get("nationality"),
                gender=subject.get("gender"),
                minimum_age=bool(subject.get("minimumAge", False)),
                verified_at=data.get("verificationTimestamp")
            )
        except ValidationError:
            raise AttestationError("Verifier returned an incomplete identity claim")

    def verify_volunteer(self, payload: Dict[str, Any], action: str, signal: Optional[str] = None) -> VerifiedVolunteer:
        self._check_action(action)

        data = self._post("volunteer", {
            "payload": payload,
            "action": action,
            "signal": signal,
            "app_id": self.app_id
        })
        if not data.get("success"):
            raise AttestationError("Volunteer proof verification failed")

        nullifier = payload.get("nullifier_hash")
        if not nullifier:
            raise AttestationError("Volunteer proof is missing a nullifier")

        return VerifiedVolunteer(
            nullifier=nullifier,
            verification_level=payload.get("verification_level", VerificationLevel.DEVICE.value)
        )


def create_attestation_provider(
    mode: str,
    verifier_url: Optional[str] = None,
    app_id: Optional[str] = None,
    timeout_seconds: float = 10.0
) -> AttestationProvider:
    """Create the attestation provider for the configured mode."""
    resolved = AttestationMode(mode.lower())
    if resolved == AttestationMode.PROTOCOL:
        return ProtocolAttestation(verifier_url, app_id, timeout_seconds)

    logger.warning("Using mock attestation; identity proofs are not verified")
    return MockAttestation()
