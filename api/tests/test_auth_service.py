# SPDX-License-Identifier: Apache-2.0

"""
Tests for volunteer session tokens and revocation.
"""

import time
import jwt
import pytest
import redis
from unittest.mock import Mock

from models.enums import VerificationLevel, VolunteerPermission
from models.entities import VerifiedVolunteer
from services.auth import (
    AuthService, TokenValidationError, permissions_for, volunteer_id_for, TOKEN_TYPE
)
from services.redis import RedisService, BLOCKLIST_PREFIX


SECRET = "unit-test-secret-with-enough-length-for-hs256"


@pytest.fixture
def auth_service():
    return AuthService(SECRET, session_ttl_seconds=3600)


@pytest.fixture
def orb_volunteer():
    return VerifiedVolunteer(nullifier="0xnullifier", verification_level=VerificationLevel.ORB)


class TestPermissions:
    """Test permission assignment."""

    def test_device_permissions(self):
        permissions = permissions_for(VerificationLevel.DEVICE)

        assert VolunteerPermission.DISTRIBUTE_AID.value in permissions
        assert VolunteerPermission.MANAGE_FAMILIES.value not in permissions

    def test_orb_permissions(self):
        assert VolunteerPermission.MANAGE_FAMILIES.value in permissions_for("orb")

    def test_volunteer_id(self):
        volunteer_id = volunteer_id_for("0xnullifier")

        assert volunteer_id.startswith("VOL_")
        assert len(volunteer_id) == 16
        assert volunteer_id == volunteer_id_for("0xnullifier")
        assert volunteer_id != volunteer_id_for("0xother")


class TestAuthService:
    """Test session issuing and validation."""

    def test_issue_session(self, auth_service, orb_volunteer):
        session = auth_service.issue_session(orb_volunteer)

        assert session["token_type"] == "Bearer"
        assert session["volunteer_id"] == volunteer_id_for("0xnullifier")
        assert session["verification_level"] == "orb"
        assert session["expires_at"] > int(time.time() * 1000)

        payload = jwt.decode(session["session_token"], SECRET, algorithms=["HS256"])
        assert payload["sub"] == "0xnullifier"
        assert payload["type"] == TOKEN_TYPE
        assert payload["jti"]

    def test_validate_token(self, auth_service, orb_volunteer):
        token = auth_service.issue_session(orb_volunteer)["session_token"]

        payload = auth_service.validate_token(token)

        assert payload["sub"] == "0xnullifier"
        assert VolunteerPermission.MANAGE_FAMILIES.value in payload["permissions"]

    def test_wrong_secret(self, orb_volunteer):
        token = AuthService("another-secret-with-enough-length-for-hs256").issue_session(orb_volunteer)["session_token"]

        with pytest.raises(TokenValidationError):
            AuthService(SECRET).validate_token(token)

    def test_expired_token(self, orb_volunteer):
        service = AuthService(SECRET, session_ttl_seconds=-10)
        token = service.issue_session(orb_volunteer)["session_token"]

        with pytest.raises(TokenValidationError, match="expired"):
            service.validate_token(token)

    def test_wrong_token_type(self, auth_service):
        token = jwt.encode(
            {"sub": "0x1", "jti": "abc", "exp": int(time.time()) + 60, "type": "refresh"},
            SECRET,
            algorithm="HS256"
        )

        with pytest.raises(TokenValidationError, match="type"):
            auth_service.validate_token(token)

    def test_missing_claims(self, auth_service):
        token = jwt.encode({"sub": "0x1", "exp": int(time.time()) + 60}, SECRET, algorithm="HS256")

        with pytest.raises(TokenValidationError):
            auth_service.validate_token(token)

    def test_revoke_locally(self, auth_service, orb_volunteer):
        token = auth_service.issue_session(orb_volunteer)["session_token"]
        payload = auth_service.validate_token(token)

        auth_service.revoke_session(payload)

        assert auth_service.is_revoked(payload["jti"])
        with pytest.raises(TokenValidationError, match="revoked"):
            auth_service.validate_token(token)

    def test_revocation_does_not_affect_other_sessions(self, auth_service, orb_volunteer):
        first = auth_service.issue_session(orb_volunteer)["session_token"]
        second = auth_service.issue_session(orb_volunteer)["session_token"]

        auth_service.revoke_session(auth_service.validate_token(first))

        assert auth_service.validate_token(second)["sub"] == "0xnullifier"

    def test_revoke_through_redis(self, orb_volunteer):
        client = Mock()
        client.exists.return_value = 0
        service = AuthService(SECRET, redis_service=RedisService(client=client))
        payload = service.validate_token(service.issue_session(orb_volunteer)["session_token"])

        service.revoke_session(payload)

        key, ttl, _ = client.setex.call_args[0]
        assert key == f"{BLOCKLIST_PREFIX}{payload['jti']}"
        assert 0 < ttl <= service.session_ttl_seconds

        client.exists.return_value = 1
        assert service.is_revoked(payload["jti"])

    def test_redis_failure_falls_back_to_memory(self, orb_volunteer):
        client = Mock()
        client.setex.side_effect = redis.ConnectionError("down")
        client.exists.side_effect = redis.ConnectionError("down")
        service = AuthService(SECRET, redis_service=RedisService(client=client))
        payload = service.validate_token(service.issue_session(orb_volunteer)["session_token"])

        service.revoke_session(payload)

        assert service.is_revoked(payload["jti"])

    def test_extract_token_id(self, auth_service, orb_volunteer):
        token = auth_service.issue_session(orb_volunteer)["session_token"]

        assert auth_service.extract_token_id(token) == auth_service.validate_token(token)["jti"]
        assert auth_service.extract_token_id("not-a-token") is None


class TestRedisService:
    """Test the revocation store."""

    def test_disabled_without_url(self, monkeypatch):
        monkeypatch.delenv("REDIS_URL", raising=False)
        service = RedisService()

        assert service.is_available() is False
        assert service.is_token_blocked("abc") is False
        assert service.block_token("abc", 60) is False
        assert service.health_check()["status"] == "unavailable"

    def test_expired_token_needs_no_entry(self):
        client = Mock()
        service = RedisService(client=client)

        assert service.block_token("abc", 0) is True
        client.setex.assert_not_called()

    def test_health_check(self):
        client = Mock()
        client.ping.return_value = True

        assert RedisService(client=client).health_check()["status"] == "healthy"

        client.ping.side_effect = redis.ConnectionError("down")
        assert RedisService(client=client).health_check()["status"] == "unhealthy"
