"""Tests for the API Gateway.

These tests verify that:
1. Challenges and claims round-trip through the HTTP surface
2. Rejections are ordinary 200 responses, errors are not
3. Session endpoints validate their inputs
"""

import pytest
from fastapi.testclient import TestClient

from presence_guard.api.gateway import ServiceManager, app
from presence_guard.api.service import PresenceService
from presence_guard.common.config.settings import Config
from presence_guard.common.constants import Reasons
from presence_guard.common.exceptions import StoreUnavailableError
from presence_guard.storage.memory import InMemoryPresenceStore


class UnavailableStore(InMemoryPresenceStore):
    def put_challenge(self, challenge):
        raise StoreUnavailableError("store down", operation="put_challenge")

    def health_check(self):
        return False


@pytest.fixture
def make_service(catalog, policy, clock):
    def _make(store) -> PresenceService:
        service = PresenceService(
            config=Config(), store=store, catalog=catalog, policy=policy, clock=clock
        )
        ServiceManager.set_service(service)
        return service

    yield _make
    ServiceManager.shutdown()


@pytest.fixture
def service(make_service, store) -> PresenceService:
    return make_service(store)


@pytest.fixture
def client():
    """Create a test client for the API."""
    return TestClient(app)


@pytest.fixture
def claim_body(client, service, make_samples, device):
    """Build a claim body answering a challenge issued over HTTP."""

    def _make(**overrides) -> dict:
        challenge = client.post("/challenges", json={"user_id": "user_1"}).json()
        body = {
            "user_id": "user_1",
            "tag_id": "tag_castle",
            "challenge_id": challenge["challenge_id"],
            "nonce": challenge["nonce"],
            "samples": [s.model_dump(mode="json") for s in make_samples()],
            "device_attributes": device.model_dump(mode="json"),
        }
        body.update(overrides)
        return body

    return _make


class TestHealth:
    """Tests for health and readiness."""

    def test_health_check_returns_healthy(self, client):
        """Test health endpoint."""
        response = client.get("/health")

        assert response.status_code == 200
        assert response.json()["status"] == "healthy"

    def test_ready_when_store_answers(self, client, service):
        """Test readiness with a healthy store."""
        response = client.get("/ready")

        assert response.status_code == 200
        assert response.json()["status"] == "ready"

    def test_not_ready_when_store_fails(self, client, make_service):
        """Test readiness reports an unhealthy store."""
        make_service(UnavailableStore())

        response = client.get("/ready")

        assert response.status_code == 503

    def test_request_id_header_is_present(self, client):
        """Test every response carries a request id."""
        response = client.get("/health")

        assert response.headers["X-Request-ID"].startswith("req_")


class TestChallenges:
    """Tests for POST /challenges."""

    def test_issue_challenge(self, client, service, clock):
        """Test a challenge is issued with a 60 second expiry."""
        response = client.post("/challenges", json={"user_id": "user_1"})

        assert response.status_code == 200
        data = response.json()
        assert len(data["nonce"]) == 64
        assert data["expires_at_ms"] == clock() + 60_000

    def test_empty_user_returns_422(self, client, service):
        """Test request validation on the challenge body."""
        response = client.post("/challenges", json={"user_id": ""})

        assert response.status_code == 422

    def test_store_unavailable_returns_503(self, client, make_service):
        """Test store failures map to 503."""
        make_service(UnavailableStore())

        response = client.post("/challenges", json={"user_id": "user_1"})

        assert response.status_code == 503
        assert response.json()["error"] == "service_unavailable"


class TestClaims:
    """Tests for POST /claims."""

    def test_accepted_claim(self, client, claim_body):
        """Test a clean claim is accepted and rewarded."""
        response = client.post("/claims", json=claim_body())

        assert response.status_code == 200
        data = response.json()
        assert data["accepted"] is True
        assert data["confidence"] == 100
        assert data["reward"]["points"] == 10
        assert data["audit_id"].startswith("aud_")

    def test_rejection_is_a_normal_response(self, client, claim_body):
        """Test a rejected claim is a 200 carrying its reason."""
        client.post("/claims", json=claim_body())

        response = client.post("/claims", json=claim_body())

        assert response.status_code == 200
        data = response.json()
        assert data["accepted"] is False
        assert data["reason"] == Reasons.COOLDOWN_ACTIVE
        assert data["retry_after_seconds"] == 300

    def test_replayed_challenge(self, client, claim_body):
        """Test resubmitting an answered challenge is a REPLAY."""
        body = claim_body()
        client.post("/claims", json=body)

        response = client.post("/claims", json=body)

        assert response.json()["reason"] == Reasons.REPLAY

    def test_unknown_flow_returns_400(self, client, claim_body):
        """Test unknown flows are client errors."""
        response = client.post("/claims", json=claim_body(flow="teleport"))

        assert response.status_code == 400
        assert response.json()["error"] == "validation_error"

    def test_missing_user_returns_422(self, client, claim_body):
        """Test malformed claims are rejected by schema validation."""
        body = claim_body()
        del body["user_id"]

        response = client.post("/claims", json=body)

        assert response.status_code == 422


class TestSessions:
    """Tests for the session endpoints."""

    def test_login_opens_session(self, client, service, device, clock):
        """Test a LOGIN without a session id opens one."""
        response = client.post("/sessions/activity", json={
            "user_id": "user_1",
            "action": "LOGIN",
            "device_attributes": device.model_dump(mode="json"),
            "ip_address": "10.0.0.1",
        })

        assert response.status_code == 200
        data = response.json()
        assert data["session_id"].startswith("sess_")
        assert data["log_id"].startswith("sal_")
        assert data["expires_at_ms"] == clock() + 720 * 3_600_000

    def test_session_lifecycle(self, client, service, device):
        """Test validate, revoke, then validate again."""
        attributes = device.model_dump(mode="json")
        session_id = client.post("/sessions/activity", json={
            "user_id": "user_1", "action": "LOGIN",
            "device_attributes": attributes, "ip_address": "10.0.0.1",
        }).json()["session_id"]
        request = {
            "user_id": "user_1", "session_id": session_id,
            "device_attributes": attributes, "ip_address": "10.0.0.1",
        }

        trusted = client.post("/sessions/validate", json=request).json()
        revoked = client.post("/sessions/revoke", json={
            "user_id": "user_1", "session_id": session_id,
        }).json()
        after = client.post("/sessions/validate", json=request).json()

        assert trusted["trusted"] is True
        assert trusted["suspicious_score"] == 0
        assert revoked["revoked_count"] == 1
        assert after["trusted"] is False
        assert after["flags"] == ["SESSION_REVOKED"]

    def test_refresh_requires_session(self, client, service):
        """Test REFRESH without a session id is a 400."""
        response = client.post("/sessions/activity", json={"user_id": "user_1", "action": "REFRESH"})

        assert response.status_code == 400

    def test_validate_action_not_accepted(self, client, service):
        """Test only LOGIN, LOGOUT and REFRESH can be recorded."""
        response = client.post("/sessions/activity", json={
            "user_id": "user_1", "action": "VALIDATE", "session_id": "sess_1",
        })

        assert response.status_code == 400

    def test_revoke_requires_target(self, client, service):
        """Test a revoke naming neither a session nor all sessions is a 400."""
        response = client.post("/sessions/revoke", json={"user_id": "user_1"})

        assert response.status_code == 400

    def test_revoke_all_sessions(self, client, service):
        """Test revoking every session of a user."""
        for _ in range(2):
            client.post("/sessions/activity", json={"user_id": "user_1", "action": "LOGIN"})

        response = client.post("/sessions/revoke", json={"user_id": "user_1", "all_sessions": True})

        assert response.json()["revoked_count"] == 2


class TestClientContext:
    """Tests for taking the client IP from the connection."""

    def test_claim_ip_comes_from_forwarded_header(self, client, claim_body, device, store):
        """Test a body IP cannot hide a change of network from session scoring."""
        session_id = client.post(
            "/sessions/activity",
            json={
                "user_id": "user_1", "action": "LOGIN",
                "device_attributes": device.model_dump(mode="json"),
            },
            headers={"X-Forwarded-For": "10.0.0.1"},
        ).json()["session_id"]

        response = client.post(
            "/claims",
            json=claim_body(session_id=session_id, ip_address="10.0.0.1"),
            headers={"X-Forwarded-For": "198.51.100.99, 10.0.0.254"},
        )

        assert response.json()["accepted"] is True
        audit = store.recent_audits("user_1", 1)[0]
        assert audit.device_attributes.ip_address == "198.51.100.99"
        assert audit.metadata["session_score"] == 25

    def test_claim_ip_falls_back_to_peer(self, client, claim_body, store):
        """Test the peer address is used without a forwarded header."""
        client.post("/claims", json=claim_body(ip_address="203.0.113.7"))

        audit = store.recent_audits("user_1", 1)[0]
        assert audit.device_attributes.ip_address == "testclient"

    def test_user_agent_header_fills_missing_attribute(self, client, claim_body, store):
        """Test the User-Agent header is used when the body has none."""
        client.post(
            "/claims",
            json=claim_body(device_attributes={"platform": "iPhone"}),
            headers={"User-Agent": "PresenceApp/2.1 (iOS 17)"},
        )

        audit = store.recent_audits("user_1", 1)[0]
        assert audit.device_attributes.user_agent == "PresenceApp/2.1 (iOS 17)"
        assert audit.device_attributes.platform == "iPhone"


class TestBans:
    """Tests for the ban endpoints."""

    def test_banned_user_cannot_claim(self, client, claim_body, clock):
        """Test a ban rejects claims until it is lifted."""
        banned = client.post("/bans", json={"user_id": "user_1"})

        rejected = client.post("/claims", json=claim_body()).json()
        lifted = client.post("/bans/lift", json={"user_id": "user_1"})
        accepted = client.post("/claims", json=claim_body()).json()

        assert banned.status_code == 200
        assert banned.json()["identifier"] == "user:user_1"
        assert banned.json()["ban"]["reason"] == "Security violation"
        assert banned.json()["ban"]["expires_at_ms"] == clock() + 3_600_000
        assert rejected["reason"] == Reasons.BANNED
        assert rejected["retry_after_seconds"] == 3600
        assert lifted.json()["active"] is False
        assert accepted["accepted"] is True

    def test_banned_ip_cannot_claim(self, client, claim_body):
        """Test an IP ban applies to whoever claims from that address."""
        client.post("/bans", json={"ip_address": "198.51.100.99", "duration_seconds": 60})

        response = client.post(
            "/claims", json=claim_body(), headers={"X-Forwarded-For": "198.51.100.99"}
        )

        assert response.json()["reason"] == Reasons.BANNED
        assert response.json()["retry_after_seconds"] == 60

    def test_ban_requires_exactly_one_target(self, client, service):
        """Test a ban naming both a user and an IP is a 400."""
        response = client.post("/bans", json={"user_id": "user_1", "ip_address": "10.0.0.1"})

        assert response.status_code == 400


class TestCheatStats:
    """Tests for GET /users/{user_id}/cheat-stats."""

    def test_stats_over_recent_claims(self, client, claim_body):
        """Test one clean and one fatal decision average to MEDIUM risk."""
        client.post("/claims", json=claim_body())
        client.post("/claims", json=claim_body())

        data = client.get("/users/user_1/cheat-stats").json()

        assert data["total_actions"] == 2
        assert data["suspicious_actions"] == 1
        assert data["avg_suspicious_score"] == 50.0
        assert data["flag_counts"] == {Reasons.COOLDOWN_ACTIVE: 1}
        assert data["risk_level"] == "MEDIUM"

    def test_unknown_user_is_low_risk(self, client, service):
        """Test a user with no history has empty stats."""
        data = client.get("/users/nobody/cheat-stats").json()

        assert data["total_actions"] == 0
        assert data["risk_level"] == "LOW"


class TestForwardedForDisabled:
    """Tests for deployments not behind a proxy."""

    def test_forwarded_header_ignored(self, client, service, claim_body, store):
        """Without a trusted proxy the peer address wins over X-Forwarded-For."""
        service.config.trust_forwarded_for = False

        client.post("/claims", json=claim_body(), headers={"X-Forwarded-For": "198.51.100.99"})

        assert store.recent_audits("user_1", 1)[0].device_attributes.ip_address == "testclient"
