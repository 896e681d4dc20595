"""Tests for SessionAnomalyDetector."""

from unittest.mock import MagicMock

import pytest

from presence_guard.common.config.policy import SessionPolicy
from presence_guard.common.constants import SessionFlags
from presence_guard.data.schemas.device import DeviceAttributes
from presence_guard.data.schemas.session import SessionAction, SessionRecord
from presence_guard.session.detector import SessionAnomalyDetector


HOUR = 3600


@pytest.fixture
def detector(store, clock) -> SessionAnomalyDetector:
    return SessionAnomalyDetector(store, SessionPolicy(), clock=clock)


@pytest.fixture
def laptop() -> DeviceAttributes:
    return DeviceAttributes(
        user_agent="Mozilla/5.0 (Windows NT 10.0; Win64; x64) Chrome/120.0",
        screen_resolution="1920x1080",
        timezone="Europe/Madrid",
        language="es-ES",
        platform="Win32",
    )


class TestSessionLifecycle:
    """Tests for registering and revoking sessions."""

    def test_register_logs_login(self, detector, store, device, clock):
        """Registering opens a session and logs its LOGIN."""
        session = detector.register_session("user_1", device, "10.0.0.1")

        assert store.get_session(session.session_id) == session
        assert session.expires_at_ms == clock() + 720 * HOUR * 1000
        logs = store.session_activity(session.session_id, 10)
        assert [log.action for log in logs] == [SessionAction.LOGIN]
        assert logs[0].fingerprint_id == session.fingerprint_id

    def test_revoke_session(self, detector, store, device):
        """Revocation marks the session and logs a REVOKE entry."""
        session = detector.register_session("user_1", device, "10.0.0.1")

        assert detector.revoke_session("user_1", session.session_id, "logout")

        assert store.get_session(session.session_id).revoked
        latest = store.session_activity(session.session_id, 1)[0]
        assert latest.action == SessionAction.REVOKE
        assert latest.flags == ["logout"]

    def test_revoke_survives_metrics_outage(self, store, device, clock):
        """A failing revocation metric does not turn a revocation into an error."""
        metrics = MagicMock()
        metrics.record_session_revocation.side_effect = OSError("network down")
        detector = SessionAnomalyDetector(store, clock=clock, metrics=metrics)
        session = detector.register_session("user_1", device, "10.0.0.1")

        assert detector.revoke_session("user_1", session.session_id, "manual")

        assert store.get_session(session.session_id).revoked
        metrics.record_session_revocation.assert_called_once_with("manual")

    def test_revoke_all_counts_through_metrics_outage(self, store, device, clock):
        """Every session is revoked and counted while metrics are down."""
        metrics = MagicMock()
        metrics.record_session_revocation.side_effect = OSError("network down")
        detector = SessionAnomalyDetector(store, clock=clock, metrics=metrics)
        for _ in range(3):
            detector.register_session("user_1", device, "10.0.0.1")

        assert detector.revoke_all_user_sessions("user_1") == 3
        assert detector.list_active_sessions("user_1") == []

    def test_cannot_revoke_someone_elses_session(self, detector, device):
        """Revoking another user's session is refused."""
        session = detector.register_session("user_1", device, "10.0.0.1")

        assert not detector.revoke_session("user_2", session.session_id)

    def test_revoke_all_keeps_current(self, detector, device, clock):
        """All sessions but the excepted one are revoked."""
        keep = detector.register_session("user_1", device, "10.0.0.1")
        clock.advance(seconds=1)
        detector.register_session("user_1", device, "10.0.0.1")
        clock.advance(seconds=1)
        detector.register_session("user_1", device, "10.0.0.1")

        count = detector.revoke_all_user_sessions("user_1", "password_change", keep.session_id)

        assert count == 2
        assert [s.session_id for s in detector.list_active_sessions("user_1")] == [keep.session_id]


class TestSessionScoring:
    """Tests for session trust scoring."""

    def test_unknown_session(self, detector):
        """An unknown session scores 100 and should be revoked."""
        assessment = detector.score_session("user_1", "sess_missing")

        assert assessment.suspicious_score == 100
        assert assessment.flags == [SessionFlags.SESSION_NOT_FOUND]
        assert assessment.should_revoke
        assert not assessment.trusted

    def test_same_device_same_ip_is_trusted(self, detector, device):
        """A continuing session on the same device and IP scores 0."""
        session = detector.register_session("user_1", device, "10.0.0.1")

        assessment = detector.score_session("user_1", session.session_id, device, "10.0.0.1")

        assert assessment.suspicious_score == 0
        assert assessment.trusted
        assert assessment.flags == []

    def test_no_previous_logs(self, detector, store, clock):
        """A session without any activity is mildly suspicious."""
        store.put_session(SessionRecord(
            session_id="sess_1", user_id="user_1",
            created_at_ms=clock(), expires_at_ms=clock() + HOUR * 1000,
        ))

        assessment = detector.score_session("user_1", "sess_1")

        assert assessment.suspicious_score == 20
        assert assessment.flags == [SessionFlags.NO_PREVIOUS_LOGS]

    def test_fingerprint_and_ip_change(self, detector, device, laptop):
        """A new device on a new IP is suspicious but below the revoke threshold."""
        session = detector.register_session("user_1", device, "10.0.0.1")

        assessment = detector.score_session("user_1", session.session_id, laptop, "10.0.0.2")

        assert assessment.suspicious_score == 65
        assert assessment.flags == [SessionFlags.FINGERPRINT_CHANGED, SessionFlags.IP_CHANGED]
        assert assessment.trusted
        assert not assessment.should_revoke

    def test_scoring_writes_nothing(self, detector, store, device, laptop):
        """score_session is read-only."""
        session = detector.register_session("user_1", device, "10.0.0.1")

        detector.score_session("user_1", session.session_id, laptop, "10.0.0.2")

        assert len(store.session_activity(session.session_id, 10)) == 1

    def test_session_too_old(self, store, device, clock):
        """Long-lived sessions accrue a small penalty."""
        policy = SessionPolicy(session_ttl_hours=1000, max_session_age_hours=24)
        detector = SessionAnomalyDetector(store, policy, clock=clock)
        session = detector.register_session("user_1", device, "10.0.0.1")
        clock.advance(seconds=25 * HOUR)

        assessment = detector.score_session("user_1", session.session_id, device, "10.0.0.1")

        assert assessment.suspicious_score == 15
        assert assessment.flags == [SessionFlags.SESSION_TOO_OLD]

    def test_default_policy_flags_week_old_session(self, detector, device, clock):
        """With the shipped defaults a session older than a week is flagged before it expires."""
        session = detector.register_session("user_1", device, "10.0.0.1")
        clock.advance(seconds=169 * HOUR)

        assessment = detector.score_session("user_1", session.session_id, device, "10.0.0.1")

        assert assessment.suspicious_score == 15
        assert assessment.flags == [SessionFlags.SESSION_TOO_OLD]
        assert assessment.trusted

    def test_revoked_session(self, detector, device):
        """A revoked session is untrusted without further scoring."""
        session = detector.register_session("user_1", device, "10.0.0.1")
        detector.revoke_session("user_1", session.session_id)

        assessment = detector.score_session("user_1", session.session_id, device, "10.0.0.1")

        assert assessment.flags == [SessionFlags.SESSION_REVOKED]
        assert not assessment.trusted


class TestSessionValidation:
    """Tests for validate_session side effects."""

    def test_account_sharing_is_revoked(self, detector, store, device, laptop, clock):
        """Device drift plus logins from three places revokes the session."""
        shared = detector.register_session("user_1", device, "10.0.0.1")
        clock.advance(seconds=60)
        detector.register_session("user_1", device, "10.0.0.2")
        clock.advance(seconds=60)
        detector.register_session("user_1", device, "10.0.0.3")

        assessment = detector.validate_session("user_1", shared.session_id, laptop, "10.0.0.4")

        assert assessment.suspicious_score == 100
        assert SessionFlags.MULTIPLE_LOCATIONS in assessment.flags
        assert assessment.should_revoke
        assert assessment.revoked
        assert store.get_session(shared.session_id).revoked
        actions = [log.action for log in store.session_activity(shared.session_id, 10)]
        assert SessionAction.VALIDATE in actions
        assert SessionAction.REVOKE in actions

    def test_auto_revoke_disabled(self, store, device, laptop, clock):
        """With auto-revoke off the verdict is reported but not acted on."""
        detector = SessionAnomalyDetector(store, clock=clock, auto_revoke=False)
        shared = detector.register_session("user_1", device, "10.0.0.1")
        clock.advance(seconds=60)
        detector.register_session("user_1", device, "10.0.0.2")
        clock.advance(seconds=60)
        detector.register_session("user_1", device, "10.0.0.3")

        assessment = detector.validate_session("user_1", shared.session_id, laptop, "10.0.0.4")

        assert assessment.should_revoke
        assert not assessment.revoked
        assert not store.get_session(shared.session_id).revoked

    def test_excessive_ip_changes(self, detector, store, device, clock):
        """More than five login IPs in a day adds to an IP change."""
        first = detector.register_session("user_1", device, "10.0.0.0")
        for i in range(1, 6):
            clock.advance(seconds=2 * HOUR)
            detector.register_session("user_1", device, f"10.0.0.{i}")

        assessment = detector.validate_session("user_1", first.session_id, device, "10.0.0.99")

        assert assessment.suspicious_score == 55
        assert assessment.flags == [SessionFlags.IP_CHANGED, SessionFlags.EXCESSIVE_IP_CHANGES]
        assert not assessment.revoked
        latest = store.session_activity(first.session_id, 1)[0]
        assert latest.action == SessionAction.VALIDATE
        assert latest.suspicious

    def test_expired_session_is_revoked(self, detector, store, device, clock):
        """Expired sessions are revoked on validation."""
        session = detector.register_session("user_1", device, "10.0.0.1")
        clock.advance(seconds=721 * HOUR)

        assessment = detector.validate_session("user_1", session.session_id, device, "10.0.0.1")

        assert assessment.flags == [SessionFlags.SESSION_EXPIRED]
        assert assessment.revoked
        assert store.session_activity(session.session_id, 1)[0].flags == ["expired"]


class TestAnomalousSessionSweep:
    """Tests for detect_anomalous_sessions."""

    def test_many_ips_in_one_session(self, detector, device, clock):
        """A session refreshed from three IPs is reported."""
        session = detector.register_session("user_1", device, "10.0.0.1")
        for ip in ("10.0.0.2", "10.0.0.3"):
            clock.advance(seconds=60)
            detector.record_activity("user_1", session.session_id, SessionAction.REFRESH, ip_address=ip)

        anomalous = detector.detect_anomalous_sessions("user_1")

        assert len(anomalous) == 1
        assert anomalous[0].session_id == session.session_id
        assert anomalous[0].distinct_ips == 3
        assert anomalous[0].distinct_fingerprints == 1

    def test_quiet_sessions_not_reported(self, detector, device):
        """A single-device, single-IP session is not anomalous."""
        detector.register_session("user_1", device, "10.0.0.1")

        assert detector.detect_anomalous_sessions("user_1") == []
