"""Session Anomaly Detector - trust scoring of authenticated sessions.

Runs at session validate/refresh time, independent of claim submission.
It answers: "Is this still the same person on the same device?"
Account sharing shows up as device drift, IP churn and logins from
several places at once.

The detector owns its own append-only activity log. The claim
orchestrator may consult ``score_session`` (read-only) but never blocks a
claim on it.
"""

import logging
from typing import List, Optional, Tuple
from uuid import uuid4

from presence_guard.common.clock import Clock, now_ms
from presence_guard.common.config.policy import SessionPolicy
from presence_guard.common.constants import SessionFlags
from presence_guard.data.schemas.device import DeviceAttributes
from presence_guard.data.schemas.session import (
    AnomalousSession,
    SessionAction,
    SessionActivity,
    SessionAssessment,
    SessionRecord,
)
from presence_guard.storage.base import PresenceStore
from presence_guard.validators.fingerprint import FingerprintEngine

logger = logging.getLogger(__name__)

HOUR_MS = 3_600_000


class SessionAnomalyDetector:
    """Scores session continuity and manages session lifecycle."""

    RECENT_LOG_LIMIT = 10
    LOGIN_SAMPLE_SIZE = 5

    def __init__(
        self,
        store: PresenceStore,
        policy: Optional[SessionPolicy] = None,
        fingerprint_engine: Optional[FingerprintEngine] = None,
        clock: Clock = now_ms,
        auto_revoke: bool = True,
        metrics=None,
    ):
        """Initialize the detector.

        Args:
            store: Presence store holding sessions and the activity log
            policy: Scoring weights and thresholds
            fingerprint_engine: Used to fingerprint the current device
            clock: Epoch-millisecond clock
            auto_revoke: Revoke sessions scoring at or above the revoke threshold
            metrics: Optional MetricsCollector
        """
        self.store = store
        self.policy = policy or SessionPolicy()
        self.fingerprints = fingerprint_engine or FingerprintEngine()
        self.clock = clock
        self.auto_revoke = auto_revoke
        self.metrics = metrics

    # ========== LIFECYCLE ==========

    def register_session(
        self,
        user_id: str,
        device_attributes: Optional[DeviceAttributes] = None,
        ip_address: Optional[str] = None,
        session_id: Optional[str] = None,
    ) -> SessionRecord:
        """Create a session and log the LOGIN that opened it."""
        created_at = self.clock()
        attributes = device_attributes or DeviceAttributes()
        session = SessionRecord(
            session_id=session_id or f"sess_{uuid4().hex}",
            user_id=user_id,
            created_at_ms=created_at,
            expires_at_ms=created_at + self.policy.session_ttl_hours * HOUR_MS,
            ip_address=ip_address,
            fingerprint_id=self.fingerprints.compute_hash(attributes),
        )
        self.store.put_session(session)
        self.record_activity(user_id, session.session_id, SessionAction.LOGIN, attributes, ip_address)
        return session

    def record_activity(
        self,
        user_id: str,
        session_id: str,
        action: SessionAction,
        device_attributes: Optional[DeviceAttributes] = None,
        ip_address: Optional[str] = None,
        suspicious: bool = False,
        flags: Optional[List[str]] = None,
    ) -> SessionActivity:
        """Append one entry to the session activity log.

        Entries without device attributes carry no fingerprint.
        """
        activity = SessionActivity(
            user_id=user_id,
            session_id=session_id,
            action=action,
            ip_address=ip_address,
            user_agent=device_attributes.user_agent if device_attributes else None,
            fingerprint_id=(
                self.fingerprints.compute_hash(device_attributes)
                if device_attributes is not None else None
            ),
            timestamp_ms=self.clock(),
            suspicious=suspicious,
            flags=list(flags or []),
        )
        self.store.append_session_activity(activity)
        return activity

    def revoke_session(self, user_id: str, session_id: str, reason: str = "manual") -> bool:
        """Revoke one session of a user. False if it is unknown or not theirs."""
        session = self.store.get_session(session_id)
        if session is None or session.user_id != user_id:
            return False

        revoked = self.store.revoke_session(session_id, self.clock())
        if revoked:
            self.record_activity(
                user_id, session_id, SessionAction.REVOKE,
                ip_address=session.ip_address, flags=[reason],
            )
            logger.info(
                "Session revoked",
                extra={"user_id": user_id, "session_id": session_id, "reason": reason},
            )
            if self.metrics is not None:
                try:
                    self.metrics.record_session_revocation(reason)
                except OSError as e:
                    logger.warning(f"Failed to record session revocation metric: {e}")
        return revoked

    def revoke_all_user_sessions(
        self,
        user_id: str,
        reason: str = "manual",
        except_session_id: Optional[str] = None,
    ) -> int:
        """Revoke every active session of a user, optionally keeping one."""
        count = 0
        for session in self.list_active_sessions(user_id):
            if session.session_id == except_session_id:
                continue
            if self.revoke_session(user_id, session.session_id, reason):
                count += 1
        return count

    def list_active_sessions(self, user_id: str) -> List[SessionRecord]:
        now = self.clock()
        return [s for s in self.store.list_user_sessions(user_id) if s.is_active(now)]

    # ========== SCORING ==========

    def score_session(
        self,
        user_id: str,
        session_id: str,
        device_attributes: Optional[DeviceAttributes] = None,
        ip_address: Optional[str] = None,
    ) -> SessionAssessment:
        """Score a session without writing anything."""
        now = self.clock()
        session = self.store.get_session(session_id)

        if session is None or session.user_id != user_id:
            return SessionAssessment(
                session_id=session_id,
                trusted=False,
                suspicious_score=100,
                flags=[SessionFlags.SESSION_NOT_FOUND],
                should_revoke=True,
            )
        if session.revoked:
            return SessionAssessment(
                session_id=session_id,
                trusted=False,
                suspicious_score=0,
                flags=[SessionFlags.SESSION_REVOKED],
            )
        if now > session.expires_at_ms:
            return SessionAssessment(
                session_id=session_id,
                trusted=False,
                suspicious_score=0,
                flags=[SessionFlags.SESSION_EXPIRED],
                should_revoke=True,
            )

        score, flags = self._score(user_id, session, device_attributes or DeviceAttributes(),
                                   ip_address, now)
        should_revoke = score >= self.policy.revoke_threshold
        return SessionAssessment(
            session_id=session_id,
            trusted=not should_revoke,
            suspicious_score=score,
            flags=flags,
            should_revoke=should_revoke,
        )

    def validate_session(
        self,
        user_id: str,
        session_id: str,
        device_attributes: Optional[DeviceAttributes] = None,
        ip_address: Optional[str] = None,
    ) -> SessionAssessment:
        """Score a session, log suspicious activity and revoke if warranted."""
        assessment = self.score_session(user_id, session_id, device_attributes, ip_address)

        if SessionFlags.SESSION_NOT_FOUND in assessment.flags:
            logger.warning("Session not found", extra={"user_id": user_id, "session_id": session_id})
            return assessment

        if assessment.suspicious_score >= self.policy.suspicious_threshold:
            self.record_activity(
                user_id, session_id, SessionAction.VALIDATE,
                device_attributes, ip_address,
                suspicious=True, flags=assessment.flags,
            )
            logger.warning(
                "Suspicious session",
                extra={
                    "user_id": user_id,
                    "session_id": session_id,
                    "score": assessment.suspicious_score,
                    "flags": assessment.flags,
                },
            )

        if assessment.should_revoke and self.auto_revoke:
            reason = "expired" if SessionFlags.SESSION_EXPIRED in assessment.flags else "suspicious"
            revoked = self.revoke_session(user_id, session_id, reason)
            assessment = assessment.model_copy(update={"revoked": revoked})

        return assessment

    def _score(
        self,
        user_id: str,
        session: SessionRecord,
        device_attributes: DeviceAttributes,
        ip_address: Optional[str],
        now: int,
    ) -> Tuple[int, List[str]]:
        policy = self.policy
        score = 0
        flags: List[str] = []

        recent = [
            log for log in self.store.session_activity(session.session_id, self.RECENT_LOG_LIMIT)
            if log.user_id == user_id
        ]
        if not recent:
            score += policy.no_previous_logs_score
            flags.append(SessionFlags.NO_PREVIOUS_LOGS)

        current_fingerprint = self.fingerprints.compute_hash(device_attributes)
        known_fingerprint = next((log.fingerprint_id for log in recent if log.fingerprint_id), None)
        if known_fingerprint is not None and known_fingerprint != current_fingerprint:
            score += policy.fingerprint_changed_score
            flags.append(SessionFlags.FINGERPRINT_CHANGED)

        last_ip = next((log.ip_address for log in recent if log.ip_address), None)
        if last_ip is not None and ip_address is not None and last_ip != ip_address:
            score += policy.ip_changed_score
            flags.append(SessionFlags.IP_CHANGED)

            day_activity = self.store.user_session_activity_since(user_id, now - 24 * HOUR_MS)
            distinct_ips = {
                log.ip_address for log in day_activity
                if log.action in (SessionAction.LOGIN, SessionAction.REFRESH) and log.ip_address
            }
            if len(distinct_ips) > policy.max_distinct_ips_24h:
                score += policy.excessive_ip_changes_score
                flags.append(SessionFlags.EXCESSIVE_IP_CHANGES)

        hour_logins = [
            log for log in self.store.user_session_activity_since(user_id, now - HOUR_MS)
            if log.action == SessionAction.LOGIN
        ][: self.LOGIN_SAMPLE_SIZE]
        if len({log.ip_address for log in hour_logins}) >= policy.multiple_locations_min_ips:
            score += policy.multiple_locations_score
            flags.append(SessionFlags.MULTIPLE_LOCATIONS)

        if now - session.created_at_ms > policy.max_session_age_hours * HOUR_MS:
            score += policy.session_too_old_score
            flags.append(SessionFlags.SESSION_TOO_OLD)

        return min(100, score), flags

    # ========== SWEEPS ==========

    def detect_anomalous_sessions(self, user_id: str) -> List[AnomalousSession]:
        """Active sessions whose recent activity spans many IPs or devices."""
        policy = self.policy
        anomalous = []
        for session in self.list_active_sessions(user_id):
            logs = self.store.session_activity(session.session_id, policy.anomaly_log_window)
            ips = {log.ip_address for log in logs if log.ip_address}
            fingerprints = {log.fingerprint_id for log in logs if log.fingerprint_id}
            if len(ips) >= policy.anomaly_min_ips or len(fingerprints) >= policy.anomaly_min_fingerprints:
                anomalous.append(AnomalousSession(
                    session_id=session.session_id,
                    distinct_ips=len(ips),
                    distinct_fingerprints=len(fingerprints),
                ))
        return anomalous
