"""In-memory presence store for tests and single-process development.

One lock guards every structure, which makes the two atomic operations
trivially atomic. Not suitable for more than one service instance.
"""

import logging
import threading
from collections import defaultdict
from typing import Dict, List, Optional, Tuple

from presence_guard.common.constants import Reasons
from presence_guard.common.exceptions import CommitConflictError
from presence_guard.data.schemas.challenge import Challenge, ConsumeOutcome
from presence_guard.data.schemas.records import AuditRecord, BanRecord, RewardTotals, VisitRecord
from presence_guard.data.schemas.session import SessionActivity, SessionRecord
from presence_guard.storage.base import CommitLimits, PresenceStore, challenge_rejection

logger = logging.getLogger(__name__)

HOUR_MS = 3_600_000


class InMemoryPresenceStore(PresenceStore):
    """Thread-safe, process-local PresenceStore."""

    def __init__(self):
        self._lock = threading.RLock()
        self._challenges: Dict[str, Challenge] = {}
        self._audits: Dict[str, List[AuditRecord]] = defaultdict(list)
        self._visits: List[VisitRecord] = []
        self._last_visit: Dict[Tuple[str, str], int] = {}
        self._rewards: Dict[str, RewardTotals] = {}
        self._sessions: Dict[str, SessionRecord] = {}
        self._session_logs: List[SessionActivity] = []
        self._bans: Dict[str, BanRecord] = {}
        self._ip_windows: Dict[str, Tuple[int, int]] = {}

    # ========== CHALLENGES ==========

    def put_challenge(self, challenge: Challenge) -> None:
        with self._lock:
            self._challenges[challenge.challenge_id] = challenge

    def get_challenge(self, challenge_id: str) -> Optional[Challenge]:
        with self._lock:
            return self._challenges.get(challenge_id)

    def consume_challenge(
        self, challenge_id: str, user_id: str, nonce: str, now_ms: int
    ) -> ConsumeOutcome:
        with self._lock:
            challenge = self._challenges.get(challenge_id)
            reason = challenge_rejection(challenge, user_id, nonce, now_ms)
            if reason is not None:
                return ConsumeOutcome(success=False, reason=reason, challenge=challenge)

            consumed = challenge.model_copy(update={"used": True})
            self._challenges[challenge_id] = consumed
            return ConsumeOutcome(success=True, challenge=consumed)

    # ========== AUDIT TRAIL ==========

    def append_audit(self, record: AuditRecord) -> None:
        with self._lock:
            self._audits[record.user_id].append(record)

    def recent_audits(self, user_id: str, limit: int) -> List[AuditRecord]:
        with self._lock:
            records = sorted(self._audits.get(user_id, []), key=lambda r: r.timestamp_ms)
            return list(reversed(records))[:limit]

    def recent_accepted_audits(self, user_id: str, limit: int) -> List[AuditRecord]:
        with self._lock:
            records = sorted(
                (r for r in self._audits.get(user_id, []) if r.accepted),
                key=lambda r: r.timestamp_ms,
            )
            return list(reversed(records))[:limit]

    def count_audit_flags_since(self, user_id: str, flag: str, since_ms: int) -> int:
        with self._lock:
            return sum(
                1 for r in self._audits.get(user_id, [])
                if r.timestamp_ms >= since_ms and flag in r.flags
            )

    def all_audits(self, user_id: str) -> List[AuditRecord]:
        """Every audit record of a user, oldest first."""
        with self._lock:
            return sorted(self._audits.get(user_id, []), key=lambda r: r.timestamp_ms)

    # ========== VISITS, LIMITS AND REWARDS ==========

    def last_visit_at(self, user_id: str, tag_id: str) -> Optional[int]:
        with self._lock:
            return self._last_visit.get((user_id, tag_id))

    def count_user_visits_since(self, user_id: str, since_ms: int) -> int:
        with self._lock:
            return sum(
                1 for v in self._visits
                if v.user_id == user_id and v.visited_at_ms >= since_ms
            )

    def count_tag_visits_since(self, tag_id: str, since_ms: int) -> int:
        with self._lock:
            return sum(
                1 for v in self._visits
                if v.tag_id == tag_id and v.visited_at_ms >= since_ms
            )

    def commit_accepted_claim(
        self,
        visit: VisitRecord,
        audit: AuditRecord,
        limits: CommitLimits,
        now_ms: int,
    ) -> RewardTotals:
        with self._lock:
            last = self._last_visit.get((visit.user_id, visit.tag_id))
            if last is not None and now_ms - last < limits.cooldown_seconds * 1000:
                raise CommitConflictError(
                    "Cooldown lock held by a concurrent claim",
                    reason=Reasons.COOLDOWN_ACTIVE,
                    details={"user_id": visit.user_id, "tag_id": visit.tag_id},
                )

            since = now_ms - HOUR_MS
            if self.count_user_visits_since(visit.user_id, since) >= limits.user_hourly_cap:
                raise CommitConflictError(
                    "User hourly cap reached",
                    reason=Reasons.HOURLY_LIMIT_REACHED,
                    details={"user_id": visit.user_id},
                )
            if self.count_tag_visits_since(visit.tag_id, since) >= limits.tag_hourly_cap:
                raise CommitConflictError(
                    "Tag hourly cap reached",
                    reason=Reasons.TAG_HOURLY_LIMIT_REACHED,
                    details={"tag_id": visit.tag_id},
                )

            self._visits.append(visit)
            self._last_visit[(visit.user_id, visit.tag_id)] = visit.visited_at_ms

            current = self._rewards.get(visit.user_id, RewardTotals(user_id=visit.user_id))
            totals = RewardTotals(
                user_id=visit.user_id,
                points=current.points + visit.points,
                xp=current.xp + visit.xp,
            )
            self._rewards[visit.user_id] = totals

            self._audits[audit.user_id].append(audit)
            return totals

    def recent_visits(self, user_id: str, limit: int) -> List[VisitRecord]:
        with self._lock:
            visits = sorted(
                (v for v in self._visits if v.user_id == user_id),
                key=lambda v: v.visited_at_ms,
            )
            return list(reversed(visits))[:limit]

    def get_reward_totals(self, user_id: str) -> RewardTotals:
        with self._lock:
            return self._rewards.get(user_id, RewardTotals(user_id=user_id))

    # ========== BANS AND IP WINDOWS ==========

    def put_ban(self, ban: BanRecord) -> None:
        with self._lock:
            self._bans[ban.identifier] = ban

    def get_ban(self, identifier: str) -> Optional[BanRecord]:
        with self._lock:
            return self._bans.get(identifier)

    def delete_ban(self, identifier: str) -> bool:
        with self._lock:
            return self._bans.pop(identifier, None) is not None

    def hit_ip_window(self, ip_address: str, window: int, expires_at_ms: int) -> int:
        # Only the current window is kept per IP
        with self._lock:
            current, hits = self._ip_windows.get(ip_address, (window, 0))
            if current != window:
                hits = 0
            self._ip_windows[ip_address] = (window, hits + 1)
            return hits + 1

    # ========== SESSIONS ==========

    def put_session(self, session: SessionRecord) -> None:
        with self._lock:
            self._sessions[session.session_id] = session

    def get_session(self, session_id: str) -> Optional[SessionRecord]:
        with self._lock:
            return self._sessions.get(session_id)

    def revoke_session(self, session_id: str, now_ms: int) -> bool:
        with self._lock:
            session = self._sessions.get(session_id)
            if session is None:
                return False
            self._sessions[session_id] = session.model_copy(
                update={"revoked": True, "revoked_at_ms": now_ms}
            )
            return True

    def list_user_sessions(self, user_id: str) -> List[SessionRecord]:
        with self._lock:
            sessions = [s for s in self._sessions.values() if s.user_id == user_id]
            return sorted(sessions, key=lambda s: s.created_at_ms, reverse=True)

    def append_session_activity(self, activity: SessionActivity) -> None:
        with self._lock:
            self._session_logs.append(activity)

    def session_activity(self, session_id: str, limit: int) -> List[SessionActivity]:
        with self._lock:
            logs = sorted(
                (a for a in self._session_logs if a.session_id == session_id),
                key=lambda a: a.timestamp_ms,
                reverse=True,
            )
            return logs[:limit]

    def user_session_activity_since(self, user_id: str, since_ms: int) -> List[SessionActivity]:
        with self._lock:
            return sorted(
                (
                    a for a in self._session_logs
                    if a.user_id == user_id and a.timestamp_ms >= since_ms
                ),
                key=lambda a: a.timestamp_ms,
                reverse=True,
            )
