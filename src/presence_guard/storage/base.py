"""Presence store interface.

The store is the only cross-request shared resource. Two operations must
be single atomic steps against it:

- ``consume_challenge``: flips ``used`` exactly once
- ``commit_accepted_claim``: cooldown lock, hourly counters, visit,
  reward increment and linked audit record, all or nothing

Everything else is plain reads and append-only writes.
"""

import hmac
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import List, Optional

from presence_guard.common.constants import Reasons
from presence_guard.data.schemas.challenge import Challenge, ConsumeOutcome
from presence_guard.data.schemas.records import AuditRecord, BanRecord, RewardTotals, VisitRecord
from presence_guard.data.schemas.session import SessionActivity, SessionRecord


@dataclass(frozen=True)
class CommitLimits:
    """Limits re-checked atomically inside the reward commit."""
    cooldown_seconds: int
    user_hourly_cap: int
    tag_hourly_cap: int


def challenge_rejection(
    challenge: Optional[Challenge],
    user_id: str,
    nonce: str,
    now_ms: int,
) -> Optional[str]:
    """Why a challenge cannot be consumed, or None if it can.

    Checked in order: missing or owned by another user (INVALID), already
    used (REPLAY), wrong nonce (NONCE_MISMATCH), past expiry (EXPIRED).
    """
    if challenge is None or challenge.user_id != user_id:
        return Reasons.INVALID
    if challenge.used:
        return Reasons.REPLAY
    if not hmac.compare_digest(challenge.nonce.encode("utf-8"), nonce.encode("utf-8")):
        return Reasons.NONCE_MISMATCH
    if challenge.is_expired(now_ms):
        return Reasons.EXPIRED
    return None


class PresenceStore(ABC):
    """Transactional store for challenges, audit trail, visits, rewards and sessions.

    Implementations raise StoreUnavailableError on transport failures and
    CommitConflictError when a commit loses a race on its limits.
    """

    # ========== CHALLENGES ==========

    @abstractmethod
    def put_challenge(self, challenge: Challenge) -> None:
        ...

    @abstractmethod
    def get_challenge(self, challenge_id: str) -> Optional[Challenge]:
        ...

    @abstractmethod
    def consume_challenge(
        self, challenge_id: str, user_id: str, nonce: str, now_ms: int
    ) -> ConsumeOutcome:
        """Atomically mark the challenge used if it is consumable."""

    # ========== AUDIT TRAIL ==========

    @abstractmethod
    def append_audit(self, record: AuditRecord) -> None:
        """Append a rejected-claim audit record. Never silently drops."""

    @abstractmethod
    def recent_audits(self, user_id: str, limit: int) -> List[AuditRecord]:
        """Most recent audit records of the user, newest first."""

    @abstractmethod
    def recent_accepted_audits(self, user_id: str, limit: int) -> List[AuditRecord]:
        """Most recent accepted audit records of the user, newest first."""

    @abstractmethod
    def count_audit_flags_since(self, user_id: str, flag: str, since_ms: int) -> int:
        """Number of the user's audit records carrying ``flag`` since a time."""

    # ========== VISITS, LIMITS AND REWARDS ==========

    @abstractmethod
    def last_visit_at(self, user_id: str, tag_id: str) -> Optional[int]:
        ...

    @abstractmethod
    def count_user_visits_since(self, user_id: str, since_ms: int) -> int:
        ...

    @abstractmethod
    def count_tag_visits_since(self, tag_id: str, since_ms: int) -> int:
        ...

    @abstractmethod
    def commit_accepted_claim(
        self,
        visit: VisitRecord,
        audit: AuditRecord,
        limits: CommitLimits,
        now_ms: int,
    ) -> RewardTotals:
        """Record an accepted claim in one atomic step.

        Re-checks cooldown and hourly caps, writes the visit, increments the
        user's rewards by the visit's points/xp and appends the audit record
        linked to the visit.

        Returns:
            The user's new reward totals

        Raises:
            CommitConflictError: If a limit no longer holds
        """

    @abstractmethod
    def recent_visits(self, user_id: str, limit: int) -> List[VisitRecord]:
        ...

    @abstractmethod
    def get_reward_totals(self, user_id: str) -> RewardTotals:
        ...

    # ========== BANS AND IP WINDOWS ==========

    @abstractmethod
    def put_ban(self, ban: BanRecord) -> None:
        """Create or replace the ban on an identifier."""

    @abstractmethod
    def get_ban(self, identifier: str) -> Optional[BanRecord]:
        """The stored ban on an identifier, expired or not."""

    @abstractmethod
    def delete_ban(self, identifier: str) -> bool:
        """Lift a ban. Returns False if none was stored."""

    @abstractmethod
    def hit_ip_window(self, ip_address: str, window: int, expires_at_ms: int) -> int:
        """Count one request from an IP in a fixed window.

        Returns:
            The window's request count including this one
        """

    # ========== SESSIONS ==========

    @abstractmethod
    def put_session(self, session: SessionRecord) -> None:
        ...

    @abstractmethod
    def get_session(self, session_id: str) -> Optional[SessionRecord]:
        ...

    @abstractmethod
    def revoke_session(self, session_id: str, now_ms: int) -> bool:
        """Mark a session revoked. Returns False if it does not exist."""

    @abstractmethod
    def list_user_sessions(self, user_id: str) -> List[SessionRecord]:
        ...

    @abstractmethod
    def append_session_activity(self, activity: SessionActivity) -> None:
        ...

    @abstractmethod
    def session_activity(self, session_id: str, limit: int) -> List[SessionActivity]:
        """Most recent activity of a session, newest first."""

    @abstractmethod
    def user_session_activity_since(self, user_id: str, since_ms: int) -> List[SessionActivity]:
        """All of a user's session activity since a time, newest first."""

    def health_check(self) -> bool:
        return True
