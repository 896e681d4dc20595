"""Rate Limiter / Cooldown Manager.

Runs before the geometry and behavioral checks so over-limit claims fail
fast. These reads are advisory: the same limits are enforced atomically
again inside the reward commit, which is what makes two concurrent
claims unable to both pass.

Access control (bans and the per-IP request window) runs even earlier,
before the claim is matched against any limit.
"""

import logging
import math
from typing import Optional

from presence_guard.common.config.policy import AbuseLimits, FlowPolicy
from presence_guard.common.constants import Flags, Reasons
from presence_guard.data.schemas.records import BanRecord
from presence_guard.storage.base import CommitLimits, PresenceStore
from presence_guard.validators.schema import RateLimitOutput

logger = logging.getLogger(__name__)

HOUR_MS = 3_600_000


def user_key(user_id: str) -> str:
    return f"user:{user_id}"


def ip_key(ip_address: str) -> str:
    return f"ip:{ip_address}"


class RateLimiter:
    """Per (user, tag) cooldown plus trailing-hour caps per user and per tag."""

    def __init__(self, store: PresenceStore, abuse: Optional[AbuseLimits] = None):
        self.store = store
        self.abuse = abuse or AbuseLimits()

    @staticmethod
    def commit_limits(flow: FlowPolicy) -> CommitLimits:
        return CommitLimits(
            cooldown_seconds=flow.cooldown_seconds,
            user_hourly_cap=flow.user_hourly_cap,
            tag_hourly_cap=flow.tag_hourly_cap,
        )

    # ========== BANS ==========

    def ban(
        self,
        identifier: str,
        now_ms: int,
        duration_seconds: Optional[int] = None,
        reason: Optional[str] = None,
    ) -> BanRecord:
        """Ban a ``user:`` or ``ip:`` identifier, replacing any earlier ban."""
        seconds = duration_seconds or self.abuse.default_ban_seconds
        record = BanRecord(
            identifier=identifier,
            reason=reason or "Security violation",
            banned_at_ms=now_ms,
            expires_at_ms=now_ms + seconds * 1000,
        )
        self.store.put_ban(record)
        logger.warning(f"Banned {identifier} for {seconds}s: {record.reason}")
        return record

    def unban(self, identifier: str) -> bool:
        lifted = self.store.delete_ban(identifier)
        if lifted:
            logger.info(f"Lifted ban on {identifier}")
        return lifted

    def active_ban(self, identifier: str, now_ms: int) -> Optional[BanRecord]:
        ban = self.store.get_ban(identifier)
        if ban is not None and ban.is_active(now_ms):
            return ban
        return None

    def check_access(
        self, user_id: str, ip_address: Optional[str], now_ms: int
    ) -> RateLimitOutput:
        """Reject banned users or IPs and IPs over the request window.

        Every call counts against the IP's window, whatever the outcome of
        the claim.
        """
        identifiers = [user_key(user_id)]
        if ip_address:
            identifiers.append(ip_key(ip_address))
        for identifier in identifiers:
            ban = self.active_ban(identifier, now_ms)
            if ban is not None:
                return RateLimitOutput.rejected(
                    Reasons.BANNED,
                    retry_after_seconds=math.ceil((ban.expires_at_ms - now_ms) / 1000),
                )

        if ip_address:
            window_ms = self.abuse.ip_window_seconds * 1000
            window = now_ms // window_ms
            window_end = (window + 1) * window_ms
            hits = self.store.hit_ip_window(ip_address, window, window_end)
            if hits > self.abuse.ip_max_requests:
                return RateLimitOutput.rejected(
                    Reasons.IP_RATE_LIMITED,
                    retry_after_seconds=math.ceil((window_end - now_ms) / 1000),
                )

        return RateLimitOutput(valid=True, confidence=100)

    # ========== CLAIM LIMITS ==========

    def cooldown_remaining_seconds(
        self, user_id: str, tag_id: str, flow: FlowPolicy, now_ms: int
    ) -> int:
        """Seconds until the user may claim this tag again (0 if free)."""
        last = self.store.last_visit_at(user_id, tag_id)
        if last is None:
            return 0
        remaining_ms = last + flow.cooldown_seconds * 1000 - now_ms
        return max(0, math.ceil(remaining_ms / 1000))

    def interval_remaining_seconds(self, user_id: str, flow: FlowPolicy, now_ms: int) -> int:
        """Seconds until the user may claim any tag again (0 if free)."""
        if flow.min_seconds_between_claims <= 0:
            return 0
        latest = self.store.recent_visits(user_id, 1)
        if not latest:
            return 0
        remaining_ms = latest[0].visited_at_ms + flow.min_seconds_between_claims * 1000 - now_ms
        return max(0, math.ceil(remaining_ms / 1000))

    def check(self, user_id: str, tag_id: str, flow: FlowPolicy, now_ms: int) -> RateLimitOutput:
        """Check cooldown, minimum claim interval and hourly caps.

        Returns:
            RateLimitOutput; fatal when a limit is exceeded. Approaching the
            user cap only adds a flag and leaves confidence at 100.
        """
        remaining = self.cooldown_remaining_seconds(user_id, tag_id, flow, now_ms)
        if remaining > 0:
            return RateLimitOutput.rejected(
                Reasons.COOLDOWN_ACTIVE, retry_after_seconds=remaining
            )

        remaining = self.interval_remaining_seconds(user_id, flow, now_ms)
        if remaining > 0:
            return RateLimitOutput.rejected(
                Reasons.CLAIM_TOO_SOON, retry_after_seconds=remaining
            )

        since = now_ms - HOUR_MS
        user_count = self.store.count_user_visits_since(user_id, since)
        if user_count >= flow.user_hourly_cap:
            return RateLimitOutput.rejected(
                Reasons.HOURLY_LIMIT_REACHED, user_claims_last_hour=user_count
            )

        tag_count = self.store.count_tag_visits_since(tag_id, since)
        if tag_count >= flow.tag_hourly_cap:
            return RateLimitOutput.rejected(
                Reasons.TAG_HOURLY_LIMIT_REACHED, user_claims_last_hour=user_count
            )

        flags = []
        if user_count >= flow.user_hourly_cap * flow.approaching_ratio:
            flags.append(Flags.APPROACHING_HOURLY_LIMIT)

        return RateLimitOutput(
            valid=True,
            confidence=100,
            flags=flags,
            user_claims_last_hour=user_count,
        )
