"""Per-user anti-cheat statistics over the audit trail.

A decision's suspicious score is ``100 - confidence``: a clean accepted
claim scores 0, a fatal rejection scores 100. SERVICE_UNAVAILABLE
decisions say nothing about the user and are left out.
"""

import logging
from collections import Counter
from typing import Optional

import numpy as np

from presence_guard.common.config.policy import AbuseLimits
from presence_guard.common.constants import Reasons
from presence_guard.data.schemas.records import AuditRecord, CheatStats, RiskLevel
from presence_guard.storage.base import PresenceStore

logger = logging.getLogger(__name__)


def suspicious_score(record: AuditRecord) -> int:
    return 100 - record.confidence


class CheatStatsReporter:
    """Aggregates a user's most recent claim decisions into a risk read-out."""

    def __init__(self, store: PresenceStore, limits: Optional[AbuseLimits] = None):
        self.store = store
        self.limits = limits or AbuseLimits()

    def user_stats(self, user_id: str) -> CheatStats:
        records = [
            r for r in self.store.recent_audits(user_id, self.limits.stats_window)
            if r.reason != Reasons.SERVICE_UNAVAILABLE
        ]
        if not records:
            return CheatStats(user_id=user_id)

        scores = np.array([suspicious_score(r) for r in records], dtype=float)
        average = round(float(scores.mean()), 2)
        flag_counts = Counter(flag for r in records for flag in r.flags)

        stats = CheatStats(
            user_id=user_id,
            total_actions=len(records),
            suspicious_actions=int((scores >= self.limits.suspicious_score_threshold).sum()),
            avg_suspicious_score=average,
            flag_counts=dict(flag_counts),
            risk_level=self.risk_level(average),
        )
        if stats.risk_level == RiskLevel.HIGH:
            logger.warning(
                "High cheat risk",
                extra={"user_id": user_id, "avg_suspicious_score": average},
            )
        return stats

    def risk_level(self, average_score: float) -> RiskLevel:
        if average_score > self.limits.high_risk_score:
            return RiskLevel.HIGH
        if average_score > self.limits.medium_risk_score:
            return RiskLevel.MEDIUM
        return RiskLevel.LOW
