"""Tests for CheatStatsReporter."""

import pytest

from presence_guard.common.config.policy import AbuseLimits
from presence_guard.common.constants import Flags, Reasons
from presence_guard.data.schemas.records import AuditRecord, RiskLevel
from presence_guard.monitoring.cheat_stats import CheatStatsReporter


NOW = 1767268800000


def decide(store, confidence, flags=(), reason=None, at_ms=NOW, user_id="user_1"):
    store.append_audit(AuditRecord(
        user_id=user_id, tag_id="tag_castle", timestamp_ms=at_ms,
        accepted=reason is None, reason=reason, confidence=confidence,
        flags=list(flags), challenge_id=f"chal_{at_ms}",
    ))


@pytest.fixture
def reporter(store) -> CheatStatsReporter:
    return CheatStatsReporter(store)


class TestCheatStats:
    """Tests for per-user cheat statistics."""

    def test_no_history(self, reporter):
        """A user without decisions is low risk with empty counts."""
        stats = reporter.user_stats("user_1")

        assert stats.total_actions == 0
        assert stats.avg_suspicious_score == 0.0
        assert stats.flag_counts == {}
        assert stats.risk_level == RiskLevel.LOW

    def test_aggregates_scores_and_flags(self, store, reporter):
        """Suspicious score is 100 minus confidence, averaged over decisions."""
        decide(store, 100, at_ms=NOW)
        decide(store, 80, flags=[Flags.WEAK_FINGERPRINT], at_ms=NOW + 1000)
        decide(store, 0, flags=[Reasons.TOO_FAR_FROM_POI], reason=Reasons.TOO_FAR_FROM_POI,
               at_ms=NOW + 2000)
        decide(store, 40, flags=[Flags.WEAK_FINGERPRINT, Flags.SAME_COORDINATES],
               reason=Reasons.LOW_CONFIDENCE, at_ms=NOW + 3000)

        stats = reporter.user_stats("user_1")

        assert stats.total_actions == 4
        assert stats.suspicious_actions == 2
        assert stats.avg_suspicious_score == 45.0
        assert stats.flag_counts == {
            Flags.WEAK_FINGERPRINT: 2,
            Reasons.TOO_FAR_FROM_POI: 1,
            Flags.SAME_COORDINATES: 1,
        }
        assert stats.risk_level == RiskLevel.MEDIUM

    def test_high_risk(self, store, reporter):
        """An average above 50 is HIGH risk."""
        for i in range(3):
            decide(store, 10, reason=Reasons.LOW_CONFIDENCE, at_ms=NOW + i)

        assert reporter.user_stats("user_1").risk_level == RiskLevel.HIGH

    def test_service_failures_not_counted(self, store, reporter):
        """SERVICE_UNAVAILABLE decisions say nothing about the user."""
        decide(store, 100, at_ms=NOW)
        decide(store, 0, reason=Reasons.SERVICE_UNAVAILABLE, at_ms=NOW + 1000)

        stats = reporter.user_stats("user_1")

        assert stats.total_actions == 1
        assert stats.risk_level == RiskLevel.LOW

    def test_only_recent_window_counts(self, store):
        """Only the most recent decisions in the window are aggregated."""
        reporter = CheatStatsReporter(store, AbuseLimits(stats_window=2))
        decide(store, 0, reason=Reasons.TOO_FAR_FROM_POI, at_ms=NOW)
        decide(store, 100, at_ms=NOW + 1000)
        decide(store, 100, at_ms=NOW + 2000)

        stats = reporter.user_stats("user_1")

        assert stats.total_actions == 2
        assert stats.suspicious_actions == 0

    @pytest.mark.parametrize("average,level", [
        (50.0, RiskLevel.MEDIUM),
        (50.5, RiskLevel.HIGH),
        (30.0, RiskLevel.LOW),
        (30.5, RiskLevel.MEDIUM),
    ])
    def test_risk_thresholds_are_exclusive(self, reporter, average, level):
        """Risk levels start strictly above their thresholds."""
        assert reporter.risk_level(average) == level
