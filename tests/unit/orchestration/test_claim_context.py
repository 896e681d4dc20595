"""Tests for the immutable claim context."""

import pytest

from presence_guard.data.schemas.claim import Claim
from presence_guard.data.schemas.location import LocationSample
from presence_guard.orchestration.decision_context import ClaimContext, ClaimState
from presence_guard.validators.schema import CheckOutput


NOW = 1767268800000


@pytest.fixture
def context() -> ClaimContext:
    claim = Claim(
        user_id="user_1",
        tag_id="tag_castle",
        challenge_id="chal_1",
        nonce="ab" * 32,
        samples=[
            LocationSample(latitude=1.0, longitude=1.0, accuracy_m=5, captured_at_ms=NOW),
            LocationSample(latitude=2.0, longitude=2.0, accuracy_m=5, captured_at_ms=NOW - 4000),
            LocationSample(latitude=3.0, longitude=3.0, accuracy_m=5, captured_at_ms=NOW - 2000),
        ],
    )
    return ClaimContext.create(claim, NOW)


def passed(confidence: int, *flags: str) -> CheckOutput:
    return CheckOutput(valid=True, confidence=confidence, flags=list(flags))


class TestClaimState:
    """Tests for state transitions."""

    def test_created_as_samples_collected(self, context):
        """A submitted claim already has its challenge and samples."""
        assert context.state == ClaimState.SAMPLES_COLLECTED
        assert context.context_id.startswith("clm_")
        assert not context.is_decided

    def test_validating_then_accepted(self, context):
        """The happy path ends decided."""
        decided = context.transition(ClaimState.VALIDATING).transition(ClaimState.ACCEPTED)

        assert decided.is_decided
        assert context.state == ClaimState.SAMPLES_COLLECTED

    def test_decided_claims_are_final(self, context):
        """Nothing leaves a decided state."""
        rejected = context.transition(ClaimState.REJECTED)

        with pytest.raises(ValueError):
            rejected.transition(ClaimState.ACCEPTED)

    def test_cannot_skip_validation(self, context):
        """A claim cannot be accepted without validating."""
        with pytest.raises(ValueError):
            context.transition(ClaimState.ACCEPTED)


class TestClaimAggregation:
    """Tests for flag and confidence aggregation."""

    def test_confidence_is_minimum_of_scored_steps(self, context):
        """Only scored steps count, combined by minimum."""
        context = (
            context.with_step("rate_limit", passed(10))
            .with_step("trajectory", passed(80))
            .with_step("fingerprint", passed(75))
        )

        assert context.confidence == 75

    def test_confidence_before_any_step(self, context):
        """An unscored claim starts at full confidence."""
        assert context.confidence == 100

    def test_flags_deduplicated_in_order(self, context):
        """Flags keep first-seen order across steps and extras."""
        context = (
            context.with_step("trajectory", passed(80, "STALE", "LOW_ACCURACY"))
            .with_step("behavior", passed(90, "STALE"))
            .with_flags("SESSION_SUSPICIOUS")
        )

        assert context.flags == ["STALE", "LOW_ACCURACY", "SESSION_SUSPICIOUS"]

    def test_fatal_step(self, context):
        """The first fatal step is reported."""
        context = context.with_step("trajectory", passed(100)).with_step(
            "proximity", CheckOutput.rejected("TOO_FAR_FROM_POI")
        )

        assert context.fatal.reason == "TOO_FAR_FROM_POI"
        assert context.step("proximity").fatal

    def test_latest_sample_by_capture_time(self, context):
        """The latest reading is chosen by timestamp, not list position."""
        assert context.latest_sample.captured_at_ms == NOW
        assert context.latest_sample.latitude == 1.0

    def test_metadata_accumulates(self, context):
        """Metadata entries are appended."""
        context = context.with_metadata(session_score=40).with_metadata(fingerprint_changes=["browser"])

        assert dict(context.metadata) == {"session_score": 40, "fingerprint_changes": ["browser"]}
