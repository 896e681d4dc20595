"""Tests for the Trajectory Validator."""

import random

import pytest

from presence_guard.common.config.policy import TrajectoryLimits
from presence_guard.common.constants import Flags, Reasons
from presence_guard.data.schemas.location import LocationSample
from presence_guard.validators.trajectory import TrajectoryValidator


NOW = 1767268800000
LAT, LON = 36.4273, -5.1483


def track(offsets_s, lat=LAT, lon=LON, accuracy_m=10.0):
    """Readings at the given offsets (seconds before NOW), all at one spot."""
    return [
        LocationSample(latitude=lat, longitude=lon, accuracy_m=accuracy_m,
                       captured_at_ms=NOW - int(offset * 1000))
        for offset in offsets_s
    ]


@pytest.fixture
def validator() -> TrajectoryValidator:
    return TrajectoryValidator(TrajectoryLimits())


class TestTrajectoryHappyPath:
    """Tests for plausible trajectories."""

    def test_steady_trajectory_full_confidence(self, validator):
        """Three readings 2 s apart at one spot should score 100."""
        result = validator.validate(track([4, 2, 0]), NOW)

        assert result.valid
        assert result.confidence == 100
        assert result.flags == []

    def test_order_of_readings_does_not_matter(self, validator):
        """Shuffled readings should give the same result as sorted ones."""
        samples = track([8, 6, 4, 2, 0])
        shuffled = list(samples)
        random.Random(7).shuffle(shuffled)

        assert validator.validate(shuffled, NOW) == validator.validate(samples, NOW)

    def test_order_sorts_by_capture_time(self):
        """order() should sort oldest first."""
        samples = track([0, 4, 2])

        ordered = TrajectoryValidator.order(samples)

        assert [s.captured_at_ms for s in ordered] == sorted(s.captured_at_ms for s in samples)


class TestTrajectoryFatal:
    """Tests for fatal trajectory outcomes."""

    @pytest.mark.parametrize("count", [0, 1, 2])
    def test_insufficient_samples(self, validator, count):
        """Fewer than three readings should be fatal."""
        result = validator.validate(track([2 * i for i in range(count)]), NOW)

        assert result.fatal
        assert result.reason == Reasons.INSUFFICIENT_SAMPLES

    def test_one_invalid_reading_rejects_trajectory(self, validator):
        """A single out-of-range reading should reject the whole trajectory."""
        samples = track([4, 2]) + [
            LocationSample(latitude=91.0, longitude=LON, accuracy_m=10.0, captured_at_ms=NOW)
        ]

        result = validator.validate(samples, NOW)

        assert result.fatal
        assert result.reason == Reasons.INVALID_COORDINATES


class TestTrajectoryPenalties:
    """Tests for interval, movement and variance penalties."""

    def test_samples_too_fast(self, validator):
        """Readings less than 1 s apart cost 20 per pair."""
        result = validator.validate(track([1.0, 0.5, 0]), NOW)

        assert result.confidence == 60
        assert result.flags == [Flags.SAMPLES_TOO_FAST]

    def test_samples_too_slow(self, validator):
        """A gap over 15 s costs 10; the old reading is also stale."""
        result = validator.validate(track([32, 2, 0]), NOW)

        assert Flags.SAMPLES_TOO_SLOW in result.flags
        # Stale sample (80) minus one slow pair (10)
        assert result.confidence == 70

    def test_impossible_movement(self, validator):
        """Moving about 111 m in 2 s is faster than 10 m/s."""
        samples = [
            LocationSample(latitude=LAT, longitude=LON, accuracy_m=10.0, captured_at_ms=NOW - 4000),
            LocationSample(latitude=LAT + 0.001, longitude=LON, accuracy_m=10.0,
                           captured_at_ms=NOW - 2000),
            LocationSample(latitude=LAT + 0.001, longitude=LON, accuracy_m=10.0,
                           captured_at_ms=NOW),
        ]

        result = validator.validate(samples, NOW)

        assert Flags.IMPOSSIBLE_MOVEMENT in result.flags
        assert result.confidence == 60

    def test_high_location_variance(self, validator):
        """Readings scattered far from their centroid cost 25 each."""
        samples = [
            LocationSample(latitude=LAT, longitude=LON, accuracy_m=10.0,
                           captured_at_ms=NOW - 28_000),
            LocationSample(latitude=LAT + 0.001, longitude=LON, accuracy_m=10.0,
                           captured_at_ms=NOW - 14_000),
            LocationSample(latitude=LAT + 0.002, longitude=LON, accuracy_m=10.0,
                           captured_at_ms=NOW),
        ]

        result = validator.validate(samples, NOW)

        assert Flags.HIGH_LOCATION_VARIANCE in result.flags
        assert Flags.IMPOSSIBLE_MOVEMENT not in result.flags
        # Both end readings are ~111 m from the centroid
        assert result.confidence == 50

    def test_weakest_reading_sets_the_base(self, validator):
        """Trajectory confidence starts from the lowest sample confidence."""
        samples = track([4, 2]) + track([0], accuracy_m=80.0)

        result = validator.validate(samples, NOW)

        assert result.confidence == 70
        assert result.flags == [Flags.LOW_ACCURACY]

    def test_low_confidence_is_invalid_but_not_fatal(self, validator):
        """Penalties below the minimum reject without being fatal."""
        result = validator.validate(track([1.0, 0.6, 0.3, 0], accuracy_m=80.0), NOW)

        assert not result.valid
        assert not result.fatal
        assert result.reason == Reasons.LOW_CONFIDENCE
