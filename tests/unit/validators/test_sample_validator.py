"""Tests for the Sample Validator.

These tests verify that:
1. Out-of-range coordinates, future timestamps and negative speeds are fatal
2. Penalties add up and are reported as flags
3. Validity follows the minimum confidence
"""

import pytest

from presence_guard.common.config.policy import SampleLimits
from presence_guard.common.constants import Flags, Reasons
from presence_guard.data.schemas.location import LocationSample
from presence_guard.validators.sample import SampleValidator


NOW = 1767268800000


def reading(**overrides) -> LocationSample:
    fields = dict(latitude=36.4273, longitude=-5.1483, accuracy_m=10.0, captured_at_ms=NOW - 1000)
    fields.update(overrides)
    return LocationSample(**fields)


@pytest.fixture
def validator() -> SampleValidator:
    return SampleValidator(SampleLimits())


class TestSampleValidatorHappyPath:
    """Tests for clean readings."""

    def test_clean_reading_full_confidence(self, validator):
        """A fresh, accurate reading should score 100 with no flags."""
        result = validator.validate(reading(), NOW)

        assert result.valid
        assert result.confidence == 100
        assert result.flags == []
        assert not result.fatal

    def test_reading_at_validation_time_is_not_future(self, validator):
        """A reading captured exactly now is not in the future."""
        result = validator.validate(reading(captured_at_ms=NOW), NOW)

        assert result.valid


class TestSampleValidatorFatal:
    """Tests for fatal preconditions."""

    @pytest.mark.parametrize("lat,lon", [(91.0, 0.0), (-90.5, 0.0), (0.0, 180.5), (0.0, -181.0)])
    def test_out_of_range_coordinates(self, validator, lat, lon):
        """Coordinates outside the valid ranges should be fatal."""
        result = validator.validate(reading(latitude=lat, longitude=lon), NOW)

        assert result.fatal
        assert result.reason == Reasons.INVALID_COORDINATES
        assert result.confidence == 0

    def test_future_timestamp(self, validator):
        """A reading captured after the validation time should be fatal."""
        result = validator.validate(reading(captured_at_ms=NOW + 1), NOW)

        assert result.fatal
        assert result.reason == Reasons.FUTURE_TIMESTAMP

    def test_negative_speed(self, validator):
        """A negative speed should be fatal."""
        result = validator.validate(reading(speed_mps=-0.1), NOW)

        assert result.fatal
        assert result.reason == Reasons.NEGATIVE_SPEED

    def test_coordinates_checked_before_timestamp(self, validator):
        """Invalid coordinates take precedence over a future timestamp."""
        result = validator.validate(reading(latitude=91.0, captured_at_ms=NOW + 5000), NOW)

        assert result.reason == Reasons.INVALID_COORDINATES


class TestSampleValidatorPenalties:
    """Tests for penalty scoring."""

    def test_low_accuracy(self, validator):
        """Accuracy worse than 50 m costs 30 points."""
        result = validator.validate(reading(accuracy_m=80.0), NOW)

        assert result.confidence == 70
        assert result.flags == [Flags.LOW_ACCURACY]
        assert result.valid

    def test_stale_reading(self, validator):
        """A reading older than 30 s costs 20 points."""
        result = validator.validate(reading(captured_at_ms=NOW - 31_000), NOW)

        assert result.confidence == 80
        assert Flags.STALE in result.flags

    def test_excessive_speed(self, validator):
        """Faster than walking pace costs 40 points."""
        result = validator.validate(reading(speed_mps=12.0), NOW)

        assert result.confidence == 60
        assert Flags.EXCESSIVE_SPEED in result.flags

    def test_suspicious_altitude(self, validator):
        """Altitude outside the regional band costs 15 points."""
        result = validator.validate(reading(altitude_m=1200.0), NOW)

        assert result.confidence == 85
        assert Flags.SUSPICIOUS_ALTITUDE in result.flags

    def test_penalties_accumulate_below_minimum(self, validator):
        """Stacked penalties below 50 make the reading invalid but not fatal."""
        result = validator.validate(
            reading(accuracy_m=80.0, speed_mps=12.0, captured_at_ms=NOW - 60_000), NOW
        )

        assert result.confidence == 10
        assert not result.valid
        assert not result.fatal
        assert result.reason == Reasons.LOW_CONFIDENCE
        assert result.flags == [Flags.LOW_ACCURACY, Flags.STALE, Flags.EXCESSIVE_SPEED]
