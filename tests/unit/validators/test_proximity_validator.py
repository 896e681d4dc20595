"""Tests for the Proximity Validator."""

import pytest

from presence_guard.common.config.policy import FlowPolicy
from presence_guard.common.constants import Flags, Reasons
from presence_guard.data.schemas.location import LocationSample
from presence_guard.data.schemas.target import Target
from presence_guard.validators.proximity import ProximityValidator


LAT, LON = 36.4273, -5.1483
# Degrees of latitude per meter
DEG_PER_M = 1 / 111_195


def at_offset(meters_north: float) -> LocationSample:
    return LocationSample(
        latitude=LAT + meters_north * DEG_PER_M,
        longitude=LON,
        accuracy_m=10.0,
        captured_at_ms=1767268800000,
    )


@pytest.fixture
def target() -> Target:
    return Target(tag_id="tag_castle", latitude=LAT, longitude=LON)


@pytest.fixture
def visit_flow() -> FlowPolicy:
    return FlowPolicy(radius_m=50)


class TestProximityValidator:
    """Tests for distance against the flow radius."""

    def test_at_target(self, target, visit_flow):
        """A reading on the target should score 100 at distance 0."""
        result = ProximityValidator().validate(at_offset(0), target, visit_flow)

        assert result.valid
        assert result.confidence == 100
        assert result.distance_m == 0.0

    def test_inside_inner_band(self, target, visit_flow):
        """30 m away is inside 80% of the radius: no penalty."""
        result = ProximityValidator().validate(at_offset(30), target, visit_flow)

        assert result.confidence == 100
        assert result.flags == []

    def test_near_boundary(self, target, visit_flow):
        """45 m away is in the outer band: small penalty and a flag."""
        result = ProximityValidator().validate(at_offset(45), target, visit_flow)

        assert result.valid
        assert result.confidence == 80
        assert result.flags == [Flags.NEAR_BOUNDARY]

    def test_too_far_reports_distance(self, target, visit_flow):
        """Beyond the radius is fatal and reports the measured distance."""
        result = ProximityValidator().validate(at_offset(120), target, visit_flow)

        assert result.fatal
        assert result.reason == Reasons.TOO_FAR_FROM_POI
        assert result.distance_m == pytest.approx(120, abs=0.5)

    def test_wider_flow_radius(self, target):
        """A flow with a 100 m radius accepts a reading 70 m away."""
        result = ProximityValidator().validate(at_offset(70), target, FlowPolicy(radius_m=100))

        assert result.valid
        assert result.confidence == 100
