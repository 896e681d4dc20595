"""Proximity Validator - is the latest reading close enough to the target."""

from presence_guard.common.config.policy import FlowPolicy
from presence_guard.common.constants import Flags, Reasons
from presence_guard.data.schemas.location import LocationSample
from presence_guard.data.schemas.target import Target
from presence_guard.geo.distance import haversine_m
from presence_guard.validators.schema import ProximityOutput


class ProximityValidator:
    """Checks distance to the target against the flow's radius.

    Outside the radius is fatal and reports the measured distance so the
    caller can tell the user how far off they are. The outer band of the
    radius costs a small penalty.
    """

    def validate(self, sample: LocationSample, target: Target, flow: FlowPolicy) -> ProximityOutput:
        distance = haversine_m(sample.latitude, sample.longitude, target.latitude, target.longitude)

        if distance > flow.radius_m:
            return ProximityOutput.rejected(Reasons.TOO_FAR_FROM_POI, distance_m=distance)

        if distance > flow.radius_m * flow.near_boundary_ratio:
            return ProximityOutput(
                valid=True,
                confidence=100 - flow.near_boundary_penalty,
                flags=[Flags.NEAR_BOUNDARY],
                distance_m=distance,
            )

        return ProximityOutput(valid=True, confidence=100, distance_m=distance)
