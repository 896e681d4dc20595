"""Trajectory Validator - plausibility of a sequence of GPS readings.

Readings are sorted by capture time first, so the outcome does not depend
on the order the client sent them in. Each reading runs through the
SampleValidator; the trajectory starts from the weakest reading's
confidence and subtracts pairwise and clustering penalties from it.
"""

from typing import List, Optional, Sequence, Tuple

from presence_guard.common.config.policy import SampleLimits, TrajectoryLimits
from presence_guard.common.constants import Flags, Reasons
from presence_guard.data.schemas.location import LocationSample
from presence_guard.geo.distance import centroid, haversine_m, implied_speed_mps
from presence_guard.validators.sample import SampleValidator
from presence_guard.validators.schema import CheckOutput, clamp_confidence, dedupe_flags


class TrajectoryValidator:
    """Validates an ordered trajectory of readings."""

    def __init__(
        self,
        limits: Optional[TrajectoryLimits] = None,
        sample_validator: Optional[SampleValidator] = None,
        min_confidence: int = 50,
    ):
        self.limits = limits or TrajectoryLimits()
        self.sample_validator = sample_validator or SampleValidator(
            SampleLimits(), min_confidence=min_confidence
        )
        self.min_confidence = min_confidence

    @staticmethod
    def order(samples: Sequence[LocationSample]) -> List[LocationSample]:
        """Readings sorted by capture time (stable for equal timestamps)."""
        return sorted(samples, key=lambda s: s.captured_at_ms)

    def validate(self, samples: Sequence[LocationSample], now_ms: int) -> CheckOutput:
        """Validate the trajectory.

        Args:
            samples: Readings in any order
            now_ms: Validation time, epoch milliseconds

        Returns:
            CheckOutput combining per-sample and trajectory checks
        """
        if len(samples) < self.limits.min_samples:
            return CheckOutput.rejected(Reasons.INSUFFICIENT_SAMPLES)

        ordered = self.order(samples)

        confidence = 100
        flags: List[str] = []
        for sample in ordered:
            result = self.sample_validator.validate(sample, now_ms)
            if result.fatal:
                return CheckOutput.rejected(result.reason, flags=flags)
            confidence = min(confidence, result.confidence)
            flags.extend(result.flags)

        interval_penalty, interval_flags = self._score_pairs(ordered)
        variance_penalty, variance_flags = self._score_variance(ordered)

        confidence = clamp_confidence(confidence - interval_penalty - variance_penalty)
        flags = dedupe_flags(flags + interval_flags + variance_flags)
        valid = confidence >= self.min_confidence

        return CheckOutput(
            valid=valid,
            confidence=confidence,
            flags=flags,
            reason=None if valid else Reasons.LOW_CONFIDENCE,
        )

    def _score_pairs(self, ordered: List[LocationSample]) -> Tuple[int, List[str]]:
        """Spacing and implied speed between consecutive readings."""
        limits = self.limits
        penalty = 0
        flags: List[str] = []

        for prev, curr in zip(ordered, ordered[1:]):
            elapsed = (curr.captured_at_ms - prev.captured_at_ms) / 1000

            if elapsed < limits.min_interval_seconds:
                penalty += limits.too_fast_penalty
                flags.append(Flags.SAMPLES_TOO_FAST)
            elif elapsed > limits.max_interval_seconds:
                penalty += limits.too_slow_penalty
                flags.append(Flags.SAMPLES_TOO_SLOW)

            distance = haversine_m(prev.latitude, prev.longitude, curr.latitude, curr.longitude)
            if implied_speed_mps(distance, elapsed) > limits.max_pair_speed_mps:
                penalty += limits.impossible_movement_penalty
                flags.append(Flags.IMPOSSIBLE_MOVEMENT)

        return penalty, flags

    def _score_variance(self, ordered: List[LocationSample]) -> Tuple[int, List[str]]:
        """Each reading far from the cluster centroid costs a penalty."""
        limits = self.limits
        center_lat, center_lon = centroid([(s.latitude, s.longitude) for s in ordered])

        penalty = 0
        flags: List[str] = []
        for sample in ordered:
            deviation = haversine_m(sample.latitude, sample.longitude, center_lat, center_lon)
            if deviation > limits.max_centroid_deviation_m:
                penalty += limits.high_variance_penalty
                flags.append(Flags.HIGH_LOCATION_VARIANCE)

        return penalty, flags
