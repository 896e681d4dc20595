"""Sample Validator - plausibility of a single GPS reading.

Fatal preconditions (short-circuit, confidence 0):
- coordinates outside the valid ranges
- capture time in the future (clock manipulation)
- negative reported speed (spoofed sensor)

Scored penalties (never short-circuit):
- poor accuracy, stale reading, excessive speed, implausible altitude
"""

from typing import List, Optional, Tuple

from presence_guard.common.config.policy import SampleLimits
from presence_guard.common.constants import Flags, Reasons
from presence_guard.data.schemas.location import LocationSample
from presence_guard.validators.schema import CheckOutput, clamp_confidence


class SampleValidator:
    """Validates one LocationSample against SampleLimits."""

    def __init__(self, limits: Optional[SampleLimits] = None, min_confidence: int = 50):
        self.limits = limits or SampleLimits()
        self.min_confidence = min_confidence

    def validate(self, sample: LocationSample, now_ms: int) -> CheckOutput:
        """Validate a reading relative to the validation time.

        Args:
            sample: The reading to check
            now_ms: Validation time, epoch milliseconds

        Returns:
            CheckOutput, valid iff no fatal precondition fired and the
            confidence is at least ``min_confidence``
        """
        reason = self._fatal_precondition(sample, now_ms)
        if reason is not None:
            return CheckOutput.rejected(reason)

        penalty, flags = self._score_penalties(sample, now_ms)
        confidence = clamp_confidence(100 - penalty)
        valid = confidence >= self.min_confidence

        return CheckOutput(
            valid=valid,
            confidence=confidence,
            flags=flags,
            reason=None if valid else Reasons.LOW_CONFIDENCE,
        )

    def _fatal_precondition(self, sample: LocationSample, now_ms: int) -> Optional[str]:
        if not (-90 <= sample.latitude <= 90) or not (-180 <= sample.longitude <= 180):
            return Reasons.INVALID_COORDINATES
        if sample.captured_at_ms > now_ms:
            return Reasons.FUTURE_TIMESTAMP
        if sample.speed_mps is not None and sample.speed_mps < 0:
            return Reasons.NEGATIVE_SPEED
        return None

    def _score_penalties(self, sample: LocationSample, now_ms: int) -> Tuple[int, List[str]]:
        limits = self.limits
        penalty = 0
        flags: List[str] = []

        if sample.accuracy_m > limits.max_accuracy_m:
            penalty += limits.low_accuracy_penalty
            flags.append(Flags.LOW_ACCURACY)

        age_seconds = (now_ms - sample.captured_at_ms) / 1000
        if age_seconds > limits.max_age_seconds:
            penalty += limits.stale_penalty
            flags.append(Flags.STALE)

        if sample.speed_mps is not None and sample.speed_mps > limits.max_speed_mps:
            penalty += limits.excessive_speed_penalty
            flags.append(Flags.EXCESSIVE_SPEED)

        if sample.altitude_m is not None and not (
            limits.min_altitude_m <= sample.altitude_m <= limits.max_altitude_m
        ):
            penalty += limits.suspicious_altitude_penalty
            flags.append(Flags.SUSPICIOUS_ALTITUDE)

        return penalty, flags
