"""Behavioral Pattern Analyzer - cross-claim patterns in a user's history.

Looks at what a single claim cannot show on its own:
- bot-like regular timing between claims
- bursts of claims in a short window
- travel between consecutive accepted claims that is physically implausible
- repeated claims from one exact coordinate, and overall claim frequency

Impossible journeys and repeated impossible jumps are fatal; everything
else is a penalty.
"""

from dataclasses import dataclass
from typing import List, Optional, Tuple

import numpy as np

from presence_guard.common.config.policy import BehaviorLimits, FlowPolicy
from presence_guard.common.constants import Flags, GeoConstants, Reasons
from presence_guard.data.schemas.location import LocationSample
from presence_guard.data.schemas.records import AuditRecord
from presence_guard.data.schemas.target import Target
from presence_guard.geo.distance import haversine_m, implied_speed_mps
from presence_guard.validators.schema import CheckOutput, clamp_confidence, dedupe_flags


@dataclass(frozen=True)
class BehaviorHistory:
    """What the analyzer needs to know about the user's past.

    Attributes:
        recent: Most recent audit records of any outcome, newest first
        last_accepted: Most recent accepted audit record, if any
        jumps_today: Impossible jumps already recorded this UTC day
    """
    recent: Tuple[AuditRecord, ...] = ()
    last_accepted: Optional[AuditRecord] = None
    jumps_today: int = 0


class BehaviorAnalyzer:
    """Scores the current claim against the user's claim history."""

    def __init__(self, limits: Optional[BehaviorLimits] = None, min_confidence: int = 50):
        self.limits = limits or BehaviorLimits()
        self.min_confidence = min_confidence

    def analyze(
        self,
        target: Target,
        sample: LocationSample,
        history: BehaviorHistory,
        flow: FlowPolicy,
        now_ms: int,
    ) -> CheckOutput:
        """Analyze the claim in the context of the user's history.

        Args:
            target: Target of the current claim
            sample: Latest reading of the current claim
            history: The user's recent claims
            flow: Entry point policy (decides whether the jump rule applies)
            now_ms: Validation time, epoch milliseconds
        """
        reason, fatal_flags = self._fatal_precondition(target, sample, history, flow, now_ms)
        if reason is not None:
            return CheckOutput.rejected(reason, flags=fatal_flags)

        penalty = 0
        flags: List[str] = []
        for scorer in (
            self._score_timing,
            self._score_burst,
            self._score_travel_speed,
            self._score_jump,
            self._score_patterns,
        ):
            p, f = scorer(target, sample, history, flow, now_ms)
            penalty += p
            flags.extend(f)

        confidence = clamp_confidence(100 - penalty)
        valid = confidence >= self.min_confidence
        return CheckOutput(
            valid=valid,
            confidence=confidence,
            flags=dedupe_flags(flags),
            reason=None if valid else Reasons.LOW_CONFIDENCE,
        )

    # ========== FATAL PRECONDITIONS ==========

    def _travel_speed_kmh(self, target: Target, history: BehaviorHistory, now_ms: int) -> Optional[float]:
        previous = history.last_accepted
        if previous is None or previous.target_latitude is None or previous.target_longitude is None:
            return None
        distance = haversine_m(
            previous.target_latitude, previous.target_longitude,
            target.latitude, target.longitude,
        )
        elapsed = (now_ms - previous.timestamp_ms) / 1000
        return implied_speed_mps(distance, elapsed) * GeoConstants.MPS_TO_KMH

    def _is_jump(self, sample: LocationSample, history: BehaviorHistory, flow: FlowPolicy, now_ms: int) -> bool:
        previous = history.last_accepted
        if not flow.jump_rule_enabled or previous is None or previous.last_sample is None:
            return False
        elapsed = (now_ms - previous.timestamp_ms) / 1000
        if elapsed >= self.limits.jump_window_seconds:
            return False
        distance = haversine_m(
            previous.last_sample.latitude, previous.last_sample.longitude,
            sample.latitude, sample.longitude,
        )
        return distance > self.limits.jump_distance_m

    def _fatal_precondition(
        self,
        target: Target,
        sample: LocationSample,
        history: BehaviorHistory,
        flow: FlowPolicy,
        now_ms: int,
    ) -> Tuple[Optional[str], List[str]]:
        speed = self._travel_speed_kmh(target, history, now_ms)
        if speed is not None and speed > self.limits.max_travel_speed_kmh:
            return Reasons.IMPOSSIBLE_JOURNEY, []

        if self._is_jump(sample, history, flow, now_ms) and (
            history.jumps_today >= self.limits.max_jumps_per_day
        ):
            return Reasons.EXCESSIVE_JUMPS, [Flags.IMPOSSIBLE_JUMP]

        return None, []

    # ========== PENALTIES ==========

    def _score_timing(self, target, sample, history, flow, now_ms) -> Tuple[int, List[str]]:
        """Coefficient of variation of inter-claim intervals."""
        limits = self.limits
        previous = [r.timestamp_ms for r in history.recent[: limits.timing_window - 1]]
        timestamps = sorted(previous + [now_ms])
        if len(timestamps) < limits.timing_min_claims:
            return 0, []

        intervals = np.diff(np.asarray(timestamps, dtype=float))
        mean = float(intervals.mean())
        if mean <= 0:
            return 0, []

        cv = float(intervals.std()) / mean
        if cv < limits.timing_cv_threshold:
            return limits.regular_timing_penalty, [Flags.REGULAR_TIMING_PATTERN]
        return 0, []

    def _score_burst(self, target, sample, history, flow, now_ms) -> Tuple[int, List[str]]:
        limits = self.limits
        since = now_ms - limits.burst_window_seconds * 1000
        # Including the current claim
        in_window = 1 + sum(1 for r in history.recent if r.timestamp_ms >= since)
        if in_window > limits.burst_max_claims:
            return limits.burst_penalty, [Flags.ACTION_BURST]
        return 0, []

    def _score_travel_speed(self, target, sample, history, flow, now_ms) -> Tuple[int, List[str]]:
        limits = self.limits
        speed = self._travel_speed_kmh(target, history, now_ms)
        if speed is not None and speed > limits.max_travel_speed_kmh * limits.soft_travel_factor:
            return limits.high_travel_speed_penalty, [Flags.HIGH_TRAVEL_SPEED]
        return 0, []

    def _score_jump(self, target, sample, history, flow, now_ms) -> Tuple[int, List[str]]:
        if self._is_jump(sample, history, flow, now_ms):
            return self.limits.jump_penalty, [Flags.IMPOSSIBLE_JUMP]
        return 0, []

    def _score_patterns(self, target, sample, history, flow, now_ms) -> Tuple[int, List[str]]:
        """Same rounded coordinate and overall frequency over the pattern window."""
        limits = self.limits
        since = now_ms - limits.pattern_window_hours * 3_600_000
        window = [r for r in history.recent if r.timestamp_ms >= since]

        penalty = 0
        flags: List[str] = []

        key = self._coordinate_key(sample)
        same = 1 + sum(
            1 for r in window
            if r.last_sample is not None and self._coordinate_key(r.last_sample) == key
        )
        if same >= limits.same_coordinate_min_claims:
            penalty += limits.same_coordinates_penalty
            flags.append(Flags.SAME_COORDINATES)

        if len(window) + 1 > limits.high_frequency_max_claims:
            penalty += limits.high_frequency_penalty
            flags.append(Flags.HIGH_FREQUENCY)

        return penalty, flags

    def _coordinate_key(self, sample: LocationSample) -> Tuple[float, float]:
        decimals = self.limits.same_coordinate_decimals
        return round(sample.latitude, decimals), round(sample.longitude, decimals)
