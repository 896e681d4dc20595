"""Claim validators.

Each validator separates fatal preconditions from scored penalties and
returns a CheckOutput; the orchestrator combines them.
"""

from presence_guard.validators.schema import (
    CheckOutput,
    FingerprintOutput,
    ProximityOutput,
    RateLimitOutput,
)
from presence_guard.validators.sample import SampleValidator
from presence_guard.validators.trajectory import TrajectoryValidator
from presence_guard.validators.proximity import ProximityValidator
from presence_guard.validators.fingerprint import FingerprintEngine, browser_family
from presence_guard.validators.ratelimit import RateLimiter
from presence_guard.validators.behavior import BehaviorAnalyzer, BehaviorHistory

__all__ = [
    "CheckOutput",
    "FingerprintOutput",
    "ProximityOutput",
    "RateLimitOutput",
    "SampleValidator",
    "TrajectoryValidator",
    "ProximityValidator",
    "FingerprintEngine",
    "browser_family",
    "RateLimiter",
    "BehaviorAnalyzer",
    "BehaviorHistory",
]
