"""Presence policy - every tunable threshold of the validation engine.

Thresholds live in a YAML file validated into pydantic models, so a
deployment can tune radii, cooldowns and penalties without code changes.
A missing file falls back to the built-in defaults below.
"""

import logging
from pathlib import Path
from typing import Dict, Optional, Union

import yaml
from pydantic import BaseModel, Field, ValidationError as PydanticValidationError, model_validator

from presence_guard.common.exceptions import ConfigurationError

logger = logging.getLogger(__name__)


class SampleLimits(BaseModel):
    """Single-reading plausibility limits."""
    max_accuracy_m: float = Field(default=50.0, gt=0)
    max_age_seconds: float = Field(default=30.0, gt=0)
    max_speed_mps: float = Field(default=8.33, gt=0)
    min_altitude_m: float = Field(default=-50.0)
    max_altitude_m: float = Field(default=500.0)

    low_accuracy_penalty: int = Field(default=30, ge=0, le=100)
    stale_penalty: int = Field(default=20, ge=0, le=100)
    excessive_speed_penalty: int = Field(default=40, ge=0, le=100)
    suspicious_altitude_penalty: int = Field(default=15, ge=0, le=100)

    @model_validator(mode="after")
    def _altitude_band(self) -> "SampleLimits":
        if self.min_altitude_m >= self.max_altitude_m:
            raise ValueError("min_altitude_m must be below max_altitude_m")
        return self


class TrajectoryLimits(BaseModel):
    """Limits over a sequence of readings."""
    min_samples: int = Field(default=3, ge=1)
    min_interval_seconds: float = Field(default=1.0, ge=0)
    max_interval_seconds: float = Field(default=15.0, gt=0)
    max_pair_speed_mps: float = Field(default=10.0, gt=0)
    max_centroid_deviation_m: float = Field(default=100.0, gt=0)

    too_fast_penalty: int = Field(default=20, ge=0, le=100)
    too_slow_penalty: int = Field(default=10, ge=0, le=100)
    impossible_movement_penalty: int = Field(default=40, ge=0, le=100)
    high_variance_penalty: int = Field(default=25, ge=0, le=100)


class ChallengePolicy(BaseModel):
    """One-time challenge settings."""
    ttl_seconds: int = Field(default=60, gt=0)
    nonce_bytes: int = Field(default=32, ge=32)


class BehaviorLimits(BaseModel):
    """Cross-claim behavioral thresholds."""
    history_size: int = Field(default=20, ge=2)
    timing_window: int = Field(default=10, ge=2)
    timing_min_claims: int = Field(default=5, ge=3)
    timing_cv_threshold: float = Field(default=0.1, ge=0)
    regular_timing_penalty: int = Field(default=50, ge=0, le=100)

    burst_window_seconds: int = Field(default=300, gt=0)
    burst_max_claims: int = Field(default=10, ge=1)
    burst_penalty: int = Field(default=40, ge=0, le=100)

    max_travel_speed_kmh: float = Field(default=100.0, gt=0)
    soft_travel_factor: float = Field(default=0.7, gt=0, lt=1)
    high_travel_speed_penalty: int = Field(default=10, ge=0, le=100)

    jump_distance_m: float = Field(default=500.0, gt=0)
    jump_window_seconds: float = Field(default=60.0, gt=0)
    jump_penalty: int = Field(default=50, ge=0, le=100)
    max_jumps_per_day: int = Field(default=3, ge=1)

    pattern_window_hours: int = Field(default=24, gt=0)
    same_coordinate_decimals: int = Field(default=3, ge=0)
    same_coordinate_min_claims: int = Field(default=5, ge=2)
    same_coordinates_penalty: int = Field(default=20, ge=0, le=100)
    high_frequency_max_claims: int = Field(default=15, ge=1)
    high_frequency_penalty: int = Field(default=10, ge=0, le=100)


class FingerprintPolicy(BaseModel):
    """Device fingerprint scoring."""
    similarity_threshold: float = Field(default=0.7, ge=0, le=1)
    recent_successful_claims: int = Field(default=5, ge=1)
    weak_confidence_threshold: int = Field(default=50, ge=0, le=100)
    new_device_penalty: int = Field(default=20, ge=0, le=100)
    device_mismatch_penalty: int = Field(default=30, ge=0, le=100)
    weak_fingerprint_penalty: int = Field(default=25, ge=0, le=100)


class SessionPolicy(BaseModel):
    """Session anomaly scoring weights."""
    session_ttl_hours: int = Field(default=720, gt=0)
    max_session_age_hours: int = Field(default=168, gt=0)
    max_distinct_ips_24h: int = Field(default=5, ge=1)
    multiple_locations_min_ips: int = Field(default=3, ge=2)

    no_previous_logs_score: int = Field(default=20, ge=0, le=100)
    fingerprint_changed_score: int = Field(default=40, ge=0, le=100)
    ip_changed_score: int = Field(default=25, ge=0, le=100)
    excessive_ip_changes_score: int = Field(default=30, ge=0, le=100)
    multiple_locations_score: int = Field(default=35, ge=0, le=100)
    session_too_old_score: int = Field(default=15, ge=0, le=100)

    suspicious_threshold: int = Field(default=50, ge=0, le=100)
    revoke_threshold: int = Field(default=70, ge=0, le=100)

    anomaly_log_window: int = Field(default=5, ge=1)
    anomaly_min_ips: int = Field(default=3, ge=2)
    anomaly_min_fingerprints: int = Field(default=2, ge=2)

    @model_validator(mode="after")
    def _age_below_ttl(self) -> "SessionPolicy":
        if self.max_session_age_hours >= self.session_ttl_hours:
            raise ValueError("max_session_age_hours must be below session_ttl_hours")
        return self


class AbuseLimits(BaseModel):
    """Ban list, per-IP request limit and cheat statistics."""
    default_ban_seconds: int = Field(default=3600, gt=0)
    ip_max_requests: int = Field(default=100, ge=1)
    ip_window_seconds: int = Field(default=60, gt=0)

    stats_window: int = Field(default=100, ge=1)
    suspicious_score_threshold: int = Field(default=50, ge=0, le=100)
    high_risk_score: float = Field(default=50.0, ge=0, le=100)
    medium_risk_score: float = Field(default=30.0, ge=0, le=100)


class FlowPolicy(BaseModel):
    """Per entry point policy (radius, cooldown, jump rule).

    ``min_seconds_between_claims`` spaces a user's accepted claims across
    all tags; ``cooldown_seconds`` applies per tag.
    """
    radius_m: float = Field(default=50.0, gt=0)
    near_boundary_ratio: float = Field(default=0.8, gt=0, lt=1)
    near_boundary_penalty: int = Field(default=20, ge=0, le=100)
    cooldown_seconds: int = Field(default=300, ge=0)
    min_seconds_between_claims: int = Field(default=10, ge=0)
    user_hourly_cap: int = Field(default=20, ge=1)
    tag_hourly_cap: int = Field(default=500, ge=1)
    approaching_ratio: float = Field(default=0.8, gt=0, lt=1)
    jump_rule_enabled: bool = Field(default=True)


def _default_flows() -> Dict[str, FlowPolicy]:
    return {
        "visit": FlowPolicy(),
        "scan": FlowPolicy(radius_m=100.0, cooldown_seconds=86400, jump_rule_enabled=False),
    }


class PolicyMetadata(BaseModel):
    version: str = Field(default="1.0.0")
    description: Optional[str] = None


class PresencePolicy(BaseModel):
    """Complete validation policy.

    Flow policies are keyed by entry point name; claims name the flow they
    were submitted through.
    """
    metadata: PolicyMetadata = Field(default_factory=PolicyMetadata)
    min_confidence: int = Field(default=50, ge=0, le=100)
    samples: SampleLimits = Field(default_factory=SampleLimits)
    trajectory: TrajectoryLimits = Field(default_factory=TrajectoryLimits)
    challenge: ChallengePolicy = Field(default_factory=ChallengePolicy)
    behavior: BehaviorLimits = Field(default_factory=BehaviorLimits)
    fingerprint: FingerprintPolicy = Field(default_factory=FingerprintPolicy)
    session: SessionPolicy = Field(default_factory=SessionPolicy)
    abuse: AbuseLimits = Field(default_factory=AbuseLimits)
    flows: Dict[str, FlowPolicy] = Field(default_factory=_default_flows)

    model_config = {
        "json_schema_extra": {
            "example": {
                "min_confidence": 50,
                "flows": {
                    "visit": {"radius_m": 50, "cooldown_seconds": 300},
                    "scan": {"radius_m": 100, "cooldown_seconds": 86400,
                             "jump_rule_enabled": False},
                },
            }
        }
    }

    def flow(self, name: str) -> FlowPolicy:
        """Return the named flow policy.

        Raises:
            ConfigurationError: If the flow is not configured.
        """
        try:
            return self.flows[name]
        except KeyError:
            raise ConfigurationError(
                f"Unknown flow: {name}",
                details={"flow": name, "configured": sorted(self.flows)},
            ) from None


def load_policy(policy_file: Optional[Union[str, Path]] = None) -> PresencePolicy:
    """Load and validate the presence policy from YAML.

    Args:
        policy_file: Path to the policy YAML. Built-in defaults when the
            path is omitted or does not exist.

    Raises:
        ConfigurationError: If the file exists but is not a valid policy.
    """
    if policy_file is None:
        return PresencePolicy()

    path = Path(policy_file)
    if not path.exists():
        logger.warning(f"Policy file not found, using defaults: {path}")
        return PresencePolicy()

    with open(path, "r") as f:
        raw_config = yaml.safe_load(f) or {}

    try:
        policy = PresencePolicy.model_validate(raw_config)
    except PydanticValidationError as e:
        raise ConfigurationError(
            f"Invalid policy file: {path}",
            details={"errors": e.errors(include_url=False)},
        ) from e

    logger.info(f"Loaded presence policy {policy.metadata.version} from {path}")
    return policy
