"""Configuration package."""

from presence_guard.common.config.settings import (
    Config,
    Environment,
    LogLevel,
    StorageBackend,
    get_config,
    reset_config,
)
from presence_guard.common.config.policy import (
    BehaviorLimits,
    ChallengePolicy,
    FingerprintPolicy,
    FlowPolicy,
    PresencePolicy,
    SampleLimits,
    SessionPolicy,
    TrajectoryLimits,
    load_policy,
)

__all__ = [
    "Config",
    "Environment",
    "LogLevel",
    "StorageBackend",
    "get_config",
    "reset_config",
    "BehaviorLimits",
    "ChallengePolicy",
    "FingerprintPolicy",
    "FlowPolicy",
    "PresencePolicy",
    "SampleLimits",
    "SessionPolicy",
    "TrajectoryLimits",
    "load_policy",
]
