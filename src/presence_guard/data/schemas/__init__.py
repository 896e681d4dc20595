"""Data schemas - canonical Pydantic definitions."""

from presence_guard.data.schemas.location import LocationSample
from presence_guard.data.schemas.challenge import Challenge, ConsumeOutcome
from presence_guard.data.schemas.target import Target
from presence_guard.data.schemas.device import DeviceAttributes, DeviceFingerprint
from presence_guard.data.schemas.claim import Claim, ClaimDecision, RewardGrant
from presence_guard.data.schemas.records import (
    AuditRecord,
    BanRecord,
    CheatStats,
    RewardTotals,
    RiskLevel,
    VisitRecord,
)
from presence_guard.data.schemas.session import (
    AnomalousSession,
    SessionAction,
    SessionActivity,
    SessionAssessment,
    SessionRecord,
)

__all__ = [
    "LocationSample",
    "Challenge",
    "ConsumeOutcome",
    "Target",
    "DeviceAttributes",
    "DeviceFingerprint",
    "Claim",
    "ClaimDecision",
    "RewardGrant",
    "AuditRecord",
    "BanRecord",
    "CheatStats",
    "RewardTotals",
    "RiskLevel",
    "VisitRecord",
    "AnomalousSession",
    "SessionAction",
    "SessionActivity",
    "SessionAssessment",
    "SessionRecord",
]
