"""Orchestration - claim context and validation decisions.

Components:
- ClaimContext: Immutable record of one claim while it is decided
- ValidationOrchestrator: The only place claims are accepted or rejected
"""

from presence_guard.orchestration.decision_context import (
    ClaimContext,
    ClaimState,
)
from presence_guard.orchestration.orchestrator import ValidationOrchestrator

__all__ = [
    "ClaimContext",
    "ClaimState",
    "ValidationOrchestrator",
]
