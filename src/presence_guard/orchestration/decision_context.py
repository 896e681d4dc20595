"""Claim Context - the immutable record of one claim validation.

A claim moves through
    ChallengeIssued -> SamplesCollected -> Validating -> Accepted | Rejected
and each validation step adds its output to the context. Nothing mutates
a context; every transition returns a new one.

Design principles:
- Frozen dataclasses for immutability
- Fatal reasons and penalty flags kept apart until the decision
- Confidence combined by minimum, never by averaging
"""

from dataclasses import dataclass, field, replace
from enum import Enum
from typing import Dict, List, Optional, Tuple
from uuid import uuid4

from presence_guard.data.schemas.claim import Claim
from presence_guard.data.schemas.device import DeviceFingerprint
from presence_guard.data.schemas.location import LocationSample
from presence_guard.data.schemas.target import Target
from presence_guard.validators.schema import CheckOutput, dedupe_flags


class ClaimState(str, Enum):
    """Lifecycle states of a claim."""
    CHALLENGE_ISSUED = "ChallengeIssued"
    SAMPLES_COLLECTED = "SamplesCollected"
    VALIDATING = "Validating"
    ACCEPTED = "Accepted"
    REJECTED = "Rejected"


# Allowed transitions
_TRANSITIONS: Dict[ClaimState, Tuple[ClaimState, ...]] = {
    ClaimState.CHALLENGE_ISSUED: (ClaimState.SAMPLES_COLLECTED,),
    ClaimState.SAMPLES_COLLECTED: (ClaimState.VALIDATING, ClaimState.REJECTED),
    ClaimState.VALIDATING: (ClaimState.ACCEPTED, ClaimState.REJECTED),
    ClaimState.ACCEPTED: (),
    ClaimState.REJECTED: (),
}

# Steps whose confidence enters the aggregate
SCORED_STEPS = ("trajectory", "proximity", "behavior", "fingerprint")


@dataclass(frozen=True)
class ClaimContext:
    """Everything known about a claim while it is being decided."""
    context_id: str
    claim: Claim
    received_at_ms: int
    state: ClaimState = ClaimState.SAMPLES_COLLECTED
    steps: Tuple[Tuple[str, CheckOutput], ...] = ()
    extra_flags: Tuple[str, ...] = ()
    target: Optional[Target] = None
    fingerprint: Optional[DeviceFingerprint] = None
    metadata: Tuple[Tuple[str, object], ...] = field(default_factory=tuple)

    @classmethod
    def create(cls, claim: Claim, received_at_ms: int) -> "ClaimContext":
        """A submitted claim: its challenge was issued and its samples collected."""
        return cls(
            context_id=f"clm_{uuid4().hex[:12]}",
            claim=claim,
            received_at_ms=received_at_ms,
        )

    def transition(self, state: ClaimState) -> "ClaimContext":
        if state not in _TRANSITIONS[self.state]:
            raise ValueError(f"Illegal claim transition {self.state.value} -> {state.value}")
        return replace(self, state=state)

    def with_step(self, name: str, output: CheckOutput) -> "ClaimContext":
        return replace(self, steps=self.steps + ((name, output),))

    def with_target(self, target: Target) -> "ClaimContext":
        return replace(self, target=target)

    def with_fingerprint(self, fingerprint: DeviceFingerprint) -> "ClaimContext":
        return replace(self, fingerprint=fingerprint)

    def with_flags(self, *flags: str) -> "ClaimContext":
        return replace(self, extra_flags=self.extra_flags + tuple(flags))

    def with_metadata(self, **values) -> "ClaimContext":
        return replace(self, metadata=self.metadata + tuple(values.items()))

    def step(self, name: str) -> Optional[CheckOutput]:
        for step_name, output in self.steps:
            if step_name == name:
                return output
        return None

    @property
    def latest_sample(self) -> Optional[LocationSample]:
        if not self.claim.samples:
            return None
        return max(self.claim.samples, key=lambda s: s.captured_at_ms)

    @property
    def flags(self) -> List[str]:
        collected: List[str] = []
        for _, output in self.steps:
            collected.extend(output.flags)
        collected.extend(self.extra_flags)
        return dedupe_flags(collected)

    @property
    def confidence(self) -> int:
        """Minimum confidence across the scored steps (100 before any ran)."""
        scores = [output.confidence for name, output in self.steps if name in SCORED_STEPS]
        return min(scores) if scores else 100

    @property
    def fatal(self) -> Optional[CheckOutput]:
        for _, output in self.steps:
            if output.fatal:
                return output
        return None

    @property
    def is_decided(self) -> bool:
        return self.state in (ClaimState.ACCEPTED, ClaimState.REJECTED)
