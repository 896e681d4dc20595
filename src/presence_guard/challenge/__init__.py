"""Challenge issuance and consumption."""

from presence_guard.challenge.coordinator import ChallengeCoordinator

__all__ = ["ChallengeCoordinator"]
