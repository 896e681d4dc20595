"""Challenge Coordinator - one-time nonces with expiry (replay protection)."""

import logging
import secrets
from typing import Optional
from uuid import uuid4

from presence_guard.common.clock import Clock, now_ms
from presence_guard.common.config.policy import ChallengePolicy
from presence_guard.data.schemas.challenge import Challenge, ConsumeOutcome
from presence_guard.storage.base import PresenceStore

logger = logging.getLogger(__name__)


class ChallengeCoordinator:
    """Issues and consumes challenges.

    Consumption is delegated to the store as a single atomic step, so two
    concurrent claims on one challenge can never both succeed.
    """

    def __init__(
        self,
        store: PresenceStore,
        policy: Optional[ChallengePolicy] = None,
        clock: Clock = now_ms,
    ):
        self.store = store
        self.policy = policy or ChallengePolicy()
        self.clock = clock

    def issue(self, user_id: str) -> Challenge:
        """Create and persist a fresh challenge for a user."""
        issued_at = self.clock()
        challenge = Challenge(
            challenge_id=str(uuid4()),
            user_id=user_id,
            nonce=secrets.token_hex(self.policy.nonce_bytes),
            issued_at_ms=issued_at,
            expires_at_ms=issued_at + self.policy.ttl_seconds * 1000,
        )
        self.store.put_challenge(challenge)
        logger.info(
            "Challenge issued",
            extra={"user_id": user_id, "challenge_id": challenge.challenge_id},
        )
        return challenge

    def consume(
        self,
        challenge_id: str,
        user_id: str,
        nonce: str,
        at_ms: Optional[int] = None,
    ) -> ConsumeOutcome:
        """Consume a challenge exactly once.

        Fails with INVALID (unknown or issued to another user), REPLAY,
        NONCE_MISMATCH or EXPIRED. Failures leave the challenge untouched.
        """
        outcome = self.store.consume_challenge(
            challenge_id, user_id, nonce, at_ms if at_ms is not None else self.clock()
        )
        if not outcome.success:
            logger.info(
                "Challenge rejected",
                extra={"user_id": user_id, "challenge_id": challenge_id, "reason": outcome.reason},
            )
        return outcome
