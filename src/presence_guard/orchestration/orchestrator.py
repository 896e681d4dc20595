"""Validation Orchestrator - The Only Place Claims Are Decided.

Runs a claim through every check in a fixed order and decides it:

1. Consume the challenge (replay protection)
2. Resolve the target
3. Access: bans and the per-IP request window
4. Cooldown, minimum claim interval and hourly caps
5. Trajectory plausibility
6. Proximity of the latest reading
7. Behavioral patterns
8. Device fingerprint

Fatal outcomes short-circuit. Otherwise confidence is the minimum across
steps 5-8 and the claim is accepted when it reaches the policy minimum.
Accepted claims are committed (visit, rewards, audit) in one atomic store
step. Every decided claim leaves exactly one audit record.

Error handling:
- Store or audit failures reject with SERVICE_UNAVAILABLE (fail closed)
- Metrics failures are logged and never affect the decision
- An unknown flow raises ConfigurationError before anything is consumed
"""

import logging
from typing import Optional
from uuid import uuid4

from presence_guard.challenge.coordinator import ChallengeCoordinator
from presence_guard.common.clock import Clock, now_ms, start_of_utc_day
from presence_guard.common.config.policy import FlowPolicy, PresencePolicy
from presence_guard.common.constants import Flags, Reasons
from presence_guard.common.exceptions import (
    AuditError,
    CommitConflictError,
    StoreUnavailableError,
)
from presence_guard.data.schemas.claim import Claim, ClaimDecision, RewardGrant
from presence_guard.data.schemas.device import DeviceAttributes
from presence_guard.data.schemas.records import AuditRecord, VisitRecord
from presence_guard.orchestration.decision_context import ClaimContext, ClaimState
from presence_guard.storage.base import PresenceStore
from presence_guard.storage.catalog import TargetCatalog
from presence_guard.validators.behavior import BehaviorAnalyzer, BehaviorHistory
from presence_guard.validators.fingerprint import FingerprintEngine
from presence_guard.validators.proximity import ProximityValidator
from presence_guard.validators.ratelimit import RateLimiter
from presence_guard.validators.sample import SampleValidator
from presence_guard.validators.schema import CheckOutput, dedupe_flags
from presence_guard.validators.trajectory import TrajectoryValidator


logger = logging.getLogger(__name__)


class ValidationOrchestrator:
    """Orchestrates the complete claim lifecycle.

    Every path returns a ClaimDecision. The only exception that escapes
    ``validate`` is ConfigurationError for a flow the policy does not know.
    """

    DEFAULT_BUDGET_MS = 3000

    def __init__(
        self,
        store: PresenceStore,
        catalog: TargetCatalog,
        policy: Optional[PresencePolicy] = None,
        coordinator: Optional[ChallengeCoordinator] = None,
        session_detector=None,
        metrics=None,
        clock: Clock = now_ms,
        budget_ms: int = DEFAULT_BUDGET_MS,
    ):
        """Initialize the orchestrator.

        Args:
            store: Presence store (challenges, audit, visits, rewards)
            catalog: Target catalog
            policy: Validation policy. Defaults when not provided.
            coordinator: Challenge coordinator. Built from the store if not provided.
            session_detector: Optional SessionAnomalyDetector, consulted read-only
            metrics: Optional MetricsCollector
            clock: Epoch-millisecond clock
            budget_ms: Time allowed for one claim before it fails closed
        """
        self.store = store
        self.catalog = catalog
        self.policy = policy or PresencePolicy()
        self.clock = clock
        self.budget_ms = budget_ms
        self.challenges = coordinator or ChallengeCoordinator(store, self.policy.challenge, clock)
        self.sessions = session_detector
        self.metrics = metrics

        min_confidence = self.policy.min_confidence
        self.rate_limiter = RateLimiter(store, self.policy.abuse)
        self.trajectory = TrajectoryValidator(
            self.policy.trajectory,
            SampleValidator(self.policy.samples, min_confidence),
            min_confidence,
        )
        self.proximity = ProximityValidator()
        self.behavior = BehaviorAnalyzer(self.policy.behavior, min_confidence)
        self.fingerprints = FingerprintEngine(self.policy.fingerprint)

    def validate(self, claim: Claim) -> ClaimDecision:
        """Decide a claim.

        Args:
            claim: The submitted claim

        Returns:
            ClaimDecision, accepted or rejected with a reason

        Raises:
            ConfigurationError: If the claim names an unknown flow
        """
        flow = self.policy.flow(claim.flow)
        started = self.clock()
        context = ClaimContext.create(claim, started)

        try:
            decision = self._process(context, flow)
        except (StoreUnavailableError, AuditError) as e:
            logger.error(
                f"Claim failed closed: {e.message}",
                extra={"user_id": claim.user_id, "tag_id": claim.tag_id, "code": e.code},
                exc_info=True,
            )
            self._record_store_error(e)
            decision = self._fail_closed(context)

        self._record_metrics(claim, decision, started)
        logger.info(
            "Claim decided",
            extra={
                "user_id": claim.user_id,
                "tag_id": claim.tag_id,
                "flow": claim.flow,
                "accepted": decision.accepted,
                "reason": decision.reason,
                "confidence": decision.confidence,
            },
        )
        return decision

    # ========== PIPELINE ==========

    def _process(self, context: ClaimContext, flow: FlowPolicy) -> ClaimDecision:
        claim = context.claim
        now = context.received_at_ms
        context = context.transition(ClaimState.VALIDATING)

        # 1. Challenge
        outcome = self.challenges.consume(claim.challenge_id, claim.user_id, claim.nonce, now)
        if not outcome.success:
            return self._reject_step(context, "challenge", CheckOutput.rejected(outcome.reason))

        # 2. Target
        target = self.catalog.resolve(claim.tag_id)
        if target is None or not target.is_active or target.tag_id != claim.tag_id:
            return self._reject_step(context, "target", CheckOutput.rejected(Reasons.NOT_FOUND))
        context = context.with_target(target)

        # 3. Access
        access = self.rate_limiter.check_access(claim.user_id, claim.ip_address, now)
        if access.fatal:
            return self._reject_step(context, "access", access)

        # 4. Cooldown and caps
        limits = self.rate_limiter.check(claim.user_id, claim.tag_id, flow, now)
        context = context.with_step("rate_limit", limits)
        if limits.fatal:
            return self._reject_step(context, None, limits)

        # 5. Trajectory
        trajectory = self.trajectory.validate(claim.samples, now)
        context = context.with_step("trajectory", trajectory)
        if not trajectory.valid:
            return self._reject_step(context, None, trajectory)

        latest = context.latest_sample

        # 6. Proximity
        proximity = self.proximity.validate(latest, target, flow)
        context = context.with_step("proximity", proximity)
        if proximity.fatal:
            return self._reject_step(context, None, proximity)

        # 7. Behavior
        behavior = self.behavior.analyze(target, latest, self._history(claim.user_id, now), flow, now)
        context = context.with_step("behavior", behavior)
        if behavior.fatal:
            return self._reject_step(context, None, behavior)

        # 8. Fingerprint
        attributes = self._attributes(claim)
        fingerprint = self.fingerprints.analyze(
            attributes,
            self.store.recent_accepted_audits(
                claim.user_id, self.policy.fingerprint.recent_successful_claims
            ),
        )
        context = context.with_step("fingerprint", fingerprint).with_fingerprint(fingerprint.fingerprint)
        if fingerprint.changes:
            context = context.with_metadata(fingerprint_changes=fingerprint.changes)
        context = self._check_fingerprint_hint(context, fingerprint.fingerprint.fingerprint_id)

        # Session trust adds a flag, never blocks
        context = self._consult_session(context, attributes)

        if context.confidence < self.policy.min_confidence:
            return self._reject(context, Reasons.LOW_CONFIDENCE, context.confidence)

        if self.clock() - context.received_at_ms > self.budget_ms:
            logger.warning(
                "Claim exceeded validation budget",
                extra={"user_id": claim.user_id, "budget_ms": self.budget_ms},
            )
            return self._reject(context, Reasons.SERVICE_UNAVAILABLE, 0)

        return self._commit(context, flow)

    def _history(self, user_id: str, now: int) -> BehaviorHistory:
        limits = self.policy.behavior
        accepted = self.store.recent_accepted_audits(user_id, 1)
        return BehaviorHistory(
            recent=tuple(self.store.recent_audits(user_id, limits.history_size)),
            last_accepted=accepted[0] if accepted else None,
            jumps_today=self.store.count_audit_flags_since(
                user_id, Flags.IMPOSSIBLE_JUMP, start_of_utc_day(now)
            ),
        )

    @staticmethod
    def _attributes(claim: Claim) -> DeviceAttributes:
        # The connection IP wins over whatever the client reported
        attributes = claim.device_attributes
        if claim.ip_address and attributes.ip_address != claim.ip_address:
            attributes = attributes.model_copy(update={"ip_address": claim.ip_address})
        return attributes

    @staticmethod
    def _check_fingerprint_hint(context: ClaimContext, fingerprint_id: str) -> ClaimContext:
        """Compare the client's own fingerprint hash with the computed one. Flag only."""
        hint = context.claim.client_fingerprint_hint
        if not hint:
            return context
        matches = hint == fingerprint_id
        context = context.with_metadata(fingerprint_hint_matches=matches)
        if not matches:
            context = context.with_flags(Flags.FINGERPRINT_HINT_MISMATCH)
        return context

    def _consult_session(self, context: ClaimContext, attributes: DeviceAttributes) -> ClaimContext:
        claim = context.claim
        if self.sessions is None or not claim.session_id:
            return context

        assessment = self.sessions.score_session(
            claim.user_id, claim.session_id, attributes, claim.ip_address
        )
        context = context.with_metadata(session_score=assessment.suspicious_score)
        if not assessment.trusted:
            context = context.with_flags(Flags.SESSION_SUSPICIOUS)
        return context

    # ========== COMMIT ==========

    def _commit(self, context: ClaimContext, flow: FlowPolicy) -> ClaimDecision:
        claim = context.claim
        target = context.target
        latest = context.latest_sample
        now = context.received_at_ms
        confidence = context.confidence
        proximity = context.step("proximity")

        audit_id = f"aud_{uuid4().hex[:12]}"
        visit = VisitRecord(
            user_id=claim.user_id,
            tag_id=claim.tag_id,
            challenge_id=claim.challenge_id,
            audit_id=audit_id,
            visited_at_ms=now,
            latitude=latest.latitude,
            longitude=latest.longitude,
            points=target.reward_points,
            xp=target.reward_xp,
        )
        audit = self._audit_record(
            context,
            accepted=True,
            reason=None,
            confidence=confidence,
            audit_id=audit_id,
            visit_id=visit.visit_id,
        )

        try:
            totals = self.store.commit_accepted_claim(
                visit, audit, RateLimiter.commit_limits(flow), now
            )
        except CommitConflictError as e:
            logger.info(
                "Reward commit lost a race",
                extra={"user_id": claim.user_id, "tag_id": claim.tag_id, "reason": e.reason},
            )
            retry_after = None
            if e.reason == Reasons.COOLDOWN_ACTIVE:
                retry_after = self.rate_limiter.cooldown_remaining_seconds(
                    claim.user_id, claim.tag_id, flow, now
                )
            return self._reject(
                context, e.reason, 0,
                extra_flags=[e.reason],
                retry_after_seconds=retry_after,
            )

        return ClaimDecision(
            accepted=True,
            confidence=confidence,
            flags=context.flags,
            distance_m=proximity.distance_m,
            reward=RewardGrant(
                points=visit.points,
                xp=visit.xp,
                total_points=totals.points,
                total_xp=totals.xp,
            ),
            audit_id=audit_id,
            visit_id=visit.visit_id,
        )

    # ========== REJECTION ==========

    def _reject_step(
        self,
        context: ClaimContext,
        name: Optional[str],
        output: CheckOutput,
    ) -> ClaimDecision:
        """Reject on a step's outcome. ``name`` records a step not yet in the context."""
        if name is not None:
            context = context.with_step(name, output)
        return self._reject(
            context,
            output.reason or Reasons.LOW_CONFIDENCE,
            0 if output.fatal else output.confidence,
            distance_m=getattr(output, "distance_m", None),
            retry_after_seconds=getattr(output, "retry_after_seconds", None),
        )

    def _reject(
        self,
        context: ClaimContext,
        reason: str,
        confidence: int,
        extra_flags=None,
        distance_m: Optional[float] = None,
        retry_after_seconds: Optional[int] = None,
    ) -> ClaimDecision:
        """Append the rejection to the audit trail and build the decision.

        Raises:
            AuditError: If the audit record cannot be written
        """
        context = context.transition(ClaimState.REJECTED)
        flags = dedupe_flags(context.flags + list(extra_flags or []))
        if distance_m is None:
            proximity = context.step("proximity")
            distance_m = proximity.distance_m if proximity is not None else None

        record = self._audit_record(
            context,
            accepted=False,
            reason=reason,
            confidence=confidence,
            flags=flags,
            distance_m=distance_m,
        )
        self._append_audit(record)

        return ClaimDecision(
            accepted=False,
            confidence=confidence,
            reason=reason,
            flags=flags,
            distance_m=distance_m,
            retry_after_seconds=retry_after_seconds,
            audit_id=record.audit_id,
        )

    def _fail_closed(self, context: ClaimContext) -> ClaimDecision:
        """Reject with SERVICE_UNAVAILABLE, auditing it when the store allows."""
        flags = dedupe_flags(context.flags + [Reasons.SERVICE_UNAVAILABLE])
        record = self._audit_record(
            context,
            accepted=False,
            reason=Reasons.SERVICE_UNAVAILABLE,
            confidence=0,
            flags=flags,
        )
        audit_id = None
        try:
            self._append_audit(record)
            audit_id = record.audit_id
        except AuditError:
            logger.error(
                "Audit record for failed claim could not be written",
                extra={"user_id": record.user_id, "audit_id": record.audit_id},
                exc_info=True,
            )

        return ClaimDecision(
            accepted=False,
            confidence=0,
            reason=Reasons.SERVICE_UNAVAILABLE,
            flags=flags,
            audit_id=audit_id,
        )

    # ========== AUDIT ==========

    def _append_audit(self, record: AuditRecord) -> None:
        try:
            self.store.append_audit(record)
        except StoreUnavailableError as e:
            raise AuditError(
                f"Audit append failed: {record.audit_id}",
                details={"audit_id": record.audit_id, "cause": e.message},
            ) from e

    def _audit_record(
        self,
        context: ClaimContext,
        accepted: bool,
        reason: Optional[str],
        confidence: int,
        flags=None,
        distance_m: Optional[float] = None,
        audit_id: Optional[str] = None,
        visit_id: Optional[str] = None,
    ) -> AuditRecord:
        claim = context.claim
        target = context.target
        attributes = self._attributes(claim)
        if distance_m is None:
            proximity = context.step("proximity")
            distance_m = proximity.distance_m if proximity is not None else None

        fields = dict(
            user_id=claim.user_id,
            tag_id=claim.tag_id,
            flow=claim.flow,
            timestamp_ms=context.received_at_ms,
            accepted=accepted,
            reason=reason,
            confidence=confidence,
            flags=context.flags if flags is None else flags,
            fingerprint_id=(
                context.fingerprint.fingerprint_id if context.fingerprint is not None
                else self.fingerprints.compute_hash(attributes)
            ),
            device_attributes=attributes,
            challenge_id=claim.challenge_id,
            last_sample=context.latest_sample,
            target_latitude=target.latitude if target is not None else None,
            target_longitude=target.longitude if target is not None else None,
            distance_m=distance_m,
            visit_id=visit_id,
            metadata=dict(context.metadata),
        )
        if audit_id is not None:
            fields["audit_id"] = audit_id
        return AuditRecord(**fields)

    # ========== METRICS ==========

    def _record_metrics(self, claim: Claim, decision: ClaimDecision, started: int) -> None:
        if self.metrics is None:
            return
        try:
            self.metrics.record_claim(
                accepted=decision.accepted,
                reason=decision.reason,
                confidence=decision.confidence,
                latency_ms=float(self.clock() - started),
                flow=claim.flow,
            )
        except OSError as e:
            logger.warning(f"Failed to record claim metrics: {e}")

    def _record_store_error(self, error) -> None:
        if self.metrics is None:
            return
        try:
            self.metrics.record_store_error(error.details.get("operation", "audit"))
        except OSError as e:
            logger.warning(f"Failed to record store error metric: {e}")
