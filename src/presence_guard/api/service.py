"""Presence Service - Core business logic behind the API gateway.

Composes the presence store, target catalog, challenge coordinator,
session detector and validation orchestrator from configuration, and
translates API schemas to domain calls.

Design principles:
- Clean separation between API and domain logic
- Components built once per process from Config and the policy file
- Rejections are ordinary responses, never errors
"""

import logging
from typing import Optional

from presence_guard.api.schemas import (
    BanRequest,
    BanResponse,
    ChallengeRequest,
    ChallengeResponse,
    ClaimRequest,
    ClaimResponse,
    SessionActivityRequest,
    SessionActivityResponse,
    SessionRevokeRequest,
    SessionRevokeResponse,
    SessionValidateRequest,
)
from presence_guard.challenge.coordinator import ChallengeCoordinator
from presence_guard.common.clock import Clock, now_ms
from presence_guard.common.config.policy import PresencePolicy, load_policy
from presence_guard.common.config.settings import Config, StorageBackend, get_config
from presence_guard.common.exceptions import ValidationError
from presence_guard.data.schemas.claim import Claim
from presence_guard.data.schemas.records import CheatStats
from presence_guard.data.schemas.session import SessionAction, SessionAssessment
from presence_guard.monitoring.cheat_stats import CheatStatsReporter
from presence_guard.monitoring.metrics import MetricsCollector
from presence_guard.orchestration.orchestrator import ValidationOrchestrator
from presence_guard.session.detector import SessionAnomalyDetector
from presence_guard.storage.base import PresenceStore
from presence_guard.storage.catalog import (
    DynamoDBTargetCatalog,
    InMemoryTargetCatalog,
    TargetCatalog,
)
from presence_guard.storage.dynamodb import DynamoDBPresenceStore
from presence_guard.storage.memory import InMemoryPresenceStore
from presence_guard.validators.fingerprint import FingerprintEngine
from presence_guard.validators.ratelimit import ip_key, user_key


logger = logging.getLogger(__name__)


class PresenceService:
    """Service for challenges, claims and session trust.

    Orchestrates:
    1. Challenge issuance
    2. Claim validation through the ValidationOrchestrator
    3. Session activity, validation and revocation
    4. Bans and per-user cheat statistics
    """

    def __init__(
        self,
        config: Optional[Config] = None,
        store: Optional[PresenceStore] = None,
        catalog: Optional[TargetCatalog] = None,
        policy: Optional[PresencePolicy] = None,
        metrics: Optional[MetricsCollector] = None,
        clock: Clock = now_ms,
    ):
        """Initialize the service.

        Args:
            config: Process configuration. Global config if not provided.
            store: Presence store. Built from config if not provided.
            catalog: Target catalog. Built from config if not provided.
            policy: Validation policy. Loaded from the policy file if not provided.
            metrics: Metrics collector. Built when metrics are enabled.
            clock: Epoch-millisecond clock
        """
        self.config = config or get_config()
        self.clock = clock
        self.policy = policy or load_policy(self.config.resolved_policy_file)
        self.store = store or self._build_store()
        self.catalog = catalog or self._build_catalog()
        self.metrics = metrics
        if self.metrics is None and self.config.metrics_enabled:
            self.metrics = MetricsCollector(region=self.config.aws_region)

        self.challenges = ChallengeCoordinator(self.store, self.policy.challenge, clock)
        self.sessions = SessionAnomalyDetector(
            self.store,
            self.policy.session,
            FingerprintEngine(self.policy.fingerprint),
            clock=clock,
            auto_revoke=self.config.session_auto_revoke,
            metrics=self.metrics,
        )
        self.orchestrator = ValidationOrchestrator(
            self.store,
            self.catalog,
            policy=self.policy,
            coordinator=self.challenges,
            session_detector=self.sessions,
            metrics=self.metrics,
            clock=clock,
            budget_ms=self.config.claim_budget_ms,
        )
        self.cheat_stats_reporter = CheatStatsReporter(self.store, self.policy.abuse)

    def _build_store(self) -> PresenceStore:
        if self.config.storage_backend == StorageBackend.DYNAMODB:
            return DynamoDBPresenceStore(self.config.dynamodb_table, region=self.config.aws_region)
        logger.warning("Using in-memory presence store; state is lost on restart")
        return InMemoryPresenceStore()

    def _build_catalog(self) -> TargetCatalog:
        if self.config.storage_backend == StorageBackend.DYNAMODB and self.config.targets_table:
            return DynamoDBTargetCatalog(self.config.targets_table, region=self.config.aws_region)
        return InMemoryTargetCatalog()

    def shutdown(self) -> None:
        """Flush pending metrics."""
        if self.metrics is not None:
            try:
                self.metrics.shutdown()
            except OSError as e:
                logger.error(f"Failed to flush metrics on shutdown: {e}")
            logger.info("PresenceService metrics shutdown complete")

    def is_ready(self) -> bool:
        return self.store.health_check()

    # ========== CHALLENGES ==========

    def issue_challenge(self, request: ChallengeRequest) -> ChallengeResponse:
        challenge = self.challenges.issue(request.user_id)
        if self.metrics is not None:
            try:
                self.metrics.record_challenge_issued()
            except OSError as e:
                logger.warning(f"Failed to record challenge metric: {e}")
        return ChallengeResponse(
            challenge_id=challenge.challenge_id,
            nonce=challenge.nonce,
            expires_at_ms=challenge.expires_at_ms,
        )

    # ========== CLAIMS ==========

    def submit_claim(self, request: ClaimRequest) -> ClaimResponse:
        """Validate a claim.

        Raises:
            ValidationError: If the claim names a flow that is not configured
        """
        if request.flow not in self.policy.flows:
            raise ValidationError(
                f"Unknown flow: {request.flow}",
                details={"flow": request.flow, "configured": sorted(self.policy.flows)},
            )
        claim = Claim.model_validate(request.model_dump())
        decision = self.orchestrator.validate(claim)
        return ClaimResponse.model_validate(decision.model_dump())

    # ========== SESSIONS ==========

    def validate_session(self, request: SessionValidateRequest) -> SessionAssessment:
        return self.sessions.validate_session(
            request.user_id,
            request.session_id,
            request.device_attributes,
            request.ip_address,
        )

    def revoke_sessions(self, request: SessionRevokeRequest) -> SessionRevokeResponse:
        """Revoke one session or all of a user's sessions.

        Raises:
            ValidationError: If neither a session nor all sessions are named
        """
        if request.all_sessions:
            count = self.sessions.revoke_all_user_sessions(
                request.user_id, request.reason, request.except_session_id
            )
            return SessionRevokeResponse(revoked_count=count)

        if not request.session_id:
            raise ValidationError("session_id is required unless all_sessions is set")

        revoked = self.sessions.revoke_session(request.user_id, request.session_id, request.reason)
        return SessionRevokeResponse(revoked_count=1 if revoked else 0)

    def record_session_activity(self, request: SessionActivityRequest) -> SessionActivityResponse:
        """Record LOGIN/LOGOUT/REFRESH. A LOGIN without a session opens one.

        Raises:
            ValidationError: For other actions, or a non-LOGIN without a session
        """
        allowed = (SessionAction.LOGIN, SessionAction.LOGOUT, SessionAction.REFRESH)
        if request.action not in allowed:
            raise ValidationError(
                f"Unsupported session action: {request.action.value}",
                details={"allowed": [a.value for a in allowed]},
            )

        if request.session_id is None:
            if request.action != SessionAction.LOGIN:
                raise ValidationError("session_id is required for LOGOUT and REFRESH")
            session = self.sessions.register_session(
                request.user_id, request.device_attributes, request.ip_address
            )
            latest = self.store.session_activity(session.session_id, 1)
            return SessionActivityResponse(
                session_id=session.session_id,
                log_id=latest[0].log_id if latest else None,
                expires_at_ms=session.expires_at_ms,
            )

        activity = self.sessions.record_activity(
            request.user_id,
            request.session_id,
            request.action,
            request.device_attributes,
            request.ip_address,
        )
        return SessionActivityResponse(session_id=request.session_id, log_id=activity.log_id)

    # ========== BANS AND CHEAT STATS ==========

    @staticmethod
    def _ban_identifier(request: BanRequest) -> str:
        if bool(request.user_id) == bool(request.ip_address):
            raise ValidationError("Exactly one of user_id or ip_address is required")
        if request.user_id:
            return user_key(request.user_id)
        return ip_key(request.ip_address)

    def ban(self, request: BanRequest) -> BanResponse:
        """Ban a user or an IP address.

        Raises:
            ValidationError: Unless exactly one of user_id or ip_address is set
        """
        identifier = self._ban_identifier(request)
        record = self.orchestrator.rate_limiter.ban(
            identifier, self.clock(), request.duration_seconds, request.reason
        )
        return BanResponse(identifier=identifier, active=True, ban=record)

    def lift_ban(self, request: BanRequest) -> BanResponse:
        identifier = self._ban_identifier(request)
        self.orchestrator.rate_limiter.unban(identifier)
        return BanResponse(identifier=identifier, active=False)

    def cheat_stats(self, user_id: str) -> CheatStats:
        return self.cheat_stats_reporter.user_stats(user_id)
