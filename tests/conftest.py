"""Shared fixtures for PresenceGuard tests.

Time is pinned with a FakeClock so expiry, cooldown and staleness rules
are deterministic.
"""

from typing import List, Optional

import pytest

from presence_guard.challenge.coordinator import ChallengeCoordinator
from presence_guard.common.config.policy import PresencePolicy
from presence_guard.data.schemas.claim import Claim
from presence_guard.data.schemas.device import DeviceAttributes
from presence_guard.data.schemas.location import LocationSample
from presence_guard.data.schemas.target import Target
from presence_guard.orchestration.orchestrator import ValidationOrchestrator
from presence_guard.storage.catalog import InMemoryTargetCatalog
from presence_guard.storage.memory import InMemoryPresenceStore


# 2026-01-01T12:00:00Z
START_MS = 1767268800000

CASTLE = (36.4273, -5.1483)
# About 10.5 km north-east of the castle
HARBOUR = (36.5100, -5.0900)


class FakeClock:
    """Callable epoch-millisecond clock that only moves when told to."""

    def __init__(self, start_ms: int = START_MS):
        self.now = start_ms

    def __call__(self) -> int:
        return self.now

    def advance(self, seconds: float = 0, ms: int = 0) -> int:
        self.now += int(seconds * 1000) + ms
        return self.now


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def policy() -> PresencePolicy:
    return PresencePolicy()


@pytest.fixture
def store() -> InMemoryPresenceStore:
    return InMemoryPresenceStore()


@pytest.fixture
def castle_target() -> Target:
    return Target(
        tag_id="tag_castle",
        latitude=CASTLE[0],
        longitude=CASTLE[1],
        reward_points=10,
        reward_xp=25,
        name="Castle Gate",
    )


@pytest.fixture
def harbour_target() -> Target:
    return Target(
        tag_id="tag_harbour",
        latitude=HARBOUR[0],
        longitude=HARBOUR[1],
        reward_points=5,
        reward_xp=10,
        name="Harbour",
    )


@pytest.fixture
def catalog(castle_target, harbour_target) -> InMemoryTargetCatalog:
    return InMemoryTargetCatalog([castle_target, harbour_target])


@pytest.fixture
def coordinator(store, policy, clock) -> ChallengeCoordinator:
    return ChallengeCoordinator(store, policy.challenge, clock)


@pytest.fixture
def orchestrator(store, catalog, policy, coordinator, clock) -> ValidationOrchestrator:
    return ValidationOrchestrator(
        store,
        catalog,
        policy=policy,
        coordinator=coordinator,
        clock=clock,
    )


@pytest.fixture
def device() -> DeviceAttributes:
    """A typical phone browser, strong enough to avoid WEAK_FINGERPRINT."""
    return DeviceAttributes(
        user_agent="Mozilla/5.0 (iPhone; CPU iPhone OS 17_0 like Mac OS X) Safari/604.1",
        screen_resolution="390x844",
        timezone="Europe/Madrid",
        language="es-ES",
        platform="iPhone",
    )


@pytest.fixture
def make_samples(clock):
    """Build readings ending at the current clock time, oldest first."""

    def _make(
        latitude: float = CASTLE[0],
        longitude: float = CASTLE[1],
        count: int = 3,
        step_ms: int = 2000,
        accuracy_m: float = 10.0,
        end_ms: Optional[int] = None,
        **extra,
    ) -> List[LocationSample]:
        end = clock() if end_ms is None else end_ms
        return [
            LocationSample(
                latitude=latitude,
                longitude=longitude,
                accuracy_m=accuracy_m,
                captured_at_ms=end - (count - 1 - i) * step_ms,
                **extra,
            )
            for i in range(count)
        ]

    return _make


@pytest.fixture
def make_claim(coordinator, make_samples, device):
    """Issue a fresh challenge and build a claim that answers it."""

    def _make(
        user_id: str = "user_1",
        tag_id: str = "tag_castle",
        samples: Optional[List[LocationSample]] = None,
        device_attributes: Optional[DeviceAttributes] = None,
        **extra,
    ) -> Claim:
        challenge = coordinator.issue(user_id)
        return Claim(
            user_id=user_id,
            tag_id=tag_id,
            challenge_id=challenge.challenge_id,
            nonce=challenge.nonce,
            samples=samples if samples is not None else make_samples(),
            device_attributes=device_attributes if device_attributes is not None else device,
            **extra,
        )

    return _make
