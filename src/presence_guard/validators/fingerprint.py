"""Device Fingerprint Engine - stable device identity and similarity.

A fingerprint is a non-cryptographic identity: a hash over client
environment attributes plus a confidence reflecting how many attributes
were actually present. It is never used as sole authorization; in a claim
it only contributes penalties.
"""

import hashlib
import json
from typing import List, Optional, Sequence, Tuple

from presence_guard.common.config.policy import FingerprintPolicy
from presence_guard.common.constants import Flags, FingerprintConstants
from presence_guard.data.schemas.device import DeviceAttributes, DeviceFingerprint
from presence_guard.data.schemas.records import AuditRecord
from presence_guard.validators.schema import FingerprintOutput, clamp_confidence


UNKNOWN = FingerprintConstants.UNKNOWN


def browser_family(user_agent: Optional[str]) -> str:
    """Coarse browser family by substring, first match wins."""
    if not user_agent:
        return UNKNOWN
    for family in FingerprintConstants.BROWSER_FAMILIES:
        if family in user_agent:
            return family
    return UNKNOWN


class FingerprintEngine:
    """Derives fingerprints and scores a device against recent history."""

    # Presence weights, summing to 100
    CONFIDENCE_WEIGHTS = {
        "user_agent": 20,
        "screen_resolution": 15,
        "timezone": 10,
        "language": 10,
        "platform": 10,
        "vendor": 10,
        "cookies_enabled": 5,
        "do_not_track": 5,
        "ip_address": 15,
    }

    def __init__(self, policy: Optional[FingerprintPolicy] = None):
        self.policy = policy or FingerprintPolicy()

    def compute_hash(self, attributes: DeviceAttributes) -> str:
        """Deterministic hash over the identifying attributes (IP excluded)."""
        payload = json.dumps(
            {
                "ua": attributes.user_agent,
                "screen": attributes.screen_resolution or UNKNOWN,
                "tz": attributes.timezone,
                "lang": attributes.language,
                "platform": attributes.platform or UNKNOWN,
                "vendor": attributes.vendor or UNKNOWN,
                "cookies": attributes.cookies_enabled,
                "dnt": attributes.do_not_track or UNKNOWN,
            },
            ensure_ascii=False,
        )
        hasher = hashlib.new(FingerprintConstants.HASH_ALGORITHM)
        hasher.update(payload.encode("utf-8"))
        return hasher.hexdigest()

    def compute_confidence(self, attributes: DeviceAttributes) -> int:
        """Weighted presence score: more populated attributes, higher confidence."""
        confidence = 0
        for name, weight in self.CONFIDENCE_WEIGHTS.items():
            value = getattr(attributes, name)
            # cookies_enabled=False is still an observed attribute
            present = value is not None if name == "cookies_enabled" else bool(value)
            if present:
                confidence += weight
        return min(100, confidence)

    def fingerprint(self, attributes: DeviceAttributes) -> DeviceFingerprint:
        return DeviceFingerprint(
            fingerprint_id=self.compute_hash(attributes),
            raw_attributes=attributes,
            confidence=self.compute_confidence(attributes),
        )

    def similarity(self, first: DeviceFingerprint, second: DeviceFingerprint) -> float:
        """Fraction of matching components (platform, timezone, language, vendor, browser)."""
        if first.fingerprint_id == second.fingerprint_id:
            return 1.0

        a, b = first.raw_attributes, second.raw_attributes
        matches = sum([
            a.platform == b.platform,
            a.timezone == b.timezone,
            a.language == b.language,
            a.vendor == b.vendor,
            bool(a.user_agent and b.user_agent)
            and browser_family(a.user_agent) == browser_family(b.user_agent),
        ])
        return matches / 5

    def similar(
        self,
        first: DeviceFingerprint,
        second: DeviceFingerprint,
        threshold: Optional[float] = None,
    ) -> bool:
        if threshold is None:
            threshold = self.policy.similarity_threshold
        return self.similarity(first, second) >= threshold

    def detect_changes(self, old: DeviceFingerprint, new: DeviceFingerprint) -> List[str]:
        """Components that changed between two fingerprints."""
        a, b = old.raw_attributes, new.raw_attributes
        changes = []
        if a.platform != b.platform:
            changes.append("platform")
        if a.timezone != b.timezone:
            changes.append("timezone")
        if a.screen_resolution != b.screen_resolution:
            changes.append("screen_resolution")
        if browser_family(a.user_agent) != browser_family(b.user_agent):
            changes.append("browser")
        return changes

    def analyze(
        self,
        attributes: DeviceAttributes,
        recent_successful: Sequence[AuditRecord],
    ) -> FingerprintOutput:
        """Score the claiming device against the user's recent accepted claims.

        Args:
            attributes: Device attributes of the current claim
            recent_successful: Accepted audit records, most recent first

        Returns:
            FingerprintOutput; never fatal
        """
        current = self.fingerprint(attributes)
        known = list(recent_successful)[: self.policy.recent_successful_claims]

        penalty, flags, changes = self._score_penalties(current, known)
        confidence = clamp_confidence(100 - penalty)

        return FingerprintOutput(
            valid=True,
            confidence=confidence,
            flags=flags,
            fingerprint=current,
            changes=changes,
        )

    def _score_penalties(
        self,
        current: DeviceFingerprint,
        known: List[AuditRecord],
    ) -> Tuple[int, List[str], List[str]]:
        policy = self.policy
        penalty = 0
        flags: List[str] = []
        changes: List[str] = []

        if current.confidence < policy.weak_confidence_threshold:
            penalty += policy.weak_fingerprint_penalty
            flags.append(Flags.WEAK_FINGERPRINT)

        if not known:
            return penalty, flags, changes

        known_ids = {record.fingerprint_id for record in known if record.fingerprint_id}
        if current.fingerprint_id in known_ids:
            return penalty, flags, changes

        penalty += policy.new_device_penalty
        flags.append(Flags.NEW_DEVICE)

        latest = known[0]
        if latest.fingerprint_id:
            previous_attributes = latest.device_attributes or DeviceAttributes()
            previous = DeviceFingerprint(
                fingerprint_id=latest.fingerprint_id,
                raw_attributes=previous_attributes,
                confidence=self.compute_confidence(previous_attributes),
            )
            changes = self.detect_changes(previous, current)
            if not self.similar(previous, current):
                penalty += policy.device_mismatch_penalty
                flags.append(Flags.DEVICE_MISMATCH)

        return penalty, flags, changes
