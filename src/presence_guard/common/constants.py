"""Centralized constants for PresenceGuard."""


# ===== REJECTION REASONS =====
class Reasons:
    # Challenge
    INVALID = "INVALID"
    REPLAY = "REPLAY"
    NONCE_MISMATCH = "NONCE_MISMATCH"
    EXPIRED = "EXPIRED"

    # Target and limits
    NOT_FOUND = "NOT_FOUND"
    BANNED = "BANNED"
    IP_RATE_LIMITED = "IP_RATE_LIMITED"
    CLAIM_TOO_SOON = "CLAIM_TOO_SOON"
    COOLDOWN_ACTIVE = "COOLDOWN_ACTIVE"
    HOURLY_LIMIT_REACHED = "HOURLY_LIMIT_REACHED"
    TAG_HOURLY_LIMIT_REACHED = "TAG_HOURLY_LIMIT_REACHED"

    # Samples and trajectory
    INSUFFICIENT_SAMPLES = "INSUFFICIENT_SAMPLES"
    INVALID_COORDINATES = "INVALID_COORDINATES"
    FUTURE_TIMESTAMP = "FUTURE_TIMESTAMP"
    NEGATIVE_SPEED = "NEGATIVE_SPEED"
    LOW_CONFIDENCE = "LOW_CONFIDENCE"

    # Proximity and behavior
    TOO_FAR_FROM_POI = "TOO_FAR_FROM_POI"
    IMPOSSIBLE_JOURNEY = "IMPOSSIBLE_JOURNEY"
    EXCESSIVE_JUMPS = "EXCESSIVE_JUMPS"

    # Infrastructure
    SERVICE_UNAVAILABLE = "SERVICE_UNAVAILABLE"


# ===== PENALTY FLAGS =====
class Flags:
    LOW_ACCURACY = "LOW_ACCURACY"
    STALE = "STALE"
    EXCESSIVE_SPEED = "EXCESSIVE_SPEED"
    SUSPICIOUS_ALTITUDE = "SUSPICIOUS_ALTITUDE"

    SAMPLES_TOO_FAST = "SAMPLES_TOO_FAST"
    SAMPLES_TOO_SLOW = "SAMPLES_TOO_SLOW"
    IMPOSSIBLE_MOVEMENT = "IMPOSSIBLE_MOVEMENT"
    HIGH_LOCATION_VARIANCE = "HIGH_LOCATION_VARIANCE"

    NEAR_BOUNDARY = "NEAR_BOUNDARY"

    APPROACHING_HOURLY_LIMIT = "APPROACHING_HOURLY_LIMIT"

    REGULAR_TIMING_PATTERN = "REGULAR_TIMING_PATTERN"
    ACTION_BURST = "ACTION_BURST"
    HIGH_TRAVEL_SPEED = "HIGH_TRAVEL_SPEED"
    IMPOSSIBLE_JUMP = "IMPOSSIBLE_JUMP"
    SAME_COORDINATES = "SAME_COORDINATES"
    HIGH_FREQUENCY = "HIGH_FREQUENCY"

    NEW_DEVICE = "NEW_DEVICE"
    DEVICE_MISMATCH = "DEVICE_MISMATCH"
    WEAK_FINGERPRINT = "WEAK_FINGERPRINT"

    SESSION_SUSPICIOUS = "SESSION_SUSPICIOUS"
    FINGERPRINT_HINT_MISMATCH = "FINGERPRINT_HINT_MISMATCH"


# ===== SESSION FLAGS =====
class SessionFlags:
    SESSION_NOT_FOUND = "SESSION_NOT_FOUND"
    SESSION_EXPIRED = "SESSION_EXPIRED"
    SESSION_REVOKED = "SESSION_REVOKED"
    NO_PREVIOUS_LOGS = "NO_PREVIOUS_LOGS"
    FINGERPRINT_CHANGED = "FINGERPRINT_CHANGED"
    IP_CHANGED = "IP_CHANGED"
    EXCESSIVE_IP_CHANGES = "EXCESSIVE_IP_CHANGES"
    MULTIPLE_LOCATIONS = "MULTIPLE_LOCATIONS"
    SESSION_TOO_OLD = "SESSION_TOO_OLD"


# ===== GEOMETRY =====
class GeoConstants:
    EARTH_RADIUS_M = 6371e3
    MPS_TO_KMH = 3.6


# ===== STORAGE =====
class StorageConstants:
    DEFAULT_TTL_DAYS = 90
    CHALLENGE_TTL_GRACE_SECONDS = 3600
    AUDIT_QUERY_LIMIT = 100
    SESSION_LOG_QUERY_LIMIT = 100


# ===== MONITORING =====
class MonitoringConstants:
    DEFAULT_BATCH_SIZE = 20
    CLOUDWATCH_MAX_BATCH = 20
    CLAIM_LATENCY_WARNING_MS = 500


# ===== FINGERPRINTING =====
class FingerprintConstants:
    HASH_ALGORITHM = "sha256"
    UNKNOWN = "unknown"
    BROWSER_FAMILIES = ("Chrome", "Firefox", "Safari", "Edge", "Opera")
