"""PresenceGuard - proof-of-presence validation and anti-fraud engine."""

__version__ = "1.0.0"
