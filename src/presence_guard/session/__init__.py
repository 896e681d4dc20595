"""Session trust scoring."""

from presence_guard.session.detector import SessionAnomalyDetector

__all__ = ["SessionAnomalyDetector"]
