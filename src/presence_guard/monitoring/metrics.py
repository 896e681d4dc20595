"""Monitoring - claim outcomes, confidence, latency and session revocations."""

import logging, os, threading
from dataclasses import dataclass
from datetime import datetime, timezone
from enum import Enum
from typing import Dict, List, Optional

import boto3
from botocore.exceptions import BotoCoreError, ClientError

from presence_guard.common.constants import MonitoringConstants

logger = logging.getLogger(__name__)


class MetricType(str, Enum):
    CLAIM_ACCEPTED = "claim_accepted"
    CLAIM_REJECTED = "claim_rejected"
    CLAIM_CONFIDENCE = "claim_confidence"
    CLAIM_LATENCY = "claim_latency"
    CHALLENGE_ISSUED = "challenge_issued"
    SESSION_REVOKED = "session_revoked"
    STORE_ERROR = "store_error"


@dataclass
class MetricPoint:
    metric_name: str
    value: float
    unit: str = "None"
    timestamp: Optional[datetime] = None
    dimensions: Optional[Dict[str, str]] = None

    def __post_init__(self):
        if self.timestamp is None:
            self.timestamp = datetime.now(timezone.utc)


class MetricsCollector:
    """Collects and publishes metrics to CloudWatch in batches."""

    DEFAULT_REGION = "us-east-1"
    DEFAULT_NAMESPACE = "PresenceGuard"

    def __init__(self, namespace: Optional[str] = None, region: Optional[str] = None,
                 aws_profile: Optional[str] = None,
                 batch_size: int = MonitoringConstants.DEFAULT_BATCH_SIZE):
        self.namespace = namespace or os.environ.get("CLOUDWATCH_NAMESPACE", self.DEFAULT_NAMESPACE)
        self.region = region or os.environ.get("AWS_REGION", self.DEFAULT_REGION)
        self.batch_size = batch_size
        self.metric_buffer: List[MetricPoint] = []
        self._lock = threading.Lock()

        if aws_profile:
            session = boto3.Session(profile_name=aws_profile)
            self.cloudwatch = session.client("cloudwatch", region_name=self.region)
        else:
            self.cloudwatch = boto3.client("cloudwatch", region_name=self.region)

        logger.info(f"Initialized MetricsCollector: namespace={self.namespace}")

    def record_metric(self, metric: MetricPoint) -> None:
        """Buffer a metric point, flushing when the buffer is full."""
        with self._lock:
            self.metric_buffer.append(metric)
            full = len(self.metric_buffer) >= self.batch_size
        if full:
            self.flush()

    def record_claim(
        self,
        accepted: bool,
        reason: Optional[str],
        confidence: int,
        latency_ms: float,
        flow: str = "visit",
    ) -> None:
        """Record metrics for one claim decision.

        Args:
            accepted: Whether the claim was accepted
            reason: Rejection reason, None when accepted
            confidence: Aggregate confidence (0-100)
            latency_ms: End-to-end validation latency
            flow: Entry point the claim came through
        """
        if accepted:
            self.record_metric(MetricPoint(
                metric_name=MetricType.CLAIM_ACCEPTED.value,
                value=1.0,
                unit="Count",
                dimensions={"flow": flow},
            ))
        else:
            self.record_metric(MetricPoint(
                metric_name=MetricType.CLAIM_REJECTED.value,
                value=1.0,
                unit="Count",
                dimensions={"flow": flow, "reason": reason or "UNKNOWN"},
            ))

        self.record_metric(MetricPoint(
            metric_name=MetricType.CLAIM_CONFIDENCE.value,
            value=float(confidence),
            unit="None",
            dimensions={"flow": flow},
        ))

        if latency_ms > MonitoringConstants.CLAIM_LATENCY_WARNING_MS:
            logger.warning(f"Slow claim validation: {latency_ms:.0f}ms")

        self.record_metric(MetricPoint(
            metric_name=MetricType.CLAIM_LATENCY.value,
            value=latency_ms,
            unit="Milliseconds",
        ))

    def record_challenge_issued(self) -> None:
        self.record_metric(MetricPoint(
            metric_name=MetricType.CHALLENGE_ISSUED.value,
            value=1.0,
            unit="Count",
        ))

    def record_session_revocation(self, reason: str) -> None:
        self.record_metric(MetricPoint(
            metric_name=MetricType.SESSION_REVOKED.value,
            value=1.0,
            unit="Count",
            dimensions={"reason": reason},
        ))

    def record_store_error(self, operation: str) -> None:
        self.record_metric(MetricPoint(
            metric_name=MetricType.STORE_ERROR.value,
            value=1.0,
            unit="Count",
            dimensions={"operation": operation},
        ))

    def flush(self) -> None:
        """Flush buffered metrics to CloudWatch.

        Raises:
            IOError: If CloudWatch write fails
        """
        with self._lock:
            pending = list(self.metric_buffer)
            self.metric_buffer.clear()

        if not pending:
            return

        metric_data = []
        for metric in pending:
            metric_dict = {
                "MetricName": metric.metric_name,
                "Value": metric.value,
                "Unit": metric.unit,
                "Timestamp": metric.timestamp,
            }
            if metric.dimensions:
                metric_dict["Dimensions"] = [
                    {"Name": k, "Value": str(v)}
                    for k, v in metric.dimensions.items()
                ]
            metric_data.append(metric_dict)

        try:
            batch_size = MonitoringConstants.CLOUDWATCH_MAX_BATCH
            for i in range(0, len(metric_data), batch_size):
                self.cloudwatch.put_metric_data(
                    Namespace=self.namespace,
                    MetricData=metric_data[i:i + batch_size],
                )
            logger.debug(f"Published {len(pending)} metrics to CloudWatch")
        except (ClientError, BotoCoreError) as e:
            logger.error(f"Failed to publish metrics: {e}")
            raise IOError(f"CloudWatch write failed: {e}") from e

    def shutdown(self) -> None:
        """Flush remaining metrics on shutdown."""
        self.flush()
