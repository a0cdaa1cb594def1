"""CloudWatch custom metrics emitter with background batching.

Two families of metrics are published:

* ``ExternalAPI/*`` — count, latency and errors for every call to the
  generative model (``record_success`` / ``record_failure``).
* ``Booking/Transitions`` — one data point per booking-flow outcome
  (started, created, cancelled, expired...) via ``record_booking``.

Data points are buffered under a lock and flushed by a daemon thread every
``FLUSH_INTERVAL_SECONDS``.  Unless ``METRICS_ENABLED=true`` nothing leaves
the process; points are only logged at DEBUG level.

>>> from vet_assistant.services.metrics import metrics
>>> metrics.record_success("anthropic", "generate_reply", latency_ms=812.0)
>>> metrics.record_booking("appointment_created")
"""

from __future__ import annotations

import atexit
import logging
import os
import threading
import time
from datetime import UTC, datetime
from typing import Any

logger = logging.getLogger(__name__)

NAMESPACE = "VetAssistant"
FLUSH_INTERVAL_SECONDS = 60
MAX_BATCH_SIZE = 1_000  # CloudWatch API limit per PutMetricData call


class MetricsClient:
    """Batched CloudWatch metrics publisher."""

    def __init__(self) -> None:
        self._enabled = os.getenv("METRICS_ENABLED", "false").lower() == "true"
        self._buffer: list[dict[str, Any]] = []
        self._lock = threading.Lock()
        self._cw_client = None

        if self._enabled:
            self._start_flush_thread()

    def _get_cw_client(self):
        if self._cw_client is None:
            import boto3

            self._cw_client = boto3.client("cloudwatch")
        return self._cw_client

    # ── Public API ────────────────────────────────────────────────────

    def record_success(self, service: str, operation: str, latency_ms: float) -> None:
        """Record a successful external call."""
        now = datetime.now(UTC)
        service_dim = {"Name": "Service", "Value": service}
        self._append(_point(
            "ExternalAPI/RequestCount", 1, "Count", now,
            [service_dim, {"Name": "Status", "Value": "success"}],
        ))
        self._append(_point(
            "ExternalAPI/Latency", latency_ms, "Milliseconds", now,
            [service_dim, {"Name": "Operation", "Value": operation}],
        ))
        logger.debug("Metric: %s %s success latency=%.1fms", service, operation, latency_ms)

    def record_failure(
        self,
        service: str,
        operation: str,
        error_type: str,
        latency_ms: float = 0,
    ) -> None:
        """Record a failed external call."""
        now = datetime.now(UTC)
        service_dim = {"Name": "Service", "Value": service}
        self._append(_point(
            "ExternalAPI/RequestCount", 1, "Count", now,
            [service_dim, {"Name": "Status", "Value": "failure"}],
        ))
        self._append(_point(
            "ExternalAPI/ErrorCount", 1, "Count", now,
            [service_dim, {"Name": "ErrorType", "Value": error_type}],
        ))
        if latency_ms > 0:
            self._append(_point(
                "ExternalAPI/Latency", latency_ms, "Milliseconds", now,
                [service_dim, {"Name": "Operation", "Value": operation}],
            ))
        logger.debug(
            "Metric: %s %s failure error=%s latency=%.1fms",
            service, operation, error_type, latency_ms,
        )

    def record_booking(self, outcome: str) -> None:
        """Count one booking-flow outcome (``started``, ``appointment_created``...)."""
        self._append(_point(
            "Booking/Transitions", 1, "Count", datetime.now(UTC),
            [{"Name": "Outcome", "Value": outcome}],
        ))
        logger.debug("Metric: booking %s", outcome)

    def flush(self) -> int:
        """Send buffered metrics to CloudWatch.  Returns count sent."""
        with self._lock:
            if not self._buffer:
                return 0
            batch = self._buffer[:]
            self._buffer.clear()

        if not self._enabled:
            logger.debug("Metrics flush skipped (not enabled): %d items", len(batch))
            return 0

        sent = 0
        try:
            cw = self._get_cw_client()
            for i in range(0, len(batch), MAX_BATCH_SIZE):
                chunk = batch[i : i + MAX_BATCH_SIZE]
                cw.put_metric_data(Namespace=NAMESPACE, MetricData=chunk)
                sent += len(chunk)
            logger.info("Flushed %d metrics to CloudWatch", sent)
        except Exception:
            logger.exception("Failed to flush metrics to CloudWatch")
        return sent

    # ── Internal ──────────────────────────────────────────────────────

    def _append(self, metric_data: dict[str, Any]) -> None:
        with self._lock:
            self._buffer.append(metric_data)

    def _start_flush_thread(self) -> None:
        def _loop():
            while True:
                time.sleep(FLUSH_INTERVAL_SECONDS)
                try:
                    self.flush()
                except Exception:
                    logger.exception("Metrics flush thread error")

        t = threading.Thread(target=_loop, daemon=True, name="metrics-flush")
        t.start()
        atexit.register(self.flush)
        logger.info("Metrics flush thread started (interval=%ds)", FLUSH_INTERVAL_SECONDS)


def _point(
    name: str,
    value: float,
    unit: str,
    timestamp: datetime,
    dimensions: list[dict[str, str]],
) -> dict[str, Any]:
    return {
        "MetricName": name,
        "Dimensions": dimensions,
        "Timestamp": timestamp,
        "Value": value,
        "Unit": unit,
    }


metrics = MetricsClient()
