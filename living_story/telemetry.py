"""Telemetry tracking for ledger lifecycle events."""
from __future__ import annotations

import json
import logging
import os
import sqlite3
import time
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Any, Dict, List, Optional

from .config import get_settings

logger = logging.getLogger(__name__)

_DB_ENV = "LIVING_STORY_TELEMETRY_DB"


class MetricType(Enum):
    """Types of metrics tracked."""
    CONSEQUENCE_LIFECYCLE = "consequence_lifecycle"
    NARRATIVE_DEBT = "narrative_debt"
    MARKET_ACTIVITY = "market_activity"
    ERROR_RATE = "error_rate"
    PERFORMANCE = "performance"


@dataclass
class MetricEvent:
    """Individual metric event."""
    timestamp: float
    metric_type: MetricType
    name: str
    value: float
    tags: Dict[str, str] = field(default_factory=dict)
    metadata: Dict[str, Any] = field(default_factory=dict)


class TelemetryCollector:
    """Buffers metric events and flushes them to a SQLite table."""

    def __init__(self, db_path: Optional[Path] = None, flush_threshold: int = 100):
        self.db_path = db_path or Path(
            os.getenv(_DB_ENV) or get_settings().telemetry_db_path
        )
        self._init_database()
        self._metrics_buffer: List[MetricEvent] = []
        self._flush_threshold = flush_threshold
        self._flush_interval = 60
        self._last_flush = time.time()

    def _init_database(self):
        with sqlite3.connect(self.db_path) as conn:
            conn.execute("""
                CREATE TABLE IF NOT EXISTS metrics (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    timestamp REAL NOT NULL,
                    metric_type TEXT NOT NULL,
                    name TEXT NOT NULL,
                    value REAL NOT NULL,
                    tags TEXT,
                    metadata TEXT,
                    created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
                )
            """)
            conn.execute("""
                CREATE INDEX IF NOT EXISTS idx_metrics_type_name
                ON metrics(metric_type, name)
            """)
            conn.commit()

    def track_consequence(
        self,
        event: str,
        consequence_id: str,
        *,
        chapter: int,
        severity: Optional[int] = None,
        story_id: Optional[str] = None,
    ) -> None:
        """Track a consequence being recorded, escalated or resolved."""

        tags = {"consequence_id": consequence_id, "chapter": str(chapter)}
        if story_id:
            tags["story_id"] = story_id
        self.record(
            MetricType.CONSEQUENCE_LIFECYCLE,
            event,
            float(severity or 0),
            tags=tags,
        )

    def track_debt(
        self,
        chapter: int,
        total_debt: float,
        *,
        is_crisis: bool,
        trend: str,
        story_id: Optional[str] = None,
    ) -> None:
        tags = {"chapter": str(chapter), "crisis": str(is_crisis).lower(), "trend": trend}
        if story_id:
            tags["story_id"] = story_id
        self.record(MetricType.NARRATIVE_DEBT, "debt_score", total_debt, tags=tags)

    def track_market(
        self,
        event: str,
        consequence_id: str,
        value: float,
        details: Optional[Dict[str, Any]] = None,
    ) -> None:
        """Track bets placed and settlements paid."""
        self.record(
            MetricType.MARKET_ACTIVITY,
            event,
            value,
            tags={"consequence_id": consequence_id},
            metadata=details or {},
        )

    def track_error(
        self,
        error_type: str,
        operation: Optional[str] = None,
        error_details: Optional[str] = None,
    ) -> None:
        tags = {}
        if operation:
            tags["operation"] = operation
        self.record(
            MetricType.ERROR_RATE,
            error_type,
            1.0,
            tags=tags,
            metadata={"error_details": error_details} if error_details else {},
        )

    def track_performance(
        self,
        operation: str,
        duration_ms: float,
        tags: Optional[Dict[str, str]] = None
    ):
        self.record(
            MetricType.PERFORMANCE,
            operation,
            duration_ms,
            tags=tags or {},
            metadata={"unit": "milliseconds"}
        )

    def record(
        self,
        metric_type: MetricType,
        name: str,
        value: float,
        tags: Optional[Dict[str, str]] = None,
        metadata: Optional[Dict[str, Any]] = None
    ):
        """Record a metric event."""
        event = MetricEvent(
            timestamp=time.time(),
            metric_type=metric_type,
            name=name,
            value=value,
            tags=tags or {},
            metadata=metadata or {}
        )

        self._metrics_buffer.append(event)

        if len(self._metrics_buffer) >= self._flush_threshold or \
           time.time() - self._last_flush > self._flush_interval:
            self.flush()

    def flush(self):
        """Flush buffered metrics to database."""
        if not self._metrics_buffer:
            return

        try:
            with sqlite3.connect(self.db_path) as conn:
                for event in self._metrics_buffer:
                    conn.execute("""
                        INSERT INTO metrics
                        (timestamp, metric_type, name, value, tags, metadata)
                        VALUES (?, ?, ?, ?, ?, ?)
                    """, (
                        event.timestamp,
                        event.metric_type.value,
                        event.name,
                        event.value,
                        json.dumps(event.tags),
                        json.dumps(event.metadata)
                    ))
                conn.commit()

            logger.info("Flushed %d metrics to database", len(self._metrics_buffer))
            self._metrics_buffer.clear()
            self._last_flush = time.time()

        except sqlite3.Error as e:
            logger.error("Failed to flush metrics: %s", e)

    def summarize(self, metric_type: MetricType) -> Dict[str, Dict[str, float]]:
        """Return count and total value per metric name for one metric type."""

        self.flush()
        with sqlite3.connect(self.db_path) as conn:
            rows = conn.execute(
                """
                SELECT name, COUNT(*), SUM(value)
                FROM metrics
                WHERE metric_type = ?
                GROUP BY name
                """,
                (metric_type.value,),
            ).fetchall()
        return {
            name: {"count": int(count), "total": float(total or 0.0)}
            for name, count, total in rows
        }


# Singleton instance
_telemetry: Optional[TelemetryCollector] = None


def get_telemetry() -> TelemetryCollector:
    """Get or create singleton telemetry collector."""
    global _telemetry
    if _telemetry is None:
        _telemetry = TelemetryCollector()
    return _telemetry


class track_duration:
    """Context manager for tracking operation duration."""

    def __init__(
        self,
        operation: str,
        tags: Optional[Dict[str, str]] = None,
        collector: Optional[TelemetryCollector] = None,
    ):
        self.operation = operation
        self.tags = tags or {}
        self.collector = collector
        self.start_time = None

    def __enter__(self):
        self.start_time = time.time()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        duration_ms = (time.time() - self.start_time) * 1000
        telemetry = self.collector or get_telemetry()
        telemetry.track_performance(self.operation, duration_ms, self.tags)

        if exc_type:
            telemetry.track_error(
                exc_type.__name__,
                operation=self.operation,
                error_details=str(exc_val)
            )


__all__ = [
    "MetricEvent",
    "MetricType",
    "TelemetryCollector",
    "get_telemetry",
    "track_duration",
]
