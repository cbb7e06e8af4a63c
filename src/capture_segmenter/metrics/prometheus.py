"""
Prometheus metrics for capture segmentation.

The segmenter is a batch tool, so metrics live in a private registry and
are exported once per run in the node-exporter textfile format:
- Segment, frame and passthrough packet counters
- Files processed by outcome
- Segment duration histogram
"""

from __future__ import annotations

import logging
from pathlib import Path

from prometheus_client import CollectorRegistry, Counter, Histogram, write_to_textfile

from capture_segmenter.models.segments import SegmentRecord

logger = logging.getLogger(__name__)


class SegmenterMetrics:
    """Prometheus metrics for one segmentation run.

    All metrics use the 'capture_segmenter_' prefix. Each instance owns its
    registry, so instances never collide.
    """

    NAMESPACE = "capture_segmenter"

    def __init__(self, registry: CollectorRegistry | None = None) -> None:
        self.registry = registry or CollectorRegistry()
        prefix = self.NAMESPACE

        self._segments_written = Counter(
            f"{prefix}_segments_written_total",
            "Total segment files written",
            registry=self.registry,
        )
        self._frames_encoded = Counter(
            f"{prefix}_frames_encoded_total",
            "Total video frames re-encoded into segments",
            registry=self.registry,
        )
        self._packets_copied = Counter(
            f"{prefix}_packets_copied_total",
            "Total passthrough packets copied into segments",
            registry=self.registry,
        )
        self._files_processed = Counter(
            f"{prefix}_files_processed_total",
            "Total input files processed",
            ["status"],  # values: success|failed
            registry=self.registry,
        )
        self._segment_duration = Histogram(
            f"{prefix}_segment_duration_seconds",
            "Presentation time covered by each segment",
            buckets=[1.0, 5.0, 10.0, 30.0, 60.0, 120.0, 300.0, 600.0],
            registry=self.registry,
        )

    def record_segment(self, record: SegmentRecord) -> None:
        """Record a finalized segment."""
        self._segments_written.inc()
        self._frames_encoded.inc(record.frames_encoded)
        self._packets_copied.inc(record.packets_copied)
        self._segment_duration.observe(record.duration_s)

    def record_file(self, success: bool) -> None:
        """Record the outcome of one input file."""
        self._files_processed.labels(status="success" if success else "failed").inc()

    def get_value(self, name: str, labels: dict[str, str] | None = None) -> float:
        """Current sample value of ``name`` (0.0 if absent)."""
        value = self.registry.get_sample_value(name, labels or {})
        return value if value is not None else 0.0

    def write(self, path: Path) -> None:
        """Export all metrics to a Prometheus textfile."""
        path.parent.mkdir(parents=True, exist_ok=True)
        write_to_textfile(str(path), self.registry)
        logger.info(f"Metrics written to {path}")
