"""
Batch runner: segments a list of captures sequentially.

All capture start times are parsed before any media is opened, so a
filename without a usable timestamp aborts the batch without touching
the other files. Per-file failures abort the batch unless
``continue_on_error`` is set.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime
from pathlib import Path

from capture_segmenter.config.segmenter_config import SegmenterConfig
from capture_segmenter.controller.segment_controller import SegmentController
from capture_segmenter.errors import SegmenterError
from capture_segmenter.media.backend import MediaBackend
from capture_segmenter.metrics.prometheus import SegmenterMetrics
from capture_segmenter.models.segments import SegmentRecord
from capture_segmenter.progress import ProgressReporter
from capture_segmenter.timestamps.codec import parse_start_time

logger = logging.getLogger(__name__)


@dataclass
class BatchResult:
    """Outcome of a batch.

    Attributes:
        segments: Finalized segments per input file.
        failures: Error per input file that failed (continue_on_error only).
    """

    segments: dict[Path, list[SegmentRecord]] = field(default_factory=dict)
    failures: dict[Path, SegmenterError] = field(default_factory=dict)

    @property
    def ok(self) -> bool:
        return not self.failures

    @property
    def segment_count(self) -> int:
        return sum(len(records) for records in self.segments.values())


class SegmentationRunner:
    """Runs the segment controller over a batch of input files."""

    def __init__(
        self,
        config: SegmenterConfig,
        backend: MediaBackend | None = None,
        metrics: SegmenterMetrics | None = None,
        progress: ProgressReporter | None = None,
    ) -> None:
        if backend is None:
            from capture_segmenter.media.pyav_backend import PyAVBackend

            backend = PyAVBackend(ignore_unsupported_streams=config.ignore_unsupported_streams)

        self.config = config
        self.metrics = metrics or SegmenterMetrics()
        self.progress = progress or ProgressReporter(enabled=config.show_progress)
        self.controller = SegmentController(config, backend, self.progress, self.metrics)

    def parse_all(self, paths: list[Path]) -> list[tuple[Path, datetime]]:
        """Parse the capture start time of every input.

        Raises:
            DateParseError: For the first filename without a usable timestamp
        """
        parsed = []
        for path in paths:
            start = parse_start_time(path, self.config.dtformat, self.config.use_utc)
            logger.debug(f"{path.name}: capture start {start.isoformat()}")
            parsed.append((path, start))
        return parsed

    def run(self, paths: list[Path]) -> BatchResult:
        """Segment every input in order.

        Raises:
            SegmenterError: First failure, unless continue_on_error is set
        """
        result = BatchResult()
        try:
            for path, start in self.parse_all(paths):
                logger.info(f"Reading {path.name} (capture start {start.isoformat()})")
                try:
                    result.segments[path] = self.controller.run(path, start)
                except SegmenterError as e:
                    self.metrics.record_file(success=False)
                    if not self.config.continue_on_error:
                        raise
                    logger.error(f"Skipping {path.name}: {e.message}")
                    result.failures[path] = e
                    continue
                self.metrics.record_file(success=True)
        finally:
            if self.config.metrics_file is not None:
                self.metrics.write(self.config.metrics_file)

        logger.info(
            f"Batch complete: files={len(result.segments)}, "
            f"segments={result.segment_count}, failures={len(result.failures)}"
        )
        return result
