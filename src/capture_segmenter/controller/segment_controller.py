"""
Segment controller: splits one capture into time-bounded segments.

Drives the read loop of an input session, tracks presentation time of
decoded video frames and rolls the output over to a new segment file once
more than ``segment_duration_s`` elapsed since the last rollover.

Rollover rules:
- The frame that crosses the threshold stays in the old segment
- The old segment is closed (trailer written) before the next one opens
- The new segment is tagged with capture start + rollover time
- A segment whose name repeats an earlier one of the same input is an error

On a SegmenterError or interrupt the open segment is aborted, so no partial file is
left behind, and the input is closed before the error propagates.
"""

from __future__ import annotations

import logging
from datetime import datetime
from pathlib import Path

from capture_segmenter.config.segmenter_config import SegmenterConfig
from capture_segmenter.errors import SegmenterError, SegmentNameCollisionError
from capture_segmenter.media.backend import InputSession, MediaBackend, OutputSession
from capture_segmenter.metrics.prometheus import SegmenterMetrics
from capture_segmenter.models.segments import SegmentClock, SegmentRecord
from capture_segmenter.models.state import SegmentationState
from capture_segmenter.progress import ProgressReporter
from capture_segmenter.timestamps.codec import build_output_name, format_tag

logger = logging.getLogger(__name__)


class SegmentController:
    """Segments input files one at a time.

    The controller holds no state across files: every call to ``run``
    starts from idle with a fresh clock.

    Attributes:
        config: Segmentation configuration
        backend: Container session factory
        state: State machine of the file being processed
    """

    def __init__(
        self,
        config: SegmenterConfig,
        backend: MediaBackend,
        progress: ProgressReporter | None = None,
        metrics: SegmenterMetrics | None = None,
    ) -> None:
        self.config = config
        self.backend = backend
        self.progress = progress
        self.metrics = metrics
        self.state = SegmentationState()
        self.clock = SegmentClock()

        self._source: Path | None = None
        self._capture_start: datetime | None = None
        self._records: list[SegmentRecord] = []
        self._current: SegmentRecord | None = None
        self._output: OutputSession | None = None
        self._paths: set[Path] = set()

    def run(self, source: Path, capture_start: datetime) -> list[SegmentRecord]:
        """Split ``source`` into segments.

        Args:
            source: Input capture path
            capture_start: Capture start time parsed from the filename

        Returns:
            Finalized segments in order

        Raises:
            SegmenterError: On any open, probe, codec or write failure
        """
        self.state.reset()
        self.clock.reset()
        self._source = source
        self._capture_start = capture_start
        self._records = []
        self._current = None
        self._output = None
        self._paths = set()
        if self.progress is not None:
            self.progress.reset()

        input_session = self.backend.open_input(source)
        self.state.transition("input_open")

        try:
            self._open_segment(input_session, 0.0)
            self.state.transition("segment_open")
            self._read_loop(input_session)

            self.state.transition("draining")
            # Frames drained at end of input extend the last segment; no rollover
            for frame_time in input_session.flush(self._output):
                self.clock.advance(frame_time)
            self._close_segment()
            self.state.transition("closed")
        except (SegmenterError, KeyboardInterrupt):
            if self._output is not None:
                self._output.abort()
                self._output = None
            if not self.state.is_closed:
                self.state.transition("closed")
            raise
        finally:
            input_session.close()

        logger.info(
            f"Segmented {source.name} into {len(self._records)} file(s), "
            f"rollovers={self.state.rollovers}"
        )
        return list(self._records)

    def _read_loop(self, input_session: InputSession) -> None:
        total_frames = input_session.total_frames
        frames_done = 0

        for packet in input_session.packets():
            presentation_time = input_session.process_packet(packet, self._output)
            if presentation_time is None:
                continue

            if self.progress is not None and total_frames:
                self.progress.update(frames_done, total_frames)
            frames_done += 1

            self.clock.advance(presentation_time)
            if self.clock.should_roll_over(self.config.segment_duration_s):
                self._roll_over(input_session)

    def _roll_over(self, input_session: InputSession) -> None:
        logger.debug(
            f"Rollover at t={self.clock.current:.3f}s "
            f"(elapsed {self.clock.elapsed:.3f}s > {self.config.segment_duration_s}s)"
        )
        self._close_segment()
        offset_s = self.clock.roll_over()
        self._open_segment(input_session, offset_s)
        self.state.transition("segment_open")

    def _open_segment(self, input_session: InputSession, offset_s: float) -> None:
        tag = format_tag(self._capture_start, offset_s, self.config.tag_format)
        path = build_output_name(
            tag, self._source, self.config.observer_tag, self.config.output_dir
        )
        if path in self._paths:
            raise SegmentNameCollisionError(
                f"Segment {len(self._records)} of {self._source.name} has the same "
                f"tag as an earlier one and would overwrite {path.name}",
                {"path": str(path), "offset_s": offset_s},
            )
        self._paths.add(path)
        self._output = self.backend.open_output(path, input_session)
        self._current = SegmentRecord(
            index=len(self._records),
            tag=tag,
            path=path,
            start_s=offset_s,
            end_s=offset_s,
        )

    def _close_segment(self) -> None:
        output_session = self._output
        output_session.close()
        self._output = None

        record = self._current
        record.end_s = max(record.start_s, self.clock.current)
        record.frames_encoded = output_session.frames_encoded
        record.packets_copied = output_session.packets_copied
        self._records.append(record)
        self._current = None

        if self.metrics is not None:
            self.metrics.record_segment(record)
        logger.info(
            f"Segment {record.index} {record.path.name}: "
            f"{record.start_s:.2f}s-{record.end_s:.2f}s, frames={record.frames_encoded}"
        )
