"""
Segment data models.

A capture is split into segments whose boundaries are decided by the
presentation time of decoded video frames:
- SegmentClock: per-file rollover timing
- SegmentRecord: metadata of one emitted segment file
"""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path


@dataclass
class SegmentClock:
    """Presentation-time bookkeeping for one input file.

    Attributes:
        elapsed_start: Presentation time (s) of the last rollover, 0 for the
            first segment.
        current: Presentation time (s) of the most recently decoded frame.

    Invariants:
        - current is non-decreasing for well-formed input
        - current - elapsed_start is compared against the segment duration
    """

    elapsed_start: float = 0.0
    current: float = 0.0

    def advance(self, presentation_time: float) -> None:
        """Record the presentation time of a decoded frame."""
        self.current = presentation_time

    @property
    def elapsed(self) -> float:
        """Seconds since the last rollover."""
        return self.current - self.elapsed_start

    def should_roll_over(self, segment_duration_s: float) -> bool:
        """True once the current segment exceeds ``segment_duration_s``."""
        return self.elapsed > segment_duration_s

    def roll_over(self) -> float:
        """Start a new segment at the current time and return its offset."""
        self.elapsed_start = self.current
        return self.elapsed_start

    def reset(self) -> None:
        """Reset to the start of a new file."""
        self.elapsed_start = 0.0
        self.current = 0.0


@dataclass
class SegmentRecord:
    """Metadata of one finalized segment file.

    Attributes:
        index: Sequential segment number within the input (0-indexed).
        tag: Timestamp tag used in the filename.
        path: Final path of the segment file.
        start_s: Presentation time (s) at which the segment was opened.
        end_s: Presentation time (s) of the last frame written to it.
        frames_encoded: Video frames written.
        packets_copied: Passthrough packets written.
    """

    index: int
    tag: str
    path: Path
    start_s: float
    end_s: float = 0.0
    frames_encoded: int = 0
    packets_copied: int = 0

    @property
    def duration_s(self) -> float:
        """Span of presentation time covered by the segment."""
        return max(0.0, self.end_s - self.start_s)

    @property
    def exists(self) -> bool:
        """Check if segment file exists on disk."""
        return self.path.exists()
