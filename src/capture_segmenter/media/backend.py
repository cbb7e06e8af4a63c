"""
Container session interface consumed by the segment controller.

The controller only talks to these abstract sessions, so the container
and codec runtime (PyAV in production, in-memory fakes in tests) can be
swapped without touching the segmentation logic.

Lifecycle:
- InputSession: open_input -> packets()/process_packet() -> flush() -> close()
- OutputSession: open_output -> (frames/packets muxed) -> close() or abort()
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from collections.abc import Iterator
from dataclasses import dataclass
from enum import Enum
from fractions import Fraction
from pathlib import Path
from typing import Any


class MediaKind(str, Enum):
    """Classification of an elementary stream."""

    VIDEO = "video"  # Decoded and re-encoded
    AUDIO = "audio"  # Stream copy
    OTHER = "other"  # Unsupported


@dataclass(frozen=True)
class StreamInfo:
    """Description of one elementary stream of an input container.

    Attributes:
        index: Stream index within the container.
        kind: Media kind of the stream.
        time_base: Seconds per timestamp tick.
        codec_name: Codec of the stream (e.g. "rawvideo", "pcm_s16le").
        frame_count: Frames reported by the container (0 if unknown).
        width: Video width in pixels (video only).
        height: Video height in pixels (video only).
        pix_fmt: Decoder pixel format (video only).
        average_rate: Average frame rate (video only).
    """

    index: int
    kind: MediaKind
    time_base: Fraction
    codec_name: str = ""
    frame_count: int = 0
    width: int = 0
    height: int = 0
    pix_fmt: str | None = None
    average_rate: Fraction | None = None

    def to_seconds(self, timestamp: int) -> float:
        """Convert a raw timestamp of this stream to seconds."""
        return float(timestamp * self.time_base)


class OutputSession(ABC):
    """One open destination container (one segment).

    Attributes:
        path: Final path of the segment file.
        frames_encoded: Video frames encoded and muxed so far.
        packets_copied: Passthrough packets muxed so far.
    """

    def __init__(self, path: Path) -> None:
        self.path = path
        self.frames_encoded = 0
        self.packets_copied = 0

    @abstractmethod
    def flush(self) -> None:
        """Drain packets buffered in the encoders into the container."""

    @abstractmethod
    def close(self) -> None:
        """Flush encoders, write the trailer and publish the file.

        Must produce a valid container even if nothing was written.
        """

    @abstractmethod
    def abort(self) -> None:
        """Release resources and remove the unfinished file."""


class InputSession(ABC):
    """One open source container.

    Attributes:
        path: Path of the source container.
        streams: Stream descriptions keyed by stream index.
    """

    def __init__(self, path: Path, streams: dict[int, StreamInfo]) -> None:
        self.path = path
        self.streams = streams

    @property
    def video_streams(self) -> list[StreamInfo]:
        return [s for s in self.streams.values() if s.kind is MediaKind.VIDEO]

    @property
    def passthrough_streams(self) -> list[StreamInfo]:
        return [s for s in self.streams.values() if s.kind is MediaKind.AUDIO]

    @property
    def total_frames(self) -> int:
        """Frames in the first video stream, 0 if the container does not say."""
        video = self.video_streams
        return video[0].frame_count if video else 0

    @abstractmethod
    def packets(self) -> Iterator[Any]:
        """Yield demuxed packets in container order until end of stream."""

    @abstractmethod
    def process_packet(self, packet: Any, output: OutputSession) -> float | None:
        """Decode+encode (video) or copy (audio) one packet into ``output``.

        Returns:
            Presentation time (s) of the last decoded frame, or None when
            the packet produced no frame or was copied.
        """

    @abstractmethod
    def flush(self, output: OutputSession) -> list[float]:
        """Drain buffered decoder frames and encoder packets into ``output``.

        Returns:
            Presentation times (s) of the frames drained from the decoders
        """

    @abstractmethod
    def close(self) -> None:
        """Release the container and its decoders."""


class MediaBackend(ABC):
    """Factory for container sessions."""

    @abstractmethod
    def open_input(self, path: Path) -> InputSession:
        """Open and probe a source container.

        Raises:
            OpenError: If the file cannot be opened
            ProbeError: If no usable video stream is found
            UnsupportedStreamError: If a stream is neither video nor audio
        """

    @abstractmethod
    def open_output(self, path: Path, input_session: InputSession) -> OutputSession:
        """Create a segment container mirroring ``input_session``'s streams.

        Raises:
            OpenError: If the file cannot be created
            HeaderWriteError: If the container header cannot be written
        """
