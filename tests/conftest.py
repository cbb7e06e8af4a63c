"""
Pytest fixtures for capture segmenter tests.

Includes fixtures for:
- In-memory media backend (fake input/output sessions)
- Synthetic packet timelines (video + optional audio)
- Segmenter configuration
"""

from __future__ import annotations

import os
from collections.abc import Callable, Iterator
from dataclasses import dataclass
from datetime import datetime, timezone
from fractions import Fraction
from pathlib import Path

import pytest

from capture_segmenter.config.segmenter_config import SegmenterConfig
from capture_segmenter.errors import DecodeError, OpenError, WriteError
from capture_segmenter.media.backend import (
    InputSession,
    MediaBackend,
    MediaKind,
    OutputSession,
    StreamInfo,
)

VIDEO_INDEX = 0
AUDIO_INDEX = 1

# =============================================================================
# Fake media backend
# =============================================================================


@dataclass(frozen=True)
class FakePacket:
    """Demuxed packet of the fake backend."""

    stream_index: int
    pts_s: float
    payload: bytes = b""


class FakeOutputSession(OutputSession):
    """Records frames and packets instead of writing a container."""

    def __init__(self, path: Path, backend: FakeBackend) -> None:
        super().__init__(path)
        self.frames: list[float] = []
        self.packets: list[FakePacket] = []
        self.flushed = False
        self.closed = False
        self.aborted = False
        self._backend = backend

    def write_frame(self, presentation_time: float) -> None:
        self.frames.append(presentation_time)
        self.frames_encoded += 1

    def copy(self, packet: FakePacket) -> None:
        self.packets.append(packet)
        self.packets_copied += 1

    def flush(self) -> None:
        self.flushed = True

    def close(self) -> None:
        if self.closed:
            return
        if self._backend.fail_close_at == self._backend.outputs.index(self):
            raise WriteError(f"Disk full while closing {self.path.name}")
        self.flush()
        self.closed = True
        if self.path.parent.exists():
            self.path.write_bytes(b"segment")
        self._backend.events.append(("close_output", self.path.name))
        self._backend.open_outputs -= 1

    def abort(self) -> None:
        if self.closed or self.aborted:
            return
        self.aborted = True
        self._backend.events.append(("abort_output", self.path.name))
        self._backend.open_outputs -= 1


class FakeInputSession(InputSession):
    """Plays back a list of packets; video packets decode after ``decoder_delay``."""

    def __init__(
        self,
        path: Path,
        packets: list[FakePacket],
        streams: dict[int, StreamInfo],
        backend: FakeBackend,
        decoder_delay: int = 0,
        fail_at: int | None = None,
    ) -> None:
        super().__init__(path, streams)
        self.closed = False
        self._packets = packets
        self._backend = backend
        self._decoder_delay = decoder_delay
        self._fail_at = fail_at
        self._pending: list[float] = []

    def packets(self) -> Iterator[FakePacket]:
        for position, packet in enumerate(self._packets):
            if position == self._fail_at:
                raise DecodeError(f"Corrupt packet {position} in {self.path.name}")
            yield packet

    def process_packet(self, packet: FakePacket, output: FakeOutputSession) -> float | None:
        info = self.streams[packet.stream_index]
        if info.kind is not MediaKind.VIDEO:
            output.copy(packet)
            return None

        self._pending.append(packet.pts_s)
        if len(self._pending) <= self._decoder_delay:
            return None
        frame_time = self._pending.pop(0)
        output.write_frame(frame_time)
        return frame_time

    def flush(self, output: FakeOutputSession) -> list[float]:
        drained = list(self._pending)
        self._pending.clear()
        for frame_time in drained:
            output.write_frame(frame_time)
        output.flush()
        return drained

    def close(self) -> None:
        self.closed = True
        self._backend.events.append(("close_input", self.path.name))


class FakeBackend(MediaBackend):
    """In-memory media backend.

    Attributes:
        events: Ordered log of open/close/abort calls
        inputs: Input sessions opened
        outputs: Output sessions opened
        open_outputs: Output sessions currently open
        max_open_outputs: Highest number of simultaneously open outputs
    """

    def __init__(
        self,
        timelines: dict[str, list[FakePacket]] | None = None,
        decoder_delay: int = 0,
        fail_packet_at: int | None = None,
        fail_output_at: int | None = None,
        fail_close_at: int | None = None,
        fps: int = 8,
    ) -> None:
        self.timelines = timelines or {}
        self.decoder_delay = decoder_delay
        self.fail_packet_at = fail_packet_at
        self.fail_output_at = fail_output_at
        self.fail_close_at = fail_close_at
        self.fps = fps
        self.events: list[tuple[str, str]] = []
        self.inputs: list[FakeInputSession] = []
        self.outputs: list[FakeOutputSession] = []
        self.open_outputs = 0
        self.max_open_outputs = 0

    def open_input(self, path: Path) -> FakeInputSession:
        if path.name not in self.timelines:
            raise OpenError(f"Failed to open input {path}: No such file or directory")
        packets = self.timelines[path.name]
        video_frames = sum(1 for p in packets if p.stream_index == VIDEO_INDEX)
        streams = {
            VIDEO_INDEX: StreamInfo(
                index=VIDEO_INDEX,
                kind=MediaKind.VIDEO,
                time_base=Fraction(1, self.fps),
                codec_name="rawvideo",
                frame_count=video_frames,
                width=640,
                height=480,
                pix_fmt="gray",
                average_rate=Fraction(self.fps),
            ),
        }
        if any(p.stream_index == AUDIO_INDEX for p in packets):
            streams[AUDIO_INDEX] = StreamInfo(
                index=AUDIO_INDEX,
                kind=MediaKind.AUDIO,
                time_base=Fraction(1, 1000),
                codec_name="pcm_s16le",
            )
        session = FakeInputSession(
            path,
            packets,
            streams,
            self,
            decoder_delay=self.decoder_delay,
            fail_at=self.fail_packet_at,
        )
        self.inputs.append(session)
        self.events.append(("open_input", path.name))
        return session

    def open_output(self, path: Path, input_session: InputSession) -> FakeOutputSession:
        if self.fail_output_at == len(self.outputs):
            raise OpenError(f"Failed to open output {path}: Permission denied")
        session = FakeOutputSession(path, self)
        self.outputs.append(session)
        self.events.append(("open_output", path.name))
        self.open_outputs += 1
        self.max_open_outputs = max(self.max_open_outputs, self.open_outputs)
        return session


def make_timeline(
    duration_s: float,
    fps: int = 8,
    audio_interval_s: float | None = None,
) -> list[FakePacket]:
    """Video packets at ``i / fps`` interleaved with audio packets by time."""
    frames = int(round(duration_s * fps))
    packets = [FakePacket(VIDEO_INDEX, i / fps, f"v{i}".encode()) for i in range(frames)]
    if audio_interval_s:
        count = int(duration_s / audio_interval_s)
        packets += [
            FakePacket(AUDIO_INDEX, i * audio_interval_s, f"a{i}".encode()) for i in range(count)
        ]
    # Stable sort keeps video ahead of audio at equal times
    return sorted(packets, key=lambda p: (p.pts_s, p.stream_index))


# =============================================================================
# Fixtures
# =============================================================================


@pytest.fixture
def capture_dir(tmp_path: Path) -> Path:
    """Directory holding the (fake) captures and their segments."""
    capture_dir = tmp_path / "captures"
    capture_dir.mkdir(parents=True)
    return capture_dir


@pytest.fixture
def capture_start() -> datetime:
    """Capture start of FireCapture_20230115_223045.avi (UTC)."""
    return datetime(2023, 1, 15, 22, 30, 45, tzinfo=timezone.utc)


@pytest.fixture
def make_config(monkeypatch: pytest.MonkeyPatch) -> Callable[..., SegmenterConfig]:
    """Factory for configs isolated from SEGMENTER_* variables of the host."""
    for name in list(os.environ):
        if name.upper().startswith("SEGMENTER_"):
            monkeypatch.delenv(name)

    def _make(**overrides) -> SegmenterConfig:
        values = {"segment_duration_s": 30.0, "show_progress": False}
        values.update(overrides)
        return SegmenterConfig(**values)

    return _make
