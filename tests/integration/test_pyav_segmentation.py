"""
Integration tests for segmentation through PyAV.

Synthetic captures are generated with the mpeg4 encoder into AVI files and
segmented with the real backend; the resulting segments are decoded again
to check frame counts, codec and audio passthrough.
"""

from __future__ import annotations

from pathlib import Path

import av
import numpy as np
import pytest

from capture_segmenter.errors import OpenError
from capture_segmenter.media.pyav_backend import PyAVBackend
from capture_segmenter.runner import SegmentationRunner

pytestmark = pytest.mark.integration

FPS = 8
WIDTH = 64
HEIGHT = 48
SAMPLE_RATE = 8000
# Segment starts land on distinct ten-second tags
CAPTURE_S = 40
SEGMENT_S = 10


def write_capture(path: Path, duration_s: int, with_audio: bool = False) -> None:
    """Write an mpeg4 AVI with a brightness ramp and optional silent PCM audio."""
    container = av.open(str(path), mode="w")
    video = container.add_stream("mpeg4", rate=FPS)
    video.width = WIDTH
    video.height = HEIGHT
    video.pix_fmt = "yuv420p"

    audio = None
    if with_audio:
        audio = container.add_stream("pcm_s16le", rate=SAMPLE_RATE)
        audio.codec_context.layout = "mono"

    samples_per_frame = SAMPLE_RATE // FPS
    for i in range(duration_s * FPS):
        image = np.full((HEIGHT, WIDTH, 3), (i * 3) % 256, dtype=np.uint8)
        frame = av.VideoFrame.from_ndarray(image, format="rgb24")
        frame.pts = i
        container.mux(video.encode(frame))

        if audio is not None:
            samples = np.zeros((1, samples_per_frame), dtype=np.int16)
            chunk = av.AudioFrame.from_ndarray(samples, format="s16", layout="mono")
            chunk.sample_rate = SAMPLE_RATE
            chunk.pts = i * samples_per_frame
            container.mux(audio.encode(chunk))

    container.mux(video.encode(None))
    if audio is not None:
        container.mux(audio.encode(None))
    container.close()


def decoded_frames(path: Path) -> int:
    with av.open(str(path)) as container:
        return sum(1 for _ in container.decode(video=0))


def audio_bytes(path: Path) -> int:
    with av.open(str(path)) as container:
        if not container.streams.audio:
            return 0
        return sum(
            packet.size for packet in container.demux(audio=0) if packet.size
        )


@pytest.fixture
def capture(capture_dir: Path) -> Path:
    path = capture_dir / "Jupiter_20230115_223045.avi"
    write_capture(path, duration_s=CAPTURE_S)
    return path


class TestPyAVSegmentation:
    """Round trips through the PyAV backend."""

    def test_segments_are_rawvideo_and_complete(self, make_config, capture) -> None:
        runner = SegmentationRunner(make_config(segment_duration_s=SEGMENT_S))

        result = runner.run([capture])

        records = result.segments[capture]
        assert len(records) == 4
        assert [r.tag for r in records] == [
            "01-15-2230_5",
            "01-15-2231_0",
            "01-15-2231_1",
            "01-15-2231_2",
        ]
        assert sum(r.frames_encoded for r in records) == CAPTURE_S * FPS
        assert sum(decoded_frames(r.path) for r in records) == CAPTURE_S * FPS
        for record in records:
            with av.open(str(record.path)) as container:
                stream = container.streams.video[0]
                assert stream.codec_context.name == "rawvideo"
                assert (stream.codec_context.width, stream.codec_context.height) == (
                    WIDTH,
                    HEIGHT,
                )

    def test_segment_names(self, make_config, capture) -> None:
        runner = SegmentationRunner(make_config(segment_duration_s=60, observer_tag="Obs"))

        result = runner.run([capture])

        (record,) = result.segments[capture]
        assert record.path.name == "01-15-2230_5-Obs-Jupiter_20230115_223045.avi"
        assert record.path.exists()

    def test_no_partial_files_left(self, make_config, capture, capture_dir) -> None:
        SegmentationRunner(make_config(segment_duration_s=SEGMENT_S)).run([capture])

        assert list(capture_dir.glob(".*.partial*")) == []

    def test_audio_is_passed_through(self, make_config, capture_dir) -> None:
        path = capture_dir / "Saturn_20230115_231500.avi"
        write_capture(path, duration_s=CAPTURE_S, with_audio=True)
        runner = SegmentationRunner(make_config(segment_duration_s=SEGMENT_S))

        result = runner.run([path])

        records = result.segments[path]
        assert len(records) == 4
        assert sum(r.packets_copied for r in records) > 0
        assert sum(audio_bytes(r.path) for r in records) == audio_bytes(path)
        assert sum(decoded_frames(r.path) for r in records) == CAPTURE_S * FPS


class TestPyAVErrors:
    """Failures surface as segmenter errors."""

    def test_not_a_video(self, capture_dir) -> None:
        path = capture_dir / "Jupiter_20230115_223045.avi"
        path.write_bytes(b"this is not a container")

        with pytest.raises(OpenError, match="Failed to open input"):
            PyAVBackend().open_input(path)

    def test_missing_input(self, capture_dir) -> None:
        with pytest.raises(OpenError):
            PyAVBackend().open_input(capture_dir / "Jupiter_20230115_223045.avi")
