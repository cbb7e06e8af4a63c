"""
PyAV (FFmpeg) implementation of the container sessions.

Video streams are decoded and re-encoded with the lossless ``rawvideo``
encoder at the decoder's size, pixel format and time base.
Audio streams are copied packet-for-packet without decoding.

Segments are written to a hidden ``.<name>.partial<ext>`` file next to the
final path and renamed once the trailer is written, so an interrupted
segment never shows up under its final name. All streams of a segment are
shifted by its first timestamp, so the segment starts at zero and the
offset between audio and video is kept.
"""

from __future__ import annotations

import logging
from collections.abc import Iterator
from fractions import Fraction
from pathlib import Path

import av
from av.error import FFmpegError

from capture_segmenter.errors import (
    DecodeError,
    EncodeError,
    HeaderWriteError,
    OpenError,
    ProbeError,
    UnsupportedStreamError,
    WriteError,
)
from capture_segmenter.media.backend import (
    InputSession,
    MediaBackend,
    MediaKind,
    OutputSession,
    StreamInfo,
)

logger = logging.getLogger(__name__)

ENCODER_NAME = "rawvideo"
DEFAULT_FRAME_RATE = Fraction(25)

_KINDS = {
    "video": MediaKind.VIDEO,
    "audio": MediaKind.AUDIO,
}


def partial_path_for(path: Path) -> Path:
    """Hidden in-progress path used while a segment is being written."""
    return path.with_name(f".{path.stem}.partial{path.suffix}")


class PyAVOutputSession(OutputSession):
    """Segment container written through PyAV.

    Attributes:
        path: Final segment path (published on close)
        partial_path: In-progress path written until close
    """

    def __init__(
        self,
        path: Path,
        partial_path: Path,
        container: av.container.OutputContainer,
        encoders: dict[int, av.video.stream.VideoStream],
        passthrough: dict[int, av.stream.Stream],
        time_bases: dict[int, Fraction],
    ) -> None:
        super().__init__(path)
        self.partial_path = partial_path
        self._container = container
        self._encoders = encoders
        self._passthrough = passthrough
        self._time_bases = time_bases
        # Time (s) of the first timestamp written; every stream is shifted by it
        self._origin: Fraction | None = None
        self._flushed = False
        self._closed = False

    def _rebase(self, stream_index: int, timestamp: int) -> int:
        time_base = self._time_bases[stream_index]
        if self._origin is None:
            self._origin = timestamp * time_base
        return timestamp - round(self._origin / time_base)

    def encode_frame(self, stream_index: int, frame: av.VideoFrame) -> None:
        """Encode a decoded frame and mux the resulting packets."""
        stream = self._encoders[stream_index]
        if frame.pts is not None:
            frame.pts = self._rebase(stream_index, frame.pts)
        try:
            packets = stream.encode(frame)
        except FFmpegError as e:
            raise EncodeError(
                f"Failed to encode frame: {e}",
                {"path": str(self.path), "stream_index": stream_index},
            ) from e
        self._mux(packets, stream_index)
        self.frames_encoded += 1

    def copy_packet(self, stream_index: int, packet: av.Packet) -> None:
        """Mux a demuxed packet into the matching output stream.

        The payload is untouched; only its timestamps are rebased.
        """
        reference = packet.dts if packet.dts is not None else packet.pts
        if reference is not None:
            shift = reference - self._rebase(stream_index, reference)
            if packet.pts is not None:
                packet.pts -= shift
            if packet.dts is not None:
                packet.dts -= shift
        packet.stream = self._passthrough[stream_index]
        self._mux([packet], stream_index)
        self.packets_copied += 1

    def _mux(self, packets: list[av.Packet], stream_index: int) -> None:
        try:
            self._container.mux(packets)
        except FFmpegError as e:
            raise WriteError(
                f"Failed to write packet: {e}",
                {"path": str(self.path), "stream_index": stream_index},
            ) from e

    def flush(self) -> None:
        if self._flushed:
            return
        for stream_index, stream in self._encoders.items():
            try:
                packets = stream.encode(None)
            except FFmpegError as e:
                raise EncodeError(
                    f"Failed to flush encoder: {e}",
                    {"path": str(self.path), "stream_index": stream_index},
                ) from e
            self._mux(packets, stream_index)
        self._flushed = True

    def close(self) -> None:
        if self._closed:
            return

        self.flush()
        try:
            self._container.close()
        except FFmpegError as e:
            raise WriteError(
                f"Failed to write trailer: {e}",
                {"path": str(self.path)},
            ) from e

        self._closed = True
        try:
            self.partial_path.replace(self.path)
        except OSError as e:
            self.partial_path.unlink(missing_ok=True)
            raise WriteError(
                f"Failed to publish segment {self.path.name}: {e}",
                {"path": str(self.path), "partial_path": str(self.partial_path)},
            ) from e
        logger.info(
            f"Closed output file {self.path.name}: "
            f"frames={self.frames_encoded}, copied_packets={self.packets_copied}"
        )

    def abort(self) -> None:
        if self._closed:
            return
        self._closed = True
        try:
            self._container.close()
        except FFmpegError as e:
            logger.warning(f"Error while closing aborted segment {self.partial_path}: {e}")
        self.partial_path.unlink(missing_ok=True)
        logger.warning(f"Discarded unfinished segment {self.path.name}")


class PyAVInputSession(InputSession):
    """Source container read sequentially through PyAV."""

    def __init__(
        self,
        path: Path,
        container: av.container.InputContainer,
        streams: dict[int, StreamInfo],
    ) -> None:
        super().__init__(path, streams)
        self._container = container
        self._decoders = {
            info.index: container.streams[info.index].codec_context
            for info in self.video_streams
        }
        # Decoded frames per stream, used when a frame carries no timestamp
        self._frame_index = {index: 0 for index in self._decoders}
        self._closed = False

    def av_stream(self, index: int) -> av.stream.Stream:
        """PyAV stream object for ``index`` (used as passthrough template)."""
        return self._container.streams[index]

    def packets(self) -> Iterator[av.Packet]:
        selected = [self._container.streams[index] for index in self.streams]
        try:
            for packet in self._container.demux(selected):
                # Empty packets are demuxer flush sentinels
                if packet.size == 0:
                    continue
                info = self.streams[packet.stream.index]
                if info.kind is MediaKind.AUDIO and packet.dts is None:
                    logger.debug(f"Skipping audio packet without dts in stream {info.index}")
                    continue
                yield packet
        except FFmpegError as e:
            raise DecodeError(
                f"Failed to read packet: {e}",
                {"path": str(self.path)},
            ) from e

    def _presentation_time(self, info: StreamInfo, frame: av.VideoFrame) -> float | None:
        index = self._frame_index[info.index]
        self._frame_index[info.index] = index + 1
        if frame.pts is not None:
            return info.to_seconds(frame.pts)
        if not info.average_rate:
            return None
        # No timestamp from the decoder: derive one from the frame rate
        presentation_time = index / info.average_rate
        frame.pts = round(presentation_time / info.time_base)
        return float(presentation_time)

    def process_packet(self, packet: av.Packet, output: PyAVOutputSession) -> float | None:
        info = self.streams[packet.stream.index]
        if info.kind is not MediaKind.VIDEO:
            output.copy_packet(info.index, packet)
            return None

        try:
            frames = self._decoders[info.index].decode(packet)
        except FFmpegError as e:
            raise DecodeError(
                f"Failed to decode packet: {e}",
                {"path": str(self.path), "stream_index": info.index},
            ) from e

        presentation_time = None
        for frame in frames:
            frame_time = self._presentation_time(info, frame)
            if frame_time is not None:
                presentation_time = frame_time
            output.encode_frame(info.index, frame)
        return presentation_time

    def flush(self, output: PyAVOutputSession) -> list[float]:
        drained: list[float] = []
        for stream_index, decoder in self._decoders.items():
            try:
                frames = decoder.decode(None)
            except FFmpegError as e:
                raise DecodeError(
                    f"Failed to flush decoder: {e}",
                    {"path": str(self.path), "stream_index": stream_index},
                ) from e
            info = self.streams[stream_index]
            for frame in frames:
                frame_time = self._presentation_time(info, frame)
                if frame_time is not None:
                    drained.append(frame_time)
                output.encode_frame(stream_index, frame)
        output.flush()
        if drained:
            logger.debug(f"Drained {len(drained)} buffered frames from {self.path.name}")
        return drained

    def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        self._container.close()


class PyAVBackend(MediaBackend):
    """Container sessions backed by PyAV.

    Attributes:
        ignore_unsupported_streams: Drop streams that are neither video nor
            audio instead of raising UnsupportedStreamError
    """

    def __init__(self, ignore_unsupported_streams: bool = False) -> None:
        self.ignore_unsupported_streams = ignore_unsupported_streams

    def open_input(self, path: Path) -> PyAVInputSession:
        try:
            container = av.open(str(path), mode="r")
        except FFmpegError as e:
            raise OpenError(f"Failed to open input {path}: {e}", {"path": str(path)}) from e

        try:
            streams = self._probe(path, container)
        except Exception:
            container.close()
            raise

        session = PyAVInputSession(path, container, streams)
        for info in session.video_streams:
            logger.info(
                f"Opened input file {path.name}: "
                f"size={info.width}x{info.height}, frames={info.frame_count}, "
                f"pix_fmt={info.pix_fmt}, time_base={info.time_base}"
            )
        return session

    def _probe(self, path: Path, container: av.container.InputContainer) -> dict[int, StreamInfo]:
        streams: dict[int, StreamInfo] = {}
        for stream in container.streams:
            kind = _KINDS.get(stream.type, MediaKind.OTHER)
            if kind is MediaKind.OTHER:
                if not self.ignore_unsupported_streams:
                    raise UnsupportedStreamError(
                        f"Don't know what to do with stream {stream.index} "
                        f"({stream.type}) in {path.name}",
                        {"path": str(path), "stream_index": stream.index, "type": stream.type},
                    )
                logger.warning(f"Ignoring {stream.type} stream {stream.index} in {path.name}")
                continue

            if stream.time_base is None:
                raise ProbeError(
                    f"Stream {stream.index} in {path.name} has no time base",
                    {"path": str(path), "stream_index": stream.index},
                )

            codec = stream.codec_context
            if kind is MediaKind.VIDEO:
                streams[stream.index] = StreamInfo(
                    index=stream.index,
                    kind=kind,
                    time_base=Fraction(stream.time_base),
                    codec_name=codec.name,
                    frame_count=stream.frames,
                    width=codec.width,
                    height=codec.height,
                    pix_fmt=codec.pix_fmt,
                    average_rate=stream.average_rate,
                )
            else:
                streams[stream.index] = StreamInfo(
                    index=stream.index,
                    kind=kind,
                    time_base=Fraction(stream.time_base),
                    codec_name=codec.name if codec is not None else "",
                    frame_count=stream.frames,
                )

        if not any(info.kind is MediaKind.VIDEO for info in streams.values()):
            raise ProbeError(f"No video stream found in {path.name}", {"path": str(path)})
        return streams

    def open_output(self, path: Path, input_session: PyAVInputSession) -> PyAVOutputSession:
        partial_path = partial_path_for(path)
        if path.exists():
            logger.warning(f"Overwriting existing segment {path}")

        try:
            container = av.open(str(partial_path), mode="w")
        except FFmpegError as e:
            raise OpenError(f"Failed to open output {path}: {e}", {"path": str(path)}) from e

        encoders: dict[int, av.video.stream.VideoStream] = {}
        passthrough: dict[int, av.stream.Stream] = {}
        try:
            for info in input_session.video_streams:
                rate = info.average_rate or DEFAULT_FRAME_RATE
                stream = container.add_stream(ENCODER_NAME, rate=rate)
                stream.width = info.width
                stream.height = info.height
                if info.pix_fmt:
                    stream.pix_fmt = info.pix_fmt
                # Frames keep the decoder's timestamps
                stream.codec_context.time_base = info.time_base
                encoders[info.index] = stream

            for info in input_session.passthrough_streams:
                template = input_session.av_stream(info.index)
                passthrough[info.index] = container.add_stream_from_template(template)
        except (FFmpegError, ValueError) as e:
            _discard(container, partial_path)
            raise OpenError(
                f"Failed to configure output streams for {path}: {e}",
                {"path": str(path)},
            ) from e

        try:
            container.start_encoding()
        except FFmpegError as e:
            _discard(container, partial_path)
            raise HeaderWriteError(
                f"Failed to write header for {path}: {e}",
                {"path": str(path)},
            ) from e

        logger.info(f"Opened output file {path.name}")
        time_bases = {index: info.time_base for index, info in input_session.streams.items()}
        return PyAVOutputSession(
            path, partial_path, container, encoders, passthrough, time_bases
        )


def _discard(container: av.container.OutputContainer, partial_path: Path) -> None:
    try:
        container.close()
    except FFmpegError as e:
        logger.debug(f"Ignoring close error on discarded output {partial_path}: {e}")
    partial_path.unlink(missing_ok=True)
