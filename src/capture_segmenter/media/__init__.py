"""
Container sessions for reading captures and writing segments.

Exports:
    MediaBackend: Session factory interface
    InputSession / OutputSession: Session interfaces
    StreamInfo / MediaKind: Stream descriptions

The PyAV implementation lives in capture_segmenter.media.pyav_backend.
"""

from capture_segmenter.media.backend import (
    InputSession,
    MediaBackend,
    MediaKind,
    OutputSession,
    StreamInfo,
)

__all__ = [
    "InputSession",
    "MediaBackend",
    "MediaKind",
    "OutputSession",
    "StreamInfo",
]
