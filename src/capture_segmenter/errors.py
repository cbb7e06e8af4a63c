"""
Error taxonomy for capture segmentation.

Every failure raised while segmenting a capture derives from
SegmenterError so the runner and CLI can treat them uniformly:
- DateParseError: filename lacks a usable timestamp
- OpenError / ProbeError: container cannot be opened or introspected
- HeaderWriteError: output header could not be written
- DecodeError / EncodeError / WriteError: per-packet codec or I/O failures
- UnsupportedStreamError: a stream that is neither video nor audio
"""

from __future__ import annotations

from typing import Any


class SegmenterError(Exception):
    """Base class for segmentation failures."""

    def __init__(self, message: str, details: dict[str, Any] | None = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}


class DateParseError(SegmenterError):
    """Raised when no capture start time can be parsed from a filename."""


class OpenError(SegmenterError):
    """Raised when a container cannot be opened for reading or writing."""


class ProbeError(SegmenterError):
    """Raised when a container's streams cannot be introspected."""


class HeaderWriteError(SegmenterError):
    """Raised when an output container header cannot be written."""


class DecodeError(SegmenterError):
    """Raised when demuxing or decoding a packet fails."""


class EncodeError(SegmenterError):
    """Raised when encoding a frame fails."""


class WriteError(SegmenterError):
    """Raised when muxing a packet or finalizing a container fails."""


class UnsupportedStreamError(SegmenterError):
    """Raised for a stream kind other than video or audio."""


class SegmentNameCollisionError(SegmenterError):
    """Raised when two segments of one input map to the same output path."""
