"""
Timestamp parsing and segment tag formatting.

Exports:
    parse_start_time: Capture start time from a filename
    format_tag: Segment tag for a start time plus offset
    build_output_name: Segment path from a tag and the original path
"""

from capture_segmenter.timestamps.codec import (
    DEFAULT_DATETIME_PATTERN,
    DEFAULT_TAG_FORMAT,
    WINJUPOS_TAG_FORMAT,
    build_output_name,
    format_tag,
    parse_start_time,
    round_to_ten_seconds,
)

__all__ = [
    "DEFAULT_DATETIME_PATTERN",
    "DEFAULT_TAG_FORMAT",
    "WINJUPOS_TAG_FORMAT",
    "build_output_name",
    "format_tag",
    "parse_start_time",
    "round_to_ten_seconds",
]
