"""
Segmentation configuration from environment variables and CLI flags.

- Environment variables use the SEGMENTER_ prefix
- CLI flags are passed as init values and take precedence
- Validation via Pydantic Field constraints
"""

from __future__ import annotations

from pathlib import Path

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings

from capture_segmenter.timestamps.codec import DEFAULT_DATETIME_PATTERN, DEFAULT_TAG_FORMAT


class SegmenterConfig(BaseSettings):
    """Segmentation configuration.

    Attributes:
        segment_duration_s: Maximum presentation time per output segment.
        dtformat: strptime pattern of the timestamp embedded in input names.
            Default matches FireCapture (YYYYmmdd_HHMMSS).
        use_utc: Interpret the embedded timestamp as UTC (True) or local time.
        observer_tag: Short station identifier placed after the segment tag.
        tag_format: strftime format of the segment tag; must end in %S,
            whose ones digit is rounded away.
        output_dir: Directory for segments. Default is the input's directory.
        continue_on_error: Skip to the next input after a per-file failure
            instead of aborting the run.
        ignore_unsupported_streams: Drop packets of streams that are neither
            video nor audio instead of failing.
        show_progress: Render the per-file percentage line.
        metrics_file: Prometheus textfile written after the batch.
    """

    segment_duration_s: float = Field(
        ...,
        gt=0.0,
        description="Maximum segment duration in seconds",
    )
    dtformat: str = Field(
        default=DEFAULT_DATETIME_PATTERN,
        min_length=2,
        description="strptime pattern of the timestamp in input filenames",
    )
    use_utc: bool = Field(
        default=True,
        description="Interpret filename timestamps as UTC instead of local time",
    )
    observer_tag: str = Field(
        default="",
        max_length=32,
        description="Station identifier inserted after the segment tag",
    )
    tag_format: str = Field(
        default=DEFAULT_TAG_FORMAT,
        description="strftime format of the segment tag (must end with %S)",
    )
    output_dir: Path | None = Field(
        default=None,
        description="Directory for segment files (default: next to the input)",
    )
    continue_on_error: bool = Field(
        default=False,
        description="Continue with the next input after a per-file failure",
    )
    ignore_unsupported_streams: bool = Field(
        default=False,
        description="Drop streams that are neither video nor audio",
    )
    show_progress: bool = Field(
        default=True,
        description="Render per-file progress percentage",
    )
    metrics_file: Path | None = Field(
        default=None,
        description="Prometheus textfile to write after the batch",
    )

    model_config = {
        "env_prefix": "SEGMENTER_",
        "case_sensitive": False,
    }

    @field_validator("dtformat")
    @classmethod
    def _dtformat_has_directive(cls, value: str) -> str:
        if "%" not in value:
            raise ValueError(f"dtformat must contain strptime directives - got '{value}'")
        return value

    @field_validator("tag_format")
    @classmethod
    def _tag_format_ends_in_seconds(cls, value: str) -> str:
        if not value.endswith("%S"):
            raise ValueError(f"tag_format must end with %S - got '{value}'")
        return value

    @field_validator("observer_tag")
    @classmethod
    def _observer_tag_is_filename_safe(cls, value: str) -> str:
        if "/" in value or "\\" in value:
            raise ValueError(f"observer_tag cannot contain path separators - got '{value}'")
        return value
