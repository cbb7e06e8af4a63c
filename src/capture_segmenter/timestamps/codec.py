"""
Timestamp codec for capture filenames and segment tags.

Parses the capture start time embedded in a filename (FireCapture style
``Jupiter_20230115_223045.avi`` by default) and encodes segment start
times into the tag format expected by derotation tools, where seconds
are only resolved to the nearest ten.

Rounding is done on the datetime value and formatted once, so a rounded
``:55`` carries into the next minute, hour, day and month.
"""

from __future__ import annotations

import re
from datetime import datetime, timedelta, timezone
from pathlib import Path

from capture_segmenter.errors import DateParseError

DEFAULT_DATETIME_PATTERN = "%Y%m%d_%H%M%S"
DEFAULT_TAG_FORMAT = "%m-%d-%H%M_%S"
WINJUPOS_TAG_FORMAT = "%Y-%m-%d-%H%M_%S"

_DEFAULT_SEPARATORS = "-_"
_LEADING_TIMESTAMP = re.compile(r"^[0-9_-]+")
_DIRECTIVE = re.compile(r"%.")


def _candidate_runs(name: str, pattern: str) -> list[str]:
    """Maximal digit runs in ``name``, joined by separators the pattern uses."""
    literals = set(_DIRECTIVE.sub("", pattern)) | set(_DEFAULT_SEPARATORS)
    literals.discard("%")
    joiners = "".join(sorted(literals))
    run = re.compile(rf"[0-9](?:[0-9{re.escape(joiners)}]*[0-9])?")
    return run.findall(name)


def parse_start_time(
    filename: str | Path,
    pattern: str = DEFAULT_DATETIME_PATTERN,
    use_utc: bool = True,
) -> datetime:
    """Extract the capture start time from a filename.

    Only the basename is inspected. Each candidate run (digits joined by
    ``-``, ``_`` or any literal character of ``pattern``) is matched in
    order against ``pattern``; the first run that matches completely wins.

    Args:
        filename: Capture path or name
        pattern: strptime pattern for the embedded timestamp
        use_utc: Interpret the wall-clock time as UTC (True) or as the
            local timezone (False)

    Returns:
        Timezone-aware datetime of the capture start

    Raises:
        DateParseError: If no run fully matches ``pattern``
    """
    name = Path(filename).name
    runs = _candidate_runs(name, pattern)
    if not runs:
        raise DateParseError(
            f"Failed to extract datetime from {name}: no digits in filename",
            {"filename": str(filename), "pattern": pattern},
        )

    for run in runs:
        try:
            parsed = datetime.strptime(run, pattern)
        except ValueError:
            continue
        if use_utc:
            return parsed.replace(tzinfo=timezone.utc)
        # Naive datetimes are interpreted in the local timezone
        return parsed.astimezone()

    raise DateParseError(
        f"Failed to extract datetime from {name} with format {pattern}",
        {"filename": str(filename), "pattern": pattern, "candidates": runs},
    )


def round_to_ten_seconds(moment: datetime) -> datetime:
    """Round ``moment`` to the nearest multiple of ten seconds.

    A ones digit of 5 or more rounds up, anything lower rounds down.
    Sub-second precision is truncated first.
    """
    moment = moment.replace(microsecond=0)
    ones = moment.second % 10
    moment -= timedelta(seconds=ones)
    if ones >= 5:
        moment += timedelta(seconds=10)
    return moment


def format_tag(
    start_time: datetime,
    offset_s: float,
    tag_format: str = DEFAULT_TAG_FORMAT,
) -> str:
    """Encode ``start_time + offset_s`` into a segment tag.

    The moment is converted to UTC, rounded to ten seconds, formatted with
    ``tag_format`` and the trailing ones digit of the seconds is dropped.

    Args:
        start_time: Capture start (naive values are taken as UTC)
        offset_s: Offset of the segment into the recording, in seconds
        tag_format: strftime format ending in ``%S``

    Returns:
        Tag string, e.g. ``01-15-2231_2``
    """
    if not tag_format.endswith("%S"):
        raise ValueError(f"Tag format must end with %S - got '{tag_format}'")
    if offset_s < 0:
        raise ValueError(f"Segment offset cannot be negative - got {offset_s}")

    if start_time.tzinfo is None:
        start_time = start_time.replace(tzinfo=timezone.utc)

    moment = (start_time + timedelta(seconds=offset_s)).astimezone(timezone.utc)
    return round_to_ten_seconds(moment).strftime(tag_format)[:-1]


def build_output_name(
    tag: str,
    original_path: str | Path,
    observer_tag: str = "",
    output_dir: Path | None = None,
) -> Path:
    """Build the segment path for ``original_path``.

    The leading digit/separator run of the original stem is stripped and
    ``<tag>-<observer_tag>-`` is prepended. Directory and extension are
    preserved unless ``output_dir`` is given.
    """
    if "/" in observer_tag or "\\" in observer_tag:
        raise ValueError(f"Observer tag cannot contain path separators - got '{observer_tag}'")

    original = Path(original_path)
    stem = _LEADING_TIMESTAMP.sub("", original.stem)

    parts = [tag]
    if observer_tag:
        parts.append(observer_tag)
    if stem:
        parts.append(stem)

    directory = output_dir if output_dir is not None else original.parent
    return directory / ("-".join(parts) + original.suffix)
