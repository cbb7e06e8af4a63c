"""Entrypoint for the capture segmenter.

Usage:
    capture-segmenter -d 60 Jupiter_20230115_223045.avi
    capture-segmenter -d 90 -o MyObs --local -i cap1.avi cap2.avi
    python -m capture_segmenter -d 60 -f "%Y-%m-%d_%H%M%S" capture.avi
"""

from __future__ import annotations

import argparse
import logging
import sys
import traceback
from pathlib import Path
from typing import NoReturn

from pydantic import ValidationError

from capture_segmenter.config.segmenter_config import SegmenterConfig
from capture_segmenter.errors import SegmenterError
from capture_segmenter.logging_config import configure_logging
from capture_segmenter.runner import SegmentationRunner

logger = logging.getLogger(__name__)

EXIT_OK = 0
EXIT_PARSE_FAILURE = 1
EXIT_NO_INPUTS = 2
EXIT_OPTIONS_SETUP = 3
EXIT_PROCESSING_FAILURE = 4
EXIT_INTERRUPTED = 130


class SegmenterArgumentParser(argparse.ArgumentParser):
    """ArgumentParser that exits with EXIT_PARSE_FAILURE on bad arguments."""

    def error(self, message: str) -> NoReturn:
        self.print_usage(sys.stderr)
        self.exit(EXIT_PARSE_FAILURE, f"{self.prog}: error: {message}\n")


def build_parser() -> SegmenterArgumentParser:
    """Build the command line parser."""
    parser = SegmenterArgumentParser(
        prog="capture-segmenter",
        description=(
            "Split planetary captures into fixed-duration segments named "
            "after their start time for derotation tools"
        ),
    )
    parser.add_argument(
        "inputs",
        nargs="*",
        type=Path,
        help="Videos to segment",
    )
    parser.add_argument(
        "-i",
        "--inputs",
        dest="option_inputs",
        nargs="+",
        type=Path,
        action="extend",
        default=[],
        help="Videos to segment (alternative to positional inputs)",
    )
    parser.add_argument(
        "-d",
        "--duration",
        type=float,
        required=True,
        help="Segment duration in seconds (required)",
    )
    parser.add_argument(
        "-f",
        "--dtformat",
        default=None,
        help=(
            "strptime format of the timestamp in the filenames, the same for all "
            "inputs (default: %%Y%%m%%d_%%H%%M%%S, FireCapture style)"
        ),
    )
    zone = parser.add_mutually_exclusive_group()
    zone.add_argument(
        "--utc",
        dest="use_utc",
        action="store_const",
        const=True,
        default=None,
        help="Filename timestamps are UTC (default)",
    )
    zone.add_argument(
        "--local",
        dest="use_utc",
        action="store_const",
        const=False,
        help="Filename timestamps are local time",
    )
    parser.add_argument(
        "-o",
        "--observer",
        dest="observer_tag",
        default=None,
        help="Observer/station tag placed after the segment time tag",
    )
    parser.add_argument(
        "--tag-format",
        default=None,
        help="strftime format of the segment tag, ending in %%S (default: %%m-%%d-%%H%%M_%%S)",
    )
    parser.add_argument(
        "--output-dir",
        type=Path,
        default=None,
        help="Directory for segments (default: next to each input)",
    )
    parser.add_argument(
        "--continue-on-error",
        action="store_const",
        const=True,
        default=None,
        help="Skip a failing input and continue with the next one",
    )
    parser.add_argument(
        "--ignore-unsupported-streams",
        action="store_const",
        const=True,
        default=None,
        help="Drop streams that are neither video nor audio",
    )
    parser.add_argument(
        "--no-progress",
        dest="show_progress",
        action="store_const",
        const=False,
        default=None,
        help="Do not print progress percentages",
    )
    parser.add_argument(
        "--metrics-file",
        type=Path,
        default=None,
        help="Write Prometheus metrics to this textfile after the run",
    )
    parser.add_argument(
        "--log-level",
        default=None,
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        help="Logging level (default: LOG_LEVEL or INFO)",
    )
    return parser


def build_config(args: argparse.Namespace) -> SegmenterConfig:
    """Merge CLI flags over SEGMENTER_* environment settings."""
    overrides = {
        "segment_duration_s": args.duration,
        "dtformat": args.dtformat,
        "use_utc": args.use_utc,
        "observer_tag": args.observer_tag,
        "tag_format": args.tag_format,
        "output_dir": args.output_dir,
        "continue_on_error": args.continue_on_error,
        "ignore_unsupported_streams": args.ignore_unsupported_streams,
        "show_progress": args.show_progress,
        "metrics_file": args.metrics_file,
    }
    return SegmenterConfig(**{key: value for key, value in overrides.items() if value is not None})


def report_error(error: SegmenterError) -> None:
    """Log ``error`` with the location it was raised from."""
    location = ""
    if error.__traceback__ is not None:
        origin = traceback.extract_tb(error.__traceback__)[-1]
        location = f" in File {origin.filename} on line {origin.lineno}"
    logger.error(f'Error "{error.message}"{location}')
    if error.__cause__ is not None:
        logger.debug(f"Caused by: {error.__cause__!r}")


def main(argv: list[str] | None = None) -> int:
    """Main entrypoint for the segmenter."""
    parser = build_parser()
    args = parser.parse_args(argv)
    configure_logging(args.log_level)

    inputs = list(args.inputs) + list(args.option_inputs)
    if not inputs:
        parser.print_help()
        return EXIT_NO_INPUTS

    try:
        config = build_config(args)
    except ValidationError as e:
        logger.error(f"Invalid options: {e}")
        return EXIT_OPTIONS_SETUP

    runner = SegmentationRunner(config)
    try:
        result = runner.run(inputs)
    except SegmenterError as e:
        report_error(e)
        return EXIT_PROCESSING_FAILURE
    except KeyboardInterrupt:
        logger.info("Interrupted")
        return EXIT_INTERRUPTED

    return EXIT_OK if result.ok else EXIT_PROCESSING_FAILURE


if __name__ == "__main__":
    sys.exit(main())
