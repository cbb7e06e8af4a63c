"""
Logging configuration for the segmenter.

Usage:
  LOG_LEVEL sets the level (default INFO).
  Set LOG_FOCUS=1 to only show the segment controller and media sessions
  at LOG_LEVEL; every other module is limited to WARNING.

Example:
  LOG_LEVEL=DEBUG LOG_FOCUS=1 capture-segmenter -d 60 Jupiter_20230115_223045.avi
"""

import logging
import os

LOG_FORMAT = "%(asctime)s.%(msecs)03d | %(name)s | %(levelname)s | %(message)s"
DATE_FORMAT = "%H:%M:%S"

FOCUSED_MODULES = [
    "capture_segmenter.controller.segment_controller",
    "capture_segmenter.media.pyav_backend",
]


def configure_logging(level: str | None = None) -> None:
    """Configure root logging.

    Args:
        level: Level name; falls back to LOG_LEVEL, then INFO
    """
    log_level = (level or os.getenv("LOG_LEVEL", "INFO")).upper()
    log_focus = os.getenv("LOG_FOCUS", "0") == "1"

    logging.basicConfig(
        level=log_level if not log_focus else logging.WARNING,
        format=LOG_FORMAT,
        datefmt=DATE_FORMAT,
        force=True,  # Override any existing config
    )

    # libav is chatty about AVI index quirks
    logging.getLogger("libav").setLevel(logging.ERROR)

    if not log_focus:
        return

    for module in FOCUSED_MODULES:
        logging.getLogger(module).setLevel(log_level)

    logging.getLogger().warning(
        f"Focused logging enabled: {', '.join(FOCUSED_MODULES)} at {log_level}"
    )
