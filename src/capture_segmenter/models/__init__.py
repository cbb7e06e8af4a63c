"""
Data models for capture segmentation.

This module provides data models for:
- Segments: SegmentClock, SegmentRecord
- State: SegmentationState, ControllerState
"""

from __future__ import annotations

from capture_segmenter.models.segments import SegmentClock, SegmentRecord
from capture_segmenter.models.state import (
    ControllerState,
    InvalidTransitionError,
    SegmentationState,
)

__all__ = [
    "SegmentClock",
    "SegmentRecord",
    "ControllerState",
    "InvalidTransitionError",
    "SegmentationState",
]
