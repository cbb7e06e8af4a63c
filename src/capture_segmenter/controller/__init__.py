"""Segment controller for time-windowed capture segmentation."""

from capture_segmenter.controller.segment_controller import SegmentController

__all__ = ["SegmentController"]
