"""Metrics module for capture segmentation."""

from capture_segmenter.metrics.prometheus import SegmenterMetrics

__all__ = ["SegmenterMetrics"]
