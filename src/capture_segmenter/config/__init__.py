"""
Configuration module for capture segmentation.

This module provides the Pydantic-based configuration model
loaded from environment variables and CLI flags.

Exports:
    SegmenterConfig: Segmentation configuration (SEGMENTER_ prefix)
"""

from capture_segmenter.config.segmenter_config import SegmenterConfig

__all__ = [
    "SegmenterConfig",
]
