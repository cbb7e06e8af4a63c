"""
Capture segmenter.

Splits planetary lucky-imaging captures into fixed-duration segments
named after their start time (seconds rounded to the nearest ten) for
derotation tools such as WinJUPOS.
"""

__version__ = "0.1.0"
