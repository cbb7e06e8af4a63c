"""
Console progress for the per-file read loop.

Prints a single colour-graded percentage (red -> yellow -> green) that is
rewritten in place. Updates are throttled: a new value is only printed
once progress advanced by at least one percent, or for the final item.
"""

from __future__ import annotations

from rich.console import Console
from rich.control import Control
from rich.text import Text

MIN_STEP = 0.01


class ProgressReporter:
    """Throttled percentage reporter.

    Attributes:
        enabled: Whether anything is printed at all
        console: Rich console used for output (stderr by default)
    """

    def __init__(self, enabled: bool = True, console: Console | None = None) -> None:
        self.enabled = enabled
        self.console = console or Console(stderr=True, highlight=False, soft_wrap=False)
        self._previous = 0

    def reset(self) -> None:
        """Start counting for a new file."""
        self._previous = 0

    def update(self, current: int, total: int) -> bool:
        """Report that item ``current`` (0-based) of ``total`` is done.

        Returns:
            True if a percentage was emitted
        """
        if total <= 1 or current >= total:
            return False

        final = current >= total - 1
        if (current - self._previous) / total < MIN_STEP and not final:
            return False
        self._previous = current

        if self.enabled:
            pct = current / (total - 1) * 100.0
            self.console.control(Control.move_to_column(0))
            self.console.print(self._progress_text(pct), end="\n" if final else "")
        return True

    @staticmethod
    def _colour(pct: float) -> str:
        pct = max(0.0, min(100.0, pct))
        if pct < 50.0:
            red, green = 255, int(round(pct / 50.0 * 255))
        else:
            red, green = int(round((100.0 - pct) / 50.0 * 255)), 255
        return f"rgb({red},{green},0)"

    def _progress_text(self, pct: float) -> Text:
        """Return the colourized percentage."""
        return Text(f"{int(pct):03d}%", style=self._colour(pct))
