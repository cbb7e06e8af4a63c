"""
Segment controller state machine.

States:
    idle -> input_open -> segment_open -> (segment_open via rollover)
    -> draining -> closed

Every input file runs through the machine independently; a new file
starts again from idle.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import ClassVar, Literal

ControllerState = Literal["idle", "input_open", "segment_open", "draining", "closed"]


class InvalidTransitionError(RuntimeError):
    """Raised when the controller attempts an illegal state change."""


@dataclass
class SegmentationState:
    """Tracks the controller state and the rollovers of the current file.

    Attributes:
        state: Current controller state.
        rollovers: Rollovers performed for the current file.
        history: States visited for the current file, in order.
    """

    state: ControllerState = "idle"
    rollovers: int = 0
    history: list[ControllerState] = field(default_factory=lambda: ["idle"])

    TRANSITIONS: ClassVar[dict[ControllerState, set[ControllerState]]] = {
        "idle": {"input_open"},
        "input_open": {"segment_open", "closed"},
        "segment_open": {"segment_open", "draining", "closed"},
        "draining": {"closed"},
        "closed": {"idle"},
    }

    def transition(self, target: ControllerState) -> None:
        """Move to ``target``.

        Raises:
            InvalidTransitionError: If ``target`` is not reachable
        """
        if target not in self.TRANSITIONS[self.state]:
            raise InvalidTransitionError(f"Invalid transition {self.state} -> {target}")
        if self.state == "segment_open" and target == "segment_open":
            self.rollovers += 1
        self.state = target
        self.history.append(target)

    def reset(self) -> None:
        """Return to idle for the next file."""
        if self.state != "idle":
            self.transition("idle")
        self.rollovers = 0
        self.history = ["idle"]

    @property
    def is_closed(self) -> bool:
        return self.state == "closed"
