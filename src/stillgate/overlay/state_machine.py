"""
Overlay State Machine
=====================

Two-state visibility model driven by the stability signal.

Rules:
    - update(True)  → VISIBLE (idempotent)
    - update(False) → HIDDEN  (idempotent)
    - The presenter is told once per state change, never per frame

The machine itself is thread-agnostic. Delivering the change onto a
UI context is the presenter's job (see presentation.broadcaster).
"""

import logging
from typing import Optional, Protocol

from stillgate.models.state import OverlayState


logger = logging.getLogger(__name__)


class OverlayPresenter(Protocol):
    """Presentation collaborator receiving overlay visibility changes."""

    def set_overlay_visible(self, visible: bool) -> None:
        """Show or hide the overlay."""
        ...


class OverlayStateMachine:
    """
    HIDDEN/VISIBLE state machine.

    Attributes:
        state: Current overlay state
        transition_count: Number of state changes so far
    """

    def __init__(self, presenter: Optional[OverlayPresenter] = None) -> None:
        self._presenter = presenter
        self._state = OverlayState.HIDDEN
        self.transition_count: int = 0

    @property
    def state(self) -> OverlayState:
        """Current overlay state."""
        return self._state

    @property
    def visible(self) -> bool:
        """Whether the overlay is currently shown."""
        return self._state == OverlayState.VISIBLE

    def update(self, is_stable: bool) -> bool:
        """
        Drive the machine with this frame's stability signal.

        Returns:
            True if the state changed
        """
        target = OverlayState.VISIBLE if is_stable else OverlayState.HIDDEN
        if target == self._state:
            return False

        previous = self._state
        self._state = target
        self.transition_count += 1
        logger.debug(f"Overlay {previous.value} -> {target.value}")
        self._notify()
        return True

    def reset(self) -> None:
        """Return to HIDDEN, notifying the presenter if that is a change."""
        self.update(False)

    def _notify(self) -> None:
        if self._presenter is None:
            return
        try:
            self._presenter.set_overlay_visible(self.visible)
        except Exception as e:
            logger.error(f"Overlay presenter failed: {e}")
