"""
Overlay Module
==============

Visibility state for the "camera is still" overlay.
"""

from stillgate.overlay.state_machine import OverlayPresenter, OverlayStateMachine

__all__ = [
    "OverlayPresenter",
    "OverlayStateMachine",
]
