"""
Presentation Module
===================

Collaborators on the presentation side of the pipeline.

Components:
    - EventBroadcaster: Overlay presenter + event fan-out for WebSocket clients
    - ResultReviewer: Accepts results and pauses tracking while one is shown

NO PIPELINE LOGIC. Presentation only reacts to the controller.
"""

from stillgate.presentation.broadcaster import EventBroadcaster
from stillgate.presentation.review import ResultReviewer

__all__ = [
    "EventBroadcaster",
    "ResultReviewer",
]
