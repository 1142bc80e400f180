"""
Overlay State Machine Tests
===========================
"""

from stillgate.models.state import OverlayState
from stillgate.overlay import OverlayStateMachine


class TestOverlayStateMachine:
    """HIDDEN/VISIBLE transitions and presenter notification."""

    def test_starts_hidden(self):
        machine = OverlayStateMachine()
        assert machine.state == OverlayState.HIDDEN
        assert not machine.visible

    def test_notifies_once_per_change(self, presenter):
        machine = OverlayStateMachine(presenter)

        for signal in [False, True, True, True, False, False, True]:
            machine.update(signal)

        assert presenter.calls == [True, False, True]
        assert machine.transition_count == 3

    def test_update_reports_change(self, presenter):
        machine = OverlayStateMachine(presenter)
        assert machine.update(True) is True
        assert machine.update(True) is False
        assert machine.state == OverlayState.VISIBLE

    def test_reset_hides(self, presenter):
        machine = OverlayStateMachine(presenter)
        machine.update(True)
        machine.reset()
        machine.reset()

        assert presenter.calls == [True, False]
        assert machine.state == OverlayState.HIDDEN

    def test_presenter_failure_does_not_break_machine(self):
        class BrokenPresenter:
            def set_overlay_visible(self, visible):
                raise RuntimeError("display gone")

        machine = OverlayStateMachine(BrokenPresenter())
        assert machine.update(True) is True
        assert machine.visible
