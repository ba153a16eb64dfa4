"""
Unit tests for the debouncer.
"""

import time

import pytest

from foldersort.watchers.debounce import DebounceState, Debouncer


def wait_for(condition, timeout=2.0):
    deadline = time.monotonic() + timeout
    while time.monotonic() < deadline:
        if condition():
            return True
        time.sleep(0.01)
    return condition()


class TestDebouncer:
    """Test the pending-trigger state machine."""

    def setup_method(self):
        self.calls = []
        self.debouncer = Debouncer(0.05, lambda: self.calls.append(time.monotonic()), name="test")

    def teardown_method(self):
        self.debouncer.close()

    def test_initial_state(self):
        assert self.debouncer.state == DebounceState.NO_PENDING
        assert self.debouncer.deadline is None
        assert not self.debouncer.pending

    def test_trigger_fires_once_after_delay(self):
        self.debouncer.trigger()
        assert self.debouncer.state == DebounceState.PENDING
        assert self.debouncer.deadline is not None

        assert wait_for(lambda: self.calls)
        assert self.debouncer.state == DebounceState.FIRED
        assert self.debouncer.fire_count == 1

    def test_rapid_triggers_collapse(self):
        self.debouncer.trigger()
        time.sleep(0.01)
        self.debouncer.trigger()

        assert wait_for(lambda: self.calls)
        time.sleep(0.15)
        assert len(self.calls) == 1

    def test_trigger_resets_the_timer(self):
        start = time.monotonic()
        self.debouncer.trigger()
        time.sleep(0.03)
        self.debouncer.trigger()

        assert wait_for(lambda: self.calls)
        assert self.calls[0] - start >= 0.07

    def test_cancel_prevents_fire(self):
        self.debouncer.trigger()
        self.debouncer.cancel()

        time.sleep(0.15)
        assert self.calls == []
        assert self.debouncer.state == DebounceState.NO_PENDING

    def test_closed_debouncer_ignores_triggers(self):
        self.debouncer.close()
        self.debouncer.trigger()

        time.sleep(0.1)
        assert self.calls == []

    def test_callback_errors_are_contained(self, caplog):
        def boom():
            raise RuntimeError("callback failed")

        debouncer = Debouncer(0.01, boom, name="boom")
        debouncer.trigger()

        assert wait_for(lambda: debouncer.fire_count == 1)
        assert wait_for(lambda: "callback failed" in caplog.text)

        # Still usable afterwards
        debouncer.trigger()
        assert wait_for(lambda: debouncer.fire_count == 2)
        debouncer.close()


@pytest.mark.parametrize("triggers", [1, 5])
def test_fire_count_is_one_per_burst(triggers):
    fired = []
    debouncer = Debouncer(0.03, lambda: fired.append(1))
    for _ in range(triggers):
        debouncer.trigger()

    assert wait_for(lambda: fired)
    time.sleep(0.1)
    assert debouncer.fire_count == 1
