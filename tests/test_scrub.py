"""Tests for scrub scheduling."""

import threading
from unittest.mock import MagicMock, call

import pytest

from btrfs_snapmirror.driver.common import (
    DriverError,
    ScrubState,
    ScrubStatus,
    Volume,
)
from btrfs_snapmirror.scrub import (
    ScrubError,
    is_due,
    run_scrub,
    scrub_if_due,
    scrub_volumes,
)
from conftest import NOW, ts

MAIN = Volume("main", "/mnt/main")
MIRROR = Volume("mirror", "/mnt/mirror")


def scrub_driver(state=ScrubState.FINISHED, last=None, errors=False):
    driver = MagicMock()
    driver.status.return_value = ScrubStatus(
        state=state, last_completed=last, errors_found=errors
    )
    return driver


class TestIsDue:
    """Tests for is_due function."""

    def test_never_scrubbed(self):
        """Test no recorded scrub is never due."""
        assert is_due(None, NOW, 30) is False
        assert is_due(None, NOW * 2, 0) is False

    def test_due_after_interval(self):
        """Test due once the interval has passed."""
        last = ts(2026, 9, 17, 13, 0, 0)
        assert is_due(last, NOW, 30) is True
        assert is_due(last, NOW - 1, 30) is False

    def test_not_due_within_interval(self):
        """Test not due before the interval ends."""
        assert is_due(ts(2026, 10, 1), NOW, 30) is False

    def test_zero_interval(self):
        """Test a zero interval is always due."""
        assert is_due(NOW, NOW, 0) is True


class TestRunScrub:
    """Tests for run_scrub function."""

    def test_finished_starts_new_scrub(self):
        """Test a finished scrub is followed by a new one."""
        driver = scrub_driver(ScrubState.FINISHED)
        assert run_scrub(driver, MAIN) is ScrubState.FINISHED
        driver.start.assert_called_once_with(MAIN)
        driver.resume.assert_not_called()

    def test_running_is_cancelled_and_resumed(self):
        """Test a running scrub is restarted."""
        driver = scrub_driver(ScrubState.RUNNING)
        run_scrub(driver, MAIN)
        assert driver.mock_calls[1:] == [call.cancel(MAIN), call.resume(MAIN)]

    @pytest.mark.parametrize("state", [ScrubState.INTERRUPTED, ScrubState.ABORTED])
    def test_interrupted_is_resumed(self, state):
        """Test interrupted and aborted scrubs are resumed."""
        driver = scrub_driver(state)
        run_scrub(driver, MAIN)
        driver.resume.assert_called_once_with(MAIN)
        driver.start.assert_not_called()
        driver.cancel.assert_not_called()

    def test_unknown_state_fails(self):
        """Test an unknown state fails the scrub."""
        driver = scrub_driver(ScrubState.UNKNOWN)
        with pytest.raises(ScrubError, match="unexpected state"):
            run_scrub(driver, MAIN)

    def test_errors_fail_before_any_action(self):
        """Test reported errors fail the scrub without touching it."""
        driver = scrub_driver(ScrubState.RUNNING, errors=True)
        with pytest.raises(ScrubError, match="reports errors"):
            run_scrub(driver, MAIN)
        driver.cancel.assert_not_called()
        driver.resume.assert_not_called()

    def test_driver_failure_propagates(self):
        """Test a failing scrub command propagates."""
        driver = scrub_driver(ScrubState.FINISHED)
        driver.start.side_effect = DriverError("scrub start failed")
        with pytest.raises(DriverError):
            run_scrub(driver, MAIN)


class TestScrubVolumes:
    """Tests for scrub_volumes function."""

    def test_runs_concurrently(self):
        """Test both scrubs are in progress at the same time."""
        barrier = threading.Barrier(2, timeout=5)
        driver = scrub_driver(ScrubState.FINISHED)
        driver.start.side_effect = lambda volume: barrier.wait()

        scrub_volumes(driver, [MAIN, MIRROR])

        assert driver.start.call_count == 2

    def test_waits_for_both_when_one_fails(self):
        """Test one failure is reported only after the other scrub ended."""
        finished = threading.Event()
        driver = scrub_driver(ScrubState.FINISHED)

        def start(volume):
            if volume is MAIN:
                raise DriverError("main scrub failed")
            finished.set()

        driver.start.side_effect = start

        with pytest.raises(DriverError, match="main scrub failed"):
            scrub_volumes(driver, [MAIN, MIRROR])
        assert finished.is_set()


class TestScrubIfDue:
    """Tests for scrub_if_due function."""

    def test_skipped_without_history(self):
        """Test nothing happens when the main volume was never scrubbed."""
        driver = scrub_driver(ScrubState.UNKNOWN, last=None)
        assert scrub_if_due(driver, MAIN, MIRROR, NOW, 30) is False
        driver.start.assert_not_called()
        driver.status.assert_called_once_with(MAIN)

    def test_skipped_when_not_due(self):
        """Test nothing happens inside the interval."""
        driver = scrub_driver(last=NOW - 3600)
        assert scrub_if_due(driver, MAIN, MIRROR, NOW, 30) is False
        driver.start.assert_not_called()

    def test_scrubs_both_when_due(self):
        """Test both volumes are scrubbed once due."""
        driver = scrub_driver(last=ts(2026, 8, 1))
        assert scrub_if_due(driver, MAIN, MIRROR, NOW, 30) is True
        assert sorted(c.args[0].label for c in driver.start.call_args_list) == [
            "main",
            "mirror",
        ]
