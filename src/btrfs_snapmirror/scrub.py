"""Scrub scheduling for the volume pair.

A scrub of both volumes is due once ``scrub_days`` have passed since the
last scrub of the main volume. A main volume that was never scrubbed is
never scrubbed automatically.
"""

import logging
from concurrent.futures import ThreadPoolExecutor
from typing import Optional, Sequence

from .driver.common import DriverError, ScrubDriver, ScrubState, Volume
from .__util__ import shift_days

logger = logging.getLogger(__name__)


class ScrubError(DriverError):
    """A scrub reported errors or could not be driven forward."""


def is_due(last_scrub: Optional[int], now: int, scrub_days: int) -> bool:
    """Return True when ``now`` is at least ``scrub_days`` after ``last_scrub``."""
    if last_scrub is None:
        return False
    return now >= shift_days(last_scrub, scrub_days)


def run_scrub(driver: ScrubDriver, volume: Volume) -> ScrubState:
    """Drive the scrub of ``volume`` to completion.

    Returns the state the scrub was found in.

    Raises:
        ScrubError: If the volume reports errors or an unexpected state
        DriverError: If a scrub command fails
    """
    status = driver.status(volume)
    if status.errors_found:
        raise ScrubError(f"scrub of {volume} reports errors")

    state = status.state
    logger.info("Scrub of %s is %s", volume, state.value)
    if state is ScrubState.RUNNING:
        # Restart instead of waiting on a scan that may be stuck
        driver.cancel(volume)
        driver.resume(volume)
    elif state in (ScrubState.INTERRUPTED, ScrubState.ABORTED):
        driver.resume(volume)
    elif state is ScrubState.FINISHED:
        driver.start(volume)
    else:
        raise ScrubError(f"scrub of {volume} is in unexpected state {state.value}")

    logger.info("Scrub of %s completed", volume)
    return state


def scrub_volumes(driver: ScrubDriver, volumes: Sequence[Volume]) -> None:
    """Scrub all ``volumes`` concurrently and wait for every one to end.

    Raises the first failure, in ``volumes`` order, after all scrubs ended.
    """
    errors = []
    with ThreadPoolExecutor(max_workers=len(volumes) or 1) as executor:
        futures = [(v, executor.submit(run_scrub, driver, v)) for v in volumes]
        for volume, future in futures:
            try:
                future.result()
            except DriverError as e:
                logger.error("Scrub of %s failed: %s", volume, e)
                errors.append(e)

    if errors:
        raise errors[0]


def scrub_if_due(
    driver: ScrubDriver,
    main: Volume,
    mirror: Volume,
    now: int,
    scrub_days: int,
) -> bool:
    """Scrub both volumes when the main volume's scrub interval has passed.

    Returns True if a scrub was run.
    """
    status = driver.status(main)
    if status.last_completed is None:
        logger.info("No scrub recorded on %s, skipping scrub", main)
        return False
    if not is_due(status.last_completed, now, scrub_days):
        logger.debug("Scrub not due, last scrub at %d", status.last_completed)
        return False

    logger.info("Scrub due (every %d days), scrubbing both volumes", scrub_days)
    scrub_volumes(driver, [main, mirror])
    return True
