"""
Readiness polling for dbcontainers

Turns a boolean probe into a bounded wait: the probe is invoked up to a fixed
number of attempts with a fixed delay between them.
"""

import logging
import threading
import time
from typing import Callable, Optional

from .models import UnexpectedOutputError


class ReadinessPoller:
    """
    Retry a probe until it reports True or the attempt budget is used up.

    A probe that raises is treated like one returning False, except for
    UnexpectedOutputError which retrying cannot fix and is re-raised. The first
    exception of a wait is logged at WARNING so that persistent failures such
    as bad credentials are visible before the budget runs out.
    """

    def __init__(
        self,
        attempts: int,
        delay: float,
        sleep: Optional[Callable[[float], None]] = None,
        cancel: Optional[threading.Event] = None,
        logger: Optional[logging.Logger] = None,
    ):
        """
        Initialize the poller.

        Args:
            attempts: Maximum number of probe invocations
            delay: Seconds to wait between attempts
            sleep: Sleep function, substitutable for tests. Defaults to
                time.sleep, or to waiting on ``cancel`` when one is given
            cancel: Optional event; once set, waits end with False. It is
                checked before each attempt and after each pause
            logger: Logger for wait progress, defaults to the module logger
        """
        if attempts < 1:
            raise ValueError("attempts must be at least 1")
        self.attempts = attempts
        self.delay = delay
        self.sleep = sleep
        self.cancel = cancel
        self.logger = logger or logging.getLogger(__name__)

    def _pause(self) -> bool:
        """Wait between attempts, returning False if the wait was cancelled."""
        if self.sleep is not None:
            self.sleep(self.delay)
        elif self.cancel is not None:
            return not self.cancel.wait(self.delay)
        else:
            time.sleep(self.delay)
        return self.cancel is None or not self.cancel.is_set()

    def wait(self, probe: Callable[[], bool], description: str = "condition") -> bool:
        """
        Invoke the probe until it succeeds.

        Args:
            probe: Zero-argument callable returning True when ready
            description: Name of what is being waited for, used in logs

        Returns:
            True on the first successful probe, False if every attempt failed
            or the wait was cancelled
        """
        first_error_logged = False

        for attempt in range(1, self.attempts + 1):
            if self.cancel is not None and self.cancel.is_set():
                self.logger.info(f"Wait for {description} cancelled")
                return False
            try:
                if probe():
                    self.logger.debug(f"{description} ready after {attempt} attempt(s)")
                    return True
            except UnexpectedOutputError:
                raise
            except Exception as e:
                if not first_error_logged:
                    self.logger.warning(f"Probe for {description} raised: {e}")
                    first_error_logged = True
                else:
                    self.logger.debug(f"Probe for {description} raised: {e}")

            if attempt < self.attempts and not self._pause():
                self.logger.info(f"Wait for {description} cancelled")
                return False

        self.logger.debug(f"{description} not ready after {self.attempts} attempts")
        return False
