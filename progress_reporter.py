#!/usr/bin/env python3
"""
Progress Reporter Module

Shows an advancing progress bar while a long scan runs in a background
worker. The percentage is simulated from elapsed time because the amount
of work is unknown up front; it climbs quickly, slows down, holds at 95%
and only reaches 100% once the work has actually finished.
"""

import math
import threading
import time
from concurrent.futures import ThreadPoolExecutor, wait
from typing import Callable, Optional, TypeVar

from console_ui import ConsoleUI

T = TypeVar("T")

FAST_STEP = 3
FAST_LIMIT = 85
SLOW_INTERVAL = 2
HOLD_LIMIT = 95
POLL_INTERVAL = 0.2


def simulated_percent(elapsed: float) -> int:
    """Percentage to display after *elapsed* seconds

    +3 per second up to 85, then +1 every two seconds up to 95, then holds.
    """
    if elapsed <= 0:
        return 0
    seconds = math.floor(elapsed)
    fast = FAST_STEP * seconds
    if fast < FAST_LIMIT:
        return fast

    fast_done = math.ceil(FAST_LIMIT / FAST_STEP)
    slow = (seconds - fast_done) // SLOW_INTERVAL
    return min(HOLD_LIMIT, FAST_LIMIT + max(0, slow))


class ProgressReporter:
    """Runs one operation in the background while animating a progress bar"""

    def __init__(
        self,
        ui: ConsoleUI,
        poll_interval: float = POLL_INTERVAL,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.ui = ui
        self.poll_interval = poll_interval
        self.clock = clock

    def run(
        self,
        operation: Callable[[threading.Event], T],
        message: str,
        cancel_requested: Optional[Callable[[], bool]] = None,
    ) -> T:
        """Run *operation* and return its result

        The operation receives a threading.Event that is set when the user
        interrupts; it should stop at its next safe point. Exceptions raised
        by the operation propagate to the caller.
        """
        cancel = threading.Event()
        with ThreadPoolExecutor(max_workers=1, thread_name_prefix="kenosis-scan") as pool:
            future = pool.submit(operation, cancel)
            start = self.clock()
            with self.ui.create_percent_progress() as progress:
                task = progress.add_task(message, total=100)
                try:
                    while not future.done():
                        if cancel_requested and cancel_requested():
                            cancel.set()
                        progress.update(task, completed=simulated_percent(self.clock() - start))
                        wait([future], timeout=self.poll_interval)
                except KeyboardInterrupt:
                    cancel.set()
                    wait([future])
                    raise
                progress.update(task, completed=100)
            return future.result()
