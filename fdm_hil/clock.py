"""
Simulated Clock
================
Monotonic simulation time in microseconds, plus an advisory lock flag.

The lock is not a mutex: it records whether the autopilot has been answered
for the current instant.  Publishing a sensor cycle unlocks the clock; the run
loop re-locks it after every advance, so simulated time stalls while the
autopilot owes a reply and the warm-up window has passed.
"""

import threading


class SimClock:

    def __init__(self, start_us: int = 0):
        if start_us < 0:
            raise ValueError(f"start time must be non-negative, got {start_us}")
        self._time_us = int(start_us)
        self._locked = False
        self._mutex = threading.Lock()

    def get_current_time_us(self) -> int:
        with self._mutex:
            return self._time_us

    def advance(self, us: int) -> bool:
        """Move time forward by ``us``.  Returns False (no-op) while locked."""
        if us < 0:
            raise ValueError(f"clock cannot run backwards (step {us} us)")
        with self._mutex:
            if self._locked:
                return False
            self._time_us += int(us)
            return True

    def lock_time(self):
        with self._mutex:
            self._locked = True

    def unlock_time(self):
        with self._mutex:
            self._locked = False

    def is_locked(self) -> bool:
        with self._mutex:
            return self._locked
