"""
Cooperative single-threaded scheduler.

Everything in the game runs on one thread: a frame callback list (the
equivalent of a display refresh callback) and any number of fixed-interval
timers. Nothing here blocks except the sync driver's idle sleep, so callbacks
must return promptly.

Two drivers are provided, mirroring the desktop/browser split of the arcade
runtime:

- ``run()`` sleeps between pumps with ``sleep_ms`` (desktop CPython)
- ``run_async()`` awaits ``asyncio.sleep`` so pygbag can keep the browser
  responsive
"""

import asyncio
import itertools

from game_utils import sleep_ms, ticks_diff, ticks_ms


class Scheduler:
    """
    Drive frame callbacks and interval timers from a millisecond clock.

    Frame callbacks are one-shot: a loop that wants the next frame must
    request it again from inside its callback. Interval timers repeat until
    cleared.
    """

    def __init__(self, clock=ticks_ms, frame_ms=16):
        """
        Args:
            clock (callable): Returns the current time in milliseconds.
            frame_ms (int): Minimum spacing between two frames.
        """
        self.clock = clock
        self.frame_ms = frame_ms
        self._ids = itertools.count(1)
        self._timers = {}
        self._frames = {}
        self._last_frame = None

    # ---------- registration ----------
    def request_frame(self, callback):
        """Call ``callback(now_ms)`` once on the next frame; returns a handle."""
        handle = next(self._ids)
        self._frames[handle] = callback
        return handle

    def cancel_frame(self, handle):
        """Drop a pending frame callback. Unknown handles are ignored."""
        self._frames.pop(handle, None)

    def set_interval(self, interval_ms, callback):
        """
        Call ``callback()`` every `interval_ms` milliseconds.

        Returns:
            int: Handle for `clear_interval`.
        """
        if interval_ms <= 0:
            raise ValueError(f"interval must be positive, got {interval_ms}")
        handle = next(self._ids)
        self._timers[handle] = [interval_ms, self.clock() + interval_ms, callback]
        return handle

    def clear_interval(self, handle):
        """Stop an interval timer. Unknown handles are ignored."""
        self._timers.pop(handle, None)

    def pending(self):
        """Return the number of live registrations (timers + frame requests)."""
        return len(self._timers) + len(self._frames)

    # ---------- dispatch ----------
    def pump(self, now=None):
        """
        Fire everything that is due at `now` (defaults to the clock).

        Timers run first, then the frame callbacks that were registered
        before this frame started. A callback cancelled by an earlier
        callback in the same pump does not fire.

        Returns:
            int: Milliseconds until the next frame is due (0 if overdue).
        """
        if now is None:
            now = self.clock()

        for handle in list(self._timers):
            timer = self._timers.get(handle)
            if timer is None:
                continue
            interval, due, callback = timer
            if ticks_diff(now, due) < 0:
                continue
            due += interval
            if ticks_diff(now, due) >= 0:
                # fell behind: fire once and re-base instead of bursting
                due = now + interval
            timer[1] = due
            callback()

        if self._last_frame is None or ticks_diff(now, self._last_frame) >= self.frame_ms:
            self._last_frame = now
            batch = list(self._frames)
            for handle in batch:
                callback = self._frames.pop(handle, None)
                if callback is not None:
                    callback(now)

        return max(0, self.frame_ms - ticks_diff(self.clock(), self._last_frame))

    def run(self, keep_going):
        """
        Desktop driver: pump until ``keep_going()`` returns False.

        Sleeps a millisecond or two between pumps.
        """
        while keep_going():
            wait = self.pump()
            sleep_ms(max(1, min(wait, 2)))

    async def run_async(self, keep_going):
        """Browser driver: same as `run` but yields to the event loop."""
        while keep_going():
            wait = self.pump()
            await asyncio.sleep(max(1, min(wait, 2)) / 1000)
