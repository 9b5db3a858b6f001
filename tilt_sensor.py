"""
Tilt sources feeding the input controller.

The core only needs ``subscribe(interval_ms, callback) -> unsubscribe``: the
source samples its value every `interval_ms` on the shared scheduler and hands
it to `callback`. Positive tilt steers left (the controller subtracts it from
the lateral offset), matching an accelerometer X axis held in portrait.
"""

from game_utils import clamp

# Tilt produced by a held arrow key. With the default sensitivity (150) the
# target leads the player by 12 units, which the spring turns into ~180 u/s.
KEY_TILT = 0.08
# Gamepad axis dead zone and full-deflection tilt.
AXIS_DEAD_ZONE = 0.15
AXIS_TILT = 0.12


class TiltSource:
    """
    Base class for sensor collaborators.

    Subclasses override `read()` to return the current tilt value.
    """

    def __init__(self, scheduler):
        self.scheduler = scheduler

    def read(self):
        """Return the current tilt sample."""
        return 0.0

    def subscribe(self, interval_ms, callback):
        """
        Sample every `interval_ms` and pass the value to `callback`.

        Returns:
            callable: Unsubscribe function; calling it more than once is a no-op.
        """
        handle = self.scheduler.set_interval(interval_ms, lambda: callback(self.read()))
        state = {"live": True}

        def unsubscribe():
            if state["live"]:
                state["live"] = False
                self.scheduler.clear_interval(handle)

        return unsubscribe


class ScriptedTilt(TiltSource):
    """
    Replay a fixed sequence of tilt values (or a single constant).

    After the sequence is exhausted the last value is held, unless `loop` is
    set. Used by tests and by the attract/demo mode.
    """

    def __init__(self, scheduler, values=0.0, loop=False):
        super().__init__(scheduler)
        if isinstance(values, (int, float)):
            values = [values]
        self.values = list(values) or [0.0]
        self.loop = loop
        self.index = 0

    def read(self):
        value = self.values[min(self.index, len(self.values) - 1)]
        self.index += 1
        if self.loop and self.index >= len(self.values):
            self.index = 0
        return value


class DesktopTilt(TiltSource):
    """
    Keyboard / gamepad emulation of the accelerometer.

    Left/Right arrows (or A/D) produce a fixed tilt; the first gamepad's X
    axis overrides the keyboard when it is deflected past the dead zone.
    """

    def __init__(self, scheduler):
        super().__init__(scheduler)
        self._pg = None
        self._pad = None

    def _ensure_pygame(self):
        if self._pg is not None:
            return self._pg
        try:
            import pygame  # type: ignore
        except Exception as e:
            raise RuntimeError(
                "PyGame not installed. Install with: pip install pygame"
            ) from e
        self._pg = pygame
        pygame.joystick.init()
        if pygame.joystick.get_count() > 0:
            self._pad = pygame.joystick.Joystick(0)
            if hasattr(self._pad, "init"):
                self._pad.init()
        return pygame

    def read(self):
        pygame = self._ensure_pygame()
        if self._pad is not None:
            axis = self._pad.get_axis(0)
            if abs(axis) > AXIS_DEAD_ZONE:
                return -clamp(axis, -1.0, 1.0) * AXIS_TILT

        keys = pygame.key.get_pressed()
        left = keys[pygame.K_LEFT] or keys[pygame.K_a]
        right = keys[pygame.K_RIGHT] or keys[pygame.K_d]
        if left and not right:
            return KEY_TILT
        if right and not left:
            return -KEY_TILT
        return 0.0
