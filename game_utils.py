"""
Shared helpers for Tilt Dodge.

This module provides the small, dependency-free building blocks used by the
game core, the scheduler and the presentation layer.

Components:
- Geometry: clamp, Rect and axis-aligned rectangle intersection
- Spring smoothing: critically damped approach toward a moving target
- Timing helpers: ticks_ms / ticks_diff / sleep_ms
- Tagged console logging
"""

import math
import time

LOG_ENABLED = True

# Largest integration step for the spring; keeps the explicit integrator stable
# for stiff springs and long frames.
MAX_SPRING_STEP = 1.0 / 240.0
MAX_SPRING_SUBSTEPS = 480


def log(tag, *parts):
    """
    Print a tagged log line, e.g. ``GAME: restart score=12``.

    Args:
        tag (str): Short upper-case channel name (BOOT, GAME, SPAWN, ...).
        *parts: Values printed after the tag, separated by spaces.
    """
    if LOG_ENABLED:
        print(tag + ":", *parts)


# ---------- Timing ----------
def ticks_ms():
    """Return a monotonic millisecond counter."""
    return int(time.monotonic() * 1000)


def ticks_diff(a, b):
    """Return the difference between two tick values (a - b)."""
    return a - b


def sleep_ms(ms):
    """
    Block for the given number of milliseconds.

    Args:
        ms (int): Duration; values <= 0 return immediately.
    """
    if ms > 0:
        time.sleep(ms / 1000)


# ---------- Geometry ----------
def clamp(v, lo, hi):
    """
    Restrict `v` to the closed range [lo, hi].

    Callers guarantee ``lo <= hi``.
    """
    return max(lo, min(hi, v))


class Rect:
    """Axis-aligned rectangle given by its top-left corner and size."""

    __slots__ = ("x", "y", "w", "h")

    def __init__(self, x, y, w, h):
        self.x = x
        self.y = y
        self.w = w
        self.h = h

    def __repr__(self):
        return f"Rect(x={self.x}, y={self.y}, w={self.w}, h={self.h})"


def intersects(a, b):
    """
    Return True when rectangles `a` and `b` overlap on both axes.

    Any objects with ``x``, ``y``, ``w`` and ``h`` attributes are accepted.
    Far edges use strict comparison, so rectangles that only touch along an
    edge do not intersect.
    """
    return (
        a.x < b.x + b.w
        and a.x + a.w > b.x
        and a.y < b.y + b.h
        and a.y + a.h > b.y
    )


# ---------- Spring smoothing ----------
def critical_damping(stiffness):
    """Return the damping coefficient that critically damps `stiffness`."""
    return 2.0 * math.sqrt(stiffness)


def spring_step(current, velocity, target, dt, stiffness=900.0, damping=None):
    """
    Advance a damped spring pulling `current` toward `target` by `dt` seconds.

    The spring is integrated with semi-implicit Euler in sub-steps no longer
    than ``MAX_SPRING_STEP``. When the spring is at least critically damped it
    never crosses the target: reaching or passing it snaps to the target with
    zero velocity.

    Args:
        current (float): Current position.
        velocity (float): Current velocity in units/second.
        target (float): Rest position.
        dt (float): Elapsed seconds; values <= 0 leave the state unchanged.
        stiffness (float): Spring constant (1/s^2).
        damping (float | None): Damping coefficient (1/s). ``None`` selects
            critical damping.

    Returns:
        tuple: ``(position, velocity)`` after `dt`.
    """
    if not dt > 0:
        return current, velocity
    if damping is None:
        damping = critical_damping(stiffness)
    no_overshoot = damping >= critical_damping(stiffness) - 1e-9

    steps = int(math.ceil(dt / MAX_SPRING_STEP))
    if steps > MAX_SPRING_SUBSTEPS:
        # long stall: a damped spring has settled long before this
        return target, 0.0
    h = dt / steps
    side = current - target
    for _ in range(steps):
        accel = -stiffness * (current - target) - damping * velocity
        velocity += accel * h
        current += velocity * h
        if no_overshoot and (current - target) * side <= 0:
            return target, 0.0
    return current, velocity


class SpringSmoother:
    """
    Stateful wrapper around `spring_step`.

    Keeps the spring velocity between calls so callers only deal with
    positions: ``next = smoother.step(current, target, dt)``.
    """

    def __init__(self, stiffness=900.0, damping=None):
        self.stiffness = stiffness
        self.damping = damping
        self.velocity = 0.0

    def step(self, current, target, dt):
        """Return the position after moving from `current` toward `target`."""
        pos, self.velocity = spring_step(
            current, self.velocity, target, dt, self.stiffness, self.damping
        )
        return pos

    def reset(self):
        """Forget any motion in progress."""
        self.velocity = 0.0
