#!/usr/bin/env python3
"""
Tests for the cooperative scheduler and the tilt sources built on it.

A fake millisecond clock drives every test so results do not depend on
machine speed. Run directly or through pytest.
"""

import asyncio
import sys

from scheduler import Scheduler
from tilt_sensor import ScriptedTilt, TiltSource


class FakeClock:
    """Millisecond clock advanced by hand."""

    def __init__(self, now=0):
        self.now = now

    def __call__(self):
        return self.now


def _section(title):
    print("\n" + "=" * 60)
    print(title)
    print("=" * 60)


def test_interval_fires_on_schedule():
    _section("Interval timers")
    clock = FakeClock()
    sched = Scheduler(clock=clock)
    fired = []
    sched.set_interval(100, lambda: fired.append(clock.now))
    for t in (50, 100, 150, 200, 300):
        clock.now = t
        sched.pump()
    assert fired == [100, 200, 300], fired
    print("✓ fired at", fired)


def test_late_interval_fires_once_and_rebases():
    _section("Late interval timer")
    clock = FakeClock()
    sched = Scheduler(clock=clock)
    fired = []
    sched.set_interval(100, lambda: fired.append(clock.now))
    clock.now = 350
    sched.pump()
    assert fired == [350]
    clock.now = 440
    sched.pump()
    assert fired == [350]
    clock.now = 450
    sched.pump()
    assert fired == [350, 450]
    print("✓ one catch-up call, next due 100 ms later")


def test_clear_interval():
    _section("clear_interval")
    clock = FakeClock()
    sched = Scheduler(clock=clock)
    fired = []
    handle = sched.set_interval(10, lambda: fired.append(1))
    clock.now = 10
    sched.pump()
    sched.clear_interval(handle)
    sched.clear_interval(handle)
    clock.now = 100
    sched.pump()
    assert fired == [1]
    assert sched.pending() == 0
    print("✓ cleared timer stays silent; double clear is harmless")


def test_rejects_non_positive_interval():
    _section("Interval validation")
    sched = Scheduler(clock=FakeClock())
    try:
        sched.set_interval(0, lambda: None)
    except ValueError:
        print("✓ ValueError for 0 ms")
    else:
        raise AssertionError("expected ValueError")


def test_frame_callbacks_are_one_shot():
    _section("Frame callbacks")
    clock = FakeClock()
    sched = Scheduler(clock=clock, frame_ms=16)
    seen = []
    sched.request_frame(seen.append)
    sched.pump()
    clock.now = 16
    sched.pump()
    assert seen == [0]
    assert sched.pending() == 0
    print("✓ called once with the frame timestamp")


def test_frame_rate_is_throttled():
    _section("Frame throttling")
    clock = FakeClock()
    sched = Scheduler(clock=clock, frame_ms=16)
    seen = []

    def loop(now):
        seen.append(now)
        sched.request_frame(loop)

    sched.request_frame(loop)
    for t in range(0, 50, 2):
        clock.now = t
        sched.pump()
    assert seen == [0, 16, 32, 48], seen
    print("✓ self-rescheduling loop ran at", seen)


def test_frame_requested_inside_frame_waits_for_next():
    _section("Re-request inside a frame")
    clock = FakeClock()
    sched = Scheduler(clock=clock, frame_ms=16)
    calls = []

    def once(now):
        calls.append(now)
        sched.request_frame(calls.append)

    sched.request_frame(once)
    sched.pump()
    assert calls == [0]
    assert sched.pending() == 1
    print("✓ newly requested frame deferred to the next pump")


def test_cancel_by_earlier_callback():
    _section("Cancellation within one pump")
    clock = FakeClock()
    sched = Scheduler(clock=clock)
    fired = []
    handles = {}
    handles["a"] = sched.set_interval(50, lambda: sched.clear_interval(handles["b"]))
    handles["b"] = sched.set_interval(50, lambda: fired.append("b"))
    frame = sched.request_frame(lambda now: fired.append("frame"))
    sched.set_interval(50, lambda: sched.cancel_frame(frame))
    clock.now = 50
    sched.pump()
    assert fired == [], fired
    print("✓ callbacks cancelled earlier in the pump do not run")


def test_run_stops_when_asked():
    _section("Sync driver")
    sched = Scheduler()
    counter = {"n": 0}

    def keep_going():
        counter["n"] += 1
        return counter["n"] <= 3

    seen = []
    sched.request_frame(seen.append)
    sched.run(keep_going)
    assert counter["n"] == 4
    assert len(seen) == 1
    print("✓ run() returned after keep_going() went False")


def test_run_async_stops_when_asked():
    _section("Async driver")
    sched = Scheduler()
    counter = {"n": 0}

    def keep_going():
        counter["n"] += 1
        return counter["n"] <= 3

    asyncio.run(sched.run_async(keep_going))
    assert counter["n"] == 4
    print("✓ run_async() returned after keep_going() went False")


def test_scripted_tilt_subscription():
    _section("ScriptedTilt subscribe / unsubscribe")
    clock = FakeClock()
    sched = Scheduler(clock=clock)
    sensor = ScriptedTilt(sched, [1.0, 2.0, 3.0])
    got = []
    unsubscribe = sensor.subscribe(16, got.append)
    assert sched.pending() == 1
    for t in (16, 32, 48, 64):
        clock.now = t
        sched.pump()
    assert got == [1.0, 2.0, 3.0, 3.0], got
    unsubscribe()
    unsubscribe()
    assert sched.pending() == 0
    clock.now = 200
    sched.pump()
    assert len(got) == 4
    print("✓ last value held; unsubscribe removes the timer exactly once")


def test_scripted_tilt_loop_and_constant():
    _section("ScriptedTilt loop / constant")
    sched = Scheduler(clock=FakeClock())
    looped = ScriptedTilt(sched, [1, -1], loop=True)
    assert [looped.read() for _ in range(5)] == [1, -1, 1, -1, 1]
    const = ScriptedTilt(sched, 0.5)
    assert [const.read() for _ in range(3)] == [0.5, 0.5, 0.5]
    assert TiltSource(sched).read() == 0.0
    print("✓ loop wraps, a scalar repeats, the base source reads 0")


def run_all_tests():
    tests = [
        ("interval schedule", test_interval_fires_on_schedule),
        ("late interval", test_late_interval_fires_once_and_rebases),
        ("clear interval", test_clear_interval),
        ("interval validation", test_rejects_non_positive_interval),
        ("frame one-shot", test_frame_callbacks_are_one_shot),
        ("frame throttle", test_frame_rate_is_throttled),
        ("frame re-request", test_frame_requested_inside_frame_waits_for_next),
        ("cancel in pump", test_cancel_by_earlier_callback),
        ("sync driver", test_run_stops_when_asked),
        ("async driver", test_run_async_stops_when_asked),
        ("scripted tilt", test_scripted_tilt_subscription),
        ("scripted tilt loop", test_scripted_tilt_loop_and_constant),
    ]
    failed = 0
    for name, test_func in tests:
        try:
            test_func()
            print("  ✓ PASS", name)
        except Exception as e:
            failed += 1
            print("  ✗ FAIL", name, "-", repr(e))
    print(f"\nResult: {len(tests) - failed}/{len(tests)} tests passed")
    return 1 if failed else 0


if __name__ == "__main__":
    sys.exit(run_all_tests())
