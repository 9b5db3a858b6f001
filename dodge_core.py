"""
Core of Tilt Dodge: configuration, game state and the real-time loop.

The player rides along the bottom of a vertical track and steers left/right
with a tilt signal while cars scroll down toward them. Surviving earns one
point every score tick; touching a car ends the run until restart.

All state lives in one `Session` owned by a `DodgeGame`. The periodic drivers
(frame loop, spawn timer, score timer, tilt samples) each receive the session
by reference and begin with the same cooperative guard, ``session.active``.
Nothing else synchronises them: they interleave on a single thread and every
mutation is published by assigning the new value in place.
"""

import itertools
import math
import random

from game_utils import Rect, SpringSmoother, clamp, intersects, log, ticks_diff

# ---------- Defaults ----------
SCREEN_WIDTH = 360
SCREEN_HEIGHT = 640

SPAWN_INTERVAL_MS = 900
SCORE_INTERVAL_MS = 250
SENSOR_INTERVAL_MS = 16
FRAME_MS = 16

SENSITIVITY = 150
SPRING_STIFFNESS = 900.0

OBSTACLE_SPAWN_Y = -80
OBSTACLE_BASE_H = 26
OBSTACLE_EXTRA_H = 20
OBSTACLE_MIN_SPEED = 120
OBSTACLE_SPEED_RANGE = 60
CULL_MARGIN = 120
MAX_OBSTACLES = 24

CAR_VISUALS = ("car1", "car2", "car3", "car4")
PLAYER_VISUAL = "bike"


class DodgeConfig:
    """
    Tunable constants for one playfield.

    Sizes are derived from the screen size with the proportions of the
    phone layout: 8% side padding, a player 18% of the path wide (at most
    64 units) and 10% taller than wide, parked at 80% of the screen height.
    Any attribute can be overridden by keyword and the derived sizes
    follow the overridden ones. Unknown names raise TypeError and
    values that do not fit the screen raise ValueError.
    """

    def __init__(self, width=SCREEN_WIDTH, height=SCREEN_HEIGHT, **overrides):
        self.width = width
        self.height = height

        # each size defaults from the ones above it
        self.path_padding = overrides.pop("path_padding", 0.08 * width)
        self.path_width = overrides.pop("path_width", width - self.path_padding * 2)
        self.player_w = overrides.pop("player_w", min(64, self.path_width * 0.18))
        self.player_h = overrides.pop("player_h", self.player_w * 1.1)
        self.player_y = overrides.pop("player_y", height * 0.8)

        self.ob_min_w = overrides.pop("ob_min_w", self.player_w * 0.7)
        self.ob_max_w = overrides.pop("ob_max_w", self.player_w * 1.4)
        self.ob_base_h = OBSTACLE_BASE_H
        self.ob_extra_h = OBSTACLE_EXTRA_H
        self.ob_min_speed = OBSTACLE_MIN_SPEED
        self.ob_speed_range = OBSTACLE_SPEED_RANGE
        self.spawn_y = OBSTACLE_SPAWN_Y
        self.cull_margin = CULL_MARGIN
        self.max_obstacles = MAX_OBSTACLES
        self.visuals = CAR_VISUALS

        self.spawn_interval_ms = SPAWN_INTERVAL_MS
        self.score_interval_ms = SCORE_INTERVAL_MS
        self.sensor_interval_ms = SENSOR_INTERVAL_MS
        self.frame_ms = FRAME_MS

        self.sensitivity = SENSITIVITY
        self.spring_stiffness = SPRING_STIFFNESS
        self.spring_damping = None  # None -> critical damping

        for name, value in overrides.items():
            if not hasattr(self, name):
                raise TypeError(f"unknown setting {name!r}")
            setattr(self, name, value)
        self.validate()

    @property
    def track_width(self):
        """Range of the player's lateral offset: [0, track_width]."""
        return self.path_width - self.player_w

    @property
    def cull_y(self):
        """Obstacles whose top edge passes this line are dropped."""
        return self.height + self.cull_margin

    def validate(self):
        """Raise ValueError if the settings cannot produce a playable field."""
        if self.path_width <= 0 or self.player_w <= 0 or self.player_h <= 0:
            raise ValueError("track and player sizes must be positive")
        if self.track_width < 0:
            raise ValueError("player is wider than the path")
        if self.path_padding < 0 or self.path_padding + self.path_width > self.width + 1e-9:
            raise ValueError("path must lie inside the screen width")
        if self.player_y < 0 or self.player_y + self.player_h > self.height + 1e-9:
            raise ValueError("player must lie inside the screen height")
        if not 0 < self.ob_min_w <= self.ob_max_w <= self.path_width:
            raise ValueError(
                "obstacle widths must satisfy 0 < min <= max <= path width"
            )
        if self.ob_base_h <= 0 or self.ob_extra_h < 0:
            raise ValueError("obstacle heights must be positive")
        if self.ob_min_speed < 0 or self.ob_speed_range < 0:
            raise ValueError("obstacle speeds must be non-negative")
        for name in (
            "spawn_interval_ms",
            "score_interval_ms",
            "sensor_interval_ms",
            "frame_ms",
        ):
            if getattr(self, name) <= 0:
                raise ValueError(f"{name} must be positive")
        if self.max_obstacles < 1:
            raise ValueError("max_obstacles must be at least 1")
        if not self.visuals:
            raise ValueError("at least one obstacle visual is required")
        if self.spring_stiffness <= 0:
            raise ValueError("spring_stiffness must be positive")


class Obstacle:
    """One falling car. Only `y` changes after spawn."""

    __slots__ = ("id", "x", "y", "w", "h", "speed", "visual")

    def __init__(self, id, x, y, w, h, speed, visual):
        self.id = id
        self.x = x
        self.y = y
        self.w = w
        self.h = h
        self.speed = speed
        self.visual = visual

    def __repr__(self):
        return (
            f"Obstacle(id={self.id!r}, x={self.x:.1f}, y={self.y:.1f}, "
            f"w={self.w:.1f}, h={self.h:.1f}, speed={self.speed:.1f})"
        )


class Player:
    """
    The bike. Its lateral offset is the only state the game changes.

    Assigning `offset` clamps into [0, track_width], so no caller can push
    the player off the track.
    """

    def __init__(self, config):
        self.config = config
        self.spring = SpringSmoother(config.spring_stiffness, config.spring_damping)
        self._offset = 0.0
        self.target = 0.0
        self.recenter()

    @property
    def offset(self):
        return self._offset

    @offset.setter
    def offset(self, value):
        if not math.isfinite(value):
            return
        self._offset = clamp(value, 0, self.config.track_width)

    def recenter(self):
        """Park in the middle of the track with no motion in progress."""
        self.offset = self.config.track_width / 2
        self.target = self._offset
        self.spring.reset()

    def rect(self):
        """Collision rectangle in screen coordinates."""
        cfg = self.config
        return Rect(cfg.path_padding + self._offset, cfg.player_y, cfg.player_w, cfg.player_h)


class Session:
    """
    Run state shared by every driver.

    States: Active (running, not over) -> Over (stopped, over) -> Active via
    `reset`. `running` and `game_over` are never both true.
    """

    def __init__(self, config):
        self.config = config
        self.player = Player(config)
        self.obstacles = []
        self.running = True
        self.game_over = False
        self.score = 0
        self.last_ms = None

    @property
    def active(self):
        """The guard every periodic callback checks before acting."""
        return self.running and not self.game_over

    def end(self):
        """
        Active -> Over. Returns False if the session was not active.

        Only the simulation step calls this, on collision.
        """
        if not self.active:
            return False
        self.running = False
        self.game_over = True
        return True

    def reset(self, now_ms=None):
        """Back to the initial Active state; `now_ms` is the new time baseline."""
        self.obstacles = []
        self.score = 0
        self.player.recenter()
        self.last_ms = now_ms
        self.running = True
        self.game_over = False

    def snapshot(self):
        """Observable state as plain data (for presenters, logs and tests)."""
        return {
            "running": self.running,
            "game_over": self.game_over,
            "score": self.score,
            "offset": self.player.offset,
            "obstacles": [
                (ob.id, ob.x, ob.y, ob.w, ob.h, ob.speed, ob.visual)
                for ob in self.obstacles
            ],
        }


class Presenter:
    """
    Rendering collaborator. The core feeds it state and never waits on it.

    Override the hooks you need; the defaults do nothing, which is also what
    headless runs and tests use.
    """

    def render(self, obstacles, player_offset):
        """Draw one frame of obstacles and the player."""
        pass

    def show_state(self, score, game_over):
        """Update score / game-over UI."""
        pass

    def on_collision(self, obstacle):
        """Fire-and-forget alert (flash, buzz) for the hit `obstacle`."""
        pass


class ObstacleSpawner:
    """Adds one randomized car per spawn tick while the session is active."""

    def __init__(self, session, config, rng=None):
        self.session = session
        self.config = config
        self.rng = rng or random
        self._ids = itertools.count(1)

    def on_timer(self):
        """Spawn-timer callback. Returns the new obstacle, or None."""
        if not self.session.active:
            return None
        if len(self.session.obstacles) >= self.config.max_obstacles:
            log("SPAWN", f"skipped, {len(self.session.obstacles)} live obstacles")
            return None
        ob = self.make_obstacle()
        self.session.obstacles.append(ob)
        return ob

    def make_obstacle(self):
        cfg = self.config
        rng = self.rng
        w = rng.uniform(cfg.ob_min_w, cfg.ob_max_w)
        x = cfg.path_padding + rng.uniform(0, cfg.path_width - w)
        # uniform() may round onto the upper bound; keep the car inside the path
        x = clamp(x, cfg.path_padding, cfg.path_padding + cfg.path_width - w)
        return Obstacle(
            id=f"ob{next(self._ids)}",
            x=x,
            y=cfg.spawn_y,
            w=w,
            h=cfg.ob_base_h + rng.uniform(0, cfg.ob_extra_h),
            speed=cfg.ob_min_speed + rng.uniform(0, cfg.ob_speed_range),
            visual=rng.choice(cfg.visuals),
        )


class TiltController:
    """
    Turns tilt samples into player motion.

    Samples only move the target; `animate` eases the player toward it once
    per frame, so the sensor rate and the frame rate stay independent.
    """

    def __init__(self, session, config):
        self.session = session
        self.config = config

    def on_sample(self, tilt):
        """Sensor callback. Returns True if the sample was used."""
        if not self.session.active:
            return False
        if not math.isfinite(tilt):
            return False
        player = self.session.player
        player.target = clamp(
            player.offset - tilt * self.config.sensitivity, 0, self.config.track_width
        )
        return True

    def animate(self, dt):
        if not self.session.active:
            return
        player = self.session.player
        player.offset = player.spring.step(player.offset, player.target, dt)


class ScoreAccumulator:
    """One point per score tick while the run is alive."""

    def __init__(self, session):
        self.session = session

    def on_timer(self):
        if not self.session.active:
            return
        self.session.score += 1


class SimulationStep:
    """
    Per-frame update: move cars, drop the ones that left the screen, test
    the player for a hit.
    """

    def __init__(self, session, config, controller, presenter=None):
        self.session = session
        self.config = config
        self.controller = controller
        self.presenter = presenter or Presenter()

    def tick(self, now_ms):
        """
        Frame callback body. Measures dt from the wall clock and steps.

        The first tick after a baseline reset uses dt = 0.
        """
        session = self.session
        if not session.active:
            return None
        if session.last_ms is None:
            dt = 0.0
        else:
            dt = max(0, ticks_diff(now_ms, session.last_ms)) / 1000
        session.last_ms = now_ms
        return self.step(dt)

    def step(self, dt):
        """
        Advance the world by `dt` seconds.

        Returns:
            Obstacle | None: The first obstacle hit this step; the session
            is Over when this is not None.
        """
        session = self.session
        if not session.active:
            return None
        if not (dt > 0 and math.isfinite(dt)):
            dt = 0.0

        self.controller.animate(dt)

        cull_y = self.config.cull_y
        survivors = []
        for ob in session.obstacles:
            ob.y += ob.speed * dt
            if ob.y <= cull_y:
                survivors.append(ob)
        session.obstacles = survivors

        player_rect = session.player.rect()
        for ob in survivors:
            if intersects(player_rect, ob):
                self.presenter.on_collision(ob)
                session.end()
                return ob
        return None


class DodgeGame:
    """
    Wires the session and its drivers to a scheduler and a tilt source.

    `start` registers the spawn and score timers, the sensor subscription
    and the first frame; `stop` removes every one of them. A collision stops
    everything the same way, and `restart` is stop + reset + start.
    """

    def __init__(self, scheduler, sensor, presenter=None, config=None, rng=None):
        self.scheduler = scheduler
        self.sensor = sensor
        self.presenter = presenter or Presenter()
        self.config = config or DodgeConfig()
        self.session = Session(self.config)
        self.spawner = ObstacleSpawner(self.session, self.config, rng)
        self.controller = TiltController(self.session, self.config)
        self.scorer = ScoreAccumulator(self.session)
        self.simulation = SimulationStep(
            self.session, self.config, self.controller, self.presenter
        )
        self._armed = False
        self._spawn_timer = None
        self._score_timer = None
        self._unsubscribe = None
        self._frame = None

    # ---------- lifecycle ----------
    def start(self):
        """Register all drivers. No-op if already armed or the run is over."""
        if self._armed or not self.session.active:
            return
        self._armed = True
        self.session.last_ms = self.scheduler.clock()
        sched = self.scheduler
        self._unsubscribe = self.sensor.subscribe(
            self.config.sensor_interval_ms, self.controller.on_sample
        )
        self._spawn_timer = sched.set_interval(self.config.spawn_interval_ms, self.spawner.on_timer)
        self._score_timer = sched.set_interval(self.config.score_interval_ms, self._on_score)
        self._frame = sched.request_frame(self._on_frame)
        self.presenter.show_state(self.session.score, self.session.game_over)

    def stop(self):
        """Remove every registration made by `start`. Safe to repeat."""
        self._armed = False
        if self._unsubscribe is not None:
            self._unsubscribe()
            self._unsubscribe = None
        if self._spawn_timer is not None:
            self.scheduler.clear_interval(self._spawn_timer)
            self._spawn_timer = None
        if self._score_timer is not None:
            self.scheduler.clear_interval(self._score_timer)
            self._score_timer = None
        if self._frame is not None:
            self.scheduler.cancel_frame(self._frame)
            self._frame = None

    def restart(self):
        """User-requested restart; valid from any state."""
        self.stop()
        self.session.reset(self.scheduler.clock())
        log("GAME", "restart")
        self.start()
        self._publish()

    @property
    def armed(self):
        return self._armed

    def pending_registrations(self):
        """Number of scheduler entries this game currently owns."""
        count = 0
        for ref in (self._unsubscribe, self._spawn_timer, self._score_timer, self._frame):
            if ref is not None:
                count += 1
        return count

    # ---------- drivers ----------
    def _on_score(self):
        before = self.session.score
        self.scorer.on_timer()
        if self.session.score != before:
            self.presenter.show_state(self.session.score, self.session.game_over)

    def _on_frame(self, now_ms):
        self._frame = None
        if not self.session.active:
            return
        hit = self.simulation.tick(now_ms)
        self._publish()
        if hit is not None:
            log("GAME", f"over score={self.session.score} hit={hit.id}")
            self.stop()
            return
        if self._armed:
            self._frame = self.scheduler.request_frame(self._on_frame)

    def _publish(self):
        session = self.session
        self.presenter.show_state(session.score, session.game_over)
        self.presenter.render(session.obstacles, session.player.offset)
