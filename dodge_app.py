"""
PyGame front end for Tilt Dodge.

This file holds everything the player sees and touches: the window, the road
and car drawing, the HUD and game-over overlay, the collision flash standing
in for a vibration buzz, and the keyboard handling for restart/quit. It runs
both on desktop CPython and in the browser through pygbag; the browser path
uses `async_main` so the event loop gets control every frame.
"""

import asyncio
import traceback

import env
from dodge_core import PLAYER_VISUAL, DodgeConfig, DodgeGame, Presenter
from game_utils import log, ticks_diff, ticks_ms
from scheduler import Scheduler
from tilt_sensor import DesktopTilt

# ---------- Colours ----------
C_BG = (7, 59, 76)
C_ROAD = (20, 20, 30)
C_STRIPE = (45, 45, 65)
C_WHITE = (255, 255, 255)
C_DIM = (160, 160, 180)
C_BUTTON = (255, 209, 102)
C_BUTTON_TEXT = (4, 42, 43)
C_OVER = (255, 107, 107)
C_PLAY_AGAIN = (6, 214, 160)
C_FLASH = (255, 40, 40)

VISUAL_COLORS = {
    "car1": (255, 65, 85),
    "car2": (255, 155, 20),
    "car3": (170, 65, 255),
    "car4": (80, 200, 255),
    PLAYER_VISUAL: (255, 230, 0),
}

# Road stripes scroll one 40-unit period every 1.4 s while a run is alive.
STRIPE_PERIOD = 40
STRIPE_LOOP_MS = 1400
STRIPE_LEN = 22

FLASH_MS = 250
REFRESH_MS = 33


class RestartProgram(Exception):
    """
    Raised by the input poller when the player asks for a new run.

    The main loop catches it and calls back into the game's restart.
    """

    pass


class PyGameScreen:
    """Thin wrapper over a PyGame window with the drawing calls we need."""

    def __init__(self, w, h, caption="Tilt Dodge"):
        """
        Args:
            w (int): Window width in pixels.
            h (int): Window height in pixels.
            caption (str): Window title.
        """
        self.w = int(w)
        self.h = int(h)
        self.caption = caption
        self._pg = None
        self._screen = None
        self._font = None
        self._small = None
        self._inited = False

    def start(self):
        """
        Open the window. Idempotent.

        Raises:
            RuntimeError: PyGame is not installed.
        """
        if self._inited:
            return
        try:
            import pygame  # type: ignore
        except Exception as e:
            raise RuntimeError(
                "PyGame not installed. Install with: pip install pygame"
            ) from e
        self._pg = pygame
        pygame.init()
        # pygbag cannot open an audio device before a user gesture
        if env.is_browser and hasattr(pygame, "mixer"):
            pygame.mixer.quit()
        pygame.display.set_caption(self.caption)
        self._screen = pygame.display.set_mode((self.w, self.h))
        self._font = pygame.font.Font(None, 44)
        self._small = pygame.font.Font(None, 26)
        self._inited = True
        self.clear()
        self.show()

    @property
    def pygame(self):
        return self._pg

    def clear(self, color=C_BG):
        if self._screen:
            self._screen.fill(color)

    def fill_rect(self, x, y, w, h, color, radius=0):
        if not self._screen:
            return
        self._pg.draw.rect(
            self._screen, color, (int(x), int(y), int(w), int(h)), border_radius=radius
        )

    def draw_text(self, x, y, text, color, small=False, center=False):
        if not self._screen:
            return
        font = self._small if small else self._font
        surf = font.render(str(text), True, color)
        if center:
            x -= surf.get_width() // 2
        self._screen.blit(surf, (int(x), int(y)))

    def show(self):
        """Present the frame."""
        if not self._screen:
            return
        self._pg.display.flip()

    def close(self):
        if self._inited:
            self._pg.quit()
            self._inited = False
            self._screen = None


class PyGamePresenter(Presenter):
    """Draws the game state handed over by the core once per frame."""

    def __init__(self, screen, config, clock=ticks_ms):
        self.screen = screen
        self.config = config
        self.clock = clock
        self.score = 0
        self.game_over = False
        self._flash_until = None
        self._stripe_ms = 0
        self._stripe_last = None
        self._last_frame = ((), 0.0)
        self._last_draw = None

    # ---------- Presenter hooks ----------
    def render(self, obstacles, player_offset):
        cfg = self.config
        self._last_frame = (obstacles, player_offset)
        scr = self.screen
        now = self.clock()
        self._last_draw = now

        scr.clear()
        scr.fill_rect(cfg.path_padding, 0, cfg.path_width, cfg.height, C_ROAD)
        self._draw_stripes(now)

        for ob in obstacles:
            self._draw_car(ob.x, ob.y, ob.w, ob.h, VISUAL_COLORS.get(ob.visual, C_DIM))

        self._draw_car(
            cfg.path_padding + player_offset,
            cfg.player_y,
            cfg.player_w,
            cfg.player_h,
            VISUAL_COLORS[PLAYER_VISUAL],
        )

        self._draw_hud()
        if self.game_over:
            self._draw_overlay()
        if self._flash_until is not None:
            if ticks_diff(now, self._flash_until) < 0:
                scr.fill_rect(0, 0, cfg.width, 6, C_FLASH)
                scr.fill_rect(0, cfg.height - 6, cfg.width, 6, C_FLASH)
            else:
                self._flash_until = None
        scr.show()

    def show_state(self, score, game_over):
        self.score = score
        self.game_over = game_over

    def on_collision(self, obstacle):
        log("BUZZ", obstacle.id)
        self._flash_until = self.clock() + FLASH_MS

    def refresh(self):
        """Redraw the last frame; keeps the overlay up while no run is ticking."""
        if self._last_draw is not None and ticks_diff(self.clock(), self._last_draw) < REFRESH_MS:
            return
        self.render(*self._last_frame)

    # ---------- input ----------
    def poll(self):
        """
        Handle window events.

        Returns:
            bool: False when the player closed the window or pressed Escape.

        Raises:
            RestartProgram: R, Enter or Space was pressed.
        """
        pg = self.screen.pygame
        if pg is None:
            return True
        for event in pg.event.get():
            if event.type == pg.QUIT:
                return False
            if event.type == pg.KEYDOWN:
                if event.key == pg.K_ESCAPE:
                    return False
                if event.key in (pg.K_r, pg.K_RETURN, pg.K_SPACE):
                    raise RestartProgram()
        return True

    # ---------- drawing ----------
    def _draw_stripes(self, now):
        if self._stripe_last is not None and not self.game_over:
            self._stripe_ms += max(0, ticks_diff(now, self._stripe_last))
        self._stripe_last = now
        shift = (self._stripe_ms % STRIPE_LOOP_MS) * STRIPE_PERIOD // STRIPE_LOOP_MS
        cx = self.config.width / 2 - 2
        y = shift - STRIPE_PERIOD
        while y < self.config.height:
            self.screen.fill_rect(cx, y, 4, STRIPE_LEN, C_STRIPE)
            y += STRIPE_PERIOD

    def _draw_car(self, x, y, w, h, color):
        scr = self.screen
        scr.fill_rect(x, y, w, h, color, radius=6)
        # windscreen band
        scr.fill_rect(x + 4, y + h * 0.2, w - 8, max(3, h * 0.18), (35, 8, 8), radius=3)

    def _draw_hud(self):
        cfg = self.config
        self.screen.draw_text(cfg.width / 2, 18, self.score, C_WHITE, center=True)
        label = "R: restart"
        self.screen.fill_rect(cfg.width / 2 - 56, cfg.height - 48, 112, 30, C_BUTTON, radius=8)
        self.screen.draw_text(cfg.width / 2, cfg.height - 42, label, C_BUTTON_TEXT, small=True, center=True)

    def _draw_overlay(self):
        cfg = self.config
        top = cfg.height * 0.28
        self.screen.fill_rect(30, top, cfg.width - 60, 170, (0, 0, 0), radius=12)
        self.screen.draw_text(cfg.width / 2, top + 22, "GAME OVER", C_OVER, center=True)
        self.screen.draw_text(
            cfg.width / 2, top + 72, f"Score: {self.score}", C_WHITE, small=True, center=True
        )
        self.screen.fill_rect(cfg.width / 2 - 70, top + 110, 140, 36, C_PLAY_AGAIN, radius=8)
        self.screen.draw_text(
            cfg.width / 2, top + 119, "Play Again (R)", C_BUTTON_TEXT, small=True, center=True
        )


def build_game(config=None, clock=ticks_ms):
    """Create the screen, scheduler, sensor, presenter and game for one window."""
    config = config or DodgeConfig()
    screen = PyGameScreen(config.width, config.height)
    scheduler = Scheduler(clock=clock, frame_ms=config.frame_ms)
    presenter = PyGamePresenter(screen, config, clock=clock)
    game = DodgeGame(scheduler, DesktopTilt(scheduler), presenter, config)
    return screen, scheduler, presenter, game


def main():
    """
    Desktop entry point.

    Opens the window and runs until it is closed. A restart key press
    arrives as `RestartProgram`; any unexpected error is printed with its
    traceback and the run starts over rather than leaving a dead window.
    """
    env.require_desktop()
    log("BOOT", "platform", env.get_platform_name())
    screen, scheduler, presenter, game = build_game()
    screen.start()
    state = {"alive": True}

    def keep_going():
        state["alive"] = presenter.poll()
        if state["alive"] and not game.session.active:
            presenter.refresh()
        return state["alive"]

    try:
        game.start()
        while state["alive"]:
            try:
                scheduler.run(keep_going)
            except RestartProgram:
                game.restart()
            except Exception as e:
                print("Error:", e)
                traceback.print_exc()
                game.restart()
    finally:
        game.stop()
        screen.close()


async def async_main():
    """Browser (pygbag) entry point; same loop as `main` but cooperative."""
    log("BOOT", "platform", env.get_platform_name())
    screen, scheduler, presenter, game = build_game()
    screen.start()
    state = {"alive": True}

    def keep_going():
        state["alive"] = presenter.poll()
        if state["alive"] and not game.session.active:
            presenter.refresh()
        return state["alive"]

    # yield once so the browser can paint the first frame
    await asyncio.sleep(0)
    try:
        game.start()
        while state["alive"]:
            try:
                await scheduler.run_async(keep_going)
            except RestartProgram:
                game.restart()
            except Exception as e:
                print("Error during game loop:", e)
                traceback.print_exc()
                game.restart()
            await asyncio.sleep(0)
    finally:
        game.stop()
        screen.close()


if __name__ == "__main__":
    if env.is_browser:
        asyncio.run(async_main())
    else:
        main()
