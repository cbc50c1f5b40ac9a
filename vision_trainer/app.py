"""Pygame UI shell for the Vision Trainer.

Menus pick a training module and a difficulty; the game screen draws the live
stimulus from the session snapshot and forwards input. Timing, scoring, RNG
and state live in vision_trainer/* (core modules); this file only renders
and routes events.
"""

from __future__ import annotations

import datetime as dt
import logging
import math
import random
from collections.abc import Callable
from dataclasses import dataclass
from typing import Protocol

import pygame

from .approach import ZONE_HALF_WIDTH
from .clock import FrameTickScheduler, RealClock
from .config import TrainerSettings
from .difficulty import MAX_LEVEL, MIN_LEVEL, PROFILES
from .game_core import GamePhase
from .judge import Verdict
from .persistence import SqliteResultStore
from .progress import (
    BADGE_INFO,
    MODULE_INFO,
    BadgeKey,
    award_new_badges,
    calculate_vision_profile,
    dashboard_stats,
)
from .session import GameSession, SessionEvent, SessionEnded, SessionSnapshot, build_game_session
from .stimulus import StimulusKind
from .variants import BALL_NUMBER_HUNT, BALL_NUMBER_KEYPAD, PITCHER_REACTION, GameVariant, ResponseMode

logger = logging.getLogger(__name__)


class Screen(Protocol):
    def handle_event(self, event: pygame.event.Event) -> None: ...
    def render(self, surface: pygame.Surface) -> None: ...


@dataclass(frozen=True, slots=True)
class MenuItem:
    label: str
    action: Callable[[], None]


WINDOW_SIZE = (960, 540)
HUD_HEIGHT = 56

BG = (3, 9, 78)
PANEL_BG = (8, 18, 104)
BORDER = (226, 236, 255)
TEXT_MAIN = (238, 245, 255)
TEXT_MUTED = (186, 200, 224)
FIELD_DIRT = (132, 92, 58)
FIELD_GRASS = (26, 96, 48)

VERDICT_COLORS: dict[Verdict, tuple[int, int, int]] = {
    Verdict.HIT: (120, 230, 140),
    Verdict.CORRECT_ANSWER: (120, 230, 140),
    Verdict.FAKE_IGNORED: (150, 200, 255),
    Verdict.BALL_IGNORED: (186, 200, 224),
    Verdict.FALSE_ALARM: (255, 140, 120),
    Verdict.FAKE_TAPPED: (255, 140, 120),
    Verdict.WRONG_ANSWER: (255, 140, 120),
    Verdict.MISSED: (255, 190, 90),
}

_CHOICE_KEYS = {
    pygame.K_1: 0,
    pygame.K_2: 1,
    pygame.K_3: 2,
    pygame.K_4: 3,
    pygame.K_KP1: 0,
    pygame.K_KP2: 1,
    pygame.K_KP3: 2,
    pygame.K_KP4: 3,
}


class App:
    def __init__(self, surface: pygame.Surface, font: pygame.font.Font) -> None:
        self._surface = surface
        self._font = font
        self._screens: list[Screen] = []
        self._running = True

    @property
    def running(self) -> bool:
        return self._running

    @property
    def font(self) -> pygame.font.Font:
        return self._font

    def push(self, screen: Screen) -> None:
        self._screens.append(screen)

    def pop(self) -> None:
        # The root screen handles its own quit/back behavior.
        if len(self._screens) > 1:
            self._screens.pop()

    def quit(self) -> None:
        self._running = False

    def handle_event(self, event: pygame.event.Event) -> None:
        if event.type == pygame.QUIT:
            self.quit()
            return
        if not self._screens:
            return
        self._screens[-1].handle_event(event)

    def render(self) -> None:
        if not self._screens:
            return
        self._screens[-1].render(self._surface)


def _fit_label(font: pygame.font.Font, label: str, max_width: int) -> str:
    if max_width <= 0:
        return ""
    if font.size(label)[0] <= max_width:
        return label
    clipped = label
    while clipped and font.size(f"{clipped}...")[0] > max_width:
        clipped = clipped[:-1]
    return f"{clipped}..." if clipped else "..."


def _draw_frame(surface: pygame.Surface, title: str, font: pygame.font.Font) -> pygame.Rect:
    """Panel with a title bar; returns the content rect below the bar."""

    w, h = surface.get_size()
    surface.fill(BG)
    margin = max(10, min(26, w // 34))
    frame = pygame.Rect(margin, margin, max(260, w - margin * 2), max(220, h - margin * 2))
    pygame.draw.rect(surface, PANEL_BG, frame)
    pygame.draw.rect(surface, BORDER, frame, 2)

    header_h = max(34, min(52, h // 8))
    header = pygame.Rect(frame.x + 2, frame.y + 2, frame.w - 4, header_h)
    pygame.draw.line(surface, BORDER, (header.x, header.bottom), (header.right, header.bottom), 1)
    text = font.render(title, True, TEXT_MAIN)
    surface.blit(text, text.get_rect(center=header.center))
    return pygame.Rect(frame.x + 16, header.bottom + 12, frame.w - 32, frame.bottom - header.bottom - 24)


class MenuScreen:
    def __init__(
        self,
        app: App,
        title: str,
        items: list[MenuItem],
        *,
        is_root: bool = False,
        selected: int = 0,
    ) -> None:
        self._app = app
        self._title = title
        self._items = items
        self._selected = selected % len(items) if items else 0
        self._is_root = is_root
        self._title_font = pygame.font.Font(None, 42)
        self._item_font = pygame.font.Font(None, 32)
        self._hint_font = pygame.font.Font(None, 22)

    @property
    def selected(self) -> int:
        return self._selected

    def handle_event(self, event: pygame.event.Event) -> None:
        if event.type != pygame.KEYDOWN:
            return
        key = event.key
        if key in (pygame.K_UP, pygame.K_w):
            self._move(-1)
        elif key in (pygame.K_DOWN, pygame.K_s):
            self._move(1)
        elif key in (pygame.K_RETURN, pygame.K_KP_ENTER, pygame.K_SPACE):
            if self._items:
                self._items[self._selected].action()
        elif key in (pygame.K_ESCAPE, pygame.K_BACKSPACE):
            if self._is_root:
                self._app.quit()
            else:
                self._app.pop()

    def _move(self, delta: int) -> None:
        if self._items:
            self._selected = (self._selected + delta) % len(self._items)

    def render(self, surface: pygame.Surface) -> None:
        content = _draw_frame(surface, self._title, self._title_font)

        row_h = max(30, min(44, content.h // max(1, len(self._items) + 1)))
        y = content.y + 8
        for idx, item in enumerate(self._items):
            row = pygame.Rect(content.x, y, content.w, row_h - 6)
            selected = idx == self._selected
            pygame.draw.rect(surface, (244, 248, 255) if selected else (9, 20, 106), row)
            pygame.draw.rect(surface, (62, 84, 152), row, 1)
            color = (14, 26, 74) if selected else TEXT_MAIN
            label = _fit_label(self._item_font, item.label, row.w - 20)
            text = self._item_font.render(label, True, color)
            surface.blit(text, (row.x + 10, row.y + (row.h - text.get_height()) // 2))
            y += row_h

        foot = self._hint_font.render("Enter/Space: Select  |  Esc/Backspace: Back", True, TEXT_MUTED)
        surface.blit(foot, foot.get_rect(midbottom=(surface.get_width() // 2, surface.get_height() - 24)))


class ProgressScreen:
    """Dashboard: totals, streak, vision profile and earned badges."""

    def __init__(self, app: App, *, store: SqliteResultStore, user_id: str) -> None:
        self._app = app
        self._store = store
        self._user_id = user_id
        self._title_font = pygame.font.Font(None, 42)
        self._small_font = pygame.font.Font(None, 26)
        self._lines = self._load_lines()

    def _load_lines(self) -> list[str]:
        try:
            history = self._store.history(self._user_id)
            earned = self._store.earned_badges(self._user_id)
        except Exception:
            logger.warning("could not load progress for %s", self._user_id, exc_info=True)
            return ["Progress unavailable (storage error)."]

        today = dt.datetime.now(dt.timezone.utc).date()
        stats = dashboard_stats(history, today)
        lines = [
            f"Sessions: {stats.total_sessions}   Total score: {stats.total_score}   Streak: {stats.streak} day(s)",
            "",
        ]
        for info in MODULE_INFO:
            m = stats.modules.get(info.id)
            if m is None:
                continue
            reaction = "-" if m.mean_reaction_ms is None else f"{m.mean_reaction_ms:.0f} ms"
            lines.append(
                f"{info.name}: {m.sessions} played, best {m.best_score}, "
                f"accuracy {m.mean_accuracy * 100:.0f}%, reaction {reaction}"
            )
        profile = calculate_vision_profile(history)
        lines.append("")
        lines.append("Vision: " + "  ".join(f"{skill.value} {value}" for skill, value in profile.items()))
        names = [info.name for key, info in BADGE_INFO.items() if key in earned]
        lines.append("Badges: " + (", ".join(names) if names else "none yet"))
        return lines

    def handle_event(self, event: pygame.event.Event) -> None:
        if event.type == pygame.KEYDOWN and event.key in (pygame.K_ESCAPE, pygame.K_BACKSPACE, pygame.K_RETURN):
            self._app.pop()

    def render(self, surface: pygame.Surface) -> None:
        content = _draw_frame(surface, "Progress", self._title_font)
        y = content.y
        for line in self._lines:
            text = self._small_font.render(_fit_label(self._small_font, line, content.w), True, TEXT_MAIN)
            surface.blit(text, (content.x, y))
            y += 28


class GameScreen:
    def __init__(
        self,
        app: App,
        *,
        session: GameSession,
        on_ended: Callable[[SessionEnded], list[BadgeKey]] | None = None,
    ) -> None:
        self._app = app
        self._session = session
        self._on_ended = on_ended
        self._input = ""
        self._new_badges: list[BadgeKey] = []
        self._field = pygame.Rect(0, HUD_HEIGHT, *WINDOW_SIZE)

        self._small_font = pygame.font.Font(None, 26)
        self._big_font = pygame.font.Font(None, 120)
        self._mid_font = pygame.font.Font(None, 48)
        self._number_fonts: dict[int, pygame.font.Font] = {}

        self._unsubscribe = session.subscribe(self._on_event)

    @property
    def session(self) -> GameSession:
        return self._session

    @property
    def typed(self) -> str:
        return self._input

    def _on_event(self, event: SessionEvent) -> None:
        if isinstance(event, SessionEnded):
            self._input = ""
            if self._on_ended is not None:
                self._new_badges = self._on_ended(event)

    def _close(self) -> None:
        self._session.reset()
        self._unsubscribe()
        self._app.pop()

    def handle_event(self, event: pygame.event.Event) -> None:
        phase = self._session.phase

        if event.type == pygame.MOUSEBUTTONDOWN and getattr(event, "button", 0) == 1:
            if phase is GamePhase.PLAYING and self._session.variant.response_mode is ResponseMode.TAP:
                x, y = self._to_field(event.pos)
                self._session.tap(x, y)
            return

        if event.type != pygame.KEYDOWN:
            return
        key = event.key

        if key == pygame.K_ESCAPE:
            if phase is GamePhase.PLAYING:
                self._session.pause()
            else:
                self._close()
            return
        if key == pygame.K_p:
            if phase is GamePhase.PLAYING:
                self._session.pause()
            elif phase is GamePhase.PAUSED:
                self._session.resume()
            return

        if phase in (GamePhase.IDLE, GamePhase.RESULT):
            if key in (pygame.K_RETURN, pygame.K_KP_ENTER, pygame.K_SPACE):
                self._new_badges = []
                self._session.start()
            elif key == pygame.K_BACKSPACE:
                self._close()
            return
        if phase is not GamePhase.PLAYING:
            return

        mode = self._session.variant.response_mode
        if mode is ResponseMode.TAP:
            if key == pygame.K_SPACE:
                self._session.tap()
        elif mode is ResponseMode.CHOICE:
            idx = _CHOICE_KEYS.get(key)
            choices = self._session.snapshot().choices
            if idx is not None and idx < len(choices):
                self._session.answer(choices[idx])
        else:
            if key in (pygame.K_RETURN, pygame.K_KP_ENTER):
                if self._input and self._session.answer(int(self._input)):
                    self._input = ""
            elif key == pygame.K_BACKSPACE:
                self._input = self._input[:-1]
            else:
                ch = getattr(event, "unicode", "")
                if ch and ch.isdigit() and len(self._input) < 2:
                    self._input += ch

    def _to_field(self, pos: tuple[int, int]) -> tuple[float, float]:
        f = self._field
        return (pos[0] - f.x) / f.w, (pos[1] - f.y) / f.h

    def _layout(self, surface: pygame.Surface) -> None:
        w, h = surface.get_size()
        size = max(100, min(w, h - HUD_HEIGHT))
        self._field = pygame.Rect((w - size) // 2, HUD_HEIGHT, size, size)

    def render(self, surface: pygame.Surface) -> None:
        self._layout(surface)
        snap = self._session.snapshot()

        surface.fill(FIELD_GRASS)
        self._render_field(surface)
        self._render_hud(surface, snap)

        if snap.phase is GamePhase.PLAYING:
            self._render_stimulus(surface, snap)
            self._render_response_area(surface, snap)
        elif snap.phase is GamePhase.COUNTDOWN:
            text = self._big_font.render(str(max(1, snap.countdown)), True, TEXT_MAIN)
            surface.blit(text, text.get_rect(center=self._field.center))
        elif snap.phase is GamePhase.PAUSED:
            self._render_center_lines(surface, ["Paused", "P: resume  |  Esc: quit"])
        elif snap.phase is GamePhase.IDLE:
            lines = [snap.title, *self._session.variant.instructions, "", "Enter: start  |  Esc: back"]
            self._render_center_lines(surface, lines)
        else:
            self._render_result(surface, snap)

    def _render_field(self, surface: pygame.Surface) -> None:
        f = self._field
        mound = (f.centerx, f.y + int(f.h * 0.38))
        plate = (f.centerx, f.y + int(f.h * 0.72))
        pygame.draw.polygon(
            surface,
            FIELD_DIRT,
            [(mound[0] - 20, mound[1]), (mound[0] + 20, mound[1]), (plate[0] + 90, plate[1]), (plate[0] - 90, plate[1])],
        )
        pygame.draw.circle(surface, (150, 108, 70), mound, 26)
        pygame.draw.rect(surface, (240, 240, 240), pygame.Rect(plate[0] - 14, plate[1] - 6, 28, 12))
        zone = pygame.Rect(0, 0, int(f.w * ZONE_HALF_WIDTH * 2), int(f.h * 0.16))
        zone.center = (f.centerx, f.y + int(f.h * 0.66))
        pygame.draw.rect(surface, (200, 214, 240), zone, 1)

    def _render_hud(self, surface: pygame.Surface, snap: SessionSnapshot) -> None:
        bar = pygame.Rect(0, 0, surface.get_width(), HUD_HEIGHT)
        pygame.draw.rect(surface, PANEL_BG, bar)
        pygame.draw.line(surface, BORDER, bar.bottomleft, bar.bottomright, 1)

        parts = [
            f"{snap.title}  L{snap.difficulty}",
            f"Score {snap.score}",
            f"Combo x{snap.combo}",
        ]
        if snap.time_remaining_s is not None:
            mm, ss = divmod(max(0, snap.time_remaining_s), 60)
            parts.append(f"Time {mm:d}:{ss:02d}")
        if snap.target_rounds is not None:
            parts.append(f"Round {min(snap.rounds_played + 1, snap.target_rounds)}/{snap.target_rounds}")
        text = self._small_font.render("   ".join(parts), True, TEXT_MAIN)
        surface.blit(text, (16, (HUD_HEIGHT - text.get_height()) // 2))

    def _render_stimulus(self, surface: pygame.Surface, snap: SessionSnapshot) -> None:
        state = snap.approach
        f = self._field
        if state is None:
            last = snap.last_outcome
            if last is not None:
                label = last.verdict.value.replace("_", " ").upper()
                if last.tier is not None and last.verdict.is_success:
                    label = f"{last.tier.value.upper()}  +{last.points_awarded}"
                text = self._mid_font.render(label, True, VERDICT_COLORS[last.verdict])
                surface.blit(text, text.get_rect(center=(f.centerx, f.y + f.h // 5)))
            return

        center = (f.x + int(state.x * f.w), f.y + int(state.y * f.h))
        radius = max(3, int(state.radius * f.h))
        pygame.draw.circle(surface, (255, 255, 255), center, radius)
        if state.round.kind is StimulusKind.FAKE:
            ring = pygame.Rect(0, 0, radius * 2 + 10, radius * 2 + 10)
            ring.center = center
            for i in range(0, 12, 2):
                start = i * math.pi / 6 + state.rotation
                pygame.draw.arc(surface, (255, 200, 60), ring, start, start + math.pi / 6, 2)

        # Seam rotates with spin.
        dx = math.cos(state.rotation) * radius * 0.6
        dy = math.sin(state.rotation) * radius * 0.6
        pygame.draw.line(
            surface,
            (200, 40, 40),
            (int(center[0] - dx), int(center[1] - dy)),
            (int(center[0] + dx), int(center[1] + dy)),
            2,
        )

        if state.number_visible and state.round.displayed_number is not None:
            size = max(18, int(radius * 1.3))
            font = self._number_fonts.get(size)
            if font is None:
                font = self._number_fonts[size] = pygame.font.Font(None, size)
            num = font.render(str(state.round.displayed_number), True, (14, 26, 74))
            surface.blit(num, num.get_rect(center=center))

    def _render_response_area(self, surface: pygame.Surface, snap: SessionSnapshot) -> None:
        mode = self._session.variant.response_mode
        h = surface.get_height()
        if mode is ResponseMode.TAP:
            hint = "Space or click: swing at strikes. Let balls and fakes go."
            text = self._small_font.render(hint, True, TEXT_MUTED)
            surface.blit(text, (16, h - 34))
        elif mode is ResponseMode.CHOICE:
            if not snap.choices:
                return
            box_w = 90
            x0 = surface.get_width() // 2 - (box_w + 12) * len(snap.choices) // 2
            for i, choice in enumerate(snap.choices):
                box = pygame.Rect(x0 + i * (box_w + 12), h - 70, box_w, 48)
                pygame.draw.rect(surface, PANEL_BG, box)
                pygame.draw.rect(surface, BORDER, box, 2)
                text = self._small_font.render(f"{i + 1}: {choice}", True, TEXT_MAIN)
                surface.blit(text, text.get_rect(center=box.center))
        else:
            box = pygame.Rect(16, h - 70, 200, 48)
            pygame.draw.rect(surface, PANEL_BG, box)
            pygame.draw.rect(surface, BORDER, box, 2)
            caret = "|" if (pygame.time.get_ticks() // 500) % 2 == 0 else ""
            text = self._mid_font.render(self._input + caret, True, TEXT_MAIN)
            surface.blit(text, (box.x + 10, box.y + 6))

    def _render_result(self, surface: pygame.Surface, snap: SessionSnapshot) -> None:
        result = snap.result
        if result is None:
            return
        lines = [
            "Results",
            f"Score {result.total_score}   Max combo {result.max_combo}",
            f"Accuracy {result.accuracy * 100:.0f}% ({result.correct_count}/{result.total_attempts})",
            f"Reaction avg {result.avg_reaction_ms} ms   best {result.best_reaction_ms} ms",
        ]
        if self._new_badges:
            lines.append("New: " + ", ".join(BADGE_INFO[k].name for k in self._new_badges))
        lines.append("Enter: play again  |  Esc: back")
        self._render_center_lines(surface, lines)

    def _render_center_lines(self, surface: pygame.Surface, lines: list[str]) -> None:
        f = self._field
        panel = pygame.Rect(0, 0, min(surface.get_width() - 40, 720), 36 * len(lines) + 24)
        panel.center = f.center
        pygame.draw.rect(surface, PANEL_BG, panel)
        pygame.draw.rect(surface, BORDER, panel, 2)
        y = panel.y + 16
        for line in lines:
            text = self._small_font.render(_fit_label(self._small_font, line, panel.w - 24), True, TEXT_MAIN)
            surface.blit(text, text.get_rect(midtop=(panel.centerx, y)))
            y += 36


def _new_seed() -> int:
    return random.SystemRandom().randint(1, 2**31 - 1)


def run(
    *,
    max_frames: int | None = None,
    event_injector: Callable[[int], None] | None = None,
    settings: TrainerSettings | None = None,
) -> int:
    settings = settings or TrainerSettings.from_env()

    pygame.init()
    pygame.display.set_caption("Vision Trainer")
    surface = pygame.display.set_mode(WINDOW_SIZE, pygame.RESIZABLE)

    font = pygame.font.Font(None, 36)
    frame_clock = pygame.time.Clock()

    app = App(surface=surface, font=font)
    real_clock = RealClock()
    scheduler = FrameTickScheduler(real_clock)
    store = SqliteResultStore(settings.db_path)

    def record_progress(event: SessionEnded) -> list[BadgeKey]:
        if not event.persisted:
            return []
        today = dt.datetime.now(dt.timezone.utc).date()
        try:
            return award_new_badges(store, event.result, user_id=settings.user_id, today=today)
        except Exception:
            logger.warning("badge evaluation failed for %s", settings.user_id, exc_info=True)
            return []

    def open_game(variant: GameVariant, difficulty: int) -> None:
        session = build_game_session(
            variant,
            clock=real_clock,
            scheduler=scheduler,
            seed=_new_seed(),
            difficulty=difficulty,
            sink=store,
            user_id=settings.user_id,
        )
        app.pop()  # difficulty menu
        app.push(GameScreen(app, session=session, on_ended=record_progress))

    def difficulty_menu(variant: GameVariant) -> MenuScreen:
        items = [
            MenuItem(
                f"Level {level}: {PROFILES[level].label}",
                lambda level=level: open_game(variant, level),
            )
            for level in range(MIN_LEVEL, MAX_LEVEL + 1)
        ]
        items.append(MenuItem("Back", app.pop))
        return MenuScreen(app, f"{variant.title}: difficulty", items, selected=settings.difficulty - MIN_LEVEL)

    main_items = [
        MenuItem(v.title, lambda v=v: app.push(difficulty_menu(v)))
        for v in (PITCHER_REACTION, BALL_NUMBER_HUNT, BALL_NUMBER_KEYPAD)
    ]
    main_items += [
        MenuItem("Progress", lambda: app.push(ProgressScreen(app, store=store, user_id=settings.user_id))),
        MenuItem("Quit", app.quit),
    ]
    app.push(MenuScreen(app, "Vision Trainer", main_items, is_root=True))

    frame = 0
    try:
        while app.running:
            if event_injector is not None:
                event_injector(frame)

            for event in pygame.event.get():
                app.handle_event(event)

            scheduler.run_frame()
            app.render()

            pygame.display.flip()

            frame += 1
            if max_frames is not None and frame >= max_frames:
                break

            frame_clock.tick(settings.fps)
    finally:
        pygame.quit()

    return 0
