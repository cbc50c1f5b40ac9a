"""Progress rules layered over stored results: badges, streaks, vision profile.

These are thin rule tables. Their inputs come from SessionResult /
HistoryRecord; nothing here touches the live session.
"""

from __future__ import annotations

import datetime as dt
import logging
from collections.abc import Collection, Iterable, Sequence
from dataclasses import dataclass
from enum import StrEnum
from typing import Protocol

from .game_core import clamp, round_half_up
from .results import SessionResult

logger = logging.getLogger(__name__)


class BadgeKey(StrEnum):
    FIRST_PLAY = "first_play"
    STREAK_3 = "streak_3"
    STREAK_7 = "streak_7"
    STREAK_30 = "streak_30"
    REACTION_300MS = "reaction_300ms"
    REACTION_250MS = "reaction_250ms"
    REACTION_200MS = "reaction_200ms"
    ACCURACY_90 = "accuracy_90"
    ACCURACY_100 = "accuracy_100"
    SCORE_1000 = "score_1000"
    ALL_MODULES = "all_modules"
    MASTER_PITCHER = "master_pitcher"
    MASTER_HUNTER = "master_hunter"


class Rarity(StrEnum):
    COMMON = "common"
    RARE = "rare"
    EPIC = "epic"
    LEGENDARY = "legendary"


@dataclass(frozen=True, slots=True)
class BadgeInfo:
    key: BadgeKey
    emoji: str
    name: str
    description: str
    rarity: Rarity


BADGE_INFO: dict[BadgeKey, BadgeInfo] = {
    b.key: b
    for b in (
        BadgeInfo(BadgeKey.FIRST_PLAY, "⚾", "First Pitch", "Started vision training.", Rarity.COMMON),
        BadgeInfo(BadgeKey.STREAK_3, "🔥", "3-Day Streak", "Played 3 days in a row.", Rarity.COMMON),
        BadgeInfo(BadgeKey.STREAK_7, "🔥🔥", "1-Week Streak", "Played 7 days in a row.", Rarity.RARE),
        BadgeInfo(BadgeKey.STREAK_30, "👑", "1-Month Streak", "Played 30 days in a row.", Rarity.LEGENDARY),
        BadgeInfo(BadgeKey.REACTION_300MS, "⚡", "Quick 300ms", "Average reaction within 300 ms.", Rarity.COMMON),
        BadgeInfo(BadgeKey.REACTION_250MS, "⚡⚡", "Rapid 250ms", "Average reaction within 250 ms.", Rarity.RARE),
        BadgeInfo(BadgeKey.REACTION_200MS, "⚡⚡⚡", "Lightning 200ms", "Average reaction within 200 ms.", Rarity.LEGENDARY),
        BadgeInfo(BadgeKey.ACCURACY_90, "🎯", "Sharp Eye 90%", "Accuracy of 90% or better.", Rarity.RARE),
        BadgeInfo(BadgeKey.ACCURACY_100, "💎", "Perfect Eye", "A session without a single miss.", Rarity.EPIC),
        BadgeInfo(BadgeKey.SCORE_1000, "🏆", "1000 Club", "Scored 1000 points in one session.", Rarity.RARE),
        BadgeInfo(BadgeKey.ALL_MODULES, "🌟", "Full Rotation", "Played every training module.", Rarity.EPIC),
        BadgeInfo(BadgeKey.MASTER_PITCHER, "🔱", "Pitcher Master", "Cleared Pitcher Reaction at level 5.", Rarity.EPIC),
        BadgeInfo(BadgeKey.MASTER_HUNTER, "🔱", "Number Hunter", "Cleared Ball Number Hunt at level 5.", Rarity.EPIC),
    )
}

STREAK_BADGES: tuple[tuple[int, BadgeKey], ...] = (
    (3, BadgeKey.STREAK_3),
    (7, BadgeKey.STREAK_7),
    (30, BadgeKey.STREAK_30),
)
# Fastest first; at most one tier is granted per session.
REACTION_BADGES: tuple[tuple[int, BadgeKey], ...] = (
    (200, BadgeKey.REACTION_200MS),
    (250, BadgeKey.REACTION_250MS),
    (300, BadgeKey.REACTION_300MS),
)
MASTER_BADGES: dict[str, BadgeKey] = {
    "pitcher-reaction": BadgeKey.MASTER_PITCHER,
    "ball-number-hunt": BadgeKey.MASTER_HUNTER,
}
SCORE_BADGE_THRESHOLD = 1000
MASTER_LEVEL = 5


def evaluate_badges(
    result: SessionResult,
    earned: Collection[str],
    current_streak: int,
    is_first_play: bool,
    *,
    played_modules: Collection[str] = (),
) -> list[BadgeKey]:
    """Badges newly unlocked by ``result``, in display order.

    ``played_modules`` is every module the user has stored results for,
    including ``result.module_id``; it only drives the all-modules badge.
    """

    new: list[BadgeKey] = []

    def has(key: BadgeKey) -> bool:
        return key in earned or key.value in earned

    if is_first_play and not has(BadgeKey.FIRST_PLAY):
        new.append(BadgeKey.FIRST_PLAY)
    for days, key in STREAK_BADGES:
        if current_streak >= days and not has(key):
            new.append(key)

    if result.avg_reaction_ms > 0:
        for limit, key in REACTION_BADGES:
            if result.avg_reaction_ms <= limit and not has(key):
                new.append(key)
                break

    if result.accuracy >= 1.0 and not has(BadgeKey.ACCURACY_100):
        new.append(BadgeKey.ACCURACY_100)
    elif result.accuracy >= 0.9 and not has(BadgeKey.ACCURACY_90):
        new.append(BadgeKey.ACCURACY_90)

    if result.total_score >= SCORE_BADGE_THRESHOLD and not has(BadgeKey.SCORE_1000):
        new.append(BadgeKey.SCORE_1000)

    master = MASTER_BADGES.get(result.module_id)
    if master is not None and result.difficulty == MASTER_LEVEL and not has(master):
        new.append(master)

    playable = {m.id for m in MODULE_INFO if m.available}
    if playable <= (set(played_modules) | {result.module_id}) and not has(BadgeKey.ALL_MODULES):
        new.append(BadgeKey.ALL_MODULES)

    return new


# ---- vision profile ---------------------------------------------------------


class Skill(StrEnum):
    KVA = "kva"  # kinetic visual acuity (ball toward you)
    DVA = "dva"  # dynamic visual acuity (ball across you)
    HAND_EYE = "hand_eye"
    INSTANT = "instant"  # flash recognition
    PERIPHERAL = "peripheral"
    DEPTH = "depth"


MODULE_SKILLS: dict[str, tuple[Skill, ...]] = {
    "pitcher-reaction": (Skill.KVA, Skill.HAND_EYE),
    "ball-number-hunt": (Skill.KVA, Skill.INSTANT),
    "fly-tracer": (Skill.DVA, Skill.HAND_EYE),
    "flash-sign": (Skill.INSTANT,),
    "stadium-vision": (Skill.PERIPHERAL,),
    "infield-reaction": (Skill.DVA, Skill.HAND_EYE),
    "runner-watch": (Skill.PERIPHERAL, Skill.INSTANT),
}

DEFAULT_SKILL_SCORE = 50


class ResultLike(Protocol):
    @property
    def module_id(self) -> str: ...
    @property
    def accuracy(self) -> float: ...
    @property
    def avg_reaction_ms(self) -> int: ...


def reaction_score(avg_reaction_ms: float) -> float:
    """150 ms maps to 100, each 5 ms slower costs a point, floored at 0."""
    if avg_reaction_ms <= 0:
        return float(DEFAULT_SKILL_SCORE)
    return clamp(100.0 - (avg_reaction_ms - 150.0) / 5.0, 0.0, 100.0)


def session_skill_value(accuracy: float, avg_reaction_ms: float) -> float:
    return accuracy * 60.0 + reaction_score(avg_reaction_ms) * 0.4


def calculate_vision_profile(history: Iterable[ResultLike]) -> dict[Skill, int]:
    buckets: dict[Skill, list[float]] = {s: [] for s in Skill}
    for s in history:
        value = session_skill_value(s.accuracy, s.avg_reaction_ms)
        for skill in MODULE_SKILLS.get(s.module_id, ()):
            buckets[skill].append(value)

    profile: dict[Skill, int] = {}
    for skill, values in buckets.items():
        if values:
            profile[skill] = min(100, round_half_up(sum(values) / len(values)))
        else:
            profile[skill] = DEFAULT_SKILL_SCORE
    return profile


# ---- streaks and dashboard --------------------------------------------------


def current_streak(play_dates: Iterable[dt.date], today: dt.date) -> int:
    """Consecutive play days ending today (or yesterday, if today is not played yet)."""

    days = set(play_dates)
    if today in days:
        cursor = today
    elif (today - dt.timedelta(days=1)) in days:
        cursor = today - dt.timedelta(days=1)
    else:
        return 0

    streak = 0
    while cursor in days:
        streak += 1
        cursor -= dt.timedelta(days=1)
    return streak


class DatedResult(ResultLike, Protocol):
    @property
    def total_score(self) -> int: ...
    @property
    def played_on(self) -> str: ...


@dataclass(frozen=True, slots=True)
class ModuleStats:
    module_id: str
    sessions: int
    best_score: int
    mean_accuracy: float
    mean_reaction_ms: float | None


@dataclass(frozen=True, slots=True)
class DashboardStats:
    total_sessions: int
    total_score: int
    streak: int
    modules: dict[str, ModuleStats]


def dashboard_stats(history: Sequence[DatedResult], today: dt.date) -> DashboardStats:
    by_module: dict[str, list[DatedResult]] = {}
    for s in history:
        by_module.setdefault(s.module_id, []).append(s)

    modules: dict[str, ModuleStats] = {}
    for module_id, rows in by_module.items():
        timed = [r.avg_reaction_ms for r in rows if r.avg_reaction_ms > 0]
        modules[module_id] = ModuleStats(
            module_id=module_id,
            sessions=len(rows),
            best_score=max(r.total_score for r in rows),
            mean_accuracy=sum(r.accuracy for r in rows) / len(rows),
            mean_reaction_ms=(sum(timed) / len(timed)) if timed else None,
        )

    played = {dt.date.fromisoformat(s.played_on) for s in history}
    return DashboardStats(
        total_sessions=len(history),
        total_score=sum(s.total_score for s in history),
        streak=current_streak(played, today),
        modules=modules,
    )


@dataclass(frozen=True, slots=True)
class ModuleInfo:
    id: str
    name: str
    primary_skills: tuple[Skill, ...]
    position: str
    available: bool


MODULE_INFO: tuple[ModuleInfo, ...] = (
    ModuleInfo("pitcher-reaction", "Pitcher Reaction", MODULE_SKILLS["pitcher-reaction"], "Batters", True),
    ModuleInfo("ball-number-hunt", "Ball Number Hunt", MODULE_SKILLS["ball-number-hunt"], "Batters", True),
    ModuleInfo("fly-tracer", "Fly Tracer", MODULE_SKILLS["fly-tracer"], "Outfielders", False),
    ModuleInfo("flash-sign", "Flash Sign", MODULE_SKILLS["flash-sign"], "All players", False),
    ModuleInfo("stadium-vision", "Stadium Vision", MODULE_SKILLS["stadium-vision"], "Touch-panel monitor", False),
    ModuleInfo("infield-reaction", "Infield Reaction", MODULE_SKILLS["infield-reaction"], "Infielders", False),
    ModuleInfo("runner-watch", "Runner Watch", MODULE_SKILLS["runner-watch"], "Pitchers and catchers", False),
)


class ProgressStore(Protocol):
    def history(self, user_id: str, *, module_id: str | None = None) -> Sequence[DatedResult]: ...
    def earned_badges(self, user_id: str) -> set[str]: ...
    def award_badges(self, user_id: str, keys: Iterable[str]) -> None: ...


def award_new_badges(
    store: ProgressStore,
    result: SessionResult,
    *,
    user_id: str,
    today: dt.date,
) -> list[BadgeKey]:
    """Evaluate ``result`` against stored history and persist any new badges.

    Call after ``result`` itself has been recorded: the history read here is
    expected to include it.
    """

    history = store.history(user_id)
    played = {dt.date.fromisoformat(h.played_on) for h in history}
    new = evaluate_badges(
        result,
        store.earned_badges(user_id),
        current_streak(played, today),
        len(history) <= 1,
        played_modules={h.module_id for h in history},
    )
    if new:
        store.award_badges(user_id, new)
        logger.info("user %s earned badges: %s", user_id, ", ".join(new))
    return new
