"""Settings for index building, the engine oracle and legend play styles."""

import os
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field

REDIS_URL = os.environ.get("REDIS_URL", "redis://localhost:6379/0")

BotLevel = Literal["beginner", "intermediate", "advanced", "coach"]


def _env_int(name: str, default: int | None) -> int | None:
    raw = os.environ.get(name)
    if raw is None or raw.strip() == "":
        return default
    return int(raw)


class IndexSettings(BaseModel):
    model_config = ConfigDict(frozen=True)

    # Full-move number up to which plies feed the opening book.
    opening_horizon: int = Field(
        default_factory=lambda: _env_int("LEGEND_OPENING_HORIZON", 16),
        ge=1,
        le=40,
        validate_default=True,
    )
    # None replays games serially.
    max_workers: int | None = Field(
        default_factory=lambda: _env_int("LEGEND_MAX_WORKERS", None),
        ge=1,
        validate_default=True,
    )


class EngineSettings(BaseModel):
    model_config = ConfigDict(frozen=True)

    stockfish_path: str = Field(default_factory=lambda: os.environ.get("STOCKFISH_PATH", "stockfish"))
    scoring_depth: int = Field(default=12, ge=1, le=40)
    candidate_count: int = Field(default=5, ge=1, le=20)


class BotLevelProfile(BaseModel):
    model_config = ConfigDict(frozen=True)

    skill: int = Field(ge=0, le=20)
    depth: int = Field(ge=1, le=40)
    inferior_move_chance: float = Field(ge=0.0, le=1.0)


BOT_LEVELS: dict[str, BotLevelProfile] = {
    "beginner": BotLevelProfile(skill=5, depth=6, inferior_move_chance=0.25),
    "intermediate": BotLevelProfile(skill=12, depth=10, inferior_move_chance=0.12),
    "advanced": BotLevelProfile(skill=18, depth=14, inferior_move_chance=0.04),
    "coach": BotLevelProfile(skill=20, depth=18, inferior_move_chance=0.0),
}


def bot_level_profile(level: str) -> BotLevelProfile:
    try:
        return BOT_LEVELS[level]
    except KeyError:
        raise ValueError(f"Unknown bot level {level!r}; use one of {', '.join(BOT_LEVELS)}") from None


class LegendStyle(BaseModel):
    """Style biases applied when a legend's move comes from the engine, all 0-1."""

    model_config = ConfigDict(frozen=True)

    aggressiveness: float = Field(default=0.5, ge=0.0, le=1.0)
    simplify_bias: float = Field(default=0.5, ge=0.0, le=1.0)
    king_safety_bias: float = Field(default=0.5, ge=0.0, le=1.0)
    materialism: float = Field(default=0.5, ge=0.0, le=1.0)
    # Appetite for sidelines over the main historical choice.
    experimental: float = Field(default=0.1, ge=0.0, le=1.0)


LEGEND_STYLES: dict[str, LegendStyle] = {
    "fischer": LegendStyle(aggressiveness=0.8, simplify_bias=0.3, king_safety_bias=0.7, materialism=0.6, experimental=0.10),
    "capablanca": LegendStyle(aggressiveness=0.4, simplify_bias=0.9, king_safety_bias=0.8, materialism=0.9, experimental=0.05),
    "steinitz": LegendStyle(aggressiveness=0.5, simplify_bias=0.7, king_safety_bias=0.9, materialism=0.8, experimental=0.08),
    "alekhine": LegendStyle(aggressiveness=0.9, simplify_bias=0.3, king_safety_bias=0.5, materialism=0.5, experimental=0.20),
    "spassky": LegendStyle(aggressiveness=0.6, simplify_bias=0.5, king_safety_bias=0.7, materialism=0.7, experimental=0.12),
    "kasparov": LegendStyle(aggressiveness=0.9, simplify_bias=0.3, king_safety_bias=0.6, materialism=0.5, experimental=0.15),
    "karpov": LegendStyle(aggressiveness=0.4, simplify_bias=0.8, king_safety_bias=0.9, materialism=0.9, experimental=0.05),
    "tal": LegendStyle(aggressiveness=1.0, simplify_bias=0.1, king_safety_bias=0.3, materialism=0.2, experimental=0.25),
    "botvinnik": LegendStyle(aggressiveness=0.6, simplify_bias=0.6, king_safety_bias=0.8, materialism=0.8, experimental=0.08),
    "morphy": LegendStyle(aggressiveness=0.9, simplify_bias=0.3, king_safety_bias=0.5, materialism=0.4, experimental=0.18),
    "carlsen": LegendStyle(aggressiveness=0.6, simplify_bias=0.8, king_safety_bias=0.8, materialism=0.8, experimental=0.12),
    "lasker": LegendStyle(aggressiveness=0.6, simplify_bias=0.5, king_safety_bias=0.7, materialism=0.7, experimental=0.15),
}


def legend_style(legend: str) -> LegendStyle:
    return LEGEND_STYLES.get(legend.lower(), LegendStyle())
