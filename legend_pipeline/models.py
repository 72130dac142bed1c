"""Data models for the Legend Move Index pipeline."""

from dataclasses import dataclass, field
from typing import Literal
from uuid import uuid4

Side = Literal["W", "B"]
GameResult = Literal["1-0", "0-1", "1/2-1/2", "*", "?"]


@dataclass(frozen=True)
class Resolved:
    """Header value taken from the structured tag parse."""

    value: str


@dataclass(frozen=True)
class Recovered:
    """Header value re-derived by pattern-matching the raw record text."""

    value: str


@dataclass(frozen=True)
class Missing:
    """Header value absent from both the tag parse and the raw text."""


FieldValue = Resolved | Recovered | Missing


def field_text(value: FieldValue, default: str | None = None) -> str | None:
    if isinstance(value, Missing):
        return default
    return value.value


@dataclass(frozen=True)
class GameRecord:
    """One ingested game. Immutable once the normalizer has produced it."""

    game_id: str
    legend: str
    white: FieldValue = Missing()
    black: FieldValue = Missing()
    result: FieldValue = Missing()
    event: FieldValue = Missing()
    site: FieldValue = Missing()
    date: FieldValue = Missing()
    round: FieldValue = Missing()
    eco: FieldValue = Missing()
    movetext: str = ""

    @property
    def white_name(self) -> str:
        return field_text(self.white, "Unknown")

    @property
    def black_name(self) -> str:
        return field_text(self.black, "Unknown")

    @property
    def result_code(self) -> GameResult:
        text = field_text(self.result, "?")
        return text if text in ("1-0", "0-1", "1/2-1/2", "*") else "?"

    def recovered_fields(self) -> list[str]:
        """Names of header fields that came from the fallback path."""
        names = ("white", "black", "result", "event", "site", "date", "round", "eco")
        return [n for n in names if isinstance(getattr(self, n), Recovered)]


@dataclass(frozen=True)
class ReplayedPly:
    """A single half-move: the position before it and the move played from it."""

    game_id: str
    fen_before: str
    uci: str
    san: str
    move_number: int
    side: Side


@dataclass(frozen=True)
class ReplayResult:
    """Plies a game produced, and where replay stopped if a token was rejected."""

    game_id: str
    plies: tuple[ReplayedPly, ...] = ()
    truncated_at: int | None = None
    bad_token: str | None = None

    @property
    def truncated(self) -> bool:
        return self.truncated_at is not None


@dataclass(frozen=True)
class OpeningBookEntry:
    """How often a move was played from a position in the early game."""

    fen: str
    move: str
    count: int


@dataclass(frozen=True)
class PositionContinuation:
    """One historical occurrence of the legend moving from a position."""

    move: str
    game_id: str
    move_number: int
    color: Side


@dataclass(frozen=True)
class GuessPosition:
    fen: str
    move: str
    move_number: int


@dataclass
class GuessSession:
    """A legend game being studied move by move."""

    legend: str
    record: GameRecord
    color: Side
    positions: tuple[GuessPosition, ...]
    session_id: str = field(default_factory=lambda: uuid4().hex)
    cursor: int = 0
    results: list["GuessResult"] = field(default_factory=list)

    @property
    def finished(self) -> bool:
        return self.cursor >= len(self.positions)

    @property
    def current(self) -> GuessPosition | None:
        return None if self.finished else self.positions[self.cursor]


@dataclass(frozen=True)
class GuessResult:
    fen: str
    user_move: str
    historical_move: str
    score: int
    tags: tuple[str, ...] = ()
    oracle_move: str | None = None
    cp_loss: int | None = None
    comment: str = ""

    @property
    def is_exact(self) -> bool:
        return "exact" in self.tags

    @property
    def is_oracle_match(self) -> bool:
        return self.oracle_move is not None and self.user_move == self.oracle_move


@dataclass(frozen=True)
class SessionSummary:
    legend: str
    game_id: str
    results: tuple[GuessResult, ...]
    total_score: int
    weakness_tags: tuple[str, ...] = ()

    @property
    def average_score(self) -> int:
        if not self.results:
            return 0
        return round(self.total_score / len(self.results))


@dataclass
class BuildStats:
    """Per-legend ingestion counters, so data-quality regressions are visible."""

    legend: str = ""
    games_total: int = 0
    games_with_legend: int = 0
    games_skipped_identity: int = 0
    games_empty: int = 0
    games_truncated: int = 0
    plies_replayed: int = 0
    opening_plies: int = 0
    legend_plies: int = 0
    opening_entries: int = 0
    unique_positions: int = 0
    truncated_game_ids: list[str] = field(default_factory=list)
