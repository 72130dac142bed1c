"""
Legend index build

Runs the phases for one legend: normalize -> resolve identity -> replay ->
{opening book, position index}. Replay is pure per game and can fan out
to an executor; aggregation runs afterwards in record order, so builds
are reproducible regardless of worker count.

Usage:
  indices = build_from_pgn("capablanca", pgn_text)
  library.install(indices)
"""

import logging
import threading
from collections.abc import Iterable, Mapping
from concurrent.futures import Executor, ProcessPoolExecutor
from dataclasses import dataclass, field
from types import MappingProxyType

from legend_pipeline.config import IndexSettings
from legend_pipeline.errors import UnknownGameError
from legend_pipeline.identity import IdentityResolver
from legend_pipeline.models import BuildStats, GameRecord, OpeningBookEntry, ReplayResult, Side
from legend_pipeline.opening_book import OpeningBookBuilder, book_by_fen
from legend_pipeline.pgn_normalizer import normalize_records
from legend_pipeline.position_index import PositionIndex, PositionIndexBuilder
from legend_pipeline.replayer import replay_game

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class LegendIndices:
    """Everything built for one legend. Replaced whole, never edited."""

    legend: str
    records: tuple[GameRecord, ...]
    colors: Mapping[str, Side]
    opening_book: tuple[OpeningBookEntry, ...]
    position_index: PositionIndex
    stats: BuildStats
    opening_horizon: int
    _book_by_fen: Mapping[str, tuple[OpeningBookEntry, ...]] = field(init=False, repr=False, compare=False, default=None)

    def __post_init__(self):
        object.__setattr__(self, "colors", MappingProxyType(dict(self.colors)))
        object.__setattr__(self, "_book_by_fen", MappingProxyType(book_by_fen(self.opening_book)))

    def record(self, game_id: str) -> GameRecord:
        for record in self.records:
            if record.game_id == game_id:
                return record
        raise UnknownGameError(self.legend, game_id)

    def book_candidates(self, fen: str) -> tuple[OpeningBookEntry, ...]:
        return self._book_by_fen.get(fen, ())


def _replay_all(records: list[GameRecord], executor: Executor | None, max_workers: int | None) -> list[ReplayResult]:
    if executor is not None:
        return list(executor.map(replay_game, records))
    if max_workers and max_workers > 1 and len(records) > 1:
        with ProcessPoolExecutor(max_workers=max_workers) as pool:
            return list(pool.map(replay_game, records, chunksize=16))
    return [replay_game(r) for r in records]


def build_legend_indices(
    legend: str,
    records: Iterable[GameRecord],
    resolver: IdentityResolver | None = None,
    settings: IndexSettings | None = None,
    executor: Executor | None = None,
) -> LegendIndices:
    settings = settings or IndexSettings()
    resolver = resolver or IdentityResolver()
    records = list(records)
    stats = BuildStats(legend=legend, games_total=len(records))

    colors: dict[str, Side] = {}
    playing: list[GameRecord] = []
    for record in records:
        color = resolver.resolve_record(record, legend)
        if color is None:
            stats.games_skipped_identity += 1
            continue
        colors[record.game_id] = color
        playing.append(record)
    stats.games_with_legend = len(playing)

    replays = _replay_all(playing, executor, settings.max_workers)

    book = OpeningBookBuilder(settings.opening_horizon)
    index = PositionIndexBuilder()
    for replay in replays:
        if not replay.plies and not replay.truncated:
            stats.games_empty += 1
        if replay.truncated:
            stats.games_truncated += 1
            stats.truncated_game_ids.append(replay.game_id)
        stats.plies_replayed += len(replay.plies)
        stats.opening_plies += book.add_plies(replay.plies)
        stats.legend_plies += index.add_plies(replay.plies, colors[replay.game_id])

    opening_book = tuple(book.build())
    position_index = index.build()
    stats.opening_entries = len(opening_book)
    stats.unique_positions = len(position_index)

    logger.info(
        "[%s] games=%d with_legend=%d skipped=%d empty=%d truncated=%d book=%d positions=%d",
        legend,
        stats.games_total,
        stats.games_with_legend,
        stats.games_skipped_identity,
        stats.games_empty,
        stats.games_truncated,
        stats.opening_entries,
        stats.unique_positions,
    )

    return LegendIndices(
        legend=legend,
        records=tuple(records),
        colors=colors,
        opening_book=opening_book,
        position_index=position_index,
        stats=stats,
        opening_horizon=settings.opening_horizon,
    )


def build_from_pgn(
    legend: str,
    pgn_text: str,
    resolver: IdentityResolver | None = None,
    settings: IndexSettings | None = None,
    executor: Executor | None = None,
) -> LegendIndices:
    return build_legend_indices(legend, normalize_records(legend, pgn_text), resolver, settings, executor)


class LegendLibrary:
    """Owns the current indices per legend and swaps them atomically on rebuild."""

    def __init__(self):
        self._lock = threading.Lock()
        self._indices: dict[str, LegendIndices] = {}

    def install(self, indices: LegendIndices) -> LegendIndices | None:
        """Publish rebuilt indices. Returns the ones they replace."""
        with self._lock:
            previous = self._indices.get(indices.legend)
            self._indices = {**self._indices, indices.legend: indices}
        return previous

    def get(self, legend: str) -> LegendIndices | None:
        return self._indices.get(legend)

    def __getitem__(self, legend: str) -> LegendIndices:
        indices = self._indices.get(legend)
        if indices is None:
            raise KeyError(legend)
        return indices

    def legends(self) -> list[str]:
        return sorted(self._indices)
