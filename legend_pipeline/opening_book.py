"""
Phase 4 — Opening Book

Counts (position, move) pairs from the early game of every game a legend
played, both colors included: the book records what gets played from a
position in the legend's games, not only by the legend.
"""

from collections.abc import Iterable

from legend_pipeline.config import IndexSettings
from legend_pipeline.models import OpeningBookEntry, ReplayedPly


class OpeningBookBuilder:
    def __init__(self, horizon: int | None = None):
        self.horizon = horizon if horizon is not None else IndexSettings().opening_horizon
        self._counts: dict[tuple[str, str], int] = {}

    def add_plies(self, plies: Iterable[ReplayedPly]) -> int:
        """Count plies within the horizon. Returns how many were counted."""
        counted = 0
        for ply in plies:
            if ply.move_number > self.horizon:
                continue
            key = (ply.fen_before, ply.uci)
            self._counts[key] = self._counts.get(key, 0) + 1
            counted += 1
        return counted

    def build(self) -> list[OpeningBookEntry]:
        """Entries by count descending; equal counts keep first-seen order."""
        entries = [OpeningBookEntry(fen=fen, move=move, count=count) for (fen, move), count in self._counts.items()]
        return sorted(entries, key=lambda e: -e.count)


def book_by_fen(book: Iterable[OpeningBookEntry]) -> dict[str, tuple[OpeningBookEntry, ...]]:
    grouped: dict[str, list[OpeningBookEntry]] = {}
    for entry in book:
        grouped.setdefault(entry.fen, []).append(entry)
    return {fen: tuple(entries) for fen, entries in grouped.items()}
