"""
Phase 5 — Position Index

Maps every position where the legend was to move, across whole games, to
each continuation the legend played from it. Occurrences are never
deduplicated; frequency is the length of the list.

Positions are keyed by full FEN. A secondary key of the first four FEN
fields (placement, side to move, castling, en passant) lets a lookup find
the same position reached through a different move order, where only the
move counters differ.
"""

from collections import Counter
from collections.abc import Iterable, Iterator, Mapping
from types import MappingProxyType

from legend_pipeline.models import PositionContinuation, ReplayedPly, Side


def position_key(fen: str) -> str:
    return " ".join(fen.split()[:4])


class PositionIndex(Mapping):
    """Read-only snapshot: FEN -> tuple of PositionContinuation."""

    def __init__(self, entries: Mapping[str, tuple[PositionContinuation, ...]] | None = None):
        frozen = {fen: tuple(conts) for fen, conts in (entries or {}).items()}
        self._entries = MappingProxyType(frozen)
        by_key: dict[str, list[str]] = {}
        for fen in frozen:
            by_key.setdefault(position_key(fen), []).append(fen)
        self._by_key = MappingProxyType({k: tuple(v) for k, v in by_key.items()})

    def __getitem__(self, fen: str) -> tuple[PositionContinuation, ...]:
        return self._entries[fen]

    def __iter__(self) -> Iterator[str]:
        return iter(self._entries)

    def __len__(self) -> int:
        return len(self._entries)

    def continuations(self, fen: str) -> tuple[PositionContinuation, ...]:
        return self._entries.get(fen, ())

    def lookup_transposed(self, fen: str) -> tuple[PositionContinuation, ...]:
        """Continuations from every indexed FEN sharing the position key."""
        found: list[PositionContinuation] = []
        for indexed_fen in self._by_key.get(position_key(fen), ()):
            found.extend(self._entries[indexed_fen])
        return tuple(found)

    def move_counts(self, fen: str) -> list[tuple[str, int]]:
        return Counter(c.move for c in self.continuations(fen)).most_common()

    @property
    def total_continuations(self) -> int:
        return sum(len(conts) for conts in self._entries.values())


class PositionIndexBuilder:
    def __init__(self):
        self._entries: dict[str, list[PositionContinuation]] = {}

    def add_plies(self, plies: Iterable[ReplayedPly], color: Side) -> int:
        """Append the plies played by `color`. Returns how many were added."""
        added = 0
        for ply in plies:
            if ply.side != color:
                continue
            self._entries.setdefault(ply.fen_before, []).append(
                PositionContinuation(
                    move=ply.uci,
                    game_id=ply.game_id,
                    move_number=ply.move_number,
                    color=color,
                )
            )
            added += 1
        return added

    def build(self) -> PositionIndex:
        return PositionIndex({fen: tuple(conts) for fen, conts in self._entries.items()})
