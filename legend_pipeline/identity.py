"""
Phase 2 — Identity Resolution

Decides whether a legend played a game, and with which color, by
case-insensitive substring match of the White/Black header against the
legend's registered spellings. Historical archives transliterate names
inconsistently, so spellings are data, not code.
"""

from collections.abc import Iterable, Mapping

from legend_pipeline.models import GameRecord, Side

LEGEND_NAME_PATTERNS: dict[str, list[str]] = {
    "fischer": ["Fischer", "Bobby Fischer", "Fischer, R", "Fischer,R", "R. Fischer"],
    "capablanca": ["Capablanca", "Jose Raul Capablanca", "José Raúl Capablanca", "J.R. Capablanca"],
    "steinitz": ["Steinitz", "Wilhelm Steinitz", "W. Steinitz"],
    "alekhine": ["Alekhine", "Alechine", "Aljechin", "Aleksandr Alekhine"],
    "spassky": ["Spassky", "Spasskij", "Spasski"],
    "kasparov": ["Kasparov", "Garry Kasparov", "Gary Kasparov", "Garri Kasparov"],
    "karpov": ["Karpov", "Anatoly Karpov", "Anatoli Karpov"],
    "tal": ["Tal,", "Tal ", "Mikhail Tal", "Mihail Tal", "Misha Tal", "Tahl"],
    "botvinnik": ["Botvinnik", "Botwinnik", "Michail Botvinnik"],
    "morphy": ["Morphy", "Paul Morphy"],
    "carlsen": ["Carlsen", "Magnus Carlsen", "Sven Magnus"],
    "lasker": ["Lasker, E", "Lasker,E", "Emanuel Lasker", "Emmanuel Lasker", "Em Lasker", "E. Lasker", "Dr. Lasker"],
}


class IdentityResolver:
    """Per-legend spelling registry. Unregistered legends match on their own id."""

    def __init__(self, patterns: Mapping[str, Iterable[str]] | None = None):
        source = LEGEND_NAME_PATTERNS if patterns is None else patterns
        self._patterns: dict[str, list[str]] = {}
        for legend, spellings in source.items():
            self.register(legend, *spellings)

    def register(self, legend: str, *spellings: str) -> None:
        known = self._patterns.setdefault(legend.lower(), [])
        for spelling in spellings:
            lowered = spelling.lower()
            if lowered.strip() and lowered not in known:
                known.append(lowered)

    def spellings(self, legend: str) -> list[str]:
        return list(self._patterns.get(legend.lower()) or [legend.lower()])

    def matches(self, legend: str, name: str | None) -> bool:
        if not name:
            return False
        lowered = name.lower()
        if lowered.strip() == legend.lower():
            return True
        return any(p in lowered for p in self.spellings(legend))

    def resolve(self, legend: str, white: str | None, black: str | None) -> Side | None:
        """'W', 'B', or None when the legend is absent. Self-play resolves to 'W'."""
        if self.matches(legend, white):
            return "W"
        if self.matches(legend, black):
            return "B"
        return None

    def resolve_record(self, record: GameRecord, legend: str | None = None) -> Side | None:
        return self.resolve(legend or record.legend, record.white_name, record.black_name)
