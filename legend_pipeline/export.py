"""
Phase 8 — Export

Converts a legend's built artifacts to JSON-ready dicts and back: the games
list, the opening book and the position index. Keys follow the legend-data
file layout (fen, move, count, gameId, moveNumber, color). Where the files
are written is up to the caller.

Usage:
  artifacts = legend_artifacts(indices)
  json.dump(artifacts["openingBook"], f, indent=2)
"""

from collections.abc import Iterable, Mapping
from dataclasses import asdict

from legend_pipeline.legend_builder import LegendIndices
from legend_pipeline.models import (
    GameRecord,
    Missing,
    OpeningBookEntry,
    PositionContinuation,
    Recovered,
    Resolved,
    SessionSummary,
    field_text,
)
from legend_pipeline.opening_book import book_by_fen
from legend_pipeline.position_index import PositionIndex

RECORD_FIELDS = ("white", "black", "result", "event", "site", "date", "round", "eco")


def record_to_json(record: GameRecord) -> dict:
    out = {"gameId": record.game_id, "legend": record.legend}
    for name in RECORD_FIELDS:
        value = field_text(getattr(record, name))
        if value is not None:
            out[name] = value
    out["moves"] = record.movetext
    recovered = record.recovered_fields()
    if recovered:
        out["recovered"] = recovered
    return out


def record_from_json(data: Mapping) -> GameRecord:
    recovered = set(data.get("recovered", ()))
    fields = {}
    for name in RECORD_FIELDS:
        value = data.get(name)
        if value is None:
            fields[name] = Missing()
        elif name in recovered:
            fields[name] = Recovered(value)
        else:
            fields[name] = Resolved(value)
    return GameRecord(game_id=data["gameId"], legend=data["legend"], movetext=data.get("moves", ""), **fields)


def records_to_json(records: Iterable[GameRecord]) -> list[dict]:
    return [record_to_json(r) for r in records]


def records_from_json(data: Iterable[Mapping]) -> list[GameRecord]:
    return [record_from_json(d) for d in data]


def book_to_json(book: Iterable[OpeningBookEntry]) -> list[dict]:
    return [asdict(entry) for entry in book]


def book_from_json(data: Iterable[Mapping]) -> list[OpeningBookEntry]:
    return [OpeningBookEntry(fen=d["fen"], move=d["move"], count=int(d["count"])) for d in data]


def continuation_to_json(cont: PositionContinuation) -> dict:
    return {"move": cont.move, "gameId": cont.game_id, "moveNumber": cont.move_number, "color": cont.color}


def position_index_to_json(index: PositionIndex) -> dict[str, list[dict]]:
    return {fen: [continuation_to_json(c) for c in conts] for fen, conts in index.items()}


def position_index_from_json(data: Mapping[str, Iterable[Mapping]]) -> PositionIndex:
    return PositionIndex(
        {
            fen: tuple(
                PositionContinuation(
                    move=c["move"], game_id=c["gameId"], move_number=int(c["moveNumber"]), color=c["color"]
                )
                for c in conts
            )
            for fen, conts in data.items()
        }
    )


def opening_responses(book: LegendIndices | Iterable[OpeningBookEntry], fen: str) -> dict:
    """Book moves from `fen`, most played first, with weights summing to 1."""
    if isinstance(book, LegendIndices):
        entries = list(book.book_candidates(fen))
    else:
        entries = list(book_by_fen(book).get(fen, ()))
    entries.sort(key=lambda e: -e.count)
    total = sum(e.count for e in entries) or 1
    weights = [e.count / total for e in entries]
    if weights and abs(sum(weights) - 1.0) > 0.001:
        s = sum(weights)
        weights = [w / s for w in weights]
    return {"moves": [e.move for e in entries], "weights": weights}


def summary_to_json(summary: SessionSummary) -> dict:
    return {
        "legend": summary.legend,
        "gameId": summary.game_id,
        "totalScore": summary.total_score,
        "averageScore": summary.average_score,
        "weaknessTags": list(summary.weakness_tags),
        "results": [
            {
                "fen": r.fen,
                "userMove": r.user_move,
                "historicalMove": r.historical_move,
                "score": r.score,
                "tags": list(r.tags),
                "oracleMove": r.oracle_move,
                "cpLoss": r.cp_loss,
                "comment": r.comment,
            }
            for r in summary.results
        ],
    }


def legend_artifacts(indices: LegendIndices) -> dict:
    """All artifacts for one legend plus its build stats."""
    return {
        "legend": indices.legend,
        "openingHorizon": indices.opening_horizon,
        "games": records_to_json(indices.records),
        "openingBook": book_to_json(indices.opening_book),
        "positionIndex": position_index_to_json(indices.position_index),
        "stats": asdict(indices.stats),
    }
