"""
Phase 1 — Record Normalization

Turns a raw multi-game PGN blob into GameRecords. Each header field is
taken from python-chess's tag parser first; fields it leaves empty or
marked unknown are re-derived by matching the tag line directly in the
record text, which rescues truncated or hand-edited archives.

No I/O happens here: text in, records out.
"""

import io
import logging
import re

import chess.pgn

from legend_pipeline.models import FieldValue, GameRecord, Missing, Recovered, Resolved

logger = logging.getLogger(__name__)

RECORD_START = re.compile(r"^(?=\[Event\s)", re.MULTILINE)
TAG_LINE = re.compile(r'^[ \t]*\[[A-Za-z0-9][A-Za-z0-9_+#=:-]*\s+"[^"\n]*"\][ \t]*$', re.MULTILINE)
RESULT_TOKEN = re.compile(r"(?:^|\s)(1-0|0-1|1/2-1/2|\*)\s*$")

PLACEHOLDERS = {"", "?", "??", "unknown", "????.??.??"}

HEADER_FIELDS = {
    "event": "Event",
    "site": "Site",
    "date": "Date",
    "round": "Round",
    "white": "White",
    "black": "Black",
    "result": "Result",
    "eco": "ECO",
}


def is_placeholder(value: str | None) -> bool:
    return value is None or value.strip().lower() in PLACEHOLDERS


def split_records(blob: str) -> list[str]:
    """Split a blob into per-game chunks, one per [Event tag."""
    chunks = [c.strip() for c in RECORD_START.split(blob)]
    return [c for c in chunks if c.startswith("[")]


def parse_tags(chunk: str) -> dict[str, str]:
    """Structured tag-pair parse. Returns {} if python-chess finds no game."""
    headers = chess.pgn.read_headers(io.StringIO(chunk))
    if headers is None:
        return {}
    return dict(headers)


def recover_tag(chunk: str, tag: str) -> str | None:
    """First non-placeholder value of a tag anywhere in the chunk."""
    pattern = re.compile(r'\[' + re.escape(tag) + r'\s+"([^"\n]*)"\]')
    for value in pattern.findall(chunk):
        if not is_placeholder(value):
            return value.strip()
    return None


def isolate_movetext(chunk: str) -> str:
    """Everything in the chunk that is not a tag line."""
    return TAG_LINE.sub("", chunk).strip()


def resolve_field(tags: dict[str, str], chunk: str, tag: str) -> FieldValue:
    value = tags.get(tag)
    if not is_placeholder(value):
        return Resolved(value.strip())
    recovered = recover_tag(chunk, tag)
    if recovered is not None:
        logger.debug("Recovered %s=%r from raw record text", tag, recovered)
        return Recovered(recovered)
    return Missing()


def normalize_record(legend: str, index: int, chunk: str) -> GameRecord:
    tags = parse_tags(chunk)
    fields = {name: resolve_field(tags, chunk, tag) for name, tag in HEADER_FIELDS.items()}
    movetext = isolate_movetext(chunk)

    if isinstance(fields["result"], Missing) and movetext:
        match = RESULT_TOKEN.search(movetext)
        if match:
            fields["result"] = Recovered(match.group(1))

    game_id = f"{legend}-{index:04d}"
    if not movetext:
        logger.warning("No movetext could be isolated for %s; keeping record with empty moves", game_id)

    return GameRecord(game_id=game_id, legend=legend, movetext=movetext, **fields)


def normalize_records(legend: str, blob: str) -> list[GameRecord]:
    """Normalize every game in a PGN blob, in source order."""
    return [normalize_record(legend, idx, chunk) for idx, chunk in enumerate(split_records(blob))]
