"""Tests for pgn_normalizer.py"""

from legend_pipeline.models import Missing, Recovered, Resolved
from legend_pipeline.pgn_normalizer import (
    is_placeholder,
    isolate_movetext,
    normalize_record,
    normalize_records,
    recover_tag,
    split_records,
)


def test_split_records_one_chunk_per_event(two_game_pgn):
    chunks = split_records(two_game_pgn)
    assert len(chunks) == 2
    assert all(c.startswith("[Event") for c in chunks)


def test_split_records_ignores_leading_noise():
    blob = 'garbage before the first game\n\n[Event "A"]\n\n1. e4 *\n'
    assert split_records(blob) == ['[Event "A"]\n\n1. e4 *']


def test_placeholders():
    for value in (None, "", "?", "??", " Unknown ", "????.??.??"):
        assert is_placeholder(value)
    assert not is_placeholder("Capablanca, J")


def test_normalize_records_assigns_ids_in_source_order(two_game_pgn):
    records = normalize_records("capablanca", two_game_pgn)
    assert [r.game_id for r in records] == ["capablanca-0000", "capablanca-0001"]
    assert all(r.legend == "capablanca" for r in records)


def test_structured_tags_are_resolved(one_game_pgn):
    record = normalize_records("capablanca", one_game_pgn)[0]
    assert record.white == Resolved("Capablanca, J")
    assert record.black == Resolved("Corzo, J")
    assert record.result == Resolved("1-0")
    assert record.round == Missing()
    assert record.eco == Missing()


def test_placeholder_white_recovered_from_raw_text(two_game_pgn):
    """A `?` White tag is rescued by a stray tag line later in the record."""
    record = normalize_records("capablanca", two_game_pgn)[1]
    assert record.white == Recovered("Capablanca, J")
    assert record.white_name == "Capablanca, J"
    assert record.recovered_fields() == ["white"]


def test_movetext_excludes_tag_lines(two_game_pgn):
    record = normalize_records("capablanca", two_game_pgn)[1]
    assert "[" not in record.movetext
    assert record.movetext.startswith("1. e4 e5")
    assert record.movetext.endswith("1-0")


def test_missing_result_recovered_from_terminator():
    chunk = '[Event "A"]\n[White "Tal, M"]\n[Black "Smyslov, V"]\n\n1. e4 e5 0-1'
    record = normalize_record("tal", 3, chunk)
    assert record.result == Recovered("0-1")
    assert record.game_id == "tal-0003"


def test_record_without_movetext_is_kept_with_empty_moves():
    record = normalize_record("tal", 0, '[Event "A"]\n[White "Tal, M"]')
    assert record.movetext == ""
    assert record.white_name == "Tal, M"
    assert record.black_name == "Unknown"
    assert record.result_code == "?"


def test_recover_tag_skips_placeholder_values():
    chunk = '[Black "?"]\n1. e4\n[Black "Lasker, E"]'
    assert recover_tag(chunk, "Black") == "Lasker, E"
    assert recover_tag(chunk, "White") is None


def test_isolate_movetext_keeps_comments():
    chunk = '[Event "A"]\n\n1. e4 {best by test} e5 *'
    assert isolate_movetext(chunk) == "1. e4 {best by test} e5 *"
