"""Tests for recommender.py"""

import random
from unittest.mock import MagicMock

import chess
import pytest

from conftest import FakeOracle, board_after
from legend_pipeline.config import LegendStyle
from legend_pipeline.errors import NoLegalMoveError, OracleUnavailableError
from legend_pipeline.legend_builder import build_legend_indices
from legend_pipeline.models import GameRecord, PositionContinuation, Resolved
from legend_pipeline.oracle import OracleMove
from legend_pipeline.position_index import PositionIndex
from legend_pipeline.recommender import (
    MoveRecommender,
    apply_experimental,
    board_for,
    continuation_weights,
    rank_by_style,
)

NEUTRAL = LegendStyle(aggressiveness=0.5, simplify_bias=0.5, king_safety_bias=0.5, materialism=0.5, experimental=0.0)


def fischer_indices(*movetexts):
    records = [
        GameRecord(
            game_id=f"fischer-{i:04d}",
            legend="fischer",
            white=Resolved("Fischer, R"),
            black=Resolved("Opponent"),
            movetext=m,
        )
        for i, m in enumerate(movetexts)
    ]
    return build_legend_indices("fischer", records)


def cont(move, n=1):
    return PositionContinuation(move=move, game_id=f"g-{n}", move_number=1, color="W")


def test_continuation_weights_favor_recent_occurrences():
    weights = continuation_weights([cont("e2e4", 0), cont("d2d4", 1), cont("e2e4", 2)])
    assert weights == {"e2e4": 2.5, "d2d4": 1.25}


def test_single_occurrence_weight():
    assert continuation_weights([cont("c2c4")]) == {"c2c4": 1.5}


def test_apply_experimental_lifts_sidelines():
    weights = {"e2e4": 9.0, "b2b3": 1.0}
    adjusted = apply_experimental(weights, 1.0)
    assert adjusted["e2e4"] < 9.0
    assert adjusted["b2b3"] > 1.0
    assert apply_experimental(weights, 0.0) == weights


@pytest.mark.asyncio
async def test_index_move_is_preferred():
    indices = fischer_indices("1. e4 e5 2. Nf3", "1. e4 c5 2. Nf3")
    rec = await MoveRecommender(indices, FakeOracle(), rng=random.Random(1), style=NEUTRAL).recommend(
        chess.Board().fen()
    )
    assert rec.move == "e2e4"
    assert rec.source == "position_index"


@pytest.mark.asyncio
async def test_seeded_rng_is_reproducible():
    indices = fischer_indices("1. e4", "1. d4", "1. c4", "1. Nf3")
    fen = chess.Board().fen()
    first = [(await MoveRecommender(indices, rng=random.Random(42), style=NEUTRAL).recommend(fen)).move]
    second = [(await MoveRecommender(indices, rng=random.Random(42), style=NEUTRAL).recommend(fen)).move]
    assert first == second
    assert first[0] in {"e2e4", "d2d4", "c2c4", "g1f3"}


@pytest.mark.asyncio
async def test_transposition_used_after_exact_miss():
    indices = fischer_indices("1. e4 e5 2. Nf3")
    board = board_after("e4", "e5")
    shifted = board.fen().rsplit(" ", 2)[0] + " 4 9"
    rec = await MoveRecommender(indices, rng=random.Random(0)).recommend(shifted)
    assert (rec.move, rec.source) == ("g1f3", "transposition")


@pytest.mark.asyncio
async def test_opening_book_covers_opponent_positions():
    indices = fischer_indices("1. e4 e5 2. Nf3", "1. e4 e5 2. Bc4", "1. e4 c5 2. Nf3")
    rec = await MoveRecommender(indices, rng=random.Random(3)).recommend(board_after("e4").fen())
    assert rec.source == "opening_book"
    assert rec.move in {"e7e5", "c7c5"}


@pytest.mark.asyncio
async def test_illegal_history_is_ignored():
    indices = fischer_indices("1. e4")
    start = chess.Board().fen()
    bogus = PositionIndex({start: (cont("e2e5"),)})
    object.__setattr__(indices, "position_index", bogus)
    oracle = FakeOracle(best={start: "d2d4"})
    rec = await MoveRecommender(indices, oracle, rng=random.Random(0)).recommend(start)
    assert rec.move != "e2e5"
    assert rec.source in {"opening_book", "oracle"}


@pytest.mark.asyncio
async def test_oracle_fallback_outside_history():
    indices = fischer_indices("1. e4 e5 2. Nf3")
    board = board_after("d4", "d5", "c4")
    oracle = FakeOracle(best={board.fen(): "e7e6"})
    rec = await MoveRecommender(indices, oracle, rng=random.Random(0), style=NEUTRAL).recommend(board.fen())
    assert (rec.move, rec.source) == ("e7e6", "oracle")
    assert oracle.calls[0] == ("candidates", board.fen())


@pytest.mark.asyncio
async def test_low_level_sometimes_plays_inferior_move():
    indices = fischer_indices("1. e4")
    board = board_after("d4")
    rng = MagicMock(spec=random.Random)
    rng.random.return_value = 0.0
    rng.choice.side_effect = lambda seq: seq[0]
    oracle = FakeOracle(best={board.fen(): "d7d5"})
    rec = await MoveRecommender(indices, oracle, rng=rng, style=NEUTRAL).recommend(board.fen(), level="beginner")
    assert rec.source == "oracle_inferior"
    assert rec.move != "d7d5"
    assert chess.Move.from_uci(rec.move) in board.legal_moves


@pytest.mark.asyncio
async def test_coach_never_plays_inferior_move():
    indices = fischer_indices("1. e4")
    board = board_after("d4")
    rng = MagicMock(spec=random.Random)
    rng.random.return_value = 0.0
    oracle = FakeOracle(best={board.fen(): "d7d5"})
    rec = await MoveRecommender(indices, oracle, rng=rng, style=NEUTRAL).recommend(board.fen(), level="coach")
    assert (rec.move, rec.source) == ("d7d5", "oracle")


@pytest.mark.asyncio
async def test_no_history_and_no_oracle():
    indices = fischer_indices("1. e4")
    with pytest.raises(OracleUnavailableError):
        await MoveRecommender(indices).recommend(board_after("d4").fen())


@pytest.mark.asyncio
async def test_game_over_raises_no_legal_move():
    indices = fischer_indices("1. e4")
    mated = board_after("f3", "e5", "g4", "Qh4#")
    with pytest.raises(NoLegalMoveError):
        await MoveRecommender(indices, FakeOracle()).recommend(mated.fen())


@pytest.mark.asyncio
async def test_unknown_level_rejected():
    indices = fischer_indices("1. e4")
    with pytest.raises(ValueError):
        await MoveRecommender(indices, FakeOracle()).recommend(chess.Board().fen(), level="grandmaster")


def test_style_reranks_close_candidates():
    board = chess.Board("4k3/8/8/3p4/4P3/8/8/4K3 w - - 0 1")
    candidates = [OracleMove("e1d2", 20), OracleMove("e4d5", 10)]
    aggressive = LegendStyle(aggressiveness=1.0, simplify_bias=0.0, king_safety_bias=0.0, materialism=0.5, experimental=0.0)
    assert [c.uci for c in rank_by_style(board, candidates, aggressive)] == ["e4d5", "e1d2"]


def test_clear_best_keeps_first_place():
    board = chess.Board("4k3/8/8/3p4/4P3/8/8/4K3 w - - 0 1")
    candidates = [OracleMove("e1d2", 200), OracleMove("e4d5", 10)]
    aggressive = LegendStyle(aggressiveness=1.0, simplify_bias=0.0, king_safety_bias=0.0, materialism=0.5, experimental=0.0)
    assert [c.uci for c in rank_by_style(board, candidates, aggressive)] == ["e1d2", "e4d5"]


def test_board_for_keeps_history_when_moves_match():
    target = board_after("e4", "e5")
    board = board_for(target.fen(), ["e2e4", "e7e5"])
    assert board.move_stack == target.move_stack
    assert board_for(target.fen(), ["d2d4"]).move_stack == []
