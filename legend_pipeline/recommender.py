"""
Phase 6 — Move Recommendation

Returns one move for a live position, imitating a legend. Sources, in
priority order:

  1. position_index  - the legend's own moves from this exact FEN
  2. transposition   - the same position reached with different counters
  3. opening_book    - moves played from this position in the legend's games
  4. oracle          - engine move at the bot level's strength, re-ranked by
                       the legend's style, occasionally replaced by a weaker
                       legal move at lower levels (oracle_inferior)

Historical choices are sampled with an injected random.Random, weighted by
frequency and recency. A candidate that is illegal in the live position
is never returned.
"""

import logging
import random
from collections.abc import Iterable, Sequence
from dataclasses import dataclass

import chess

from legend_pipeline.config import BotLevelProfile, EngineSettings, LegendStyle, bot_level_profile, legend_style
from legend_pipeline.errors import NoLegalMoveError, OracleUnavailableError
from legend_pipeline.legend_builder import LegendIndices
from legend_pipeline.models import PositionContinuation
from legend_pipeline.oracle import Oracle, OracleMove, QueryGate

logger = logging.getLogger(__name__)

RECENCY_BONUS = 0.5
CLEAR_BEST_MARGIN = 35

PIECE_VALUES = {
    chess.PAWN: 1,
    chess.KNIGHT: 3,
    chess.BISHOP: 3,
    chess.ROOK: 5,
    chess.QUEEN: 9,
    chess.KING: 0,
}


@dataclass(frozen=True)
class Recommendation:
    move: str
    source: str
    options: tuple[tuple[str, float], ...] = ()


def continuation_weights(continuations: Sequence[PositionContinuation]) -> dict[str, float]:
    """Summed weight per move; later occurrences weigh up to 1 + RECENCY_BONUS."""
    weights: dict[str, float] = {}
    last = len(continuations) - 1
    for ordinal, cont in enumerate(continuations):
        recency = ordinal / last if last > 0 else 1.0
        weights[cont.move] = weights.get(cont.move, 0.0) + 1.0 + RECENCY_BONUS * recency
    return weights


def apply_experimental(weights: dict[str, float], experimental: float) -> dict[str, float]:
    """Damp dominant moves and lift sidelines in proportion to `experimental`."""
    total = sum(weights.values())
    if experimental <= 0 or total <= 0 or len(weights) < 2:
        return dict(weights)
    adjusted = {}
    for move, weight in weights.items():
        share = weight / total
        if share > 0.4:
            weight *= 1 - experimental * 0.5
        elif share < 0.15:
            weight *= 1 + experimental * 3
        adjusted[move] = weight
    return adjusted


def weighted_pick(weights: dict[str, float], rng: random.Random) -> str:
    moves = list(weights)
    return rng.choices(moves, weights=[weights[m] for m in moves], k=1)[0]


def legal_only(board: chess.Board, weights: dict[str, float]) -> dict[str, float]:
    legal = {m.uci() for m in board.legal_moves}
    return {move: w for move, w in weights.items() if move in legal}


@dataclass(frozen=True)
class MoveFeatures:
    is_check: bool
    is_capture: bool
    material_delta: int
    simplifies: bool
    exposes_king: bool


def move_features(board: chess.Board, move: chess.Move) -> MoveFeatures:
    mover = board.piece_type_at(move.from_square)
    is_capture = board.is_capture(move)
    gained = 0
    if is_capture:
        captured = chess.PAWN if board.is_en_passant(move) else board.piece_type_at(move.to_square)
        gained = PIECE_VALUES.get(captured, 0)
    at_risk = 0
    after = board.copy(stack=False)
    after.push(move)
    if after.is_attacked_by(after.turn, move.to_square) and not after.is_attacked_by(board.turn, move.to_square):
        at_risk = PIECE_VALUES.get(mover, 0)
    return MoveFeatures(
        is_check=board.gives_check(move),
        is_capture=is_capture,
        material_delta=gained - at_risk,
        simplifies=is_capture and mover in (chess.KNIGHT, chess.BISHOP, chess.ROOK, chess.QUEEN),
        exposes_king=mover == chess.KING and not board.is_castling(move),
    )


def style_bonus(features: MoveFeatures, style: LegendStyle) -> float:
    bonus = 0.0
    if features.is_check:
        bonus += style.aggressiveness * 20
    if features.is_capture:
        bonus += style.aggressiveness * 12
    if features.simplifies:
        bonus += style.simplify_bias * 15
    if features.material_delta < 0:
        # Materialists shy away from sacrifices; romantics lean into them.
        bonus += (0.5 - style.materialism) * abs(features.material_delta) * 16
    elif features.material_delta > 0:
        bonus += style.materialism * features.material_delta * 5
    if features.exposes_king:
        bonus -= style.king_safety_bias * 10
    return bonus


def rank_by_style(board: chess.Board, candidates: Sequence[OracleMove], style: LegendStyle) -> list[OracleMove]:
    """Re-rank engine candidates; a clearly best move keeps first place."""
    if len(candidates) < 2:
        return list(candidates)
    first, second = candidates[0], candidates[1]
    if first.score_cp is not None and second.score_cp is not None and first.score_cp - second.score_cp > CLEAR_BEST_MARGIN:
        return list(candidates)

    def adjusted(item):
        rank, cand = item
        base = cand.score_cp if cand.score_cp is not None else -10 * rank
        return base + style_bonus(move_features(board, chess.Move.from_uci(cand.uci)), style)

    return [cand for _, cand in sorted(enumerate(candidates), key=adjusted, reverse=True)]


def board_for(fen: str, moves: Iterable[str] = ()) -> chess.Board:
    """Board for the live position, carrying move history when it leads there."""
    target = chess.Board(fen)
    moves = list(moves)
    if not moves:
        return target
    board = chess.Board()
    try:
        for uci in moves:
            board.push(board.parse_uci(uci))
    except (chess.IllegalMoveError, chess.InvalidMoveError):
        return target
    if board.fen() != target.fen():
        return target
    return board


class MoveRecommender:
    def __init__(
        self,
        indices: LegendIndices,
        oracle: Oracle | None = None,
        *,
        rng: random.Random | None = None,
        style: LegendStyle | None = None,
        gate: QueryGate | None = None,
        engine_settings: EngineSettings | None = None,
    ):
        self.indices = indices
        self.oracle = oracle
        self.rng = rng or random.Random()
        self.style = style or legend_style(indices.legend)
        self.gate = gate or QueryGate()
        self.engine_settings = engine_settings or EngineSettings()

    def _from_history(self, board: chess.Board, continuations, source: str) -> Recommendation | None:
        weights = legal_only(board, continuation_weights(continuations))
        if not weights:
            return None
        weights = apply_experimental(weights, self.style.experimental)
        move = weighted_pick(weights, self.rng)
        options = tuple(sorted(weights.items(), key=lambda kv: -kv[1]))
        logger.debug("[%s] %s options: %s", self.indices.legend, source, options[:3])
        return Recommendation(move, source, options)

    def from_index(self, board: chess.Board) -> Recommendation | None:
        fen = board.fen()
        rec = self._from_history(board, self.indices.position_index.continuations(fen), "position_index")
        if rec is None:
            rec = self._from_history(board, self.indices.position_index.lookup_transposed(fen), "transposition")
        return rec

    def from_book(self, board: chess.Board) -> Recommendation | None:
        if board.fullmove_number > self.indices.opening_horizon:
            return None
        entries = self.indices.book_candidates(board.fen())
        weights = legal_only(board, {e.move: float(e.count) for e in entries})
        if not weights:
            return None
        weights = apply_experimental(weights, self.style.experimental)
        return Recommendation(weighted_pick(weights, self.rng), "opening_book", tuple(weights.items()))

    async def from_oracle(self, board: chess.Board, profile: BotLevelProfile, session_id: str | None) -> Recommendation:
        if self.oracle is None:
            raise OracleUnavailableError(f"No oracle configured and no history for {board.fen()}")
        if not any(board.legal_moves):
            raise NoLegalMoveError(board.fen(), "game over")
        query = self.oracle.candidates(board, depth=profile.depth, count=self.engine_settings.candidate_count)
        candidates = await self.gate.maybe_run(session_id, query)
        legal = {m.uci() for m in board.legal_moves}
        candidates = [c for c in candidates if c.uci in legal]
        if not candidates:
            best = await self.gate.maybe_run(
                session_id, self.oracle.best_move(board, depth=profile.depth, skill=profile.skill)
            )
            if best.uci not in legal:
                raise NoLegalMoveError(board.fen(), f"oracle move {best.uci} is not legal")
            candidates = [best]

        ranked = rank_by_style(board, candidates, self.style)
        best = ranked[0].uci
        if profile.inferior_move_chance and self.rng.random() < profile.inferior_move_chance:
            weaker = [c.uci for c in ranked[1:]] or sorted(legal - {best})
            if weaker:
                move = self.rng.choice(weaker)
                logger.info("[%s] inferior engine move %s instead of %s", self.indices.legend, move, best)
                return Recommendation(move, "oracle_inferior")
        return Recommendation(best, "oracle", tuple((c.uci, float(c.score_cp or 0)) for c in ranked))

    async def recommend(
        self,
        fen: str,
        moves: Iterable[str] = (),
        level: str = "coach",
        session_id: str | None = None,
    ) -> Recommendation:
        """Pick the legend's move for `fen`. Raises OracleError if nothing legal can be produced."""
        profile = bot_level_profile(level)
        board = board_for(fen, moves)
        rec = self.from_index(board) or self.from_book(board)
        if rec is None:
            rec = await self.from_oracle(board, profile, session_id)
        logger.info("[%s] move %d: %s from %s", self.indices.legend, board.fullmove_number, rec.move, rec.source)
        return rec
