"""
Phase 7 — Guess the Move

Steps through one of a legend's games, scoring the user's guess at each
position where the legend was to move.

Scores (0-100):
  100     exact historical move
  90      oracle-equivalent: the engine's best move, or within 10 cp of it
  70-80   good (<= 50 cp worse than best)
  40-60   playable (<= 150 cp)
  0-30    inferior
  50      legal deviation when no oracle is available
  0       illegal or unreadable guess

Session weakness tags are the weakness tags seen in two or more guesses.
"""

import logging
from collections import Counter
from collections.abc import Iterable

import chess

from legend_pipeline.config import EngineSettings
from legend_pipeline.errors import SessionFinishedError, UnknownGameError
from legend_pipeline.identity import IdentityResolver
from legend_pipeline.legend_builder import LegendIndices
from legend_pipeline.models import GameRecord, GuessPosition, GuessResult, GuessSession, SessionSummary, Side
from legend_pipeline.oracle import Oracle, QueryGate
from legend_pipeline.replayer import plies_for_side, replay_game

logger = logging.getLogger(__name__)

EQUIVALENT_CP = 10
GOOD_CP = 50
PLAYABLE_CP = 150
PASSIVE_CP = 100
WEAKENING_CP = 50
BLUNDER_CP = 300
NO_ORACLE_SCORE = 50

WEAKNESS_TAGS = ("missed-forcing", "passive-alternative", "weakening-pawn", "blunder")
FLANK_FILES = (0, 1, 6, 7)


def session_from_record(legend: str, record: GameRecord, color: Side) -> GuessSession:
    replay = replay_game(record)
    positions = tuple(
        GuessPosition(fen=p.fen_before, move=p.uci, move_number=p.move_number) for p in plies_for_side(replay, color)
    )
    return GuessSession(legend=legend, record=record, color=color, positions=positions)


def create_session(indices: LegendIndices, game_id: str, resolver: IdentityResolver | None = None) -> GuessSession:
    """Session over the legend's moves in one game. UnknownGameError if the legend did not play it."""
    record = indices.record(game_id)
    color = indices.colors.get(game_id)
    if color is None and resolver is not None:
        color = resolver.resolve_record(record, indices.legend)
    if color is None:
        raise UnknownGameError(indices.legend, game_id, "legend did not play this game")
    session = session_from_record(indices.legend, record, color)
    if not session.positions:
        raise UnknownGameError(indices.legend, game_id, "no replayable moves for the legend")
    return session


def parse_guess(board: chess.Board, text: str) -> chess.Move | None:
    """Accept UCI (any case) or SAN; None if it is not a legal move here."""
    text = text.strip()
    try:
        return board.parse_uci(text.lower())
    except ValueError:
        pass
    try:
        return board.parse_san(text)
    except ValueError:
        return None


def is_forcing(board: chess.Board, move: chess.Move) -> bool:
    return board.gives_check(move) or board.is_capture(move)


def is_flank_pawn_push(board: chess.Board, move: chess.Move) -> bool:
    return (
        board.piece_type_at(move.from_square) == chess.PAWN
        and not board.is_capture(move)
        and chess.square_file(move.from_square) in FLANK_FILES
    )


def score_for_loss(cp_loss: int) -> tuple[int, str]:
    if cp_loss <= EQUIVALENT_CP:
        return 90, "oracle-equivalent"
    if cp_loss <= GOOD_CP:
        return 70 + (GOOD_CP - cp_loss) * 10 // GOOD_CP, "good"
    if cp_loss <= PLAYABLE_CP:
        return 40 + (PLAYABLE_CP - cp_loss) * 20 // PLAYABLE_CP, "playable"
    return max(0, 30 - (cp_loss - PLAYABLE_CP) // 20), "inferior"


def comment_for(score: int, exact: bool) -> str:
    if exact:
        return "You found the legend's move."
    if score >= 90:
        return "As strong as the legend's move."
    if score >= 70:
        return "Good move, but not the legend's choice."
    if score >= 40:
        return "Playable, but the legend found something stronger."
    return "This move misses the critical idea."


class GuessScorer:
    def __init__(
        self,
        oracle: Oracle | None = None,
        *,
        depth: int | None = None,
        gate: QueryGate | None = None,
    ):
        self.oracle = oracle
        self.depth = depth or EngineSettings().scoring_depth
        self.gate = gate or QueryGate()

    async def score(
        self, fen: str, user_move: str, historical_move: str, *, session_id: str | None = None
    ) -> GuessResult:
        board = chess.Board(fen)
        guess = parse_guess(board, user_move)
        if guess is None:
            return GuessResult(fen, user_move, historical_move, 0, ("illegal",), comment="Not a legal move here.")

        user_uci = guess.uci()
        if user_uci == historical_move:
            return GuessResult(fen, user_uci, historical_move, 100, ("exact",), comment=comment_for(100, True))

        tags = ["deviation"]
        historical = chess.Move.from_uci(historical_move)
        if historical in board.legal_moves and is_forcing(board, historical) and not is_forcing(board, guess):
            tags.append("missed-forcing")

        if self.oracle is None:
            return GuessResult(
                fen, user_uci, historical_move, NO_ORACLE_SCORE, tuple(tags), comment=comment_for(NO_ORACLE_SCORE, False)
            )

        best, cp_loss = await self.gate.maybe_run(session_id, self._cp_loss(board, guess))
        if user_uci == best:
            cp_loss = 0
        score, band = score_for_loss(cp_loss)
        tags.append(band)
        if cp_loss > PASSIVE_CP and not is_forcing(board, guess):
            tags.append("passive-alternative")
        if cp_loss > WEAKENING_CP and is_flank_pawn_push(board, guess):
            tags.append("weakening-pawn")
        if cp_loss > BLUNDER_CP:
            tags.append("blunder")

        return GuessResult(
            fen,
            user_uci,
            historical_move,
            score,
            tuple(tags),
            oracle_move=best,
            cp_loss=cp_loss,
            comment=comment_for(score, False),
        )

    async def _cp_loss(self, board: chess.Board, guess: chess.Move) -> tuple[str, int]:
        best = await self.oracle.best_move(board, depth=self.depth)
        if best.uci == guess.uci():
            return best.uci, 0
        best_cp = best.score_cp
        if best_cp is None:
            best_cp = await self.oracle.evaluate(board, depth=self.depth)
        after = board.copy()
        after.push(guess)
        user_cp = -await self.oracle.evaluate(after, depth=self.depth)
        return best.uci, max(0, best_cp - user_cp)

    async def submit(self, session: GuessSession, user_move: str) -> GuessResult:
        """Score a guess at the session's current position and advance."""
        position = session.current
        if position is None:
            raise SessionFinishedError(f"Session {session.session_id} has no positions left")
        result = await self.score(position.fen, user_move, position.move, session_id=session.session_id)
        session.results.append(result)
        session.cursor += 1
        logger.debug("Guess %s vs %s scored %d %s", result.user_move, result.historical_move, result.score, result.tags)
        return result


def summarize(legend: str, game_id: str, results: Iterable[GuessResult]) -> SessionSummary:
    results = tuple(results)
    counts: Counter[str] = Counter()
    for result in results:
        counts.update(dict.fromkeys(result.tags, 1))
    weaknesses = tuple(tag for tag in counts if tag in WEAKNESS_TAGS and counts[tag] >= 2)
    return SessionSummary(
        legend=legend,
        game_id=game_id,
        results=results,
        total_score=sum(r.score for r in results),
        weakness_tags=weaknesses,
    )


def summarize_session(session: GuessSession) -> SessionSummary:
    return summarize(session.legend, session.record.game_id, session.results)


def format_study_note(summary: SessionSummary) -> str:
    """Markdown study note for a finished session."""
    total = len(summary.results)
    lines = [
        f"## Guess-the-Move Session: {summary.legend.capitalize()}",
        "",
        f"Game ID: {summary.game_id}",
        f"Score: {summary.average_score}/100",
        "",
    ]
    if summary.weakness_tags:
        lines.append("### Detected Weaknesses:")
        lines.append("")
        lines.extend(f"- {tag.replace('-', ' ')}" for tag in summary.weakness_tags)
        lines.append("")
    lines.append("### Move Breakdown:")
    lines.append("")
    lines.append(f"- Exact matches: {sum(r.is_exact for r in summary.results)}/{total}")
    lines.append(f"- Good moves (70+): {sum(r.score >= 70 for r in summary.results)}/{total}")
    lines.append(f"- Poor moves (<40): {sum(r.score < 40 for r in summary.results)}/{total}")
    return "\n".join(lines) + "\n"
