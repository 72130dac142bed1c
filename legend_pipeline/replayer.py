"""
Phase 3 — Move Replay

Replays a record's movetext through python-chess, capturing the FEN
before every half-move. Comments, variations, NAGs and annotation glyphs
are stripped first. The first token the board rejects ends replay for
that game; the plies before it are kept.
"""

import logging
import re

import chess

from legend_pipeline.models import GameRecord, ReplayedPly, ReplayResult, Side

logger = logging.getLogger(__name__)

RESULTS = ("1-0", "0-1", "1/2-1/2", "*")
REPLAY_ERRORS = (chess.IllegalMoveError, chess.InvalidMoveError, chess.AmbiguousMoveError)

_BRACE_COMMENT = re.compile(r"\{[^}]*\}")
_LINE_COMMENT = re.compile(r";[^\n]*")
_ESCAPE_LINE = re.compile(r"^%[^\n]*", re.MULTILINE)
_INNER_VARIATION = re.compile(r"\([^()]*\)")
_NAG = re.compile(r"\$\d+")
_MOVE_NUMBER = re.compile(r"^\d+\.+")
_GLYPHS = re.compile(r"[!?]+$")


def clean_movetext(movetext: str) -> str:
    """Drop comments, (nested) variations and NAGs, leaving mainline tokens."""
    text = _ESCAPE_LINE.sub(" ", movetext)
    text = _BRACE_COMMENT.sub(" ", text)
    text = _LINE_COMMENT.sub(" ", text)
    while True:
        stripped = _INNER_VARIATION.sub(" ", text)
        if stripped == text:
            break
        text = stripped
    return _NAG.sub(" ", text)


def parse_pgn_moves(movetext: str) -> list[str]:
    """
    Mainline SAN tokens of a movetext (e.g. "1. e4 e5 2.Nf3 Nc6!?" -> [e4, e5, Nf3, Nc6]).
    Stops at the first result marker.
    """
    moves = []
    for token in clean_movetext(movetext).split():
        if token in RESULTS:
            break
        token = _MOVE_NUMBER.sub("", token)
        token = _GLYPHS.sub("", token)
        if token.endswith("e.p."):
            token = token[:-4]
        if token:
            moves.append(token)
    return moves


def side_of(board: chess.Board) -> Side:
    return "W" if board.turn == chess.WHITE else "B"


def replay_movetext(game_id: str, movetext: str) -> ReplayResult:
    board = chess.Board()
    plies: list[ReplayedPly] = []
    for ply_number, token in enumerate(parse_pgn_moves(movetext), start=1):
        try:
            move = board.parse_san(token)
        except REPLAY_ERRORS as e:
            logger.warning("Replay of %s stopped at ply %d (%r): %s", game_id, ply_number, token, e)
            return ReplayResult(game_id, tuple(plies), truncated_at=ply_number, bad_token=token)
        if not move:
            # Null moves ("--") have no coordinates to index.
            logger.warning("Replay of %s stopped at ply %d: null move", game_id, ply_number)
            return ReplayResult(game_id, tuple(plies), truncated_at=ply_number, bad_token=token)

        plies.append(
            ReplayedPly(
                game_id=game_id,
                fen_before=board.fen(),
                uci=move.uci(),
                san=board.san(move),
                move_number=board.fullmove_number,
                side=side_of(board),
            )
        )
        board.push(move)
    return ReplayResult(game_id, tuple(plies))


def replay_game(record: GameRecord) -> ReplayResult:
    """Replay a record. Top-level so it can run in a process pool."""
    return replay_movetext(record.game_id, record.movetext)


def plies_for_side(result: ReplayResult, side: Side) -> list[ReplayedPly]:
    return [p for p in result.plies if p.side == side]
