"""Pytest configuration."""

import shutil

import chess
import pytest

from legend_pipeline.config import EngineSettings
from legend_pipeline.oracle import OracleMove, terminal_score


def pytest_configure(config):
    config.addinivalue_line(
        "markers", "integration: mark test as requiring a Stockfish binary (skipped when none is installed)"
    )


def pytest_collection_modifyitems(config, items):
    if shutil.which(EngineSettings().stockfish_path):
        return
    skip = pytest.mark.skip(reason="Stockfish binary not found")
    for item in items:
        if "integration" in item.keywords:
            item.add_marker(skip)


class FakeOracle:
    """
    Deterministic oracle. `evals` maps a FEN to centipawns for the side to
    move; unknown positions evaluate to 0. `best` maps a FEN to its best move;
    otherwise the first legal move in UCI order is best.
    """

    def __init__(self, evals: dict[str, int] | None = None, best: dict[str, str] | None = None):
        self.evals = evals or {}
        self.best = best or {}
        self.calls: list[tuple[str, str]] = []

    def _best_uci(self, board: chess.Board) -> str:
        if board.fen() in self.best:
            return self.best[board.fen()]
        return sorted(m.uci() for m in board.legal_moves)[0]

    async def best_move(self, board, *, depth, skill=None):
        self.calls.append(("best_move", board.fen()))
        uci = self._best_uci(board)
        return OracleMove(uci, self.evals.get(board.fen()))

    async def evaluate(self, board, *, depth):
        self.calls.append(("evaluate", board.fen()))
        terminal = terminal_score(board)
        if terminal is not None:
            return terminal
        return self.evals.get(board.fen(), 0)

    async def candidates(self, board, *, depth, count):
        self.calls.append(("candidates", board.fen()))
        best = self._best_uci(board)
        others = sorted(m.uci() for m in board.legal_moves if m.uci() != best)
        return [OracleMove(best, 100)] + [OracleMove(uci, 0) for uci in others[: count - 1]]


@pytest.fixture
def fake_oracle():
    return FakeOracle()


def board_after(*sans: str) -> chess.Board:
    board = chess.Board()
    for san in sans:
        board.push_san(san)
    return board


ONE_GAME_PGN = """[Event "Casual"]
[Site "Havana"]
[Date "1901.??.??"]
[Round "?"]
[White "Capablanca, J"]
[Black "Corzo, J"]
[Result "1-0"]

1. e4 e5 2. Nf3 1-0
"""

TWO_GAME_PGN = """[Event "Match"]
[Site "Havana"]
[Date "1901.??.??"]
[Round "1"]
[White "Corzo, J"]
[Black "Capablanca, J"]
[Result "0-1"]

1. d4 d5 2. c4 e6 0-1

[Event "Casual"]
[Site "?"]
[Date "????.??.??"]
[Round "?"]
[White "?"]
[Black "Corzo, J"]
[Result "1-0"]

1. e4 e5
[White "Capablanca, J"]
2. Nf3 Nc6 1-0
"""


@pytest.fixture
def one_game_pgn():
    return ONE_GAME_PGN


@pytest.fixture
def two_game_pgn():
    return TWO_GAME_PGN
