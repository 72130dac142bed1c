"""
Engine oracle

Best-move, evaluation and multi-PV queries against a UCI engine
(Stockfish) through python-chess's asyncio engine API. Scores are
centipawns from the point of view of the side to move; mate is capped
at +/-MATE_CP.

QueryGate keeps one in-flight query per session: a newer query cancels
the older one, and a result that arrives for a superseded query is
dropped with StaleQueryError instead of being applied.

Usage:
  async with StockfishOracle() as oracle:
      best = await oracle.best_move(chess.Board(), depth=12)
  STOCKFISH_PATH=/usr/bin/stockfish ...
"""

import asyncio
import logging
from collections.abc import Awaitable
from dataclasses import dataclass
from typing import Protocol, TypeVar

import chess
import chess.engine

from legend_pipeline.config import EngineSettings
from legend_pipeline.errors import NoLegalMoveError, OracleUnavailableError, StaleQueryError

logger = logging.getLogger(__name__)

MATE_CP = 1000
ENGINE_ERRORS = (chess.engine.EngineError, chess.engine.EngineTerminatedError)

T = TypeVar("T")


@dataclass(frozen=True)
class OracleMove:
    uci: str
    score_cp: int | None = None


class Oracle(Protocol):
    async def best_move(self, board: chess.Board, *, depth: int, skill: int | None = None) -> OracleMove: ...

    async def evaluate(self, board: chess.Board, *, depth: int) -> int: ...

    async def candidates(self, board: chess.Board, *, depth: int, count: int) -> list[OracleMove]: ...


def score_to_cp(score: chess.engine.PovScore, turn: chess.Color) -> int:
    """Centipawns for `turn`. Mate is capped at +/-MATE_CP."""
    pov = score.pov(turn)
    if pov.is_mate():
        return MATE_CP if pov.mate() > 0 else -MATE_CP
    return pov.score(mate_score=MATE_CP * 10)


def terminal_score(board: chess.Board) -> int | None:
    """Score of a finished game for the side to move, or None if play goes on."""
    if board.is_checkmate():
        return -MATE_CP
    if board.is_game_over():
        return 0
    return None


class StockfishOracle:
    def __init__(self, settings: EngineSettings | None = None):
        self.settings = settings or EngineSettings()
        self._transport = None
        self._engine: chess.engine.Protocol | None = None
        self._lock = asyncio.Lock()

    async def __aenter__(self):
        await self.start()
        return self

    async def __aexit__(self, exc_type, exc, tb):
        await self.close()

    async def start(self) -> chess.engine.Protocol:
        if self._engine is None:
            try:
                self._transport, self._engine = await chess.engine.popen_uci(self.settings.stockfish_path)
            except (FileNotFoundError, PermissionError) as e:
                logger.warning("Stockfish not found at %s: %s", self.settings.stockfish_path, e)
                raise OracleUnavailableError(
                    f"Stockfish not found at {self.settings.stockfish_path!r}. Install it or set STOCKFISH_PATH."
                ) from e
            logger.info("Stockfish engine started: %s", self.settings.stockfish_path)
        return self._engine

    async def close(self) -> None:
        if self._engine is not None:
            engine, self._engine = self._engine, None
            try:
                await engine.quit()
            except ENGINE_ERRORS:
                pass
            logger.info("Stockfish engine stopped")

    async def _run(self, query):
        engine = await self.start()
        async with self._lock:
            try:
                return await query(engine)
            except ENGINE_ERRORS as e:
                logger.warning("Engine query failed: %s", e)
                raise OracleUnavailableError(str(e)) from e

    async def best_move(self, board: chess.Board, *, depth: int, skill: int | None = None) -> OracleMove:
        if board.is_game_over():
            raise NoLegalMoveError(board.fen(), "game over")
        options = {"Skill Level": skill} if skill is not None else {}
        result = await self._run(
            lambda engine: engine.play(
                board, chess.engine.Limit(depth=depth), info=chess.engine.INFO_SCORE, options=options
            )
        )
        if result.move is None:
            raise NoLegalMoveError(board.fen(), "engine returned no move")
        score = result.info.get("score")
        return OracleMove(result.move.uci(), score_to_cp(score, board.turn) if score is not None else None)

    async def evaluate(self, board: chess.Board, *, depth: int) -> int:
        terminal = terminal_score(board)
        if terminal is not None:
            return terminal
        info = await self._run(lambda engine: engine.analyse(board, chess.engine.Limit(depth=depth)))
        score = info.get("score")
        if score is None:
            raise OracleUnavailableError(f"Engine returned no score for {board.fen()}")
        return score_to_cp(score, board.turn)

    async def candidates(self, board: chess.Board, *, depth: int, count: int) -> list[OracleMove]:
        if board.is_game_over():
            raise NoLegalMoveError(board.fen(), "game over")
        infos = await self._run(
            lambda engine: engine.analyse(board, chess.engine.Limit(depth=depth), multipv=count)
        )
        moves = []
        for info in infos:
            pv = info.get("pv") or []
            if not pv:
                continue
            score = info.get("score")
            moves.append(OracleMove(pv[0].uci(), score_to_cp(score, board.turn) if score is not None else None))
        return moves


class QueryGate:
    """At most one live oracle query per session; newer queries win."""

    def __init__(self):
        self._generation: dict[str, int] = {}
        self._inflight: dict[str, asyncio.Future] = {}

    def supersede(self, session_id: str) -> int:
        generation = self._generation.get(session_id, 0) + 1
        self._generation[session_id] = generation
        previous = self._inflight.pop(session_id, None)
        if previous is not None and not previous.done():
            previous.cancel()
        return generation

    async def run(self, session_id: str, query: Awaitable[T]) -> T:
        generation = self.supersede(session_id)
        task = asyncio.ensure_future(query)
        self._inflight[session_id] = task
        try:
            result = await task
        except asyncio.CancelledError:
            if self._generation.get(session_id) != generation:
                raise StaleQueryError(session_id) from None
            raise
        finally:
            if self._inflight.get(session_id) is task:
                del self._inflight[session_id]
        if self._generation.get(session_id) != generation:
            raise StaleQueryError(session_id)
        return result

    async def maybe_run(self, session_id: str | None, query: Awaitable[T]) -> T:
        if session_id is None:
            return await query
        return await self.run(session_id, query)
