"""Typed failures surfaced to callers of the query-time engines."""


class LegendPipelineError(Exception):
    pass


class OracleError(LegendPipelineError):
    pass


class OracleUnavailableError(OracleError):
    """Engine binary missing, crashed, or answered with an engine error."""


class NoLegalMoveError(OracleError):
    """No legal move exists or none could be produced for the position."""

    def __init__(self, fen: str, reason: str = "no legal move"):
        super().__init__(f"{reason}: {fen}")
        self.fen = fen
        self.reason = reason


class StaleQueryError(LegendPipelineError):
    """A newer query for the same session superseded this one; its result was dropped."""

    def __init__(self, session_id: str):
        super().__init__(f"Query for session {session_id} was superseded")
        self.session_id = session_id


class UnknownGameError(LegendPipelineError):
    def __init__(self, legend: str, game_id: str, reason: str = "not found"):
        super().__init__(f"Game {game_id} for {legend}: {reason}")
        self.legend = legend
        self.game_id = game_id


class SessionFinishedError(LegendPipelineError):
    pass
