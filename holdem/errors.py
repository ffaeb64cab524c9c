from __future__ import annotations


class EngineError(Exception):
    """Base class for every rejection raised by the table engine."""

    code = "ENGINE_ERROR"

    def __init__(self, msg: str, code: str | None = None) -> None:
        super().__init__(msg)
        self.msg = msg
        if code is not None:
            self.code = code


class IllegalAction(EngineError, ValueError):
    # Wrong turn, bad amount, checking while a call is owed. Nothing is mutated.
    code = "ILLEGAL_ACTION"


class TableFull(EngineError, RuntimeError):
    code = "TABLE_FULL"


class TableNotJoinable(EngineError, RuntimeError):
    code = "TABLE_NOT_JOINABLE"


class EmptyDeck(EngineError, RuntimeError):
    """More cards were requested than the deck holds. Fatal for the round."""

    code = "EMPTY_DECK"


class InsufficientPlayers(EngineError, RuntimeError):
    code = "INSUFFICIENT_PLAYERS"
