"""Precondition errors raised by the engine.

Illegal player actions are never raised; they come back as rejected
``ActionResult`` values. The exceptions below signal a caller bug.
"""


class EngineError(Exception):
    """Base class for engine precondition violations."""


class HandEvaluationError(EngineError, ValueError):
    pass


class ShowdownError(EngineError, ValueError):
    pass


class BlindsError(EngineError, RuntimeError):
    pass


class InvariantError(EngineError, RuntimeError):
    pass
