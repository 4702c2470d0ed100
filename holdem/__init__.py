"""Texas Hold'em rules engine: cards, hand ranking, betting, showdown, hand lifecycle."""

from .bots import create_bot
from .cards import Card, Deck, RANKS, SUITS, build_deck, deal, parse_cards, stacked_deck
from .errors import BlindsError, EngineError, HandEvaluationError, InvariantError, ShowdownError
from .evaluator import HandCategory, HandRankResult, compare, determine_winners, evaluate
from .game import GameEngine, HandContext, HandResult
from .models import (
    ActionResult,
    ActionType,
    Event,
    HandPhase,
    Player,
    PlayerAction,
    PlayerStatus,
    Street,
    TableConfig,
    TableState,
    ValidActions,
)
from .showdown import ShowdownPlayer, ShowdownResult, resolve_showdown, resolve_showdown_with_events

__all__ = [
    "create_bot",
    "Card",
    "Deck",
    "RANKS",
    "SUITS",
    "build_deck",
    "deal",
    "parse_cards",
    "stacked_deck",
    "BlindsError",
    "EngineError",
    "HandEvaluationError",
    "InvariantError",
    "ShowdownError",
    "HandCategory",
    "HandRankResult",
    "compare",
    "determine_winners",
    "evaluate",
    "GameEngine",
    "HandContext",
    "HandResult",
    "ActionResult",
    "ActionType",
    "Event",
    "HandPhase",
    "Player",
    "PlayerAction",
    "PlayerStatus",
    "Street",
    "TableConfig",
    "TableState",
    "ValidActions",
    "ShowdownPlayer",
    "ShowdownResult",
    "resolve_showdown",
    "resolve_showdown_with_events",
]
