from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, List, Optional, Tuple

from .cards import Card


class Street(str, Enum):
    WAITING = "waiting"
    PREFLOP = "preflop"
    FLOP = "flop"
    TURN = "turn"
    RIVER = "river"
    SHOWDOWN = "showdown"
    COMPLETE = "complete"


STREET_ORDER = (
    Street.WAITING,
    Street.PREFLOP,
    Street.FLOP,
    Street.TURN,
    Street.RIVER,
    Street.SHOWDOWN,
    Street.COMPLETE,
)


class HandPhase(str, Enum):
    WAITING = "WAITING"
    PREFLOP = "PREFLOP"
    FLOP = "FLOP"
    TURN = "TURN"
    RIVER = "RIVER"
    SHOWDOWN = "SHOWDOWN"
    SETTLEMENT = "SETTLEMENT"
    COMPLETE = "COMPLETE"


class PlayerStatus(str, Enum):
    ACTIVE = "active"
    FOLDED = "folded"
    ALL_IN = "all-in"
    OUT = "out"


class ActionType(str, Enum):
    FOLD = "fold"
    CHECK = "check"
    CALL = "call"
    BET = "bet"
    RAISE = "raise"
    ALL_IN = "all-in"


@dataclass
class TableConfig:
    seats: int = 6
    starting_stack: int = 10_000
    sb: int = 50
    bb: int = 100
    move_time_ms: int = 15_000
    house_bots: int = 1
    bot_style: str = "neutral"
    table_id: str = "T-1"


@dataclass(frozen=True)
class PlayerAction:
    type: ActionType
    amount: Optional[int] = None

    @classmethod
    def from_payload(cls, payload: Dict[str, object]) -> "PlayerAction":
        action = ActionType(payload["type"])
        amount = payload.get("amount")
        if amount is not None and (isinstance(amount, bool) or not isinstance(amount, int)):
            raise ValueError("amount must be an integer")
        return cls(action, amount)

    def to_payload(self) -> Dict[str, object]:
        payload: Dict[str, object] = {"type": self.type.value}
        if self.amount is not None:
            payload["amount"] = self.amount
        return payload


@dataclass(frozen=True)
class Player:
    id: str
    name: str
    seat: int
    stack: int
    hole_cards: Tuple[Card, ...] = ()
    status: PlayerStatus = PlayerStatus.ACTIVE
    current_bet: int = 0
    total_bet_this_hand: int = 0
    is_dealer: bool = False

    @property
    def in_hand(self) -> bool:
        return self.status in (PlayerStatus.ACTIVE, PlayerStatus.ALL_IN)

    @property
    def can_act(self) -> bool:
        return self.status == PlayerStatus.ACTIVE


@dataclass(frozen=True)
class TableState:
    players: Tuple[Player, ...]
    small_blind: int
    big_blind: int
    dealer_index: int = 0
    street: Street = Street.WAITING
    community_cards: Tuple[Card, ...] = ()
    pot: int = 0
    current_bet: int = 0
    min_raise: int = 0
    active_player_index: int = 0
    last_raiser_index: int = -1
    actions_this_round: int = 0
    acted_this_round: Tuple[int, ...] = ()
    hand_number: int = 0
    winners: Tuple[int, ...] = ()
    winning_hand_description: str = ""


@dataclass(frozen=True)
class ValidActions:
    can_fold: bool = False
    can_check: bool = False
    can_call: bool = False
    call_amount: int = 0
    can_bet: bool = False
    min_bet: int = 0
    max_bet: int = 0
    can_raise: bool = False
    min_raise: int = 0
    max_raise: int = 0
    can_all_in: bool = False

    def legal(self) -> List[ActionType]:
        legal: List[ActionType] = []
        if self.can_fold:
            legal.append(ActionType.FOLD)
        if self.can_check:
            legal.append(ActionType.CHECK)
        if self.can_call:
            legal.append(ActionType.CALL)
        if self.can_bet:
            legal.append(ActionType.BET)
        if self.can_raise:
            legal.append(ActionType.RAISE)
        if self.can_all_in:
            legal.append(ActionType.ALL_IN)
        return legal


@dataclass(frozen=True)
class ActionResult:
    success: bool
    state: TableState
    error: Optional[str] = None


@dataclass
class Event:
    ev: str
    data: Dict[str, object] = field(default_factory=dict)

    def as_dict(self) -> Dict[str, object]:
        return {"ev": self.ev, **self.data}
