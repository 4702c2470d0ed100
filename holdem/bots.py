from __future__ import annotations

import random
from dataclasses import dataclass
from typing import Callable, Dict, Optional, Sequence

from .betting import valid_actions
from .cards import Card
from .models import ActionType, PlayerAction, TableState, ValidActions
from .table_state import current_player

# Rule-based house players. They only see the snapshot handed to them and
# always answer with an action the betting rules accept.

Bot = Callable[[TableState], PlayerAction]


@dataclass(frozen=True)
class BotStyle:
    name: str
    fold_threshold: float  # fold when the call costs more than this share of the stack
    raise_frequency: float
    open_frequency: float


STYLES: Dict[str, BotStyle] = {
    "passive": BotStyle("passive", fold_threshold=0.3, raise_frequency=0.05, open_frequency=0.0),
    "neutral": BotStyle("neutral", fold_threshold=0.5, raise_frequency=0.2, open_frequency=0.0),
    "aggressive": BotStyle("aggressive", fold_threshold=0.7, raise_frequency=0.4, open_frequency=0.3),
}

PREMIUM_STRENGTH = 36


def rough_hand_strength(hole: Sequence[Card]) -> int:
    """Very rough proxy for hand quality used to drive aggression choices."""
    if len(hole) < 2:
        return 0
    first, second = hole[0], hole[1]
    score = first.rank + second.rank
    if first.rank == second.rank:
        score += 14  # pairs are quite strong pre-flop
    else:
        gap = abs(first.rank - second.rank)
        if gap == 1:
            score += 4
        elif gap == 2:
            score += 2
    if first.suit == second.suit:
        score += 3
    if min(first.rank, second.rank) >= 11:
        score += 2
    return score


def make_decision(state: TableState, style: BotStyle, rng: random.Random) -> PlayerAction:
    player = current_player(state)
    valid = valid_actions(state)
    if player is None or not valid.can_fold:
        return PlayerAction(ActionType.FOLD)

    strength = rough_hand_strength(player.hole_cards)

    if valid.can_check:
        if valid.can_bet and (rng.random() < style.open_frequency or strength >= PREMIUM_STRENGTH):
            amount = min(valid.min_bet * 2, valid.max_bet)
            if amount < valid.min_bet:
                return PlayerAction(ActionType.ALL_IN)
            return PlayerAction(ActionType.BET, amount)
        return PlayerAction(ActionType.CHECK)

    call_ratio = valid.call_amount / player.stack if player.stack else 1.0
    if call_ratio > style.fold_threshold and strength < PREMIUM_STRENGTH:
        # Sometimes stick around anyway.
        if rng.random() < 0.2:
            return PlayerAction(ActionType.CALL if valid.can_call else ActionType.ALL_IN)
        return PlayerAction(ActionType.FOLD)

    if valid.can_raise and (rng.random() < style.raise_frequency or strength >= PREMIUM_STRENGTH):
        return PlayerAction(ActionType.RAISE, raise_amount(state, valid, style))

    if valid.can_call:
        return PlayerAction(ActionType.CALL)
    if valid.can_all_in:
        return PlayerAction(ActionType.ALL_IN)
    return PlayerAction(ActionType.FOLD)


def raise_amount(state: TableState, valid: ValidActions, style: BotStyle) -> int:
    if style.name == "passive":
        target = valid.min_raise
    elif style.name == "aggressive":
        target = state.pot + state.current_bet * 2
    else:
        target = int(state.current_bet * 2.5)
    return min(max(valid.min_raise, target), valid.max_raise)


def create_bot(style: str = "neutral", seed: Optional[int] = None) -> Bot:
    try:
        config = STYLES[style]
    except KeyError:
        raise ValueError(f"Unknown bot style: {style}") from None
    rng = random.Random(seed)

    def decide(state: TableState) -> PlayerAction:
        return make_decision(state, config, rng)

    return decide
