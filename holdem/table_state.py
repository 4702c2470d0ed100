"""Queries and whole-state transitions over ``TableState``.

Every transition returns a new snapshot; the state passed in is never touched.
"""

from __future__ import annotations

from dataclasses import replace
from typing import Callable, List, Mapping, Optional, Sequence

from .cards import Card
from .errors import InvariantError
from .models import STREET_ORDER, Player, PlayerStatus, Street, TableState

COMMUNITY_COUNTS = {
    Street.WAITING: (0,),
    Street.PREFLOP: (0,),
    Street.FLOP: (3,),
    Street.TURN: (4,),
    Street.RIVER: (5,),
    Street.SHOWDOWN: (5,),
    Street.COMPLETE: (0, 3, 4, 5),
}
BETTING_STREETS = (Street.PREFLOP, Street.FLOP, Street.TURN, Street.RIVER)


def create_player(player_id: str, name: str, stack: int, seat: int) -> Player:
    return Player(id=player_id, name=name, seat=seat, stack=stack)


def create_table_state(
    players: Sequence[Player],
    small_blind: int,
    big_blind: int,
    dealer_index: int = 0,
    hand_number: int = 0,
) -> TableState:
    seated = tuple(
        replace(
            player,
            hole_cards=(),
            status=PlayerStatus.ACTIVE if player.stack > 0 else PlayerStatus.OUT,
            current_bet=0,
            total_bet_this_hand=0,
            is_dealer=idx == dealer_index,
        )
        for idx, player in enumerate(players)
    )
    return TableState(
        players=seated,
        small_blind=small_blind,
        big_blind=big_blind,
        dealer_index=dealer_index,
        min_raise=big_blind,
        hand_number=hand_number,
    )


# Queries -------------------------------------------------------------


def in_hand_players(state: TableState) -> List[Player]:
    return [player for player in state.players if player.in_hand]


def acting_players(state: TableState) -> List[Player]:
    return [player for player in state.players if player.can_act]


def current_player(state: TableState) -> Optional[Player]:
    if 0 <= state.active_player_index < len(state.players):
        return state.players[state.active_player_index]
    return None


def player_index(state: TableState, player_id: str) -> int:
    for idx, player in enumerate(state.players):
        if player.id == player_id:
            return idx
    return -1


def _next_index(state: TableState, from_index: int, accept: Callable[[Player], bool]) -> int:
    count = len(state.players)
    for step in range(1, count + 1):
        idx = (from_index + step) % count
        if accept(state.players[idx]):
            return idx
    return -1


def next_active_index(state: TableState, from_index: int) -> int:
    """Next seat (after ``from_index``) whose player can still act, or -1."""
    return _next_index(state, from_index, lambda player: player.can_act)


def next_seated_index(state: TableState, from_index: int) -> int:
    """Next seat dealt into the hand (anyone not ``out``)."""
    return _next_index(state, from_index, lambda player: player.status != PlayerStatus.OUT)


def seated_count(state: TableState) -> int:
    return sum(1 for player in state.players if player.status != PlayerStatus.OUT)


def small_blind_index(state: TableState) -> int:
    # Heads-up the dealer posts the small blind.
    if seated_count(state) == 2:
        return state.dealer_index
    return next_seated_index(state, state.dealer_index)


def big_blind_index(state: TableState) -> int:
    return next_seated_index(state, small_blind_index(state))


def call_amount(state: TableState, index: int) -> int:
    if not 0 <= index < len(state.players):
        return 0
    player = state.players[index]
    return max(0, min(state.current_bet - player.current_bet, player.stack))


def all_players_matched(state: TableState) -> bool:
    return all(
        player.current_bet >= state.current_bet or player.stack == 0
        for player in acting_players(state)
    )


def is_only_one_player_remaining(state: TableState) -> bool:
    return len(in_hand_players(state)) == 1


def total_chips(state: TableState) -> int:
    return sum(player.stack for player in state.players) + state.pot


# Transitions ---------------------------------------------------------


def update_player(state: TableState, index: int, **changes: object) -> TableState:
    players = tuple(
        replace(player, **changes) if idx == index else player
        for idx, player in enumerate(state.players)
    )
    return replace(state, players=players)


def add_to_pot(state: TableState, amount: int) -> TableState:
    return replace(state, pot=state.pot + amount)


def commit_chips(state: TableState, index: int, amount: int) -> TableState:
    """Move ``amount`` from a player's stack into the pot, marking all-in at zero."""
    player = state.players[index]
    amount = min(amount, player.stack)
    stack = player.stack - amount
    status = PlayerStatus.ALL_IN if stack == 0 and player.in_hand else player.status
    state = update_player(
        state,
        index,
        stack=stack,
        current_bet=player.current_bet + amount,
        total_bet_this_hand=player.total_bet_this_hand + amount,
        status=status,
    )
    return add_to_pot(state, amount)


def advance_street(state: TableState) -> TableState:
    """Move to the next street and open a fresh betting round left of the dealer."""
    position = STREET_ORDER.index(state.street)
    if position >= len(STREET_ORDER) - 1:
        return state

    players = tuple(replace(player, current_bet=0) for player in state.players)
    state = replace(state, players=players)
    return replace(
        state,
        street=STREET_ORDER[position + 1],
        current_bet=0,
        min_raise=state.big_blind,
        active_player_index=next_active_index(state, state.dealer_index),
        last_raiser_index=-1,
        actions_this_round=0,
        acted_this_round=(),
    )


def add_community_cards(state: TableState, cards: Sequence[Card]) -> TableState:
    return replace(state, community_cards=state.community_cards + tuple(cards))


def set_winners(state: TableState, winners: Sequence[int], description: str) -> TableState:
    return replace(
        state,
        winners=tuple(winners),
        winning_hand_description=description,
        street=Street.COMPLETE,
    )


def award_pot(
    state: TableState,
    amounts: Mapping[int, int],
    description: str,
    winners: Optional[Sequence[int]] = None,
) -> TableState:
    """Credit winners by seat index and close the hand."""
    awarded = sum(amounts.values())
    if awarded > state.pot:
        raise InvariantError(f"Cannot award {awarded} from a pot of {state.pot}")
    players = tuple(
        replace(player, stack=player.stack + amounts.get(idx, 0))
        for idx, player in enumerate(state.players)
    )
    state = replace(state, players=players, pot=state.pot - awarded)
    if winners is None:
        winners = [idx for idx in sorted(amounts) if amounts[idx] > 0]
    return set_winners(state, winners, description)


def check_invariants(state: TableState, expected_chips: Optional[int] = None) -> None:
    if state.pot < 0:
        raise InvariantError(f"Pot went negative: {state.pot}")
    for player in state.players:
        if player.stack < 0:
            raise InvariantError(f"Player {player.id} stack went negative: {player.stack}")

    if len(state.community_cards) not in COMMUNITY_COUNTS[state.street]:
        raise InvariantError(
            f"{len(state.community_cards)} community cards on street {state.street.value}"
        )

    if state.street != Street.WAITING:
        for player in state.players:
            if player.in_hand and len(player.hole_cards) != 2:
                raise InvariantError(f"Player {player.id} holds {len(player.hole_cards)} hole cards")

    if expected_chips is not None and total_chips(state) != expected_chips:
        raise InvariantError(f"Chip total {total_chips(state)} != {expected_chips}")


def check_actor(state: TableState) -> None:
    """The player to act must be ``active`` while a round is open."""
    if state.street not in BETTING_STREETS:
        return
    player = current_player(state)
    if player is None or not player.can_act:
        raise InvariantError(f"Seat {state.active_player_index} cannot act on {state.street.value}")
