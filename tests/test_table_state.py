from dataclasses import replace

import pytest

from holdem.cards import parse_cards
from holdem.betting import post_blinds
from holdem.errors import InvariantError
from holdem.models import PlayerStatus, Street
from holdem.table_state import (
    add_community_cards,
    advance_street,
    award_pot,
    big_blind_index,
    call_amount,
    check_invariants,
    next_active_index,
    small_blind_index,
    total_chips,
    update_player,
)

from .helpers import make_state


def test_busted_players_sit_out():
    state = make_state([1000, 0, 500])
    assert [player.status for player in state.players] == [
        PlayerStatus.ACTIVE,
        PlayerStatus.OUT,
        PlayerStatus.ACTIVE,
    ]
    assert state.players[0].is_dealer
    # Heads-up between the two remaining players: the dealer posts the small blind.
    assert small_blind_index(state) == 0
    assert big_blind_index(state) == 2


def test_next_active_index_wraps_and_skips():
    state = make_state([1000, 1000, 1000, 1000])
    state = update_player(state, 3, status=PlayerStatus.FOLDED)
    assert next_active_index(state, 2) == 0
    assert next_active_index(state, 0) == 1
    for idx in range(4):
        state = update_player(state, idx, status=PlayerStatus.FOLDED)
    assert next_active_index(state, 0) == -1


def test_call_amount_never_exceeds_stack():
    state = post_blinds(make_state([5, 1000, 1000]))
    assert call_amount(state, 0) == 5
    assert call_amount(state, 2) == 0
    assert call_amount(state, 9) == 0


def test_advance_street_opens_a_fresh_round():
    state = replace(post_blinds(make_state([1000, 1000, 1000])), street=Street.PREFLOP)
    flop = advance_street(state)
    assert flop.street == Street.FLOP
    assert flop.current_bet == 0
    assert flop.min_raise == 20
    assert flop.active_player_index == 1
    assert flop.acted_this_round == ()
    assert all(player.current_bet == 0 for player in flop.players)
    assert flop.pot == state.pot
    assert state.street == Street.PREFLOP


def test_award_pot_credits_winners_and_closes_hand():
    state = post_blinds(make_state([1000, 1000]))
    settled = award_pot(state, {1: 30}, "Opponent folded")
    assert settled.pot == 0
    assert settled.players[1].stack == 1010
    assert settled.winners == (1,)
    assert settled.street == Street.COMPLETE
    assert settled.winning_hand_description == "Opponent folded"
    with pytest.raises(InvariantError):
        award_pot(state, {1: 31}, "too much")


def test_check_invariants_catches_broken_snapshots():
    state = post_blinds(make_state([1000, 1000]))
    check_invariants(state, expected_chips=2000)
    assert total_chips(state) == 2000

    with pytest.raises(InvariantError, match="Chip total"):
        check_invariants(state, expected_chips=1999)
    with pytest.raises(InvariantError, match="negative"):
        check_invariants(replace(state, pot=-1))
    with pytest.raises(InvariantError, match="community cards"):
        check_invariants(add_community_cards(state, parse_cards(["2c"])))
    with pytest.raises(InvariantError, match="hole cards"):
        check_invariants(replace(state, street=Street.PREFLOP))
