import random
from dataclasses import replace

import pytest

from holdem.betting import post_blinds, valid_actions, validate_action
from holdem.bots import STYLES, create_bot, make_decision, raise_amount, rough_hand_strength
from holdem.cards import parse_cards
from holdem.models import ActionType, Street

from .helpers import create_engine, make_state, seat_bots


def test_rough_hand_strength_rewards_pairs_and_suits():
    pair = rough_hand_strength(parse_cards(["Ah", "Ad"]))
    suited = rough_hand_strength(parse_cards(["Ah", "Kh"]))
    offsuit = rough_hand_strength(parse_cards(["Ah", "Kd"]))
    junk = rough_hand_strength(parse_cards(["7c", "2d"]))
    assert pair > suited > offsuit > junk
    assert rough_hand_strength([]) == 0


def test_unknown_style_is_rejected():
    with pytest.raises(ValueError, match="Unknown bot style"):
        create_bot("reckless")


def test_passive_raises_the_minimum():
    state = replace(post_blinds(make_state([1000, 1000, 1000])), street=Street.PREFLOP)
    valid = valid_actions(state)
    assert raise_amount(state, valid, STYLES["passive"]) == valid.min_raise
    aggressive = raise_amount(state, valid, STYLES["aggressive"])
    assert valid.min_raise <= aggressive <= valid.max_raise


def test_premium_hands_never_fold_preflop():
    state = replace(post_blinds(make_state([1000, 1000, 1000])), street=Street.PREFLOP)
    players = list(state.players)
    players[0] = replace(players[0], hole_cards=tuple(parse_cards(["Ah", "Ad"])))
    state = replace(state, players=tuple(players))
    for seed in range(20):
        action = make_decision(state, STYLES["passive"], random.Random(seed))
        assert action.type == ActionType.RAISE


@pytest.mark.parametrize("style", sorted(STYLES))
def test_bots_only_choose_legal_actions(style):
    engine = create_engine(players=4, starting_stack=500)
    decide = seat_bots(engine, [style], seed=9)

    def checked(state):
        action = decide(state)
        ok, reason = validate_action(state, action)
        assert ok, reason
        return action

    for seed in range(40):
        if not engine.can_start_hand():
            break
        engine.play_hand(checked, seed=seed)
    assert sum(player.stack for player in engine.players) == 2_000
