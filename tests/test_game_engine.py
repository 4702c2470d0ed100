import pytest

from holdem.game import GameEngine, state_payload, valid_payload
from holdem.models import ActionType, HandPhase, PlayerAction, PlayerStatus, Street, TableConfig

from .helpers import act, auto_complete_hand, create_engine, event_names, passive_decision, stack_deck, start_hand

ACES_VS_KINGS = ["As", "Ah", "Ks", "Kh", "2c", "7d", "9h", "Jc", "3s"]


def test_add_player_fills_seats_and_rejects_bad_ids():
    engine = GameEngine(TableConfig(seats=2))
    first = engine.add_player("alice")
    second = engine.add_player("bob", stack=500)
    assert (first.seat, second.seat) == (0, 1)
    assert first.stack == engine.config.starting_stack
    assert second.stack == 500
    with pytest.raises(RuntimeError, match="Table is full"):
        engine.add_player("carol")
    with pytest.raises(ValueError):
        engine.add_player("  ")
    engine.remove_player("bob")
    with pytest.raises(ValueError, match="already seated"):
        engine.add_player("alice")
    assert engine.add_player("carol").seat == 1


def test_start_hand_posts_blinds_and_deals():
    engine = create_engine(players=3)
    ctx = start_hand(engine, seed=7)
    state = ctx.state
    assert engine.phase == HandPhase.PREFLOP
    assert state.street == Street.PREFLOP
    assert state.dealer_index == 0
    assert [player.current_bet for player in state.players] == [0, 10, 20]
    assert all(len(player.hole_cards) == 2 for player in state.players)
    assert engine.pot == 30
    assert engine.current_player().id == "P0"
    assert event_names(engine) == ["HAND_STARTED", "BLINDS_POSTED", "HOLE_CARDS_DEALT", "PLAYER_TO_ACT"]
    with pytest.raises(RuntimeError, match="already in progress"):
        engine.start_hand()


def test_hole_cards_are_dealt_two_at_a_time_in_seat_order(monkeypatch):
    stack_deck(monkeypatch, ACES_VS_KINGS)
    engine = create_engine()
    state = start_hand(engine).state
    assert [card.label for card in state.players[0].hole_cards] == ["As", "Ah"]
    assert [card.label for card in state.players[1].hole_cards] == ["Ks", "Kh"]


def test_heads_up_showdown_end_to_end(monkeypatch):
    stack_deck(monkeypatch, ACES_VS_KINGS)
    engine = create_engine()
    start_hand(engine)

    act(engine, "P0", ActionType.CALL)
    act(engine, "P1", ActionType.CHECK)
    assert engine.phase == HandPhase.FLOP
    assert [card.label for card in engine.state.community_cards] == ["2c", "7d", "9h"]
    for street in (HandPhase.TURN, HandPhase.RIVER):
        act(engine, "P1", ActionType.CHECK)
        act(engine, "P0", ActionType.CHECK)
        assert engine.phase == street
    act(engine, "P1", ActionType.CHECK)
    act(engine, "P0", ActionType.CHECK)

    assert engine.is_hand_complete()
    result = engine.hand_result()
    assert result.winner_ids == ("P0",)
    assert result.reason == "showdown"
    assert result.description == "One Pair, Aces"
    assert result.amounts == {"P0": 40}
    assert result.final_stacks == {"P0": 1020, "P1": 980}
    assert engine.state.street == Street.COMPLETE
    assert engine.state.pot == 0

    names = event_names(engine)
    assert names[-6:] == [
        "SHOWDOWN_STARTED",
        "HAND_EVALUATED",
        "HAND_EVALUATED",
        "POT_AWARDED",
        "HAND_COMPLETED",
        "HAND_ENDED",
    ]
    assert names.count("COMMUNITY_CARDS_DEALT") == 3


def test_aces_hold_up_on_a_queen_high_board(monkeypatch):
    stack_deck(monkeypatch, ["As", "Ah", "Ks", "Kh", "2c", "7d", "9s", "Jc", "Qh"])
    engine = create_engine()
    result = engine.play_hand(passive_decision)
    assert [card.label for card in engine.state.community_cards] == ["2c", "7d", "9s", "Jc", "Qh"]
    assert result.winner_ids == ("P0",)
    assert result.description == "One Pair, Aces"
    assert result.amounts == {"P0": 40}


def test_preflop_fold_hands_blinds_to_big_blind():
    engine = create_engine()
    start_hand(engine)
    act(engine, "P0", ActionType.FOLD)

    result = engine.hand_result()
    assert result.reason == "all-fold"
    assert result.winner_ids == ("P1",)
    assert result.amounts == {"P1": 30}
    assert result.description == "Opponent folded"
    assert result.final_stacks == {"P0": 990, "P1": 1010}
    names = event_names(engine)
    assert "SHOWDOWN_STARTED" not in names
    assert names[-2:] == ["POT_AWARDED", "HAND_ENDED"]


def test_all_in_runs_out_the_board(monkeypatch):
    stack_deck(monkeypatch, ACES_VS_KINGS)
    engine = create_engine()
    start_hand(engine)
    act(engine, "P0", ActionType.ALL_IN)
    assert engine.current_player().id == "P1"
    act(engine, "P1", ActionType.CALL)

    result = engine.hand_result()
    assert result.reason == "all-in-runout"
    assert len(engine.state.community_cards) == 5
    assert result.final_stacks == {"P0": 2000, "P1": 0}
    assert engine.is_match_over()
    assert not engine.can_start_hand()


def test_big_blind_option_preflop():
    engine = create_engine(players=3)
    start_hand(engine)
    act(engine, "P0", ActionType.CALL)
    act(engine, "P1", ActionType.CALL)
    assert engine.current_player().id == "P2"
    assert engine.valid_actions().can_check
    act(engine, "P2", ActionType.RAISE, 60)
    assert engine.phase == HandPhase.PREFLOP
    assert engine.current_player().id == "P0"


def test_process_action_rejections_leave_state_alone():
    engine = create_engine()
    result = engine.process_action("P0", PlayerAction(ActionType.CHECK))
    assert not result.success
    assert result.error == "No hand in progress"

    start_hand(engine)
    before = engine.state
    wrong = engine.process_action("P1", PlayerAction(ActionType.CALL))
    assert not wrong.success
    assert wrong.error == "Not P1's turn"
    illegal = engine.process_action("P0", PlayerAction(ActionType.CHECK))
    assert illegal.error == "Cannot check, must call or fold"
    assert engine.state is before

    act(engine, "P0", ActionType.FOLD)
    done = engine.process_action("P1", PlayerAction(ActionType.CHECK))
    assert done.error == "Hand is complete"


def test_apply_timeout_checks_or_folds():
    engine = create_engine(players=3)
    start_hand(engine)
    engine.apply_timeout("P0")
    assert engine.state.players[0].status == PlayerStatus.FOLDED

    act(engine, "P1", ActionType.CALL)
    engine.apply_timeout("P2")
    assert engine.phase == HandPhase.FLOP
    assert engine.state.players[2].status == PlayerStatus.ACTIVE


def test_button_rotates_and_chips_are_conserved():
    engine = create_engine(players=3)
    dealers = []
    for seed in range(5):
        ctx = start_hand(engine, seed=seed)
        dealers.append(ctx.state.dealer_index)
        auto_complete_hand(engine)
        assert sum(engine.hand_result().final_stacks.values()) == 3_000
    assert dealers == [0, 1, 2, 0, 1]


def test_button_skips_busted_players():
    engine = create_engine(players=3, stacks=[1000, 0, 1000])
    first = start_hand(engine)
    assert first.state.dealer_index == 0
    assert first.state.players[1].status == PlayerStatus.OUT
    assert first.state.players[1].hole_cards == ()
    engine.apply_timeout("P0")
    second = start_hand(engine)
    assert second.state.dealer_index == 2


def test_button_stays_put_when_a_player_takes_a_lower_seat():
    engine = create_engine(players=3)
    holders = []
    for seed in range(2):
        ctx = start_hand(engine, seed=seed)
        holders.append(ctx.state.players[ctx.state.dealer_index].id)
        auto_complete_hand(engine)
    assert holders == ["P0", "P1"]

    engine.remove_player("P0")
    assert engine.add_player("P3").seat == 0
    assert engine.players[engine.dealer_index].id == "P1"

    ctx = start_hand(engine, seed=2)
    assert ctx.state.players[ctx.state.dealer_index].id == "P2"


@pytest.mark.parametrize(
    "overrides, message",
    [
        ({"sb": 0, "bb": 0}, "Blinds must be positive"),
        ({"sb": 10, "bb": 0}, "Blinds must be positive"),
        ({"sb": 50, "bb": 20}, "larger than big blind"),
        ({"seats": 1}, "at least 2 seats"),
        ({"starting_stack": -1}, "cannot be negative"),
    ],
)
def test_engine_rejects_unplayable_table_config(overrides, message):
    with pytest.raises(ValueError, match=message):
        GameEngine(TableConfig(**overrides))


def test_consume_events_drains_pending_queue():
    engine = create_engine()
    start_hand(engine)
    first = engine.consume_events()
    assert [event.ev for event in first][0] == "HAND_STARTED"
    assert engine.consume_events() == []
    act(engine, "P0", ActionType.CALL)
    pending = engine.consume_events()
    assert [event.ev for event in pending] == ["PLAYER_ACTED", "PLAYER_TO_ACT"]
    assert pending[0].as_dict()["amount"] == 10
    assert len(engine.event_history()) == len(first) + 2


def test_play_hand_drives_deciders():
    engine = create_engine(players=3)

    def always_fold(state):
        return PlayerAction(ActionType.FOLD)

    result = engine.play_hand(always_fold, seed=3)
    assert result.reason == "all-fold"
    assert result.winner_ids == ("P2",)


def test_payloads_hide_other_hole_cards():
    engine = create_engine()
    state = start_hand(engine).state
    payload = state_payload(state, viewer_id="P0")
    players = {entry["id"]: entry for entry in payload["players"]}
    assert len(players["P0"]["hole"]) == 2
    assert players["P1"]["hole"] == []
    assert payload["street"] == "preflop"
    valid = valid_payload(engine.valid_actions())
    assert valid["legal"] == ["fold", "call", "raise", "all-in"]
    assert valid["call_amount"] == 10
