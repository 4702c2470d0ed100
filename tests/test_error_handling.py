import pytest

from holdem.cards import Deck, fresh_cards
from holdem.errors import BlindsError, EngineError, HandEvaluationError, InvariantError, ShowdownError
from holdem.models import ActionType, HandPhase, PlayerAction

from .helpers import act, create_engine, event_names, start_hand


def test_error_hierarchy():
    for error in (HandEvaluationError, ShowdownError, BlindsError, InvariantError):
        assert issubclass(error, EngineError)
    assert issubclass(ShowdownError, ValueError)
    assert issubclass(InvariantError, RuntimeError)


def test_start_hand_requires_two_stacks():
    engine = create_engine(players=2, stacks=[1000, 0])
    assert not engine.can_start_hand()
    with pytest.raises(RuntimeError, match="Not enough players"):
        engine.start_hand()


def test_short_deck_aborts_hand_and_restores_stacks(monkeypatch):
    monkeypatch.setattr("holdem.game.build_deck", lambda seed=None: Deck(tuple(fresh_cards()[:3])))
    engine = create_engine()
    start_hand(engine)

    assert engine.is_hand_complete()
    assert engine.phase == HandPhase.COMPLETE
    result = engine.hand_result()
    assert result.reason == "aborted"
    assert result.winner_ids == ()
    assert result.final_stacks == {"P0": 1000, "P1": 1000}
    errors = [event for event in engine.event_history() if event.ev == "ERROR"]
    assert len(errors) == 1
    assert errors[0].data["code"] == "DEAL_ERROR"
    assert event_names(engine)[-1] == "HAND_ENDED"

    rejected = engine.process_action("P0", PlayerAction(ActionType.CALL))
    assert rejected.error == "Hand is complete"

    monkeypatch.undo()
    start_hand(engine, seed=5)
    assert engine.phase == HandPhase.PREFLOP


def test_deck_running_dry_mid_hand_aborts(monkeypatch):
    monkeypatch.setattr("holdem.game.build_deck", lambda seed=None: Deck(tuple(fresh_cards()[:6])))
    engine = create_engine()
    start_hand(engine)
    act(engine, "P0", ActionType.CALL)
    act(engine, "P1", ActionType.CHECK)
    assert engine.hand_result().reason == "aborted"
    assert engine.hand_result().final_stacks == {"P0": 1000, "P1": 1000}


def test_blind_failure_becomes_error_event(monkeypatch):
    def broken_blinds(state):
        raise BlindsError("Need at least 2 players with chips to post blinds")

    monkeypatch.setattr("holdem.game.post_blinds", broken_blinds)
    engine = create_engine()
    start_hand(engine)
    error = next(event for event in engine.event_history() if event.ev == "ERROR")
    assert error.as_dict() == {
        "ev": "ERROR",
        "code": "BLINDS_ERROR",
        "msg": "Need at least 2 players with chips to post blinds",
    }
    assert engine.hand_result().reason == "aborted"


def test_player_action_payload_validation():
    assert PlayerAction.from_payload({"type": "raise", "amount": 60}) == PlayerAction(ActionType.RAISE, 60)
    with pytest.raises(ValueError):
        PlayerAction.from_payload({"type": "dance"})
    with pytest.raises(ValueError, match="amount"):
        PlayerAction.from_payload({"type": "bet", "amount": "lots"})
    with pytest.raises(ValueError, match="amount"):
        PlayerAction.from_payload({"type": "bet", "amount": True})
