from __future__ import annotations

from typing import Dict, Optional, Sequence

from holdem.bots import Bot, create_bot
from holdem.cards import parse_cards, stacked_deck
from holdem.game import GameEngine, HandContext
from holdem.models import ActionResult, ActionType, PlayerAction, TableConfig, TableState
from holdem.table_state import create_player, create_table_state, current_player


def create_engine(
    *,
    players: int = 2,
    starting_stack: int = 1_000,
    sb: int = 10,
    bb: int = 20,
    stacks: Optional[Sequence[int]] = None,
) -> GameEngine:
    """Instantiate an engine with ``players`` seated as P0, P1, ..."""
    engine = GameEngine(TableConfig(seats=max(players, 2), starting_stack=starting_stack, sb=sb, bb=bb))
    for idx in range(players):
        stack = stacks[idx] if stacks is not None else None
        engine.add_player(f"P{idx}", name=f"Player {idx}", stack=stack)
    return engine


def stack_deck(monkeypatch, labels: Sequence[str]) -> None:
    """Make the next hands deal ``labels`` first: hole cards in seat order, then the board."""
    deck = stacked_deck(parse_cards(labels))
    monkeypatch.setattr("holdem.game.build_deck", lambda seed=None: deck)


def start_hand(engine: GameEngine, seed: int = 42) -> HandContext:
    ctx = engine.start_hand(seed=seed)
    assert ctx is not None
    return ctx


def act(engine: GameEngine, player_id: str, action: ActionType, amount: Optional[int] = None) -> ActionResult:
    result = engine.process_action(player_id, PlayerAction(action, amount))
    assert result.success, result.error
    return result


def passive_decision(state: TableState) -> PlayerAction:
    """Check when free, otherwise call."""
    player = current_player(state)
    assert player is not None
    if player.current_bet >= state.current_bet:
        return PlayerAction(ActionType.CHECK)
    return PlayerAction(ActionType.CALL)


def auto_complete_hand(engine: GameEngine) -> None:
    """Advance the current hand with check/call until it completes."""
    while engine.hand_in_progress():
        actor = engine.current_player()
        assert actor is not None
        assert engine.state is not None
        act(engine, actor.id, passive_decision(engine.state).type)


def seat_bots(engine: GameEngine, styles: Sequence[str], seed: int = 0) -> Bot:
    """One bot per seated player, routed by whoever is to act."""
    bots: Dict[str, Bot] = {
        player.id: create_bot(styles[idx % len(styles)], seed + idx)
        for idx, player in enumerate(engine.players)
    }

    def decide(state: TableState) -> PlayerAction:
        player = current_player(state)
        assert player is not None
        return bots[player.id](state)

    return decide


def make_state(stacks: Sequence[int], dealer_index: int = 0, sb: int = 10, bb: int = 20) -> TableState:
    players = [create_player(f"P{idx}", f"Player {idx}", stack, idx) for idx, stack in enumerate(stacks)]
    return create_table_state(players, sb, bb, dealer_index=dealer_index)


def event_names(engine: GameEngine) -> list:
    return [event.ev for event in engine.event_history()]
