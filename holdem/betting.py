from __future__ import annotations

from dataclasses import replace
from typing import Optional, Tuple

from .errors import BlindsError
from .models import ActionResult, ActionType, PlayerAction, PlayerStatus, TableState, ValidActions
from .table_state import (
    acting_players,
    all_players_matched,
    big_blind_index,
    call_amount,
    commit_chips,
    in_hand_players,
    next_active_index,
    seated_count,
    small_blind_index,
    update_player,
)

# Betting-round rules: what the player to act may do, and the snapshot that
# follows each action. Nothing here raises for an illegal action.


def valid_actions(state: TableState) -> ValidActions:
    idx = state.active_player_index
    if not 0 <= idx < len(state.players):
        return ValidActions()
    player = state.players[idx]
    if player.status != PlayerStatus.ACTIVE:
        return ValidActions()

    to_call = call_amount(state, idx)
    can_bet = state.current_bet == 0 and player.stack > 0

    min_raise_to = state.current_bet + state.min_raise
    max_raise_to = player.stack + player.current_bet
    can_raise = state.current_bet > 0 and player.stack > to_call and max_raise_to >= min_raise_to

    return ValidActions(
        can_fold=True,
        can_check=to_call == 0,
        can_call=to_call > 0 and player.stack > 0,
        call_amount=to_call,
        can_bet=can_bet,
        min_bet=state.big_blind if can_bet else 0,
        max_bet=player.stack if can_bet else 0,
        can_raise=can_raise,
        min_raise=min_raise_to if can_raise else 0,
        max_raise=max_raise_to if can_raise else 0,
        can_all_in=player.stack > 0,
    )


def validate_action(state: TableState, action: PlayerAction) -> Tuple[bool, Optional[str]]:
    idx = state.active_player_index
    if not 0 <= idx < len(state.players) or state.players[idx].status != PlayerStatus.ACTIVE:
        return False, "No active player"
    player = state.players[idx]
    valid = valid_actions(state)

    if action.type == ActionType.FOLD:
        if not valid.can_fold:
            return False, "Cannot fold"
    elif action.type == ActionType.CHECK:
        if not valid.can_check:
            return False, "Cannot check, must call or fold"
    elif action.type == ActionType.CALL:
        if not valid.can_call:
            return False, "Cannot call"
    elif action.type == ActionType.BET:
        if not valid.can_bet:
            return False, "Cannot bet, already a bet in play"
        if not _is_amount(action.amount) or action.amount < valid.min_bet:
            return False, f"Minimum bet is {valid.min_bet}"
        if action.amount > valid.max_bet:
            return False, f"Maximum bet is {valid.max_bet}"
    elif action.type == ActionType.RAISE:
        if not valid.can_raise:
            return False, "Cannot raise"
        if not _is_amount(action.amount) or action.amount < valid.min_raise:
            return False, f"Minimum raise to {valid.min_raise}"
        if action.amount > valid.max_raise:
            return False, f"Maximum raise to {valid.max_raise}"
    elif action.type == ActionType.ALL_IN:
        if player.stack <= 0:
            return False, "No chips to go all-in"
    else:
        return False, "Unknown action type"
    return True, None


def apply_action(state: TableState, action: PlayerAction) -> ActionResult:
    ok, reason = validate_action(state, action)
    if not ok:
        return ActionResult(success=False, state=state, error=reason)

    idx = state.active_player_index
    player = state.players[idx]
    acted = state.acted_this_round + (idx,)
    new_state = state

    if action.type == ActionType.FOLD:
        new_state = update_player(new_state, idx, status=PlayerStatus.FOLDED)
    elif action.type == ActionType.CHECK:
        pass
    elif action.type == ActionType.CALL:
        new_state = commit_chips(new_state, idx, call_amount(state, idx))
    elif action.type == ActionType.BET:
        assert action.amount is not None
        new_state = commit_chips(new_state, idx, action.amount)
        new_state = replace(
            new_state,
            current_bet=player.current_bet + action.amount,
            min_raise=action.amount,
            last_raiser_index=idx,
        )
        acted = (idx,)
    elif action.type == ActionType.RAISE:
        assert action.amount is not None
        new_state = commit_chips(new_state, idx, action.amount - player.current_bet)
        new_state = replace(
            new_state,
            current_bet=action.amount,
            min_raise=action.amount - state.current_bet,
            last_raiser_index=idx,
        )
        acted = (idx,)
    elif action.type == ActionType.ALL_IN:
        new_bet = player.current_bet + player.stack
        new_state = commit_chips(new_state, idx, player.stack)
        if new_bet > state.current_bet:
            new_state = replace(
                new_state,
                current_bet=new_bet,
                min_raise=max(state.min_raise, new_bet - state.current_bet),
                last_raiser_index=idx,
            )
            acted = (idx,)

    new_state = replace(
        new_state,
        active_player_index=next_active_index(new_state, idx),
        actions_this_round=state.actions_this_round + 1,
        acted_this_round=acted,
    )
    return ActionResult(success=True, state=new_state)


def post_blinds(state: TableState) -> TableState:
    if seated_count(state) < 2:
        raise BlindsError("Need at least 2 players with chips to post blinds")

    sb_idx = small_blind_index(state)
    bb_idx = big_blind_index(state)

    # Short stacks post what they have.
    state = commit_chips(state, sb_idx, min(state.small_blind, state.players[sb_idx].stack))
    state = commit_chips(state, bb_idx, min(state.big_blind, state.players[bb_idx].stack))

    return replace(
        state,
        current_bet=state.big_blind,
        min_raise=state.big_blind,
        active_player_index=next_active_index(state, bb_idx),
        last_raiser_index=bb_idx,
        actions_this_round=0,
        acted_this_round=(),
    )


def is_betting_round_complete(state: TableState) -> bool:
    if len(in_hand_players(state)) <= 1:
        return True
    acting = acting_players(state)
    if not acting:
        return True
    if not all_players_matched(state):
        return False
    if len(acting) == 1:
        # Nobody left to respond to the lone player with chips.
        return True
    acted = set(state.acted_this_round)
    return all(idx in acted for idx, player in enumerate(state.players) if player.can_act)


def _is_amount(amount: object) -> bool:
    return isinstance(amount, int) and not isinstance(amount, bool)
