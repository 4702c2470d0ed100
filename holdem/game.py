from __future__ import annotations

import logging
import time
from dataclasses import asdict, dataclass, field, replace
from typing import Callable, Dict, List, Optional, Tuple

from .betting import apply_action, is_betting_round_complete, post_blinds, valid_actions
from .cards import Card, Deck, build_deck, cards_to_labels, deal
from .errors import BlindsError
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
from .showdown import FOLD_OUT_DESCRIPTION, ShowdownEvent, ShowdownPlayer, resolve_showdown_with_events
from .table_state import (
    acting_players,
    add_community_cards,
    advance_street,
    award_pot,
    big_blind_index,
    check_actor,
    check_invariants,
    create_table_state,
    current_player,
    is_only_one_player_remaining,
    small_blind_index,
    total_chips,
    update_player,
)

LOGGER = logging.getLogger("holdem.game")

# GameEngine owns the seated players and walks one hand at a time through its
# phases. Betting and showdown rules live in their own modules; this class
# only sequences them and records what happened as events.

Decider = Callable[[TableState], PlayerAction]

STREET_CARDS = {Street.PREFLOP: 3, Street.FLOP: 1, Street.TURN: 1}
STREET_PHASES = {
    Street.PREFLOP: HandPhase.PREFLOP,
    Street.FLOP: HandPhase.FLOP,
    Street.TURN: HandPhase.TURN,
    Street.RIVER: HandPhase.RIVER,
}


def validate_config(config: TableConfig) -> None:
    if config.seats < 2:
        raise ValueError(f"A table needs at least 2 seats, got {config.seats}")
    if config.sb <= 0 or config.bb <= 0:
        raise ValueError(f"Blinds must be positive, got {config.sb}/{config.bb}")
    if config.sb > config.bb:
        raise ValueError(f"Small blind {config.sb} is larger than big blind {config.bb}")
    if config.starting_stack < 0:
        raise ValueError("Starting stack cannot be negative")


class HandAborted(Exception):
    """Internal signal: a dealing or blind fault ended the hand early."""

    def __init__(self, code: str, msg: str) -> None:
        super().__init__(msg)
        self.code = code
        self.msg = msg


@dataclass
class HandContext:
    # Everything about the live hand: deck cursor, latest snapshot, outcome.
    hand_id: str
    seed: int
    deck: Deck
    state: TableState
    opening_state: TableState
    chips: int
    phase: HandPhase = HandPhase.WAITING
    reason: Optional[str] = None
    payouts: Dict[str, int] = field(default_factory=dict)
    description: str = ""


@dataclass(frozen=True)
class HandResult:
    hand_id: str
    winner_ids: Tuple[str, ...]
    amounts: Dict[str, int]
    reason: str
    final_stacks: Dict[str, int]
    description: str


class GameEngine:
    """Single-table No-Limit Hold'em hand orchestrator."""

    def __init__(self, config: Optional[TableConfig] = None) -> None:
        self.config = config or TableConfig()
        validate_config(self.config)
        self.players: List[Player] = []
        self.dealer_index: Optional[int] = None
        self.hand_counter = 0
        self.hand: Optional[HandContext] = None
        self._history: List[Event] = []
        self._pending: List[Event] = []

    # Seat management -------------------------------------------------

    def add_player(self, player_id: str, name: Optional[str] = None, stack: Optional[int] = None) -> Player:
        player_id = player_id.strip()
        if not player_id:
            raise ValueError("Player id is required")
        if self.hand_in_progress():
            raise RuntimeError("Cannot seat players during a hand")
        if any(player.id == player_id for player in self.players):
            raise ValueError(f"Player {player_id} is already seated")

        taken = {player.seat for player in self.players}
        free = [seat for seat in range(self.config.seats) if seat not in taken]
        if not free:
            raise RuntimeError("Table is full")

        chips = self.config.starting_stack if stack is None else stack
        if chips < 0:
            raise ValueError("Stack cannot be negative")
        player = Player(id=player_id, name=(name or player_id).strip() or player_id, seat=free[0], stack=chips)
        self.players.append(player)
        self.players.sort(key=lambda seated: seated.seat)
        if self.dealer_index is not None and self.players.index(player) <= self.dealer_index:
            # Keep the button on the same player after the roster shifts.
            self.dealer_index += 1
        return player

    def remove_player(self, player_id: str) -> Player:
        if self.hand_in_progress():
            raise RuntimeError("Cannot remove players during a hand")
        idx = self._roster_index(player_id)
        if idx == -1:
            raise KeyError(player_id)
        player = self.players.pop(idx)
        if self.dealer_index is not None:
            if not self.players:
                self.dealer_index = None
            elif idx <= self.dealer_index:
                # The next rotation lands on whoever now follows the old button.
                self.dealer_index = (self.dealer_index - 1) % len(self.players)
        return player

    def player(self, player_id: str) -> Optional[Player]:
        idx = self._roster_index(player_id)
        return self.players[idx] if idx != -1 else None

    def _roster_index(self, player_id: str) -> int:
        for idx, player in enumerate(self.players):
            if player.id == player_id:
                return idx
        return -1

    # Queries ---------------------------------------------------------

    @property
    def state(self) -> Optional[TableState]:
        return self.hand.state if self.hand else None

    @property
    def phase(self) -> HandPhase:
        return self.hand.phase if self.hand else HandPhase.WAITING

    @property
    def pot(self) -> int:
        return self.hand.state.pot if self.hand else 0

    def current_player(self) -> Optional[Player]:
        if not self.hand_in_progress():
            return None
        assert self.hand is not None
        return current_player(self.hand.state)

    def valid_actions(self) -> ValidActions:
        if not self.hand_in_progress():
            return ValidActions()
        assert self.hand is not None
        return valid_actions(self.hand.state)

    def hand_in_progress(self) -> bool:
        return self.hand is not None and self.hand.phase != HandPhase.COMPLETE

    def is_hand_complete(self) -> bool:
        return self.hand is not None and self.hand.phase == HandPhase.COMPLETE

    def hand_result(self) -> Optional[HandResult]:
        if not self.is_hand_complete():
            return None
        assert self.hand is not None
        ctx = self.hand
        winners = tuple(ctx.state.players[idx].id for idx in ctx.state.winners)
        return HandResult(
            hand_id=ctx.hand_id,
            winner_ids=winners,
            amounts=dict(ctx.payouts),
            reason=ctx.reason or "aborted",
            final_stacks={player.id: player.stack for player in self.players},
            description=ctx.description,
        )

    def event_history(self) -> List[Event]:
        return list(self._history)

    def consume_events(self) -> List[Event]:
        events, self._pending = self._pending, []
        return events

    def can_start_hand(self) -> bool:
        return sum(1 for player in self.players if player.stack > 0) >= 2

    def is_match_over(self) -> bool:
        return not self.can_start_hand()

    # Hand lifecycle --------------------------------------------------

    def start_hand(self, seed: Optional[int] = None) -> HandContext:
        if self.hand_in_progress():
            raise RuntimeError("Hand already in progress")
        if not self.can_start_hand():
            raise RuntimeError("Not enough players with chips to start a hand")

        if seed is None:
            seed = int(time.time() * 1000) & 0xFFFFFFFF
        self.dealer_index = self._next_dealer()

        hand_id = f"H-{time.strftime('%Y%m%d')}-{self.hand_counter:05d}"
        self.hand_counter += 1

        state = create_table_state(
            self.players,
            self.config.sb,
            self.config.bb,
            dealer_index=self.dealer_index,
            hand_number=self.hand_counter,
        )
        ctx = HandContext(
            hand_id=hand_id,
            seed=seed,
            deck=build_deck(seed),
            state=state,
            opening_state=state,
            chips=total_chips(state),
        )
        self.hand = ctx
        self._history = []

        LOGGER.info("Starting hand %s (button %s, seed %s)", hand_id, state.players[self.dealer_index].id, seed)
        self._emit(
            "HAND_STARTED",
            hand_id=hand_id,
            hand_number=state.hand_number,
            dealer=state.players[self.dealer_index].id,
            seed=seed,
            stacks={player.id: player.stack for player in state.players},
        )

        try:
            self._post_blinds(ctx)
            self._deal_hole_cards(ctx)
            ctx.state = replace(ctx.state, street=Street.PREFLOP)
            ctx.phase = HandPhase.PREFLOP
            check_invariants(ctx.state, ctx.chips)
            self._advance(ctx)
        except HandAborted as exc:
            self._abort(ctx, exc)
        return ctx

    def _next_dealer(self) -> int:
        count = len(self.players)
        start = -1 if self.dealer_index is None else self.dealer_index
        for step in range(1, count + 1):
            idx = (start + step) % count
            if self.players[idx].stack > 0:
                return idx
        raise RuntimeError("No player with chips for the button")

    def _post_blinds(self, ctx: HandContext) -> None:
        try:
            state = post_blinds(ctx.state)
        except BlindsError as exc:
            raise HandAborted("BLINDS_ERROR", str(exc)) from exc

        sb_idx = small_blind_index(ctx.state)
        bb_idx = big_blind_index(ctx.state)
        ctx.state = state
        self._emit(
            "BLINDS_POSTED",
            sb_player=state.players[sb_idx].id,
            sb=state.players[sb_idx].current_bet,
            bb_player=state.players[bb_idx].id,
            bb=state.players[bb_idx].current_bet,
            pot=state.pot,
        )

    def _deal_hole_cards(self, ctx: HandContext) -> None:
        state = ctx.state
        dealt_to: List[str] = []
        for idx, player in enumerate(state.players):
            if player.status == PlayerStatus.OUT:
                continue
            cards = self._draw(ctx, 2)
            state = update_player(state, idx, hole_cards=tuple(cards))
            dealt_to.append(player.id)
        ctx.state = state
        self._emit("HOLE_CARDS_DEALT", players=dealt_to)

    def _draw(self, ctx: HandContext, count: int) -> List[Card]:
        try:
            cards, ctx.deck = deal(ctx.deck, count)
        except ValueError as exc:
            raise HandAborted("DEAL_ERROR", str(exc)) from exc
        return cards

    # Action handling -------------------------------------------------

    def process_action(self, player_id: str, action: PlayerAction) -> ActionResult:
        if self.hand is None:
            return ActionResult(False, self._idle_state(), "No hand in progress")
        ctx = self.hand
        if ctx.phase == HandPhase.COMPLETE:
            return ActionResult(False, ctx.state, "Hand is complete")
        actor = current_player(ctx.state)
        if actor is None or actor.id != player_id:
            return ActionResult(False, ctx.state, f"Not {player_id}'s turn")

        before = ctx.state
        result = apply_action(before, action)
        if not result.success:
            LOGGER.debug("Rejected %s from %s: %s", action.type.value, player_id, result.error)
            return result

        ctx.state = result.state
        check_invariants(ctx.state, ctx.chips)
        idx = before.active_player_index
        after = ctx.state.players[idx]
        self._emit(
            "PLAYER_ACTED",
            player_id=player_id,
            action=action.type.value,
            amount=before.players[idx].stack - after.stack,
            stack=after.stack,
            pot=ctx.state.pot,
            all_in=after.status == PlayerStatus.ALL_IN,
        )

        try:
            self._advance(ctx)
        except HandAborted as exc:
            self._abort(ctx, exc)
        return ActionResult(True, ctx.state)

    def apply_timeout(self, player_id: str) -> ActionResult:
        """Fallback for an expired move timer: check when free, otherwise fold."""
        valid = self.valid_actions()
        action = PlayerAction(ActionType.CHECK if valid.can_check else ActionType.FOLD)
        LOGGER.info("Player %s timed out; applying %s", player_id, action.type.value)
        return self.process_action(player_id, action)

    def play_hand(self, decide: Decider, seed: Optional[int] = None) -> HandResult:
        self.start_hand(seed)
        while self.hand_in_progress():
            assert self.hand is not None
            actor = current_player(self.hand.state)
            assert actor is not None
            result = self.process_action(actor.id, decide(self.hand.state))
            if not result.success:
                LOGGER.warning("Decision for %s rejected (%s); folding back to fallback", actor.id, result.error)
                self.apply_timeout(actor.id)
        result = self.hand_result()
        assert result is not None
        return result

    def _idle_state(self) -> TableState:
        return create_table_state(self.players, self.config.sb, self.config.bb, dealer_index=self.dealer_index or 0)

    # Street progression ----------------------------------------------

    def _advance(self, ctx: HandContext) -> None:
        state = ctx.state
        if is_only_one_player_remaining(state):
            self._settle_fold_out(ctx)
            return
        if not is_betting_round_complete(state):
            self._prompt(ctx)
            return

        self._emit("BETTING_ROUND_COMPLETE", street=state.street.value, pot=state.pot)
        if len(acting_players(state)) <= 1:
            self._run_out(ctx)
            return
        if state.street == Street.RIVER:
            self._showdown(ctx, "showdown")
            return
        self._deal_street(ctx)
        self._advance(ctx)

    def _prompt(self, ctx: HandContext) -> None:
        check_actor(ctx.state)
        actor = current_player(ctx.state)
        assert actor is not None
        valid = valid_actions(ctx.state)
        self._emit(
            "PLAYER_TO_ACT",
            player_id=actor.id,
            seat=actor.seat,
            legal=[action.value for action in valid.legal()],
            call_amount=valid.call_amount,
        )

    def _deal_street(self, ctx: HandContext) -> None:
        previous = ctx.state.street
        cards = self._draw(ctx, STREET_CARDS[previous])
        state = add_community_cards(advance_street(ctx.state), cards)
        ctx.state = state
        ctx.phase = STREET_PHASES[state.street]
        check_invariants(state, ctx.chips)
        self._emit("STREET_CHANGED", street=state.street.value, previous=previous.value, pot=state.pot)
        self._emit(
            "COMMUNITY_CARDS_DEALT",
            street=state.street.value,
            cards=cards_to_labels(cards),
            board=cards_to_labels(state.community_cards),
        )

    def _run_out(self, ctx: HandContext) -> None:
        LOGGER.debug("Running out the board for hand %s", ctx.hand_id)
        while ctx.state.street != Street.RIVER:
            self._deal_street(ctx)
        self._showdown(ctx, "all-in-runout")

    # Settlement ------------------------------------------------------

    def _settle_fold_out(self, ctx: HandContext) -> None:
        state = ctx.state
        winner_idx = next(idx for idx, player in enumerate(state.players) if player.in_hand)
        winner = state.players[winner_idx]
        pot = state.pot
        ctx.phase = HandPhase.SETTLEMENT
        self._emit(
            "POT_AWARDED",
            winner_ids=[winner.id],
            pot=pot,
            amount_per_winner=pot,
            split=False,
            description=FOLD_OUT_DESCRIPTION,
            remainder=0,
            remainder_winner_id=None,
        )
        ctx.state = award_pot(state, {winner_idx: pot}, FOLD_OUT_DESCRIPTION, [winner_idx])
        ctx.payouts = {winner.id: pot}
        self._finish(ctx, "all-fold", FOLD_OUT_DESCRIPTION)

    def _showdown(self, ctx: HandContext, reason: str) -> None:
        state = advance_street(ctx.state)
        ctx.state = state
        ctx.phase = HandPhase.SHOWDOWN
        check_invariants(state, ctx.chips)

        # Every seat is passed so indices line up with the button.
        contenders = [
            ShowdownPlayer(player.id, player.name, player.hole_cards, folded=not player.in_hand)
            for player in state.players
        ]
        result = resolve_showdown_with_events(
            contenders,
            state.community_cards,
            state.pot,
            self._emit_showdown,
            button_index=state.dealer_index,
        )

        ctx.phase = HandPhase.SETTLEMENT
        payouts = result.payouts()
        by_id = {player.id: idx for idx, player in enumerate(state.players)}
        ctx.state = award_pot(
            state,
            {by_id[pid]: amount for pid, amount in payouts.items()},
            result.winning_hand_description,
            [by_id[pid] for pid in result.winner_ids],
        )
        ctx.payouts = payouts
        self._finish(ctx, reason, result.winning_hand_description)

    def _finish(self, ctx: HandContext, reason: str, description: str) -> None:
        check_invariants(ctx.state, ctx.chips)
        ctx.phase = HandPhase.COMPLETE
        ctx.reason = reason
        ctx.description = description

        stacks = {player.id: player.stack for player in ctx.state.players}
        self.players = [replace(player, stack=stacks.get(player.id, player.stack)) for player in self.players]

        LOGGER.info("Hand %s ended (%s): %s", ctx.hand_id, reason, ctx.payouts)
        self._emit(
            "HAND_ENDED",
            hand_id=ctx.hand_id,
            reason=reason,
            winner_ids=[ctx.state.players[idx].id for idx in ctx.state.winners],
            payouts=dict(ctx.payouts),
            stacks=stacks,
        )

    def _abort(self, ctx: HandContext, exc: HandAborted) -> None:
        LOGGER.error("Aborting hand %s: %s (%s)", ctx.hand_id, exc.msg, exc.code)
        self._emit("ERROR", code=exc.code, msg=exc.msg)
        ctx.state = ctx.opening_state
        ctx.phase = HandPhase.COMPLETE
        ctx.reason = "aborted"
        ctx.payouts = {}
        ctx.description = ""
        self._emit(
            "HAND_ENDED",
            hand_id=ctx.hand_id,
            reason="aborted",
            winner_ids=[],
            payouts={},
            stacks={player.id: player.stack for player in self.players},
        )

    # Events ----------------------------------------------------------

    def _emit(self, ev: str, **data: object) -> None:
        event = Event(ev, data)
        self._history.append(event)
        self._pending.append(event)

    def _emit_showdown(self, event: ShowdownEvent) -> None:
        payload = event.as_dict()
        ev = str(payload.pop("ev"))
        self._emit(ev, **payload)


def state_payload(state: TableState, viewer_id: Optional[str] = None) -> Dict[str, object]:
    """JSON-safe view of a snapshot; hole cards are shown to their owner only."""
    return {
        "hand_number": state.hand_number,
        "street": state.street.value,
        "dealer": state.dealer_index,
        "board": cards_to_labels(state.community_cards),
        "pot": state.pot,
        "current_bet": state.current_bet,
        "min_raise": state.min_raise,
        "to_act": state.active_player_index,
        "players": [
            {
                "id": player.id,
                "name": player.name,
                "seat": player.seat,
                "stack": player.stack,
                "status": player.status.value,
                "bet": player.current_bet,
                "committed": player.total_bet_this_hand,
                "dealer": player.is_dealer,
                "hole": cards_to_labels(player.hole_cards) if player.id == viewer_id else [],
            }
            for player in state.players
        ],
    }


def valid_payload(valid: ValidActions) -> Dict[str, object]:
    payload: Dict[str, object] = asdict(valid)
    payload["legal"] = [action.value for action in valid.legal()]
    return payload
