"""Showdown resolution: winners, pot split, and the ordered showdown events.

Events always come out as ShowdownStarted, HandEvaluated (one per live hand
in seat order, none on a fold-out), PotAwarded, then HandCompleted.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Callable, Dict, List, Optional, Sequence, Tuple, Union

from .cards import Card, cards_to_labels
from .errors import ShowdownError
from .evaluator import HandRankResult, evaluate, winning_indices

FOLD_OUT_DESCRIPTION = "Opponent folded"


@dataclass(frozen=True)
class ShowdownPlayer:
    id: str
    name: str
    hole_cards: Tuple[Card, ...]
    folded: bool = False


@dataclass(frozen=True)
class ShowdownPlayerResult:
    player_id: str
    player_name: str
    hole_cards: Tuple[Card, ...]
    hand_rank: Optional[HandRankResult]
    folded: bool
    is_winner: bool
    amount_won: int


@dataclass(frozen=True)
class ShowdownResult:
    players: Tuple[ShowdownPlayerResult, ...]
    winner_ids: Tuple[str, ...]
    winning_hand_description: str
    pot_awarded: int
    is_split_pot: bool
    amount_per_winner: int
    remainder: int = 0
    remainder_winner_id: Optional[str] = None

    def payouts(self) -> Dict[str, int]:
        """Chips each winner takes home, odd chips included."""
        amounts = {result.player_id: result.amount_won for result in self.players if result.amount_won > 0}
        if self.remainder and self.remainder_winner_id is not None:
            amounts[self.remainder_winner_id] = amounts.get(self.remainder_winner_id, 0) + self.remainder
        return amounts


@dataclass(frozen=True)
class ShowdownStarted:
    player_count: int
    pot_size: int
    ev = "SHOWDOWN_STARTED"

    def as_dict(self) -> Dict[str, object]:
        return {"ev": self.ev, "player_count": self.player_count, "pot": self.pot_size}


@dataclass(frozen=True)
class HandEvaluated:
    player_id: str
    player_name: str
    hole_cards: Tuple[Card, ...]
    hand_rank: HandRankResult
    ev = "HAND_EVALUATED"

    def as_dict(self) -> Dict[str, object]:
        return {
            "ev": self.ev,
            "player_id": self.player_id,
            "hole": cards_to_labels(self.hole_cards),
            "category": self.hand_rank.category.label,
            "description": self.hand_rank.description,
            "best_five": cards_to_labels(self.hand_rank.best_five),
        }


@dataclass(frozen=True)
class PotAwarded:
    winner_ids: Tuple[str, ...]
    winner_names: Tuple[str, ...]
    pot_amount: int
    amount_per_winner: int
    is_split_pot: bool
    winning_hand_description: str
    remainder: int = 0
    remainder_winner_id: Optional[str] = None
    ev = "POT_AWARDED"

    def as_dict(self) -> Dict[str, object]:
        return {
            "ev": self.ev,
            "winner_ids": list(self.winner_ids),
            "pot": self.pot_amount,
            "amount_per_winner": self.amount_per_winner,
            "split": self.is_split_pot,
            "description": self.winning_hand_description,
            "remainder": self.remainder,
            "remainder_winner_id": self.remainder_winner_id,
        }


@dataclass(frozen=True)
class HandCompleted:
    result: ShowdownResult
    ev = "HAND_COMPLETED"

    def as_dict(self) -> Dict[str, object]:
        return {
            "ev": self.ev,
            "winner_ids": list(self.result.winner_ids),
            "description": self.result.winning_hand_description,
            "payouts": self.result.payouts(),
        }


ShowdownEvent = Union[ShowdownStarted, HandEvaluated, PotAwarded, HandCompleted]


def validate_showdown(players: Sequence[ShowdownPlayer], community_cards: Sequence[Card], pot_size: int) -> None:
    if not players:
        raise ShowdownError("No players for showdown")
    if len(community_cards) != 5:
        raise ShowdownError(f"Showdown requires 5 community cards, got {len(community_cards)}")
    if pot_size <= 0:
        raise ShowdownError(f"Pot size must be positive, got {pot_size}")
    for player in players:
        if not player.folded and len(player.hole_cards) != 2:
            raise ShowdownError(f"Player {player.name} must have 2 hole cards, got {len(player.hole_cards)}")
    if all(player.folded for player in players):
        raise ShowdownError("All players have folded")


def calculate_pot_split(pot_size: int, winner_count: int) -> Tuple[int, int]:
    if winner_count <= 0:
        raise ShowdownError("Must have at least one winner")
    return divmod(pot_size, winner_count)


def resolve_showdown(
    players: Sequence[ShowdownPlayer],
    community_cards: Sequence[Card],
    pot_size: int,
    button_index: Optional[int] = None,
) -> ShowdownResult:
    """Decide the winners of ``pot_size``.

    ``players`` are in seat order. The odd chips of a split pot are reported
    as ``remainder`` for the first winner left of ``button_index``.
    """
    validate_showdown(players, community_cards, pot_size)
    board = tuple(community_cards)
    live = [idx for idx, player in enumerate(players) if not player.folded]

    if len(live) == 1:
        # The survivor's cards stay unevaluated; folded hands are ranked for display only.
        winner_idx = live[0]
        ranks = {
            idx: evaluate(tuple(player.hole_cards) + board)
            for idx, player in enumerate(players)
            if player.folded and len(player.hole_cards) == 2
        }
        return ShowdownResult(
            players=_player_results(players, ranks, {winner_idx: pot_size}),
            winner_ids=(players[winner_idx].id,),
            winning_hand_description=FOLD_OUT_DESCRIPTION,
            pot_awarded=pot_size,
            is_split_pot=False,
            amount_per_winner=pot_size,
        )

    ranks = {idx: evaluate(tuple(players[idx].hole_cards) + board) for idx in live}
    best = winning_indices([ranks[idx] for idx in live])
    winners = [live[pos] for pos in best]
    per_winner, remainder = calculate_pot_split(pot_size, len(winners))
    odd_chip_idx = _odd_chip_recipient(winners, len(players), button_index) if remainder else None

    return ShowdownResult(
        players=_player_results(players, ranks, {idx: per_winner for idx in winners}),
        winner_ids=tuple(players[idx].id for idx in winners),
        winning_hand_description=ranks[winners[0]].description,
        pot_awarded=pot_size,
        is_split_pot=len(winners) > 1,
        amount_per_winner=per_winner,
        remainder=remainder,
        remainder_winner_id=players[odd_chip_idx].id if odd_chip_idx is not None else None,
    )


def resolve_showdown_with_events(
    players: Sequence[ShowdownPlayer],
    community_cards: Sequence[Card],
    pot_size: int,
    on_event: Callable[[ShowdownEvent], None],
    button_index: Optional[int] = None,
) -> ShowdownResult:
    # Validation happens before any event goes out.
    validate_showdown(players, community_cards, pot_size)
    result = resolve_showdown(players, community_cards, pot_size, button_index)

    live = [player for player in players if not player.folded]
    on_event(ShowdownStarted(player_count=len(live), pot_size=pot_size))
    if len(live) > 1:
        by_id = {entry.player_id: entry for entry in result.players}
        for player in live:
            hand_rank = by_id[player.id].hand_rank
            assert hand_rank is not None
            on_event(HandEvaluated(player.id, player.name, player.hole_cards, hand_rank))

    names = {player.id: player.name for player in players}
    on_event(
        PotAwarded(
            winner_ids=result.winner_ids,
            winner_names=tuple(names.get(pid, "Unknown") for pid in result.winner_ids),
            pot_amount=pot_size,
            amount_per_winner=result.amount_per_winner,
            is_split_pot=result.is_split_pot,
            winning_hand_description=result.winning_hand_description,
            remainder=result.remainder,
            remainder_winner_id=result.remainder_winner_id,
        )
    )
    on_event(HandCompleted(result))
    return result


def collect_showdown_events(
    players: Sequence[ShowdownPlayer],
    community_cards: Sequence[Card],
    pot_size: int,
    button_index: Optional[int] = None,
) -> Tuple[ShowdownResult, List[ShowdownEvent]]:
    events: List[ShowdownEvent] = []
    result = resolve_showdown_with_events(players, community_cards, pot_size, events.append, button_index)
    return result, events


def _player_results(
    players: Sequence[ShowdownPlayer],
    ranks: Dict[int, HandRankResult],
    amounts: Dict[int, int],
) -> Tuple[ShowdownPlayerResult, ...]:
    return tuple(
        ShowdownPlayerResult(
            player_id=player.id,
            player_name=player.name,
            hole_cards=player.hole_cards,
            hand_rank=ranks.get(idx),
            folded=player.folded,
            is_winner=idx in amounts,
            amount_won=amounts.get(idx, 0),
        )
        for idx, player in enumerate(players)
    )


def _odd_chip_recipient(winners: Sequence[int], seat_count: int, button_index: Optional[int]) -> int:
    if button_index is None:
        return min(winners)
    return min(winners, key=lambda idx: (idx - button_index - 1) % seat_count)
