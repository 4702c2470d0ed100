from __future__ import annotations

import itertools
from dataclasses import dataclass
from enum import IntEnum
from typing import List, Optional, Sequence, Tuple

from .cards import SUIT_INDEX, Card
from .errors import HandEvaluationError

RANK_NAMES = {
    2: "Two",
    3: "Three",
    4: "Four",
    5: "Five",
    6: "Six",
    7: "Seven",
    8: "Eight",
    9: "Nine",
    10: "Ten",
    11: "Jack",
    12: "Queen",
    13: "King",
    14: "Ace",
}


class HandCategory(IntEnum):
    HIGH_CARD = 1
    ONE_PAIR = 2
    TWO_PAIR = 3
    THREE_OF_A_KIND = 4
    STRAIGHT = 5
    FLUSH = 6
    FULL_HOUSE = 7
    FOUR_OF_A_KIND = 8
    STRAIGHT_FLUSH = 9
    ROYAL_FLUSH = 10

    @property
    def label(self) -> str:
        return CATEGORY_NAMES[self]


CATEGORY_NAMES = {
    HandCategory.HIGH_CARD: "High Card",
    HandCategory.ONE_PAIR: "One Pair",
    HandCategory.TWO_PAIR: "Two Pair",
    HandCategory.THREE_OF_A_KIND: "Three of a Kind",
    HandCategory.STRAIGHT: "Straight",
    HandCategory.FLUSH: "Flush",
    HandCategory.FULL_HOUSE: "Full House",
    HandCategory.FOUR_OF_A_KIND: "Four of a Kind",
    HandCategory.STRAIGHT_FLUSH: "Straight Flush",
    HandCategory.ROYAL_FLUSH: "Royal Flush",
}


class Comparison(IntEnum):
    LESS = -1
    EQUAL = 0
    GREATER = 1


@dataclass(frozen=True)
class HandRankResult:
    category: HandCategory
    kickers: Tuple[int, ...]
    description: str
    best_five: Tuple[Card, ...]

    @property
    def category_name(self) -> str:
        return self.category.label


@dataclass(frozen=True)
class WinnerResult:
    indices: Tuple[int, ...]
    best: Optional[HandRankResult]
    is_tie: bool


def rank_name(rank: int) -> str:
    return RANK_NAMES[rank]


def rank_name_plural(rank: int) -> str:
    if rank == 6:
        return "Sixes"
    return RANK_NAMES[rank] + "s"


def evaluate(cards: Sequence[Card]) -> HandRankResult:
    """Best five-card classification of 5 to 7 cards, independent of input order."""
    if len(cards) < 5:
        raise HandEvaluationError(f"Need at least 5 cards, got {len(cards)}")
    if len(cards) > 7:
        raise HandEvaluationError(f"At most 7 cards can be evaluated, got {len(cards)}")
    if len(set(cards)) != len(cards):
        raise HandEvaluationError("Duplicate cards in hand")

    ordered = sorted(cards, key=lambda card: (-card.rank, SUIT_INDEX[card.suit]))
    if len(ordered) == 5:
        return _evaluate_five(ordered)

    best: Optional[HandRankResult] = None
    for combo in itertools.combinations(ordered, 5):
        result = _evaluate_five(combo)
        if best is None or compare(result, best) == Comparison.GREATER:
            best = result
    assert best is not None
    return best


def compare(a: HandRankResult, b: HandRankResult) -> Comparison:
    if a.category != b.category:
        return Comparison.GREATER if a.category > b.category else Comparison.LESS
    width = max(len(a.kickers), len(b.kickers))
    left = tuple(a.kickers) + (0,) * (width - len(a.kickers))
    right = tuple(b.kickers) + (0,) * (width - len(b.kickers))
    if left > right:
        return Comparison.GREATER
    if left < right:
        return Comparison.LESS
    return Comparison.EQUAL


def compare_hands(a: Sequence[Card], b: Sequence[Card]) -> Comparison:
    return compare(evaluate(a), evaluate(b))


def winning_indices(results: Sequence[HandRankResult]) -> List[int]:
    """Indices of every result equal to the best one (the full tie set)."""
    if not results:
        return []
    best = results[0]
    winners = [0]
    for idx in range(1, len(results)):
        outcome = compare(results[idx], best)
        if outcome == Comparison.GREATER:
            best = results[idx]
            winners = [idx]
        elif outcome == Comparison.EQUAL:
            winners.append(idx)
    return winners


def determine_winners(hands: Sequence[Sequence[Card]]) -> WinnerResult:
    if not hands:
        return WinnerResult(indices=(), best=None, is_tie=False)
    if len(hands) == 1:
        return WinnerResult(indices=(0,), best=evaluate(hands[0]), is_tie=False)

    results = [evaluate(hand) for hand in hands]
    indices = winning_indices(results)
    return WinnerResult(indices=tuple(indices), best=results[indices[0]], is_tie=len(indices) > 1)


def _evaluate_five(cards: Sequence[Card]) -> HandRankResult:
    rank_counts = [0] * 15
    suit_counts = [0] * 4
    for card in cards:
        rank_counts[card.rank] += 1
        suit_counts[SUIT_INDEX[card.suit]] += 1

    is_flush = 5 in suit_counts
    straight_high = _straight_high(rank_counts)

    # (count desc, rank desc)
    groups = sorted(
        ((count, rank) for rank, count in enumerate(rank_counts) if count),
        reverse=True,
    )
    counts = [count for count, _ in groups]
    ranks = [rank for _, rank in groups]
    best_five = _order_cards(cards, ranks, straight_high)

    if is_flush and straight_high == 14:
        return HandRankResult(HandCategory.ROYAL_FLUSH, (14,), "Royal Flush", best_five)
    if is_flush and straight_high is not None:
        return HandRankResult(
            HandCategory.STRAIGHT_FLUSH,
            (straight_high,),
            f"Straight Flush, {rank_name(straight_high)} high",
            best_five,
        )
    if counts[0] == 4:
        return HandRankResult(
            HandCategory.FOUR_OF_A_KIND,
            (ranks[0], ranks[1]),
            f"Four of a Kind, {rank_name_plural(ranks[0])}",
            best_five,
        )
    if counts[0] == 3 and counts[1] == 2:
        return HandRankResult(
            HandCategory.FULL_HOUSE,
            (ranks[0], ranks[1]),
            f"Full House, {rank_name_plural(ranks[0])} full of {rank_name_plural(ranks[1])}",
            best_five,
        )
    if is_flush:
        return HandRankResult(
            HandCategory.FLUSH,
            tuple(ranks),
            f"Flush, {rank_name(ranks[0])} high",
            best_five,
        )
    if straight_high is not None:
        return HandRankResult(
            HandCategory.STRAIGHT,
            (straight_high,),
            f"Straight, {rank_name(straight_high)} high",
            best_five,
        )
    if counts[0] == 3:
        return HandRankResult(
            HandCategory.THREE_OF_A_KIND,
            (ranks[0], ranks[1], ranks[2]),
            f"Three of a Kind, {rank_name_plural(ranks[0])}",
            best_five,
        )
    if counts[0] == 2 and counts[1] == 2:
        return HandRankResult(
            HandCategory.TWO_PAIR,
            (ranks[0], ranks[1], ranks[2]),
            f"Two Pair, {rank_name_plural(ranks[0])} and {rank_name_plural(ranks[1])}",
            best_five,
        )
    if counts[0] == 2:
        return HandRankResult(
            HandCategory.ONE_PAIR,
            (ranks[0], ranks[1], ranks[2], ranks[3]),
            f"One Pair, {rank_name_plural(ranks[0])}",
            best_five,
        )
    return HandRankResult(
        HandCategory.HIGH_CARD,
        tuple(ranks),
        f"High Card, {rank_name(ranks[0])}",
        best_five,
    )


def _straight_high(rank_counts: List[int]) -> Optional[int]:
    present = [rank for rank in range(2, 15) if rank_counts[rank]]
    if len(present) != 5:
        return None
    if present[-1] - present[0] == 4:
        return present[-1]
    if present == [2, 3, 4, 5, 14]:  # wheel
        return 5
    return None


def _order_cards(cards: Sequence[Card], ranks: List[int], straight_high: Optional[int]) -> Tuple[Card, ...]:
    if straight_high == 5:
        position = {5: 0, 4: 1, 3: 2, 2: 3, 14: 4}
    else:
        position = {rank: idx for idx, rank in enumerate(ranks)}
    return tuple(sorted(cards, key=lambda card: (position[card.rank], SUIT_INDEX[card.suit])))
