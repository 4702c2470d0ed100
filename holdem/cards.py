from __future__ import annotations

import random
from dataclasses import dataclass
from typing import List, Optional, Sequence, Tuple

RANKS = tuple(range(2, 15))
SUITS = "cdhs"
RANK_LABELS = "23456789TJQKA"
SUIT_SYMBOLS = {"c": "♣", "d": "♦", "h": "♥", "s": "♠"}
SUIT_INDEX = {suit: idx for idx, suit in enumerate(SUITS)}


@dataclass(frozen=True)
class Card:
    rank: int
    suit: str

    def __post_init__(self) -> None:
        if self.rank not in RANKS:
            raise ValueError(f"Invalid rank: {self.rank}")
        if self.suit not in SUITS:
            raise ValueError(f"Invalid suit: {self.suit}")

    @property
    def label(self) -> str:
        return f"{RANK_LABELS[self.rank - 2]}{self.suit}"

    @property
    def display(self) -> str:
        return f"{RANK_LABELS[self.rank - 2]}{SUIT_SYMBOLS[self.suit]}"

    def __str__(self) -> str:
        return self.label


@dataclass(frozen=True)
class Deck:
    """Immutable deck: dealing returns a new deck with a moved cursor."""

    cards: Tuple[Card, ...]
    dealt: int = 0

    @property
    def remaining(self) -> int:
        return len(self.cards) - self.dealt


def fresh_cards() -> List[Card]:
    return [Card(rank, suit) for suit in SUITS for rank in RANKS]


def build_deck(seed: Optional[int] = None) -> Deck:
    rng = random.Random(seed)
    cards = fresh_cards()
    rng.shuffle(cards)
    return Deck(tuple(cards))


def stacked_deck(cards: Sequence[Card]) -> Deck:
    """Deck with the given cards on top, followed by the rest in fresh order."""
    top = list(cards)
    if len(set(top)) != len(top):
        raise ValueError("Duplicate card in stacked deck")
    taken = set(top)
    rest = [card for card in fresh_cards() if card not in taken]
    return Deck(tuple(top + rest))


def deal(deck: Deck, count: int) -> Tuple[List[Card], Deck]:
    if deck.remaining < count:
        raise ValueError("Not enough cards left in deck")
    cards = list(deck.cards[deck.dealt : deck.dealt + count])
    return cards, Deck(deck.cards, deck.dealt + count)


def cards_to_labels(cards: Sequence[Card]) -> List[str]:
    return [card.label for card in cards]


def parse_label(label: str) -> Card:
    text = label.strip()
    if len(text) not in (2, 3):
        raise ValueError(f"Invalid card label: {label}")
    rank_text, suit = text[:-1].upper(), text[-1].lower()
    if rank_text == "10":
        rank_text = "T"
    if len(rank_text) != 1 or rank_text not in RANK_LABELS:
        raise ValueError(f"Invalid card label: {label}")
    return Card(RANK_LABELS.index(rank_text) + 2, suit)


def parse_cards(labels: Sequence[str]) -> List[Card]:
    return [parse_label(label) for label in labels]
