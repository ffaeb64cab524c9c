from __future__ import annotations

import random
from dataclasses import dataclass
from typing import Iterable, List, Optional

from .errors import EmptyDeck

RANKS = "23456789TJQKA"
SUITS = "hdcs"
RANK_VALUE = {rank: idx for idx, rank in enumerate(RANKS, start=2)}
RANK_LABEL = {value: rank for rank, value in RANK_VALUE.items()}


@dataclass(frozen=True)
class Card:
    rank: int
    suit: str

    def __post_init__(self) -> None:
        if self.rank not in RANK_LABEL:
            raise ValueError(f"Invalid rank: {self.rank}")
        if self.suit not in SUITS:
            raise ValueError(f"Invalid suit: {self.suit}")

    @property
    def label(self) -> str:
        return f"{RANK_LABEL[self.rank]}{self.suit}"

    def __str__(self) -> str:
        return self.label


def new_deck() -> List[Card]:
    """All 52 cards in canonical order (suit-major, deuce to ace)."""
    return [Card(rank, suit) for suit in SUITS for rank in range(2, 15)]


def shuffle(cards: List[Card], rng: random.Random) -> List[Card]:
    # Fisher-Yates, walking down from the top of the list.
    for idx in range(len(cards) - 1, 0, -1):
        swap = rng.randint(0, idx)
        cards[idx], cards[swap] = cards[swap], cards[idx]
    return cards


class Deck:
    """One round's deck. Cards leave only through draw(); reset() reshuffles all 52."""

    def __init__(self, seed: Optional[int] = None) -> None:
        self.cards: List[Card] = []
        self.drawn: List[Card] = []
        self.reset(seed)

    def reset(self, seed: Optional[int] = None) -> None:
        self.seed = seed
        self.cards = shuffle(new_deck(), random.Random(seed))
        self.drawn = []

    def draw(self) -> Card:
        if not self.cards:
            raise EmptyDeck("Deck exhausted: more cards dealt than exist")
        card = self.cards.pop()
        self.drawn.append(card)
        return card

    def deal(self, count: int) -> List[Card]:
        if len(self.cards) < count:
            raise EmptyDeck(f"Cannot deal {count} cards, {len(self.cards)} left")
        return [self.draw() for _ in range(count)]

    def __len__(self) -> int:
        return len(self.cards)


def cards_to_labels(cards: Iterable[Card]) -> List[str]:
    return [card.label for card in cards]


def parse_label(label: str) -> Card:
    if len(label) != 2 or label[0] not in RANK_VALUE:
        raise ValueError(f"Invalid card label: {label}")
    return Card(RANK_VALUE[label[0]], label[1])


def parse_cards(labels: Iterable[str]) -> List[Card]:
    return [parse_label(label) for label in labels]
