from __future__ import annotations

from collections import Counter
from dataclasses import dataclass
from enum import IntEnum
from functools import total_ordering
from itertools import zip_longest
from typing import Dict, List, Optional, Sequence, Tuple

from .cards import Card

RANK_NAMES = {
    2: "Twos",
    3: "Threes",
    4: "Fours",
    5: "Fives",
    6: "Sixes",
    7: "Sevens",
    8: "Eights",
    9: "Nines",
    10: "Tens",
    11: "Jacks",
    12: "Queens",
    13: "Kings",
    14: "Aces",
}
HIGH_NAMES = {
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
    HIGH_CARD = 0
    PAIR = 1
    TWO_PAIR = 2
    TRIPS = 3
    STRAIGHT = 4
    FLUSH = 5
    FULL_HOUSE = 6
    QUADS = 7
    STRAIGHT_FLUSH = 8

    @property
    def label(self) -> str:
        return self.name.lower()


@total_ordering
@dataclass(frozen=True, eq=False)
class HandResult:
    category: HandCategory
    tiebreak: Tuple[int, ...]

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, HandResult):
            return NotImplemented
        return compare(self, other) == 0

    def __lt__(self, other: "HandResult") -> bool:
        return compare(self, other) < 0

    def describe(self) -> str:
        return describe_hand(self)


def compare(a: HandResult, b: HandResult) -> int:
    """Return -1, 0 or 1. Category first, then tiebreak ranks with missing entries as 0."""
    if a.category != b.category:
        return 1 if a.category > b.category else -1
    for left, right in zip_longest(a.tiebreak, b.tiebreak, fillvalue=0):
        if left != right:
            return 1 if left > right else -1
    return 0


def evaluate(cards: Sequence[Card]) -> HandResult:
    """Score 5 to 7 cards. Higher HandResult is the stronger hand."""
    if not 5 <= len(cards) <= 7:
        raise ValueError(f"Hand evaluation needs 5-7 cards, got {len(cards)}")
    if len(set(cards)) != len(cards):
        raise ValueError("Duplicate cards in hand")

    counts = Counter(card.rank for card in cards)
    # Ranks grouped by multiplicity, each group high to low.
    groups: Dict[int, List[int]] = {}
    for rank, count in sorted(counts.items(), reverse=True):
        groups.setdefault(count, []).append(rank)
    quads = groups.get(4, [])
    trips = groups.get(3, [])
    pairs = groups.get(2, [])

    flush_ranks = _flush_ranks(cards)
    if flush_ranks is not None:
        straight_flush_high = _straight_high(flush_ranks)
        if straight_flush_high is not None:
            return HandResult(HandCategory.STRAIGHT_FLUSH, (straight_flush_high,))

    if quads:
        kicker = max(rank for rank in counts if rank != quads[0])
        return HandResult(HandCategory.QUADS, (quads[0], kicker))

    if trips and (len(trips) > 1 or pairs):
        # A second set of trips plays as the pair.
        pair_rank = max(trips[1:] + pairs)
        return HandResult(HandCategory.FULL_HOUSE, (trips[0], pair_rank))

    if flush_ranks is not None:
        return HandResult(HandCategory.FLUSH, tuple(flush_ranks[:5]))

    straight_high = _straight_high(list(counts))
    if straight_high is not None:
        return HandResult(HandCategory.STRAIGHT, (straight_high,))

    if trips:
        kickers = _kickers(counts, exclude=trips[:1], take=2)
        return HandResult(HandCategory.TRIPS, (trips[0], *kickers))

    if len(pairs) >= 2:
        high, low = pairs[0], pairs[1]
        kickers = _kickers(counts, exclude=[high, low], take=1)
        return HandResult(HandCategory.TWO_PAIR, (high, low, *kickers))

    if pairs:
        kickers = _kickers(counts, exclude=pairs[:1], take=3)
        return HandResult(HandCategory.PAIR, (pairs[0], *kickers))

    return HandResult(HandCategory.HIGH_CARD, tuple(sorted(counts, reverse=True)[:5]))


def best_hand(hole: Sequence[Card], board: Sequence[Card]) -> HandResult:
    return evaluate(list(hole) + list(board))


def _kickers(counts: Counter, exclude: Sequence[int], take: int) -> List[int]:
    return sorted((rank for rank in counts if rank not in exclude), reverse=True)[:take]


def _flush_ranks(cards: Sequence[Card]) -> Optional[List[int]]:
    suits = Counter(card.suit for card in cards)
    suit, count = suits.most_common(1)[0]
    if count < 5:
        return None
    return sorted((card.rank for card in cards if card.suit == suit), reverse=True)


def _straight_high(ranks: Sequence[int]) -> Optional[int]:
    distinct = set(ranks)
    if 14 in distinct:  # Ace low for the wheel only
        distinct.add(1)
    for high in range(14, 4, -1):
        if all(rank in distinct for rank in range(high - 4, high + 1)):
            return high
    return None


def describe_hand(result: HandResult) -> str:
    category = result.category
    key = result.tiebreak
    if category == HandCategory.STRAIGHT_FLUSH:
        if key[0] == 14:
            return "Royal flush"
        return f"Straight flush, {HIGH_NAMES[key[0]]} high"
    if category == HandCategory.QUADS:
        return f"Four of a kind, {RANK_NAMES[key[0]]}"
    if category == HandCategory.FULL_HOUSE:
        return f"Full house, {RANK_NAMES[key[0]]} full of {RANK_NAMES[key[1]]}"
    if category == HandCategory.FLUSH:
        return f"Flush, {HIGH_NAMES[key[0]]} high"
    if category == HandCategory.STRAIGHT:
        return f"Straight, {HIGH_NAMES[key[0]]} high"
    if category == HandCategory.TRIPS:
        return f"Three of a kind, {RANK_NAMES[key[0]]}"
    if category == HandCategory.TWO_PAIR:
        return f"Two pair, {RANK_NAMES[key[0]]} and {RANK_NAMES[key[1]]}"
    if category == HandCategory.PAIR:
        return f"Pair of {RANK_NAMES[key[0]]}"
    return f"High card, {HIGH_NAMES[key[0]]}"
