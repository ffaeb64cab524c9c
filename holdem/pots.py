from __future__ import annotations

from typing import Callable, Dict, Iterable, List, Sequence, Tuple

from .models import Player, SidePot


def build_side_pots(players: Iterable[Player]) -> List[SidePot]:
    """Slice every player's round contribution into pots, smallest all-in level first.

    Folded players still fund each level they reached but are never eligible.
    Only ``round_bet`` counts, so close the street before settling.
    """
    contributors = [player for player in players if player.round_bet > 0]
    levels = sorted({player.round_bet for player in contributors})

    pots: List[SidePot] = []
    previous = 0
    for level in levels:
        funders = [player for player in contributors if player.round_bet >= level]
        amount = (level - previous) * len(funders)
        eligible = [player.player_id for player in funders if not player.folded]
        pots.append(SidePot(amount=amount, eligible=eligible))
        previous = level
    return pots


def merge_orphan_pots(pots: Sequence[SidePot]) -> List[SidePot]:
    """Fold pots nobody can win into the nearest lower pot that has a contender."""
    merged: List[SidePot] = []
    for pot in pots:
        if pot.eligible or not merged:
            merged.append(SidePot(amount=pot.amount, eligible=list(pot.eligible)))
            continue
        merged[-1].amount += pot.amount
    # The lowest pot can only be orphaned when nobody is left in contention.
    while len(merged) > 1 and not merged[0].eligible:
        orphan = merged.pop(0)
        merged[0].amount += orphan.amount
    return merged


def split_pot(amount: int, winners: Sequence[str]) -> List[Tuple[str, int]]:
    """Divide ``amount`` between ``winners``; odd chips go one each from the front."""
    if not winners:
        raise ValueError("Cannot split a pot with no winners")
    share, remainder = divmod(amount, len(winners))
    return [(winner, share + (1 if idx < remainder else 0)) for idx, winner in enumerate(winners)]


def award_pots(
    pots: Sequence[SidePot],
    rank_of: Callable[[str], object],
    seat_order: Sequence[str],
) -> List[Dict[str, object]]:
    """Pay each pot to its best eligible hand(s).

    ``rank_of`` maps a player id to a comparable hand strength. ``seat_order``
    lists player ids starting left of the dealer and decides who gets odd chips.
    """
    position = {player_id: idx for idx, player_id in enumerate(seat_order)}
    awards: List[Dict[str, object]] = []
    for pot_idx, pot in enumerate(merge_orphan_pots(pots)):
        if pot.amount <= 0 or not pot.eligible:
            continue
        best = max(rank_of(player_id) for player_id in pot.eligible)
        winners = [player_id for player_id in pot.eligible if rank_of(player_id) == best]
        winners.sort(key=lambda player_id: position.get(player_id, len(position)))
        for player_id, amount in split_pot(pot.amount, winners):
            awards.append({"pot": pot_idx, "player_id": player_id, "amount": amount})
    return awards
