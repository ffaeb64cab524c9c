from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, List, Optional

from .cards import Card


class Street(str, Enum):
    PREFLOP = "preflop"
    FLOP = "flop"
    TURN = "turn"
    RIVER = "river"
    SHOWDOWN = "showdown"

    def next(self) -> "Street":
        order = list(Street)
        idx = order.index(self)
        if idx + 1 >= len(order):
            raise ValueError("No street after showdown")
        return order[idx + 1]


class TablePhase(str, Enum):
    WAITING = "waiting"
    DEALING = "dealing"
    BETTING = "betting"
    SHOWDOWN = "showdown"
    PAYOUT = "payout"


class Role(str, Enum):
    NONE = "none"
    DEALER = "dealer"
    SMALL_BLIND = "small-blind"
    BIG_BLIND = "big-blind"


class ActionType(str, Enum):
    BET = "bet"
    CALL = "call"
    CHECK = "check"
    RAISE = "raise"
    FOLD = "fold"


@dataclass
class TableConfig:
    seats: int = 6
    starting_stack: int = 100
    sb: int = 5
    bb: int = 10
    reset_delay_ms: int = 3_000


@dataclass
class Player:
    player_id: str
    name: str
    stack: int
    street_bet: int = 0
    round_bet: int = 0
    hole_cards: List[Card] = field(default_factory=list)
    folded: bool = False
    all_in: bool = False
    role: Role = Role.NONE
    dealt_in: bool = False

    def reset_for_round(self) -> None:
        self.street_bet = 0
        self.round_bet = 0
        self.hole_cards.clear()
        self.folded = False
        self.all_in = False
        self.role = Role.NONE
        self.dealt_in = False

    def close_street(self) -> None:
        self.round_bet += self.street_bet
        self.street_bet = 0

    @property
    def committed(self) -> int:
        # Everything this player has put in since the deal.
        return self.round_bet + self.street_bet

    @property
    def can_act(self) -> bool:
        return self.dealt_in and not self.folded and not self.all_in

    @property
    def in_contention(self) -> bool:
        return self.dealt_in and not self.folded


@dataclass
class SidePot:
    amount: int
    eligible: List[str]

    def to_payload(self) -> Dict[str, object]:
        return {"amount": self.amount, "eligible": list(self.eligible)}


@dataclass
class GameState:
    street: Street = Street.PREFLOP
    current_bet: int = 0
    turn_player_id: Optional[str] = None
    last_aggressor_id: Optional[str] = None
    pots: List[SidePot] = field(default_factory=list)
    board: List[Card] = field(default_factory=list)
    revealed: bool = False
    dealer_id: Optional[str] = None
    # Set once someone calls the last aggression on this street.
    aggression_matched: bool = False

    def reset_street(self) -> None:
        self.current_bet = 0
        self.last_aggressor_id = None
        self.aggression_matched = False
