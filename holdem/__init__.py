"""Texas Hold'em round engine: cards, hand ranking, betting and side pots."""

from .cards import Card, Deck, RANKS, SUITS, new_deck, parse_cards
from .errors import EmptyDeck, EngineError, IllegalAction, InsufficientPlayers, TableFull, TableNotJoinable
from .evaluator import HandCategory, HandResult, compare, evaluate
from .game import GameEngine, RoundContext, replay_round
from .models import ActionType, GameState, Player, Role, SidePot, Street, TableConfig, TablePhase
from .pots import build_side_pots, split_pot

__all__ = [
    "Card",
    "Deck",
    "RANKS",
    "SUITS",
    "new_deck",
    "parse_cards",
    "EmptyDeck",
    "EngineError",
    "IllegalAction",
    "InsufficientPlayers",
    "TableFull",
    "TableNotJoinable",
    "HandCategory",
    "HandResult",
    "compare",
    "evaluate",
    "GameEngine",
    "RoundContext",
    "replay_round",
    "ActionType",
    "GameState",
    "Player",
    "Role",
    "SidePot",
    "Street",
    "TableConfig",
    "TablePhase",
    "build_side_pots",
    "split_pot",
]
