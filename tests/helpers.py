from __future__ import annotations

from typing import Iterable, List, Optional, Tuple

from holdem.cards import new_deck, parse_cards
from holdem.game import GameEngine, RoundContext
from holdem.models import ActionType, TableConfig


def create_engine(
    *,
    players: int = 4,
    starting_stack: int = 100,
    sb: int = 5,
    bb: int = 10,
    seats: int = 6,
) -> GameEngine:
    """Instantiate an engine with ``players`` seated as P0, P1, ..."""
    engine = GameEngine(TableConfig(seats=seats, starting_stack=starting_stack, sb=sb, bb=bb))
    for idx in range(players):
        engine.seat_player(f"P{idx}", f"Player{idx}")
    return engine


def start_round(engine: GameEngine, seed: int = 42) -> RoundContext:
    ctx = engine.start_round(seed=seed)
    assert ctx is not None
    return ctx


def perform_actions(engine: GameEngine, actions: Iterable[Tuple[str, ActionType, Optional[int]]]) -> None:
    """Apply a scripted sequence of actions (player_id, action, amount)."""
    for player_id, action, amount in actions:
        engine.handle_action(player_id, action, amount)


def auto_complete_round(engine: GameEngine) -> List[dict]:
    """Check when possible, otherwise call, until the round is paid out."""
    events: List[dict] = []
    while not engine.is_round_complete():
        actor = engine.state.turn_player_id
        if actor is None:
            break
        legal, _ = engine.legal_actions(actor)
        if ActionType.CHECK in legal:
            events.extend(engine.handle_action(actor, ActionType.CHECK))
        elif ActionType.CALL in legal:
            events.extend(engine.handle_action(actor, ActionType.CALL))
        else:
            events.extend(engine.handle_action(actor, ActionType.FOLD))
    return events


def force_draw_order(monkeypatch, labels: List[str]) -> None:
    """Make every new Deck hand out ``labels`` first, in order."""
    forced = parse_cards(labels)
    rest = [card for card in new_deck() if card not in forced]
    # Deck.draw pops from the end of the list.
    ordered = rest + list(reversed(forced))
    monkeypatch.setattr("holdem.cards.shuffle", lambda cards, rng: list(ordered))
