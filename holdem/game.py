from __future__ import annotations

import logging
import time
from dataclasses import dataclass, field
from typing import Dict, Iterable, List, Optional, Sequence, Tuple, Union

from .betting import BettingRound
from .cards import Deck, cards_to_labels
from .errors import EngineError, IllegalAction, InsufficientPlayers, TableFull, TableNotJoinable
from .evaluator import HandResult, best_hand
from .models import ActionType, GameState, Player, Role, SidePot, Street, TableConfig, TablePhase
from .pots import award_pots, build_side_pots, merge_orphan_pots

LOGGER = logging.getLogger("holdem.engine")

# GameEngine keeps all table state in memory. No networking lives here, only
# seating, dealing, street progression and payouts.

HIDDEN_CARD = "??"
# Action-log marker for a seat that left mid-round; replay unseats it again.
LEAVE_ACTION = "leave"


@dataclass
class RoundContext:
    # Everything needed to identify and replay one round.
    round_id: str
    seed: int
    dealer_index: int
    previous_dealer_index: Optional[int]
    deck: Deck
    opening_seats: List[Tuple[str, str, int]]
    sb_id: Optional[str] = None
    bb_id: Optional[str] = None
    actions: List[Tuple[str, str, Optional[int]]] = field(default_factory=list)
    pre_events: List[Dict[str, object]] = field(default_factory=list)
    result: Optional[Dict[str, object]] = None


class GameEngine:
    """No-Limit Texas Hold'em round engine for a single table."""

    def __init__(self, config: TableConfig) -> None:
        self.config = config
        self.players: List[Player] = []
        # Players who left mid-round; their chips stay in the pot until settlement.
        self.departed: List[Player] = []
        self.state = GameState()
        self.phase = TablePhase.WAITING
        self.betting = BettingRound(self.players, self.departed, self.state)
        self.dealer_index: Optional[int] = None
        self.round_counter = 0
        self.round: Optional[RoundContext] = None

    # Seat management -------------------------------------------------

    def seat_player(self, player_id: str, name: Optional[str] = None) -> Player:
        if self.find_player(player_id) is not None:
            raise TableNotJoinable(f"{player_id} is already seated")
        if len(self.players) >= self.config.seats:
            raise TableFull("Table is full")
        display = (name or "").strip() or f"Player {len(self.players) + 1}"
        player = Player(player_id=player_id, name=display, stack=self.config.starting_stack)
        self.players.append(player)
        return player

    def remove_player(self, player_id: str) -> List[Dict[str, object]]:
        """Unseat a player. Mid-round, whatever they committed stays in the pot."""
        player = self.find_player(player_id)
        if player is None:
            return []

        events: List[Dict[str, object]] = []
        if self.phase == TablePhase.BETTING and self.round is not None:
            # Departures shift seat order; replay has to unseat them at the same point.
            self.round.actions.append((player_id, LEAVE_ACTION, None))
        in_round = self.phase == TablePhase.BETTING and player.in_contention
        if in_round:
            # Fold while still seated so turn order advances from their seat.
            self.betting.apply(player, ActionType.FOLD, None)
        idx = self.players.index(player)
        self.players.pop(idx)
        if self.phase == TablePhase.BETTING and player.dealt_in:
            self.departed.append(player)
        if self.dealer_index is not None:
            if idx <= self.dealer_index:
                self.dealer_index -= 1
            if self.dealer_index < 0:
                self.dealer_index = len(self.players) - 1 if self.players else None
        events.append({"ev": "LEAVE", "player_id": player_id, "forfeit": player.committed})

        if in_round:
            if not self.betting.contenders():
                self.abort_round("every contender left")
            else:
                events.extend(self._progress())
        return events

    def find_player(self, player_id: str) -> Optional[Player]:
        for player in self.players:
            if player.player_id == player_id:
                return player
        return None

    def _require_player(self, player_id: str) -> Player:
        player = self.find_player(player_id)
        if player is None:
            raise IllegalAction(f"Unknown player {player_id}")
        return player

    def funded_players(self) -> List[Player]:
        return [player for player in self.players if player.stack > 0]

    def can_start_round(self) -> bool:
        return len(self.funded_players()) >= 2

    def total_chips(self) -> int:
        """Stacks plus every uncollected bet, departed players included."""
        return sum(
            player.stack + player.street_bet + player.round_bet
            for player in self.players + self.departed
        )

    # Round lifecycle -------------------------------------------------

    def start_round(self, seed: Optional[int] = None) -> RoundContext:
        if self.phase not in (TablePhase.WAITING, TablePhase.PAYOUT):
            raise EngineError("Round already in progress", code="ROUND_IN_PROGRESS")
        if not self.can_start_round():
            raise InsufficientPlayers("Not enough funded players to deal")

        self.reset_round()
        self.phase = TablePhase.DEALING
        if seed is None:
            seed = int(time.time() * 1000) & 0xFFFFFFFF

        previous_dealer = self.dealer_index
        if self.dealer_index is None:
            self.dealer_index = self._next_funded_index(-1)
        else:
            self.dealer_index = self._next_funded_index(self.dealer_index)

        self.round_counter += 1
        ctx = RoundContext(
            round_id=f"R-{self.round_counter:05d}",
            seed=seed,
            dealer_index=self.dealer_index,
            previous_dealer_index=previous_dealer,
            deck=Deck(seed),
            opening_seats=[(p.player_id, p.name, p.stack) for p in self.players],
        )
        self.round = ctx

        for player in self.players:
            if player.stack > 0:
                player.dealt_in = True
            else:
                # Busted seats sit the round out.
                player.folded = True

        self._deal_hole_cards(ctx)
        bb_index = self._post_blinds(ctx)
        self.phase = TablePhase.BETTING
        self.betting.open_street(bb_index + 1)
        ctx.pre_events.extend(self._progress())
        LOGGER.info(
            "Round %s dealt: dealer=%s sb=%s bb=%s seed=%s",
            ctx.round_id,
            self.state.dealer_id,
            ctx.sb_id,
            ctx.bb_id,
            seed,
        )
        return ctx

    def _deal_hole_cards(self, ctx: RoundContext) -> None:
        ordered = self._dealt_in_from(ctx.dealer_index + 1)
        for _ in range(2):
            for player in ordered:
                player.hole_cards.append(ctx.deck.draw())
        ctx.pre_events.append({"ev": "DEAL", "players": [player.player_id for player in ordered]})

    def _post_blinds(self, ctx: RoundContext) -> int:
        dealer = self.players[ctx.dealer_index]
        funded = [player for player in self.players if player.dealt_in]
        if len(funded) == 2:
            sb_index = ctx.dealer_index
        else:
            sb_index = self._next_dealt_index(ctx.dealer_index)
            dealer.role = Role.DEALER
        bb_index = self._next_dealt_index(sb_index)
        sb_player = self.players[sb_index]
        bb_player = self.players[bb_index]
        sb_player.role = Role.SMALL_BLIND
        bb_player.role = Role.BIG_BLIND

        for player, amount in ((sb_player, self.config.sb), (bb_player, self.config.bb)):
            posted = self.betting.post_blind(player, amount)
            event: Dict[str, object] = {"ev": "POST_BLIND", "player_id": player.player_id, "amount": posted}
            if player.all_in:
                event["all_in"] = True
            ctx.pre_events.append(event)

        ctx.sb_id = sb_player.player_id
        ctx.bb_id = bb_player.player_id
        self.state.dealer_id = dealer.player_id
        self.state.current_bet = self.config.bb
        self.state.last_aggressor_id = bb_player.player_id
        return bb_index

    def reset_round(self) -> None:
        for player in self.players:
            player.reset_for_round()
        self.departed.clear()
        fresh = GameState()
        self.state = fresh
        self.betting = BettingRound(self.players, self.departed, fresh)
        self.phase = TablePhase.WAITING

    def abort_round(self, reason: str) -> None:
        """Refund seated players and return to waiting. Departed players' chips are dropped."""
        for player in self.players:
            player.stack += player.street_bet + player.round_bet
            player.street_bet = 0
            player.round_bet = 0
        round_id = self.round.round_id if self.round else None
        LOGGER.warning("Round %s aborted: %s", round_id, reason)
        self.reset_round()

    def is_round_complete(self) -> bool:
        return self.phase == TablePhase.PAYOUT

    # Action handling -------------------------------------------------

    def legal_actions(self, player_id: str) -> Tuple[List[ActionType], int]:
        player = self._require_player(player_id)
        if self.phase != TablePhase.BETTING:
            return [], 0
        return self.betting.legal_actions(player)

    def handle_action(
        self,
        player_id: str,
        action: Union[ActionType, str],
        amount: Optional[int] = None,
    ) -> List[Dict[str, object]]:
        """Apply one inbound action atomically, or raise IllegalAction with nothing changed."""
        if self.phase != TablePhase.BETTING or self.round is None:
            raise IllegalAction("No betting in progress")
        player = self._require_player(player_id)
        try:
            action = ActionType(action)
        except (TypeError, ValueError):
            raise IllegalAction(f"Unknown action {action!r}") from None

        events = self.betting.apply(player, action, amount)
        self.round.actions.append((player_id, action.value, amount))
        events.extend(self._progress())
        return events

    def _progress(self) -> List[Dict[str, object]]:
        events: List[Dict[str, object]] = []
        if len(self.betting.contenders()) <= 1:
            events.extend(self._settle())
            return events
        while self.phase == TablePhase.BETTING and self.betting.street_complete():
            events.extend(self._advance_street())
        return events

    def _advance_street(self) -> List[Dict[str, object]]:
        assert self.round is not None
        self.betting.close_street()
        self.state.pots = merge_orphan_pots(build_side_pots(self.players + self.departed))

        street = self.state.street.next()
        if street == Street.SHOWDOWN:
            return self._settle()

        count = 3 if street == Street.FLOP else 1
        cards = self.round.deck.deal(count)
        self.state.board.extend(cards)
        self.state.street = street
        self.betting.open_street(self._left_of_dealer())
        return [{"ev": street.value.upper(), "cards": cards_to_labels(cards)}]

    # Showdown ---------------------------------------------------------

    def _settle(self) -> List[Dict[str, object]]:
        assert self.round is not None
        ctx = self.round
        self.betting.close_street()
        participants = self.players + self.departed
        pots = build_side_pots(participants)
        self.state.street = Street.SHOWDOWN
        self.state.turn_player_id = None
        self.phase = TablePhase.SHOWDOWN

        contenders = self.betting.contenders()
        if len(contenders) == 1:
            # Everyone else folded. The last player takes every chip, including
            # levels they never funded themselves.
            pots = [SidePot(amount=sum(pot.amount for pot in pots), eligible=[contenders[0].player_id])]
        hands: Dict[str, HandResult] = {}
        if len(contenders) > 1:
            self.state.revealed = True
            for player in contenders:
                hands[player.player_id] = best_hand(player.hole_cards, self.state.board)

        def rank_of(player_id: str) -> object:
            return hands.get(player_id, 0)

        order = [player.player_id for player in self._dealt_in_from(self._left_of_dealer(), include_folded=True)]
        awards = award_pots(pots, rank_of, order)

        events: List[Dict[str, object]] = []
        for award in awards:
            player = self.find_player(award["player_id"])  # type: ignore[arg-type]
            assert player is not None
            player.stack += award["amount"]  # type: ignore[operator]
            events.append({"ev": "POT_AWARD", **award})
        for player in participants:
            player.round_bet = 0
        self.state.pots = []

        winners: List[str] = []
        for award in awards:
            if award["player_id"] not in winners:
                winners.append(award["player_id"])  # type: ignore[arg-type]
        if hands and winners:
            description = hands[winners[0]].describe()
        else:
            description = "Uncontested"

        result: Dict[str, object] = {
            "ev": "SHOWDOWN",
            "round_id": ctx.round_id,
            "winners": winners,
            "description": description,
            "board": cards_to_labels(self.state.board),
            "hands": [
                {
                    "player_id": player_id,
                    "hole": cards_to_labels(self._require_player(player_id).hole_cards),
                    "rank": hand.category.label,
                    "description": hand.describe(),
                }
                for player_id, hand in hands.items()
            ],
            "awards": [dict(award) for award in awards],
        }
        events.insert(0, result)
        for player in self.players:
            if player.dealt_in and player.stack == 0:
                events.append({"ev": "ELIMINATED", "player_id": player.player_id})

        ctx.result = result
        self.phase = TablePhase.PAYOUT
        LOGGER.info("Round %s settled: winners=%s (%s)", ctx.round_id, winners, description)
        return events

    # Seat order helpers ----------------------------------------------

    def _left_of_dealer(self) -> int:
        # dealer_index tracks seat removals, unlike the index stored on the round.
        return (self.dealer_index if self.dealer_index is not None else -1) + 1

    def _next_funded_index(self, start: int) -> int:
        count = len(self.players)
        for offset in range(1, count + 1):
            idx = (start + offset) % count
            if self.players[idx].stack > 0:
                return idx
        raise InsufficientPlayers("No funded seat")

    def _next_dealt_index(self, start: int) -> int:
        count = len(self.players)
        for offset in range(1, count + 1):
            idx = (start + offset) % count
            if self.players[idx].dealt_in:
                return idx
        raise RuntimeError("No dealt-in seat")

    def _dealt_in_from(self, start: int, include_folded: bool = False) -> List[Player]:
        count = len(self.players)
        ordered = []
        for offset in range(count):
            player = self.players[(start + offset) % count]
            if player.dealt_in and (include_folded or not player.folded):
                ordered.append(player)
        return ordered

    # Snapshots --------------------------------------------------------

    def consume_pre_events(self) -> List[Dict[str, object]]:
        if not self.round:
            return []
        events = list(self.round.pre_events)
        self.round.pre_events.clear()
        return events

    def _hole_for(self, player: Player, viewer_id: Optional[str]) -> List[str]:
        if not player.hole_cards:
            return []
        if player.player_id == viewer_id or (self.state.revealed and player.in_contention):
            return cards_to_labels(player.hole_cards)
        return [HIDDEN_CARD] * len(player.hole_cards)

    def snapshot(self, viewer_id: Optional[str] = None) -> Dict[str, object]:
        """State broadcast as seen by ``viewer_id``; other players' hole cards are redacted."""
        state = self.state
        payload: Dict[str, object] = {
            "players": [
                {
                    "id": player.player_id,
                    "name": player.name,
                    "stack": player.stack,
                    "hole": self._hole_for(player, viewer_id),
                    "folded": player.folded,
                    "all_in": player.all_in,
                    "role": player.role.value,
                    "street_bet": player.street_bet,
                    "round_bet": player.round_bet,
                }
                for player in self.players
            ],
            "game_state": {
                "round_id": self.round.round_id if self.round else None,
                "phase": self.phase.value,
                "street": state.street.value,
                "board": cards_to_labels(state.board),
                "pots": [pot.to_payload() for pot in state.pots],
                "current_bet": state.current_bet,
                "turn_player_id": state.turn_player_id,
                "last_aggressor_id": state.last_aggressor_id,
                "dealer_id": state.dealer_id,
                "revealed": state.revealed,
            },
        }
        if viewer_id is not None and viewer_id == state.turn_player_id:
            legal, to_call = self.legal_actions(viewer_id)
            payload["you"] = {"legal": [action.value for action in legal], "to_call": to_call}
        return payload

    def round_record(self) -> Dict[str, object]:
        if not self.round:
            raise RuntimeError("No round has been dealt")
        ctx = self.round
        return {
            "round_id": ctx.round_id,
            "seed": ctx.seed,
            "previous_dealer_index": ctx.previous_dealer_index,
            "seats": [list(seat) for seat in ctx.opening_seats],
            "actions": [list(action) for action in ctx.actions],
        }


def replay_round(
    config: TableConfig,
    seats: Iterable[Sequence[object]],
    seed: int,
    actions: Iterable[Sequence[object]],
    previous_dealer_index: Optional[int] = None,
) -> GameEngine:
    """Rebuild a round from its opening seats, shuffle seed and action log."""
    engine = GameEngine(config)
    for player_id, name, stack in seats:
        player = engine.seat_player(str(player_id), str(name))
        player.stack = int(stack)  # type: ignore[call-overload]
    engine.dealer_index = previous_dealer_index
    engine.start_round(seed=seed)
    for player_id, action, amount in actions:
        if action == LEAVE_ACTION:
            engine.remove_player(str(player_id))
        else:
            engine.handle_action(str(player_id), str(action), amount)  # type: ignore[arg-type]
    return engine
