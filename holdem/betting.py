from __future__ import annotations

from typing import Dict, List, Optional, Set, Tuple

from .errors import IllegalAction
from .models import ActionType, GameState, Player

# BettingRound owns turn order and action legality for one street at a time.
# It never deals cards or pays pots; GameEngine drives it across streets.


def _is_chip_amount(amount: object) -> bool:
    return isinstance(amount, int) and not isinstance(amount, bool)


class BettingRound:
    def __init__(self, players: List[Player], departed: List[Player], state: GameState) -> None:
        # Both lists are shared with the engine so seat changes are seen here.
        self.players = players
        self.departed = departed
        self.state = state
        # Players still owed a turn since the street opened or since the last aggression.
        self.pending: Set[str] = set()

    # Street boundaries -----------------------------------------------

    def open_street(self, start_index: int) -> None:
        actionable = [player for player in self.players if player.can_act]
        if len(actionable) >= 2:
            self.pending = {player.player_id for player in actionable}
        else:
            # A lone player with chips only acts if they still owe something.
            self.pending = {
                player.player_id for player in actionable if player.street_bet < self.state.current_bet
            }
        self.state.turn_player_id = self._first_pending_from(start_index)

    def street_complete(self) -> bool:
        return not self.pending or len(self.contenders()) <= 1

    def close_street(self) -> None:
        for player in self.players + self.departed:
            player.close_street()
        self.state.reset_street()
        self.state.turn_player_id = None
        self.pending.clear()

    def post_blind(self, player: Player, amount: int) -> int:
        # Forced bet: skips the turn check and never reopens action.
        return self._commit(player, amount)

    # Queries ----------------------------------------------------------

    def contenders(self) -> List[Player]:
        return [player for player in self.players if player.in_contention]

    def to_call(self, player: Player) -> int:
        return max(self.state.current_bet - player.street_bet, 0)

    def legal_actions(self, player: Player) -> Tuple[List[ActionType], int]:
        if not player.in_contention:
            return [], 0
        legal: List[ActionType] = [ActionType.FOLD]
        if self.state.turn_player_id != player.player_id or not player.can_act:
            return legal, 0
        owed = self.to_call(player)
        if owed == 0:
            legal.append(ActionType.CHECK)
        else:
            legal.append(ActionType.CALL)
        legal.append(ActionType.BET)
        if player.stack > owed:
            legal.append(ActionType.RAISE)
        return legal, owed

    # Actions ----------------------------------------------------------

    def apply(self, player: Player, action: ActionType, amount: Optional[int]) -> List[Dict[str, object]]:
        """Validate then apply one action. Raises IllegalAction before touching any state."""
        if action == ActionType.FOLD:
            if not player.in_contention:
                raise IllegalAction("Player is not in the round")
            return self._fold(player)

        if self.state.turn_player_id != player.player_id:
            raise IllegalAction("Not your turn")
        if not player.can_act:
            raise IllegalAction("Player cannot act")

        owed = self.to_call(player)
        events: List[Dict[str, object]] = []
        if action == ActionType.CHECK:
            if owed > 0:
                raise IllegalAction("Cannot check when a call is owed")
            self.pending.discard(player.player_id)
            events.append({"ev": "CHECK", "player_id": player.player_id})
        elif action == ActionType.CALL:
            if owed <= 0:
                raise IllegalAction("Nothing to call")
            paid = self._commit(player, owed)
            self.state.aggression_matched = True
            self.pending.discard(player.player_id)
            events.append(self._chip_event("CALL", player, paid))
        elif action == ActionType.RAISE:
            if not _is_chip_amount(amount) or amount <= 0:
                raise IllegalAction("Raise requires a positive amount")
            required = owed + amount
            if required > player.stack:
                raise IllegalAction("Raise exceeds stack")
            paid = self._commit(player, required)
            self._mark_aggression(player)
            events.append(self._chip_event("RAISE", player, paid))
        elif action == ActionType.BET:
            if not _is_chip_amount(amount) or amount <= 0:
                raise IllegalAction("Bet requires a positive amount")
            chips = min(amount, player.stack)
            if chips < owed and chips < player.stack:
                raise IllegalAction("Bet is below the amount owed")
            paid = self._commit(player, chips)
            if player.street_bet > self.state.current_bet:
                self._mark_aggression(player)
            else:
                if owed > 0:
                    self.state.aggression_matched = True
                self.pending.discard(player.player_id)
            events.append(self._chip_event("BET", player, paid))
        else:
            raise IllegalAction(f"Unsupported action {action}")

        self._advance_turn_from(player)
        return events

    def _fold(self, player: Player) -> List[Dict[str, object]]:
        player.folded = True
        self.pending.discard(player.player_id)
        if self.state.last_aggressor_id == player.player_id and not self.state.aggression_matched:
            self.state.last_aggressor_id = None
        if self.state.turn_player_id == player.player_id:
            self._advance_turn_from(player)
        return [{"ev": "FOLD", "player_id": player.player_id}]

    def _mark_aggression(self, player: Player) -> None:
        self.state.current_bet = player.street_bet
        self.state.last_aggressor_id = player.player_id
        self.state.aggression_matched = False
        self.pending = {
            other.player_id for other in self.players if other.can_act and other is not player
        }

    def _commit(self, player: Player, amount: int) -> int:
        amount = min(amount, player.stack)
        player.stack -= amount
        player.street_bet += amount
        if player.stack == 0:
            player.all_in = True
        return amount

    def _chip_event(self, ev: str, player: Player, amount: int) -> Dict[str, object]:
        event: Dict[str, object] = {"ev": ev, "player_id": player.player_id, "amount": amount}
        if player.all_in:
            event["all_in"] = True
        return event

    # Turn order -------------------------------------------------------

    def _advance_turn_from(self, player: Player) -> None:
        if self.street_complete():
            self.state.turn_player_id = None
            return
        idx = self.players.index(player) if player in self.players else -1
        self.state.turn_player_id = self._first_pending_from(idx + 1)

    def _first_pending_from(self, start: int) -> Optional[str]:
        count = len(self.players)
        for offset in range(count):
            player = self.players[(start + offset) % count]
            if player.player_id in self.pending:
                return player.player_id
        return None
