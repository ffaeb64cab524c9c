import copy

import pytest

from holdem.errors import IllegalAction
from holdem.game import GameEngine
from holdem.models import ActionType, SidePot, Street, TableConfig, TablePhase

from .helpers import create_engine, start_round


def heads_up(stack: int = 100) -> GameEngine:
    engine = GameEngine(TableConfig(starting_stack=stack, sb=5, bb=10))
    engine.seat_player("A")
    engine.seat_player("B")
    engine.start_round(seed=1)
    return engine


def test_small_blind_call_and_big_blind_check_open_the_flop():
    engine = heads_up()
    a, b = engine.players
    assert engine.state.turn_player_id == "A"
    assert a.stack == 95

    engine.handle_action("A", ActionType.CALL)
    assert a.stack == 90
    assert engine.state.turn_player_id == "B"

    engine.handle_action("B", ActionType.CHECK)
    assert engine.state.street == Street.FLOP
    assert len(engine.state.board) == 3
    assert engine.state.current_bet == 0
    assert engine.state.last_aggressor_id is None
    assert (a.street_bet, a.round_bet, b.street_bet, b.round_bet) == (0, 10, 0, 10)
    assert engine.state.pots == [SidePot(amount=20, eligible=["A", "B"])]
    # Big blind acts first after the flop heads-up.
    assert engine.state.turn_player_id == "B"


def test_big_blind_may_check_its_option_preflop():
    engine = create_engine(players=3)
    start_round(engine)
    engine.handle_action("P0", ActionType.CALL)
    engine.handle_action("P1", ActionType.CALL)
    assert engine.state.turn_player_id == "P2"
    legal, owed = engine.legal_actions("P2")
    assert ActionType.CHECK in legal and owed == 0
    engine.handle_action("P2", ActionType.CHECK)
    assert engine.state.street == Street.FLOP


def test_check_is_rejected_while_a_call_is_owed():
    engine = heads_up()
    before = copy.deepcopy(engine.snapshot())
    with pytest.raises(IllegalAction, match="Cannot check"):
        engine.handle_action("A", ActionType.CHECK)
    assert engine.snapshot() == before


def test_out_of_turn_actions_are_rejected():
    engine = create_engine(players=3)
    start_round(engine)
    assert engine.state.turn_player_id == "P0"
    for action, amount in ((ActionType.CALL, None), (ActionType.RAISE, 10), (ActionType.BET, 20)):
        with pytest.raises(IllegalAction, match="Not your turn"):
            engine.handle_action("P1", action, amount)
    assert engine.players[1].street_bet == 5


def test_fold_is_accepted_out_of_turn():
    engine = create_engine(players=3)
    start_round(engine)
    engine.handle_action("P1", ActionType.FOLD)
    assert engine.players[1].folded
    assert engine.state.turn_player_id == "P0"
    with pytest.raises(IllegalAction):
        engine.handle_action("P1", ActionType.FOLD)


def test_raise_commits_call_plus_increment():
    engine = create_engine(players=3)
    start_round(engine)
    engine.handle_action("P0", ActionType.RAISE, 20)
    p0 = engine.players[0]
    assert p0.street_bet == 30
    assert p0.stack == 70
    assert engine.state.current_bet == 30
    assert engine.state.last_aggressor_id == "P0"
    assert engine.state.turn_player_id == "P1"


@pytest.mark.parametrize("amount", [0, -5, None, True, "10"])
def test_raise_requires_positive_integer(amount):
    engine = create_engine(players=3)
    start_round(engine)
    with pytest.raises(IllegalAction):
        engine.handle_action("P0", ActionType.RAISE, amount)


def test_raise_beyond_stack_is_rejected_but_exact_stack_goes_all_in():
    engine = create_engine(players=3)
    start_round(engine)
    with pytest.raises(IllegalAction, match="exceeds stack"):
        engine.handle_action("P0", ActionType.RAISE, 91)
    engine.handle_action("P0", ActionType.RAISE, 90)
    assert engine.players[0].all_in
    assert engine.players[0].stack == 0


def test_street_stays_open_until_raise_is_answered():
    engine = create_engine(players=3)
    start_round(engine)
    engine.handle_action("P0", ActionType.CALL)
    engine.handle_action("P1", ActionType.CALL)
    engine.handle_action("P2", ActionType.RAISE, 20)
    assert engine.state.street == Street.PREFLOP
    assert engine.state.turn_player_id == "P0"
    engine.handle_action("P0", ActionType.CALL)
    assert engine.state.street == Street.PREFLOP
    engine.handle_action("P1", ActionType.CALL)
    assert engine.state.street == Street.FLOP
    assert all(player.round_bet == 30 for player in engine.players)


def test_bet_is_capped_at_stack_and_marks_all_in():
    engine = create_engine(players=3)
    start_round(engine)
    events = engine.handle_action("P0", ActionType.BET, 500)
    p0 = engine.players[0]
    assert p0.stack == 0 and p0.all_in
    assert p0.street_bet == 100
    assert events[0] == {"ev": "BET", "player_id": "P0", "amount": 100, "all_in": True}
    assert engine.state.current_bet == 100


def test_bet_below_amount_owed_is_rejected():
    engine = create_engine(players=3)
    start_round(engine)
    with pytest.raises(IllegalAction, match="below the amount owed"):
        engine.handle_action("P0", ActionType.BET, 5)


def test_bet_matching_the_amount_owed_is_a_call():
    engine = create_engine(players=3)
    start_round(engine)
    engine.handle_action("P0", ActionType.BET, 10)
    assert engine.state.current_bet == 10
    assert engine.state.last_aggressor_id == "P2"
    assert engine.state.turn_player_id == "P1"


def test_short_stack_can_call_all_in_for_less():
    engine = create_engine(players=3)
    engine.players[0].stack = 6
    start_round(engine)
    engine.handle_action("P0", ActionType.CALL)
    p0 = engine.players[0]
    assert p0.all_in and p0.street_bet == 6
    assert engine.state.current_bet == 10


def test_all_in_players_never_hold_the_turn():
    engine = create_engine(players=3)
    start_round(engine)
    engine.handle_action("P0", ActionType.BET, 100)
    engine.handle_action("P1", ActionType.CALL)
    engine.handle_action("P2", ActionType.FOLD)
    # Both remaining players are all-in, so the board runs out to showdown.
    assert engine.phase == TablePhase.PAYOUT
    assert len(engine.state.board) == 5
    assert engine.state.turn_player_id is None


def test_lone_player_with_chips_does_not_bet_against_all_ins():
    engine = create_engine(players=3)
    engine.players[0].stack = 40
    start_round(engine)
    engine.handle_action("P0", ActionType.BET, 40)
    engine.handle_action("P1", ActionType.FOLD)
    engine.handle_action("P2", ActionType.CALL)
    assert engine.phase == TablePhase.PAYOUT
    assert engine.state.street == Street.SHOWDOWN


def test_unanswered_aggressor_fold_clears_aggressor():
    engine = create_engine(players=3)
    start_round(engine)
    engine.handle_action("P0", ActionType.RAISE, 10)
    engine.handle_action("P0", ActionType.FOLD)
    assert engine.state.last_aggressor_id is None
    assert engine.state.turn_player_id == "P1"


def test_matched_aggressor_fold_keeps_aggressor():
    engine = create_engine(players=3)
    start_round(engine)
    engine.handle_action("P0", ActionType.RAISE, 10)
    engine.handle_action("P1", ActionType.CALL)
    engine.handle_action("P0", ActionType.FOLD)
    assert engine.state.last_aggressor_id == "P0"
    assert engine.state.turn_player_id == "P2"


def test_fold_to_one_player_settles_immediately():
    engine = heads_up()
    events = engine.handle_action("A", ActionType.FOLD)
    assert engine.phase == TablePhase.PAYOUT
    assert engine.state.street == Street.SHOWDOWN
    assert engine.state.board == []
    showdown = next(event for event in events if event["ev"] == "SHOWDOWN")
    assert showdown["winners"] == ["B"]
    assert showdown["description"] == "Uncontested"
    assert [p.stack for p in engine.players] == [95, 105]


def test_legal_actions_reflect_turn_and_debt():
    engine = create_engine(players=3)
    start_round(engine)
    legal, owed = engine.legal_actions("P0")
    assert legal == [ActionType.FOLD, ActionType.CALL, ActionType.BET, ActionType.RAISE]
    assert owed == 10
    legal, owed = engine.legal_actions("P1")
    assert legal == [ActionType.FOLD]
    assert owed == 0
