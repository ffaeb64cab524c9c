import random

import pytest

from holdem.cards import Card, Deck, new_deck, parse_label, shuffle
from holdem.errors import EmptyDeck

from .helpers import auto_complete_round, create_engine, start_round


def test_new_deck_is_canonical_and_unique():
    deck = new_deck()
    assert len(deck) == 52
    assert len(set(deck)) == 52
    assert deck[0] == Card(2, "h")
    assert deck[12] == Card(14, "h")
    assert deck[-1] == Card(14, "s")


def test_card_validation_rejects_invalid_values():
    with pytest.raises(ValueError, match="Invalid rank"):
        Card(1, "h")
    with pytest.raises(ValueError, match="Invalid suit"):
        Card(14, "x")


def test_parse_label_round_trips():
    assert parse_label("Td") == Card(10, "d")
    assert parse_label("Ah").label == "Ah"
    with pytest.raises(ValueError):
        parse_label("1h")


def test_shuffle_is_a_permutation():
    cards = new_deck()
    shuffled = shuffle(list(cards), random.Random(3))
    assert shuffled != cards
    assert sorted(shuffled, key=lambda c: c.label) == sorted(cards, key=lambda c: c.label)


def test_same_seed_gives_same_order():
    assert Deck(99).cards == Deck(99).cards
    assert Deck(99).cards != Deck(100).cards


def test_every_card_can_come_off_the_top():
    tops = {Deck(seed).draw() for seed in range(2_000)}
    assert len(tops) == 52


def test_draw_takes_the_last_card():
    deck = Deck(5)
    last = deck.cards[-1]
    assert deck.draw() == last
    assert len(deck) == 51
    assert deck.drawn == [last]


def test_drawing_past_the_end_raises_empty_deck():
    deck = Deck(1)
    deck.deal(52)
    with pytest.raises(EmptyDeck):
        deck.draw()
    with pytest.raises(EmptyDeck):
        Deck(1).deal(53)


def test_round_keeps_deck_integrity():
    engine = create_engine(players=6)
    ctx = start_round(engine, seed=8)
    auto_complete_round(engine)

    everything = ctx.deck.drawn + ctx.deck.cards
    assert len(everything) == 52
    assert set(everything) == set(new_deck())

    held = [card for player in engine.players for card in player.hole_cards] + engine.state.board
    assert len(held) == 6 * 2 + 5
    assert len(set(held)) == len(held)
    assert not set(held) & set(ctx.deck.cards)
