import pytest

from antetown.hand_evaluation import (
    HAND_RANKS,
    best_hand,
    best_holdem_hand,
    best_omaha_hand,
    compare_hands,
    evaluate_5cards,
    hand_description,
)


def cards(*cardspecs):
    return [tuple(card) for card in cardspecs]


def test_evaluate_each_category():
    straight_flush = evaluate_5cards(cards((10, "h"), (11, "h"), (12, "h"), (13, "h"), (14, "h")))
    assert straight_flush[0] == HAND_RANKS["straight_flush"]

    quads = evaluate_5cards(cards((9, "c"), (9, "d"), (9, "h"), (9, "s"), (4, "c")))
    assert quads == (HAND_RANKS["quads"], [9, 4])

    full_house = evaluate_5cards(cards((8, "c"), (8, "d"), (8, "h"), (4, "s"), (4, "d")))
    assert full_house == (HAND_RANKS["fullhouse"], [8, 4])

    flush = evaluate_5cards(cards((2, "s"), (6, "s"), (9, "s"), (12, "s"), (14, "s")))
    assert flush[0] == HAND_RANKS["flush"]

    straight = evaluate_5cards(cards((6, "c"), (7, "d"), (8, "h"), (9, "s"), (10, "c")))
    assert straight == (HAND_RANKS["straight"], [10])

    trips = evaluate_5cards(cards((7, "c"), (7, "d"), (7, "h"), (11, "s"), (3, "c")))
    assert trips[0] == HAND_RANKS["trips"]

    two_pair = evaluate_5cards(cards((5, "c"), (5, "d"), (9, "h"), (9, "s"), (13, "c")))
    assert two_pair == (HAND_RANKS["two_pair"], [9, 5, 13])

    pair = evaluate_5cards(cards((4, "c"), (4, "d"), (9, "h"), (12, "s"), (2, "c")))
    assert pair[0] == HAND_RANKS["pair"]

    high_card = evaluate_5cards(cards((2, "c"), (5, "d"), (9, "h"), (12, "s"), (14, "c")))
    assert high_card[0] == HAND_RANKS["highcard"]


def test_wheel_is_five_high():
    wheel = evaluate_5cards(cards((14, "c"), (2, "d"), (3, "h"), (4, "s"), (5, "c")))
    assert wheel == (HAND_RANKS["straight"], [5])
    six_high = evaluate_5cards(cards((2, "d"), (3, "h"), (4, "s"), (5, "c"), (6, "c")))
    assert compare_hands(six_high, wheel) == 1


def test_evaluate_needs_exactly_five():
    with pytest.raises(ValueError):
        evaluate_5cards(cards((2, "c"), (3, "c")))
    with pytest.raises(ValueError):
        best_hand(cards((2, "c"), (3, "c"), (4, "c")))


def test_holdem_picks_best_of_seven():
    hole = cards((2, "h"), (3, "h"))
    board = cards((4, "h"), (5, "h"), (6, "h"), (9, "d"), (9, "s"))
    assert best_holdem_hand(hole, board)[0] == HAND_RANKS["straight_flush"]


def test_holdem_can_play_the_board():
    hole = cards((2, "c"), (3, "d"))
    board = cards((10, "s"), (11, "s"), (12, "s"), (13, "s"), (14, "s"))
    assert best_holdem_hand(hole, board) == (HAND_RANKS["straight_flush"], [14])


def test_omaha_uses_exactly_two_hole_cards():
    # four spades on the board make a flush in Hold'em but not in Omaha
    hole = cards((14, "s"), (2, "c"), (7, "d"), (9, "h"))
    board = cards((3, "s"), (6, "s"), (10, "s"), (13, "s"), (4, "d"))
    assert best_holdem_hand(hole, board)[0] == HAND_RANKS["flush"]
    assert best_omaha_hand(hole, board)[0] != HAND_RANKS["flush"]


def test_omaha_board_pair_not_quads():
    hole = cards((8, "c"), (8, "d"), (2, "h"), (3, "s"))
    board = cards((8, "h"), (8, "s"), (12, "c"), (5, "d"), (7, "c"))
    assert best_holdem_hand(hole, board)[0] == HAND_RANKS["quads"]
    assert best_omaha_hand(hole, board)[0] == HAND_RANKS["quads"]
    # one hole eight and a hole pair can never both play
    hole = cards((8, "c"), (2, "d"), (2, "h"), (3, "s"))
    assert best_holdem_hand(hole, board)[0] == HAND_RANKS["fullhouse"]
    assert best_omaha_hand(hole, board)[0] == HAND_RANKS["trips"]


def test_omaha_needs_enough_cards():
    with pytest.raises(ValueError):
        best_omaha_hand(cards((2, "c")), cards((3, "c"), (4, "c"), (5, "c")))


def test_compare_hands():
    aces = (HAND_RANKS["pair"], [14, 9, 5, 3])
    kings = (HAND_RANKS["pair"], [13, 12, 11, 10])
    assert compare_hands(aces, kings) == 1
    assert compare_hands(kings, aces) == -1
    assert compare_hands(aces, aces) == 0


@pytest.mark.parametrize(
    "rank, tiebreakers, expected",
    [
        (HAND_RANKS["straight_flush"], [14], "Royal Flush"),
        (HAND_RANKS["straight_flush"], [9], "Straight Flush, 9 high"),
        (HAND_RANKS["quads"], [12, 5], "Four of a Kind, Queens"),
        (HAND_RANKS["fullhouse"], [11, 9], "Full House, Jacks over 9s"),
        (HAND_RANKS["flush"], [13], "Flush, King high"),
        (HAND_RANKS["straight"], [5], "Straight, 5 high (Wheel)"),
        (HAND_RANKS["straight"], [10], "Straight, 10 high"),
        (HAND_RANKS["trips"], [8], "Three of a Kind, 8s"),
        (HAND_RANKS["two_pair"], [13, 11], "Two Pair, Kings and Jacks"),
        (HAND_RANKS["pair"], [14], "Pair of Aces"),
        (HAND_RANKS["highcard"], [9], "High Card, 9"),
    ],
)
def test_hand_description(rank, tiebreakers, expected):
    assert hand_description(rank, tiebreakers) == expected
