from antetown.game_engine import HandEngine
from antetown.participant import Seat
from antetown.rng import DeterministicRNG
from antetown.rules import HOLDEM_HOOKS
from antetown.showdown_engine import ShowdownEngine

BOARD = [(2, "c"), (7, "d"), (9, "h"), (12, "s"), (13, "c")]


def make_showdown(bets, holes, board=BOARD):
    players = [Seat(pid, 10000, participant_id=pid) for pid in bets]
    hand = HandEngine(players, DeterministicRNG(11), HOLDEM_HOOKS)
    for pid, amount in bets.items():
        hand.contribute(pid, amount)
    hand.hole = {pid: list(cards) for pid, cards in holes.items()}
    hand.community = list(board)
    return hand, ShowdownEngine(hand, HOLDEM_HOOKS)


def test_best_hand_takes_pot():
    hand, showdown = make_showdown(
        {"a": 500, "b": 500},
        {"a": [(14, "h"), (14, "d")], "b": [(3, "h"), (4, "d")]},
    )
    result = showdown.settle("r1")
    record = result["record"]
    record.verify()
    assert result["winners"] == ["a"]
    assert record.amount_for("a") == 500
    assert record.amount_for("b") == -500
    assert result["hands"]["a"] == "Pair of Aces"
    assert not result["uncontested"]


def test_split_pot_remainder_to_house():
    hand, showdown = make_showdown(
        {"a": 101, "b": 100, "c": 100},
        {"a": [(3, "h"), (4, "d")], "b": [(3, "d"), (4, "h")], "c": [(3, "s"), (4, "c")]},
    )
    hand.folded.add("c")
    result = showdown.settle("r2")
    record = result["record"]
    record.verify()
    assert sorted(result["winners"]) == ["a", "b"]
    # 300 split evenly and the single chip a alone put in goes back to a
    assert result["pots"][0]["amount"] == 300
    assert result["pots"][1] == {"amount": 1, "eligible": ["a"], "winners": ["a"]}
    assert record.house_remainder == 0
    assert record.amount_for("a") == 150 + 1 - 101
    assert record.amount_for("c") == -100


def test_side_pots_for_short_all_in():
    hand, showdown = make_showdown(
        {"a": 600, "b": 250, "c": 600},
        {"a": [(5, "h"), (6, "d")], "b": [(14, "h"), (14, "d")], "c": [(11, "h"), (11, "d")]},
    )
    assert showdown.side_pots() == [(750, ["a", "b", "c"]), (700, ["a", "c"])]
    result = showdown.settle("r3")
    result["record"].verify()
    assert result["winners"] == ["b"]
    assert result["pots"][1]["winners"] == ["c"]
    assert result["pot_winners"] == ["b", "c"]
    assert result["record"].amount_for("b") == 750 - 250
    assert result["record"].amount_for("c") == 700 - 600


def test_folded_layer_goes_to_remaining_contenders():
    hand, showdown = make_showdown(
        {"a": 100, "b": 300, "c": 100},
        {"a": [(14, "h"), (14, "d")], "b": [(3, "h"), (4, "d")], "c": [(5, "h"), (6, "d")]},
    )
    hand.folded.add("b")
    pots = showdown.side_pots()
    assert pots[0] == (300, ["a", "c"])
    assert pots[1] == (200, ["a", "c"])


def test_uncontested_pot_needs_no_evaluation():
    hand, showdown = make_showdown({"a": 150, "b": 100}, {"a": [], "b": []}, board=[])
    hand.folded.add("b")
    result = showdown.settle("r4", rake_percentage=10)
    record = result["record"]
    record.verify()
    assert result["uncontested"]
    assert result["hands"] == {}
    assert result["winners"] == ["a"]
    assert record.rake_total == 25
    assert record.amount_for("a") == 250 - 25 - 150
