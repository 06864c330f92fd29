from antetown.deck import make_deck
from antetown.game_engine import HandEngine
from antetown.participant import Seat
from antetown.rng import DeterministicRNG
from antetown.rules import HOLDEM_HOOKS, OMAHA_HOOKS


def make_hand(hooks=HOLDEM_HOOKS, stacks=(1000, 1000, 1000), seed=7):
    players = [Seat(f"p{i}", stack, participant_id=f"p{i}") for i, stack in enumerate(stacks)]
    return HandEngine(players, DeterministicRNG(seed), hooks), players


def test_deck_is_shuffled_with_round_rng():
    rng = DeterministicRNG(7)
    hand, _ = make_hand()
    assert sorted(hand.deck) == sorted(make_deck())
    again, _ = make_hand()
    assert again.deck == hand.deck
    HandEngine([], rng, HOLDEM_HOOKS)
    assert rng.calls == 51


def test_deal_hole_cards_by_variant():
    hand, players = make_hand()
    hand.deal_hole_cards()
    assert all(len(hand.hole[p.participant_id]) == 2 for p in players)
    assert len(hand.deck) == 52 - 6

    omaha, players = make_hand(OMAHA_HOOKS)
    omaha.deal_hole_cards()
    assert all(len(omaha.hole[p.participant_id]) == 4 for p in players)


def test_deal_street_burns_and_deals():
    hand, _ = make_hand()
    hand.deal_hole_cards()
    before = len(hand.deck)
    assert len(hand.deal_street("flop")) == 3
    assert len(hand.deck) == before - 4
    assert len(hand.deal_street("turn")) == 1
    assert len(hand.deal_street("river")) == 1
    assert len(hand.community) == 5
    assert hand.street == "river"
    assert hand.deal_street("showdown") == []
    assert len(hand.community) == 5


def test_contribute_caps_at_stack_and_marks_all_in():
    hand, players = make_hand(stacks=(1000, 150))
    assert hand.contribute("p1", 400) == 150
    assert players[1].stack == 0
    assert "p1" in hand.all_in
    assert hand.pot == 150
    assert hand.bets["p1"] == 150 and hand.round_bets["p1"] == 150
    hand.reset_round_bets()
    assert hand.round_bets["p1"] == 0
    assert hand.bets["p1"] == 150


def test_contenders_and_can_act():
    hand, _ = make_hand()
    hand.folded.add("p0")
    hand.all_in.add("p1")
    assert hand.contenders() == ["p1", "p2"]
    assert hand.can_act() == ["p2"]


def test_public_state_hides_hands_unless_asked():
    hand, _ = make_hand()
    hand.deal_hole_cards()
    state = hand.get_public_state(current_player="p0")
    assert "all_hands" not in state
    assert state["current_player"] == "p0"
    revealed = hand.get_public_state(include_all_hands=True)
    assert set(revealed["all_hands"]) == {"p0", "p1", "p2"}
    assert all(len(cards) == 2 for cards in revealed["all_hands"].values())
