import pytest

from antetown.config import LobbyTiming, PokerConfig, SideGamesConfig
from antetown.errors import ConfigError, JoinRejected
from antetown.events import (
    ACTION_REJECTED,
    DECISION_MADE,
    HANDS_REVEALED,
    PARTICIPANT_LEFT,
    ROUND_COMPLETED,
    SETTLEMENT_COMPUTED,
    STEP_ADVANCED,
)
from antetown.participant import ExitReason
from antetown.round_machine import Phase


def seat_and_start(table, *names, stack=5000):
    seats = [table.join(name, stack) for name in names]
    for seat in seats:
        table.handle_action(seat.participant_id, "ready")
    assert table.phase == Phase.DECISION
    return seats


def blinds(emitter):
    return [e for e in emitter.of(STEP_ADVANCED) if e.get("step") == "blinds"][-1]


class TestSetup:
    def test_buy_in_limits(self, poker_table):
        table = poker_table()
        with pytest.raises(JoinRejected):
            table.join("shorty", 1000)
        with pytest.raises(JoinRejected):
            table.join("whale", 50000)

    def test_heads_up_dealer_posts_small_blind(self, poker_table, emitter):
        table = poker_table()
        alice, bob = seat_and_start(table, "alice", "bob")
        posted = blinds(emitter)
        assert posted["dealer"] == alice.participant_id
        assert posted["small_blind"] == alice.participant_id
        assert posted["big_blind"] == bob.participant_id
        assert posted["pot"] == 150
        assert alice.stack == 4950 and bob.stack == 4900
        assert table.betting.next_actor() == alice.participant_id

    def test_three_handed_blinds_and_first_actor(self, poker_table, emitter):
        table = poker_table()
        alice, bob, carol = seat_and_start(table, "alice", "bob", "carol")
        posted = blinds(emitter)
        assert posted["small_blind"] == bob.participant_id
        assert posted["big_blind"] == carol.participant_id
        assert table.betting.next_actor() == alice.participant_id
        assert table.round.participants[carol.participant_id].stake == 100

    def test_hole_cards_sent_privately(self, poker_table, emitter):
        table = poker_table()
        alice, _ = seat_and_start(table, "alice", "bob")
        private = [p for name, p in emitter.sent_to(alice.participant_id)
                   if name == STEP_ADVANCED and p.get("step") == "hole_cards"]
        assert len(private) == 1
        assert len(private[0]["cards"]) == 2
        broadcasts = [p for target, name, p in emitter.events if target == "*" and name == STEP_ADVANCED]
        assert not any(p.get("step") == "hole_cards" for p in broadcasts)

    def test_unknown_variant_rejected_before_table_exists(self, poker_table):
        with pytest.raises(ConfigError) as excinfo:
            poker_table(PokerConfig(variant="omha"))
        assert excinfo.value.details["variant"] == "omha"

    def test_seat_short_of_big_blind_stands_up(self, poker_table, emitter):
        table = poker_table()
        alice, bob, carol = (table.join(name, 5000) for name in ("alice", "bob", "carol"))
        carol.stack = 50
        for seat in (alice, bob, carol):
            table.handle_action(seat.participant_id, "ready")
        assert table.phase == Phase.DECISION
        assert set(table.round.participants) == {alice.participant_id, bob.participant_id}
        assert carol.participant_id not in table.seats
        left = emitter.last(PARTICIPANT_LEFT)
        assert left["reason"] == "insufficient_funds"
        assert left["refund"] == 50
        assert blinds(emitter)["pot"] == 150

    def test_omaha_deals_four(self, poker_table, emitter):
        table = poker_table(PokerConfig(variant="omaha", lobby=LobbyTiming(min_participants=2)))
        alice, _ = seat_and_start(table, "alice", "bob")
        hole = [p for name, p in emitter.sent_to(alice.participant_id) if p.get("step") == "hole_cards"]
        assert len(hole[0]["cards"]) == 4
        assert table.betting.rules.limit == "pot_limit"


class TestBetting:
    def test_fold_gives_pot_without_reveal(self, poker_table, clock, emitter):
        table = poker_table()
        alice, bob = seat_and_start(table, "alice", "bob")
        assert table.handle_action(alice.participant_id, "fold")
        assert table.phase == Phase.SETTLEMENT
        assert alice.stack == 4950
        assert bob.stack == 5050
        assert emitter.of(HANDS_REVEALED) == []
        assert emitter.last(SETTLEMENT_COMPUTED)["pot"] == 150
        assert emitter.last(ROUND_COMPLETED)["winners"] == [bob.participant_id]
        state = table.round.participants[alice.participant_id]
        assert state.exit_reason == ExitReason.OPTED_OUT

        clock.advance(table.config.settlement_display)
        assert table.phase == Phase.DECISION
        assert table.hand_number == 2
        assert blinds(emitter)["dealer"] == bob.participant_id

    def test_out_of_turn_and_wrong_phase(self, poker_table, emitter):
        table = poker_table()
        alice = table.join("alice", 5000)
        assert table.handle_action(alice.participant_id, "check") is False
        assert emitter.last(ACTION_REJECTED)["code"] == "invalid_transition"

        bob = table.join("bob", 5000)
        table.handle_action(alice.participant_id, "ready")
        table.handle_action(bob.participant_id, "ready")
        assert table.handle_action(bob.participant_id, "call") is False
        assert emitter.last(ACTION_REJECTED)["code"] == "unauthorized_actor"
        assert table.handle_action(alice.participant_id, "raise", {"amount": 120}) is False
        assert emitter.last(ACTION_REJECTED)["code"] == "invalid_action"
        assert table.hand.pot == 150

    def test_checked_down_to_showdown(self, poker_table, clock, emitter):
        table = poker_table()
        alice, bob = seat_and_start(table, "alice", "bob")
        table.handle_action(alice.participant_id, "call")
        table.handle_action(bob.participant_id, "check")
        assert table.hand.street == "flop"
        assert len(table.hand.community) == 3
        # postflop the non-dealer acts first
        for _ in range(3):
            assert table.betting.next_actor() == bob.participant_id
            table.handle_action(bob.participant_id, "check")
            table.handle_action(alice.participant_id, "check")
        assert table.phase == Phase.SETTLEMENT
        revealed = emitter.last(HANDS_REVEALED)
        assert set(revealed["hands"]) == {alice.participant_id, bob.participant_id}
        assert len(revealed["community"]) == 5
        assert alice.stack + bob.stack == 10000
        completed = emitter.last(ROUND_COMPLETED)
        assert len(completed["community"]) == 5
        assert "alice posts small blind 50" in completed["action_history"]

    def test_timeout_checks_when_free(self, poker_table, clock, emitter):
        table = poker_table()
        alice, bob = seat_and_start(table, "alice", "bob")
        table.handle_action(alice.participant_id, "call")
        clock.advance(table.config.turn_timeout)
        decision = emitter.last(DECISION_MADE)
        assert decision["participant_id"] == bob.participant_id
        assert decision["decision"] == "check"
        assert decision["source"] == "timeout_default"
        assert table.hand.street == "flop"

    def test_timeout_folds_facing_a_bet(self, poker_table, clock):
        table = poker_table()
        alice, bob = seat_and_start(table, "alice", "bob")
        clock.advance(table.config.turn_timeout)
        state = table.round.participants[alice.participant_id]
        assert state.exit_reason == ExitReason.TIMEOUT_DEFAULT
        assert bob.stack == 5050

    def test_all_in_runs_out_the_board(self, poker_table):
        table = poker_table()
        alice, bob = seat_and_start(table, "alice", "bob")
        table.handle_action(alice.participant_id, "all_in")
        table.handle_action(bob.participant_id, "call")
        assert table.phase == Phase.SETTLEMENT
        assert len(table.hand.community) == 5
        assert alice.stack + bob.stack == 10000
        assert {alice.stack, bob.stack} <= {0, 5000, 10000}

    def test_bot_acts_after_delay(self, poker_table, clock):
        table = poker_table(bot_policy=lambda state, options: "fold")
        alice = table.join("alice", 5000)
        bot = table.join("bot", 5000, is_ai=True)
        table.handle_action(alice.participant_id, "ready")
        table.handle_action(bot.participant_id, "ready")
        table.handle_action(alice.participant_id, "call")
        assert table.timer.label == "bot_turn"
        clock.advance(table.config.bot_decision_delay)
        assert alice.stack == 5100
        assert bot.stack == 4900

    def test_force_end_refunds_blinds(self, poker_table):
        table = poker_table()
        alice, bob = seat_and_start(table, "alice", "bob")
        table.force_end("dealer left")
        assert alice.stack == 5000 and bob.stack == 5000
        assert table.phase == Phase.LOBBY
        assert table.hand is None


class TestSquidz:
    def make(self, poker_table):
        return poker_table(PokerConfig(variant="squidz-game", lobby=LobbyTiming(min_participants=2)))

    def test_needs_four_players(self, poker_table):
        table = self.make(poker_table)
        assert table.min_participants() == 4
        for name in ("a", "b", "c"):
            table.handle_action(table.join(name, 5000).participant_id, "ready")
        assert table.phase == Phase.LOBBY

    def test_round_locks_table_and_awards_token(self, poker_table, emitter):
        table = self.make(poker_table)
        p0, p1, p2, p3 = seat_and_start(table, "a", "b", "c", "d")
        assert table.locked
        assert table.variant_state["total"] == 7
        with pytest.raises(JoinRejected):
            table.join("late", 5000)

        # everyone folds to the big blind
        for seat in (p3, p0, p1):
            assert table.handle_action(seat.participant_id, "fold")
        assert table.phase == Phase.SETTLEMENT
        assert p2.extras["squidz"] == 1
        # first squid reveals even an uncontested hand
        assert emitter.of(HANDS_REVEALED)
        assert table.locked

    def test_force_end_unlocks(self, poker_table):
        table = self.make(poker_table)
        seat_and_start(table, "a", "b", "c", "d")
        table.force_end("shutdown")
        assert not table.locked
        assert table.variant_state == {}
        table.join("late", 5000)

    def test_bounty_pass_settles_the_round(self, poker_table, clock, emitter):
        table = self.make(poker_table)
        a, b, c, d = seat_and_start(table, "a", "b", "c", "d")
        # the big blind takes each hand uncontested: c, then d, then a
        for folders in ((d, a, b), (a, b, c), (b, c, d)):
            assert table.phase == Phase.DECISION
            for seat in folders:
                assert table.handle_action(seat.participant_id, "fold")
            assert table.phase == Phase.SETTLEMENT
            if table.locked:
                clock.advance(table.config.settlement_display)

        # only b is left without a squid, so b pays 500 to each holder
        bounty = emitter.last(SETTLEMENT_COMPUTED)
        assert bounty["kind"] == "bounty"
        paid = -sum(e["amount"] for e in bounty["entries"] if e["amount"] < 0)
        received = sum(e["amount"] for e in bounty["entries"] if e["amount"] > 0)
        assert paid == received == bounty["pot"] == 1500
        assert (a.stack, b.stack, c.stack, d.stack) == (5550, 3450, 5500, 5500)
        assert not table.locked
        assert table.variant_state == {}
        assert all("squidz" not in seat.extras for seat in (a, b, c, d))

        # the next round waits for the variant delay, not the settlement display
        clock.advance(table.config.settlement_display)
        assert table.phase == Phase.SETTLEMENT
        clock.advance(table.config.squidz.next_round_delay - table.config.settlement_display)
        assert table.phase == Phase.DECISION
        assert table.locked
        assert table.variant_state["distributed"] == 0


class TestSideGames:
    def make(self, poker_table, enabled=("seven-two-game",)):
        config = PokerConfig(lobby=LobbyTiming(min_participants=2),
                             side_games=SideGamesConfig(enabled=enabled))
        return poker_table(config)

    def test_unknown_side_game_is_a_config_error(self, poker_table):
        with pytest.raises(ConfigError):
            self.make(poker_table, enabled=("flipz-prop-bet",))

    def test_opt_in_only_for_offered_games(self, poker_table, emitter):
        table = self.make(poker_table)
        alice = table.join("alice", 5000)
        assert table.handle_action(alice.participant_id, "side_game", {"game": "seven-two-game"})
        assert alice.extras["side_games"] == ["seven-two-game"]
        assert table.handle_action(alice.participant_id, "side_game", {"game": "seven-two-game", "opt_in": False})
        assert alice.extras["side_games"] == []
        assert table.handle_action(alice.participant_id, "side_game", {"game": "flipz"}) is False
        assert emitter.last(ACTION_REJECTED)["code"] == "invalid_action"

    def test_seven_two_winner_collects_from_participants(self, poker_table, emitter):
        table = self.make(poker_table)
        alice, bob, carol = (table.join(name, 5000) for name in ("alice", "bob", "carol"))
        for seat in (alice, bob):
            table.handle_action(seat.participant_id, "side_game", {"game": "seven-two-game"})
        for seat in (alice, bob, carol):
            table.handle_action(seat.participant_id, "ready")
        assert table.betting.next_actor() == alice.participant_id
        table.hand.hole[alice.participant_id] = [(7, "h"), (2, "c")]

        table.handle_action(alice.participant_id, "raise", {"amount": 300})
        table.handle_action(bob.participant_id, "fold")
        table.handle_action(carol.participant_id, "fold")
        assert table.phase == Phase.SETTLEMENT

        side = emitter.last(SETTLEMENT_COMPUTED)
        assert side["kind"] == "side_game"
        assert side["side_game"] == "seven-two-game"
        assert side["transfers"] == [[bob.participant_id, alice.participant_id, 100]]
        # carol never opted in and only loses her blind
        assert (alice.stack, bob.stack, carol.stack) == (5250, 4850, 4900)

    def test_no_claim_without_seven_two(self, poker_table, emitter):
        table = self.make(poker_table)
        alice, bob = (table.join(name, 5000) for name in ("alice", "bob"))
        for seat in (alice, bob):
            table.handle_action(seat.participant_id, "side_game", {"game": "seven-two-game"})
            table.handle_action(seat.participant_id, "ready")
        table.hand.hole[bob.participant_id] = [(7, "h"), (2, "h")]
        table.handle_action(alice.participant_id, "fold")
        # suited 7-2 does not count
        assert emitter.last(SETTLEMENT_COMPUTED)["kind"] == "pot"
        assert (alice.stack, bob.stack) == (4950, 5050)
