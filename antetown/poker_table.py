"""
Poker table for antetown.

Runs one hand per round on the generic phase loop and leaves everything
variant-specific to the rules hooks:

lobby -> setup (round-start hook, blinds, hole cards) -> decision (betting
streets) -> resolution (showdown, pot-win hook) -> settlement (round-end
hook when the variant's round is over) -> end -> setup | lobby.
"""

from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional

from .betting_engine import BettingEngine
from .config import PokerConfig
from .deck import card_str
from .errors import GameError, InvalidAction, JoinRejected
from .events import DECISION_MADE, HANDS_REVEALED, SETTLEMENT_COMPUTED, STEP_ADVANCED
from .game_engine import HandEngine
from .participant import ExitReason, Seat
from .round_machine import Phase, RoundStateMachine
from .rules import BettingRules, HookContext, PotWinResult, RoundEndResult, RoundStartResult, RulesRegistry
from .rules import SideGameContext, SideGameRegistry, build_default_registry, build_default_side_games, call_hook
from .rules.side_games import OPTED_IN
from .settlement import settle_side_pass
from .showdown_engine import ShowdownEngine

BETTING_ACTIONS = ('fold', 'check', 'call', 'bet', 'raise', 'all_in')


class PokerTable(RoundStateMachine):
    """Hold'em-family table. The variant is looked up once from the registry."""

    game_type = 'poker'
    actions = {
        **RoundStateMachine.actions,
        **{name: ((Phase.DECISION,), f'_on_{name}') for name in BETTING_ACTIONS},
        'side_game': (None, '_on_side_game'),
    }

    def __init__(self, table_id: str, config: Optional[PokerConfig] = None,
                 registry: Optional[RulesRegistry] = None, side_games: Optional[SideGameRegistry] = None,
                 **kwargs):
        config = config or PokerConfig()
        self.registry = registry or build_default_registry()
        self.variant = self.registry.get(config.variant)
        self.side_games = side_games or build_default_side_games()
        self.enabled_side_games = [self.side_games.get(key) for key in config.side_games.enabled]
        super().__init__(table_id, config, **kwargs)
        self.hooks = self.variant.hooks
        if self.variant.max_participants:
            self.seats.max_seats = min(self.seats.max_seats, self.variant.max_participants)
        # table-level variant data, kept across hands (e.g. a Squidz round)
        self.variant_state: Dict[str, Any] = {}
        self.locked = False
        self.dealer_index = -1
        self.hand: Optional[HandEngine] = None
        self.betting: Optional[BettingEngine] = None
        self.players: List[Seat] = []

    def min_participants(self) -> int:
        return max(self.config.lobby.min_participants, self.variant.min_participants or 0)

    def context(self, seats: Optional[List[Seat]] = None) -> HookContext:
        return HookContext(
            table_id=self.table_id,
            round_id=self.round.round_id if self.round else None,
            hand_number=self.hand_number,
            seats=list(seats) if seats is not None else self.seats.ordered(),
            variant_state=self.variant_state,
            config=self.config,
        )

    def check_join(self, name: str, stack: int):
        config = self.config
        if stack < config.min_buy_in or stack > config.max_buy_in:
            raise JoinRejected(f"Buy-in must be between {config.min_buy_in} and {config.max_buy_in}",
                               min_buy_in=config.min_buy_in, max_buy_in=config.max_buy_in)
        if self.locked or call_hook(self.hooks, 'should_lock_table', self.context(), default=False):
            raise JoinRejected("Table is locked until the current round finishes", variant=self.variant.key)
        reason = call_hook(self.hooks, 'can_join', self.context(), name)
        if reason:
            raise JoinRejected(reason, variant=self.variant.key)

    # -- setup --------------------------------------------------------------

    def enter_setup(self):
        for seat in self.eligible_seats():
            if seat.stack < self.config.big_blind:
                logging.info(f"[{self.table_id}] {seat.name} cannot cover the big blind ({seat.stack}); standing up")
                self.remove_seat(seat.participant_id, ExitReason.INSUFFICIENT_FUNDS.value)
        players = self.eligible_seats()[:self.seats.max_seats]
        if len(players) < self.min_participants():
            logging.info(f"[{self.table_id}] Not enough players to deal a hand")
            if self.locked:
                self.finish_variant_round()
            self.round = None
            self.transition(Phase.END)
            return

        start = call_hook(self.hooks, 'on_round_start', self.context(players), default=RoundStartResult())
        self.locked = bool(start.lock_table)
        rnd = self.new_round([s.participant_id for s in players])
        rnd.data.update(start.data)
        rnd.data['variant'] = self.variant.key

        self.players = players
        self.dealer_index = (self.dealer_index + 1) % len(players)
        self.hand = HandEngine(players, rnd.rng, self.hooks)
        rules = call_hook(self.hooks, 'betting_rules', default=BettingRules())
        self.betting = BettingEngine(self.hand, self.config.big_blind, rules)

        sb, bb = self._blind_positions()
        for index, amount, label in ((sb, self.config.small_blind, 'small blind'),
                                     (bb, self.config.big_blind, 'big blind')):
            pid = players[index].participant_id
            paid = self.betting.post_blind(pid, amount, label)
            rnd.participants[pid].commit(paid)
        rnd.pot = self.hand.pot
        rnd.data['dealer'] = players[self.dealer_index].participant_id

        self.hand.deal_hole_cards()
        for pid, cards in self.hand.hole.items():
            self.send(pid, STEP_ADVANCED, {'step': 'hole_cards', 'cards': [card_str(c) for c in cards]})
        self.broadcast(STEP_ADVANCED, {
            'step': 'blinds',
            'dealer': rnd.data['dealer'],
            'small_blind': players[sb].participant_id,
            'big_blind': players[bb].participant_id,
            'pot': rnd.pot,
        })
        self.transition(Phase.DECISION)

    def _blind_positions(self):
        n = len(self.players)
        if n == 2:
            # heads-up: the dealer posts the small blind
            return self.dealer_index, (self.dealer_index + 1) % n
        return (self.dealer_index + 1) % n, (self.dealer_index + 2) % n

    def _order_from(self, index: int) -> List[str]:
        ids = [p.participant_id for p in self.players]
        index %= len(ids)
        return ids[index:] + ids[:index]

    # -- betting ------------------------------------------------------------

    def enter_decision(self):
        _, bb = self._blind_positions()
        self.betting.start_street(self._order_from(bb + 1), reset_bets=False)
        self.prompt_next()

    def prompt_next(self):
        if self.betting.round_complete():
            self.advance_street()
            return
        actor = self.betting.next_actor()
        seat = self.seats.get(actor)
        self.broadcast(STEP_ADVANCED, {
            'step': 'to_act',
            'participant_id': actor,
            'valid_actions': self.betting.valid_actions(actor),
            **self.betting.actor_state(actor),
            'timeout': self.config.turn_timeout,
        })
        if seat is not None and seat.is_ai:
            self.arm_timer(self.config.bot_decision_delay, self._bot_acts, 'bot_turn')
        else:
            self.arm_timer(self.config.turn_timeout, self._turn_timed_out, 'turn')

    def advance_street(self):
        """Deal streets until someone has to act, or go to showdown."""
        hand = self.hand
        while True:
            if len(hand.contenders()) <= 1:
                self.transition(Phase.RESOLUTION)
                return
            street = call_hook(self.hooks, 'next_street', hand.street, default='showdown')
            if street == 'showdown':
                hand.street = street
                self.transition(Phase.RESOLUTION)
                return
            if call_hook(self.hooks, 'should_skip_street', street, self.context(self.players), default=False):
                logging.debug(f"[{self.table_id}] Skipping {street}")
                hand.street = street
                continue
            cards = hand.deal_street(street)
            self.round.step += 1
            self.broadcast(STEP_ADVANCED, {
                'step': street,
                'cards': [card_str(c) for c in cards],
                'community': [card_str(c) for c in hand.community],
                'pot': hand.pot,
            })
            self.betting.start_street(self._order_from(self.dealer_index + 1))
            if not self.betting.round_complete():
                self.prompt_next()
                return

    def act(self, participant_id: str, action: str, amount: int = 0, source: str = 'player'):
        rnd = self.round
        paid = self.betting.apply(participant_id, action, amount)
        self.timer.cancel()
        state = rnd.participants[participant_id]
        if paid:
            state.commit(paid)
        rnd.pot = self.hand.pot
        if action == 'fold':
            reason = ExitReason.TIMEOUT_DEFAULT if source == ExitReason.TIMEOUT_DEFAULT.value else ExitReason.OPTED_OUT
            state.exit(reason, rnd.step)
        self.broadcast(DECISION_MADE, {
            'participant_id': participant_id,
            'decision': action,
            'amount': paid,
            'pot': rnd.pot,
            'source': source,
        })
        self.prompt_next()

    def _betting_action(self, participant_id: str, action: str, payload: Dict[str, Any]):
        self.act(participant_id, action, payload.get('amount', 0))

    def _on_fold(self, participant_id: str, payload: Dict[str, Any]):
        self._betting_action(participant_id, 'fold', payload)

    def _on_check(self, participant_id: str, payload: Dict[str, Any]):
        self._betting_action(participant_id, 'check', payload)

    def _on_call(self, participant_id: str, payload: Dict[str, Any]):
        self._betting_action(participant_id, 'call', payload)

    def _on_bet(self, participant_id: str, payload: Dict[str, Any]):
        self._betting_action(participant_id, 'bet', payload)

    def _on_raise(self, participant_id: str, payload: Dict[str, Any]):
        self._betting_action(participant_id, 'raise', payload)

    def _on_all_in(self, participant_id: str, payload: Dict[str, Any]):
        self._betting_action(participant_id, 'all_in', payload)

    def _on_side_game(self, participant_id: str, payload: Dict[str, Any]):
        key = payload.get('game')
        game = next((g for g in self.enabled_side_games if g.key == key), None)
        if game is None:
            raise InvalidAction(f"Side game '{key}' is not offered at this table", game=key)
        opt_in = payload.get('opt_in', True)
        if not isinstance(opt_in, bool):
            raise InvalidAction("opt_in must be true or false")
        seat = self.seats.require(participant_id)
        games = set(seat.extras.get(OPTED_IN, ()))
        if opt_in:
            games.add(game.key)
        else:
            games.discard(game.key)
        seat.extras[OPTED_IN] = sorted(games)
        self.broadcast(STEP_ADVANCED, {'step': 'side_game', 'participant_id': participant_id,
                                       'game': game.key, 'opt_in': opt_in})

    def _turn_timed_out(self):
        actor = self.betting.next_actor()
        action = 'check' if 'check' in self.betting.valid_actions(actor) else 'fold'
        logging.info(f"[{self.table_id}] {actor} timed out; auto-{action}")
        self.act(actor, action, source=ExitReason.TIMEOUT_DEFAULT.value)

    def _bot_acts(self):
        actor = self.betting.next_actor()
        options = self.betting.valid_actions(actor)
        choice = self.choose_for_bot(options)
        amount = 0
        if choice in ('bet', 'raise'):
            amount = min(self.betting.min_raise_to(), self.betting.max_raise_to(actor))
        try:
            self.act(actor, choice, amount, source='bot')
        except GameError as e:
            logging.debug(f"[{self.table_id}] Bot choice {choice} rejected ({e.message}); falling back")
            self.act(actor, 'check' if 'check' in options else 'fold', source='bot')

    # -- resolution / settlement -------------------------------------------

    def enter_resolution(self):
        rnd = self.round
        hand = self.hand
        result = ShowdownEngine(hand, self.hooks).settle(rnd.round_id, self.config.rake_percentage,
                                                         self.config.rake_cap)
        record = result['record'].verify()
        for entry in record.entries:
            seat = self.seats.get(entry.participant_id)
            if seat is not None:
                seat.stack += entry.net
            rnd.participants[entry.participant_id].record_payout(entry.net)
        rnd.pot = 0
        rnd.settlements.append(record)
        rnd.data.update(winners=result['winners'], pots=result['pots'], hands=result['hands'])

        wins: List[PotWinResult] = []
        for winner in result['winners']:
            wins.append(call_hook(self.hooks, 'on_pot_win', self.context(self.players), winner,
                                  default=PotWinResult()))
        reveal = not result['uncontested'] or any(w.reveal_hands for w in wins)
        if reveal:
            self.broadcast(HANDS_REVEALED, {
                'hands': {pid: [card_str(c) for c in cards] for pid, cards in hand.hole.items()},
                'descriptions': result['hands'],
                'community': [card_str(c) for c in hand.community],
            })
        for win in wins:
            if win.message:
                self.broadcast(STEP_ADVANCED, {'step': 'variant', 'message': win.message, 'awards': win.awards})
        rnd.data['variant_round_over'] = any(w.end_round for w in wins)
        logging.info(f"[{self.table_id}] Hand {self.hand_number} won by {result['winners']} "
                     f"({'uncontested' if result['uncontested'] else 'showdown'})")
        self.broadcast(SETTLEMENT_COMPUTED, record.to_dict())
        self.run_side_games(result['winners'])
        self.transition(Phase.SETTLEMENT)

    def run_side_games(self, winners: List[str]):
        """Settle every enabled side game for this hand, one separate pass each."""
        hand = self.hand
        seated = [s for s in self.players if self.seats.get(s.participant_id) is not None]
        for game in self.enabled_side_games:
            participants = game.participants(seated)
            if len(participants) < game.min_participants or game.on_hand_complete is None:
                continue
            claims = []
            for winner in winners:
                ctx = SideGameContext(table_id=self.table_id, round_id=self.round.round_id, winner_id=winner,
                                      winner_cards=list(hand.hole.get(winner, [])),
                                      community=list(hand.community), participants=participants,
                                      config=self.config)
                claims.extend(game.on_hand_complete(ctx))
            if not claims:
                continue
            stacks = {s.participant_id: s.stack for s in seated}
            record = settle_side_pass(self.round.round_id, claims, stacks,
                                      reasons=(f'{game.name} won', f'{game.name} paid')).verify()
            for entry in record.entries:
                self.seats.get(entry.participant_id).stack += entry.amount
            self.round.settlements.append(record)
            logging.info(f"[{self.table_id}] {game.name} settled {record.pot} between {len(record.entries)} players")
            self.broadcast(SETTLEMENT_COMPUTED, {**record.to_dict(), 'side_game': game.key})

    def finish_variant_round(self) -> Optional[float]:
        """Run the round-end hook and apply any side settlement it returns."""
        result = call_hook(self.hooks, 'on_round_end', self.context(), default=RoundEndResult())
        record = result.settlement
        if record is not None and record.entries:
            record.verify()
            for entry in record.entries:
                seat = self.seats.get(entry.participant_id)
                if seat is not None:
                    seat.stack += entry.amount
            if self.round is not None and not self.round.completed:
                self.round.settlements.append(record)
            self.broadcast(SETTLEMENT_COMPUTED, record.to_dict())
        if result.message:
            self.broadcast(STEP_ADVANCED, {'step': 'variant_round_end', 'message': result.message})
        if result.reset_table or not call_hook(self.hooks, 'should_lock_table', self.context(), default=False):
            self.locked = False
        return result.delay

    def enter_settlement(self):
        delay = None
        if self.round.data.get('variant_round_over') or not self.locked:
            delay = self.finish_variant_round()
        self.complete_round({
            'winners': self.round.data.get('winners', []),
            'action_history': list(self.hand.action_history),
            'community': [card_str(c) for c in self.hand.community],
        })
        wait = delay if delay is not None else self.config.settlement_display
        self.arm_timer(wait, lambda: self.transition(Phase.END), 'settlement_display')

    def enter_end(self):
        if self.locked and len(self.eligible_seats()) < self.min_participants():
            logging.info(f"[{self.table_id}] Too few players to continue the variant round; settling it now")
            self.finish_variant_round()
        self.process_stand_ups()
        self.loop_or_lobby()

    def enter_lobby(self):
        super().enter_lobby()
        self.hand = None
        self.betting = None

    def force_end(self, reason: str):
        super().force_end(reason)
        self.variant_state.clear()
        self.locked = False

    def snapshot(self) -> Dict[str, Any]:
        data = super().snapshot()
        current = self.betting.next_actor() if self.betting is not None and self.phase == Phase.DECISION else None
        data.update({
            'variant': self.variant.key,
            'locked': self.locked,
            'hand': self.hand.get_public_state(current_player=current) if self.hand is not None else None,
        })
        return data
