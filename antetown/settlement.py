"""
Settlement and payout arithmetic.

All amounts are integer cents and every division floors. Whatever integer
division leaves over stays with the house, so the house can never pay out
more than it collected. The round engines never touch a persistent balance:
they produce SettlementRecords and an external ledger applies them.
"""

from __future__ import annotations

from dataclasses import asdict, dataclass, field
from decimal import ROUND_FLOOR, Decimal
from typing import Callable, Dict, Iterable, List, Mapping, Optional, Sequence, Tuple

from .errors import SettlementError

POT = 'pot'
TRANSFER = 'transfer'
HOUSE = 'house'
BOUNTY = 'bounty'
SIDE_GAME = 'side_game'
REFUND = 'refund'


@dataclass
class Payout:
    """One settlement line. `amount` is the signed change to the table stake."""
    participant_id: str
    amount: int
    reason: str
    gross: int = 0
    rake: int = 0

    @property
    def net(self) -> int:
        """What is paid back onto the table, before subtracting what was put in."""
        return self.gross - self.rake


@dataclass
class SettlementRecord:
    round_id: str
    kind: str
    pot: int = 0
    entries: List[Payout] = field(default_factory=list)
    rake_total: int = 0
    house_remainder: int = 0
    # (payer, payee, amount) for direct participant-to-participant passes
    transfers: List[Tuple[str, str, int]] = field(default_factory=list)

    def amount_for(self, participant_id: str) -> int:
        return sum(e.amount for e in self.entries if e.participant_id == participant_id)

    def by_participant(self) -> Dict[str, int]:
        out: Dict[str, int] = {}
        for e in self.entries:
            out[e.participant_id] = out.get(e.participant_id, 0) + e.amount
        return out

    def net_total(self) -> int:
        return sum(e.amount for e in self.entries)

    def verify(self) -> 'SettlementRecord':
        """Raise SettlementError unless the record balances for its kind."""
        for e in self.entries:
            if not isinstance(e.amount, int) or not isinstance(e.gross, int) or not isinstance(e.rake, int):
                raise SettlementError("Fractional amount in settlement", participant_id=e.participant_id)
            if e.rake < 0 or e.rake > e.gross:
                raise SettlementError("Rake outside [0, gross]", participant_id=e.participant_id)
        if self.rake_total != sum(e.rake for e in self.entries):
            raise SettlementError("Rake total does not match entries", round_id=self.round_id)
        if self.kind == POT:
            gross = sum(e.gross for e in self.entries)
            if gross + self.house_remainder != self.pot:
                raise SettlementError("Gross payouts do not cover the pot",
                                      round_id=self.round_id, gross=gross, pot=self.pot)
            if self.net_total() != -(self.rake_total + self.house_remainder):
                raise SettlementError("Pot settlement is not zero-sum", round_id=self.round_id)
        elif self.kind == REFUND:
            if sum(e.gross for e in self.entries) != self.pot or self.net_total() != 0:
                raise SettlementError("Refund does not return exactly what was staked", round_id=self.round_id)
        elif self.kind in (TRANSFER, BOUNTY, SIDE_GAME):
            if self.net_total() != -self.rake_total:
                raise SettlementError("Transfer settlement is not zero-sum", round_id=self.round_id)
            paid = sum(amount for _, _, amount in self.transfers)
            if self.transfers and paid != self.pot:
                raise SettlementError("Transfers do not match the settled amount", round_id=self.round_id)
        return self

    def to_dict(self) -> dict:
        data = asdict(self)
        data['transfers'] = [list(t) for t in self.transfers]
        return data


def compute_rake(gross: int, percentage: float, cap: Optional[int] = None) -> int:
    """floor(gross * percentage / 100), optionally capped. Never exceeds gross."""
    if gross <= 0 or not percentage:
        return 0
    rake = int((Decimal(gross) * Decimal(str(percentage)) / 100).to_integral_value(rounding=ROUND_FLOOR))
    if cap is not None:
        rake = min(rake, cap)
    return max(0, min(rake, gross))


def apply_rake(gross: int, percentage: float, cap: Optional[int] = None) -> Tuple[int, int]:
    """Return (net, rake)."""
    rake = compute_rake(gross, percentage, cap)
    return gross - rake, rake


def split_evenly(amount: int, ways: int) -> Tuple[int, int]:
    """Return (share, remainder); the remainder belongs to the house."""
    if ways <= 0:
        raise ValueError("cannot split between zero winners")
    return amount // ways, amount % ways


def multiplier_payout(stake: int, factor: float) -> int:
    """floor(stake * factor) in cents, computed on the decimal repr of factor."""
    if factor <= 0:
        return 0
    value = Decimal(stake) * Decimal(repr(factor))
    return int(value.to_integral_value(rounding=ROUND_FLOOR))


def build_pot_record(round_id: str, contributions: Mapping[str, int], gross: Mapping[str, int],
                     house_remainder: int, rake_percentage: float = 0, rake_cap: Optional[int] = None,
                     win_reason: str = 'won pot', loss_reason: str = 'lost') -> SettlementRecord:
    """Turn gross winnings per participant into a signed, raked record."""
    record = SettlementRecord(round_id=round_id, kind=POT, pot=sum(contributions.values()),
                              house_remainder=house_remainder)
    ids = list(contributions)
    ids.extend(pid for pid in gross if pid not in contributions)
    for pid in ids:
        won = gross.get(pid, 0)
        net, rake = apply_rake(won, rake_percentage, rake_cap)
        paid_in = contributions.get(pid, 0)
        record.entries.append(Payout(pid, net - paid_in, win_reason if won > 0 else loss_reason,
                                     gross=won, rake=rake))
        record.rake_total += rake
    return record


def settle_pot(round_id: str, contributions: Mapping[str, int], winners: Sequence[str],
               rake_percentage: float = 0, rake_cap: Optional[int] = None,
               win_reason: str = 'won pot', loss_reason: str = 'lost') -> SettlementRecord:
    """Winner takes the pot, or winners split it evenly with the remainder left to the house."""
    if not winners:
        raise ValueError("a pot needs at least one winner")
    pot = sum(contributions.values())
    share, remainder = split_evenly(pot, len(winners))
    gross = {pid: share for pid in winners}
    return build_pot_record(round_id, contributions, gross, remainder, rake_percentage, rake_cap,
                            win_reason, loss_reason)


def card_count_value(cards: Sequence[str], ante: int) -> Tuple[Optional[str], int]:
    """Return (winning colour, amount) for a batch of flipped card colours.

    Per-card value is the ante, doubled when every card matches. The amount
    is the count differential times that value.
    """
    counts: Dict[str, int] = {}
    for colour in cards:
        counts[colour] = counts.get(colour, 0) + 1
    if not counts:
        return None, 0
    ranked = sorted(counts.items(), key=lambda kv: kv[1], reverse=True)
    winner, win_count = ranked[0]
    lose_count = len(cards) - win_count
    if win_count == lose_count:
        return None, 0
    unit = ante * 2 if lose_count == 0 else ante
    return winner, (win_count - lose_count) * unit


def settle_transfer(round_id: str, winner: str, loser: str, amount: int, available: int,
                    rake_percentage: float = 0, rake_cap: Optional[int] = None,
                    reason: str = 'card count') -> SettlementRecord:
    """Zero-sum transfer from loser to winner, capped at what the loser can cover."""
    moved = max(0, min(amount, available))
    net, rake = apply_rake(moved, rake_percentage, rake_cap)
    record = SettlementRecord(round_id=round_id, kind=TRANSFER, pot=moved, rake_total=rake)
    record.entries.append(Payout(winner, net, f"won {reason}", gross=moved, rake=rake))
    record.entries.append(Payout(loser, -moved, f"lost {reason}"))
    if moved:
        record.transfers.append((loser, winner, moved))
    return record


def settle_house(round_id: str, stakes: Mapping[str, int], payouts: Mapping[str, int],
                 reasons: Mapping[str, str], rake_percentage: float = 0,
                 rake_cap: Optional[int] = None) -> SettlementRecord:
    """House-banked settlement: each participant receives payout minus rake against their stake."""
    record = SettlementRecord(round_id=round_id, kind=HOUSE, pot=sum(stakes.values()))
    for pid, stake in stakes.items():
        gross = payouts.get(pid, 0)
        net, rake = apply_rake(gross, rake_percentage, rake_cap)
        record.entries.append(Payout(pid, net - stake, reasons.get(pid, 'settled'), gross=gross, rake=rake))
        record.rake_total += rake
    return record


def bounty_value(tokens: int, base_value: int, bonus_at_3: int = 0, bonus_at_5: int = 0) -> int:
    """Tiered bounty owed to a holder of `tokens` by each zero-holder."""
    if tokens <= 0:
        return 0
    if tokens >= 5:
        return tokens * (base_value + bonus_at_5)
    if tokens >= 3:
        return tokens * (base_value + bonus_at_3)
    return tokens * base_value


def settle_refund(round_id: str, stakes: Mapping[str, int], reason: str = 'round voided') -> SettlementRecord:
    """Void settlement: every escrowed stake goes back unchanged, no rake."""
    record = SettlementRecord(round_id=round_id, kind=REFUND)
    for pid, stake in stakes.items():
        if stake > 0:
            record.entries.append(Payout(pid, 0, reason, gross=stake))
            record.pot += stake
    return record


def settle_side_pass(round_id: str, claims: Iterable[Tuple[str, str, int]], stacks: Mapping[str, int],
                     kind: str = SIDE_GAME, reasons: Tuple[str, str] = ('side game won', 'side game paid')
                     ) -> SettlementRecord:
    """Direct payer-to-payee claims outside the main pot, drawn from table stakes only.

    Claims are paid in order. A payer never pays more than their remaining
    stake; the shortfall is simply not collected.
    """
    record = SettlementRecord(round_id=round_id, kind=kind)
    remaining = dict(stacks)
    totals: Dict[str, int] = {}
    for payer, payee, owed in claims:
        paid = min(owed, remaining.get(payer, 0))
        if paid <= 0 or payer == payee:
            continue
        remaining[payer] = remaining.get(payer, 0) - paid
        remaining[payee] = remaining.get(payee, 0) + paid
        totals[payer] = totals.get(payer, 0) - paid
        totals[payee] = totals.get(payee, 0) + paid
        record.transfers.append((payer, payee, paid))
        record.pot += paid
    collected, paid_out = reasons
    for pid, amount in totals.items():
        if amount > 0:
            record.entries.append(Payout(pid, amount, collected, gross=amount))
        elif amount < 0:
            record.entries.append(Payout(pid, amount, paid_out))
    return record


def settle_bounties(round_id: str, holdings: Mapping[str, int], stacks: Mapping[str, int],
                    value_of: Callable[[int], int]) -> SettlementRecord:
    """Side pass: every zero-holder pays every holder, drawn from table stakes only."""
    holders = [pid for pid, n in holdings.items() if n > 0]
    payers = [pid for pid, n in holdings.items() if n <= 0]
    claims = [(payer, holder, value_of(holdings[holder])) for payer in payers for holder in holders]
    return settle_side_pass(round_id, claims, stacks, kind=BOUNTY,
                            reasons=('bounty collected', 'bounty paid'))


def apply_to_stacks(record: SettlementRecord, stacks: Dict[str, int], escrowed: bool = False) -> Dict[str, int]:
    """Apply a record to a mapping of table stakes in place.

    With `escrowed`, contributions were already taken off the stacks when
    they were committed, so only the net payback is credited.
    """
    for e in record.entries:
        credit = e.net if escrowed else e.amount
        stacks[e.participant_id] = stacks.get(e.participant_id, 0) + credit
    return stacks


def total_payouts(records: Iterable[SettlementRecord]) -> Dict[str, int]:
    out: Dict[str, int] = {}
    for record in records:
        for pid, amount in record.by_participant().items():
            out[pid] = out.get(pid, 0) + amount
    return out
