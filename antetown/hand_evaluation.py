"""
Hand evaluation for antetown poker tables.
Hold'em uses the best five of all available cards; Omaha must use exactly
two hole cards and three board cards.
"""

import itertools
from typing import List, Sequence, Tuple

from .deck import Card

HandValue = Tuple[int, List[int]]

HAND_RANKS = {
    'highcard': 0,
    'pair': 1,
    'two_pair': 2,
    'trips': 3,
    'straight': 4,
    'flush': 5,
    'fullhouse': 6,
    'quads': 7,
    'straight_flush': 8,
}


def _straight_high(ranks: Sequence[int]) -> int:
    """Highest card of a five-long run, 0 if there is none. Handles the wheel."""
    present = set(ranks)
    if 14 in present:
        present.add(1)
    for high in range(14, 4, -1):
        if all(r in present for r in range(high - 4, high + 1)):
            return high
    return 0


def evaluate_5cards(cards: Sequence[Card]) -> HandValue:
    """Evaluate exactly 5 cards and return (category_rank, tiebreaker ranks).

    Higher tuple sorts as better hand.
    """
    if len(cards) != 5:
        raise ValueError(f"expected 5 cards, got {len(cards)}")
    ranks = sorted((r for r, _ in cards), reverse=True)
    is_flush = len({s for _, s in cards}) == 1
    high = _straight_high(ranks)

    counts = {}
    for r in ranks:
        counts[r] = counts.get(r, 0) + 1
    # groups ordered by size then rank, e.g. [(3, 9), (2, 4)] for nines full of fours
    groups = sorted(((cnt, r) for r, cnt in counts.items()), reverse=True)
    by_group = [r for _, r in groups]

    if is_flush and high:
        return (HAND_RANKS['straight_flush'], [high])
    if groups[0][0] == 4:
        return (HAND_RANKS['quads'], by_group)
    if groups[0][0] == 3 and groups[1][0] == 2:
        return (HAND_RANKS['fullhouse'], by_group)
    if is_flush:
        return (HAND_RANKS['flush'], ranks)
    if high:
        return (HAND_RANKS['straight'], [high])
    if groups[0][0] == 3:
        return (HAND_RANKS['trips'], by_group)
    if groups[0][0] == 2 and groups[1][0] == 2:
        return (HAND_RANKS['two_pair'], by_group)
    if groups[0][0] == 2:
        return (HAND_RANKS['pair'], by_group)
    return (HAND_RANKS['highcard'], ranks)


def best_hand(cards: Sequence[Card]) -> HandValue:
    """Best 5-card value out of any 5 or more cards."""
    if len(cards) < 5:
        raise ValueError(f"need at least 5 cards, got {len(cards)}")
    return max(evaluate_5cards(combo) for combo in itertools.combinations(cards, 5))


def best_holdem_hand(hole: Sequence[Card], board: Sequence[Card]) -> HandValue:
    return best_hand(list(hole) + list(board))


def best_omaha_hand(hole: Sequence[Card], board: Sequence[Card]) -> HandValue:
    """Exactly two hole cards plus exactly three board cards."""
    if len(hole) < 2 or len(board) < 3:
        raise ValueError("Omaha needs at least 2 hole cards and 3 board cards")
    return max(
        evaluate_5cards(list(h) + list(b))
        for h in itertools.combinations(hole, 2)
        for b in itertools.combinations(board, 3)
    )


def compare_hands(a: HandValue, b: HandValue) -> int:
    """-1, 0 or 1, like a classic comparator."""
    return (a > b) - (a < b)


def hand_description(hand_rank: int, tiebreakers: List[int]) -> str:
    """Convert hand evaluation result to human-readable description."""

    def rank_name(r: int) -> str:
        names = {11: 'Jack', 12: 'Queen', 13: 'King', 14: 'Ace'}
        return names.get(r, str(r))

    def plural(r: int) -> str:
        names = {6: 'Sixes', 11: 'Jacks', 12: 'Queens', 13: 'Kings', 14: 'Aces'}
        return names.get(r, f"{r}s")

    if hand_rank == HAND_RANKS['straight_flush']:
        if tiebreakers[0] == 14:
            return "Royal Flush"
        return f"Straight Flush, {rank_name(tiebreakers[0])} high"
    if hand_rank == HAND_RANKS['quads']:
        return f"Four of a Kind, {plural(tiebreakers[0])}"
    if hand_rank == HAND_RANKS['fullhouse']:
        return f"Full House, {plural(tiebreakers[0])} over {plural(tiebreakers[1])}"
    if hand_rank == HAND_RANKS['flush']:
        return f"Flush, {rank_name(tiebreakers[0])} high"
    if hand_rank == HAND_RANKS['straight']:
        if tiebreakers[0] == 5:
            return "Straight, 5 high (Wheel)"
        return f"Straight, {rank_name(tiebreakers[0])} high"
    if hand_rank == HAND_RANKS['trips']:
        return f"Three of a Kind, {plural(tiebreakers[0])}"
    if hand_rank == HAND_RANKS['two_pair']:
        return f"Two Pair, {plural(tiebreakers[0])} and {plural(tiebreakers[1])}"
    if hand_rank == HAND_RANKS['pair']:
        return f"Pair of {plural(tiebreakers[0])}"
    return f"High Card, {rank_name(tiebreakers[0])}"
