"""
Deck and card operations for antetown card games.
All shuffles and draws go through the round's DeterministicRNG.
"""

from typing import Callable, List, Tuple

from .rng import random_int, shuffle

# Card representation: tuple (rank:int 2..14, suit:str one of 'cdhs')
Rank = int
Suit = str
Card = Tuple[Rank, Suit]

RED_SUITS = frozenset('dh')


def make_deck() -> List[Card]:
    """Create a standard 52-card deck."""
    ranks = list(range(2, 15))  # 2-14 (where 11=J, 12=Q, 13=K, 14=A)
    suits = list('cdhs')  # clubs, diamonds, hearts, spades
    return [(r, s) for r in ranks for s in suits]


def card_str(card: Card) -> str:
    """Convert a card to its string representation."""
    r, s = card
    names = {10: 'T', 11: 'J', 12: 'Q', 13: 'K', 14: 'A'}
    return f"{names.get(r, r)}{s}"


def card_colour(card: Card) -> str:
    return 'red' if card[1] in RED_SUITS else 'black'


def create_shuffled_deck(rng: Callable[[], float]) -> List[Card]:
    """Create and return a deck shuffled with the round RNG (51 draws)."""
    return list(shuffle(rng, make_deck()))


def deal_cards(deck: List[Card], num_cards: int) -> List[Card]:
    """Deal a number of cards from the top of the deck."""
    if len(deck) < num_cards:
        raise ValueError(f"Cannot deal {num_cards} cards from deck of {len(deck)}")

    dealt = []
    for _ in range(num_cards):
        dealt.append(deck.pop())
    return dealt


def draw_flip_card(rng: Callable[[], float]) -> Card:
    """One draw: a card from a fresh deck, with replacement."""
    deck = make_deck()
    return deck[random_int(rng, 0, len(deck) - 1)]
