"""
Syllable Pool and Transition Table

The syllable pool is part of the determinism contract: every human ID ever
issued was drawn from exactly this sequence, in exactly this order. Adding,
removing or reordering entries reassigns every wallet's human ID and requires
a migration of stored mappings.

Pool layout:
- 10 consonants: b, k, l, m, n, r, s, t, v, w
- 5 vowels: a, e, i, o, u
- 50 consonant-vowel pairs, consonant-major order

The Markov transition table is only consulted by the opt-in "markov" word
strategy. The default "flat" strategy samples the pool directly.
"""

from dataclasses import dataclass
from types import MappingProxyType
from typing import Mapping, Tuple

CONSONANTS = ("b", "k", "l", "m", "n", "r", "s", "t", "v", "w")
VOWELS = ("a", "e", "i", "o", "u")

SYLLABLE_POOL: Tuple[str, ...] = tuple(c + v for c in CONSONANTS for v in VOWELS)

MARKOV_START = "start"

MARKOV_TRANSITIONS: Mapping[str, Tuple[str, ...]] = MappingProxyType(
    {
        MARKOV_START: ("ba", "ka", "la", "ma", "na", "ra", "sa", "ta", "va", "wa"),
        "ba": ("la", "na", "ma", "ka", "ra", "ti", "vo"),
        "ka": ("ba", "la", "ma", "sa", "ri", "to"),
        "la": ("ba", "ma", "na", "ra", "ki", "vu"),
        "ma": ("la", "na", "ba", "sa", "ko", "wi"),
        "na": ("la", "ma", "ba", "ra", "te", "su"),
        "ra": ("la", "na", "sa", "mi", "tu"),
        "sa": ("la", "ma", "ra", "bi", "vo"),
        "ta": ("la", "ra", "sa", "me", "ku"),
        "va": ("ba", "ma", "na", "ri", "to"),
        "wa": ("la", "ra", "sa", "ni", "bu"),
    }
)


@dataclass(frozen=True)
class WordStrategy:
    """Named way of turning a generator into a word."""

    name: str
    description: str
    compatible_with_issued_ids: bool


WORD_STRATEGIES: Mapping[str, WordStrategy] = MappingProxyType(
    {
        "flat": WordStrategy(
            "flat",
            "Independent draws from the full syllable pool",
            True,
        ),
        "markov": WordStrategy(
            "markov",
            "Walk of the syllable transition table (different IDs than 'flat')",
            False,
        ),
    }
)
