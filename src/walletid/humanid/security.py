"""
Human ID Space Analysis

This module sizes the identifier space produced by the derivation and
estimates how likely two wallets are to share a human ID.

The generator is a power-of-two modulus LCG with odd multiplier and odd
increment, so the lowest bit of its state alternates on every step. With an
even pool size the parity of the chosen index follows the generator parity,
which means that after the first syllable of a word every later syllable can
only come from half of the pool. The effective space accounts for this.
"""

import math
from typing import Any, Dict, List, Optional, Tuple

from walletid.config import (
    DEFAULT_NUM_SEGMENTS,
    DEFAULT_SHORT_ID_LENGTH,
    DEFAULT_WORD_LENGTH,
)
from walletid.errors import InvalidInputError
from .patterns import SYLLABLE_POOL

# Uppercased, stripped base64: 10 digits once each, 26 letters twice each
_SHORT_ID_SYMBOLS = 62


def _check_positive(**values: int) -> None:
    for name, value in values.items():
        if value <= 0:
            raise InvalidInputError(f"{name} must be positive, got {value}")


def calculate_word_space(
    word_length: int = DEFAULT_WORD_LENGTH,
    pool_size: Optional[int] = None,
) -> int:
    """
    Number of distinct words one segment can take.

    Args:
        word_length: Syllables per word
        pool_size: Syllable pool size (defaults to the built-in pool)

    Returns:
        Count of reachable words
    """
    if pool_size is None:
        pool_size = len(SYLLABLE_POOL)
    _check_positive(word_length=word_length, pool_size=pool_size)

    if pool_size % 2 == 0:
        return pool_size * (pool_size // 2) ** (word_length - 1)
    return pool_size**word_length


def calculate_id_space(
    num_segments: int = DEFAULT_NUM_SEGMENTS,
    word_length: int = DEFAULT_WORD_LENGTH,
    pool_size: Optional[int] = None,
) -> int:
    """Number of distinct human IDs for the given shape."""
    _check_positive(num_segments=num_segments)
    return calculate_word_space(word_length, pool_size) ** num_segments


def calculate_security_bits(
    num_segments: int = DEFAULT_NUM_SEGMENTS,
    word_length: int = DEFAULT_WORD_LENGTH,
    pool_size: Optional[int] = None,
) -> Tuple[float, List[float]]:
    """
    Calculate identifier bits for a human ID shape.

    Returns:
        Tuple of (total_bits, per_segment_bits)
    """
    _check_positive(num_segments=num_segments)
    word_bits = math.log2(calculate_word_space(word_length, pool_size))
    per_segment = [word_bits] * num_segments
    return sum(per_segment), per_segment


def collision_probability(
    population: int,
    num_segments: int = DEFAULT_NUM_SEGMENTS,
    word_length: int = DEFAULT_WORD_LENGTH,
    pool_size: Optional[int] = None,
) -> float:
    """
    Birthday-bound probability that any two of ``population`` wallets collide.

    Uses ``1 - exp(-n(n-1) / 2N)`` where N is the ID space.
    """
    if population < 0:
        raise InvalidInputError(f"population must not be negative, got {population}")
    if population < 2:
        return 0.0

    space = calculate_id_space(num_segments, word_length, pool_size)
    exponent = population * (population - 1) / (2 * space)
    return -math.expm1(-exponent)


def expected_population_for_collision(
    probability: float = 0.5,
    num_segments: int = DEFAULT_NUM_SEGMENTS,
    word_length: int = DEFAULT_WORD_LENGTH,
    pool_size: Optional[int] = None,
) -> float:
    """Number of wallets at which a collision reaches ``probability``."""
    if not 0 < probability < 1:
        raise InvalidInputError(
            f"probability must be between 0 and 1 exclusive, got {probability}"
        )
    space = calculate_id_space(num_segments, word_length, pool_size)
    return math.sqrt(2 * space * math.log(1 / (1 - probability)))


def short_id_entropy_bits(length: int = DEFAULT_SHORT_ID_LENGTH) -> float:
    """
    Shannon entropy of a short ID of the given length.

    Uppercasing folds each letter pair together, so letters carry less
    information than digits.
    """
    _check_positive(length=length)
    p_digit = 1 / _SHORT_ID_SYMBOLS
    p_letter = 2 / _SHORT_ID_SYMBOLS
    per_char = -(
        10 * p_digit * math.log2(p_digit) + 26 * p_letter * math.log2(p_letter)
    )
    return per_char * length


def analyze_id_space(
    num_segments: int = DEFAULT_NUM_SEGMENTS,
    word_length: int = DEFAULT_WORD_LENGTH,
    population: int = 100_000,
    short_id_length: int = DEFAULT_SHORT_ID_LENGTH,
) -> Dict[str, Any]:
    """
    Analyze the identifier space and flag weak shapes.

    Args:
        num_segments: Words per human ID
        word_length: Syllables per word
        population: Expected number of wallets
        short_id_length: Short ID length

    Returns:
        Dictionary with:
        - id_space, word_space, bits, per_segment_bits
        - collision_probability at ``population``
        - population_for_50_percent
        - short_id_bits
        - vulnerabilities / recommendations lists
        - security_level: "high", "moderate" or "low"
    """
    _check_positive(population=population)

    bits, per_segment = calculate_security_bits(num_segments, word_length)
    space = calculate_id_space(num_segments, word_length)
    probability = collision_probability(population, num_segments, word_length)
    half = expected_population_for_collision(0.5, num_segments, word_length)

    vulnerabilities = []
    recommendations = []

    if num_segments < 2:
        vulnerabilities.append(f"Single segment ({space:,} IDs) collides quickly")
        recommendations.append("Use at least 2 segments outside of tests")

    if word_length < 2:
        vulnerabilities.append("Single-syllable words are hard to tell apart")
        recommendations.append("Use at least 2 syllables per word")

    if probability >= 0.01:
        vulnerabilities.append(
            f"Collision probability {probability:.2%} at {population:,} wallets"
        )
        recommendations.append(
            "Add segments, or rely on the resolver's collision policy"
        )
    elif probability >= 1e-4:
        recommendations.append(
            "Keep a unique index on human IDs; rare collisions remain possible"
        )

    if probability < 1e-4:
        security_level = "high"
    elif probability < 0.01:
        security_level = "moderate"
    else:
        security_level = "low"

    return {
        "num_segments": num_segments,
        "word_length": word_length,
        "pool_size": len(SYLLABLE_POOL),
        "word_space": calculate_word_space(word_length),
        "id_space": space,
        "bits": bits,
        "per_segment_bits": per_segment,
        "population": population,
        "collision_probability": probability,
        "population_for_50_percent": half,
        "short_id_bits": short_id_entropy_bits(short_id_length),
        "vulnerabilities": vulnerabilities,
        "recommendations": recommendations,
        "security_level": security_level,
    }
