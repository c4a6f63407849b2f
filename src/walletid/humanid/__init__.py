"""
walletid Human ID Library

This library derives stable, pronounceable identifiers from wallet addresses.
Given the same wallet string it always produces the same pair of identifiers
on every machine:

- short ID: 20 uppercase alphanumeric characters for internal keying
- human ID: 4 hyphen-joined two-syllable words for display

Main Features:
- SHA-256 digest of the wallet string as the single source of entropy
- Per-segment linear congruential generator seeded from 4 digest bytes
- Fixed 50-entry consonant-vowel syllable pool
- Prefix compatible segments (N segments is a prefix of N+1 segments)
- Format predicates for wallets, account hashes and human IDs
- ID space analysis and empirical collision scanning

Example Usage:
    from walletid.humanid import derive, looks_like_human_id

    result = derive("0203a44378d9ccd3353ee2fe93c40a1be9518443334d86800aeefb23a4b96c55e3e1")
    result.human_id      # e.g. "bato-kali-masu-rivo"
    result.short_id      # e.g. "QX7K9P2M1A0BC3D5E7FG"
    result.internal_id   # e.g. "QX7K9P2M-bato-kali-masu-rivo"

    looks_like_human_id(result.human_id)   # True

    # Longer IDs for larger populations
    derive(wallet, num_segments=6)

    # ID space analysis
    from walletid.humanid import analyze_id_space
    analyze_id_space(population=1_000_000)

Note: the syllable pool and the generator constants are part of the
determinism contract. Changing either reassigns every wallet's human ID.
"""

# Core algorithm functions
from .algorithms import (
    DerivationResult,
    DeterministicRandom,
    digest_wallet,
    synthesize_word,
    encode_short_id,
    derive,
    derive_human_identifier,
    derive_with_steps,
    verify_human_id,
    extract_segments,
    get_prefix,
    check_prefix_compatibility,
    looks_like_human_id,
    looks_like_full_wallet_key,
    looks_like_account_hash,
    classify_identifier,
)

# Pattern definitions
from .patterns import (
    SYLLABLE_POOL,
    MARKOV_TRANSITIONS,
    WORD_STRATEGIES,
    WordStrategy,
)

# ID space analysis
from .security import (
    calculate_word_space,
    calculate_id_space,
    calculate_security_bits,
    collision_probability,
    expected_population_for_collision,
    short_id_entropy_bits,
    analyze_id_space,
)

# Collision scanning
from .collisions import (
    CollisionReport,
    random_wallet,
    scan_for_collisions,
    find_collision,
)

# Public API
__all__ = [
    # Core functions
    "DerivationResult",
    "DeterministicRandom",
    "digest_wallet",
    "synthesize_word",
    "encode_short_id",
    "derive",
    "derive_human_identifier",
    "derive_with_steps",
    "verify_human_id",
    "extract_segments",
    "get_prefix",
    "check_prefix_compatibility",
    # Format predicates
    "looks_like_human_id",
    "looks_like_full_wallet_key",
    "looks_like_account_hash",
    "classify_identifier",
    # Pattern definitions
    "SYLLABLE_POOL",
    "MARKOV_TRANSITIONS",
    "WORD_STRATEGIES",
    "WordStrategy",
    # ID space analysis
    "calculate_word_space",
    "calculate_id_space",
    "calculate_security_bits",
    "collision_probability",
    "expected_population_for_collision",
    "short_id_entropy_bits",
    "analyze_id_space",
    # Collision scanning
    "CollisionReport",
    "random_wallet",
    "scan_for_collisions",
    "find_collision",
]
