"""
Core Human ID Algorithms

This module turns an opaque wallet address into two deterministic identifiers:
a short uppercase alphanumeric ID for internal keying, and a pronounceable
hyphen-separated human ID for display.

Algorithm Overview:
1. SHA-256 the UTF-8 bytes of the wallet string (32-byte digest)
2. Base64 the digest, strip '+', '/' and '=', truncate and uppercase -> short ID
3. For each segment index i:
   - Seed a linear congruential generator from 4 digest bytes at offset 4*i
   - Draw syllables from the fixed pool and concatenate them -> word
4. Join the words with hyphens -> human ID

Segment i depends only on the digest and i, so a human ID with N segments is a
hyphen-prefix of the human ID with N+1 segments for the same wallet.

The generator is NOT a source of secure randomness. Its only job is to replay
the same syllables for the same wallet on every machine.
"""

import base64
import hashlib
import re
from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Sequence, Tuple

from walletid.config import (
    ACCOUNT_HASH_PREFIX,
    DEFAULT_NUM_SEGMENTS,
    DEFAULT_SHORT_ID_LENGTH,
    DEFAULT_STRATEGY,
    DEFAULT_WORD_LENGTH,
    INTERNAL_ID_PREFIX_LENGTH,
)
from walletid.errors import InvalidInputError
from .patterns import MARKOV_START, MARKOV_TRANSITIONS, SYLLABLE_POOL, WORD_STRATEGIES

# LCG constants (Numerical Recipes)
LCG_MULTIPLIER = 1664525
LCG_INCREMENT = 1013904223
LCG_MODULUS = 2**32

SEGMENT_OFFSET_STRIDE = 4

HUMAN_ID_PATTERN = re.compile(r"[a-z]+(-[a-z]+)*")
FULL_WALLET_PATTERN = re.compile(r"[0-9a-fA-F]{64,68}")


@dataclass(frozen=True)
class DerivationResult:
    """Output bundle of a single derivation. Never persisted as a whole."""

    short_id: str
    segments: Tuple[str, ...]
    human_id: str
    internal_id: str

    def as_dict(self) -> Dict[str, Any]:
        """Wire representation used by callers that speak the JSON API."""
        return {
            "shortId": self.short_id,
            "segments": list(self.segments),
            "humanId": self.human_id,
            "internalId": self.internal_id,
        }


def _require_wallet(wallet: Any) -> str:
    if not isinstance(wallet, str):
        raise InvalidInputError(
            f"Wallet must be a string, got {type(wallet).__name__}"
        )
    if not wallet:
        raise InvalidInputError("Wallet cannot be empty")
    return wallet


def _require_positive(name: str, value: Any) -> int:
    # bool is an int subclass; True would silently mean 1
    if isinstance(value, bool) or not isinstance(value, int):
        raise InvalidInputError(f"{name} must be an integer, got {value!r}")
    if value <= 0:
        raise InvalidInputError(f"{name} must be positive, got {value}")
    return value


def _require_strategy(strategy: str) -> str:
    if strategy not in WORD_STRATEGIES:
        raise InvalidInputError(
            f"Unknown word strategy '{strategy}'. "
            f"Valid strategies: {list(WORD_STRATEGIES.keys())}"
        )
    return strategy


def digest_wallet(wallet: str) -> bytes:
    """
    Compute the SHA-256 digest of a wallet string.

    The wallet is never parsed; malformed wallets simply hash to some digest.

    Args:
        wallet: Wallet address string (public key, account hash, anything)

    Returns:
        32-byte SHA-256 digest of the UTF-8 encoded wallet

    Raises:
        InvalidInputError: If wallet is not a non-empty string
    """
    wallet = _require_wallet(wallet)
    return hashlib.sha256(wallet.encode("utf-8")).digest()


class DeterministicRandom:
    """
    Linear congruential generator seeded from a window of digest bytes.

    The seed is 4 bytes read little-endian starting at ``offset`` (wrapping
    around the end of ``seed_bytes``). Each call to ``next`` applies
    ``seed = (1664525 * seed + 1013904223) mod 2**32``.
    """

    def __init__(self, seed_bytes: bytes, offset: int = 0):
        if not seed_bytes:
            raise InvalidInputError("Seed bytes cannot be empty")

        length = len(seed_bytes)
        start = offset % length
        window = bytes(seed_bytes[(start + i) % length] for i in range(4))

        self.offset = offset
        self.seed = int.from_bytes(window, "little")

    def next(self) -> int:
        """Advance the generator and return the new unsigned 32-bit state."""
        self.seed = (LCG_MULTIPLIER * self.seed + LCG_INCREMENT) % LCG_MODULUS
        return self.seed

    def choice(self, items: Sequence[Any]) -> Any:
        """Pick ``items[next() % len(items)]``."""
        if not items:
            raise InvalidInputError("Cannot choose from an empty sequence")
        return items[self.next() % len(items)]


def _flat_word(rng: DeterministicRandom, syllable_count: int) -> List[str]:
    return [rng.choice(SYLLABLE_POOL) for _ in range(syllable_count)]


def _markov_word(rng: DeterministicRandom, syllable_count: int) -> List[str]:
    parts = []
    current = MARKOV_START
    for _ in range(syllable_count):
        # Targets without their own row restart from the start row
        row = MARKOV_TRANSITIONS.get(current, MARKOV_TRANSITIONS[MARKOV_START])
        current = rng.choice(row)
        parts.append(current)
    return parts


_WORD_BUILDERS = {
    "flat": _flat_word,
    "markov": _markov_word,
}


def synthesize_word(
    digest: bytes,
    segment_index: int,
    syllable_count: int = DEFAULT_WORD_LENGTH,
    strategy: str = DEFAULT_STRATEGY,
) -> str:
    """
    Build one pronounceable word segment.

    Args:
        digest: Wallet digest bytes
        segment_index: Position of the segment; selects the seed window
        syllable_count: Number of syllables to concatenate
        strategy: "flat" (default, matches issued IDs) or "markov"

    Returns:
        Lowercase alphabetic word such as "bato"
    """
    if segment_index < 0:
        raise InvalidInputError(
            f"segment_index must not be negative, got {segment_index}"
        )
    _require_positive("syllable_count", syllable_count)
    _require_strategy(strategy)

    rng = DeterministicRandom(digest, segment_index * SEGMENT_OFFSET_STRIDE)
    return "".join(_WORD_BUILDERS[strategy](rng, syllable_count))


def encode_short_id(digest: bytes, length: int = DEFAULT_SHORT_ID_LENGTH) -> str:
    """
    Encode a digest as a short uppercase alphanumeric ID.

    Base64 encodes the digest, removes '+', '/' and '=' and keeps the first
    ``length`` characters. If fewer characters survive the stripping, the full
    stripped string is returned unpadded.

    Args:
        digest: Digest bytes
        length: Maximum number of characters

    Returns:
        Uppercase string matching ``[A-Z0-9]{1,length}``
    """
    _require_positive("length", length)

    encoded = base64.b64encode(digest).decode("ascii")
    stripped = encoded.replace("+", "").replace("/", "").replace("=", "")
    return stripped[:length].upper()


def derive(
    wallet: str,
    num_segments: int = DEFAULT_NUM_SEGMENTS,
    word_length: int = DEFAULT_WORD_LENGTH,
    short_id_length: int = DEFAULT_SHORT_ID_LENGTH,
    strategy: str = DEFAULT_STRATEGY,
) -> DerivationResult:
    """
    Derive the short ID and human ID for a wallet.

    This is a pure function: no I/O, no shared mutable state, safe to call
    from any number of threads.

    Args:
        wallet: Wallet address string
        num_segments: Number of hyphen-separated words
        word_length: Syllables per word
        short_id_length: Length of the short ID
        strategy: Word strategy name

    Returns:
        DerivationResult with short_id, segments, human_id and internal_id

    Raises:
        InvalidInputError: On an empty/non-string wallet or a non-positive length

    Examples:
        >>> result = derive("0123...abcd")
        >>> result.human_id       # e.g. "bato-kali-masu-rivo"
        >>> result.short_id       # e.g. "QX7K9P2M1A0BC3D5E7FG"
        >>> result.internal_id    # e.g. "QX7K9P2M-bato-kali-masu-rivo"
    """
    _require_positive("num_segments", num_segments)
    _require_positive("word_length", word_length)
    _require_positive("short_id_length", short_id_length)
    _require_strategy(strategy)

    digest = digest_wallet(wallet)
    short_id = encode_short_id(digest, short_id_length)

    segments = [
        synthesize_word(digest, i, word_length, strategy) for i in range(num_segments)
    ]
    segments = [segment for segment in segments if segment]

    human_id = "-".join(segments)
    internal_id = f"{short_id[:INTERNAL_ID_PREFIX_LENGTH]}-{human_id}"

    return DerivationResult(
        short_id=short_id,
        segments=tuple(segments),
        human_id=human_id,
        internal_id=internal_id,
    )


# Alias matching the library name used by JSON API callers
derive_human_identifier = derive


def derive_with_steps(
    wallet: str,
    num_segments: int = DEFAULT_NUM_SEGMENTS,
    word_length: int = DEFAULT_WORD_LENGTH,
    short_id_length: int = DEFAULT_SHORT_ID_LENGTH,
    strategy: str = DEFAULT_STRATEGY,
) -> Tuple[DerivationResult, List[str]]:
    """
    Derive identifiers and record each intermediate step.

    Returns:
        Tuple of (result, execution_steps)
    """
    result = derive(wallet, num_segments, word_length, short_id_length, strategy)
    digest = digest_wallet(wallet)

    steps = []
    steps.append(f"Wallet: {len(wallet.encode('utf-8'))} bytes (UTF-8)")
    steps.append(f"SHA-256 digest: {digest.hex()}")
    steps.append(
        f"Configuration: {num_segments} segments x {word_length} syllables, "
        f"strategy '{strategy}'"
    )
    steps.append(f"Short ID ({short_id_length} max): {result.short_id}")

    for i in range(num_segments):
        offset = i * SEGMENT_OFFSET_STRIDE
        rng = DeterministicRandom(digest, offset)
        window_start = offset % len(digest)
        steps.append(
            f"Segment {i + 1}: bytes {window_start}-{window_start + 3} "
            f"-> seed 0x{rng.seed:08x} -> '{result.segments[i]}'"
        )

    steps.append(f"Human ID: {result.human_id}")
    steps.append(f"Internal ID: {result.internal_id}")

    return result, steps


def verify_human_id(
    wallet: str,
    expected_human_id: str,
    num_segments: Optional[int] = None,
    word_length: int = DEFAULT_WORD_LENGTH,
    strategy: str = DEFAULT_STRATEGY,
) -> bool:
    """
    Verify that a wallet derives the expected human ID.

    When ``num_segments`` is omitted it is taken from the expected ID, so IDs
    that were extended during collision resolution still verify.

    Raises:
        InvalidInputError: On a precondition violation
    """
    if not isinstance(expected_human_id, str):
        raise InvalidInputError(
            f"Human ID must be a string, got {type(expected_human_id).__name__}"
        )
    if num_segments is None:
        num_segments = len(extract_segments(expected_human_id)) or 1
    actual = derive(
        wallet, num_segments=num_segments, word_length=word_length, strategy=strategy
    )
    return actual.human_id == expected_human_id


def extract_segments(human_id: str) -> List[str]:
    """Split a human ID into its word segments."""
    if not isinstance(human_id, str):
        raise InvalidInputError(
            f"Human ID must be a string, got {type(human_id).__name__}"
        )
    if not human_id:
        return []
    return human_id.split("-")


def get_prefix(human_id: str, segments: int = 1) -> str:
    """Return the first ``segments`` words of a human ID, hyphen-joined."""
    if segments <= 0:
        return ""
    return "-".join(extract_segments(human_id)[:segments])


def check_prefix_compatibility(shorter_human_id: str, longer_human_id: str) -> bool:
    """
    Check if the shorter human ID is a segment prefix of the longer one.

    Holds for any two derivations of the same wallet with the same word length
    and strategy.
    """
    return (
        longer_human_id.startswith(shorter_human_id + "-")
        or longer_human_id == shorter_human_id
    )


def looks_like_human_id(value: Any) -> bool:
    """Lowercase words joined by single hyphens, nothing else."""
    if not value or not isinstance(value, str):
        return False
    return HUMAN_ID_PATTERN.fullmatch(value) is not None


def looks_like_full_wallet_key(value: Any) -> bool:
    """64-68 hex characters after an optional 0x prefix."""
    if not value or not isinstance(value, str):
        return False
    if value.startswith("0x"):
        value = value[2:]
    return FULL_WALLET_PATTERN.fullmatch(value) is not None


def looks_like_account_hash(value: Any) -> bool:
    """Account-hash formatted wallet reference."""
    if not value or not isinstance(value, str):
        return False
    return value.startswith(ACCOUNT_HASH_PREFIX)


def classify_identifier(value: Any) -> str:
    """
    Classify a user-supplied identifier.

    Returns:
        "wallet", "account_hash", "human_id" or "unknown"
    """
    if looks_like_full_wallet_key(value):
        return "wallet"
    if looks_like_account_hash(value):
        return "account_hash"
    if looks_like_human_id(value):
        return "human_id"
    return "unknown"
