"""
Human ID Collision Scanning

Empirical checks for the derivation: feed many random wallet-like strings
through ``derive`` and record every human ID that two wallets share.

- ``scan_for_collisions``: fixed-size sweep, used to confirm that the default
  shape yields no collisions at realistic populations
- ``find_collision``: stop at the first collision, used to demonstrate how
  quickly a deliberately tiny shape collides
"""

import math
import random
import time
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Set, Tuple

from walletid.config import DEFAULT_NUM_SEGMENTS, DEFAULT_WORD_LENGTH
from walletid.errors import InvalidInputError
from walletid.lib.log import get_logger, log
from .algorithms import derive
from .security import calculate_id_space

# Casper-style public key: 1-byte algorithm tag + 32-byte key
_KEY_TAGS = ("01", "02")
_KEY_BYTES = 32


@dataclass
class CollisionReport:
    """Outcome of a collision sweep."""

    attempts: int
    num_segments: int
    word_length: int
    collisions: List[Tuple[str, str, str]] = field(default_factory=list)
    dropped_segments: int = 0
    elapsed_seconds: float = 0.0

    @property
    def id_space(self) -> int:
        return calculate_id_space(self.num_segments, self.word_length)

    @property
    def expected_attempts(self) -> float:
        """Birthday estimate of attempts before the first collision."""
        return math.sqrt(self.id_space * math.pi / 2)

    @property
    def rate(self) -> float:
        if self.elapsed_seconds <= 0:
            return 0.0
        return self.attempts / self.elapsed_seconds


def random_wallet(rng: random.Random) -> str:
    """Generate a random wallet-like hex public key."""
    tag = rng.choice(_KEY_TAGS)
    return tag + "".join(f"{rng.getrandbits(8):02x}" for _ in range(_KEY_BYTES))


def _sweep(
    max_attempts: int,
    num_segments: int,
    word_length: int,
    seed: Optional[int],
    stop_on_first: bool,
) -> CollisionReport:
    if max_attempts <= 0:
        raise InvalidInputError(f"Attempt count must be positive, got {max_attempts}")

    logger = get_logger("collisions")
    rng = random.Random(seed)
    report = CollisionReport(
        attempts=0, num_segments=num_segments, word_length=word_length
    )
    seen: Dict[str, str] = {}
    wallets: Set[str] = set()
    progress_step = max(max_attempts // 10, 1)
    start_time = time.time()

    while report.attempts < max_attempts:
        wallet = random_wallet(rng)
        if wallet in wallets:
            continue
        wallets.add(wallet)
        result = derive(wallet, num_segments=num_segments, word_length=word_length)
        report.attempts += 1

        report.dropped_segments += num_segments - len(result.segments)

        existing = seen.get(result.human_id)
        if existing is not None:
            report.collisions.append((result.human_id, existing, wallet))
            log(
                logger,
                "info",
                "Collision found",
                human_id=result.human_id,
                attempts=report.attempts,
            )
            if stop_on_first:
                break
        else:
            seen[result.human_id] = wallet

        if report.attempts % progress_step == 0:
            log(
                logger,
                "debug",
                "Collision sweep progress",
                attempts=report.attempts,
                max_attempts=max_attempts,
            )

    report.elapsed_seconds = time.time() - start_time
    return report


def scan_for_collisions(
    count: int,
    num_segments: int = DEFAULT_NUM_SEGMENTS,
    word_length: int = DEFAULT_WORD_LENGTH,
    seed: Optional[int] = None,
) -> CollisionReport:
    """
    Derive ``count`` random wallets and record all human ID collisions.

    Args:
        count: Number of distinct wallets to derive
        num_segments: Words per human ID
        word_length: Syllables per word
        seed: Seed for the wallet generator (reproducible sweeps)

    Returns:
        CollisionReport with every colliding (human_id, wallet_a, wallet_b)
    """
    return _sweep(count, num_segments, word_length, seed, stop_on_first=False)


def find_collision(
    num_segments: int = 1,
    word_length: int = 1,
    max_attempts: int = 10000,
    seed: Optional[int] = None,
) -> CollisionReport:
    """
    Search for the first collision in a small ID space.

    With the default single one-syllable segment there are only 50 human IDs,
    so a collision appears within a handful of attempts.
    """
    return _sweep(max_attempts, num_segments, word_length, seed, stop_on_first=True)
