"""walletid - Deterministic human-readable identifiers for wallet addresses."""

__version__ = "0.1.0"
__author__ = "walletid team"
__description__ = (
    "Deterministic wallet to human ID derivation with a pluggable resolver"
)

# Make key modules available at package level
from . import humanid
from . import lib

__all__ = ["humanid", "lib"]
