# Shared application constants

import os
from pathlib import Path

# --- Derivation defaults ---
# Changing any of these changes every wallet's derived human ID.
DEFAULT_NUM_SEGMENTS = 4
DEFAULT_WORD_LENGTH = 2
DEFAULT_SHORT_ID_LENGTH = 20
INTERNAL_ID_PREFIX_LENGTH = 8
DEFAULT_STRATEGY = "flat"

# --- Wallet formats ---
ACCOUNT_HASH_PREFIX = "account-hash-"
# Unmigrated records were keyed as account-hash-<first N chars of the key>.
LEGACY_ACCOUNT_HASH_CHARS = 16

# --- Resolver ---
DEFAULT_COLLISION_POLICY = "extend"
DEFAULT_MAX_EXTRA_SEGMENTS = 4

# --- Storage Configuration ---
# These paths can be monkeypatched in tests to redirect storage.
DEFAULT_STORE_PATH = os.getenv(
    "WALLETID_STORE", str(Path.home() / ".walletid" / "human_ids.json")
)

# --- Logging ---
LOG_LEVEL_ENV = "WALLETID_LOG_LEVEL"

# --- Store locking ---
# Writers hold <store>.lock while they reload, merge and rewrite the file.
STORE_LOCK_TIMEOUT_SECONDS = 10.0
# A lock older than this is left over from a crashed writer.
STORE_LOCK_STALE_SECONDS = 60.0
