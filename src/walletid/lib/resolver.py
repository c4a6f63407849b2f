"""
Wallet <-> human ID resolution.

The derivation core is pure; this module owns the stateful lifecycle around
it. A store keeps the wallet -> human ID mapping, and the resolver decides
when to derive, how to handle a human ID that another wallet already holds,
and how to answer reverse lookups.

Store contract (``HumanIdStore``):
- ``save`` is insert-if-absent on the wallet and returns the human ID that is
  bound to the wallet afterwards. Two callers racing to assign the same wallet
  therefore both see the single winning record.
- Human IDs are unique across wallets.
"""

import json
import os
import tempfile
import threading
import time
from dataclasses import dataclass
from pathlib import Path
from typing import Callable, Dict, Iterable, List, Optional, Protocol, Tuple, Union

from walletid.config import (
    ACCOUNT_HASH_PREFIX,
    DEFAULT_COLLISION_POLICY,
    DEFAULT_MAX_EXTRA_SEGMENTS,
    DEFAULT_NUM_SEGMENTS,
    DEFAULT_STRATEGY,
    DEFAULT_WORD_LENGTH,
    LEGACY_ACCOUNT_HASH_CHARS,
    STORE_LOCK_STALE_SECONDS,
    STORE_LOCK_TIMEOUT_SECONDS,
)
from walletid.errors import CollisionAmbiguityError, InvalidInputError, StoreError
from walletid.humanid.algorithms import (
    classify_identifier,
    derive,
    looks_like_human_id,
)
from .log import get_logger, log

COLLISION_POLICIES = ("extend", "raise")

STORE_FORMAT_VERSION = 1


class HumanIdStore(Protocol):
    """Persistence capability the resolver depends on."""

    def find_by_wallet(self, wallet: str) -> Optional[str]: ...

    def find_by_human_id(self, human_id: str) -> Optional[str]: ...

    def save(self, wallet: str, human_id: str) -> str: ...

    def rebind(self, old_wallet: str, new_wallet: str, human_id: str) -> None: ...

    def wallets(self) -> Iterable[str]: ...


class InMemoryStore:
    """Dict-backed store with a unique index on both wallet and human ID."""

    def __init__(self, records: Optional[Dict[str, str]] = None):
        self._lock = threading.Lock()
        self._by_wallet: Dict[str, str] = {}
        self._by_human_id: Dict[str, str] = {}
        for wallet, human_id in (records or {}).items():
            self._insert(wallet, human_id)

    # Subclasses hook persistence in here; both run with self._lock held.
    def _sync(self) -> None:
        pass

    def _apply(self, mutation: Callable, *args):
        return mutation(*args)

    def _insert(self, wallet: str, human_id: str) -> str:
        existing = self._by_wallet.get(wallet)
        if existing is not None:
            return existing
        owner = self._by_human_id.get(human_id)
        if owner is not None:
            raise CollisionAmbiguityError(human_id, wallet, owner)
        self._by_wallet[wallet] = human_id
        self._by_human_id[human_id] = wallet
        return human_id

    def _rebind(self, old_wallet: str, new_wallet: str, human_id: str) -> None:
        owner = self._by_human_id.get(human_id)
        if owner is not None and owner not in (old_wallet, new_wallet):
            raise CollisionAmbiguityError(human_id, new_wallet, owner)
        for wallet in (old_wallet, new_wallet):
            previous = self._by_wallet.pop(wallet, None)
            if previous is not None:
                self._by_human_id.pop(previous, None)
        self._by_wallet[new_wallet] = human_id
        self._by_human_id[human_id] = new_wallet

    def find_by_wallet(self, wallet: str) -> Optional[str]:
        with self._lock:
            self._sync()
            return self._by_wallet.get(wallet)

    def find_by_human_id(self, human_id: str) -> Optional[str]:
        with self._lock:
            self._sync()
            return self._by_human_id.get(human_id)

    def save(self, wallet: str, human_id: str) -> str:
        with self._lock:
            return self._apply(self._insert, wallet, human_id)

    def rebind(self, old_wallet: str, new_wallet: str, human_id: str) -> None:
        with self._lock:
            self._apply(self._rebind, old_wallet, new_wallet, human_id)

    def wallets(self) -> List[str]:
        with self._lock:
            self._sync()
            return list(self._by_wallet)

    def records(self) -> Dict[str, str]:
        with self._lock:
            self._sync()
            return dict(self._by_wallet)

    def __len__(self) -> int:
        with self._lock:
            self._sync()
            return len(self._by_wallet)


class StoreLock:
    """
    Cross-process writer lock: ``<path>`` is created with ``O_EXCL`` and
    removed on exit. A lock file older than ``stale_after`` seconds is
    assumed to belong to a crashed writer and is broken.
    """

    def __init__(
        self,
        path: Union[str, Path],
        timeout: float = STORE_LOCK_TIMEOUT_SECONDS,
        stale_after: float = STORE_LOCK_STALE_SECONDS,
    ):
        self.path = Path(path)
        self.timeout = timeout
        self.stale_after = stale_after
        self._logger = get_logger("store")

    def __enter__(self) -> "StoreLock":
        deadline = time.monotonic() + self.timeout
        while True:
            try:
                fd = os.open(self.path, os.O_WRONLY | os.O_CREAT | os.O_EXCL, 0o600)
            except FileExistsError:
                self._break_if_stale()
                if time.monotonic() >= deadline:
                    raise StoreError(
                        f"Timed out after {self.timeout}s waiting for {self.path}"
                    )
                time.sleep(0.01)
                continue
            except OSError as e:
                raise StoreError(f"Could not create lock {self.path}: {e}") from e

            with os.fdopen(fd, "w") as f:
                f.write(str(os.getpid()))
            return self

    def __exit__(self, *exc_info) -> bool:
        try:
            os.unlink(self.path)
        except FileNotFoundError:
            pass
        return False

    def _break_if_stale(self) -> None:
        try:
            age = time.time() - os.stat(self.path).st_mtime
        except FileNotFoundError:
            return
        if age <= self.stale_after:
            return

        log(self._logger, "warning", "Breaking stale store lock", path=self.path)
        try:
            os.unlink(self.path)
        except FileNotFoundError:
            pass


class JsonFileStore(InMemoryStore):
    """
    Store persisted as a JSON document::

        {"version": 1, "records": {"<wallet>": "<human_id>", ...}}

    The file is the source of truth. Reads pick up changes made by other
    processes, and every mutation takes ``<path>.lock``, reloads the file,
    applies the change and rewrites the file through a temporary file and an
    atomic rename. If the write fails the in-memory state is rolled back.
    """

    def __init__(
        self,
        path: Union[str, Path],
        lock_timeout: float = STORE_LOCK_TIMEOUT_SECONDS,
    ):
        super().__init__()
        self.path = Path(path)
        self.lock_path = self.path.with_name(self.path.name + ".lock")
        self.lock_timeout = lock_timeout
        self._logger = get_logger("store")
        self._signature: Optional[Tuple[int, int]] = None
        with self._lock:
            self._reload()

    def _stat_signature(self) -> Optional[Tuple[int, int]]:
        try:
            st = os.stat(self.path)
        except FileNotFoundError:
            return None
        return st.st_mtime_ns, st.st_size

    def _load(self) -> Dict[str, str]:
        if not self.path.exists():
            return {}
        try:
            with open(self.path, "r", encoding="utf-8") as f:
                data = json.load(f)
        except (OSError, json.JSONDecodeError) as e:
            raise StoreError(f"Could not read store {self.path}: {e}") from e

        if not isinstance(data, dict) or not isinstance(data.get("records"), dict):
            raise StoreError(f"Store {self.path} has no 'records' mapping")
        if data.get("version") != STORE_FORMAT_VERSION:
            raise StoreError(
                f"Unsupported store version {data.get('version')!r} in {self.path}"
            )

        log(
            self._logger,
            "debug",
            "Loaded store",
            path=self.path,
            records=len(data["records"]),
        )
        return data["records"]

    def _reload(self) -> None:
        signature = self._stat_signature()
        records = self._load()
        self._by_wallet, self._by_human_id = {}, {}
        try:
            for wallet, human_id in records.items():
                self._insert(wallet, human_id)
        except CollisionAmbiguityError as e:
            raise StoreError(f"Store {self.path} binds one human ID twice: {e}") from e
        self._signature = signature

    def _sync(self) -> None:
        if self._stat_signature() != self._signature:
            self._reload()

    def _apply(self, mutation: Callable, *args):
        self.path.parent.mkdir(parents=True, exist_ok=True)
        with StoreLock(self.lock_path, timeout=self.lock_timeout):
            self._reload()
            by_wallet = dict(self._by_wallet)
            by_human_id = dict(self._by_human_id)

            result = mutation(*args)
            if self._by_wallet != by_wallet:
                try:
                    self._flush()
                except StoreError:
                    self._by_wallet, self._by_human_id = by_wallet, by_human_id
                    raise
            return result

    def _flush(self) -> None:
        payload = {"version": STORE_FORMAT_VERSION, "records": self._by_wallet}
        fd, tmp_name = tempfile.mkstemp(
            prefix=f".{self.path.name}.", dir=str(self.path.parent)
        )
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                json.dump(payload, f, indent=2, sort_keys=True)
            os.replace(tmp_name, self.path)
        except OSError as e:
            if os.path.exists(tmp_name):
                os.unlink(tmp_name)
            raise StoreError(f"Could not write store {self.path}: {e}") from e
        self._signature = self._stat_signature()


@dataclass(frozen=True)
class Resolution:
    """Answer to "which wallet / human ID does this identifier refer to"."""

    identifier: str
    kind: str
    wallet: Optional[str]
    human_id: Optional[str]
    migrated: bool = False

    @property
    def found(self) -> bool:
        return self.wallet is not None


class HumanIdResolver:
    """
    Assigns and looks up human IDs against a store.

    A wallet's human ID never changes once stored, even if the derivation
    defaults are tuned later.

    Collision policies:
    - "extend": keep appending derived segments until the ID is free; the
      result stays a prefix-extension of the plain derivation
    - "raise": raise CollisionAmbiguityError immediately
    """

    def __init__(
        self,
        store: HumanIdStore,
        policy: str = DEFAULT_COLLISION_POLICY,
        max_extra_segments: int = DEFAULT_MAX_EXTRA_SEGMENTS,
        scan_fallback: bool = True,
        num_segments: int = DEFAULT_NUM_SEGMENTS,
        word_length: int = DEFAULT_WORD_LENGTH,
        strategy: str = DEFAULT_STRATEGY,
    ):
        if policy not in COLLISION_POLICIES:
            raise InvalidInputError(
                f"Unknown collision policy '{policy}'. "
                f"Valid policies: {list(COLLISION_POLICIES)}"
            )
        if max_extra_segments < 0:
            raise InvalidInputError("max_extra_segments must not be negative")

        self.store = store
        self.policy = policy
        self.max_extra_segments = max_extra_segments
        self.scan_fallback = scan_fallback
        self.num_segments = num_segments
        self.word_length = word_length
        self.strategy = strategy
        self._logger = get_logger("resolver")

    def _derive_human_id(self, wallet: str, num_segments: int) -> str:
        return derive(
            wallet,
            num_segments=num_segments,
            word_length=self.word_length,
            strategy=self.strategy,
        ).human_id

    def _pick_free_human_id(
        self, wallet: str, reclaimable: Tuple[str, ...] = ()
    ) -> str:
        """Apply the collision policy. IDs held by ``reclaimable`` count as free."""
        allowed_owners = (None, wallet) + reclaimable
        human_id = self._derive_human_id(wallet, self.num_segments)
        owner = self.store.find_by_human_id(human_id)
        if owner in allowed_owners:
            return human_id

        log(
            self._logger,
            "warning",
            "Human ID collision",
            human_id=human_id,
            wallet=wallet,
            existing_wallet=owner,
            policy=self.policy,
        )
        if self.policy == "raise":
            raise CollisionAmbiguityError(human_id, wallet, owner)

        for extra in range(1, self.max_extra_segments + 1):
            candidate = self._derive_human_id(wallet, self.num_segments + extra)
            if self.store.find_by_human_id(candidate) in allowed_owners:
                log(
                    self._logger,
                    "info",
                    "Collision resolved by extension",
                    human_id=candidate,
                    extra_segments=extra,
                )
                return candidate

        raise CollisionAmbiguityError(
            human_id,
            wallet,
            owner,
            message=(
                f"Human ID '{human_id}' for {wallet} still collides after "
                f"{self.max_extra_segments} extra segments"
            ),
        )

    def get_human_id(self, wallet: str, persist: bool = True) -> str:
        """
        Return the wallet's human ID, assigning one on first use.

        Args:
            wallet: Wallet address
            persist: Save a newly assigned ID; when False the ID is only computed

        Returns:
            The stored human ID, or the newly assigned one
        """
        if not isinstance(wallet, str) or not wallet:
            raise InvalidInputError("Wallet must be a non-empty string")

        existing = self.store.find_by_wallet(wallet)
        if existing is not None:
            return existing

        human_id = self._pick_free_human_id(wallet)
        if not persist:
            return human_id

        bound = self.store.save(wallet, human_id)
        if bound != human_id:
            log(
                self._logger,
                "info",
                "Concurrent assignment won by another caller",
                wallet=wallet,
                human_id=bound,
            )
        else:
            log(
                self._logger, "info", "Assigned human ID", wallet=wallet, human_id=bound
            )
        return bound

    def find_wallet_by_human_id(self, human_id: str) -> Optional[str]:
        """
        Reverse lookup. Uses the store index first; without a hit, and when
        ``scan_fallback`` is enabled, recomputes the derivation for every
        stored wallet. The scan is linear in the number of wallets.

        A scanned wallet only matches when the store also binds it to
        ``human_id``. A wallet that was extended past a colliding ID still
        derives that shorter ID but does not own it.
        """
        if not looks_like_human_id(human_id):
            return None

        wallet = self.store.find_by_human_id(human_id)
        if wallet is not None or not self.scan_fallback:
            return wallet

        log(
            self._logger,
            "warning",
            "Falling back to linear human ID scan",
            human_id=human_id,
        )
        num_segments = len(human_id.split("-"))
        for candidate in self.store.wallets():
            if self._derive_human_id(candidate, num_segments) != human_id:
                continue
            if self.store.find_by_wallet(candidate) == human_id:
                return candidate
        return None

    def _migrate_legacy(self, wallet: str) -> Optional[str]:
        legacy_wallet = ACCOUNT_HASH_PREFIX + wallet[:LEGACY_ACCOUNT_HASH_CHARS]
        if self.store.find_by_wallet(legacy_wallet) is None:
            return None

        human_id = self._pick_free_human_id(wallet, reclaimable=(legacy_wallet,))
        self.store.rebind(legacy_wallet, wallet, human_id)
        log(
            self._logger,
            "info",
            "Migrated legacy account-hash record",
            legacy_wallet=legacy_wallet,
            wallet=wallet,
            human_id=human_id,
        )
        return human_id

    def resolve_identifier(self, identifier: str) -> Resolution:
        """
        Resolve a wallet key, account hash or human ID.

        - Stored wallets resolve directly
        - Full wallet keys with an unmigrated ``account-hash-<prefix>`` record
          are migrated to the full key, under the collision policy
        - Human IDs resolve through ``find_wallet_by_human_id``
        - Unknown full wallet keys are assigned a human ID
        """
        if not isinstance(identifier, str) or not identifier.strip():
            raise InvalidInputError("Identifier must be a non-empty string")
        identifier = identifier.strip()
        kind = classify_identifier(identifier)

        existing = self.store.find_by_wallet(identifier)
        if existing is not None:
            return Resolution(identifier, kind, identifier, existing)

        if kind == "wallet":
            migrated_id = self._migrate_legacy(identifier)
            if migrated_id is not None:
                return Resolution(
                    identifier, kind, identifier, migrated_id, migrated=True
                )
            human_id = self.get_human_id(identifier)
            return Resolution(identifier, kind, identifier, human_id)

        if kind == "human_id":
            wallet = self.find_wallet_by_human_id(identifier)
            return Resolution(identifier, kind, wallet, identifier if wallet else None)

        return Resolution(identifier, kind, None, None)
