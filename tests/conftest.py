import random

import pytest

from walletid.humanid import random_wallet
from walletid.lib.resolver import HumanIdResolver, InMemoryStore, JsonFileStore

# Wallets with independently computed vectors (sha256sum + base64 + LCG)
REFERENCE_WALLET = "0123456789abcdef0123456789abcdef0123456789abcdef0123456789abcd"

CASPER_WALLET = "0203a44378d9ccd3353ee2fe93c40a1be9518443334d86800aeefb23a4b96c55e3e1"


def pytest_configure(config):
    """Register custom markers."""
    config.addinivalue_line(
        "markers", "slow: long-running collision sweeps (deselect with -m 'not slow')"
    )


@pytest.fixture
def reference_wallet():
    return REFERENCE_WALLET


@pytest.fixture
def casper_wallet():
    return CASPER_WALLET


@pytest.fixture
def wallet_factory():
    """Returns a callable producing reproducible random wallet-like keys."""

    def make(count, seed=1234):
        rng = random.Random(seed)
        wallets = []
        seen = set()
        while len(wallets) < count:
            wallet = random_wallet(rng)
            if wallet not in seen:
                seen.add(wallet)
                wallets.append(wallet)
        return wallets

    return make


@pytest.fixture
def memory_store():
    return InMemoryStore()


@pytest.fixture
def resolver(memory_store):
    return HumanIdResolver(memory_store)


@pytest.fixture
def store_path(tmp_path, monkeypatch):
    """Per-test JSON store path, also installed as the CLI default."""
    path = tmp_path / "store" / "human_ids.json"
    monkeypatch.setattr("walletid.config.DEFAULT_STORE_PATH", str(path))
    monkeypatch.delenv("WALLETID_STORE", raising=False)
    return path


@pytest.fixture
def json_store(store_path):
    return JsonFileStore(store_path)
