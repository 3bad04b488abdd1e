"""Shared test fixtures for dotsecrets tests."""
import os

import pytest

from dotsecrets.core.cache import CacheManager
from dotsecrets.core.config import set_config
from dotsecrets.core.resolver import SecretResolver
from dotsecrets.services.providers import InMemoryProvider


class FakeClock:
    """Manually advanced time source for cache tests."""

    def __init__(self, now: float = 1_700_000_000.0):
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture(autouse=True)
def isolated_env(tmp_path, monkeypatch):
    """Keep every test away from the real cache, settings and account."""
    for name in list(os.environ):
        if name.startswith("DOTSECRETS_") or name == "OP_ACCOUNT_OVERRIDE":
            monkeypatch.delenv(name, raising=False)
    home = tmp_path / "home"
    home.mkdir()
    monkeypatch.setenv("HOME", str(home))
    monkeypatch.setenv("DOTSECRETS_CACHE_DIR", str(tmp_path / "cache"))
    monkeypatch.chdir(tmp_path)
    set_config(None)
    yield
    set_config(None)


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def cache(tmp_path, clock):
    """Enabled cache with a controllable clock."""
    manager = CacheManager(cache_dir=tmp_path / "cache", ttl=300, clock=clock)
    manager.init()
    return manager


@pytest.fixture
def provider():
    """In-memory store seeded with a few secrets in the default vault."""
    return InMemoryProvider(
        secrets={
            "API_KEY": {"credential": "abc123"},
            "DB_PW": {"credential": "s3cr3t", "username": "app"},
            "GITHUB_TOKEN": {"credential": "ghp_xyz"},
        },
        account="personal",
    )


@pytest.fixture
def resolver(provider, cache):
    return SecretResolver(provider, cache)
