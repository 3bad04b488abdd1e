"""Tests for the file-backed secret cache."""
import json
import stat

from dotsecrets.core.cache import CacheEntry, CacheManager


def _mode(path):
    return stat.S_IMODE(path.stat().st_mode)


class TestCacheEntry:
    """Test entry expiry rules."""

    def test_fresh_entry(self):
        entry = CacheEntry(key="k", value="v", created_at=100.0, ttl=300)
        assert not entry.is_expired(399.0)

    def test_expires_at_ttl(self):
        entry = CacheEntry(key="k", value="v", created_at=100.0, ttl=300)
        assert entry.is_expired(400.0)

    def test_zero_ttl_is_always_expired(self):
        entry = CacheEntry(key="k", value="v", created_at=100.0, ttl=0)
        assert entry.is_expired(100.0)


class TestCacheManager:
    """Test cache reads, writes and housekeeping."""

    def test_set_then_get(self, cache):
        assert cache.set("abc123", "secret", "API_KEY", "credential", "Employee", "personal")
        assert cache.get("secret", "API_KEY", "credential", "Employee", "personal") == "abc123"

    def test_miss_for_unknown_key(self, cache):
        assert cache.get("secret", "NOPE", "credential", "Employee", "personal") is None

    def test_hit_just_before_ttl(self, cache, clock):
        cache.set("abc123", "secret", "API_KEY")
        clock.advance(299)
        assert cache.get("secret", "API_KEY") == "abc123"

    def test_expired_after_ttl(self, cache, clock):
        cache.set("abc123", "secret", "API_KEY")
        clock.advance(301)
        assert cache.get("secret", "API_KEY") is None

    def test_zero_ttl_never_hits(self, tmp_path, clock):
        cache = CacheManager(tmp_path / "cache", ttl=0, clock=clock)
        assert cache.set("abc123", "secret", "API_KEY") is True
        assert cache.get("secret", "API_KEY") is None

    def test_current_ttl_governs_old_entries(self, tmp_path, clock):
        CacheManager(tmp_path / "cache", ttl=3600, clock=clock).set("v", "secret", "X")
        clock.advance(120)
        shorter = CacheManager(tmp_path / "cache", ttl=60, clock=clock)
        assert shorter.get("secret", "X") is None

    def test_disabled_cache_reports_success_and_writes_nothing(self, tmp_path):
        cache = CacheManager(tmp_path / "cache", enabled=False)
        assert cache.set("abc123", "secret", "API_KEY") is True
        assert cache.get("secret", "API_KEY") is None
        assert not (tmp_path / "cache").exists()

    def test_key_is_deterministic(self):
        key = CacheManager.key("secret", "API_KEY", "credential", "Employee", "personal")
        assert key == CacheManager.key("secret", "API_KEY", "credential", "Employee", "personal")
        assert len(key) == 64

    def test_key_separates_vaults_and_accounts(self):
        base = CacheManager.key("secret", "API_KEY", "credential", "Employee", "personal")
        assert base != CacheManager.key("secret", "API_KEY", "credential", "Private", "personal")
        assert base != CacheManager.key("secret", "API_KEY", "credential", "Employee", "work")

    def test_key_argument_order_matters(self):
        assert CacheManager.key("secret", "a", "b") != CacheManager.key("secret", "b", "a")

    def test_directory_is_owner_only(self, cache):
        assert _mode(cache.cache_dir) == 0o700

    def test_entry_file_is_owner_only(self, cache):
        cache.set("abc123", "secret", "API_KEY")
        entry = cache.cache_dir / f"{CacheManager.key('secret', 'API_KEY')}.json"
        assert _mode(entry) == 0o600
        assert json.loads(entry.read_text())["value"] == "abc123"

    def test_set_creates_missing_directory(self, tmp_path):
        cache = CacheManager(tmp_path / "later" / "cache")
        assert cache.set("v", "secret", "X")
        assert _mode(tmp_path / "later" / "cache") == 0o700

    def test_corrupt_entry_is_a_miss(self, cache):
        entry = cache.cache_dir / f"{CacheManager.key('secret', 'API_KEY')}.json"
        entry.write_text("{not json")
        assert cache.get("secret", "API_KEY") is None

    def test_unwritable_location_degrades_to_miss(self, tmp_path):
        blocker = tmp_path / "file"
        blocker.write_text("not a directory")
        cache = CacheManager(blocker / "cache")
        assert cache.set("v", "secret", "X") is False
        assert cache.get("secret", "X") is None

    def test_clear_removes_everything(self, cache):
        cache.set("v", "secret", "X")
        assert cache.clear()
        assert not cache.cache_dir.exists()
        assert cache.get("secret", "X") is None

    def test_clear_missing_directory(self, tmp_path):
        assert CacheManager(tmp_path / "never").clear()

    def test_sweep_removes_only_expired(self, cache, clock):
        cache.set("old", "secret", "A")
        clock.advance(200)
        cache.set("new", "secret", "B")
        clock.advance(150)

        assert cache.sweep() == 1
        assert cache.get("secret", "B") == "new"
        assert len(list(cache.cache_dir.glob("*.json"))) == 1

    def test_stats(self, cache, clock):
        cache.set("old", "secret", "A")
        clock.advance(301)
        cache.set("new", "secret", "B")

        stats = cache.stats()
        assert stats["entries"] == 2
        assert stats["expired"] == 1
        assert stats["ttl"] == 300
        assert stats["directory"] == str(cache.cache_dir)
        assert "value" not in stats
