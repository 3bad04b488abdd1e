"""File-backed TTL cache for resolved secrets.

One JSON file per key under a directory only the owner can read. Keys are
sha256 digests of the operation and its ordered arguments, so concurrent
runs racing on the same entry can only cost an extra fetch.
"""
import hashlib
import json
import os
import shutil
import tempfile
import time
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Callable, Dict, Optional

from dotsecrets.core.errors import CacheIOError
from dotsecrets.core.logger import get_logger

logger = get_logger(__name__)

CACHE_SUFFIX = ".json"


@dataclass
class CacheEntry:
    """A single cached value with its creation time."""
    key: str
    value: str
    created_at: float
    ttl: int

    def is_expired(self, now: float, ttl: Optional[int] = None) -> bool:
        # ttl == 0 means every entry is already stale
        ttl = self.ttl if ttl is None else ttl
        return now - self.created_at >= ttl

    def to_dict(self) -> Dict[str, Any]:
        return {
            "key": self.key,
            "value": self.value,
            "created_at": self.created_at,
            "ttl": self.ttl,
        }


class CacheManager:
    """TTL cache keyed by content-addressed hashes."""

    def __init__(
        self,
        cache_dir: Path,
        ttl: int = 300,
        enabled: bool = True,
        clock: Callable[[], float] = time.time,
    ):
        """Initialize cache manager.

        Args:
            cache_dir: Directory holding one file per entry
            ttl: Seconds an entry stays valid (0 = never a hit)
            enabled: If False, get() always misses and set() writes nothing
            clock: Time source, injectable for tests
        """
        self.cache_dir = Path(cache_dir)
        self.ttl = ttl
        self.enabled = enabled
        self.clock = clock

    def init(self) -> bool:
        """Create the cache directory with owner-only permissions.

        Returns:
            True if the directory is ready (or caching is disabled)
        """
        if not self.enabled:
            return True
        try:
            self.cache_dir.mkdir(parents=True, exist_ok=True, mode=0o700)
            os.chmod(self.cache_dir, 0o700)
            return True
        except OSError as e:
            self._log_io_failure("initialize cache directory", e)
            return False

    @staticmethod
    def key(operation: str, *args: Any) -> str:
        """Deterministic key for an operation and its ordered arguments.

        Callers must include vault and account in args so identically named
        secrets from different namespaces never share an entry.
        """
        canonical = json.dumps(
            [operation, *[None if a is None else str(a) for a in args]],
            separators=(",", ":"),
            ensure_ascii=False,
        )
        return hashlib.sha256(canonical.encode("utf-8")).hexdigest()

    def _path_for(self, key: str) -> Path:
        return self.cache_dir / f"{key}{CACHE_SUFFIX}"

    def set(self, value: str, operation: str, *args: Any) -> bool:
        """Store value under the key for operation+args.

        Returns:
            True on success or when caching is disabled, False on I/O failure
        """
        if not self.enabled:
            return True

        key = self.key(operation, *args)
        entry = CacheEntry(key=key, value=value, created_at=self.clock(), ttl=self.ttl)

        if not self.cache_dir.exists() and not self.init():
            return False

        tmp_name = None
        try:
            fd, tmp_name = tempfile.mkstemp(dir=self.cache_dir, suffix=".tmp")
            with os.fdopen(fd, "w") as f:
                json.dump(entry.to_dict(), f)
            os.chmod(tmp_name, 0o600)
            os.replace(tmp_name, self._path_for(key))
            return True
        except OSError as e:
            self._log_io_failure(f"write cache entry {key[:12]}", e)
            if tmp_name and os.path.exists(tmp_name):
                try:
                    os.unlink(tmp_name)
                except OSError:
                    pass
            return False

    def _read_entry(self, path: Path) -> Optional[CacheEntry]:
        try:
            with open(path) as f:
                data = json.load(f)
            return CacheEntry(
                key=data["key"],
                value=data["value"],
                created_at=float(data["created_at"]),
                ttl=int(data.get("ttl", self.ttl)),
            )
        except FileNotFoundError:
            return None
        except (OSError, ValueError, KeyError, TypeError) as e:
            self._log_io_failure(f"read cache entry {path.name}", e)
            return None

    def get(self, operation: str, *args: Any) -> Optional[str]:
        """Return the cached value, or None on miss, expiry or I/O failure."""
        if not self.enabled or self.ttl <= 0:
            return None

        entry = self._read_entry(self._path_for(self.key(operation, *args)))
        if entry is None:
            return None

        # The manager's current TTL governs, not the TTL stored at write time
        if entry.is_expired(self.clock(), self.ttl):
            logger.debug(f"Cache expired: {entry.key[:12]}")
            return None

        return entry.value

    def clear(self) -> bool:
        """Remove the whole cache directory."""
        if not self.cache_dir.exists():
            return True
        try:
            shutil.rmtree(self.cache_dir)
            logger.debug(f"Cleared cache: {self.cache_dir}")
            return True
        except OSError as e:
            self._log_io_failure("clear cache", e)
            return False

    def sweep(self) -> int:
        """Remove expired or unreadable entries.

        Returns:
            Number of entries removed
        """
        if not self.cache_dir.exists():
            return 0

        removed = 0
        now = self.clock()
        for path in self.cache_dir.glob(f"*{CACHE_SUFFIX}"):
            entry = self._read_entry(path)
            if entry is not None and not entry.is_expired(now, self.ttl):
                continue
            try:
                path.unlink()
                removed += 1
            except FileNotFoundError:
                pass
            except OSError as e:
                self._log_io_failure(f"remove cache entry {path.name}", e)

        if removed:
            logger.debug(f"Swept {removed} expired cache entries")
        return removed

    def stats(self) -> Dict[str, Any]:
        """Summarize cache contents without exposing values."""
        total = 0
        expired = 0
        if self.cache_dir.exists():
            now = self.clock()
            for path in self.cache_dir.glob(f"*{CACHE_SUFFIX}"):
                total += 1
                entry = self._read_entry(path)
                if entry is None or entry.is_expired(now, self.ttl):
                    expired += 1
        return {
            "directory": str(self.cache_dir),
            "enabled": self.enabled,
            "ttl": self.ttl,
            "entries": total,
            "expired": expired,
        }

    def _log_io_failure(self, action: str, error: Exception) -> None:
        logger.warning(str(CacheIOError(f"Failed to {action}: {error}")))
