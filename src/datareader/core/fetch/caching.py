"""
On-disk response cache.

Each entry is two files named by the SHA-256 of the request fingerprint:

    <digest>.cache   raw response bytes
    <digest>.meta    JSON sidecar with key / stored_at / ttl / size

Expiry is decided from the sidecar, never from file modification times.
Both files are written to a temporary name first and moved into place with
os.replace, so a concurrent reader sees either the old entry or the new one.
"""

from __future__ import annotations

import hashlib
import logging
import os
import tempfile
import threading
import time
from pathlib import Path
from typing import Any, Callable

import orjson

logger = logging.getLogger(__name__)

DATA_SUFFIX = ".cache"
META_SUFFIX = ".meta"


def cache_key(fingerprint: str) -> str:
    """Filesystem-safe name for a fingerprint."""
    return hashlib.sha256(fingerprint.encode("utf-8")).hexdigest()


class ResponseCache:
    """TTL-bounded file cache for raw response bytes.

    A cache built without a directory is disabled: `get` always misses
    and `set`/`delete` do nothing.
    """

    def __init__(
        self,
        cache_dir: Path | str | None,
        clock: Callable[[], float] = time.time,
    ):
        """Initialize cache.

        Args:
            cache_dir: Directory holding entries (None or "" disables caching)
            clock: Wall-clock time source, seconds since the epoch
        """
        self.cache_dir = Path(cache_dir) if cache_dir else None
        self._clock = clock
        self._lock = threading.Lock()
        self._hits = 0
        self._misses = 0

    @property
    def enabled(self) -> bool:
        return self.cache_dir is not None

    def _paths(self, fingerprint: str) -> tuple[Path, Path]:
        assert self.cache_dir is not None
        key = cache_key(fingerprint)
        return self.cache_dir / f"{key}{DATA_SUFFIX}", self.cache_dir / f"{key}{META_SUFFIX}"

    def _is_fresh(self, meta: dict[str, Any]) -> bool:
        ttl = float(meta.get("ttl", 0))
        if ttl <= 0:
            return True
        return self._clock() - float(meta["stored_at"]) < ttl

    def get(self, fingerprint: str) -> tuple[bytes | None, bool]:
        """Look up an entry.

        Returns:
            (payload, True) for a fresh entry, (None, False) otherwise
        """
        if not self.enabled:
            return None, False

        data_path, meta_path = self._paths(fingerprint)
        with self._lock:
            try:
                meta = orjson.loads(meta_path.read_bytes())
                fresh = self._is_fresh(meta)
                payload = data_path.read_bytes() if fresh else None
            except FileNotFoundError:
                fresh, payload = False, None
            except (OSError, ValueError, KeyError, TypeError) as e:
                logger.debug("Unreadable cache entry %s: %s", meta_path.name, e)
                fresh, payload = False, None

            if not fresh:
                self._misses += 1
                return None, False
            self._hits += 1

        return payload, True

    def set(self, fingerprint: str, payload: bytes, ttl: float = 0) -> None:
        """Store an entry.

        Args:
            fingerprint: Request fingerprint
            payload: Raw response bytes
            ttl: Lifetime in seconds (0 never expires)
        """
        if not self.enabled:
            return

        data_path, meta_path = self._paths(fingerprint)
        # Only the digest is stored: fingerprints carry request headers
        meta = {
            "key": data_path.stem,
            "stored_at": self._clock(),
            "ttl": max(0.0, float(ttl)),
            "size": len(payload),
        }
        with self._lock:
            self.cache_dir.mkdir(parents=True, exist_ok=True)
            self._write_atomic(data_path, payload)
            self._write_atomic(meta_path, orjson.dumps(meta))

    def delete(self, fingerprint: str) -> None:
        """Remove an entry; missing entries are ignored."""
        if not self.enabled:
            return

        with self._lock:
            for path in self._paths(fingerprint):
                try:
                    path.unlink()
                except FileNotFoundError:
                    pass

    def clear(self) -> int:
        """Remove all entries. Returns the number of entries removed."""
        if not self.enabled or not self.cache_dir.exists():
            return 0

        removed = 0
        with self._lock:
            for meta_path in self.cache_dir.glob(f"*{META_SUFFIX}"):
                meta_path.with_suffix(DATA_SUFFIX).unlink(missing_ok=True)
                meta_path.unlink(missing_ok=True)
                removed += 1
        return removed

    def _write_atomic(self, path: Path, content: bytes) -> None:
        fd, tmp_name = tempfile.mkstemp(dir=path.parent, prefix=".tmp-", suffix=path.suffix)
        try:
            with os.fdopen(fd, "wb") as f:
                f.write(content)
            os.replace(tmp_name, path)
        except BaseException:
            Path(tmp_name).unlink(missing_ok=True)
            raise

    def stats(self) -> dict[str, Any]:
        """Get cache statistics."""
        with self._lock:
            hits, misses = self._hits, self._misses
        return {
            "enabled": self.enabled,
            "cache_dir": str(self.cache_dir) if self.cache_dir else None,
            "hits": hits,
            "misses": misses,
        }
