"""File-backed, time-expiring cache for description results.

Each entry is stored as ``<cache_dir>/<key>.json`` with the layout::

    {"createdAtMs": 1718000000000, "value": {...}}

Reads fail open: a missing, unreadable, corrupt, expired or structurally
invalid entry is reported as a miss and the file is removed.  Writes fail loud:
the entry is written to a temporary file in the cache directory and moved over
the final path with ``os.replace`` so readers never observe a partial file, and
any error on that path propagates to the caller.
"""

import hashlib
import json
import logging
import os
import shutil
import tempfile
import time
from pathlib import Path
from typing import Annotated, Any, Callable, Optional, Union

from pydantic import (
    AllowInfNan,
    BaseModel,
    ConfigDict,
    Field,
    StrictFloat,
    StrictInt,
    ValidationError,
)

logger = logging.getLogger(__name__)

Clock = Callable[[], int]

# Timestamps must be finite.
FiniteStrictFloat = Annotated[StrictFloat, AllowInfNan(False)]


def system_clock_ms() -> int:
    """Current wall-clock time in epoch milliseconds."""
    return int(time.time() * 1000)


def sha256_hex(data: Union[str, bytes]) -> str:
    if isinstance(data, str):
        data = data.encode("utf-8")
    return hashlib.sha256(data).hexdigest()


class CacheEntry(BaseModel):
    """On-disk cache record."""

    model_config = ConfigDict(populate_by_name=True)

    created_at_ms: Union[StrictInt, FiniteStrictFloat] = Field(alias="createdAtMs")
    value: Any = None


class DescriptionCache:
    """JSON-file cache keyed by hex digests with a fixed time-to-live."""

    def __init__(
        self,
        cache_dir: Union[str, Path],
        ttl_ms: int,
        clock: Optional[Clock] = None,
    ) -> None:
        self.cache_dir = Path(cache_dir)
        self.ttl_ms = ttl_ms
        self.clock = clock or system_clock_ms

    def path_for_key(self, key: str) -> Path:
        return self.cache_dir / f"{key}.json"

    def get(self, key: str, validator: Optional[Callable[[Any], bool]] = None) -> Optional[Any]:
        """Return the cached value for ``key`` or ``None`` on any kind of miss."""
        cache_path = self.path_for_key(key)
        if not cache_path.exists():
            logger.debug("Cache miss for %s", key)
            return None

        try:
            with open(cache_path, "r", encoding="utf-8") as handle:
                raw = handle.read()
            entry = CacheEntry.model_validate_json(raw)
        except (OSError, ValueError, ValidationError) as exc:
            logger.warning("Discarding unreadable cache entry %s: %s", cache_path.name, exc)
            self._discard(cache_path)
            return None

        age_ms = self.clock() - entry.created_at_ms
        if not age_ms <= self.ttl_ms:
            logger.debug("Cache entry %s expired (%d ms old)", key, age_ms)
            self._discard(cache_path)
            return None

        if entry.value is None or (validator is not None and not validator(entry.value)):
            logger.warning("Discarding cache entry %s: value failed validation", cache_path.name)
            self._discard(cache_path)
            return None

        logger.debug("Cache hit for %s", key)
        return entry.value

    def set(self, key: str, value: Any) -> Path:
        """Atomically write ``value`` under ``key`` and return the entry path."""
        self.cache_dir.mkdir(parents=True, exist_ok=True)
        cache_path = self.path_for_key(key)
        payload = {"createdAtMs": self.clock(), "value": value}

        fd, tmp_name = tempfile.mkstemp(dir=self.cache_dir, prefix=f".{key}.", suffix=".tmp")
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as handle:
                json.dump(payload, handle, indent=2, ensure_ascii=False)
                handle.flush()
                os.fsync(handle.fileno())
            os.replace(tmp_name, cache_path)
        except BaseException:
            try:
                os.unlink(tmp_name)
            except FileNotFoundError:
                pass
            raise

        logger.debug("Cached %s", cache_path.name)
        return cache_path

    def invalidate(self, key: str) -> None:
        """Delete the entry for ``key``; an absent entry is not an error."""
        try:
            self.path_for_key(key).unlink()
        except FileNotFoundError:
            pass

    def clear(self) -> bool:
        """Remove the whole cache directory. Returns False when it did not exist."""
        if not self.cache_dir.exists():
            return False
        shutil.rmtree(self.cache_dir)
        return True

    def _discard(self, cache_path: Path) -> None:
        try:
            cache_path.unlink()
        except FileNotFoundError:
            pass
        except OSError as exc:
            logger.warning("Failed to delete stale cache entry %s: %s", cache_path.name, exc)
