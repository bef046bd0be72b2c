"""Thread-safe LRU cache for decoded screenshots.

Decodes run on worker threads, so the cache is guarded by a lock.  Keys are
digests of the screenshot source (file path plus modification time, a data
URL, or raw bytes) so that assigning the same screenshot to a second frame,
or re-assigning it to the same frame, does not decode it again.

The module exposes factory and context-manager helpers so tests can swap the
cache without relying on import order.
"""

from __future__ import annotations

import hashlib
import os
from collections import OrderedDict
from contextlib import contextmanager
from threading import RLock
from typing import Any, Callable, Dict, Iterator, Optional, Tuple, Union

from . import config

Source = Union[str, bytes, os.PathLike]


def source_key(source: Source) -> str:
    """Return a stable cache key for a screenshot source."""
    digest = hashlib.md5()
    if isinstance(source, bytes):
        digest.update(b"bytes:")
        digest.update(source)
        return digest.hexdigest()
    text = os.fspath(source)
    if not text.startswith("data:") and os.path.isfile(text):
        stat = os.stat(text)
        text = f"file:{os.path.abspath(text)}:{stat.st_mtime_ns}:{stat.st_size}"
    digest.update(text.encode("utf-8"))
    return digest.hexdigest()


class ImageCache:
    """A small thread-safe LRU cache of ``(image, metadata)`` pairs."""

    def __init__(
        self,
        max_size: int = config.MAX_CACHE_SIZE,
        cleanup_threshold: float = config.CACHE_CLEANUP_THRESHOLD,
    ) -> None:
        if max_size <= 0:
            raise ValueError("max_size must be greater than zero")
        self.max_size = max_size
        self.cleanup_threshold = cleanup_threshold
        self._entries: "OrderedDict[str, Tuple[Any, Dict[str, Any]]]" = OrderedDict()
        self._lock = RLock()

    def get(self, key: str) -> Tuple[Optional[Any], Optional[Dict[str, Any]]]:
        """Return ``(image, metadata)`` for *key* or ``(None, None)``.

        A hit marks the entry as most recently used.
        """
        with self._lock:
            try:
                self._entries.move_to_end(key)
            except KeyError:
                return None, None
            return self._entries[key]

    def put(self, key: str, image: Any, metadata: Optional[Dict[str, Any]] = None) -> None:
        """Insert *key*, evicting old entries once the threshold is crossed."""
        with self._lock:
            if key in self._entries:
                self._entries.pop(key)
            elif len(self._entries) >= self.max_size * self.cleanup_threshold:
                self._evict()
            self._entries[key] = (image, dict(metadata or {}))

    def _evict(self) -> None:
        target = max(self.max_size // 2, 1)
        while len(self._entries) > target:
            self._entries.popitem(last=False)

    def cleanup(self) -> None:
        """Evict least-recently-used entries down to half capacity."""
        with self._lock:
            self._evict()

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)

    def __contains__(self, key: object) -> bool:
        with self._lock:
            return key in self._entries


_cache_factory: Callable[[], ImageCache] = ImageCache
_cache_instance: Optional[ImageCache] = None
_cache_factory_lock = RLock()


def configure_cache(factory: Callable[[], ImageCache], *, reset: bool = True) -> None:
    """Configure the factory used to lazily build the shared cache.

    Parameters
    ----------
    factory:
        A callable returning a configured :class:`ImageCache`.
    reset:
        When ``True`` (default) the current instance is discarded so the next
        :func:`get_cache` call builds a fresh one.
    """
    if not callable(factory):
        raise TypeError("factory must be callable")

    global _cache_factory, _cache_instance
    with _cache_factory_lock:
        _cache_factory = factory
        if reset:
            _cache_instance = None


def get_cache() -> ImageCache:
    """Return the lazily constructed shared cache."""
    global _cache_instance
    with _cache_factory_lock:
        if _cache_instance is None:
            _cache_instance = _cache_factory()
        return _cache_instance


@contextmanager
def override_cache(cache: ImageCache) -> Iterator[ImageCache]:
    """Temporarily replace the shared cache within a ``with`` block."""
    global _cache_factory, _cache_instance
    with _cache_factory_lock:
        previous_factory = _cache_factory
        previous_instance = _cache_instance
        _cache_factory = lambda: cache  # noqa: E731
        _cache_instance = cache
    try:
        yield cache
    finally:
        with _cache_factory_lock:
            _cache_factory = previous_factory
            _cache_instance = previous_instance


__all__ = [
    "ImageCache",
    "configure_cache",
    "get_cache",
    "override_cache",
    "source_key",
]
