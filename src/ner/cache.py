"""
cache.py
────────
Keyed cache for expensive, thread-safe pipelines.

Each slot (typically one per tenant) holds the pipeline most recently built
for it together with the settings that produced it.  A request whose
settings equal the cached ones gets the cached pipeline; a request with
different settings triggers a rebuild, and the new pipeline replaces the old
one once it is ready.

Locking:
    * ``_lock`` guards the entry and slot-lock dictionaries and the handle
      counts.  It is only ever held for lookups and pointer swaps.
    * One lock per slot serializes construction for that slot.  Builds run
      under the slot lock only, so slots never wait on each other.

Replaced pipelines are retired, not destroyed: callers still holding a handle
keep using them, and ``on_discard`` is called once the last of those handles
is released.
"""

import logging
import threading
import time
from typing import Any, Callable, Dict, Hashable, List, Optional, TypeVar

from .errors import BuildFailure, InvalidInput

logger = logging.getLogger(__name__)

R = TypeVar("R")

Builder = Callable[[Any], Any]
DiscardHook = Callable[[Hashable, Any, Any], None]


class _Entry:
    """A built pipeline, the settings behind it and its open handle count."""

    __slots__ = ("settings", "pipeline", "refs", "retired")

    def __init__(self, settings: Any, pipeline: Any):
        self.settings = settings
        self.pipeline = pipeline
        self.refs = 0
        self.retired = False


class ScopedHandle:
    """Borrowed access to a cached pipeline.

    Use it as a context manager or through use(); both release the handle on
    every exit path.  The pipeline stays cached after release.
    """

    def __init__(self, cache: "PipelineCache", slot_key: Hashable, entry: _Entry):
        self._cache = cache
        self._slot_key = slot_key
        self._entry = entry
        self._released = False
        self._release_lock = threading.Lock()

    @property
    def slot_key(self) -> Hashable:
        return self._slot_key

    @property
    def settings(self) -> Any:
        return self._entry.settings

    @property
    def released(self) -> bool:
        return self._released

    @property
    def pipeline(self) -> Any:
        """The borrowed pipeline.

        Raises:
            RuntimeError: If the handle was already released.
        """
        if self._released:
            raise RuntimeError(f"Handle for slot {self._slot_key!r} was already released")
        return self._entry.pipeline

    def use(self, fn: Callable[[Any], R]) -> R:
        """Run fn with the pipeline, then release the handle.

        Args:
            fn: Callable receiving the pipeline.

        Returns:
            Whatever fn returns.
        """
        try:
            return fn(self.pipeline)
        finally:
            self.release()

    def release(self) -> None:
        """Give the handle back to the cache.  Safe to call more than once."""
        with self._release_lock:
            if self._released:
                return
            self._released = True
        self._cache._release(self._slot_key, self._entry)

    def __enter__(self) -> Any:
        return self.pipeline

    def __exit__(self, exc_type, exc, tb) -> None:
        self.release()

    def __repr__(self) -> str:
        state = "released" if self._released else "open"
        return f"ScopedHandle(slot={self._slot_key!r}, {state})"


class PipelineCache:
    """
    Slot-keyed cache of pipelines with settings-drift detection.

    The cache has no global instance: create one at startup, pass it to
    whatever needs pipelines, and close() it at shutdown (or use it as a
    context manager).
    """

    def __init__(self, builder: Builder, on_discard: Optional[DiscardHook] = None):
        """
        Initialize an empty cache.

        Args:
            builder: Callable turning settings into a pipeline.  May be slow
                     and may raise; it is called at most once per slot at a
                     time.
            on_discard: Optional callable (slot_key, settings, pipeline)
                        invoked when a superseded pipeline is no longer
                        referenced by any handle.
        """
        self._builder = builder
        self._on_discard = on_discard
        self._entries: Dict[Hashable, _Entry] = {}
        self._slot_locks: Dict[Hashable, threading.Lock] = {}
        self._lock = threading.Lock()
        self._closed = False
        self._build_count = 0

    # ─── Public API ──────────────────────────────────────────────────────

    def obtain(self, slot_key: Hashable, settings: Any) -> ScopedHandle:
        """
        Return a handle to a pipeline built from settings for slot_key.

        Args:
            slot_key: Hashable identifier of the slot.
            settings: Settings value the pipeline must reflect.

        Returns:
            An open ScopedHandle.

        Raises:
            InvalidInput: If slot_key is unhashable or settings is None.
            BuildFailure: If a build was needed and the builder failed.
            RuntimeError: If the cache was closed.
        """
        self._validate(slot_key, settings)

        entry = self._acquire_current(slot_key, settings)
        if entry is not None:
            logger.debug(f"Cache hit for slot {slot_key!r}")
            return ScopedHandle(self, slot_key, entry)

        with self._slot_lock(slot_key):
            # Another caller may have built matching settings while we waited
            entry = self._acquire_current(slot_key, settings)
            if entry is None:
                entry = self._build(slot_key, settings)
                self._commit(slot_key, entry)
        return ScopedHandle(self, slot_key, entry)

    def use(self, slot_key: Hashable, settings: Any, fn: Callable[[Any], R]) -> R:
        """Shorthand for obtain(slot_key, settings).use(fn)."""
        return self.obtain(slot_key, settings).use(fn)

    def settings_for(self, slot_key: Hashable) -> Optional[Any]:
        """Return the settings currently cached for slot_key, or None."""
        with self._lock:
            entry = self._entries.get(slot_key)
            return entry.settings if entry is not None else None

    def slots(self) -> List[Hashable]:
        """Return the keys of all slots that currently hold a pipeline."""
        with self._lock:
            return list(self._entries)

    @property
    def build_count(self) -> int:
        """Number of successful builds since the cache was created."""
        return self._build_count

    @property
    def closed(self) -> bool:
        return self._closed

    def clear(self) -> None:
        """
        Drop every cached pipeline.

        Pipelines with open handles are discarded when those handles are
        released; the rest are discarded immediately.
        """
        with self._lock:
            entries = list(self._entries.items())
            self._entries.clear()
            to_discard = [(key, e) for key, e in entries if self._retire(e)]
        for key, entry in to_discard:
            self._discard(key, entry)
        if entries:
            logger.info(f"Cleared {len(entries)} cached pipeline(s)")

    def close(self) -> None:
        """Clear the cache and refuse further obtain() calls."""
        with self._lock:
            self._closed = True
            # No build can start after this point
            self._slot_locks.clear()
        self.clear()

    def __enter__(self) -> "PipelineCache":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)

    def __contains__(self, slot_key: Hashable) -> bool:
        with self._lock:
            return slot_key in self._entries

    def __repr__(self) -> str:
        return f"PipelineCache(slots={len(self)}, builds={self._build_count})"

    # ─── Internals ───────────────────────────────────────────────────────

    def _validate(self, slot_key: Hashable, settings: Any) -> None:
        if self._closed:
            raise RuntimeError("PipelineCache is closed")
        try:
            hash(slot_key)
        except TypeError as exc:
            raise InvalidInput(f"Slot key must be hashable, got {type(slot_key).__name__}") from exc
        if settings is None:
            raise InvalidInput("Settings must not be None")

    def _slot_lock(self, slot_key: Hashable) -> threading.Lock:
        with self._lock:
            return self._slot_locks.setdefault(slot_key, threading.Lock())

    def _acquire_current(self, slot_key: Hashable, settings: Any) -> Optional[_Entry]:
        """Return the slot's entry with its handle count raised, if settings match."""
        with self._lock:
            entry = self._entries.get(slot_key)
            if entry is None or entry.settings != settings:
                return None
            entry.refs += 1
            return entry

    def _build(self, slot_key: Hashable, settings: Any) -> _Entry:
        logger.info(f"Building pipeline for slot {slot_key!r}")
        started = time.perf_counter()
        try:
            pipeline = self._builder(settings)
        except Exception as exc:
            logger.warning(f"Building pipeline for slot {slot_key!r} failed: {exc}")
            raise BuildFailure(slot_key, settings, exc) from exc
        elapsed = time.perf_counter() - started
        logger.info(f"Built pipeline for slot {slot_key!r} in {elapsed:.2f}s")
        return _Entry(settings, pipeline)

    def _commit(self, slot_key: Hashable, entry: _Entry) -> None:
        """Make entry current for slot_key and retire the entry it replaces."""
        with self._lock:
            if self._closed:
                # close() ran while we were building; the new pipeline is
                # handed to this caller only and dropped on release.
                entry.refs += 1
                entry.retired = True
                self._build_count += 1
                return
            old = self._entries.get(slot_key)
            self._entries[slot_key] = entry
            entry.refs += 1
            self._build_count += 1
            discard_old = old is not None and self._retire(old)
        if old is not None:
            logger.info(f"Replaced pipeline for slot {slot_key!r} after settings changed")
        if discard_old:
            self._discard(slot_key, old)

    def _release(self, slot_key: Hashable, entry: _Entry) -> None:
        with self._lock:
            entry.refs -= 1
            discard = entry.retired and entry.refs == 0
        if discard:
            self._discard(slot_key, entry)

    @staticmethod
    def _retire(entry: _Entry) -> bool:
        """Mark entry retired; return True if nothing references it anymore."""
        entry.retired = True
        return entry.refs == 0

    def _discard(self, slot_key: Hashable, entry: _Entry) -> None:
        logger.debug(f"Discarding superseded pipeline for slot {slot_key!r}")
        pipeline, entry.pipeline = entry.pipeline, None
        if self._on_discard is None:
            return
        # Handle counts are already settled when the hook runs
        try:
            self._on_discard(slot_key, entry.settings, pipeline)
        except Exception:
            logger.exception(f"on_discard hook failed for slot {slot_key!r}")
