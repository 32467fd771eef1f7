from __future__ import annotations
from contextlib import contextmanager
from dataclasses import dataclass, field
from datetime import datetime
from typing import Iterator, List, Mapping, Optional, Tuple, Union
from types import MappingProxyType
import logging
import threading

from .config import EngineConfig
from .errors import DrainTimeout, NotCompiledError
from .eventlog import EventLog
from .features import CWatchImage, CWatcher, CWatchZone, CompiledFeatureStore, build_store
from .pause import TimeLike
from .profile import GameProfile

logger = logging.getLogger(__name__)

@dataclass
class CompileResult:
    feature_count: int
    pixel_count: int
    has_dupe_check: bool
    index_names: Mapping[str, int]
    warnings: List[str] = field(default_factory=list)

class FeatureEngine:
    """Owns the compiled feature store for one bound profile.

    The scan loop brackets each evaluation with :meth:`scanning`; :meth:`compile`
    builds the replacement store aside, stops new scans, waits for in-flight ones
    to finish and swaps the store and its pause ledger in one assignment. A failed
    compile leaves the previous store published.
    """

    def __init__(self, config: Optional[EngineConfig] = None, event_log: Optional[EventLog] = None):
        self.config = config or EngineConfig()
        self.event_log = event_log or EventLog()
        self._store: Optional[CompiledFeatureStore] = None
        self._cond = threading.Condition()
        self._compile_lock = threading.Lock()
        self._compiling = False
        self._in_flight = 0
        self._closed = False

    # -- compilation ------------------------------------------------------

    def compile(self, profile: GameProfile, pixel_limit: Optional[int] = None) -> CompileResult:
        with self._compile_lock:
            if self._closed:
                raise NotCompiledError("Engine is closed")
            self.event_log.log(f"Compiling features for profile '{profile.name}'...")
            try:
                store = build_store(profile, pixel_limit, self.config)
            except Exception as e:
                self.event_log.log("Compilation failed; keeping the previous features.")
                self.event_log.log_exception(e)
                raise

            try:
                old = self._publish(store)
            except DrainTimeout as e:
                store.close()
                self.event_log.log_exception(e)
                raise
            if old is not None:
                old.close()

            for w in store.warnings:
                self.event_log.log(w)
            self.event_log.log(f"Compiled {store.feature_count} features ({store.pixel_count} pixels).")
            return CompileResult(
                feature_count=store.feature_count,
                pixel_count=store.pixel_count,
                has_dupe_check=store.has_dupe_check,
                index_names=store.index_names,
                warnings=list(store.warnings),
            )

    def _publish(self, store: Optional[CompiledFeatureStore]) -> Optional[CompiledFeatureStore]:
        timeout = self.config.drain_timeout
        with self._cond:
            self._compiling = True
            try:
                if not self._cond.wait_for(lambda: self._in_flight == 0, timeout=timeout):
                    raise DrainTimeout(f"{self._in_flight} scan(s) still running after {timeout:.2f}s")
                old, self._store = self._store, store
                logger.debug("Published store with %d features", 0 if store is None else store.feature_count)
                return old
            finally:
                self._compiling = False
                self._cond.notify_all()

    @property
    def is_compiling(self) -> bool:
        return self._compiling

    # -- scan side --------------------------------------------------------

    def begin_scan(self) -> Optional[CompiledFeatureStore]:
        """Register an in-flight evaluation. Returns ``None`` when no store may be read."""
        with self._cond:
            if self._compiling or self._store is None:
                return None
            self._in_flight += 1
            return self._store

    def end_scan(self) -> None:
        with self._cond:
            if self._in_flight <= 0:
                raise RuntimeError("end_scan() without a matching begin_scan()")
            self._in_flight -= 1
            if self._in_flight == 0:
                self._cond.notify_all()

    @contextmanager
    def scanning(self) -> Iterator[Optional[CompiledFeatureStore]]:
        store = self.begin_scan()
        try:
            yield store
        finally:
            if store is not None:
                self.end_scan()

    @property
    def in_flight(self) -> int:
        return self._in_flight

    # -- queries ----------------------------------------------------------

    def _current(self) -> CompiledFeatureStore:
        store = self._store
        if store is None:
            raise NotCompiledError("No features have been compiled")
        return store

    @property
    def store(self) -> Optional[CompiledFeatureStore]:
        return self._store

    @property
    def feature_count(self) -> int:
        store = self._store
        return 0 if store is None else store.feature_count

    @property
    def pixel_count(self) -> int:
        store = self._store
        return 0 if store is None else store.pixel_count

    @property
    def has_dupe_check(self) -> bool:
        store = self._store
        return False if store is None else store.has_dupe_check

    @property
    def index_names(self) -> Mapping[str, int]:
        store = self._store
        return MappingProxyType({}) if store is None else store.index_names

    def is_paused(self, key: Union[int, str], at: Optional[TimeLike] = None) -> bool:
        """Pause state of a feature index, a zone name, or an alias."""
        store = self._current()
        at = datetime.now() if at is None else at
        if isinstance(key, str):
            if any(z.name == key for z in store.zones):
                return store.is_zone_paused(key, at)
            return store.is_feature_paused(store.resolve(key), at)
        return store.is_feature_paused(int(key), at)

    def is_watcher_paused(self, name: str, at: Optional[TimeLike] = None) -> bool:
        return self._current().is_watcher_paused(name, datetime.now() if at is None else at)

    def is_all_paused(self, at: Optional[TimeLike] = None) -> bool:
        return self._current().is_all_paused(datetime.now() if at is None else at)

    def pause_feature(self, index: int, until: TimeLike) -> None:
        self._current().ledger.pause(index, until)

    def resume_feature(self, index: int, until: TimeLike) -> None:
        self._current().ledger.resume(index, until)

    def features(self) -> List[CWatchImage]:
        store = self._store
        return [] if store is None else list(store.images())

    def zones(self) -> List[CWatchZone]:
        store = self._store
        return [] if store is None else list(store.zones)

    def watchers(self) -> List[Tuple[CWatchZone, CWatcher]]:
        store = self._store
        return [] if store is None else list(store.watchers())

    # -- lifecycle --------------------------------------------------------

    def close(self) -> None:
        with self._compile_lock:
            if self._closed:
                return
            old = self._publish(None)
            self._closed = True
            if old is not None:
                old.close()
            self.event_log.log("Feature engine closed.")

    def __enter__(self):
        return self

    def __exit__(self, *exc):
        self.close()
