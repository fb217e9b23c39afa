from __future__ import annotations

import copy
import threading
from datetime import datetime
from typing import Any, Callable, Dict, Iterable, List, Optional

from toggles.core.audit import ToggleAuditLogger
from toggles.core.codec.values import ValueFormatError
from toggles.core.errors import DecodeError, SchemaMismatch, ToggleError, UnknownKeyError, ValidationError
from toggles.core.logger import get_logger
from toggles.core.persistence.base import NoPersistence, Persistence, call_with_timeout
from toggles.core.persistence.models import HistoryEntry, Snapshot, SnapshotEntry, utcnow
from toggles.core.store.definition import ToggleDefinition, ToggleState, ToggleView
from toggles.core.store.last_reload import LastReload
from toggles.core.store.rwlock import ReadWriteLock


class ToggleStore:
    """
    Typed toggle values kept in memory and synchronized with a persistence
    backend.

    Readers only ever take the read side of `_rw`. `reload` and `update`
    build a complete new value map first and publish it with a single swap
    under the write side, so a reader sees either all old or all new values.
    `_io_lock` serializes every load-then-publish and save-then-publish
    sequence; `_update_lock` serializes whole read-modify-write updates.
    """

    def __init__(
        self,
        definitions: Iterable[ToggleDefinition],
        persistence: Optional[Persistence] = None,
        *,
        logger=None,
        audit_logger: Optional[ToggleAuditLogger] = None,
        backend_timeout_seconds: Optional[float] = 10.0,
        max_history: Optional[int] = 100,
        clock: Optional[Callable[[], datetime]] = None,
    ):
        self._definitions: Dict[str, ToggleDefinition] = {}
        for d in definitions:
            if d.key in self._definitions:
                raise SchemaMismatch(f"Toggle {d.key!r} is declared twice.", key=d.key)
            check_default(d)
            self._definitions[d.key] = d

        self.persistence = persistence or NoPersistence()
        self.logger = logger or get_logger("store")
        self.audit_logger = audit_logger
        self.backend_timeout_seconds = backend_timeout_seconds
        self.max_history = max_history
        self._clock = clock or utcnow

        self._rw = ReadWriteLock()
        self._io_lock = threading.Lock()
        self._update_lock = threading.Lock()

        self._states: Dict[str, ToggleState] = {k: ToggleState.from_default(d) for k, d in self._definitions.items()}
        self._snapshot: Optional[Snapshot] = None
        self._last_reload = LastReload()

    # ---- reads ----
    def read(self, key: str) -> Any:
        with self._rw.read():
            state = self._states.get(key)
        if state is None:
            raise UnknownKeyError(key)
        return copy.deepcopy(state.value)

    def values(self) -> Dict[str, Any]:
        """All current values, taken from a single published state."""
        with self._rw.read():
            states = self._states
        return {k: copy.deepcopy(s.value) for k, s in states.items()}

    def keys(self) -> List[str]:
        return list(self._definitions.keys())

    def definition(self, key: str) -> ToggleView:
        d = self._definition(key)
        with self._rw.read():
            state = self._states[key]
        return self._view(d, state)

    def definitions(self) -> List[ToggleView]:
        with self._rw.read():
            states = self._states
        return [self._view(d, states[k]) for k, d in self._definitions.items()]

    def history(self, key: str) -> List[HistoryEntry]:
        self._definition(key)
        with self._rw.read():
            state = self._states[key]
        return [h.model_copy(deep=True) for h in state.history]

    def last_reload(self) -> LastReload:
        with self._rw.read():
            return self._last_reload

    def current_version(self) -> Optional[int]:
        with self._rw.read():
            return self._snapshot.version if self._snapshot is not None else None

    # ---- writes ----
    def reload(self) -> LastReload:
        """
        Replace every value with what the backend holds. Raises on any
        failure, in which case no value changes.
        """
        with self._io_lock:
            return self._reload_locked()

    def update(self, key: str, value: Any, modified_by: Optional[str] = None) -> ToggleView:
        d = self._definition(key)
        try:
            raw = d.codec.as_json(value)
        except ValueFormatError as e:
            raise ValidationError(f"Invalid value for {key!r}: {e}", key=key, constraint=e.constraint) from e
        except (TypeError, ValueError, OverflowError) as e:
            raise ValidationError(f"Invalid value for {key!r}: {e}", key=key, constraint="type") from e
        return self.update_json(key, raw, modified_by)

    def update_json(self, key: str, raw: Any, modified_by: Optional[str] = None) -> ToggleView:
        """
        Validate `raw`, then reload, persist a snapshot carrying the new value
        and publish it. If the reload or the save fails the error is raised and
        memory is left as it was.
        """
        d = self._definition(key)
        try:
            d.codec.validate(raw)
            value = d.codec.from_json(raw)
            # stored form is always the codec's canonical encoding
            raw = d.codec.as_json(value)
        except ValueFormatError as e:
            raise ValidationError(f"Invalid value for {key!r}: {e}", key=key, constraint=e.constraint) from e
        except (TypeError, ValueError, OverflowError) as e:
            raise ValidationError(f"Invalid value for {key!r}: {e}", key=key, constraint="type") from e

        with self._update_lock, self._io_lock:
            self._reload_locked()
            with self._rw.read():
                base = self._snapshot
            snapshot = self._next_snapshot(base, d, raw, value, modified_by)
            try:
                call_with_timeout(lambda: self.persistence.save(snapshot), self.backend_timeout_seconds, "save")
            except ToggleError as e:
                self.logger.warning(f"Toggle update of {key!r} not saved: {e}")
                raise
            states = self._decode_snapshot(snapshot)
            with self._rw.write():
                self._states = states
                self._snapshot = snapshot
                self._last_reload = self._last_reload.data(self._clock(), version=snapshot.version, version_date=snapshot.date)
            view = self._view(d, states[key])

        self.logger.info(f"Toggle {key!r} set to {view.value_overview} by {modified_by or 'unknown'} (version {snapshot.version})")
        if self.audit_logger is not None:
            try:
                self.audit_logger.log(
                    event="toggle.updated",
                    key=key,
                    modified_by=modified_by,
                    version=snapshot.version,
                    details={"value_overview": view.value_overview},
                )
            except OSError as e:
                self.logger.warning(f"Toggle audit write failed: {e}")
        return view

    # ---- internals ----
    def _definition(self, key: str) -> ToggleDefinition:
        d = self._definitions.get(key)
        if d is None:
            raise UnknownKeyError(key)
        return d

    def _reload_locked(self) -> LastReload:
        try:
            snapshot = call_with_timeout(self.persistence.load, self.backend_timeout_seconds, "load")
            if snapshot is None:
                states = {k: ToggleState.from_default(d) for k, d in self._definitions.items()}
            else:
                states = self._decode_snapshot(snapshot)
        except ToggleError as e:
            with self._rw.write():
                self._last_reload = self._last_reload.failed(self._clock(), str(e))
            self.logger.warning(f"Toggle reload failed, keeping previous values: {e}")
            raise

        now = self._clock()
        with self._rw.write():
            self._states = states
            self._snapshot = snapshot
            if snapshot is None:
                self._last_reload = self._last_reload.no_data(now)
            else:
                self._last_reload = self._last_reload.data(now, version=snapshot.version, version_date=snapshot.date)
            return self._last_reload

    def _decode_snapshot(self, snapshot: Snapshot) -> Dict[str, ToggleState]:
        states: Dict[str, ToggleState] = {}
        for key, d in self._definitions.items():
            entry = snapshot.toggles.get(key)
            if entry is None:
                states[key] = ToggleState.from_default(d)
                continue
            try:
                value = d.codec.from_json(entry.value)
            except Exception as e:  # noqa: BLE001
                raise DecodeError(f"Stored value for {key!r} is invalid: {e}", key=key, raw=entry.value) from e
            states[key] = ToggleState(
                value=value,
                raw=entry.value,
                modified_at=entry.modified_at,
                modified_by=entry.modified_by,
                history=tuple(entry.history),
            )
        return states

    def _next_snapshot(
        self,
        base: Optional[Snapshot],
        d: ToggleDefinition,
        raw: Any,
        value: Any,
        modified_by: Optional[str],
    ) -> Snapshot:
        toggles = dict(base.toggles) if base is not None else {}
        previous = toggles.get(d.key)
        history = list(previous.history) if previous is not None else []

        now = self._clock()
        # history stays ordered even if the wall clock stepped backwards
        if history and history[0].modified_at > now:
            now = history[0].modified_at
        if base is not None and base.date > now:
            now = base.date

        history.insert(0, HistoryEntry(modified_at=now, modified_by=modified_by, value=raw, value_overview=d.codec.overview(value)))
        if self.max_history:
            history = history[: self.max_history]
        toggles[d.key] = SnapshotEntry(value=raw, modified_at=now, modified_by=modified_by, history=history)
        version = (base.version if base is not None else 0) + 1
        return Snapshot(version=version, date=now, toggles=toggles)

    @staticmethod
    def _view(d: ToggleDefinition, state: ToggleState) -> ToggleView:
        return ToggleView(
            key=d.key,
            description=d.description,
            format=d.codec.serialized_format().to_dict(),
            value=copy.deepcopy(state.raw),
            value_overview=d.codec.overview(state.value),
            default=d.default_json(),
            modified_at=state.modified_at,
            modified_by=state.modified_by,
            history=[h.model_copy(deep=True) for h in state.history],
        )


def check_default(d: ToggleDefinition) -> None:
    try:
        d.codec.validate(d.codec.as_json(d.default))
    except (ValueFormatError, TypeError, ValueError, OverflowError) as e:
        raise SchemaMismatch(f"Default for toggle {d.key!r} does not fit its format: {e}", key=d.key) from e
