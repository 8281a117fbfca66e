"""
Draft Store Service - in-progress form state across page navigations.

Lifecycle per form key:
- save: overwrite the snapshot, clear the submitted marker
- mark_submitted: set the marker and drop the snapshot right away
- load (on mount): a full page reload or a submitted marker erases
  everything; otherwise the snapshot is returned

Whether the page was reloaded is asked of an injected predicate, so the
state machine does not depend on a browser.
"""

import enum
import json
import logging
from datetime import datetime, date
from decimal import Decimal
from typing import Any, Callable, Dict, Iterable, Optional

from flask import Flask, g, current_app

from backoffice.services.draft_storage import build_storage

logger = logging.getLogger(__name__)

SUBMITTED_SUFFIX = '_submitted'
DERIVED_FIELDS = frozenset({'pagination', 'totals', 'available_serials'})


class DraftKey(str, enum.Enum):
    """Logical form identifiers."""
    SELL_STOCK = 'sellStockState'
    ADD_STOCK = 'addStockState'
    PRODUCT_MANAGEMENT = 'productManagementState'


def _serialize(value: Any) -> str:
    """Serialize a snapshot to JSON keeping Decimal precision."""
    def default_handler(obj: Any) -> Any:
        if isinstance(obj, (datetime, date)):
            return obj.isoformat()
        elif isinstance(obj, Decimal):
            return {"__decimal__": str(obj)}
        elif isinstance(obj, enum.Enum):
            return obj.value
        elif isinstance(obj, (set, frozenset, tuple)):
            return list(obj)
        raise TypeError(f"Object of type {type(obj)} is not JSON serializable")
    return json.dumps(value, default=default_handler)


def _deserialize(value: str) -> Any:
    """Deserialize JSON, reconstructing Decimals."""
    def object_hook(dct: Dict[str, Any]) -> Any:
        if "__decimal__" in dct:
            return Decimal(dct["__decimal__"])
        return dct
    return json.loads(value, object_hook=object_hook)


def strip_derived(snapshot: Dict[str, Any], derived: Iterable[str] = DERIVED_FIELDS) -> Dict[str, Any]:
    """Drop computed substructures (at any depth) so they never go stale."""
    derived = frozenset(derived)

    def _strip(value):
        if isinstance(value, dict):
            return {k: _strip(v) for k, v in value.items() if k not in derived}
        if isinstance(value, list):
            return [_strip(v) for v in value]
        return value

    return _strip(snapshot)


class DraftStore:
    """Save / restore policy for every persisted form, in one place."""

    def __init__(self, storage, was_page_reloaded: Callable[[], bool],
                 derived_fields: Iterable[str] = DERIVED_FIELDS):
        self.storage = storage
        self.was_page_reloaded = was_page_reloaded
        self.derived_fields = frozenset(derived_fields)

    @staticmethod
    def _key(key) -> str:
        return key.value if isinstance(key, DraftKey) else str(key)

    def _marker(self, key) -> str:
        return f"{self._key(key)}{SUBMITTED_SUFFIX}"

    def save(self, key, snapshot: Dict[str, Any]) -> bool:
        """Overwrite the stored snapshot and clear any submitted marker."""
        try:
            payload = _serialize(strip_derived(snapshot, self.derived_fields))
        except (TypeError, ValueError) as e:
            logger.warning(f"[DRAFT] Failed to save form state for {self._key(key)}: {e}")
            return False
        saved = self.storage.set(self._key(key), payload)
        self.storage.delete(self._marker(key))
        if saved:
            _record('saved')
        return saved

    def mark_submitted(self, key) -> None:
        """Flag a successful submit and erase the snapshot immediately."""
        self.storage.set(self._marker(key), 'true')
        self.storage.delete(self._key(key))
        _record('submitted')
        logger.info(f"[DRAFT] {self._key(key)} marked as submitted")

    def clear(self, key) -> None:
        """Forget both snapshot and marker (explicit cancel)."""
        self.storage.delete(self._key(key))
        self.storage.delete(self._marker(key))
        _record('cleared')

    def load(self, key) -> Optional[Dict[str, Any]]:
        """
        Read once when a form mounts.

        Returns None after a full page reload, after a submit, or when no
        usable snapshot exists.
        """
        if self.was_page_reloaded():
            self.clear(key)
            _record('discarded_reload')
            return None

        if self.storage.get(self._marker(key)) == 'true':
            self.clear(key)
            _record('discarded_submitted')
            return None

        snapshot = self.current(key)
        if snapshot is not None:
            _record('restored')
        return snapshot

    def current(self, key) -> Optional[Dict[str, Any]]:
        """
        Read the stored snapshot without mount rules.

        Corrupt snapshots are dropped and reported as absent.
        """
        raw = self.storage.get(self._key(key))
        if not raw:
            return None
        try:
            snapshot = _deserialize(raw)
        except (ValueError, TypeError, ArithmeticError) as e:
            logger.warning(f"[DRAFT] Failed to load saved form state for {self._key(key)}: {e}")
            self.storage.delete(self._key(key))
            _record('discarded_corrupt')
            return None
        if not isinstance(snapshot, dict):
            logger.warning(f"[DRAFT] Ignoring non-object form state for {self._key(key)}")
            self.storage.delete(self._key(key))
            _record('discarded_corrupt')
            return None
        return snapshot


def _record(event: str) -> None:
    from backoffice.blueprints.metrics import draft_events_total
    draft_events_total.labels(event=event).inc()


_storage = None


def init_draft_store(app: Flask) -> None:
    """Initialize the draft storage backend singleton."""
    global _storage
    _storage = build_storage(app)
    if not hasattr(app, 'extensions'):
        app.extensions = {}
    app.extensions['draft_storage'] = _storage
    logger.info(f"[DRAFT] Using {_storage.name} draft storage")


def get_draft_store() -> DraftStore:
    """
    DraftStore bound to the current request.

    The reload predicate reads what the middleware detected for this
    request; PAGE_RELOAD_PREDICATE in config overrides it.
    """
    if _storage is None:
        raise RuntimeError("Draft store not initialized.")
    predicate = current_app.config.get('PAGE_RELOAD_PREDICATE') or (lambda: bool(getattr(g, 'page_reloaded', False)))
    return DraftStore(_storage, predicate)
