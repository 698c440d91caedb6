"""
UI Preferences

Per-screen view state (search terms, sort orders, filters) lives in the
same key-value backend as the collections, under plain un-namespaced keys
such as `clientList_searchTerm`. Values are stored as JSON.
"""

import json
from typing import Any, Optional

from smallearns.services.storage.interface import CorruptValueError, KeyValueBackend


PREFERENCE_KEYS = (
    "clientList_searchTerm",
    "clientList_sortOrder",
    "appointmentLog_searchTerm",
    "appointmentLog_sortOrder",
    "appointmentLog_filterStatus",
    "appointmentLog_filterClientId",
    "appointmentLog_filterPeriod",
    "appointmentLog_currentMonth",
    "incomeTracker_searchTerm",
    "incomeTracker_sortOrder",
    "incomeTracker_filterMethod",
    "incomeTracker_filterMinAmount",
    "incomeTracker_filterMaxAmount",
    "expenseTracker_searchTerm",
    "expenseTracker_sortOrder",
    "expenseTracker_filterCategory",
    "expenseTracker_filterStartDate",
    "expenseTracker_filterEndDate",
    "backupNoticeDismissed",
    "hasSeenWelcome",
)


class UnknownPreferenceError(KeyError):
    """The key is not a known preference."""
    pass


class PreferenceStore:
    """Get/set/clear for known UI preference keys."""

    def __init__(self, backend: KeyValueBackend):
        self._backend = backend

    def _check(self, key: str) -> None:
        if key not in PREFERENCE_KEYS:
            raise UnknownPreferenceError(key)

    def get(self, key: str, default: Optional[Any] = None) -> Any:
        self._check(key)
        try:
            text = self._backend.get(key)
        except CorruptValueError:
            return default
        if text is None:
            return default
        try:
            return json.loads(text)
        except json.JSONDecodeError:
            # Written as a bare string by an older release
            return text

    def set(self, key: str, value: Any) -> None:
        self._check(key)
        self._backend.set(key, json.dumps(value))

    def clear(self, key: str) -> bool:
        self._check(key)
        return self._backend.delete(key)

    def clear_all(self) -> list[str]:
        """Delete every stored preference. Returns the deleted keys."""
        present = set(self._backend.keys())
        deleted = []
        for key in PREFERENCE_KEYS:
            if key in present and self._backend.delete(key):
                deleted.append(key)
        return deleted

    def as_dict(self) -> dict[str, Any]:
        """Every stored preference, keyed by name."""
        present = set(self._backend.keys())
        return {key: self.get(key) for key in PREFERENCE_KEYS if key in present}
