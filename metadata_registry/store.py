# metadata_registry/store.py
"""
Metadata Registry: Authorization Store

Keyed in-memory state behind the registry. Holds no authorization logic:
the facade decides, the store records.

State (keyed by checksummed subject and 32-byte category id):
    entries:   (subject, category) -> Entry
    versions:  (subject, category) -> write count (kept after delete)
    approvals: (subject, category) -> bool
    deployers: subject -> deployer address (set once)

Entries are frozen dataclasses, so nothing returned here can be mutated
behind the store's back.

Updated: 2026-10-18
Version: 0.1.0
"""

from __future__ import annotations

from typing import Dict, Optional, Tuple

from .types import Category, Entry, ValidationError

Key = Tuple[str, bytes]


class AuthorizationStore:
    """In-memory per-key registry state."""

    def __init__(self):
        self._entries: Dict[Key, Entry] = {}
        self._versions: Dict[Key, int] = {}
        self._approvals: Dict[Key, bool] = {}
        self._deployers: Dict[str, str] = {}

    @staticmethod
    def _key(subject: str, category: Category) -> Key:
        return (subject, category.key)

    # =========================================================================
    # Entries
    # =========================================================================

    def get_entry(self, subject: str, category: Category) -> Optional[Entry]:
        return self._entries.get(self._key(subject, category))

    def write_entry(self, subject: str, category: Category, entry: Entry) -> int:
        """Store `entry` and bump the version. Returns the new version."""
        if entry.delegate.is_unset:
            raise ValidationError("Cannot store an entry without a delegate")
        key = self._key(subject, category)
        self._entries[key] = entry
        self._versions[key] = self._versions.get(key, 0) + 1
        return self._versions[key]

    def replace_entry(self, subject: str, category: Category, entry: Entry) -> None:
        """Swap an existing entry without touching the version."""
        key = self._key(subject, category)
        if key not in self._entries:
            raise KeyError(key)
        if entry.delegate.is_unset:
            raise ValidationError("Cannot store an entry without a delegate")
        self._entries[key] = entry

    def delete_entry(self, subject: str, category: Category) -> int:
        """Remove an entry and lower the version. Returns the remaining version."""
        key = self._key(subject, category)
        del self._entries[key]
        # saturates at zero; unreachable while deletes only follow writes
        self._versions[key] = max(0, self._versions.get(key, 0) - 1)
        return self._versions[key]

    def version(self, subject: str, category: Category) -> int:
        return self._versions.get(self._key(subject, category), 0)

    # =========================================================================
    # Category Approvals
    # =========================================================================

    def is_approved(self, subject: str, category: Category) -> bool:
        return self._approvals.get(self._key(subject, category), False)

    def set_approval(self, subject: str, category: Category, approved: bool) -> None:
        key = self._key(subject, category)
        if approved:
            self._approvals[key] = True
        else:
            self._approvals.pop(key, None)

    # =========================================================================
    # Deployers
    # =========================================================================

    def deployer(self, subject: str) -> Optional[str]:
        return self._deployers.get(subject)

    def record_deployer(self, subject: str, deployer: str) -> bool:
        """Record the deployer once. Returns False if one is already set."""
        if subject in self._deployers:
            return False
        self._deployers[subject] = deployer
        return True
