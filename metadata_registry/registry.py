# metadata_registry/registry.py
"""
Metadata Registry: Registry

Operation surface of the registry. Enforces who may create, update,
clear and re-delegate an entry, manages categories, and emits change
notifications.

State machine per (subject, category):
    Absent ──create / first update──▶ Active ──clear──▶ Absent
                                        │
                                        └──transfer_delegate──▶ Active (new delegate)

Write rules:
    - create:   Absent default entry only; caller proves it deployed the
                subject (nonce or CREATE2 proof), or caller is the subject
    - update:   caller is the delegate, the subject, or delegate is PUBLIC;
                non-default categories must be approved
    - clear:    same check as update
    - transfer: same check, forbidden once the delegate is PUBLIC
    - add/remove category: recorded deployer or the subject only

The subject's own rights above all follow config.allow_self_attestation.

Usage:
    from metadata_registry import MetadataRegistry, compute_create_address

    registry = MetadataRegistry()
    subject = compute_create_address(deployer, 0)

    registry.create(deployer, subject, digest, 0x12, 32, proof=0)
    registry.update(deployer, subject, new_digest, 0x12, 32)
    registry.transfer_delegate(deployer, subject, "public")

    registry.add_category(deployer, subject, "audits")
    registry.update(auditor, subject, report_digest, 0x12, 32, category="audits")

Updated: 2026-10-18
Version: 0.1.0
"""

from __future__ import annotations

import logging
import threading
from typing import Any, Dict, List, Optional, Tuple, Union

from .config import DEFAULT_CONFIG, RegistryConfig
from .derivation import Create2Proof, ProofLike, coerce_proof, verify_proof
from .multihash import Multihash, MultihashError
from .store import AuthorizationStore
from .types import (
    DEFAULT_CATEGORY,
    AddressLike,
    AuthorizationError,
    Category,
    CategoryAdded,
    CategoryDeleted,
    Delegate,
    DelegateChanged,
    Entry,
    EntryDeleted,
    EntrySet,
    EventCallback,
    NotFoundError,
    PermissionDeniedError,
    RegistryError,
    RegistryEvent,
    SentinelLockError,
    ValidationError,
    to_address,
)

logger = logging.getLogger("metadata-registry")

CategoryLike = Union[Category, str, bytes, None]
DelegateLike = Union[Delegate, str, bytes]


class MetadataRegistry:
    """
    In-memory metadata registry.

    Every operation runs to completion under one lock, so operations are
    applied in a single total order and a rejected call changes nothing.
    """

    def __init__(
        self,
        config: Optional[RegistryConfig] = None,
        store: Optional[AuthorizationStore] = None,
    ):
        self._config = config or DEFAULT_CONFIG
        self._store = store or AuthorizationStore()
        self._lock = threading.RLock()
        self._events: List[Tuple[RegistryEvent, Any]] = []
        self._event_handlers: Dict[RegistryEvent, List[EventCallback]] = {
            e: [] for e in RegistryEvent
        }

    @property
    def config(self) -> RegistryConfig:
        return self._config

    # =========================================================================
    # Entry Operations
    # =========================================================================

    def create(
        self,
        caller: AddressLike,
        subject: AddressLike,
        digest: Union[str, bytes],
        hash_function: int,
        length: int,
        proof: ProofLike = None,
    ) -> Entry:
        """
        Initialize the default entry of `subject`.

        Args:
            caller: Transaction sender
            subject: Address the metadata describes
            digest: Digest bytes (or 0x hex), at most 32 bytes
            hash_function: Multihash function code
            length: Digest length (nonzero)
            proof: Nonce, (salt, init_code_hash) pair, or proof object.
                   Not needed when caller is the subject.

        Returns:
            The stored entry
        """
        caller, subject = to_address(caller), to_address(subject)
        mh = self._multihash(digest, hash_function, length)

        with self._lock:
            if self._store.get_entry(subject, DEFAULT_CATEGORY) is not None:
                raise self._reject(
                    AuthorizationError(subject, caller, "entry already initialized")
                )

            self_attested = self._is_subject(caller, subject)
            if not self_attested:
                self._verify_deployer(caller, subject, coerce_proof(proof))

            entry = Entry(
                digest=mh.digest,
                hash_function=mh.hash_function,
                length=mh.length,
                delegate=Delegate.of(caller),
                self_attested=self_attested,
            )
            version = self._store.write_entry(subject, DEFAULT_CATEGORY, entry)
            self._store.set_approval(subject, DEFAULT_CATEGORY, True)
            if not self_attested:
                self._store.record_deployer(subject, caller)

            logger.info(
                "Entry created: %s by %s (self_attested=%s, version=%d)",
                subject, caller, self_attested, version,
            )
            self._emit_entry_set(subject, DEFAULT_CATEGORY, entry)
            return entry

    def update(
        self,
        caller: AddressLike,
        subject: AddressLike,
        digest: Union[str, bytes],
        hash_function: int,
        length: int,
        category: CategoryLike = None,
    ) -> Entry:
        """
        Overwrite an entry.

        The default entry must exist. In an approved category the first
        write may come from the recorded deployer or the subject.
        """
        caller, subject = to_address(caller), to_address(subject)
        category = Category.coerce(category)
        mh = self._multihash(digest, hash_function, length)

        with self._lock:
            self._require_approved(subject, category)
            current = self._store.get_entry(subject, category)

            if current is None:
                if category.is_default:
                    raise self._reject(NotFoundError(subject, category))
                if not self._has_standing(caller, subject):
                    raise self._reject(
                        AuthorizationError(subject, caller, "no standing in category")
                    )
                delegate = Delegate.of(caller)
            else:
                self._require_writer(caller, subject, current)
                delegate = current.delegate if current.delegate.is_public else Delegate.of(caller)

            entry = Entry(
                digest=mh.digest,
                hash_function=mh.hash_function,
                length=mh.length,
                delegate=delegate,
                self_attested=self._is_subject(caller, subject),
            )
            version = self._store.write_entry(subject, category, entry)

            logger.info(
                "Entry updated: %s [%s] by %s (version=%d)",
                subject, category, caller, version,
            )
            self._emit_entry_set(subject, category, entry)
            return entry

    def clear(
        self,
        caller: AddressLike,
        subject: AddressLike,
        category: CategoryLike = None,
    ) -> int:
        """Delete an entry. Returns the remaining version."""
        caller, subject = to_address(caller), to_address(subject)
        category = Category.coerce(category)

        with self._lock:
            current = self._store.get_entry(subject, category)
            if current is None:
                raise self._reject(NotFoundError(subject, category))
            self._require_writer(caller, subject, current)
            return self._delete(subject, category)

    def transfer_delegate(
        self,
        caller: AddressLike,
        subject: AddressLike,
        new_delegate: DelegateLike,
        category: CategoryLike = None,
    ) -> Delegate:
        """
        Hand the write right to another identity, or to everyone.

        `new_delegate` may be an address, Delegate.public() or "public".
        A public delegate is final.
        """
        caller, subject = to_address(caller), to_address(subject)
        category = Category.coerce(category)
        delegate = Delegate.coerce(new_delegate)
        if delegate.is_unset:
            raise self._reject(ValidationError("New delegate must be an address or public"))

        with self._lock:
            current = self._store.get_entry(subject, category)
            if current is None:
                raise self._reject(NotFoundError(subject, category))
            self._require_writer(caller, subject, current)
            if current.delegate.is_public:
                raise self._reject(SentinelLockError(subject, category))

            self._store.replace_entry(
                subject,
                category,
                Entry(
                    digest=current.digest,
                    hash_function=current.hash_function,
                    length=current.length,
                    delegate=delegate,
                    self_attested=current.self_attested,
                ),
            )

            logger.info("Delegate changed: %s [%s] -> %s", subject, category, delegate)
            self._emit(
                RegistryEvent.DELEGATE_CHANGED,
                DelegateChanged(subject, category, delegate),
            )
            return delegate

    # =========================================================================
    # Category Operations
    # =========================================================================

    def add_category(
        self,
        caller: AddressLike,
        subject: AddressLike,
        category: CategoryLike,
    ) -> Category:
        """Approve writes into `category`."""
        caller, subject = to_address(caller), to_address(subject)
        category = self._user_category(category)

        with self._lock:
            self._require_standing(caller, subject, category)
            if self._store.is_approved(subject, category):
                raise self._reject(ValidationError(f"Category already approved: {category}"))

            self._store.set_approval(subject, category, True)

            logger.info("Category added: %s [%s] by %s", subject, category, caller)
            self._emit(RegistryEvent.CATEGORY_ADDED, CategoryAdded(subject, category))
            return category

    def remove_category(
        self,
        caller: AddressLike,
        subject: AddressLike,
        category: CategoryLike,
    ) -> Category:
        """Revoke `category`, clearing its entry if one exists."""
        caller, subject = to_address(caller), to_address(subject)
        category = self._user_category(category)

        with self._lock:
            self._require_standing(caller, subject, category)
            if not self._store.is_approved(subject, category):
                raise self._reject(ValidationError(f"Category not approved: {category}"))

            if self._store.get_entry(subject, category) is not None:
                self._delete(subject, category)
            self._store.set_approval(subject, category, False)

            logger.info("Category removed: %s [%s] by %s", subject, category, caller)
            self._emit(RegistryEvent.CATEGORY_DELETED, CategoryDeleted(subject, category))
            return category

    # =========================================================================
    # Base58 Helpers
    # =========================================================================

    def create_from_multihash(
        self,
        caller: AddressLike,
        subject: AddressLike,
        multihash: str,
        proof: ProofLike = None,
    ) -> Entry:
        """create() from a base58 identifier such as "Qm..."."""
        mh = Multihash.from_base58(multihash)
        return self.create(caller, subject, mh.digest, mh.hash_function, mh.length, proof)

    def update_from_multihash(
        self,
        caller: AddressLike,
        subject: AddressLike,
        multihash: str,
        category: CategoryLike = None,
    ) -> Entry:
        """update() from a base58 identifier."""
        mh = Multihash.from_base58(multihash)
        return self.update(
            caller, subject, mh.digest, mh.hash_function, mh.length, category
        )

    # =========================================================================
    # Read Operations
    # =========================================================================

    def get_entry(
        self,
        subject: AddressLike,
        category: CategoryLike = None,
    ) -> Optional[Multihash]:
        """Stored (digest, hash_function, length), or None if absent."""
        entry = self.get_record(subject, category)
        if entry is None:
            return None
        return Multihash(entry.digest, entry.hash_function, entry.length)

    def get_record(
        self,
        subject: AddressLike,
        category: CategoryLike = None,
    ) -> Optional[Entry]:
        """Full stored entry, or None if absent."""
        with self._lock:
            return self._store.get_entry(to_address(subject), Category.coerce(category))

    def get_multihash(
        self,
        subject: AddressLike,
        category: CategoryLike = None,
    ) -> Optional[str]:
        """Base58 identifier, or None if absent."""
        mh = self.get_entry(subject, category)
        return mh.to_base58() if mh else None

    def has_entry(self, subject: AddressLike, category: CategoryLike = None) -> bool:
        return self.get_record(subject, category) is not None

    def get_delegate(
        self,
        subject: AddressLike,
        category: CategoryLike = None,
    ) -> Delegate:
        """Current delegate; Delegate.unset() if absent."""
        entry = self.get_record(subject, category)
        return entry.delegate if entry else Delegate.unset()

    def get_version(self, subject: AddressLike, category: CategoryLike = None) -> int:
        with self._lock:
            return self._store.version(to_address(subject), Category.coerce(category))

    def get_category_approval(self, subject: AddressLike, category: CategoryLike) -> bool:
        with self._lock:
            return self._store.is_approved(to_address(subject), Category.coerce(category))

    def get_deployer(self, subject: AddressLike) -> Optional[str]:
        """Deployer recorded by the first proven create, or None."""
        with self._lock:
            return self._store.deployer(to_address(subject))

    # =========================================================================
    # Event Handling
    # =========================================================================

    @property
    def events(self) -> Tuple[Tuple[RegistryEvent, Any], ...]:
        """All notifications emitted so far, in completion order."""
        return tuple(self._events)

    def on(self, event: RegistryEvent, callback: EventCallback) -> None:
        """Register event handler."""
        self._event_handlers[event].append(callback)

    def off(self, event: RegistryEvent, callback: EventCallback) -> None:
        """Unregister event handler."""
        if callback in self._event_handlers[event]:
            self._event_handlers[event].remove(callback)

    def _emit(self, event: RegistryEvent, data: Any) -> None:
        """Record event and dispatch to all handlers."""
        self._events.append((event, data))
        for handler in list(self._event_handlers[event]):
            try:
                handler(event, data)
            except Exception:
                logger.exception("Event handler failed for %s", event.value)

    def _emit_entry_set(self, subject: str, category: Category, entry: Entry) -> None:
        self._emit(
            RegistryEvent.ENTRY_SET,
            EntrySet(
                subject=subject,
                category=category,
                delegate=entry.delegate,
                digest=entry.digest,
                hash_function=entry.hash_function,
                length=entry.length,
            ),
        )

    # =========================================================================
    # Checks
    # =========================================================================

    def _multihash(self, digest: Union[str, bytes], hash_function: int, length: int) -> Multihash:
        mh = Multihash.from_fields(digest, hash_function, length)
        if mh.length > self._config.max_digest_size:
            raise MultihashError(
                f"Digest length {mh.length} exceeds configured maximum "
                f"{self._config.max_digest_size}"
            )
        return mh

    def _verify_deployer(self, caller: str, subject: str, proof) -> None:
        if proof is None:
            raise self._reject(AuthorizationError(subject, caller, "deployment proof required"))
        if isinstance(proof, Create2Proof) and not self._config.allow_create2:
            raise self._reject(AuthorizationError(subject, caller, "CREATE2 proofs disabled"))
        if not verify_proof(caller, subject, proof):
            raise self._reject(
                AuthorizationError(subject, caller, "proof does not derive the subject")
            )

    def _require_writer(self, caller: str, subject: str, entry: Entry) -> None:
        if self._is_subject(caller, subject) or entry.delegate.permits(caller):
            return
        raise self._reject(AuthorizationError(subject, caller, "not the delegate"))

    def _require_approved(self, subject: str, category: Category) -> None:
        if category.is_default or self._store.is_approved(subject, category):
            return
        raise self._reject(PermissionDeniedError(subject, category, "category not approved"))

    def _require_standing(self, caller: str, subject: str, category: Category) -> None:
        if self._has_standing(caller, subject):
            return
        raise self._reject(
            PermissionDeniedError(subject, category, f"{caller} is not deployer or subject")
        )

    def _is_subject(self, caller: str, subject: str) -> bool:
        """Subject acting for itself; off when self-attestation is disabled."""
        return caller == subject and self._config.allow_self_attestation

    def _has_standing(self, caller: str, subject: str) -> bool:
        return self._is_subject(caller, subject) or caller == self._store.deployer(subject)

    def _user_category(self, category: CategoryLike) -> Category:
        category = Category.coerce(category)
        if category.is_default:
            raise self._reject(ValidationError("The default category cannot be added or removed"))
        return category

    def _delete(self, subject: str, category: Category) -> int:
        remaining = self._store.delete_entry(subject, category)
        logger.info("Entry cleared: %s [%s] (version=%d)", subject, category, remaining)
        self._emit(RegistryEvent.ENTRY_DELETED, EntryDeleted(subject, category, remaining))
        return remaining

    @staticmethod
    def _reject(error: RegistryError) -> RegistryError:
        logger.warning("Rejected: %s", error)
        return error
