# metadata_registry/types.py
"""
Metadata Registry: Shared Types

Identities, delegate sentinels, categories, stored entries, change
notifications and the exception hierarchy shared by every layer.

Identity model:
    - Addresses are EIP-55 checksummed strings ("0x" + 40 hex chars)
    - Delegates are a tagged value: UNSET, PUBLIC or IDENTITY(address)
    - Categories are 32-byte identifiers; DEFAULT_CATEGORY is reserved

Usage:
    from metadata_registry.types import Delegate, Category, to_address

    owner = to_address("0x6ac7ea33f8831ea9dcc53393aaa88b25a785dbf0")
    delegate = Delegate.of(owner)
    anyone = Delegate.public()
    docs = Category.from_label("docs")

Updated: 2026-10-18
Version: 0.1.0
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable, Optional, Union

from web3 import Web3


# =============================================================================
# Constants
# =============================================================================

ADDRESS_SIZE = 20
CATEGORY_ID_SIZE = 32
ZERO_ADDRESS = "0x" + "0" * 40

AddressLike = Union[str, bytes]


# =============================================================================
# Exceptions
# =============================================================================

class RegistryError(Exception):
    """Base registry error."""
    pass


class ValidationError(RegistryError):
    """Malformed input (zero length, bad identifier, reserved category)."""
    pass


class AuthorizationError(RegistryError):
    """Caller is not the proven deployer, the delegate or the subject."""
    def __init__(self, subject: str, caller: str, reason: str):
        self.subject = subject
        self.caller = caller
        self.reason = reason
        super().__init__(f"Not authorized: {caller} on {subject}: {reason}")


class PermissionDeniedError(RegistryError):
    """Caller lacks standing for category management, or category not approved."""
    def __init__(self, subject: str, category: "Category", reason: str):
        self.subject = subject
        self.category = category
        self.reason = reason
        super().__init__(f"Permission denied on {subject} [{category}]: {reason}")


class NotFoundError(RegistryError):
    """Operation targets an absent entry."""
    def __init__(self, subject: str, category: "Category"):
        self.subject = subject
        self.category = category
        super().__init__(f"No entry for {subject} [{category}]")


class SentinelLockError(RegistryError):
    """Delegation cannot be narrowed once it is public."""
    def __init__(self, subject: str, category: "Category"):
        self.subject = subject
        self.category = category
        super().__init__(f"Delegate of {subject} [{category}] is public and locked")


# =============================================================================
# Addresses
# =============================================================================

def to_address(value: AddressLike) -> str:
    """
    Normalize an address to its checksummed string form.

    Accepts "0x"-prefixed hex (any case) or 20 raw bytes.
    """
    if isinstance(value, (bytes, bytearray)):
        if len(value) != ADDRESS_SIZE:
            raise ValidationError(f"Address must be {ADDRESS_SIZE} bytes, got {len(value)}")
        value = "0x" + bytes(value).hex()
    if not isinstance(value, str):
        raise ValidationError(f"Unsupported address type: {type(value).__name__}")
    if not value.startswith("0x") or len(value) != 2 + 2 * ADDRESS_SIZE:
        raise ValidationError(f"Invalid address: {value!r}")
    try:
        bytes.fromhex(value[2:])
    except ValueError:
        raise ValidationError(f"Invalid address: {value!r}") from None
    return Web3.to_checksum_address(value)


def address_bytes(value: AddressLike) -> bytes:
    """20 raw bytes of an address."""
    return bytes.fromhex(to_address(value)[2:])


def to_bytes32(value: Union[str, bytes], name: str = "value") -> bytes:
    """Accept 32 raw bytes or their "0x" hex form."""
    if isinstance(value, str):
        text = value[2:] if value.startswith("0x") else value
        try:
            value = bytes.fromhex(text)
        except ValueError:
            raise ValidationError(f"{name} is not valid hex") from None
    if not isinstance(value, (bytes, bytearray)) or len(value) != 32:
        raise ValidationError(f"{name} must be 32 bytes")
    return bytes(value)


# =============================================================================
# Delegates
# =============================================================================

class DelegateKind(Enum):
    """Who may write an entry."""
    UNSET = "unset"        # entry not initialized
    PUBLIC = "public"      # every identity may write
    IDENTITY = "identity"  # one concrete address


@dataclass(frozen=True)
class Delegate:
    """
    Tagged delegate value.

    Sentinels live in `kind`, never in the address space, so no real
    address can collide with UNSET or PUBLIC.
    """
    kind: DelegateKind
    address: Optional[str] = None

    @classmethod
    def unset(cls) -> Delegate:
        return cls(DelegateKind.UNSET)

    @classmethod
    def public(cls) -> Delegate:
        return cls(DelegateKind.PUBLIC)

    @classmethod
    def of(cls, address: AddressLike) -> Delegate:
        return cls(DelegateKind.IDENTITY, to_address(address))

    @classmethod
    def coerce(cls, value: Union[Delegate, str, bytes, None]) -> Delegate:
        """Build from a Delegate, an address, "public", or None (unset)."""
        if isinstance(value, Delegate):
            return value
        if value is None:
            return cls.unset()
        if isinstance(value, str) and value.lower() == DelegateKind.PUBLIC.value:
            return cls.public()
        return cls.of(value)

    @property
    def is_unset(self) -> bool:
        return self.kind is DelegateKind.UNSET

    @property
    def is_public(self) -> bool:
        return self.kind is DelegateKind.PUBLIC

    def permits(self, caller: str) -> bool:
        """True if `caller` holds this delegate role."""
        if self.kind is DelegateKind.PUBLIC:
            return True
        return self.kind is DelegateKind.IDENTITY and self.address == caller

    def __str__(self) -> str:
        return self.address if self.address else f"<{self.kind.value}>"


# =============================================================================
# Categories
# =============================================================================

@dataclass(frozen=True)
class Category:
    """
    Namespace partition of a subject's entries.

    Identified by a 32-byte id, normally keccak256 of a label.
    """
    key: bytes
    label: Optional[str] = field(default=None, compare=False)

    def __post_init__(self):
        if not isinstance(self.key, bytes) or len(self.key) != CATEGORY_ID_SIZE:
            raise ValidationError(f"Category id must be {CATEGORY_ID_SIZE} bytes")

    @classmethod
    def from_label(cls, label: str) -> Category:
        """Category id = keccak256(utf8(label))."""
        if not label:
            raise ValidationError("Category label must not be empty")
        return cls(bytes(Web3.keccak(text=label)), label)

    @classmethod
    def coerce(cls, value: Union[Category, str, bytes, None]) -> Category:
        """
        Build from a Category, a label, a 32-byte id, or None.

        A "0x" + 64 hex string is read as an id, not a label. None and the
        zero id both name the reserved default category.
        """
        if value is None:
            return DEFAULT_CATEGORY
        if isinstance(value, Category):
            return value
        if isinstance(value, str):
            if value[:2].lower() != "0x" or len(value) != 2 + 2 * CATEGORY_ID_SIZE:
                return cls.from_label(value)
            try:
                value = bytes.fromhex(value[2:])
            except ValueError:
                raise ValidationError(f"Invalid hex category id: {value}")
        if isinstance(value, (bytes, bytearray)):
            key = bytes(value)
            if key == DEFAULT_CATEGORY.key:
                return DEFAULT_CATEGORY
            return cls(key)
        raise ValidationError(f"Unsupported category type: {type(value).__name__}")

    @property
    def is_default(self) -> bool:
        return self.key == DEFAULT_CATEGORY.key

    def __str__(self) -> str:
        if self.label:
            return self.label
        return "0x" + self.key.hex()[:16] + "..."


DEFAULT_CATEGORY = Category(bytes(CATEGORY_ID_SIZE), "default")


# =============================================================================
# Entries
# =============================================================================

@dataclass(frozen=True)
class Entry:
    """
    Stored metadata for one (subject, category).

    Attributes:
        digest: 32-byte digest, zero padded past `length`
        hash_function: multihash function code
        length: semantic digest length (1..32)
        delegate: identity allowed to mutate the entry
        self_attested: True if the subject itself wrote it
    """
    digest: bytes
    hash_function: int
    length: int
    delegate: Delegate
    self_attested: bool = False


# =============================================================================
# Change Notifications
# =============================================================================

class RegistryEvent(Enum):
    """Change notification kinds."""
    ENTRY_SET = "EntrySet"
    ENTRY_DELETED = "EntryDeleted"
    DELEGATE_CHANGED = "DelegateChanged"
    CATEGORY_ADDED = "CategoryAdded"
    CATEGORY_DELETED = "CategoryDeleted"


@dataclass(frozen=True)
class EntrySet:
    subject: str
    category: Category
    delegate: Delegate
    digest: bytes
    hash_function: int
    length: int


@dataclass(frozen=True)
class EntryDeleted:
    subject: str
    category: Category
    version: int  # remaining write count


@dataclass(frozen=True)
class DelegateChanged:
    subject: str
    category: Category
    delegate: Delegate


@dataclass(frozen=True)
class CategoryAdded:
    subject: str
    category: Category


@dataclass(frozen=True)
class CategoryDeleted:
    subject: str
    category: Category


EventCallback = Callable[[RegistryEvent, Any], None]
