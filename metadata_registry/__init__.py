# metadata_registry/__init__.py
"""
Metadata Registry v0.1

Binds off-chain content metadata (multihashes) to on-chain addresses and
manages who may update that binding.

Modules:
    types/       - Addresses, delegate sentinels, categories, entries,
                   change notifications, exceptions
    derivation/  - CREATE / CREATE2 address derivation and deployment proofs
    multihash/   - Multihash codec (fn + len + digest <-> storage triple, base58)
    store/       - AuthorizationStore: per-key entries, versions, approvals
    registry/    - MetadataRegistry: create, update, clear, delegate, categories
    client/      - RegistryClient: web3 interface to the deployed contract
    config/      - RegistryConfig defaults and environment overrides

Quick Start:
    # 1. Register metadata for a contract you deployed
    from metadata_registry import MetadataRegistry, compute_create_address

    registry = MetadataRegistry()
    subject = compute_create_address(deployer, 7)   # deployed at nonce 7
    registry.create_from_multihash(deployer, subject, "Qm...", proof=7)

    # 2. Let anyone write audit reports
    registry.add_category(deployer, subject, "audits")
    registry.update_from_multihash(deployer, subject, "Qm...", category="audits")
    registry.transfer_delegate(deployer, subject, "public", category="audits")

    # 3. Watch changes
    from metadata_registry import RegistryEvent
    registry.on(RegistryEvent.ENTRY_SET, lambda event, data: print(data))

    # 4. Talk to the deployed contract
    from metadata_registry import RegistryClient
    client = RegistryClient(contract_address="0x...", rpc_url="https://...")
    client.get_multihash(subject)

Updated: 2026-10-18
Version: 0.1.0
"""

# =============================================================================
# Types
# =============================================================================
from .types import (
    # Addresses
    ZERO_ADDRESS,
    to_address,

    # Delegates and categories
    Delegate,
    DelegateKind,
    Category,
    DEFAULT_CATEGORY,
    Entry,

    # Events
    RegistryEvent,
    EntrySet,
    EntryDeleted,
    DelegateChanged,
    CategoryAdded,
    CategoryDeleted,

    # Exceptions
    RegistryError,
    ValidationError,
    AuthorizationError,
    PermissionDeniedError,
    NotFoundError,
    SentinelLockError,
)

# =============================================================================
# Derivation
# =============================================================================
from .derivation import (
    MAX_NONCE,
    encode_nonce,
    encode_create_payload,
    compute_create_address,
    compute_create2_address,
    compute_create2_address_from_code,
    NonceProof,
    Create2Proof,
    verify_proof,
)

# =============================================================================
# Multihash
# =============================================================================
from .multihash import (
    Multihash,
    MultihashError,
    decode_multihash,
    encode_multihash,
    multihash_from_base58,
    multihash_to_base58,
)

# =============================================================================
# Registry
# =============================================================================
from .config import RegistryConfig, DEFAULT_CONFIG
from .store import AuthorizationStore
from .registry import MetadataRegistry
from .client import RegistryClient, TransactionFailedError

# =============================================================================
# Public API
# =============================================================================
__all__ = [
    # === Types ===
    "ZERO_ADDRESS",
    "to_address",
    "Delegate",
    "DelegateKind",
    "Category",
    "DEFAULT_CATEGORY",
    "Entry",
    "RegistryEvent",
    "EntrySet",
    "EntryDeleted",
    "DelegateChanged",
    "CategoryAdded",
    "CategoryDeleted",
    "RegistryError",
    "ValidationError",
    "AuthorizationError",
    "PermissionDeniedError",
    "NotFoundError",
    "SentinelLockError",

    # === Derivation ===
    "MAX_NONCE",
    "encode_nonce",
    "encode_create_payload",
    "compute_create_address",
    "compute_create2_address",
    "compute_create2_address_from_code",
    "NonceProof",
    "Create2Proof",
    "verify_proof",

    # === Multihash ===
    "Multihash",
    "MultihashError",
    "decode_multihash",
    "encode_multihash",
    "multihash_from_base58",
    "multihash_to_base58",

    # === Registry ===
    "RegistryConfig",
    "DEFAULT_CONFIG",
    "AuthorizationStore",
    "MetadataRegistry",
    "RegistryClient",
    "TransactionFailedError",
]

__version__ = "0.1.0"
