# metadata_registry/derivation.py
"""
Metadata Registry: Address Derivation

Recomputes the address a deployer's transaction would have produced, so
the registry can check "the caller deployed the subject" without an oracle.

Schemes:
    CREATE   address = keccak256(rlp([origin, nonce]))[12:]
    CREATE2  address = keccak256(0xff ++ origin ++ salt ++ keccak256(init_code))[12:]

Nonce encoding (RLP integer, by magnitude):
    ┌──────────────────────────┬──────────────────────┐
    │  nonce                   │  bytes               │
    │──────────────────────────│──────────────────────│
    │  0                       │  80                  │
    │  0x01 .. 0x7f            │  nn                  │
    │  0x80 .. 0xff            │  81 nn               │
    │  0x100 .. 0xffff         │  82 nn nn            │
    │  0x10000 .. 0xffffff     │  83 nn nn nn         │
    │  0x1000000 .. 0xffffffff │  84 nn nn nn nn      │
    └──────────────────────────┴──────────────────────┘

    Nonces above 0xffffffff are not supported.

Usage:
    from metadata_registry.derivation import (
        compute_create_address, compute_create2_address, NonceProof,
    )

    subject = compute_create_address(deployer, 0)
    assert NonceProof(0).derive(deployer) == subject

Updated: 2026-10-18
Version: 0.1.0
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Optional, Tuple, Union

from web3 import Web3

from .types import (
    AddressLike,
    ValidationError,
    address_bytes,
    to_address,
    to_bytes32,
)

logger = logging.getLogger("metadata-registry")


# =============================================================================
# Constants
# =============================================================================

MAX_NONCE = 0xFFFFFFFF
CREATE2_PREFIX = b"\xff"

_RLP_EMPTY_STRING = 0x80
_RLP_SHORT_ADDRESS = 0x80 + 20  # 0x94
_RLP_LIST_OFFSET = 0xC0

# (upper bound, prefix byte, payload width) for nonces above 0x7f
_NONCE_BRANCHES = (
    (0xFF, 0x81, 1),
    (0xFFFF, 0x82, 2),
    (0xFFFFFF, 0x83, 3),
    (0xFFFFFFFF, 0x84, 4),
)


# =============================================================================
# RLP Encoding
# =============================================================================

def encode_nonce(nonce: int) -> bytes:
    """RLP encoding of a nonce in 0..MAX_NONCE."""
    if isinstance(nonce, bool) or not isinstance(nonce, int):
        raise ValidationError(f"Nonce must be an int, got {type(nonce).__name__}")
    if nonce < 0 or nonce > MAX_NONCE:
        raise ValidationError(f"Nonce out of supported range: {nonce}")

    if nonce == 0:
        return bytes([_RLP_EMPTY_STRING])
    if nonce <= 0x7F:
        return bytes([nonce])
    for upper, prefix, width in _NONCE_BRANCHES:
        if nonce <= upper:
            return bytes([prefix]) + nonce.to_bytes(width, "big")
    raise ValidationError(f"Nonce out of supported range: {nonce}")


def encode_create_payload(origin: AddressLike, nonce: int) -> bytes:
    """RLP list [origin, nonce] hashed by the CREATE scheme."""
    body = bytes([_RLP_SHORT_ADDRESS]) + address_bytes(origin) + encode_nonce(nonce)
    return bytes([_RLP_LIST_OFFSET + len(body)]) + body


# =============================================================================
# Derivation
# =============================================================================

def _address_from_hash(data: bytes) -> str:
    return to_address(bytes(Web3.keccak(data))[12:])


def compute_create_address(origin: AddressLike, nonce: int) -> str:
    """Address deployed by `origin` in its transaction number `nonce`."""
    address = _address_from_hash(encode_create_payload(origin, nonce))
    logger.debug("CREATE %s nonce=%d -> %s", origin, nonce, address)
    return address


def compute_create2_address(
    origin: AddressLike,
    salt: Union[str, bytes],
    init_code_hash: Union[str, bytes],
) -> str:
    """Address deployed by `origin` through CREATE2."""
    data = (
        CREATE2_PREFIX
        + address_bytes(origin)
        + to_bytes32(salt, "salt")
        + to_bytes32(init_code_hash, "init_code_hash")
    )
    address = _address_from_hash(data)
    logger.debug("CREATE2 %s -> %s", origin, address)
    return address


def compute_create2_address_from_code(
    origin: AddressLike,
    salt: Union[str, bytes],
    init_code: bytes,
) -> str:
    """CREATE2 address from raw init code."""
    return compute_create2_address(origin, salt, bytes(Web3.keccak(init_code)))


# =============================================================================
# Deployment Proofs
# =============================================================================

@dataclass(frozen=True)
class NonceProof:
    """Proof of deployment through CREATE at a given nonce."""
    nonce: int

    def __post_init__(self):
        encode_nonce(self.nonce)

    def derive(self, origin: AddressLike) -> str:
        return compute_create_address(origin, self.nonce)


@dataclass(frozen=True)
class Create2Proof:
    """Proof of deployment through CREATE2."""
    salt: bytes
    init_code_hash: bytes

    def __post_init__(self):
        object.__setattr__(self, "salt", to_bytes32(self.salt, "salt"))
        object.__setattr__(
            self, "init_code_hash", to_bytes32(self.init_code_hash, "init_code_hash")
        )

    def derive(self, origin: AddressLike) -> str:
        return compute_create2_address(origin, self.salt, self.init_code_hash)


Proof = Union[NonceProof, Create2Proof]
ProofLike = Union[Proof, int, Tuple[Union[str, bytes], Union[str, bytes]], None]


def coerce_proof(value: ProofLike) -> Optional[Proof]:
    """Accept a proof, a bare nonce, or a (salt, init_code_hash) pair."""
    if value is None or isinstance(value, (NonceProof, Create2Proof)):
        return value
    if isinstance(value, int) and not isinstance(value, bool):
        return NonceProof(value)
    if isinstance(value, tuple) and len(value) == 2:
        return Create2Proof(*value)
    raise ValidationError(f"Unsupported deployment proof: {value!r}")


def verify_proof(origin: AddressLike, subject: AddressLike, proof: Proof) -> bool:
    """True if `proof` derives `subject` from `origin`."""
    return proof.derive(origin) == to_address(subject)
