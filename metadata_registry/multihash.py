# metadata_registry/multihash.py
"""
Metadata Registry: Multihash Codec

Translates self-describing content identifiers to the fixed-width triple
the registry stores, and back.

Wire format:
    fn(1) + len(1) + digest(len)

Storage triple:
    digest(32, zero padded past len), hash_function, length

Textual form:
    base58btc of the wire format (IPFS CIDv0, e.g. "Qm...")

Usage:
    from metadata_registry.multihash import Multihash

    mh = Multihash.from_base58("QmahqCsAUAw7zMv6P6Ae8PjCTck7taQA6FgGQLnWdKG7U8")
    mh.hash_function   # 0x12 (sha2-256)
    mh.length          # 32
    mh.to_base58()     # "QmahqCsAUAw7zMv6P6Ae8PjCTck7taQA6FgGQLnWdKG7U8"

Updated: 2026-10-18
Version: 0.1.0
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Union

import base58

from .types import ValidationError


# =============================================================================
# Constants
# =============================================================================

MAX_DIGEST_SIZE = 32
HEADER_SIZE = 2

SHA2_256 = 0x12
SHA2_512 = 0x13
KECCAK_256 = 0x1B


# =============================================================================
# Exceptions
# =============================================================================

class MultihashError(ValidationError):
    """Identifier cannot be encoded or decoded."""
    pass


# =============================================================================
# Multihash
# =============================================================================

@dataclass(frozen=True)
class Multihash:
    """
    Typed content hash in storage form.

    Attributes:
        digest: 32 bytes, digest left-aligned and zero padded
        hash_function: function code (0..255)
        length: digest length in bytes (1..32)
    """
    digest: bytes
    hash_function: int
    length: int

    @classmethod
    def from_fields(
        cls,
        digest: Union[str, bytes],
        hash_function: int,
        length: int,
    ) -> Multihash:
        """Validate a triple handed in directly."""
        if isinstance(digest, str):
            text = digest[2:] if digest.startswith("0x") else digest
            try:
                digest = bytes.fromhex(text)
            except ValueError:
                raise MultihashError("Digest is not valid hex") from None
        digest = bytes(digest)

        if not isinstance(hash_function, int) or not 0 <= hash_function <= 0xFF:
            raise MultihashError(f"Hash function code out of range: {hash_function}")
        if not isinstance(length, int) or length == 0:
            raise MultihashError("Digest length must be nonzero")
        if not 0 < length <= MAX_DIGEST_SIZE:
            raise MultihashError(f"Digest length out of range: {length}")
        if len(digest) > MAX_DIGEST_SIZE:
            raise MultihashError(f"Digest exceeds {MAX_DIGEST_SIZE} bytes: {len(digest)}")
        if len(digest) < length:
            raise MultihashError(f"Digest shorter than declared length: {len(digest)} < {length}")
        if any(digest[length:]):
            raise MultihashError("Digest has nonzero bytes past its declared length")

        return cls(digest.ljust(MAX_DIGEST_SIZE, b"\x00"), hash_function, length)

    @classmethod
    def from_bytes(cls, data: bytes) -> Multihash:
        return decode_multihash(data)

    @classmethod
    def from_base58(cls, text: str) -> Multihash:
        return multihash_from_base58(text)

    @property
    def raw_digest(self) -> bytes:
        """Digest without padding."""
        return self.digest[:self.length]

    def to_bytes(self) -> bytes:
        return encode_multihash(self)

    def to_base58(self) -> str:
        return multihash_to_base58(self)


# =============================================================================
# Codec
# =============================================================================

def decode_multihash(data: bytes) -> Multihash:
    """Decode wire bytes `fn + len + digest`."""
    data = bytes(data)
    if len(data) < HEADER_SIZE:
        raise MultihashError(f"Multihash too short: {len(data)}B")

    hash_function, length = data[0], data[1]
    digest = data[HEADER_SIZE:]

    if length == 0:
        raise MultihashError("Digest length must be nonzero")
    if length > MAX_DIGEST_SIZE:
        raise MultihashError(f"Digest exceeds {MAX_DIGEST_SIZE} bytes: {length}")
    if len(digest) != length:
        raise MultihashError(
            f"Declared length {length} does not match digest size {len(digest)}"
        )

    return Multihash(digest.ljust(MAX_DIGEST_SIZE, b"\x00"), hash_function, length)


def encode_multihash(mh: Multihash) -> bytes:
    """Encode a stored triple to wire bytes."""
    if mh.length == 0:
        raise MultihashError("Digest length must be nonzero")
    if mh.length > MAX_DIGEST_SIZE:
        raise MultihashError(f"Digest exceeds {MAX_DIGEST_SIZE} bytes: {mh.length}")
    return bytes([mh.hash_function, mh.length]) + mh.digest[:mh.length]


def multihash_from_base58(text: str) -> Multihash:
    """Decode the base58 textual form."""
    try:
        data = base58.b58decode(text)
    except ValueError as e:
        raise MultihashError(f"Invalid base58 identifier: {e}") from None
    return decode_multihash(data)


def multihash_to_base58(mh: Multihash) -> str:
    """Encode to the base58 textual form."""
    return base58.b58encode(encode_multihash(mh)).decode("ascii")
