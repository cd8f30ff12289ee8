# tests/conftest.py
"""Shared fixtures: deterministic accounts, a deployed subject, digests."""

import pytest
from eth_account import Account

from metadata_registry import MetadataRegistry, Multihash, compute_create_address

IPFS_HASHES = [
    "QmahqCsAUAw7zMv6P6Ae8PjCTck7taQA6FgGQLnWdKG7U8",
    "Qmb4atcgbbN5v4CDJ8nz5QG5L2pgwSTLd3raDrnyhLjnUH",
]

DEPLOY_NONCE = 3


def _address(byte: str) -> str:
    return Account.from_key("0x" + byte * 32).address


@pytest.fixture
def deployer() -> str:
    return _address("11")


@pytest.fixture
def other() -> str:
    return _address("22")


@pytest.fixture
def stranger() -> str:
    return _address("33")


@pytest.fixture
def subject(deployer) -> str:
    """Contract the deployer created in its transaction DEPLOY_NONCE."""
    return compute_create_address(deployer, DEPLOY_NONCE)


@pytest.fixture
def registry() -> MetadataRegistry:
    return MetadataRegistry()


@pytest.fixture
def mh_a() -> Multihash:
    return Multihash.from_base58(IPFS_HASHES[0])


@pytest.fixture
def mh_b() -> Multihash:
    return Multihash.from_base58(IPFS_HASHES[1])


@pytest.fixture
def created(registry, deployer, subject, mh_a):
    """Registry with the default entry of `subject` created by `deployer`."""
    registry.create(
        deployer, subject, mh_a.digest, mh_a.hash_function, mh_a.length, proof=DEPLOY_NONCE
    )
    return registry
