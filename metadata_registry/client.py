# metadata_registry/client.py
"""
Metadata Registry: On-chain Client

Python interface to a deployed MetadataRegistry contract.
Supports initial registration with a nonce proof, updates, delegation,
clearing, and queries.

Requirements:
    pip install web3 eth-account

Usage:
    client = RegistryClient(
        contract_address="0x...",
        rpc_url="https://...",
        private_key="0x...",  # Optional, for write ops
    )

    # Register metadata for a contract deployed at transaction `nonce`
    client.set_initial_entry(contract, "Qm...", nonce)

    # Update and query
    client.set_entry(contract, "Qm...")
    multihash = client.get_multihash(contract)
    delegate = client.get_delegate(contract)

Updated: 2026-10-18
Version: 0.1.0
"""

from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Any, Dict, List, Optional, Union

from eth_account import Account
from web3 import Web3
from web3.middleware import ExtraDataToPOAMiddleware

from .config import DEFAULT_CONFIG, RegistryConfig
from .derivation import encode_nonce
from .multihash import Multihash
from .types import ZERO_ADDRESS, AddressLike, RegistryError, to_address

logger = logging.getLogger("metadata-registry")


# =============================================================================
# Constants
# =============================================================================

ABI_PATH = Path(__file__).parent / "contracts" / "abi" / "MetadataRegistry.json"

SET_ENTRY_INITIAL = "setEntry(address,bytes32,uint8,uint8,uint256)"
SET_ENTRY = "setEntry(address,bytes32,uint8,uint8)"


def _load_abi() -> List[Dict]:
    """Load contract ABI from JSON file."""
    if ABI_PATH.exists():
        with open(ABI_PATH) as f:
            data = json.load(f)
            return data.get("abi", data)
    return []


CONTRACT_ABI = _load_abi()


# =============================================================================
# Exceptions
# =============================================================================

class TransactionFailedError(RegistryError):
    """Transaction mined with a failed status."""
    def __init__(self, tx_hash: str):
        self.tx_hash = tx_hash
        super().__init__(f"Transaction failed: {tx_hash}")


# =============================================================================
# RegistryClient
# =============================================================================

class RegistryClient:
    """MetadataRegistry contract interface."""

    def __init__(
        self,
        contract_address: Optional[str] = None,
        rpc_url: Optional[str] = None,
        private_key: Optional[str] = None,
        chain_id: Optional[int] = None,
        web3: Optional[Any] = None,
        config: Optional[RegistryConfig] = None,
    ):
        """
        Initialize RegistryClient.

        Args:
            contract_address: Deployed MetadataRegistry address
            rpc_url: RPC endpoint URL (ignored if `web3` is given)
            private_key: Private key for write operations (optional)
            chain_id: Chain ID (auto-detected if not provided)
            web3: Ready Web3 instance (optional)
            config: Defaults for address, endpoint, chain and gas
        """
        self._config = config or DEFAULT_CONFIG

        contract_address = contract_address or self._config.contract_address
        if not contract_address:
            raise RegistryError("Contract address required")
        self.contract_address = to_address(contract_address)

        if web3 is None:
            rpc_url = rpc_url or self._config.rpc_url
            if not rpc_url:
                raise RegistryError("rpc_url or web3 instance required")
            web3 = Web3(Web3.HTTPProvider(rpc_url))
            if self._config.poa:
                web3.middleware_onion.inject(ExtraDataToPOAMiddleware, layer=0)
        self._w3 = web3

        self._contract = self._w3.eth.contract(
            address=self.contract_address,
            abi=CONTRACT_ABI,
        )

        self._account = Account.from_key(private_key) if private_key else None

        if chain_id is None:
            chain_id = self._config.chain_id
        if chain_id is None:
            chain_id = self._w3.eth.chain_id
        self._chain_id = chain_id

    @property
    def account_address(self) -> Optional[str]:
        """Get account address (if private key provided)."""
        return self._account.address if self._account else None

    @property
    def chain_id(self) -> int:
        return self._chain_id

    # =========================================================================
    # Write Operations
    # =========================================================================

    def set_initial_entry(
        self,
        subject: AddressLike,
        multihash: Union[str, Multihash],
        nonce: int,
        gas_limit: Optional[int] = None,
        gas_price: Optional[int] = None,
    ) -> str:
        """
        Register the first entry for a contract the account deployed.

        Args:
            subject: Contract address
            multihash: Base58 identifier or Multihash
            nonce: Account nonce of the deployment transaction

        Returns:
            tx_hash: Transaction hash
        """
        mh = _as_multihash(multihash)
        encode_nonce(nonce)
        fn = self._contract.get_function_by_signature(SET_ENTRY_INITIAL)
        return self._transact(
            fn(to_address(subject), mh.digest, mh.hash_function, mh.length, nonce),
            gas_limit or self._config.gas_limit_set_entry,
            gas_price,
        )

    def set_entry(
        self,
        subject: AddressLike,
        multihash: Union[str, Multihash],
        gas_limit: Optional[int] = None,
        gas_price: Optional[int] = None,
    ) -> str:
        """Update an initialized entry as its delegate."""
        mh = _as_multihash(multihash)
        fn = self._contract.get_function_by_signature(SET_ENTRY)
        return self._transact(
            fn(to_address(subject), mh.digest, mh.hash_function, mh.length),
            gas_limit or self._config.gas_limit_update,
            gas_price,
        )

    def set_delegate(
        self,
        subject: AddressLike,
        delegate: AddressLike,
        gas_limit: Optional[int] = None,
        gas_price: Optional[int] = None,
    ) -> str:
        """Hand the entry to another address."""
        return self._transact(
            self._contract.functions.setDelegate(to_address(subject), to_address(delegate)),
            gas_limit or self._config.gas_limit_delegate,
            gas_price,
        )

    def clear_entry(
        self,
        subject: AddressLike,
        gas_limit: Optional[int] = None,
        gas_price: Optional[int] = None,
    ) -> str:
        """Delete the entry."""
        return self._transact(
            self._contract.functions.clearEntry(to_address(subject)),
            gas_limit or self._config.gas_limit_clear,
            gas_price,
        )

    def _transact(self, call: Any, gas: int, gas_price: Optional[int]) -> str:
        """Build, sign, send and wait for a contract call."""
        if not self._account:
            raise RegistryError("Private key required for write operations")

        tx = call.build_transaction({
            'from': self._account.address,
            'chainId': self._chain_id,
            'nonce': self._w3.eth.get_transaction_count(self._account.address),
            'gas': gas,
            'gasPrice': gas_price or self._w3.eth.gas_price,
        })

        signed = self._account.sign_transaction(tx)
        tx_hash = Web3.to_hex(self._w3.eth.send_raw_transaction(signed.raw_transaction))
        receipt = self._w3.eth.wait_for_transaction_receipt(tx_hash)

        if receipt['status'] != 1:
            logger.warning("Transaction reverted: %s", tx_hash)
            raise TransactionFailedError(tx_hash)

        logger.info("Transaction confirmed: %s", tx_hash)
        return tx_hash

    # =========================================================================
    # Read Operations
    # =========================================================================

    def get_multihash(self, subject: AddressLike) -> Optional[str]:
        """Base58 identifier, or None if the entry is empty."""
        digest, hash_function, size = self._contract.functions.getIPFSMultihash(
            to_address(subject)
        ).call()
        if size == 0:
            return None
        # bytes past size are not part of the digest
        return Multihash.from_fields(bytes(digest)[:size], hash_function, size).to_base58()

    def get_delegate(self, subject: AddressLike) -> Optional[str]:
        """Delegate address, or None if unset."""
        delegate = self._contract.functions.getDelegate(to_address(subject)).call()
        if to_address(delegate) == ZERO_ADDRESS:
            return None
        return to_address(delegate)

    def get_version(self, subject: AddressLike) -> int:
        return int(self._contract.functions.getVersion(to_address(subject)).call())


def _as_multihash(value: Union[str, Multihash]) -> Multihash:
    if isinstance(value, Multihash):
        return value
    return Multihash.from_base58(value)
