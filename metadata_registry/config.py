# metadata_registry/config.py
"""
Metadata Registry: Configuration

Frozen parameter set shared by the in-memory registry and the on-chain
client. Defaults work out of the box; `from_env` overrides them from
METADATA_REGISTRY_* environment variables.

Usage:
    from metadata_registry.config import RegistryConfig, DEFAULT_CONFIG

    config = RegistryConfig.from_env()
    strict = RegistryConfig(allow_create2=False)

Updated: 2026-10-18
Version: 0.1.0
"""

from __future__ import annotations

import os
from dataclasses import dataclass, replace
from typing import Any, Dict, Mapping, Optional

ENV_PREFIX = "METADATA_REGISTRY_"

_TRUE = {"1", "true", "yes", "on"}
_FALSE = {"0", "false", "no", "off"}


@dataclass(frozen=True)
class RegistryConfig:
    """Registry parameters."""
    # Authorization
    max_digest_size: int = 32
    allow_self_attestation: bool = True
    allow_create2: bool = True

    # On-chain client
    rpc_url: Optional[str] = None
    contract_address: Optional[str] = None
    chain_id: Optional[int] = None
    poa: bool = False
    gas_limit_set_entry: int = 200000
    gas_limit_update: int = 100000
    gas_limit_delegate: int = 80000
    gas_limit_clear: int = 60000

    @classmethod
    def from_env(
        cls,
        prefix: str = ENV_PREFIX,
        environ: Optional[Mapping[str, str]] = None,
    ) -> RegistryConfig:
        """Defaults overridden by environment variables."""
        env = os.environ if environ is None else environ
        overrides: Dict[str, Any] = {}

        for name in ("rpc_url", "contract_address"):
            value = env.get(prefix + name.upper())
            if value:
                overrides[name] = value

        chain_id = env.get(prefix + "CHAIN_ID")
        if chain_id:
            overrides["chain_id"] = int(chain_id, 0)

        for name in ("allow_self_attestation", "allow_create2", "poa"):
            value = env.get(prefix + name.upper())
            if value:
                overrides[name] = _parse_bool(prefix + name.upper(), value)

        return replace(cls(), **overrides)


def _parse_bool(key: str, value: str) -> bool:
    lowered = value.strip().lower()
    if lowered in _TRUE:
        return True
    if lowered in _FALSE:
        return False
    raise ValueError(f"{key}: expected a boolean, got {value!r}")


DEFAULT_CONFIG = RegistryConfig()
