"""
Network Configuration Management

Resolves the active network profile: chain identity, RPC endpoint, the Safe
that owns the protocol contract, the protocol contract itself and the Safe
Transaction Service base URL.

Profiles are a static table; the per-deployment values (RPC URL and
addresses) come from environment variables, optionally loaded from a
``.env`` file. The resolved ``NetworkProfile`` is built once by the caller
and handed to every component that needs it.
"""

import os
from typing import Dict, Mapping, Optional
from urllib.parse import urlparse

import dotenv
from pydantic import BaseModel, ConfigDict, Field

from ..engine.exceptions import ConfigurationError
from ..schemas.bases import ChainIdentity, to_checksum_address


#: Environment variable selecting the active profile.
NETWORK_ENV_VAR = "NETWORK"

#: Profile used when ``NETWORK`` is unset.
DEFAULT_NETWORK = "base"


class NetworkDefinition(BaseModel):
    """Static description of a supported network."""
    name: str
    chain_id: int
    env_prefix: str = Field(..., description="Prefix of the per-deployment environment variables")
    tx_service_url: str = Field(..., description="Default Safe Transaction Service base URL")


class NetworkProfile(BaseModel):
    """Resolved configuration for one process.

    Attributes:
        chain: Active chain identity.
        safe_address: Safe that owns the protocol contract (checksummed).
        contract_address: Protocol contract the governance calls target (checksummed).
        tx_service_url: Safe Transaction Service base URL.
    """
    model_config = ConfigDict(frozen=True)

    chain: ChainIdentity
    safe_address: str
    contract_address: str
    tx_service_url: str

    @property
    def chain_id(self) -> int:
        return self.chain.chain_id

    @property
    def rpc_url(self) -> str:
        return self.chain.rpc_url


# Each network names the environment variables that carry the deployment:
#   <PREFIX>_RPC_URL, <PREFIX>_PATCHWORK_OWNER (Safe), <PREFIX>_PATCHWORK_ADDRESS,
#   and optionally <PREFIX>_SAFE_TX_SERVICE_URL.
_NETWORKS_DATA: Dict[str, Dict] = {
    "base": {
        "chain_id": 8453,
        "env_prefix": "BASE",
        "tx_service_url": "https://safe-transaction-base.safe.global",
    },
    "sepolia": {
        "chain_id": 11155111,
        "env_prefix": "SEPOLIA",
        "tx_service_url": "https://safe-transaction-sepolia.safe.global",
    },
}

NETWORKS: Dict[str, NetworkDefinition] = {
    name: NetworkDefinition(name=name, **data) for name, data in _NETWORKS_DATA.items()
}


def _require(env: Mapping[str, str], key: str) -> str:
    value = env.get(key)
    if value is None or not str(value).strip():
        raise ConfigurationError(f"Missing required environment variable: {key}")
    return str(value).strip()


def _validate_uri(key: str, value: str, schemes: tuple) -> str:
    parsed = urlparse(value)
    if parsed.scheme not in schemes or not parsed.netloc:
        raise ConfigurationError(
            f"{key} must be a {'/'.join(schemes)} URI, got {value!r}"
        )
    return value.rstrip("/")


def _validate_address(key: str, value: str) -> str:
    try:
        return to_checksum_address(value)
    except ValueError as exc:
        raise ConfigurationError(f"{key} is not a valid address: {value!r}") from exc


def resolve_network(network_name: str, env: Optional[Mapping[str, str]] = None) -> NetworkProfile:
    """
    Resolve a named network profile.

    Args:
        network_name: Profile name, case-insensitive (e.g. "base", "sepolia").
        env: Variable source; defaults to ``os.environ``.

    Returns:
        NetworkProfile: Validated, immutable profile.

    Raises:
        ConfigurationError: If the profile is unknown, or a required value is
            absent or malformed.

    Example:
        profile = resolve_network("sepolia", env={
            "SEPOLIA_RPC_URL": "https://rpc.sepolia.org",
            "SEPOLIA_PATCHWORK_OWNER": "0x...",
            "SEPOLIA_PATCHWORK_ADDRESS": "0x...",
        })
    """
    env = os.environ if env is None else env
    name = (network_name or "").strip().lower()

    definition = NETWORKS.get(name)
    if definition is None:
        raise ConfigurationError(
            f"Configuration for network '{network_name}' not found. "
            f"Supported networks: {', '.join(sorted(NETWORKS))}"
        )

    prefix = definition.env_prefix
    rpc_key = f"{prefix}_RPC_URL"
    safe_key = f"{prefix}_PATCHWORK_OWNER"
    contract_key = f"{prefix}_PATCHWORK_ADDRESS"
    service_key = f"{prefix}_SAFE_TX_SERVICE_URL"

    rpc_url = _validate_uri(rpc_key, _require(env, rpc_key), ("http", "https", "ws", "wss"))
    safe_address = _validate_address(safe_key, _require(env, safe_key))
    contract_address = _validate_address(contract_key, _require(env, contract_key))

    service_url = (env.get(service_key) or "").strip() or definition.tx_service_url
    service_url = _validate_uri(service_key, service_url, ("http", "https"))

    return NetworkProfile(
        chain=ChainIdentity(name=definition.name, chain_id=definition.chain_id, rpc_url=rpc_url),
        safe_address=safe_address,
        contract_address=contract_address,
        tx_service_url=service_url,
    )


def resolve_from_env(env: Optional[Mapping[str, str]] = None, dotenv_path: Optional[str] = None) -> NetworkProfile:
    """
    Resolve the profile named by the ``NETWORK`` variable (default "base").

    When reading from the process environment, a ``.env`` file is loaded
    first; existing environment values win over the file.

    Args:
        env: Explicit variable source; skips ``.env`` loading when given.
        dotenv_path: Optional path to the ``.env`` file.

    Raises:
        ConfigurationError: See ``resolve_network``.
    """
    if env is None:
        dotenv.load_dotenv(dotenv_path=dotenv_path)
        env = os.environ
    return resolve_network(env.get(NETWORK_ENV_VAR) or DEFAULT_NETWORK, env)


def get_private_key_from_env() -> Optional[str]:
    """
    Load the proposer's private key for script usage.

    Environment Variable:
        - PROPOSER_PRIVATE_KEY: 0x-prefixed hex key

    Note:
        Only ``LocalAccountSigner`` uses a raw key; browser and hardware
        wallets go through ``Web3ProviderSigner`` and never expose one.
    """
    return os.getenv("PROPOSER_PRIVATE_KEY")
