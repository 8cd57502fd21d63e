from .networks import (
    NETWORKS,
    NetworkDefinition,
    NetworkProfile,
    resolve_network,
    resolve_from_env,
    get_private_key_from_env,
)

__all__ = [
    "NETWORKS",
    "NetworkDefinition",
    "NetworkProfile",
    "resolve_network",
    "resolve_from_env",
    "get_private_key_from_env",
]
