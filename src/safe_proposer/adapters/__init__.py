"""
Capability interfaces and their EVM implementations.

The pipeline depends only on the abstract ``SignerHandle`` and
``TransactionServiceAPI``; concrete wallets live under ``adapters.evm`` and
the HTTP service client under ``clients``.
"""

from .bases import SignerHandle, TransactionServiceAPI

__all__ = ["SignerHandle", "TransactionServiceAPI"]
