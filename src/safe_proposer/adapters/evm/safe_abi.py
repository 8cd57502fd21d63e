"""
Safe Contract ABI Module

Read-only ABI fragments of the Safe singleton used to cross-check local
state against the chain: the current nonce, the contract version and the
contract's own ``getTransactionHash`` computation.
"""

from typing import Any, Dict, List


def get_nonce_abi() -> List[Dict[str, Any]]:
    """Get ABI for the Safe ``nonce()`` view."""
    return [
        {
            "name": "nonce",
            "type": "function",
            "stateMutability": "view",
            "inputs": [],
            "outputs": [{"name": "", "type": "uint256"}],
        }
    ]


def get_version_abi() -> List[Dict[str, Any]]:
    """Get ABI for the Safe ``VERSION()`` view."""
    return [
        {
            "name": "VERSION",
            "type": "function",
            "stateMutability": "view",
            "inputs": [],
            "outputs": [{"name": "", "type": "string"}],
        }
    ]


def get_transaction_hash_abi() -> List[Dict[str, Any]]:
    """
    Get ABI for ``getTransactionHash``.

    Argument order matches the ``SafeTx`` struct; the final argument is the
    nonce (``_nonce``).
    """
    return [
        {
            "name": "getTransactionHash",
            "type": "function",
            "stateMutability": "view",
            "inputs": [
                {"name": "to", "type": "address"},
                {"name": "value", "type": "uint256"},
                {"name": "data", "type": "bytes"},
                {"name": "operation", "type": "uint8"},
                {"name": "safeTxGas", "type": "uint256"},
                {"name": "baseGas", "type": "uint256"},
                {"name": "gasPrice", "type": "uint256"},
                {"name": "gasToken", "type": "address"},
                {"name": "refundReceiver", "type": "address"},
                {"name": "_nonce", "type": "uint256"},
            ],
            "outputs": [{"name": "", "type": "bytes32"}],
        }
    ]


def get_safe_abi() -> List[Dict[str, Any]]:
    """Get the combined read-only Safe ABI."""
    return get_nonce_abi() + get_version_abi() + get_transaction_hash_abi()
