"""
Patchwork Protocol Governance ABI Module

ABI fragments for the owner-only governance functions of the Patchwork
protocol contract. These are the calls the protocol Safe proposes; the full
contract ABI can be loaded from the Foundry build artifact with ``load_abi``.

Usage:
    from safe_proposer.adapters.evm.patchwork_abi import get_governance_abi

    abi = get_governance_abi()
    encoded = encode_call(abi, "proposeProtocolFeeConfig((uint256,uint256,uint256))",
                          [{"mintBp": 500, "patchBp": 250, "assignBp": 100}], to=contract)
"""

import json
from pathlib import Path
from typing import Any, Dict, List, Union


def get_fee_config_abi() -> List[Dict[str, Any]]:
    """
    Get ABI for proposing and committing a new protocol fee configuration.

    The ``FeeConfig`` struct components are declared in contract order
    (mintBp, patchBp, assignBp); encoding follows this order regardless of
    how the caller built the value.
    """
    return [
        {
            "name": "proposeProtocolFeeConfig",
            "type": "function",
            "stateMutability": "nonpayable",
            "inputs": [
                {
                    "name": "config",
                    "type": "tuple",
                    "internalType": "struct IPatchworkProtocol.FeeConfig",
                    "components": [
                        {"name": "mintBp", "type": "uint256", "internalType": "uint256"},
                        {"name": "patchBp", "type": "uint256", "internalType": "uint256"},
                        {"name": "assignBp", "type": "uint256", "internalType": "uint256"},
                    ],
                }
            ],
            "outputs": [],
        },
        {
            "name": "commitProtocolFeeConfig",
            "type": "function",
            "stateMutability": "nonpayable",
            "inputs": [],
            "outputs": [],
        },
    ]


def get_banker_abi() -> List[Dict[str, Any]]:
    """Get ABI for adding and removing protocol bankers."""
    return [
        {
            "name": "addProtocolBanker",
            "type": "function",
            "stateMutability": "nonpayable",
            "inputs": [{"name": "op", "type": "address", "internalType": "address"}],
            "outputs": [],
        },
        {
            "name": "removeProtocolBanker",
            "type": "function",
            "stateMutability": "nonpayable",
            "inputs": [{"name": "op", "type": "address", "internalType": "address"}],
            "outputs": [],
        },
    ]


def get_withdraw_abi() -> List[Dict[str, Any]]:
    """Get ABI for withdrawing a scope balance."""
    return [
        {
            "name": "withdraw",
            "type": "function",
            "stateMutability": "nonpayable",
            "inputs": [
                {"name": "scopeName", "type": "string", "internalType": "string"},
                {"name": "amount", "type": "uint256", "internalType": "uint256"},
            ],
            "outputs": [],
        }
    ]


def get_governance_abi() -> List[Dict[str, Any]]:
    """
    Get the combined ABI of every governance function.

    Returns:
        List[Dict[str, Any]]: Fee config, banker and withdraw entries.
    """
    return get_fee_config_abi() + get_banker_abi() + get_withdraw_abi()


def load_abi(source: Union[str, Path]) -> List[Dict[str, Any]]:
    """
    Load a contract ABI from a JSON file.

    Accepts either a bare ABI list or a build artifact object with an
    ``"abi"`` key (Foundry ``out/<Contract>.sol/<Contract>.json``).

    Raises:
        ValueError: If the file holds neither shape.
    """
    with open(source, "r", encoding="utf-8") as f:
        payload = json.load(f)

    if isinstance(payload, dict):
        payload = payload.get("abi")
    if not isinstance(payload, list):
        raise ValueError(f"No ABI list found in {source}")
    return payload
