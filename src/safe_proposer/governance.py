"""
Patchwork Protocol Governance Commands

Builders for the owner-only calls the protocol Safe proposes. Each helper
returns a ``ContractCallSpec`` ready for ``ProposalPipeline.propose`` (or
``encode_call_spec`` with ``get_governance_abi()``).

Basis points are expressed out of 10,000 (100 bp = 1%).
"""

from typing import Mapping

from .engine.exceptions import EncodingError, EncodingFailure
from .schemas.bases import ContractCallSpec, to_checksum_address

MAX_BASIS_POINTS = 10_000

PROPOSE_FEE_CONFIG = "proposeProtocolFeeConfig((uint256,uint256,uint256))"
COMMIT_FEE_CONFIG = "commitProtocolFeeConfig()"
ADD_BANKER = "addProtocolBanker(address)"
REMOVE_BANKER = "removeProtocolBanker(address)"
WITHDRAW = "withdraw(string,uint256)"


def _basis_points(name: str, value: int) -> int:
    if isinstance(value, bool) or not isinstance(value, int) or not 0 <= value <= MAX_BASIS_POINTS:
        raise EncodingError(
            EncodingFailure.TYPE_MISMATCH,
            f"{name} must be an int between 0 and {MAX_BASIS_POINTS} basis points, got {value!r}",
        )
    return value


def _address(name: str, value: str) -> str:
    try:
        return to_checksum_address(value)
    except ValueError:
        raise EncodingError(EncodingFailure.TYPE_MISMATCH, f"{name} is not a valid address: {value!r}")


def propose_protocol_fee(contract: str, mint_bp: int, patch_bp: int, assign_bp: int) -> ContractCallSpec:
    """
    Propose a new protocol fee configuration.

    The new configuration only takes effect after the contract's timelock
    and a separate ``commit_protocol_fee`` call.

    Example::

        call = propose_protocol_fee(profile.contract_address, 500, 250, 100)
    """
    fee_config: Mapping[str, int] = {
        "mintBp": _basis_points("mint_bp", mint_bp),
        "patchBp": _basis_points("patch_bp", patch_bp),
        "assignBp": _basis_points("assign_bp", assign_bp),
    }
    return ContractCallSpec(
        target_address=_address("contract", contract),
        function_signature=PROPOSE_FEE_CONFIG,
        argument_values=(fee_config,),
    )


def commit_protocol_fee(contract: str) -> ContractCallSpec:
    """Commit a previously proposed fee configuration."""
    return ContractCallSpec(target_address=_address("contract", contract), function_signature=COMMIT_FEE_CONFIG)


def add_protocol_banker(contract: str, banker: str) -> ContractCallSpec:
    return ContractCallSpec(
        target_address=_address("contract", contract),
        function_signature=ADD_BANKER,
        argument_values=(_address("banker", banker),),
    )


def remove_protocol_banker(contract: str, banker: str) -> ContractCallSpec:
    return ContractCallSpec(
        target_address=_address("contract", contract),
        function_signature=REMOVE_BANKER,
        argument_values=(_address("banker", banker),),
    )


def withdraw(contract: str, scope_name: str, amount: int) -> ContractCallSpec:
    """Withdraw ``amount`` wei from the balance of scope ``scope_name``."""
    if not isinstance(scope_name, str):
        raise EncodingError(EncodingFailure.TYPE_MISMATCH, f"scope_name must be a string, got {scope_name!r}")
    if isinstance(amount, bool) or not isinstance(amount, int) or amount < 0:
        raise EncodingError(EncodingFailure.TYPE_MISMATCH, f"amount must be a non-negative int, got {amount!r}")
    return ContractCallSpec(
        target_address=_address("contract", contract),
        function_signature=WITHDRAW,
        argument_values=(scope_name, amount),
    )
