"""
Safe Proposal Test Mocks Module

Shared constants, factories and in-memory doubles for the proposal pipeline
tests. Nothing here talks to a chain or to the hosted transaction service.

Key Components:
    - Mock owner keys/addresses, Safe and contract addresses, chain ids
    - Factories for network profiles, encoded calls and Safe transactions
    - ScriptedTransactionService: TransactionServiceAPI double with scripted
      nonces and failures
    - create_mock_provider: AsyncWeb3 stand-in whose provider answers
      wallet JSON-RPC calls

Usage:
    from proposal_mocks import (
        MOCK_SAFE_ADDRESS,
        create_mock_profile,
        create_fee_call,
        ScriptedTransactionService,
    )
"""

import json
from typing import Any, Dict, List, Optional, Sequence
from unittest.mock import AsyncMock, MagicMock

from eth_account import Account

from safe_proposer.adapters.bases import TransactionServiceAPI
from safe_proposer.adapters.evm.encoding import encode_call
from safe_proposer.adapters.evm.patchwork_abi import get_governance_abi
from safe_proposer.adapters.evm.transactions import build_safe_transaction
from safe_proposer.config.networks import NetworkProfile
from safe_proposer.schemas.bases import (
    ChainIdentity,
    EncodedCall,
    ProposalReceipt,
    SafeSignature,
    SafeTransaction,
    SafeTxHash,
    to_checksum_address,
)
from safe_proposer.schemas.https import SafeInfo


# ========================================================================
# Mock Constants
# ========================================================================

# Test private keys (do not use in production!)
MOCK_OWNER_PRIVATE_KEY = "0x1234567890123456789012345678901234567890123456789012345678901234"
MOCK_COSIGNER_PRIVATE_KEY = "0xabcdefabcdefabcdefabcdefabcdefabcdefabcdefabcdefabcdefabcdefabcd"
MOCK_OUTSIDER_PRIVATE_KEY = "0x" + "42" * 32

MOCK_OWNER_ADDRESS = Account.from_key(MOCK_OWNER_PRIVATE_KEY).address
MOCK_COSIGNER_ADDRESS = Account.from_key(MOCK_COSIGNER_PRIVATE_KEY).address
MOCK_OUTSIDER_ADDRESS = Account.from_key(MOCK_OUTSIDER_PRIVATE_KEY).address

MOCK_SAFE_ADDRESS = to_checksum_address("0x5afe5afe5afe5afe5afe5afe5afe5afe5afe5afe")
MOCK_CONTRACT_ADDRESS = to_checksum_address("0x00000000001616e65bb9fdd2ca0a1c7fa3f2ec5d")
MOCK_BANKER_ADDRESS = to_checksum_address("0xba9ce7ba9ce7ba9ce7ba9ce7ba9ce7ba9ce7ba9c")

MOCK_CHAIN_ID_BASE = 8453
MOCK_CHAIN_ID_SEPOLIA = 11155111
MOCK_RPC_URL = "https://rpc.example.org"
MOCK_SERVICE_URL = "http://tx-service.test"

MOCK_SAFE_VERSION = "1.3.0"
MOCK_NONCE = 7

MOCK_ENV: Dict[str, str] = {
    "NETWORK": "sepolia",
    "SEPOLIA_RPC_URL": MOCK_RPC_URL,
    "SEPOLIA_PATCHWORK_OWNER": MOCK_SAFE_ADDRESS.lower(),
    "SEPOLIA_PATCHWORK_ADDRESS": MOCK_CONTRACT_ADDRESS,
    "BASE_RPC_URL": "https://mainnet.base.org",
    "BASE_PATCHWORK_OWNER": MOCK_SAFE_ADDRESS,
    "BASE_PATCHWORK_ADDRESS": MOCK_CONTRACT_ADDRESS,
}

MOCK_FEE_CONFIG = {"mintBp": 500, "patchBp": 250, "assignBp": 100}


# ========================================================================
# Factories
# ========================================================================

def create_mock_profile(
    chain_id: int = MOCK_CHAIN_ID_SEPOLIA,
    safe_address: str = MOCK_SAFE_ADDRESS,
    contract_address: str = MOCK_CONTRACT_ADDRESS,
) -> NetworkProfile:
    return NetworkProfile(
        chain=ChainIdentity(name="sepolia", chain_id=chain_id, rpc_url=MOCK_RPC_URL),
        safe_address=safe_address,
        contract_address=contract_address,
        tx_service_url=MOCK_SERVICE_URL,
    )


def create_fee_call(fee_config: Optional[Dict[str, int]] = None) -> EncodedCall:
    """Encode ``proposeProtocolFeeConfig`` for the mock contract."""
    return encode_call(
        get_governance_abi(),
        "proposeProtocolFeeConfig((uint256,uint256,uint256))",
        [fee_config or MOCK_FEE_CONFIG],
        to=MOCK_CONTRACT_ADDRESS,
    )


def create_mock_transaction(nonce: int = MOCK_NONCE, **overrides) -> SafeTransaction:
    return build_safe_transaction(create_fee_call(), MOCK_SAFE_ADDRESS, nonce, **overrides)


def create_safe_info(
    nonce: int = MOCK_NONCE,
    owners: Sequence[str] = (MOCK_OWNER_ADDRESS, MOCK_COSIGNER_ADDRESS),
    threshold: int = 2,
    version: Optional[str] = MOCK_SAFE_VERSION,
) -> SafeInfo:
    return SafeInfo(
        address=MOCK_SAFE_ADDRESS,
        nonce=nonce,
        threshold=threshold,
        owners=list(owners),
        version=version,
    )


# ========================================================================
# Transaction service double
# ========================================================================

class ScriptedTransactionService(TransactionServiceAPI):
    """
    In-memory ``TransactionServiceAPI`` with scripted behaviour.

    Args:
        nonces: Nonces returned by successive ``get_safe_info`` calls; the
            last one repeats.
        propose_errors: Exceptions raised by successive
            ``propose_transaction`` calls before proposals start succeeding.
        info_errors: Exceptions raised by successive ``get_safe_info`` calls.
    """

    def __init__(
        self,
        nonces: Sequence[int] = (MOCK_NONCE,),
        propose_errors: Sequence[Exception] = (),
        info_errors: Sequence[Exception] = (),
        owners: Sequence[str] = (MOCK_OWNER_ADDRESS, MOCK_COSIGNER_ADDRESS),
        version: Optional[str] = MOCK_SAFE_VERSION,
    ):
        self.nonces = list(nonces)
        self.propose_errors = list(propose_errors)
        self.info_errors = list(info_errors)
        self.owners = list(owners)
        self.version = version
        self.info_calls = 0
        self.proposals: List[Dict[str, Any]] = []

    async def get_safe_info(self, safe_address: str) -> SafeInfo:
        self.info_calls += 1
        if self.info_errors:
            raise self.info_errors.pop(0)
        nonce = self.nonces.pop(0) if len(self.nonces) > 1 else self.nonces[0]
        return create_safe_info(nonce=nonce, owners=self.owners, version=self.version)

    async def get_nonce(self, safe_address: str) -> int:
        return (await self.get_safe_info(safe_address)).nonce

    async def propose_transaction(
        self,
        safe_address: str,
        transaction: SafeTransaction,
        tx_hash: SafeTxHash,
        sender: str,
        signature: SafeSignature,
        origin: Optional[str] = None,
    ) -> ProposalReceipt:
        self.proposals.append({
            "safe_address": safe_address,
            "transaction": transaction,
            "tx_hash": tx_hash,
            "sender": sender,
            "signature": signature,
        })
        if self.propose_errors:
            raise self.propose_errors.pop(0)
        return ProposalReceipt(
            safe_address=safe_address,
            safe_tx_hash=tx_hash.safe_tx_hash,
            nonce=transaction.nonce,
            sender=sender,
        )


# ========================================================================
# Wallet provider double
# ========================================================================

def create_mock_provider(
    private_key: str = MOCK_OWNER_PRIVATE_KEY,
    reported_address: Optional[str] = None,
    error: Optional[Dict[str, Any]] = None,
    raises: Optional[Exception] = None,
) -> MagicMock:
    """
    Build an ``AsyncWeb3`` stand-in whose provider behaves like a wallet.

    Args:
        private_key: Key the wallet signs with.
        reported_address: Address returned by ``eth_requestAccounts``;
            defaults to the key's address.
        error: JSON-RPC error object returned for ``eth_signTypedData_v4``.
        raises: Exception raised by every request (e.g. connection refused).
    """
    account = Account.from_key(private_key)
    address = reported_address or account.address

    async def make_request(method, params):
        if raises is not None:
            raise raises
        if method in ("eth_requestAccounts", "eth_accounts"):
            return {"jsonrpc": "2.0", "id": 1, "result": [address]}
        if method == "eth_signTypedData_v4":
            if error is not None:
                return {"jsonrpc": "2.0", "id": 1, "error": error}
            typed_data = json.loads(params[1])
            signed = Account.sign_typed_data(account.key, full_message=typed_data)
            return {"jsonrpc": "2.0", "id": 1, "result": "0x" + bytes(signed.signature).hex()}
        return {"jsonrpc": "2.0", "id": 1, "error": {"code": -32601, "message": "method not found"}}

    web3 = MagicMock()
    web3.provider.make_request = AsyncMock(side_effect=make_request)
    web3.is_connected = AsyncMock(return_value=raises is None)
    return web3
