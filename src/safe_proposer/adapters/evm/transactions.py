"""
Safe Multisig Transaction Builder

Wraps an ``EncodedCall`` into a ``SafeTransaction`` bound to a Safe nonce and
computes its EIP-712 ``safeTxHash``.

Exported helpers
----------------
build_safe_transaction
    Fill the ``SafeTx`` struct from an encoded call. Every refund/gas field
    defaults to zero and ``operation`` defaults to CALL.

hash_safe_transaction
    Compute the domain-separated digest. The digest is computed twice, once
    by direct struct encoding with ``eth_abi`` and once through
    ``eth_account``'s EIP-712 encoder over the typed data handed to wallets.
    The two must agree or ``HashMismatchError`` is raised.

build_safe_tx_typed_data
    Low-level helper returning the ``SafeTxTypedData`` envelope without
    hashing. Useful when the digest is checked by an external wallet.

OnChainSafeReader / verify_hash_on_chain
    Read ``nonce``, ``VERSION`` and ``getTransactionHash`` from the deployed
    Safe through ``AsyncWeb3`` and compare the contract's own digest with the
    local one.
"""

import logging
from typing import Optional

from eth_abi import encode
from eth_account.messages import encode_typed_data
from eth_utils import keccak
from web3 import AsyncWeb3

from ...engine.exceptions import HashMismatchError
from ...schemas.bases import (
    ZERO_ADDRESS,
    EncodedCall,
    Operation,
    SafeTransaction,
    SafeTxHash,
    to_checksum_address,
)
from .safe_abi import get_safe_abi
from .standards import (
    DEFAULT_SAFE_VERSION,
    DOMAIN_SEPARATOR_TYPEHASH,
    DOMAIN_SEPARATOR_TYPEHASH_LEGACY,
    SAFE_TX_TYPEHASH,
    SafeDomain,
    SafeTxMessage,
    SafeTxTypedData,
    domain_includes_chain_id,
)

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Builder
# ---------------------------------------------------------------------------

def build_safe_transaction(
    encoded_call: EncodedCall,
    safe_address: str,
    nonce: int,
    *,
    operation: Operation = Operation.CALL,
    safe_tx_gas: int = 0,
    base_gas: int = 0,
    gas_price: int = 0,
    gas_token: str = ZERO_ADDRESS,
    refund_receiver: str = ZERO_ADDRESS,
) -> SafeTransaction:
    """
    Build a ``SafeTransaction`` from an encoded call.

    The nonce is taken as given; callers fetch it fresh for every build.

    Args:
        encoded_call:    Output of ``encode_call``.
        safe_address:    Safe that will execute the call. Validated here so a
                         malformed address fails before hashing.
        nonce:           Current Safe nonce.
        operation:       CALL unless a delegate call is explicitly required.
        safe_tx_gas, base_gas, gas_price, gas_token, refund_receiver:
                         Refund parameters; zero values mean "no refund".

    Raises:
        ValueError: If an address is malformed or a numeric field is negative.
    """
    to_checksum_address(safe_address)
    return SafeTransaction(
        to=encoded_call.to,
        value=encoded_call.value,
        data=encoded_call.data,
        operation=Operation(operation),
        safe_tx_gas=safe_tx_gas,
        base_gas=base_gas,
        gas_price=gas_price,
        gas_token=gas_token,
        refund_receiver=refund_receiver,
        nonce=nonce,
    )


def build_safe_tx_typed_data(
    transaction: SafeTransaction,
    safe_address: str,
    chain_id: int,
    *,
    safe_version: str = DEFAULT_SAFE_VERSION,
) -> SafeTxTypedData:
    """
    Wrap a ``SafeTransaction`` in its EIP-712 envelope without hashing.

    Returns:
        ``SafeTxTypedData`` whose ``to_dict()`` is compatible with
        ``eth_account.Account.sign_typed_data`` and ``eth_signTypedData_v4``.
    """
    domain = SafeDomain(
        verifyingContract=to_checksum_address(safe_address),
        chainId=chain_id if domain_includes_chain_id(safe_version) else None,
    )
    message = SafeTxMessage(**transaction.to_message())
    return SafeTxTypedData(domain=domain, message=message)


# ---------------------------------------------------------------------------
# Hashing
# ---------------------------------------------------------------------------

def _domain_separator(safe_address: str, chain_id: int, safe_version: str) -> bytes:
    if domain_includes_chain_id(safe_version):
        return keccak(encode(
            ["bytes32", "uint256", "address"],
            [DOMAIN_SEPARATOR_TYPEHASH, chain_id, safe_address],
        ))
    return keccak(encode(["bytes32", "address"], [DOMAIN_SEPARATOR_TYPEHASH_LEGACY, safe_address]))


def _struct_hash(transaction: SafeTransaction) -> bytes:
    return keccak(encode(
        [
            "bytes32", "address", "uint256", "bytes32", "uint8",
            "uint256", "uint256", "uint256", "address", "address", "uint256",
        ],
        [
            SAFE_TX_TYPEHASH,
            transaction.to,
            transaction.value,
            keccak(transaction.data_bytes),
            int(transaction.operation),
            transaction.safe_tx_gas,
            transaction.base_gas,
            transaction.gas_price,
            transaction.gas_token,
            transaction.refund_receiver,
            transaction.nonce,
        ],
    ))


def compute_safe_tx_digest(
    transaction: SafeTransaction,
    safe_address: str,
    chain_id: int,
    *,
    safe_version: str = DEFAULT_SAFE_VERSION,
) -> bytes:
    """
    Compute the ``safeTxHash`` by direct struct encoding.

    ``keccak256(0x19 || 0x01 || domainSeparator || structHash)``
    """
    safe_address = to_checksum_address(safe_address)
    return keccak(
        b"\x19\x01"
        + _domain_separator(safe_address, chain_id, safe_version)
        + _struct_hash(transaction)
    )


def typed_data_digest(typed_data: dict) -> bytes:
    """Compute the EIP-712 digest of a full typed-data payload via ``eth_account``."""
    signable = encode_typed_data(full_message=typed_data)
    return keccak(b"\x19" + signable.version + signable.header + signable.body)


def hash_safe_transaction(
    transaction: SafeTransaction,
    safe_address: str,
    chain_id: int,
    *,
    safe_version: str = DEFAULT_SAFE_VERSION,
) -> SafeTxHash:
    """
    Compute the EIP-712 ``safeTxHash`` of ``transaction`` for one Safe on one chain.

    Args:
        transaction:  Transaction built by ``build_safe_transaction``.
        safe_address: Safe the digest is bound to (``verifyingContract``).
        chain_id:     Chain the digest is bound to.
        safe_version: Safe contract version; selects the domain layout.

    Returns:
        ``SafeTxHash`` carrying the digest and the typed data a wallet signs.

    Raises:
        HashMismatchError: If the two independent computations disagree.
        ValueError: If ``safe_address`` or ``safe_version`` is malformed.

    Example::

        tx = build_safe_transaction(call, profile.safe_address, nonce=7)
        tx_hash = hash_safe_transaction(tx, profile.safe_address, profile.chain_id)
        tx_hash.safe_tx_hash  # "0x..."
    """
    typed_data = build_safe_tx_typed_data(
        transaction, safe_address, chain_id, safe_version=safe_version
    ).to_dict()

    direct = compute_safe_tx_digest(transaction, safe_address, chain_id, safe_version=safe_version)
    via_eip712 = typed_data_digest(typed_data)

    if direct != via_eip712:
        raise HashMismatchError(
            "Safe transaction hash computations disagree",
            expected="0x" + direct.hex(),
            actual="0x" + via_eip712.hex(),
        )

    logger.debug("Computed safeTxHash 0x%s for nonce %d", direct.hex(), transaction.nonce)
    return SafeTxHash(
        safe_tx_hash=direct,
        safe_address=safe_address,
        chain_id=chain_id,
        safe_version=safe_version,
        typed_data=typed_data,
    )


# ---------------------------------------------------------------------------
# On-chain cross-check
# ---------------------------------------------------------------------------

class OnChainSafeReader:
    """
    Read-only view of a deployed Safe.

    Args:
        safe_address: Safe contract address.
        rpc_url:      JSON-RPC endpoint. Ignored when ``web3`` is given.
        web3:         Pre-built ``AsyncWeb3`` instance (tests inject one).
        request_timeout: HTTP timeout in seconds for the default provider.
    """

    def __init__(
        self,
        safe_address: str,
        rpc_url: Optional[str] = None,
        *,
        web3: Optional[AsyncWeb3] = None,
        request_timeout: int = 60,
    ):
        self.safe_address = to_checksum_address(safe_address)
        if web3 is None:
            if not rpc_url:
                raise ValueError("Either rpc_url or web3 must be provided")
            web3 = AsyncWeb3(AsyncWeb3.AsyncHTTPProvider(
                rpc_url,
                request_kwargs={"timeout": request_timeout}
            ))
        self._web3 = web3
        self._contract = web3.eth.contract(address=self.safe_address, abi=get_safe_abi())

    async def get_nonce(self) -> int:
        return int(await self._contract.functions.nonce().call())

    async def get_version(self) -> str:
        return str(await self._contract.functions.VERSION().call())

    async def get_transaction_hash(self, transaction: SafeTransaction) -> bytes:
        """Ask the Safe contract to compute the digest of ``transaction``."""
        result = await self._contract.functions.getTransactionHash(
            transaction.to,
            transaction.value,
            transaction.data_bytes,
            int(transaction.operation),
            transaction.safe_tx_gas,
            transaction.base_gas,
            transaction.gas_price,
            transaction.gas_token,
            transaction.refund_receiver,
            transaction.nonce,
        ).call()
        return bytes(result)


async def verify_hash_on_chain(
    transaction: SafeTransaction,
    tx_hash: SafeTxHash,
    reader: OnChainSafeReader,
) -> None:
    """
    Compare a locally computed digest with the Safe contract's own.

    Raises:
        HashMismatchError: If ``reader`` belongs to a different Safe than
            ``tx_hash`` or the contract returns a different digest.
    """
    if reader.safe_address != tx_hash.safe_address:
        raise HashMismatchError(
            f"Reader is bound to {reader.safe_address}, hash to {tx_hash.safe_address}"
        )

    on_chain = await reader.get_transaction_hash(transaction)
    if on_chain != tx_hash.to_bytes():
        raise HashMismatchError(
            "Local safeTxHash differs from the Safe contract's getTransactionHash",
            expected="0x" + on_chain.hex(),
            actual=tx_hash.safe_tx_hash,
        )
    logger.info("safeTxHash %s confirmed by %s", tx_hash.safe_tx_hash, reader.safe_address)
