"""
Abstract Base Classes for Pipeline Capabilities

Defines the two capability sets the proposal pipeline is handed from the
outside: a wallet that can sign typed data, and a coordination service that
collects proposals for the other Safe owners.

Core Classes:
    - SignerHandle: Wallet/provider that exposes an address and signs EIP-712 payloads
    - TransactionServiceAPI: Coordination service holding Safe state and pending proposals

The pipeline never talks to a concrete wallet or HTTP endpoint directly; it
only calls these methods, so tests can inject in-memory implementations.
"""

from abc import ABC, abstractmethod
from typing import Any, Dict, Optional

from ..schemas.bases import ProposalReceipt, SafeSignature, SafeTransaction, SafeTxHash
from ..schemas.https import SafeInfo


class SignerHandle(ABC):
    """
    Abstract wallet handle.

    A handle owns its key material (or the connection to a wallet that owns
    it). The pipeline only ever sees the address and the produced signature.

    Key Responsibilities:
    1. get_address: Report the account that will sign
    2. sign_typed_data: Produce a 65-byte signature over an EIP-712 payload
    3. is_connected: Report whether a wallet is reachable

    Example Implementation:
        class LocalAccountSigner(SignerHandle):
            # in-process eth_account key
            pass

        class Web3ProviderSigner(SignerHandle):
            # eth_signTypedData_v4 over a JSON-RPC provider
            pass
    """

    @abstractmethod
    async def get_address(self) -> str:
        """
        Return the checksummed address of the signing account.

        Raises:
            SigningError: NO_PROVIDER_AVAILABLE if no wallet is reachable,
                USER_REJECTED if the operator refused account access.
        """
        pass

    @abstractmethod
    async def sign_typed_data(self, typed_data: Dict[str, Any]) -> bytes:
        """
        Sign an ``eth_signTypedData_v4`` payload.

        This is the step that waits for operator approval in an interactive
        wallet. Cancelling the awaiting task must surface as a rejection.

        Args:
            typed_data: ``{types, primaryType, domain, message}`` payload

        Returns:
            bytes: Packed 65-byte ``r || s || v`` signature

        Raises:
            SigningError: USER_REJECTED, NO_PROVIDER_AVAILABLE or PROVIDER_ERROR
        """
        pass

    @abstractmethod
    async def is_connected(self) -> bool:
        """Return True when the wallet can currently be asked to sign."""
        pass


class TransactionServiceAPI(ABC):
    """
    Abstract coordination service (the Safe Transaction Service API).

    Holds the Safe's current nonce and owners, and stores proposed
    transactions so other owners can find them by ``safeTxHash`` and add
    their confirmations.
    """

    @abstractmethod
    async def get_safe_info(self, safe_address: str) -> SafeInfo:
        """
        Fetch the Safe's nonce, threshold, owners and version.

        Raises:
            SubmissionError: SERVICE_UNAVAILABLE on transport failure,
                REJECTED if the service does not know the Safe.
        """
        pass

    @abstractmethod
    async def get_nonce(self, safe_address: str) -> int:
        """Return the next nonce the Safe will execute."""
        pass

    @abstractmethod
    async def propose_transaction(
        self,
        safe_address: str,
        transaction: SafeTransaction,
        tx_hash: SafeTxHash,
        sender: str,
        signature: SafeSignature,
        origin: Optional[str] = None,
    ) -> ProposalReceipt:
        """
        Submit a signed proposal.

        The full tuple is always sent: transaction fields, the hash, the
        sender and its signature.

        Returns:
            ProposalReceipt: Accepted proposal

        Raises:
            SubmissionError: STALE_NONCE, DUPLICATE_HASH, SERVICE_UNAVAILABLE
                or REJECTED. DUPLICATE_HASH means the service already holds
                this exact proposal.
        """
        pass
