"""
HTTP Request/Response Schema Models for the Safe Transaction Service

This module defines the Pydantic models exchanged with the transaction
coordination service. Field aliases carry the service's camelCase names so
that ``model_dump(by_alias=True)`` produces the exact wire body.

The proposal flow consists of:
1. Client fetches Safe info (owners, threshold, current nonce)
2. Client builds, hashes and signs a SafeTransaction
3. Client POSTs the full (transaction, hash, sender, signature) tuple
4. Other owners fetch the proposal by hash and add their confirmations
"""

from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field

from .bases import SafeSignature, SafeTransaction, SafeTxHash


class SafeInfo(BaseModel):
    """Safe state as tracked by the transaction service.

    Attributes:
        address: Safe address.
        nonce: Next nonce the Safe will execute.
        threshold: Number of owner signatures required for execution.
        owners: Owner addresses.
        version: Safe contract version (e.g. "1.3.0+L2").
    """
    model_config = ConfigDict(populate_by_name=True)

    address: str
    nonce: int = Field(..., ge=0)
    threshold: int = Field(..., ge=1)
    owners: List[str] = Field(default_factory=list)
    version: Optional[str] = None

    def is_owner(self, address: str) -> bool:
        return address.lower() in {owner.lower() for owner in self.owners}


class ProposeTransactionRequest(BaseModel):
    """Body of ``POST /api/v1/safes/{address}/multisig-transactions/``.

    Always carries the complete tuple: the transaction body, its hash, the
    sender and the sender's signature.
    """
    model_config = ConfigDict(populate_by_name=True)

    safe: str
    to: str
    value: str
    data: Optional[str] = None
    operation: int
    safe_tx_gas: str = Field(..., alias="safeTxGas")
    base_gas: str = Field(..., alias="baseGas")
    gas_price: str = Field(..., alias="gasPrice")
    gas_token: str = Field(..., alias="gasToken")
    refund_receiver: str = Field(..., alias="refundReceiver")
    nonce: int
    contract_transaction_hash: str = Field(..., alias="contractTransactionHash")
    sender: str
    signature: str
    origin: Optional[str] = None

    @classmethod
    def from_proposal(
        cls,
        safe_address: str,
        transaction: SafeTransaction,
        tx_hash: SafeTxHash,
        signature: SafeSignature,
        origin: Optional[str] = None,
    ) -> "ProposeTransactionRequest":
        """Assemble the request body from pipeline records."""
        return cls(
            safe=safe_address,
            to=transaction.to,
            value=str(transaction.value),
            data=transaction.data if transaction.data != "0x" else None,
            operation=int(transaction.operation),
            safe_tx_gas=str(transaction.safe_tx_gas),
            base_gas=str(transaction.base_gas),
            gas_price=str(transaction.gas_price),
            gas_token=transaction.gas_token,
            refund_receiver=transaction.refund_receiver,
            nonce=transaction.nonce,
            contract_transaction_hash=tx_hash.safe_tx_hash,
            sender=signature.signer_address,
            signature=signature.to_packed_hex(),
            origin=origin,
        )

    def to_safe_transaction(self) -> SafeTransaction:
        """Rebuild the SafeTransaction carried by this request."""
        return SafeTransaction(
            to=self.to,
            value=int(self.value),
            data=self.data or "0x",
            operation=self.operation,
            safe_tx_gas=int(self.safe_tx_gas),
            base_gas=int(self.base_gas),
            gas_price=int(self.gas_price),
            gas_token=self.gas_token,
            refund_receiver=self.refund_receiver,
            nonce=self.nonce,
        )


class SafeTransactionConfirmation(BaseModel):
    """One owner's signature on a pending proposal."""
    model_config = ConfigDict(populate_by_name=True)

    owner: str
    signature: str
    submission_date: datetime = Field(default_factory=datetime.now, alias="submissionDate")


class MultisigTransactionResponse(BaseModel):
    """Proposal as returned by ``GET /api/v1/multisig-transactions/{safe_tx_hash}/``."""
    model_config = ConfigDict(populate_by_name=True)

    safe: str
    to: str
    value: str
    data: Optional[str] = None
    operation: int
    safe_tx_gas: str = Field(..., alias="safeTxGas")
    base_gas: str = Field(..., alias="baseGas")
    gas_price: str = Field(..., alias="gasPrice")
    gas_token: str = Field(..., alias="gasToken")
    refund_receiver: str = Field(..., alias="refundReceiver")
    nonce: int
    safe_tx_hash: str = Field(..., alias="safeTxHash")
    proposer: Optional[str] = None
    is_executed: bool = Field(default=False, alias="isExecuted")
    confirmations_required: Optional[int] = Field(default=None, alias="confirmationsRequired")
    confirmations: List[SafeTransactionConfirmation] = Field(default_factory=list)
