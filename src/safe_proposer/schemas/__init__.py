from .bases import (
    ZERO_ADDRESS,
    CanonicalModel,
    ChainIdentity,
    ContractCallSpec,
    EncodedCall,
    Operation,
    SafeTransaction,
    SafeTxHash,
    SafeSignature,
    ProposalReceipt,
    to_checksum_address,
)
from .https import SafeInfo, ProposeTransactionRequest, SafeTransactionConfirmation, MultisigTransactionResponse

__all__ = [
    "ZERO_ADDRESS",
    "CanonicalModel",
    "ChainIdentity",
    "ContractCallSpec",
    "EncodedCall",
    "Operation",
    "SafeTransaction",
    "SafeTxHash",
    "SafeSignature",
    "ProposalReceipt",
    "to_checksum_address",
    "SafeInfo",
    "ProposeTransactionRequest",
    "SafeTransactionConfirmation",
    "MultisigTransactionResponse",
]
