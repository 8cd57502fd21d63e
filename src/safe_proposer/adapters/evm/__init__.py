from .encoding import encode_call, encode_call_spec, decode_call, function_signature, find_function
from .patchwork_abi import get_governance_abi, load_abi
from .safe_abi import get_safe_abi
from .standards import SafeDomain, SafeTxMessage, SafeTxTypedData, SAFE_TX_TYPEHASH
from .transactions import (
    build_safe_transaction,
    build_safe_tx_typed_data,
    hash_safe_transaction,
    verify_hash_on_chain,
    OnChainSafeReader,
)
from .signatures import (
    LocalAccountSigner,
    Web3ProviderSigner,
    sign_safe_tx_hash,
    recover_signer,
)

__all__ = [
    "encode_call",
    "encode_call_spec",
    "decode_call",
    "function_signature",
    "find_function",
    "get_governance_abi",
    "load_abi",
    "get_safe_abi",
    "SafeDomain",
    "SafeTxMessage",
    "SafeTxTypedData",
    "SAFE_TX_TYPEHASH",
    "build_safe_transaction",
    "build_safe_tx_typed_data",
    "hash_safe_transaction",
    "verify_hash_on_chain",
    "OnChainSafeReader",
    "LocalAccountSigner",
    "Web3ProviderSigner",
    "sign_safe_tx_hash",
    "recover_signer",
]
