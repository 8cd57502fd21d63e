"""
Base Schema Models for the Safe Proposal Pipeline

This module defines the records that flow between pipeline stages. Every
record is a fresh immutable value: the encoder and builder share no mutable
state, so each output can be hashed, logged or compared safely.

Core Classes:
    - CanonicalModel: RFC8785-style Pydantic base model with canonical JSON
    - ChainIdentity: Active chain id and RPC endpoint
    - ContractCallSpec: Target, function signature and argument values
    - EncodedCall: Destination, value and ABI-encoded call data
    - Operation: Safe operation type (Call / DelegateCall)
    - SafeTransaction: Safe multisig transaction record (SafeTx)
    - SafeTxHash: EIP-712 digest of a SafeTransaction plus its typed data
    - SafeSignature: ECDSA signature (v, r, s) over a SafeTxHash
    - ProposalReceipt: Outcome of a successful proposal

Dependencies:
    - pydantic: For data validation and serialization
    - web3: For address checksumming
"""

import json
from enum import IntEnum
from typing import Any, Dict, Tuple

from pydantic import BaseModel, ConfigDict, Field, field_validator
from web3 import Web3


ZERO_ADDRESS = "0x0000000000000000000000000000000000000000"


def to_checksum_address(value: str) -> str:
    """
    Validate and checksum an EVM address.

    Accepts lowercase, uppercase or correctly checksummed 0x-prefixed
    addresses. Mixed-case input with a wrong checksum is rejected.

    Raises:
        ValueError: If ``value`` is not a valid 20-byte address.
    """
    if not isinstance(value, str) or not Web3.is_address(value):
        raise ValueError(f"Invalid EVM address: {value!r}")
    return Web3.to_checksum_address(value)


def normalize_hex(value: Any, *, length: int | None = None) -> str:
    """
    Normalize bytes or a hex string into a lowercase 0x-prefixed hex string.

    Args:
        value: ``bytes`` or hex ``str`` (0x prefix optional).
        length: Optional exact byte length to enforce.

    Raises:
        ValueError: If ``value`` is not valid hex or has the wrong length.
    """
    if isinstance(value, (bytes, bytearray)):
        raw = bytes(value)
    elif isinstance(value, str):
        hex_str = value[2:] if value[:2] in ("0x", "0X") else value
        if len(hex_str) % 2:
            raise ValueError(f"Hex string has odd length: {value!r}")
        try:
            raw = bytes.fromhex(hex_str)
        except ValueError:
            raise ValueError(f"Not valid hexadecimal: {value!r}")
    else:
        raise ValueError(f"Expected bytes or hex string, got {type(value).__name__}")

    if length is not None and len(raw) != length:
        raise ValueError(f"Expected {length} bytes, got {len(raw)}")
    return "0x" + raw.hex()


class CanonicalModel(BaseModel):
    """
    RFC8785-style Pydantic base model with canonical JSON serialization.

    Ensures a deterministic JSON representation (sorted keys, no extra
    whitespace) so records can be compared and logged byte-for-byte.
    """

    model_config = ConfigDict(populate_by_name=True)

    def to_canonical_json(self) -> str:
        """
        Convert model to canonical JSON string.

        ``model_dump(mode="json")`` converts enums and nested models to plain
        types; ``json.dumps`` with sorted keys and compact separators makes
        the output deterministic.

        Returns:
            str: JSON string with sorted keys and no extra whitespace.
        """
        data = self.model_dump(mode="json")
        return json.dumps(
            data,
            separators=(",", ":"),
            sort_keys=True,
            ensure_ascii=False
        )

    def to_dict(self) -> Dict[str, Any]:
        """
        Convert model to dictionary representation.

        Returns:
            Dict[str, Any]: Dictionary with all model fields.
        """
        return self.model_dump()


class FrozenModel(CanonicalModel):
    """Immutable canonical model."""

    model_config = ConfigDict(populate_by_name=True, frozen=True)


class ChainIdentity(FrozenModel):
    """
    Identity of the active chain.

    Selected once at startup and passed by reference; never mutated.

    Attributes:
        name: Network profile name (e.g. "base", "sepolia")
        chain_id: EIP-155 chain id
        rpc_url: JSON-RPC endpoint URI
    """

    name: str = Field(..., description="Network profile name")
    chain_id: int = Field(..., ge=1, description="EIP-155 chain id")
    rpc_url: str = Field(..., description="JSON-RPC endpoint URI")


class ContractCallSpec(FrozenModel):
    """
    A contract call to be encoded.

    Attributes:
        target_address: Contract the call is sent to
        function_signature: Canonical signature, e.g. ``"addProtocolBanker(address)"``
        argument_values: Ordered argument values; struct arguments may be
            mappings keyed by component name
        value: Native value in wei (0 for configuration calls)
    """

    model_config = ConfigDict(populate_by_name=True, frozen=True, arbitrary_types_allowed=True)

    target_address: str
    function_signature: str
    argument_values: Tuple[Any, ...] = ()
    value: int = Field(default=0, ge=0)

    @field_validator("target_address")
    @classmethod
    def _checksum_target(cls, value: str) -> str:
        return to_checksum_address(value)

    @field_validator("argument_values", mode="before")
    @classmethod
    def _freeze_arguments(cls, value: Any) -> Tuple[Any, ...]:
        return tuple(value)


class EncodedCall(FrozenModel):
    """
    ABI-encoded contract call.

    Attributes:
        to: Destination contract address (checksummed)
        value: Native value to send in wei; configuration calls use 0
        data: Call data (4-byte selector followed by ABI-encoded arguments)
        function_signature: Canonical signature the data was encoded for
    """

    to: str = Field(..., description="Destination contract address")
    value: int = Field(default=0, ge=0, description="Native value in wei")
    data: str = Field(default="0x", description="0x-prefixed ABI-encoded call data")
    function_signature: str | None = Field(default=None, description="Canonical function signature")

    @field_validator("to")
    @classmethod
    def _checksum_to(cls, value: str) -> str:
        return to_checksum_address(value)

    @field_validator("data", mode="before")
    @classmethod
    def _normalize_data(cls, value: Any) -> str:
        return normalize_hex(value)

    @property
    def data_bytes(self) -> bytes:
        return bytes.fromhex(self.data[2:])


class Operation(IntEnum):
    """Safe operation type. DelegateCall runs the target in the Safe's own storage context."""

    CALL = 0
    DELEGATE_CALL = 1


class SafeTransaction(FrozenModel):
    """
    Safe multisig transaction (the ``SafeTx`` EIP-712 struct).

    Field names follow the Safe contracts; aliases give the camelCase names
    used by the Safe Transaction Service and the EIP-712 type definition.

    Attributes:
        to: Destination address
        value: Native value in wei
        data: Call data
        operation: CALL (default) or DELEGATE_CALL
        safe_tx_gas: Gas forwarded to the inner call (0 = all available)
        base_gas: Gas costs independent of the inner call, used for refunds
        gas_price: Refund gas price (0 = no refund)
        gas_token: Refund token (zero address = native token)
        refund_receiver: Refund receiver (zero address = tx.origin)
        nonce: Safe nonce this transaction is bound to
    """

    to: str
    value: int = Field(default=0, ge=0)
    data: str = Field(default="0x")
    operation: Operation = Field(default=Operation.CALL)
    safe_tx_gas: int = Field(default=0, ge=0, alias="safeTxGas")
    base_gas: int = Field(default=0, ge=0, alias="baseGas")
    gas_price: int = Field(default=0, ge=0, alias="gasPrice")
    gas_token: str = Field(default=ZERO_ADDRESS, alias="gasToken")
    refund_receiver: str = Field(default=ZERO_ADDRESS, alias="refundReceiver")
    nonce: int = Field(..., ge=0)

    @field_validator("to", "gas_token", "refund_receiver")
    @classmethod
    def _checksum_addresses(cls, value: str) -> str:
        return to_checksum_address(value)

    @field_validator("data", mode="before")
    @classmethod
    def _normalize_data(cls, value: Any) -> str:
        return normalize_hex(value)

    @property
    def data_bytes(self) -> bytes:
        return bytes.fromhex(self.data[2:])

    def to_message(self) -> Dict[str, Any]:
        """Return the ``SafeTx`` message dict in EIP-712 field order."""
        return {
            "to": self.to,
            "value": self.value,
            "data": self.data,
            "operation": int(self.operation),
            "safeTxGas": self.safe_tx_gas,
            "baseGas": self.base_gas,
            "gasPrice": self.gas_price,
            "gasToken": self.gas_token,
            "refundReceiver": self.refund_receiver,
            "nonce": self.nonce,
        }


class SafeTxHash(FrozenModel):
    """
    EIP-712 digest of a SafeTransaction bound to one Safe on one chain.

    The typed data is kept alongside the digest so that an external wallet
    can display and sign exactly the structure that was hashed.

    Attributes:
        safe_tx_hash: 0x-prefixed 32-byte digest
        safe_address: Safe the digest is bound to (EIP-712 verifyingContract)
        chain_id: Chain the digest is bound to
        safe_version: Safe contract version used to pick the domain layout
        typed_data: ``eth_signTypedData_v4`` compatible payload
    """

    safe_tx_hash: str
    safe_address: str
    chain_id: int = Field(..., ge=1)
    safe_version: str
    typed_data: Dict[str, Any]

    @field_validator("safe_tx_hash", mode="before")
    @classmethod
    def _normalize_hash(cls, value: Any) -> str:
        return normalize_hex(value, length=32)

    @field_validator("safe_address")
    @classmethod
    def _checksum_safe(cls, value: str) -> str:
        return to_checksum_address(value)

    def to_bytes(self) -> bytes:
        return bytes.fromhex(self.safe_tx_hash[2:])


class SafeSignature(CanonicalModel):
    """
    ECDSA signature (v, r, s) over a SafeTxHash.

    Attributes:
        signer_address: Address that produced the signature
        v: ECDSA recovery ID (27 or 28)
        r: r component, 32 bytes as a 64-char hex string (0x prefix optional)
        s: s component, 32 bytes as a 64-char hex string (0x prefix optional)

    Example::

        sig = SafeSignature(signer_address="0x...", v=27, r="0x" + "a" * 64, s="0x" + "b" * 64)
        sig.to_packed_hex()  # r || s || v, the layout Safe expects
    """

    signer_address: str
    v: int = Field(..., ge=27, le=28, description="ECDSA recovery ID (27 or 28)")
    r: str = Field(..., description="Signature r component (32 bytes, 64-char hex, 0x prefix optional)")
    s: str = Field(..., description="Signature s component (32 bytes, 64-char hex, 0x prefix optional)")

    @field_validator("signer_address")
    @classmethod
    def _checksum_signer(cls, value: str) -> str:
        return to_checksum_address(value)

    @classmethod
    def from_bytes(cls, signer_address: str, signature: bytes) -> "SafeSignature":
        """
        Split a packed 65-byte ``r || s || v`` signature.

        A recovery id of 0/1 (as returned by some wallets) is shifted to 27/28.

        Raises:
            ValueError: If ``signature`` is not 65 bytes long.
        """
        if len(signature) != 65:
            raise ValueError(f"Expected 65-byte signature, got {len(signature)} bytes")
        v = signature[64]
        if v < 27:
            v += 27
        return cls(
            signer_address=signer_address,
            v=v,
            r="0x" + signature[:32].hex(),
            s="0x" + signature[32:64].hex(),
        )

    def validate_format(self) -> bool:
        """
        Validate v/r/s components.

        Checks v is 27 or 28 and that r/s are valid 64-character hex strings
        (0x prefix stripped before length check).

        Returns:
            True when all components pass.

        Raises:
            ValueError: Descriptive message on the first failed check.
        """
        if self.v not in (27, 28):
            raise ValueError(f"Invalid recovery ID: {self.v}. Must be 27 or 28")

        for name, val in [("r", self.r), ("s", self.s)]:
            hex_str = val.replace("0x", "").replace("0X", "")
            if len(hex_str) != 64:
                raise ValueError(f"Invalid {name}: expected 64 hex chars, got {len(hex_str)}")
            try:
                int(hex_str, 16)
            except ValueError:
                raise ValueError(f"Invalid {name}: not valid hexadecimal")

        return True

    def to_packed_hex(self) -> str:
        """
        Encode v/r/s into a packed 65-byte hex string (``r || s || v``).

        This is the layout expected by the Safe contracts and by the Safe
        Transaction Service ``signature`` field.

        Returns:
            0x-prefixed 132-character hex string.

        Raises:
            ValueError: If components do not pass ``validate_format()``.
        """
        self.validate_format()
        r = self.r.replace("0x", "").replace("0X", "").zfill(64)
        s = self.s.replace("0x", "").replace("0X", "").zfill(64)
        return "0x" + r + s + format(self.v, "02x")

    def to_bytes(self) -> bytes:
        return bytes.fromhex(self.to_packed_hex()[2:])


class ProposalReceipt(CanonicalModel):
    """
    Outcome of a successful proposal.

    Attributes:
        safe_address: Safe the transaction was proposed to
        safe_tx_hash: Digest under which other owners find the proposal
        nonce: Safe nonce the transaction is bound to
        sender: Proposer address
        already_proposed: True when the service already held this proposal
        attempts: Number of builds needed (more than 1 after a nonce rebuild)
    """

    safe_address: str
    safe_tx_hash: str
    nonce: int
    sender: str
    already_proposed: bool = False
    attempts: int = 1
