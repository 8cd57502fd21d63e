from dataclasses import dataclass, field
from typing import Dict, Any, List, Optional

from eth_utils import keccak


# -----------------------------
# Safe EIP-712 type strings
# -----------------------------

SAFE_TX_TYPE = (
    "SafeTx(address to,uint256 value,bytes data,uint8 operation,uint256 safeTxGas,"
    "uint256 baseGas,uint256 gasPrice,address gasToken,address refundReceiver,uint256 nonce)"
)
DOMAIN_WITH_CHAIN_ID_TYPE = "EIP712Domain(uint256 chainId,address verifyingContract)"
DOMAIN_LEGACY_TYPE = "EIP712Domain(address verifyingContract)"

SAFE_TX_TYPEHASH = bytes.fromhex("bb8310d486368db6bd6f849402fdd73ad53d316b5a4b2644ad6efe0f941286d8")
DOMAIN_SEPARATOR_TYPEHASH = bytes.fromhex("47e79534a245952e8b16893a336b85a3d9ea9fa8c573f3d803afb92a79469218")
DOMAIN_SEPARATOR_TYPEHASH_LEGACY = bytes.fromhex("035aff83d86937d35b32e04f0ddc6ff469290eef2f1b692d8a815c89404d4749")

# Safe contracts bind the domain to the chain id from this version on.
CHAIN_ID_DOMAIN_MIN_VERSION = (1, 3, 0)
DEFAULT_SAFE_VERSION = "1.3.0"


def parse_safe_version(version: str) -> tuple:
    """
    Parse a Safe version string such as ``"1.3.0"`` or ``"1.4.1+L2"``.

    Raises:
        ValueError: If the version has no numeric major/minor part.
    """
    core = version.strip().split("+", 1)[0].split("-", 1)[0]
    parts = core.split(".")
    try:
        numbers = tuple(int(p) for p in parts)
    except ValueError:
        raise ValueError(f"Invalid Safe version: {version!r}")
    if len(numbers) < 2:
        raise ValueError(f"Invalid Safe version: {version!r}")
    return numbers + (0,) * (3 - len(numbers))


def domain_includes_chain_id(safe_version: str) -> bool:
    return parse_safe_version(safe_version) >= CHAIN_ID_DOMAIN_MIN_VERSION


def type_hash(type_string: str) -> bytes:
    return keccak(text=type_string)


# -----------------------------
# EIP-712 Domain
# -----------------------------

@dataclass
class SafeDomain:
    """
    EIP-712 domain of a Safe.

    Safe domains carry no ``name`` or ``version``. Safes from 1.3.0 on
    include ``chainId``; older Safes bind to ``verifyingContract`` only.
    """
    verifyingContract: str
    chainId: Optional[int] = None

    def to_dict(self) -> Dict[str, Any]:
        if self.chainId is None:
            return {"verifyingContract": self.verifyingContract}
        return {
            "chainId": self.chainId,
            "verifyingContract": self.verifyingContract,
        }

    def type_fields(self) -> List[Dict[str, str]]:
        fields = [{"name": "verifyingContract", "type": "address"}]
        if self.chainId is not None:
            fields.insert(0, {"name": "chainId", "type": "uint256"})
        return fields


# -----------------------------
# SafeTx
# -----------------------------

@dataclass
class SafeTxMessage:
    """
    Message payload of the ``SafeTx`` struct.

    Attributes mirror the Safe contract's field names; ``data`` is the
    0x-prefixed call data (hashed as ``keccak(data)`` inside the struct).
    """
    to: str
    value: int
    data: str
    operation: int
    safeTxGas: int
    baseGas: int
    gasPrice: int
    gasToken: str
    refundReceiver: str
    nonce: int

    def to_dict(self) -> Dict[str, Any]:
        """Return the message in ``SafeTx`` field order."""
        return {
            "to": self.to,
            "value": self.value,
            "data": self.data,
            "operation": self.operation,
            "safeTxGas": self.safeTxGas,
            "baseGas": self.baseGas,
            "gasPrice": self.gasPrice,
            "gasToken": self.gasToken,
            "refundReceiver": self.refundReceiver,
            "nonce": self.nonce,
        }


@dataclass
class SafeTxTypedData:
    """
    Container for ``SafeTx`` typed data usable with EIP-712 signing routines.

    ``to_dict()`` produces the ``{types, primaryType, domain, message}``
    layout accepted by ``eth_account.Account.sign_typed_data`` and by wallets
    through ``eth_signTypedData_v4``.

    Attributes:
        domain: SafeDomain instance describing the signing domain.
        message: SafeTxMessage instance carrying the payload.
        primary_type: The primary EIP-712 type (always "SafeTx").
        types: SafeTx type definition (the domain type is derived from ``domain``).
    """
    domain: SafeDomain
    message: SafeTxMessage

    primary_type: str = "SafeTx"

    types: Dict[str, List[Dict[str, str]]] = field(
        default_factory=lambda: {
            "SafeTx": [
                {"name": "to", "type": "address"},
                {"name": "value", "type": "uint256"},
                {"name": "data", "type": "bytes"},
                {"name": "operation", "type": "uint8"},
                {"name": "safeTxGas", "type": "uint256"},
                {"name": "baseGas", "type": "uint256"},
                {"name": "gasPrice", "type": "uint256"},
                {"name": "gasToken", "type": "address"},
                {"name": "refundReceiver", "type": "address"},
                {"name": "nonce", "type": "uint256"},
            ],
        }
    )

    def to_dict(self) -> Dict[str, Any]:
        """Return a dictionary compatible with EIP-712 structured signing."""
        return {
            "types": {"EIP712Domain": self.domain.type_fields(), **self.types},
            "primaryType": self.primary_type,
            "domain": self.domain.to_dict(),
            "message": self.message.to_dict(),
        }
