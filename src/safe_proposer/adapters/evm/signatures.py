"""
EVM Safe Transaction Signing Utilities

Wallet handles and the signing step of the proposal pipeline. The signed
payload is always the EIP-712 ``SafeTx`` typed data carried by a
``SafeTxHash``, so a wallet displays exactly the structure that was hashed.

Exported helpers
----------------
LocalAccountSigner
    In-process ``eth_account`` key. For scripts and tests; the key is held
    by the handle and never passed to the pipeline.

Web3ProviderSigner
    Browser/desktop wallet reached through an ``AsyncWeb3`` provider using
    ``eth_requestAccounts`` and ``eth_signTypedData_v4``.

sign_safe_tx_hash
    Ask a handle to sign a ``SafeTxHash`` and verify that the signature
    recovers to the handle's address.

recover_signer
    Recover the address that produced a ``SafeSignature`` over a
    ``SafeTxHash``.
"""

import asyncio
import json
import logging
from typing import Any, Dict, Optional

from eth_account import Account
from eth_account.messages import encode_typed_data
from web3 import AsyncWeb3

from ...engine.exceptions import SigningError, SigningFailure
from ...schemas.bases import SafeSignature, SafeTxHash, to_checksum_address
from ..bases import SignerHandle

logger = logging.getLogger(__name__)

#: EIP-1193 "User Rejected Request"
EIP1193_USER_REJECTED = 4001
#: EIP-1193 "Unauthorized" (account access not granted)
EIP1193_UNAUTHORIZED = 4100


# ---------------------------------------------------------------------------
# Handles
# ---------------------------------------------------------------------------

class LocalAccountSigner(SignerHandle):
    """
    Signer backed by a private key held in process memory.

    Args:
        private_key: Hex-encoded secp256k1 key (0x prefix optional).

    Raises:
        SigningError: NO_PROVIDER_AVAILABLE if the key cannot be loaded.
    """

    def __init__(self, private_key: str):
        try:
            self._account = Account.from_key(private_key)
        except (ValueError, TypeError) as exc:
            raise SigningError(SigningFailure.NO_PROVIDER_AVAILABLE, f"Invalid private key: {exc}")

    @property
    def address(self) -> str:
        return self._account.address

    async def get_address(self) -> str:
        return self._account.address

    async def sign_typed_data(self, typed_data: Dict[str, Any]) -> bytes:
        try:
            signed = Account.sign_typed_data(self._account.key, full_message=typed_data)
        except Exception as exc:
            raise SigningError(SigningFailure.PROVIDER_ERROR, f"Local signing failed: {exc}")
        return bytes(signed.signature)

    async def is_connected(self) -> bool:
        return True


class Web3ProviderSigner(SignerHandle):
    """
    Signer that delegates to a wallet behind a JSON-RPC provider.

    The wallet is asked for account access on first use; signing waits for
    the operator's approval in the wallet UI.

    Args:
        web3:    ``AsyncWeb3`` instance whose provider fronts the wallet.
        account: Optional account to sign with; defaults to the first
                 account the wallet exposes.
        request_accounts: Use ``eth_requestAccounts`` (prompts the user)
                 instead of ``eth_accounts``.

    Error mapping:
        - EIP-1193 code 4001 / 4100      -> USER_REJECTED
        - connection failure / timeout   -> NO_PROVIDER_AVAILABLE
        - any other RPC error            -> PROVIDER_ERROR
    """

    def __init__(self, web3: AsyncWeb3, account: Optional[str] = None, *, request_accounts: bool = True):
        self._web3 = web3
        self._account = to_checksum_address(account) if account else None
        self._request_accounts = request_accounts

    async def _request(self, method: str, params: list) -> Any:
        try:
            response = await self._web3.provider.make_request(method, params)
        except (OSError, asyncio.TimeoutError) as exc:
            raise SigningError(
                SigningFailure.NO_PROVIDER_AVAILABLE,
                f"Wallet provider unreachable during {method}: {exc}. Reconnect the wallet and retry.",
            )

        error = response.get("error") if isinstance(response, dict) else None
        if error:
            code = error.get("code") if isinstance(error, dict) else None
            message = error.get("message", str(error)) if isinstance(error, dict) else str(error)
            if code in (EIP1193_USER_REJECTED, EIP1193_UNAUTHORIZED):
                raise SigningError(SigningFailure.USER_REJECTED, f"{method} rejected in wallet: {message}")
            raise SigningError(SigningFailure.PROVIDER_ERROR, f"{method} failed ({code}): {message}")

        if not isinstance(response, dict) or "result" not in response:
            raise SigningError(SigningFailure.PROVIDER_ERROR, f"Malformed {method} response: {response!r}")
        return response["result"]

    async def get_address(self) -> str:
        if self._account is not None:
            return self._account

        method = "eth_requestAccounts" if self._request_accounts else "eth_accounts"
        accounts = await self._request(method, [])
        if not accounts:
            raise SigningError(SigningFailure.NO_PROVIDER_AVAILABLE, "Wallet exposes no accounts")
        self._account = to_checksum_address(accounts[0])
        return self._account

    async def sign_typed_data(self, typed_data: Dict[str, Any]) -> bytes:
        address = await self.get_address()
        result = await self._request("eth_signTypedData_v4", [address, json.dumps(typed_data)])
        try:
            return bytes.fromhex(result[2:] if result.startswith("0x") else result)
        except (AttributeError, ValueError):
            raise SigningError(SigningFailure.PROVIDER_ERROR, f"Wallet returned a malformed signature: {result!r}")

    async def is_connected(self) -> bool:
        try:
            return bool(await self._web3.is_connected())
        except (OSError, asyncio.TimeoutError):
            return False


# ---------------------------------------------------------------------------
# Signing
# ---------------------------------------------------------------------------

def recover_signer(tx_hash: SafeTxHash, signature: SafeSignature) -> str:
    """
    Recover the address that signed ``tx_hash``.

    Returns:
        Checksummed signer address.

    Raises:
        ValueError: If the signature components are malformed.
    """
    signature.validate_format()
    signable = encode_typed_data(full_message=tx_hash.typed_data)
    return Account.recover_message(
        signable,
        vrs=(signature.v, int(signature.r, 16), int(signature.s, 16)),
    )


async def sign_safe_tx_hash(tx_hash: SafeTxHash, handle: SignerHandle) -> SafeSignature:
    """
    Sign a ``SafeTxHash`` with a wallet handle.

    The returned signature is checked: it must recover to the handle's
    address over the same typed data.

    Args:
        tx_hash: Output of ``hash_safe_transaction``.
        handle:  Wallet handle.

    Returns:
        ``SafeSignature`` with ``signer_address`` set to the handle's address.

    Raises:
        SigningError: USER_REJECTED, NO_PROVIDER_AVAILABLE or PROVIDER_ERROR.
        asyncio.CancelledError: The wait for approval was cancelled; logged
            and re-raised unchanged.

    Example::

        signer = LocalAccountSigner(get_private_key_from_env())
        signature = await sign_safe_tx_hash(tx_hash, signer)
        signature.to_packed_hex()  # r || s || v
    """
    try:
        address = await handle.get_address()
        raw = await handle.sign_typed_data(tx_hash.typed_data)
    except asyncio.CancelledError:
        logger.info("Signing of %s cancelled while awaiting approval", tx_hash.safe_tx_hash)
        raise
    except SigningError as exc:
        if exc.user_rejected:
            logger.info("Signing of %s rejected by operator", tx_hash.safe_tx_hash)
        raise

    try:
        signature = SafeSignature.from_bytes(address, raw)
        recovered = recover_signer(tx_hash, signature)
    except ValueError as exc:
        raise SigningError(SigningFailure.PROVIDER_ERROR, f"Unusable signature from wallet: {exc}")

    if recovered != signature.signer_address:
        raise SigningError(
            SigningFailure.PROVIDER_ERROR,
            f"Signature recovers to {recovered}, expected {signature.signer_address}. "
            "Reconnect the wallet with the intended account.",
        )
    return signature
