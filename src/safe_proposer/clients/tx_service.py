"""
Safe Transaction Service Client

Async HTTP client for the Safe Transaction Service, the coordination
service where proposals wait for the remaining owner signatures.

Each call makes exactly one HTTP request. Failures are classified into
``SubmissionError`` reasons so the pipeline can decide whether to rebuild,
back off or stop; the client itself never retries.
"""

import logging
from typing import Optional

import httpx

from ..adapters.bases import TransactionServiceAPI
from ..engine.exceptions import SubmissionError, SubmissionFailure
from ..schemas.bases import ProposalReceipt, SafeSignature, SafeTransaction, SafeTxHash, to_checksum_address
from ..schemas.https import MultisigTransactionResponse, ProposeTransactionRequest, SafeInfo

logger = logging.getLogger(__name__)

DEFAULT_ORIGIN = "safe-proposer"

_DUPLICATE_MARKERS = ("already exists", "duplicate", "already been proposed")


def classify_response(response: httpx.Response) -> Optional[SubmissionError]:
    """
    Map a service response to a ``SubmissionError``.

    Returns:
        None for 2xx responses, otherwise the classified error:
            - 429 / 5xx                           -> SERVICE_UNAVAILABLE
            - 409 or a body naming an existing tx -> DUPLICATE_HASH
            - 400 / 422 body naming the nonce     -> STALE_NONCE
            - any other status                    -> REJECTED (body verbatim)
    """
    if response.is_success:
        return None

    status = response.status_code
    body = response.text
    lowered = body.lower()

    if status == 429 or status >= 500:
        reason = SubmissionFailure.SERVICE_UNAVAILABLE
    elif status == 409 or any(marker in lowered for marker in _DUPLICATE_MARKERS):
        reason = SubmissionFailure.DUPLICATE_HASH
    elif status in (400, 422) and "nonce" in lowered:
        reason = SubmissionFailure.STALE_NONCE
    else:
        reason = SubmissionFailure.REJECTED

    return SubmissionError(
        reason,
        f"Transaction service returned {status} for {response.request.method} "
        f"{response.request.url.path}: {body}",
        status_code=status,
        detail=body,
    )


class SafeTransactionServiceClient(httpx.AsyncClient, TransactionServiceAPI):
    """
    ``httpx.AsyncClient`` speaking the Safe Transaction Service API.

    Fully compatible with ``httpx.AsyncClient``; use it as an async context
    manager so the connection pool is closed.

    Usage:
        ```python
        async with SafeTransactionServiceClient(profile.tx_service_url) as service:
            info = await service.get_safe_info(profile.safe_address)
        ```
    """

    def __init__(
        self,
        base_url: str,
        *,
        api_key: Optional[str] = None,
        origin: str = DEFAULT_ORIGIN,
        **kwargs
    ):
        """
        Args:
            base_url: Service root, e.g. ``https://safe-transaction-base.safe.global``
            api_key: Optional bearer token for the hosted service
            origin: Value sent in the ``origin`` field of proposals
            **kwargs: All standard httpx.AsyncClient arguments (timeout, transport, ...)
        """
        headers = dict(kwargs.pop("headers", None) or {})
        headers.setdefault("Accept", "application/json")
        if api_key:
            headers["Authorization"] = f"Bearer {api_key}"
        super().__init__(base_url=base_url.rstrip("/"), headers=headers, **kwargs)
        self.origin = origin

    async def _send(self, method: str, path: str, **kwargs) -> httpx.Response:
        try:
            response = await self.request(method, path, **kwargs)
        except httpx.TransportError as exc:
            raise SubmissionError(
                SubmissionFailure.SERVICE_UNAVAILABLE,
                f"Transaction service unreachable ({method} {path}): {exc}",
            )

        error = classify_response(response)
        if error is not None:
            raise error
        return response

    # =========================================================================
    # Safe state
    # =========================================================================

    async def get_safe_info(self, safe_address: str) -> SafeInfo:
        address = to_checksum_address(safe_address)
        response = await self._send("GET", f"/api/v1/safes/{address}/")
        return SafeInfo(**response.json())

    async def get_nonce(self, safe_address: str) -> int:
        info = await self.get_safe_info(safe_address)
        return info.nonce

    # =========================================================================
    # Proposals
    # =========================================================================

    async def propose_transaction(
        self,
        safe_address: str,
        transaction: SafeTransaction,
        tx_hash: SafeTxHash,
        sender: str,
        signature: SafeSignature,
        origin: Optional[str] = None,
    ) -> ProposalReceipt:
        address = to_checksum_address(safe_address)
        sender = to_checksum_address(sender)
        if signature.signer_address != sender:
            raise SubmissionError(
                SubmissionFailure.REJECTED,
                f"Signature belongs to {signature.signer_address}, not sender {sender}",
            )

        body = ProposeTransactionRequest.from_proposal(
            address, transaction, tx_hash, signature, origin=origin or self.origin,
        )
        await self._send(
            "POST",
            f"/api/v1/safes/{address}/multisig-transactions/",
            json=body.model_dump(by_alias=True),
        )

        logger.info("Proposed %s to %s at nonce %d", tx_hash.safe_tx_hash, address, transaction.nonce)
        return ProposalReceipt(
            safe_address=address,
            safe_tx_hash=tx_hash.safe_tx_hash,
            nonce=transaction.nonce,
            sender=sender,
        )

    async def get_transaction(self, safe_tx_hash: str) -> MultisigTransactionResponse:
        """Fetch a proposal by its ``safeTxHash``."""
        response = await self._send("GET", f"/api/v1/multisig-transactions/{safe_tx_hash}/")
        return MultisigTransactionResponse(**response.json())
