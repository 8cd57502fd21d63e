"""
Proposal Pipeline

Runs one governance proposal through every stage:

    ContractCallSpec -> EncodedCall -> SafeTransaction -> SafeTxHash
                     -> SafeSignature -> ProposalReceipt

Encoding and hashing are synchronous and pure. The pipeline suspends only
while fetching the Safe nonce, while the wallet waits for approval and while
posting to the coordination service.

Recovery:
    - stale nonce:          rebuild, re-sign and resubmit with the fresh
                            nonce, bounded by ``RetryPolicy.max_nonce_rebuilds``;
                            raised unchanged if the service nonce has not moved
    - duplicate proposal:   success (``receipt.already_proposed``)
    - service unavailable:  exponential backoff, bounded by
                            ``RetryPolicy.max_service_retries``
    - everything else:      raised to the caller unchanged
"""

import asyncio
import logging
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Dict, List, Optional, Sequence, TypeVar, Union

from ..adapters.bases import SignerHandle, TransactionServiceAPI
from ..adapters.evm.encoding import encode_call_spec
from ..adapters.evm.patchwork_abi import get_governance_abi
from ..adapters.evm.signatures import sign_safe_tx_hash
from ..adapters.evm.standards import DEFAULT_SAFE_VERSION
from ..adapters.evm.transactions import (
    OnChainSafeReader,
    build_safe_transaction,
    hash_safe_transaction,
    verify_hash_on_chain,
)
from ..config.networks import NetworkProfile
from ..schemas.bases import (
    ContractCallSpec,
    EncodedCall,
    Operation,
    ProposalReceipt,
    SafeSignature,
    SafeTransaction,
    SafeTxHash,
)
from ..schemas.https import SafeInfo
from .events import (
    CallEncodedEvent,
    EventBus,
    NonceStaleEvent,
    ProposalSubmittedEvent,
    TransactionBuiltEvent,
    TransactionSignedEvent,
)
from .exceptions import SubmissionError, SubmissionFailure

logger = logging.getLogger(__name__)

T = TypeVar("T")


@dataclass(frozen=True)
class RetryPolicy:
    """
    Bounds for the pipeline's recovery paths.

    Attributes:
        max_nonce_rebuilds: Rebuilds allowed after a stale-nonce rejection
        max_service_retries: Retries of a single service call while the
            service is unavailable
        base_delay: First backoff delay in seconds
        max_delay: Backoff cap in seconds
    """
    max_nonce_rebuilds: int = 1
    max_service_retries: int = 3
    base_delay: float = 0.5
    max_delay: float = 8.0

    def delay(self, attempt: int) -> float:
        return min(self.max_delay, self.base_delay * (2 ** attempt))


class ProposalPipeline:
    """
    Encode, build, hash, sign and propose Safe transactions for one network.

    Args:
        profile: Resolved network profile (chain, Safe, target contract, service URL)
        signer: Wallet handle that signs the SafeTxHash
        service: Coordination service that stores the proposal
        contract_abi: ABI used to encode ``ContractCallSpec`` calls;
            defaults to the Patchwork governance ABI
        retry_policy: Recovery bounds
        events: Event bus for milestone hooks
        safe_version: Force a Safe version; by default the version reported
            by the service is used, falling back to 1.3.0
        chain_reader: When given, every hash is also checked against the
            Safe contract's ``getTransactionHash``
        origin: ``origin`` tag sent with proposals
        sleep: Awaitable used for backoff delays

    Usage:
        ```python
        profile = resolve_from_env()
        signer = LocalAccountSigner(get_private_key_from_env())
        async with SafeTransactionServiceClient(profile.tx_service_url) as service:
            pipeline = ProposalPipeline(profile, signer, service)
            receipt = await pipeline.propose(
                propose_protocol_fee(profile.contract_address, 500, 250, 100)
            )
        ```
    """

    def __init__(
        self,
        profile: NetworkProfile,
        signer: SignerHandle,
        service: TransactionServiceAPI,
        *,
        contract_abi: Optional[Sequence[Dict[str, Any]]] = None,
        retry_policy: Optional[RetryPolicy] = None,
        events: Optional[EventBus] = None,
        safe_version: Optional[str] = None,
        chain_reader: Optional[OnChainSafeReader] = None,
        origin: Optional[str] = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        self.profile = profile
        self.signer = signer
        self.service = service
        self.contract_abi: List[Dict[str, Any]] = list(contract_abi) if contract_abi is not None else get_governance_abi()
        self.retry_policy = retry_policy or RetryPolicy()
        self.events = events or EventBus()
        self.safe_version = safe_version
        self.chain_reader = chain_reader
        self.origin = origin
        self._sleep = sleep

    # =========================================================================
    # Stages
    # =========================================================================

    def encode(self, call: Union[ContractCallSpec, EncodedCall]) -> EncodedCall:
        if isinstance(call, EncodedCall):
            return call
        return encode_call_spec(self.contract_abi, call)

    async def _with_backoff(self, description: str, operation: Callable[[], Awaitable[T]]) -> T:
        policy = self.retry_policy
        attempt = 0
        while True:
            try:
                return await operation()
            except SubmissionError as exc:
                if not exc.retryable or attempt >= policy.max_service_retries:
                    raise
                delay = policy.delay(attempt)
                attempt += 1
                logger.warning(
                    "%s failed (%s); retry %d/%d in %.2fs",
                    description, exc, attempt, policy.max_service_retries, delay,
                )
                await self._sleep(delay)

    async def fetch_safe_info(self) -> SafeInfo:
        safe_address = self.profile.safe_address
        return await self._with_backoff(
            f"Fetching Safe info for {safe_address}",
            lambda: self.service.get_safe_info(safe_address),
        )

    def _resolve_version(self, info: SafeInfo) -> str:
        return self.safe_version or info.version or DEFAULT_SAFE_VERSION

    # =========================================================================
    # Entry point
    # =========================================================================

    async def propose(
        self,
        call: Union[ContractCallSpec, EncodedCall],
        *,
        operation: Operation = Operation.CALL,
    ) -> ProposalReceipt:
        """
        Propose ``call`` to the Safe.

        Args:
            call: Contract call spec, or an already encoded call
            operation: CALL unless a delegate call is explicitly required

        Returns:
            ProposalReceipt: ``already_proposed`` is True when the service
                already held this exact proposal; ``attempts`` counts builds

        Raises:
            EncodingError: Arguments do not match the ABI (before any network call)
            HashMismatchError: Hash computations disagree
            SigningError: The wallet declined or failed
            SubmissionError: STALE_NONCE after the rebuild budget is spent or
                when the service nonce did not move, SERVICE_UNAVAILABLE after
                the retry budget is spent, or REJECTED
        """
        encoded = self.encode(call)
        logger.info("Encoded %s for %s", encoded.function_signature or "call", encoded.to)
        await self.events.dispatch(CallEncodedEvent(encoded_call=encoded))

        safe_address = self.profile.safe_address
        info = await self.fetch_safe_info()
        rebuilds = 0

        while True:
            attempt = rebuilds + 1
            transaction = build_safe_transaction(encoded, safe_address, info.nonce, operation=operation)
            tx_hash = hash_safe_transaction(
                transaction,
                safe_address,
                self.profile.chain_id,
                safe_version=self._resolve_version(info),
            )
            if self.chain_reader is not None:
                await verify_hash_on_chain(transaction, tx_hash, self.chain_reader)
            logger.info("Built Safe transaction at nonce %d: %s", transaction.nonce, tx_hash.safe_tx_hash)
            await self.events.dispatch(
                TransactionBuiltEvent(transaction=transaction, tx_hash=tx_hash, attempt=attempt)
            )

            signature = await sign_safe_tx_hash(tx_hash, self.signer)
            if not info.is_owner(signature.signer_address):
                logger.warning(
                    "Signer %s is not an owner of Safe %s; the service may reject the proposal",
                    signature.signer_address, safe_address,
                )
            await self.events.dispatch(TransactionSignedEvent(tx_hash=tx_hash, signature=signature))

            try:
                receipt = await self._submit(transaction, tx_hash, signature)
            except SubmissionError as exc:
                if exc.reason is SubmissionFailure.DUPLICATE_HASH:
                    logger.info("Proposal %s already held by the service", tx_hash.safe_tx_hash)
                    receipt = ProposalReceipt(
                        safe_address=safe_address,
                        safe_tx_hash=tx_hash.safe_tx_hash,
                        nonce=transaction.nonce,
                        sender=signature.signer_address,
                        already_proposed=True,
                    )
                elif exc.reason is SubmissionFailure.STALE_NONCE and rebuilds < self.retry_policy.max_nonce_rebuilds:
                    rebuilds += 1
                    info = await self.fetch_safe_info()
                    if info.nonce <= transaction.nonce:
                        logger.warning(
                            "Service rejected nonce %d as stale but still reports nonce %d; not resubmitting",
                            transaction.nonce, info.nonce,
                        )
                        raise exc
                    logger.warning(
                        "Nonce %d is stale; rebuilding with nonce %d (%d/%d)",
                        transaction.nonce, info.nonce, rebuilds, self.retry_policy.max_nonce_rebuilds,
                    )
                    await self.events.dispatch(NonceStaleEvent(stale_nonce=transaction.nonce, fresh_nonce=info.nonce))
                    continue
                else:
                    raise

            receipt = receipt.model_copy(update={"attempts": attempt})
            logger.info("Proposal %s submitted to %s", receipt.safe_tx_hash, safe_address)
            await self.events.dispatch(ProposalSubmittedEvent(receipt=receipt))
            return receipt

    async def _submit(
        self, transaction: SafeTransaction, tx_hash: SafeTxHash, signature: SafeSignature
    ) -> ProposalReceipt:
        return await self._with_backoff(
            f"Proposing {tx_hash.safe_tx_hash}",
            lambda: self.service.propose_transaction(
                self.profile.safe_address,
                transaction,
                tx_hash,
                signature.signer_address,
                signature,
                origin=self.origin,
            ),
        )
