"""
In-memory Safe Transaction Service - FastAPI application.

Emulates the proposal endpoints of the Safe Transaction Service so the
whole pipeline can run against a local process (tests, dry runs, demos).
Proposals are validated the way the hosted service validates them:

    - the nonce may not be below the Safe's current nonce
    - ``contractTransactionHash`` must match a local recomputation
    - the signature must recover to ``sender`` and ``sender`` must be an owner
    - an identical (hash, sender, signature) tuple is stored once
    - a valid signature from another owner is appended as a confirmation
"""

import logging
from datetime import datetime
from typing import Dict, Iterable, List, Optional, Union

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field, ValidationError

from ..adapters.evm.signatures import recover_signer
from ..adapters.evm.standards import DEFAULT_SAFE_VERSION
from ..adapters.evm.transactions import hash_safe_transaction
from ..schemas.bases import SafeSignature, SafeTransaction, normalize_hex, to_checksum_address
from ..schemas.https import (
    MultisigTransactionResponse,
    ProposeTransactionRequest,
    SafeInfo,
    SafeTransactionConfirmation,
)

logger = logging.getLogger(__name__)


class SafeState(BaseModel):
    """On-chain state of one emulated Safe."""
    address: str
    chain_id: int = Field(..., ge=1)
    nonce: int = Field(default=0, ge=0)
    threshold: int = Field(default=1, ge=1)
    owners: List[str] = Field(default_factory=list)
    version: str = DEFAULT_SAFE_VERSION

    def info(self) -> SafeInfo:
        return SafeInfo(
            address=self.address,
            nonce=self.nonce,
            threshold=self.threshold,
            owners=self.owners,
            version=self.version,
        )


class ProposalRecord(BaseModel):
    """A proposal held by the service, keyed by ``safe_tx_hash``."""
    safe: str
    transaction: SafeTransaction
    safe_tx_hash: str
    proposer: str
    origin: Optional[str] = None
    confirmations: List[SafeTransactionConfirmation] = Field(default_factory=list)
    is_executed: bool = False
    submission_date: datetime = Field(default_factory=datetime.now)

    def has_confirmation(self, owner: str, signature: str) -> bool:
        return any(c.owner == owner and c.signature == signature for c in self.confirmations)

    def to_response(self, threshold: int) -> MultisigTransactionResponse:
        tx = self.transaction
        return MultisigTransactionResponse(
            safe=self.safe,
            to=tx.to,
            value=str(tx.value),
            data=tx.data if tx.data != "0x" else None,
            operation=int(tx.operation),
            safe_tx_gas=str(tx.safe_tx_gas),
            base_gas=str(tx.base_gas),
            gas_price=str(tx.gas_price),
            gas_token=tx.gas_token,
            refund_receiver=tx.refund_receiver,
            nonce=tx.nonce,
            safe_tx_hash=self.safe_tx_hash,
            proposer=self.proposer,
            is_executed=self.is_executed,
            confirmations_required=threshold,
            confirmations=self.confirmations,
        )


def _error(status_code: int, field: str, message: str) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={field: [message]})


class SafeTransactionServiceApp(FastAPI):
    """FastAPI application emulating the Safe Transaction Service."""

    def __init__(self, safes: Iterable[Union[SafeState, Dict]] = (), **fastapi_kwargs):
        """Initialize the service.

        Args:
            safes: Safes known to the service (``SafeState`` or plain dicts)
            **fastapi_kwargs: FastAPI arguments (title, version, etc.)
        """
        super().__init__(**fastapi_kwargs)
        self.safes: Dict[str, SafeState] = {}
        self.records: Dict[str, ProposalRecord] = {}
        for safe in safes:
            self.add_safe(safe)
        self._setup_routes()

    def add_safe(self, safe: Union[SafeState, Dict]) -> SafeState:
        state = safe if isinstance(safe, SafeState) else SafeState(**safe)
        state = state.model_copy(update={
            "address": to_checksum_address(state.address),
            "owners": [to_checksum_address(o) for o in state.owners],
        })
        self.safes[state.address] = state
        return state

    def _lookup_safe(self, address: str) -> Optional[SafeState]:
        try:
            return self.safes.get(to_checksum_address(address))
        except ValueError:
            return None

    def pending_for(self, address: str) -> List[ProposalRecord]:
        """Unexecuted proposals of a Safe, oldest first."""
        return [r for r in self.records.values() if r.safe == to_checksum_address(address) and not r.is_executed]

    # =========================================================================
    # Proposal handling
    # =========================================================================

    def submit(self, safe: SafeState, body: ProposeTransactionRequest) -> JSONResponse:
        """Validate and store one proposal; returns the HTTP response."""
        transaction = body.to_safe_transaction()

        if to_checksum_address(body.safe) != safe.address:
            return _error(422, "safe", f"Safe={body.safe} does not match path address {safe.address}")

        if transaction.nonce < safe.nonce:
            return _error(422, "nonce", f"Nonce={transaction.nonce} too low for safe={safe.address}")

        expected = hash_safe_transaction(transaction, safe.address, safe.chain_id, safe_version=safe.version)
        try:
            provided = normalize_hex(body.contract_transaction_hash, length=32)
        except ValueError:
            provided = body.contract_transaction_hash
        if provided != expected.safe_tx_hash:
            return _error(
                422,
                "contractTransactionHash",
                f"Contract-transaction-hash={expected.safe_tx_hash} does not match provided "
                f"contract-tx-hash={body.contract_transaction_hash}",
            )

        sender = to_checksum_address(body.sender)
        try:
            signature = SafeSignature.from_bytes(sender, bytes.fromhex(normalize_hex(body.signature)[2:]))
            recovered = recover_signer(expected, signature)
        except ValueError as exc:
            return _error(422, "signature", f"Malformed signature: {exc}")
        if recovered != sender:
            return _error(422, "signature", f"Signer={recovered} does not match sender={sender}")

        if sender not in safe.owners:
            return _error(422, "sender", f"Sender={sender} is not an owner of safe={safe.address}")

        packed = signature.to_packed_hex()
        record = self.records.get(expected.safe_tx_hash)

        if record is not None and record.has_confirmation(sender, packed):
            return JSONResponse(
                status_code=409,
                content={"detail": f"Multisig transaction with safeTxHash={expected.safe_tx_hash} already exists"},
            )

        confirmation = SafeTransactionConfirmation(owner=sender, signature=packed)
        if record is None:
            self.records[expected.safe_tx_hash] = ProposalRecord(
                safe=safe.address,
                transaction=transaction,
                safe_tx_hash=expected.safe_tx_hash,
                proposer=sender,
                origin=body.origin,
                confirmations=[confirmation],
            )
            logger.info("Stored proposal %s for %s at nonce %d", expected.safe_tx_hash, safe.address, transaction.nonce)
        else:
            record.confirmations.append(confirmation)
            logger.info("Added confirmation from %s to %s", sender, expected.safe_tx_hash)

        return JSONResponse(status_code=201, content={})

    def execute(self, safe: SafeState) -> SafeState:
        """Consume the Safe's current nonce, as an on-chain execution would."""
        for record in self.records.values():
            if record.safe == safe.address and record.transaction.nonce == safe.nonce:
                record.is_executed = True
        updated = safe.model_copy(update={"nonce": safe.nonce + 1})
        self.safes[safe.address] = updated
        return updated

    # =========================================================================
    # Routes
    # =========================================================================

    def _setup_routes(self) -> None:

        @self.get("/api/v1/safes/{address}/")
        async def get_safe(address: str):
            safe = self._lookup_safe(address)
            if safe is None:
                return JSONResponse(status_code=404, content={"detail": "Not found."})
            return JSONResponse(status_code=200, content=safe.info().model_dump(mode="json"))

        @self.post("/api/v1/safes/{address}/multisig-transactions/")
        async def propose(address: str, request: Request):
            safe = self._lookup_safe(address)
            if safe is None:
                return JSONResponse(status_code=404, content={"detail": "Not found."})
            try:
                body = ProposeTransactionRequest.model_validate(await request.json())
                return self.submit(safe, body)
            except (ValidationError, ValueError) as exc:
                return JSONResponse(status_code=400, content={"detail": str(exc)})

        @self.get("/api/v1/safes/{address}/multisig-transactions/")
        async def list_pending(address: str):
            safe = self._lookup_safe(address)
            if safe is None:
                return JSONResponse(status_code=404, content={"detail": "Not found."})
            results = [
                r.to_response(safe.threshold).model_dump(mode="json", by_alias=True)
                for r in self.pending_for(safe.address)
            ]
            return JSONResponse(status_code=200, content={"count": len(results), "results": results})

        @self.get("/api/v1/multisig-transactions/{safe_tx_hash}/")
        async def get_transaction(safe_tx_hash: str):
            try:
                record = self.records.get(normalize_hex(safe_tx_hash, length=32))
            except ValueError:
                record = None
            if record is None:
                return JSONResponse(status_code=404, content={"detail": "Not found."})
            threshold = self.safes[record.safe].threshold
            return JSONResponse(
                status_code=200,
                content=record.to_response(threshold).model_dump(mode="json", by_alias=True),
            )

        @self.post("/api/v1/safes/{address}/execute")
        async def execute(address: str):
            safe = self._lookup_safe(address)
            if safe is None:
                return JSONResponse(status_code=404, content={"detail": "Not found."})
            updated = self.execute(safe)
            return JSONResponse(status_code=200, content=updated.info().model_dump(mode="json"))


def create_tx_service_app(safes: Iterable[Union[SafeState, Dict]] = (), **fastapi_kwargs) -> SafeTransactionServiceApp:
    """
    Build an in-memory Safe Transaction Service.

    Example:
        ```python
        app = create_tx_service_app([
            {"address": SAFE, "chain_id": 8453, "owners": [OWNER], "threshold": 2},
        ])
        transport = httpx.ASGITransport(app=app)
        async with SafeTransactionServiceClient("http://service", transport=transport) as service:
            ...
        ```
    """
    fastapi_kwargs.setdefault("title", "Safe Transaction Service (in-memory)")
    return SafeTransactionServiceApp(safes, **fastapi_kwargs)
