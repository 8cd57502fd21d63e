"""
In-memory Transaction Service Test Suite

Runs the real client and pipeline against the FastAPI service through
``httpx.ASGITransport``; no sockets are opened.
"""

import httpx
import pytest
from unittest.mock import AsyncMock

from safe_proposer import governance
from safe_proposer.adapters.evm.signatures import LocalAccountSigner, sign_safe_tx_hash
from safe_proposer.adapters.evm.transactions import hash_safe_transaction
from safe_proposer.clients.tx_service import SafeTransactionServiceClient
from safe_proposer.engine.events import TransactionSignedEvent
from safe_proposer.engine.exceptions import SubmissionError, SubmissionFailure
from safe_proposer.engine.pipeline import ProposalPipeline
from safe_proposer.servers.apps import create_tx_service_app

from proposal_mocks import (
    MOCK_CHAIN_ID_SEPOLIA,
    MOCK_CONTRACT_ADDRESS,
    MOCK_COSIGNER_ADDRESS,
    MOCK_COSIGNER_PRIVATE_KEY,
    MOCK_NONCE,
    MOCK_OUTSIDER_PRIVATE_KEY,
    MOCK_OWNER_ADDRESS,
    MOCK_OWNER_PRIVATE_KEY,
    MOCK_SAFE_ADDRESS,
    MOCK_SERVICE_URL,
    create_mock_profile,
    create_mock_transaction,
)


@pytest.fixture
def app():
    return create_tx_service_app([{
        "address": MOCK_SAFE_ADDRESS.lower(),
        "chain_id": MOCK_CHAIN_ID_SEPOLIA,
        "nonce": MOCK_NONCE,
        "owners": [MOCK_OWNER_ADDRESS, MOCK_COSIGNER_ADDRESS],
        "threshold": 2,
    }])


def _client(app) -> SafeTransactionServiceClient:
    return SafeTransactionServiceClient(MOCK_SERVICE_URL, transport=httpx.ASGITransport(app=app))


def _pipeline(service, private_key: str = MOCK_OWNER_PRIVATE_KEY) -> ProposalPipeline:
    return ProposalPipeline(
        create_mock_profile(),
        LocalAccountSigner(private_key),
        service,
        sleep=AsyncMock(),
    )


def _fee_spec():
    return governance.propose_protocol_fee(MOCK_CONTRACT_ADDRESS, 500, 250, 100)


async def _sign(tx, private_key: str = MOCK_OWNER_PRIVATE_KEY):
    tx_hash = hash_safe_transaction(tx, MOCK_SAFE_ADDRESS, MOCK_CHAIN_ID_SEPOLIA)
    return tx_hash, await sign_safe_tx_hash(tx_hash, LocalAccountSigner(private_key))


class TestProposalFlow:

    @pytest.mark.asyncio
    async def test_propose_and_fetch(self, app):
        async with _client(app) as service:
            receipt = await _pipeline(service).propose(_fee_spec())
            stored = await service.get_transaction(receipt.safe_tx_hash)

        assert receipt.nonce == MOCK_NONCE
        assert receipt.already_proposed is False
        assert stored.safe_tx_hash == receipt.safe_tx_hash
        assert stored.proposer == MOCK_OWNER_ADDRESS
        assert stored.nonce == MOCK_NONCE
        assert stored.to == MOCK_CONTRACT_ADDRESS
        assert stored.confirmations_required == 2
        assert [c.owner for c in stored.confirmations] == [MOCK_OWNER_ADDRESS]
        assert stored.is_executed is False

    @pytest.mark.asyncio
    async def test_repeat_proposal_stored_once(self, app):
        async with _client(app) as service:
            first = await _pipeline(service).propose(_fee_spec())
            second = await _pipeline(service).propose(_fee_spec())

        assert first.safe_tx_hash == second.safe_tx_hash
        assert second.already_proposed is True
        assert len(app.records) == 1
        assert len(app.records[first.safe_tx_hash].confirmations) == 1

    @pytest.mark.asyncio
    async def test_cosigner_confirmation_appended(self, app):
        async with _client(app) as service:
            first = await _pipeline(service).propose(_fee_spec())
            second = await _pipeline(service, MOCK_COSIGNER_PRIVATE_KEY).propose(_fee_spec())
            stored = await service.get_transaction(first.safe_tx_hash)

        assert second.safe_tx_hash == first.safe_tx_hash
        assert second.already_proposed is False
        assert [c.owner for c in stored.confirmations] == [MOCK_OWNER_ADDRESS, MOCK_COSIGNER_ADDRESS]

    @pytest.mark.asyncio
    async def test_nonce_race_rebuilds(self, app):
        executed = []

        async def execute_once(event):
            # another proposal lands on-chain between signing and submission
            if not executed:
                executed.append(app.execute(app.safes[MOCK_SAFE_ADDRESS]))

        async with _client(app) as service:
            pipeline = _pipeline(service)
            pipeline.events.hook(TransactionSignedEvent, execute_once)
            receipt = await pipeline.propose(_fee_spec())

        assert receipt.nonce == MOCK_NONCE + 1
        assert receipt.attempts == 2
        assert list(app.records) == [receipt.safe_tx_hash]

    @pytest.mark.asyncio
    async def test_pending_list(self, app):
        async with _client(app) as service:
            receipt = await _pipeline(service).propose(_fee_spec())
            response = await service.get(f"/api/v1/safes/{MOCK_SAFE_ADDRESS}/multisig-transactions/")

        body = response.json()
        assert body["count"] == 1
        assert body["results"][0]["safeTxHash"] == receipt.safe_tx_hash


class TestServiceValidation:

    @pytest.mark.asyncio
    async def test_nonce_below_safe_nonce(self, app):
        tx = create_mock_transaction(nonce=MOCK_NONCE - 1)
        tx_hash, signature = await _sign(tx)

        async with _client(app) as service:
            with pytest.raises(SubmissionError) as exc_info:
                await service.propose_transaction(MOCK_SAFE_ADDRESS, tx, tx_hash, MOCK_OWNER_ADDRESS, signature)

        assert exc_info.value.reason is SubmissionFailure.STALE_NONCE
        assert exc_info.value.status_code == 422

    @pytest.mark.asyncio
    async def test_hash_does_not_match_transaction(self, app):
        tx = create_mock_transaction()
        other_hash, signature = await _sign(create_mock_transaction(nonce=MOCK_NONCE + 1))

        async with _client(app) as service:
            with pytest.raises(SubmissionError) as exc_info:
                await service.propose_transaction(MOCK_SAFE_ADDRESS, tx, other_hash, MOCK_OWNER_ADDRESS, signature)

        assert exc_info.value.reason is SubmissionFailure.REJECTED
        assert "contractTransactionHash" in exc_info.value.detail
        assert app.records == {}

    @pytest.mark.asyncio
    async def test_signature_from_other_key(self, app):
        tx = create_mock_transaction()
        tx_hash, signature = await _sign(tx, MOCK_COSIGNER_PRIVATE_KEY)
        forged = signature.model_copy(update={"signer_address": MOCK_OWNER_ADDRESS})

        async with _client(app) as service:
            with pytest.raises(SubmissionError) as exc_info:
                await service.propose_transaction(MOCK_SAFE_ADDRESS, tx, tx_hash, MOCK_OWNER_ADDRESS, forged)

        assert exc_info.value.reason is SubmissionFailure.REJECTED
        assert "does not match sender" in exc_info.value.detail

    @pytest.mark.asyncio
    async def test_sender_not_owner(self, app):
        async with _client(app) as service:
            with pytest.raises(SubmissionError) as exc_info:
                await _pipeline(service, MOCK_OUTSIDER_PRIVATE_KEY).propose(_fee_spec())

        assert exc_info.value.reason is SubmissionFailure.REJECTED
        assert "not an owner" in exc_info.value.detail

    @pytest.mark.asyncio
    async def test_unknown_safe(self, app):
        async with _client(app) as service:
            with pytest.raises(SubmissionError) as exc_info:
                await service.get_safe_info(MOCK_CONTRACT_ADDRESS)
        assert exc_info.value.status_code == 404
        assert exc_info.value.reason is SubmissionFailure.REJECTED

    @pytest.mark.asyncio
    async def test_malformed_body(self, app):
        async with _client(app) as service:
            response = await service.post(
                f"/api/v1/safes/{MOCK_SAFE_ADDRESS}/multisig-transactions/",
                json={"safe": MOCK_SAFE_ADDRESS},
            )
        assert response.status_code == 400


class TestExecution:

    @pytest.mark.asyncio
    async def test_execute_consumes_nonce(self, app):
        async with _client(app) as service:
            receipt = await _pipeline(service).propose(_fee_spec())
            response = await service.post(f"/api/v1/safes/{MOCK_SAFE_ADDRESS}/execute")
            info = await service.get_safe_info(MOCK_SAFE_ADDRESS)
            stored = await service.get_transaction(receipt.safe_tx_hash)

        assert response.status_code == 200
        assert info.nonce == MOCK_NONCE + 1
        assert stored.is_executed is True
        assert app.pending_for(MOCK_SAFE_ADDRESS) == []
