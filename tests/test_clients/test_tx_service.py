"""
Safe Transaction Service Client Test Suite

Uses ``httpx.MockTransport`` to script service responses and checks the
request body and the classification of every failure mode.
"""

import json

import httpx
import pytest

from safe_proposer.adapters.evm.signatures import LocalAccountSigner, sign_safe_tx_hash
from safe_proposer.adapters.evm.transactions import hash_safe_transaction
from safe_proposer.clients.tx_service import SafeTransactionServiceClient, classify_response
from safe_proposer.engine.exceptions import SubmissionError, SubmissionFailure

from proposal_mocks import (
    MOCK_CHAIN_ID_SEPOLIA,
    MOCK_COSIGNER_ADDRESS,
    MOCK_OWNER_ADDRESS,
    MOCK_OWNER_PRIVATE_KEY,
    MOCK_SAFE_ADDRESS,
    MOCK_SERVICE_URL,
    create_mock_transaction,
)


def _client(handler, **kwargs) -> SafeTransactionServiceClient:
    return SafeTransactionServiceClient(MOCK_SERVICE_URL, transport=httpx.MockTransport(handler), **kwargs)


async def _signed_proposal():
    tx = create_mock_transaction()
    tx_hash = hash_safe_transaction(tx, MOCK_SAFE_ADDRESS, MOCK_CHAIN_ID_SEPOLIA)
    signature = await sign_safe_tx_hash(tx_hash, LocalAccountSigner(MOCK_OWNER_PRIVATE_KEY))
    return tx, tx_hash, signature


def _response(status_code: int, body) -> httpx.Response:
    request = httpx.Request("POST", f"{MOCK_SERVICE_URL}/api/v1/safes/{MOCK_SAFE_ADDRESS}/multisig-transactions/")
    if isinstance(body, str):
        return httpx.Response(status_code, text=body, request=request)
    return httpx.Response(status_code, json=body, request=request)


class TestClassifyResponse:

    def test_success(self):
        assert classify_response(_response(201, {})) is None

    @pytest.mark.parametrize("status_code,body,reason", [
        (422, {"nonce": ["Nonce=3 too low for safe=0x..."]}, SubmissionFailure.STALE_NONCE),
        (400, {"nonce": ["Nonce is stale"]}, SubmissionFailure.STALE_NONCE),
        (409, {"detail": "conflict"}, SubmissionFailure.DUPLICATE_HASH),
        (422, {"detail": "Tx with safe-tx-hash=0xab already exists"}, SubmissionFailure.DUPLICATE_HASH),
        (429, "Too Many Requests", SubmissionFailure.SERVICE_UNAVAILABLE),
        (500, "Internal Server Error", SubmissionFailure.SERVICE_UNAVAILABLE),
        (503, "Service Unavailable", SubmissionFailure.SERVICE_UNAVAILABLE),
        (422, {"signature": ["Signer=0x1 is not an owner"]}, SubmissionFailure.REJECTED),
        (404, {"detail": "Not found."}, SubmissionFailure.REJECTED),
    ])
    def test_mapping(self, status_code, body, reason):
        error = classify_response(_response(status_code, body))
        assert error.reason is reason
        assert error.status_code == status_code

    def test_rejected_body_verbatim(self):
        body = '{"sender": ["Sender=0x1 is not an owner"]}'
        error = classify_response(_response(422, body))
        assert error.detail == body
        assert body in str(error)
        assert not error.retryable


class TestSafeInfo:

    @pytest.mark.asyncio
    async def test_get_safe_info(self):
        def handler(request: httpx.Request) -> httpx.Response:
            assert request.method == "GET"
            assert request.url.path == f"/api/v1/safes/{MOCK_SAFE_ADDRESS}/"
            return httpx.Response(200, json={
                "address": MOCK_SAFE_ADDRESS,
                "nonce": "12",
                "threshold": 2,
                "owners": [MOCK_OWNER_ADDRESS, MOCK_COSIGNER_ADDRESS],
                "masterCopy": "0x29fcB43b46531BcA003ddC8FCB67FFE91900C762",
                "version": "1.4.1+L2",
            })

        async with _client(handler) as client:
            info = await client.get_safe_info(MOCK_SAFE_ADDRESS.lower())
            nonce = await client.get_nonce(MOCK_SAFE_ADDRESS)

        assert info.nonce == nonce == 12
        assert info.threshold == 2
        assert info.version == "1.4.1+L2"
        assert info.is_owner(MOCK_OWNER_ADDRESS.lower())

    @pytest.mark.asyncio
    async def test_api_key_header(self):
        seen = {}

        def handler(request: httpx.Request) -> httpx.Response:
            seen.update(request.headers)
            return httpx.Response(200, json={"address": MOCK_SAFE_ADDRESS, "nonce": 0, "threshold": 1, "owners": []})

        async with _client(handler, api_key="secret") as client:
            await client.get_safe_info(MOCK_SAFE_ADDRESS)
        assert seen["authorization"] == "Bearer secret"

    @pytest.mark.asyncio
    async def test_transport_error_is_service_unavailable(self):
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("connection refused", request=request)

        async with _client(handler) as client:
            with pytest.raises(SubmissionError) as exc_info:
                await client.get_nonce(MOCK_SAFE_ADDRESS)
        assert exc_info.value.reason is SubmissionFailure.SERVICE_UNAVAILABLE
        assert exc_info.value.retryable


class TestProposeTransaction:

    @pytest.mark.asyncio
    async def test_posts_full_tuple(self):
        tx, tx_hash, signature = await _signed_proposal()
        requests = []

        def handler(request: httpx.Request) -> httpx.Response:
            requests.append(request)
            return httpx.Response(201)

        async with _client(handler, origin="governance-test") as client:
            receipt = await client.propose_transaction(
                MOCK_SAFE_ADDRESS, tx, tx_hash, MOCK_OWNER_ADDRESS, signature
            )

        assert len(requests) == 1
        request = requests[0]
        assert request.method == "POST"
        assert request.url.path == f"/api/v1/safes/{MOCK_SAFE_ADDRESS}/multisig-transactions/"

        body = json.loads(request.content)
        assert body == {
            "safe": MOCK_SAFE_ADDRESS,
            "to": tx.to,
            "value": "0",
            "data": tx.data,
            "operation": 0,
            "safeTxGas": "0",
            "baseGas": "0",
            "gasPrice": "0",
            "gasToken": "0x0000000000000000000000000000000000000000",
            "refundReceiver": "0x0000000000000000000000000000000000000000",
            "nonce": tx.nonce,
            "contractTransactionHash": tx_hash.safe_tx_hash,
            "sender": MOCK_OWNER_ADDRESS,
            "signature": signature.to_packed_hex(),
            "origin": "governance-test",
        }

        assert receipt.safe_tx_hash == tx_hash.safe_tx_hash
        assert receipt.nonce == tx.nonce
        assert receipt.sender == MOCK_OWNER_ADDRESS
        assert receipt.already_proposed is False

    @pytest.mark.asyncio
    async def test_sender_must_match_signature(self):
        tx, tx_hash, signature = await _signed_proposal()

        def handler(request: httpx.Request) -> httpx.Response:
            raise AssertionError("no request expected")

        async with _client(handler) as client:
            with pytest.raises(SubmissionError) as exc_info:
                await client.propose_transaction(MOCK_SAFE_ADDRESS, tx, tx_hash, MOCK_COSIGNER_ADDRESS, signature)
        assert exc_info.value.reason is SubmissionFailure.REJECTED

    @pytest.mark.asyncio
    @pytest.mark.parametrize("status_code,body,reason", [
        (422, {"nonce": ["Nonce=6 too low for safe"]}, SubmissionFailure.STALE_NONCE),
        (409, {"detail": "already exists"}, SubmissionFailure.DUPLICATE_HASH),
        (502, "Bad Gateway", SubmissionFailure.SERVICE_UNAVAILABLE),
        (403, {"detail": "forbidden"}, SubmissionFailure.REJECTED),
    ])
    async def test_failure_mapping(self, status_code, body, reason):
        tx, tx_hash, signature = await _signed_proposal()

        def handler(request: httpx.Request) -> httpx.Response:
            if isinstance(body, str):
                return httpx.Response(status_code, text=body)
            return httpx.Response(status_code, json=body)

        async with _client(handler) as client:
            with pytest.raises(SubmissionError) as exc_info:
                await client.propose_transaction(MOCK_SAFE_ADDRESS, tx, tx_hash, MOCK_OWNER_ADDRESS, signature)
        assert exc_info.value.reason is reason
        assert exc_info.value.status_code == status_code
