from safe_proposer.config import resolve_from_env, get_private_key_from_env
from safe_proposer.adapters.evm import LocalAccountSigner
from safe_proposer.clients import SafeTransactionServiceClient
from safe_proposer.engine.events import TransactionBuiltEvent, ProposalSubmittedEvent
from safe_proposer.engine.pipeline import ProposalPipeline
from safe_proposer.governance import propose_protocol_fee
import httpx

# Reads NETWORK plus <PREFIX>_RPC_URL / _PATCHWORK_OWNER / _PATCHWORK_ADDRESS from .env
profile = resolve_from_env()
signer = LocalAccountSigner(get_private_key_from_env())


async def on_built(event):
    """Show what the owners will be asked to sign."""
    print(f"Nonce {event.transaction.nonce}: {event.tx_hash.safe_tx_hash}")


async def on_submitted(event):
    print(f"Proposed {event.receipt.safe_tx_hash} (already proposed: {event.receipt.already_proposed})")


async def main():
    async with SafeTransactionServiceClient(
        profile.tx_service_url,
        timeout=httpx.Timeout(30.0),
    ) as service:
        pipeline = ProposalPipeline(profile, signer, service)
        pipeline.events.hook(TransactionBuiltEvent, on_built)
        pipeline.events.hook(ProposalSubmittedEvent, on_submitted)

        # mint 5%, patch 2.5%, assign 1%
        call = propose_protocol_fee(profile.contract_address, mint_bp=500, patch_bp=250, assign_bp=100)
        return await pipeline.propose(call)


if __name__ == "__main__":
    import asyncio
    import logging
    logging.basicConfig(level=logging.INFO)
    receipt = asyncio.run(main())
    print("Receipt:", receipt.to_canonical_json())
