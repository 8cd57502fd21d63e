from eth_account import Account

from safe_proposer.servers import create_tx_service_app

# Local stand-in for the hosted Safe Transaction Service.
# Point <PREFIX>_SAFE_TX_SERVICE_URL at http://localhost:8000 to use it.
owner = Account.create()
print("Owner address:", owner.address)
print("Owner private key:", owner.key.hex())

app = create_tx_service_app([
    {
        "address": "0x5afe000000000000000000000000000000005afe",
        "chain_id": 11155111,
        "nonce": 0,
        "threshold": 1,
        "owners": [owner.address],
        "version": "1.3.0",
    }
])


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="localhost", port=8000, log_level="debug")
