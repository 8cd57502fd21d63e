from .apps import SafeTransactionServiceApp, SafeState, ProposalRecord, create_tx_service_app

__all__ = [
    "SafeTransactionServiceApp",
    "SafeState",
    "ProposalRecord",
    "create_tx_service_app",
]
