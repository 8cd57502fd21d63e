"""
Client module for the Safe Transaction Service.

Provides the async HTTP client the proposal pipeline submits through.
"""

from .tx_service import SafeTransactionServiceClient, classify_response

__all__ = ["SafeTransactionServiceClient", "classify_response"]
