"""
Typed pipeline events and hook dispatch.

The pipeline publishes one event per milestone. Callers register async
hooks per event class to observe a proposal as it moves through the stages
(display the decoded call, persist the hash, notify co-signers, ...).
"""

import inspect
from abc import ABC, abstractmethod
from typing import Awaitable, Callable, Dict, List

from pydantic import BaseModel, ConfigDict

from ..schemas.bases import EncodedCall, ProposalReceipt, SafeSignature, SafeTransaction, SafeTxHash

# ==================== Base Event ====================

class BaseEvent(ABC):
    """Base class for all events in the system."""

    @abstractmethod
    def __repr__(self) -> str:
        """String representation of the event."""
        pass


# ==================== Pipeline Events ====================

class CallEncodedEvent(BaseModel, BaseEvent):
    """The contract call was validated and ABI-encoded."""
    encoded_call: EncodedCall

    model_config = ConfigDict(arbitrary_types_allowed=True)

    def __repr__(self) -> str:
        return f"CallEncodedEvent(function={self.encoded_call.function_signature})"


class TransactionBuiltEvent(BaseModel, BaseEvent):
    """A SafeTransaction was built and hashed at the given nonce."""
    transaction: SafeTransaction
    tx_hash: SafeTxHash
    attempt: int = 1

    model_config = ConfigDict(arbitrary_types_allowed=True)

    def __repr__(self) -> str:
        return f"TransactionBuiltEvent(nonce={self.transaction.nonce}, hash={self.tx_hash.safe_tx_hash})"


class TransactionSignedEvent(BaseModel, BaseEvent):
    """The operator's wallet signed the SafeTxHash."""
    tx_hash: SafeTxHash
    signature: SafeSignature

    model_config = ConfigDict(arbitrary_types_allowed=True)

    def __repr__(self) -> str:
        return f"TransactionSignedEvent(signer={self.signature.signer_address})"


class NonceStaleEvent(BaseModel, BaseEvent):
    """The service reported a stale nonce; the transaction will be rebuilt."""
    stale_nonce: int
    fresh_nonce: int

    model_config = ConfigDict(arbitrary_types_allowed=True)

    def __repr__(self) -> str:
        return f"NonceStaleEvent(stale={self.stale_nonce}, fresh={self.fresh_nonce})"


class ProposalSubmittedEvent(BaseModel, BaseEvent):
    """The proposal is held by the coordination service."""
    receipt: ProposalReceipt

    model_config = ConfigDict(arbitrary_types_allowed=True)

    def __repr__(self) -> str:
        return f"ProposalSubmittedEvent(hash={self.receipt.safe_tx_hash})"


# ==================== Event Bus ====================

EventHookFunc = Callable[[BaseEvent], Awaitable[None]]


class EventBus:
    """Dispatches pipeline events to registered hooks."""

    def __init__(self) -> None:
        self._hooks: Dict[type, List[EventHookFunc]] = {}

    def hook(self, event_class: type, hook_func: EventHookFunc) -> None:
        """
        Register a hook for the given event class.

        Args:
            event_class: The event class to hook into.
            hook_func: Async function called with the event when it is published.

        Raises:
            TypeError: If hook_func is not a coroutine function.
        """
        if not inspect.iscoroutinefunction(hook_func):
            raise TypeError(f"Hook must be a coroutine function, got {type(hook_func).__name__}")

        if event_class not in self._hooks:
            self._hooks[event_class] = []
        self._hooks[event_class].append(hook_func)

    async def dispatch(self, event: BaseEvent) -> None:
        """
        Run every hook registered for ``type(event)``.

        Hooks run one at a time in registration order. An exception raised
        by a hook propagates to the publisher and stops the remaining hooks.
        """
        for hook in self._hooks.get(type(event), []):
            await hook(event)
