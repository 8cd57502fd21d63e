"""
Exception and Error Definitions Module

Defines the error taxonomy of the proposal pipeline. Every stage raises a
dedicated exception type so callers can tell a fatal configuration problem
from a recoverable nonce race without string matching.

Exception Hierarchy:
    SafeProposerError (root)
    ├── ConfigurationError
    ├── EncodingError          (reason: EncodingFailure)
    ├── HashMismatchError
    ├── SigningError           (reason: SigningFailure)
    └── SubmissionError        (reason: SubmissionFailure)

Retry semantics (applied by ``engine.pipeline``):
    - ConfigurationError, EncodingError, HashMismatchError, SigningError:
      never retried.
    - SubmissionError(STALE_NONCE): rebuild with a fresh nonce (bounded).
    - SubmissionError(DUPLICATE_HASH): treated as success.
    - SubmissionError(SERVICE_UNAVAILABLE): retried with backoff.
    - SubmissionError(REJECTED): terminal.
"""

from enum import Enum
from typing import Optional


class SafeProposerError(Exception):
    """
    Root exception class for all project-specific exceptions.

    All custom exceptions inherit from this class to enable unified
    exception handling at the application boundary.
    """
    pass


class ConfigurationError(SafeProposerError):
    """
    Raised when the network configuration is missing or invalid.

    This includes scenarios such as:
    - Unknown network profile name
    - Missing required environment variables
    - Malformed Safe / contract addresses
    - RPC URL that is not an http(s) or ws(s) URI

    Fatal at startup; never retried.
    """
    pass


class EncodingFailure(str, Enum):
    UNKNOWN_FUNCTION = "unknown_function"
    ARITY_MISMATCH = "arity_mismatch"
    TYPE_MISMATCH = "type_mismatch"


class EncodingError(SafeProposerError):
    """
    Raised when contract call arguments do not match the ABI entry.

    Surfaced before any network call is made. Values are never coerced
    to make them fit.

    Attributes:
        reason: Which validation step failed
    """

    def __init__(self, reason: EncodingFailure, message: str):
        super().__init__(message)
        self.reason = reason


class HashMismatchError(SafeProposerError):
    """
    Raised when two computations of the same Safe transaction hash disagree.

    A wrong hash yields a valid signature over a different transaction than
    the one displayed, so this is a build-blocking defect and never a
    runtime-recoverable condition.

    Attributes:
        expected: Digest produced by the reference computation
        actual: Digest produced by the compared computation
    """

    def __init__(self, message: str, expected: Optional[str] = None, actual: Optional[str] = None):
        super().__init__(message)
        self.expected = expected
        self.actual = actual


class SigningFailure(str, Enum):
    USER_REJECTED = "user_rejected"
    NO_PROVIDER_AVAILABLE = "no_provider_available"
    PROVIDER_ERROR = "provider_error"


class SigningError(SafeProposerError):
    """
    Raised when the wallet handle could not produce a usable signature.

    ``USER_REJECTED`` is a normal outcome (the operator declined in the
    wallet). The other reasons mean the wallet should be reconnected.

    Attributes:
        reason: Why signing failed
    """

    def __init__(self, reason: SigningFailure, message: str):
        super().__init__(message)
        self.reason = reason

    @property
    def user_rejected(self) -> bool:
        return self.reason is SigningFailure.USER_REJECTED


class SubmissionFailure(str, Enum):
    STALE_NONCE = "stale_nonce"
    DUPLICATE_HASH = "duplicate_hash"
    SERVICE_UNAVAILABLE = "service_unavailable"
    REJECTED = "rejected"


class SubmissionError(SafeProposerError):
    """
    Raised when the transaction service did not accept a proposal.

    Attributes:
        reason: Classified failure
        status_code: HTTP status returned by the service, if any
        detail: Response body returned by the service, verbatim
    """

    def __init__(
        self,
        reason: SubmissionFailure,
        message: str,
        status_code: Optional[int] = None,
        detail: Optional[str] = None,
    ):
        super().__init__(message)
        self.reason = reason
        self.status_code = status_code
        self.detail = detail

    @property
    def retryable(self) -> bool:
        return self.reason is SubmissionFailure.SERVICE_UNAVAILABLE
