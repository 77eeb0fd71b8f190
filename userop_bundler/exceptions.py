"""
Exceptions for the userop bundler.
"""
from typing import Any, Optional


class BundlerError(Exception):
    """Base exception for all bundler errors"""
    pass


class ConfigurationError(BundlerError):
    """Raised when configuration or deployment data is missing or invalid"""
    pass


class IngressError(BundlerError):
    """Raised when an inbound request is rejected before it reaches the queue"""
    pass


class BatchAssemblyError(BundlerError):
    """Raised when a batch cannot be encoded into a handleOps call"""
    pass


class SubmissionError(BundlerError):
    """
    Raised when the execution boundary rejects the whole batch.

    The raw error payload reported by the node (a revert data string, an RPC
    error object, or nothing) is kept untouched on ``payload`` so the
    ErrorClassifier can inspect it.
    """

    def __init__(self, message: str, payload: Any = None, tx_hash: Optional[str] = None):
        self.payload = payload
        self.tx_hash = tx_hash
        super().__init__(message)


class RevertError(SubmissionError):
    """A SubmissionError whose payload carried a decodable revert reason."""

    def __init__(self, message: str, reason: str, payload: Any = None, tx_hash: Optional[str] = None):
        self.reason = reason
        super().__init__(message, payload=payload, tx_hash=tx_hash)
