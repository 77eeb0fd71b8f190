"""
Classification of failed batch submissions.
"""
import json
import logging
from dataclasses import dataclass
from enum import Enum
from typing import Any, Optional

from portalocker.exceptions import BaseLockException

from .codec import ERROR_STRING_SELECTOR, decode_revert_reason
from .exceptions import RevertError, SubmissionError
from .failure_log import FailureLog


class FailureKind(str, Enum):
    """Shape of a submission failure"""
    SUBMISSION = "submission"  # transport/consensus rejection, no structured payload
    REVERT = "revert"          # Error(string) revert payload
    OPAQUE = "opaque"          # structured object we do not try to decode


@dataclass(frozen=True)
class ClassifiedFailure:
    """
    Tagged failure produced for a rejected batch.

    ``reason`` is set only for a decoded revert; ``detail`` holds the raw or
    serialized payload; ``message`` is the line body written to the failure log.
    """
    kind: FailureKind
    message: str
    reason: Optional[str] = None
    detail: Optional[str] = None
    tx_hash: Optional[str] = None


def serialize_payload(payload: Any) -> str:
    """Serialize a structured error payload for the log, falling back to str()"""
    try:
        return json.dumps(payload, default=str, sort_keys=True)
    except (TypeError, ValueError):
        return str(payload)


class ErrorClassifier:
    """
    Turns a SubmissionError into a ClassifiedFailure and records it.

    Classification never raises: decode problems degrade to the raw-payload
    fallback and a failing log write is reported through logging only.
    """

    def __init__(self, failure_log: FailureLog, logger: Optional[logging.Logger] = None):
        self.failure_log = failure_log
        self.logger = logger or logging.getLogger(__name__)

    def classify(self, error: SubmissionError) -> ClassifiedFailure:
        """
        Classify a submission failure by the shape of its payload.

        Args:
            error: The failure raised by the Submitter

        Returns:
            ClassifiedFailure describing the failure
        """
        payload = error.payload
        tx_hash = error.tx_hash

        if isinstance(error, RevertError):
            return ClassifiedFailure(
                kind=FailureKind.REVERT,
                message=f"Batch reverted: {error.reason}",
                reason=error.reason,
                detail=payload if isinstance(payload, str) else None,
                tx_hash=tx_hash,
            )

        if isinstance(payload, str):
            if payload.lower().startswith(ERROR_STRING_SELECTOR):
                try:
                    reason = decode_revert_reason(payload)
                except ValueError as e:
                    self.logger.debug(f"Revert payload could not be decoded: {e}")
                    return ClassifiedFailure(
                        kind=FailureKind.REVERT,
                        message=f"Batch reverted, reason could not be decoded (raw: {payload})",
                        detail=payload,
                        tx_hash=tx_hash,
                    )
                return ClassifiedFailure(
                    kind=FailureKind.REVERT,
                    message=f"Batch reverted: {reason}",
                    reason=reason,
                    detail=payload,
                    tx_hash=tx_hash,
                )
            return ClassifiedFailure(
                kind=FailureKind.SUBMISSION,
                message=f"Batch submission failed: {error} (raw: {payload})",
                detail=payload,
                tx_hash=tx_hash,
            )

        if payload is not None:
            detail = serialize_payload(payload)
            return ClassifiedFailure(
                kind=FailureKind.OPAQUE,
                message=f"Batch submission failed with opaque error: {detail}",
                detail=detail,
                tx_hash=tx_hash,
            )

        return ClassifiedFailure(
            kind=FailureKind.SUBMISSION,
            message=f"Batch submission failed: {error}",
            tx_hash=tx_hash,
        )

    def record(self, error: SubmissionError) -> ClassifiedFailure:
        """
        Classify a failure and append it to the failure log.

        Args:
            error: The failure raised by the Submitter

        Returns:
            ClassifiedFailure that was recorded
        """
        return self.write(self.classify(error))

    def write(self, failure: ClassifiedFailure) -> ClassifiedFailure:
        """Log a classified failure and append it to the failure log"""
        self.logger.error(failure.message)
        try:
            self.failure_log.append(failure.message)
        except (OSError, BaseLockException) as e:
            self.logger.error(f"Could not write to failure log {self.failure_log.path}: {e}")
        return failure
