"""
BundlerEngine - owns the intake queue and runs single-flight bundling cycles.
"""
import logging
import threading
from collections import deque
from dataclasses import dataclass
from enum import Enum
from typing import Deque, Dict, List, Optional, Sequence

from ._rate_limited_log import RateLimitedLogger
from .assembler import BatchAssembler
from .classifier import ClassifiedFailure, ErrorClassifier, FailureKind
from .codec import call_data_hash, describe_call
from .correlator import CorrelationReport, OutcomeCorrelator
from .exceptions import BatchAssemblyError, SubmissionError
from .intake import IntakeQueue, OutcomeCallback, QueuedOperation
from .models import (
    Batch, OperationOutcome, OutcomeStatus, Submission, SubmissionStatus, UserOperation,
)
from .ordering import order_by_fee
from .submitter import Submitter


class CycleState(str, Enum):
    IDLE = "idle"
    ASSEMBLING = "assembling"
    SUBMITTING = "submitting"
    RESOLVING = "resolving"


@dataclass
class CycleReport:
    """
    Result of one bundling cycle.

    Exactly one of ``correlation`` (receipt obtained) and ``failure``
    (batch rejected or not encodable) is set.
    """
    batch: Batch
    submission: Optional[Submission] = None
    correlation: Optional[CorrelationReport] = None
    failure: Optional[ClassifiedFailure] = None

    @property
    def ok(self) -> bool:
        return self.failure is None


class BundlerEngine:
    """
    Bundles queued operations into handleOps transactions.

    The engine moves through IDLE -> ASSEMBLING -> SUBMITTING -> RESOLVING
    -> IDLE once per cycle. A tick that arrives while a cycle is running is
    dropped, never deferred. The drained snapshot is discarded when the cycle
    ends whatever its outcome; operations are never retried.

    By default nothing is reported back to whoever submitted an operation.
    Callers that want to know can pass ``on_outcome`` to ``enqueue``.
    """

    def __init__(
        self,
        submitter: Submitter,
        classifier: ErrorClassifier,
        correlator: Optional[OutcomeCorrelator] = None,
        assembler: Optional[BatchAssembler] = None,
        counter_address: Optional[str] = None,
        logger: Optional[logging.Logger] = None,
    ):
        """
        Initialize the engine

        Args:
            submitter: Sends batches and returns receipts
            classifier: Classifies and records failed submissions
            correlator: Matches receipt events to operations (sender matching by default)
            assembler: Builds and encodes batches
            counter_address: Inner target whose calls are labeled in traces
            logger: Optional logger instance
        """
        self.submitter = submitter
        self.classifier = classifier
        self.correlator = correlator or OutcomeCorrelator()
        self.assembler = assembler or BatchAssembler()
        self.counter_address = counter_address
        self.logger = logger or logging.getLogger(__name__)

        self.queue = IntakeQueue()
        self._state = CycleState.IDLE
        self._state_lock = threading.Lock()
        self._skip_log = RateLimitedLogger(self.logger, interval=60)

    @property
    def state(self) -> CycleState:
        with self._state_lock:
            return self._state

    def _set_state(self, state: CycleState) -> None:
        with self._state_lock:
            self._state = state

    def enqueue(self, op: UserOperation, on_outcome: Optional[OutcomeCallback] = None) -> None:
        """
        Queue an operation for the next cycle.

        Args:
            op: Accepted operation
            on_outcome: Optional callback invoked once with the outcome of this submission
        """
        self.queue.enqueue(op, on_outcome)
        self.logger.info(f"UserOperation queued: sender={op.sender} nonce={op.nonce}")

    def tick(self) -> Optional[CycleReport]:
        """
        Run one cycle if the engine is idle and the queue is not empty.

        Every callback drained by the cycle fires exactly once before the
        engine returns to IDLE, with BATCH_FAILED if the cycle raised.

        Returns:
            CycleReport of the cycle, or None if no cycle ran
        """
        with self._state_lock:
            if self._state is not CycleState.IDLE:
                self._skip_log.log("Bundling cycle still in progress, skipping tick", level="debug")
                return None
            if len(self.queue) == 0:
                return None
            self._state = CycleState.ASSEMBLING

        entries: List[QueuedOperation] = []
        report: Optional[CycleReport] = None
        try:
            entries = self.queue.drain_all()
            report = self._run_cycle([entry.operation for entry in entries])
            return report
        finally:
            try:
                self._resolve_callbacks(entries, report)
            finally:
                self._set_state(CycleState.IDLE)

    def _run_cycle(self, drained: List[UserOperation]) -> CycleReport:
        ordered = order_by_fee(drained)
        self._trace(ordered)

        batch = self.assembler.assemble(ordered, beneficiary=self.submitter.address)
        report = CycleReport(batch=batch)
        try:
            try:
                calldata = self.assembler.encode(batch)
            except BatchAssemblyError as e:
                self._set_state(CycleState.RESOLVING)
                report.failure = self.classifier.write(
                    ClassifiedFailure(kind=FailureKind.SUBMISSION, message=f"Batch assembly failed: {e}")
                )
                return report

            submission = Submission(batch=batch, calldata=calldata)
            report.submission = submission

            self._set_state(CycleState.SUBMITTING)
            try:
                submission.tx_hash = self.submitter.send(calldata)
                self.logger.info(
                    f"Submitted batch of {len(batch)} UserOperations, txHash: {submission.tx_hash}"
                )
                receipt = self.submitter.wait(submission.tx_hash)
            except SubmissionError as e:
                self._set_state(CycleState.RESOLVING)
                submission.status = SubmissionStatus.FAILED
                report.failure = self.classifier.record(e)
                return report

            self._set_state(CycleState.RESOLVING)
            submission.status = SubmissionStatus.CONFIRMED
            submission.receipt = receipt
            report.correlation = self.correlator.correlate(receipt, arrival=drained, submitted=ordered)
            return report
        finally:
            self.logger.info(f"Clearing {len(drained)} bundled UserOperations")

    def _trace(self, ordered: Sequence[UserOperation]) -> None:
        self.logger.info(f"Processing {len(ordered)} UserOperations (ordered by maxFeePerGas):")
        for idx, op in enumerate(ordered):
            try:
                label = describe_call(op.call_data, self.counter_address)
                self.logger.info(
                    f"  #{idx} - nonce: {op.nonce}, call: {label}, maxFeePerGas: {op.max_fee_per_gas} wei"
                )
            except ValueError:
                self.logger.info(f"  #{idx} - nonce: {op.nonce}, callData could not be decoded")
            self.logger.info(
                f"     meta_tx_id: {op.meta_tx_id}, meta_tx_order_id: {op.meta_tx_order_id}, "
                f"userOpsCount: {op.user_ops_count}"
            )
            self.logger.info(f"     callDataHash: {call_data_hash(op.call_data)}")

    def _resolve_callbacks(self, entries: List[QueuedOperation], report: Optional[CycleReport]) -> None:
        watched = [entry for entry in entries if entry.on_outcome is not None]
        if not watched:
            return

        # outcomes refer to the drained operation objects, so identity pairs them with entries
        resolved: Dict[int, Deque[OperationOutcome]] = {}
        if report is not None and report.correlation is not None:
            outcomes = list(report.correlation.outcomes) + [
                OperationOutcome(operation=op, status=OutcomeStatus.UNCORRELATED)
                for op in report.correlation.uncorrelated
            ]
            for outcome in outcomes:
                resolved.setdefault(id(outcome.operation), deque()).append(outcome)

        if report is not None and report.failure is not None:
            reason = report.failure.reason or report.failure.message
        else:
            reason = "Bundling cycle failed unexpectedly"

        for entry in watched:
            queued = resolved.get(id(entry.operation))
            if queued:
                outcome = queued.popleft()
            else:
                outcome = OperationOutcome(
                    operation=entry.operation, status=OutcomeStatus.BATCH_FAILED, reason=reason
                )
            try:
                entry.on_outcome(outcome)
            except Exception:
                self.logger.exception(
                    f"Outcome callback failed for sender={outcome.operation.sender} nonce={outcome.operation.nonce}"
                )
