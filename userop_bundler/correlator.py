"""
Correlation of receipt events back to the bundled operations.
"""
import logging
from collections import deque
from dataclasses import dataclass, field
from enum import Enum
from typing import Deque, List, Optional, Sequence

from .codec import decode_log
from .models import (
    BundleReceipt, DecodedEvent, MetaTransactionOutcome, OperationOutcome,
    OutcomeStatus, UserOperation,
)


class CorrelationStrategy(str, Enum):
    """
    How UserOpHandled events are matched to operations.

    ARRIVAL   - strict FIFO over the drained list in arrival order
    SUBMITTED - strict FIFO over the fee-sorted list actually submitted
    SENDER    - earliest unresolved submitted operation from the event's sender
    """
    ARRIVAL = "arrival"
    SUBMITTED = "submitted"
    SENDER = "sender"


@dataclass
class CorrelationReport:
    """Everything learned from one receipt"""
    outcomes: List[OperationOutcome] = field(default_factory=list)
    meta_outcomes: List[MetaTransactionOutcome] = field(default_factory=list)
    unmatched_events: List[DecodedEvent] = field(default_factory=list)
    uncorrelated: List[UserOperation] = field(default_factory=list)

    @property
    def mismatches(self) -> List[OperationOutcome]:
        return [outcome for outcome in self.outcomes if outcome.sender_mismatch]


class OutcomeCorrelator:
    """
    Walks receipt logs in emission order and resolves operation outcomes.

    MetaTransactionHandled events are reported independently of the
    per-operation events. Counter NumberChanged events are traced. Any other
    log is ignored.
    """

    def __init__(
        self,
        strategy: CorrelationStrategy = CorrelationStrategy.SENDER,
        logger: Optional[logging.Logger] = None,
    ):
        self.strategy = CorrelationStrategy(strategy)
        self.logger = logger or logging.getLogger(__name__)

    def correlate(
        self,
        receipt: BundleReceipt,
        arrival: Sequence[UserOperation],
        submitted: Sequence[UserOperation],
    ) -> CorrelationReport:
        """
        Match the receipt's events to the operations of one batch.

        Args:
            receipt: Receipt of the handleOps transaction
            arrival: Drained operations in arrival order
            submitted: The same operations in submitted (fee-sorted) order

        Returns:
            CorrelationReport with resolved, unmatched and uncorrelated entries
        """
        report = CorrelationReport()
        source = arrival if self.strategy is CorrelationStrategy.ARRIVAL else submitted
        pending: Deque[UserOperation] = deque(source)

        for log in receipt.logs:
            event = decode_log(log)
            if event is None:
                continue

            if event.name == "NumberChanged":
                self.logger.info(f"[Counter] {event.args['action']}: {event.args['newValue']}")
            elif event.name == "MetaTransactionHandled":
                outcome = MetaTransactionOutcome(
                    meta_tx_id=event.args["meta_tx_id"],
                    success=event.args["success"],
                )
                report.meta_outcomes.append(outcome)
                self.logger.info(
                    f"[MetaTransactionHandled] meta_tx_id={outcome.meta_tx_id}, success={outcome.success}"
                )
            elif event.name == "UserOpHandled":
                op = self._take(pending, event.args["sender"])
                if op is None:
                    report.unmatched_events.append(event)
                    self.logger.warning(
                        f"UserOpHandled for sender={event.args['sender']} has no matching operation"
                    )
                    continue
                report.outcomes.append(self._outcome(op, event))

        report.uncorrelated = list(pending)
        for op in report.uncorrelated:
            self.logger.warning(
                f"No UserOpHandled event for sender={op.sender} nonce={op.nonce}; outcome unknown"
            )
        return report

    def _take(self, pending: Deque[UserOperation], sender: str) -> Optional[UserOperation]:
        if not pending:
            return None
        if self.strategy is not CorrelationStrategy.SENDER:
            return pending.popleft()
        for op in pending:
            if op.sender.lower() == sender.lower():
                pending.remove(op)
                return op
        return None

    def _outcome(self, op: UserOperation, event: DecodedEvent) -> OperationOutcome:
        sender = event.args["sender"]
        success = event.args["success"]
        reason = event.args["reason"]
        mismatch = op.sender.lower() != sender.lower()

        self.logger.info(f"[UserOpHandled] sender={sender}")
        self.logger.info(
            f"     meta_tx_id: {op.meta_tx_id}, meta_tx_order_id: {op.meta_tx_order_id}, "
            f"userOpsCount: {op.user_ops_count}"
        )
        self.logger.info(f"     success={success}, reason={reason}")
        if mismatch:
            self.logger.warning(
                f"UserOpHandled sender {sender} was matched to an operation from {op.sender} "
                f"({self.strategy.value} correlation)"
            )

        return OperationOutcome(
            operation=op,
            status=OutcomeStatus.SUCCEEDED if success else OutcomeStatus.FAILED,
            reason=reason,
            event_sender=sender,
            sender_mismatch=mismatch,
        )
