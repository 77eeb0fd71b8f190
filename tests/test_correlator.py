"""
Tests for receipt outcome correlation.
"""
import pytest

from userop_bundler.correlator import CorrelationStrategy, OutcomeCorrelator
from userop_bundler.models import OutcomeStatus
from userop_bundler.ordering import order_by_fee
from tests.test_helpers import (
    SENDER_A, SENDER_B, SENDER_C, make_op, make_receipt, meta_tx_handled_log,
    number_changed_log, user_op_handled_log,
)


@pytest.fixture
def batch():
    """A(5), B(10), C(5) in arrival order, and the submitted order [B, A, C]"""
    a = make_op(sender=SENDER_A, max_fee=5)
    b = make_op(sender=SENDER_B, max_fee=10)
    c = make_op(sender=SENDER_C, max_fee=5)
    arrival = [a, b, c]
    return arrival, order_by_fee(arrival)


class TestArrivalCorrelation:
    """Legacy positional matching against the unsorted arrival list"""

    def test_events_consume_arrival_list_in_emission_order(self, batch):
        arrival, submitted = batch
        receipt = make_receipt([
            user_op_handled_log(SENDER_B, success=True),
            user_op_handled_log(SENDER_A, success=False, reason="AA23 reverted"),
        ])

        report = OutcomeCorrelator(CorrelationStrategy.ARRIVAL).correlate(receipt, arrival, submitted)

        assert [o.operation for o in report.outcomes] == arrival[:2]
        assert report.outcomes[0].status is OutcomeStatus.SUCCEEDED
        assert report.outcomes[1].status is OutcomeStatus.FAILED
        assert report.outcomes[1].reason == "AA23 reverted"
        assert report.uncorrelated == [arrival[2]]

    def test_sorted_emission_is_misattributed_and_flagged(self, batch):
        """
        The EntryPoint emits events in the order operations were submitted
        (fee-sorted). Positional matching against arrival order pairs B's
        event with A and A's event with B.
        """
        arrival, submitted = batch
        receipt = make_receipt([user_op_handled_log(op.sender) for op in submitted])

        report = OutcomeCorrelator(CorrelationStrategy.ARRIVAL).correlate(receipt, arrival, submitted)

        assert report.outcomes[0].operation.sender == SENDER_A
        assert report.outcomes[0].event_sender.lower() == SENDER_B.lower()
        assert [o.sender_mismatch for o in report.outcomes] == [True, True, False]
        assert len(report.mismatches) == 2


class TestSubmittedCorrelation:

    def test_events_consume_submitted_order(self, batch):
        arrival, submitted = batch
        receipt = make_receipt([user_op_handled_log(op.sender) for op in submitted])

        report = OutcomeCorrelator(CorrelationStrategy.SUBMITTED).correlate(receipt, arrival, submitted)

        assert [o.operation for o in report.outcomes] == submitted
        assert report.mismatches == []
        assert report.uncorrelated == []


class TestSenderCorrelation:

    def test_matches_by_sender_regardless_of_emission_order(self, batch):
        arrival, submitted = batch
        receipt = make_receipt([
            user_op_handled_log(SENDER_C, success=False, reason="nope"),
            user_op_handled_log(SENDER_A),
        ])

        report = OutcomeCorrelator().correlate(receipt, arrival, submitted)

        assert [o.operation.sender for o in report.outcomes] == [SENDER_C, SENDER_A]
        assert report.outcomes[0].status is OutcomeStatus.FAILED
        assert report.mismatches == []
        assert [op.sender for op in report.uncorrelated] == [SENDER_B]

    def test_same_sender_resolves_in_submitted_order(self):
        first = make_op(sender=SENDER_A, nonce=0, max_fee=9)
        second = make_op(sender=SENDER_A, nonce=1, max_fee=3)
        receipt = make_receipt([user_op_handled_log(SENDER_A), user_op_handled_log(SENDER_A, success=False)])

        report = OutcomeCorrelator().correlate(receipt, [second, first], [first, second])

        assert [o.operation.nonce for o in report.outcomes] == [0, 1]
        assert [o.success for o in report.outcomes] == [True, False]

    def test_event_without_operation_is_unmatched(self, batch):
        arrival, submitted = batch
        stranger = "0x4444444444444444444444444444444444444444"
        receipt = make_receipt([user_op_handled_log(stranger)])

        report = OutcomeCorrelator().correlate(receipt, arrival, submitted)

        assert report.outcomes == []
        assert len(report.unmatched_events) == 1
        assert len(report.uncorrelated) == 3


def test_meta_transaction_events_reported_independently(batch):
    arrival, submitted = batch
    receipt = make_receipt([
        user_op_handled_log(SENDER_B),
        meta_tx_handled_log(1, success=True),
        user_op_handled_log(SENDER_A),
        meta_tx_handled_log(2, success=False),
    ])

    report = OutcomeCorrelator().correlate(receipt, arrival, submitted)

    assert [(m.meta_tx_id, m.success) for m in report.meta_outcomes] == [(1, True), (2, False)]
    assert len(report.outcomes) == 2


def test_other_events_are_ignored(batch):
    arrival, submitted = batch
    receipt = make_receipt([
        number_changed_log("increase", 1),
        {"address": SENDER_A, "topics": ["0x" + "99" * 32], "data": "0x"},
        user_op_handled_log(SENDER_B),
    ])

    report = OutcomeCorrelator(CorrelationStrategy.SUBMITTED).correlate(receipt, arrival, submitted)

    assert len(report.outcomes) == 1
    assert report.outcomes[0].operation.sender == SENDER_B
    assert report.unmatched_events == []


def test_extra_events_beyond_batch_are_unmatched():
    op = make_op(sender=SENDER_A)
    receipt = make_receipt([user_op_handled_log(SENDER_A), user_op_handled_log(SENDER_A)])

    report = OutcomeCorrelator(CorrelationStrategy.ARRIVAL).correlate(receipt, [op], [op])

    assert len(report.outcomes) == 1
    assert len(report.unmatched_events) == 1


def test_strategy_accepts_string_values():
    assert OutcomeCorrelator("arrival").strategy is CorrelationStrategy.ARRIVAL
