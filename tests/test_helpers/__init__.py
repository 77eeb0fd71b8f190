"""
Shared test helpers.
"""
from .builders import (
    DECREASE, INCREASE, SENDER_A, SENDER_B, SENDER_C, TEST_COUNTER, TEST_ENTRY_POINT,
    TEST_OPERATOR, TEST_PRIV_KEY, TEST_RPC_URL, TEST_TX_HASH, execute_call, make_op,
    make_receipt, meta_tx_handled_log, number_changed_log, revert_payload,
    user_op_handled_log,
)
