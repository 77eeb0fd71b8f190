"""
Tests for the EntryPoint ABI codec.
"""
import pytest
from eth_abi import encode
from eth_utils import keccak

from userop_bundler.codec import (
    ERROR_STRING_SELECTOR, HANDLE_OPS_SELECTOR, call_data_hash, decode_log,
    decode_revert_reason, describe_call, event_topic,
)
from userop_bundler.models import LogRecord
from tests.test_helpers import (
    DECREASE, INCREASE, SENDER_A, TEST_COUNTER, execute_call, meta_tx_handled_log,
    number_changed_log, revert_payload, user_op_handled_log,
)


def test_selectors():
    assert ERROR_STRING_SELECTOR == "0x" + keccak(text="Error(string)")[:4].hex()
    expected = keccak(
        text="handleOps((address,uint256,bytes,bytes,uint256,uint256,uint256,uint256,uint256,"
             "bytes,bytes,uint256,uint256,uint8)[],address)"
    )[:4]
    assert HANDLE_OPS_SELECTOR == expected


def test_decode_user_op_handled():
    log = LogRecord.model_validate(user_op_handled_log(SENDER_A, success=False, reason="AA21 didn't pay"))

    event = decode_log(log)

    assert event.name == "UserOpHandled"
    assert event.args["sender"].lower() == SENDER_A.lower()
    assert event.args["success"] is False
    assert event.args["reason"] == "AA21 didn't pay"


def test_decode_meta_transaction_handled():
    event = decode_log(LogRecord.model_validate(meta_tx_handled_log(42, success=True)))

    assert event.name == "MetaTransactionHandled"
    assert event.args == {"meta_tx_id": 42, "success": True}


def test_decode_number_changed():
    event = decode_log(LogRecord.model_validate(number_changed_log("increase", 3)))

    assert event.name == "NumberChanged"
    assert event.args == {"action": "increase", "newValue": 3}


def test_unknown_and_malformed_logs_are_ignored():
    unknown = LogRecord(topics=["0x" + keccak(text="Transfer(address,address,uint256)").hex()], data="0x")
    anonymous = LogRecord(topics=[], data="0x")
    truncated = LogRecord(topics=[event_topic("UserOpHandled"), "0x" + "00" * 32], data="0x01")
    missing_topic = LogRecord(topics=[event_topic("MetaTransactionHandled")], data="0x")

    assert decode_log(unknown) is None
    assert decode_log(anonymous) is None
    assert decode_log(truncated) is None
    assert decode_log(missing_topic) is None


def test_decode_revert_reason():
    assert decode_revert_reason(revert_payload("insufficient balance")) == "insufficient balance"


@pytest.mark.parametrize("payload", [
    "0xdeadbeef",
    ERROR_STRING_SELECTOR + "00",
    ERROR_STRING_SELECTOR + "zz",
])
def test_decode_revert_reason_rejects_bad_payloads(payload):
    with pytest.raises(ValueError):
        decode_revert_reason(payload)


def test_describe_call_labels_counter_calls():
    assert describe_call(execute_call(TEST_COUNTER, INCREASE), TEST_COUNTER) == "increase"
    assert describe_call(execute_call(TEST_COUNTER, DECREASE), TEST_COUNTER.lower()) == "decrease"


def test_describe_call_unknown_target_or_function():
    assert describe_call(execute_call(SENDER_A, INCREASE), TEST_COUNTER) == "unknown"
    assert describe_call(execute_call(TEST_COUNTER, b"\x12\x34\x56\x78"), TEST_COUNTER) == "unknown"
    assert describe_call(execute_call(TEST_COUNTER, INCREASE), None) == "unknown"


def test_describe_call_rejects_non_execute_data():
    with pytest.raises(ValueError):
        describe_call("0x12345678", TEST_COUNTER)
    with pytest.raises(ValueError):
        describe_call(execute_call(TEST_COUNTER, INCREASE)[:20], TEST_COUNTER)


def test_call_data_hash():
    call_data = execute_call(TEST_COUNTER, INCREASE)
    assert call_data_hash(call_data) == "0x" + keccak(hexstr=call_data).hex()
    assert call_data_hash("0x") == "0x" + keccak(b"").hex()
