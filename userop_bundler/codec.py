"""
ABI codec for the EntryPoint boundary.

Encodes the ``handleOps`` batch call, decodes the EntryPoint and Counter
event logs found in a receipt, decodes ``Error(string)`` revert payloads and
labels operation call data for tracing.
"""
import logging
from typing import Any, Dict, List, Optional, Sequence, Tuple

from eth_abi import decode, encode
from eth_abi.exceptions import DecodingError
from eth_utils import keccak, to_bytes, to_checksum_address

from .models import DecodedEvent, LogRecord, UserOperation

logger = logging.getLogger(__name__)

USER_OPERATION_TUPLE = (
    "(address,uint256,bytes,bytes,uint256,uint256,uint256,uint256,uint256,"
    "bytes,bytes,uint256,uint256,uint8)"
)
HANDLE_OPS_SIGNATURE = f"handleOps({USER_OPERATION_TUPLE}[],address)"
HANDLE_OPS_SELECTOR = keccak(text=HANDLE_OPS_SIGNATURE)[:4]

# Error(string)
ERROR_STRING_SELECTOR = "0x08c379a0"

WALLET_EXECUTE_SELECTOR = keccak(text="execute(address,bytes)")[:4]
COUNTER_FUNCTIONS = {
    keccak(text="increase()")[:4]: "increase",
    keccak(text="decrease()")[:4]: "decrease",
}

# name -> (signature, indexed types, data types, arg names in declaration order)
EVENTS: Dict[str, Tuple[str, List[str], List[str], List[str]]] = {
    "UserOpHandled": (
        "UserOpHandled(address,bool,string)",
        ["address"], ["bool", "string"], ["sender", "success", "reason"],
    ),
    "MetaTransactionHandled": (
        "MetaTransactionHandled(uint256,bool)",
        ["uint256"], ["bool"], ["meta_tx_id", "success"],
    ),
    "NumberChanged": (
        "NumberChanged(string,uint256)",
        [], ["string", "uint256"], ["action", "newValue"],
    ),
}
EVENT_TOPICS: Dict[str, str] = {
    "0x" + keccak(text=signature).hex(): name
    for name, (signature, _, _, _) in EVENTS.items()
}


def event_topic(name: str) -> str:
    """Return the topic0 hash for a known event name"""
    return "0x" + keccak(text=EVENTS[name][0]).hex()


def operation_tuple(op: UserOperation) -> Tuple[Any, ...]:
    """
    Project an operation into the 14-field handleOps tuple.

    Order: sender, nonce, initCode, callData, callGasLimit,
    verificationGasLimit, preVerificationGas, maxFeePerGas,
    maxPriorityFeePerGas, paymasterAndData, signature, metaTxId,
    metaTxOrderId, userOpsCount.
    """
    return (
        to_checksum_address(op.sender),
        op.nonce,
        to_bytes(hexstr=op.init_code),
        to_bytes(hexstr=op.call_data),
        op.call_gas_limit,
        op.verification_gas_limit,
        op.pre_verification_gas,
        op.max_fee_per_gas,
        op.max_priority_fee_per_gas,
        to_bytes(hexstr=op.paymaster_and_data),
        to_bytes(hexstr=op.signature),
        op.meta_tx_id,
        op.meta_tx_order_id,
        op.user_ops_count,
    )


def encode_handle_ops(tuples: Sequence[Tuple[Any, ...]], beneficiary: str) -> bytes:
    """Encode ``handleOps(ops, beneficiary)`` calldata including the selector"""
    arguments = encode(
        [f"{USER_OPERATION_TUPLE}[]", "address"],
        [list(tuples), to_checksum_address(beneficiary)],
    )
    return HANDLE_OPS_SELECTOR + arguments


def decode_log(log: LogRecord) -> Optional[DecodedEvent]:
    """
    Decode a receipt log into a named event.

    Args:
        log: Log record from the receipt

    Returns:
        DecodedEvent for a known event, or None for anything else
        (unknown topic, anonymous log, or a payload that fails to decode)
    """
    if not log.topics:
        return None

    name = EVENT_TOPICS.get(log.topics[0].lower())
    if name is None:
        return None

    _, indexed_types, data_types, arg_names = EVENTS[name]
    topics = log.topics[1:]
    if len(topics) != len(indexed_types):
        logger.debug(f"Ignoring {name} log with {len(topics)} indexed topics")
        return None

    try:
        values: List[Any] = [
            decode([abi_type], to_bytes(hexstr=topic))[0]
            for abi_type, topic in zip(indexed_types, topics)
        ]
        values.extend(decode(data_types, to_bytes(hexstr=log.data)))
    except (DecodingError, ValueError, OverflowError) as e:
        logger.debug(f"Failed to decode {name} log: {e}")
        return None

    return DecodedEvent(name=name, args=dict(zip(arg_names, values)), address=log.address)


def decode_revert_reason(payload: str) -> str:
    """
    Decode the reason string from an ``Error(string)`` revert payload.

    Args:
        payload: Hex string starting with the 0x08c379a0 selector

    Returns:
        The UTF-8 reason

    Raises:
        ValueError: If the payload is not an Error(string) payload or fails to decode
    """
    if not payload.lower().startswith(ERROR_STRING_SELECTOR):
        raise ValueError("payload does not start with the Error(string) selector")
    try:
        return decode(["string"], to_bytes(hexstr=payload[len(ERROR_STRING_SELECTOR):]))[0]
    except (DecodingError, UnicodeDecodeError, OverflowError) as e:
        raise ValueError(f"undecodable revert reason: {e}") from e


def describe_call(call_data: str, counter_address: Optional[str] = None) -> str:
    """
    Produce a short label for an operation's call data.

    A wallet ``execute(target, data)`` call is labeled with the Counter
    function name when ``target`` is the configured Counter, and ``unknown``
    otherwise.

    Raises:
        ValueError: If the call data is not a wallet execute call
    """
    raw = to_bytes(hexstr=call_data)
    if raw[:4] != WALLET_EXECUTE_SELECTOR:
        raise ValueError("call data is not a wallet execute call")
    try:
        target, inner = decode(["address", "bytes"], raw[4:])
    except DecodingError as e:
        raise ValueError(f"undecodable execute call: {e}") from e

    if counter_address and target.lower() == counter_address.lower():
        return COUNTER_FUNCTIONS.get(bytes(inner[:4]), "unknown")
    return "unknown"


def call_data_hash(call_data: str) -> str:
    """keccak256 of the call data, for trace correlation"""
    return "0x" + keccak(hexstr=call_data).hex()
