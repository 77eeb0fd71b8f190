"""
Data models for the userop bundler.
"""
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional, Tuple

from eth_utils import is_address, is_hexstr
from pydantic import BaseModel, ConfigDict, Field, field_validator

UINT256_MAX = 2**256 - 1
UINT8_MAX = 2**8 - 1


def _to_int(value: Any) -> int:
    """Accept JSON integers, decimal strings and 0x-prefixed hex strings"""
    if isinstance(value, bool):
        raise ValueError("boolean is not a valid integer quantity")
    if isinstance(value, int):
        return value
    if isinstance(value, str):
        text = value.strip()
        if text.lower().startswith("0x"):
            return int(text, 16)
        return int(text, 10)
    raise ValueError(f"expected integer quantity, got {type(value).__name__}")


def _to_hex(value: Any) -> str:
    """Normalize byte-like values to a lowercase 0x-prefixed hex string"""
    if isinstance(value, (bytes, bytearray)):
        return "0x" + bytes(value).hex()
    if not isinstance(value, str):
        raise ValueError(f"expected hex string, got {type(value).__name__}")
    if not value.startswith(("0x", "0X")):
        raise ValueError("hex string must start with 0x")
    # ASCII hex digits only; the ABI encoder rejects anything else
    if not is_hexstr(value):
        raise ValueError("hex string contains non-hexadecimal characters")
    body = value[2:]
    if len(body) % 2:
        raise ValueError("hex string must have an even number of digits")
    return "0x" + body.lower()


class UserOperation(BaseModel):
    """
    A client-submitted operation waiting to be bundled.

    Field names follow Python conventions; the JSON aliases match the
    ``eth_sendUserOperation`` wire format. Instances are frozen, and so
    hashable, once accepted.
    """
    model_config = ConfigDict(frozen=True, populate_by_name=True)

    sender: str
    nonce: int
    init_code: str = Field(..., alias="initCode")
    call_data: str = Field(..., alias="callData")
    call_gas_limit: int = Field(..., alias="callGasLimit")
    verification_gas_limit: int = Field(..., alias="verificationGasLimit")
    pre_verification_gas: int = Field(..., alias="preVerificationGas")
    max_fee_per_gas: int = Field(..., alias="maxFeePerGas")
    max_priority_fee_per_gas: int = Field(..., alias="maxPriorityFeePerGas")
    paymaster_and_data: str = Field(..., alias="paymasterAndData")
    signature: str
    meta_tx_id: int = 0
    meta_tx_order_id: int = 0
    user_ops_count: int = Field(1, alias="userOpsCount")

    @field_validator("sender")
    @classmethod
    def _check_sender(cls, value: str) -> str:
        if not isinstance(value, str) or not is_address(value):
            raise ValueError(f"invalid sender address: {value!r}")
        return value

    @field_validator(
        "nonce", "call_gas_limit", "verification_gas_limit", "pre_verification_gas",
        "max_fee_per_gas", "max_priority_fee_per_gas", "meta_tx_id", "meta_tx_order_id",
        mode="before",
    )
    @classmethod
    def _check_uint256(cls, value: Any) -> int:
        number = _to_int(value)
        if not 0 <= number <= UINT256_MAX:
            raise ValueError("value out of uint256 range")
        return number

    @field_validator("user_ops_count", mode="before")
    @classmethod
    def _check_uint8(cls, value: Any) -> int:
        number = _to_int(value)
        if not 0 <= number <= UINT8_MAX:
            raise ValueError("userOpsCount out of uint8 range")
        return number

    @field_validator("init_code", "call_data", "paymaster_and_data", "signature", mode="before")
    @classmethod
    def _check_hex(cls, value: Any) -> str:
        return _to_hex(value)

    @property
    def key(self) -> Tuple[str, int]:
        """Identity of the operation: lowercased sender and nonce"""
        return self.sender.lower(), self.nonce


class LogRecord(BaseModel):
    """A single event log emitted in a transaction receipt"""
    address: Optional[str] = None
    topics: List[str] = Field(default_factory=list)
    data: str = "0x"
    log_index: Optional[int] = Field(None, alias="logIndex")

    model_config = ConfigDict(populate_by_name=True)

    @field_validator("topics", mode="before")
    @classmethod
    def _normalize_topics(cls, value: Any) -> List[str]:
        return [_to_hex(topic) for topic in value]

    @field_validator("data", mode="before")
    @classmethod
    def _normalize_data(cls, value: Any) -> str:
        return _to_hex(value)


class BundleReceipt(BaseModel):
    """Transaction receipt for a submitted handleOps batch"""
    tx_hash: str = Field(..., alias="transactionHash")
    block_number: int = Field(..., alias="blockNumber")
    block_hash: str = Field(..., alias="blockHash")
    status: int
    gas_used: int = Field(..., alias="gasUsed")
    from_address: str = Field(..., alias="from")
    to_address: Optional[str] = Field(None, alias="to")
    logs: List[LogRecord] = Field(default_factory=list)

    model_config = ConfigDict(populate_by_name=True)

    @classmethod
    def from_web3(cls, web3_receipt: Any) -> "BundleReceipt":
        """
        Convert a Web3 receipt (AttributeDict with HexBytes values) to a BundleReceipt

        Args:
            web3_receipt: Receipt returned by ``wait_for_transaction_receipt``

        Returns:
            BundleReceipt model
        """
        receipt_dict = dict(web3_receipt)

        for key, value in list(receipt_dict.items()):
            if isinstance(value, (bytes, bytearray)):
                receipt_dict[key] = "0x" + bytes(value).hex()

        receipt_dict["logs"] = [dict(log) for log in receipt_dict.get("logs") or []]
        return cls.model_validate(receipt_dict)


@dataclass(frozen=True)
class Batch:
    """Immutable snapshot of the operations bundled in one cycle"""
    operations: Tuple[UserOperation, ...]
    beneficiary: str

    def __len__(self) -> int:
        return len(self.operations)


class SubmissionStatus(str, Enum):
    PENDING = "pending"
    CONFIRMED = "confirmed"
    FAILED = "failed"


@dataclass
class Submission:
    """
    One cycle's submission: the batch, its encoded calldata, the transaction
    handle once sent, and the terminal status. Discarded when the cycle ends.
    """
    batch: Batch
    calldata: bytes
    tx_hash: Optional[str] = None
    status: SubmissionStatus = SubmissionStatus.PENDING
    receipt: Optional[BundleReceipt] = None


class OutcomeStatus(str, Enum):
    SUCCEEDED = "succeeded"
    FAILED = "failed"
    UNCORRELATED = "uncorrelated"
    BATCH_FAILED = "batch_failed"


@dataclass
class OperationOutcome:
    """Resolved outcome for a single bundled operation"""
    operation: UserOperation
    status: OutcomeStatus
    reason: str = ""
    event_sender: Optional[str] = None
    sender_mismatch: bool = False

    @property
    def success(self) -> bool:
        return self.status is OutcomeStatus.SUCCEEDED


@dataclass(frozen=True)
class MetaTransactionOutcome:
    """Group-level outcome reported by MetaTransactionHandled"""
    meta_tx_id: int
    success: bool


@dataclass(frozen=True)
class DecodedEvent:
    """An event log decoded by name with its arguments"""
    name: str
    args: Dict[str, Any] = field(default_factory=dict)
    address: Optional[str] = None
