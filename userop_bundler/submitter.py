"""
Submitter - sends encoded batches to the EntryPoint and waits for receipts.
"""
import logging
from typing import Any, Dict, Optional, Protocol

from eth_account import Account
from eth_account.signers.base import BaseAccount
from eth_utils import to_checksum_address
from web3 import Web3
from web3.exceptions import TimeExhausted, Web3Exception

from .codec import ERROR_STRING_SELECTOR, decode_revert_reason
from .exceptions import RevertError, SubmissionError
from .models import BundleReceipt

DEFAULT_GAS_LIMIT = 3_000_000


class Signer(Protocol):
    """Protocol for custom signers"""
    address: str

    def sign_transaction(self, transaction_dict: Dict[str, Any]) -> Any:
        """Sign transaction and return signed tx object"""
        ...


def extract_error_payload(error: BaseException) -> Any:
    """
    Pull the structured error payload out of a transport exception.

    Looks, in order, at ``error.data`` (ContractLogicError), the JSON-RPC
    ``error`` member of ``error.rpc_response`` and a dict passed as the first
    exception argument (RPC errors raised as ValueError). For RPC error
    objects the ``data`` member is preferred over the whole object.

    Returns:
        The payload (usually a hex string or a dict), or None if there is none
    """
    data = getattr(error, "data", None)
    if data is not None:
        return data

    rpc_response = getattr(error, "rpc_response", None)
    if isinstance(rpc_response, dict) and isinstance(rpc_response.get("error"), dict):
        rpc_error = rpc_response["error"]
        return rpc_error.get("data", rpc_error)

    if error.args and isinstance(error.args[0], dict):
        rpc_error = error.args[0]
        return rpc_error.get("data", rpc_error)

    return None


def _hex(value: Any) -> str:
    if isinstance(value, (bytes, bytearray)):
        return "0x" + bytes(value).hex()
    return str(value)


def _raw_transaction(signed: Any) -> bytes:
    # eth-account renamed rawTransaction to raw_transaction
    raw = getattr(signed, "raw_transaction", None)
    if raw is None:
        raw = signed.rawTransaction
    return raw


class Submitter:
    """
    Sends one handleOps transaction per batch through a Web3 provider.

    Each submission uses a fixed gas ceiling rather than an estimate. The
    transaction is signed with the operator's key (or a custom signer), whose
    address is also the batch beneficiary.
    """

    def __init__(
        self,
        rpc_url: str,
        entry_point_address: str,
        priv_key: Optional[str] = None,
        signer: Optional[Signer] = None,
        gas_limit: int = DEFAULT_GAS_LIMIT,
        receipt_timeout: float = 120,
        poll_interval: float = 0.1,
        w3: Optional[Web3] = None,
        logger: Optional[logging.Logger] = None,
    ):
        """
        Initialize the Submitter

        Args:
            rpc_url: Ethereum RPC endpoint URL
            entry_point_address: EntryPoint contract receiving handleOps
            priv_key: Operator private key (optional if signer provided)
            signer: Custom signer object (optional if priv_key provided)
            gas_limit: Gas ceiling for every batch transaction
            receipt_timeout: Seconds to wait for a receipt before giving up
            poll_interval: Receipt polling interval in seconds
            w3: Preconfigured Web3 instance (a HTTPProvider for rpc_url otherwise)
            logger: Optional logger instance

        Raises:
            ValueError: If neither priv_key nor signer is provided
        """
        if not priv_key and not signer:
            raise ValueError("Either priv_key or signer must be provided")

        self.rpc_url = rpc_url
        self.entry_point_address = to_checksum_address(entry_point_address)
        self.gas_limit = gas_limit
        self.receipt_timeout = receipt_timeout
        self.poll_interval = poll_interval
        self.logger = logger or logging.getLogger(__name__)

        self.w3 = w3 or Web3(Web3.HTTPProvider(rpc_url))

        self.account: Optional[BaseAccount] = None
        self.signer = signer
        if priv_key:
            self.account = Account.from_key(priv_key)

    @property
    def address(self) -> str:
        """Operator address: transaction sender and batch beneficiary"""
        if self.account:
            return self.account.address
        return self.signer.address

    def send(self, calldata: bytes) -> str:
        """
        Sign and broadcast the handleOps transaction.

        Args:
            calldata: Encoded handleOps call

        Returns:
            Transaction hash as a 0x-prefixed hex string

        Raises:
            SubmissionError: If building, signing or broadcasting fails
        """
        try:
            tx = {
                "to": self.entry_point_address,
                "data": "0x" + calldata.hex(),
                "value": 0,
                "gas": self.gas_limit,
                "gasPrice": self.w3.eth.gas_price,
                "nonce": self.w3.eth.get_transaction_count(self.address),
                "chainId": self.w3.eth.chain_id,
            }
            if self.account:
                signed = self.account.sign_transaction(tx)
            else:
                signed = self.signer.sign_transaction(tx)
            tx_hash = _hex(self.w3.eth.send_raw_transaction(_raw_transaction(signed)))
        except Exception as e:
            raise self._submission_error(e, "Failed to send batch transaction")

        self.logger.info(f"Batch transaction sent: {tx_hash}")
        return tx_hash

    def wait(self, tx_hash: str) -> BundleReceipt:
        """
        Block until the transaction is mined and return its receipt.

        Args:
            tx_hash: Hash returned by ``send``

        Returns:
            BundleReceipt with the ordered event logs

        Raises:
            SubmissionError: On timeout, transport failure, or a reverted transaction
        """
        try:
            web3_receipt = self.w3.eth.wait_for_transaction_receipt(
                tx_hash,
                timeout=self.receipt_timeout,
                poll_latency=self.poll_interval,
            )
        except TimeExhausted as e:
            raise SubmissionError(
                f"Timed out after {self.receipt_timeout}s waiting for receipt of {tx_hash}",
                tx_hash=tx_hash,
            ) from e
        except Exception as e:
            raise self._submission_error(e, f"Failed to fetch receipt for {tx_hash}", tx_hash)

        receipt = BundleReceipt.from_web3(web3_receipt)
        if receipt.status != 1:
            raise SubmissionError(
                f"Batch transaction {tx_hash} reverted in block {receipt.block_number}",
                tx_hash=tx_hash,
            )

        self.logger.info(f"Batch confirmed in block {receipt.block_number}, gas used: {receipt.gas_used}")
        return receipt

    def _submission_error(
        self,
        error: Exception,
        summary: str,
        tx_hash: Optional[str] = None,
    ) -> SubmissionError:
        """Wrap a transport exception, tagging decodable reverts as RevertError"""
        if isinstance(error, SubmissionError):
            return error

        payload = extract_error_payload(error)
        kind = "Web3 error" if isinstance(error, Web3Exception) else "error"
        self.logger.debug(f"{summary} ({kind}): {error}")
        message = f"{summary}: {error}"

        if isinstance(payload, str) and payload.lower().startswith(ERROR_STRING_SELECTOR):
            try:
                reason = decode_revert_reason(payload)
            except ValueError:
                return SubmissionError(message, payload=payload, tx_hash=tx_hash)
            return RevertError(message, reason=reason, payload=payload, tx_hash=tx_hash)

        return SubmissionError(message, payload=payload, tx_hash=tx_hash)
