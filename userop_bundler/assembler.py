"""
Batch assembly: ordered operations to encoded handleOps calldata.
"""
import logging
from typing import Optional, Sequence

from eth_abi.exceptions import EncodingError

from .codec import encode_handle_ops, operation_tuple
from .exceptions import BatchAssemblyError
from .models import Batch, UserOperation


class BatchAssembler:
    """
    Builds the batch snapshot and its ``handleOps`` calldata.

    Assembly is a pure function of the ordered operations and the
    beneficiary; nothing is sent from here.
    """

    def __init__(self, logger: Optional[logging.Logger] = None):
        self.logger = logger or logging.getLogger(__name__)

    def assemble(self, operations: Sequence[UserOperation], beneficiary: str) -> Batch:
        """
        Freeze ordered operations into a batch.

        Args:
            operations: Operations already in submission order
            beneficiary: Address credited with any residual value

        Returns:
            Immutable Batch
        """
        return Batch(operations=tuple(operations), beneficiary=beneficiary)

    def encode(self, batch: Batch) -> bytes:
        """
        Encode the batch as a ``handleOps(ops, beneficiary)`` call.

        Args:
            batch: Batch to encode

        Returns:
            Calldata bytes, selector included

        Raises:
            BatchAssemblyError: If any field cannot be ABI-encoded
        """
        try:
            tuples = [operation_tuple(op) for op in batch.operations]
            calldata = encode_handle_ops(tuples, batch.beneficiary)
        except (EncodingError, ValueError, TypeError) as e:
            raise BatchAssemblyError(f"Failed to encode handleOps batch: {e}") from e

        self.logger.debug(f"Encoded handleOps with {len(batch)} operations ({len(calldata)} bytes)")
        return calldata
