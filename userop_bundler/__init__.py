"""
userop-bundler - batches user operations into EntryPoint handleOps transactions.
"""
from .classifier import ClassifiedFailure, ErrorClassifier, FailureKind
from .config import BundlerConfig, load_deployment
from .correlator import CorrelationReport, CorrelationStrategy, OutcomeCorrelator
from .engine import BundlerEngine, CycleReport, CycleState
from .exceptions import (
    BatchAssemblyError, BundlerError, ConfigurationError, IngressError,
    RevertError, SubmissionError,
)
from .failure_log import FailureLog
from .models import (
    Batch, BundleReceipt, MetaTransactionOutcome, OperationOutcome, OutcomeStatus,
    Submission, UserOperation,
)
from .scheduler import BatchScheduler
from .submitter import Submitter
from .version import __version__

__all__ = [
    "Batch",
    "BatchAssemblyError",
    "BatchScheduler",
    "BundleReceipt",
    "BundlerConfig",
    "BundlerEngine",
    "BundlerError",
    "ClassifiedFailure",
    "ConfigurationError",
    "CorrelationReport",
    "CorrelationStrategy",
    "CycleReport",
    "CycleState",
    "ErrorClassifier",
    "FailureKind",
    "FailureLog",
    "IngressError",
    "MetaTransactionOutcome",
    "OperationOutcome",
    "OutcomeCorrelator",
    "OutcomeStatus",
    "RevertError",
    "Submission",
    "SubmissionError",
    "Submitter",
    "UserOperation",
    "load_deployment",
    "__version__",
]
