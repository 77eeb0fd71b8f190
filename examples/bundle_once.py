#!/usr/bin/env python3
"""
Queue a single UserOperation and run one bundling cycle against a local node.
"""
import os
import logging

from userop_bundler import (
    BundlerConfig, BundlerEngine, ErrorClassifier, FailureLog, Submitter, UserOperation,
)


def main():
    """
    Demonstrate one bundling cycle without the HTTP ingress.

    This example shows how to:
    1. Load the deployment addresses
    2. Queue an operation with an outcome callback
    3. Run a cycle and inspect the report
    """
    logging.basicConfig(level=logging.INFO)

    PRIVATE_KEY = os.environ.get("BUNDLER_PRIVATE_KEY")
    SENDER = os.environ.get("WALLET_ADDRESS")
    if not PRIVATE_KEY or not SENDER:
        print("ERROR: BUNDLER_PRIVATE_KEY and WALLET_ADDRESS environment variables are required")
        return

    config = BundlerConfig.load(os.environ.get("DEPLOY_FILE", "deploy.json"), private_key=PRIVATE_KEY)
    engine = BundlerEngine(
        submitter=Submitter(
            rpc_url=config.rpc_url,
            entry_point_address=config.entry_point_address,
            priv_key=config.private_key,
        ),
        classifier=ErrorClassifier(FailureLog(config.failure_log_path)),
        counter_address=config.counter_address,
    )

    op = UserOperation(
        sender=SENDER,
        nonce=0,
        initCode="0x",
        callData="0x",
        callGasLimit=200000,
        verificationGasLimit=100000,
        preVerificationGas=21000,
        maxFeePerGas=10**9,
        maxPriorityFeePerGas=10**9,
        paymasterAndData="0x",
        signature="0x",
    )
    engine.enqueue(op, on_outcome=lambda outcome: print(f"Outcome: {outcome.status.value} {outcome.reason or ''}"))

    report = engine.tick()
    if report.ok:
        print(f"Batch confirmed in tx {report.submission.tx_hash}")
    else:
        print(f"Batch failed: {report.failure.message}")


if __name__ == "__main__":
    main()
