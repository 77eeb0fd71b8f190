#!/usr/bin/env python3
"""
Command line entry point: ``userop-bundler``.

Loads the deployment addresses, starts the bundling scheduler and serves the
ingress endpoint until interrupted.
"""
import argparse
import logging
import sys
from typing import List, Optional

import uvicorn

from .classifier import ErrorClassifier
from .config import BundlerConfig
from .correlator import CorrelationStrategy, OutcomeCorrelator
from .engine import BundlerEngine
from .exceptions import ConfigurationError
from .failure_log import FailureLog
from .ingress import create_app
from .scheduler import BatchScheduler
from .submitter import Submitter
from .version import __version__

logger = logging.getLogger(__name__)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="userop-bundler",
        description="Bundle user operations into EntryPoint handleOps transactions",
    )
    parser.add_argument("--deploy", default="deploy.json", help="Deployment file with entryPoint/counter addresses")
    parser.add_argument("--rpc-url", help="Ethereum RPC endpoint (default http://localhost:8545)")
    parser.add_argument("--private-key", help="Operator private key (or BUNDLER_PRIVATE_KEY)")
    parser.add_argument("--host", help="Ingress bind address")
    parser.add_argument("--port", type=int, help="Ingress port (default 3000)")
    parser.add_argument("--interval", type=float, dest="bundle_interval", help="Seconds between bundling cycles")
    parser.add_argument("--failure-log", dest="failure_log_path", help="Path of the failure log")
    parser.add_argument(
        "--correlation",
        choices=[strategy.value for strategy in CorrelationStrategy],
        help="How UserOpHandled events are matched to operations",
    )
    parser.add_argument("--log-level", default="INFO", help="Logging level")
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    return parser


def build_engine(config: BundlerConfig) -> BundlerEngine:
    """
    Wire a BundlerEngine from configuration.

    Raises:
        ConfigurationError: If no operator private key is configured
    """
    if not config.private_key:
        raise ConfigurationError("An operator private key is required (--private-key or BUNDLER_PRIVATE_KEY)")

    submitter = Submitter(
        rpc_url=config.rpc_url,
        entry_point_address=config.entry_point_address,
        priv_key=config.private_key,
        gas_limit=config.gas_limit,
        receipt_timeout=config.receipt_timeout,
        poll_interval=config.poll_interval,
    )
    return BundlerEngine(
        submitter=submitter,
        classifier=ErrorClassifier(FailureLog(config.failure_log_path)),
        correlator=OutcomeCorrelator(strategy=config.correlation),
        counter_address=config.counter_address,
    )


def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    logging.basicConfig(
        level=getattr(logging, args.log_level.upper(), logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    try:
        config = BundlerConfig.load(
            args.deploy,
            rpc_url=args.rpc_url,
            private_key=args.private_key,
            host=args.host,
            port=args.port,
            bundle_interval=args.bundle_interval,
            failure_log_path=args.failure_log_path,
            correlation=args.correlation,
        )
        engine = build_engine(config)
    except ConfigurationError as e:
        logger.error(str(e))
        return 2

    logger.info(f"Bundler starting with EntryPoint {config.entry_point_address}")
    scheduler = BatchScheduler(engine, interval=config.bundle_interval).start()
    try:
        uvicorn.run(create_app(engine, config), host=config.host, port=config.port)
    finally:
        scheduler.cancel()
    return 0


if __name__ == "__main__":
    sys.exit(main())
