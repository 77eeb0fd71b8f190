"""
Configuration for the bundler.

Values come from the deployment file (``deploy.json``), then environment
variables, then explicit overrides such as CLI flags, later sources winning.
"""
import json
import logging
import os
from pathlib import Path
from typing import Any, Dict, Mapping, Optional, Union

from eth_utils import is_address
from pydantic import BaseModel, ValidationError, field_validator

from .correlator import CorrelationStrategy
from .exceptions import ConfigurationError
from .submitter import DEFAULT_GAS_LIMIT

logger = logging.getLogger(__name__)

ENV_VARS = {
    "BUNDLER_RPC_URL": "rpc_url",
    "BUNDLER_PRIVATE_KEY": "private_key",
    "BUNDLER_HOST": "host",
    "BUNDLER_PORT": "port",
    "BUNDLER_INTERVAL": "bundle_interval",
    "BUNDLER_GAS_LIMIT": "gas_limit",
    "BUNDLER_RECEIPT_TIMEOUT": "receipt_timeout",
    "BUNDLER_FAILURE_LOG": "failure_log_path",
    "BUNDLER_CORRELATION": "correlation",
}


class BundlerConfig(BaseModel):
    """Runtime settings for one bundler process"""
    entry_point_address: str
    counter_address: Optional[str] = None
    rpc_url: str = "http://localhost:8545"
    private_key: Optional[str] = None
    host: str = "127.0.0.1"
    port: int = 3000
    bundle_interval: float = 3.0
    gas_limit: int = DEFAULT_GAS_LIMIT
    receipt_timeout: float = 120
    poll_interval: float = 0.1
    failure_log_path: str = "bundler-failures.log"
    correlation: CorrelationStrategy = CorrelationStrategy.SENDER

    @field_validator("entry_point_address", "counter_address")
    @classmethod
    def _check_address(cls, value: Optional[str]) -> Optional[str]:
        if value is not None and not is_address(value):
            raise ValueError(f"invalid address: {value!r}")
        return value

    @field_validator("bundle_interval", "receipt_timeout", "poll_interval")
    @classmethod
    def _check_positive(cls, value: float) -> float:
        if value <= 0:
            raise ValueError("must be > 0")
        return value

    @classmethod
    def load(
        cls,
        deploy_path: Optional[Union[str, Path]] = None,
        env: Optional[Mapping[str, str]] = None,
        **overrides: Any,
    ) -> "BundlerConfig":
        """
        Build a config from the deployment file, environment and overrides.

        Args:
            deploy_path: Path to deploy.json (skipped if None)
            env: Environment mapping (defaults to os.environ)
            **overrides: Explicit values; None values are ignored

        Returns:
            Validated BundlerConfig

        Raises:
            ConfigurationError: If a source cannot be read or a value is invalid
        """
        values: Dict[str, Any] = {}
        if deploy_path is not None:
            values.update(load_deployment(deploy_path))

        env = os.environ if env is None else env
        for var, name in ENV_VARS.items():
            if env.get(var):
                values[name] = env[var]

        values.update({k: v for k, v in overrides.items() if v is not None})

        try:
            return cls.model_validate(values)
        except ValidationError as e:
            raise ConfigurationError(f"Invalid bundler configuration: {e}") from e


def load_deployment(path: Union[str, Path]) -> Dict[str, str]:
    """
    Read contract addresses from a deployment file.

    The file is a JSON object with ``entryPoint`` and optionally ``counter``.

    Returns:
        Dict with ``entry_point_address`` and, if present, ``counter_address``

    Raises:
        ConfigurationError: If the file is missing, not JSON, or has no entryPoint
    """
    path = Path(path)
    try:
        with open(path, "r", encoding="utf-8") as f:
            data = json.load(f)
    except FileNotFoundError as e:
        raise ConfigurationError(f"Deployment file not found: {path}") from e
    except json.JSONDecodeError as e:
        raise ConfigurationError(f"Deployment file {path} is not valid JSON: {e}") from e

    if not isinstance(data, dict) or not data.get("entryPoint"):
        raise ConfigurationError(f"Deployment file {path} has no entryPoint address")

    result = {"entry_point_address": data["entryPoint"]}
    if data.get("counter"):
        result["counter_address"] = data["counter"]
    logger.debug(f"Loaded deployment from {path}: {result}")
    return result
