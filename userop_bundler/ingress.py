"""
Ingress endpoint accepting ``eth_sendUserOperation`` requests.
"""
import json
import logging
from typing import Any, Optional

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from pydantic import ValidationError

from .config import BundlerConfig
from .engine import BundlerEngine
from .exceptions import IngressError
from .models import UserOperation
from .version import __version__

logger = logging.getLogger(__name__)

SUPPORTED_METHOD = "eth_sendUserOperation"


def accept_user_operation(body: Any, entry_point_address: str) -> UserOperation:
    """
    Validate an ingress request and return the operation it carries.

    Args:
        body: Decoded JSON body, ``{"method": ..., "params": [userOp, entryPoint]}``
        entry_point_address: Configured EntryPoint address

    Returns:
        The parsed UserOperation

    Raises:
        IngressError: On an unsupported method, EntryPoint mismatch or malformed operation
    """
    if not isinstance(body, dict) or body.get("method") != SUPPORTED_METHOD:
        raise IngressError(f"Only {SUPPORTED_METHOD} is supported")

    params = body.get("params")
    if not isinstance(params, list) or len(params) < 2:
        raise IngressError("params must be [userOperation, entryPointAddress]")

    raw_op, requested_entry_point = params[0], params[1]
    if not isinstance(requested_entry_point, str) or (
        requested_entry_point.lower() != entry_point_address.lower()
    ):
        logger.error(
            f"EntryPoint mismatch! received: {requested_entry_point} expected: {entry_point_address}"
        )
        raise IngressError("EntryPoint address mismatch")

    try:
        return UserOperation.model_validate(raw_op)
    except ValidationError as e:
        raise IngressError(f"Invalid UserOperation: {e.error_count()} invalid field(s)") from e


def create_app(engine: BundlerEngine, config: BundlerConfig, title: Optional[str] = None) -> FastAPI:
    """
    Build the ingress application bound to an engine.

    Args:
        engine: Engine whose queue receives accepted operations
        config: Bundler configuration (supplies the EntryPoint address)
        title: Optional API title

    Returns:
        FastAPI application serving ``POST /``
    """
    app = FastAPI(title=title or "userop-bundler", version=__version__)

    @app.post("/")
    async def send_user_operation(request: Request):
        try:
            body = await request.json()
        except (json.JSONDecodeError, UnicodeDecodeError):
            return JSONResponse(status_code=400, content={"error": "Request body must be JSON"})

        try:
            op = accept_user_operation(body, config.entry_point_address)
        except IngressError as e:
            return JSONResponse(status_code=400, content={"error": str(e)})

        logger.info("UserOperation received")
        engine.enqueue(op)
        return {"result": "UserOperation queued"}

    return app
