"""
Code Reservation Router
POST /code reserves a fresh, empty code
"""

import structlog
from fastapi import APIRouter, Depends, HTTPException
from fastapi.responses import JSONResponse

from relay.middleware.correlation_id import get_correlation_id
from relay.routers.dependencies import get_engine
from relay.services.lifecycle import CodeGenerationExhausted, LifecycleEngine
from relay.services.monitoring.error_tracking import capture_backend_error
from relay.services.storage.base import StoreError

logger = structlog.get_logger()

router = APIRouter(tags=["codes"])


@router.post("/code", status_code=201)
def create_code(engine: LifecycleEngine = Depends(get_engine)):
    """
    Reserve a new access code

    The code lives for the placeholder TTL unless a secret is attached.

    Returns:
        201 {"code": "<code>"} with Location: /message/<code>

    Raises:
        500: backend failure or no free code found
    """
    try:
        code = engine.request_new_code()
    except (StoreError, CodeGenerationExhausted) as e:
        logger.error("reserve_code_error", endpoint="code", error=str(e))
        capture_backend_error(e, "request_new_code", get_correlation_id())
        raise HTTPException(status_code=500, detail="Internal error")

    return JSONResponse(
        status_code=201,
        content={"code": code},
        headers={"Location": f"/message/{code}"},
    )
