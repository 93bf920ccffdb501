"""
Secret Message Router
PUT attaches ciphertext to a reserved code, GET burns it
"""

import structlog
from fastapi import APIRouter, Depends, HTTPException, Response
from fastapi.responses import PlainTextResponse

from relay.middleware.correlation_id import get_correlation_id
from relay.routers.dependencies import get_engine, read_capped_body
from relay.services.lifecycle import InvalidPayload, LifecycleEngine, validate_payload
from relay.services.monitoring.error_tracking import capture_backend_error
from relay.services.storage.base import AttachOutcome, StoreError

logger = structlog.get_logger()

router = APIRouter(prefix="/message", tags=["messages"])

# Malformed input and unknown/expired codes get the identical 400 response.
INVALID_PAYLOAD_DETAIL = "Invalid payload"


@router.put("/{code}", status_code=204)
def put_message(
    code: str,
    body: str = Depends(read_capped_body),
    engine: LifecycleEngine = Depends(get_engine),
):
    """
    Attach a ciphertext to a reserved code

    Body: base64 text, decoded = 12-byte nonce + ciphertext.

    Returns:
        204 on success

    Raises:
        400: malformed payload, or code missing/expired
        409: a secret is already attached
        500: backend failure
    """
    try:
        blob = validate_payload(body)
    except InvalidPayload as e:
        logger.warning("invalid_payload", endpoint="message_put", error=str(e))
        raise HTTPException(status_code=400, detail=INVALID_PAYLOAD_DETAIL)

    try:
        outcome = engine.attach_secret(code, blob)
    except StoreError as e:
        logger.error("attach_cipher_error", endpoint="message_put", error=str(e))
        capture_backend_error(e, "attach_secret", get_correlation_id())
        raise HTTPException(status_code=500, detail="Internal error")

    if outcome is AttachOutcome.CONFLICT:
        raise HTTPException(status_code=409, detail="Conflict")
    if outcome is AttachOutcome.NOT_FOUND:
        raise HTTPException(status_code=400, detail=INVALID_PAYLOAD_DETAIL)

    return Response(status_code=204)


@router.get("/{code}")
def get_message(code: str, engine: LifecycleEngine = Depends(get_engine)):
    """
    Retrieve a secret exactly once

    Returns:
        200 text/plain with the stored ciphertext; the secret is deleted

    Raises:
        404: never existed, already read, or expired
        500: backend failure
    """
    try:
        blob = engine.retrieve_secret(code)
    except StoreError as e:
        logger.error("get_delete_error", endpoint="message_get", error=str(e))
        capture_backend_error(e, "retrieve_secret", get_correlation_id())
        raise HTTPException(status_code=500, detail="Internal error")

    if blob is None:
        raise HTTPException(status_code=404, detail="Not found")

    return PlainTextResponse(blob)
