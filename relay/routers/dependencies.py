"""
Shared router dependencies
"""

from fastapi import HTTPException, Request

from relay.services.lifecycle import LifecycleEngine


def get_engine(request: Request) -> LifecycleEngine:
    """Lifecycle engine built by create_app()."""
    return request.app.state.engine


async def read_capped_body(request: Request) -> str:
    """
    Read the request body, refusing anything over the configured cap.

    Raises:
        400: body larger than max_body_bytes or not ASCII text
    """
    limit = request.app.state.max_body_bytes
    chunks = []
    size = 0
    async for chunk in request.stream():
        size += len(chunk)
        if size > limit:
            raise HTTPException(status_code=400, detail="Invalid payload")
        chunks.append(chunk)

    try:
        return b"".join(chunks).decode("ascii")
    except UnicodeDecodeError:
        raise HTTPException(status_code=400, detail="Invalid payload")
