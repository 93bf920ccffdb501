"""
Admission Middleware
Rejects requests with 429 before routing when the token bucket is empty.
OPTIONS requests not handled by CORS are answered 204 up front.
"""

import structlog
from starlette.responses import Response
from starlette.types import ASGIApp, Receive, Scope, Send

from relay.services.admission import AdmissionController

logger = structlog.get_logger(__name__)


class AdmissionMiddleware:
    """
    Pure ASGI middleware gating every HTTP request on the admission controller.

    The controller is consulted locally; the store is never touched for a
    rejected request.
    """

    def __init__(self, app: ASGIApp, controller: AdmissionController) -> None:
        self.app = app
        self.controller = controller

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        if scope["type"] == "http" and scope["method"] == "OPTIONS":
            # OPTIONS never reaches routing and costs no token.
            response = Response(status_code=204)
            await response(scope, receive, send)
            return

        if scope["type"] != "http" or self.controller.try_admit():
            await self.app(scope, receive, send)
            return

        logger.warning("request_rejected", reason="rate_limited", path=scope.get("path"))
        response = Response(status_code=429)
        await response(scope, receive, send)
