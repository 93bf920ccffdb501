"""
Sentry Error Tracking
Optional error reporting for backend failures
"""

import logging
from typing import Optional

logger = logging.getLogger(__name__)


def init_sentry(dsn: Optional[str], environment: str) -> bool:
    """
    Initialize Sentry SDK with FastAPI integration.

    If no DSN is configured, logs warning and returns (disabled).
    This allows graceful degradation in development environments.

    Request bodies are never sent: they carry client ciphertext.

    Returns:
        True if Sentry was initialized
    """
    if dsn is None:
        logger.warning("Sentry DSN not configured - error tracking disabled")
        return False

    try:
        import sentry_sdk
        from sentry_sdk.integrations.fastapi import FastApiIntegration

        sentry_sdk.init(
            dsn=dsn,
            environment=environment,
            traces_sample_rate=0.1,  # 10% of requests traced
            send_default_pii=False,
            max_request_body_size="never",
            integrations=[
                FastApiIntegration(),
            ],
        )

        logger.info(
            "Sentry initialized",
            extra={
                "sentry_environment": environment,
                "traces_sample_rate": 0.1,
            }
        )
        return True
    except Exception as e:
        logger.error(f"Failed to initialize Sentry: {e}")
        return False


def capture_backend_error(error: BaseException, operation: str, correlation_id: Optional[str] = None) -> None:
    """
    Report a backend failure with the lifecycle operation as context.

    Args:
        error: The exception raised by the store
        operation: Lifecycle operation that failed (e.g. "request_new_code")
        correlation_id: Request correlation ID for cross-referencing logs
    """
    try:
        import sentry_sdk

        with sentry_sdk.new_scope() as scope:
            scope.set_tag("operation", operation)
            if correlation_id:
                scope.set_tag("correlation_id", correlation_id)
            sentry_sdk.capture_exception(error)
    except ImportError:
        # Sentry not installed or disabled
        pass
