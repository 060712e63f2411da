"""Correlation ID middleware for request tracing.

Every response carries X-Request-ID; the same id is injected into each
structlog entry by eyedoo.core.logging.add_correlation_id.
"""

import uuid

from asgi_correlation_id import CorrelationIdMiddleware
from asgi_correlation_id.context import correlation_id
from fastapi import FastAPI


def setup_correlation_middleware(app: FastAPI) -> None:
    """Add correlation ID middleware to the FastAPI app.

    If the client sends X-Request-ID it is echoed back, otherwise a new UUID
    is generated.
    """
    app.add_middleware(
        CorrelationIdMiddleware,
        header_name="X-Request-ID",
        generator=lambda: str(uuid.uuid4()),
        validator=None,  # Accept any format
        transformer=lambda a: a,
    )


def get_correlation_id() -> str | None:
    """Get the current request's correlation ID, or None outside a request."""
    return correlation_id.get(None)


__all__ = ["setup_correlation_middleware", "get_correlation_id"]
