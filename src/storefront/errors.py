"""Error taxonomy for the storefront and its HTTP mapping.

``ValidationError`` and ``ObjectNotFoundError`` come from Protean and are
mapped to 400/404 by ``protean.integrations.fastapi``. The errors below cover
the remaining cases of the checkout pipeline.
"""

import structlog
from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from protean.exceptions import ObjectNotFoundError, ValidationError

logger = structlog.get_logger(__name__)


class StorefrontError(Exception):
    """Base class for errors raised by storefront handlers."""

    status_code = 400

    def __init__(self, messages: dict | str):
        if isinstance(messages, str):
            messages = {"_entity": [messages]}
        self.messages = messages
        super().__init__(messages)


class ConflictError(StorefrontError):
    """Concurrent or repeated checkout, stale summary, duplicate refund."""

    status_code = 409


class ForbiddenError(StorefrontError):
    """The caller does not own the resource or lacks the admin role."""

    status_code = 403


class UnauthorizedError(StorefrontError):
    """A user-scoped operation was called without a user."""

    status_code = 401


class UpstreamDeliveryFailure(StorefrontError):
    """The email channel could not deliver a message.

    Never surfaces to HTTP callers: dispatch records it as a failed
    notification log row.
    """

    status_code = 502


class EmptyCartError(ValidationError):
    """The cart has no items to price or check out."""

    def __init__(self, cart_id=None):
        super().__init__({"cart": [f"Cart {cart_id} is empty" if cart_id else "Cart is empty"]})


class AddressNotFound(ObjectNotFoundError):
    """A saved address id does not resolve to an address owned by the caller."""


def register_error_handlers(app: FastAPI) -> None:
    """Map storefront errors to JSON responses."""

    @app.exception_handler(StorefrontError)
    async def storefront_error_handler(request: Request, exc: StorefrontError) -> JSONResponse:
        logger.info(
            "request_rejected",
            path=request.url.path,
            error=type(exc).__name__,
            status_code=exc.status_code,
        )
        return JSONResponse(status_code=exc.status_code, content={"error": exc.messages})
