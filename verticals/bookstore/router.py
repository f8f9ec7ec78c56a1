"""Bookstore API router: checkout discount calculation.

Demonstrates the standard vertical router pattern:
- Request/response validation with pydantic schemas
- Service injection via FastAPI Depends (overridable in tests)
- Domain errors and malformed requests mapped to JSON error bodies
"""

import logging
import threading

from fastapi import APIRouter, Depends, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from patterns.errors import DiscountError
from verticals.bookstore.models.schemas import (
    DiscountRequest,
    DiscountResponse,
    ErrorResponse,
)
from verticals.bookstore.service import DiscountService

logger = logging.getLogger(__name__)

router = APIRouter()

_service_lock = threading.Lock()


def get_discount_service(request: Request) -> DiscountService:
    """FastAPI dependency returning the app-wide DiscountService.

    The service is normally created in the app lifespan; it is built lazily
    here, at most once per app, when the router is mounted on an app without one.
    """
    state = request.app.state
    service = getattr(state, "discount_service", None)
    if service is None:
        with _service_lock:
            service = getattr(state, "discount_service", None)
            if service is None:
                service = DiscountService()
                state.discount_service = service
    return service


async def request_validation_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    """Malformed request bodies get the same 400 ``{"error": ...}`` shape as domain errors."""
    problems = "; ".join(
        f"{'.'.join(str(p) for p in err['loc'] if p != 'body') or 'body'}: {err['msg']}"
        for err in exc.errors()
    )
    return JSONResponse(status_code=400, content=ErrorResponse(error=problems).model_dump())


# ============================================================================
# Discount Endpoint
# ============================================================================

@router.post(
    "/discount/calculate",
    response_model=DiscountResponse,
    responses={400: {"model": ErrorResponse}, 500: {"model": ErrorResponse}},
)
def calculate_discount(
    request: DiscountRequest,
    service: DiscountService = Depends(get_discount_service),
):
    """Calculate the discount for a cart."""
    try:
        discount = service.calculate(request.customer_type, request.books_as_domain())
    except DiscountError as exc:
        status = 400 if exc.client_error else 500
        if status == 500:
            logger.error("discount calculation failed: %s", exc)
        return JSONResponse(
            status_code=status,
            content=ErrorResponse(error=exc.message).model_dump(),
        )

    return DiscountResponse.from_domain(discount)
