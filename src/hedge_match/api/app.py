"""FastAPI application for ticket matching and hedge price fixing."""

import logging
from functools import wraps
from typing import Callable, List, Optional

from fastapi import FastAPI, Query, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from ..errors import (
    CapacityError,
    ConcurrencyError,
    InputError,
    LiquidityError,
    MarginError,
    MatchingError,
    NotFoundError,
)
from ..models import PhysicalLevel, PhysicalSide
from .models import (
    AvailableQuantityResponse,
    ErrorResponse,
    ExposureResponse,
    FixingCreateRequest,
    FixingResponse,
    HasOpenHedgeResponse,
    HedgeResponse,
    OptimizeRequest,
    OrderResponse,
)
from .service import MatchingService

logger = logging.getLogger(__name__)

API_VERSION = "0.1.0"
HTTP_422_UNPROCESSABLE = 422

# Most specific first: UnpriceableTicketError is matched by InputError
ERROR_STATUS = [
    (InputError, status.HTTP_400_BAD_REQUEST),
    (NotFoundError, status.HTTP_404_NOT_FOUND),
    (ConcurrencyError, status.HTTP_409_CONFLICT),
    (LiquidityError, HTTP_422_UNPROCESSABLE),
    (MarginError, HTTP_422_UNPROCESSABLE),
    (CapacityError, HTTP_422_UNPROCESSABLE),
]

ERROR_RESPONSES = {
    400: {"model": ErrorResponse},
    404: {"model": ErrorResponse},
    409: {"model": ErrorResponse},
    422: {"model": ErrorResponse},
    500: {"model": ErrorResponse},
}


def error_response(status_code: int, reason: str, detail: str) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"reason": reason, "detail": detail})


def matching_error_response(error: MatchingError) -> JSONResponse:
    """Engine failures carry their retry hint and structured details."""
    return JSONResponse(status_code=status_for(error), content=error.to_dict())


def status_for(error: MatchingError) -> int:
    for error_type, code in ERROR_STATUS:
        if isinstance(error, error_type):
            return code
    return status.HTTP_500_INTERNAL_SERVER_ERROR


def handle_api_errors(operation_name: str) -> Callable:
    """
    Decorator to map engine failures to consistent error responses.

    Args:
        operation_name: Name of the operation for logging purposes

    Returns:
        Decorated function with standardized error handling
    """

    def decorator(func: Callable) -> Callable:
        @wraps(func)
        async def wrapper(*args, **kwargs):
            try:
                return await func(*args, **kwargs)
            except MatchingError as e:
                logger.warning(f"{operation_name} - {e.reason}: {e}")
                return matching_error_response(e)
            except ValueError as e:
                logger.warning(f"{operation_name} - Request validation error: {e}")
                return error_response(status.HTTP_400_BAD_REQUEST, "input_error", str(e))
            except FileNotFoundError as e:
                logger.error(f"{operation_name} - Configuration file not found: {e}")
                return error_response(
                    status.HTTP_500_INTERNAL_SERVER_ERROR,
                    "internal_error",
                    "Configuration file not found",
                )
            except Exception as e:
                # Log the error internally but don't expose details
                logger.error(f"{operation_name} - Internal error: {e}", exc_info=True)
                return error_response(
                    status.HTTP_500_INTERNAL_SERVER_ERROR,
                    "internal_error",
                    f"Internal server error during {operation_name.lower()}",
                )

        return wrapper

    return decorator


def create_app(service: Optional[MatchingService] = None) -> FastAPI:
    """Build the API around a matching service.

    Args:
        service: Service to route requests to; a lazily-initialized default if None
    """
    service = service or MatchingService()

    app = FastAPI(
        title="Hedge Match API",
        description="Physical ticket matching, hedge allocation and price fixing",
        version=API_VERSION,
        docs_url="/docs",  # Swagger UI
        redoc_url="/redoc",  # ReDoc UI
    )

    # Add CORS middleware for web clients
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],  # Allow all origins for development
        allow_credentials=True,
        allow_methods=["GET", "POST", "OPTIONS"],
        allow_headers=["*"],
    )

    @app.get("/", tags=["Health"])
    async def root():
        """Health check endpoint."""
        return {
            "status": "healthy",
            "service": "hedge-match-api",
            "version": API_VERSION,
        }

    @app.get("/health", tags=["Health"])
    async def health_check():
        """Detailed health check."""
        return {
            "status": "healthy",
            "components": {
                "ticket_matcher": "available",
                "allocation_engine": "available",
                "exposure_aggregator": "available",
            },
        }

    @app.post(
        "/orders/optimize",
        response_model=OrderResponse,
        responses=ERROR_RESPONSES,
        tags=["Orders"],
    )
    @handle_api_errors("Order optimization")
    async def optimize_order(request: OptimizeRequest):
        """
        Match approved buy and sell tickets into a new order.

        Sells are taken highest price first and buys lowest price first until
        the quantity is covered on both sides. With ``dryRun`` the proposal is
        returned without consuming any ticket.
        """
        return await service.optimize(request)

    @app.get(
        "/hedges/eligible",
        response_model=List[HedgeResponse],
        responses=ERROR_RESPONSES,
        tags=["Hedges"],
    )
    @handle_api_errors("Hedge lookup")
    async def eligible_hedges(
        commodity: str,
        side: PhysicalSide,
        level: Optional[PhysicalLevel] = None,
        refId: Optional[str] = None,
        showAll: bool = Query(default=False),
    ):
        """Open hedges of the opposite direction, optionally scoped to a physical reference."""
        return await service.eligible_hedges(commodity, side, level, refId, showAll)

    @app.post(
        "/fixings",
        response_model=FixingResponse,
        status_code=status.HTTP_201_CREATED,
        responses=ERROR_RESPONSES,
        tags=["Fixings"],
    )
    @handle_api_errors("Price fixing")
    async def create_fixing(request: FixingCreateRequest):
        """
        Fix a physical quantity against one or more hedge executions.

        The fixing, its hedge links and the hedges' new open quantities are
        written together or not at all.
        """
        return await service.create_fixing(request)

    @app.get(
        "/fixings",
        response_model=List[FixingResponse],
        responses=ERROR_RESPONSES,
        tags=["Fixings"],
    )
    @handle_api_errors("Fixing list")
    async def list_fixings(commodity: Optional[str] = None, level: Optional[PhysicalLevel] = None):
        """Non-deleted fixings, newest first."""
        return await service.list_fixings(commodity, level)

    @app.get(
        "/fixings/{fixing_id}",
        response_model=FixingResponse,
        responses=ERROR_RESPONSES,
        tags=["Fixings"],
    )
    @handle_api_errors("Fixing lookup")
    async def get_fixing(fixing_id: int):
        return await service.get_fixing(fixing_id)

    @app.get(
        "/orders/{order_id}/exposure",
        response_model=ExposureResponse,
        responses=ERROR_RESPONSES,
        tags=["Exposure"],
    )
    @handle_api_errors("Exposure")
    async def order_exposure(order_id: str):
        """Net long/short hedge position across an order and its shipments."""
        return await service.net_exposure(order_id)

    @app.get(
        "/references/{level}/{ref_id}/available",
        response_model=AvailableQuantityResponse,
        responses=ERROR_RESPONSES,
        tags=["Fixings"],
    )
    @handle_api_errors("Available quantity")
    async def available_quantity(level: PhysicalLevel, ref_id: str):
        """Physical quantity of a reference not yet covered by a fixing."""
        return await service.available_quantity(level, ref_id)

    @app.get(
        "/orders/{order_id}/has-open-hedge",
        response_model=HasOpenHedgeResponse,
        responses=ERROR_RESPONSES,
        tags=["Exposure"],
    )
    @handle_api_errors("Open hedge check")
    async def order_has_open_hedge(order_id: str):
        return await service.has_open_hedge(PhysicalLevel.ORDER, order_id)

    @app.get(
        "/shipments/{shipment_id}/has-open-hedge",
        response_model=HasOpenHedgeResponse,
        responses=ERROR_RESPONSES,
        tags=["Exposure"],
    )
    @handle_api_errors("Open hedge check")
    async def shipment_has_open_hedge(shipment_id: int):
        """Checks the shipment and its parent order."""
        return await service.has_open_hedge(PhysicalLevel.SHIPMENT, str(shipment_id))

    return app


app = create_app()
