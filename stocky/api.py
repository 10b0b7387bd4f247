import logging
from contextlib import asynccontextmanager
from datetime import datetime
from typing import Optional

from fastapi import APIRouter, Depends, FastAPI, Query, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from .config import Settings, get_settings
from .container import Services, build_services
from .errors import ImbalanceError, StockyError
from .models import (
    CreateRewardRequest,
    HistoryPoint,
    PortfolioItem,
    PricePoint,
    PriceQuote,
    RecordPriceRequest,
    RewardEvent,
    RewardResponse,
    UserStats,
)
from .observability import setup_logging

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api")


def get_services(request: Request) -> Services:
    return request.app.state.services


@router.post("/reward", response_model=RewardResponse, status_code=status.HTTP_201_CREATED, tags=["Rewards"])
def create_reward(request: CreateRewardRequest, services: Services = Depends(get_services)) -> RewardResponse:
    return services.rewards.issue_reward(request, timeout=services.issue_timeout_seconds)


@router.get("/rewards/{reference_id}", response_model=RewardEvent, tags=["Rewards"])
def get_reward(reference_id: str, services: Services = Depends(get_services)) -> RewardEvent:
    return services.rewards.get_reward(reference_id)


@router.get("/today-stocks/{user_id}", response_model=list[RewardEvent], tags=["Users"])
def get_today_stocks(user_id: int, services: Services = Depends(get_services)) -> list[RewardEvent]:
    return services.valuation.today_rewards(user_id)


@router.get("/historical-inr/{user_id}", response_model=list[HistoryPoint], tags=["Users"])
def get_historical_inr(
    user_id: int,
    days: Optional[int] = Query(None, ge=0, le=366),
    services: Services = Depends(get_services),
) -> list[HistoryPoint]:
    window = services.history_window_days if days is None else days
    return services.valuation.historical_portfolio_value(user_id, window)


@router.get("/stats/{user_id}", response_model=UserStats, tags=["Users"])
def get_stats(user_id: int, services: Services = Depends(get_services)) -> UserStats:
    return services.valuation.user_stats(user_id)


@router.get("/portfolio/{user_id}", response_model=list[PortfolioItem], tags=["Users"])
def get_portfolio(user_id: int, services: Services = Depends(get_services)) -> list[PortfolioItem]:
    return services.valuation.portfolio(user_id)


@router.post("/prices", response_model=PricePoint, status_code=status.HTTP_201_CREATED, tags=["Prices"])
def record_price(request: RecordPriceRequest, services: Services = Depends(get_services)) -> PricePoint:
    return services.prices.record_price(request.stock_symbol, request.price, request.timestamp)


@router.get("/prices/{symbol}", response_model=PriceQuote, tags=["Prices"])
def get_price(symbol: str, as_of: Optional[datetime] = None, services: Services = Depends(get_services)) -> PriceQuote:
    symbol = symbol.upper()
    price = services.prices.latest_price_as_of(symbol, as_of)
    return PriceQuote(stock_symbol=symbol, price=price, as_of=as_of)


def register_error_handlers(app: FastAPI) -> None:
    @app.exception_handler(StockyError)
    async def stocky_error_handler(request: Request, exc: StockyError):
        if isinstance(exc, ImbalanceError):
            level = logging.CRITICAL
        elif exc.http_status >= 500:
            level = logging.ERROR
        else:
            level = logging.INFO
        logger.log(level, f"{exc.code}: {exc.message}", extra={"error_code": exc.code, "path": request.url.path})
        return JSONResponse(status_code=exc.http_status, content=exc.to_response())

    @app.exception_handler(RequestValidationError)
    async def validation_error_handler(request: Request, exc: RequestValidationError):
        logger.warning(f"Validation error on {request.url.path}: {exc.errors()}")
        return JSONResponse(
            status_code=status.HTTP_400_BAD_REQUEST,
            content={
                "error": {
                    "code": "VALIDATION_ERROR",
                    "message": "Invalid request data",
                    "details": [
                        {"field": ".".join(str(loc) for loc in e["loc"]), "message": e["msg"]}
                        for e in exc.errors()
                    ],
                }
            },
        )

    @app.exception_handler(Exception)
    async def generic_error_handler(request: Request, exc: Exception):
        logger.error(f"Unhandled exception on {request.url.path}: {exc}", exc_info=True)
        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content={"error": {"code": "INTERNAL_ERROR", "message": "An unexpected error occurred"}},
        )


def create_app(services: Optional[Services] = None, settings: Optional[Settings] = None) -> FastAPI:
    settings = settings or get_settings()

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        if app.state.services is None:
            setup_logging(settings.log_level, settings.log_format)
            app.state.services = build_services(settings)
        feed = app.state.services.feed
        if feed is not None:
            feed.start()
        logger.info("Stocky API started")
        yield
        if feed is not None:
            feed.stop()
        logger.info("Stocky API shutting down")

    app = FastAPI(
        title="Stocky Rewards API",
        description="Stock reward ledger with double-entry postings and portfolio valuation",
        version="1.0.0",
        lifespan=lifespan,
    )
    app.state.services = services

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.get("/health", tags=["System"])
    def health_check(request: Request):
        services = request.app.state.services
        database_ok = services is not None and services.db.health_check()
        return {
            "status": "healthy" if database_ok else "degraded",
            "service": "stocky",
            "database": database_ok,
        }

    app.include_router(router)
    register_error_handlers(app)
    return app


app = create_app()


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=8000)
