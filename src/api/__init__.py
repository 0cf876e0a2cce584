import logging

from fastapi import FastAPI, Request, status
from fastapi.responses import JSONResponse
from pydantic import ValidationError

from gateway import NotFoundError, PersistenceError, StaleRevisionError
from itinerary import DaySequenceError, UnknownItemError
from services import StorageNotConfiguredError, UnsupportedOperationError

logger = logging.getLogger(__name__)


def _error(status_code: int, detail: str) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"detail": detail})


def register_exception_handlers(app: FastAPI) -> None:
    """Map planner errors onto HTTP responses."""

    @app.exception_handler(NotFoundError)
    async def not_found(request: Request, exc: NotFoundError) -> JSONResponse:
        return _error(status.HTTP_404_NOT_FOUND, str(exc))

    @app.exception_handler(UnknownItemError)
    async def unknown_item(request: Request, exc: UnknownItemError) -> JSONResponse:
        return _error(status.HTTP_404_NOT_FOUND, str(exc))

    @app.exception_handler(StaleRevisionError)
    async def stale(request: Request, exc: StaleRevisionError) -> JSONResponse:
        return _error(status.HTTP_409_CONFLICT, str(exc))

    @app.exception_handler(PersistenceError)
    async def persistence(request: Request, exc: PersistenceError) -> JSONResponse:
        logger.error(f"Persistence failure on {request.url.path}: {exc}")
        return _error(status.HTTP_503_SERVICE_UNAVAILABLE, "Storage is unavailable, please retry")

    @app.exception_handler(UnsupportedOperationError)
    async def unsupported(request: Request, exc: UnsupportedOperationError) -> JSONResponse:
        return _error(status.HTTP_422_UNPROCESSABLE_ENTITY, str(exc))

    @app.exception_handler(ValidationError)
    async def invalid_details(request: Request, exc: ValidationError) -> JSONResponse:
        return _error(status.HTTP_422_UNPROCESSABLE_ENTITY, str(exc))

    @app.exception_handler(DaySequenceError)
    async def broken_days(request: Request, exc: DaySequenceError) -> JSONResponse:
        logger.error(f"Day sequence check failed on {request.url.path}: {exc}")
        return _error(status.HTTP_422_UNPROCESSABLE_ENTITY, str(exc))

    @app.exception_handler(StorageNotConfiguredError)
    async def no_storage(request: Request, exc: StorageNotConfiguredError) -> JSONResponse:
        return _error(status.HTTP_503_SERVICE_UNAVAILABLE, str(exc))
