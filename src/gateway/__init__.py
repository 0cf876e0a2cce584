from .errors import NotFoundError, PersistenceError, StaleRevisionError
from .protocols import AttachmentUploader, PersistenceGateway, RouteLookup, RouteResult
from .sqlmodel_gateway import SQLModelGateway

__all__ = [
    "AttachmentUploader",
    "NotFoundError",
    "PersistenceError",
    "PersistenceGateway",
    "RouteLookup",
    "RouteResult",
    "SQLModelGateway",
    "StaleRevisionError",
]
