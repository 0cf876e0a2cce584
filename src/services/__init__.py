from .errors import StorageNotConfiguredError, UnsupportedOperationError
from .planner import ItemCreation, ItineraryPlanner, TripOverview, TripPlan, TripSummary

__all__ = [
    "ItemCreation",
    "ItineraryPlanner",
    "StorageNotConfiguredError",
    "TripOverview",
    "TripPlan",
    "TripSummary",
    "UnsupportedOperationError",
]
