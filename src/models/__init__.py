from .details import (
    AccommodationDetails,
    ItemCategory,
    ItemDetails,
    TransportDetails,
    TransportSubType,
    Traveler,
    dump_details,
    parse_details,
)
from .itinerary import ItemDraft, ItemPatch, ItineraryItem
from .trip import (
    Trip,
    TripCreate,
    TripDay,
    TripDestination,
    TripMember,
    TripSettingsUpdate,
    split_names,
)

__all__ = [
    "AccommodationDetails",
    "ItemCategory",
    "ItemDetails",
    "ItemDraft",
    "ItemPatch",
    "ItineraryItem",
    "TransportDetails",
    "TransportSubType",
    "Traveler",
    "Trip",
    "TripCreate",
    "TripDay",
    "TripDestination",
    "TripMember",
    "TripSettingsUpdate",
    "dump_details",
    "parse_details",
    "split_names",
]
