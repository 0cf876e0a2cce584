from .aggregate import (
    DaySequenceError,
    arrival_target_day,
    build_arrival_card,
    build_continuation_stay,
    continuation_stay_days,
    day_dates,
    verify_day_sequence,
)
from .cache import DayItemCache
from .ordering import (
    ACCOMMODATION_SORT_ORDER,
    STRIDE,
    DegenerateGapError,
    InsertPlan,
    SortAssignment,
    UnknownItemError,
    append_sort_order,
    insert_between,
    plan_append,
    plan_insert_after,
    renumber,
    reorder,
    sort_items,
)
from .presenter import CardKind, ItemCard, present_day
from .transport_time import (
    DurationEstimate,
    RouteMode,
    SuggestedArrival,
    TransitEstimate,
    apply_suggested_time,
    car_duration,
    derive_transport,
    estimate_transit,
    flight_duration,
)
