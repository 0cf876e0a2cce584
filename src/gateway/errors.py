class PersistenceError(Exception):
    """A call to the persistence backend failed. Nothing from it was committed."""


class NotFoundError(PersistenceError):
    def __init__(self, kind: str, key: object):
        super().__init__(f"{kind} {key} not found")
        self.kind = kind
        self.key = key


class StaleRevisionError(PersistenceError):
    """The day changed since the caller last read it."""

    def __init__(self, day_id: int, expected: int, actual: int):
        super().__init__(
            f"Day {day_id} is at revision {actual}, expected {expected}"
        )
        self.day_id = day_id
        self.expected = expected
        self.actual = actual
