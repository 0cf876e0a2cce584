class UnsupportedOperationError(ValueError):
    """The operation does not apply to this kind of item."""


class StorageNotConfiguredError(RuntimeError):
    """No attachment storage is available to upload to."""

    def __init__(self):
        super().__init__("Attachment storage is not configured")
