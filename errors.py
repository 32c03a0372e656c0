class StoreError(Exception):
    """Base class for every error raised by the tenant store."""


class ValidationError(StoreError, ValueError):
    """Malformed input, rejected before anything is written."""


class NotFoundError(StoreError, ValueError):
    """A tenant-scoped lookup or mutation matched no rows.

    Raised both when the id does not exist and when it belongs to another
    tenant; callers cannot tell the two apart.
    """


class ConflictError(StoreError, ValueError):
    """A uniqueness constraint was violated."""


class StorageError(StoreError):
    """The backend failed; the unit of work has been rolled back."""
