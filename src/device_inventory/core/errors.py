"""
Exception hierarchy for the device inventory store.

Lookups never raise for a missing device; absence is returned as ``None``.
"""


class InventoryError(Exception):
    """Base exception for all device inventory errors."""


class InvalidInputError(InventoryError):
    """Absent or malformed input passed to a store operation."""


class DuplicateKeyError(InventoryError):
    """A construction-only insert collided with an existing document id."""

    def __init__(self, message: str, *, collection: str = "", doc_id: str = "") -> None:
        self.collection = collection
        self.doc_id = doc_id
        super().__init__(message)


class StoreUnavailableError(InventoryError):
    """The document store could not be reached or its driver failed."""


class StoreConnectionError(StoreUnavailableError):
    """The connection target could not be parsed or opened.

    Raised only when a store is being opened; a store that was opened
    successfully reports later failures as :class:`StoreUnavailableError`.
    """

    def __init__(self, message: str, *, target: str = "") -> None:
        self.target = target
        super().__init__(message)
