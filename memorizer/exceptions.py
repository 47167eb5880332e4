
class MemorizerError(Exception):
    """Base exception for the memorizer package."""
    pass


class StorageError(MemorizerError):
    """Raised when the deck database cannot be read or written."""
    pass


class ItemNotFoundError(MemorizerError):
    """Raised when an operation targets an item id that is not in the deck."""
    pass
