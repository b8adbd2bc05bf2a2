class StorageFailure(Exception):
    """Raised when the persistent visit store cannot complete a transaction."""
    pass
