class UpstreamUnavailable(Exception):
    """Raised when one of the external data sources cannot be fetched."""

    def __init__(self, source, message):
        self.source = source
        self.message = message
        super().__init__(f"Could not fetch data from {source}: {message}")


class RefreshPersistenceError(Exception):
    """Raised when writing a refresh pass failed and was rolled back."""
