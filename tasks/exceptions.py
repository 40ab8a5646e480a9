"""Error taxonomy shared by the tasks and analytics apps."""


class ValidationError(ValueError):
    """A predicate builder received a malformed primitive argument."""


class UpstreamFetchError(Exception):
    """The document store failed; the original exception is chained."""


class AggregationError(Exception):
    """The analytics dashboard could not be assembled.

    The message is safe to show to users verbatim.  The underlying
    ``UpstreamFetchError`` is available as ``__cause__`` for logs.
    """

    default_message = "Failed to load analytics data"

    def __init__(self, message=None):
        super().__init__(message or self.default_message)
