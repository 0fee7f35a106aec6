class StatsError(Exception):
    """Base class for failures that abort a stats report."""


class StorageUnavailableError(StatsError):
    """The backing store could not be reached or refused the query."""


class StatsTimeoutError(StatsError):
    """The report did not finish within the configured request timeout."""
