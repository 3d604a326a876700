class CostCompassError(Exception):
    """Base exception for CostCompass."""

    pass


class ConfigurationError(CostCompassError):
    """Raised at startup when the configuration cannot be used."""

    pass


class SourceUnavailable(CostCompassError):
    """Raised when the cluster control plane cannot be reached."""

    pass


class MetricsUnavailable(CostCompassError):
    """Raised when the metrics source errors or returns no usage data."""

    pass


class InvalidGroupData(CostCompassError):
    """Raised when a workload group has missing or invalid pricing inputs."""

    pass


class DatabaseError(CostCompassError):
    """Base exception for database related errors."""

    pass


class ConnectionError(DatabaseError):
    """Raised when database connection fails."""

    pass


class QueryError(DatabaseError):
    """Raised when a database query fails."""

    pass


class StoreWriteFailed(DatabaseError):
    """Raised when an upsert or insert against the snapshot store fails."""

    pass
