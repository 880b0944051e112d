"""Error types for the FMCD dashboard."""


class DashboardError(Exception):
    """Base exception for all dashboard errors."""
    pass


class ConfigurationError(DashboardError):
    """Errors related to configuration."""
    pass


class FmcdError(DashboardError):
    """Errors related to talking to an FMCD instance."""
    pass


class StorageError(DashboardError):
    """Errors from the team configuration store."""
    pass
