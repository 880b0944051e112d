"""Core types and errors for the FMCD dashboard."""

from core.errors import (
    DashboardError,
    ConfigurationError,
    FmcdError,
    StorageError,
)
from core.types import (
    TransactionType,
    TransactionStatus,
    Timeframe,
    DaemonConfig,
    DaemonStatus,
    RequestOutcome,
    GatewayInfo,
    FederationSummary,
    DaemonOverview,
    BalanceSummary,
    Transaction,
    TransactionPage,
    StatBucket,
    StatsSummary,
    ConnectionTestResult,
)

__all__ = [
    "DashboardError",
    "ConfigurationError",
    "FmcdError",
    "StorageError",
    "TransactionType",
    "TransactionStatus",
    "Timeframe",
    "DaemonConfig",
    "DaemonStatus",
    "RequestOutcome",
    "GatewayInfo",
    "FederationSummary",
    "DaemonOverview",
    "BalanceSummary",
    "Transaction",
    "TransactionPage",
    "StatBucket",
    "StatsSummary",
    "ConnectionTestResult",
]
