"""Core types for the FMCD dashboard."""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Dict, Generic, List, Optional, TypeVar

T = TypeVar("T")


class TransactionType(Enum):
    """Normalized transaction categories."""
    LIGHTNING_RECEIVE = "lightning_receive"
    LIGHTNING_SEND = "lightning_send"
    ONCHAIN_RECEIVE = "onchain_receive"
    ONCHAIN_SEND = "onchain_send"
    ECASH_MINT = "ecash_mint"
    ECASH_SPEND = "ecash_spend"


class TransactionStatus(Enum):
    """Completion state of a transaction."""
    PENDING = "pending"
    COMPLETED = "completed"
    FAILED = "failed"


class Timeframe(Enum):
    """Bucket width for transaction statistics."""
    DAY = "day"
    WEEK = "week"
    MONTH = "month"


@dataclass
class DaemonConfig:
    """FMCD connection settings for one team."""
    base_url: str
    password: str
    is_active: bool = True
    team_id: str = ""
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
    created_by: str = ""
    last_modified_by: str = ""


@dataclass
class DaemonStatus:
    """Last known connection state for a team's FMCD instance."""
    is_connected: bool
    last_checked: datetime
    version: Optional[str] = None
    error: Optional[str] = None


@dataclass
class RequestOutcome(Generic[T]):
    """Result of a single logical FMCD call.

    Exactly one of ``data`` or ``error`` is meaningful; ``status`` is an
    HTTP-like code (200 on success).
    """
    status: int
    data: Optional[T] = None
    error: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.error is None

    @classmethod
    def success(cls, data: T) -> "RequestOutcome[T]":
        return cls(status=200, data=data)

    @classmethod
    def failure(cls, error: str, status: int) -> "RequestOutcome[T]":
        return cls(status=status, error=error)


@dataclass
class GatewayInfo:
    """A Lightning gateway registered with a federation."""
    gateway_id: str
    node_pub_key: str = ""
    api: str = ""
    base_msat: int = 0
    proportional_millionths: int = 0
    lightning_alias: str = ""
    mint_channel_id: int = 0
    supports_private_payments: bool = False
    vetted: bool = False


@dataclass
class FederationSummary:
    """One federation as reported by the daemon, merged with live data."""
    federation_id: str
    balance_msat: int
    name: str
    network: str
    meta: Dict[str, Any] = field(default_factory=dict)
    gateway_count: int = 0
    gateways: List[GatewayInfo] = field(default_factory=list)


@dataclass
class DaemonOverview:
    """Daemon-wide summary built from all joined federations."""
    network: str
    federations: List[FederationSummary]


@dataclass
class BalanceSummary:
    """Total balance across federations."""
    total_msats: int
    ecash_msats: int
    lightning_msats: int = 0  # Not tracked separately by FMCD
    onchain_sats: int = 0  # Not tracked separately by FMCD


@dataclass
class Transaction:
    """A transaction reconstructed from one FMCD operation record."""
    id: str
    type: TransactionType
    amount_msat: int  # 0 when the amount could not be determined
    timestamp: datetime
    status: TransactionStatus
    federation_id: str
    description: str
    address: Optional[str] = None
    invoice: Optional[str] = None


@dataclass
class TransactionPage:
    """A page of transactions for a single federation."""
    items: List[Transaction]
    total: int
    page: int
    limit: int
    total_pages: int


@dataclass
class StatBucket:
    """Aggregates for transactions within ``[start, end)``."""
    period_label: str
    start: datetime
    end: datetime
    total_count: int = 0
    total_volume_msat: int = 0
    per_type_counts: Dict[TransactionType, int] = field(
        default_factory=lambda: {t: 0 for t in TransactionType}
    )
    per_status_counts: Dict[TransactionStatus, int] = field(
        default_factory=lambda: {s: 0 for s in TransactionStatus}
    )


@dataclass
class StatsSummary:
    """Summary across all statistics buckets."""
    total_transactions: int
    total_volume_msat: int
    avg_volume_per_period: float
    success_rate: float
    most_active_type: TransactionType


@dataclass
class ConnectionTestResult:
    """Outcome of probing an FMCD instance before saving its settings."""
    is_connected: bool
    version: Optional[str] = None
    federation_count: int = 0
    error: Optional[str] = None
    details: Optional[str] = None
