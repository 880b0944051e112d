"""Pydantic models for API requests and responses."""

from datetime import datetime
from typing import Any, Dict, List, Optional
from pydantic import BaseModel

from core.types import (
    BalanceSummary,
    DaemonConfig,
    DaemonOverview,
    DaemonStatus,
    FederationSummary,
    GatewayInfo,
    StatBucket,
    StatsSummary,
    Transaction,
    TransactionPage,
)
from core.units import DisplayUnit, format_amount_with_unit


class ConfigUpdateRequest(BaseModel):
    """Request to save a team's FMCD settings."""
    base_url: str = ""
    password: str = ""
    is_active: bool = True


class ConnectionTestRequest(BaseModel):
    """Candidate FMCD settings to test."""
    base_url: str = ""
    password: str = ""


class AddressRequest(BaseModel):
    federation_id: Optional[str] = None


class InvoiceRequest(BaseModel):
    federation_id: str
    gateway_id: str
    amount_msat: int
    description: str
    expiry_time: Optional[int] = None


class LightningAddressRequest(BaseModel):
    federation_id: str = ""
    amount_msat: int = 0
    description: Optional[str] = None
    expiry_time: Optional[int] = None


class PayInvoiceRequest(BaseModel):
    federation_id: str = ""
    invoice: str = ""
    gateway_id: Optional[str] = None


class GatewaysRequest(BaseModel):
    federation_id: str


class JoinRequest(BaseModel):
    invite_code: str = ""


class PreferencesRequest(BaseModel):
    display_unit: str


class PreferencesResponse(BaseModel):
    display_unit: str


class StatusModel(BaseModel):
    """Last known FMCD connection status."""
    is_connected: bool
    last_checked: datetime
    version: Optional[str] = None
    error: Optional[str] = None

    @classmethod
    def from_domain(cls, status: DaemonStatus) -> "StatusModel":
        return cls(
            is_connected=status.is_connected,
            last_checked=status.last_checked,
            version=status.version,
            error=status.error,
        )


class ConfigModel(BaseModel):
    """Stored FMCD settings for a team."""
    team_id: str
    base_url: str
    password: str
    is_active: bool
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
    created_by: str = ""
    last_modified_by: str = ""

    @classmethod
    def from_domain(cls, config: DaemonConfig) -> "ConfigModel":
        return cls(
            team_id=config.team_id,
            base_url=config.base_url,
            password=config.password,
            is_active=config.is_active,
            created_at=config.created_at,
            updated_at=config.updated_at,
            created_by=config.created_by,
            last_modified_by=config.last_modified_by,
        )


class ConfigResponse(BaseModel):
    config: Optional[ConfigModel] = None
    status: StatusModel


class ConfigSavedResponse(BaseModel):
    success: bool
    config: ConfigModel


class ConnectionTestResponse(BaseModel):
    is_connected: bool
    version: Optional[str] = None
    federation_count: int = 0
    error: Optional[str] = None
    details: Optional[str] = None


class GatewayModel(BaseModel):
    gateway_id: str
    node_pub_key: str
    api: str
    base_msat: int
    proportional_millionths: int
    lightning_alias: str
    mint_channel_id: int
    supports_private_payments: bool
    vetted: bool

    @classmethod
    def from_domain(cls, gateway: GatewayInfo) -> "GatewayModel":
        return cls(**gateway.__dict__)


class FederationModel(BaseModel):
    federation_id: str
    balance_msat: int
    name: str
    network: str
    meta: Dict[str, Any]
    gateway_count: int
    gateways: List[GatewayModel]

    @classmethod
    def from_domain(cls, federation: FederationSummary) -> "FederationModel":
        return cls(
            federation_id=federation.federation_id,
            balance_msat=federation.balance_msat,
            name=federation.name,
            network=federation.network,
            meta=federation.meta,
            gateway_count=federation.gateway_count,
            gateways=[GatewayModel.from_domain(g) for g in federation.gateways],
        )


class OverviewResponse(BaseModel):
    """Daemon-wide federation listing."""
    network: str
    federations: List[FederationModel]

    @classmethod
    def from_domain(cls, overview: DaemonOverview) -> "OverviewResponse":
        return cls(
            network=overview.network,
            federations=[FederationModel.from_domain(f) for f in overview.federations],
        )


class BalanceResponse(BaseModel):
    total_msats: int
    ecash_msats: int
    lightning_msats: int
    onchain_sats: int
    display: Optional[str] = None  # total in the user's display unit

    @classmethod
    def from_domain(cls, balance: BalanceSummary, unit: Optional[DisplayUnit] = None) -> "BalanceResponse":
        display = format_amount_with_unit(balance.total_msats, unit) if unit else None
        return cls(**balance.__dict__, display=display)


class TransactionModel(BaseModel):
    id: str
    type: str
    amount_msat: int
    timestamp: datetime
    status: str
    federation_id: str
    description: str
    address: Optional[str] = None
    invoice: Optional[str] = None

    @classmethod
    def from_domain(cls, tx: Transaction) -> "TransactionModel":
        return cls(
            id=tx.id,
            type=tx.type.value,
            amount_msat=tx.amount_msat,
            timestamp=tx.timestamp,
            status=tx.status.value,
            federation_id=tx.federation_id,
            description=tx.description,
            address=tx.address,
            invoice=tx.invoice,
        )


class TransactionPageResponse(BaseModel):
    """One page of a single federation's transactions."""
    transactions: List[TransactionModel]
    total: int
    page: int
    limit: int
    total_pages: int

    @classmethod
    def from_domain(cls, page: TransactionPage) -> "TransactionPageResponse":
        return cls(
            transactions=[TransactionModel.from_domain(tx) for tx in page.items],
            total=page.total,
            page=page.page,
            limit=page.limit,
            total_pages=page.total_pages,
        )


class StatBucketModel(BaseModel):
    period: str
    start: datetime
    end: datetime
    total_transactions: int
    total_volume_msat: int
    type_counts: Dict[str, int]
    status_counts: Dict[str, int]

    @classmethod
    def from_domain(cls, bucket: StatBucket) -> "StatBucketModel":
        return cls(
            period=bucket.period_label,
            start=bucket.start,
            end=bucket.end,
            total_transactions=bucket.total_count,
            total_volume_msat=bucket.total_volume_msat,
            type_counts={t.value: n for t, n in bucket.per_type_counts.items()},
            status_counts={s.value: n for s, n in bucket.per_status_counts.items()},
        )


class StatsSummaryModel(BaseModel):
    total_transactions: int
    total_volume_msat: int
    avg_volume_per_period: float
    most_active_type: str
    success_rate: float

    @classmethod
    def from_domain(cls, summary: StatsSummary) -> "StatsSummaryModel":
        return cls(
            total_transactions=summary.total_transactions,
            total_volume_msat=summary.total_volume_msat,
            avg_volume_per_period=summary.avg_volume_per_period,
            most_active_type=summary.most_active_type.value,
            success_rate=summary.success_rate,
        )


class StatsResponse(BaseModel):
    """Transaction statistics for one federation."""
    federation_id: str
    federation_name: str
    timeframe: str
    stats: List[StatBucketModel]
    summary: StatsSummaryModel


class AddressResponse(BaseModel):
    success: bool
    address: str
    operation_id: Optional[str] = None
    federation_id: Optional[str] = None


class JoinResponse(BaseModel):
    success: bool
    message: str


class HealthResponse(BaseModel):
    """API health check response."""
    status: str
    service: str
    version: str
