"""Team FMCD endpoints: configuration, federations, balances and payments."""

import logging
from typing import List, Optional, Union

from fastapi import APIRouter, Depends, HTTPException, Query

from api.dependencies import (
    FmcdAccess,
    TeamAccess,
    get_dashboard,
    get_fmcd_access,
    get_team_admin,
)
from api.models import (
    AddressRequest,
    AddressResponse,
    BalanceResponse,
    ConfigModel,
    ConfigResponse,
    ConfigSavedResponse,
    ConfigUpdateRequest,
    ConnectionTestRequest,
    ConnectionTestResponse,
    GatewayModel,
    GatewaysRequest,
    InvoiceRequest,
    JoinRequest,
    JoinResponse,
    LightningAddressRequest,
    OverviewResponse,
    PayInvoiceRequest,
    StatBucketModel,
    StatsResponse,
    StatsSummaryModel,
    StatusModel,
    TransactionModel,
    TransactionPageResponse,
)
from core.errors import ConfigurationError
from core.types import RequestOutcome, Timeframe, TransactionPage
from dashboard import Dashboard
from fmcd.lenient import decode_address, decode_gateways
from fmcd.stats import ALL_PERIODS, build_stats

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/team/{team_id}/fmcd", tags=["fmcd"])

MAX_TRANSACTIONS_LIMIT = 50
MAX_STATS_PERIODS = 90
# Stats need the full history, so ask FMCD for everything it has
STATS_OPERATIONS_LIMIT = 100_000_000_000


def _raise_for(response: RequestOutcome) -> None:
    if not response.ok:
        raise HTTPException(status_code=response.status, detail=response.error)


@router.get("/config", response_model=ConfigResponse)
async def get_config(
    access: TeamAccess = Depends(get_team_admin),
    dashboard: Dashboard = Depends(get_dashboard),
):
    """Get the team's FMCD settings and last connection status."""
    try:
        config = await dashboard.store.get_config(access.team.id)
        status = await dashboard.get_status(access.team.id, has_config=config is not None)
        return ConfigResponse(
            config=ConfigModel.from_domain(config) if config else None,
            status=StatusModel.from_domain(status),
        )
    except Exception as e:
        logger.error(f"Error getting FMCD config: {e}")
        raise HTTPException(status_code=500, detail="Internal error")


@router.post("/config", response_model=ConfigSavedResponse)
async def update_config(
    request: ConfigUpdateRequest,
    access: TeamAccess = Depends(get_team_admin),
    dashboard: Dashboard = Depends(get_dashboard),
):
    """Save the team's FMCD settings."""
    try:
        config = await dashboard.save_config(
            access.team.id,
            access.user.id,
            request.base_url,
            request.password,
            request.is_active,
        )
        return ConfigSavedResponse(success=True, config=ConfigModel.from_domain(config))
    except ConfigurationError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except Exception as e:
        logger.error(f"Error updating FMCD config: {e}")
        raise HTTPException(status_code=500, detail="Internal error")


@router.post("/test", response_model=ConnectionTestResponse)
async def run_connection_test(
    request: ConnectionTestRequest,
    access: TeamAccess = Depends(get_team_admin),
    dashboard: Dashboard = Depends(get_dashboard),
):
    """Test candidate FMCD settings before saving them."""
    if not request.base_url or not request.password:
        raise HTTPException(status_code=400, detail="Base URL and password are required")

    result = await dashboard.test_connection(access.team.id, request.base_url, request.password)
    return ConnectionTestResponse(**result.__dict__)


@router.get("/info", response_model=OverviewResponse)
async def get_info(
    access: FmcdAccess = Depends(get_fmcd_access),
    dashboard: Dashboard = Depends(get_dashboard),
):
    """List federations with gateways and live balances."""
    response = await dashboard.overview(access.team.id, access.config)
    _raise_for(response)
    return OverviewResponse.from_domain(response.data)


@router.get("/balance", response_model=BalanceResponse)
async def get_balance(
    access: FmcdAccess = Depends(get_fmcd_access),
    dashboard: Dashboard = Depends(get_dashboard),
):
    """Total balance across all federations."""
    response = await dashboard.aggregator.total_balance(access.config)
    _raise_for(response)
    unit = await dashboard.store.get_display_unit(access.user.id)
    return BalanceResponse.from_domain(response.data, unit)


@router.get("/transactions", response_model=None)
async def get_transactions(
    limit: int = Query(default=5, ge=1),
    federation_id: Optional[str] = None,
    page: int = 1,
    access: FmcdAccess = Depends(get_fmcd_access),
    dashboard: Dashboard = Depends(get_dashboard),
) -> Union[TransactionPageResponse, List[TransactionModel]]:
    """Recent transactions.

    With ``federation_id`` the response is paginated; without it the newest
    ``limit`` transactions across all federations are returned as a list.
    """
    limit = min(limit, MAX_TRANSACTIONS_LIMIT)
    page = max(1, page)

    response = await dashboard.aggregator.get_federations(access.config)
    _raise_for(response)
    federation_ids = [f.federation_id for f in response.data]

    if federation_id:
        if federation_id not in federation_ids:
            raise HTTPException(status_code=404, detail="Federation not found")
        federation_ids = [federation_id]

    if not federation_ids:
        return []

    result = await dashboard.aggregator.transactions_for(
        federation_ids, access.config, limit, page=page if federation_id else None
    )
    if isinstance(result, TransactionPage):
        return TransactionPageResponse.from_domain(result)
    return [TransactionModel.from_domain(tx) for tx in result]


@router.get("/transactions/stats", response_model=StatsResponse)
async def get_transaction_stats(
    federation_id: Optional[str] = None,
    timeframe: str = "day",
    periods: str = "30",
    access: FmcdAccess = Depends(get_fmcd_access),
    dashboard: Dashboard = Depends(get_dashboard),
):
    """Bucketed transaction statistics for one federation."""
    if not federation_id:
        raise HTTPException(status_code=400, detail="Federation ID is required")

    try:
        frame = Timeframe(timeframe)
    except ValueError:
        raise HTTPException(status_code=400, detail=f"Invalid timeframe: {timeframe}")

    if periods == ALL_PERIODS:
        period_count = ALL_PERIODS
    else:
        try:
            period_count = min(int(periods), MAX_STATS_PERIODS)
        except ValueError:
            raise HTTPException(status_code=400, detail=f"Invalid periods: {periods}")
        if period_count < 1:
            raise HTTPException(status_code=400, detail="periods must be at least 1")

    response = await dashboard.aggregator.get_federations(access.config)
    _raise_for(response)
    federation = next((f for f in response.data if f.federation_id == federation_id), None)
    if not federation:
        raise HTTPException(status_code=404, detail="Federation not found")

    federation_name = federation.meta.get("federation_name") or f"Federation {federation_id[:8]}"

    transactions = await dashboard.aggregator.fetch_federation_transactions(
        federation_id, access.config, limit=STATS_OPERATIONS_LIMIT, timeout=10.0
    )
    buckets, summary = build_stats(transactions, frame, period_count)

    logger.info(
        f"[FMCD Transaction Stats] Generated stats for federation {federation_id} with "
        f"{summary.total_transactions} transactions over {period_count} {frame.value}s"
    )

    return StatsResponse(
        federation_id=federation_id,
        federation_name=str(federation_name),
        timeframe=frame.value,
        stats=[StatBucketModel.from_domain(b) for b in buckets],
        summary=StatsSummaryModel.from_domain(summary),
    )


@router.post("/address", response_model=AddressResponse)
async def create_address(
    request: AddressRequest,
    access: FmcdAccess = Depends(get_fmcd_access),
    dashboard: Dashboard = Depends(get_dashboard),
):
    """Generate an on-chain deposit address."""
    logger.info(
        "[FMCD Address] Generating onchain address"
        + (f" for federation {request.federation_id}" if request.federation_id else "")
    )
    response = await dashboard.client.create_onchain_address(access.config, request.federation_id)
    if not response.ok:
        logger.error(f"[FMCD Address] Failed to generate address: {response.error}")
        _raise_for(response)

    address = decode_address(response.data)
    if not address["address"]:
        logger.error("[FMCD Address] No address returned from FMCD")
        raise HTTPException(status_code=502, detail="No address received from FMCD")

    return AddressResponse(
        success=True,
        address=address["address"],
        operation_id=address["operation_id"],
        federation_id=request.federation_id,
    )


@router.post("/invoice")
async def create_invoice(
    request: InvoiceRequest,
    access: FmcdAccess = Depends(get_fmcd_access),
    dashboard: Dashboard = Depends(get_dashboard),
):
    """Create a Lightning invoice through a specific gateway."""
    response = await dashboard.client.create_invoice(
        access.config,
        federation_id=request.federation_id,
        amount_msat=request.amount_msat,
        description=request.description,
        gateway_id=request.gateway_id,
        expiry_time=request.expiry_time,
    )
    _raise_for(response)
    return response.data


@router.post("/lightning-address")
async def create_lightning_address(
    request: LightningAddressRequest,
    access: FmcdAccess = Depends(get_fmcd_access),
    dashboard: Dashboard = Depends(get_dashboard),
):
    """Create an invoice used to move funds into a federation."""
    if not request.federation_id or request.amount_msat <= 0:
        raise HTTPException(status_code=400, detail="Invalid request parameters")

    response = await dashboard.client.create_invoice(
        access.config,
        federation_id=request.federation_id,
        amount_msat=request.amount_msat,
        description=request.description
        or f"Transfer to federation {request.federation_id[:8]}...",
        expiry_time=request.expiry_time,
    )
    _raise_for(response)
    return response.data


@router.post("/pay-invoice")
async def pay_invoice(
    request: PayInvoiceRequest,
    access: FmcdAccess = Depends(get_fmcd_access),
    dashboard: Dashboard = Depends(get_dashboard),
):
    """Pay a Lightning invoice from a federation."""
    if not request.federation_id or not request.invoice:
        raise HTTPException(status_code=400, detail="Invalid request parameters")

    response = await dashboard.client.pay_invoice(
        access.config,
        federation_id=request.federation_id,
        payment_info=request.invoice,
        gateway_id=request.gateway_id,
    )
    if not response.ok:
        logger.error(f"FMCD payment error: {response.status} - {response.error}")
        _raise_for(response)
    return response.data


@router.post("/gateways", response_model=List[GatewayModel])
async def list_gateways(
    request: GatewaysRequest,
    access: FmcdAccess = Depends(get_fmcd_access),
    dashboard: Dashboard = Depends(get_dashboard),
):
    """Gateways registered with one federation."""
    response = await dashboard.client.list_gateways(request.federation_id, access.config)
    _raise_for(response)
    return [GatewayModel.from_domain(g) for g in decode_gateways(response.data)]


@router.post("/connect", response_model=JoinResponse)
async def join_federation(
    request: JoinRequest,
    access: FmcdAccess = Depends(get_fmcd_access),
    dashboard: Dashboard = Depends(get_dashboard),
):
    """Join a federation with an invite code."""
    if not request.invite_code.strip():
        raise HTTPException(status_code=400, detail="Federation invite code is required")

    response = await dashboard.client.join_federation(access.config, request.invite_code)
    if not response.ok:
        logger.error(f"[FMCD Connect] Failed to connect to federation: {response.error}")
        _raise_for(response)

    logger.info("[FMCD Connect] Successfully connected to federation")
    return JoinResponse(success=True, message="Successfully connected to federation")
