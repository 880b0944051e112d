"""Fan out per-federation FMCD calls and merge the results."""

import asyncio
import logging
import math
from typing import List, Optional, Sequence, Tuple, Union

from core.types import (
    BalanceSummary,
    DaemonConfig,
    DaemonOverview,
    FederationSummary,
    GatewayInfo,
    RequestOutcome,
    Transaction,
    TransactionPage,
)
from fmcd.client import FmcdClient
from fmcd.decoder import decode_operation
from fmcd.lenient import decode_balance, decode_federation_info, decode_gateways, decode_operations

logger = logging.getLogger(__name__)

# Minimum number of operations requested per federation
MIN_OPERATIONS_FETCH = 100


class FederationAggregator:
    """Builds per-team views over every federation an FMCD instance joined.

    A failure for one federation never fails the whole view; it is logged and
    replaced with a default.
    """

    def __init__(self, client: FmcdClient):
        self.client = client

    async def get_federations(self, config: DaemonConfig) -> RequestOutcome:
        """Fetch and decode the federation info map.

        Returns:
            RequestOutcome with a list of FederationSummary (no gateways yet)
        """
        response = await self.client.get_info(config)
        if not response.ok:
            return response
        if response.data is None:
            return RequestOutcome.failure("No federation data received from FMCD", 502)
        return RequestOutcome.success(decode_federation_info(response.data))

    async def _fetch_gateways(
        self, federation_id: str, config: DaemonConfig
    ) -> Tuple[List[GatewayInfo], int]:
        try:
            response = await self.client.list_gateways(federation_id, config)
            if not response.ok or response.data is None:
                logger.warning(
                    f"Failed to fetch gateways for federation {federation_id}: {response.error}"
                )
                return [], 0

            gateways = decode_gateways(response.data)
            logger.info(f"Fetched {len(gateways)} gateways for federation {federation_id}")
            return gateways, len(gateways)
        except Exception as e:
            logger.warning(f"Error fetching gateways for federation {federation_id}: {e}")
            return [], 0

    async def _fetch_balance(
        self, federation_id: str, config: DaemonConfig, fallback: int
    ) -> int:
        try:
            response = await self.client.get_balance(federation_id, config)
            balance = decode_balance(response.data) if response.ok else None
            if balance is not None:
                return balance
            logger.warning(
                f"Falling back to info balance for federation {federation_id}: "
                f"{response.error or 'unrecognized balance response'}"
            )
        except Exception as e:
            logger.warning(f"Error fetching balance for federation {federation_id}: {e}")
        return fallback

    async def _enrich(
        self, federation: FederationSummary, config: DaemonConfig
    ) -> Tuple[str, List[GatewayInfo], int, int]:
        (gateways, count), balance = await asyncio.gather(
            self._fetch_gateways(federation.federation_id, config),
            self._fetch_balance(federation.federation_id, config, federation.balance_msat),
        )
        return federation.federation_id, gateways, count, balance

    async def list_federations(self, config: DaemonConfig) -> RequestOutcome:
        """List federations with their gateways and live balances.

        Returns:
            RequestOutcome with a DaemonOverview
        """
        response = await self.get_federations(config)
        if not response.ok:
            return response
        federations: List[FederationSummary] = response.data

        results = await asyncio.gather(*(self._enrich(f, config) for f in federations))
        by_id = {federation_id: rest for federation_id, *rest in results}

        for federation in federations:
            gateways, count, balance = by_id.get(
                federation.federation_id, ([], 0, federation.balance_msat)
            )
            federation.gateways = gateways
            federation.gateway_count = count
            federation.balance_msat = balance

        # A daemon could in theory span networks; the first federation wins
        network = federations[0].network if federations else "unknown"

        total_gateways = sum(f.gateway_count for f in federations)
        logger.info(
            f"[FMCD Info] Successfully fetched data - {len(federations)} federation(s), "
            f"total gateways: {total_gateways}"
        )
        return RequestOutcome.success(DaemonOverview(network=network or "unknown", federations=federations))

    async def total_balance(self, config: DaemonConfig) -> RequestOutcome:
        """Sum live balances across all federations.

        Returns:
            RequestOutcome with a BalanceSummary
        """
        response = await self.get_federations(config)
        if not response.ok:
            return response
        federations: List[FederationSummary] = response.data

        balances = await asyncio.gather(
            *(self._fetch_balance(f.federation_id, config, f.balance_msat) for f in federations)
        )
        total = sum(balances)

        logger.info("[FMCD Balance] Successfully fetched balance data")
        return RequestOutcome.success(BalanceSummary(total_msats=total, ecash_msats=total))

    async def fetch_federation_transactions(
        self,
        federation_id: str,
        config: DaemonConfig,
        limit: int = 10,
        include_address: bool = False,
        timeout: float = 5.0,
    ) -> List[Transaction]:
        """Fetch and decode operations for one federation.

        Failures are logged and yield an empty list.
        """
        try:
            response = await self.client.list_operations(
                federation_id, config, max(limit, MIN_OPERATIONS_FETCH), timeout=timeout
            )
            if not response.ok or response.data is None:
                logger.warning(
                    f"Failed to fetch transactions for federation {federation_id}: "
                    f"{response.error or 'No response'}"
                )
                return []

            operations = decode_operations(response.data)
            logger.debug(f"Found {len(operations)} operations for federation {federation_id}")
            return [decode_operation(op, federation_id, include_address) for op in operations]
        except Exception as e:
            logger.warning(f"Error fetching transactions for federation {federation_id}: {e}")
            return []

    async def transactions_for(
        self,
        federation_ids: Sequence[str],
        config: DaemonConfig,
        limit: int,
        page: Optional[int] = None,
    ) -> Union[TransactionPage, List[Transaction]]:
        """Fetch recent transactions across one or more federations.

        With a ``page`` the result is a TransactionPage sliced by ``page`` and
        ``limit``. Without one it is the newest ``limit`` transactions across
        all given federations, without page metadata, however many
        federations there are.
        """
        fetch_limit = max(limit * 10, MIN_OPERATIONS_FETCH)
        per_federation = await asyncio.gather(
            *(self.fetch_federation_transactions(fid, config, fetch_limit) for fid in federation_ids)
        )
        transactions = sorted(
            (tx for batch in per_federation for tx in batch),
            key=lambda tx: tx.timestamp,
            reverse=True,
        )

        if page is not None:
            page = max(1, page)
            start = (page - 1) * limit
            return TransactionPage(
                items=transactions[start:start + limit],
                total=len(transactions),
                page=page,
                limit=limit,
                total_pages=math.ceil(len(transactions) / limit) if limit > 0 else 0,
            )

        limited = transactions[:limit]
        logger.info(
            f"[FMCD Transactions] Successfully fetched {len(limited)} transactions "
            f"from {len(federation_ids)} federations"
        )
        return limited
