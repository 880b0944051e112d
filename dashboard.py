"""FMCD team dashboard service."""

import logging
from datetime import datetime, timezone
from pathlib import Path
from typing import Optional
from urllib.parse import urlparse

from config import DashboardConfig
from core.errors import ConfigurationError
from core.types import ConnectionTestResult, DaemonConfig, DaemonStatus, RequestOutcome
from fmcd.aggregator import FederationAggregator
from fmcd.client import FmcdClient
from identity import IdentityProvider
from storage import TeamStore

logger = logging.getLogger(__name__)


class Dashboard:
    """Owns the FMCD client, the team store and the identity provider.

    Constructed once at startup and handed to request handlers.
    """

    def __init__(
        self,
        config: DashboardConfig,
        store: Optional[TeamStore] = None,
        identity: Optional[IdentityProvider] = None,
        client: Optional[FmcdClient] = None,
    ):
        """Initialize the dashboard.

        Args:
            config: Dashboard configuration
            store: Team store (defaults to SQLite at config.database_path)
            identity: Identity provider (defaults to config.identity_file)
            client: FMCD client (defaults to one using config's retry policy)
        """
        self.config = config
        self.store = store or TeamStore(config.database_path)
        self.identity = identity or IdentityProvider.from_file(Path(config.identity_file))
        self.client = client or FmcdClient(default_policy=config.retry_policy())
        self.aggregator = FederationAggregator(self.client)
        self.running = False

        logger.info("Initialized FMCD dashboard")

    async def start(self) -> None:
        """Start the dashboard."""
        logger.info("Starting FMCD dashboard...")

        await self.store.start()
        await self.client.start()

        self.running = True
        logger.info("Dashboard started successfully")

    async def stop(self) -> None:
        """Stop the dashboard."""
        logger.info("Stopping dashboard...")
        self.running = False

        await self.client.stop()
        await self.store.stop()

        logger.info("Dashboard stopped")

    async def save_config(
        self,
        team_id: str,
        user_id: str,
        base_url: str,
        password: str,
        is_active: bool,
    ) -> DaemonConfig:
        """Validate and store a team's FMCD settings.

        Saving resets the connection status until the settings are tested.

        Raises:
            ConfigurationError: If the URL or password is missing or invalid
        """
        if not base_url or not password:
            raise ConfigurationError("Base URL and password are required")

        parsed = urlparse(base_url.strip())
        if parsed.scheme not in ("http", "https") or not parsed.netloc:
            raise ConfigurationError("Invalid URL format")

        existing = await self.store.get_config(team_id)
        now = datetime.now(timezone.utc)
        config = DaemonConfig(
            team_id=team_id,
            base_url=base_url,
            password=password,
            is_active=is_active,
            created_at=existing.created_at if existing and existing.created_at else now,
            updated_at=now,
            created_by=existing.created_by if existing and existing.created_by else user_id,
            last_modified_by=user_id,
        )
        await self.store.set_config(team_id, config)
        await self.store.set_status(team_id, DaemonStatus(
            is_connected=False,
            last_checked=now,
            error="Configuration updated - connection not tested",
        ))

        logger.info(f"Saved FMCD configuration for team {team_id}")
        return config

    async def get_status(self, team_id: str, has_config: bool) -> DaemonStatus:
        """Return the stored status, or a placeholder when none was recorded."""
        status = await self.store.get_status(team_id)
        if status:
            return status
        return DaemonStatus(
            is_connected=False,
            last_checked=datetime.now(timezone.utc),
            error="No status available" if has_config else "No configuration found",
        )

    async def test_connection(
        self, team_id: str, base_url: str, password: str
    ) -> ConnectionTestResult:
        """Test candidate FMCD settings and record the result for the team."""
        result = await self.client.check_connection(base_url, password)
        await self.store.set_status(team_id, DaemonStatus(
            is_connected=result.is_connected,
            last_checked=datetime.now(timezone.utc),
            version=result.version,
            error=result.error,
        ))
        return result

    async def overview(self, team_id: str, config: DaemonConfig) -> RequestOutcome:
        """List federations for a team and record whether FMCD answered."""
        response = await self.aggregator.list_federations(config)
        now = datetime.now(timezone.utc)

        if not response.ok:
            await self.store.set_status(team_id, DaemonStatus(
                is_connected=False, last_checked=now, error=response.error
            ))
            return response

        await self.store.set_status(team_id, DaemonStatus(
            is_connected=True, last_checked=now, version=response.data.network
        ))
        return response
