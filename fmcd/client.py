"""FMCD HTTP client with retry, backoff and timeout escalation."""

import asyncio
import base64
import json
import logging
from dataclasses import dataclass, replace
from typing import Any, Awaitable, Callable, Dict, Optional, Tuple

import aiohttp

from core.errors import ConfigurationError, FmcdError
from core.types import ConnectionTestResult, DaemonConfig, RequestOutcome

logger = logging.getLogger(__name__)

FMCD_USERNAME = "fmcd"


def normalize_base_url(base_url: str) -> str:
    """Validate an FMCD base URL and strip one trailing slash.

    Raises:
        ConfigurationError: If the URL does not start with http:// or https://
    """
    normalized = (base_url or "").strip()

    if not normalized.startswith("http://") and not normalized.startswith("https://"):
        raise ConfigurationError("Invalid URL format. Must start with http:// or https://")

    if normalized.endswith("/"):
        normalized = normalized[:-1]
    return normalized


def create_auth_header(password: str) -> str:
    """Build the Basic auth header FMCD expects (fixed user ``fmcd``)."""
    token = base64.b64encode(f"{FMCD_USERNAME}:{password}".encode()).decode()
    return f"Basic {token}"


@dataclass
class RetryPolicy:
    """How many times to try a call, how long to wait, and for how long.

    Times are in seconds. Attempt numbers start at 0. A multiplier of 1.0
    gives a constant pause between attempts.
    """
    max_attempts: int = 3
    base_delay: float = 1.0
    base_timeout: float = 10.0
    timeout_step: float = 5.0
    backoff_multiplier: float = 2.0
    retry_connection_errors: bool = True

    def timeout_for(self, attempt: int) -> float:
        return self.base_timeout + attempt * self.timeout_step

    def backoff_for(self, attempt: int) -> float:
        return self.base_delay * (self.backoff_multiplier ** attempt)

    def can_retry(self, attempt: int) -> bool:
        return attempt < self.max_attempts - 1

    def is_retryable_error(self, error: BaseException) -> bool:
        # TimeoutError subclasses OSError on newer Pythons, so test it first
        if isinstance(error, asyncio.TimeoutError):
            return True
        return self.retry_connection_errors

    @staticmethod
    def is_retryable_status(status: int) -> bool:
        return status >= 500


# Two attempts, one second apart, and a refused connection is final
CONNECTION_CHECK_POLICY = RetryPolicy(
    max_attempts=2,
    base_delay=1.0,
    base_timeout=10.0,
    backoff_multiplier=1.0,
    retry_connection_errors=False,
)

TRANSPORT_ERRORS = (asyncio.TimeoutError, aiohttp.ClientError, OSError)


class FmcdClient:
    """Talks to FMCD instances over HTTP.

    One client is shared by all teams. Each call carries the DaemonConfig of
    the team it is made for, so no per-team state lives here.
    """

    def __init__(
        self,
        default_policy: Optional[RetryPolicy] = None,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
    ):
        """Create a new FMCD client.

        Args:
            default_policy: Retry policy for calls that don't override it
            sleep: Coroutine used to wait between attempts
        """
        self.default_policy = default_policy or RetryPolicy()
        self._sleep = sleep
        self._session: Optional[aiohttp.ClientSession] = None

    async def start(self) -> None:
        """Open the shared HTTP session."""
        if self._session:
            logger.info("FMCD client already started")
            return

        self._session = aiohttp.ClientSession()
        logger.info("FMCD client started")

    async def stop(self) -> None:
        """Close the shared HTTP session."""
        if not self._session:
            return

        await self._session.close()
        self._session = None
        logger.info("FMCD client stopped")

    def is_running(self) -> bool:
        return self._session is not None

    async def _send(
        self,
        method: str,
        url: str,
        headers: Dict[str, str],
        body: Optional[str],
        timeout: float,
    ) -> Tuple[int, str]:
        """Perform one HTTP exchange and return (status, body text).

        Raises:
            FmcdError: If the session is not initialized
            asyncio.TimeoutError: If the attempt exceeds ``timeout``
            aiohttp.ClientError: On connection failures
        """
        if not self._session:
            raise FmcdError("Session not initialized - call start() first")

        async with self._session.request(
            method,
            url,
            headers=headers,
            data=body,
            timeout=aiohttp.ClientTimeout(total=timeout),
        ) as response:
            text = await response.text()
            return response.status, text

    def _policy(
        self,
        max_retries: Optional[int],
        base_delay: Optional[float],
        timeout: Optional[float],
    ) -> RetryPolicy:
        default = self.default_policy
        return replace(
            default,
            max_attempts=max(1, max_retries if max_retries is not None else default.max_attempts),
            base_delay=base_delay if base_delay is not None else default.base_delay,
            base_timeout=timeout if timeout is not None else default.base_timeout,
        )

    async def _exchange(
        self,
        method: str,
        url: str,
        headers: Dict[str, str],
        payload: Optional[str],
        policy: RetryPolicy,
        tag: str,
    ) -> Tuple[Optional[int], str, Optional[BaseException]]:
        """Run the attempt loop shared by every call.

        Transport failures and retryable statuses are retried as the policy
        allows. Returns ``(status, text, None)`` for the first final response,
        or ``(None, "", error)`` once the transport has given up.

        Raises:
            FmcdError: If the session is not initialized
        """
        last_error: Optional[BaseException] = None

        for attempt in range(policy.max_attempts):
            logger.info(f"{tag} Attempt {attempt + 1}/{policy.max_attempts} - {method} {url}")

            try:
                status, text = await self._send(
                    method, url, headers, payload, policy.timeout_for(attempt)
                )
            except TRANSPORT_ERRORS as e:
                last_error = e
                if isinstance(e, asyncio.TimeoutError):
                    logger.error(f"{tag} Timeout on attempt {attempt + 1} for {url}")
                else:
                    logger.error(f"{tag} Error on attempt {attempt + 1}: {e}")

                if policy.is_retryable_error(e) and policy.can_retry(attempt):
                    delay = policy.backoff_for(attempt)
                    logger.info(f"{tag} Retrying in {delay}s...")
                    await self._sleep(delay)
                    continue
                break

            if policy.is_retryable_status(status) and policy.can_retry(attempt):
                logger.error(f"{tag} HTTP {status}: {text}")
                delay = policy.backoff_for(attempt)
                logger.info(f"{tag} Server error, retrying in {delay}s...")
                await self._sleep(delay)
                continue

            return status, text, None

        return None, "", last_error

    async def request(
        self,
        endpoint: str,
        config: DaemonConfig,
        method: str = "GET",
        body: Optional[Dict[str, Any]] = None,
        max_retries: Optional[int] = None,
        base_delay: Optional[float] = None,
        timeout: Optional[float] = None,
    ) -> RequestOutcome:
        """Make a request to FMCD with retries.

        Never raises; every failure is returned as a RequestOutcome carrying an
        HTTP-like status and a readable message.

        Args:
            endpoint: Path beginning with ``/``, e.g. ``/v2/admin/info``
            config: Team FMCD settings (base URL and password)
            method: HTTP method
            body: Optional JSON body
            max_retries: Total attempts, including the first
            base_delay: Backoff base in seconds, doubled per attempt
            timeout: First attempt timeout in seconds, +5s per retry

        Returns:
            The decoded JSON body or an error
        """
        policy = self._policy(max_retries, base_delay, timeout)
        try:
            return await self._request(endpoint, config, method, body, policy)
        except Exception as e:
            logger.exception(f"[FMCD Request] Unexpected error for {endpoint}: {e}")
            return RequestOutcome.failure(str(e) or "Unknown error", 500)

    async def _request(
        self,
        endpoint: str,
        config: DaemonConfig,
        method: str,
        body: Optional[Dict[str, Any]],
        policy: RetryPolicy,
    ) -> RequestOutcome:
        try:
            base_url = normalize_base_url(config.base_url)
        except ConfigurationError as e:
            logger.error(f"[FMCD Request] {e}")
            return RequestOutcome.failure(str(e), 500)

        url = f"{base_url}{endpoint}"
        headers = {
            "Authorization": create_auth_header(config.password),
            "Content-Type": "application/json",
            "Accept": "application/json",
        }
        payload = json.dumps(body) if body is not None else None

        try:
            status, text, last_error = await self._exchange(
                method, url, headers, payload, policy, "[FMCD Request]"
            )
        except FmcdError as e:
            logger.error(f"[FMCD Request] {e}")
            return RequestOutcome.failure(str(e), 500)

        if status is None:
            if isinstance(last_error, asyncio.TimeoutError):
                message = "Connection timeout - FMCD instance may be unreachable"
            else:
                message = str(last_error or "") or "Failed to connect to FMCD instance"

            logger.error(f"[FMCD Request] All retry attempts failed for {endpoint}: {message}")
            return RequestOutcome.failure(message, 503)

        if status == 401:
            logger.error(f"[FMCD Request] Authentication failed for {endpoint}")
            return RequestOutcome.failure(
                "Authentication failed. Please check your FMCD password.", 401
            )

        if status == 404:
            logger.error(f"[FMCD Request] Endpoint not found: {endpoint}")
            return RequestOutcome.failure(
                f"Endpoint {endpoint} not found. Please check your FMCD version.", 404
            )

        if not 200 <= status < 300:
            logger.error(f"[FMCD Request] HTTP {status}: {text}")
            return RequestOutcome.failure(f"FMCD error: {status} - {text}", status)

        try:
            data = json.loads(text)
        except ValueError:
            logger.error(f"[FMCD Request] Failed to parse JSON from {endpoint}: {text[:200]}")
            return RequestOutcome.failure("Invalid response format from FMCD", 502)

        logger.info(f"[FMCD Request] Successfully fetched {endpoint}")
        return RequestOutcome.success(data)

    async def get_info(self, config: DaemonConfig) -> RequestOutcome:
        """Get the federation info map keyed by federation id."""
        return await self.request("/v2/admin/info", config, max_retries=3, timeout=10.0)

    async def list_gateways(self, federation_id: str, config: DaemonConfig) -> RequestOutcome:
        return await self.request(
            "/v2/ln/gateways",
            config,
            method="POST",
            body={"federationId": federation_id},
            max_retries=2,
            timeout=5.0,
        )

    async def get_balance(self, federation_id: str, config: DaemonConfig) -> RequestOutcome:
        return await self.request(
            "/v2/fedimint/balance",
            config,
            method="POST",
            body={"federationId": federation_id},
            max_retries=2,
            timeout=5.0,
        )

    async def list_operations(
        self,
        federation_id: str,
        config: DaemonConfig,
        limit: int,
        timeout: float = 5.0,
    ) -> RequestOutcome:
        return await self.request(
            "/v2/admin/operations",
            config,
            method="POST",
            body={"federationId": federation_id, "limit": limit},
            max_retries=2,
            timeout=timeout,
        )

    async def create_onchain_address(
        self,
        config: DaemonConfig,
        federation_id: Optional[str] = None,
    ) -> RequestOutcome:
        """Generate a deposit address, optionally for one federation."""
        body: Dict[str, Any] = {}
        if federation_id:
            body["federationId"] = federation_id

        return await self.request(
            "/v2/onchain/address",
            config,
            method="POST",
            body=body,
            max_retries=3,
            timeout=15.0,
        )

    async def create_invoice(
        self,
        config: DaemonConfig,
        federation_id: str,
        amount_msat: int,
        description: str,
        gateway_id: Optional[str] = None,
        expiry_time: Optional[int] = None,
    ) -> RequestOutcome:
        """Create a Lightning invoice. Expiry defaults to one hour."""
        body: Dict[str, Any] = {
            "federationId": federation_id,
            "amountMsat": amount_msat,
            "description": description,
            "expiryTime": expiry_time or 3600,
        }
        if gateway_id:
            body["gatewayId"] = gateway_id

        return await self.request("/v2/ln/invoice", config, method="POST", body=body)

    async def pay_invoice(
        self,
        config: DaemonConfig,
        federation_id: str,
        payment_info: str,
        gateway_id: Optional[str] = None,
    ) -> RequestOutcome:
        body: Dict[str, Any] = {
            "federationId": federation_id,
            "paymentInfo": payment_info,
        }
        if gateway_id:
            body["gatewayId"] = gateway_id

        return await self.request("/v2/ln/pay", config, method="POST", body=body)

    async def join_federation(self, config: DaemonConfig, invite_code: str) -> RequestOutcome:
        """Join a federation. Joining can be slow, so the timeout is long."""
        return await self.request(
            "/v2/admin/join",
            config,
            method="POST",
            body={"inviteCode": invite_code.strip()},
            max_retries=3,
            timeout=30.0,
        )

    async def check_connection(self, base_url: str, password: str) -> ConnectionTestResult:
        """Check an FMCD instance with candidate settings.

        Makes up to two attempts (10s then 15s) against ``/v2/admin/info``,
        pausing one second between them, and reports a specific error for
        each way the check can fail.
        """
        try:
            normalized = normalize_base_url(base_url)
        except ConfigurationError:
            return ConnectionTestResult(
                is_connected=False,
                error="Invalid URL format",
                details="URL must start with http:// or https://",
            )

        url = f"{normalized}/v2/admin/info"
        headers = {
            "Authorization": create_auth_header(password),
            "Content-Type": "application/json",
            "Accept": "application/json",
        }
        logger.info(f"[FMCD Test] Testing connection to {url}")

        try:
            status, text, last_error = await self._exchange(
                "GET", url, headers, None, CONNECTION_CHECK_POLICY, "[FMCD Test]"
            )
        except FmcdError as e:
            return ConnectionTestResult(is_connected=False, error="Test failed", details=str(e))

        if status is None:
            if isinstance(last_error, asyncio.TimeoutError):
                logger.error("[FMCD Test] Connection timeout")
                return ConnectionTestResult(
                    is_connected=False,
                    error="Connection timeout",
                    details="Unable to reach FMCD instance. Please check the URL and network connectivity.",
                )

            logger.error(f"[FMCD Test] Connection error: {last_error}")
            return ConnectionTestResult(
                is_connected=False,
                error="Connection failed",
                details=str(last_error or "") or "Unknown error",
            )

        if status == 401:
            logger.error("[FMCD Test] Authentication failed")
            return ConnectionTestResult(
                is_connected=False,
                error="Authentication failed",
                details="Invalid password. Please check your FMCD credentials.",
            )

        if status == 404:
            logger.error("[FMCD Test] Endpoint not found")
            return ConnectionTestResult(
                is_connected=False,
                error="Endpoint not found",
                details="The /v2/admin/info endpoint was not found. Please check your FMCD version.",
            )

        if not 200 <= status < 300:
            logger.error(f"[FMCD Test] HTTP {status}: {text}")
            return ConnectionTestResult(is_connected=False, error=f"HTTP {status}", details=text)

        try:
            data = json.loads(text)
        except ValueError:
            logger.error(f"[FMCD Test] Failed to parse JSON: {text[:200]}")
            return ConnectionTestResult(
                is_connected=False,
                error="Invalid response format",
                details="FMCD returned non-JSON response",
            )

        federation_count = 0
        version = "Unknown"
        if isinstance(data, dict):
            federation_count = sum(1 for info in data.values() if isinstance(info, dict))
            version = str(data.get("version") or data.get("network") or "Unknown")
        logger.info(
            f"[FMCD Test] Connection successful - Version: {version}, Federations: {federation_count}"
        )
        return ConnectionTestResult(
            is_connected=True, version=version, federation_count=federation_count
        )

    async def __aenter__(self) -> "FmcdClient":
        await self.start()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.stop()
