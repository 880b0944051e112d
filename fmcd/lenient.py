"""Lenient decoding of FMCD JSON responses.

FMCD responses are loosely typed. Every response shape the dashboard consumes
goes through one function here, which coerces it into typed values with safe
defaults instead of failing. Nothing in this module raises on bad input.
"""

import logging
import math
from typing import Any, Dict, List, Optional

from core.types import FederationSummary, GatewayInfo

logger = logging.getLogger(__name__)


def ensure_int(value: Any, default: int = 0) -> int:
    """Return ``value`` as an int if it is a finite number, else ``default``."""
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return default
    if isinstance(value, float) and not math.isfinite(value):
        return default
    return int(value)


def ensure_list(value: Any) -> List[Any]:
    return value if isinstance(value, list) else []


def ensure_dict(value: Any, default: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
    if isinstance(value, dict):
        return value
    return {} if default is None else default


def ensure_str(value: Any, default: str = "") -> str:
    return value if isinstance(value, str) and value else default


def decode_federation_info(raw: Any) -> List[FederationSummary]:
    """Decode ``GET /v2/admin/info``.

    The daemon returns a map of federation id to info, not a list. Entries that
    are not objects are skipped.
    """
    federations = []
    for federation_id, info in ensure_dict(raw).items():
        if not isinstance(info, dict):
            logger.debug(f"Skipping malformed info entry for {federation_id}")
            continue

        meta = ensure_dict(info.get("meta"))
        federations.append(FederationSummary(
            federation_id=federation_id,
            balance_msat=ensure_int(info.get("totalAmountMsat")),
            name=ensure_str(meta.get("federation_name"), "Unknown Federation"),
            network=ensure_str(info.get("network"), "unknown"),
            meta=meta,
        ))
    return federations


def decode_gateways(raw: Any) -> List[GatewayInfo]:
    """Decode ``POST /v2/ln/gateways`` (an array of gateway records)."""
    gateways = []
    for record in ensure_list(raw):
        record = ensure_dict(record)
        info = ensure_dict(record.get("info"))
        fees = ensure_dict(info.get("fees"))
        gateways.append(GatewayInfo(
            gateway_id=ensure_str(info.get("gateway_id")),
            node_pub_key=ensure_str(info.get("node_pub_key")),
            api=ensure_str(info.get("api")),
            base_msat=ensure_int(fees.get("base_msat")),
            proportional_millionths=ensure_int(fees.get("proportional_millionths")),
            lightning_alias=ensure_str(info.get("lightning_alias")),
            mint_channel_id=ensure_int(info.get("mint_channel_id")),
            supports_private_payments=bool(info.get("supports_private_payments", False)),
            vetted=bool(record.get("vetted", False)),
        ))
    return gateways


def decode_balance(raw: Any) -> Optional[int]:
    """Decode ``POST /v2/fedimint/balance``.

    The daemon answers either with a bare number or ``{"balance_msat": n}``.
    Returns None when neither shape is present so callers can fall back.
    """
    if isinstance(raw, (int, float)) and not isinstance(raw, bool):
        return ensure_int(raw)
    if isinstance(raw, dict) and "balance_msat" in raw:
        return ensure_int(raw.get("balance_msat"))
    return None


def decode_operations(raw: Any) -> List[Dict[str, Any]]:
    """Decode ``POST /v2/admin/operations`` into a list of raw records."""
    return [op for op in ensure_list(ensure_dict(raw).get("operations")) if isinstance(op, dict)]


def decode_address(raw: Any) -> Dict[str, Optional[str]]:
    """Decode ``POST /v2/onchain/address``."""
    data = ensure_dict(raw)
    return {
        "address": ensure_str(data.get("address")) or None,
        "operation_id": ensure_str(data.get("operationId")) or None,
    }
