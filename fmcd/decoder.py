"""Reconstruct transactions from FMCD operation records."""

import logging
import random
import re
from datetime import datetime, timezone
from typing import Any, Dict, Optional, Tuple

from core.types import Transaction, TransactionStatus, TransactionType
from fmcd.lenient import ensure_dict, ensure_int, ensure_str

logger = logging.getLogger(__name__)

# ln + network prefix (mainnet, testnet, signet, regtest) + amount + multiplier
INVOICE_AMOUNT_RE = re.compile(r"ln(bc|tb|tbs|bcrt)(\d+)([munp]?)")

FRACTION_RE = re.compile(r"\.(\d+)")

COMPLETED_OUTCOMES = {"claimed", "success", "completed"}
FAILED_OUTCOMES = {"failed", "canceled", "refunded"}
COMPLETED_OUTCOME_KEYS = ("Claimed", "Success", "Completed", "success", "completed", "claimed")
FAILED_OUTCOME_KEYS = ("canceled", "failed", "Failed", "Canceled", "refunded", "Refunded")


def extract_invoice_amount(invoice: str) -> int:
    """Extract the amount in msats encoded in a BOLT11 invoice.

    Only the human readable amount is parsed; the invoice is not validated.
    Returns 0 when no amount can be found.
    """
    match = INVOICE_AMOUNT_RE.search(invoice or "")
    if not match:
        logger.warning(f"Could not extract amount from invoice: {(invoice or '')[:20]}...")
        return 0

    amount = int(match.group(2))
    unit = match.group(3)

    if unit == "m":  # 1 mBTC = 100,000 sats
        return amount * 100_000_000
    if unit == "u":  # 1 uBTC = 100 sats
        return amount * 100_000
    if unit == "n":  # 1 nBTC = 0.1 sats
        return amount * 100
    if unit == "p":  # 1 pBTC = 0.1 msats
        return amount // 10
    # No multiplier means whole bitcoin
    return amount * 100_000_000_000


def _present(value: Any) -> bool:
    """Truthiness where an empty object still counts as present."""
    return isinstance(value, dict) or bool(value)


def resolve_status(outcome: Any) -> TransactionStatus:
    """Map an operation outcome onto a transaction status.

    Newer FMCD versions report string outcomes; older ones report objects
    keyed by the final state. Anything unrecognized is still pending.
    """
    if not outcome:
        return TransactionStatus.PENDING

    if isinstance(outcome, str):
        value = outcome.lower()
        if value in COMPLETED_OUTCOMES:
            return TransactionStatus.COMPLETED
        if value in FAILED_OUTCOMES:
            return TransactionStatus.FAILED
        return TransactionStatus.PENDING

    if isinstance(outcome, dict):
        if any(_present(outcome.get(key)) for key in COMPLETED_OUTCOME_KEYS):
            return TransactionStatus.COMPLETED
        if any(_present(outcome.get(key)) for key in FAILED_OUTCOME_KEYS):
            return TransactionStatus.FAILED

    return TransactionStatus.PENDING


def parse_timestamp(value: Any) -> datetime:
    """Parse ``creationTime`` (ISO-8601 string or epoch millis) as UTC."""
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        try:
            return datetime.fromtimestamp(value / 1000, tz=timezone.utc)
        except (OverflowError, OSError, ValueError):
            pass
    elif isinstance(value, str) and value:
        text = value.strip()
        if text.endswith("Z"):
            text = text[:-1] + "+00:00"
        # fromisoformat only takes 3 or 6 fractional digits before Python 3.11
        text = FRACTION_RE.sub(lambda m: "." + m.group(1).ljust(6, "0")[:6], text, count=1)
        try:
            parsed = datetime.fromisoformat(text)
        except ValueError:
            logger.debug(f"Unparseable creationTime {value!r}")
        else:
            if parsed.tzinfo is None:
                parsed = parsed.replace(tzinfo=timezone.utc)
            return parsed.astimezone(timezone.utc)

    return datetime.now(timezone.utc)


def _classify(
    kind: Any, variant: Dict[str, Any]
) -> Tuple[TransactionType, Optional[Dict[str, Any]]]:
    if kind == "ln":
        for key, tx_type in (
            ("receive", TransactionType.LIGHTNING_RECEIVE),
            ("pay", TransactionType.LIGHTNING_SEND),
            ("send", TransactionType.LIGHTNING_SEND),
        ):
            if _present(variant.get(key)):
                return tx_type, ensure_dict(variant[key])
    elif kind == "wallet":
        if _present(variant.get("deposit")):
            return TransactionType.ONCHAIN_RECEIVE, ensure_dict(variant["deposit"])
        if _present(variant.get("withdraw")):
            return TransactionType.ONCHAIN_SEND, ensure_dict(variant["withdraw"])

    logger.warning(
        f"Unrecognized operation kind {kind!r} with variant {sorted(variant)}, "
        f"defaulting to {TransactionType.ECASH_MINT.value}"
    )
    return TransactionType.ECASH_MINT, None


def decode_operation(
    raw: Dict[str, Any],
    federation_id: str,
    include_address: bool = False,
) -> Transaction:
    """Decode one raw operation record into a Transaction.

    Args:
        raw: Operation record from ``/v2/admin/operations``
        federation_id: Federation the record was fetched from
        include_address: Propagate on-chain addresses for display

    Returns:
        The reconstructed transaction; amount is 0 if undeterminable
    """
    raw = ensure_dict(raw)
    kind = raw.get("operationKind")
    meta = ensure_dict(raw.get("operationMeta"))
    variant = ensure_dict(meta.get("variant"))
    outcome = raw.get("outcome")
    outcome_obj = ensure_dict(outcome)

    tx_type, details = _classify(kind, variant)
    amount_msat = 0
    address: Optional[str] = None
    invoice: Optional[str] = None

    if tx_type in (TransactionType.LIGHTNING_RECEIVE, TransactionType.LIGHTNING_SEND):
        invoice = ensure_str(details.get("invoice")) or None
        if invoice:
            amount_msat = extract_invoice_amount(invoice)
        if amount_msat == 0:
            amount_msat = ensure_int(meta.get("amount_msat")) or ensure_int(
                outcome_obj.get("amount_msat")
            )

    elif tx_type == TransactionType.ONCHAIN_RECEIVE:
        if include_address:
            address = ensure_str(details.get("address")) or None
        claimed = ensure_dict(outcome_obj.get("Claimed"))
        amount_msat = ensure_int(claimed.get("btc_deposited")) * 1000

    elif tx_type == TransactionType.ONCHAIN_SEND:
        if include_address:
            address = ensure_str(details.get("address")) or None
        amount_sat = ensure_int(meta.get("amount_sat")) or ensure_int(details.get("amount_sat"))
        amount_msat = amount_sat * 1000

    status = resolve_status(outcome)

    if raw.get("id") is not None:
        tx_id = str(raw["id"])
    else:
        # Display-only placeholder, not stable across requests
        now_ms = int(datetime.now(timezone.utc).timestamp() * 1000)
        tx_id = f"{federation_id}-{now_ms}-{random.random()}"

    description = ensure_str(meta.get("description")) or ensure_str(kind) or "Transaction"

    logger.debug(
        f"Decoded operation {tx_id}: type={tx_type.value}, "
        f"amount={amount_msat}msats, status={status.value}"
    )

    return Transaction(
        id=tx_id,
        type=tx_type,
        amount_msat=amount_msat,
        timestamp=parse_timestamp(raw.get("creationTime")),
        status=status,
        federation_id=federation_id,
        description=description,
        address=address,
        invoice=invoice,
    )
