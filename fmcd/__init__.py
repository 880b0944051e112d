"""FMCD integration: HTTP client, decoding and aggregation."""

from fmcd.client import FmcdClient, RetryPolicy, normalize_base_url, create_auth_header
from fmcd.decoder import decode_operation, extract_invoice_amount
from fmcd.aggregator import FederationAggregator
from fmcd.stats import bucketize, summarize, build_stats

__all__ = [
    "FmcdClient",
    "RetryPolicy",
    "normalize_base_url",
    "create_auth_header",
    "decode_operation",
    "extract_invoice_amount",
    "FederationAggregator",
    "bucketize",
    "summarize",
    "build_stats",
]
