"""
Metric registry using prometheus_client.

Provides pre-defined metrics for the ingestion pipeline.
Exposes metrics in Prometheus text format via `generate_metrics()`.
"""

from __future__ import annotations

from prometheus_client import (
    CollectorRegistry,
    Counter,
    Gauge,
    Histogram,
    generate_latest,
)

# Create a dedicated registry for ledger-sync metrics.
#
# Using a dedicated registry avoids pollution from default Python process metrics.
REGISTRY = CollectorRegistry()

# -----------------------------------------------------------------------------
# Chain Position
# -----------------------------------------------------------------------------

chain_head = Gauge(
    "ledger_chain_head",
    "Latest block number reported by the chain reader",
    registry=REGISTRY,
)

missing_blocks = Gauge(
    "ledger_missing_blocks",
    "Missing block numbers found by the last gap scan (capped at the page size)",
    registry=REGISTRY,
)

# -----------------------------------------------------------------------------
# Ingestion
# -----------------------------------------------------------------------------

blocks_ingested = Counter(
    "ledger_blocks_ingested_total",
    "Blocks fetched and written to storage",
    registry=REGISTRY,
)

block_failures = Counter(
    "ledger_block_failures_total",
    "Blocks that failed to ingest, by error kind",
    ["kind"],
    registry=REGISTRY,
)

block_put_time = Histogram(
    "ledger_block_put_seconds",
    "Duration of a single block write",
    buckets=(0.001, 0.005, 0.01, 0.025, 0.05, 0.1, 0.25, 1.0),
    registry=REGISTRY,
)

blocks_finalized = Counter(
    "ledger_blocks_finalized_total",
    "Blocks moved from pending to final",
    registry=REGISTRY,
)

# -----------------------------------------------------------------------------
# Watchers
# -----------------------------------------------------------------------------

watcher_records = Counter(
    "ledger_watcher_records_total",
    "Derived records written by watchers",
    ["watcher"],
    registry=REGISTRY,
)

watcher_failures = Counter(
    "ledger_watcher_failures_total",
    "Watcher observations that failed, by watcher and error kind",
    ["watcher", "kind"],
    registry=REGISTRY,
)


def generate_metrics() -> bytes:
    """
    Generate Prometheus metrics output.

    Returns:
        Prometheus text format output as bytes.
    """
    return generate_latest(REGISTRY)
