"""
Metrics module for observability.

Provides counters, gauges, and histograms for tracking ingestion and watchers.
Exposes metrics in Prometheus text format.
"""

from .registry import (
    REGISTRY,
    block_failures,
    block_put_time,
    blocks_finalized,
    blocks_ingested,
    chain_head,
    generate_metrics,
    missing_blocks,
    watcher_failures,
    watcher_records,
)

__all__ = [
    "REGISTRY",
    "block_failures",
    "block_put_time",
    "blocks_finalized",
    "blocks_ingested",
    "chain_head",
    "generate_metrics",
    "missing_blocks",
    "watcher_failures",
    "watcher_records",
]
