"""
Lightweight metrics collection for Scorecast.
Wraps prometheus_client with async-safe patterns.
"""
from __future__ import annotations

import time
from contextlib import asynccontextmanager
from typing import AsyncIterator

from prometheus_client import Counter, Gauge, Histogram, start_http_server

from shared.config import Settings, get_settings
from shared.utils.logging import get_logger

logger = get_logger(__name__)

# ── Counters ────────────────────────────────────────────────────────────
FEED_REQUESTS = Counter(
    "sc_feed_requests_total",
    "Total scoreboard feed HTTP requests",
    ["sport", "status"],
)
FEED_CACHE_HITS = Counter(
    "sc_feed_cache_hits_total",
    "Scoreboard reads served from the freshness cache",
    ["sport"],
)
POLL_CYCLES = Counter(
    "sc_poll_cycles_total",
    "Reconciliation cycles executed",
    ["trigger"],
)
RECONCILE_OUTCOMES = Counter(
    "sc_reconcile_outcomes_total",
    "Reconciliation outcomes by kind",
    ["kind"],
)
SPORT_GROUP_FAILURES = Counter(
    "sc_sport_group_failures_total",
    "Sport groups that could not be fully reconciled",
    ["sport", "status"],
)
MESSAGES_POSTED = Counter(
    "sc_messages_posted_total",
    "Chat messages persisted",
    ["kind"],
)
PUSH_FAILURES = Counter(
    "sc_push_failures_total",
    "Push notifications that failed delivery",
)

# ── Histograms ──────────────────────────────────────────────────────────
FEED_LATENCY = Histogram(
    "sc_feed_latency_seconds",
    "Scoreboard feed request latency in seconds",
    ["sport"],
    buckets=(0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0),
)
POLL_CYCLE_DURATION = Histogram(
    "sc_poll_cycle_seconds",
    "Wall time of one reconciliation cycle",
    buckets=(0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0, 30.0),
)

# ── Gauges ──────────────────────────────────────────────────────────────
ACTIVE_SUBSCRIPTIONS = Gauge(
    "sc_active_subscriptions",
    "Active game subscriptions seen by the last cycle",
)


@asynccontextmanager
async def atrack_latency(histogram: Histogram, **labels: str) -> AsyncIterator[None]:
    """Async context manager to track operation latency."""
    start = time.perf_counter()
    try:
        yield
    finally:
        elapsed = time.perf_counter() - start
        if labels:
            histogram.labels(**labels).observe(elapsed)
        else:
            histogram.observe(elapsed)


def start_metrics_server(port: int | None = None, settings: Settings | None = None) -> None:
    """Start the Prometheus metrics HTTP server."""
    settings = settings or get_settings()
    if not settings.metrics_enabled:
        return
    metrics_port = port or settings.metrics_port
    try:
        start_http_server(metrics_port)
        logger.info("metrics_server_started", port=metrics_port)
    except OSError as exc:
        logger.warning("metrics_server_failed", error=str(exc), port=metrics_port)
