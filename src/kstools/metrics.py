"""Prometheus metrics for kstools."""

from __future__ import annotations

import time
from contextlib import contextmanager
from typing import Generator

from prometheus_client import CONTENT_TYPE_LATEST, Counter, Histogram, Info, generate_latest

from kstools import __version__

# -----------------------------------------------------------------------------
# Application Info
# -----------------------------------------------------------------------------

APP_INFO = Info(
    "kstools",
    "Keystore tools information",
)
APP_INFO.info({
    "version": __version__,
})

# -----------------------------------------------------------------------------
# Conversion Metrics
# -----------------------------------------------------------------------------

CONVERSIONS = Counter(
    "kstools_conversions_total",
    "Total keystore conversions attempted",
    ["status"],
)

ENTRIES_COPIED = Counter(
    "kstools_entries_copied_total",
    "Key entries copied into destination keystores",
    ["dest_format"],
)

ENTRIES_SKIPPED = Counter(
    "kstools_entries_skipped_total",
    "Trust-only entries skipped during conversion",
)

CONVERSION_DURATION = Histogram(
    "kstools_conversion_duration_seconds",
    "Time spent converting keystores",
    ["dest_format"],
    buckets=[0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0],
)

# -----------------------------------------------------------------------------
# TLS Metrics
# -----------------------------------------------------------------------------

TLS_CONNECTIONS = Counter(
    "kstools_tls_connections_total",
    "Client TLS connection attempts",
    ["status"],
)

TLS_CONNECT_DURATION = Histogram(
    "kstools_tls_connect_duration_seconds",
    "Time spent connecting and handshaking",
    buckets=[0.01, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0],
)

# -----------------------------------------------------------------------------
# Error Metrics
# -----------------------------------------------------------------------------

ERRORS = Counter(
    "kstools_errors_total",
    "Total errors",
    ["type", "operation"],
)

# -----------------------------------------------------------------------------
# Helper Functions
# -----------------------------------------------------------------------------


def get_metrics() -> bytes:
    """Generate Prometheus metrics output."""
    return generate_latest()


def get_metrics_content_type() -> str:
    return CONTENT_TYPE_LATEST


@contextmanager
def track_conversion_duration(dest_format: str) -> Generator[None, None, None]:
    """Context manager to track keystore conversion duration."""
    start_time = time.perf_counter()
    try:
        yield
    finally:
        CONVERSION_DURATION.labels(dest_format=dest_format).observe(
            time.perf_counter() - start_time
        )


@contextmanager
def track_connect_duration() -> Generator[None, None, None]:
    """Context manager to track TLS connect and handshake duration."""
    start_time = time.perf_counter()
    try:
        yield
    finally:
        TLS_CONNECT_DURATION.observe(time.perf_counter() - start_time)


def record_conversion(success: bool) -> None:
    """Record a conversion attempt."""
    CONVERSIONS.labels(status="success" if success else "failure").inc()


def record_entries_copied(dest_format: str, count: int) -> None:
    ENTRIES_COPIED.labels(dest_format=dest_format).inc(count)


def record_entries_skipped(count: int) -> None:
    ENTRIES_SKIPPED.inc(count)


def record_tls_connection(success: bool) -> None:
    """Record a client TLS connection attempt."""
    TLS_CONNECTIONS.labels(status="success" if success else "failure").inc()


def record_error(error_type: str, operation: str) -> None:
    """Record an error."""
    ERRORS.labels(type=error_type, operation=operation).inc()
