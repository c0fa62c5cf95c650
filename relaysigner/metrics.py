"""Prometheus metrics for relaysigner.

All metrics live on a dedicated registry so that embedding applications can
expose them alongside their own, or scrape them via get_metrics_output().
"""

from __future__ import annotations

import logging

from prometheus_client import (
    CONTENT_TYPE_LATEST,
    CollectorRegistry,
    Counter,
    Gauge,
    Histogram,
    Info,
    generate_latest,
)

from . import __version__

logger = logging.getLogger(__name__)

REGISTRY = CollectorRegistry()

APP_INFO = Info(
    "relaysigner_build_info",
    "Build information about relaysigner",
    registry=REGISTRY,
)
APP_INFO.info({"version": __version__, "name": "relaysigner"})

# Signing metrics
SIGNING_REQUESTS_TOTAL = Counter(
    "signing_requests_total",
    "Total number of signing requests",
    ["scheme", "signer"],
    registry=REGISTRY,
)

SIGNING_DURATION_SECONDS = Histogram(
    "signing_duration_seconds",
    "Time spent producing and verifying signatures",
    ["scheme"],
    buckets=[0.0001, 0.0005, 0.001, 0.005, 0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0, 5.0],
    registry=REGISTRY,
)

SIGNING_ERRORS_TOTAL = Counter(
    "signing_errors_total",
    "Total number of signing errors",
    ["error_type"],
    registry=REGISTRY,
)

# Account metrics
ACCOUNTS_LOADED = Gauge(
    "accounts_loaded",
    "Number of locally-held accounts",
    registry=REGISTRY,
)


def get_metrics_output() -> bytes:
    """Generate Prometheus-formatted metrics output."""
    return generate_latest(REGISTRY)


def get_metrics_content_type() -> str:
    """Get the content type for Prometheus metrics."""
    return CONTENT_TYPE_LATEST
