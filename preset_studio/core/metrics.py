"""
Prometheus Metrics for Observability

Tracks stage latency, source fetches, compositions and written artifacts.
The host process exposes them through get_metrics().
"""

import time
from contextlib import contextmanager

from prometheus_client import (
    Counter,
    Histogram,
    Info,
    generate_latest,
    CONTENT_TYPE_LATEST,
    REGISTRY
)

from preset_studio.core.config import settings

# =============================================================================
# Metrics Definitions
# =============================================================================

# Pipeline Latency - Per Stage
stage_latency_seconds = Histogram(
    "preset_studio_stage_latency_seconds",
    "Time spent in each pipeline stage",
    labelnames=["stage", "status"],
    buckets=[0.01, 0.05, 0.1, 0.5, 1.0, 2.5, 5.0, 10.0, 30.0, 60.0]
)

# Source Acquisition
source_fetches_total = Counter(
    "preset_studio_source_fetches_total",
    "Total number of resolved image sources",
    labelnames=["kind", "status"]
)

# Preset Compositions
compositions_total = Counter(
    "preset_studio_compositions_total",
    "Total number of preset compositions",
    labelnames=["preset", "status"]
)

# Output Artifacts
artifacts_written_total = Counter(
    "preset_studio_artifacts_written_total",
    "Total number of PNG artifacts written",
    labelnames=["tag"]
)

# Application Info
app_info = Info(
    "preset_studio_app",
    "Application information"
)


# =============================================================================
# Helper Functions
# =============================================================================

def set_app_info(version: str, environment: str):
    """Set application info metric."""
    app_info.info({
        "version": version,
        "environment": environment
    })


@contextmanager
def track_stage_latency(stage: str):
    """
    Context manager to track stage latency.
    
    Usage:
        with track_stage_latency("rembg"):
            # do work
    """
    start = time.perf_counter()
    status = "success"
    try:
        yield
    except BaseException:
        status = "error"
        raise
    finally:
        stage_latency_seconds.labels(stage=stage, status=status).observe(
            time.perf_counter() - start
        )


def record_source_fetch(kind: str, status: str):
    """Record a resolved source (kind: local or remote)."""
    source_fetches_total.labels(kind=kind, status=status).inc()


def record_composition(preset: str, status: str):
    """Record a preset composition outcome."""
    compositions_total.labels(preset=preset, status=status).inc()


def record_artifact_written(tag: str):
    """Record a PNG artifact written to disk."""
    artifacts_written_total.labels(tag=tag).inc()


def get_metrics() -> bytes:
    """Generate Prometheus metrics output."""
    return generate_latest(REGISTRY)


def get_metrics_content_type() -> str:
    """Get the content type for Prometheus metrics."""
    return CONTENT_TYPE_LATEST


# Initialize app info on module load
set_app_info(version=settings.APP_VERSION, environment=settings.ENVIRONMENT)
