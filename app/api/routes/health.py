from __future__ import annotations

import time

import psutil
from fastapi import APIRouter

from app.utils.clock import utc_now_iso

router = APIRouter(tags=["Health"])

SERVICE_MESSAGE = "Universal Backend Online"
SERVICE_VERSION = "2.0.0"

_BYTES_PER_MIB = 1024 * 1024


def _memory_usage_mib() -> dict[str, int]:
    """Resident (used) and virtual (total) memory of this process in MiB."""

    info = psutil.Process().memory_info()
    return {
        "used": round(info.rss / _BYTES_PER_MIB),
        "total": round(info.vms / _BYTES_PER_MIB),
    }


def _uptime_seconds() -> int:
    return int(time.time() - psutil.Process().create_time())


@router.get("/")
def service_status() -> dict:
    """Service identity, uptime and memory usage of the gateway process."""

    return {
        "message": SERVICE_MESSAGE,
        "status": "healthy",
        "uptime": _uptime_seconds(),
        "memory": _memory_usage_mib(),
        "timestamp": utc_now_iso(),
        "version": SERVICE_VERSION,
    }


@router.get("/health")
def health_check() -> dict:
    """Health check endpoint.

    Used by load balancers and monitoring systems. The storage indicator is
    static: the connection is verified once at startup, not per request.

    Returns:
        dict: Fixed healthy status, database indicator and timestamp.
    """

    return {
        "status": "healthy",
        "database": "connected",
        "timestamp": utc_now_iso(),
    }
