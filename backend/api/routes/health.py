"""
api/routes/health.py
--------------------
Health-check endpoint for load balancers and container probes.
"""
from __future__ import annotations

from fastapi import APIRouter

import config

router = APIRouter()


@router.get("/health", summary="Health check")
def health() -> dict:
    """200 OK while the service runs; reports which collaborators are configured."""
    return {
        "status":        "ok",
        "service":       "tour-route-optimizer",
        "stopStore":     config.STOP_STORE_BACKEND,
        "aiConfigured":  not config.USE_STUB_LLM,
        "cacheEnabled":  config.OPTIMIZATION_CACHE_ENABLED,
    }
