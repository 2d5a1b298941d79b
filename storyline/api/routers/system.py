"""
System API router for storyline.

Routes defined at root level:
- GET /health - Health check endpoint
- GET /cache/stats - Listing cache availability and key counts
"""

import logging
from datetime import datetime, timezone

from fastapi import APIRouter, Depends

from storyline import __version__
from storyline.api.dependencies import get_cache_gateway
from storyline.api.responses import CacheStatsResponse, HealthCheckResponse
from storyline.services import StoryCacheGateway

logger = logging.getLogger(__name__)

router = APIRouter()


@router.get("/health", response_model=HealthCheckResponse)
async def health_check() -> HealthCheckResponse:
    """Health check endpoint."""
    return HealthCheckResponse(
        status="healthy",
        version=__version__,
        timestamp=datetime.now(timezone.utc),
    )


@router.get("/cache/stats", response_model=CacheStatsResponse)
async def cache_stats(
    gateway: StoryCacheGateway = Depends(get_cache_gateway),
) -> CacheStatsResponse:
    stats = await gateway.stats()
    logger.debug("Cache stats requested", extra=stats)
    return CacheStatsResponse(**stats)
