"""
Fireside Backend — Health Check Route
=======================================

What:  Health check endpoint for monitoring and load balancer probes.
How:   Reports the Supabase circuit breaker state instead of probing the
       backend, so a health check never spends a request on Supabase.

    Status levels:
    - healthy:   circuit closed or half-open
    - degraded:  circuit open (calls to Supabase are failing fast)
"""

import logging
import time

from fastapi import APIRouter, Depends

from fireside import __version__
from fireside.schemas.content import HealthResponse
from fireside.state import AppState, get_app_state

logger = logging.getLogger(__name__)

router = APIRouter(tags=["Health"])

_start_time = time.time()


@router.get(
    "/health",
    response_model=HealthResponse,
    summary="Service health check",
)
async def health_check(state: AppState = Depends(get_app_state)) -> HealthResponse:
    circuit = state.circuit_breaker.state
    overall = "degraded" if circuit == state.circuit_breaker.OPEN else "healthy"
    if overall != "healthy":
        logger.warning("Health check: Supabase circuit is %s", circuit)

    return HealthResponse(
        status=overall,
        version=__version__,
        supabase=circuit,
        active_sessions=state.session_count,
        uptime_seconds=round(time.time() - _start_time, 2),
    )
