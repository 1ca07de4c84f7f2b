"""Health check, provider selection, and connection check endpoints."""

import httpx
from fastapi import APIRouter, Depends, HTTPException

from worldbuilding.orchestrator import ProviderOrchestrator

from .deps import get_orchestrator
from .models import CheckConnectionBody, SetProviderBody

router = APIRouter()


@router.get("/health")
async def health():
    """Health check."""
    return {"status": "ok"}


@router.get("/provider")
async def get_provider(orchestrator: ProviderOrchestrator = Depends(get_orchestrator)):
    """Current preferred provider and whether it is reachable."""
    return {
        "service": orchestrator.preferred_service,
        "services": orchestrator.services,
        "available": await orchestrator.is_service_available(),
        "fallback_allowed": orchestrator.settings.fallback_allowed,
    }


@router.put("/provider")
async def set_provider(
    body: SetProviderBody,
    orchestrator: ProviderOrchestrator = Depends(get_orchestrator),
):
    """Switch the preferred provider."""
    if not orchestrator.set_preferred_service(body.service):
        raise HTTPException(400, f"Unknown AI service '{body.service}'")
    return {"service": orchestrator.preferred_service}


@router.post("/provider/initialize")
async def initialize_provider(orchestrator: ProviderOrchestrator = Depends(get_orchestrator)):
    """Probe the preferred provider and switch to the alternate if it is down."""
    return await orchestrator.initialize()


@router.post("/check-connection")
async def check_connection(body: CheckConnectionBody):
    """Quick reachability check against a local model server URL."""
    url = f"{body.provider_url.rstrip('/')}/api/tags"
    try:
        async with httpx.AsyncClient(timeout=5) as client:
            resp = await client.get(url)
            resp.raise_for_status()
        return {"ok": True}
    except httpx.HTTPError:
        return {"ok": False}
