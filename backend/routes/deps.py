"""Shared FastAPI dependencies."""

from fastapi import Request

from worldbuilding.orchestrator import ProviderOrchestrator


def get_orchestrator(request: Request) -> ProviderOrchestrator:
    """The process-wide orchestrator built by create_app()."""
    return request.app.state.orchestrator
