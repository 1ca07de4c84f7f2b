import os
from pathlib import Path

from dotenv import load_dotenv
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from backend import mcp_server
from backend.routes import gateway_router, router
from worldbuilding.config import ProviderSettings
from worldbuilding.orchestrator import ProviderOrchestrator

load_dotenv(Path(__file__).parent.parent / ".env")

DEFAULT_ORIGINS = "http://localhost:3000"


def create_app(
    settings: ProviderSettings | None = None,
    orchestrator: ProviderOrchestrator | None = None,
) -> FastAPI:
    if orchestrator is None:
        orchestrator = ProviderOrchestrator(
            settings or ProviderSettings.from_env(),
            memory=mcp_server.get_memory_store(),
        )

    app = FastAPI(title="Worldbuilding Studio")
    app.state.orchestrator = orchestrator

    origins = os.getenv("CORS_ORIGINS", DEFAULT_ORIGINS).split(",")
    app.add_middleware(
        CORSMiddleware,
        allow_origins=[o.strip() for o in origins if o.strip()],
        allow_origin_regex=r"https://.*\.vercel\.app",
        allow_credentials=True,
        allow_methods=["GET", "POST", "PUT", "OPTIONS"],
        allow_headers=["Content-Type", "Accept", "Authorization"],
    )

    # Gateway first: its /api/chat must not be shadowed by the /api router.
    app.include_router(gateway_router)
    app.include_router(router, prefix="/api")
    return app


# Default app instance for uvicorn (settings from environment / .env)
app = create_app()
