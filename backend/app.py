from pathlib import Path

import httpx
from dotenv import load_dotenv
from fastapi import FastAPI

from backend.routes import public_router, router
from bloxfolio.config import Settings, load_settings
from bloxfolio.storage import Storage

load_dotenv(Path(__file__).parent.parent / ".env")


def create_app(
    settings: Settings | None = None,
    *,
    llm_transport: httpx.AsyncBaseTransport | None = None,
    stripe_transport: httpx.AsyncBaseTransport | None = None,
) -> FastAPI:
    resolved = settings or load_settings()

    app = FastAPI(title="Bloxfolio")
    app.state.settings = resolved
    app.state.storage = Storage(resolved.data_dir)
    app.state.llm_transport = llm_transport
    app.state.stripe_transport = stripe_transport

    app.include_router(router, prefix="/api")
    app.include_router(public_router)
    return app


# Default app instance for uvicorn (uses DATA_DIR env var or default)
app = create_app()
