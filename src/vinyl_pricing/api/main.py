from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from .. import __version__
from ..config.logging import init_logging
from .errors import register_exception_handlers
from .policy_api import router as policy_router
from .pricing_api import router as pricing_router
from .state import Components, build_components


def create_app(components: Optional[Components] = None) -> FastAPI:
    """Build the API; components are created on startup unless supplied."""

    @asynccontextmanager
    async def lifespan(application: FastAPI):
        if getattr(application.state, "components", None) is None:
            application.state.components = build_components()
        yield

    application = FastAPI(
        title="Vinyl Pricing API",
        description="Buy offers, sell prices, markdowns and pricing policy administration",
        version=__version__,
        lifespan=lifespan,
    )
    if components is not None:
        application.state.components = components

    # Enable CORS for frontend development
    application.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=False,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    register_exception_handlers(application)

    application.include_router(policy_router)
    application.include_router(pricing_router)

    @application.get("/health")
    async def health():
        return {"ok": True}

    return application


# Configure logging on import so module loggers behave from the first request
init_logging(root_level="INFO", third_party_level="WARNING")

app = create_app()
