import logging
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from credit_ledger import __version__
from credit_ledger.core.config import get_settings
from credit_ledger.core.container import ApplicationContainer, build_container
from credit_ledger.interfaces.http.errors import install_error_handlers
from credit_ledger.interfaces.http.routers import create_api_router
from credit_ledger.interfaces.ws import router as websocket_router
from credit_ledger.interfaces.ws.manager import ConnectionManager


@asynccontextmanager
async def lifespan(app: FastAPI):
    container: ApplicationContainer = app.state.container
    await container.init_infrastructure()
    try:
        yield
    finally:
        await app.state.ws_manager.close_all()
        await container.shutdown()


def create_app(container: Optional[ApplicationContainer] = None) -> FastAPI:
    container = container or build_container(get_settings())
    settings = container.settings
    logging.basicConfig(
        level=settings.log_level.upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    app = FastAPI(
        title=settings.project_name,
        description="Multi-wallet credit ledger with cash requests and peer-to-peer loans",
        version=__version__,
        lifespan=lifespan,
    )
    app.state.container = container
    app.state.ws_manager = ConnectionManager(
        container.feed,
        timeout=settings.ws_timeout,
        check_interval=settings.ws_heartbeat_interval,
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    install_error_handlers(app)

    app.include_router(create_api_router(settings.api_prefix))
    app.include_router(websocket_router.router)

    @app.get("/health", tags=["health"])
    async def health() -> dict:
        return {"success": True, "status": "ok", "version": __version__}

    return app
