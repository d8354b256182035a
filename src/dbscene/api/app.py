import logging
from typing import Optional

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from ..core.config import SystemConfig
from ..core.control import BridgeController
from . import control, websocket
from .websocket import ConnectionManager

logger = logging.getLogger(__name__)


def init_app(
    controller: Optional[BridgeController] = None,
    config: Optional[SystemConfig] = None,
) -> FastAPI:
    """Create and configure the FastAPI application

    A controller passed in is assumed to be managed by the caller. Otherwise
    one is created from ``config`` on startup and stopped on shutdown.
    """
    app = FastAPI(
        title="dbscene Control API",
        description="DS100 to QLab scene bridge",
        version="0.1.0",
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.state.controller = controller
    app.state.startup_complete = controller is not None
    app.state.owns_controller = controller is None
    app.state.connections = ConnectionManager()
    if controller is not None:
        controller.subscribe(app.state.connections.on_cache_change)

    app.include_router(control.router)
    app.include_router(websocket.router)

    @app.on_event("startup")
    async def startup_event():
        """Initialize the bridge on startup"""
        if app.state.controller is not None:
            return
        logger.info("Starting dbscene Control API")
        try:
            bridge = BridgeController(config or SystemConfig.create_default())
            await bridge.start()
        except Exception as e:
            logger.error(f"Failed to initialize bridge: {e}")
            raise
        bridge.subscribe(app.state.connections.on_cache_change)
        app.state.controller = bridge
        app.state.startup_complete = True
        logger.info("Startup complete")

    @app.on_event("shutdown")
    async def shutdown_event():
        """Clean up resources on shutdown"""
        bridge = app.state.controller
        if bridge is None:
            return
        bridge.unsubscribe(app.state.connections.on_cache_change)
        if app.state.owns_controller:
            logger.info("Shutting down dbscene Control API")
            try:
                await bridge.stop()
            except Exception as e:
                logger.error(f"Error during shutdown: {e}")
            finally:
                app.state.controller = None
                app.state.startup_complete = False

    @app.get("/health")
    async def health_check():
        """Health check endpoint"""
        bridge = app.state.controller
        return {
            "status": "healthy" if app.state.startup_complete else "starting",
            "controller": bridge is not None,
            "bridge_running": bridge.is_running if bridge else False,
        }

    return app


__all__ = ["init_app"]
