import logging
from typing import Optional

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from ..core.config import DeviceManagerConfig
from ..core.manager import DeviceManager
from ..devices.factory import create_devices
from . import devices, websocket

logger = logging.getLogger(__name__)


def init_app(
    manager: Optional[DeviceManager] = None,
    config: Optional[DeviceManagerConfig] = None,
) -> FastAPI:
    """Create and configure the FastAPI application"""
    app = FastAPI(
        title="lightsync Control API",
        description="Device status and frame delivery",
        version="0.1.0",
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.state.config = config or (
        manager.config if manager is not None else DeviceManagerConfig.create_default()
    )
    app.state.device_manager = manager
    app.state.startup_complete = False

    app.include_router(devices.router)
    app.include_router(websocket.router)

    @app.on_event("startup")
    async def startup_event():
        """Build devices and run the first initialization pass"""
        logger.info("Starting lightsync Control API")

        if app.state.device_manager is None:
            device_list = create_devices(app.state.config.devices)
            logger.info(f"Created {len(device_list)} devices from configuration")
            app.state.device_manager = DeviceManager(device_list, app.state.config)

        device_manager = app.state.device_manager
        if not device_manager.supervisor.initialize_completed:
            failed = await device_manager.initialize()
            if failed:
                logger.warning(f"{failed} devices failed to initialize, retrying in background")

        app.state.startup_complete = True
        logger.info("Startup complete")

    @app.on_event("shutdown")
    async def shutdown_event():
        """Shut devices down and stop background work"""
        logger.info("Shutting down lightsync Control API")
        device_manager = app.state.device_manager
        if device_manager is not None and not device_manager.closed:
            await device_manager.teardown()
            logger.info("Device manager stopped")

    @app.get("/health")
    async def health_check():
        """Health check endpoint"""
        device_manager = app.state.device_manager
        return {
            "status": "healthy" if app.state.startup_complete else "starting",
            "manager": device_manager is not None,
            "any_initialized": device_manager is not None
            and device_manager.any_initialized(),
        }

    return app


__all__ = ["init_app"]
