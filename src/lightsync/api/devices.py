import logging

from fastapi import APIRouter, Depends, HTTPException, Request

from ..common.exceptions import ValidationError
from ..core.manager import DeviceManager
from .models import (
    BaseResponse,
    DevicesResponse,
    FrameRequest,
    FrameResponse,
    InitializeResponse,
)

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/api", tags=["devices"])


def get_manager(request: Request) -> DeviceManager:
    """Dependency injection for the device manager"""
    manager = getattr(request.app.state, "device_manager", None)
    if manager is None or manager.closed:
        raise HTTPException(
            status_code=503,
            detail="Device manager not initialized. Please try again in a moment.",
        )
    return manager


@router.get("/devices", response_model=DevicesResponse)
async def get_devices(manager: DeviceManager = Depends(get_manager)):
    """Get status of every registered device"""
    state = manager.get_state()
    return DevicesResponse(
        any_initialized=state["any_initialized"],
        remaining_retry_attempts=state["remaining_retry_attempts"],
        retry=state["retry"],
        devices=state["devices"],
        status_report=manager.status_report(),
    )


@router.post("/devices/initialize", response_model=InitializeResponse)
async def initialize_devices(manager: DeviceManager = Depends(get_manager)):
    """Run an initialization pass over all devices"""
    failed = await manager.initialize()
    initialized = [device.name for device in manager.get_initialized_devices()]
    return InitializeResponse(
        status="success" if failed == 0 else "partial",
        message=f"{len(initialized)} devices initialized, {failed} failed",
        failed=failed,
        initialized=initialized,
    )


@router.post("/devices/shutdown", response_model=BaseResponse)
async def shutdown_devices(manager: DeviceManager = Depends(get_manager)):
    """Shut down every initialized device"""
    await manager.shutdown()
    return BaseResponse(status="success", message="Devices shut down")


@router.post("/devices/reset", response_model=BaseResponse)
async def reset_devices(manager: DeviceManager = Depends(get_manager)):
    """Reset every initialized device"""
    await manager.reset_devices()
    return BaseResponse(status="success", message="Devices reset")


@router.post("/devices/types/{device_type}/disable", response_model=BaseResponse)
async def disable_device_type(
    device_type: str, manager: DeviceManager = Depends(get_manager)
):
    """Disable a device type; running devices of it are shut down on the next frame"""
    manager.config.disable_device(device_type)
    return BaseResponse(status="success", message=f"Device type '{device_type}' disabled")


@router.post("/devices/types/{device_type}/enable", response_model=BaseResponse)
async def enable_device_type(
    device_type: str, manager: DeviceManager = Depends(get_manager)
):
    """Re-enable a device type. It comes online on the next initialization pass"""
    manager.config.enable_device(device_type)
    return BaseResponse(status="success", message=f"Device type '{device_type}' enabled")


@router.post("/frame", response_model=FrameResponse)
async def push_frame(request: FrameRequest, manager: DeviceManager = Depends(get_manager)):
    """Send one frame to every initialized device"""
    try:
        composition = request.to_composition()
    except ValidationError as e:
        raise HTTPException(status_code=422, detail=str(e))

    dispatched = manager.update_devices(composition, forced=request.forced)
    return FrameResponse(
        status="success",
        message=f"Frame {composition.sequence} dispatched",
        dispatched=dispatched,
    )
