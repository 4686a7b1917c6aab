from fastapi import APIRouter, Depends, HTTPException, status

from api.deps import get_current_user, get_plant_store, get_device_bridge
from core.exceptions import DeviceError
from core.logger import device_logger
from schemas.device import ConnectDeviceRequest
from services.device_bridge import resolve_thresholds

router = APIRouter(prefix="/api", tags=["Devices"])


@router.post("/plants/{plant_id}/connect-device")
async def connect_device(
        plant_id: str,
        req: ConnectDeviceRequest,
        user_id: str = Depends(get_current_user),
        store=Depends(get_plant_store),
        devices=Depends(get_device_bridge),
):
    plant = await store.get(user_id, plant_id)
    if plant is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Plant not found")

    device_ip = str(req.deviceIP)
    values = resolve_thresholds(plant.to_dict())

    try:
        await devices.configure(device_ip, req.devicePort, values)
    except DeviceError as e:
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail={"error": "Failed to connect to device", "details": str(e)}
        )

    await store.mark_connected(user_id, plant, device_ip, req.devicePort)

    return {
        "success": True,
        "message": "Device connected successfully",
        "deviceIP": device_ip,
        "moistureValues": values,
    }


@router.post("/plants/{plant_id}/disconnect-device")
async def disconnect_device(
        plant_id: str,
        user_id: str = Depends(get_current_user),
        store=Depends(get_plant_store),
):
    plant = await store.mark_disconnected(user_id, plant_id)
    if plant is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Plant not found")

    device_logger.log_disconnect(user_id, plant_id)
    return {"success": True, "message": "Device disconnected successfully"}


@router.get("/discover-devices")
async def discover_devices(
        user_id: str = Depends(get_current_user),
        devices=Depends(get_device_bridge),
):
    found = await devices.discover()
    return {
        "devices": [device.model_dump() for device in found],
        "message": f"Found {len(found)} device(s) on the network",
    }
