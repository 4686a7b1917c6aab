from fastapi import APIRouter, Depends, HTTPException, status

from api.deps import get_plant_store
from schemas.plant import MoistureUpdateRequest, MoistureReading

# called by the watering device itself, which has no user session
router = APIRouter(prefix="/api/plants", tags=["Moisture"])


@router.post("/{plant_id}/moisture")
async def update_moisture(
        plant_id: str,
        req: MoistureUpdateRequest,
        store=Depends(get_plant_store),
):
    plant = await store.update_moisture(req.userId, plant_id, req.currentVWC, req.watered)
    if plant is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Plant not found")

    return {
        "success": True,
        "message": "Moisture level updated successfully",
        "currentVWC": req.currentVWC,
    }


@router.get("/{plant_id}/moisture/{user_id}", response_model=MoistureReading)
async def get_moisture(
        plant_id: str,
        user_id: str,
        store=Depends(get_plant_store),
):
    reading = await store.read_moisture(user_id, plant_id)
    if reading is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Plant not found")
    return reading
