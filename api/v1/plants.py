from fastapi import APIRouter, Depends, HTTPException, status

from api.deps import get_current_user, get_care_generator, get_plant_store
from core.exceptions import CareGenerationError, PersistenceError
from core.logger import app_logger
from schemas.plant import SavePlantRequest

router = APIRouter(prefix="/api/plants", tags=["Plants"])


@router.post("")
async def save_plant(
        req: SavePlantRequest,
        user_id: str = Depends(get_current_user),
        care=Depends(get_care_generator),
        store=Depends(get_plant_store),
):
    try:
        guidelines = await care.watering_guidelines(req.species)
    except CareGenerationError as e:
        app_logger.error(f"Error saving plant: {e}")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail={"error": "Failed to save plant data", "details": str(e)}
        )

    plant = await store.create_from_guidelines(user_id, req.species, str(req.imageUrl), guidelines)
    return {"id": str(plant.id), **guidelines.model_dump()}


@router.get("")
async def list_plants(
        user_id: str = Depends(get_current_user),
        store=Depends(get_plant_store),
):
    plants = await store.list(user_id)
    return [plant.to_dict() for plant in plants]


@router.delete("/{plant_id}")
async def delete_plant(
        plant_id: str,
        user_id: str = Depends(get_current_user),
        store=Depends(get_plant_store),
):
    try:
        deleted = await store.delete(user_id, plant_id)
    except PersistenceError as e:
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail={"error": "Failed to delete plant", "details": str(e)}
        )

    if not deleted:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Plant not found")

    return {"success": True, "message": "Plant deleted successfully"}
