from typing import List, Optional

from fastapi import APIRouter, Depends, File, HTTPException, UploadFile, status

from api.deps import get_current_user, get_identifier, get_care_generator
from core.exceptions import ImageSizeError, ImageProcessingError, IdentificationError
from core.logger import app_logger
from services.usage import UsageService

router = APIRouter(prefix="/api", tags=["Identify"])

MAX_IMAGES = 5


@router.post("/identify")
async def identify_plant(
        images: Optional[List[UploadFile]] = File(None),
        user_id: str = Depends(get_current_user),
        identifier=Depends(get_identifier),
):
    if not images:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="No images provided")
    if len(images) > MAX_IMAGES:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"Too many images. Please upload at most {MAX_IMAGES}."
        )

    await UsageService.check_and_record_identify(user_id)

    contents = [await image.read() for image in images]
    app_logger.info(f"Identify request from {user_id}: {[len(c) for c in contents]} bytes")

    try:
        return await identifier.identify_and_save(contents, user_id)
    except ImageSizeError as e:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail={"error": "Invalid image", "details": str(e)}
        )
    except ImageProcessingError as e:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail={"error": "Failed to process image", "details": str(e)}
        )
    except IdentificationError as e:
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail={"error": "Failed to identify plant", "details": str(e)}
        )


@router.get("/plant/{species}/care")
async def get_plant_care(
        species: str,
        user_id: str = Depends(get_current_user),
        care=Depends(get_care_generator),
):
    instructions = await care.generate(species)
    return instructions.model_dump()
