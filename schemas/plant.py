from typing import Optional

from pydantic import BaseModel, Field, HttpUrl


class SavePlantRequest(BaseModel):
    species: str = Field(..., min_length=1)
    imageUrl: HttpUrl


class MoistureUpdateRequest(BaseModel):
    currentVWC: float = Field(..., ge=0, le=100)
    userId: str = Field(..., min_length=1)
    watered: bool = False


class MoistureReading(BaseModel):
    minVWC: Optional[float] = None
    maxVWC: Optional[float] = None
    optimalVWC: Optional[float] = None
    wateringThreshold: Optional[float] = None
    currentVWC: float = 0
    lastWatered: Optional[str] = None
    species: Optional[str] = None
    commonName: Optional[str] = None
