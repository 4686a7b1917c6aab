from pydantic import BaseModel, Field, model_validator


class SoilMoisture(BaseModel):
    minVWC: float = Field(..., ge=0, le=100)
    maxVWC: float = Field(..., ge=0, le=100)
    optimalVWC: float = Field(..., ge=0, le=100)
    wateringThreshold: float = Field(..., ge=0, le=100)

    @model_validator(mode="after")
    def check_ordering(self):
        if not self.minVWC <= self.optimalVWC <= self.maxVWC:
            raise ValueError("expected minVWC <= optimalVWC <= maxVWC")
        if not self.minVWC <= self.wateringThreshold <= self.optimalVWC:
            raise ValueError("wateringThreshold must lie between minVWC and optimalVWC")
        return self


class CareInstructions(BaseModel):
    watering: str
    light: str
    temperature: str
    humidity: str
    soil: str
    fertilizer: str
    soilMoisture: SoilMoisture


class WateringGuidelines(BaseModel):
    minVWC: float = Field(..., ge=0, le=100)
    maxVWC: float = Field(..., ge=0, le=100)
    waterIntervalDays: int = Field(..., ge=1)
