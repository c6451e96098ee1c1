from pydantic import BaseModel, Field
from typing import Optional
from datetime import datetime
from uuid import UUID
from sensorboard.schemas.reading import ReadingInDB

class SensorBase(BaseModel):
    name: str = Field(..., min_length=1)
    unit: Optional[str] = ""
    type: Optional[str] = "generic"

class SensorCreate(SensorBase):
    pass

class SensorInDB(SensorBase):
    id: UUID
    device_id: UUID
    created_at: Optional[datetime] = None

    class Config:
        from_attributes = True

class SensorWithLatest(SensorInDB):
    latest_reading: Optional[ReadingInDB] = None
