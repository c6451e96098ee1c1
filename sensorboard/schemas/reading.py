from pydantic import BaseModel
from typing import Optional
from datetime import datetime
from uuid import UUID

class ReadingInDB(BaseModel):
    id: int
    sensor_id: UUID
    value: float
    timestamp: Optional[datetime] = None

    class Config:
        from_attributes = True
