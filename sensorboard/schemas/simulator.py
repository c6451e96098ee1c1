from pydantic import BaseModel
from typing import Optional
from uuid import UUID

class SimulatorStateOut(BaseModel):
    device_id: UUID
    sensor_id: UUID
    sensor_name: str
    sensor_type: str
    sensor_unit: Optional[str] = ""
    is_running: bool
    current_value: float

    class Config:
        from_attributes = True
