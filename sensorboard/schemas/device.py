from pydantic import BaseModel
from typing import Optional
from datetime import datetime
from uuid import UUID

class DeviceBase(BaseModel):
    name: str
    description: Optional[str] = ""

class DeviceCreate(DeviceBase):
    # Si no se envía, la base de datos genera una clave aleatoria
    api_key: Optional[str] = None

class DeviceInDB(DeviceBase):
    id: UUID
    user_id: UUID
    api_key: str
    created_at: Optional[datetime] = None
    last_seen: Optional[datetime] = None

    class Config:
        from_attributes = True
