from pydantic import BaseModel, field_validator
from typing import Any, List
from uuid import UUID

class IngestPayload(BaseModel):
    """
    Cuerpo aceptado por el endpoint de ingesta.
    Las lecturas se validan una por una en el servicio: una entrada mala
    no invalida el lote completo.
    """
    device_key: str
    readings: List[Any]

    @field_validator("device_key", mode="before")
    @classmethod
    def device_key_present(cls, value: Any) -> str:
        # Cualquier clave no vacía se busca como texto; si no existe, es un 401
        if not value:
            raise ValueError("device_key requerida")
        return str(value)

class IngestResponse(BaseModel):
    success: bool = True
    device_id: UUID
    readings_inserted: int
