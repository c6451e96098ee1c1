from pydantic import BaseModel, Field
from typing import Any, Dict, Literal, Optional

class ChangeEvent(BaseModel):
    """Evento de cambio de fila: {event, schema, table, new}."""
    event: Literal["INSERT", "UPDATE"]
    db_schema: str = Field("public", alias="schema")
    table: str
    new: Dict[str, Any]

    class Config:
        populate_by_name = True

class Binding(BaseModel):
    """Qué eventos recibe una suscripción. `filter` es (columna, valor) sobre `new`."""
    event: Literal["INSERT", "UPDATE", "*"] = "*"
    table: str
    filter: Optional[tuple] = None

    def matches(self, change: ChangeEvent) -> bool:
        if self.table != change.table:
            return False
        if self.event != "*" and self.event != change.event:
            return False
        if self.filter is not None:
            column, value = self.filter
            return str(change.new.get(column)) == str(value)
        return True
