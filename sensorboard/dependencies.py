from fastapi import Header, HTTPException, Request
from typing import Optional
from uuid import UUID

async def get_db(request: Request):
    """Una sesión de base de datos por solicitud."""
    async with request.app.state.session_factory() as db:
        yield db

def parse_user_id(raw: Optional[str]) -> Optional[UUID]:
    if not raw:
        return None
    try:
        return UUID(raw)
    except ValueError:
        return None

async def get_current_user_id(x_user_id: Optional[str] = Header(None)) -> UUID:
    """
    Usuario que actúa. La autenticación la resuelve el proxy/servicio de
    sesiones delante de esta API, que reenvía el id en X-User-Id.
    """
    user_id = parse_user_id(x_user_id)
    if user_id is None:
        raise HTTPException(status_code=401, detail="Missing or invalid X-User-Id header")
    return user_id

def get_feed(request: Request):
    return request.app.state.feed

def get_simulator(request: Request):
    return request.app.state.simulator
