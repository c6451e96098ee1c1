from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.future import select
from sensorboard.models.device import Device, generate_api_key
from sensorboard.models.sensor import Sensor  # noqa: F401  (registra la relación Device.sensors)
from sensorboard.models.reading import Reading  # noqa: F401
from sensorboard.schemas.device import DeviceCreate
from typing import List, Optional
from uuid import UUID

async def create_device(db: AsyncSession, user_id: UUID, device: DeviceCreate) -> Device:
    db_device = Device(
        user_id=user_id,
        name=device.name,
        description=device.description or "",
        api_key=device.api_key or generate_api_key(),
    )
    db.add(db_device)
    await db.commit()
    await db.refresh(db_device)
    return db_device

async def get_device(db: AsyncSession, device_id: UUID, user_id: Optional[UUID] = None) -> Optional[Device]:
    """
    Obtiene un dispositivo por ID. Si se pasa `user_id`, solo lo devuelve
    cuando pertenece a ese usuario.
    """
    query = select(Device).where(Device.id == device_id)
    if user_id is not None:
        query = query.where(Device.user_id == user_id)
    # Siempre releer la fila: last_seen lo cambia un trigger, no el ORM
    result = await db.execute(query.execution_options(populate_existing=True))
    return result.scalars().first()

async def get_device_by_api_key(db: AsyncSession, api_key: str) -> Optional[Device]:
    result = await db.execute(
        select(Device).where(Device.api_key == api_key)
    )
    return result.scalars().first()

async def get_devices(db: AsyncSession, user_id: UUID, skip: int = 0, limit: int = 100) -> List[Device]:
    result = await db.execute(
        select(Device)
        .where(Device.user_id == user_id)
        .order_by(Device.created_at.desc(), Device.name)
        .offset(skip)
        .limit(limit)
    )
    return result.scalars().all()

async def delete_device(db: AsyncSession, device_id: UUID, user_id: UUID) -> bool:
    # Los sensores y lecturas se borran en cascada en la base de datos
    db_device = await get_device(db, device_id, user_id=user_id)
    if db_device is None:
        return False
    await db.delete(db_device)
    await db.commit()
    return True
