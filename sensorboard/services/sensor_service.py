import logging
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.future import select
from sensorboard.models.device import Device
from sensorboard.models.sensor import Sensor
from sensorboard.schemas.reading import ReadingInDB
from sensorboard.schemas.sensor import SensorCreate, SensorInDB, SensorWithLatest
from sensorboard.services import reading_service
from typing import List, Optional
from uuid import UUID

logger = logging.getLogger(__name__)

async def get_sensor(db: AsyncSession, sensor_id: UUID, user_id: Optional[UUID] = None) -> Optional[Sensor]:
    query = select(Sensor).where(Sensor.id == sensor_id)
    if user_id is not None:
        query = query.join(Device, Device.id == Sensor.device_id).where(Device.user_id == user_id)
    result = await db.execute(query)
    return result.scalars().first()

async def get_sensor_by_name(db: AsyncSession, device_id: UUID, name: str) -> Optional[Sensor]:
    result = await db.execute(
        select(Sensor).where(Sensor.device_id == device_id, Sensor.name == name)
    )
    return result.scalars().first()

async def get_sensors(db: AsyncSession, device_id: UUID) -> List[Sensor]:
    result = await db.execute(
        select(Sensor).where(Sensor.device_id == device_id).order_by(Sensor.name)
    )
    return result.scalars().all()

async def get_sensors_with_latest(db: AsyncSession, device_id: UUID) -> List[SensorWithLatest]:
    sensors = await get_sensors(db, device_id)

    detailed_sensors = []
    for sensor in sensors:
        latest = await reading_service.get_latest_reading(db, sensor.id)
        detailed_sensors.append(
            SensorWithLatest(
                **SensorInDB.model_validate(sensor).model_dump(),
                latest_reading=ReadingInDB.model_validate(latest) if latest else None,
            )
        )
    return detailed_sensors

async def create_sensor(db: AsyncSession, device_id: UUID, sensor: SensorCreate) -> Optional[Sensor]:
    """
    Crea un sensor de forma explícita. Devuelve None si el dispositivo
    ya tiene un sensor con ese nombre.
    """
    if await get_sensor_by_name(db, device_id, sensor.name):
        return None
    db_sensor = Sensor(
        device_id=device_id,
        name=sensor.name,
        unit=sensor.unit or "",
        type=sensor.type or "generic",
    )
    db.add(db_sensor)
    try:
        await db.commit()
    except IntegrityError:
        await db.rollback()
        return None
    await db.refresh(db_sensor)
    return db_sensor

async def find_or_create_sensor(db: AsyncSession, device_id: UUID, name: str) -> Sensor:
    """
    Busca el sensor (device_id, name) y lo crea si no existe, con type=name
    y unidad vacía.

    Si otra petición lo creó entre la búsqueda y el INSERT, la restricción
    UNIQUE(device_id, name) falla: se trata como "ya existe" y se vuelve a
    consultar.
    """
    sensor = await get_sensor_by_name(db, device_id, name)
    if sensor is not None:
        return sensor

    db_sensor = Sensor(device_id=device_id, name=name, type=name, unit="")
    db.add(db_sensor)
    try:
        await db.commit()
    except IntegrityError:
        await db.rollback()
        logger.info(f"Sensor '{name}' creado en paralelo para {device_id}, reconsultando")
        sensor = await get_sensor_by_name(db, device_id, name)
        if sensor is None:
            raise
        return sensor

    await db.refresh(db_sensor)
    logger.info(f"🆕 Sensor '{name}' creado automáticamente para el dispositivo {device_id}")
    return db_sensor

async def delete_sensor(db: AsyncSession, sensor_id: UUID, user_id: UUID) -> bool:
    db_sensor = await get_sensor(db, sensor_id, user_id=user_id)
    if db_sensor is None:
        return False
    await db.delete(db_sensor)
    await db.commit()
    return True
