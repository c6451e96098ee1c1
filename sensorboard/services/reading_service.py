import logging
from datetime import datetime, timezone
from sqlalchemy import func
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.future import select
from sensorboard.models.device import Device
from sensorboard.models.sensor import Sensor
from sensorboard.models.reading import Reading
from sensorboard.schemas.device import DeviceInDB
from sensorboard.schemas.reading import ReadingInDB
from typing import List, Optional
from uuid import UUID

logger = logging.getLogger(__name__)

async def add_reading(db: AsyncSession, sensor_id: UUID, value: float, feed=None) -> Reading:
    """
    Inserta una lectura con la hora actual del servidor. Es el único camino de
    escritura de lecturas (ingesta HTTP y simulador).

    Después del commit publica en `feed` el INSERT de la lectura y el UPDATE
    del dispositivo, cuyo last_seen ya fue adelantado por el trigger.
    """
    db_reading = Reading(
        sensor_id=sensor_id,
        value=value,
        timestamp=datetime.now(timezone.utc),
    )
    db.add(db_reading)
    await db.commit()
    await db.refresh(db_reading)

    if feed is not None:
        try:
            await publish_reading(db, feed, db_reading)
        except SQLAlchemyError as e:
            # La lectura ya está guardada; solo se pierde la notificación
            logger.error(f"❌ No se pudo notificar la lectura {db_reading.id}: {e}")
    return db_reading

async def publish_reading(db: AsyncSession, feed, reading: Reading) -> None:
    feed.publish_row("INSERT", "readings", ReadingInDB.model_validate(reading).model_dump(mode="json"))

    result = await db.execute(
        select(Device)
        .join(Sensor, Sensor.device_id == Device.id)
        .where(Sensor.id == reading.sensor_id)
        .execution_options(populate_existing=True)
    )
    device = result.scalars().first()
    if device is not None:
        row = DeviceInDB.model_validate(device).model_dump(mode="json", exclude={"api_key"})
        feed.publish_row("UPDATE", "devices", row)

async def get_latest_reading(db: AsyncSession, sensor_id: UUID) -> Optional[Reading]:
    result = await db.execute(
        select(Reading)
        .where(Reading.sensor_id == sensor_id)
        .order_by(Reading.timestamp.desc(), Reading.id.desc())
        .limit(1)
    )
    return result.scalars().first()

async def get_readings(db: AsyncSession, sensor_id: UUID, limit: int = 100) -> List[Reading]:
    # Dos lecturas con el mismo timestamp se desempatan por id
    result = await db.execute(
        select(Reading)
        .where(Reading.sensor_id == sensor_id)
        .order_by(Reading.timestamp.desc(), Reading.id.desc())
        .limit(limit)
    )
    return result.scalars().all()

async def count_readings(db: AsyncSession, sensor_id: UUID) -> int:
    result = await db.execute(
        select(func.count(Reading.id)).where(Reading.sensor_id == sensor_id)
    )
    return result.scalar_one()
