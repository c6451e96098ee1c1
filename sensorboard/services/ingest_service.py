"""
Ingesta de lecturas enviadas por los dispositivos.

Flujo por petición:
  1. Validar el payload (device_key + arreglo readings).
  2. Resolver la device_key contra la tabla devices.
  3. Por cada lectura, de forma independiente: buscar o crear el sensor
     e insertar la lectura. Una lectura mala nunca aborta el lote.

El servicio no guarda estado entre peticiones; todo vive en la base de datos.
"""

import logging
import math
from pydantic import ValidationError
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession
from sensorboard.core.errors import (
    DeviceAuthorizationError,
    PartialItemError,
    PayloadValidationError,
    TransientStoreError,
)
from sensorboard.schemas.ingest import IngestPayload, IngestResponse
from sensorboard.services import device_service, reading_service, sensor_service
from typing import Any
from uuid import UUID

logger = logging.getLogger(__name__)

INVALID_PAYLOAD_MESSAGE = "Invalid payload. Expected device_key and readings array."

def parse_payload(raw: Any) -> IngestPayload:
    if not isinstance(raw, dict):
        raise PayloadValidationError(INVALID_PAYLOAD_MESSAGE)
    try:
        return IngestPayload.model_validate(raw)
    except ValidationError as e:
        raise PayloadValidationError(INVALID_PAYLOAD_MESSAGE) from e

def coerce_value(value: Any) -> float:
    """Convierte el valor a float. Lanza ValueError si no es numérico y finito."""
    if isinstance(value, bool):
        raise ValueError(f"valor no numérico: {value!r}")
    number = float(value)
    if not math.isfinite(number):
        raise ValueError(f"valor no finito: {value!r}")
    return number

async def _ingest_one(db: AsyncSession, device_id: UUID, index: int, sensor_name: Any, value: Any, feed=None):
    if not isinstance(sensor_name, str):
        raise PartialItemError(index, sensor_name, "sensor_name debe ser texto")
    try:
        number = coerce_value(value)
    except (TypeError, ValueError) as e:
        raise PartialItemError(index, sensor_name, str(e)) from e

    try:
        sensor = await sensor_service.find_or_create_sensor(db, device_id, sensor_name)
        sensor_id = sensor.id
    except SQLAlchemyError as e:
        await db.rollback()
        raise PartialItemError(index, sensor_name, f"error creando sensor: {e}") from e

    try:
        return await reading_service.add_reading(db, sensor_id, number, feed=feed)
    except SQLAlchemyError as e:
        await db.rollback()
        raise PartialItemError(index, sensor_name, f"error insertando lectura: {e}") from e

async def ingest_readings(db: AsyncSession, raw_payload: Any, feed=None) -> IngestResponse:
    payload = parse_payload(raw_payload)

    try:
        device = await device_service.get_device_by_api_key(db, payload.device_key)
    except (SQLAlchemyError, OSError) as e:
        raise TransientStoreError(str(e)) from e

    if device is None:
        logger.warning("🔒 Ingesta rechazada: device_key inválida")
        raise DeviceAuthorizationError("Invalid device key")

    # Guardar el id: un rollback por lectura expira las instancias de la sesión
    device_id = device.id
    inserted = 0

    for index, reading in enumerate(payload.readings):
        if not isinstance(reading, dict):
            continue
        sensor_name = reading.get("sensor_name")
        value = reading.get("value")
        if not sensor_name or value is None:
            continue

        try:
            await _ingest_one(db, device_id, index, sensor_name, value, feed=feed)
            inserted += 1
        except PartialItemError as e:
            logger.error(f"❌ Lectura descartada para {device_id}: {e}")

    logger.info(f"📥 Ingesta de {device_id}: {inserted}/{len(payload.readings)} lecturas insertadas")
    return IngestResponse(success=True, device_id=device_id, readings_inserted=inserted)
