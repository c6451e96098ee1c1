from fastapi import APIRouter, Depends, HTTPException, Query
from fastapi.responses import Response
from sqlalchemy.ext.asyncio import AsyncSession
from typing import List
from uuid import UUID
from sensorboard.dependencies import get_db, get_current_user_id, get_simulator
from sensorboard.schemas.reading import ReadingInDB
from sensorboard.schemas.sensor import SensorInDB
from sensorboard.services import reading_service, sensor_service

router = APIRouter()

@router.get("/{sensor_id}", response_model=SensorInDB)
async def read_sensor(sensor_id: UUID, db: AsyncSession = Depends(get_db), user_id: UUID = Depends(get_current_user_id)):
    db_sensor = await sensor_service.get_sensor(db, sensor_id, user_id=user_id)
    if db_sensor is None:
        raise HTTPException(status_code=404, detail="Sensor not found")
    return db_sensor

@router.delete("/{sensor_id}", status_code=204)
async def delete_sensor_endpoint(sensor_id: UUID, db: AsyncSession = Depends(get_db), user_id: UUID = Depends(get_current_user_id), simulator=Depends(get_simulator)):
    success = await sensor_service.delete_sensor(db, sensor_id, user_id)
    if not success:
        raise HTTPException(status_code=404, detail="Sensor not found")
    # Un sensor borrado no puede seguir simulándose
    simulator.stop(sensor_id)
    return Response(status_code=204)

@router.get("/{sensor_id}/readings", response_model=List[ReadingInDB])
async def read_sensor_readings(
    sensor_id: UUID,
    limit: int = Query(100, ge=1, le=1000),
    db: AsyncSession = Depends(get_db),
    user_id: UUID = Depends(get_current_user_id),
):
    """Lecturas más recientes primero."""
    if await sensor_service.get_sensor(db, sensor_id, user_id=user_id) is None:
        raise HTTPException(status_code=404, detail="Sensor not found")
    return await reading_service.get_readings(db, sensor_id, limit=limit)
