import logging
from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.ext.asyncio import AsyncSession
from typing import List
from uuid import UUID
from sensorboard.dependencies import get_db, get_current_user_id, get_simulator
from sensorboard.schemas.simulator import SimulatorStateOut
from sensorboard.services import device_service, sensor_service

logger = logging.getLogger(__name__)

router = APIRouter()

def _to_out(state) -> SimulatorStateOut:
    # El estado interno lleva el Task del timer; se expone solo lo serializable
    return SimulatorStateOut.model_validate(state)

@router.get("/", response_model=List[SimulatorStateOut])
async def read_simulators(db: AsyncSession = Depends(get_db), user_id: UUID = Depends(get_current_user_id), simulator=Depends(get_simulator)):
    """Sensores que se están simulando en los dispositivos del usuario."""
    devices = await device_service.get_devices(db, user_id, limit=1000)
    owned = {device.id for device in devices}
    return [_to_out(state) for state in simulator.states().values() if state.device_id in owned]

@router.get("/{sensor_id}", response_model=SimulatorStateOut)
async def read_simulator(sensor_id: UUID, db: AsyncSession = Depends(get_db), user_id: UUID = Depends(get_current_user_id), simulator=Depends(get_simulator)):
    if await sensor_service.get_sensor(db, sensor_id, user_id=user_id) is None:
        raise HTTPException(status_code=404, detail="Sensor not found")
    state = simulator.get_state(sensor_id)
    if state is None:
        raise HTTPException(status_code=404, detail="Simulator not running for this sensor")
    return _to_out(state)

@router.post("/{sensor_id}/start", response_model=SimulatorStateOut)
async def start_simulator(sensor_id: UUID, db: AsyncSession = Depends(get_db), user_id: UUID = Depends(get_current_user_id), simulator=Depends(get_simulator)):
    db_sensor = await sensor_service.get_sensor(db, sensor_id, user_id=user_id)
    if db_sensor is None:
        raise HTTPException(status_code=404, detail="Sensor not found")
    simulator.start(db_sensor.device_id, db_sensor.id, db_sensor.name, db_sensor.type, db_sensor.unit)
    state = simulator.get_state(sensor_id)
    if state is None:
        raise HTTPException(status_code=503, detail="Simulator is shutting down")
    return _to_out(state)

@router.post("/{sensor_id}/stop")
async def stop_simulator(sensor_id: UUID, db: AsyncSession = Depends(get_db), user_id: UUID = Depends(get_current_user_id), simulator=Depends(get_simulator)):
    if await sensor_service.get_sensor(db, sensor_id, user_id=user_id) is None:
        raise HTTPException(status_code=404, detail="Sensor not found")
    stopped = simulator.stop(sensor_id)
    return {"status": "ok", "sensor_id": str(sensor_id), "stopped": stopped}
