import logging
from fastapi import APIRouter, Depends, HTTPException, WebSocket, WebSocketDisconnect
from fastapi.responses import Response
from sqlalchemy.ext.asyncio import AsyncSession
from typing import List
from uuid import UUID
from sensorboard.dependencies import get_db, get_current_user_id, get_simulator, parse_user_id
from sensorboard.schemas.device import DeviceCreate, DeviceInDB
from sensorboard.schemas.sensor import SensorCreate, SensorInDB, SensorWithLatest
from sensorboard.services import device_service, sensor_service
from sensorboard.services.live_view import DeviceLiveView

logger = logging.getLogger(__name__)

router = APIRouter()

@router.post("/", response_model=DeviceInDB, status_code=201)
async def create_device_endpoint(device: DeviceCreate, db: AsyncSession = Depends(get_db), user_id: UUID = Depends(get_current_user_id)):
    if device.api_key and await device_service.get_device_by_api_key(db, device.api_key):
        raise HTTPException(status_code=400, detail="Device with this API key already registered")
    return await device_service.create_device(db=db, user_id=user_id, device=device)

@router.get("/", response_model=List[DeviceInDB])
async def read_devices(skip: int = 0, limit: int = 100, db: AsyncSession = Depends(get_db), user_id: UUID = Depends(get_current_user_id)):
    return await device_service.get_devices(db, user_id, skip=skip, limit=limit)

@router.get("/{device_id}", response_model=DeviceInDB)
async def read_device(device_id: UUID, db: AsyncSession = Depends(get_db), user_id: UUID = Depends(get_current_user_id)):
    db_device = await device_service.get_device(db, device_id, user_id=user_id)
    if db_device is None:
        raise HTTPException(status_code=404, detail="Device not found")
    return db_device

@router.delete("/{device_id}", status_code=204)
async def delete_device_endpoint(device_id: UUID, db: AsyncSession = Depends(get_db), user_id: UUID = Depends(get_current_user_id), simulator=Depends(get_simulator)):
    # Los ids se leen antes: la cascada borra los sensores junto con el dispositivo
    sensor_ids = [sensor.id for sensor in await sensor_service.get_sensors(db, device_id)]
    success = await device_service.delete_device(db, device_id, user_id)
    if not success:
        raise HTTPException(status_code=404, detail="Device not found")
    for sensor_id in sensor_ids:
        simulator.stop(sensor_id)
    return Response(status_code=204)

@router.get("/{device_id}/sensors", response_model=List[SensorWithLatest])
async def read_device_sensors(device_id: UUID, db: AsyncSession = Depends(get_db), user_id: UUID = Depends(get_current_user_id)):
    """Sensores del dispositivo con su última lectura."""
    if await device_service.get_device(db, device_id, user_id=user_id) is None:
        raise HTTPException(status_code=404, detail="Device not found")
    return await sensor_service.get_sensors_with_latest(db, device_id)

@router.post("/{device_id}/sensors", response_model=SensorInDB, status_code=201)
async def create_sensor_endpoint(device_id: UUID, sensor: SensorCreate, db: AsyncSession = Depends(get_db), user_id: UUID = Depends(get_current_user_id)):
    if await device_service.get_device(db, device_id, user_id=user_id) is None:
        raise HTTPException(status_code=404, detail="Device not found")
    db_sensor = await sensor_service.create_sensor(db, device_id, sensor)
    if db_sensor is None:
        raise HTTPException(status_code=400, detail="Sensor with this name already exists on the device")
    return db_sensor

@router.websocket("/{device_id}/live")
async def device_live(websocket: WebSocket, device_id: UUID):
    """
    Estado en vivo de un dispositivo. Envía un snapshot {device, sensors}
    al conectar y cada vez que cambia. El usuario viaja en el header
    X-User-Id o en el query param user_id (los navegadores no permiten
    headers en websockets).
    """
    state = websocket.app.state
    user_id = parse_user_id(websocket.headers.get("x-user-id") or websocket.query_params.get("user_id"))
    if user_id is None:
        await websocket.close(code=1008)
        return

    async with state.session_factory() as db:
        owned = await device_service.get_device(db, device_id, user_id=user_id)
    if owned is None:
        await websocket.close(code=1008)
        return

    await websocket.accept()

    async def push(view: DeviceLiveView):
        await websocket.send_json(view.snapshot())

    view = DeviceLiveView(device_id, state.session_factory, state.feed, on_change=push)
    try:
        await view.mount()
        while True:
            await websocket.receive_text()
    except WebSocketDisconnect:
        logger.info(f"🔌 Cliente desconectado del dispositivo {device_id}")
    finally:
        await view.unmount()
