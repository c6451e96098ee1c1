import asyncio
import logging
from sensorboard.schemas.device import DeviceInDB
from sensorboard.schemas.realtime import Binding, ChangeEvent
from sensorboard.schemas.sensor import SensorWithLatest
from sensorboard.services import device_service, sensor_service
from typing import Awaitable, Callable, FrozenSet, List, Optional

logger = logging.getLogger(__name__)


class DeviceLiveView:
    """
    Estado en vivo de la tarjeta de un dispositivo.

    Al montarse carga el dispositivo, sus sensores y la última lectura de cada
    uno, y se suscribe a:
      - UPDATE de su propia fila en devices -> recarga solo el dispositivo
      - INSERT en readings (todas) -> recarga los sensores si el sensor_id
        está en el conjunto local de ids de este dispositivo

    Un fallo de carga se registra y deja el estado anterior intacto.
    """

    def __init__(
        self,
        device_id,
        session_factory,
        feed,
        on_change: Optional[Callable[["DeviceLiveView"], Awaitable[None]]] = None,
    ):
        self.device_id = device_id
        self.session_factory = session_factory
        self.feed = feed
        self.on_change = on_change
        self.device: Optional[DeviceInDB] = None
        self.sensors: List[SensorWithLatest] = []
        self.sensor_ids: FrozenSet[str] = frozenset()
        self.loading = True
        self._subscription = None
        self._consumer: Optional[asyncio.Task] = None

    @property
    def mounted(self) -> bool:
        return self._subscription is not None

    async def mount(self) -> None:
        if self.mounted:
            return
        logger.info(f"[Device {self.device_id}] Configurando suscripciones")
        # Suscribirse antes de cargar: lo que llegue durante la carga queda en cola
        self._subscription = self.feed.subscribe([
            Binding(event="UPDATE", table="devices", filter=("id", str(self.device_id))),
            Binding(event="INSERT", table="readings"),
        ])
        await self.reload_sensors()
        await self.reload_device()
        self._consumer = asyncio.create_task(self._consume(self._subscription))

    async def unmount(self) -> None:
        subscription, consumer = self._subscription, self._consumer
        self._subscription = None
        self._consumer = None
        if subscription is not None:
            logger.info(f"[Device {self.device_id}] Liberando suscripciones")
            subscription.close()
        if consumer is not None and consumer is not asyncio.current_task():
            consumer.cancel()
            await asyncio.gather(consumer, return_exceptions=True)

    async def set_device(self, device_id) -> None:
        """Cambia el dispositivo mostrado: libera la suscripción vieja y vuelve a montar."""
        if str(device_id) == str(self.device_id) and self.mounted:
            return
        await self.unmount()
        self.device_id = device_id
        self.device = None
        self.sensors = []
        self.sensor_ids = frozenset()
        self.loading = True
        await self.mount()

    async def _consume(self, subscription) -> None:
        async for change in subscription:
            await self.handle_event(change)

    async def handle_event(self, change: ChangeEvent) -> None:
        if change.table == "devices" and change.event == "UPDATE":
            logger.debug(f"[Device {self.device_id}] 🔄 UPDATE del dispositivo")
            await self.reload_device()
        elif change.table == "readings" and change.event == "INSERT":
            sensor_id = change.new.get("sensor_id")
            if sensor_id is not None and str(sensor_id) in self.sensor_ids:
                logger.debug(f"[Device {self.device_id}] 📊 Lectura nueva del sensor {sensor_id}")
                await self.reload_sensors()

    async def reload_device(self) -> bool:
        try:
            async with self.session_factory() as db:
                device = await device_service.get_device(db, self.device_id)
                if device is not None:
                    self.device = DeviceInDB.model_validate(device)
        except Exception as e:
            logger.error(f"[Device {self.device_id}] Error cargando el dispositivo: {e}")
            return False
        await self._notify()
        return True

    async def reload_sensors(self) -> bool:
        try:
            async with self.session_factory() as db:
                sensors = await sensor_service.get_sensors_with_latest(db, self.device_id)
        except Exception as e:
            logger.error(f"[Device {self.device_id}] Error cargando sensores: {e}")
            return False
        finally:
            self.loading = False

        self.sensors = sensors
        self.sensor_ids = frozenset(str(sensor.id) for sensor in sensors)
        logger.debug(f"[Device {self.device_id}] 📝 Siguiendo {len(self.sensor_ids)} sensores")
        await self._notify()
        return True

    async def _notify(self) -> None:
        if self.on_change is None:
            return
        try:
            await self.on_change(self)
        except Exception as e:
            logger.error(f"[Device {self.device_id}] Error notificando cambio: {e}")

    def snapshot(self) -> dict:
        return {
            "device": self.device.model_dump(mode="json", exclude={"api_key"}) if self.device else None,
            "sensors": [sensor.model_dump(mode="json") for sensor in self.sensors],
        }
