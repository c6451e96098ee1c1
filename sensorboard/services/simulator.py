"""
Simulador de tráfico: genera lecturas sintéticas por sensor cada `interval`
segundos y las envía por el mismo camino de escritura que un dispositivo real.

El mapa de estado (sensor_id -> SimulatorState) es el único estado mutable
compartido. Nunca se modifica en sitio: cada start/stop/tick/aclose lee el
mapa actual, calcula el siguiente y lo publica completo.
"""

import asyncio
import logging
import random
from dataclasses import dataclass, replace
from types import MappingProxyType
from typing import Any, Awaitable, Callable, Dict, Mapping, NamedTuple, Optional

from sensorboard.services import reading_service

logger = logging.getLogger(__name__)

DEFAULT_INTERVAL_SECONDS = 5.0
DEFAULT_MAX_STEP = 1.0


class ValueProfile(NamedTuple):
    minimum: float
    maximum: float


# Rango del valor inicial por tipo de sensor
VALUE_PROFILES: Mapping[str, ValueProfile] = MappingProxyType({
    "temperature": ValueProfile(20.0, 30.0),
    "humidity": ValueProfile(40.0, 80.0),
    "pressure": ValueProfile(1000.0, 1050.0),
    "light": ValueProfile(0.0, 1000.0),
    "co2": ValueProfile(400.0, 1000.0),
    "voltage": ValueProfile(3.0, 5.0),
})
DEFAULT_PROFILE = ValueProfile(0.0, 100.0)


def profile_for(sensor_type: Optional[str]) -> ValueProfile:
    return VALUE_PROFILES.get((sensor_type or "").lower(), DEFAULT_PROFILE)


@dataclass(frozen=True)
class SimulatorState:
    device_id: Any
    sensor_id: Any
    sensor_name: str
    sensor_type: str
    sensor_unit: str
    is_running: bool
    timer: Optional[asyncio.Task]
    current_value: float


Sink = Callable[[SimulatorState, float], Awaitable[Any]]


class StoreReadingSink:
    """Escribe cada valor con reading_service.add_reading y notifica al feed."""

    def __init__(self, session_factory, feed=None):
        self.session_factory = session_factory
        self.feed = feed

    async def __call__(self, state: SimulatorState, value: float):
        async with self.session_factory() as db:
            return await reading_service.add_reading(db, state.sensor_id, value, feed=self.feed)


class HttpIngestSink:
    """Envía cada valor al endpoint de ingesta como lo haría un dispositivo."""

    def __init__(self, client, ingest_url: str, device_key: str):
        self.client = client
        self.ingest_url = ingest_url
        self.device_key = device_key

    async def __call__(self, state: SimulatorState, value: float):
        response = await self.client.post(
            self.ingest_url,
            json={
                "device_key": self.device_key,
                "readings": [{"sensor_name": state.sensor_name, "value": value}],
            },
        )
        response.raise_for_status()
        return response.json()


class TrafficSimulator:

    def __init__(
        self,
        sink: Sink,
        interval: float = DEFAULT_INTERVAL_SECONDS,
        max_step: float = DEFAULT_MAX_STEP,
        rng: Optional[random.Random] = None,
    ):
        self.sink = sink
        self.interval = interval
        self.max_step = max_step
        self.rng = rng or random.Random()
        self._states: Mapping[Any, SimulatorState] = MappingProxyType({})
        self._inflight: set = set()
        self._closed = False

    # ------------------------------------------------------------------
    # Lecturas del mapa (sin acceso a red)
    # ------------------------------------------------------------------

    def is_running(self, sensor_id) -> bool:
        state = self._states.get(sensor_id)
        return bool(state and state.is_running)

    def get_state(self, sensor_id) -> Optional[SimulatorState]:
        return self._states.get(sensor_id)

    def states(self) -> Mapping[Any, SimulatorState]:
        return self._states

    @property
    def pending_submissions(self) -> int:
        return len(self._inflight)

    # ------------------------------------------------------------------
    # Transiciones
    # ------------------------------------------------------------------

    def _transition(self, compute: Callable[[Dict[Any, SimulatorState]], Dict[Any, SimulatorState]]) -> None:
        self._states = MappingProxyType(compute(dict(self._states)))

    def generate_value(self, sensor_type: Optional[str], previous: Optional[float] = None) -> float:
        if previous is None:
            profile = profile_for(sensor_type)
            base = self.rng.uniform(profile.minimum, profile.maximum)
        else:
            base = previous
        variation = (self.rng.random() - 0.5) * 2 * self.max_step
        return max(0.0, base + variation)

    def start(self, device_id, sensor_id, name: str, sensor_type: str, unit: str = "") -> bool:
        """
        Arranca la simulación de un sensor. Devuelve False (sin hacer nada)
        si ya estaba corriendo o si el simulador fue cerrado.
        """
        if self._closed:
            logger.warning(f"⚠️ Simulador cerrado, no se inicia {sensor_id}")
            return False
        if self.is_running(sensor_id):
            logger.info(f"⚠️ El simulador ya está corriendo para el sensor {sensor_id}")
            return False

        logger.info(f"🚀 Iniciando simulador para el sensor {sensor_id} ({name})")
        initial_value = self.generate_value(sensor_type)
        timer = asyncio.create_task(self._run_timer(sensor_id), name=f"simulator-{sensor_id}")
        state = SimulatorState(
            device_id=device_id,
            sensor_id=sensor_id,
            sensor_name=name,
            sensor_type=sensor_type,
            sensor_unit=unit or "",
            is_running=True,
            timer=timer,
            current_value=initial_value,
        )
        self._transition(lambda states: {**states, sensor_id: state})
        self._submit(state, initial_value)
        return True

    def stop(self, sensor_id) -> bool:
        """Cancela el timer y elimina la entrada. En un sensor detenido no hace nada."""
        state = self._states.get(sensor_id)
        if state is None:
            return False

        logger.info(f"🛑 Deteniendo simulador para el sensor {sensor_id}")
        if state.timer is not None:
            state.timer.cancel()
        self._transition(lambda states: {k: v for k, v in states.items() if k != sensor_id})
        return True

    def tick(self, sensor_id) -> Optional[float]:
        """
        Genera el siguiente valor (anterior + perturbación) y lo envía.
        Si el sensor ya fue detenido no hace nada y devuelve None.
        """
        current = self._states.get(sensor_id)
        if current is None:
            return None

        new_value = self.generate_value(current.sensor_type, current.current_value)
        updated = replace(current, current_value=new_value)

        def compute(states):
            if sensor_id not in states:
                return states
            return {**states, sensor_id: updated}

        self._transition(compute)
        logger.debug(f"🔄 Nueva lectura para {current.sensor_name}: {new_value:.2f}")
        self._submit(updated, new_value)
        return new_value

    async def _run_timer(self, sensor_id) -> None:
        while True:
            await asyncio.sleep(self.interval)
            if self.tick(sensor_id) is None:
                return

    # ------------------------------------------------------------------
    # Envíos (fire-and-forget respecto al siguiente tick)
    # ------------------------------------------------------------------

    def _submit(self, state: SimulatorState, value: float) -> None:
        task = asyncio.create_task(self._deliver(state, value))
        self._inflight.add(task)
        task.add_done_callback(self._inflight.discard)

    async def _deliver(self, state: SimulatorState, value: float) -> None:
        try:
            await self.sink(state, value)
            logger.debug(f"✅ Lectura enviada para {state.sensor_id}: {value:.2f}")
        except Exception as e:
            # Un envío fallido nunca detiene la simulación
            logger.error(f"❌ Error enviando lectura del sensor {state.sensor_id}: {e}")

    async def aclose(self) -> None:
        """
        Cierre global: cancela todos los timers, espera los envíos en curso
        y deja el mapa vacío. Después de esto no se envía nada más.
        """
        self._closed = True
        timers = [s.timer for s in self._states.values() if s.timer is not None]
        self._transition(lambda states: {})
        for timer in timers:
            timer.cancel()
        if timers:
            await asyncio.gather(*timers, return_exceptions=True)
        if self._inflight:
            await asyncio.gather(*list(self._inflight), return_exceptions=True)
        logger.info(f"🧹 Simulador cerrado ({len(timers)} timers cancelados)")
