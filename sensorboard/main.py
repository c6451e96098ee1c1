import logging
from contextlib import asynccontextmanager
from fastapi import FastAPI
from typing import Optional
from sensorboard.api import devices, ingest, sensors, simulator
from sensorboard.core.config import settings
from sensorboard.core.database import SessionLocal
from sensorboard.services.realtime import ChangeFeed
from sensorboard.services.simulator import StoreReadingSink, TrafficSimulator

logging.basicConfig(level=settings.LOG_LEVEL)
logger = logging.getLogger(__name__)

def create_app(session_factory=None, simulator_interval: Optional[float] = None) -> FastAPI:
    """
    Raíz de composición: el feed de cambios y el simulador se crean al
    arrancar y se cierran al apagar. Ningún timer del simulador sobrevive
    al cierre de la aplicación.
    """

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        feed = ChangeFeed(queue_size=settings.LIVE_QUEUE_SIZE)
        app.state.feed = feed
        app.state.simulator = TrafficSimulator(
            StoreReadingSink(app.state.session_factory, feed),
            interval=simulator_interval or settings.SIMULATOR_INTERVAL_SECONDS,
            max_step=settings.SIMULATOR_MAX_STEP,
        )
        logger.info("✅ SensorBoard listo")
        try:
            yield
        finally:
            await app.state.simulator.aclose()
            feed.close()
            logger.info("👋 SensorBoard detenido")

    app = FastAPI(title="SensorBoard Live", lifespan=lifespan)
    app.state.session_factory = session_factory or SessionLocal

    app.include_router(ingest.router, prefix="/api/ingest", tags=["ingest"])
    app.include_router(devices.router, prefix="/api/v1/devices", tags=["devices"])
    app.include_router(sensors.router, prefix="/api/v1/sensors", tags=["sensors"])
    app.include_router(simulator.router, prefix="/api/v1/simulator", tags=["simulator"])

    @app.get("/health")
    async def health():
        return {"status": "ok"}

    return app

app = create_app()
