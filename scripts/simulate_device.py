#!/usr/bin/env python3
"""
Dispositivo sintético: simula uno o más sensores y envía sus valores al
endpoint de ingesta por HTTP, igual que un ESP32.

Uso:
    python scripts/simulate_device.py --device-key <api_key> temperature humidity:hum
    (cada sensor es tipo[:nombre]; Ctrl+C para detener)
"""
import argparse
import asyncio
import logging
import uuid
import httpx
from sensorboard.core.config import settings
from sensorboard.services.simulator import HttpIngestSink, TrafficSimulator

logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)

async def run(backend: str, device_key: str, sensors, interval: float, duration: float):
    async with httpx.AsyncClient(timeout=10.0) as client:
        sink = HttpIngestSink(client, f"{backend.rstrip('/')}/api/ingest", device_key)
        simulator = TrafficSimulator(sink, interval=interval, max_step=settings.SIMULATOR_MAX_STEP)
        device_id = "http-device"
        for entry in sensors:
            sensor_type, _, name = entry.partition(":")
            simulator.start(device_id, uuid.uuid4(), name or sensor_type, sensor_type, "")
        try:
            if duration > 0:
                await asyncio.sleep(duration)
            else:
                await asyncio.Event().wait()
        finally:
            await simulator.aclose()

def main():
    parser = argparse.ArgumentParser()
    parser.add_argument("sensors", nargs="+")
    parser.add_argument("--device-key", required=True)
    parser.add_argument("--backend", default=settings.BACKEND_URL)
    parser.add_argument("--interval", type=float, default=settings.SIMULATOR_INTERVAL_SECONDS)
    parser.add_argument("--duration", type=float, default=0.0, help="segundos; 0 = hasta Ctrl+C")
    args = parser.parse_args()
    try:
        asyncio.run(run(args.backend, args.device_key, args.sensors, args.interval, args.duration))
    except KeyboardInterrupt:
        logger.info("🛑 Simulación detenida")

if __name__ == "__main__":
    main()
