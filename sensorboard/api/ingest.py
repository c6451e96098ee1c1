# sensorboard/api/ingest.py
"""
Endpoint de ingesta para microcontroladores (ESP32, Pico, Arduino).

Ejemplo:
POST /api/ingest
{"device_key": "abc123", "readings": [{"sensor_name": "temp", "value": 21.5}]}
"""

import logging
from fastapi import APIRouter, Depends, Request
from fastapi.responses import JSONResponse, Response
from sqlalchemy.ext.asyncio import AsyncSession
from sensorboard.core.errors import DeviceAuthorizationError, PayloadValidationError, TransientStoreError
from sensorboard.dependencies import get_db, get_feed
from sensorboard.services import ingest_service

logger = logging.getLogger(__name__)

router = APIRouter()

CORS_HEADERS = {
    "Access-Control-Allow-Origin": "*",
    "Access-Control-Allow-Methods": "POST, OPTIONS",
    "Access-Control-Allow-Headers": "Content-Type, Authorization, X-Client-Info, Apikey, x-device-key",
}

def _json(status_code: int, content: dict) -> JSONResponse:
    return JSONResponse(status_code=status_code, content=content, headers=CORS_HEADERS)

@router.options("")
@router.options("/", include_in_schema=False)
async def ingest_preflight():
    return Response(status_code=200, headers=CORS_HEADERS)

@router.post("")
@router.post("/", include_in_schema=False)
async def ingest_endpoint(request: Request, db: AsyncSession = Depends(get_db), feed=Depends(get_feed)):
    try:
        raw_payload = await request.json()
    except ValueError:
        return _json(400, {"error": ingest_service.INVALID_PAYLOAD_MESSAGE})

    try:
        result = await ingest_service.ingest_readings(db, raw_payload, feed=feed)
    except PayloadValidationError as e:
        return _json(400, {"error": str(e)})
    except DeviceAuthorizationError:
        return _json(401, {"error": "Invalid device key"})
    except TransientStoreError as e:
        logger.error(f"❌ Base de datos no disponible durante la ingesta: {e}")
        return _json(500, {"error": "Internal server error", "details": str(e)})
    except Exception as e:
        logger.error(f"❌ Error de ingesta: {e}")
        return _json(500, {"error": "Internal server error", "details": str(e)})

    return _json(200, result.model_dump(mode="json"))

@router.api_route("", methods=["GET", "PUT", "PATCH", "DELETE"], include_in_schema=False)
@router.api_route("/", methods=["GET", "PUT", "PATCH", "DELETE"], include_in_schema=False)
async def ingest_method_not_allowed():
    return _json(405, {"error": "Method not allowed"})
