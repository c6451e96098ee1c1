"""
Errores de dominio del pipeline de ingesta.

Los servicios lanzan estas excepciones y las rutas las traducen a respuestas
HTTP. `PartialItemError` nunca sale del servicio de ingesta: se registra en el
log y la lectura se descarta.
"""


class IngestError(Exception):
    """Base de los errores de ingesta."""


class PayloadValidationError(IngestError):
    """Payload mal formado (sin device_key o sin arreglo readings). HTTP 400."""


class DeviceAuthorizationError(IngestError):
    """La device_key no corresponde a ningún dispositivo. HTTP 401."""


class PartialItemError(IngestError):
    """Falló una sola lectura del lote (resolución del sensor o inserción)."""

    def __init__(self, index: int, sensor_name, reason: str):
        super().__init__(f"reading #{index} ({sensor_name!r}): {reason}")
        self.index = index
        self.sensor_name = sensor_name
        self.reason = reason


class TransientStoreError(IngestError):
    """Base de datos no disponible. No se reintenta; HTTP 500."""
