#!/usr/bin/env python3
"""
Prueba rápida contra un backend corriendo: crea un dispositivo, envía dos
lotes por el endpoint de ingesta y verifica sensores y lecturas.

Uso:
    python scripts/smoke_ingest.py --user-id <uuid>
"""
import argparse
import json
import sys
import uuid
import requests

def main():
    parser = argparse.ArgumentParser()
    parser.add_argument("--backend", default="http://localhost:8000")
    parser.add_argument("--user-id", default=str(uuid.uuid4()))
    args = parser.parse_args()

    backend = args.backend.rstrip("/")
    headers = {"X-User-Id": args.user_id}

    print("🔍 1. Creando dispositivo de prueba...")
    r = requests.post(f"{backend}/api/v1/devices/", json={"name": "Smoke ESP32"}, headers=headers)
    if r.status_code != 201:
        print(f"❌ Error: {r.text}")
        sys.exit(1)
    device = r.json()
    print(f"✅ Dispositivo {device['id']}")

    print("\n📥 2. Enviando dos lotes con el mismo sensor nuevo...")
    batch = {
        "device_key": device["api_key"],
        "readings": [{"sensor_name": "temp", "value": 21.5}, {"sensor_name": "temp", "value": 22.0}],
    }
    for _ in range(2):
        r = requests.post(f"{backend}/api/ingest", json=batch)
        print(f"   {r.status_code} {r.json()}")

    print("\n🔒 3. Probando una device_key inválida...")
    r = requests.post(f"{backend}/api/ingest", json={"device_key": "bad", "readings": []})
    print(f"   {r.status_code} {r.json()}")

    print("\n📊 4. Sensores del dispositivo:")
    r = requests.get(f"{backend}/api/v1/devices/{device['id']}/sensors", headers=headers)
    sensors = r.json()
    print(json.dumps(sensors, indent=2))
    if len(sensors) != 1:
        print("❌ Se esperaba un único sensor 'temp'")
        sys.exit(1)

    r = requests.get(f"{backend}/api/v1/sensors/{sensors[0]['id']}/readings", headers=headers)
    print(f"   Lecturas de 'temp': {len(r.json())} (esperadas 4)")

    print("\n🧹 5. Eliminando dispositivo...")
    requests.delete(f"{backend}/api/v1/devices/{device['id']}", headers=headers)

    print("\n" + "=" * 50)
    print("✅ PRUEBA COMPLETADA")
    print("=" * 50)

if __name__ == "__main__":
    main()
