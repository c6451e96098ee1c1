import pytest
from sqlalchemy import func, select

from sensorboard.models.reading import Reading
from sensorboard.models.sensor import Sensor
from sensorboard.schemas.realtime import Binding
from sensorboard.services import device_service, reading_service, sensor_service

INGEST_URL = "/api/ingest"


async def count_rows(db, model):
    result = await db.execute(select(func.count()).select_from(model))
    return result.scalar_one()


async def test_double_batch_creates_sensor_once_and_appends_all_readings(client, db, device):
    body = {
        "device_key": "abc123",
        "readings": [{"sensor_name": "temp", "value": 21.5}, {"sensor_name": "temp", "value": 22.0}],
    }

    for _ in range(2):
        response = await client.post(INGEST_URL, json=body)
        assert response.status_code == 200
        assert response.json() == {"success": True, "device_id": str(device.id), "readings_inserted": 2}

    sensors = await sensor_service.get_sensors(db, device.id)
    assert [s.name for s in sensors] == ["temp"]
    assert sensors[0].type == "temp"
    assert sensors[0].unit == ""
    assert await reading_service.count_readings(db, sensors[0].id) == 4


async def test_unknown_device_key_is_rejected_without_writes(client, db, device):
    response = await client.post(INGEST_URL, json={"device_key": "bad", "readings": [{"sensor_name": "temp", "value": 1}]})

    assert response.status_code == 401
    assert response.json() == {"error": "Invalid device key"}
    assert await count_rows(db, Sensor) == 0
    assert await count_rows(db, Reading) == 0


@pytest.mark.parametrize("body", [
    {"readings": []},
    {"device_key": "", "readings": []},
    {"device_key": "abc123"},
    {"device_key": "abc123", "readings": {"sensor_name": "temp", "value": 1}},
    {"device_key": "abc123", "readings": None},
    ["abc123"],
])
async def test_malformed_payload_is_rejected(client, db, device, body):
    response = await client.post(INGEST_URL, json=body)

    assert response.status_code == 400
    assert response.json()["error"].startswith("Invalid payload")
    assert await count_rows(db, Reading) == 0


@pytest.mark.parametrize("device_key", [123, True, ["abc123"]])
async def test_non_string_device_key_is_looked_up_and_rejected(client, db, device, device_key):
    response = await client.post(INGEST_URL, json={"device_key": device_key, "readings": [{"sensor_name": "temp", "value": 1}]})

    assert response.status_code == 401
    assert response.json() == {"error": "Invalid device key"}
    assert await count_rows(db, Sensor) == 0


@pytest.mark.parametrize("device_key", [0, False, None])
async def test_empty_device_key_is_a_malformed_payload(client, device, device_key):
    response = await client.post(INGEST_URL, json={"device_key": device_key, "readings": []})
    assert response.status_code == 400


async def test_trailing_slash_is_served_without_redirect(client, db, device):
    body = {"device_key": "abc123", "readings": [{"sensor_name": "temp", "value": 21.5}]}

    posted = await client.post(f"{INGEST_URL}/", json=body)
    preflight = await client.options(f"{INGEST_URL}/")
    other = await client.get(f"{INGEST_URL}/")

    assert posted.status_code == 200
    assert posted.json()["readings_inserted"] == 1
    assert posted.headers["access-control-allow-origin"] == "*"
    assert preflight.status_code == 200
    assert preflight.headers["access-control-allow-methods"] == "POST, OPTIONS"
    assert other.status_code == 405


async def test_body_that_is_not_json_is_rejected(client, device):
    response = await client.post(INGEST_URL, content=b"temp=21.5", headers={"Content-Type": "text/plain"})
    assert response.status_code == 400


async def test_count_matches_entries_with_name_and_value(client, db, device):
    readings = [
        {"sensor_name": "temp", "value": 20.0},
        {"sensor_name": "hum", "value": 55},
        {"sensor_name": None, "value": 1.0},
        {"sensor_name": "pressure"},
        {"value": 3.0},
        {"sensor_name": "", "value": 3.0},
        "not-an-object",
        {"sensor_name": "light", "value": 0},
    ]
    response = await client.post(INGEST_URL, json={"device_key": "abc123", "readings": readings})

    assert response.status_code == 200
    assert response.json()["readings_inserted"] == 3
    names = sorted(s.name for s in await sensor_service.get_sensors(db, device.id))
    assert names == ["hum", "light", "temp"]


async def test_bad_entry_is_skipped_and_batch_continues(client, db, device):
    readings = [
        {"sensor_name": "temp", "value": "warm"},
        {"sensor_name": "temp", "value": True},
        {"sensor_name": 42, "value": 1.0},
        {"sensor_name": "temp", "value": 19.5},
    ]
    response = await client.post(INGEST_URL, json={"device_key": "abc123", "readings": readings})

    assert response.status_code == 200
    assert response.json()["readings_inserted"] == 1
    sensor = await sensor_service.get_sensor_by_name(db, device.id, "temp")
    latest = await reading_service.get_latest_reading(db, sensor.id)
    assert latest.value == 19.5


async def test_readings_only_go_to_the_authenticated_device(client, db, device, other_device):
    await client.post(INGEST_URL, json={"device_key": "other-key", "readings": [{"sensor_name": "temp", "value": 5}]})

    assert await sensor_service.get_sensors(db, device.id) == []
    assert len(await sensor_service.get_sensors(db, other_device.id)) == 1


async def test_reading_insert_advances_last_seen(client, db, device):
    await client.post(INGEST_URL, json={"device_key": "abc123", "readings": [{"sensor_name": "temp", "value": 21.0}]})

    sensor = await sensor_service.get_sensor_by_name(db, device.id, "temp")
    latest = await reading_service.get_latest_reading(db, sensor.id)
    refreshed = await device_service.get_device(db, device.id)
    assert refreshed.last_seen == latest.timestamp


async def test_ingest_publishes_reading_and_device_events(app, client, device):
    subscription = app.state.feed.subscribe([
        Binding(event="INSERT", table="readings"),
        Binding(event="UPDATE", table="devices", filter=("id", str(device.id))),
    ])

    await client.post(INGEST_URL, json={"device_key": "abc123", "readings": [{"sensor_name": "temp", "value": 21.0}]})

    inserted = await subscription.__anext__()
    updated = await subscription.__anext__()
    assert inserted.table == "readings" and inserted.new["value"] == 21.0
    assert updated.table == "devices" and updated.new["id"] == str(device.id)
    assert "api_key" not in updated.new
    subscription.close()


async def test_preflight_returns_cors_headers(client):
    response = await client.options(INGEST_URL)

    assert response.status_code == 200
    assert response.headers["access-control-allow-origin"] == "*"
    assert response.headers["access-control-allow-methods"] == "POST, OPTIONS"
    assert "x-device-key" in response.headers["access-control-allow-headers"]


@pytest.mark.parametrize("method", ["GET", "PUT", "DELETE"])
async def test_other_methods_are_not_allowed(client, method):
    response = await client.request(method, INGEST_URL)

    assert response.status_code == 405
    assert response.json() == {"error": "Method not allowed"}
    assert response.headers["access-control-allow-origin"] == "*"


async def test_error_responses_carry_cors_headers(client, device):
    unauthorized = await client.post(INGEST_URL, json={"device_key": "bad", "readings": []})
    invalid = await client.post(INGEST_URL, json={})

    assert unauthorized.headers["access-control-allow-origin"] == "*"
    assert invalid.headers["access-control-allow-origin"] == "*"


async def test_store_failure_returns_500(client, device, monkeypatch):
    from sensorboard.services import ingest_service
    from sqlalchemy.exc import OperationalError

    async def broken_lookup(db, api_key):
        raise OperationalError("SELECT", {}, Exception("connection refused"))

    monkeypatch.setattr(ingest_service.device_service, "get_device_by_api_key", broken_lookup)
    response = await client.post(INGEST_URL, json={"device_key": "abc123", "readings": []})

    assert response.status_code == 500
    assert response.json()["error"] == "Internal server error"
    assert "connection refused" in response.json()["details"]
