"""
Tests for the walk snapshot resource polled by tracking views.

Covers the wire shape, server-side aggregates, Redis caching with
invalidation, and the realtime events published on each mutation.
"""

import json
import pytest
from datetime import datetime, timedelta, timezone

from petwash.app.models.enums import WalkStatus
from petwash.app.models.walk_session import WalkSession
from petwash.app.services.cache import snapshot_key
from petwash.app.services.walk_service import WalkService
from conftest import auth
from fakes import FakeServerSocket

BASE = "/api/walk-my-pet/walks"


def sample(lat, lon, seconds=0):
    ts = datetime(2026, 5, 1, 9, 0, tzinfo=timezone.utc) + timedelta(seconds=seconds)
    return {"lat": lat, "lon": lon, "timestamp": ts.isoformat(), "accuracy": 8.0}


@pytest.mark.asyncio
async def test_unknown_walk_is_not_found(client, owner):
    owner_token, _ = owner
    response = await client.get(f"{BASE}/9999", headers=auth(owner_token))
    assert response.status_code == 404
    assert response.json()["message"] == "Walk not found"


@pytest.mark.asyncio
async def test_completed_walk_reports_stored_aggregates(client, owner, pending_walk, db_session):
    owner_token, _ = owner
    walk = await WalkService.get_walk(db_session, pending_walk)
    walk.status = WalkStatus.COMPLETED
    walk.start_time = datetime(2026, 5, 1, 9, 0, tzinfo=timezone.utc)
    walk.end_time = datetime(2026, 5, 1, 9, 45, tzinfo=timezone.utc)
    walk.duration_minutes = 45
    walk.distance_meters = 3200
    await db_session.commit()

    response = await client.get(f"{BASE}/{pending_walk}", headers=auth(owner_token))
    data = response.json()
    assert data["status"] == "completed"
    assert data["duration"] == 45
    assert data["distance"] == 3200


@pytest.mark.asyncio
async def test_active_duration_runs_against_now(pending_walk, db_session):
    walk = await WalkService.get_walk(db_session, pending_walk)
    walk.status = WalkStatus.ACTIVE
    walk.start_time = datetime(2026, 5, 1, 9, 0, tzinfo=timezone.utc)
    await db_session.commit()

    snapshot = await WalkService.build_snapshot(
        db_session, walk, now=datetime(2026, 5, 1, 10, 5, 30, tzinfo=timezone.utc)
    )
    assert snapshot.duration == 65


@pytest.mark.asyncio
async def test_snapshot_is_cached_and_invalidated(client, owner, walker, pending_walk, redis_client_session):
    owner_token, _ = owner
    walker_token, _ = walker
    key = snapshot_key(pending_walk)

    await client.get(f"{BASE}/{pending_walk}", headers=auth(owner_token))
    assert key in redis_client_session.store
    assert redis_client_session.ttls[key] == 3
    assert json.loads(redis_client_session.store[key])["status"] == "pending"

    await client.post(f"{BASE}/{pending_walk}/start", headers=auth(walker_token))
    assert key not in redis_client_session.store

    response = await client.get(f"{BASE}/{pending_walk}", headers=auth(owner_token))
    assert response.json()["status"] == "active"


@pytest.mark.asyncio
async def test_cached_snapshot_still_checks_access(client, owner, pending_walk):
    owner_token, _ = owner
    await client.get(f"{BASE}/{pending_walk}", headers=auth(owner_token))

    response = await client.post("/api/auth/register", json={
        "email": "nosy@test.com", "username": "nosy", "password": "password123"
    })
    nosy_token = response.json()["access_token"]
    response = await client.get(f"{BASE}/{pending_walk}", headers=auth(nosy_token))
    assert response.status_code == 403


@pytest.mark.asyncio
async def test_mutations_publish_walk_events(client, walker, pending_walk, realtime_hub):
    walker_token, _ = walker
    ws = FakeServerSocket()
    subscriber = await realtime_hub.connect(ws)
    await realtime_hub.handle_message(
        subscriber, json.dumps({"type": "subscribe", "channel": f"walk:{pending_walk}", "userId": 1})
    )

    await client.post(f"{BASE}/{pending_walk}/start", headers=auth(walker_token))
    await client.post(f"{BASE}/{pending_walk}/gps", json=sample(32.0853, 34.7818), headers=auth(walker_token))
    await client.post(
        f"{BASE}/{pending_walk}/health",
        json={"activityLevel": "medium", "stepsCount": 10, "caloriesBurned": 1.0},
        headers=auth(walker_token),
    )
    await client.post(f"{BASE}/{pending_walk}/photos", json={"url": "https://cdn.test/1.jpg"}, headers=auth(walker_token))
    await client.post(f"{BASE}/{pending_walk}/emergency", json={"message": "Lost leash"}, headers=auth(walker_token))

    kinds = [m["type"] for m in ws.sent if m["type"] in ("gps_update", "health_update", "photo_uploaded", "emergency_alert")]
    assert kinds == ["gps_update", "health_update", "photo_uploaded", "emergency_alert"]

    gps = ws.of_type("gps_update")[0]
    assert gps["walkId"] == pending_walk
    assert gps["location"]["lat"] == 32.0853
    assert ws.of_type("emergency_alert")[0]["message"] == "Lost leash"
    assert "message" not in gps


@pytest.mark.asyncio
async def test_snapshot_served_when_cache_is_down(client, owner, pending_walk, redis_client_session, mocker):
    owner_token, _ = owner
    mocker.patch.object(redis_client_session, "get", side_effect=ConnectionError("redis down"))
    mocker.patch.object(redis_client_session, "set", side_effect=ConnectionError("redis down"))

    response = await client.get(f"{BASE}/{pending_walk}", headers=auth(owner_token))
    assert response.status_code == 200
    assert response.json()["id"] == pending_walk
