"""
Integration tests for the REST API endpoints.

Runs the real routes and repositories against a per-test SQLite database;
``get_db`` is overridden so every request gets a session on that database.
"""

from __future__ import annotations

import logging

import pytest
from httpx import AsyncClient
from sqlalchemy import update

from tests.conftest import seed_tour
from walkable.config import settings
from walkable.infrastructure.models import TourModel


def _tour_body(creator_id: int, **overrides) -> dict:
    body = {
        "creator_id": creator_id,
        "title": "Engineering Quad",
        "description": "Labs and landmarks north of Green Street.",
        "category": "science",
        "latitude": "40.1125",
        "longitude": "-88.2269",
        "duration": 40,
        "distance": "1.1 miles",
        "stops": [
            {"title": "Grainger Library", "latitude": "40.1125", "longitude": "-88.2269",
             "media_type": "audio", "audio_file_url": "https://m.test/grainger.mp3",
             "order": 2},
            {"title": "Siebel Center", "latitude": "40.1138", "longitude": "-88.2249",
             "media_type": "video", "video_file_url": "https://m.test/siebel.mp4",
             "order": 1},
        ],
    }
    body.update(overrides)
    return body


# ── Health ────────────────────────────────────────────────────────────


@pytest.mark.asyncio
async def test_health(client: AsyncClient):
    resp = await client.get("/api/v1/admin/health")
    assert resp.status_code == 200
    assert resp.json()["status"] == "ok"


# ── Tours ─────────────────────────────────────────────────────────────


@pytest.mark.asyncio
async def test_list_tours(client: AsyncClient, session_factory):
    seeded = await seed_tour(session_factory)
    resp = await client.get("/api/v1/tours")
    assert resp.status_code == 200
    data = resp.json()
    assert [t["id"] for t in data] == [seeded["tour_id"]]
    assert data[0]["latitude"] == "40.1074"


@pytest.mark.asyncio
async def test_get_tour(client: AsyncClient, session_factory):
    seeded = await seed_tour(session_factory)
    resp = await client.get(f"/api/v1/tours/{seeded['tour_id']}")
    assert resp.status_code == 200
    assert resp.json()["title"] == "Main Quad Highlights"


@pytest.mark.asyncio
async def test_get_tour_not_found(client: AsyncClient):
    resp = await client.get("/api/v1/tours/9999")
    assert resp.status_code == 404


@pytest.mark.asyncio
async def test_tour_details_orders_stops(client: AsyncClient, session_factory):
    seeded = await seed_tour(session_factory)
    resp = await client.get(f"/api/v1/tours/{seeded['tour_id']}/details")
    assert resp.status_code == 200
    stops = resp.json()["stops"]
    assert [s["order"] for s in stops] == [1, 2, 3]
    assert [s["id"] for s in stops] == seeded["stop_ids"]
    assert stops[1]["media_type"] == "video"


@pytest.mark.asyncio
async def test_create_tour_returns_201(client: AsyncClient, session_factory):
    seeded = await seed_tour(session_factory)
    resp = await client.post("/api/v1/tours", json=_tour_body(seeded["user_id"]))
    assert resp.status_code == 201
    data = resp.json()
    assert data["id"] is not None
    assert [s["title"] for s in data["stops"]] == ["Siebel Center", "Grainger Library"]


@pytest.mark.asyncio
async def test_create_tour_unknown_creator(client: AsyncClient):
    resp = await client.post("/api/v1/tours", json=_tour_body(9999))
    assert resp.status_code == 404


@pytest.mark.asyncio
async def test_create_tour_rejects_bad_coordinates(client: AsyncClient, session_factory):
    seeded = await seed_tour(session_factory)
    resp = await client.post(
        "/api/v1/tours", json=_tour_body(seeded["user_id"], longitude="-88.22.7")
    )
    assert resp.status_code == 422


@pytest.mark.asyncio
async def test_create_tour_rejects_duplicate_stop_order(client: AsyncClient, session_factory):
    seeded = await seed_tour(session_factory)
    body = _tour_body(seeded["user_id"])
    body["stops"][0]["order"] = 1
    resp = await client.post("/api/v1/tours", json=body)
    assert resp.status_code == 422


# ── Nearby ────────────────────────────────────────────────────────────


@pytest.mark.asyncio
async def test_nearby_filters_by_radius(client: AsyncClient, session_factory):
    quad = await seed_tour(session_factory)
    chicago = await seed_tour(
        session_factory, title="Chicago Loop", latitude="41.8789",
        longitude="-87.6359", username="chicagoan",
    )

    resp = await client.get(
        "/api/v1/tours/nearby", params={"lat": 40.1080, "lon": -88.2270, "radius": 5}
    )
    assert resp.status_code == 200
    assert [t["id"] for t in resp.json()] == [quad["tour_id"]]

    resp = await client.get(
        "/api/v1/tours/nearby", params={"lat": 40.1080, "lon": -88.2270, "radius": 500}
    )
    assert [t["id"] for t in resp.json()] == [quad["tour_id"], chicago["tour_id"]]


@pytest.mark.asyncio
async def test_nearby_default_radius(client: AsyncClient, session_factory):
    quad = await seed_tour(session_factory)
    resp = await client.get("/api/v1/tours/nearby", params={"lat": 40.11, "lon": -88.23})
    assert [t["id"] for t in resp.json()] == [quad["tour_id"]]


@pytest.mark.asyncio
async def test_nearby_zero_radius_is_empty(client: AsyncClient, session_factory):
    await seed_tour(session_factory)
    resp = await client.get(
        "/api/v1/tours/nearby", params={"lat": 40.1074, "lon": -88.2272, "radius": 0}
    )
    assert resp.status_code == 200
    assert resp.json() == []


@pytest.mark.asyncio
async def test_nearby_skips_malformed_tour(client: AsyncClient, session_factory):
    good = await seed_tour(session_factory)
    await seed_tour(
        session_factory, title="Legacy import", latitude="40.1100",
        longitude="-88.22.7", stops=[], username="legacy",
    )
    resp = await client.get(
        "/api/v1/tours/nearby", params={"lat": 40.1080, "lon": -88.2270, "radius": 500}
    )
    assert resp.status_code == 200
    assert [t["id"] for t in resp.json()] == [good["tour_id"]]


@pytest.mark.asyncio
async def test_nearby_includes_tour_without_cell(client: AsyncClient, session_factory):
    quad = await seed_tour(session_factory)
    async with session_factory() as session:
        await session.execute(
            update(TourModel).where(TourModel.id == quad["tour_id"]).values(h3_cell=None)
        )
        await session.commit()

    resp = await client.get(
        "/api/v1/tours/nearby", params={"lat": 40.108, "lon": -88.227, "radius": 5}
    )
    assert [t["id"] for t in resp.json()] == [quad["tour_id"]]


@pytest.mark.asyncio
async def test_nearby_after_resolution_change(
    client: AsyncClient, session_factory, monkeypatch
):
    quad = await seed_tour(session_factory)
    monkeypatch.setattr(settings, "h3_resolution", 8)

    resp = await client.get(
        "/api/v1/tours/nearby", params={"lat": 40.108, "lon": -88.227, "radius": 5}
    )
    assert [t["id"] for t in resp.json()] == [quad["tour_id"]]


@pytest.mark.asyncio
async def test_nearby_logs_malformed_tour_within_small_radius(
    client: AsyncClient, session_factory, caplog
):
    good = await seed_tour(session_factory)
    legacy = await seed_tour(
        session_factory, title="Legacy import", latitude="40.1100",
        longitude="-88.22.7", stops=[], username="legacy",
    )
    with caplog.at_level(logging.WARNING, logger="walkable.domain.proximity"):
        resp = await client.get(
            "/api/v1/tours/nearby", params={"lat": 40.108, "lon": -88.227, "radius": 5}
        )
    assert [t["id"] for t in resp.json()] == [good["tour_id"]]
    assert f"Skipping tour {legacy['tour_id']}" in caplog.text


@pytest.mark.asyncio
async def test_nearby_documents_coordinate_policy(client: AsyncClient):
    resp = await client.get("/openapi.json")
    description = resp.json()["paths"]["/api/v1/tours/nearby"]["get"]["description"]
    assert "out of range" in description


@pytest.mark.asyncio
async def test_nearby_rejects_out_of_range_query(client: AsyncClient):
    resp = await client.get("/api/v1/tours/nearby", params={"lat": 95, "lon": 0})
    assert resp.status_code == 422


# ── Progress ──────────────────────────────────────────────────────────


@pytest.mark.asyncio
async def test_progress_flow(client: AsyncClient, session_factory):
    seeded = await seed_tour(session_factory)
    tour_id, user_id = seeded["tour_id"], seeded["user_id"]
    url = f"/api/v1/tours/{tour_id}/progress"

    resp = await client.get(url, params={"user_id": user_id})
    assert resp.status_code == 200
    assert resp.json()["progress"] == []

    for i, stop_id in enumerate(seeded["stop_ids"]):
        resp = await client.post(url, json={"user_id": user_id, "stop_id": stop_id})
        assert resp.status_code == 201
        data = resp.json()
        assert len(data["progress"]) == i + 1
        assert data["is_completed"] == (i == len(seeded["stop_ids"]) - 1)

    resp = await client.get(url, params={"user_id": user_id})
    assert resp.json()["is_completed"] is True


@pytest.mark.asyncio
async def test_progress_is_idempotent(client: AsyncClient, session_factory):
    seeded = await seed_tour(session_factory)
    url = f"/api/v1/tours/{seeded['tour_id']}/progress"
    body = {"user_id": seeded["user_id"], "stop_id": seeded["stop_ids"][0]}
    await client.post(url, json=body)
    resp = await client.post(url, json=body)
    assert len(resp.json()["progress"]) == 1


@pytest.mark.asyncio
async def test_progress_unknown_stop(client: AsyncClient, session_factory):
    seeded = await seed_tour(session_factory)
    resp = await client.post(
        f"/api/v1/tours/{seeded['tour_id']}/progress",
        json={"user_id": seeded["user_id"], "stop_id": 9999},
    )
    assert resp.status_code == 404


@pytest.mark.asyncio
async def test_progress_unknown_user(client: AsyncClient, session_factory):
    seeded = await seed_tour(session_factory)
    resp = await client.post(
        f"/api/v1/tours/{seeded['tour_id']}/progress",
        json={"user_id": 9999, "stop_id": seeded["stop_ids"][0]},
    )
    assert resp.status_code == 404


@pytest.mark.asyncio
async def test_progress_unknown_tour(client: AsyncClient):
    resp = await client.get("/api/v1/tours/9999/progress", params={"user_id": 1})
    assert resp.status_code == 404
