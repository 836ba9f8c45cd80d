"""
Tests for the /api/sources endpoints.
"""
from unittest.mock import AsyncMock, patch

import pytest
from fastapi.testclient import TestClient

from iptv_sources.main import app, limiter
from iptv_sources.services.errors import M3UFetchError
from iptv_sources.services.m3u_parser import parse_m3u
from iptv_sources.services.source_normalizer import SourceNormalizer, reset_normalizers

FETCH = "iptv_sources.services.m3u_parser.fetch_and_parse_m3u"


@pytest.fixture(autouse=True)
def clean_state():
    limiter.reset()
    reset_normalizers()
    yield
    reset_normalizers()


@pytest.fixture
def client():
    with TestClient(app) as test_client:
        yield test_client


@pytest.fixture
def m3u_body(m3u_source):
    return {"source": m3u_source.model_dump()}


@pytest.fixture
def playlist(sample_m3u_content):
    return parse_m3u(sample_m3u_content)


def test_health(client):
    response = client.get("/api/health")
    assert response.status_code == 200
    assert response.json()["status"] == "healthy"


def test_capabilities(client, m3u_body, xtream_source):
    response = client.post("/api/sources/capabilities", json=m3u_body)
    assert response.json() == {
        "source_type": "m3u",
        "supports_vod": False,
        "supports_series": False,
        "has_integrated_epg": False,
    }

    response = client.post("/api/sources/capabilities", json={"source": xtream_source.model_dump()})
    assert response.json()["supports_vod"] is True


def test_live_categories_and_channels(client, m3u_body, playlist):
    with patch(FETCH, new=AsyncMock(return_value=playlist)) as fetch:
        categories = client.post("/api/sources/live/categories", json=m3u_body).json()
        channels = client.post(
            "/api/sources/live/channels",
            json={**m3u_body, "category_id": "x-cat-news"},
        ).json()

    # Shared normalizer keeps the playlist cached across requests
    assert fetch.await_count == 1
    assert categories["count"] == 3
    assert [c["id"] for c in categories["categories"]] == ["x-cat-news", "x-cat-sports", "x-cat-uncategorized"]
    assert channels["count"] == 1
    assert channels["channels"][0]["name"] == "News HD"
    assert channels["channels"][0]["stream_type"] == "hls"


def test_cache_clear_forces_refetch(client, m3u_body, playlist):
    with patch(FETCH, new=AsyncMock(return_value=playlist)) as fetch:
        client.post("/api/sources/live/channels", json=m3u_body)
        response = client.post("/api/sources/cache/clear", json=m3u_body)
        client.post("/api/sources/live/channels", json=m3u_body)

    assert response.json() == {"success": True, "source_id": "x"}
    assert fetch.await_count == 2


def test_vod_on_playlist_is_empty(client, m3u_body):
    with patch(FETCH, new=AsyncMock()) as fetch:
        vod = client.post("/api/sources/vod/items", json=m3u_body).json()
        series = client.post("/api/sources/series", json=m3u_body).json()

    assert vod == {"items": [], "count": 0}
    assert series == {"series": [], "count": 0}
    fetch.assert_not_awaited()


def test_series_info_on_playlist_is_bad_request(client, m3u_body):
    response = client.post("/api/sources/series/42", json=m3u_body)

    assert response.status_code == 400
    assert response.json()["detail"] == "M3U sources do not support series"


def test_upstream_failure_is_bad_gateway(client, m3u_body):
    failure = M3UFetchError("Failed to fetch M3U playlist: HTTP 500 Internal Server Error", status_code=500)

    with patch(FETCH, new=AsyncMock(side_effect=failure)):
        response = client.post("/api/sources/live/channels", json=m3u_body)

    assert response.status_code == 502
    assert "HTTP 500" in response.json()["detail"]


def test_epg_url_and_epg(client, m3u_body, playlist):
    with patch(FETCH, new=AsyncMock(return_value=playlist)):
        epg_url = client.post("/api/sources/epg-url", json=m3u_body).json()
    epg = client.post("/api/sources/epg", json={**m3u_body, "stream_id": "1"}).json()

    assert epg_url == {"epg_url": "http://epg.example.com/guide.xml"}
    assert epg["source"] == "m3u"
    assert epg["programs"] == {}


def test_xtream_content(client, xtream_source, xtream_server):
    normalizer = SourceNormalizer(xtream_source, transport=xtream_server.transport)
    body = {"source": xtream_source.model_dump()}

    with patch("iptv_sources.routers.sources.get_normalizer", return_value=normalizer):
        content = client.post("/api/sources/content", json=body).json()
        info = client.post("/api/sources/series/301", json=body).json()
        vod_categories = client.post("/api/sources/vod/categories", json=body).json()
        series_categories = client.post("/api/sources/series/categories", json=body).json()

    assert len(content["live_channels"]) == 2
    assert content["vod_items"][0]["stream_url"] == "http://iptv.example.com:8080/movie/user/pass/201.mkv"
    assert info["series"]["id"] == "301"
    assert set(info["episodes"]) == {"5001", "5002", "3"}
    assert vod_categories["count"] == 1
    assert series_categories["categories"][0]["name"] == "Dramas"


def test_unknown_source_type_rejected(client):
    response = client.post("/api/sources/live/channels", json={"source": {"type": "ftp", "id": "1"}})
    assert response.status_code == 422


def test_validate_reports_result(client):
    response = client.post("/api/sources/validate", json={"type": "m3u", "input": {"playlist_url": ""}})

    assert response.status_code == 200
    body = response.json()
    assert body["result"]["is_valid"] is False
    assert body["result"]["error"] == "Playlist URL is required"
    assert body["result"]["source_type"] == "m3u"
    assert body["summary"] == ""


def test_validate_success_summary(client, sample_m3u_content):
    with patch(FETCH, new=AsyncMock(return_value=parse_m3u(sample_m3u_content))):
        response = client.post(
            "/api/sources/validate",
            json={"type": "m3u", "input": {"playlist_url": "http://lists.example.com/playlist.m3u"}},
        )

    assert response.json()["summary"] == "Found 3 channels, 3 categories"


def test_validate_rejects_malformed_input(client):
    response = client.post("/api/sources/validate", json={"type": "xtream", "input": {"username": ["not", "text"]}})
    assert response.status_code == 422
