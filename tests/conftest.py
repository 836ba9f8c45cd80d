"""
Pytest configuration and fixtures for IPTV source tests.
"""
from typing import Callable, Union

import httpx
import pytest

from iptv_sources.models.source import M3USource, XtreamSource

SERVER_URL = "http://iptv.example.com:8080"


class FakeXtreamServer:
    """
    Routes player_api.php requests to canned payloads by ``action``.

    A payload may be JSON data, a ready httpx.Response, or a callable taking
    the request (which may raise httpx errors to simulate transport failures).
    Requests without an action are authentication calls and use the "" key.
    """

    def __init__(self, responses: dict[str, Union[object, httpx.Response, Callable]]):
        self.responses = responses
        self.requests: list[httpx.Request] = []

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        action = request.url.params.get("action", "")
        payload = self.responses.get(action)
        if payload is None:
            return httpx.Response(404, text="Not Found")
        if isinstance(payload, httpx.Response):
            return payload
        if callable(payload):
            return payload(request)
        return httpx.Response(200, json=payload)

    @property
    def transport(self) -> httpx.MockTransport:
        return httpx.MockTransport(self.handler)

    @property
    def actions(self) -> list[str]:
        return [request.url.params.get("action", "") for request in self.requests]


@pytest.fixture
def sample_m3u_content():
    """Two grouped channels and one ungrouped channel."""
    return """#EXTM3U x-tvg-url="http://epg.example.com/guide.xml"
#EXTINF:-1 tvg-id="News.us" tvg-name="News" tvg-logo="http://logos.example.com/news.png" group-title="News",News HD
http://streams.example.com/news/index.m3u8
#EXTINF:-1 tvg-id="" tvg-name="Sports One" group-title="Sports",Sports One
http://streams.example.com/live/sports.ts
#EXTINF:-1,Music Channel
http://cdn.example.com/music
"""


@pytest.fixture
def xtream_source():
    return XtreamSource(
        id="src-xtream",
        name="My Provider",
        server_url=f"{SERVER_URL}/",
        username="user",
        password="pass",
        created_at=1700000000000,
    )


@pytest.fixture
def m3u_source():
    return M3USource(
        id="x",
        name="My Playlist",
        playlist_url="http://lists.example.com/playlist.m3u",
        epg_url="http://lists.example.com/fallback.xml",
        created_at=1700000000000,
    )


@pytest.fixture
def auth_payload():
    """Active account expiring in 2100."""
    return {
        "user_info": {
            "username": "user",
            "password": "pass",
            "auth": 1,
            "status": "Active",
            "exp_date": "4102444800",
            "is_trial": "0",
            "active_cons": "1",
            "max_connections": "2",
            "created_at": "1600000000",
            "allowed_output_formats": ["m3u8", "ts"],
        },
        "server_info": {
            "url": "iptv.example.com",
            "port": "8080",
            "https_port": "8443",
            "server_protocol": "http",
            "rtmp_port": "8880",
            "timezone": "UTC",
            "timestamp_now": 1700000000,
            "time_format": "%Y-%m-%d %H:%M:%S",
        },
    }


@pytest.fixture
def live_categories_payload():
    return [
        {"category_id": "1", "category_name": "News", "parent_id": 0},
        {"category_id": 2, "category_name": "Sports", "parent_id": 0},
    ]


@pytest.fixture
def live_streams_payload():
    return [
        {
            "num": 1,
            "name": "News HD",
            "stream_id": 101,
            "stream_icon": "http://logos.example.com/news.png",
            "epg_channel_id": "news.us",
            "category_id": "1",
        },
        {
            "num": "",
            "name": "Sports",
            "stream_id": "102",
            "stream_icon": "",
            "epg_channel_id": None,
            "category_id": 2,
        },
    ]


@pytest.fixture
def vod_streams_payload():
    return [
        {
            "stream_id": 201,
            "name": "The Movie",
            "stream_icon": "http://posters.example.com/movie.jpg",
            "rating": "7.5",
            "rating_5based": 3.8,
            "added": "1609459200",
            "category_id": "10",
            "container_extension": "mkv",
        },
        {
            "stream_id": 202,
            "name": "Another Movie",
            "stream_icon": "",
            "rating": "",
            "rating_5based": 0,
            "added": "1609459300",
            "category_id": "10",
            "container_extension": "",
        },
    ]


@pytest.fixture
def series_payload():
    return [
        {
            "series_id": 301,
            "name": "The Show",
            "cover": "http://posters.example.com/show.jpg",
            "plot": "A show about things.",
            "cast": "Alice, Bob, , Carol",
            "director": "Dan",
            "genre": "Drama, Crime",
            "releaseDate": "2019-05-01",
            "last_modified": "1600000000",
            "rating": "8",
            "rating_5based": 4,
            "backdrop_path": ["http://posters.example.com/show-bg.jpg"],
            "category_id": "20",
        },
    ]


@pytest.fixture
def series_info_payload():
    """Two listed seasons plus episodes for an unlisted season 3."""
    return {
        "seasons": [
            {
                "air_date": "2020-01-01",
                "episode_count": 2,
                "id": 5002,
                "name": "",
                "overview": "",
                "season_number": 2,
                "cover": "http://posters.example.com/s2.jpg",
                "cover_big": "",
            },
            {
                "air_date": "2019-05-01",
                "episode_count": 1,
                "id": 5001,
                "name": "Season One",
                "overview": "The beginning",
                "season_number": 1,
                "cover": "",
                "cover_big": "http://posters.example.com/s1-big.jpg",
            },
        ],
        "info": {
            "name": "The Show",
            "cover": "http://posters.example.com/show.jpg",
            "plot": "A show about things.",
            "cast": "",
            "genre": "Drama",
            "releaseDate": "Released in 2019",
            "rating": "8",
            "rating_5based": "4.1",
            "backdrop_path": [],
            "category_id": "20",
        },
        "episodes": {
            "1": [
                {
                    "id": "9001",
                    "episode_num": 1,
                    "title": "Pilot",
                    "container_extension": "mp4",
                    "info": {
                        "movie_image": "http://posters.example.com/e1.jpg",
                        "plot": "It starts.",
                        "releasedate": "2019-05-01",
                        "rating": 7.9,
                        "duration_secs": 3600,
                        "video": {"codec_name": "h264"},
                        "audio": {"codec_name": "aac"},
                    },
                    "added": "1600000000",
                    "season": 1,
                },
            ],
            "2": [
                {"id": "9002", "episode_num": 1, "title": "", "container_extension": "", "info": [], "season": 2},
                {"id": "9003", "episode_num": "2", "title": "Finale", "info": {}},
            ],
            "3": [
                {"id": "9004", "episode_num": 1, "title": "Bonus", "container_extension": "ts", "info": {}},
            ],
        },
    }


@pytest.fixture
def xtream_server(
    auth_payload,
    live_categories_payload,
    live_streams_payload,
    vod_streams_payload,
    series_payload,
    series_info_payload,
):
    """Fake Xtream panel answering every catalog action."""
    return FakeXtreamServer({
        "": auth_payload,
        "get_live_categories": live_categories_payload,
        "get_live_streams": live_streams_payload,
        "get_vod_categories": [{"category_id": "10", "category_name": "Movies", "parent_id": 0}],
        "get_vod_streams": vod_streams_payload,
        "get_series_categories": [{"category_id": "20", "category_name": "Dramas", "parent_id": 0}],
        "get_series": series_payload,
        "get_series_info": series_info_payload,
    })


@pytest.fixture
def make_xtream_server():
    """Factory for a fake panel with custom per-action responses."""
    return FakeXtreamServer
