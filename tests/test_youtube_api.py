import httpx
import pytest

from app.core.config import Settings
from app.core.errors import (
    NotFoundError,
    PlaylistParseError,
    UpstreamAuthError,
    UpstreamError,
    UpstreamTimeoutError,
)
from app.services.youtube_api import fetch_from_api, parse_playlist_items


CONFIG = Settings(YOUTUBE_API_KEY="k", API_PAGE_SIZE=50, API_MAX_PAGES=4)


def _item(video_id, title, thumbs=None):
    snippet = {"title": title, "resourceId": {"kind": "youtube#video", "videoId": video_id}}
    if thumbs is not None:
        snippet["thumbnails"] = thumbs
    return {"snippet": snippet}


def _client(handler):
    return httpx.AsyncClient(transport=httpx.MockTransport(handler))


def test_parse_filters_placeholders_and_picks_thumbnails():
    payload = {
        "items": [
            _item("a1", "First", {"medium": {"url": "m.jpg"}, "default": {"url": "d.jpg"}}),
            _item("b2", "Second", {"default": {"url": "d2.jpg"}}),
            _item("c3", "Third"),
            _item("d4", "Deleted video"),
            _item("e5", "Private video"),
            {"snippet": {"title": "no id", "resourceId": {}}},
        ],
        "nextPageToken": "NEXT",
    }
    songs, token = parse_playlist_items(payload)

    assert [s.id for s in songs] == ["a1", "b2", "c3"]
    assert songs[0].thumbnail == "m.jpg"
    assert songs[1].thumbnail == "d2.jpg"
    assert songs[2].thumbnail == "https://img.youtube.com/vi/c3/mqdefault.jpg"
    assert token == "NEXT"


async def test_pages_through_items_and_fetches_title():
    seen = []

    def handler(request):
        params = request.url.params
        seen.append((request.url.path, params.get("pageToken")))
        if request.url.path.endswith("/playlistItems"):
            assert params["key"] == "k"
            assert params["maxResults"] == "50"
            if params.get("pageToken") == "p2":
                return httpx.Response(200, json={"items": [_item("v3", "Three")]})
            return httpx.Response(
                200,
                json={"items": [_item("v1", "One"), _item("v2", "Two")], "nextPageToken": "p2"},
            )
        return httpx.Response(200, json={"items": [{"snippet": {"title": "My Mix"}}]})

    async with _client(handler) as client:
        result = await fetch_from_api(client, "PL1", CONFIG)

    assert result.title == "My Mix"
    assert [s.id for s in result.songs] == ["v1", "v2", "v3"]
    assert result.source == "api"
    assert [p for p, _ in seen].count("/youtube/v3/playlistItems") == 2


async def test_stops_after_max_pages():
    pages = []

    def handler(request):
        if request.url.path.endswith("/playlistItems"):
            pages.append(request.url.params.get("pageToken"))
            n = len(pages)
            return httpx.Response(200, json={"items": [_item(f"v{n}", f"T{n}")], "nextPageToken": f"p{n + 1}"})
        return httpx.Response(200, json={"items": []})

    async with _client(handler) as client:
        result = await fetch_from_api(client, "PL1", CONFIG)

    assert len(pages) == 4
    assert len(result.songs) == 4
    assert result.title == "YouTube Playlist"


async def test_title_failure_does_not_fail_resolution():
    def handler(request):
        if request.url.path.endswith("/playlistItems"):
            return httpx.Response(200, json={"items": [_item("v1", "One")]})
        return httpx.Response(500, json={"error": {"message": "backend error"}})

    async with _client(handler) as client:
        result = await fetch_from_api(client, "PL1", CONFIG)
    assert result.title == "YouTube Playlist"


async def test_empty_playlist_yields_nothing():
    async with _client(lambda r: httpx.Response(200, json={"items": []})) as client:
        assert await fetch_from_api(client, "PL1", CONFIG) is None


async def test_403_is_auth_error_with_upstream_message():
    def handler(request):
        return httpx.Response(403, json={"error": {"message": "The request cannot be completed because you have exceeded your quota."}})

    async with _client(handler) as client:
        with pytest.raises(UpstreamAuthError, match="exceeded your quota"):
            await fetch_from_api(client, "PL1", CONFIG)


async def test_404_is_not_found():
    async with _client(lambda r: httpx.Response(404, json={})) as client:
        with pytest.raises(NotFoundError):
            await fetch_from_api(client, "PL1", CONFIG)


async def test_500_is_upstream_error():
    async with _client(lambda r: httpx.Response(502, text="bad gateway")) as client:
        with pytest.raises(UpstreamError, match="HTTP 502"):
            await fetch_from_api(client, "PL1", CONFIG)


async def test_timeout_is_timeout_error():
    def handler(request):
        raise httpx.ReadTimeout("too slow", request=request)

    async with _client(handler) as client:
        with pytest.raises(UpstreamTimeoutError):
            await fetch_from_api(client, "PL1", CONFIG)


@pytest.mark.parametrize(
    "snippet",
    [
        {"title": {"text": "nested"}, "resourceId": {"videoId": "a1"}},
        {"title": "Fine", "resourceId": "a1"},
        {"title": "Fine", "resourceId": {"videoId": ["a1"]}},
    ],
)
def test_malformed_item_is_parse_error(snippet):
    with pytest.raises(PlaylistParseError):
        parse_playlist_items({"items": [{"snippet": snippet}]})


def test_malformed_thumbnails_fall_back_to_constructed_url():
    payload = {"items": [_item("a1", "First", {"medium": "m.jpg", "default": {"url": 5}})]}
    songs, _ = parse_playlist_items(payload)
    assert songs[0].thumbnail == "https://img.youtube.com/vi/a1/mqdefault.jpg"


async def test_malformed_page_surfaces_as_parse_error():
    def handler(request):
        return httpx.Response(200, json={"items": [{"snippet": {"title": 42, "resourceId": {"videoId": "v1"}}}]})

    async with _client(handler) as client:
        with pytest.raises(PlaylistParseError):
            await fetch_from_api(client, "PL1", CONFIG)
