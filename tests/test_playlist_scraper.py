import json

import httpx
import pytest

from app.core.config import Settings
from app.core.errors import PlaylistParseError, UpstreamError
from app.services.playlist_scraper import (
    extract_initial_data,
    fetch_by_scraping,
    parse_initial_data,
)


def _video(video_id, title=None, label=None, thumb=None):
    v = {"videoId": video_id, "title": {}}
    if title:
        v["title"]["runs"] = [{"text": title}]
    if label:
        v["title"]["accessibility"] = {"accessibilityData": {"label": label}}
    if thumb:
        v["thumbnail"] = {"thumbnails": [{"url": thumb}]}
    return {"playlistVideoRenderer": v}


def _initial_data(videos, title="Scraped Mix"):
    return {
        "contents": {
            "twoColumnBrowseResultsRenderer": {
                "tabs": [{
                    "tabRenderer": {
                        "content": {
                            "sectionListRenderer": {
                                "contents": [{
                                    "itemSectionRenderer": {
                                        "contents": [{
                                            "playlistVideoListRenderer": {"contents": videos}
                                        }]
                                    }
                                }]
                            }
                        }
                    }
                }]
            }
        },
        "sidebar": {
            "playlistSidebarRenderer": {
                "items": [{
                    "playlistSidebarPrimaryInfoRenderer": {"title": {"runs": [{"text": title}]}}
                }]
            }
        },
    }


def _page(data, marker="var ytInitialData = "):
    return f"<html><script>{marker}{json.dumps(data)};</script><script>var other = 1;</script></html>"


def test_parse_with_title_fallbacks():
    data = _initial_data([
        _video("aaa", title="Runs Title", thumb="https://i.ytimg.com/a.jpg"),
        _video("bbb", label="Label Title"),
        _video("ccc"),
        {"continuationItemRenderer": {}},
    ])
    result = parse_initial_data(data, "PL9")

    assert result.title == "Scraped Mix"
    assert result.source == "scrape"
    assert [(s.id, s.title) for s in result.songs] == [
        ("aaa", "Runs Title"),
        ("bbb", "Label Title"),
        ("ccc", "Unknown Title"),
    ]
    assert result.songs[0].thumbnail == "https://i.ytimg.com/a.jpg"
    assert result.songs[1].thumbnail == "https://img.youtube.com/vi/bbb/mqdefault.jpg"


def test_window_marker_and_braces_inside_strings():
    data = _initial_data([_video("x1", title="Weird }; title")])
    html = _page(data, marker='window["ytInitialData"] = ')
    parsed = extract_initial_data(html)
    assert parse_initial_data(parsed, "PL").songs[0].title == "Weird }; title"


def test_missing_marker_is_parse_error():
    with pytest.raises(PlaylistParseError):
        extract_initial_data("<html>nothing here</html>")


def test_unknown_layout_is_parse_error():
    with pytest.raises(PlaylistParseError):
        parse_initial_data({"contents": {}}, "PL")


def test_empty_video_list_yields_nothing():
    assert parse_initial_data(_initial_data([]), "PL") is None


async def test_fetch_sends_browser_headers():
    data = _initial_data([_video("v1", title="One")])

    def handler(request):
        assert "Chrome" in request.headers["user-agent"]
        assert request.headers["accept-language"].startswith("en-US")
        assert request.url.params["list"] == "PLs"
        return httpx.Response(200, text=_page(data))

    async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as client:
        result = await fetch_by_scraping(client, "PLs", Settings())
    assert [s.id for s in result.songs] == ["v1"]


async def test_fetch_http_error_is_upstream_error():
    async with httpx.AsyncClient(transport=httpx.MockTransport(lambda r: httpx.Response(500))) as client:
        with pytest.raises(UpstreamError):
            await fetch_by_scraping(client, "PLs", Settings())


def test_non_text_fields_are_parse_errors():
    bad_id = {"playlistVideoRenderer": {"videoId": {"id": "x"}, "title": {}}}
    with pytest.raises(PlaylistParseError):
        parse_initial_data(_initial_data([bad_id]), "PL")

    bad_title = {"playlistVideoRenderer": {"videoId": "x", "title": {"runs": [{"text": ["x"]}]}}}
    with pytest.raises(PlaylistParseError):
        parse_initial_data(_initial_data([bad_title]), "PL")


def test_malformed_thumbnail_falls_back():
    video = _video("x1", title="One")
    video["playlistVideoRenderer"]["thumbnail"] = {"thumbnails": [{"url": 1}]}
    result = parse_initial_data(_initial_data([video]), "PL")
    assert result.songs[0].thumbnail == "https://img.youtube.com/vi/x1/mqdefault.jpg"
