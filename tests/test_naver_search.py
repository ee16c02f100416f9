import json
from datetime import timedelta

import aiohttp
import pytest

from newscrawler.crawler.base_crawler import BaseSearchClient
from newscrawler.crawler.naver_search import NaverNewsSearchClient, parse_items, parse_pub_date
from newscrawler.utils.errors import ConfigurationError, SearchError


class FakeResponse:
    def __init__(self, status=200, payload=None, text="", json_error=None):
        self.status = status
        self.reason = "OK" if status == 200 else "Error"
        self._payload = {} if payload is None else payload
        self._text = text
        self._json_error = json_error

    async def json(self, content_type=None):
        if self._json_error is not None:
            raise self._json_error
        return self._payload

    async def text(self):
        return self._text

    async def __aenter__(self):
        return self

    async def __aexit__(self, *exc):
        return False


class FakeSession:
    def __init__(self, response=None, error=None):
        self.response = response
        self.error = error
        self.requests = []

    def get(self, url, params=None, headers=None):
        self.requests.append({"url": url, "params": params, "headers": headers})
        if self.error is not None:
            raise self.error
        return self.response


@pytest.fixture
def use_session(monkeypatch):
    def install(session):
        async def get_session(cls):
            return session

        monkeypatch.setattr(BaseSearchClient, "get_session", classmethod(get_session))
        return session

    return install


def test_parse_pub_date():
    parsed = parse_pub_date("Mon, 10 Mar 2025 09:30:00 +0900")
    assert parsed is not None
    assert parsed.utcoffset() == timedelta(hours=9)
    assert parsed.hour == 9


@pytest.mark.parametrize("value", [None, "", "not a date", "Mon, 10 Mar 2025 09:30:00"])
def test_parse_pub_date_invalid(value):
    assert parse_pub_date(value) is None


def test_parse_items_prefers_original_link():
    payload = {
        "items": [
            {
                "title": "<b>삼성</b> 실적",
                "description": "본문",
                "originallink": "https://origin.example.com/1",
                "link": "https://n.news.naver.com/1",
                "pubDate": "Mon, 10 Mar 2025 09:30:00 +0900",
            },
            {
                "title": "두번째",
                "description": "",
                "originallink": "",
                "link": "https://n.news.naver.com/2",
                "pubDate": "garbage",
            },
        ]
    }
    hits = parse_items(payload)
    assert [h.url for h in hits] == ["https://origin.example.com/1", "https://n.news.naver.com/2"]
    assert hits[0].title == "<b>삼성</b> 실적"
    assert hits[1].published_at is None


def test_parse_items_empty_payload():
    assert parse_items({}) == []


@pytest.mark.asyncio
async def test_missing_credentials_raise_configuration_error(use_session):
    session = use_session(FakeSession(FakeResponse()))
    client = NaverNewsSearchClient(client_id="", client_secret="", request_delay=0)
    with pytest.raises(ConfigurationError):
        await client.search("삼성")
    assert session.requests == []


@pytest.mark.asyncio
async def test_search_sends_query_and_credentials(use_session):
    payload = {"items": [{"title": "t", "description": "d", "link": "https://x", "pubDate": ""}]}
    session = use_session(FakeSession(FakeResponse(payload=payload)))
    client = NaverNewsSearchClient(client_id="id", client_secret="secret", request_delay=0)

    hits = await client.search("삼성전자")

    assert len(hits) == 1
    request = session.requests[0]
    assert request["params"] == {"query": "삼성전자", "display": "100", "sort": "date"}
    assert request["headers"]["X-Naver-Client-Id"] == "id"
    assert request["headers"]["X-Naver-Client-Secret"] == "secret"


@pytest.mark.asyncio
async def test_non_200_raises_search_error(use_session):
    use_session(FakeSession(FakeResponse(status=401, text="unauthorized")))
    client = NaverNewsSearchClient(client_id="id", client_secret="secret", request_delay=0)
    with pytest.raises(SearchError) as exc_info:
        await client.search("삼성")
    assert exc_info.value.status == 401


@pytest.mark.asyncio
async def test_network_error_raises_search_error(use_session):
    use_session(FakeSession(error=aiohttp.ClientConnectionError("refused")))
    client = NaverNewsSearchClient(client_id="id", client_secret="secret", request_delay=0)
    with pytest.raises(SearchError):
        await client.search("삼성")


@pytest.mark.asyncio
async def test_non_json_body_raises_search_error(use_session):
    error = json.JSONDecodeError("Expecting value", "<html>proxy error</html>", 0)
    use_session(FakeSession(FakeResponse(json_error=error)))
    client = NaverNewsSearchClient(client_id="id", client_secret="secret", request_delay=0)
    with pytest.raises(SearchError, match="malformed body"):
        await client.search("삼성")


@pytest.mark.asyncio
async def test_non_object_body_raises_search_error(use_session):
    use_session(FakeSession(FakeResponse(payload=["x"])))
    client = NaverNewsSearchClient(client_id="id", client_secret="secret", request_delay=0)
    with pytest.raises(SearchError, match="malformed body"):
        await client.search("삼성")


def test_parse_items_skips_non_object_entries():
    payload = {"items": ["x", {"title": "t", "description": "d", "link": "https://x", "pubDate": ""}]}
    assert [h.url for h in parse_items(payload)] == ["https://x"]
