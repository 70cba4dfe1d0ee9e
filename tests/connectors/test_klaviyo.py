import httpx
import pytest

from connectors.exceptions import MalformedResponseError
from connectors.klaviyo import KlaviyoClient, parse_next_cursor
from tests.mocks import KLAVIYO_CONFIG, make_klaviyo_client, segment_payload


def test_parse_next_cursor_decodes_query():
    link = "https://a.klaviyo.com/api/segments/SEG/profiles/?page%5Bsize%5D=100&page%5Bcursor%5D=bmV4dA%3D%3D"
    assert parse_next_cursor(link) == "bmV4dA=="


def test_parse_next_cursor_missing_raises():
    with pytest.raises(ValueError, match="No page\\[cursor\\]"):
        parse_next_cursor("https://a.klaviyo.com/api/segments/SEG/profiles/?page%5Bsize%5D=100")


@pytest.mark.asyncio
async def test_fetch_segment_page_sends_headers_and_cursor():
    seen: list[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        return httpx.Response(200, json=segment_payload([("P1", "a@b.com")], next_cursor="CUR2"))

    async with make_klaviyo_client(handler) as client:
        page = await client.fetch_segment_page("CUR1")

    request = seen[0]
    assert request.url.path == "/api/segments/SEG123/profiles/"
    assert request.url.params["page[size]"] == "100"
    assert request.url.params["page[cursor]"] == "CUR1"
    assert request.headers["Authorization"] == "Klaviyo-API-Key pk_test"
    assert request.headers["Revision"] == "2025-04-15"
    assert page.members[0]["id"] == "P1"
    assert parse_next_cursor(page.next_link) == "CUR2"


@pytest.mark.asyncio
async def test_fetch_segment_page_first_page_has_no_cursor():
    seen: list[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        return httpx.Response(200, json=segment_payload([]))

    async with make_klaviyo_client(handler) as client:
        page = await client.fetch_segment_page()

    assert "page[cursor]" not in seen[0].url.params
    assert page.members == []
    assert page.next_link is None


@pytest.mark.asyncio
async def test_fetch_segment_page_invalid_data_format():
    async with make_klaviyo_client(lambda r: httpx.Response(200, json={"errors": []})) as client:
        with pytest.raises(MalformedResponseError, match="Invalid data format"):
            await client.fetch_segment_page()


@pytest.mark.asyncio
async def test_fetch_segment_page_non_json_body():
    async with make_klaviyo_client(lambda r: httpx.Response(200, text="<html>oops</html>")) as client:
        with pytest.raises(MalformedResponseError):
            await client.fetch_segment_page()


@pytest.mark.asyncio
async def test_fetch_segment_page_http_error():
    async with make_klaviyo_client(lambda r: httpx.Response(503, json={})) as client:
        with pytest.raises(httpx.HTTPStatusError):
            await client.fetch_segment_page()


@pytest.mark.asyncio
async def test_get_segment_name():
    def handler(request: httpx.Request) -> httpx.Response:
        assert request.url.path == "/api/segments/SEG123/"
        return httpx.Response(200, json={"data": {"attributes": {"name": "Repeat Buyers"}}})

    async with make_klaviyo_client(handler) as client:
        assert await client.get_segment_name() == "Repeat Buyers"


@pytest.mark.asyncio
async def test_get_segment_name_failure_returns_none():
    async with make_klaviyo_client(lambda r: httpx.Response(404, json={})) as client:
        assert await client.get_segment_name() is None


@pytest.mark.asyncio
async def test_client_outside_context_raises():
    client = KlaviyoClient(KLAVIYO_CONFIG)
    with pytest.raises(RuntimeError, match="outside of 'async with'"):
        await client.fetch_segment_page()


@pytest.mark.asyncio
@pytest.mark.parametrize("body", [{"data": [{"attributes": {"name": "X"}}]}, {"data": {"attributes": []}}, {}])
async def test_get_segment_name_unexpected_shape_returns_none(body):
    async with make_klaviyo_client(lambda r: httpx.Response(200, json=body)) as client:
        assert await client.get_segment_name() is None
