"""PayloadResolver / PayloadStream 单元测试"""

import httpx
import pytest
from agrirouter.exceptions import (
    InvalidPayloadURIError,
    MissingPayloadError,
    PayloadFetchError,
    PayloadReadError,
)
from agrirouter.payload import PayloadResolver, parse_payload_uri
from conftest import API_URL, broken_body


@pytest.fixture
def resolver(http_client) -> PayloadResolver:
    return PayloadResolver(http_client)


class TestParsePayloadURI:
    """payload URI 校验"""

    def test_https_accepted(self):
        url = parse_payload_uri("https://files.agrirouter.test/p/1?sig=abc")
        assert url.host == "files.agrirouter.test"

    @pytest.mark.parametrize(
        "uri",
        ["ftp://files.test/p", "/relative/path", "not a url", "http://"],
    )
    def test_rejected(self, uri):
        with pytest.raises(InvalidPayloadURIError) as exc_info:
            parse_payload_uri(uri)
        assert exc_info.value.uri == uri


class TestResolveBuffered:
    """resolve_buffered(): 消息 payload"""

    async def test_inline_returned_without_request(self, resolver, platform):
        """内嵌 payload 直接返回，不发请求"""
        payload = await resolver.resolve_buffered(b"ABC", None)
        assert payload == b"ABC"
        assert platform.requests == []

    async def test_uri_wins_over_inline(self, resolver, platform):
        """两者都存在时拉取远程 payload"""
        uri = platform.add_payload("/payloads/1", b"remote")
        payload = await resolver.resolve_buffered(b"inline", uri)
        assert payload == b"remote"
        assert len(platform.requests_to("/payloads/1")) == 1

    async def test_empty_inline_is_not_missing(self, resolver):
        assert await resolver.resolve_buffered(b"", None) == b""

    async def test_fetch_from_uri(self, resolver, platform):
        uri = platform.add_payload("/payloads/1", b"remote payload")
        payload = await resolver.resolve_buffered(None, uri)
        assert payload == b"remote payload"
        assert len(platform.requests_to("/payloads/1")) == 1

    async def test_both_missing(self, resolver):
        with pytest.raises(MissingPayloadError):
            await resolver.resolve_buffered(None, None)

    async def test_non_200_raises_with_status_and_body(self, resolver, platform):
        uri = platform.add_payload("/payloads/1", b"storage unavailable", status=500)
        with pytest.raises(PayloadFetchError) as exc_info:
            await resolver.resolve_buffered(None, uri)
        assert exc_info.value.status_code == 500
        assert exc_info.value.body == b"storage unavailable"
        assert exc_info.value.recoverable is True

    async def test_invalid_uri(self, resolver, platform):
        with pytest.raises(InvalidPayloadURIError):
            await resolver.resolve_buffered(None, "ftp://files.test/p")
        assert platform.requests == []

    async def test_read_interrupted(self, resolver, platform):
        uri = platform.add_payload("/payloads/1", lambda: broken_body(b"partial"))
        with pytest.raises(PayloadReadError):
            await resolver.resolve_buffered(None, uri)

    async def test_network_error(self):
        def refuse(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("connection refused", request=request)

        async with httpx.AsyncClient(transport=httpx.MockTransport(refuse)) as http:
            with pytest.raises(PayloadFetchError) as exc_info:
                await PayloadResolver(http).resolve_buffered(None, f"{API_URL}/payloads/1")
        assert exc_info.value.status_code is None


class TestResolveStream:
    """resolve_stream(): 文件 payload"""

    async def test_returns_open_stream(self, resolver, platform):
        uri = platform.add_payload("/files/1", b"x" * 100)
        stream = await resolver.resolve_stream(uri)
        assert not stream.closed
        assert stream.content_length == 100
        async with stream:
            assert await stream.aread() == b"x" * 100
        assert stream.closed

    async def test_iterate_chunks(self, resolver, platform):
        uri = platform.add_payload("/files/1", b"abcdef")
        stream = await resolver.resolve_stream(uri)
        chunks = [chunk async for chunk in stream.aiter_bytes(chunk_size=2)]
        assert b"".join(chunks) == b"abcdef"
        assert stream.closed

    async def test_non_200_raises(self, resolver, platform):
        uri = platform.add_payload("/files/1", b"gone", status=404)
        with pytest.raises(PayloadFetchError) as exc_info:
            await resolver.resolve_stream(uri)
        assert exc_info.value.status_code == 404
        assert exc_info.value.body == b"gone"

    async def test_read_interrupted_closes_stream(self, resolver, platform):
        uri = platform.add_payload("/files/1", lambda: broken_body(b"partial"))
        stream = await resolver.resolve_stream(uri)
        with pytest.raises(PayloadReadError):
            await stream.aread()
        assert stream.closed

    async def test_aclose_is_idempotent(self, resolver, platform):
        uri = platform.add_payload("/files/1", b"abc")
        stream = await resolver.resolve_stream(uri)
        await stream.aclose()
        await stream.aclose()
        assert stream.closed


class TestResolverHeaders:
    """附加请求头只作用于拉取请求"""

    async def test_headers_sent_with_fetches(self, http_client, platform):
        resolver = PayloadResolver(http_client, headers={"Authorization": "Bearer tok"})
        buffered_uri = platform.add_payload("/payloads/1", b"abc")
        stream_uri = platform.add_payload("/files/1", b"def")

        await resolver.resolve_buffered(None, buffered_uri)
        async with await resolver.resolve_stream(stream_uri) as stream:
            await stream.aread()

        assert [r.headers["Authorization"] for r in platform.requests] == [
            "Bearer tok",
            "Bearer tok",
        ]
        assert "Authorization" not in http_client.headers
