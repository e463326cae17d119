"""
Tests for RelayService used directly (no HTTP layer).

Tests cover:
- synthesize(): buffered result, UpstreamError on non-2xx
- Credential check before any network use
- open_chat_stream(): streamed body, upstream response closed afterwards
- Health info never contains the credential
"""
import asyncio

import httpx
import pytest

from conftest import API_KEY, FAKE_MP3, FakeUpstream, make_settings
from speech_relay.services import CredentialMissingError, RelayService, UpstreamError


def _run(fake: FakeUpstream, scenario, api_key=API_KEY):
    config = make_settings(api_key).get_relay_config()

    async def main():
        async with httpx.AsyncClient(transport=fake.transport) as client:
            return await scenario(RelayService(config, client))

    return asyncio.run(main())


class TestSynthesize:

    def test_buffered_result(self):
        async def scenario(service):
            return await service.synthesize(service.parse_synthesis({"input": "Amen"}))

        result = _run(FakeUpstream(), scenario)

        assert result.audio == FAKE_MP3
        assert result.content_type == "audio/mpeg"
        assert result.content_length == len(FAKE_MP3)
        assert result.upstream_seconds >= 0.0

    def test_upstream_error(self):
        fake = FakeUpstream(lambda request: httpx.Response(429, content=b'{"error": "rate"}'))

        async def scenario(service):
            with pytest.raises(UpstreamError) as exc_info:
                await service.synthesize(service.parse_synthesis({"input": "Amen"}))
            return exc_info.value

        error = _run(fake, scenario)

        assert error.status_code == 429
        assert error.body == b'{"error": "rate"}'

    def test_credential_missing_before_network(self):
        fake = FakeUpstream()

        async def scenario(service):
            with pytest.raises(CredentialMissingError):
                await service.synthesize(service.parse_synthesis({"input": "Amen"}))

        _run(fake, scenario, api_key=None)
        assert fake.calls == []


class TestChatStream:

    def test_stream_yields_body_and_closes(self):
        fake = FakeUpstream(
            lambda request: httpx.Response(200, content=b"data: hi\n\n", headers={"content-type": "text/event-stream"})
        )

        async def scenario(service):
            stream = await service.open_chat_stream(service.parse_chat({"messages": []}))
            chunks = [chunk async for chunk in stream.iter_bytes()]
            return stream, b"".join(chunks)

        stream, body = _run(fake, scenario)

        assert body == b"data: hi\n\n"
        assert stream.content_type == "text/event-stream"
        assert stream.response.is_closed

    def test_aclose_without_iterating(self):
        fake = FakeUpstream(lambda request: httpx.Response(200, content=b"data: hi\n\n"))

        async def scenario(service):
            stream = await service.open_chat_stream(service.parse_chat({"messages": []}))
            await stream.aclose()
            await stream.aclose()  # idempotent
            return stream

        assert _run(fake, scenario).response.is_closed

    def test_upstream_error_reads_body(self):
        fake = FakeUpstream(lambda request: httpx.Response(400, content=b'{"error": "bad messages"}'))

        async def scenario(service):
            with pytest.raises(UpstreamError) as exc_info:
                await service.open_chat_stream(service.parse_chat({"messages": [{"role": "nobody"}]}))
            return exc_info.value

        error = _run(fake, scenario)

        assert error.status_code == 400
        assert error.body == b'{"error": "bad messages"}'


class TestHealthInfo:

    def test_presence_only(self):
        service = RelayService(make_settings().get_relay_config())
        info = service.get_health_info()

        assert info["credential_configured"] is True
        assert API_KEY not in repr(info)

    def test_not_ready_without_credential(self):
        service = RelayService(make_settings(None).get_relay_config())

        assert service.is_ready() is False
        with pytest.raises(CredentialMissingError):
            service.ensure_credential()
