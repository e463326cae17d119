"""
Tests for the speech relay (/tts) request/response contract.

Tests cover:
- Credential check happens before the body is read
- Input validation (400)
- Exactly one outbound call with Bearer credential and defaults
- Caller overrides and falsy/null fallback rules
- Upstream failure passthrough (status and raw body)
- Success passthrough (audio/mpeg, Content-Length)
- JSON null, malformed JSON and network failures -> 500 internal error
"""
import json

import httpx
import pytest

from conftest import API_KEY, FAKE_MP3, FakeUpstream


def _sent_json(request: httpx.Request) -> dict:
    return json.loads(request.content)


class TestCredential:
    """Missing credential."""

    def test_missing_credential_returns_500(self, make_client, upstream):
        client = make_client(upstream, api_key=None)

        r = client.post("/tts", json={"input": "Hello"})

        assert r.status_code == 500
        assert r.json() == {"error": "OpenAI API key not configured"}
        assert upstream.calls == []

    def test_credential_checked_before_body(self, make_client, upstream):
        """A malformed body still yields the configuration error."""
        client = make_client(upstream, api_key=None)

        r = client.post("/tts", content=b"{definitely not json", headers={"content-type": "application/json"})

        assert r.status_code == 500
        assert r.json() == {"error": "OpenAI API key not configured"}


class TestInputValidation:
    """Missing or invalid 'input' field."""

    @pytest.mark.parametrize(
        "body",
        [
            {},
            {"input": ""},
            {"input": None},
            {"input": 42},
            {"input": ["In", "the", "beginning"]},
            {"text": "wrong field name"},
        ],
    )
    def test_invalid_input_returns_400(self, client, upstream, body):
        r = client.post("/tts", json=body)

        assert r.status_code == 400
        assert r.json() == {"error": "Missing or invalid 'input' field"}
        assert upstream.calls == []

    @pytest.mark.parametrize("raw", [b"[]", b"\"just a string\"", b"17"])
    def test_non_object_json_returns_400(self, client, upstream, raw):
        r = client.post("/tts", content=raw, headers={"content-type": "application/json"})

        assert r.status_code == 400
        assert r.json() == {"error": "Missing or invalid 'input' field"}
        assert upstream.calls == []


class TestForwarding:
    """The single outbound call."""

    def test_defaults_forwarded(self, client, upstream):
        r = client.post("/tts", json={"input": "Blessed are the peacemakers"})

        assert r.status_code == 200
        assert len(upstream.calls) == 1

        sent = upstream.calls[0]
        assert sent.method == "POST"
        assert str(sent.url) == "https://api.openai.com/v1/audio/speech"
        assert sent.headers["authorization"] == f"Bearer {API_KEY}"
        assert sent.headers["content-type"] == "application/json"
        assert _sent_json(sent) == {
            "model": "tts-1",
            "input": "Blessed are the peacemakers",
            "voice": "onyx",
            "response_format": "mp3",
            "speed": 1.0,
        }

    def test_overrides_forwarded(self, client, upstream):
        body = {
            "input": "Rejoice always",
            "model": "tts-1-hd",
            "voice": "alloy",
            "response_format": "opus",
            "speed": 1.5,
        }
        r = client.post("/tts", json=body)

        assert r.status_code == 200
        assert _sent_json(upstream.calls[0]) == body

    def test_falsy_strings_fall_back_to_defaults(self, client, upstream):
        client.post("/tts", json={"input": "Amen", "model": "", "voice": None, "response_format": ""})

        sent = _sent_json(upstream.calls[0])
        assert sent["model"] == "tts-1"
        assert sent["voice"] == "onyx"
        assert sent["response_format"] == "mp3"

    def test_speed_zero_is_forwarded(self, client, upstream):
        """Only a missing or null speed falls back to the default."""
        client.post("/tts", json={"input": "Amen", "speed": 0})
        assert _sent_json(upstream.calls[0])["speed"] == 0

        client.post("/tts", json={"input": "Amen", "speed": None})
        assert _sent_json(upstream.calls[1])["speed"] == 1.0

    def test_unknown_fields_not_forwarded(self, client, upstream):
        client.post("/tts", json={"input": "Amen", "instructions": "whisper", "user": "abc"})

        assert set(_sent_json(upstream.calls[0])) == {"model", "input", "voice", "response_format", "speed"}

    def test_sub_path_is_the_same_relay(self, client, upstream):
        r = client.post("/tts/v1/speak", json={"input": "Amen"})

        assert r.status_code == 200
        assert len(upstream.calls) == 1

    def test_configured_defaults_and_base_url(self, make_client, upstream):
        client = make_client(
            upstream,
            upstream={"base_url": "http://tts.internal/v1"},
            speech={"voice": "nova", "speed": 0.9},
        )

        client.post("/tts", json={"input": "Amen"})

        sent = upstream.calls[0]
        assert str(sent.url) == "http://tts.internal/v1/audio/speech"
        assert _sent_json(sent)["voice"] == "nova"
        assert _sent_json(sent)["speed"] == 0.9


class TestSuccess:
    """Successful synthesis."""

    def test_audio_relayed_with_length(self, client):
        r = client.post("/tts", json={"input": "The Lord is my shepherd"})

        assert r.status_code == 200
        assert r.headers["content-type"] == "audio/mpeg"
        assert r.headers["content-length"] == str(len(FAKE_MP3))
        assert r.content == FAKE_MP3
        assert "x-request-id" in r.headers

    def test_content_type_fixed_for_other_formats(self, make_client):
        fake = FakeUpstream(lambda request: httpx.Response(200, content=b"OggS....", headers={"content-type": "audio/ogg"}))
        client = make_client(fake)

        r = client.post("/tts", json={"input": "Amen", "response_format": "opus"})

        assert r.status_code == 200
        assert r.headers["content-type"] == "audio/mpeg"
        assert r.content == b"OggS...."


class TestUpstreamFailure:
    """Non-2xx upstream responses are relayed verbatim."""

    @pytest.mark.parametrize("status", [400, 401, 429, 500, 503])
    def test_status_and_body_passthrough(self, make_client, status):
        upstream_body = b'{"error": {"message": "Rate limit reached", "type": "requests"}}'
        fake = FakeUpstream(lambda request: httpx.Response(status, content=upstream_body))
        client = make_client(fake)

        r = client.post("/tts", json={"input": "Amen"})

        assert r.status_code == status
        assert r.content == upstream_body
        assert r.headers["content-type"] == "application/json"
        assert len(fake.calls) == 1

    def test_non_json_upstream_body_passthrough(self, make_client):
        fake = FakeUpstream(lambda request: httpx.Response(502, content=b"<html>Bad Gateway</html>"))
        client = make_client(fake)

        r = client.post("/tts", json={"input": "Amen"})

        assert r.status_code == 502
        assert r.content == b"<html>Bad Gateway</html>"
        assert r.headers["content-type"] == "application/json"


class TestInternalError:
    """Unexpected failures map to 500 with details."""

    def test_malformed_json_returns_internal_error(self, client, upstream):
        r = client.post("/tts", content=b"{not json", headers={"content-type": "application/json"})

        assert r.status_code == 500
        body = r.json()
        assert body["error"] == "Internal server error"
        assert body["details"]
        assert upstream.calls == []

    def test_null_body_returns_internal_error(self, client, upstream):
        r = client.post("/tts", content=b"null", headers={"content-type": "application/json"})

        assert r.status_code == 500
        assert r.json() == {"error": "Internal server error", "details": "cannot read 'input' of a null body"}
        assert upstream.calls == []

    def test_network_failure_returns_internal_error(self, make_client):
        def refuse(request):
            raise httpx.ConnectError("connection refused", request=request)

        client = make_client(FakeUpstream(refuse))

        r = client.post("/tts", json={"input": "Amen"})

        assert r.status_code == 500
        assert r.json() == {"error": "Internal server error", "details": "connection refused"}

    def test_timeout_returns_internal_error(self, make_client):
        def slow(request):
            raise httpx.ReadTimeout("timed out", request=request)

        client = make_client(FakeUpstream(slow))

        r = client.post("/tts", json={"input": "Amen"})

        assert r.status_code == 500
        assert r.json()["details"] == "timed out"

    def test_no_retry_after_failure(self, make_client):
        fake = FakeUpstream(lambda request: httpx.Response(500, content=b"{}"))
        client = make_client(fake)

        client.post("/tts", json={"input": "Amen"})

        assert len(fake.calls) == 1
