"""
Tests for the speech-relay CLI.

The `say` command goes through RelayService, so the fake upstream
transport is injected the same way the app tests do it.
"""
import json
from unittest.mock import patch

import httpx
import pytest

from conftest import API_KEY, FAKE_MP3, FakeUpstream


@pytest.fixture
def credential(monkeypatch):
    monkeypatch.setenv("OPENAI_API_KEY", API_KEY)


def test_cli_dry_run(capsys):
    from speech_relay import cli

    code = cli.main(["say", "dry run test", "--dry-run"])

    assert code == 0
    assert "DRY_RUN_OK" in capsys.readouterr().out


def test_cli_dry_run_json_payload(capsys, credential):
    from speech_relay import cli

    fake = FakeUpstream()
    code = cli.main(
        ["say", "Be still", "--voice", "alloy", "--speed", "0.9", "--dry-run", "--json"],
        transport=fake.transport,
    )

    assert code == 0
    assert fake.calls == []

    out_lines = capsys.readouterr().out.strip().splitlines()
    assert out_lines[-1] == "DRY_RUN_OK"
    payload = json.loads(next(line for line in reversed(out_lines) if line.startswith("{")))
    assert payload["dry_run"] is True
    assert payload["credential_configured"] is True
    assert payload["url"].endswith("/audio/speech")
    assert payload["payload"] == {
        "model": "tts-1",
        "input": "Be still",
        "voice": "alloy",
        "response_format": "mp3",
        "speed": 0.9,
    }
    assert API_KEY not in "\n".join(out_lines)


def test_cli_say_writes_audio(tmp_path, capsys, credential):
    from speech_relay import cli

    fake = FakeUpstream()
    out_path = tmp_path / "clips" / "amen.mp3"

    code = cli.main(["say", "Amen", "--out", str(out_path), "--json"], transport=fake.transport)

    assert code == 0
    assert out_path.read_bytes() == FAKE_MP3
    assert len(fake.calls) == 1
    assert fake.calls[0].headers["authorization"] == f"Bearer {API_KEY}"
    assert "SAY_OK" in capsys.readouterr().out


def test_cli_say_without_credential(tmp_path):
    from speech_relay import cli

    fake = FakeUpstream()
    code = cli.main(["say", "Amen", "--out", str(tmp_path / "a.mp3")], transport=fake.transport)

    assert code == 1
    assert fake.calls == []
    assert not (tmp_path / "a.mp3").exists()


def test_cli_say_upstream_rejects(tmp_path, credential):
    from speech_relay import cli

    fake = FakeUpstream(lambda request: httpx.Response(401, content=b'{"error": "bad key"}'))
    code = cli.main(["say", "Amen", "--out", str(tmp_path / "a.mp3")], transport=fake.transport)

    assert code == 1
    assert not (tmp_path / "a.mp3").exists()


def test_cli_say_upstream_unreachable(tmp_path, credential):
    from speech_relay import cli

    def refuse(request):
        raise httpx.ConnectError("connection refused", request=request)

    code = cli.main(["say", "Amen", "--out", str(tmp_path / "a.mp3")], transport=FakeUpstream(refuse).transport)

    assert code == 1


def test_cli_say_empty_text():
    from speech_relay import cli

    assert cli.main(["say", "", "--dry-run"]) == 1


def test_cli_requires_command():
    from speech_relay import cli

    with pytest.raises(SystemExit):
        cli.main([])


def test_cli_say_bad_env_override(monkeypatch, capsys):
    from speech_relay import cli

    monkeypatch.setenv("SPEECH_RELAY_TIMEOUT_S", "sixty")

    assert cli.main(["say", "Amen", "--dry-run"]) == 1
    assert "DRY_RUN_OK" not in capsys.readouterr().out


def test_cli_serve_bad_env_override(monkeypatch):
    from speech_relay import cli

    monkeypatch.setenv("SPEECH_RELAY_PORT", "eighty")

    with patch("uvicorn.run") as run:
        assert cli.main(["serve"]) == 1
    run.assert_not_called()
