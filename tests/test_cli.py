import json
import sys

import pytest
from typer.testing import CliRunner

from fido2keys.cli import app, resolver_app

runner = CliRunner()


@pytest.fixture
def env(tmp_path):
    return {
        "FIDO2KEYS_STORE": str(tmp_path / "keys.json"),
        "FIDO2KEYS_SIMULATED_DELAY": "0",
    }


def invoke(env, *args, input=None, target=app):
    return runner.invoke(target, list(args), input=input, env=env)


def response_of(result):
    # stdout must hold the JSON document and nothing else
    return json.loads(result.stdout)


def test_set_list_get_delete(env):
    result = invoke(env, "set", "openai", "OpenAI key", "--stdin", input="sk-123\n")
    assert result.exit_code == 0, result.output
    assert "provider: \"fido2\"" in result.output

    result = invoke(env, "list")
    assert result.exit_code == 0
    assert "openai" in result.output
    assert "sk-123" not in result.output

    result = invoke(env, "get", "openai")
    assert result.exit_code == 0
    assert "sk-123" in result.output

    result = invoke(env, "delete", "openai", "--yes")
    assert result.exit_code == 0
    assert "No keys stored" in invoke(env, "ls").output


def test_set_asks_before_replacing(env):
    invoke(env, "set", "k", "K", "--stdin", input="v1\n")
    result = invoke(env, "set", "k", "K", "--stdin", input="v2\n")
    # stdin was consumed by the value, so the confirmation prompt aborts
    assert result.exit_code != 0
    assert "v1" in invoke(env, "get", "k").output

    result = invoke(env, "set", "k", "K", "--stdin", "--yes", input="v2\n")
    assert result.exit_code == 0
    assert "v2" in invoke(env, "get", "k").output


def test_missing_key_exits_nonzero(env):
    result = invoke(env, "get", "nope")
    assert result.exit_code == 1
    assert "not found" in result.output


def test_empty_value_refused(env):
    result = invoke(env, "set", "k", "K", "--stdin", input="\n")
    assert result.exit_code == 1


def test_clear(env):
    invoke(env, "set", "a", "A", "--stdin", input="1\n")
    invoke(env, "set", "b", "B", "--stdin", input="2\n")
    result = invoke(env, "clear", "--yes")
    assert result.exit_code == 0
    assert "Cleared 2" in result.output


def test_import(env, monkeypatch):
    set_key_module = sys.modules["fido2keys.commands.set_key"]
    monkeypatch.setattr(set_key_module, "read_secret_value", lambda prompt, desc=None: "sk-imp")
    result = invoke(env, "import", input="Bad_ID\nopenai\nOpenAI\n")
    assert result.exit_code == 0, result.output
    assert "lowercase" in result.output
    assert "sk-imp" in invoke(env, "get", "openai").output


def test_cancelled_touch(env):
    invoke(env, "set", "k", "K", "--stdin", input="v\n")
    env = dict(env, FIDO2KEYS_SIMULATED_OUTCOME="cancel")
    result = invoke(env, "get", "k")
    assert result.exit_code == 1
    assert "cancelled" in result.output


def test_bad_config(env):
    env = dict(env, FIDO2KEYS_GATE="usb-magic")
    result = invoke(env, "list")
    assert result.exit_code == 1
    assert "Unknown gate" in result.output


def test_status(env):
    result = invoke(env, "status")
    assert result.exit_code == 0
    assert "simulated authenticator" in result.output
    assert "not initialized" in result.output


def test_resolver_entrypoint(env):
    invoke(env, "set", "a", "A", "--stdin", input="sk-a\n")
    request = {"protocolVersion": 1, "provider": "fido2", "ids": ["a", "b"]}
    result = invoke(env, input=json.dumps(request), target=resolver_app)
    assert result.exit_code == 0
    out = response_of(result)
    assert out["values"] == {"a": "sk-a"}
    assert out["errors"]["b"]["code"] == "key_not_found"


def test_resolve_command_fatal(env):
    request = {"protocolVersion": 2, "provider": "fido2", "ids": ["a"]}
    result = invoke(env, "resolve", input=json.dumps(request))
    assert result.exit_code == 1
    assert "_system" in result.output


def test_resolver_bad_config_still_answers(env):
    env = dict(env, FIDO2KEYS_REQUEST_TIMEOUT="soon")
    result = invoke(env, input="{}", target=resolver_app)
    assert result.exit_code == 1
    out = response_of(result)
    assert out["errors"]["_system"]["code"] == "config_error"
