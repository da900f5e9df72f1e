import json
import os
import socket
import sys

import pytest

from sockrelay.plugin import (
    PluginMode,
    get_local_port,
    plugin_command,
    plugin_environment,
    start_plugin,
)


def _write_script(tmp_path, body):
    script = tmp_path / "fakeplugin"
    script.write_text(f"#!{sys.executable}\n{body}")
    script.chmod(0o755)
    return script


DUMP_BODY = """\
import json, os, sys
out = os.path.join(os.path.dirname(os.path.abspath(__file__)), "out.json")
with open(out, "w") as f:
    json.dump({"argv": sys.argv[1:], "env": dict(os.environ)}, f)
"""

SLEEP_BODY = "import time\ntime.sleep(30)\n"


def test_ss_plugin_command_plain():
    argv = plugin_command("v2ray-plugin", "mode=ws", "1.2.3.4", "8388", "127.0.0.1", "1080",
                          PluginMode.CLIENT, False)
    assert argv == ["v2ray-plugin"]


def test_ss_plugin_command_fast_open():
    argv = plugin_command("v2ray-plugin", None, "1.2.3.4", "8388", "127.0.0.1", "1080",
                          PluginMode.SERVER, True)
    assert argv == ["v2ray-plugin", "--fast-open"]


def test_obfsproxy_client_command():
    argv = plugin_command("obfsproxy", "scramblesuit  --password placeholder", "1.2.3.4", "8388",
                          "127.0.0.1", "1080", PluginMode.CLIENT, True)
    assert argv[0] == "obfsproxy"
    assert argv[1] == "--data-dir"
    assert argv[2].endswith("obfsproxy_1.2.3.4:8388_127.0.0.1:1080")
    assert argv[3:] == [
        "scramblesuit", "--password", "placeholder",
        "--dest", "1.2.3.4:8388", "client", "127.0.0.1:1080",
    ]


def test_obfsproxy_server_command():
    argv = plugin_command("obfsproxy", "obfs3", "0.0.0.0", "8388", "127.0.0.1", "9000",
                          PluginMode.SERVER, False)
    assert argv[3:] == ["obfs3", "--dest", "127.0.0.1:9000", "server", "0.0.0.0:8388"]
    assert "--fast-open" not in argv


def test_obfsproxy_without_options():
    argv = plugin_command("obfsproxy", None, "h", "1", "l", "2", PluginMode.CLIENT, False)
    assert argv[3:] == ["--dest", "h:1", "client", "l:2"]


def test_plugin_environment_sets_addresses():
    base = {"HOME": "/home/user"}
    env = plugin_environment("a=b", "1.2.3.4", "8388", "127.0.0.1", "1080", base)
    assert env["SS_REMOTE_HOST"] == "1.2.3.4"
    assert env["SS_REMOTE_PORT"] == "8388"
    assert env["SS_LOCAL_HOST"] == "127.0.0.1"
    assert env["SS_LOCAL_PORT"] == "1080"
    assert env["SS_PLUGIN_OPTIONS"] == "a=b"
    assert env["HOME"] == "/home/user"
    assert base == {"HOME": "/home/user"}


def test_plugin_environment_without_options():
    env = plugin_environment(None, "h", "1", "l", "2", {})
    assert "SS_PLUGIN_OPTIONS" not in env
    assert set(env) == {"SS_REMOTE_HOST", "SS_REMOTE_PORT", "SS_LOCAL_HOST", "SS_LOCAL_PORT"}


def test_start_plugin_none_raises():
    with pytest.raises(ValueError):
        start_plugin(None, None, "h", "1", "l", "2", PluginMode.CLIENT, False)


def test_start_plugin_empty_returns_none():
    assert start_plugin("", None, "h", "1", "l", "2", PluginMode.CLIENT, False) is None


def test_start_plugin_passes_env_and_args(tmp_path):
    script = _write_script(tmp_path, DUMP_BODY)
    proc = start_plugin(str(script), "opt=1", "1.2.3.4", "8388", "127.0.0.1", "1080",
                        PluginMode.CLIENT, True)
    assert proc.wait(timeout=30) == 0
    assert proc.is_finished()
    data = json.loads((tmp_path / "out.json").read_text())
    assert data["argv"] == ["--fast-open"]
    assert data["env"]["SS_REMOTE_HOST"] == "1.2.3.4"
    assert data["env"]["SS_LOCAL_PORT"] == "1080"
    assert data["env"]["SS_PLUGIN_OPTIONS"] == "opt=1"
    if "PATH" in os.environ:
        assert data["env"]["PATH"].split(os.pathsep)[0] == os.getcwd()


def test_stop_terminates_running_plugin(tmp_path):
    script = _write_script(tmp_path, SLEEP_BODY)
    proc = start_plugin(str(script), None, "h", "1", "l", "2", PluginMode.CLIENT, False)
    assert not proc.is_finished()
    proc.stop()
    assert proc.is_finished()


def test_get_local_port_is_bindable():
    port = get_local_port()
    assert 0 < port < 65536
    with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as sock:
        sock.bind(("", port))
        assert sock.getsockname()[1] == port