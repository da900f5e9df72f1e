"""Starting and stopping the external transport plugin process."""

from __future__ import annotations

import enum
import logging
import os
import socket
import subprocess
from collections.abc import Mapping
from dataclasses import dataclass, field

logger = logging.getLogger(__name__)

OBFSPROXY = "obfsproxy"
OBFSPROXY_OPTS_MAX = 4096
TEMPDIR = "" if os.name == "nt" else "/tmp/"


class PluginMode(enum.Enum):
    """Whether the plugin runs next to a client or a server."""

    CLIENT = "client"
    SERVER = "server"


@dataclass
class PluginProcess:
    """A running plugin together with the command line and environment it was given."""

    process: subprocess.Popen
    argv: list[str]
    env: dict[str, str] = field(repr=False)

    def is_finished(self) -> bool:
        """Return True once the plugin process has exited."""
        return self.process.poll() is not None

    def wait(self, timeout: float | None = None) -> int:
        """Wait for the plugin to exit and return its exit code."""
        return self.process.wait(timeout)

    def stop(self) -> None:
        """Terminate the plugin and wait for it to exit."""
        if self.process.poll() is None:
            try:
                self.process.terminate()
            except OSError as exc:
                logger.info("error on terminating the plugin: %s", exc)
        try:
            self.process.wait()
        except OSError as exc:
            logger.info("error on terminating the plugin: %s", exc)

    def __enter__(self) -> PluginProcess:
        return self

    def __exit__(self, *exc_info) -> None:
        self.stop()


def _is_obfsproxy(plugin: str) -> bool:
    return plugin.startswith(OBFSPROXY)


def plugin_command(
    plugin: str,
    plugin_opts: str | None,
    remote_host: str,
    remote_port: str,
    local_host: str,
    local_port: str,
    mode: PluginMode = PluginMode.CLIENT,
    fast_open: bool = False,
) -> list[str]:
    """Build the argument list used to start *plugin*.

    Plugins whose name starts with ``obfsproxy`` run in standalone mode with
    every address on the command line; any other plugin gets only its own
    name and, when enabled, ``--fast-open``.
    """
    if not _is_obfsproxy(plugin):
        argv = [plugin]
        if fast_open:
            argv.append("--fast-open")
        return argv

    data_dir = f"{TEMPDIR}{plugin}_{remote_host}:{remote_port}_{local_host}:{local_port}"
    argv = [plugin, "--data-dir", data_dir]
    if plugin_opts is not None:
        argv.extend(opt for opt in plugin_opts[:OBFSPROXY_OPTS_MAX].split(" ") if opt)

    remote = f"{remote_host}:{remote_port}"
    local = f"{local_host}:{local_port}"
    if mode is PluginMode.CLIENT:
        argv.extend(["--dest", remote, "client", local])
    else:
        argv.extend(["--dest", local, "server", remote])
    return argv


def plugin_environment(
    plugin_opts: str | None,
    remote_host: str,
    remote_port: str,
    local_host: str,
    local_port: str,
    base_env: Mapping[str, str] | None = None,
) -> dict[str, str]:
    """Return the environment a plugin reads its addresses and options from."""
    env = dict(os.environ if base_env is None else base_env)
    env["SS_REMOTE_HOST"] = remote_host
    env["SS_REMOTE_PORT"] = remote_port
    env["SS_LOCAL_HOST"] = local_host
    env["SS_LOCAL_PORT"] = local_port
    if plugin_opts is not None:
        env["SS_PLUGIN_OPTIONS"] = plugin_opts
    return env


def _with_cwd_in_path(env: dict[str, str]) -> dict[str, str]:
    current = env.get("PATH")
    if current is not None:
        try:
            cwd = os.getcwd()
        except OSError:
            return env
        env["PATH"] = f"{cwd}{os.pathsep}{current}"
    return env


def start_plugin(
    plugin: str | None,
    plugin_opts: str | None,
    remote_host: str,
    remote_port: str,
    local_host: str,
    local_port: str,
    mode: PluginMode = PluginMode.CLIENT,
    fast_open: bool = False,
) -> PluginProcess | None:
    """Start *plugin*, searching PATH and the current directory.

    Returns None when *plugin* is empty; raises ValueError when it is None
    and OSError when the process cannot be started.
    """
    if plugin is None:
        raise ValueError("no plugin given")
    if not plugin:
        return None

    env = _with_cwd_in_path(dict(os.environ))
    if not _is_obfsproxy(plugin):
        env = plugin_environment(
            plugin_opts, remote_host, remote_port, local_host, local_port, env
        )
    argv = plugin_command(
        plugin, plugin_opts, remote_host, remote_port, local_host, local_port, mode, fast_open
    )
    process = subprocess.Popen(argv, env=env)
    return PluginProcess(process=process, argv=argv, env=env)


def get_local_port() -> int:
    """Return a currently free local TCP port, or 0 if none could be found."""
    try:
        with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as sock:
            sock.bind(("", 0))
            return sock.getsockname()[1]
    except OSError:
        return 0