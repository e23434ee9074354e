"""wpa_supplicant control commands issued through ``wpa_cli``.

Each interface has its own control socket directory under the runtime
folder. All commands go through :func:`router_config.system._run`, so a
failing or missing ``wpa_cli`` comes back as a :class:`CommandResult`
instead of an exception.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from pathlib import Path
from typing import Callable, Sequence

from router_config.core import Config
from router_config.system import CommandResult, _find_command, _run


SENSITIVE_PARAMS = frozenset(
    {
        "ssid",
        "psk",
        "identity",
        "password",
        "anonymous_identity",
        "phase1",
        "phase2",
        "sae_password",
    }
)
_RAW_PMK_RE = re.compile(r"^[0-9a-fA-F]{64}$")

Runner = Callable[[Sequence[str]], CommandResult]


@dataclass
class KnownNetwork:
    id: str
    ssid: str
    bssid: str = ""
    flags: str = ""

    @property
    def is_current(self) -> bool:
        return "CURRENT" in self.flags

    @property
    def is_disabled(self) -> bool:
        return "DISABLED" in self.flags


def parse_list_networks(output: str) -> list[KnownNetwork]:
    networks: list[KnownNetwork] = []
    for line in output.splitlines():
        # header: "Selected interface ..." and "network id / ssid / bssid / flags"
        if not line.strip() or line.startswith("Selected interface") or line.startswith("network id"):
            continue
        parts = line.split("\t", 3)
        if not parts[0].strip().isdigit():
            continue
        parts += [""] * (4 - len(parts))
        network_id, ssid, bssid, flags = parts
        networks.append(KnownNetwork(id=network_id.strip(), ssid=ssid, bssid=bssid.strip(), flags=flags.strip()))
    return networks


def encode_param(key: str, value: object) -> str:
    text = str(value)
    if key not in SENSITIVE_PARAMS:
        return text
    if key == "psk" and _RAW_PMK_RE.match(text):
        return text
    if len(text) >= 2 and text.startswith('"') and text.endswith('"'):
        return text
    return f'"{text}"'


def command_error(result: CommandResult, command: Sequence[str]) -> str:
    output = result.stdout.strip()
    if output and output != "FAIL":
        return output
    return f"Command failed: {' '.join(command)}"


class WpaCli:
    def __init__(
        self,
        interface: str,
        binary: str = "wpa_cli",
        socket_dir: str | Path | None = None,
        use_sudo: bool = True,
        runner: Runner = _run,
    ) -> None:
        self.interface = interface
        self.binary = binary
        self.socket_dir = str(socket_dir) if socket_dir else f"/run/wpa_supplicant/{interface}"
        self.use_sudo = use_sudo
        self._runner = runner
        self.last_command: list[str] = []

    @classmethod
    def for_interface(cls, interface: str, config: Config, runner: Runner = _run) -> "WpaCli":
        socket_dir = Path(config.paths.runtime_dir) / "wpa_supplicant" / interface
        return cls(
            interface,
            binary=_find_command(config.paths.wpa_cli) or config.paths.wpa_cli,
            socket_dir=socket_dir,
            use_sudo=config.switch.use_sudo,
            runner=runner,
        )

    def _command(self, *args: str) -> list[str]:
        command = [self.binary, "-p", self.socket_dir, *args]
        if self.use_sudo:
            command.insert(0, "sudo")
        return command

    def run(self, *args: str) -> CommandResult:
        command = self._command(*args)
        self.last_command = command
        result = self._runner(command)
        # wpa_cli exits 0 even when the daemon answers FAIL
        if result.returncode == 0 and result.stdout.strip().endswith("FAIL"):
            return CommandResult(returncode=1, stdout=result.stdout)
        return result

    def error(self, result: CommandResult) -> str:
        return command_error(result, self.last_command)

    def list_networks(self) -> list[KnownNetwork]:
        result = self.run("list_networks")
        if not result.ok:
            return []
        return parse_list_networks(result.stdout)

    def add_network(self) -> str | None:
        result = self.run("add_network")
        if not result.ok:
            return None
        lines = [line.strip() for line in result.stdout.splitlines() if line.strip()]
        if not lines or not lines[-1].isdigit():
            return None
        return lines[-1]

    def set_network(self, network_id: str, key: str, value: object) -> CommandResult:
        return self.run("set_network", network_id, key, encode_param(key, value))

    def select_network(self, network_id: str) -> CommandResult:
        return self.run("select_network", network_id)

    def enable_network(self, network_id: str) -> CommandResult:
        return self.run("enable_network", network_id)

    def disable_network(self, network_id: str) -> CommandResult:
        return self.run("disable_network", network_id)

    def status(self) -> dict[str, str]:
        result = self.run("status")
        if not result.ok:
            return {}
        fields: dict[str, str] = {}
        for line in result.stdout.splitlines():
            if "=" not in line:
                continue
            key, value = line.split("=", 1)
            fields[key.strip()] = value.strip()
        return fields

    def is_associated(self) -> bool:
        return self.status().get("wpa_state") == "COMPLETED"
