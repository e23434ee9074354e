"""Interface directory: interface metadata and per-interface capabilities.

Interfaces are read from the active network configuration document, laid
out as ``interface -> section -> name -> settings``. Each interface gets one
long-lived plugin that answers WAN capability questions.
"""

from __future__ import annotations

import copy
import math
import re
import threading
import time
from dataclasses import dataclass, field
from typing import Any, Callable, Iterable, Protocol, Sequence

from router_config.system import CommandResult, _run, interface_carrier, interface_ipv4_address


ConfigSource = Callable[[], "dict[str, Any] | None"]


@dataclass
class Interface:
    name: str
    enabled: bool = False
    type: str = ""
    wpa_supplicant: bool = False
    section: str = ""
    config: dict[str, Any] = field(default_factory=dict)

    @property
    def is_wan(self) -> bool:
        return self.type == "wan"

    @property
    def is_lan(self) -> bool:
        return self.type == "lan"

    def to_dict(self) -> dict[str, Any]:
        return {"name": self.name, "section": self.section, "config": copy.deepcopy(self.config)}

    @classmethod
    def from_settings(cls, name: str, settings: dict[str, Any], section: str = "") -> "Interface":
        meta = settings.get("meta") if isinstance(settings.get("meta"), dict) else {}
        return cls(
            name=name,
            enabled=settings.get("enabled") is True,
            type=str(meta.get("type", "")),
            wpa_supplicant=bool(settings.get("wpaSupplicant")),
            section=section,
            config=dict(settings),
        )


def iter_interface_settings(config: dict[str, Any] | None) -> Iterable[tuple[str, str, dict[str, Any]]]:
    if not isinstance(config, dict) or not isinstance(config.get("interface"), dict):
        return
    for section, entries in config["interface"].items():
        if not isinstance(entries, dict):
            continue
        for name, settings in entries.items():
            if isinstance(settings, dict):
                yield section, name, settings


class InterfacePlugin(Protocol):
    def is_wan(self) -> bool:
        ...

    def check_wan_connectivity(
        self,
        dns_servers: Sequence[str],
        min_success: int,
        timeout: float,
        dns_probe_host: str,
        options: dict[str, Any],
    ) -> dict[str, Any]:
        ...

    def check_http_status(self, url: str) -> str | None:
        ...

    def get_wan_status(self) -> dict[str, Any] | None:
        ...


class InterfaceDirectory(Protocol):
    def resolve(self, name: str) -> Interface | None:
        ...

    def plugin(self, name: str) -> InterfacePlugin | None:
        ...

    def interfaces(self) -> list[Interface]:
        ...


class RoutingView(Protocol):
    def wan_liveness_view(self) -> dict[str, Any] | None:
        ...


class SystemInterfacePlugin:
    """WAN checks run through the interface with ping, dig and curl."""

    def __init__(self, interface: Interface, runner: Callable[[Sequence[str]], CommandResult] = _run) -> None:
        self.interface = interface
        self._runner = runner
        self._lock = threading.Lock()
        self._status: dict[str, Any] | None = None

    def is_wan(self) -> bool:
        return self.interface.is_wan

    def _ping(self, target: str, count: int) -> bool:
        result = self._runner(["ping", "-n", "-c", str(count), "-W", "1", "-I", self.interface.name, target])
        return result.ok and bool(re.search(r"time=", result.stdout))

    def _resolve(self, server: str, host: str, source: str, timeout: float) -> bool:
        wait = str(max(1, math.ceil(timeout)))
        result = self._runner(["dig", "+short", f"+time={wait}", "+tries=1", "-b", source, f"@{server}", host])
        return result.ok and any(line.strip() for line in result.stdout.splitlines())

    def check_wan_connectivity(
        self,
        dns_servers: Sequence[str],
        min_success: int,
        timeout: float,
        dns_probe_host: str,
        options: dict[str, Any],
    ) -> dict[str, Any]:
        name = self.interface.name
        count = int(options.get("probe_count", 1))
        carrier = interface_carrier(name)
        ping_success = sum(1 for server in dns_servers if self._ping(server, count))
        source = interface_ipv4_address(name)
        dns: bool | None
        if source is None:
            dns = None
        else:
            dns_success = sum(1 for server in dns_servers if self._resolve(server, dns_probe_host, source, timeout))
            dns = dns_success >= min_success
        result = {
            "active": carrier and ping_success >= min_success,
            "carrier": carrier,
            "ping": ping_success >= min_success,
            "dns": dns,
        }
        with self._lock:
            self._status = {
                "active": result["active"],
                "ready": bool(result["ping"] and dns),
                "ts": int(time.time()),
            }
        return result

    def check_http_status(self, url: str) -> str | None:
        result = self._runner(
            [
                "curl",
                "-s",
                "-o",
                "/dev/null",
                "-w",
                "%{http_code}",
                "--interface",
                self.interface.name,
                "--max-time",
                "3",
                url,
            ]
        )
        code = result.stdout.strip()
        if result.ok and code[:1] in {"2", "3"}:
            return code
        return None

    def get_wan_status(self) -> dict[str, Any] | None:
        with self._lock:
            return dict(self._status) if self._status is not None else None


class ConfigInterfaceDirectory:
    def __init__(
        self,
        config_source: ConfigSource,
        plugin_factory: Callable[[Interface], InterfacePlugin] = SystemInterfacePlugin,
    ) -> None:
        self._config_source = config_source
        self._plugin_factory = plugin_factory
        self._plugins: dict[str, InterfacePlugin] = {}
        self._lock = threading.Lock()

    def has_config(self) -> bool:
        return self._config_source() is not None

    def interfaces(self) -> list[Interface]:
        return [
            Interface.from_settings(name, settings, section=section)
            for section, name, settings in iter_interface_settings(self._config_source())
        ]

    def wans(self) -> list[Interface]:
        return [iface for iface in self.interfaces() if iface.is_wan]

    def lans(self) -> list[Interface]:
        return [iface for iface in self.interfaces() if iface.is_lan]

    def resolve(self, name: str) -> Interface | None:
        for iface in self.interfaces():
            if iface.name == name:
                return iface
        return None

    def plugin(self, name: str) -> InterfacePlugin | None:
        iface = self.resolve(name)
        if iface is None:
            return None
        with self._lock:
            plugin = self._plugins.get(name)
            if plugin is None:
                plugin = self._plugin_factory(iface)
                self._plugins[name] = plugin
            elif hasattr(plugin, "interface"):
                # keep cached status across config reloads
                plugin.interface = iface
            return plugin


class ConfigRoutingView:
    def __init__(self, directory: ConfigInterfaceDirectory) -> None:
        self.directory = directory

    def wan_liveness_view(self) -> dict[str, Any] | None:
        if not self.directory.has_config():
            return None
        wans: dict[str, Any] = {}
        for iface in self.directory.wans():
            plugin = self.directory.plugin(iface.name)
            status = plugin.get_wan_status() if plugin else None
            wans[iface.name] = bool(status and status.get("ready"))
        return {"connected": any(wans.values()), "wans": wans}
