"""Serialized switching of a WAN Wi-Fi interface to another network.

Only one switch runs at a time across all interfaces: ``select_network``
disables every other network on the control socket, so two concurrent
switches would corrupt each other's enable/disable bookkeeping.
"""

from __future__ import annotations

import logging
import threading
import time
from typing import Any, Callable

from router_config.interfaces import Interface, InterfaceDirectory
from router_config.wpa_cli import KnownNetwork, WpaCli


logger = logging.getLogger(__name__)

DEFAULT_POLL_INTERVAL = 3.0
DEFAULT_TIMEOUT = 15.0


class WifiSwitcher:
    def __init__(
        self,
        directory: InterfaceDirectory,
        wpa_cli_factory: Callable[[str], WpaCli],
        poll_interval: float = DEFAULT_POLL_INTERVAL,
        timeout: float = DEFAULT_TIMEOUT,
        sleep: Callable[[float], None] = time.sleep,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.directory = directory
        self.wpa_cli_factory = wpa_cli_factory
        self.poll_interval = poll_interval
        self.timeout = timeout
        self._sleep = sleep
        self._clock = clock
        self._lock = threading.Lock()

    def switch(self, name: str, ssid: str, params: dict[str, Any] | None = None) -> list[str]:
        """Associate ``name`` with ``ssid``; an empty list means success."""
        params = dict(params or {})
        with self._lock:
            iface = self.directory.resolve(name)
            error = _precondition_error(name, iface)
            if error:
                return [error]
            return self._switch(self.wpa_cli_factory(name), name, ssid, params)

    def _switch(self, wpa: WpaCli, name: str, ssid: str, params: dict[str, Any]) -> list[str]:
        networks = wpa.list_networks()
        previous = next((network for network in networks if network.is_current), None)
        target = next((network for network in networks if network.ssid == ssid), None)
        if target is None:
            logger.info("ssid %s is not configured on %s yet, adding a new network", ssid, name)
            network_id = wpa.add_network()
            if network_id is None:
                return [f"Failed to add new network {ssid}"]
            target = KnownNetwork(id=network_id, ssid=ssid, bssid=str(params.get("bssid", "")))

        params.setdefault("ssid", ssid)
        for key, value in params.items():
            result = wpa.set_network(target.id, key, value)
            if not result.ok:
                return [wpa.error(result)]

        result = wpa.select_network(target.id)
        if not result.ok:
            return [wpa.error(result)]

        started = self._clock()
        while True:
            self._sleep(self.poll_interval)
            if wpa.is_associated():
                self._reenable(wpa, networks, skip={target.id})
                logger.info("%s switched to %s", name, ssid)
                return []
            if self._clock() - started > self.timeout:
                break

        logger.warning("%s did not associate with %s within %ss, rolling back", name, ssid, self.timeout)
        if previous is not None:
            self._best_effort(wpa, "select_network", previous.id)
            skip = {previous.id}
        else:
            self._best_effort(wpa, "disable_network", target.id)
            skip = {target.id}
        self._reenable(wpa, networks, skip=skip)
        return [f"Failed to switch to {ssid}"]

    def _reenable(self, wpa: WpaCli, networks: list[KnownNetwork], skip: set[str]) -> None:
        # enabled set comes from the snapshot taken before select_network
        for network in networks:
            if network.id in skip or network.is_disabled:
                continue
            self._best_effort(wpa, "enable_network", network.id)

    def _best_effort(self, wpa: WpaCli, action: str, network_id: str) -> None:
        result = getattr(wpa, action)(network_id)
        if not result.ok:
            logger.warning("%s %s on %s failed: %s", action, network_id, wpa.interface, wpa.error(result))


def _precondition_error(name: str, iface: Interface | None) -> str | None:
    if iface is None:
        return f"Interface {name} is not found"
    if not iface.enabled:
        return f"Interface {name} is not enabled"
    if not iface.is_wan:
        return f"Interface {name} is not a WAN interface"
    if not iface.wpa_supplicant:
        return f"wpa_supplicant is not configured on {name}"
    return None
