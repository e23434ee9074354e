from __future__ import annotations

import copy
import logging
import threading
import time
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from typing import Any

from router_config.core import LivenessConfig
from router_config.interfaces import InterfaceDirectory, RoutingView


logger = logging.getLogger(__name__)


class LivenessError(Exception):
    """Raised when a WAN probe cannot be run at all."""


class InterfaceNotFoundError(LivenessError):
    pass


class NotWanError(LivenessError):
    pass


@dataclass
class WanProbeResult:
    dns: bool = False
    http: str | bool = False
    ts: int = 0
    extra: dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        payload = dict(self.extra)
        payload.update({"dns": self.dns, "http": self.http, "ts": self.ts})
        return payload

    @classmethod
    def from_check(cls, data: dict[str, Any]) -> "WanProbeResult":
        extra = {key: value for key, value in data.items() if key not in {"dns", "http", "ts"}}
        dns = data.get("dns")
        return cls(dns=bool(dns) if dns is not None else False, http=data.get("http") or False, extra=extra)


class WanLiveness:
    def __init__(
        self,
        directory: InterfaceDirectory,
        routing: RoutingView | None = None,
        policy: LivenessConfig | None = None,
    ) -> None:
        self.directory = directory
        self.routing = routing
        self.policy = policy or LivenessConfig()
        self._results: dict[str, WanProbeResult] = {}
        self._lock = threading.Lock()

    def probe(self, name: str, options: dict[str, Any] | None = None) -> WanProbeResult:
        options = dict(options or {})
        options.setdefault("probe_count", 1)
        plugin = self.directory.plugin(name)
        if plugin is None:
            raise InterfaceNotFoundError(f"Interface {name} is not found in network config")
        if not plugin.is_wan():
            raise NotWanError(f"Interface {name} is not a WAN interface")

        check = plugin.check_wan_connectivity(
            self.policy.dns_servers,
            self.policy.min_success,
            self.policy.dns_timeout,
            self.policy.dns_probe_host,
            options,
        )
        result = WanProbeResult.from_check(check or {})

        for site in options.get("http_sites") or self.policy.http_sites:
            status = plugin.check_http_status(site)
            if status:
                result.http = status
                break

        result.ts = int(time.time())
        with self._lock:
            self._results[name] = result
        logger.debug("WAN probe %s: dns=%s http=%s", name, result.dns, result.http)
        return result

    def last_probe_times(self) -> dict[str, int]:
        with self._lock:
            return {name: result.ts for name, result in self._results.items()}

    def last_probe_results(self) -> dict[str, WanProbeResult]:
        with self._lock:
            return dict(self._results)

    def aggregate(self, options: dict[str, Any] | None = None) -> dict[str, Any] | None:
        """Overall WAN status from the routing view, optionally re-probed.

        Returns None when no routing information is available.
        """
        options = options or {}
        if self.routing is None:
            return None
        overall = self.routing.wan_liveness_view()
        if overall is None:
            return None
        overall = copy.deepcopy(overall)
        wans = overall.get("wans")
        if not wans:
            return overall

        results: dict[str, Any] = {}
        if options.get("live"):
            names = list(wans)
            with ThreadPoolExecutor(max_workers=len(names), thread_name_prefix="wan-probe") as pool:
                futures = {name: pool.submit(self.probe, name) for name in names}
            for name, future in futures.items():
                results[name] = future.result().to_dict()
        else:
            for name in wans:
                plugin = self.directory.plugin(name)
                results[name] = plugin.get_wan_status() if plugin else None

        overall["wans"] = results
        return overall
