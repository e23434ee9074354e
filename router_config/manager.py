"""Long-lived service object wiring the switcher, transaction and liveness parts.

Build one with :func:`create_manager` at process start and pass it to the
CLI or the web app.
"""

from __future__ import annotations

import logging
from typing import Any

from router_config.core import Config
from router_config.interfaces import (
    ConfigInterfaceDirectory,
    ConfigRoutingView,
    Interface,
    InterfaceDirectory,
    RoutingView,
)
from router_config.liveness import WanLiveness, WanProbeResult
from router_config.netsetup import CommandSetupApplier, SetupApplier
from router_config.store import JsonStore
from router_config.switcher import WifiSwitcher
from router_config.system import list_physical_interfaces
from router_config.transaction import ConfigTransaction
from router_config.wpa_cli import WpaCli


logger = logging.getLogger(__name__)


class NetworkConfigManager:
    def __init__(
        self,
        config: Config,
        transaction: ConfigTransaction,
        directory: InterfaceDirectory,
        switcher: WifiSwitcher,
        liveness: WanLiveness,
    ) -> None:
        self.config = config
        self.transaction = transaction
        self.directory = directory
        self.switcher = switcher
        self.liveness = liveness

    def get_phy_interface_names(self) -> list[str]:
        return list_physical_interfaces()

    def get_interfaces(self) -> list[Interface]:
        return self.directory.interfaces()

    def get_wans(self) -> list[Interface]:
        return [iface for iface in self.directory.interfaces() if iface.is_wan]

    def get_lans(self) -> list[Interface]:
        return [iface for iface in self.directory.interfaces() if iface.is_lan]

    def get_interface(self, name: str) -> Interface | None:
        return self.directory.resolve(name)

    def switch_wifi(self, name: str, ssid: str, params: dict[str, Any] | None = None) -> list[str]:
        return self.switcher.switch(name, ssid, params)

    def check_wan_connectivity(self, name: str, options: dict[str, Any] | None = None) -> WanProbeResult:
        return self.liveness.probe(name, options)

    def get_wan_test_result(self) -> dict[str, int]:
        return self.liveness.last_probe_times()

    def is_any_wan_connected(self, options: dict[str, Any] | None = None) -> dict[str, Any] | None:
        return self.liveness.aggregate(options)

    def get_active_config(self) -> dict[str, Any] | None:
        return self.transaction.get_active_config()

    def get_default_config(self) -> dict[str, Any] | None:
        return self.transaction.get_default_config()

    def validate_config(self, config: dict[str, Any] | None) -> list[str]:
        return self.transaction.validate(config)

    def try_apply_config(self, config: dict[str, Any], dry_run: bool = False) -> list[str]:
        return self.transaction.apply(config, dry_run)

    def save_config(self, config: dict[str, Any]) -> None:
        self.transaction.persist(config)

    def set_config(self, config: dict[str, Any], dry_run: bool = False) -> list[str]:
        """Validate, apply and, unless dry run, persist ``config``."""
        errors = self.validate_config(config)
        if errors:
            return errors
        errors = self.try_apply_config(config, dry_run)
        if errors:
            return errors
        if not dry_run:
            self.save_config(config)
            logger.info("Network config applied and saved")
        return []

    def close(self) -> None:
        self.transaction.flush_pending()


def create_manager(
    config: Config,
    store: JsonStore | None = None,
    applier: SetupApplier | None = None,
    directory: InterfaceDirectory | None = None,
    routing: RoutingView | None = None,
) -> NetworkConfigManager:
    transaction = ConfigTransaction(
        store or JsonStore(config.paths.store_path),
        applier or CommandSetupApplier(config.paths.setup_command),
        config.paths.default_network_path,
        config_key=config.persistence.network_config_key,
        flush_delay=config.persistence.flush_delay,
    )
    if directory is None:
        config_directory = ConfigInterfaceDirectory(
            lambda: transaction.get_active_config() or transaction.get_default_config()
        )
        directory = config_directory
        if routing is None:
            routing = ConfigRoutingView(config_directory)
    switcher = WifiSwitcher(
        directory,
        lambda name: WpaCli.for_interface(name, config),
        poll_interval=config.switch.poll_interval,
        timeout=config.switch.timeout,
    )
    liveness = WanLiveness(directory, routing=routing, policy=config.liveness)
    return NetworkConfigManager(config, transaction, directory, switcher, liveness)
