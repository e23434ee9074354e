from __future__ import annotations

import ipaddress
import json
import logging
import threading
from pathlib import Path
from typing import Any, Callable

from router_config.interfaces import iter_interface_settings
from router_config.netsetup import SetupApplier
from router_config.store import JsonStore
from router_config.system import CommandResult, sync_filesystems


logger = logging.getLogger(__name__)

DEFAULT_CONFIG_KEY = "sysdb:networkConfig"
DEFAULT_FLUSH_DELAY = 3.0


def _interface_ipv4s(settings: dict[str, Any]) -> list[str]:
    addresses: list[str] = []
    if isinstance(settings.get("ipv4"), str) and settings["ipv4"]:
        addresses.append(settings["ipv4"])
    if isinstance(settings.get("ipv4s"), list):
        addresses.extend(settings["ipv4s"])
    deduped: list[str] = []
    for address in addresses:
        if address not in deduped:
            deduped.append(address)
    return deduped


def _parse_ipv4(value: Any) -> ipaddress.IPv4Interface | None:
    if not isinstance(value, str):
        return None
    try:
        return ipaddress.IPv4Interface(value)
    except ValueError:
        return None


def validate_config(config: dict[str, Any] | None) -> list[str]:
    """Return the first problem found in ``config``, or an empty list.

    Every IPv4 address must parse, and no two different interfaces may hold
    addresses whose networks contain one another.
    """
    if not isinstance(config, dict):
        return ["config is not defined"]
    if not config.get("interface"):
        return ["interface is not defined"]
    owners: dict[str, tuple[str, ipaddress.IPv4Interface]] = {}
    for _section, name, settings in iter_interface_settings(config):
        for value in _interface_ipv4s(settings):
            addr = _parse_ipv4(value)
            if addr is None:
                return [f"ipv4 of {name} is not valid {value}"]
            for owner, other in owners.values():
                if owner == name:
                    continue
                if addr.network.subnet_of(other.network) or other.network.subnet_of(addr.network):
                    return [f"ipv4 of {name} conflicts with ipv4 of {owner}"]
            owners[value] = (name, addr)
    return []


class ConfigTransaction:
    def __init__(
        self,
        store: JsonStore,
        applier: SetupApplier,
        default_config_path: str | Path,
        config_key: str = DEFAULT_CONFIG_KEY,
        flush_delay: float = DEFAULT_FLUSH_DELAY,
        sync: Callable[[], CommandResult] = sync_filesystems,
    ) -> None:
        self.store = store
        self.applier = applier
        self.default_config_path = Path(default_config_path)
        self.config_key = config_key
        self.flush_delay = flush_delay
        self._sync = sync
        self._flush_lock = threading.Lock()
        self._flush_timer: threading.Timer | None = None

    def validate(self, config: dict[str, Any] | None) -> list[str]:
        return validate_config(config)

    def get_active_config(self) -> dict[str, Any] | None:
        raw = self.store.get(self.config_key)
        if not raw:
            return None
        try:
            config = json.loads(raw) if isinstance(raw, str) else raw
        except ValueError:
            logger.error("Stored network config under %s is not valid JSON", self.config_key)
            return None
        return config if isinstance(config, dict) else None

    def get_default_config(self) -> dict[str, Any] | None:
        try:
            return json.loads(self.default_config_path.read_text(encoding="utf-8"))
        except (OSError, ValueError) as exc:
            logger.error("Failed to load default network config %s: %s", self.default_config_path, exc)
            return None

    def apply(self, config: dict[str, Any], dry_run: bool = False) -> list[str]:
        current = self.get_active_config() or self.get_default_config()
        try:
            errors = list(self.applier.apply(config, dry_run))
        except Exception as exc:
            logger.exception("Network setup raised while applying config")
            errors = [str(exc) or exc.__class__.__name__]
        if errors and not dry_run:
            logger.error("Failed to apply network config, rollback to previous setup: %s", errors)
            self._rollback(current)
        return errors

    def _rollback(self, previous: dict[str, Any] | None) -> None:
        if previous is None:
            logger.error("No previous network config available to roll back to")
            return
        try:
            rollback_errors = self.applier.apply(previous, False)
        except Exception:
            logger.exception("Failed to rollback network config")
            return
        if rollback_errors:
            logger.error("Failed to rollback network config: %s", rollback_errors)

    def persist(self, config: dict[str, Any]) -> None:
        content = json.dumps(config)
        self.store.set(self.config_key, content)
        self._schedule_background_save()

    def _schedule_background_save(self) -> None:
        with self._flush_lock:
            if self._flush_timer is not None:
                self._flush_timer.cancel()
            timer = threading.Timer(self.flush_delay, self._background_save)
            timer.daemon = True
            self._flush_timer = timer
            timer.start()

    def _background_save(self) -> None:
        with self._flush_lock:
            if self._flush_timer is not threading.current_thread():
                # superseded by a later persist() while waiting for the lock
                return
            self._flush_timer = None
        self._flush()

    def _flush(self) -> None:
        try:
            self.store.flush_to_disk()
        except OSError as exc:
            logger.error("Background save of network config returned error: %s", exc)
            return
        result = self._sync()
        if not result.ok:
            logger.error("sync after background save failed: %s", result.stdout.strip())

    def flush_pending(self) -> None:
        """Run a scheduled background save now, e.g. before process exit."""
        with self._flush_lock:
            timer = self._flush_timer
            self._flush_timer = None
        if timer is None:
            return
        timer.cancel()
        self._flush()
