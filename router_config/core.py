from __future__ import annotations

import os
from dataclasses import dataclass, field
from pathlib import Path
import tempfile
try:
    import tomllib
except ModuleNotFoundError:  # Python < 3.11
    import tomli as tomllib
from typing import Any, Dict, List

import tomli_w


DEFAULT_CONFIG_PATH = Path("/etc/router-config.toml")
DEFAULT_DNS_SERVERS = ["1.1.1.1", "8.8.8.8", "9.9.9.9"]
DEFAULT_HTTP_SITES = [
    "http://captive.apple.com",
    "http://cp.cloudflare.com",
    "http://clients3.google.com/generate_204",
]


@dataclass
class PathsConfig:
    runtime_dir: str = "/run/router-config"
    wpa_cli: str = "wpa_cli"
    store_path: str = "/var/lib/router-config/store.json"
    default_network_path: str = "/etc/router-config/default_setup.json"
    setup_command: str = "router-netsetup"
    log_file: str | None = None

    def to_dict(self) -> Dict[str, Any]:
        payload: Dict[str, Any] = {
            "runtime_dir": self.runtime_dir,
            "wpa_cli": self.wpa_cli,
            "store_path": self.store_path,
            "default_network_path": self.default_network_path,
            "setup_command": self.setup_command,
        }
        if self.log_file:
            payload["log_file"] = self.log_file
        return payload

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "PathsConfig":
        defaults = cls()
        return cls(
            runtime_dir=str(data.get("runtime_dir", defaults.runtime_dir)),
            wpa_cli=str(data.get("wpa_cli", defaults.wpa_cli)),
            store_path=str(data.get("store_path", defaults.store_path)),
            default_network_path=str(data.get("default_network_path", defaults.default_network_path)),
            setup_command=str(data.get("setup_command", defaults.setup_command)),
            log_file=str(data.get("log_file")) if data.get("log_file") else None,
        )


@dataclass
class SwitchConfig:
    poll_interval: float = 3.0
    timeout: float = 15.0
    use_sudo: bool = True

    def to_dict(self) -> Dict[str, Any]:
        return {"poll_interval": self.poll_interval, "timeout": self.timeout, "use_sudo": self.use_sudo}

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "SwitchConfig":
        return cls(
            poll_interval=float(data.get("poll_interval", 3.0)),
            timeout=float(data.get("timeout", 15.0)),
            use_sudo=bool(data.get("use_sudo", True)),
        )


@dataclass
class LivenessConfig:
    dns_servers: List[str] = field(default_factory=lambda: list(DEFAULT_DNS_SERVERS))
    min_success: int = 1
    dns_timeout: float = 0.5
    dns_probe_host: str = "github.com"
    http_sites: List[str] = field(default_factory=lambda: list(DEFAULT_HTTP_SITES))

    def to_dict(self) -> Dict[str, Any]:
        return {
            "dns_servers": list(self.dns_servers),
            "min_success": self.min_success,
            "dns_timeout": self.dns_timeout,
            "dns_probe_host": self.dns_probe_host,
            "http_sites": list(self.http_sites),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "LivenessConfig":
        return cls(
            dns_servers=[str(item) for item in data.get("dns_servers", DEFAULT_DNS_SERVERS)],
            min_success=int(data.get("min_success", 1)),
            dns_timeout=float(data.get("dns_timeout", 0.5)),
            dns_probe_host=str(data.get("dns_probe_host", "github.com")),
            http_sites=[str(item) for item in data.get("http_sites", DEFAULT_HTTP_SITES)],
        )


@dataclass
class PersistenceConfig:
    network_config_key: str = "sysdb:networkConfig"
    flush_delay: float = 3.0

    def to_dict(self) -> Dict[str, Any]:
        return {"network_config_key": self.network_config_key, "flush_delay": self.flush_delay}

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "PersistenceConfig":
        return cls(
            network_config_key=str(data.get("network_config_key", "sysdb:networkConfig")),
            flush_delay=float(data.get("flush_delay", 3.0)),
        )


@dataclass
class Config:
    paths: PathsConfig = field(default_factory=PathsConfig)
    switch: SwitchConfig = field(default_factory=SwitchConfig)
    liveness: LivenessConfig = field(default_factory=LivenessConfig)
    persistence: PersistenceConfig = field(default_factory=PersistenceConfig)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "paths": self.paths.to_dict(),
            "switch": self.switch.to_dict(),
            "liveness": self.liveness.to_dict(),
            "persistence": self.persistence.to_dict(),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Config":
        return cls(
            paths=PathsConfig.from_dict(data.get("paths", {})),
            switch=SwitchConfig.from_dict(data.get("switch", {})),
            liveness=LivenessConfig.from_dict(data.get("liveness", {})),
            persistence=PersistenceConfig.from_dict(data.get("persistence", {})),
        )


def config_path_from_env() -> Path:
    return Path(os.getenv("ROUTER_CONFIG_PATH") or DEFAULT_CONFIG_PATH)


def load_config(path: Path = DEFAULT_CONFIG_PATH) -> Config:
    path = Path(path)
    if not path.exists():
        return Config()
    with path.open("rb") as handle:
        payload = tomllib.load(handle)
    return Config.from_dict(payload)


def _serialize_config(config: Config) -> str:
    return tomli_w.dumps(config.to_dict())


def save_config(config: Config, path: Path = DEFAULT_CONFIG_PATH) -> bool:
    path = Path(path)
    content = _serialize_config(config)
    if path.exists():
        existing = path.read_text(encoding="utf-8")
        if existing == content:
            return False
    path.parent.mkdir(parents=True, exist_ok=True)
    with tempfile.NamedTemporaryFile("w", delete=False, dir=path.parent, encoding="utf-8") as handle:
        handle.write(content)
        temp_name = handle.name
    Path(temp_name).replace(path)
    return True


def config_to_toml(config: Config) -> str:
    return _serialize_config(config)
