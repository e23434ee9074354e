from __future__ import annotations

import argparse
import json
import logging
import os
from pathlib import Path
from typing import Any

from router_config.core import Config, config_path_from_env, config_to_toml, load_config, save_config
from router_config.liveness import LivenessError
from router_config.manager import NetworkConfigManager, create_manager


def _parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(prog="router-config")
    parser.add_argument(
        "--config",
        type=Path,
        default=config_path_from_env(),
        help="Path to the router-config settings file.",
    )
    parser.add_argument("-v", "--verbose", action="store_true", help="Enable debug logging.")

    subparsers = parser.add_subparsers(dest="command", required=True)

    init_parser = subparsers.add_parser("init", help="Initialize a default settings file.")
    init_parser.add_argument("--force", action="store_true", help="Overwrite if exists.")

    subparsers.add_parser("show", help="Show the settings file.")

    interfaces_parser = subparsers.add_parser("interfaces", help="List interfaces.")
    interfaces_parser.add_argument("kind", nargs="?", choices=["phy", "all", "wan", "lan"], default="all")

    interface_parser = subparsers.add_parser("interface", help="Show one interface.")
    interface_parser.add_argument("name")

    wifi_parser = subparsers.add_parser("wifi", help="Wi-Fi association actions.")
    wifi_sub = wifi_parser.add_subparsers(dest="wifi_command", required=True)
    wifi_switch = wifi_sub.add_parser("switch", help="Switch a WAN Wi-Fi interface to another network.")
    wifi_switch.add_argument("--interface", required=True)
    wifi_switch.add_argument("--ssid", required=True)
    wifi_switch.add_argument(
        "--param",
        action="append",
        default=[],
        metavar="KEY=VALUE",
        help="wpa_supplicant network parameter, e.g. psk=secret.",
    )

    network_parser = subparsers.add_parser("network", help="Network configuration actions.")
    network_sub = network_parser.add_subparsers(dest="network_command", required=True)
    network_sub.add_parser("show", help="Show the active network configuration.")
    network_validate = network_sub.add_parser("validate", help="Validate a network configuration file.")
    network_validate.add_argument("file", type=Path)
    network_apply = network_sub.add_parser("apply", help="Validate, apply and save a network configuration file.")
    network_apply.add_argument("file", type=Path)
    network_apply.add_argument("--dry-run", action="store_true")

    wan_parser = subparsers.add_parser("wan", help="WAN connectivity actions.")
    wan_sub = wan_parser.add_subparsers(dest="wan_command", required=True)
    wan_check = wan_sub.add_parser("check", help="Probe one WAN interface.")
    wan_check.add_argument("--interface", required=True)
    wan_check.add_argument("--probe-count", type=int, default=1)
    wan_check.add_argument("--http-site", action="append", default=[])
    wan_status = wan_sub.add_parser("status", help="Show overall WAN status.")
    wan_status.add_argument("--live", action="store_true", help="Probe every WAN instead of using cached status.")

    serve_parser = subparsers.add_parser("serve", help="Run the HTTP API.")
    serve_parser.add_argument("--host", default="127.0.0.1")
    serve_parser.add_argument("--port", type=int, default=8837)

    return parser.parse_args(argv)


def _setup_logging(config: Config, verbose: bool) -> None:
    handlers: list[logging.Handler] = [logging.StreamHandler()]
    if config.paths.log_file:
        log_path = Path(config.paths.log_file)
        log_path.parent.mkdir(parents=True, exist_ok=True)
        handlers.append(logging.FileHandler(log_path, encoding="utf-8"))
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
        handlers=handlers,
    )
    logging.getLogger("uvicorn.access").setLevel(logging.WARNING)


def _print_json(payload: Any) -> None:
    print(json.dumps(payload, indent=2, sort_keys=True))


def _print_errors(errors: list[str], success: str) -> int:
    if errors:
        for error in errors:
            print(error)
        return 1
    print(success)
    return 0


def _parse_params(pairs: list[str]) -> dict[str, str] | None:
    params: dict[str, str] = {}
    for pair in pairs:
        if "=" not in pair:
            print(f"Invalid parameter '{pair}'. Expected KEY=VALUE.")
            return None
        key, value = pair.split("=", 1)
        params[key.strip()] = value
    return params


def _load_json(path: Path) -> Any:
    try:
        return json.loads(path.read_text(encoding="utf-8"))
    except OSError as exc:
        print(f"Failed to read {path}: {exc}")
    except ValueError as exc:
        print(f"{path} is not valid JSON: {exc}")
    return None


def _cmd_init(path: Path, force: bool) -> int:
    if path.exists() and not force:
        print(f"Config already exists at {path}. Use --force to overwrite.")
        return 1
    save_config(Config(), path)
    print(f"Initialized config at {path}.")
    return 0


def _cmd_show(path: Path) -> int:
    print(config_to_toml(load_config(path)).rstrip())
    return 0


def _cmd_interfaces(manager: NetworkConfigManager, kind: str) -> int:
    if kind == "phy":
        names = manager.get_phy_interface_names()
    elif kind == "wan":
        names = [iface.name for iface in manager.get_wans()]
    elif kind == "lan":
        names = [iface.name for iface in manager.get_lans()]
    else:
        names = [iface.name for iface in manager.get_interfaces()]
    print("\n".join(names) or "none")
    return 0


def _cmd_interface(manager: NetworkConfigManager, name: str) -> int:
    iface = manager.get_interface(name)
    if iface is None:
        print(f"Interface {name} is not found")
        return 1
    _print_json(iface.to_dict())
    return 0


def _cmd_wifi_switch(manager: NetworkConfigManager, interface: str, ssid: str, pairs: list[str]) -> int:
    params = _parse_params(pairs)
    if params is None:
        return 1
    errors = manager.switch_wifi(interface, ssid, params)
    return _print_errors(errors, f"{interface} switched to {ssid}.")


def _cmd_network_validate(manager: NetworkConfigManager, path: Path) -> int:
    config = _load_json(path)
    if config is None:
        return 1
    return _print_errors(manager.validate_config(config), "Network config is valid.")


def _cmd_network_apply(manager: NetworkConfigManager, path: Path, dry_run: bool) -> int:
    config = _load_json(path)
    if config is None:
        return 1
    errors = manager.set_config(config, dry_run=dry_run)
    return _print_errors(errors, "Dry run succeeded." if dry_run else "Network config applied.")


def _cmd_wan_check(manager: NetworkConfigManager, interface: str, probe_count: int, sites: list[str]) -> int:
    options: dict[str, Any] = {"probe_count": probe_count}
    if sites:
        options["http_sites"] = sites
    try:
        result = manager.check_wan_connectivity(interface, options)
    except LivenessError as exc:
        print(str(exc))
        return 1
    _print_json(result.to_dict())
    return 0


def _cmd_wan_status(manager: NetworkConfigManager, live: bool) -> int:
    try:
        status = manager.is_any_wan_connected({"live": live})
    except LivenessError as exc:
        print(str(exc))
        return 1
    if status is None:
        print("No WAN routing information available.")
        return 1
    _print_json(status)
    return 0


def _cmd_serve(manager: NetworkConfigManager, host: str, port: int) -> int:
    import uvicorn

    from router_config.web import create_app

    uvicorn.run(create_app(manager), host=host, port=port, log_level="info")
    return 0


def main(argv: list[str] | None = None) -> int:
    args = _parse_args(argv)
    path = args.config

    if args.command == "init":
        return _cmd_init(path, args.force)
    if args.command == "show":
        return _cmd_show(path)

    if os.getenv("ROUTER_CONFIG_ALLOW_NON_ROOT") != "1" and os.geteuid() != 0:
        print("router-config must be run as root. Try: sudo router-config")
        return 1

    config = load_config(path)
    _setup_logging(config, args.verbose)
    manager = create_manager(config)
    try:
        return _dispatch(manager, args)
    finally:
        manager.close()


def _dispatch(manager: NetworkConfigManager, args: argparse.Namespace) -> int:
    if args.command == "interfaces":
        return _cmd_interfaces(manager, args.kind)
    if args.command == "interface":
        return _cmd_interface(manager, args.name)
    if args.command == "wifi" and args.wifi_command == "switch":
        return _cmd_wifi_switch(manager, args.interface, args.ssid, args.param)
    if args.command == "network":
        if args.network_command == "show":
            config_doc = manager.get_active_config()
            if config_doc is None:
                print("No active network config.")
                return 1
            _print_json(config_doc)
            return 0
        if args.network_command == "validate":
            return _cmd_network_validate(manager, args.file)
        if args.network_command == "apply":
            return _cmd_network_apply(manager, args.file, args.dry_run)
    if args.command == "wan":
        if args.wan_command == "check":
            return _cmd_wan_check(manager, args.interface, args.probe_count, args.http_site)
        if args.wan_command == "status":
            return _cmd_wan_status(manager, args.live)
    if args.command == "serve":
        return _cmd_serve(manager, args.host, args.port)

    raise SystemExit("Unknown command")


if __name__ == "__main__":
    raise SystemExit(main())
