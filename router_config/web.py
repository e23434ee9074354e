from __future__ import annotations

import logging
import os
from typing import Any, Dict, Optional

from fastapi import FastAPI, HTTPException, Request
from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field

from router_config.core import config_path_from_env, load_config
from router_config.liveness import InterfaceNotFoundError, LivenessError
from router_config.manager import NetworkConfigManager, create_manager


logger = logging.getLogger(__name__)

ALLOW_NON_ROOT = os.getenv("ROUTER_CONFIG_ALLOW_NON_ROOT") == "1"


class SetConfigRequest(BaseModel):
    config: Optional[Dict[str, Any]] = None
    dry_run: bool = False


class ValidateRequest(BaseModel):
    config: Optional[Dict[str, Any]] = None


class SwitchWifiRequest(BaseModel):
    ssid: str
    params: Dict[str, Any] = Field(default_factory=dict)


class ConnectivityRequest(BaseModel):
    probe_count: int = 1
    http_sites: Optional[list[str]] = None


def create_app(manager: NetworkConfigManager | None = None, require_root: bool | None = None) -> FastAPI:
    if manager is None:
        manager = create_manager(load_config(config_path_from_env()))
    if require_root is None:
        require_root = not ALLOW_NON_ROOT

    app = FastAPI(title="router-config")
    app.state.manager = manager

    @app.middleware("http")
    async def _root_middleware(request: Request, call_next):
        if require_root and os.geteuid() != 0:
            return JSONResponse(
                {"errors": ["router-config API must run as root. Set ROUTER_CONFIG_ALLOW_NON_ROOT=1 for dev."]},
                status_code=503,
            )
        return await call_next(request)

    @app.on_event("shutdown")
    def _flush_on_shutdown() -> None:
        manager.close()

    @app.get("/config/phy_interfaces")
    def phy_interfaces():
        return {"interfaces": manager.get_phy_interface_names()}

    @app.get("/config/interfaces")
    def interfaces():
        return {iface.name: iface.to_dict() for iface in manager.get_interfaces()}

    @app.get("/config/wans")
    def wans():
        return {iface.name: iface.to_dict() for iface in manager.get_wans()}

    @app.get("/config/lans")
    def lans():
        return {iface.name: iface.to_dict() for iface in manager.get_lans()}

    @app.get("/config/interfaces/{name}")
    def interface(name: str):
        iface = manager.get_interface(name)
        if iface is None:
            raise HTTPException(status_code=404, detail=f"Interface {name} is not found")
        return iface.to_dict()

    @app.get("/config/active")
    def active_config():
        config = manager.get_active_config()
        if config is None:
            raise HTTPException(status_code=404, detail="No active network config")
        return config

    @app.post("/config/validate")
    def validate(body: ValidateRequest):
        errors = manager.validate_config(body.config)
        if errors:
            return JSONResponse({"errors": errors}, status_code=400)
        return {"errors": []}

    @app.post("/config/set")
    def set_config(body: SetConfigRequest):
        errors = manager.validate_config(body.config)
        if errors:
            return JSONResponse({"errors": errors}, status_code=400)
        errors = manager.try_apply_config(body.config, dry_run=body.dry_run)
        if not errors and not body.dry_run:
            manager.save_config(body.config)
        return {"errors": errors}

    @app.post("/config/wlan/{name}/switch_wifi")
    def switch_wifi(name: str, body: SwitchWifiRequest):
        errors = manager.switch_wifi(name, body.ssid, body.params)
        return {"errors": errors}

    @app.post("/config/wan/{name}/connectivity")
    def wan_connectivity(name: str, body: ConnectivityRequest):
        options: dict[str, Any] = {"probe_count": body.probe_count}
        if body.http_sites:
            options["http_sites"] = body.http_sites
        try:
            result = manager.check_wan_connectivity(name, options)
        except InterfaceNotFoundError as exc:
            raise HTTPException(status_code=404, detail=str(exc))
        except LivenessError as exc:
            raise HTTPException(status_code=400, detail=str(exc))
        return result.to_dict()

    @app.get("/config/wan/connectivity")
    def overall_connectivity(live: bool = False):
        try:
            status = manager.is_any_wan_connected({"live": live})
        except LivenessError as exc:
            raise HTTPException(status_code=400, detail=str(exc))
        return {"status": status}

    @app.get("/config/wan/test_result")
    def wan_test_result():
        return manager.get_wan_test_result()

    return app
