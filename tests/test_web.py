import json
import unittest
from pathlib import Path
from tempfile import TemporaryDirectory
from unittest import mock

from fastapi.testclient import TestClient

from router_config.core import Config, PathsConfig
from router_config.manager import create_manager
from router_config.store import JsonStore
from router_config.web import create_app
from fakes import FakeApplier, FakePlugin, FakeRouting, StaticDirectory, wan_wifi


GOOD = {"interface": {"phy": {"eth0": {"enabled": True, "meta": {"type": "wan"}, "ipv4": "192.0.2.2/24"}}}}
CONFLICT = {"interface": {"phy": {"eth0": {"ipv4": "10.0.0.1/24"}, "eth1": {"ipv4": "10.0.0.2/24"}}}}


class TestWebApi(unittest.TestCase):
    def setUp(self) -> None:
        temp_dir = TemporaryDirectory()
        self.addCleanup(temp_dir.cleanup)
        root = Path(temp_dir.name)
        default_path = root / "default_setup.json"
        default_path.write_text(json.dumps(GOOD), encoding="utf-8")
        config = Config(paths=PathsConfig(store_path=str(root / "store.json"), default_network_path=str(default_path)))
        self.applier = FakeApplier()
        self.plugin = FakePlugin(http={"http://captive.apple.com": "200"})
        self.manager = create_manager(
            config,
            store=JsonStore(config.paths.store_path),
            applier=self.applier,
            directory=StaticDirectory([wan_wifi("wlan0")], plugins={"eth0": self.plugin, "eth1": FakePlugin(wan=False)}),
            routing=FakeRouting({"connected": False, "wans": {"eth0": False}}),
        )
        self.addCleanup(self.manager.close)
        self.client = TestClient(create_app(self.manager, require_root=False))

    def test_interfaces(self) -> None:
        response = self.client.get("/config/interfaces")

        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.json()["wlan0"]["section"], "wlan")
        self.assertEqual(self.client.get("/config/interfaces/wlan0").status_code, 200)
        self.assertEqual(self.client.get("/config/interfaces/wlan9").status_code, 404)

    def test_validate_reports_conflicts(self) -> None:
        response = self.client.post("/config/validate", json={"config": CONFLICT})

        self.assertEqual(response.status_code, 400)
        self.assertEqual(response.json(), {"errors": ["ipv4 of eth1 conflicts with ipv4 of eth0"]})
        self.assertEqual(self.client.post("/config/validate", json={"config": GOOD}).json(), {"errors": []})

    def test_set_config_applies_and_persists(self) -> None:
        self.assertEqual(self.client.get("/config/active").status_code, 404)

        response = self.client.post("/config/set", json={"config": GOOD})

        self.assertEqual(response.json(), {"errors": []})
        self.assertEqual(self.applier.calls, [(GOOD, False)])
        self.assertEqual(self.client.get("/config/active").json(), GOOD)

    def test_set_config_validates_once(self) -> None:
        with mock.patch.object(
            self.manager.transaction, "validate", wraps=self.manager.transaction.validate
        ) as validate:
            response = self.client.post("/config/set", json={"config": GOOD})

        self.assertEqual(response.json(), {"errors": []})
        self.assertEqual(validate.call_count, 1)

    def test_failed_apply_is_not_persisted(self) -> None:
        self.applier.results = [["eth0: no such device"], []]

        with self.assertLogs("router_config.transaction", level="ERROR"):
            response = self.client.post("/config/set", json={"config": GOOD})

        self.assertEqual(response.json(), {"errors": ["eth0: no such device"]})
        self.assertIsNone(self.manager.get_active_config())

    def test_dry_run_does_not_persist(self) -> None:
        response = self.client.post("/config/set", json={"config": GOOD, "dry_run": True})

        self.assertEqual(response.json(), {"errors": []})
        self.assertEqual(self.applier.calls, [(GOOD, True)])
        self.assertIsNone(self.manager.get_active_config())

    def test_invalid_config_is_not_applied(self) -> None:
        response = self.client.post("/config/set", json={"config": CONFLICT})

        self.assertEqual(response.status_code, 400)
        self.assertEqual(self.applier.calls, [])

    def test_switch_wifi_precondition_error(self) -> None:
        response = self.client.post("/config/wlan/wlan9/switch_wifi", json={"ssid": "office"})

        self.assertEqual(response.json(), {"errors": ["Interface wlan9 is not found"]})

    def test_wan_probe_and_results(self) -> None:
        response = self.client.post("/config/wan/eth0/connectivity", json={"probe_count": 2})

        self.assertEqual(response.status_code, 200)
        body = response.json()
        self.assertEqual(body["http"], "200")
        self.assertTrue(body["dns"])
        self.assertEqual(self.plugin.check_calls[0][4], {"probe_count": 2})
        self.assertEqual(self.client.get("/config/wan/test_result").json(), {"eth0": body["ts"]})

    def test_wan_probe_errors(self) -> None:
        self.assertEqual(self.client.post("/config/wan/eth9/connectivity", json={}).status_code, 404)
        self.assertEqual(self.client.post("/config/wan/eth1/connectivity", json={}).status_code, 400)
        self.assertEqual(self.client.get("/config/wan/test_result").json(), {})

    def test_overall_connectivity(self) -> None:
        cached = self.client.get("/config/wan/connectivity").json()
        live = self.client.get("/config/wan/connectivity", params={"live": "true"}).json()

        self.assertEqual(cached, {"status": {"connected": False, "wans": {"eth0": None}}})
        self.assertEqual(live["status"]["wans"]["eth0"]["http"], "200")
        self.assertEqual(len(self.plugin.check_calls), 1)

    def test_non_root_is_rejected(self) -> None:
        client = TestClient(create_app(self.manager, require_root=True))

        with mock.patch("router_config.web.os.geteuid", return_value=1000):
            response = client.get("/config/interfaces")

        self.assertEqual(response.status_code, 503)
        self.assertIn("errors", response.json())


if __name__ == "__main__":
    unittest.main()
