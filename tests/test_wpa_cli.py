import unittest

from router_config.core import Config, PathsConfig, SwitchConfig
from router_config.system import CommandResult
from router_config.wpa_cli import KnownNetwork, WpaCli, encode_param, parse_list_networks


LIST_OUTPUT = (
    "Selected interface 'wlan0'\n"
    "network id / ssid / bssid / flags\n"
    "0\thome\tany\t[CURRENT]\n"
    "1\tcoffee shop\tany\t\n"
    "2\told\t00:11:22:33:44:55\t[DISABLED]\n"
)


class RecordingRunner:
    def __init__(self, result: CommandResult) -> None:
        self.result = result
        self.commands = []

    def __call__(self, command):
        self.commands.append(list(command))
        return self.result


class TestParseListNetworks(unittest.TestCase):
    def test_parses_rows_and_flags(self) -> None:
        networks = parse_list_networks(LIST_OUTPUT)

        self.assertEqual([network.id for network in networks], ["0", "1", "2"])
        self.assertEqual(networks[1].ssid, "coffee shop")
        self.assertTrue(networks[0].is_current)
        self.assertFalse(networks[1].is_current)
        self.assertTrue(networks[2].is_disabled)
        self.assertEqual(networks[2].bssid, "00:11:22:33:44:55")

    def test_empty_list(self) -> None:
        self.assertEqual(parse_list_networks("network id / ssid / bssid / flags\n"), [])


class TestEncodeParam(unittest.TestCase):
    def test_sensitive_values_are_quoted(self) -> None:
        self.assertEqual(encode_param("ssid", "home"), '"home"')
        self.assertEqual(encode_param("identity", "user@example.com"), '"user@example.com"')
        self.assertEqual(encode_param("phase1", "peaplabel=0"), '"peaplabel=0"')

    def test_already_quoted_value_is_kept(self) -> None:
        self.assertEqual(encode_param("psk", '"secret"'), '"secret"')

    def test_raw_pmk_is_not_quoted(self) -> None:
        pmk = "a" * 64
        self.assertEqual(encode_param("psk", pmk), pmk)

    def test_other_params_are_verbatim(self) -> None:
        self.assertEqual(encode_param("key_mgmt", "WPA-PSK"), "WPA-PSK")
        self.assertEqual(encode_param("priority", 5), "5")


class TestWpaCli(unittest.TestCase):
    def test_for_interface_uses_runtime_socket_dir(self) -> None:
        config = Config(paths=PathsConfig(runtime_dir="/run/rc", wpa_cli="/opt/wpa_cli"), switch=SwitchConfig())
        runner = RecordingRunner(CommandResult(0, "OK\n"))

        WpaCli.for_interface("wlan0", config, runner=runner).select_network("2")

        self.assertEqual(
            runner.commands,
            [["sudo", "/opt/wpa_cli", "-p", "/run/rc/wpa_supplicant/wlan0", "select_network", "2"]],
        )

    def test_fail_reply_is_a_failure(self) -> None:
        wpa = WpaCli("wlan0", use_sudo=False, runner=RecordingRunner(CommandResult(0, "FAIL\n")))

        result = wpa.enable_network("1")

        self.assertFalse(result.ok)
        self.assertEqual(wpa.error(result), "Command failed: wpa_cli -p /run/wpa_supplicant/wlan0 enable_network 1")

    def test_list_networks_failure_is_empty(self) -> None:
        wpa = WpaCli("wlan0", runner=RecordingRunner(CommandResult(127, "command not found: sudo")))

        self.assertEqual(wpa.list_networks(), [])

    def test_list_networks(self) -> None:
        wpa = WpaCli("wlan0", runner=RecordingRunner(CommandResult(0, LIST_OUTPUT)))

        self.assertEqual(wpa.list_networks()[0], KnownNetwork(id="0", ssid="home", bssid="any", flags="[CURRENT]"))

    def test_add_network_returns_new_id(self) -> None:
        wpa = WpaCli("wlan0", runner=RecordingRunner(CommandResult(0, "Selected interface 'wlan0'\n4\n")))

        self.assertEqual(wpa.add_network(), "4")

    def test_is_associated(self) -> None:
        completed = WpaCli("wlan0", runner=RecordingRunner(CommandResult(0, "ssid=home\nwpa_state=COMPLETED\n")))
        scanning = WpaCli("wlan0", runner=RecordingRunner(CommandResult(0, "wpa_state=SCANNING\n")))

        self.assertTrue(completed.is_associated())
        self.assertFalse(scanning.is_associated())
        self.assertEqual(completed.status()["ssid"], "home")


if __name__ == "__main__":
    unittest.main()
