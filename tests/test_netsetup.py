import json
import os
import unittest

from router_config.netsetup import CommandSetupApplier, parse_setup_errors
from router_config.system import CommandResult


class CapturingRunner:
    def __init__(self, result: CommandResult) -> None:
        self.result = result
        self.commands = []
        self.documents = []

    def __call__(self, command):
        self.commands.append(list(command))
        with open(command[2], encoding="utf-8") as handle:
            self.documents.append(json.load(handle))
        return self.result


class TestParseSetupErrors(unittest.TestCase):
    def test_success(self) -> None:
        self.assertEqual(parse_setup_errors(CommandResult(0, "warning: ignored\n")), [])

    def test_json_error_list(self) -> None:
        result = CommandResult(1, '["eth0: no such device", "br0: bad bridge"]\n')

        self.assertEqual(parse_setup_errors(result), ["eth0: no such device", "br0: bad bridge"])

    def test_plain_output_lines(self) -> None:
        result = CommandResult(2, "\nRTNETLINK answers: File exists\n\n")

        self.assertEqual(parse_setup_errors(result), ["RTNETLINK answers: File exists"])

    def test_silent_failure(self) -> None:
        self.assertEqual(parse_setup_errors(CommandResult(3, "")), ["network setup exited with code 3"])


class TestCommandSetupApplier(unittest.TestCase):
    def test_apply_passes_document_and_cleans_up(self) -> None:
        runner = CapturingRunner(CommandResult(0, ""))
        config = {"interface": {"phy": {"eth0": {"enabled": True}}}}

        errors = CommandSetupApplier("router-netsetup", runner=runner).apply(config, dry_run=True)

        self.assertEqual(errors, [])
        command = runner.commands[0]
        self.assertEqual(command[0:2], ["router-netsetup", "--config"])
        self.assertEqual(command[3:], ["--dry-run"])
        self.assertEqual(runner.documents, [config])
        self.assertFalse(os.path.exists(command[2]))

    def test_apply_reports_errors(self) -> None:
        runner = CapturingRunner(CommandResult(1, '["boom"]'))

        errors = CommandSetupApplier("router-netsetup", runner=runner).apply({"interface": {}})

        self.assertEqual(errors, ["boom"])
        self.assertNotIn("--dry-run", runner.commands[0])


if __name__ == "__main__":
    unittest.main()
