from __future__ import annotations

import json
import logging
import os
import tempfile
from typing import Any, Callable, Protocol, Sequence

from router_config.system import CommandResult, _run


logger = logging.getLogger(__name__)


class SetupApplier(Protocol):
    def apply(self, config: dict[str, Any], dry_run: bool = False) -> list[str]:
        ...


def parse_setup_errors(result: CommandResult) -> list[str]:
    if result.ok:
        return []
    output = result.stdout.strip()
    try:
        payload = json.loads(output)
    except ValueError:
        payload = None
    if isinstance(payload, list):
        return [str(item) for item in payload]
    lines = [line.strip() for line in output.splitlines() if line.strip()]
    return lines or [f"network setup exited with code {result.returncode}"]


class CommandSetupApplier:
    """Hands a network configuration document to the platform setup command."""

    def __init__(self, command: str, runner: Callable[[Sequence[str]], CommandResult] = _run) -> None:
        self.command = command
        self._runner = runner

    def apply(self, config: dict[str, Any], dry_run: bool = False) -> list[str]:
        with tempfile.NamedTemporaryFile("w", suffix=".json", delete=False, encoding="utf-8") as handle:
            json.dump(config, handle)
            temp_name = handle.name
        try:
            command = [self.command, "--config", temp_name]
            if dry_run:
                command.append("--dry-run")
            logger.debug("Running network setup: %s", " ".join(command))
            return parse_setup_errors(self._runner(command))
        finally:
            os.unlink(temp_name)
