from __future__ import annotations

import os
import re
import shutil
import subprocess
from dataclasses import dataclass
from pathlib import Path
from typing import Sequence


SYS_CLASS_NET = Path("/sys/class/net")
EXTRA_BIN_PATHS = ("/usr/local/sbin", "/usr/sbin", "/sbin")


@dataclass
class CommandResult:
    returncode: int
    stdout: str

    @property
    def ok(self) -> bool:
        return self.returncode == 0


def _find_command(name: str) -> str | None:
    path_entries = [entry for entry in os.environ.get("PATH", "").split(os.pathsep) if entry]
    for extra in EXTRA_BIN_PATHS:
        if extra not in path_entries:
            path_entries.append(extra)
    return shutil.which(name, path=os.pathsep.join(path_entries))


def _run(command: Sequence[str], timeout: float | None = None) -> CommandResult:
    try:
        result = subprocess.run(
            command,
            check=False,
            text=True,
            stdout=subprocess.PIPE,
            stderr=subprocess.STDOUT,
            timeout=timeout,
        )
        return CommandResult(returncode=result.returncode, stdout=result.stdout)
    except FileNotFoundError:
        return CommandResult(returncode=127, stdout=f"command not found: {command[0]}")
    except PermissionError:
        return CommandResult(returncode=126, stdout=f"permission denied: {command[0]}")
    except subprocess.TimeoutExpired:
        return CommandResult(returncode=124, stdout=f"command timed out: {command[0]}")


def list_physical_interfaces(sys_class_net: Path = SYS_CLASS_NET) -> list[str]:
    """Interfaces backed by a device, i.e. links not resolving under /virtual/."""
    try:
        entries = sorted(sys_class_net.iterdir())
    except FileNotFoundError:
        return []
    names: list[str] = []
    for entry in entries:
        if not entry.is_symlink():
            continue
        if "virtual" in os.readlink(entry):
            continue
        names.append(entry.name)
    return names


def interface_ipv4_address(interface: str) -> str | None:
    result = _run(["ip", "-4", "-o", "addr", "show", "dev", interface])
    if not result.ok:
        return None
    match = re.search(r"\binet\s+(\d+\.\d+\.\d+\.\d+)", result.stdout)
    return match.group(1) if match else None


def interface_carrier(interface: str, sys_class_net: Path = SYS_CLASS_NET) -> bool:
    path = sys_class_net / interface / "carrier"
    try:
        return path.read_text(encoding="utf-8").strip() == "1"
    except OSError:
        return False


def sync_filesystems() -> CommandResult:
    return _run(["sync"])
