"""Host capability probing for guestvm."""

from __future__ import annotations

import shutil
import subprocess
from typing import List, Optional

from guestvm.constants import HOST_PACKAGES
from guestvm.exceptions import ToolingMissingError
from guestvm.utils import log, run

_INSTALL_COMMANDS = {
    "apt-get": ["sudo", "apt-get", "install", "-y"],
    "dnf": ["sudo", "dnf", "install", "-y"],
    "brew": ["brew", "install"],
}


def _package_manager() -> Optional[str]:
    for manager in ("apt-get", "dnf", "brew"):
        if shutil.which(manager):
            return manager
    return None


def install_hint(binary: str) -> str:
    packages = HOST_PACKAGES.get(binary, {})
    if not packages:
        return f"install {binary} and make sure it is on PATH"
    options = ", ".join(f"{manager}: {package}" for manager, package in packages.items())
    return f"install the package providing {binary} ({options})"


class HostProbe:
    def __init__(self, auto_install: bool = False) -> None:
        self.auto_install = auto_install

    def has(self, binary: str) -> bool:
        return shutil.which(binary) is not None

    def try_install(self, binary: str) -> bool:
        """Best-effort install through the host package manager; False when not possible."""
        manager = _package_manager()
        package = HOST_PACKAGES.get(binary, {}).get(manager or "")
        if not manager or not package:
            return False
        cmd: List[str] = _INSTALL_COMMANDS[manager] + [package]
        log("INFO", f"Installing {package} with {manager}...")
        try:
            run(cmd)
        except (OSError, subprocess.CalledProcessError) as exc:
            log("WARN", f"Could not install {package}: {exc}")
            return False
        return self.has(binary)

    def ensure(self, binary: str) -> None:
        if self.has(binary):
            return
        if self.auto_install and self.try_install(binary):
            log("SUCCESS", f"{binary} installed")
            return
        raise ToolingMissingError(f"{binary} not found", hint=install_hint(binary))
