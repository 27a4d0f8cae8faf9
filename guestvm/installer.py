"""Interactive install-from-ISO boot for guestvm."""

from __future__ import annotations

import subprocess
from pathlib import Path

from guestvm.exceptions import ToolingMissingError
from guestvm.launcher import qemu_command
from guestvm.models import LaunchDescriptor
from guestvm.utils import has_controlling_tty, log


class InstallSession:
    """One blocking emulator boot that hands the console to the guest installer.

    The session is driven by the user; its exit status is reported but does
    not decide whether the build succeeded.
    """

    def run(self, descriptor: LaunchDescriptor, build_dir: Path, iso: Path) -> int:
        # qemu runs with cwd=build_dir; every path on its command line is absolute
        build_dir = build_dir.absolute()
        iso = iso.absolute()
        cmd = qemu_command(descriptor, str(build_dir), cdrom=str(iso))
        log("INFO", f"Booting installer from {iso.name}; complete the installation, then power off the guest")
        log("DEBUG", f"Running: {' '.join(cmd)}")
        if not has_controlling_tty():
            log("WARN", "No terminal attached; the installer console will not be interactive")
        try:
            proc = subprocess.Popen(cmd, cwd=build_dir)
        except FileNotFoundError:
            raise ToolingMissingError(f"{descriptor.emulator} not found", hint="install QEMU for this architecture")
        try:
            retcode = proc.wait()
        except KeyboardInterrupt:
            proc.terminate()
            proc.wait()
            raise
        if retcode != 0:
            log("WARN", f"Installer session exited with status {retcode}")
        else:
            log("SUCCESS", "Installer session finished")
        return retcode
