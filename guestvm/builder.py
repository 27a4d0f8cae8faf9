"""Build coordination for guestvm: one VM build directory per ``install``."""

from __future__ import annotations

import shutil
from pathlib import Path
from typing import Callable, Optional, Tuple

from guestvm.cache import ContentCache
from guestvm.config import Settings, validate_resources
from guestvm.constants import BOOT_ISO, SUPPORTED_ARCHES
from guestvm.disk import DiskImageTool, DiskMaterializer
from guestvm.exceptions import FilesystemConflictError
from guestvm.firmware import stage_firmware
from guestvm.host import HostProbe
from guestvm.installer import InstallSession
from guestvm.launcher import descriptor_for, render_launch_script, write_launch_script
from guestvm.models import BuildRequest, BuildResult, GuestProfile
from guestvm.profiles import ProfileRegistry
from guestvm.utils import ensure_directory, log, parse_size_to_bytes

STATE_IDLE = "idle"
STATE_VALIDATING = "validating-inputs"
STATE_PREPARING = "preparing-directory"
STATE_FIRMWARE = "acquiring-firmware"
STATE_DISK = "materializing-disk"
STATE_LAUNCHER = "generating-launch-descriptor"
STATE_DONE = "done"
STATE_FAILED = "failed"


def _decline(path: Path) -> bool:
    return False


class VMBuilder:
    def __init__(
        self,
        settings: Settings,
        registry: Optional[ProfileRegistry] = None,
        cache: Optional[ContentCache] = None,
        disk_tool: Optional[DiskImageTool] = None,
        installer: Optional[InstallSession] = None,
        confirm: Optional[Callable[[Path], bool]] = None,
        probe: Optional[HostProbe] = None,
    ) -> None:
        self.settings = settings
        self.registry = registry or ProfileRegistry.from_file(settings.profiles_path, settings.firmware_paths)
        self.cache = cache or ContentCache(settings.cache_root)
        self.disk_tool = disk_tool or DiskImageTool()
        self.installer = installer or InstallSession()
        self.confirm = confirm or _decline
        self.probe = probe or HostProbe(auto_install=settings.auto_install)
        self.state = STATE_IDLE
        self.failure: Optional[str] = None

    def _enter(self, state: str) -> None:
        self.state = state
        log("DEBUG", f"Build state: {state}")

    def install(self, request: BuildRequest) -> BuildResult:
        """Run the whole build; any error aborts it and leaves the builder in ``failed``."""
        self.failure = None
        try:
            result = self._install(request)
        except BaseException as exc:
            self.state = STATE_FAILED
            self.failure = str(exc) or exc.__class__.__name__
            raise
        self._enter(STATE_DONE)
        return result

    def _install(self, request: BuildRequest) -> BuildResult:
        profile = self._validate(request)

        self._enter(STATE_PREPARING)
        self._prepare_directory(request.path)

        self._enter(STATE_FIRMWARE)
        firmware = stage_firmware(
            profile,
            self.cache,
            request.path,
            self.settings.firmware_paths.get(profile.arch, ()),
        )
        descriptor = descriptor_for(profile, request.memory_mb, request.cpus, firmware=firmware is not None)

        self._enter(STATE_DISK)
        materializer = DiskMaterializer(self.cache, self.disk_tool, self.installer)
        disk = materializer.materialize(profile, request.path, request.disk_size, descriptor)

        self._enter(STATE_LAUNCHER)
        script = write_launch_script(request.path, descriptor, title=profile.name)

        log("SUCCESS", f"VM {profile.label} ready in {request.path}")
        log("INFO", f"Start it with: {script}")
        return BuildResult(path=request.path, profile=profile, disk=disk, script=script, firmware=firmware)

    def _validate(self, request: BuildRequest) -> GuestProfile:
        self._enter(STATE_VALIDATING)
        profile = self.registry.resolve(request.os, request.arch)
        parse_size_to_bytes(request.disk_size)
        validate_resources(request.memory_mb, request.cpus)
        self.probe.ensure(self.disk_tool.binary)
        emulator = SUPPORTED_ARCHES[profile.arch]["emulator"]
        if profile.boot == BOOT_ISO:
            self.probe.ensure(emulator)
        elif not self.probe.has(emulator):
            log("WARN", f"{emulator} not found; it is needed to run the generated launch script")
        return profile

    def _prepare_directory(self, path: Path) -> None:
        if path.is_symlink() or (path.exists() and not path.is_dir()):
            raise FilesystemConflictError(f"{path} exists and is not a directory")
        if path.exists():
            if not self.confirm(path):
                raise FilesystemConflictError(f"Overwrite of {path} cancelled; existing build left untouched")
            log("INFO", f"Removing existing build directory {path}")
            shutil.rmtree(path)
        ensure_directory(path)

    def plan(self, request: BuildRequest) -> Tuple[GuestProfile, str]:
        """Resolve a build without side effects; returns the profile and the script it would write."""
        profile = self.registry.resolve(request.os, request.arch)
        parse_size_to_bytes(request.disk_size)
        validate_resources(request.memory_mb, request.cpus)
        descriptor = descriptor_for(profile, request.memory_mb, request.cpus, firmware=profile.firmware_required)
        return profile, render_launch_script(descriptor, title=profile.name)

    def clean(self) -> None:
        self.cache.clean()
