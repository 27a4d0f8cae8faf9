"""Firmware staging for guestvm."""

from __future__ import annotations

import shutil
from pathlib import Path
from typing import Optional, Sequence

from guestvm.cache import ContentCache, firmware_key
from guestvm.constants import COMPRESSED_EXTENSIONS, FIRMWARE_IMAGE_NAME, SUPPORTED_ARCHES
from guestvm.disk import decompress
from guestvm.exceptions import ConfigurationError, ToolingMissingError
from guestvm.models import GuestProfile
from guestvm.utils import format_bytes, log


def find_host_firmware(candidates: Sequence[Path]) -> Optional[Path]:
    for candidate in candidates:
        if candidate.is_file():
            return candidate
    return None


def pad_to_flash(path: Path, flash_size: int) -> None:
    """Zero-pad ``path`` in place so it fills a ``flash_size`` boot flash."""
    size = path.stat().st_size
    if size > flash_size:
        raise ConfigurationError(
            f"Firmware {path.name} is {format_bytes(size)}, larger than the {format_bytes(flash_size)} flash"
        )
    if size < flash_size:
        with open(path, "r+b") as f:
            f.truncate(flash_size)


def stage_firmware(
    profile: GuestProfile,
    cache: ContentCache,
    build_dir: Path,
    search_paths: Sequence[Path] = (),
) -> Optional[Path]:
    """Place the profile's firmware in ``build_dir``; ``None`` when none is needed."""
    if not profile.firmware_required:
        return None
    arch_spec = SUPPORTED_ARCHES[profile.arch]
    destination = build_dir / FIRMWARE_IMAGE_NAME

    host_firmware = find_host_firmware(search_paths)
    if host_firmware is not None:
        log("INFO", f"Using host firmware {host_firmware}")
        shutil.copyfile(host_firmware, destination)
    elif profile.firmware_url and profile.firmware_sha256:
        cached = cache.ensure(profile.firmware_url, profile.firmware_sha256, firmware_key(profile))
        if cached.suffix.lower() in COMPRESSED_EXTENSIONS:
            decompress(cached, destination)
        else:
            shutil.copyfile(cached, destination)
    else:
        raise ToolingMissingError(
            f"No firmware available for {profile.label}",
            hint=f"install the '{arch_spec['firmware_package']}' package",
        )

    flash_size = arch_spec["flash_size"]
    if flash_size:
        pad_to_flash(destination, flash_size)
    log("SUCCESS", f"Firmware staged at {destination}")
    return destination
