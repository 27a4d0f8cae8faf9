"""Disk image creation, decompression and resizing for guestvm."""

from __future__ import annotations

import bz2
import gzip
import json
import lzma
import shutil
import subprocess
from pathlib import Path

from guestvm.cache import ContentCache, artifact_key
from guestvm.constants import BOOT_IMAGE, BOOT_ISO, DISK_IMAGE_NAME, QEMU_IMG
from guestvm.exceptions import ConfigurationError, GuestVMError, InternalInvariantError
from guestvm.models import GuestProfile, LaunchDescriptor
from guestvm.utils import format_bytes, log, parse_size_to_bytes, run

_OPENERS = {
    ".gz": gzip.open,
    ".xz": lzma.open,
    ".bz2": bz2.open,
}


class DiskImageTool:
    """Thin wrapper over ``qemu-img``."""

    def __init__(self, binary: str = QEMU_IMG) -> None:
        self.binary = binary

    def _run(self, args) -> subprocess.CompletedProcess:
        try:
            return run([self.binary, *args], capture_output=True)
        except subprocess.CalledProcessError as exc:
            stderr = (exc.stderr or "").strip()
            raise GuestVMError(f"{self.binary} {args[0]} failed: {stderr or exc}")

    def create(self, path: Path, fmt: str, size: str) -> None:
        self._run(["create", "-f", fmt, str(path), size])

    def resize(self, path: Path, fmt: str, size: str) -> None:
        self._run(["resize", "-f", fmt, str(path), size])

    def convert(self, src: Path, dst: Path, src_fmt: str, dst_fmt: str) -> None:
        self._run(["convert", "-f", src_fmt, "-O", dst_fmt, str(src), str(dst)])

    def virtual_size(self, path: Path) -> int:
        result = self._run(["info", "--output=json", str(path)])
        try:
            return int(json.loads(result.stdout)["virtual-size"])
        except (ValueError, KeyError, TypeError) as exc:
            raise GuestVMError(f"Cannot read virtual size of {path}: {exc}")


def decompress(src: Path, dest: Path) -> Path:
    """Stream ``src`` into ``dest``, unpacking .gz/.xz/.bz2 by suffix; copy otherwise."""
    opener = _OPENERS.get(src.suffix.lower())
    try:
        if opener is None:
            shutil.copyfile(src, dest)
        else:
            with opener(src, "rb") as reader, open(dest, "wb") as writer:
                shutil.copyfileobj(reader, writer, length=1024 * 1024)
    except (OSError, EOFError, lzma.LZMAError) as exc:
        dest.unlink(missing_ok=True)
        raise GuestVMError(f"Failed to decompress {src.name}: {exc}")
    except BaseException:
        dest.unlink(missing_ok=True)
        raise
    return dest


def grow_image(tool: DiskImageTool, path: Path, size: str, fmt: str = "raw") -> None:
    """Resize ``path`` to ``size``; growing only."""
    requested = parse_size_to_bytes(size)
    current = tool.virtual_size(path)
    if requested < current:
        raise ConfigurationError(
            f"Requested disk size {size} is smaller than the image ({format_bytes(current)}); "
            "shrinking is not supported"
        )
    if requested == current:
        log("INFO", f"Disk already {size}; skip resize")
        return
    log("INFO", f"Resizing disk from {format_bytes(current)} to {size}...")
    tool.resize(path, fmt, size)


class DiskMaterializer:
    """Produce ``disk.img`` in a build directory by the profile's boot strategy."""

    def __init__(self, cache: ContentCache, tool: DiskImageTool, installer) -> None:
        self.cache = cache
        self.tool = tool
        self.installer = installer

    def materialize(
        self,
        profile: GuestProfile,
        build_dir: Path,
        disk_size: str,
        descriptor: LaunchDescriptor,
    ) -> Path:
        if profile.boot == BOOT_ISO:
            return self._install_from_iso(profile, build_dir, disk_size, descriptor)
        if profile.boot == BOOT_IMAGE:
            return self._from_prebuilt_image(profile, build_dir, disk_size)
        raise InternalInvariantError(f"Nothing to download: profile {profile.label} has boot kind '{profile.boot}'")

    def _install_from_iso(
        self,
        profile: GuestProfile,
        build_dir: Path,
        disk_size: str,
        descriptor: LaunchDescriptor,
    ) -> Path:
        disk = build_dir / DISK_IMAGE_NAME
        log("INFO", f"Creating blank disk {disk} ({disk_size})")
        self.tool.create(disk, "raw", disk_size)
        iso = self.cache.ensure(profile.url, profile.sha256, artifact_key(profile))
        self.installer.run(descriptor, build_dir, iso)
        return disk

    def _from_prebuilt_image(self, profile: GuestProfile, build_dir: Path, disk_size: str) -> Path:
        artifact = self.cache.ensure(profile.url, profile.sha256, artifact_key(profile))
        disk = build_dir / DISK_IMAGE_NAME
        if profile.image_format == "raw":
            log("INFO", f"Decompressing {artifact.name} into {disk}")
            decompress(artifact, disk)
        else:
            extracted = build_dir / f"source.{profile.image_format}"
            log("INFO", f"Decompressing {artifact.name}")
            decompress(artifact, extracted)
            log("INFO", f"Converting {profile.image_format} image to raw")
            try:
                self.tool.convert(extracted, disk, profile.image_format, "raw")
            finally:
                extracted.unlink(missing_ok=True)
        grow_image(self.tool, disk, disk_size)
        log("SUCCESS", f"Disk image ready: {disk}")
        return disk
