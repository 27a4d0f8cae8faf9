"""Global constants and path configuration for guestvm."""

from __future__ import annotations

import os
import re
from pathlib import Path

PROFILES_PATH = Path(__file__).resolve().parent / "profiles.yaml"
TRUTHY = {"1", "true", "yes", "on"}

DEFAULT_OS = "netbsd-9"
DEFAULT_ARCH = "arm64"
DEFAULT_DISK_SIZE = "10G"
DEFAULT_MEMORY_MB = 1024
DEFAULT_CPUS = 2
MIN_MEMORY_MB = 128
MAX_CPUS = 64

BOOT_ISO = "iso"
BOOT_IMAGE = "image"
BOOT_KINDS = (BOOT_ISO, BOOT_IMAGE)

# File names inside a build directory; run.sh refers to them relative to itself.
DISK_IMAGE_NAME = "disk.img"
FIRMWARE_IMAGE_NAME = "flash0.img"
LAUNCH_SCRIPT_NAME = "run.sh"

QEMU_IMG = "qemu-img"

MiB = 1024 * 1024

SUPPORTED_ARCHES = {
    "arm64": {
        "emulator": "qemu-system-aarch64",
        # virt machine pflash banks are 64 MiB; firmware sits at offset 0.
        "flash_size": 64 * MiB,
        "display": ("-nographic",),
        "firmware": (
            Path("/usr/share/qemu-efi-aarch64/QEMU_EFI.fd"),
            Path("/usr/share/AAVMF/AAVMF_CODE.fd"),
            Path("/usr/share/edk2/aarch64/QEMU_EFI.fd"),
            Path("/opt/homebrew/share/qemu/edk2-aarch64-code.fd"),
            Path("/usr/local/share/qemu/edk2-aarch64-code.fd"),
        ),
        "firmware_package": "qemu-efi-aarch64",
    },
    "amd64": {
        "emulator": "qemu-system-x86_64",
        "flash_size": None,
        "display": (),
        "firmware": (),
        "firmware_package": "ovmf",
    },
}

# Host package that ships each binary, per package manager.
HOST_PACKAGES = {
    "qemu-system-aarch64": {"apt-get": "qemu-system-arm", "dnf": "qemu-system-aarch64", "brew": "qemu"},
    "qemu-system-x86_64": {"apt-get": "qemu-system-x86", "dnf": "qemu-system-x86", "brew": "qemu"},
    "qemu-img": {"apt-get": "qemu-utils", "dnf": "qemu-img", "brew": "qemu"},
}

_LOG_VERBOSE = os.environ.get("LOG_VERBOSE", "").lower() in TRUTHY

DISK_SIZE_RE = re.compile(r"^\d+[KMGTkmgt]?$")
SHA256_RE = re.compile(r"^[0-9a-fA-F]{64}$")
URL_RE = re.compile(r"^https?://")

COMPRESSED_EXTENSIONS = {".gz", ".xz", ".bz2"}

DOWNLOAD_CHUNK_SIZE = 256 * 1024
DOWNLOAD_TIMEOUT = (30, 300)
MAX_REDIRECTS = 10
USER_AGENT = "guestvm/0.1"
