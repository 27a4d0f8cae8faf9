"""Shared test fixtures: temporary settings, a small profile table and fake collaborators."""

from __future__ import annotations

import bz2
import gzip
import hashlib
import shutil
from pathlib import Path
from typing import Dict, List, Tuple
from unittest.mock import MagicMock

import pytest
import yaml

from guestvm.cache import ContentCache
from guestvm.config import Settings
from guestvm.profiles import ProfileRegistry
from guestvm.utils import parse_size_to_bytes

NETBSD_URL = "https://example.com/netbsd/arm64.img.gz"
UBUNTU_URL = "https://example.com/ubuntu/bionic-server-arm64.iso"
UBUNTU_AMD64_URL = "https://example.com/ubuntu/bionic-server-amd64.iso"
FIRMWARE_URL = "https://example.com/edk2/edk2-aarch64-code.fd.bz2"

NETBSD_IMAGE = b"NETBSD-DISK" + b"\0" * 4085
UBUNTU_ISO = b"UBUNTU-ISO" * 100
FIRMWARE = b"EDK2-FIRMWARE" * 10


def sha256(data: bytes) -> str:
    return hashlib.sha256(data).hexdigest()


class FakeFetcher:
    """Serves canned payloads by URL and records every request."""

    def __init__(self, payloads: Dict[str, bytes]) -> None:
        self.payloads = dict(payloads)
        self.calls: List[str] = []

    def __call__(self, url: str, destination: Path) -> None:
        self.calls.append(url)
        destination.write_bytes(self.payloads[url])


class FakeDiskTool:
    """Stands in for qemu-img using sparse files for raw images."""

    binary = "qemu-img"

    def __init__(self) -> None:
        self.calls: List[Tuple[str, ...]] = []

    def create(self, path: Path, fmt: str, size: str) -> None:
        self.calls.append(("create", str(path), fmt, size))
        with open(path, "wb") as f:
            f.truncate(parse_size_to_bytes(size))

    def resize(self, path: Path, fmt: str, size: str) -> None:
        self.calls.append(("resize", str(path), fmt, size))
        with open(path, "r+b") as f:
            f.truncate(parse_size_to_bytes(size))

    def convert(self, src: Path, dst: Path, src_fmt: str, dst_fmt: str) -> None:
        self.calls.append(("convert", str(src), str(dst), src_fmt, dst_fmt))
        shutil.copyfile(src, dst)

    def virtual_size(self, path: Path) -> int:
        return path.stat().st_size


@pytest.fixture
def payloads() -> Dict[str, bytes]:
    return {
        NETBSD_URL: gzip.compress(NETBSD_IMAGE),
        UBUNTU_URL: UBUNTU_ISO,
        UBUNTU_AMD64_URL: UBUNTU_ISO + b"amd64",
        FIRMWARE_URL: bz2.compress(FIRMWARE),
    }


@pytest.fixture
def profile_table(payloads) -> dict:
    return {
        "profiles": {
            "netbsd-9": {
                "arm64": {
                    "name": "NetBSD 9 (arm64)",
                    "boot": "image",
                    "url": NETBSD_URL,
                    "sha256": sha256(payloads[NETBSD_URL]),
                    "cpu": "cortex-a53",
                    "machine": "virt",
                    "firmware": True,
                    "firmware_url": FIRMWARE_URL,
                    "firmware_sha256": sha256(payloads[FIRMWARE_URL]),
                },
            },
            "ubuntu-bionic": {
                "arm64": {
                    "name": "Ubuntu 18.04 (arm64)",
                    "boot": "iso",
                    "url": UBUNTU_URL,
                    "sha256": sha256(payloads[UBUNTU_URL]),
                    "cpu": "cortex-a57",
                    "machine": "virt",
                    "firmware": True,
                    "firmware_url": FIRMWARE_URL,
                    "firmware_sha256": sha256(payloads[FIRMWARE_URL]),
                },
                "amd64": {
                    "name": "Ubuntu 18.04 (amd64)",
                    "boot": "iso",
                    "url": UBUNTU_AMD64_URL,
                    "sha256": sha256(payloads[UBUNTU_AMD64_URL]),
                    "cpu": "qemu64",
                    "machine": "q35",
                    "extra_args": ["-vga", "std"],
                },
            },
        }
    }


@pytest.fixture
def profiles_file(tmp_path, profile_table) -> Path:
    path = tmp_path / "profiles.yaml"
    path.write_text(yaml.safe_dump(profile_table))
    return path


@pytest.fixture
def settings(tmp_path, profiles_file) -> Settings:
    """Settings rooted in tmp_path with no host firmware, so artifacts always come from the cache."""
    return Settings(
        cache_root=tmp_path / "cache",
        profiles_path=profiles_file,
        firmware_paths={"arm64": (), "amd64": ()},
    )


@pytest.fixture
def registry(settings) -> ProfileRegistry:
    return ProfileRegistry.from_file(settings.profiles_path, settings.firmware_paths)


@pytest.fixture
def fetcher(payloads) -> FakeFetcher:
    return FakeFetcher(payloads)


@pytest.fixture
def cache(settings, fetcher) -> ContentCache:
    return ContentCache(settings.cache_root, fetch=fetcher)


@pytest.fixture
def disk_tool() -> FakeDiskTool:
    return FakeDiskTool()


@pytest.fixture
def probe():
    probe = MagicMock()
    probe.has.return_value = True
    return probe
