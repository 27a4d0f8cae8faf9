"""Data models for guestvm."""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Optional, Tuple


@dataclass(frozen=True)
class GuestProfile:
    os: str
    arch: str
    name: str
    boot: str  # "iso" or "image"
    url: str
    sha256: str
    cpu_model: str
    machine_type: str
    firmware_required: bool = False
    firmware_url: Optional[str] = None
    firmware_sha256: Optional[str] = None
    image_format: str = "raw"
    extra_args: Tuple[str, ...] = ()

    @property
    def key(self) -> Tuple[str, str]:
        return (self.os, self.arch)

    @property
    def label(self) -> str:
        return f"{self.os}/{self.arch}"


@dataclass
class BuildRequest:
    path: Path
    os: str
    arch: str
    disk_size: str
    memory_mb: int
    cpus: int


@dataclass(frozen=True)
class LaunchDescriptor:
    """Everything needed to reproduce the emulator invocation for one build."""

    os: str
    arch: str
    emulator: str
    machine_type: str
    cpu_model: str
    memory_mb: int
    cpus: int
    disk: str  # relative to the build directory
    firmware: Optional[str] = None
    display_args: Tuple[str, ...] = ()
    extra_args: Tuple[str, ...] = ()


@dataclass
class BuildResult:
    path: Path
    profile: GuestProfile
    disk: Path
    script: Path
    firmware: Optional[Path] = None
