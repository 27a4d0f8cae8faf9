"""Runtime settings and request validation for guestvm."""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, Optional, Tuple

from guestvm.constants import (
    DEFAULT_ARCH,
    DEFAULT_CPUS,
    DEFAULT_DISK_SIZE,
    DEFAULT_MEMORY_MB,
    DEFAULT_OS,
    MAX_CPUS,
    MIN_MEMORY_MB,
    PROFILES_PATH,
    SUPPORTED_ARCHES,
)
from guestvm.exceptions import ConfigurationError
from guestvm.models import BuildRequest
from guestvm.utils import get_env, get_env_bool, validate_disk_size


def _default_firmware_paths() -> Dict[str, Tuple[Path, ...]]:
    return {arch: tuple(spec["firmware"]) for arch, spec in SUPPORTED_ARCHES.items()}


@dataclass
class Settings:
    """Filesystem locations and host policy, threaded into the builder."""

    cache_root: Path
    profiles_path: Path = PROFILES_PATH
    firmware_paths: Dict[str, Tuple[Path, ...]] = field(default_factory=_default_firmware_paths)
    auto_install: bool = False


def default_cache_root() -> Path:
    xdg = get_env("XDG_CACHE_HOME")
    base = Path(xdg) if xdg else Path.home() / ".cache"
    return base / "guestvm"


def load_settings() -> Settings:
    cache_dir = (get_env("GUESTVM_CACHE_DIR") or "").strip()
    cache_root = Path(cache_dir).expanduser() if cache_dir else default_cache_root()
    cache_root = cache_root.absolute()

    profiles_env = (get_env("GUESTVM_PROFILES") or "").strip()
    profiles_path = Path(profiles_env).expanduser().absolute() if profiles_env else PROFILES_PATH
    if not profiles_path.is_file():
        raise ConfigurationError(f"Guest profile table missing: {profiles_path}")

    return Settings(
        cache_root=cache_root,
        profiles_path=profiles_path,
        auto_install=get_env_bool("GUESTVM_AUTO_INSTALL", False),
    )


def validate_resources(memory_mb: int, cpus: int) -> None:
    if memory_mb < MIN_MEMORY_MB:
        raise ConfigurationError(f"Memory must be >= {MIN_MEMORY_MB} MiB (got {memory_mb})")
    if cpus < 1 or cpus > MAX_CPUS:
        raise ConfigurationError(f"CPU count must be between 1 and {MAX_CPUS} (got {cpus})")


def build_request(
    path: Optional[str] = None,
    os_name: str = DEFAULT_OS,
    arch: str = DEFAULT_ARCH,
    disk_size: str = DEFAULT_DISK_SIZE,
    memory_mb: int = DEFAULT_MEMORY_MB,
    cpus: int = DEFAULT_CPUS,
) -> BuildRequest:
    """Validate raw command values and fill in the default build path."""
    validate_disk_size(disk_size)
    validate_resources(memory_mb, cpus)
    target = Path(path) if path else Path.cwd() / f"{os_name}-{arch}"
    return BuildRequest(
        path=target.expanduser().absolute(),
        os=os_name,
        arch=arch,
        disk_size=disk_size,
        memory_mb=memory_mb,
        cpus=cpus,
    )
