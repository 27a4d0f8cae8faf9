"""Utility functions for guestvm."""

from __future__ import annotations

import hashlib
import os
import subprocess
import sys
from pathlib import Path
from typing import List, Optional

from guestvm.constants import (
    _LOG_VERBOSE,
    DISK_SIZE_RE,
    TRUTHY,
)
from guestvm.exceptions import ConfigurationError

_SIZE_UNITS = {"": 1, "K": 1024, "M": 1024**2, "G": 1024**3, "T": 1024**4}


def log(level: str, message: str) -> None:
    """Lightweight structured logging with a coloured level prefix."""
    if level == "DEBUG" and not _LOG_VERBOSE:
        return
    colours = {
        "INFO": "\033[0;34m",
        "WARN": "\033[1;33m",
        "ERROR": "\033[0;31m",
        "SUCCESS": "\033[0;32m",
        "DEBUG": "\033[0;90m",
    }
    colour = colours.get(level, "")
    reset = "\033[0m" if colour else ""
    print(f"{colour}[{level}]{reset} {message}", flush=True)


def get_env(name: str, default: Optional[str] = None) -> Optional[str]:
    return os.environ.get(name, default)


def get_env_bool(name: str, default: bool = False) -> bool:
    raw = os.environ.get(name)
    if raw is None:
        return default
    return raw.lower() in TRUTHY


def validate_disk_size(raw: str) -> str:
    if not DISK_SIZE_RE.match(raw):
        raise ConfigurationError(
            f"Invalid disk size '{raw}'. Use a number with optional suffix: K, M, G, T (e.g. '20G')"
        )
    if int(raw.rstrip("KMGTkmgt")) == 0:
        raise ConfigurationError(f"Invalid disk size '{raw}': must be greater than zero")
    return raw


def parse_size_to_bytes(raw: str) -> int:
    """Convert '10G'-style sizes (binary units) to bytes."""
    value = validate_disk_size(raw.strip())
    suffix = value[-1].upper() if value[-1].isalpha() else ""
    number = value[:-1] if suffix else value
    return int(number) * _SIZE_UNITS[suffix]


def format_bytes(size: int) -> str:
    for unit in ("T", "G", "M", "K"):
        factor = _SIZE_UNITS[unit]
        if size >= factor and size % factor == 0:
            return f"{size // factor}{unit}"
    return str(size)


def ensure_directory(path: Path) -> None:
    path.mkdir(parents=True, exist_ok=True)


def has_controlling_tty() -> bool:
    """Return True if both stdin and stdout are attached to a TTY."""
    for stream in (sys.stdin, sys.stdout):
        try:
            if not stream.isatty():
                return False
        except (AttributeError, ValueError):
            return False
    return True


def sha256_file(path: Path, chunk_size: int = 1024 * 1024) -> str:
    digest = hashlib.sha256()
    with open(path, "rb") as f:
        for chunk in iter(lambda: f.read(chunk_size), b""):
            digest.update(chunk)
    return digest.hexdigest()


def run(cmd: List[str], check: bool = True, **kwargs) -> subprocess.CompletedProcess:
    """Run command with logging."""
    log("DEBUG", f"Running: {' '.join(cmd)}")
    result = subprocess.run(cmd, check=check, text=True, **kwargs)
    return result
