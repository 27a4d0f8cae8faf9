"""Guest profile registry for guestvm."""

from __future__ import annotations

from pathlib import Path
from typing import Dict, List, Optional, Tuple

try:
    import yaml  # type: ignore
except ImportError as exc:  # pragma: no cover
    raise SystemExit("PyYAML is required but not installed") from exc

from guestvm.constants import (
    BOOT_KINDS,
    PROFILES_PATH,
    SHA256_RE,
    SUPPORTED_ARCHES,
    URL_RE,
)
from guestvm.exceptions import ConfigurationError
from guestvm.models import GuestProfile
from guestvm.utils import log

ProfileKey = Tuple[str, str]


def _entry_errors(label: str, arch: str, entry: dict, firmware_paths: Dict[str, Tuple[Path, ...]]) -> List[str]:
    errors: List[str] = []
    for required in ("boot", "url", "sha256", "cpu", "machine"):
        if not isinstance(entry.get(required), str) or not entry[required].strip():
            errors.append(f"[{label}] missing required field '{required}'")
    if errors:
        return errors

    if arch not in SUPPORTED_ARCHES:
        errors.append(f"[{label}] unknown arch '{arch}'")
    if entry["boot"] not in BOOT_KINDS:
        errors.append(f"[{label}] 'boot' must be one of {', '.join(BOOT_KINDS)}, got '{entry['boot']}'")
    if not URL_RE.match(entry["url"]):
        errors.append(f"[{label}] 'url' must start with http:// or https://")
    if not SHA256_RE.match(entry["sha256"]):
        errors.append(f"[{label}] 'sha256' must be 64 hex characters")

    firmware_url = entry.get("firmware_url")
    if firmware_url is not None:
        if not isinstance(firmware_url, str) or not URL_RE.match(firmware_url):
            errors.append(f"[{label}] 'firmware_url' must start with http:// or https://")
        if not SHA256_RE.match(str(entry.get("firmware_sha256") or "")):
            errors.append(f"[{label}] 'firmware_url' requires a 64 hex character 'firmware_sha256'")
    if entry.get("firmware") and not firmware_url and not firmware_paths.get(arch):
        errors.append(f"[{label}] requires firmware but has neither 'firmware_url' nor a host firmware path")

    extra = entry.get("extra_args", [])
    if not isinstance(extra, list) or not all(isinstance(item, str) for item in extra):
        errors.append(f"[{label}] 'extra_args' must be a list of strings")
    return errors


def load_profiles(
    path: Optional[Path] = None,
    firmware_paths: Optional[Dict[str, Tuple[Path, ...]]] = None,
) -> Dict[ProfileKey, GuestProfile]:
    """Parse the profile table into immutable records, rejecting malformed entries."""
    if path is None:
        path = PROFILES_PATH
    if firmware_paths is None:
        firmware_paths = {arch: tuple(spec["firmware"]) for arch, spec in SUPPORTED_ARCHES.items()}
    if not path.exists():
        raise ConfigurationError(f"Guest profile table missing: {path}")
    try:
        data = yaml.safe_load(path.read_text()) or {}
    except yaml.YAMLError as exc:
        raise ConfigurationError(f"Guest profile table {path} is not valid YAML: {exc}")
    table = data.get("profiles") if isinstance(data, dict) else None
    if not isinstance(table, dict):
        raise ConfigurationError(f"Guest profile table {path} has no 'profiles' mapping")

    profiles: Dict[ProfileKey, GuestProfile] = {}
    errors: List[str] = []
    for os_name, arches in table.items():
        if not isinstance(arches, dict):
            errors.append(f"[{os_name}] entry is not a mapping of architectures")
            continue
        for arch, entry in arches.items():
            label = f"{os_name}/{arch}"
            if not isinstance(entry, dict):
                errors.append(f"[{label}] entry is not a mapping")
                continue
            entry_errors = _entry_errors(label, arch, entry, firmware_paths)
            if entry_errors:
                errors.extend(entry_errors)
                continue
            profiles[(os_name, arch)] = GuestProfile(
                os=os_name,
                arch=arch,
                name=str(entry.get("name", label)),
                boot=entry["boot"],
                url=entry["url"],
                sha256=entry["sha256"].lower(),
                cpu_model=entry["cpu"],
                machine_type=entry["machine"],
                firmware_required=bool(entry.get("firmware", False)),
                firmware_url=entry.get("firmware_url"),
                firmware_sha256=(entry.get("firmware_sha256") or "").lower() or None,
                image_format=str(entry.get("format", "raw")),
                extra_args=tuple(entry.get("extra_args", [])),
            )
    if errors:
        raise ConfigurationError(f"Invalid guest profile table {path}: " + "; ".join(errors))
    log("DEBUG", f"Loaded {len(profiles)} guest profiles from {path}")
    return profiles


class ProfileRegistry:
    """Exact-match lookup from (os, arch) to a guest profile."""

    def __init__(self, profiles: Dict[ProfileKey, GuestProfile]) -> None:
        self._profiles = dict(profiles)

    @classmethod
    def from_file(
        cls,
        path: Optional[Path] = None,
        firmware_paths: Optional[Dict[str, Tuple[Path, ...]]] = None,
    ) -> "ProfileRegistry":
        return cls(load_profiles(path, firmware_paths))

    def pairs(self) -> List[ProfileKey]:
        return sorted(self._profiles)

    def profiles(self) -> List[GuestProfile]:
        return [self._profiles[key] for key in self.pairs()]

    def resolve(self, os_name: str, arch: str) -> GuestProfile:
        profile = self._profiles.get((os_name, arch))
        if profile is None:
            supported = ", ".join(f"{o}/{a}" for o, a in self.pairs())
            raise ConfigurationError(f"Unsupported guest '{os_name}/{arch}'. Supported: {supported}")
        return profile
