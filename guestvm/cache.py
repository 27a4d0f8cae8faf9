"""Checksum-verified artifact cache for guestvm.

Artifacts are stored under a single cache root, named after the guest (or the
architecture, for firmware) they belong to. A file that exists at its cache
path was verified when it was written and is trusted from then on: lookups
never hash it again.
"""

from __future__ import annotations

import os
import shutil
import tempfile
from pathlib import Path
from typing import Callable
from urllib.parse import urlparse

from guestvm.constants import BOOT_ISO, COMPRESSED_EXTENSIONS
from guestvm.exceptions import IntegrityError
from guestvm.fetch import download_file
from guestvm.models import GuestProfile
from guestvm.utils import ensure_directory, log, sha256_file

Fetcher = Callable[[str, Path], None]


def _url_suffix(url: str, default: str) -> str:
    """Return the format/compression suffix of a URL, e.g. ``img.gz``."""
    name = Path(urlparse(url).path).name
    suffixes = [s.lower() for s in Path(name).suffixes]
    if suffixes and suffixes[-1] in COMPRESSED_EXTENSIONS:
        suffixes = suffixes[-2:]
    else:
        suffixes = suffixes[-1:]
    return "".join(suffixes).lstrip(".") or default


def artifact_key(profile: GuestProfile) -> str:
    kind = "iso" if profile.boot == BOOT_ISO else _url_suffix(profile.url, "img")
    return f"{profile.os}-{profile.arch}.{kind}"


def firmware_key(profile: GuestProfile) -> str:
    return f"{profile.arch}-firmware.{_url_suffix(profile.firmware_url or '', 'fd')}"


class ContentCache:
    def __init__(self, root: Path, fetch: Fetcher = download_file) -> None:
        self.root = root
        self._fetch = fetch

    def path_for(self, key: str) -> Path:
        return self.root / key

    def contains(self, key: str) -> bool:
        return self.path_for(key).is_file()

    def ensure(self, url: str, expected_sha256: str, key: str) -> Path:
        """Return the cached path for ``key``, downloading and verifying it on a miss."""
        destination = self.path_for(key)
        if destination.is_file():
            log("INFO", f"Using cached artifact: {destination}")
            return destination

        ensure_directory(self.root)
        fd, tmp_name = tempfile.mkstemp(prefix=f".{key}.", suffix=".partial", dir=self.root)
        os.close(fd)
        tmp_path = Path(tmp_name)
        try:
            self._fetch(url, tmp_path)
            actual = sha256_file(tmp_path)
            if actual.lower() != expected_sha256.lower():
                raise IntegrityError(url, expected_sha256.lower(), actual.lower())
            os.replace(tmp_path, destination)
        except BaseException:
            tmp_path.unlink(missing_ok=True)
            raise
        log("SUCCESS", f"Verified and cached {destination.name} (sha256 {actual[:12]}...)")
        return destination

    def clean(self) -> None:
        if not self.root.exists():
            log("INFO", f"Cache already empty: {self.root}")
            return
        shutil.rmtree(self.root)
        log("SUCCESS", f"Removed cache {self.root}")
