#!/usr/bin/env python3
"""CI check for guestvm/profiles.yaml.

Run from a checkout with the package installed (``pip install -e .``). The
table is parsed by the same loader ``guestvm`` uses at run time, then every
distinct artifact URL is requested once.
"""

from __future__ import annotations

import sys
from typing import Dict, List, Optional

import requests

from guestvm.constants import PROFILES_PATH
from guestvm.exceptions import ConfigurationError
from guestvm.profiles import load_profiles

REQUEST_TIMEOUT = (10, 30)
USER_AGENT = "guestvm/profile-check"


def artifact_urls(profiles) -> Dict[str, str]:
    """Map each distinct artifact URL to the first profile label that uses it."""
    urls: Dict[str, str] = {}
    for profile in sorted(profiles.values(), key=lambda p: p.key):
        for url in (profile.url, profile.firmware_url):
            if url:
                urls.setdefault(url, profile.label)
    return urls


def reachability_error(session: requests.Session, url: str) -> Optional[str]:
    """Return why ``url`` is unusable, or None when it answers."""
    try:
        with session.head(url, timeout=REQUEST_TIMEOUT, allow_redirects=True) as resp:
            status = resp.status_code
        if status in (403, 405, 501):
            # mirrors that refuse HEAD still serve a one-byte range
            with session.get(
                url,
                headers={"Range": "bytes=0-0"},
                timeout=REQUEST_TIMEOUT,
                allow_redirects=True,
                stream=True,
            ) as resp:
                status = resp.status_code
    except requests.RequestException as exc:
        return f"{exc.__class__.__name__}: {exc}"
    return None if status < 400 else f"HTTP {status}"


def main() -> int:
    try:
        profiles = load_profiles(PROFILES_PATH)
    except ConfigurationError as exc:
        print(f"FAIL schema: {exc}")
        return 1
    print(f"schema ok: {len(profiles)} profiles in {PROFILES_PATH}")

    failures: List[str] = []
    with requests.Session() as session:
        session.headers["User-Agent"] = USER_AGENT
        for url, label in artifact_urls(profiles).items():
            reason = reachability_error(session, url)
            print(f"  {'ok  ' if reason is None else 'FAIL'} {label}: {url}")
            if reason is not None:
                failures.append(f"{label}: {reason} ({url})")

    if failures:
        print(f"\n{len(failures)} unreachable artifact(s):")
        for failure in failures:
            print(f"  {failure}")
        return 1
    print("all artifact URLs reachable")
    return 0


if __name__ == "__main__":
    sys.exit(main())
