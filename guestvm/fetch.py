"""HTTP(S) artifact download for guestvm."""

from __future__ import annotations

import time
from pathlib import Path

import requests

from guestvm.constants import (
    DOWNLOAD_CHUNK_SIZE,
    DOWNLOAD_TIMEOUT,
    MAX_REDIRECTS,
    USER_AGENT,
)
from guestvm.exceptions import FetchError
from guestvm.utils import log


def _session() -> requests.Session:
    session = requests.Session()
    session.headers["User-Agent"] = USER_AGENT
    session.max_redirects = MAX_REDIRECTS
    return session


def _print_progress(downloaded: int, total_bytes: int, start_time: float) -> None:
    elapsed = time.time() - start_time
    speed = downloaded / elapsed if elapsed > 0 else 0
    downloaded_mb = downloaded / (1024 * 1024)
    if total_bytes:
        total_mb = total_bytes / (1024 * 1024)
        pct = downloaded * 100 / total_bytes
        remaining = (total_bytes - downloaded) / speed if speed > 0 else 0
        eta_str = time.strftime("%M:%S", time.gmtime(remaining))
        bar_len = 30
        filled = int(bar_len * downloaded / total_bytes)
        bar = "#" * filled + "-" * (bar_len - filled)
        print(
            f"\r  [{bar}] {pct:5.1f}% {downloaded_mb:.1f}/{total_mb:.1f} MiB "
            f"({speed / (1024 * 1024):.1f} MiB/s, ETA {eta_str})",
            end="", flush=True,
        )
    else:
        print(
            f"\r  {downloaded_mb:.1f} MiB downloaded ({speed / (1024 * 1024):.1f} MiB/s)",
            end="", flush=True,
        )


def download_file(url: str, destination: Path, label: str = "Downloading") -> None:
    """Stream ``url`` into ``destination``, following a bounded number of redirects.

    The caller owns ``destination``: on failure it may hold a partial download
    and must be discarded.
    """
    log("INFO", f"{label}: {url}")
    session = _session()
    start_time = time.time()
    downloaded = 0
    try:
        with session.get(url, stream=True, timeout=DOWNLOAD_TIMEOUT) as response:
            response.raise_for_status()
            total = response.headers.get("Content-Length")
            total_bytes = int(total) if total and total.isdigit() else 0
            with open(destination, "wb") as out:
                for chunk in response.iter_content(chunk_size=DOWNLOAD_CHUNK_SIZE):
                    if not chunk:
                        continue
                    out.write(chunk)
                    downloaded += len(chunk)
                    _print_progress(downloaded, total_bytes, start_time)
    except requests.TooManyRedirects:
        raise FetchError(f"Too many redirects downloading {url} (limit {MAX_REDIRECTS})")
    except requests.HTTPError as exc:
        status = exc.response.status_code if exc.response is not None else "?"
        reason = exc.response.reason if exc.response is not None else str(exc)
        raise FetchError(f"HTTP error downloading {url}: {status} {reason}")
    except requests.RequestException as exc:
        raise FetchError(f"Failed to download {url}: {exc.__class__.__name__}: {exc}")
    finally:
        session.close()
    if downloaded:
        print(flush=True)  # newline after progress
    elapsed = time.time() - start_time
    log("SUCCESS", f"Downloaded {downloaded / (1024 * 1024):.1f} MiB in {elapsed:.1f}s")
