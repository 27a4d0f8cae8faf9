"""Module entry point: ``python -m guestvm``."""

from __future__ import annotations

import sys

from guestvm import cli

if __name__ == "__main__":
    sys.exit(cli.main())
