"""guestvm package."""

__all__ = [
    "builder",
    "cache",
    "cli",
    "config",
    "constants",
    "disk",
    "exceptions",
    "fetch",
    "firmware",
    "host",
    "installer",
    "launcher",
    "models",
    "profiles",
    "utils",
]
