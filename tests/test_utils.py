"""Tests for guestvm.utils module."""

from __future__ import annotations

import hashlib
import subprocess
from types import SimpleNamespace
from unittest.mock import patch

import pytest

from guestvm.exceptions import ConfigurationError
from guestvm.utils import (
    ensure_directory,
    format_bytes,
    get_env,
    get_env_bool,
    has_controlling_tty,
    log,
    parse_size_to_bytes,
    run,
    sha256_file,
    validate_disk_size,
)


class TestLog:
    def test_info_level(self, capsys):
        log("INFO", "test message")
        captured = capsys.readouterr()
        assert "[INFO]" in captured.out
        assert "test message" in captured.out

    def test_debug_suppressed_by_default(self, capsys):
        with patch("guestvm.utils._LOG_VERBOSE", False):
            log("DEBUG", "should not appear")
        assert capsys.readouterr().out == ""

    def test_debug_shown_when_verbose(self, capsys):
        with patch("guestvm.utils._LOG_VERBOSE", True):
            log("DEBUG", "visible")
        assert "visible" in capsys.readouterr().out


class TestGetEnv:
    def test_returns_value(self, monkeypatch):
        monkeypatch.setenv("TEST_VAR", "hello")
        assert get_env("TEST_VAR") == "hello"

    def test_returns_default(self, monkeypatch):
        monkeypatch.delenv("TEST_VAR", raising=False)
        assert get_env("TEST_VAR", "fallback") == "fallback"


class TestGetEnvBool:
    @pytest.mark.parametrize("value", ["1", "true", "yes", "on", "TRUE", "Yes"])
    def test_truthy_values(self, monkeypatch, value):
        monkeypatch.setenv("TEST_BOOL", value)
        assert get_env_bool("TEST_BOOL") is True

    @pytest.mark.parametrize("value", ["0", "false", "no", "off", "random"])
    def test_falsy_values(self, monkeypatch, value):
        monkeypatch.setenv("TEST_BOOL", value)
        assert get_env_bool("TEST_BOOL") is False

    def test_default_when_unset(self, monkeypatch):
        monkeypatch.delenv("TEST_BOOL", raising=False)
        assert get_env_bool("TEST_BOOL", True) is True


class TestSizes:
    @pytest.mark.parametrize("size", ["10G", "500M", "1T", "1024K", "100", "20g"])
    def test_valid_sizes(self, size):
        assert validate_disk_size(size) == size

    @pytest.mark.parametrize("size", ["abc", "", "-1G", "10X", "1.5G"])
    def test_invalid_sizes(self, size):
        with pytest.raises(ConfigurationError, match="Invalid disk size"):
            validate_disk_size(size)

    @pytest.mark.parametrize("size", ["0", "0G", "000M"])
    def test_zero_size_rejected(self, size):
        with pytest.raises(ConfigurationError, match="must be greater than zero"):
            validate_disk_size(size)

    @pytest.mark.parametrize(
        "raw,expected",
        [("5G", 5 * 1024**3), ("64m", 64 * 1024**2), ("2K", 2048), ("100", 100), ("1T", 1024**4)],
    )
    def test_parse_size_to_bytes(self, raw, expected):
        assert parse_size_to_bytes(raw) == expected

    @pytest.mark.parametrize("size,expected", [(5 * 1024**3, "5G"), (64 * 1024**2, "64M"), (1536, "1536")])
    def test_format_bytes(self, size, expected):
        assert format_bytes(size) == expected


class TestFilesystemHelpers:
    def test_sha256_file(self, tmp_path):
        path = tmp_path / "blob"
        path.write_bytes(b"payload" * 1000)
        assert sha256_file(path, chunk_size=7) == hashlib.sha256(b"payload" * 1000).hexdigest()

    def test_ensure_directory_nested(self, tmp_path):
        target = tmp_path / "a" / "b"
        ensure_directory(target)
        ensure_directory(target)
        assert target.is_dir()

    def test_has_controlling_tty_false(self, monkeypatch):
        monkeypatch.setattr("guestvm.utils.sys.stdin", SimpleNamespace(isatty=lambda: True))
        monkeypatch.setattr("guestvm.utils.sys.stdout", SimpleNamespace(isatty=lambda: False))
        assert has_controlling_tty() is False


class TestRun:
    def test_run_passes_through(self):
        completed = subprocess.CompletedProcess(args=["true"], returncode=0)
        with patch("guestvm.utils.subprocess.run", return_value=completed) as mock_run:
            assert run(["true"]) is completed
        mock_run.assert_called_once_with(["true"], check=True, text=True)
