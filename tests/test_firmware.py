"""Tests for guestvm.firmware module."""

from __future__ import annotations

import dataclasses

import pytest

from conftest import FIRMWARE, FIRMWARE_URL
from guestvm.constants import MiB
from guestvm.exceptions import ConfigurationError, ToolingMissingError
from guestvm.firmware import find_host_firmware, pad_to_flash, stage_firmware


class TestPadToFlash:
    def test_pads_with_zeros(self, tmp_path):
        image = tmp_path / "flash0.img"
        image.write_bytes(b"FW")
        pad_to_flash(image, 1024)
        data = image.read_bytes()
        assert len(data) == 1024
        assert data[:2] == b"FW"
        assert data[2:] == b"\0" * 1022

    def test_exact_size_untouched(self, tmp_path):
        image = tmp_path / "flash0.img"
        image.write_bytes(b"x" * 16)
        pad_to_flash(image, 16)
        assert image.read_bytes() == b"x" * 16

    def test_oversized_rejected(self, tmp_path):
        image = tmp_path / "flash0.img"
        image.write_bytes(b"x" * 32)
        with pytest.raises(ConfigurationError, match="larger than"):
            pad_to_flash(image, 16)


class TestFindHostFirmware:
    def test_first_existing_wins(self, tmp_path):
        second = tmp_path / "AAVMF_CODE.fd"
        third = tmp_path / "edk2-aarch64-code.fd"
        second.write_bytes(b"a")
        third.write_bytes(b"b")
        assert find_host_firmware([tmp_path / "missing.fd", second, third]) == second

    def test_none_found(self, tmp_path):
        assert find_host_firmware([tmp_path / "missing.fd"]) is None


class TestStageFirmware:
    def test_not_required_is_noop(self, tmp_path, registry, cache, fetcher):
        profile = registry.resolve("ubuntu-bionic", "amd64")
        assert stage_firmware(profile, cache, tmp_path) is None
        assert fetcher.calls == []
        assert not (tmp_path / "flash0.img").exists()

    def test_downloaded_firmware_is_unpacked_and_padded(self, tmp_path, registry, cache, fetcher):
        profile = registry.resolve("netbsd-9", "arm64")
        build_dir = tmp_path / "vm"
        build_dir.mkdir()
        staged = stage_firmware(profile, cache, build_dir)
        assert staged == build_dir / "flash0.img"
        assert staged.stat().st_size == 64 * MiB
        with open(staged, "rb") as f:
            assert f.read(len(FIRMWARE)) == FIRMWARE
        assert fetcher.calls == [FIRMWARE_URL]
        assert cache.contains("arm64-firmware.fd.bz2")

    def test_firmware_cache_shared_across_guests(self, tmp_path, registry, cache, fetcher):
        for name, os_name in (("a", "netbsd-9"), ("b", "ubuntu-bionic")):
            build_dir = tmp_path / name
            build_dir.mkdir()
            stage_firmware(registry.resolve(os_name, "arm64"), cache, build_dir)
        assert fetcher.calls == [FIRMWARE_URL]

    def test_host_firmware_preferred(self, tmp_path, registry, cache, fetcher):
        host_fw = tmp_path / "QEMU_EFI.fd"
        host_fw.write_bytes(b"HOST-EFI")
        build_dir = tmp_path / "vm"
        build_dir.mkdir()
        staged = stage_firmware(registry.resolve("netbsd-9", "arm64"), cache, build_dir, [host_fw])
        assert staged.read_bytes()[:8] == b"HOST-EFI"
        assert staged.stat().st_size == 64 * MiB
        assert fetcher.calls == []

    def test_no_source_raises_tooling_missing(self, tmp_path, registry, cache):
        profile = dataclasses.replace(registry.resolve("netbsd-9", "arm64"), firmware_url=None, firmware_sha256=None)
        with pytest.raises(ToolingMissingError, match="qemu-efi-aarch64"):
            stage_firmware(profile, cache, tmp_path)
