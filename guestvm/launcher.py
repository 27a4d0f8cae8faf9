"""Emulator command construction and launch script rendering for guestvm."""

from __future__ import annotations

import shlex
from pathlib import Path
from typing import List, Optional

from guestvm.constants import (
    DISK_IMAGE_NAME,
    FIRMWARE_IMAGE_NAME,
    LAUNCH_SCRIPT_NAME,
    SUPPORTED_ARCHES,
)
from guestvm.models import GuestProfile, LaunchDescriptor
from guestvm.utils import log

SCRIPT_ROOT = "${HERE}"


def descriptor_for(
    profile: GuestProfile,
    memory_mb: int,
    cpus: int,
    firmware: bool,
) -> LaunchDescriptor:
    arch_spec = SUPPORTED_ARCHES[profile.arch]
    return LaunchDescriptor(
        os=profile.os,
        arch=profile.arch,
        emulator=arch_spec["emulator"],
        machine_type=profile.machine_type,
        cpu_model=profile.cpu_model,
        memory_mb=memory_mb,
        cpus=cpus,
        disk=DISK_IMAGE_NAME,
        firmware=FIRMWARE_IMAGE_NAME if firmware else None,
        display_args=tuple(arch_spec["display"]),
        extra_args=profile.extra_args,
    )


def _drive_file(path: str) -> str:
    # qemu option values escape commas by doubling them
    return path.replace(",", ",,")


def qemu_command(descriptor: LaunchDescriptor, root: str, cdrom: Optional[str] = None) -> List[str]:
    """Build the emulator argv with build-directory files under ``root``."""
    cmd = [
        descriptor.emulator,
        "-machine", descriptor.machine_type,
        "-cpu", descriptor.cpu_model,
        "-m", str(descriptor.memory_mb),
        "-smp", str(descriptor.cpus),
    ]
    if descriptor.firmware:
        cmd += ["-drive", f"if=pflash,format=raw,file={_drive_file(f'{root}/{descriptor.firmware}')}"]
    cmd += [
        "-drive", f"if=none,id=hd0,format=raw,file={_drive_file(f'{root}/{descriptor.disk}')}",
        "-device", "virtio-blk-pci,drive=hd0,bootindex=0",
    ]
    if cdrom:
        cmd += [
            "-device", "virtio-scsi-pci,id=scsi0",
            "-drive", f"if=none,id=cd0,media=cdrom,readonly=on,format=raw,file={_drive_file(cdrom)}",
            "-device", "scsi-cd,drive=cd0,bootindex=1",
        ]
    cmd += [
        "-netdev", "user,id=net0",
        "-device", "virtio-net-pci,netdev=net0",
    ]
    cmd += list(descriptor.display_args)
    cmd += list(descriptor.extra_args)
    return cmd


def _shell_token(token: str) -> str:
    parts = token.split(SCRIPT_ROOT)
    return f'"{SCRIPT_ROOT}"'.join(shlex.quote(part) if part else "" for part in parts)


def _group_options(cmd: List[str]) -> List[str]:
    """Pair each flag with its value so the script reads one option per line."""
    lines: List[str] = []
    i = 0
    while i < len(cmd):
        token = _shell_token(cmd[i])
        if cmd[i].startswith("-") and i + 1 < len(cmd) and not cmd[i + 1].startswith("-"):
            token = f"{token} {_shell_token(cmd[i + 1])}"
            i += 1
        lines.append(token)
        i += 1
    return lines


def render_launch_script(descriptor: LaunchDescriptor, title: str = "") -> str:
    cmd = qemu_command(descriptor, SCRIPT_ROOT)
    body = " \\\n    ".join([f"exec {_shell_token(cmd[0])}"] + _group_options(cmd[1:]) + ['"$@"'])
    heading = title or f"{descriptor.os} ({descriptor.arch})"
    return (
        "#!/bin/sh\n"
        f"# Boot {heading}. Generated by guestvm.\n"
        "# Files are looked up next to this script, so the directory can be moved or copied.\n"
        "set -e\n"
        'HERE="$(cd "$(dirname "$0")" && pwd)"\n'
        'case "${HERE}" in *,*) echo "$0: qemu cannot open drives under a path containing a comma: ${HERE}" >&2; exit 1 ;; esac\n'
        f"{body}\n"
    )


def write_launch_script(build_dir: Path, descriptor: LaunchDescriptor, title: str = "") -> Path:
    script = build_dir / LAUNCH_SCRIPT_NAME
    script.write_text(render_launch_script(descriptor, title), encoding="utf-8")
    script.chmod(0o755)
    log("SUCCESS", f"Launch script written to {script}")
    return script
