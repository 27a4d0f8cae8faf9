"""CLI entry points for guestvm."""

from __future__ import annotations

import argparse
import dataclasses
import traceback
from pathlib import Path
from typing import List, Optional

from guestvm.builder import VMBuilder
from guestvm.config import Settings, build_request, load_settings
from guestvm.constants import (
    DEFAULT_ARCH,
    DEFAULT_CPUS,
    DEFAULT_DISK_SIZE,
    DEFAULT_MEMORY_MB,
    DEFAULT_OS,
    PROFILES_PATH,
)
from guestvm.exceptions import GuestVMError
from guestvm.models import GuestProfile
from guestvm.profiles import ProfileRegistry
from guestvm.utils import log


def confirm_overwrite(path: Path) -> bool:
    """Ask before an existing build directory is deleted; anything but yes declines."""
    try:
        answer = input(f"{path} already exists. Delete it and build again? [y/N] ")
    except EOFError:
        print(flush=True)
        return False
    return answer.strip().lower() in {"y", "yes"}


def list_guests(registry: ProfileRegistry, arch_filter: Optional[str] = None) -> None:
    """Print the supported (os, arch) pairs, optionally for one arch."""
    profiles = registry.profiles()
    if arch_filter:
        profiles = [p for p in profiles if p.arch == arch_filter]
        if not profiles:
            log("WARN", f"No guests found for arch '{arch_filter}'")
            return
    max_os = max(len(p.os) for p in profiles)
    max_arch = max(len(p.arch) for p in profiles)
    for profile in profiles:
        boot = "installer ISO" if profile.boot == "iso" else "prebuilt image"
        print(f"  {profile.os:<{max_os}}  {profile.arch:<{max_arch}}  {profile.name}  ({boot})")


def show_profile(profile: GuestProfile) -> None:
    for field in dataclasses.fields(profile):
        value = getattr(profile, field.name)
        if value is None or value == ():
            continue
        print(f"  {field.name}: {value}")


def list_command(arch_filter: Optional[str] = None) -> int:
    """Run ``list``; an unusable profile override falls back to the packaged table."""
    try:
        settings = load_settings()
        registry = ProfileRegistry.from_file(settings.profiles_path, settings.firmware_paths)
    except GuestVMError as exc:
        log("WARN", f"{exc}; listing the packaged guests instead")
        try:
            registry = ProfileRegistry.from_file(PROFILES_PATH)
        except GuestVMError as fallback_exc:
            log("ERROR", str(fallback_exc))
            return 0
    list_guests(registry, arch_filter)
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="guestvm", description="Provision local QEMU guest VMs")
    commands = parser.add_subparsers(dest="command", metavar="COMMAND")

    install = commands.add_parser("install", help="Build a VM directory with a disk image and launch script")
    install.add_argument("path", nargs="?", help="Build directory (default: ./<os>-<arch>)")
    install.add_argument("--os", default=DEFAULT_OS, help=f"Guest operating system (default: {DEFAULT_OS})")
    install.add_argument("--arch", default=DEFAULT_ARCH, help=f"Guest architecture (default: {DEFAULT_ARCH})")
    install.add_argument("--size", default=DEFAULT_DISK_SIZE, help=f"Disk size, e.g. 20G (default: {DEFAULT_DISK_SIZE})")
    install.add_argument(
        "--memory", type=int, default=DEFAULT_MEMORY_MB, help=f"Memory in MiB (default: {DEFAULT_MEMORY_MB})"
    )
    install.add_argument("--cpus", type=int, default=DEFAULT_CPUS, help=f"Virtual CPUs (default: {DEFAULT_CPUS})")
    install.add_argument("-y", "--yes", action="store_true", help="Overwrite an existing build without asking")
    install.add_argument("--dry-run", action="store_true", help="Show the resolved guest and launch script, then exit")

    commands.add_parser("clean", help="Remove every cached download")

    list_cmd = commands.add_parser("list", help="List supported guests")
    list_cmd.add_argument("--arch", default=None, help="Only show guests for this architecture")

    commands.add_parser("help", help="Show this help")
    return parser


def _run(args: argparse.Namespace, settings: Settings) -> int:
    registry = ProfileRegistry.from_file(settings.profiles_path, settings.firmware_paths)
    if args.command == "clean":
        VMBuilder(settings, registry=registry).clean()
        return 0

    request = build_request(args.path, args.os, args.arch, args.size, args.memory, args.cpus)
    confirm = (lambda path: True) if args.yes else confirm_overwrite
    builder = VMBuilder(settings, registry=registry, confirm=confirm)
    if args.dry_run:
        profile, script = builder.plan(request)
        log("INFO", "=== Guest profile ===")
        show_profile(profile)
        log("INFO", f"=== Launch script ({request.path}) ===")
        print(script, end="")
        log("INFO", "=== Dry-run complete (nothing downloaded or written) ===")
        return 0
    builder.install(request)
    return 0


def main(argv: Optional[List[str]] = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    if args.command in (None, "help"):
        parser.print_help()
        return 0
    if args.command == "list":
        return list_command(args.arch)

    try:
        settings = load_settings()
        return _run(args, settings)
    except GuestVMError as exc:
        log("ERROR", str(exc))
        return 1
    except KeyboardInterrupt:
        log("ERROR", "Interrupted")
        return 130
    except Exception as exc:
        log("ERROR", f"Unexpected error: {exc}")
        log("ERROR", "This is likely a bug in guestvm or its profile table.")
        traceback.print_exc()
        return 1
