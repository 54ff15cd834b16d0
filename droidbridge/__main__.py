"""droidbridge command-line entry point.

Usage::

    python -m droidbridge devices
    python -m droidbridge installed SERIAL com.example.app
    python -m droidbridge install SERIAL app.apk [--timeout 120]
    python -m droidbridge pull SERIAL /sdcard/screenshots ./out [--quiet]
    python -m droidbridge logcat SERIAL ./logs/logcat.txt
    python -m droidbridge env
"""

from __future__ import annotations

import argparse
import asyncio
import logging
import sys

from droidbridge.android import (
    ApkInstallError,
    Device,
    DeviceError,
    DeviceOperations,
    DeviceRegistry,
)
from droidbridge.config import ToolchainConfig, ToolchainConfigError
from droidbridge.process import SupervisorError

logger = logging.getLogger(__name__)


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="python -m droidbridge",
        description="Drive Android devices over adb",
    )
    parser.add_argument("--debug", action="store_true", help="Enable debug logging")
    sub = parser.add_subparsers(dest="command", required=True)

    sub.add_parser("devices", help="List connected devices with their models")
    sub.add_parser("env", help="Show resolved toolchain paths")

    installed = sub.add_parser("installed", help="Exit 0 if a package is installed")
    installed.add_argument("serial")
    installed.add_argument("package")

    install = sub.add_parser("install", help="Install an APK (fails the run on error)")
    install.add_argument("serial")
    install.add_argument("apk")
    install.add_argument("--timeout", type=float, default=120.0, help="Seconds (default: 120)")

    pull = sub.add_parser("pull", help="Pull a folder from the device")
    pull.add_argument("serial")
    pull.add_argument("device_dir")
    pull.add_argument("host_dir")
    pull.add_argument("--timeout", type=float, default=60.0, help="Seconds (default: 60)")
    pull.add_argument("--quiet", action="store_true", help="Do not log pull errors")

    logcat = sub.add_parser("logcat", help="Stream logcat into a file until interrupted")
    logcat.add_argument("serial")
    logcat.add_argument("file")
    return parser


async def _run_command(args: argparse.Namespace, config: ToolchainConfig) -> int:
    if args.command == "env":
        print(f"ANDROID_HOME  {config.android_home}")
        print(f"adb           {config.adb}")
        print(f"aapt          {config.aapt or '-'}")
        return 0

    if args.command == "devices":
        devices = await DeviceRegistry(config).discover()
        for d in sorted(devices, key=lambda d: d.id):
            state = "online" if d.online else "offline"
            print(f"{d.id}\t{state}\t{d.model or ''}")
        return 0

    # Per-device commands only need the serial; online state is not checked.
    ops = DeviceOperations(Device(id=args.serial, online=True), config)

    if args.command == "installed":
        return 0 if await ops.is_app_installed(args.package) else 1
    if args.command == "install":
        await ops.install_apk(args.apk, timeout=args.timeout)
        return 0
    if args.command == "pull":
        ok = await ops.pull_folder(
            args.device_dir, args.host_dir, log_errors=not args.quiet, timeout=args.timeout
        )
        return 0 if ok else 1
    if args.command == "logcat":
        return await ops.stream_logcat_to_file(args.file)

    raise ValueError(f"Unknown command: {args.command}")


def main(argv: list[str] | None = None) -> int:
    args = _build_parser().parse_args(argv)

    level = logging.DEBUG if args.debug else logging.INFO
    logging.basicConfig(
        level=level,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        datefmt="%H:%M:%S",
    )

    try:
        config = ToolchainConfig.from_env()
    except ToolchainConfigError as exc:
        print(f"error: {exc}", file=sys.stderr)
        return 2

    try:
        return asyncio.run(_run_command(args, config))
    except ApkInstallError as exc:
        # Install failures are fatal to the whole automation run.
        logger.error("%s, aborting run", exc)
        return 1
    except (DeviceError, SupervisorError) as exc:
        logger.error("%s", exc)
        return 1
    except KeyboardInterrupt:
        return 130


if __name__ == "__main__":
    sys.exit(main())
