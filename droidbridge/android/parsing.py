"""Parsers for adb text output.

Pure functions. No processes are started here, so every format quirk can be
tested with plain strings.
"""

from __future__ import annotations

import re

from droidbridge.android.models import (
    Device,
    DeviceListingFormatError,
    UnknownDeviceStateError,
)

DEVICE_LIST_HEADER = "List of devices attached"
MODEL_UNDEFINED = "undefined"


def parse_device_listing(text: str) -> list[Device]:
    """Parse ``adb devices`` output into devices without models.

    Lines after the header look like ``<serial>\\t<state>[\\t<extra>]``.

    Raises:
        DeviceListingFormatError: the header is missing.
        UnknownDeviceStateError:  a line is neither offline nor a device.
    """
    if DEVICE_LIST_HEADER not in text:
        raise DeviceListingFormatError(f"Adb output is not correct: {text!r}")

    body = text.split(DEVICE_LIST_HEADER, 1)[1]
    devices: list[Device] = []
    for raw_line in body.splitlines():
        line = raw_line.strip()
        if not line:
            continue
        serial = line.split("\t", 1)[0]
        lowered = line.lower()
        if "offline" in lowered:
            online = False
        elif "device" in lowered:
            online = True
        else:
            raise UnknownDeviceStateError(f"Unknown adb output for device: {line}")
        devices.append(Device(id=serial, online=online))
    return devices


def parse_model(text: str) -> str:
    """``getprop`` output, trimmed (``"undefined"`` when the prop is unset)."""
    return text.strip()


def is_package_listed(text: str, package_name: str) -> bool:
    """True if ``pm list packages`` output has exactly ``package:<name>``."""
    pattern = re.compile(rf"^package:{re.escape(package_name)}$", re.MULTILINE)
    normalized = text.replace("\r\n", "\n")
    return pattern.search(normalized) is not None


def install_succeeded(text: str) -> bool:
    """True if some trimmed line of ``adb install`` output reads ``Success``."""
    return any(
        line.strip().lower() == "success"
        for line in text.splitlines()
        if line.strip()
    )
