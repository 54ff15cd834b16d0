"""Android device data models and errors."""

from __future__ import annotations

import dataclasses
from dataclasses import dataclass


@dataclass(frozen=True)
class Device:
    """One connected Android device as seen by a single discovery pass."""

    id: str
    online: bool
    model: str | None = None

    def with_model(self, model: str) -> Device:
        return dataclasses.replace(self, model=model)


class DeviceError(Exception):
    """Base error for adb device operations."""


class DeviceDiscoveryError(DeviceError):
    """Device listing could not be turned into devices."""


class DeviceListingFormatError(DeviceDiscoveryError):
    """``adb devices`` output lacks its header (transient, retried)."""


class UnknownDeviceStateError(DeviceDiscoveryError):
    """A device line carries a state we do not understand."""


class FatalDeviceError(DeviceError):
    """A failure the automation run should not continue past."""


class ApkInstallError(FatalDeviceError):
    """``adb install`` did not report success."""

    def __init__(self, device_id: str, apk_path: str, output: str = "") -> None:
        super().__init__(f"[{device_id}] Failed to install apk {apk_path}")
        self.device_id = device_id
        self.apk_path = apk_path
        self.output = output
