"""adb-backed Android device discovery and operations.

Quickstart::

    from droidbridge.config import ToolchainConfig
    from droidbridge.android import DeviceOperations, DeviceRegistry

    config = ToolchainConfig.from_env()         # reads ANDROID_HOME
    for device in await DeviceRegistry(config).discover():
        await DeviceOperations(device, config).install_apk("app.apk")
"""

from droidbridge.android.models import (
    ApkInstallError,
    Device,
    DeviceDiscoveryError,
    DeviceError,
    DeviceListingFormatError,
    FatalDeviceError,
    UnknownDeviceStateError,
)
from droidbridge.android.operations import DeviceOperations
from droidbridge.android.registry import DeviceRegistry

__all__ = [
    "ApkInstallError",
    "Device",
    "DeviceDiscoveryError",
    "DeviceError",
    "DeviceListingFormatError",
    "DeviceOperations",
    "DeviceRegistry",
    "FatalDeviceError",
    "UnknownDeviceStateError",
]
