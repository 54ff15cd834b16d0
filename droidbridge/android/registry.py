"""Device registry: discovers connected devices through ``adb devices``."""

from __future__ import annotations

import asyncio
import logging

from droidbridge.android.models import Device, DeviceListingFormatError
from droidbridge.android.parsing import parse_device_listing, parse_model
from droidbridge.config import ToolchainConfig
from droidbridge.process import InvocationOptions, run
from droidbridge.retry import RetryPolicy, retry_on_types, with_retry

logger = logging.getLogger(__name__)

# adb occasionally prints daemon start-up chatter instead of the listing.
# Five retries after the first call: six ``adb devices`` calls in total.
LISTING_RETRY = RetryPolicy(retries=5, retry_on=retry_on_types(DeviceListingFormatError))


class DeviceRegistry:
    """Takes snapshots of the devices attached to the adb server.

    Args:
        config: Resolved Android toolchain paths.
        retry:  Policy for malformed listings (default: 5 retries on
                :class:`DeviceListingFormatError` only).
    """

    def __init__(self, config: ToolchainConfig, retry: RetryPolicy = LISTING_RETRY) -> None:
        self._config = config
        self._retry = retry

    async def discover(self) -> set[Device]:
        """Return every attached device with its model name.

        A failed model query fails the whole discovery; no partial snapshot
        is returned.
        """
        try:
            devices = await with_retry(
                self._list_devices, self._retry, description="connected devices"
            )
            return set(await self._with_models(devices))
        except Exception as exc:
            logger.error("Error during discovering connected devices: %s", exc)
            raise

    async def device_model(self, device: Device) -> str:
        """``ro.product.model`` of *device* (``"undefined"`` when unset)."""
        command = [
            self._config.adb, "-s", device.id,
            "shell", "getprop ro.product.model undefined",
        ]
        try:
            exit_ = await run(command)
        except Exception as exc:
            logger.warning("[%s] Could not get model name of device: %s", device.id, exc)
            raise
        return parse_model(exit_.text())

    # ------------------------------------------------------------------ #
    # Helpers
    # ------------------------------------------------------------------ #

    async def _list_devices(self) -> list[Device]:
        exit_ = await run(
            [self._config.adb, "devices"],
            InvocationOptions(unbuffered_output=True),
        )
        devices = parse_device_listing(exit_.text())
        logger.debug("adb devices: %d device line(s)", len(devices))
        return devices

    async def _with_models(self, devices: list[Device]) -> list[Device]:
        tasks = [asyncio.ensure_future(self.device_model(d)) for d in devices]
        try:
            models = await asyncio.gather(*tasks)
        except BaseException:
            for task in tasks:
                task.cancel()
            await asyncio.gather(*tasks, return_exceptions=True)
            raise
        return [device.with_model(model) for device, model in zip(devices, models)]
