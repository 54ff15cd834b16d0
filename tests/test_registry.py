"""Tests for device discovery: adb output mocked at the supervisor boundary."""

from __future__ import annotations

from unittest.mock import AsyncMock, patch

import pytest

from droidbridge.android.models import (
    Device,
    DeviceListingFormatError,
    UnknownDeviceStateError,
)
from droidbridge.android.registry import DeviceRegistry
from droidbridge.process import Exit, InvocationOptions, ProcessLaunchError, ProcessTimeoutError


def _exit(text: str, returncode: int = 0) -> Exit:
    return Exit(returncode=returncode, output=text.encode("utf-8"))


def _fake_adb(listing: str | list[str], models: dict[str, object] | None = None):
    """side_effect for ``run``: answers ``devices`` and per-device getprop."""
    listings = [listing] if isinstance(listing, str) else list(listing)
    models = models or {}

    async def _run(command, options=None):
        if command[1] == "devices":
            text = listings.pop(0) if len(listings) > 1 else listings[0]
            return _exit(text)
        serial = command[2]
        model = models.get(serial, serial)  # model mocked as identity
        if isinstance(model, Exception):
            raise model
        return _exit(f"{model}\n")

    return _run


def _listing_calls(mock_run: AsyncMock) -> int:
    return sum(1 for c in mock_run.await_args_list if c.args[0][1] == "devices")


class TestDiscover:
    async def test_single_emulator(self, sdk_config):
        with patch(
            "droidbridge.android.registry.run",
            new=AsyncMock(side_effect=_fake_adb(
                "List of devices attached\nemulator-5554\tdevice",
                {"emulator-5554": "sdk_gphone64_x86_64"},
            )),
        ):
            devices = await DeviceRegistry(sdk_config).discover()

        assert devices == {Device(id="emulator-5554", online=True, model="sdk_gphone64_x86_64")}

    async def test_listing_command(self, sdk_config):
        mock_run = AsyncMock(side_effect=_fake_adb("List of devices attached\n"))
        with patch("droidbridge.android.registry.run", new=mock_run):
            assert await DeviceRegistry(sdk_config).discover() == set()

        command, options = mock_run.await_args.args
        assert command == [sdk_config.adb, "devices"]
        assert options == InvocationOptions(unbuffered_output=True)

    @pytest.mark.parametrize(
        "lines",
        [
            [],
            ["emulator-5554\tdevice"],
            ["emulator-5554\tdevice", "emulator-5556\toffline"],
            ["A\tdevice", "B\tdevice", "C\toffline", "D\tdevice\tusb:1-1"],
        ],
    )
    async def test_ids_and_online_flags_match_lines(self, sdk_config, lines):
        text = "List of devices attached\n" + "\n".join(lines) + "\n"
        with patch("droidbridge.android.registry.run", new=AsyncMock(side_effect=_fake_adb(text))):
            devices = await DeviceRegistry(sdk_config).discover()

        expected = {
            (line.split("\t")[0], "offline" not in line) for line in lines
        }
        assert {(d.id, d.online) for d in devices} == expected
        assert all(d.model == d.id for d in devices)

    async def test_model_query_command(self, sdk_config):
        mock_run = AsyncMock(side_effect=_fake_adb("List of devices attached\nR5CT123ABCD\tdevice\n"))
        with patch("droidbridge.android.registry.run", new=mock_run):
            await DeviceRegistry(sdk_config).discover()

        model_call = mock_run.await_args_list[-1]
        assert model_call.args[0] == [
            sdk_config.adb, "-s", "R5CT123ABCD", "shell", "getprop ro.product.model undefined",
        ]

    async def test_undefined_model(self, sdk_config):
        fake = _fake_adb("List of devices attached\nA\tdevice\n", {"A": "undefined"})
        with patch("droidbridge.android.registry.run", new=AsyncMock(side_effect=fake)):
            devices = await DeviceRegistry(sdk_config).discover()
        assert devices == {Device(id="A", online=True, model="undefined")}


class TestRetry:
    async def test_missing_header_retried_five_times(self, sdk_config):
        mock_run = AsyncMock(side_effect=_fake_adb("* daemon not running; starting now"))
        with patch("droidbridge.android.registry.run", new=mock_run):
            with pytest.raises(DeviceListingFormatError):
                await DeviceRegistry(sdk_config).discover()

        assert _listing_calls(mock_run) == 1 + 5

    async def test_recovers_after_malformed_output(self, sdk_config):
        fake = _fake_adb([
            "* daemon started successfully",
            "garbage",
            "List of devices attached\nemulator-5554\tdevice\n",
        ])
        mock_run = AsyncMock(side_effect=fake)
        with patch("droidbridge.android.registry.run", new=mock_run):
            devices = await DeviceRegistry(sdk_config).discover()

        assert {d.id for d in devices} == {"emulator-5554"}
        assert _listing_calls(mock_run) == 3

    async def test_unknown_state_not_retried(self, sdk_config):
        mock_run = AsyncMock(side_effect=_fake_adb("List of devices attached\nR5CT\tunauthorized\n"))
        with patch("droidbridge.android.registry.run", new=mock_run):
            with pytest.raises(UnknownDeviceStateError):
                await DeviceRegistry(sdk_config).discover()

        assert _listing_calls(mock_run) == 1

    async def test_launch_error_not_retried(self, sdk_config):
        mock_run = AsyncMock(side_effect=ProcessLaunchError("Cannot start adb"))
        with patch("droidbridge.android.registry.run", new=mock_run):
            with pytest.raises(ProcessLaunchError):
                await DeviceRegistry(sdk_config).discover()

        assert mock_run.await_count == 1


class TestModelFailure:
    async def test_one_model_failure_fails_discovery(self, sdk_config, caplog):
        fake = _fake_adb(
            "List of devices attached\nA\tdevice\nB\tdevice\n",
            {"B": ProcessTimeoutError("getprop timed out")},
        )
        with patch("droidbridge.android.registry.run", new=AsyncMock(side_effect=fake)):
            with caplog.at_level("ERROR", logger="droidbridge.android.registry"):
                with pytest.raises(ProcessTimeoutError):
                    await DeviceRegistry(sdk_config).discover()

        assert "Error during discovering connected devices" in caplog.text

    async def test_device_model(self, sdk_config):
        with patch(
            "droidbridge.android.registry.run",
            new=AsyncMock(return_value=_exit("  Pixel 7 Pro \n")),
        ):
            model = await DeviceRegistry(sdk_config).device_model(Device(id="X", online=True))
        assert model == "Pixel 7 Pro"


class TestAgainstFakeAdb:
    async def test_discover_with_script(self, fake_sdk):
        devices = await DeviceRegistry(fake_sdk).discover()
        assert devices == {
            Device(id="emulator-5554", online=True, model="Model of emulator-5554"),
            Device(id="R5CT123ABCD", online=False, model="Model of R5CT123ABCD"),
        }
