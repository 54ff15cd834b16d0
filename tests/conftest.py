"""pytest configuration for droidbridge tests."""

from __future__ import annotations

import stat
import sys

import pytest

from droidbridge.config import ToolchainConfig


# Configure asyncio mode for pytest-asyncio
def pytest_configure(config):
    config.addinivalue_line(
        "markers", "asyncio: mark test as async"
    )


# A stand-in for ``adb``: answers ``devices`` and ``getprop``, and for
# ``logcat`` prints its pid and then blocks until killed.
FAKE_ADB = """\
#!/bin/sh
if [ "$1" = "devices" ]; then
    printf 'List of devices attached\\nemulator-5554\\tdevice\\nR5CT123ABCD\\toffline\\n\\n'
    exit 0
fi
if [ "$1" = "-s" ]; then
    serial="$2"
    shift 2
    case "$1" in
        shell) echo "Model of $serial" ;;
        logcat) echo "pid $$"; exec sleep 60 ;;
        *) echo "unsupported: $*"; exit 1 ;;
    esac
fi
"""


@pytest.fixture
def sdk_config(tmp_path) -> ToolchainConfig:
    """Config pointing at an SDK directory without real tools."""
    (tmp_path / "platform-tools").mkdir()
    return ToolchainConfig(android_home=tmp_path)


@pytest.fixture
def fake_sdk(tmp_path) -> ToolchainConfig:
    """Config whose ``adb`` is the shell script above."""
    if sys.platform == "win32":
        pytest.skip("fake adb is a POSIX shell script")
    home = tmp_path / "sdk"
    tools = home / "platform-tools"
    tools.mkdir(parents=True)
    adb = tools / "adb"
    adb.write_text(FAKE_ADB)
    adb.chmod(adb.stat().st_mode | stat.S_IXUSR | stat.S_IXGRP | stat.S_IXOTH)
    return ToolchainConfig(android_home=home)
