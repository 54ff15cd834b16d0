"""Android toolchain configuration.

Resolved once at startup from ``ANDROID_HOME`` and passed explicitly to the
registry and device operations.
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Mapping

logger = logging.getLogger(__name__)

ANDROID_HOME_ENV = "ANDROID_HOME"


class ToolchainConfigError(Exception):
    """The Android SDK location is missing or unusable."""


@dataclass(frozen=True)
class ToolchainConfig:
    """Paths of the Android SDK tools used by droidbridge."""

    android_home: Path

    @classmethod
    def from_env(cls, environ: Mapping[str, str] | None = None) -> ToolchainConfig:
        env = os.environ if environ is None else environ
        home = env.get(ANDROID_HOME_ENV, "").strip()
        if not home:
            raise ToolchainConfigError(f"Please specify {ANDROID_HOME_ENV} env variable")
        config = cls(android_home=Path(home))
        logger.debug("Using Android SDK at %s", config.android_home)
        return config

    @property
    def adb(self) -> str:
        return str(self.android_home / "platform-tools" / "adb")

    @property
    def build_tools(self) -> Path | None:
        """Newest ``build-tools/<version>`` directory, if any is installed."""
        root = self.android_home / "build-tools"
        try:
            versions = sorted(p for p in root.iterdir() if p.is_dir())
        except OSError:
            return None
        return versions[-1] if versions else None

    @property
    def aapt(self) -> str | None:
        tools = self.build_tools
        return str(tools / "aapt") if tools is not None else None
