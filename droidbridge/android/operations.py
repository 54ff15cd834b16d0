"""Per-device adb operations: packages, installs, pulls and logcat.

Every method is scoped to one :class:`Device` and independent of the others,
so several devices can be driven concurrently from one event loop.
"""

from __future__ import annotations

import asyncio
import logging
import time
from pathlib import Path

from droidbridge.android.models import ApkInstallError, Device, DeviceError
from droidbridge.android.parsing import install_succeeded, is_package_listed
from droidbridge.config import ToolchainConfig
from droidbridge.process import InvocationOptions, ProcessHandle, SupervisorError, launch, run
from droidbridge.retry import RetryPolicy, with_retry
from droidbridge.utils import format_duration

logger = logging.getLogger(__name__)

INSTALL_TIMEOUT = 120.0
PULL_TIMEOUT = 60.0
PULL_RETRY = RetryPolicy(retries=3)


class PullFailedError(DeviceError):
    """``adb pull`` exited with a non-zero status."""


class DeviceOperations:
    """adb operations bound to a single device."""

    def __init__(self, device: Device, config: ToolchainConfig) -> None:
        self.device = device
        self._config = config

    def _adb(self, *args: str) -> list[str]:
        return [self._config.adb, "-s", self.device.id, *args]

    def _log(self, level: int, msg: str, *args: object) -> None:
        logger.log(level, "[%s] " + msg, self.device.id, *args)

    # ── Packages ──────────────────────────────────────────────────

    async def is_app_installed(self, package_name: str) -> bool:
        """True if ``pm list packages`` reports exactly *package_name*."""
        exit_ = await run(
            self._adb("shell", "pm", "list", "packages", package_name),
            InvocationOptions(unbuffered_output=True),
        )
        return is_package_listed(exit_.text(), package_name)

    async def install_apk(self, path: str | Path, timeout: float = INSTALL_TIMEOUT) -> float:
        """Install (or reinstall) the APK at *path*.

        Returns:
            Seconds the install took.

        Raises:
            ApkInstallError:  adb did not print ``Success``.  Callers treat
                              this as fatal for the whole run.
            SupervisorError:  adb could not be run or timed out.
        """
        apk = str(path)
        self._log(logging.INFO, "Installing apk... pathToApk = %s", apk)
        start = time.monotonic()
        try:
            exit_ = await run(
                self._adb("install", "-r", apk),
                InvocationOptions(unbuffered_output=True, timeout=timeout),
            )
        except SupervisorError as exc:
            self._log(logging.ERROR, "Error during installing apk: %s, pathToApk = %s", exc, apk)
            raise

        output = exit_.text()
        duration = time.monotonic() - start
        if not install_succeeded(output):
            self._log(logging.ERROR, "Failed to install apk %s", apk)
            raise ApkInstallError(self.device.id, apk, output)

        self._log(
            logging.INFO,
            "Successfully installed apk in %s, pathToApk = %s",
            format_duration(duration),
            apk,
        )
        return duration

    # ── Files ─────────────────────────────────────────────────────

    async def pull_folder(
        self,
        folder_on_device: str,
        folder_on_host: str | Path,
        log_errors: bool,
        timeout: float = PULL_TIMEOUT,
    ) -> bool:
        """Recursively pull *folder_on_device* into *folder_on_host*.

        Retried up to 3 times; never raises, reports the outcome instead.
        """
        host = Path(folder_on_host).absolute()
        command = self._adb("pull", folder_on_device, str(host))
        options = InvocationOptions(unbuffered_output=True, timeout=timeout)

        async def _pull() -> None:
            exit_ = await run(command, options)
            if exit_.returncode != 0:
                raise PullFailedError(
                    f"adb pull exited with {exit_.returncode}: {exit_.text().strip()[:500]}"
                )

        try:
            await with_retry(_pull, PULL_RETRY, description=f"[{self.device.id}] pull")
        except Exception as exc:
            if log_errors:
                self._log(
                    logging.ERROR,
                    "Failed to pull files from %s to %s: %s",
                    folder_on_device,
                    host,
                    exc,
                )
            return False
        return True

    # ── Logs ──────────────────────────────────────────────────────

    async def redirect_logcat_to_file(self, file: str | Path) -> ProcessHandle:
        """Start ``adb logcat`` writing into *file* and return its handle.

        The stream never ends on its own; release the handle (or cancel the
        task waiting on it) to kill it.
        """
        target = Path(file)
        try:
            target.parent.mkdir(parents=True, exist_ok=True)
            return await launch(
                self._adb("logcat"),
                InvocationOptions(redirect_output_to=target, timeout=None),
            )
        except asyncio.CancelledError:
            # Interrupted by our own shutdown.
            raise
        except Exception as exc:
            self._log(logging.ERROR, "Error during redirecting logcat to file %s, error = %s", target, exc)
            raise

    async def stream_logcat_to_file(self, file: str | Path) -> int:
        """Redirect logcat into *file* and block until the stream ends.

        Returns adb's exit code.  Cancelling the waiting task kills logcat.
        """
        handle = await self.redirect_logcat_to_file(file)
        async with handle:
            try:
                exit_ = await handle.wait()
            except asyncio.CancelledError:
                self._log(logging.DEBUG, "logcat stopped")
                raise
            except Exception as exc:
                self._log(logging.ERROR, "Error during redirecting logcat to file %s, error = %s", file, exc)
                raise
        self._log(logging.INFO, "logcat exited with %d", exit_.returncode)
        return exit_.returncode
