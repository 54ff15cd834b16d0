"""Process supervisor: spawn an external command and observe its lifecycle.

One supervised invocation produces two notifications:

  Start  the process has been launched (carries the :class:`ProcessHandle`)
  Exit   the process terminated (carries return code and output)

``spawn()`` is an async generator, so nothing is launched until the caller
starts iterating.  Leaving the iteration early (cancellation, ``aclose()``,
an exception in the consumer) kills the process before teardown completes.
A timeout kills the process as well and raises :class:`ProcessTimeoutError`
instead of producing an ``Exit``.

Usage::

    async with aclosing(spawn(["adb", "devices"])) as notifications:
        async for note in notifications:
            if isinstance(note, Exit):
                print(note.text())

    exit_ = await run(["adb", "devices"])       # only the Exit
    handle = await launch(["adb", "logcat"])    # caller owns the process
"""

from __future__ import annotations

import asyncio
import logging
from contextlib import aclosing
from dataclasses import dataclass
from pathlib import Path
from typing import IO, AsyncIterator, Sequence, Union

logger = logging.getLogger(__name__)

_READ_CHUNK = 4096


class SupervisorError(Exception):
    """Base error for supervised process invocations."""


class ProcessLaunchError(SupervisorError):
    """The command could not be started (missing or not executable)."""


class ProcessTimeoutError(SupervisorError):
    """The command did not finish within its timeout and was killed."""


class ProcessOutputError(SupervisorError):
    """Output could not be captured or redirected."""


@dataclass(frozen=True)
class InvocationOptions:
    """How a command is supervised.

    Attributes:
        unbuffered_output:  Pump captured output as it arrives instead of
                            collecting it at exit (for streaming commands).
        timeout:            Seconds after which the process is killed and the
                            invocation fails; ``None`` waits forever.
        redirect_output_to: Write stdout/stderr into this file instead of
                            capturing it in memory.
    """

    unbuffered_output: bool = False
    timeout: float | None = None
    redirect_output_to: Path | None = None


@dataclass(frozen=True)
class Start:
    process: ProcessHandle


@dataclass(frozen=True)
class Exit:
    returncode: int
    output: bytes = b""
    output_file: Path | None = None

    def text(self) -> str:
        """Captured output as text; reads the redirect target when set."""
        if self.output_file is not None:
            try:
                data = self.output_file.read_bytes()
            except OSError as exc:
                raise ProcessOutputError(
                    f"Cannot read redirected output {self.output_file}: {exc}"
                ) from exc
            return data.decode("utf-8", errors="replace")
        return self.output.decode("utf-8", errors="replace")


Notification = Union[Start, Exit]


class ProcessHandle:
    """Owns one running OS process until :meth:`release` is called.

    Use as an async context manager to guarantee the process is killed on
    every exit path.
    """

    def __init__(
        self,
        process: asyncio.subprocess.Process,
        command: Sequence[str],
        options: InvocationOptions,
        sink: IO[bytes] | None = None,
    ) -> None:
        self._process = process
        self._command = list(command)
        self._options = options
        self._sink = sink
        self._buffer = bytearray()
        self._exit: Exit | None = None
        self._collector: asyncio.Future[Exit] | None = None
        self._released = False

    @property
    def pid(self) -> int:
        return self._process.pid

    @property
    def command(self) -> list[str]:
        return list(self._command)

    @property
    def returncode(self) -> int | None:
        return self._process.returncode

    @property
    def running(self) -> bool:
        return self._process.returncode is None

    def output_so_far(self) -> bytes:
        """Output captured up to now (always empty when redirected)."""
        return bytes(self._buffer)

    async def wait(self) -> Exit:
        """Wait for termination and return the :class:`Exit` notification.

        Output is collected once; concurrent callers share the same result.
        Cancelling a caller kills the process.

        Raises:
            ProcessTimeoutError: the timeout elapsed; the process was killed.
            ProcessOutputError:  reading the output failed.
        """
        if self._exit is not None:
            return self._exit
        if self._collector is None:
            self._collector = asyncio.ensure_future(self._finish())
        try:
            return await asyncio.shield(self._collector)
        except asyncio.CancelledError:
            await self.release()
            raise

    async def release(self) -> None:
        """Kill the process if it is still running and reap it."""
        if self._released:
            return
        self._released = True
        if self._process.returncode is None:
            logger.debug("Killing pid %d (%s)", self._process.pid, self._command[0])
            try:
                self._process.kill()
            except ProcessLookupError:
                pass
            # Shielded so a second cancellation cannot leave a zombie behind.
            await asyncio.shield(self._process.wait())
        collector = self._collector
        if collector is not None and collector is not asyncio.current_task():
            await asyncio.wait([collector])
        self._close_sink()

    async def __aenter__(self) -> ProcessHandle:
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.release()

    # ------------------------------------------------------------------ #
    # Helpers
    # ------------------------------------------------------------------ #

    async def _finish(self) -> Exit:
        timeout = self._options.timeout
        try:
            if timeout is None:
                await self._collect()
            else:
                await asyncio.wait_for(self._collect(), timeout=timeout)
        except asyncio.TimeoutError as exc:
            logger.warning("Killing %s: no exit after %ss", self._command[0], timeout)
            await self.release()
            raise ProcessTimeoutError(
                f"{' '.join(self._command)} timed out after {timeout}s"
            ) from exc
        except OSError as exc:
            await self.release()
            raise ProcessOutputError(f"Reading output of {self._command[0]} failed: {exc}") from exc
        except asyncio.CancelledError:
            await self.release()
            raise

        self._close_sink()
        self._exit = Exit(
            returncode=self._process.returncode,
            output=bytes(self._buffer),
            output_file=self._options.redirect_output_to,
        )
        logger.debug("%s exited with rc=%d", self._command[0], self._exit.returncode)
        return self._exit

    async def _collect(self) -> None:
        stdout = self._process.stdout
        if stdout is None:
            await self._process.wait()
        elif self._options.unbuffered_output:
            while True:
                chunk = await stdout.read(_READ_CHUNK)
                if not chunk:
                    break
                self._buffer.extend(chunk)
            await self._process.wait()
        else:
            data, _ = await self._process.communicate()
            self._buffer.extend(data or b"")

    def _close_sink(self) -> None:
        if self._sink is not None and not self._sink.closed:
            self._sink.close()

    def __repr__(self) -> str:
        return f"<ProcessHandle pid={self.pid} command={self._command[0]!r} rc={self.returncode}>"


async def launch(command: Sequence[str], options: InvocationOptions | None = None) -> ProcessHandle:
    """Start *command* and return the handle that owns the process.

    Raises:
        ProcessLaunchError: the executable is missing or not runnable.
        ProcessOutputError: the redirect target cannot be opened.
    """
    options = options or InvocationOptions()
    if not command:
        raise ProcessLaunchError("Empty command")

    sink: IO[bytes] | None = None
    if options.redirect_output_to is not None:
        try:
            sink = open(options.redirect_output_to, "wb", buffering=0)
        except OSError as exc:
            raise ProcessOutputError(
                f"Cannot redirect output to {options.redirect_output_to}: {exc}"
            ) from exc

    try:
        process = await asyncio.create_subprocess_exec(
            *command,
            stdin=asyncio.subprocess.DEVNULL,
            stdout=sink if sink is not None else asyncio.subprocess.PIPE,
            stderr=asyncio.subprocess.STDOUT,
        )
    except OSError as exc:
        if sink is not None:
            sink.close()
        raise ProcessLaunchError(f"Cannot start {command[0]}: {exc}") from exc
    except BaseException:
        if sink is not None:
            sink.close()
        raise

    logger.debug("Started pid %d: %s", process.pid, " ".join(command))
    return ProcessHandle(process, command, options, sink)


async def spawn(
    command: Sequence[str],
    options: InvocationOptions | None = None,
) -> AsyncIterator[Notification]:
    """Yield ``Start`` then ``Exit`` for one supervised run of *command*."""
    handle = await launch(command, options)
    async with handle:
        yield Start(handle)
        exit_ = await handle.wait()
    yield exit_


async def run(command: Sequence[str], options: InvocationOptions | None = None) -> Exit:
    """Run *command* to completion and return its :class:`Exit`."""
    async with aclosing(spawn(command, options)) as notifications:
        async for note in notifications:
            if isinstance(note, Exit):
                return note
    raise SupervisorError(f"{command[0]} produced no exit notification")
