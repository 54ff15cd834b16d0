"""Supervised external processes (spawn, observe, time out, kill)."""

from droidbridge.process.supervisor import (
    Exit,
    InvocationOptions,
    Notification,
    ProcessHandle,
    ProcessLaunchError,
    ProcessOutputError,
    ProcessTimeoutError,
    Start,
    SupervisorError,
    launch,
    run,
    spawn,
)

__all__ = [
    "Exit",
    "InvocationOptions",
    "Notification",
    "ProcessHandle",
    "ProcessLaunchError",
    "ProcessOutputError",
    "ProcessTimeoutError",
    "Start",
    "SupervisorError",
    "launch",
    "run",
    "spawn",
]
