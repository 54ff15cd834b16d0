"""droidbridge: drive Android devices over adb from test automation and CI.

Components:
  droidbridge.process   supervised subprocesses (start/exit, timeout, kill)
  droidbridge.android   device discovery and per-device operations
  droidbridge.config    ANDROID_HOME toolchain resolution
"""

__version__ = "1.0.0"
