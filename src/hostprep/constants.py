"""Fixed names and thresholds used by hostprep."""

import os
import sys

EXIT_OK = 0
EXIT_FATAL = 1
EXIT_RESTART_REQUIRED = 2

DEFAULT_SWITCH_NAME = "LabExternalSwitch"
DEFAULT_PREFERRED_VOLUME = "D:\\"
DEFAULT_FALLBACK_VOLUME = "C:\\"
DEFAULT_WORKSPACE_FOLDER = "LabWorkspace"
DEFAULT_LOG_SUBDIR = "HostPrepLogs"
LOG_FILE_NAME = "hostprep.log"

HYPERV_FEATURE_NAME = "Microsoft-Hyper-V-All"
HYPERV_RUNTIME_SERVICES = ("vmms", "vmcompute", "hvhost")

MIN_RAM_GB = 16.0
MIN_FREE_DISK_GB = 150.0
MIN_CPU_CORES = 4

BYTES_PER_GB = 1024 ** 3

LOG_DATE_FORMAT = "%Y-%d-%m %H:%M:%S"

POWERSHELL_EXECUTABLE = "powershell.exe"
POWERSHELL_TIMEOUT_SECONDS = 300.0


def default_system_volume() -> str:
    if sys.platform == "win32":
        return os.environ.get("SystemDrive", "C:") + "\\"
    return "/"
