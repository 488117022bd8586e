"""Shared domain models for hostprep."""

from dataclasses import dataclass, field
from enum import Enum
from typing import Optional, Tuple

from .constants import (
    BYTES_PER_GB,
    DEFAULT_FALLBACK_VOLUME,
    DEFAULT_LOG_SUBDIR,
    DEFAULT_PREFERRED_VOLUME,
    DEFAULT_SWITCH_NAME,
    DEFAULT_WORKSPACE_FOLDER,
    EXIT_FATAL,
    EXIT_OK,
    EXIT_RESTART_REQUIRED,
    HYPERV_FEATURE_NAME,
    HYPERV_RUNTIME_SERVICES,
    LOG_FILE_NAME,
    MIN_CPU_CORES,
    MIN_FREE_DISK_GB,
    MIN_RAM_GB,
    default_system_volume,
)


class Severity(str, Enum):
    INFO = "INFO"
    WARNING = "WARNING"
    ERROR = "ERROR"


class FeatureState(str, Enum):
    ENABLED = "Enabled"
    DISABLED = "Disabled"
    UNKNOWN = "Unknown"


class OutcomeKind(str, Enum):
    CONTINUE = "continue"
    WARN = "warn"
    FATAL = "fatal"


@dataclass(frozen=True)
class NetworkAdapter:
    """A network interface as reported by the host enumeration."""

    name: str
    description: str
    status: str
    admin_status: str = "Up"
    media_state: str = "Connected"
    virtual: bool = False

    @property
    def is_up(self) -> bool:
        return self.admin_status.lower() == "up"

    @property
    def is_connected(self) -> bool:
        return self.media_state.lower() == "connected"

    @property
    def is_eligible(self) -> bool:
        return self.is_up and self.is_connected and not self.virtual


@dataclass(frozen=True)
class VirtualSwitch:
    name: str
    adapter_description: Optional[str] = None
    allow_management_os: bool = True
    switch_type: str = "External"


@dataclass(frozen=True)
class RequirementSnapshot:
    """Point-in-time read of host resources."""

    ram_bytes: int
    free_disk_bytes: int
    cpu_cores: int
    os_name: str

    @property
    def ram_gb(self) -> float:
        return round(self.ram_bytes / BYTES_PER_GB, 1)

    @property
    def free_disk_gb(self) -> float:
        return round(self.free_disk_bytes / BYTES_PER_GB, 1)


@dataclass(frozen=True)
class DiagnosticTable:
    title: str
    columns: Tuple[str, ...]
    rows: Tuple[Tuple[str, ...], ...] = ()


@dataclass(frozen=True)
class StepOutcome:
    """Tagged result of a single readiness step."""

    kind: OutcomeKind
    message: Optional[str] = None
    exit_code: int = EXIT_OK
    severity: Severity = Severity.INFO
    details: Tuple[str, ...] = ()
    table: Optional[DiagnosticTable] = None

    @classmethod
    def ok(cls) -> "StepOutcome":
        return cls(OutcomeKind.CONTINUE)

    @classmethod
    def warn(cls, message: str) -> "StepOutcome":
        return cls(OutcomeKind.WARN, message=message, severity=Severity.WARNING)

    @classmethod
    def fatal(
        cls,
        message: str,
        exit_code: int = EXIT_FATAL,
        details: Tuple[str, ...] = (),
        table: Optional[DiagnosticTable] = None,
    ) -> "StepOutcome":
        return cls(
            OutcomeKind.FATAL,
            message=message,
            exit_code=exit_code,
            severity=Severity.ERROR,
            details=details,
            table=table,
        )

    @classmethod
    def restart_required(cls, message: str) -> "StepOutcome":
        return cls(
            OutcomeKind.FATAL,
            message=message,
            exit_code=EXIT_RESTART_REQUIRED,
            severity=Severity.WARNING,
        )

    @property
    def is_fatal(self) -> bool:
        return self.kind is OutcomeKind.FATAL


@dataclass(frozen=True)
class HostPrepSettings:
    """Resolved run configuration."""

    switch_name: str = DEFAULT_SWITCH_NAME
    preferred_volume: str = DEFAULT_PREFERRED_VOLUME
    fallback_volume: str = DEFAULT_FALLBACK_VOLUME
    workspace_folder: str = DEFAULT_WORKSPACE_FOLDER
    log_subdir: str = DEFAULT_LOG_SUBDIR
    log_file_name: str = LOG_FILE_NAME
    system_volume: str = field(default_factory=default_system_volume)
    min_ram_gb: float = MIN_RAM_GB
    min_disk_gb: float = MIN_FREE_DISK_GB
    min_cores: int = MIN_CPU_CORES
    runtime_services: Tuple[str, ...] = HYPERV_RUNTIME_SERVICES
    feature_name: str = HYPERV_FEATURE_NAME
    dry_run: bool = False
