"""Host resource metrics."""

import platform

import psutil

from hostprep.errors import HostPrepError
from hostprep.models import RequirementSnapshot


class ResourceService:
    """Reads memory, disk, CPU and OS details through psutil."""

    def __init__(self, psutil_module=psutil, platform_module=platform):
        self.psutil = psutil_module
        self.platform = platform_module

    def os_name(self) -> str:
        system = self.platform.system() or "Unknown OS"
        release = self.platform.release()
        version = self.platform.version()
        name = f"{system} {release}".strip()
        return f"{name} ({version})" if version else name

    def snapshot(self, system_volume: str) -> RequirementSnapshot:
        try:
            ram_bytes = int(self.psutil.virtual_memory().total)
            free_disk_bytes = int(self.psutil.disk_usage(system_volume).free)
            cpu_cores = int(self.psutil.cpu_count(logical=True) or 0)
        except (OSError, TypeError, ValueError, self.psutil.Error) as exc:
            raise HostPrepError(f"Could not read host resources: {exc}") from exc

        return RequirementSnapshot(
            ram_bytes=ram_bytes,
            free_disk_bytes=free_disk_bytes,
            cpu_cores=cpu_cores,
            os_name=self.os_name(),
        )
