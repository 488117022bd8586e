"""Filesystem helpers for the lab workspace."""

import os
import stat
import sys
from typing import Optional, Tuple

from hostprep.errors import HostPrepError
from hostprep.services.powershell import PowerShellService


def contains_whitespace(path: str) -> bool:
    return any(char.isspace() for char in path)


class WorkspaceService:
    """Encapsulates volume selection and workspace folder side effects."""

    def __init__(self, logger, powershell: Optional[PowerShellService] = None, platform: str = sys.platform):
        self.logger = logger
        self.powershell = powershell
        self.platform = platform

    def volume_exists(self, volume: str) -> bool:
        return os.path.isdir(volume)

    def select_volume(self, preferred: str, fallback: str) -> Tuple[str, bool]:
        if self.volume_exists(preferred):
            return preferred, False
        return fallback, True

    def resolve_path(self, volume: str, folder: str) -> str:
        return os.path.abspath(os.path.join(volume, folder))

    def exists(self, path: str) -> bool:
        return os.path.isdir(path)

    def ensure_directory(self, path: str) -> bool:
        """Creates ``path`` when missing. Returns True if it was created."""
        if os.path.isdir(path):
            return False

        try:
            os.makedirs(path)
        except FileExistsError:
            if os.path.isdir(path):
                return False
            raise HostPrepError(f"{path} exists and is not a directory")
        except OSError as exc:
            raise HostPrepError(str(exc)) from exc

        self.logger.debug("Created directory: %s", path)
        return True

    def read_access_rules(self, path: str) -> str:
        if self.platform == "win32" and self.powershell is not None:
            return self.powershell.run(
                f"(Get-Acl -Path {self.powershell.quote(path)} -ErrorAction Stop).AccessToString"
            )

        try:
            info = os.stat(path)
        except OSError as exc:
            raise HostPrepError(f"Could not read permissions of {path}: {exc}") from exc
        return f"{stat.filemode(info.st_mode)} uid={info.st_uid} gid={info.st_gid}"
