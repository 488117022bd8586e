"""Elevation checks for the current process."""

import ctypes
import os
import sys


class PrivilegeService:
    """Answers whether the caller holds administrator rights."""

    def __init__(self, logger, platform: str = sys.platform):
        self.logger = logger
        self.platform = platform

    def is_elevated(self) -> bool:
        try:
            if self.platform == "win32":
                return bool(ctypes.windll.shell32.IsUserAnAdmin())
            return os.geteuid() == 0
        except (AttributeError, OSError) as exc:
            self.logger.debug("Elevation query failed: %s", exc)
            return False
