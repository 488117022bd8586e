"""
hostprep - Hyper-V lab host readiness checker
"""

__version__ = "0.1.0"

from .core import HostPreparer
from .errors import HostPrepError

__all__ = ["HostPreparer", "HostPrepError"]
