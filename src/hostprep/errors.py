"""Domain errors for hostprep."""


class HostPrepError(RuntimeError):
    """Raised when a host capability query or change cannot be completed."""
