"""PowerShell invocation helpers for host capability queries."""

import json
from typing import Any, Dict, List, Optional

from hostprep.constants import POWERSHELL_EXECUTABLE, POWERSHELL_TIMEOUT_SECONDS
from hostprep.errors import HostPrepError
from hostprep.services.command_runner import CommandRunner


class PowerShellService:
    """Runs PowerShell scripts and decodes their JSON output."""

    def __init__(
        self,
        command_runner: CommandRunner,
        executable: str = POWERSHELL_EXECUTABLE,
        timeout: Optional[float] = POWERSHELL_TIMEOUT_SECONDS,
    ):
        self.command_runner = command_runner
        self.executable = executable
        self.timeout = timeout

    @staticmethod
    def quote(value: str) -> str:
        return "'" + value.replace("'", "''") + "'"

    def build_command(self, script: str) -> List[str]:
        return [
            self.executable,
            "-NoProfile",
            "-NonInteractive",
            "-ExecutionPolicy",
            "Bypass",
            "-Command",
            script,
        ]

    def run(self, script: str) -> str:
        result = self.command_runner.run(
            self.build_command(script),
            check=True,
            capture_output=True,
            timeout=self.timeout,
        )
        return (result.stdout or "").strip()

    def run_json(self, script: str) -> List[Dict[str, Any]]:
        """Runs a pipeline and returns its objects as a list of dicts.

        ConvertTo-Json emits nothing for an empty pipeline and a bare object
        for a single item, so both are normalized to a list here.
        """
        output = self.run(f"{script} | ConvertTo-Json -Depth 3 -Compress")
        if not output:
            return []

        try:
            parsed = json.loads(output)
        except json.JSONDecodeError as exc:
            raise HostPrepError(f"Unexpected PowerShell output: {exc}") from exc

        if isinstance(parsed, dict):
            return [parsed]
        if isinstance(parsed, list):
            return [item for item in parsed if isinstance(item, dict)]
        raise HostPrepError("Unexpected PowerShell output: expected an object or a list of objects.")
