"""Hyper-V feature and runtime service queries."""

from typing import Sequence

from hostprep.errors import HostPrepError
from hostprep.models import FeatureState
from hostprep.services.powershell import PowerShellService

_DISABLED_STATES = {"disabled", "disabledwithpayloadremoved"}


class HyperVService:
    """Queries and enables the Hyper-V optional feature."""

    def __init__(self, powershell: PowerShellService, logger):
        self.powershell = powershell
        self.logger = logger

    def query_feature_state(self, feature_name: str) -> FeatureState:
        rows = self.powershell.run_json(
            "Get-WindowsOptionalFeature -Online -FeatureName "
            f"{self.powershell.quote(feature_name)} -ErrorAction Stop | "
            "Select-Object FeatureName, @{Name='State';Expression={[string]$_.State}}"
        )
        if not rows:
            raise HostPrepError(f"Feature '{feature_name}' was not reported by the host.")

        state = str(rows[0].get("State") or "").strip()
        self.logger.debug("Feature %s state: %s", feature_name, state or "<empty>")
        if state.lower() == "enabled":
            return FeatureState.ENABLED
        if state.lower() in _DISABLED_STATES:
            return FeatureState.DISABLED
        return FeatureState.UNKNOWN

    def enable_feature(self, feature_name: str):
        self.powershell.run(
            "Enable-WindowsOptionalFeature -Online -FeatureName "
            f"{self.powershell.quote(feature_name)} -All -NoRestart -ErrorAction Stop | Out-Null"
        )

    def count_running_services(self, service_names: Sequence[str]) -> int:
        names = ",".join(self.powershell.quote(name) for name in service_names)
        rows = self.powershell.run_json(
            f"Get-Service -Name {names} -ErrorAction SilentlyContinue | "
            "Select-Object Name, @{Name='Status';Expression={[string]$_.Status}}"
        )
        running = [row for row in rows if str(row.get("Status", "")).lower() == "running"]
        self.logger.debug(
            "Running Hyper-V services: %s",
            ", ".join(str(row.get("Name")) for row in running) or "<none>",
        )
        return len(running)
