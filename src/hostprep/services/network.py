"""Network adapter enumeration and Hyper-V virtual switch management."""

from typing import Any, Dict, List, Optional, Sequence

from hostprep.models import NetworkAdapter, VirtualSwitch
from hostprep.services.powershell import PowerShellService


def _as_bool(value: Any) -> bool:
    if isinstance(value, str):
        return value.strip().lower() in {"true", "1", "yes"}
    return bool(value)


class NetworkService:
    """Lists adapters and ensures the lab's external switch exists."""

    ADAPTER_QUERY = (
        "Get-NetAdapter -ErrorAction Stop | Select-Object Name, InterfaceDescription, "
        "@{Name='Status';Expression={[string]$_.Status}}, "
        "@{Name='AdminStatus';Expression={[string]$_.AdminStatus}}, "
        "@{Name='MediaConnectionState';Expression={[string]$_.MediaConnectionState}}, "
        "Virtual"
    )

    def __init__(self, powershell: PowerShellService, logger):
        self.powershell = powershell
        self.logger = logger

    @staticmethod
    def parse_adapter(row: Dict[str, Any]) -> NetworkAdapter:
        return NetworkAdapter(
            name=str(row.get("Name") or ""),
            description=str(row.get("InterfaceDescription") or ""),
            status=str(row.get("Status") or "Unknown"),
            admin_status=str(row.get("AdminStatus") or "Unknown"),
            media_state=str(row.get("MediaConnectionState") or "Unknown"),
            virtual=_as_bool(row.get("Virtual")),
        )

    def list_adapters(self) -> List[NetworkAdapter]:
        adapters = [self.parse_adapter(row) for row in self.powershell.run_json(self.ADAPTER_QUERY)]
        self.logger.debug("Enumerated %s network adapter(s).", len(adapters))
        return adapters

    @staticmethod
    def select_adapter(adapters: Sequence[NetworkAdapter]) -> Optional[NetworkAdapter]:
        for adapter in adapters:
            if adapter.is_eligible:
                return adapter
        return None

    def get_switch(self, name: str) -> Optional[VirtualSwitch]:
        rows = self.powershell.run_json(
            f"Get-VMSwitch -Name {self.powershell.quote(name)} -ErrorAction SilentlyContinue | "
            "Select-Object Name, NetAdapterInterfaceDescription, AllowManagementOS, "
            "@{Name='SwitchType';Expression={[string]$_.SwitchType}}"
        )
        if not rows:
            return None

        row = rows[0]
        return VirtualSwitch(
            name=str(row.get("Name") or name),
            adapter_description=row.get("NetAdapterInterfaceDescription"),
            allow_management_os=_as_bool(row.get("AllowManagementOS")),
            switch_type=str(row.get("SwitchType") or "External"),
        )

    def create_switch(self, name: str, adapter: NetworkAdapter) -> VirtualSwitch:
        self.powershell.run(
            f"New-VMSwitch -Name {self.powershell.quote(name)} "
            f"-NetAdapterName {self.powershell.quote(adapter.name)} "
            "-AllowManagementOS $true -ErrorAction Stop | Out-Null"
        )
        return VirtualSwitch(
            name=name,
            adapter_description=adapter.description,
            allow_management_os=True,
        )
