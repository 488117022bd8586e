import json

import pytest

from hostprep.core import HostPreparer
from hostprep.errors import HostPrepError
from hostprep.models import FeatureState, HostPrepSettings, NetworkAdapter, RequirementSnapshot, Severity, VirtualSwitch
from hostprep.services.network import NetworkService
from hostprep.services.session_log import MemorySessionLog
from hostprep.services.workspace import WorkspaceService

GB = 1024 ** 3


class DummyLogger:
    def debug(self, *_args, **_kwargs):
        return None

    def info(self, *_args, **_kwargs):
        return None

    def warning(self, *_args, **_kwargs):
        return None


class FakePrivilege:
    def __init__(self, calls, elevated=True):
        self.calls = calls
        self.elevated = elevated

    def is_elevated(self):
        self.calls.append("is_elevated")
        return self.elevated


class FakeHyperV:
    def __init__(self, calls, state=FeatureState.ENABLED, running=2, query_error=None, enable_error=None, probe_error=None):
        self.calls = calls
        self.state = state
        self.running = running
        self.query_error = query_error
        self.enable_error = enable_error
        self.probe_error = probe_error

    def query_feature_state(self, feature_name):
        self.calls.append("query_feature_state")
        if self.query_error:
            raise self.query_error
        return self.state

    def enable_feature(self, feature_name):
        self.calls.append("enable_feature")
        if self.enable_error:
            raise self.enable_error

    def count_running_services(self, service_names):
        self.calls.append("count_running_services")
        if self.probe_error:
            raise self.probe_error
        return self.running


class FakeNetwork:
    select_adapter = staticmethod(NetworkService.select_adapter)

    def __init__(self, calls, adapters=None, switch=None, create_error=None, list_error=None, query_error=None):
        self.calls = calls
        self.adapters = adapters if adapters is not None else [physical_adapter()]
        self.switch = switch
        self.create_error = create_error
        self.list_error = list_error
        self.query_error = query_error
        self.created = []

    def list_adapters(self):
        self.calls.append("list_adapters")
        if self.list_error:
            raise self.list_error
        return list(self.adapters)

    def get_switch(self, name):
        self.calls.append("get_switch")
        if self.query_error:
            raise self.query_error
        return self.switch

    def create_switch(self, name, adapter):
        self.calls.append("create_switch")
        if self.create_error:
            raise self.create_error
        self.created.append((name, adapter.name))
        return VirtualSwitch(name=name, adapter_description=adapter.description)


class FakeResources:
    def __init__(self, calls, snapshot=None, error=None):
        self.calls = calls
        self.value = snapshot or RequirementSnapshot(32 * GB, 400 * GB, 8, "Windows 11 (10.0.22631)")
        self.error = error

    def snapshot(self, system_volume):
        self.calls.append("snapshot")
        if self.error:
            raise self.error
        return self.value


def physical_adapter(name="Ethernet", **kwargs):
    values = {
        "name": name,
        "description": "Intel(R) Ethernet Connection",
        "status": "Up",
        "admin_status": "Up",
        "media_state": "Connected",
        "virtual": False,
    }
    values.update(kwargs)
    return NetworkAdapter(**values)


@pytest.fixture
def volumes(tmp_path):
    preferred = tmp_path / "d"
    fallback = tmp_path / "c"
    preferred.mkdir()
    fallback.mkdir()
    return preferred, fallback


def build_preparer(tmp_path, volumes, calls, settings_overrides=None, **services):
    preferred, fallback = volumes
    settings_values = {
        "switch_name": "LabExternalSwitch",
        "preferred_volume": str(preferred),
        "fallback_volume": str(fallback),
        "system_volume": str(tmp_path),
    }
    settings_values.update(settings_overrides or {})

    session_log = MemorySessionLog()
    preparer = HostPreparer(
        session_log=session_log,
        settings=HostPrepSettings(**settings_values),
        privilege_service=services.get("privilege") or FakePrivilege(calls),
        hyperv_service=services.get("hyperv") or FakeHyperV(calls),
        network_service=services.get("network") or FakeNetwork(calls, switch=VirtualSwitch("LabExternalSwitch")),
        resource_service=services.get("resources") or FakeResources(calls),
        workspace_service=services.get("workspace") or WorkspaceService(logger=DummyLogger(), platform="linux"),
        report_file=services.get("report_file"),
    )
    return preparer, session_log


MUTATIONS = {"enable_feature", "create_switch"}


def test_ready_host_exits_zero_without_mutations(tmp_path, volumes):
    calls = []
    (volumes[0] / "LabWorkspace").mkdir()
    preparer, log = build_preparer(tmp_path, volumes, calls)

    assert preparer.run() == 0
    assert not MUTATIONS.intersection(calls)
    assert log.messages(Severity.ERROR) == []
    assert log.messages(Severity.WARNING) == []
    assert any("already exists" in message for message in log.messages(Severity.INFO))


def test_rerun_is_idempotent(tmp_path, volumes):
    calls = []
    network = FakeNetwork(calls)
    preparer, _ = build_preparer(tmp_path, volumes, calls, network=network)
    assert preparer.run() == 0
    assert calls.count("create_switch") == 1

    network.switch = VirtualSwitch("LabExternalSwitch")
    second_calls = []
    network.calls = second_calls
    again, _ = build_preparer(tmp_path, volumes, second_calls, network=network)

    assert again.run() == 0
    assert "create_switch" not in second_calls


def test_not_elevated_exits_before_any_other_call(tmp_path, volumes):
    calls = []
    preparer, log = build_preparer(tmp_path, volumes, calls, privilege=FakePrivilege(calls, elevated=False))

    assert preparer.run() == 1
    assert calls == ["is_elevated"]
    assert any("administrator" in message for message in log.messages(Severity.ERROR))


def test_disabled_feature_is_enabled_once_and_requests_restart(tmp_path, volumes):
    calls = []
    hyperv = FakeHyperV(calls, state=FeatureState.DISABLED)
    preparer, log = build_preparer(tmp_path, volumes, calls, hyperv=hyperv)

    assert preparer.run() == 2
    assert calls.count("enable_feature") == 1
    assert "list_adapters" not in calls
    assert any("Restart the computer" in message for message in log.messages(Severity.WARNING))
    assert log.messages(Severity.ERROR) == []


def test_unknown_feature_state_also_requests_restart(tmp_path, volumes):
    calls = []
    hyperv = FakeHyperV(calls, state=FeatureState.UNKNOWN)
    preparer, _ = build_preparer(tmp_path, volumes, calls, hyperv=hyperv)

    assert preparer.run() == 2
    assert calls.count("enable_feature") == 1


def test_enable_failure_is_logged_and_still_requests_restart(tmp_path, volumes):
    calls = []
    hyperv = FakeHyperV(calls, state=FeatureState.DISABLED, enable_error=HostPrepError("DISM busy"))
    preparer, log = build_preparer(tmp_path, volumes, calls, hyperv=hyperv)

    assert preparer.run() == 2
    assert any("DISM busy" in message for message in log.messages(Severity.WARNING))


def test_feature_query_error_is_fatal(tmp_path, volumes):
    calls = []
    hyperv = FakeHyperV(calls, query_error=HostPrepError("Class not registered"))
    preparer, log = build_preparer(tmp_path, volumes, calls, hyperv=hyperv)

    assert preparer.run() == 1
    assert "enable_feature" not in calls
    assert any("Class not registered" in message for message in log.messages(Severity.ERROR))


@pytest.mark.parametrize(
    "hyperv_kwargs",
    [{"running": 0}, {"probe_error": HostPrepError("Get-Service failed")}],
)
def test_runtime_probe_is_advisory(tmp_path, volumes, hyperv_kwargs):
    calls = []
    hyperv = FakeHyperV(calls, **hyperv_kwargs)
    preparer, log = build_preparer(tmp_path, volumes, calls, hyperv=hyperv)

    assert preparer.run() == 0
    assert any("advisory" in message for message in log.messages(Severity.WARNING))


def test_no_eligible_adapter_exits_without_switch_creation(tmp_path, volumes):
    calls = []
    adapters = [
        physical_adapter("vEthernet (Default Switch)", virtual=True),
        physical_adapter("Wi-Fi", status="Disconnected", media_state="Disconnected"),
        physical_adapter("Ethernet 2", status="Disabled", admin_status="Down"),
    ]
    network = FakeNetwork(calls, adapters=adapters)
    preparer, log = build_preparer(tmp_path, volumes, calls, network=network)

    assert preparer.run() == 1
    assert "get_switch" not in calls
    assert "create_switch" not in calls
    assert "snapshot" not in calls

    warnings = log.messages(Severity.WARNING)
    assert len(warnings) == 3
    assert any("Wi-Fi" in message for message in warnings)
    assert log.tables[0][1][0] == ["vEthernet (Default Switch)", "Up", "Intel(R) Ethernet Connection"]


def test_adapter_enumeration_error_is_fatal(tmp_path, volumes):
    calls = []
    network = FakeNetwork(calls, list_error=HostPrepError("NetAdapter module missing"))
    preparer, log = build_preparer(tmp_path, volumes, calls, network=network)

    assert preparer.run() == 1
    assert any("NetAdapter module missing" in message for message in log.messages(Severity.ERROR))


def test_existing_switch_is_left_untouched(tmp_path, volumes):
    calls = []
    network = FakeNetwork(calls, switch=VirtualSwitch("LabExternalSwitch"))
    preparer, _ = build_preparer(tmp_path, volumes, calls, network=network)

    assert preparer.run() == 0
    assert "create_switch" not in calls


def test_missing_switch_is_created_on_first_eligible_adapter(tmp_path, volumes):
    calls = []
    adapters = [
        physical_adapter("vEthernet", virtual=True),
        physical_adapter("Ethernet"),
        physical_adapter("Ethernet 2"),
    ]
    network = FakeNetwork(calls, adapters=adapters)
    preparer, _ = build_preparer(tmp_path, volumes, calls, network=network)

    assert preparer.run() == 0
    assert network.created == [("LabExternalSwitch", "Ethernet")]


def test_switch_creation_failure_is_fatal(tmp_path, volumes):
    calls = []
    network = FakeNetwork(calls, create_error=HostPrepError("adapter is already bound"))
    preparer, log = build_preparer(tmp_path, volumes, calls, network=network)

    assert preparer.run() == 1
    assert "snapshot" not in calls
    assert any("adapter is already bound" in message for message in log.messages(Severity.ERROR))


def test_resource_shortfalls_warn_but_run_succeeds(tmp_path, volumes):
    calls = []
    resources = FakeResources(calls, snapshot=RequirementSnapshot(8 * GB, 50 * GB, 2, "Windows 10"))
    preparer, log = build_preparer(tmp_path, volumes, calls, resources=resources)

    assert preparer.run() == 0

    warnings = log.messages(Severity.WARNING)
    assert any("RAM" in message and "8.0 GB" in message for message in warnings)
    assert any("disk" in message and "50.0 GB" in message for message in warnings)
    assert any("CPU" in message and "2 available" in message for message in warnings)
    assert sum("not fully met" in message for message in warnings) == 1


def test_resource_read_failure_logs_error_and_continues(tmp_path, volumes):
    calls = []
    resources = FakeResources(calls, error=HostPrepError("WMI unavailable"))
    preparer, log = build_preparer(tmp_path, volumes, calls, resources=resources)

    assert preparer.run() == 0
    assert any("WMI unavailable" in message for message in log.messages(Severity.ERROR))
    assert (volumes[0] / "LabWorkspace").is_dir()


@pytest.mark.parametrize("pre_existing", [True, False])
def test_whitespace_in_workspace_path_is_fatal(tmp_path, volumes, pre_existing):
    calls = []
    if pre_existing:
        (volumes[0] / "Lab Workspace").mkdir()
    preparer, log = build_preparer(
        tmp_path,
        volumes,
        calls,
        settings_overrides={"workspace_folder": "Lab Workspace"},
    )

    assert preparer.run() == 1
    assert any("whitespace" in message for message in log.messages(Severity.ERROR))


def test_fallback_volume_is_used_when_preferred_is_absent(tmp_path, volumes):
    calls = []
    preparer, log = build_preparer(
        tmp_path,
        volumes,
        calls,
        settings_overrides={"preferred_volume": str(tmp_path / "missing")},
    )

    assert preparer.run() == 0
    assert (volumes[1] / "LabWorkspace").is_dir()
    assert preparer.workspace_path == str(volumes[1] / "LabWorkspace")
    assert any("not found" in message for message in log.messages(Severity.WARNING))


def test_folder_creation_failure_is_fatal(tmp_path, volumes):
    calls = []
    blocker = tmp_path / "not-a-volume"
    blocker.write_text("", encoding="utf-8")
    preparer, log = build_preparer(
        tmp_path,
        volumes,
        calls,
        settings_overrides={"preferred_volume": str(blocker), "fallback_volume": str(blocker)},
    )

    assert preparer.run() == 1
    assert any("Could not create workspace folder" in message for message in log.messages(Severity.ERROR))


def test_dry_run_reports_without_changing_the_host(tmp_path, volumes):
    calls = []
    network = FakeNetwork(calls)
    preparer, log = build_preparer(
        tmp_path,
        volumes,
        calls,
        settings_overrides={"dry_run": True},
        network=network,
    )

    assert preparer.run() == 0
    assert not MUTATIONS.intersection(calls)
    assert not (volumes[0] / "LabWorkspace").exists()
    assert sum(message.startswith("Dry run") for message in log.messages(Severity.WARNING)) == 2


def test_dry_run_still_requests_restart_for_disabled_feature(tmp_path, volumes):
    calls = []
    hyperv = FakeHyperV(calls, state=FeatureState.DISABLED)
    preparer, _ = build_preparer(tmp_path, volumes, calls, settings_overrides={"dry_run": True}, hyperv=hyperv)

    assert preparer.run() == 2
    assert "enable_feature" not in calls


def test_unexpected_step_error_is_reported_as_fatal(tmp_path, volumes):
    calls = []
    network = FakeNetwork(calls, list_error=ValueError("bad json"))
    preparer, log = build_preparer(tmp_path, volumes, calls, network=network)

    assert preparer.run() == 1
    assert any("provision_virtual_switch" in message for message in log.messages(Severity.ERROR))


def test_summary_reports_workspace_and_switch(tmp_path, volumes):
    calls = []
    preparer, log = build_preparer(tmp_path, volumes, calls)

    assert preparer.run() == 0

    info = log.messages(Severity.INFO)
    assert f"Workspace path : {volumes[0] / 'LabWorkspace'}" in info
    assert "Virtual switch : LabExternalSwitch" in info
    assert "Host is ready for lab provisioning." in info


def test_report_file_records_each_step(tmp_path, volumes):
    calls = []
    report_file = tmp_path / "reports" / "run.json"
    preparer, _ = build_preparer(
        tmp_path,
        volumes,
        calls,
        resources=FakeResources(calls, snapshot=RequirementSnapshot(8 * GB, 400 * GB, 8, "Windows 11")),
        report_file=str(report_file),
    )

    assert preparer.run() == 0

    report = json.loads(report_file.read_text(encoding="utf-8"))
    assert report["status"] == "ready"
    assert report["exit_code"] == 0
    assert report["switch_name"] == "LabExternalSwitch"
    assert [step["name"] for step in report["steps"]] == [name for name, _ in preparer.steps()]
    outcomes = {step["name"]: step["outcome"] for step in report["steps"]}
    assert outcomes["check_resources"] == "warn"
    assert outcomes["prepare_workspace"] == "continue"


def test_report_file_records_restart_status(tmp_path, volumes):
    calls = []
    report_file = tmp_path / "run.json"
    preparer, _ = build_preparer(
        tmp_path,
        volumes,
        calls,
        hyperv=FakeHyperV(calls, state=FeatureState.DISABLED),
        report_file=str(report_file),
    )

    assert preparer.run() == 2

    report = json.loads(report_file.read_text(encoding="utf-8"))
    assert report["status"] == "restart_required"
    assert report["exit_code"] == 2
    assert len(report["steps"]) == 2


class FailingAclWorkspace(WorkspaceService):
    def read_access_rules(self, path):
        raise HostPrepError("access denied")


def test_undecodable_runtime_probe_output_is_only_a_warning(tmp_path, volumes):
    calls = []
    error = UnicodeDecodeError("cp1252", b"\x81", 0, 1, "undefined")
    preparer, log = build_preparer(tmp_path, volumes, calls, hyperv=FakeHyperV(calls, probe_error=error))

    assert preparer.run() == 0
    assert log.messages(Severity.ERROR) == []
    assert any("cp1252" in message for message in log.messages(Severity.WARNING))


def test_switch_query_error_is_fatal(tmp_path, volumes):
    calls = []
    network = FakeNetwork(calls, query_error=HostPrepError("Hyper-V module not installed"))
    preparer, log = build_preparer(tmp_path, volumes, calls, network=network)

    assert preparer.run() == 1
    assert "create_switch" not in calls
    assert any("Hyper-V module not installed" in message for message in log.messages(Severity.ERROR))


def test_acl_read_failure_is_only_a_warning(tmp_path, volumes):
    calls = []
    workspace = FailingAclWorkspace(logger=DummyLogger(), platform="linux")
    preparer, log = build_preparer(tmp_path, volumes, calls, workspace=workspace)

    assert preparer.run() == 0
    assert any("Could not read permissions" in message for message in log.messages(Severity.WARNING))


def test_adapter_table_follows_the_error_line(tmp_path, volumes):
    calls = []
    network = FakeNetwork(calls, adapters=[physical_adapter("vEthernet", virtual=True)])
    preparer, log = build_preparer(tmp_path, volumes, calls, network=network)

    assert preparer.run() == 1

    position = log.tables[0][2]
    assert log.entries[position - 1][0] is Severity.ERROR
    assert log.entries[position][0] is Severity.WARNING


def test_unwritable_report_file_does_not_stop_the_run(tmp_path, volumes):
    calls = []
    blocker = tmp_path / "blocker"
    blocker.write_text("", encoding="utf-8")
    preparer, _ = build_preparer(tmp_path, volumes, calls, report_file=str(blocker / "run.json"))

    assert preparer.run() == 0
