import logging
import uuid
from typing import Callable, List, Optional, Sequence, Tuple

from .constants import EXIT_FATAL, EXIT_OK, EXIT_RESTART_REQUIRED
from .errors import HostPrepError
from .errors_catalog import actionable_error
from .models import (
    DiagnosticTable,
    FeatureState,
    HostPrepSettings,
    NetworkAdapter,
    OutcomeKind,
    StepOutcome,
)
from .services.command_runner import CommandRunner
from .services.hyperv import HyperVService
from .services.network import NetworkService
from .services.powershell import PowerShellService
from .services.privilege import PrivilegeService
from .services.report import RunReportService
from .services.resources import ResourceService
from .services.workspace import WorkspaceService, contains_whitespace

logger = logging.getLogger("hostprep")

Step = Tuple[str, Callable[[], StepOutcome]]


class HostPreparer:
    """Runs the ordered readiness steps against one host."""

    SUMMARY_RULE = "=" * 60

    def __init__(
        self,
        session_log,
        settings: Optional[HostPrepSettings] = None,
        report_file: Optional[str] = None,
        privilege_service=None,
        hyperv_service=None,
        network_service=None,
        resource_service=None,
        workspace_service=None,
        report_service=None,
    ):
        self.session_log = session_log
        self.settings = settings or HostPrepSettings()

        self.command_runner = CommandRunner(logger=logger)
        self.powershell = PowerShellService(self.command_runner)
        self.privilege_service = privilege_service or PrivilegeService(logger=logger)
        self.hyperv_service = hyperv_service or HyperVService(self.powershell, logger=logger)
        self.network_service = network_service or NetworkService(self.powershell, logger=logger)
        self.resource_service = resource_service or ResourceService()
        self.workspace_service = workspace_service or WorkspaceService(
            logger=logger,
            powershell=self.powershell,
        )
        self.report_service = report_service or RunReportService(report_file=report_file, logger=logger)

        self.run_id = uuid.uuid4().hex[:10]
        self.workspace_path: Optional[str] = None
        self.current_step_name: Optional[str] = None

    def steps(self) -> List[Step]:
        return [
            ("check_privileges", self.check_privileges),
            ("check_virtualization_feature", self.check_virtualization_feature),
            ("check_virtualization_runtime", self.check_virtualization_runtime),
            ("provision_virtual_switch", self.provision_virtual_switch),
            ("check_resources", self.check_resources),
            ("prepare_workspace", self.prepare_workspace),
            ("report_summary", self.report_summary),
        ]

    def _run_step(self, name: str, callback: Callable[[], StepOutcome]) -> StepOutcome:
        self.report_service.step_started(name)
        self.current_step_name = name
        logger.debug("Running step: %s", name)

        try:
            outcome = callback()
        except Exception as exc:
            logger.debug("Step %s raised", name, exc_info=True)
            outcome = StepOutcome.fatal(f"Unexpected error during {name}: {exc}")

        self.report_service.step_finished(name, outcome.kind.value, message=outcome.message)
        self.current_step_name = None
        return outcome

    def check_privileges(self) -> StepOutcome:
        if not self.privilege_service.is_elevated():
            return StepOutcome.fatal(actionable_error("not_elevated"))

        self.session_log.info("Running with administrator privileges.")
        return StepOutcome.ok()

    def check_virtualization_feature(self) -> StepOutcome:
        feature = self.settings.feature_name
        try:
            state = self.hyperv_service.query_feature_state(feature)
        except HostPrepError as exc:
            return StepOutcome.fatal(actionable_error("feature_query_failed", cause=str(exc)))

        if state is FeatureState.ENABLED:
            self.session_log.info(f"Hyper-V feature {feature} is enabled.")
            return StepOutcome.ok()

        self.session_log.warning(f"Hyper-V feature {feature} is not enabled (state: {state.value}).")
        if self.settings.dry_run:
            self.session_log.warning(f"Dry run: {feature} would be enabled now.")
        else:
            self.session_log.warning(f"Enabling {feature}...")
            try:
                self.hyperv_service.enable_feature(feature)
            except HostPrepError as exc:
                self.session_log.warning(f"Enabling {feature} reported an error: {exc}")

        return StepOutcome.restart_required(actionable_error("restart_required"))

    def check_virtualization_runtime(self) -> StepOutcome:
        services = self.settings.runtime_services
        try:
            running = self.hyperv_service.count_running_services(services)
        except Exception as exc:
            return StepOutcome.warn(
                f"Could not query Hyper-V runtime services: {exc}. This check is advisory; continuing."
            )

        if running > 0:
            self.session_log.info(
                f"Hyper-V runtime is active ({running} of {len(services)} services running)."
            )
            return StepOutcome.ok()

        return StepOutcome.warn(
            f"None of the Hyper-V runtime services ({', '.join(services)}) report Running. "
            "This check is advisory; continuing."
        )

    @staticmethod
    def _adapter_table(adapters: Sequence[NetworkAdapter]) -> DiagnosticTable:
        return DiagnosticTable(
            title="Network adapters",
            columns=("Name", "Status", "Description"),
            rows=tuple((adapter.name, adapter.status, adapter.description) for adapter in adapters),
        )

    @staticmethod
    def _adapter_details(adapters: Sequence[NetworkAdapter]) -> Tuple[str, ...]:
        if not adapters:
            return ("The host reported no network adapters.",)
        return tuple(
            f"Adapter '{adapter.name}': status={adapter.status}, admin={adapter.admin_status}, "
            f"media={adapter.media_state}, virtual={adapter.virtual}, description={adapter.description}"
            for adapter in adapters
        )

    def provision_virtual_switch(self) -> StepOutcome:
        try:
            adapters = self.network_service.list_adapters()
        except HostPrepError as exc:
            return StepOutcome.fatal(actionable_error("adapter_enumeration_failed", cause=str(exc)))

        adapter = self.network_service.select_adapter(adapters)
        if adapter is None:
            return StepOutcome.fatal(
                actionable_error("no_adapter"),
                details=self._adapter_details(adapters),
                table=self._adapter_table(adapters),
            )

        self.session_log.info(f"Selected network adapter '{adapter.name}' ({adapter.description}).")

        switch_name = self.settings.switch_name
        try:
            existing = self.network_service.get_switch(switch_name)
        except HostPrepError as exc:
            return StepOutcome.fatal(
                actionable_error("switch_query_failed", switch=switch_name, cause=str(exc))
            )

        if existing is not None:
            self.session_log.info(f"Virtual switch '{switch_name}' already exists; leaving it unchanged.")
            return StepOutcome.ok()

        if self.settings.dry_run:
            return StepOutcome.warn(
                f"Dry run: virtual switch '{switch_name}' would be created on adapter '{adapter.name}'."
            )

        self.session_log.info(f"Creating external virtual switch '{switch_name}' on '{adapter.name}'...")
        try:
            self.network_service.create_switch(switch_name, adapter)
        except HostPrepError as exc:
            return StepOutcome.fatal(
                actionable_error(
                    "switch_create_failed",
                    switch=switch_name,
                    adapter=adapter.name,
                    cause=str(exc),
                )
            )

        self.session_log.info(f"Virtual switch '{switch_name}' created.")
        return StepOutcome.ok()

    def check_resources(self) -> StepOutcome:
        try:
            snapshot = self.resource_service.snapshot(self.settings.system_volume)
        except HostPrepError as exc:
            self.session_log.error(f"Resource check skipped: {exc}")
            return StepOutcome.ok()

        settings = self.settings
        self.session_log.info(f"Installed RAM: {snapshot.ram_gb} GB")
        self.session_log.info(f"Free disk space on {settings.system_volume}: {snapshot.free_disk_gb} GB")
        self.session_log.info(f"Logical CPU cores: {snapshot.cpu_cores}")
        self.session_log.info(f"Operating system: {snapshot.os_name}")

        shortfalls = []
        if snapshot.ram_gb < settings.min_ram_gb:
            shortfalls.append(
                f"Insufficient RAM: {snapshot.ram_gb} GB installed, {settings.min_ram_gb:g} GB required."
            )
        if snapshot.free_disk_gb < settings.min_disk_gb:
            shortfalls.append(
                f"Insufficient free disk space: {snapshot.free_disk_gb} GB free, "
                f"{settings.min_disk_gb:g} GB required."
            )
        if snapshot.cpu_cores < settings.min_cores:
            shortfalls.append(
                f"Insufficient CPU cores: {snapshot.cpu_cores} available, {settings.min_cores} required."
            )

        for message in shortfalls:
            self.session_log.warning(message)

        if shortfalls:
            return StepOutcome.warn("Host requirements are not fully met; lab VMs may not start or may run slowly.")

        self.session_log.info("Host meets the resource requirements.")
        return StepOutcome.ok()

    def prepare_workspace(self) -> StepOutcome:
        settings = self.settings
        volume, used_fallback = self.workspace_service.select_volume(
            settings.preferred_volume,
            settings.fallback_volume,
        )
        if used_fallback:
            self.session_log.warning(
                f"Preferred volume {settings.preferred_volume} not found; using {volume} instead."
            )

        path = self.workspace_service.resolve_path(volume, settings.workspace_folder)
        self.workspace_path = path

        if settings.dry_run and not self.workspace_service.exists(path):
            self.session_log.warning(f"Dry run: workspace folder {path} would be created.")
        else:
            try:
                created = self.workspace_service.ensure_directory(path)
            except HostPrepError as exc:
                return StepOutcome.fatal(actionable_error("folder_create_failed", path=path, cause=str(exc)))

            if created:
                self.session_log.info(f"Created workspace folder {path}")
            else:
                self.session_log.info(f"Workspace folder {path} already exists.")

        if contains_whitespace(path):
            return StepOutcome.fatal(actionable_error("whitespace_path", path=path))

        if not self.workspace_service.exists(path):
            return StepOutcome.ok()

        try:
            rules = self.workspace_service.read_access_rules(path)
        except HostPrepError as exc:
            return StepOutcome.warn(f"Could not read permissions of {path}: {exc}")

        rules_text = "; ".join(line.strip() for line in rules.splitlines() if line.strip())
        self.session_log.info(f"Workspace permissions: {rules_text or '<none reported>'}")
        return StepOutcome.ok()

    def report_summary(self) -> StepOutcome:
        log = self.session_log
        log.info(self.SUMMARY_RULE)
        log.info("HOST PREPARATION SUMMARY")
        log.info(f"Workspace path : {self.workspace_path}")
        log.info(f"Virtual switch : {self.settings.switch_name}")
        if self.settings.dry_run:
            log.info("Dry run finished; no changes were made to this host.")
        else:
            log.info("Host is ready for lab provisioning.")
        log.info(self.SUMMARY_RULE)
        return StepOutcome.ok()

    def run(self) -> int:
        exit_code = EXIT_FATAL
        status = "failed"
        error: Optional[str] = None

        self.report_service.start_run(self.run_id, dry_run=self.settings.dry_run)
        suffix = " (dry run)" if self.settings.dry_run else ""
        self.session_log.info(f"Starting host preparation run {self.run_id}{suffix}.")

        try:
            for name, callback in self.steps():
                outcome = self._run_step(name, callback)

                if outcome.kind is OutcomeKind.WARN:
                    self.session_log.log(outcome.message, outcome.severity)
                    continue

                if outcome.is_fatal:
                    self.session_log.log(outcome.message, outcome.severity)
                    if outcome.table is not None:
                        self.session_log.log_table(
                            outcome.table.title,
                            outcome.table.columns,
                            outcome.table.rows,
                        )
                    for detail in outcome.details:
                        self.session_log.warning(detail)
                    error = outcome.message
                    exit_code = outcome.exit_code
                    if exit_code == EXIT_RESTART_REQUIRED:
                        status = "restart_required"
                    return exit_code

            status = "ready"
            exit_code = EXIT_OK
            return exit_code
        finally:
            self.report_service.set_result("workspace_path", self.workspace_path)
            self.report_service.set_result("switch_name", self.settings.switch_name)
            self.report_service.finalize(status, exit_code, error=error)
