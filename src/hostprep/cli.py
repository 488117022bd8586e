import logging
import os

import click
from rich.logging import RichHandler

from . import __version__
from .constants import (
    DEFAULT_FALLBACK_VOLUME,
    DEFAULT_LOG_SUBDIR,
    DEFAULT_PREFERRED_VOLUME,
    DEFAULT_SWITCH_NAME,
    DEFAULT_WORKSPACE_FOLDER,
    MIN_CPU_CORES,
    MIN_FREE_DISK_GB,
    MIN_RAM_GB,
    default_system_volume,
)
from .core import HostPreparer, HostPrepError
from .models import HostPrepSettings
from .services.session_log import SessionLog
from .services.workspace import WorkspaceService

logging.basicConfig(
    level="INFO",
    format="%(message)s",
    datefmt="[%X]",
    handlers=[RichHandler(rich_tracebacks=True, show_level=False, show_path=False)],
)


def _resolve_log_path(log_file, settings: HostPrepSettings, logger) -> str:
    if log_file:
        return log_file
    volume, _ = WorkspaceService(logger=logger).select_volume(
        settings.preferred_volume,
        settings.fallback_volume,
    )
    return os.path.join(volume, settings.log_subdir, settings.log_file_name)


def _wait_for_operator(non_interactive: bool):
    if non_interactive:
        return
    # click.pause is a no-op when stdin is not a terminal.
    click.pause("Press any key to continue...")


@click.command(context_settings={"auto_envvar_prefix": "HOSTPREP"})
@click.version_option(__version__, prog_name="hostprep")
@click.option("--switch-name", default=DEFAULT_SWITCH_NAME, show_default=True, help="External virtual switch name.")
@click.option(
    "--preferred-volume",
    default=DEFAULT_PREFERRED_VOLUME,
    show_default=True,
    help="Volume used for the workspace and log when it exists.",
)
@click.option(
    "--fallback-volume",
    default=DEFAULT_FALLBACK_VOLUME,
    show_default=True,
    help="Volume used when the preferred volume is absent.",
)
@click.option(
    "--workspace-folder",
    default=DEFAULT_WORKSPACE_FOLDER,
    show_default=True,
    help="Workspace folder name created on the selected volume.",
)
@click.option(
    "--log-subdir",
    default=DEFAULT_LOG_SUBDIR,
    show_default=True,
    help="Folder on the selected volume that holds the session log.",
)
@click.option("--log-file", type=click.Path(dir_okay=False), help="Explicit session log path.")
@click.option(
    "--system-volume",
    default=None,
    help="Volume whose free space is checked (default: the system drive).",
)
@click.option("--min-ram-gb", type=float, default=MIN_RAM_GB, show_default=True, help="Minimum RAM in GB.")
@click.option(
    "--min-disk-gb",
    type=float,
    default=MIN_FREE_DISK_GB,
    show_default=True,
    help="Minimum free disk space in GB.",
)
@click.option("--min-cores", type=int, default=MIN_CPU_CORES, show_default=True, help="Minimum logical CPU cores.")
@click.option(
    "--dry-run",
    is_flag=True,
    default=False,
    help="Run every check but skip feature enablement, switch and folder creation.",
)
@click.option(
    "--non-interactive",
    is_flag=True,
    default=False,
    help="Exit without waiting for a key press.",
)
@click.option(
    "--report-file",
    type=click.Path(dir_okay=False),
    help="Write a JSON run report to this path.",
)
@click.option("--verbose", is_flag=True, default=False, help="Enable verbose logging")
def main(
    switch_name,
    preferred_volume,
    fallback_volume,
    workspace_folder,
    log_subdir,
    log_file,
    system_volume,
    min_ram_gb,
    min_disk_gb,
    min_cores,
    dry_run,
    non_interactive,
    report_file,
    verbose,
):
    """Check this host and prepare it for the virtual lab provisioning tool."""
    logger = logging.getLogger("hostprep")

    if verbose:
        logging.getLogger().setLevel(logging.DEBUG)
        logger.setLevel(logging.DEBUG)
    else:
        logger.setLevel(logging.INFO)

    settings = HostPrepSettings(
        switch_name=switch_name,
        preferred_volume=preferred_volume,
        fallback_volume=fallback_volume,
        workspace_folder=workspace_folder,
        log_subdir=log_subdir,
        system_volume=system_volume or default_system_volume(),
        min_ram_gb=min_ram_gb,
        min_disk_gb=min_disk_gb,
        min_cores=min_cores,
        dry_run=dry_run,
    )

    log_path = _resolve_log_path(log_file, settings, logger)

    try:
        with SessionLog().open(log_path) as session_log:
            session_log.info(f"Session log: {log_path}")
            preparer = HostPreparer(
                session_log=session_log,
                settings=settings,
                report_file=report_file,
            )
            exit_code = preparer.run()
    except HostPrepError as exc:
        raise click.ClickException(str(exc)) from exc

    _wait_for_operator(non_interactive)
    raise SystemExit(exit_code)


if __name__ == "__main__":
    main()
