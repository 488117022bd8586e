"""Actionable error catalog for hostprep."""

from typing import Dict

_ERROR_MESSAGES: Dict[str, Dict[str, str]] = {
    "not_elevated": {
        "what": "hostprep must run with administrator privileges.",
        "next": "Open an elevated terminal (Run as administrator) and run hostprep again.",
    },
    "feature_query_failed": {
        "what": "Could not query the Hyper-V feature state: {cause}",
        "next": "Check that DISM and the Windows optional features service are working.",
    },
    "restart_required": {
        "what": "Hyper-V was enabled and the host must restart.",
        "next": "Restart the computer, then run hostprep again.",
    },
    "adapter_enumeration_failed": {
        "what": "Could not enumerate network adapters: {cause}",
        "next": "Check that the NetAdapter PowerShell module is available.",
    },
    "no_adapter": {
        "what": "No active physical network adapter was found.",
        "next": "Connect a cable or enable a physical adapter, then run hostprep again.",
    },
    "switch_query_failed": {
        "what": "Could not query virtual switch '{switch}': {cause}",
        "next": "Check that the Hyper-V PowerShell module is installed.",
    },
    "switch_create_failed": {
        "what": "Could not create virtual switch '{switch}' on adapter '{adapter}': {cause}",
        "next": "Make sure the adapter is not bound to another virtual switch and retry.",
    },
    "folder_create_failed": {
        "what": "Could not create workspace folder {path}: {cause}",
        "next": "Check the volume is writable or choose another volume with --preferred-volume.",
    },
    "whitespace_path": {
        "what": "Workspace path contains whitespace: '{path}'",
        "next": "Choose a volume and folder name without spaces (--workspace-folder).",
    },
}


def actionable_error(code: str, **kwargs: str) -> str:
    if code not in _ERROR_MESSAGES:
        raise KeyError(f"Unknown error catalog key: {code}")

    template = _ERROR_MESSAGES[code]
    what = template["what"].format(**kwargs)
    next_step = template["next"].format(**kwargs)
    return f"{what} Suggested action: {next_step}"
