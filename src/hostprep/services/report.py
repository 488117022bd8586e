"""Run report generation service."""

import json
import os
import tempfile
from datetime import datetime, timezone
from typing import Any, Dict, Optional


class RunReportService:
    """Collects step outcomes and writes a JSON run report.

    Without a report file the service only keeps the report in memory.
    """

    def __init__(self, report_file: Optional[str], logger):
        self.report_file = report_file
        self.logger = logger
        self.report: Dict[str, Any] = {
            "run_id": None,
            "status": "running",
            "dry_run": False,
            "started_at": None,
            "finished_at": None,
            "duration_seconds": None,
            "steps": [],
            "workspace_path": None,
            "switch_name": None,
            "exit_code": None,
            "error": None,
        }

    def start_run(self, run_id: str, dry_run: bool = False):
        self.report["run_id"] = run_id
        self.report["status"] = "running"
        self.report["dry_run"] = dry_run
        self.report["started_at"] = self._now()
        self.write()

    def step_started(self, step_name: str):
        self.report["steps"].append(
            {
                "name": step_name,
                "outcome": "running",
                "started_at": self._now(),
                "finished_at": None,
                "duration_seconds": None,
                "message": None,
            }
        )

    def step_finished(self, step_name: str, outcome: str, message: Optional[str] = None):
        for step in reversed(self.report["steps"]):
            if step["name"] == step_name and step["outcome"] == "running":
                step["outcome"] = outcome
                step["finished_at"] = self._now()
                step["message"] = message
                started_at = datetime.fromisoformat(step["started_at"])
                finished_at = datetime.fromisoformat(step["finished_at"])
                step["duration_seconds"] = (finished_at - started_at).total_seconds()
                break
        self.write()

    def set_result(self, key: str, value: Any):
        self.report[key] = value

    def finalize(self, status: str, exit_code: int, error: Optional[str] = None):
        self.report["status"] = status
        self.report["exit_code"] = exit_code
        self.report["finished_at"] = self._now()
        if self.report.get("started_at"):
            started_at = datetime.fromisoformat(self.report["started_at"])
            finished_at = datetime.fromisoformat(self.report["finished_at"])
            self.report["duration_seconds"] = (finished_at - started_at).total_seconds()
        self.report["error"] = error
        self.write()

    def write(self):
        if not self.report_file:
            return

        report_dir = os.path.dirname(os.path.abspath(self.report_file))
        temp_path = None
        try:
            os.makedirs(report_dir, exist_ok=True)
            fd, temp_path = tempfile.mkstemp(prefix="run-report-", suffix=".json", dir=report_dir)
            with os.fdopen(fd, "w", encoding="utf-8") as file_obj:
                json.dump(self.report, file_obj, indent=2, sort_keys=True)
                file_obj.write("\n")
            os.replace(temp_path, self.report_file)
        except OSError as exc:
            self.logger.warning("Could not write report file '%s': %s", self.report_file, exc)
            if temp_path is None:
                return
            try:
                os.remove(temp_path)
            except OSError:
                pass

    @staticmethod
    def _now() -> str:
        return datetime.now(timezone.utc).isoformat()
