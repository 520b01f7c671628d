"""
json_reporter.py - Creates machine-readable JSON outputs for sdb runs

This module writes structured JSON reports of what happened to each target in
a run: its sdbid, the outcome, the xids and the catalogue rows written.
"""

import json
import os
import logging
from collections import Counter
from typing import Dict, Any, List, Optional
from datetime import datetime

from sdb_lookup.core.models import ProcessResult
from sdb_lookup.utils.serialization import sanitize_for_json

# Set up logging
logger = logging.getLogger(__name__)


class JSONReporter:
    """
    Creates machine-readable JSON outputs for processed targets.
    """

    def __init__(self, output_dir: Optional[str] = None):
        """
        Initialize the JSON reporter.

        Args:
            output_dir: Directory to save JSON reports to. If None, reports are returned as strings.
        """
        self.output_dir = output_dir
        if output_dir is not None:
            os.makedirs(output_dir, exist_ok=True)

    def generate_target_report(self, result: ProcessResult) -> str:
        """
        Generate a JSON report for one target.

        Args:
            result: ProcessResult of the target.

        Returns:
            JSON string representation of the report, or path to saved file.
        """
        report = {
            "report_type": "sdb_target",
            "timestamp": datetime.now().isoformat(),
            "target": sanitize_for_json(result.to_dict()),
        }
        label = result.sdbid or result.name or "unknown"
        return self._write(report, f"target_{self._safe(label)}")

    def generate_run_report(self, results: List[ProcessResult],
                            run_info: Optional[Dict[str, Any]] = None) -> str:
        """
        Generate a JSON summary of a bulk run.

        Args:
            results: ProcessResults in input order.
            run_info: Extra information about the run (configuration, input file).

        Returns:
            JSON string representation of the report, or path to saved file.
        """
        statuses = Counter(r.status.value for r in results)
        rows = Counter()
        for r in results:
            rows.update(r.catalogue_rows)

        report = {
            "report_type": "sdb_run",
            "timestamp": datetime.now().isoformat(),
            "run_info": sanitize_for_json(run_info or {}),
            "summary": {
                "total_targets": len(results),
                "status_counts": dict(statuses),
                "catalogue_rows": dict(rows),
                "skipped_xids": sum(len(r.skipped_xids) for r in results),
            },
            "targets": [sanitize_for_json(r.to_dict()) for r in results],
        }
        return self._write(report, "sdb_run")

    def _write(self, report: Dict[str, Any], stem: str) -> str:
        report_json = json.dumps(report, indent=2)

        # Save to file if output directory specified
        if self.output_dir:
            timestamp = datetime.now().strftime("%Y%m%d_%H%M%S")
            filepath = os.path.join(self.output_dir, f"{stem}_{timestamp}.json")
            with open(filepath, "w") as f:
                f.write(report_json)
            logger.info(f"Saved report to {filepath}")
            return filepath

        # Otherwise return the JSON string
        return report_json

    @staticmethod
    def _safe(label: str) -> str:
        return "".join(c if c.isalnum() or c in "-+." else "_" for c in label)
