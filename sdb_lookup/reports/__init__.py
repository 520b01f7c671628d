"""
Report Generation for sdb Runs

Main components:
- JSONReporter: Creates JSON reports per target and per bulk run
"""

from sdb_lookup.reports.json_reporter import JSONReporter

__all__ = [
    'JSONReporter',
]
