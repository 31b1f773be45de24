"""
Migration report aggregating per-issue results of an export or conversion run.

The report is filled in while a batch runs and formatted for the console or
saved as JSON once it finishes.
"""

import json
import logging
import time
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, List, Optional, Union


class MigrationReport:
    """Collects processed, succeeded and failed issues for one run."""

    def __init__(self, operation: str, logger: Optional[logging.Logger] = None):
        """
        Initialize migration report.

        Args:
            operation: Name of the run (``issue``, ``search`` or ``convert``)
            logger: Optional logger instance
        """
        self.operation = operation
        self.logger = logger or logging.getLogger('jira_markdown_migrator.orchestrator.migration_report')

        self.processed = 0
        self.succeeded = 0
        self.failed = 0
        self.errors: List[Dict[str, str]] = []
        self.output_paths: List[str] = []
        self.warnings: List[str] = []

        self.started_at = time.time()
        self.finished_at: Optional[float] = None

    @property
    def success(self) -> bool:
        return self.failed == 0

    @property
    def duration(self) -> float:
        end = self.finished_at if self.finished_at is not None else time.time()
        return end - self.started_at

    def record_success(self, item: str, output_path: Union[str, Path, None] = None) -> None:
        self.processed += 1
        self.succeeded += 1
        if output_path is not None:
            self.output_paths.append(str(output_path))
        self.logger.debug(f"{self.operation}: {item} succeeded")

    def record_failure(self, item: str, error: Union[str, Exception]) -> None:
        self.processed += 1
        self.failed += 1
        self.errors.append({'item': item, 'error': str(error)})

    def record_warning(self, message: str) -> None:
        self.warnings.append(message)

    def finish(self) -> 'MigrationReport':
        """Stop the clock and log a one-line summary."""
        self.finished_at = time.time()
        log_method = self.logger.warning if self.failed else self.logger.info
        log_method(
            f"{self.operation}: {self.succeeded} succeeded, {self.failed} failed "
            f"in {self._format_duration(self.duration)}"
        )
        return self

    def to_dict(self) -> Dict[str, Any]:
        return {
            'operation': self.operation,
            'summary': {
                'processed': self.processed,
                'succeeded': self.succeeded,
                'failed': self.failed,
                'duration_seconds': self.duration,
                'duration_formatted': self._format_duration(self.duration),
            },
            'errors': list(self.errors),
            'warnings': list(self.warnings),
            'output_paths': list(self.output_paths),
            'timestamp': datetime.now().isoformat(),
        }

    def save_json(self, path: Union[str, Path]) -> None:
        """Write the report as JSON."""
        with open(path, 'w', encoding='utf-8') as f:
            json.dump(self.to_dict(), f, ensure_ascii=False, indent=2)
        self.logger.info(f"Report saved to {path}")

    def format_console_report(self) -> str:
        """
        Format report for console display.

        Returns:
            Formatted console string
        """
        sections = [
            "=" * 60,
            f"{self.operation.upper()} REPORT",
            "=" * 60,
            "",
            "Summary:",
            f"  Processed:   {self.processed}",
            f"  Succeeded:   {self.succeeded}",
            f"  Failed:      {self.failed}",
            f"  Duration:    {self._format_duration(self.duration)}",
        ]

        if self.warnings:
            sections.append(f"  Warnings:    {len(self.warnings)}")

        if self.errors:
            sections.append("")
            sections.append("Errors:")
            sections.append("-" * 60)
            for error in self.errors:
                sections.append(f"  {error['item']}: {error['error']}")

        sections.append("=" * 60)
        return '\n'.join(sections)

    @staticmethod
    def _format_duration(seconds: float) -> str:
        """Format duration in human-readable format."""
        if seconds < 60:
            return f"{seconds:.1f}s"
        elif seconds < 3600:
            minutes = int(seconds // 60)
            secs = int(seconds % 60)
            return f"{minutes}m {secs}s"
        else:
            hours = int(seconds // 3600)
            minutes = int((seconds % 3600) // 60)
            secs = int(seconds % 60)
            return f"{hours}h {minutes}m {secs}s"


__all__ = ['MigrationReport']
